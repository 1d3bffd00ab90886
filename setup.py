from setuptools import setup

setup(
    name="pxve",
    version="1.8.0",
    packages=["pxve", "pxve.cli", "pxve.lib"],
    install_requires=[
        "Click",
        "PyYAML",
        "colorama",
        "requests",
        "urllib3",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "pxve = pxve.cli.cli:cli",
        ],
    },
)
