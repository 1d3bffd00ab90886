#!/usr/bin/env python3

# helpers.py - pxve Click CLI helper function library
# Part of the pxve Proxmox VE command-line client
#
#    Copyright (C) 2026 The pxve contributors
#
#    This program is free software: you can redistribute it and/or modify
#    it under the terms of the GNU General Public License as published by
#    the Free Software Foundation, version 3.
#
#    This program is distributed in the hope that it will be useful,
#    but WITHOUT ANY WARRANTY; without even the implied warranty of
#    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
#    GNU General Public License for more details.
#
#    You should have received a copy of the GNU General Public License
#    along with this program.  If not, see <https://www.gnu.org/licenses/>.
#
###############################################################################

from click import echo as click_echo
from os import chmod, environ, getpid, path, get_terminal_size
from sys import argv
from syslog import syslog, openlog, closelog, LOG_AUTH
from yaml import safe_dump as ydump
from yaml import safe_load as yload
from yaml import YAMLError


VERSION = "1.8.0"

DEFAULT_STORE_DATA = {"current": None, "instances": {}}
DEFAULT_STORE_FILENAME = "pxve.yaml"
DEFAULT_API_PREFIX = "/api2/json"
DEFAULT_SCAN_WORKERS = 4

try:
    # Define the content width to be the maximum terminal size
    MAX_CONTENT_WIDTH = get_terminal_size().columns - 1
except OSError:
    # Fall back to 80 columns if "Inappropriate ioctl for device"
    MAX_CONTENT_WIDTH = 80


def echo(config, message, newline=True, stderr=False):
    """
    Output a message with click.echo respecting our configuration
    """

    if config.get("colour", False):
        colour = True
    else:
        colour = None

    if config.get("silent", False):
        pass
    elif config.get("quiet", False) and stderr:
        pass
    else:
        click_echo(message=message, color=colour, nl=newline, err=stderr)


def audit():
    """
    Log an audit message to the local syslog AUTH facility
    """

    args = argv
    pid = getpid()

    # Never log secrets passed on the command line
    redacted = list()
    hide_next = False
    for arg in args:
        if hide_next:
            redacted.append("********")
            hide_next = False
        elif arg in ["--password", "--token-secret"]:
            redacted.append(arg)
            hide_next = True
        elif arg.startswith("--password=") or arg.startswith("--token-secret="):
            redacted.append(arg.split("=")[0] + "=********")
        else:
            redacted.append(arg)

    openlog(facility=LOG_AUTH, ident=f"{args[0].split('/')[-1]}[{pid}]")
    syslog(
        f"""client audit: command "{' '.join(redacted)}" by user {environ.get('USER', None)}"""
    )
    closelog()


def normalize_url(url):
    """
    Reduce an instance URL to "scheme://host[:port]"; users may paste the
    full API base URL
    """
    url = url.strip().rstrip("/")
    if "://" not in url:
        url = f"https://{url}"
    if url.endswith(DEFAULT_API_PREFIX):
        url = url[: -len(DEFAULT_API_PREFIX)]
    return url


def get_config(store_data, instance=None, inline=None):
    """
    Load CLI configuration from store data

    {inline} instance details (from "--url" and friends) take precedence over
    everything; otherwise {instance}, then $PXVE_INSTANCE, then the store's
    current instance is used.
    """

    if inline is not None and inline.get("url"):
        instance = "inline"
        instance_details = inline
    else:
        if not instance:
            instance = environ.get("PXVE_INSTANCE") or store_data.get("current")
        if not instance:
            return {"badcfg": True, "instance": None}
        instance_details = store_data.get("instances", {}).get(instance)
        if not instance_details:
            return {"badcfg": True, "instance": instance}

    has_token = instance_details.get("token_id") and instance_details.get("token_secret")
    has_password = instance_details.get("username") and instance_details.get("password")
    if not has_token and not has_password:
        return {"badcfg": True, "instance": instance, "noauth": True}

    config = dict()
    config["debug"] = False
    config["instance"] = instance
    config["description"] = instance_details.get("description", "")
    config["api_url"] = normalize_url(instance_details["url"])
    config["api_prefix"] = DEFAULT_API_PREFIX
    config["token_id"] = instance_details.get("token_id")
    config["token_secret"] = instance_details.get("token_secret")
    config["username"] = instance_details.get("username")
    config["password"] = instance_details.get("password")
    config["verify_ssl"] = bool(instance_details.get("verify_ssl", False))
    config["scan_workers"] = int(
        environ.get("PXVE_SCAN_WORKERS", DEFAULT_SCAN_WORKERS)
    )

    return config


def get_store(store_path):
    """
    Load store information from the store path
    """

    store_file = f"{store_path}/{DEFAULT_STORE_FILENAME}"

    with open(store_file) as fh:
        try:
            store_data = yload(fh) or dict()
        except YAMLError:
            store_data = dict()

    store_data.setdefault("current", None)
    if not store_data.get("instances"):
        store_data["instances"] = dict()

    return store_data


def update_store(store_path, store_data):
    """
    Update store information to the store path, creating it (with sensible permissions) if needed
    """

    store_file = f"{store_path}/{DEFAULT_STORE_FILENAME}"

    if not path.exists(store_file):
        with open(store_file, "w") as fh:
            fh.write("")
        chmod(store_file, int(environ.get("PXVE_CLIENT_DB_PERMS", "600"), 8))

    with open(store_file, "w") as fh:
        ydump(store_data, fh, default_flow_style=False, sort_keys=True)
