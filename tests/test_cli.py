from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

import pxve.cli.cli
import pxve.lib.common
from pxve.cli.cli import cli
from pxve.cli.helpers import get_config, get_store

from conftest import make_upid, task_log_route


INLINE = [
    "-q",
    "--url",
    "https://pve.example.com:8006/api2/json",
    "--token-id",
    "root@pam!pxve",
    "--token-secret",
    "secret",
]

UPID = make_upid(node="pve1", task_type="qmstart", task_id="100")


@pytest.fixture
def runner(tmp_path, monkeypatch, api):
    monkeypatch.setenv("PXVE_CLIENT_DIR", str(tmp_path))
    monkeypatch.delenv("PXVE_INSTANCE", raising=False)
    monkeypatch.setattr(pxve.cli.cli, "audit", lambda: None)
    monkeypatch.setattr(pxve.lib.common, "Session", lambda: api)
    return CliRunner()


def test_instance_add_and_list(runner, tmp_path) -> None:
    result = runner.invoke(
        cli,
        [
            "instance",
            "add",
            "lab",
            "--url",
            "pve.example.com:8006",
            "--token-id",
            "root@pam!pxve",
            "--token-secret",
            "secret",
        ],
    )
    assert result.exit_code == 0, result.output

    store_data = get_store(str(tmp_path))
    assert store_data["current"] == "lab"
    assert store_data["instances"]["lab"]["url"] == "https://pve.example.com:8006"

    result = runner.invoke(cli, ["-q", "instance", "list", "-f", "json"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == [
        {
            "name": "lab",
            "url": "https://pve.example.com:8006",
            "auth": "token root@pam!pxve",
            "verify_ssl": False,
            "description": "",
            "current": True,
        }
    ]


def test_instance_add_requires_credentials(runner) -> None:
    result = runner.invoke(cli, ["instance", "add", "lab", "--url", "pve.example.com"])

    assert result.exit_code == 1
    assert "--token-id" in result.output


def test_command_without_instance_fails(runner) -> None:
    result = runner.invoke(cli, ["vm", "list"])

    assert result.exit_code == 1
    assert "No instance specified" in result.output


def test_vm_start_watches_task(runner, api) -> None:
    api.route("GET", "/nodes/pve1/qemu/100/status/current", {"status": "stopped"})
    api.route("POST", "/nodes/pve1/qemu/100/status/start", UPID)
    api.route("GET", f"/nodes/pve1/tasks/{UPID}/log", task_log_route(["starting VM 100"]))
    api.route("GET", f"/nodes/pve1/tasks/{UPID}/status", {"status": "stopped", "exitstatus": "OK"})

    result = runner.invoke(cli, INLINE + ["vm", "start", "100", "-n", "pve1"])

    assert result.exit_code == 0, result.output
    assert "Starting VM 100." in result.output
    assert "  starting VM 100" in result.output
    assert "Task finished: OK" in result.output


def test_vm_start_no_wait_prints_task_id(runner, api) -> None:
    api.route("GET", "/nodes/pve1/qemu/100/status/current", {"status": "stopped"})
    api.route("POST", "/nodes/pve1/qemu/100/status/start", UPID)

    result = runner.invoke(cli, INLINE + ["vm", "start", "100", "-n", "pve1", "--no-wait"])

    assert result.exit_code == 0, result.output
    assert f"Task ID: {UPID}" in result.output
    assert not [path for path in api.paths() if "/tasks/" in path]


def test_failed_task_exits_with_server_message(runner, api) -> None:
    message = "unable to create VM 100 - VM 100 already exists on node 'pve1'"
    api.route("POST", "/nodes/pve1/qemu", UPID)
    api.route("GET", f"/nodes/pve1/tasks/{UPID}/log", task_log_route(["restore failed"]))
    api.route("GET", f"/nodes/pve1/tasks/{UPID}/status", {"status": "stopped", "exitstatus": message})

    result = runner.invoke(
        cli,
        INLINE
        + [
            "backup",
            "restore",
            "pbs:backup/vzdump-qemu-100-2024_03_01-02_00_00.vma.zst",
            "-n",
            "pve1",
            "-i",
            "100",
        ],
    )

    assert result.exit_code == 1
    assert f"Task failed: {message}" in result.output


def test_library_errors_exit_nonzero(runner, api) -> None:
    api.route("GET", "/nodes", [{"node": "pve1"}])

    result = runner.invoke(cli, INLINE + ["ct", "info", "300"])

    assert result.exit_code == 1
    assert "Error: CT 300 not found on any node (scanned pve1)" in result.output


def test_backup_list_json(runner, api) -> None:
    api.route(
        "GET",
        "/nodes/pve1/storage/pbs/content",
        [{"volid": "pbs:backup/vzdump-lxc-200-2024_03_02-02_00_00.tar.zst", "vmid": 200, "ctime": 1709344800}],
    )

    result = runner.invoke(cli, INLINE + ["backup", "list", "-n", "pve1", "-s", "pbs", "-f", "json"])

    assert result.exit_code == 0, result.output
    backups = json.loads(result.output)
    assert backups[0]["volid"] == "pbs:backup/vzdump-lxc-200-2024_03_02-02_00_00.tar.zst"
    assert backups[0]["archive_type"] == "lxc"
    assert backups[0]["node"] == "pve1"


def test_backup_delete_asks_for_confirmation(runner, api) -> None:
    volid = "pbs:backup/vzdump-qemu-100-2024_03_01-02_00_00.vma.zst"
    api.route("DELETE", f"/nodes/pve1/storage/pbs/content/{volid}", None)

    result = runner.invoke(cli, INLINE + ["backup", "delete", volid, "-n", "pve1"], input="n\n")

    assert result.exit_code == 0
    assert "Aborted." in result.output
    assert api.paths("DELETE") == []

    result = runner.invoke(cli, INLINE + ["backup", "delete", volid, "-n", "pve1", "-y"])

    assert result.exit_code == 0, result.output
    assert api.paths("DELETE") == [f"/nodes/pve1/storage/pbs/content/{volid}"]


def test_cluster_nextid(runner, api) -> None:
    api.route("GET", "/cluster/nextid", "104")

    result = runner.invoke(cli, INLINE + ["cluster", "nextid"])

    assert result.exit_code == 0, result.output
    assert result.output.strip() == "104"


def test_get_config_prefers_inline_then_named_instance(monkeypatch) -> None:
    monkeypatch.delenv("PXVE_INSTANCE", raising=False)
    store_data = {
        "current": "lab",
        "instances": {
            "lab": {"url": "https://lab:8006", "token_id": "a@pam!t", "token_secret": "x"},
            "prod": {"url": "https://prod:8006", "username": "root@pam", "password": "y"},
        },
    }

    assert get_config(store_data)["api_url"] == "https://lab:8006"
    assert get_config(store_data, "prod")["username"] == "root@pam"

    inline = {"url": "https://other:8006/api2/json", "token_id": "b@pam!t", "token_secret": "z"}
    config = get_config(store_data, "prod", inline)
    assert config["instance"] == "inline"
    assert config["api_url"] == "https://other:8006"

    monkeypatch.setenv("PXVE_INSTANCE", "prod")
    assert get_config(store_data)["instance"] == "prod"


def test_get_config_flags_bad_instances(monkeypatch) -> None:
    monkeypatch.delenv("PXVE_INSTANCE", raising=False)
    store_data = {"current": None, "instances": {"empty": {"url": "https://lab:8006"}}}

    assert get_config(store_data) == {"badcfg": True, "instance": None}
    assert get_config(store_data, "missing") == {"badcfg": True, "instance": "missing"}
    assert get_config(store_data, "empty") == {"badcfg": True, "instance": "empty", "noauth": True}


def test_vm_config_shows_configuration(runner, api) -> None:
    api.route("GET", "/nodes/pve1/qemu/100/status/current", {"status": "running"})
    api.route("GET", "/nodes/pve1/qemu/100/config", {"name": "web-1", "cores": 2, "memory": 4096})

    result = runner.invoke(cli, INLINE + ["vm", "config", "100", "-n", "pve1", "-f", "json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {
        "vmid": 100,
        "node": "pve1",
        "config": {"name": "web-1", "cores": 2, "memory": 4096},
    }
    assert api.paths("POST") == []


def test_vm_config_updates_given_options(runner, api) -> None:
    upid = make_upid(task_type="qmconfig")
    api.route("GET", "/nodes/pve1/qemu/100/status/current", {"status": "running"})
    api.route("POST", "/nodes/pve1/qemu/100/config", upid)

    result = runner.invoke(
        cli, INLINE + ["vm", "config", "100", "-n", "pve1", "--cores", "4", "--no-onboot", "--no-wait"]
    )

    assert result.exit_code == 0, result.output
    assert f"Task ID: {upid}" in result.output
    assert api.last("POST", "/nodes/pve1/qemu/100/config")["data"] == {"cores": 4, "onboot": 0}


def test_vm_disk_move_picks_the_only_moveable_disk(runner, api) -> None:
    api.route("GET", "/nodes/pve1/qemu/100/status/current", {"status": "running"})
    api.route(
        "GET",
        "/nodes/pve1/qemu/100/config",
        {"scsi0": "local-lvm:vm-100-disk-0,size=32G", "ide2": "none,media=cdrom"},
    )
    api.route("POST", "/nodes/pve1/qemu/100/move_disk", make_upid(task_type="qmmove"))

    result = runner.invoke(
        cli, INLINE + ["vm", "disk", "move", "100", "-s", "ceph", "-n", "pve1", "--no-wait"]
    )

    assert result.exit_code == 0, result.output
    assert "Moving disk scsi0 of VM 100 to ceph." in result.output
    assert api.last("POST", "/nodes/pve1/qemu/100/move_disk")["data"] == {
        "disk": "scsi0",
        "storage": "ceph",
        "delete": 1,
    }


def test_vm_disk_detach_with_delete_asks_for_confirmation(runner, api) -> None:
    result = runner.invoke(
        cli, INLINE + ["vm", "disk", "detach", "100", "scsi1", "--delete", "-n", "pve1"], input="n\n"
    )

    assert result.exit_code == 0
    assert "Aborted." in result.output
    assert api.calls == []


def test_vm_agent_exec_fails_with_guest_exit_code(runner, api) -> None:
    api.route("GET", "/nodes/pve1/qemu/100/status/current", {"status": "running"})
    api.route("POST", "/nodes/pve1/qemu/100/agent/exec", {"pid": 12})
    api.route(
        "GET",
        "/nodes/pve1/qemu/100/agent/exec-status",
        {"exited": 1, "exitcode": 2, "err-data": "ls: cannot access '/nope'\n"},
    )

    result = runner.invoke(
        cli, INLINE + ["vm", "agent", "exec", "100", "-n", "pve1", "--", "ls", "/nope"]
    )

    assert result.exit_code == 1
    assert "stderr: ls: cannot access '/nope'" in result.output
    assert "Command exited with code 2" in result.output
    assert api.last("POST", "/nodes/pve1/qemu/100/agent/exec")["data"] == {"command": ["ls", "/nope"]}


def test_user_token_create_shows_secret_once(runner, api) -> None:
    api.route(
        "POST",
        "/access/users/alice@pve/token/ci",
        {"full-tokenid": "alice@pve!ci", "value": "0b5a3c1e-secret"},
    )

    result = runner.invoke(
        cli, INLINE + ["user", "token", "create", "alice@pve", "ci", "--no-privsep"]
    )

    assert result.exit_code == 0, result.output
    assert "alice@pve!ci" in result.output
    assert "0b5a3c1e-secret" in result.output
    assert api.last("POST", "/access/users/alice@pve/token/ci")["data"] == {"privsep": 0}
