from __future__ import annotations

import pytest

from pxve.lib.common import InvalidArgumentError, TaskFailedError
from pxve.lib.models import (
    ResourceRef,
    TaskResult,
    parse_upid,
    raise_for_status,
    resource_path,
    validate_kind,
    validate_vmid,
)


def test_parse_upid_extracts_fields() -> None:
    upid = "UPID:pve2:0000A1B2:00C3D4E5:65F1A2B3:vzdump:100:root@pam:"

    handle = parse_upid(upid)

    assert handle.upid == upid
    assert handle.node == "pve2"
    assert handle.pid == 0xA1B2
    assert handle.pstart == 0xC3D4E5
    assert handle.starttime == 0x65F1A2B3
    assert handle.task_type == "vzdump"
    assert handle.task_id == "100"
    assert handle.user == "root@pam"


def test_parse_upid_keeps_empty_task_id() -> None:
    handle = parse_upid("UPID:pve1:00001234:00005678:65F1A2B3:aptupdate::root@pam:")

    assert handle.task_id == ""
    assert handle.task_type == "aptupdate"


@pytest.mark.parametrize(
    "upid",
    [
        "",
        None,
        "UPID:pve1:00001234",
        "TASK:pve1:00001234:00005678:65F1A2B3:qmstart:100:root@pam:",
        "UPID:pve1:nothex:00005678:65F1A2B3:qmstart:100:root@pam:",
        "UPID::00001234:00005678:65F1A2B3:qmstart:100:root@pam:",
    ],
)
def test_parse_upid_rejects_malformed(upid) -> None:
    with pytest.raises(InvalidArgumentError):
        parse_upid(upid)


def test_validate_vmid() -> None:
    assert validate_vmid("100") == 100
    assert validate_vmid(9999) == 9999

    for bad in [0, -5, "abc", None]:
        with pytest.raises(InvalidArgumentError):
            validate_vmid(bad)


def test_validate_kind() -> None:
    assert validate_kind("lxc") == "lxc"

    with pytest.raises(InvalidArgumentError):
        validate_kind("openvz")


def test_resource_path() -> None:
    assert resource_path(ResourceRef(kind="lxc", vmid=105, node="pve3")) == "/nodes/pve3/lxc/105"


def test_raise_for_status_carries_exit_status_verbatim() -> None:
    handle = parse_upid("UPID:pve1:00001234:00005678:65F1A2B3:qmrestore:101:root@pam:")
    result = TaskResult(failed=True, exit_status="unable to restore VM 101 - disk full", running=False)

    with pytest.raises(TaskFailedError) as excinfo:
        raise_for_status(result, handle)

    assert excinfo.value.message == "unable to restore VM 101 - disk full"
    assert excinfo.value.upid == handle.upid


def test_raise_for_status_passes_success_through() -> None:
    result = TaskResult(failed=False, exit_status="OK", running=False)

    assert raise_for_status(result) is result
