#!/usr/bin/env python3

# models.py - pxve CLI client function library, Shared record types
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

from collections import namedtuple

from pxve.lib.common import InvalidArgumentError, TaskFailedError


KIND_VM = "qemu"
KIND_CONTAINER = "lxc"
KINDS = {KIND_VM: "VM", KIND_CONTAINER: "CT"}


# A located VM or container; re-resolve if it may have migrated
ResourceRef = namedtuple("ResourceRef", ["kind", "vmid", "node"])

# A parsed UPID: UPID:{node}:{pid}:{pstart}:{starttime}:{type}:{id}:{user}:
TaskHandle = namedtuple(
    "TaskHandle",
    ["upid", "node", "pid", "pstart", "starttime", "task_type", "task_id", "user"],
)

# Terminal outcome of a watched task; running is set when the final probe
# still saw the task running after the polling bound elapsed
TaskResult = namedtuple("TaskResult", ["failed", "exit_status", "running"])

BackupEntry = namedtuple(
    "BackupEntry",
    [
        "volid",
        "storage",
        "node",
        "archive_type",
        "size",
        "ctime",
        "vmid",
        "notes",
        "protected",
        "format",
        "verification",
    ],
)

StorageInfo = namedtuple(
    "StorageInfo", ["name", "node", "type", "content", "avail", "used", "total"]
)


def validate_kind(kind):
    if kind not in KINDS:
        raise InvalidArgumentError(f"Invalid resource kind '{kind}'; must be one of {', '.join(KINDS)}")
    return kind


def validate_vmid(vmid):
    """
    Return {vmid} as a positive integer or raise InvalidArgumentError
    """
    try:
        vmid = int(vmid)
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"Invalid VMID '{vmid}'")
    if vmid < 1:
        raise InvalidArgumentError(f"Invalid VMID '{vmid}'; must be a positive integer")
    return vmid


def resource_path(ref):
    return f"/nodes/{ref.node}/{ref.kind}/{ref.vmid}"


def parse_upid(upid):
    """
    Parse an opaque task UPID string into a TaskHandle
    """
    fields = str(upid).split(":") if upid else []
    if len(fields) < 8 or fields[0] != "UPID" or not fields[1]:
        raise InvalidArgumentError(f"Invalid task UPID '{upid}'")

    try:
        pid = int(fields[2], 16)
        pstart = int(fields[3], 16)
        starttime = int(fields[4], 16)
    except ValueError:
        raise InvalidArgumentError(f"Invalid task UPID '{upid}'")

    return TaskHandle(
        upid=upid,
        node=fields[1],
        pid=pid,
        pstart=pstart,
        starttime=starttime,
        task_type=fields[5],
        task_id=fields[6],
        user=fields[7],
    )


def raise_for_status(result, handle=None):
    """
    Raise TaskFailedError for a failed TaskResult, otherwise return it
    """
    if result.failed:
        upid = handle.upid if handle is not None else None
        raise TaskFailedError(result.exit_status, upid=upid)
    return result
