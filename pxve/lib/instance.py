#!/usr/bin/env python3

# instance.py - pxve CLI client function library, VM and container functions
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

import re

from time import sleep, time

from pxve.lib.common import (
    InvalidArgumentError,
    NotFoundError,
    PxveError,
    call_api,
    error_context,
    first_success,
    get_data,
    submitted_task,
)
from pxve.lib.models import (
    KIND_CONTAINER,
    KIND_VM,
    KINDS,
    ResourceRef,
    resource_path,
    validate_kind,
    validate_vmid,
)

import pxve.lib.cluster
import pxve.lib.node


#
# Location
#
def probe_node(config, kind, vmid, node):
    """
    Check whether {node} currently hosts {kind} {vmid}

    API endpoint: GET /api2/json/nodes/{node}/{kind}/{vmid}/status/current
    API arguments:
    API schema: {json_data_object}
    """
    ref = ResourceRef(kind=kind, vmid=vmid, node=node)
    response = call_api(config, "get", f"{resource_path(ref)}/status/current")
    get_data(response)
    return ref


def locate(config, kind, vmid, node=None):
    """
    Find the node hosting {kind} {vmid} and return a ResourceRef

    With a {node} hint only that node is queried; an absent resource raises
    NotFoundError and any other error propagates unchanged.

    Without a hint every cluster node is probed (concurrently when
    config["scan_workers"] > 1) and the first node reporting the resource
    wins. Any API error from a single node counts as a miss for that node, so
    an unreachable node looks the same as one not hosting the resource.
    """
    kind = validate_kind(kind)
    vmid = validate_vmid(vmid)
    label = f"{KINDS[kind]} {vmid}"

    if node:
        with error_context(f"{label} on node {node}"):
            return probe_node(config, kind, vmid, node)

    nodes = pxve.lib.node.get_nodes(config)
    ref = first_success(
        nodes,
        lambda candidate: probe_node(config, kind, vmid, candidate),
        workers=config.get("scan_workers", 1),
    )
    if ref is None:
        raise NotFoundError(
            f"{label} not found on any node", context=[f"scanned {', '.join(nodes) or 'no nodes'}"]
        )
    return ref


def submit_action(config, ref, operation, action, params=None):
    """
    Submit a request against a located resource and return its TaskHandle
    """
    response = call_api(config, operation, f"{resource_path(ref)}{action}", data=params)

    with error_context(f"{KINDS[ref.kind]} {ref.vmid} on node {ref.node}"):
        return submitted_task(get_data(response))


#
# Listing
#
def list_instances(config, kind, node=None):
    """
    Get all resources of {kind}, optionally limited to one node, sorted by VMID
    """
    kind = validate_kind(kind)
    resources = pxve.lib.cluster.get_resources(config, "vm")

    instances = [
        resource
        for resource in resources
        if resource.get("type") == kind and (not node or resource.get("node") == node)
    ]
    return sorted(instances, key=lambda resource: int(resource.get("vmid", 0)))


def instance_info(config, kind, vmid, node=None):
    """
    Get the current status and configuration of a resource

    API endpoint: GET /api2/json/nodes/{node}/{kind}/{vmid}/status/current
                  GET /api2/json/nodes/{node}/{kind}/{vmid}/config
    """
    ref = locate(config, kind, vmid, node)

    with error_context(f"{KINDS[ref.kind]} {ref.vmid} on node {ref.node}"):
        status = get_data(call_api(config, "get", f"{resource_path(ref)}/status/current"))
        instance_config = get_data(call_api(config, "get", f"{resource_path(ref)}/config"))

    return {
        "vmid": ref.vmid,
        "node": ref.node,
        "type": ref.kind,
        "status": status or dict(),
        "config": instance_config or dict(),
    }


#
# Power state
#
def start(config, kind, vmid, node=None):
    ref = locate(config, kind, vmid, node)
    return submit_action(config, ref, "post", "/status/start")


def stop(config, kind, vmid, node=None):
    ref = locate(config, kind, vmid, node)
    return submit_action(config, ref, "post", "/status/stop")


def shutdown(config, kind, vmid, node=None):
    ref = locate(config, kind, vmid, node)
    return submit_action(config, ref, "post", "/status/shutdown")


def reboot(config, kind, vmid, node=None):
    ref = locate(config, kind, vmid, node)
    return submit_action(config, ref, "post", "/status/reboot")


#
# Lifecycle
#
def delete(config, kind, vmid, node=None):
    """
    Destroy a resource

    API endpoint: DELETE /api2/json/nodes/{node}/{kind}/{vmid}
    """
    ref = locate(config, kind, vmid, node)
    return submit_action(config, ref, "delete", "")


def clone(config, kind, vmid, newid=0, name=None, node=None):
    """
    Clone a resource to {newid}, allocating the next free VMID if it is 0;
    returns (newid, TaskHandle)

    API endpoint: POST /api2/json/nodes/{node}/{kind}/{vmid}/clone
    API arguments: newid={newid}, name={name} (VM) or hostname={name}, full=1 (CT)
    """
    ref = locate(config, kind, vmid, node)

    if not newid:
        newid = pxve.lib.cluster.next_id(config)

    params = {"newid": newid}
    if ref.kind == KIND_CONTAINER:
        params["full"] = 1
        if name:
            params["hostname"] = name
    elif name:
        params["name"] = name

    return newid, submit_action(config, ref, "post", "/clone", params)


def convert_to_template(config, kind, vmid, node=None):
    """
    Convert a resource into a template; completes without a task for containers

    API endpoint: POST /api2/json/nodes/{node}/{kind}/{vmid}/template
    """
    ref = locate(config, kind, vmid, node)
    return submit_action(config, ref, "post", "/template")


#
# Snapshots
#
def list_snapshots(config, kind, vmid, node=None):
    """
    Get the snapshots of a resource, newest first

    API endpoint: GET /api2/json/nodes/{node}/{kind}/{vmid}/snapshot
    API schema: [{json_data_object},{json_data_object},etc.]
    """
    ref = locate(config, kind, vmid, node)
    response = call_api(config, "get", f"{resource_path(ref)}/snapshot")

    with error_context(f"{KINDS[ref.kind]} {ref.vmid} on node {ref.node}"):
        snapshots = get_data(response) or list()

    # The API includes a "current" pseudo-snapshot for the live state
    snapshots = [snapshot for snapshot in snapshots if snapshot.get("name") != "current"]
    return sorted(snapshots, key=lambda snapshot: snapshot.get("snaptime", 0), reverse=True)


def create_snapshot(config, kind, vmid, snapshot_name, description=None, node=None):
    ref = locate(config, kind, vmid, node)

    params = {"snapname": snapshot_name}
    if description:
        params["description"] = description

    return submit_action(config, ref, "post", "/snapshot", params)


def delete_snapshot(config, kind, vmid, snapshot_name, node=None):
    ref = locate(config, kind, vmid, node)
    return submit_action(config, ref, "delete", f"/snapshot/{snapshot_name}")


def rollback_snapshot(config, kind, vmid, snapshot_name, start_after=False, node=None):
    ref = locate(config, kind, vmid, node)

    params = dict()
    if start_after:
        params["start"] = 1

    return submit_action(config, ref, "post", f"/snapshot/{snapshot_name}/rollback", params)


#
# Tags
#
def split_tags(tags):
    if not tags:
        return list()
    separators = tags.replace(",", ";").replace(" ", ";")
    return [tag.strip() for tag in separators.split(";") if tag.strip()]


def get_tags(config, kind, vmid, node=None):
    """
    Get the tags of a resource

    API endpoint: GET /api2/json/nodes/{node}/{kind}/{vmid}/config
    """
    ref = locate(config, kind, vmid, node)
    return ref, _read_tags(config, ref)


def _read_tags(config, ref):
    response = call_api(config, "get", f"{resource_path(ref)}/config")

    with error_context(f"{KINDS[ref.kind]} {ref.vmid} on node {ref.node}"):
        instance_config = get_data(response) or dict()

    return split_tags(instance_config.get("tags", ""))


def _write_tags(config, ref, tags):
    """
    API endpoint: PUT /api2/json/nodes/{node}/{kind}/{vmid}/config
    API arguments: tags={tags}, or delete=tags when empty
    """
    if tags:
        params = {"tags": ";".join(tags)}
    else:
        params = {"delete": "tags"}

    response = call_api(config, "put", f"{resource_path(ref)}/config", data=params)

    with error_context(f"{KINDS[ref.kind]} {ref.vmid} on node {ref.node}"):
        get_data(response)


def add_tag(config, kind, vmid, tag, node=None):
    ref, tags = get_tags(config, kind, vmid, node)
    if tag not in tags:
        tags.append(tag)
        _write_tags(config, ref, tags)
    return tags


def remove_tag(config, kind, vmid, tag, node=None):
    ref, tags = get_tags(config, kind, vmid, node)
    if tag in tags:
        tags.remove(tag)
        _write_tags(config, ref, tags)
    return tags


def all_tags(config):
    """
    Get every tag in use on any VM or container, sorted and deduplicated
    """
    tags = set()
    for resource in pxve.lib.cluster.get_resources(config, "vm"):
        tags.update(split_tags(resource.get("tags", "")))
    return sorted(tags)


#
# Configuration
#
# Settable VM options and the names shown for them
VM_CONFIG_OPTIONS = {
    "name": "Name",
    "description": "Description",
    "cores": "Cores",
    "sockets": "Sockets",
    "cpu": "CPU Type",
    "memory": "Memory",
    "balloon": "Balloon",
    "onboot": "OnBoot",
    "protection": "Protection",
    "boot": "Boot",
    "ostype": "OS Type",
    "machine": "Machine",
    "bios": "BIOS",
}


def get_instance_config(config, kind, vmid, node=None):
    """
    Get the configuration of a resource

    API endpoint: GET /api2/json/nodes/{node}/{kind}/{vmid}/config
    API arguments:
    API schema: {json_data_object}
    """
    ref = locate(config, kind, vmid, node)
    response = call_api(config, "get", f"{resource_path(ref)}/config")

    with error_context(f"{KINDS[ref.kind]} {ref.vmid} on node {ref.node}"):
        return ref, get_data(response) or dict()


def set_config(config, vmid, options, node=None):
    """
    Change the given {options} of a VM

    API endpoint: POST /api2/json/nodes/{node}/qemu/{vmid}/config
    API arguments: {option}={value}, etc.
    """
    if not options:
        raise InvalidArgumentError("No configuration options given")
    unknown = sorted(set(options) - set(VM_CONFIG_OPTIONS))
    if unknown:
        raise InvalidArgumentError(f"Unknown configuration options: {', '.join(unknown)}")

    ref = locate(config, KIND_VM, vmid, node)
    return submit_action(config, ref, "post", "/config", dict(options))


#
# Disks
#
DISK_KEY_RE = re.compile(r"^(ide|sata|scsi|virtio)\d+$")

DISK_SIZE_RE = re.compile(r"^\+\d+(\.\d+)?[KMGT]$")


def normalize_disk_size(size):
    """
    Return a disk size delta as "+<number><unit>"; the "+" is added when
    missing and the unit must be one of K, M, G or T
    """
    size = str(size).strip().upper()
    if not size.startswith("+"):
        size = f"+{size}"
    if not DISK_SIZE_RE.match(size):
        raise InvalidArgumentError(
            f"Invalid disk size '{size}'; use a number with a K, M, G or T unit, e.g. +10G"
        )
    return size


def moveable_disks(instance_config, target_storage=None):
    """
    Get the disks of a VM configuration that could be moved to {target_storage}:
    no CD-ROM drives, and nothing already on that storage
    """
    disks = dict()
    for key, value in instance_config.items():
        if not DISK_KEY_RE.match(key) or not value:
            continue
        if "media=cdrom" in value:
            continue
        if target_storage and value.split(":", 1)[0] == target_storage:
            continue
        disks[key] = value
    return dict(sorted(disks.items()))


def resize_disk(config, vmid, disk, size, node=None):
    """
    Grow {disk} of a VM by {size}

    API endpoint: PUT /api2/json/nodes/{node}/qemu/{vmid}/resize
    API arguments: disk={disk}, size=+{size}
    """
    size = normalize_disk_size(size)
    ref = locate(config, KIND_VM, vmid, node)
    return submit_action(config, ref, "put", "/resize", {"disk": disk, "size": size})


def move_disk(config, vmid, disk, storage, delete_source=True, bwlimit=0, node=None):
    """
    Move {disk} of a VM to {storage}, live if the VM is running

    API endpoint: POST /api2/json/nodes/{node}/qemu/{vmid}/move_disk
    API arguments: disk={disk}, storage={storage}, delete={delete_source}, bwlimit={bwlimit}
    """
    if not storage:
        raise InvalidArgumentError("A target storage is required")

    ref = locate(config, KIND_VM, vmid, node)

    params = {"disk": disk, "storage": storage, "delete": 1 if delete_source else 0}
    if bwlimit:
        params["bwlimit"] = bwlimit

    return submit_action(config, ref, "post", "/move_disk", params)


def detach_disk(config, vmid, disk, delete_data=False, node=None):
    """
    Detach {disk} from a VM

    Without {delete_data} the disk becomes an "unusedN" entry and its data is
    kept; with it the volume is destroyed.

    API endpoint: POST /api2/json/nodes/{node}/qemu/{vmid}/config (delete={disk})
                  PUT /api2/json/nodes/{node}/qemu/{vmid}/unlink (idlist={disk}, force=1)
    """
    ref = locate(config, KIND_VM, vmid, node)

    if delete_data:
        return submit_action(config, ref, "put", "/unlink", {"idlist": disk, "force": 1})
    return submit_action(config, ref, "post", "/config", {"delete": disk})


#
# Guest agent
#
class AgentTimeoutError(PxveError):
    """
    A guest agent command did not finish within its timeout.
    """

    pass


def agent_exec(config, vmid, command, input_data=None, timeout=30, interval=1, node=None):
    """
    Run {command} (a list of arguments) inside a VM through the QEMU guest
    agent and wait up to {timeout} seconds for it to exit

    Returns {"exitcode": int, "out-data": str, "err-data": str}.

    API endpoint: POST /api2/json/nodes/{node}/qemu/{vmid}/agent/exec
                  GET /api2/json/nodes/{node}/qemu/{vmid}/agent/exec-status
    API arguments: command={argument}, input-data={input_data}; pid={pid}
    API schema: {"pid":{pid}}; {"exited":0|1,"exitcode":{code},"out-data":"{stdout}","err-data":"{stderr}"}
    """
    if not command:
        raise InvalidArgumentError("No command given")

    ref = locate(config, KIND_VM, vmid, node)
    label = f"{KINDS[ref.kind]} {ref.vmid} on node {ref.node}"

    params = {"command": list(command)}
    if input_data:
        params["input-data"] = input_data

    response = call_api(config, "post", f"{resource_path(ref)}/agent/exec", data=params)
    with error_context(label):
        pid = (get_data(response) or dict()).get("pid")

    t_start = time()
    while True:
        response = call_api(
            config, "get", f"{resource_path(ref)}/agent/exec-status", params={"pid": pid}
        )
        with error_context(label):
            status = get_data(response) or dict()

        if status.get("exited"):
            return {
                "exitcode": int(status.get("exitcode", 0)),
                "out-data": status.get("out-data", ""),
                "err-data": status.get("err-data", ""),
            }

        if time() - t_start >= timeout:
            raise AgentTimeoutError(
                f"Command '{' '.join(command)}' did not finish within {timeout} seconds",
                context=[label],
            )
        sleep(interval)
