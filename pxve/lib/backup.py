#!/usr/bin/env python3

# backup.py - pxve CLI client function library, Backup functions
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

from pxve.lib.common import (
    APIError,
    InvalidArgumentError,
    NotFoundError,
    call_api,
    error_context,
    get_data,
    scan_map,
    submitted_task,
)
from pxve.lib.models import (
    KIND_CONTAINER,
    KIND_VM,
    BackupEntry,
    validate_kind,
    validate_vmid,
)

import pxve.lib.cluster
import pxve.lib.node


# Marks a vzdump archive in a volume ID
BACKUP_MARKER = "backup/vzdump-"

# Marks a container archive; anything else is a VM archive
CONTAINER_MARKER = "vzdump-lxc-"

# Storage content type needed to restore each kind of archive onto
RESTORE_CONTENT = {KIND_VM: "images", KIND_CONTAINER: "rootdir"}


#
# Volume ID helpers
#
def archive_type(volid):
    """
    Classify a backup volume ID as a container ("lxc") or VM ("qemu") archive
    by the vzdump filename alone
    """
    if CONTAINER_MARKER in volid:
        return KIND_CONTAINER
    return KIND_VM


def storage_from_volid(volid):
    """
    Return the storage part of a "storage:path" volume ID
    """
    return volid.split(":", 1)[0]


def backup_filename(volid):
    """
    Return the archive filename after the "backup/" segment of a volume ID
    """
    parts = volid.split("backup/", 1)
    if len(parts) != 2 or not parts[1]:
        raise InvalidArgumentError(f"Invalid backup volume ID '{volid}'; no 'backup/' segment")
    return parts[1]


def sort_backups(backups):
    """
    Sort newest first; entries without a creation time go last
    """
    return sorted(
        backups,
        key=lambda backup: (backup.ctime is None, -(backup.ctime or 0)),
    )


def backup_entry(item, node, storage):
    return BackupEntry(
        volid=item["volid"],
        storage=storage,
        node=node,
        archive_type=archive_type(item["volid"]),
        size=item.get("size", 0),
        ctime=item.get("ctime"),
        vmid=int(item["vmid"]) if item.get("vmid") is not None else None,
        notes=item.get("notes", ""),
        protected=bool(item.get("protected", False)),
        format=item.get("format", ""),
        verification=(item.get("verification") or dict()).get("state", ""),
    )


#
# Storages
#
def _scan_storages(config, content_type, node=None):
    # Nodes whose storages cannot be read are left out of the result
    nodes = [node] if node else pxve.lib.node.get_nodes(config)
    storage_sets = scan_map(
        nodes,
        lambda node_name: pxve.lib.node.node_storages(config, node_name, content_type),
        workers=config.get("scan_workers", 1),
        skip=(APIError,),
        default=(),
    )
    return [storage for storages in storage_sets for storage in storages]


def list_backup_storages(config, node=None):
    """
    Get the backup-capable storages of one node, or of every reachable node
    """
    return _scan_storages(config, "backup", node)


def list_restore_storages(config, kind, node=None):
    """
    Get the storages able to hold a restored {kind}: "images" content for
    VMs, "rootdir" content for containers
    """
    return _scan_storages(config, RESTORE_CONTENT[validate_kind(kind)], node)


#
# Listing
#
def list_backups(config, node=None, storage=None, vmid=None):
    """
    Get the backup archives of the cluster, newest first

    Every (node, storage) pair is scanned: the given node or all nodes, and
    the given storage or every backup-capable storage of each node. Shared
    storages are visible from several nodes, so archives are deduplicated by
    volume ID, keeping the first node/storage pair they were seen on.

    A node whose storages cannot be read, or a storage whose content cannot
    be listed (offline, or not available on that node), contributes nothing;
    the rest of the cluster is still listed.
    """
    workers = config.get("scan_workers", 1)
    if vmid:
        vmid = validate_vmid(vmid)

    nodes = [node] if node else pxve.lib.node.get_nodes(config)

    def _storage_names(node_name):
        if storage:
            return [storage]
        return [s.name for s in pxve.lib.node.node_storages(config, node_name, "backup")]

    storage_sets = scan_map(
        nodes, _storage_names, workers=workers, skip=(APIError,), default=()
    )
    pairs = [
        (node_name, storage_name)
        for node_name, storage_names in zip(nodes, storage_sets)
        for storage_name in storage_names
    ]

    contents = scan_map(
        pairs,
        lambda pair: pxve.lib.node.storage_content(config, pair[0], pair[1], "backup"),
        workers=workers,
        skip=(APIError,),
        default=(),
    )

    backups = list()
    seen = set()
    for (node_name, storage_name), content in zip(pairs, contents):
        for item in content:
            volid = item.get("volid", "")
            if BACKUP_MARKER not in volid:
                continue
            if vmid and (item.get("vmid") is None or int(item["vmid"]) != vmid):
                continue
            if volid in seen:
                continue
            seen.add(volid)
            backups.append(backup_entry(item, node_name, storage_name))

    return sort_backups(backups)


#
# Mutating functions
#
def resolve_node(config, vmid):
    """
    Find the node of a registered VM or container from a fresh cluster
    resource snapshot
    """
    for resource in pxve.lib.cluster.get_resources(config, "vm"):
        if int(resource.get("vmid", 0)) == vmid:
            return resource["node"]
    raise NotFoundError(f"VMID {vmid} not found in cluster")


def create_backup(config, vmid, node=None, storage=None, mode=None, compress=None):
    """
    Start a vzdump backup of {vmid}; returns the unwatched TaskHandle

    API endpoint: POST /api2/json/nodes/{node}/vzdump
    API arguments: vmid={vmid}, storage={storage}, mode={mode}, compress={compress}
    API schema: "{upid}"
    """
    vmid = validate_vmid(vmid)
    if not node:
        node = resolve_node(config, vmid)

    params = {"vmid": vmid}
    if storage:
        params["storage"] = storage
    if mode:
        params["mode"] = mode
    if compress:
        params["compress"] = compress

    response = call_api(config, "post", f"/nodes/{node}/vzdump", data=params)

    with error_context(f"backing up VMID {vmid} on node {node}"):
        return submitted_task(get_data(response))


def delete_backup(config, node, volid, storage=None):
    """
    Delete backup archive {volid}; returns the unwatched TaskHandle

    API endpoint: DELETE /api2/json/nodes/{node}/storage/{storage}/content/{volume}
    API schema: "{upid}"
    """
    if not storage:
        storage = storage_from_volid(volid)
    filename = backup_filename(volid)
    volume = f"{storage}:backup/{filename}"

    response = call_api(
        config, "delete", f"/nodes/{node}/storage/{storage}/content/{volume}"
    )

    with error_context(f"deleting {volume} on node {node}"):
        return submitted_task(get_data(response))


def restore_backup(config, node, volid, vmid=0, name=None, target_storage=None):
    """
    Restore archive {volid} as a new VM or container on {node}; returns
    (vmid, TaskHandle), allocating the next free VMID when {vmid} is 0

    Container archives are created with restore=1 and ostemplate={volid},
    VM archives with archive={volid}. A VMID collision is raised unmodified
    as the API's ConflictError.

    API endpoint: POST /api2/json/nodes/{node}/lxc or /api2/json/nodes/{node}/qemu
    API arguments: vmid, ostemplate|archive, restore, storage, hostname|name
    API schema: "{upid}"
    """
    if not vmid:
        vmid = pxve.lib.cluster.next_id(config)
    vmid = validate_vmid(vmid)

    kind = archive_type(volid)
    if kind == KIND_CONTAINER:
        params = {"vmid": vmid, "ostemplate": volid, "restore": 1}
        if target_storage:
            params["storage"] = target_storage
        if name:
            params["hostname"] = name
    else:
        params = {"vmid": vmid, "archive": volid}
        if target_storage:
            params["storage"] = target_storage
        if name:
            params["name"] = name

    response = call_api(config, "post", f"/nodes/{node}/{kind}", data=params)

    with error_context(f"restoring {volid} to VMID {vmid} on node {node}"):
        return vmid, submitted_task(get_data(response))


#
# Archive inspection
#
def parse_backup_config(raw_config):
    """
    Parse an embedded guest configuration into an ordered key/value dict,
    stopping at the first snapshot section
    """
    parsed = dict()
    for line in (raw_config or "").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("["):
            break
        key, _, value = line.partition(":")
        parsed[key.strip()] = value.strip()
    return parsed


def backup_config(config, node, volid):
    """
    Get the guest configuration embedded in backup archive {volid}

    API endpoint: GET /api2/json/nodes/{node}/vzdump/extractconfig
    API arguments: volume={volid}
    API schema: "{raw_config}"
    """
    params = {"volume": volid}
    response = call_api(config, "get", f"/nodes/{node}/vzdump/extractconfig", params=params)

    with error_context(f"reading {volid} on node {node}"):
        return parse_backup_config(get_data(response))
