from __future__ import annotations

import pytest

from pxve.lib.common import APIError, ConflictError, InvalidArgumentError, NotFoundError
import pxve.lib.backup

from conftest import api_error, make_upid


QEMU_VOLID = "pbs:backup/vzdump-qemu-100-2024_03_01-02_00_00.vma.zst"
LXC_VOLID = "nfs:backup/vzdump-lxc-200-2024_03_02-02_00_00.tar.zst"


def _storages(*names):
    return [
        {"storage": name, "type": "nfs", "content": "backup,iso", "avail": 100, "used": 50, "total": 150}
        for name in names
    ]


@pytest.mark.parametrize(
    ("volid", "expected"),
    [
        (QEMU_VOLID, "qemu"),
        (LXC_VOLID, "lxc"),
        ("local:backup/vzdump-openvz-300-2014_01_01-00_00_00.tar", "qemu"),
    ],
)
def test_archive_type(volid, expected) -> None:
    assert pxve.lib.backup.archive_type(volid) == expected


def test_backup_filename_requires_backup_segment() -> None:
    assert (
        pxve.lib.backup.backup_filename(QEMU_VOLID)
        == "vzdump-qemu-100-2024_03_01-02_00_00.vma.zst"
    )

    with pytest.raises(InvalidArgumentError):
        pxve.lib.backup.backup_filename("local:iso/debian-12.iso")


def test_list_backups_deduplicates_shared_storage(config, api) -> None:
    api.route("GET", "/nodes", [{"node": "pve1"}, {"node": "pve2"}])
    api.route("GET", "/nodes/pve1/storage", _storages("nfs"))
    api.route(
        "GET",
        "/nodes/pve2/storage",
        _storages("nfs") + [{"storage": "local-lvm", "type": "lvmthin", "content": "images,rootdir"}],
    )
    shared = [{"volid": LXC_VOLID, "vmid": 200, "ctime": 1709344800, "size": 1024}]
    api.route("GET", "/nodes/pve1/storage/nfs/content", shared)
    api.route("GET", "/nodes/pve2/storage/nfs/content", shared)

    backups = pxve.lib.backup.list_backups(config)

    assert len(backups) == 1
    assert backups[0].volid == LXC_VOLID
    assert backups[0].node == "pve1"
    assert backups[0].archive_type == "lxc"
    assert "/nodes/pve2/storage/local-lvm/content" not in api.paths()
    assert api.last("GET", "/nodes/pve1/storage/nfs/content")["params"] == {"content": "backup"}


def test_list_backups_filters_vmid_and_sorts_newest_first(config, api) -> None:
    api.route(
        "GET",
        "/nodes/pve1/storage/pbs/content",
        [
            {"volid": "pbs:backup/vzdump-qemu-100-2024_01_01-00_00_00.vma.zst", "vmid": 100, "ctime": 1704067200},
            {"volid": "pbs:backup/vzdump-qemu-100-unknown.vma.zst", "vmid": "100"},
            {"volid": "pbs:backup/vzdump-qemu-101-2024_06_01-00_00_00.vma.zst", "vmid": 101, "ctime": 1717200000},
            {"volid": "pbs:backup/vzdump-qemu-100-2024_03_01-00_00_00.vma.zst", "vmid": 100, "ctime": 1709251200},
            {"volid": "pbs:iso/debian-12.iso", "vmid": 100, "ctime": 1709251200},
        ],
    )

    backups = pxve.lib.backup.list_backups(config, node="pve1", storage="pbs", vmid=100)

    assert [backup.volid for backup in backups] == [
        "pbs:backup/vzdump-qemu-100-2024_03_01-00_00_00.vma.zst",
        "pbs:backup/vzdump-qemu-100-2024_01_01-00_00_00.vma.zst",
        "pbs:backup/vzdump-qemu-100-unknown.vma.zst",
    ]
    assert backups[-1].ctime is None
    assert api.paths() == ["/nodes/pve1/storage/pbs/content"]


def test_list_backups_skips_unreadable_storage(config, api) -> None:
    api.route("GET", "/nodes/pve1/storage/pbs/content", api_error(500, "pbs: datastore unreachable"))

    assert pxve.lib.backup.list_backups(config, node="pve1", storage="pbs") == []


def test_list_backups_skips_offline_node(config, api) -> None:
    api.route("GET", "/nodes", [{"node": "pve1"}, {"node": "pve2"}])
    api.route("GET", "/nodes/pve1/storage", _storages("nfs"))
    api.route("GET", "/nodes/pve2/storage", api_error(595, "no route to host"))
    api.route("GET", "/nodes/pve1/storage/nfs/content", [{"volid": LXC_VOLID, "vmid": 200, "ctime": 1709344800}])

    backups = pxve.lib.backup.list_backups(config)

    assert [(backup.volid, backup.node) for backup in backups] == [(LXC_VOLID, "pve1")]


def test_list_backups_skips_storage_missing_on_a_node(config, api) -> None:
    api.route("GET", "/nodes", [{"node": "pve1"}, {"node": "pve2"}])
    api.route("GET", "/nodes/pve1/storage/nfs/content", [{"volid": LXC_VOLID, "vmid": 200, "ctime": 1709344800}])
    api.route(
        "GET",
        "/nodes/pve2/storage/nfs/content",
        api_error(500, "storage 'nfs' is not available on node 'pve2'"),
    )

    backups = pxve.lib.backup.list_backups(config, storage="nfs")

    assert [backup.volid for backup in backups] == [LXC_VOLID]


def test_list_backups_concurrent_scan_keeps_first_node(config, api, three_nodes) -> None:
    config["scan_workers"] = 4
    shared = [{"volid": QEMU_VOLID, "vmid": 100, "ctime": 1709251200}]
    for node in ("pve1", "pve2", "pve3"):
        api.route("GET", f"/nodes/{node}/storage", _storages("pbs"))
        api.route("GET", f"/nodes/{node}/storage/pbs/content", shared)

    backups = pxve.lib.backup.list_backups(config)

    assert len(backups) == 1
    assert backups[0].node == "pve1"
    assert backups[0].storage == "pbs"


def test_list_backups_propagates_node_list_failure(config, api) -> None:
    api.route("GET", "/nodes", api_error(500, "cluster not ready"))

    with pytest.raises(APIError):
        pxve.lib.backup.list_backups(config)


def test_list_backup_storages_skips_offline_node(config, api) -> None:
    api.route("GET", "/nodes", [{"node": "pve1"}, {"node": "pve2"}])
    api.route(
        "GET",
        "/nodes/pve1/storage",
        _storages("nfs") + [{"storage": "local-lvm", "type": "lvmthin", "content": "images,rootdir"}],
    )
    api.route("GET", "/nodes/pve2/storage", api_error(595, "no route to host"))

    storages = pxve.lib.backup.list_backup_storages(config)

    assert [(storage.name, storage.node) for storage in storages] == [("nfs", "pve1")]
    assert storages[0].avail == 100


def test_list_restore_storages_uses_content_type(config, api) -> None:
    api.route(
        "GET",
        "/nodes/pve1/storage",
        [
            {"storage": "local", "content": "iso,vztmpl,backup"},
            {"storage": "local-lvm", "content": "images,rootdir"},
            {"storage": "ceph", "content": "images"},
        ],
    )

    vm_storages = pxve.lib.backup.list_restore_storages(config, "qemu", node="pve1")
    ct_storages = pxve.lib.backup.list_restore_storages(config, "lxc", node="pve1")

    assert [storage.name for storage in vm_storages] == ["local-lvm", "ceph"]
    assert [storage.name for storage in ct_storages] == ["local-lvm"]


def test_create_backup_resolves_node(config, api) -> None:
    api.route(
        "GET",
        "/cluster/resources",
        [{"vmid": 100, "type": "qemu", "node": "pve1"}, {"vmid": 200, "type": "lxc", "node": "pve2"}],
    )
    api.route("POST", "/nodes/pve2/vzdump", make_upid(node="pve2", task_type="vzdump", task_id="200"))

    handle = pxve.lib.backup.create_backup(config, 200, storage="pbs", mode="snapshot")

    assert handle.node == "pve2"
    assert api.last("POST", "/nodes/pve2/vzdump")["data"] == {
        "vmid": 200,
        "storage": "pbs",
        "mode": "snapshot",
    }


def test_create_backup_unknown_vmid(config, api) -> None:
    api.route("GET", "/cluster/resources", [])

    with pytest.raises(NotFoundError) as excinfo:
        pxve.lib.backup.create_backup(config, 999)

    assert excinfo.value.message == "VMID 999 not found in cluster"


def test_delete_backup_builds_volume_path(config, api) -> None:
    volume_path = f"/nodes/pve1/storage/pbs/content/{QEMU_VOLID}"
    api.route("DELETE", volume_path, make_upid(task_type="imgdel"))

    handle = pxve.lib.backup.delete_backup(config, "pve1", QEMU_VOLID)

    assert handle.task_type == "imgdel"
    assert api.paths("DELETE") == [volume_path]


def test_delete_backup_rejects_invalid_volid_without_calling_api(config, api) -> None:
    with pytest.raises(InvalidArgumentError):
        pxve.lib.backup.delete_backup(config, "pve1", "pbs:vzdump-qemu-100.vma.zst")

    assert api.calls == []


def test_delete_backup_synchronous_result(config, api) -> None:
    api.route("DELETE", f"/nodes/pve1/storage/nfs/content/{LXC_VOLID}", None)

    assert pxve.lib.backup.delete_backup(config, "pve1", LXC_VOLID) is None


def test_restore_container_allocates_id(config, api) -> None:
    api.route("GET", "/cluster/nextid", "107")
    api.route("POST", "/nodes/pve3/lxc", make_upid(node="pve3", task_type="vzcreate", task_id="107"))

    vmid, handle = pxve.lib.backup.restore_backup(
        config, "pve3", LXC_VOLID, name="db-restored", target_storage="local-lvm"
    )

    assert vmid == 107
    assert handle.task_id == "107"
    assert api.last("POST", "/nodes/pve3/lxc")["data"] == {
        "vmid": 107,
        "ostemplate": LXC_VOLID,
        "restore": 1,
        "storage": "local-lvm",
        "hostname": "db-restored",
    }


def test_restore_vm_with_explicit_id(config, api) -> None:
    api.route("POST", "/nodes/pve1/qemu", make_upid(task_type="qmrestore", task_id="150"))

    vmid, _ = pxve.lib.backup.restore_backup(config, "pve1", QEMU_VOLID, vmid=150)

    assert vmid == 150
    assert "/cluster/nextid" not in api.paths()
    assert api.last("POST", "/nodes/pve1/qemu")["data"] == {"vmid": 150, "archive": QEMU_VOLID}


def test_restore_onto_existing_id_conflicts(config, api) -> None:
    api.route(
        "POST",
        "/nodes/pve1/qemu",
        api_error(500, "unable to create VM 100 - VM 100 already exists on node 'pve1'"),
    )

    with pytest.raises(ConflictError) as excinfo:
        pxve.lib.backup.restore_backup(config, "pve1", QEMU_VOLID, vmid=100)

    assert excinfo.value.message == "unable to create VM 100 - VM 100 already exists on node 'pve1'"


def test_backup_config_parses_embedded_config(config, api) -> None:
    api.route(
        "GET",
        "/nodes/pve1/vzdump/extractconfig",
        "#qmdump#map:virtio0:drive-virtio0:local-lvm:raw:\ncores: 2\nmemory: 4096\nname: web-1\n\n[before-upgrade]\ncores: 1\n",
    )

    parsed = pxve.lib.backup.backup_config(config, "pve1", QEMU_VOLID)

    assert parsed == {"cores": "2", "memory": "4096", "name": "web-1"}
    assert api.last("GET", "/nodes/pve1/vzdump/extractconfig")["params"] == {"volume": QEMU_VOLID}
