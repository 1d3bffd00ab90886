#!/usr/bin/env python3

# formatters.py - pxve Click CLI output formatters library
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

from colorama import Fore, Style
from datetime import datetime
from json import dumps as jdumps
from time import time

from pxve.lib.access import user_groups
from pxve.lib.common import format_age, format_bytes
from pxve.lib.models import KINDS


# Colour each known resource/node/task state
state_colours = {
    "running": Fore.GREEN,
    "online": Fore.GREEN,
    "OK": Fore.GREEN,
    "stopped": Fore.RED,
    "offline": Fore.RED,
    "paused": Fore.YELLOW,
    "unknown": Fore.YELLOW,
}


def colourize(value):
    colour = state_colours.get(str(value))
    if colour is None:
        return str(value)
    return f"{colour}{value}{Style.RESET_ALL}"


def format_timestamp(timestamp):
    if not timestamp:
        return "-"
    return datetime.fromtimestamp(int(timestamp)).strftime("%Y-%m-%d %H:%M:%S")


def format_table(columns, rows, empty_message):
    """
    Format {rows} (lists of values) under {columns} headers as aligned text

    Column widths are the widest of the header or any value plus one space;
    coloured values are padded on their uncoloured text.
    """
    if not rows:
        return f"{Fore.YELLOW}{empty_message}{Style.RESET_ALL}"

    widths = [len(column) + 1 for column in columns]
    for row in rows:
        for idx, value in enumerate(row):
            _width = len(str(value)) + 1
            if _width > widths[idx]:
                widths[idx] = _width

    output = list()
    output.append(
        "{bold}{header}{end_bold}".format(
            bold=Style.BRIGHT,
            end_bold=Style.RESET_ALL,
            header=" ".join(
                f"{column: <{widths[idx]}}" for idx, column in enumerate(columns)
            ).rstrip(),
        )
    )
    for row in rows:
        cells = list()
        for idx, value in enumerate(row):
            padding = " " * (widths[idx] - len(str(value)))
            cells.append(f"{colourize(value)}{padding}")
        output.append(" ".join(cells).rstrip())

    return "\n".join(output)


def format_key_values(data):
    if not data:
        return f"{Fore.YELLOW}No data.{Style.RESET_ALL}"

    key_length = max(len(str(key)) for key in data) + 2
    return "\n".join(
        f"{Style.BRIGHT}{str(key) + ':': <{key_length}}{Style.RESET_ALL}{value}"
        for key, value in data.items()
    )


def json_format(data):
    return jdumps(as_json(data))


def json_pretty_format(data):
    return jdumps(as_json(data), indent=2)


def as_json(data):
    """
    Convert named tuples (recursively, in lists) into dicts for JSON output
    """
    if isinstance(data, list):
        return [as_json(item) for item in data]
    if hasattr(data, "_asdict"):
        return data._asdict()
    return data


#
# Cluster and node formatters
#
def cli_cluster_status_format_pretty(CLI_CONFIG, data):
    """
    Pretty format the output of cli_cluster_status
    """
    cluster = [entry for entry in data if entry.get("type") == "cluster"]
    nodes = [entry for entry in data if entry.get("type") == "node"]

    output = list()
    if cluster:
        cluster = cluster[0]
        output.append(
            format_key_values(
                {
                    "Cluster": cluster.get("name", "N/A"),
                    "Quorate": "yes" if cluster.get("quorate") else "no",
                    "Nodes": cluster.get("nodes", len(nodes)),
                    "Version": cluster.get("version", "N/A"),
                }
            )
        )
        output.append("")

    rows = [
        [
            node.get("name", ""),
            "online" if node.get("online") else "offline",
            node.get("ip", ""),
            "yes" if node.get("local") else "",
        ]
        for node in sorted(nodes, key=lambda n: n.get("name", ""))
    ]
    output.append(format_table(["Node", "State", "Address", "Local"], rows, "No nodes found."))

    return "\n".join(output)


def cli_cluster_resources_format_pretty(CLI_CONFIG, data):
    rows = [
        [
            resource.get("id", ""),
            resource.get("type", ""),
            resource.get("node", ""),
            resource.get("status", ""),
            resource.get("name", resource.get("storage", "")),
        ]
        for resource in data
    ]
    return format_table(["ID", "Type", "Node", "Status", "Name"], rows, "No resources found.")


def cli_cluster_tasks_format_pretty(CLI_CONFIG, data):
    rows = [
        [
            format_timestamp(task.get("starttime")),
            task.get("node", ""),
            task.get("type", ""),
            task.get("id", ""),
            task.get("user", ""),
            task.get("status", "running"),
        ]
        for task in sorted(data, key=lambda t: t.get("starttime", 0), reverse=True)
    ]
    return format_table(["Started", "Node", "Type", "ID", "User", "Status"], rows, "No tasks found.")


def cli_node_list_format_pretty(CLI_CONFIG, data):
    rows = list()
    for node in sorted(data, key=lambda n: n.get("node", "")):
        cpu = node.get("cpu")
        rows.append(
            [
                node.get("node", ""),
                node.get("status", "unknown"),
                f"{cpu * 100:.1f}%" if cpu is not None else "-",
                format_bytes(node.get("mem", 0)),
                format_bytes(node.get("maxmem", 0)),
                format_age(node.get("uptime", 0)) if node.get("uptime") else "-",
            ]
        )
    return format_table(["Node", "Status", "CPU", "Memory", "Max Mem", "Uptime"], rows, "No nodes found.")


def cli_node_status_format_pretty(CLI_CONFIG, data):
    memory = data.get("memory", dict())
    rootfs = data.get("rootfs", dict())
    cpuinfo = data.get("cpuinfo", dict())
    return format_key_values(
        {
            "Kernel": data.get("kversion", "N/A"),
            "PVE version": data.get("pveversion", "N/A"),
            "CPU": f"{cpuinfo.get('model', 'N/A')} ({cpuinfo.get('cpus', '?')} threads)",
            "CPU usage": f"{data.get('cpu', 0) * 100:.1f}%",
            "Load": " ".join(str(load) for load in data.get("loadavg", [])),
            "Memory": f"{format_bytes(memory.get('used', 0))} / {format_bytes(memory.get('total', 0))}",
            "Root FS": f"{format_bytes(rootfs.get('used', 0))} / {format_bytes(rootfs.get('total', 0))}",
            "Uptime": format_age(data.get("uptime", 0)),
        }
    )


#
# VM and container formatters
#
def cli_instance_list_format_pretty(CLI_CONFIG, data):
    rows = list()
    for instance in data:
        name = instance.get("name", "")
        if instance.get("template"):
            name = f"{name} (template)"
        rows.append(
            [
                instance.get("vmid", ""),
                name,
                instance.get("node", ""),
                instance.get("status", ""),
                instance.get("maxcpu", ""),
                format_bytes(instance.get("maxmem", 0)),
                format_age(instance.get("uptime", 0)) if instance.get("uptime") else "-",
                instance.get("tags", ""),
            ]
        )
    return format_table(
        ["ID", "Name", "Node", "Status", "CPUs", "Memory", "Uptime", "Tags"],
        rows,
        "No resources found.",
    )


def cli_instance_info_format_pretty(CLI_CONFIG, data):
    status = data.get("status", dict())
    summary = {
        "ID": data["vmid"],
        "Type": KINDS.get(data["type"], data["type"]),
        "Node": data["node"],
        "Name": status.get("name", "N/A"),
        "Status": colourize(status.get("status", "unknown")),
        "CPUs": status.get("cpus", "N/A"),
        "Memory": f"{format_bytes(status.get('mem', 0))} / {format_bytes(status.get('maxmem', 0))}",
        "Uptime": format_age(status.get("uptime", 0)) if status.get("uptime") else "-",
    }

    output = [format_key_values(summary), "", f"{Style.BRIGHT}Configuration:{Style.RESET_ALL}"]
    instance_config = {
        key: value
        for key, value in sorted(data.get("config", dict()).items())
        if key != "digest"
    }
    output.append(format_key_values(instance_config))
    return "\n".join(output)


def yes_no(value):
    return "yes" if str(value) in ["1", "True", "true"] else "no"


def cli_vm_config_format_pretty(CLI_CONFIG, data):
    vm_config = data["config"]

    balloon = vm_config.get("balloon")
    if balloon is None:
        balloon_text = "-"
    elif int(balloon) == 0:
        balloon_text = "0 (disabled)"
    else:
        balloon_text = f"{balloon} MiB"

    summary = {
        "ID": data["vmid"],
        "Node": data["node"],
        "Name": vm_config.get("name", ""),
        "Description": vm_config.get("description", "").strip(),
        "Cores": vm_config.get("cores", 1),
        "Sockets": vm_config.get("sockets", 1),
        "CPU Type": vm_config.get("cpu", "-"),
        "Memory": f"{vm_config.get('memory', '-')} MiB",
        "Balloon": balloon_text,
        "OnBoot": yes_no(vm_config.get("onboot", 0)),
        "Protection": yes_no(vm_config.get("protection", 0)),
        "Boot": vm_config.get("boot", "-"),
        "OS Type": vm_config.get("ostype", "-"),
        "Machine": vm_config.get("machine", "-"),
        "BIOS": vm_config.get("bios", "seabios"),
    }
    return format_key_values(summary)


def cli_disk_list_format_pretty(CLI_CONFIG, data):
    rows = [[disk, value] for disk, value in data.items()]
    return format_table(["Disk", "Volume"], rows, "No disks found.")


def cli_agent_exec_format_pretty(CLI_CONFIG, data):
    output = list()
    if data.get("out-data"):
        output.append(data["out-data"].rstrip("\n"))
    if data.get("err-data"):
        output.append(f"stderr: {data['err-data'].rstrip()}")
    if data.get("exitcode"):
        output.append(f"{Fore.RED}Command exited with code {data['exitcode']}{Style.RESET_ALL}")
    return "\n".join(output)


def cli_snapshot_list_format_pretty(CLI_CONFIG, data):
    rows = [
        [
            snapshot.get("name", ""),
            format_timestamp(snapshot.get("snaptime")),
            snapshot.get("parent", ""),
            snapshot.get("description", "").strip(),
        ]
        for snapshot in data
    ]
    return format_table(["Name", "Created", "Parent", "Description"], rows, "No snapshots found.")


def cli_tags_format_pretty(CLI_CONFIG, data):
    if not data:
        return f"{Fore.YELLOW}No tags.{Style.RESET_ALL}"
    return "\n".join(data)


#
# Backup formatters
#
def cli_backup_list_format_pretty(CLI_CONFIG, data):
    """
    Pretty format the output of cli_backup_list
    """
    rows = [
        [
            backup.volid,
            backup.vmid if backup.vmid is not None else "-",
            KINDS.get(backup.archive_type, backup.archive_type),
            backup.node,
            format_bytes(backup.size or 0),
            format_timestamp(backup.ctime),
            "yes" if backup.protected else "",
            backup.notes.replace("\n", " "),
        ]
        for backup in data
    ]
    return format_table(
        ["Volume ID", "VMID", "Type", "Node", "Size", "Created", "Protected", "Notes"],
        rows,
        "No backups found.",
    )


def cli_storage_list_format_pretty(CLI_CONFIG, data):
    rows = [
        [
            storage.name,
            storage.node,
            storage.type,
            format_bytes(storage.avail or 0),
            format_bytes(storage.used or 0),
            format_bytes(storage.total or 0),
        ]
        for storage in data
    ]
    return format_table(["Name", "Node", "Type", "Avail", "Used", "Total"], rows, "No storages found.")


def cli_backup_info_format_pretty(CLI_CONFIG, data):
    return format_key_values(data)


#
# Task formatters
#
def cli_task_status_format_pretty(CLI_CONFIG, data):
    started = data.get("starttime")
    summary = {
        "Task": data.get("upid", "N/A"),
        "Node": data.get("node", "N/A"),
        "Type": data.get("type", "N/A"),
        "User": data.get("user", "N/A"),
        "Started": format_timestamp(started),
        "Status": colourize(data.get("status", "unknown")),
    }
    if data.get("status") == "running" and started:
        summary["Running for"] = format_age(int(time() - int(started)))
    if data.get("exitstatus"):
        summary["Exit status"] = colourize(data["exitstatus"])
    return format_key_values(summary)


#
# Access formatters
#
def cli_user_list_format_pretty(CLI_CONFIG, data):
    rows = [
        [
            user.get("userid", ""),
            "yes" if user.get("enable", 1) else "no",
            user.get("email", ""),
            ",".join(user_groups(user)),
            user.get("comment", ""),
        ]
        for user in sorted(data, key=lambda u: u.get("userid", ""))
    ]
    return format_table(["User", "Enabled", "Email", "Groups", "Comment"], rows, "No users found.")


def cli_token_list_format_pretty(CLI_CONFIG, data):
    rows = [
        [
            token.get("tokenid", ""),
            token.get("comment", ""),
            yes_no(token.get("privsep", 1)),
            datetime.fromtimestamp(int(token["expire"])).strftime("%Y-%m-%d")
            if token.get("expire")
            else "never",
        ]
        for token in sorted(data, key=lambda t: t.get("tokenid", ""))
    ]
    return format_table(["Token ID", "Comment", "Priv Sep", "Expires"], rows, "No tokens found.")


def cli_token_create_format_pretty(CLI_CONFIG, data):
    return "\n".join(
        [
            "Token created successfully.",
            "",
            format_key_values({"Token ID": data.get("full-tokenid", ""), "Secret": data.get("value", "")}),
            "",
            f"{Fore.YELLOW}The secret is shown only once; save it now.{Style.RESET_ALL}",
        ]
    )


def cli_group_list_format_pretty(CLI_CONFIG, data):
    rows = [
        [group.get("groupid", ""), group.get("users", ""), group.get("comment", "")]
        for group in sorted(data, key=lambda g: g.get("groupid", ""))
    ]
    return format_table(["Group", "Members", "Comment"], rows, "No groups found.")


def cli_group_info_format_pretty(CLI_CONFIG, data):
    return format_key_values(
        {
            "Comment": data.get("comment", ""),
            "Members": ", ".join(data.get("members") or []) or "-",
        }
    )


def cli_acl_list_format_pretty(CLI_CONFIG, data):
    rows = [
        [
            acl.get("path", ""),
            acl.get("ugid", ""),
            acl.get("type", ""),
            acl.get("roleid", ""),
            "yes" if acl.get("propagate") else "no",
        ]
        for acl in sorted(data, key=lambda a: (a.get("path", ""), a.get("ugid", "")))
    ]
    return format_table(["Path", "User/Group", "Type", "Role", "Propagate"], rows, "No ACLs found.")


def cli_role_list_format_pretty(CLI_CONFIG, data):
    rows = [
        [role.get("roleid", ""), "yes" if role.get("special") else "", role.get("privs", "")]
        for role in sorted(data, key=lambda r: r.get("roleid", ""))
    ]
    return format_table(["Role", "Built-in", "Privileges"], rows, "No roles found.")


def cli_instance_connection_list_format_pretty(CLI_CONFIG, data):
    rows = [
        [
            ("* " if instance["current"] else "  ") + instance["name"],
            instance["url"],
            instance["auth"],
            "yes" if instance["verify_ssl"] else "no",
            instance["description"],
        ]
        for instance in data
    ]
    return format_table(["Instance", "URL", "Auth", "Verify SSL", "Description"], rows, "No instances configured.")
