#!/usr/bin/env python3

# cli.py - pxve Click CLI main library
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

from functools import wraps
from os import environ, makedirs, path
from sys import exit

from pxve.cli.helpers import *
from pxve.cli.waiters import *
from pxve.cli.formatters import *

from pxve.lib.common import PxveError
from pxve.lib.models import KIND_CONTAINER, KIND_VM, parse_upid

import pxve.lib.access
import pxve.lib.backup
import pxve.lib.cluster
import pxve.lib.instance
import pxve.lib.node
import pxve.lib.task

import click


###############################################################################
# Context and completion handler, globals
###############################################################################


CONTEXT_SETTINGS = dict(
    help_option_names=["-h", "--help"], max_content_width=MAX_CONTENT_WIDTH
)

CLI_CONFIG = dict()


###############################################################################
# Local helper functions
###############################################################################


def finish(success=True, data=None, formatter=None):
    """
    Output data to the terminal and exit based on code (T/F or integer code)
    """

    if data is not None:
        if formatter is not None and success:
            if formatter.__name__ == "<lambda>":
                # We don't pass CLI_CONFIG into lambdas
                echo(CLI_CONFIG, formatter(data))
            else:
                echo(CLI_CONFIG, formatter(CLI_CONFIG, data))
        else:
            echo(CLI_CONFIG, data)

    # Allow passing raw values if not a bool
    if isinstance(success, bool):
        if success:
            exit(0)
        else:
            exit(1)
    else:
        exit(success)


def finish_task(handle, wait_flag, max_wait, retmsg):
    """
    Finish a command that submitted an asynchronous task, watching it if requested
    """

    if handle is None:
        finish(True, retmsg)

    if not wait_flag:
        finish(True, f"{retmsg} Task ID: {handle.upid}")

    echo(CLI_CONFIG, retmsg)
    retcode, retmsg = wait_for_task(CLI_CONFIG, handle, max_wait)
    finish(retcode, retmsg)


def output_formats(pretty_function):
    return {
        "pretty": pretty_function,
        "json": lambda d: json_format(d),
        "json-pretty": lambda d: json_pretty_format(d),
    }


def version(ctx, param, value):
    """
    Show the version of the CLI client
    """

    if not value or ctx.resilient_parsing:
        return

    echo(CLI_CONFIG, f"pxve Proxmox VE CLI client version {VERSION}")
    ctx.exit()


def cli_instance_list_parser(store_data):
    """
    Turn the store data into a list of instance details without secrets
    """

    instances = list()
    for name, details in sorted(store_data.get("instances", dict()).items()):
        if details.get("token_id"):
            auth = f"token {details['token_id']}"
        elif details.get("username"):
            auth = f"password {details['username']}"
        else:
            auth = "none"

        instances.append(
            {
                "name": name,
                "url": details.get("url", ""),
                "auth": auth,
                "verify_ssl": bool(details.get("verify_ssl", False)),
                "description": details.get("description", ""),
                "current": name == store_data.get("current"),
            }
        )
    return instances


###############################################################################
# Click command decorators
###############################################################################


def connection_req(function):
    """
    General Decorator:
    Wraps a Click command which requires an instance to be set, validates that it is present,
    and turns any library error into a failed finish
    """

    @wraps(function)
    def validate_connection(*args, **kwargs):
        if CLI_CONFIG.get("badcfg", None) and CLI_CONFIG.get("noauth"):
            echo(
                CLI_CONFIG,
                f"""Instance "{CLI_CONFIG.get('instance')}" has no API token or username/password; add credentials and try again.""",
            )
            exit(1)
        elif CLI_CONFIG.get("badcfg", None) and CLI_CONFIG.get("instance"):
            echo(
                CLI_CONFIG,
                f"""Invalid instance "{CLI_CONFIG.get('instance')}" specified; set a valid instance and try again.""",
            )
            exit(1)
        elif CLI_CONFIG.get("badcfg", None):
            echo(
                CLI_CONFIG,
                'No instance specified and no current instance set. Use "pxve instance add" to add an instance.',
            )
            exit(1)

        if not CLI_CONFIG.get("verify_ssl"):
            ssl_verify_msg = " (unverified)"
        else:
            ssl_verify_msg = ""

        echo(
            CLI_CONFIG,
            f'''Using instance "{CLI_CONFIG.get('instance')}" - URL: "{CLI_CONFIG.get('api_url')}{ssl_verify_msg}"''',
            stderr=True,
        )
        echo(
            CLI_CONFIG,
            "",
            stderr=True,
        )

        try:
            return function(*args, **kwargs)
        except PxveError as e:
            finish(False, f"Error: {e}")

    return validate_connection


def confirm_opt(message):
    """
    Click Option Decorator with argument:
    Wraps a Click command which requires confirm_flag or unsafe option or asks for confirmation with message;
    {name} fields in the message are filled from the command arguments
    """

    def confirm_decorator(function):
        @click.option(
            "-y",
            "--yes",
            "confirm_flag",
            is_flag=True,
            default=False,
            help="Pre-confirm any unsafe operations.",
        )
        @wraps(function)
        def confirm_action(*args, **kwargs):
            if not kwargs.get("confirm_flag", False) and not CLI_CONFIG.get(
                "unsafe", False
            ):
                try:
                    click.confirm(
                        message.format(**kwargs), prompt_suffix="? ", abort=True
                    )
                except click.Abort:
                    echo(CLI_CONFIG, "Aborted.")
                    exit(0)

                click.echo()

            del kwargs["confirm_flag"]

            return function(*args, **kwargs)

        return confirm_action

    return confirm_decorator


def format_opt(formats, default_format="pretty"):
    """
    Click Option Decorator with argument:
    Wraps a Click command that can output in multiple formats; {formats} defines a dictionary of
    formatting functions for the command with keys as valid format types.
    Injects a "format_function" argument into the function for this purpose.
    """

    if default_format not in formats.keys():
        echo(CLI_CONFIG, f"Fatal code error: {default_format} not in {formats.keys()}")
        exit(255)

    def format_decorator(function):
        @click.option(
            "-f",
            "--format",
            "output_format",
            default=default_format,
            show_default=True,
            type=click.Choice(list(formats.keys())),
            help="Output information in this format.",
        )
        @wraps(function)
        def format_action(*args, **kwargs):
            kwargs["format_function"] = formats[kwargs["output_format"]]

            del kwargs["output_format"]

            return function(*args, **kwargs)

        return format_action

    return format_decorator


def wait_opt(function):
    """
    Click Option Decorator:
    Wraps a Click command which submits an asynchronous task, to provide options to watch it
    """

    @click.option(
        "--wait/--no-wait",
        "wait_flag",
        is_flag=True,
        default=True,
        show_default=True,
        help="Watch the task and show its log until it finishes.",
    )
    @click.option(
        "--max-wait",
        "max_wait",
        type=int,
        default=300,
        show_default=True,
        help="Seconds to poll a task whose log cannot be followed.",
    )
    @wraps(function)
    def wait_action(*args, **kwargs):
        return function(*args, **kwargs)

    return wait_action


def node_opt(function):
    """
    Click Option Decorator:
    Wraps a Click command which may be pointed at one node instead of scanning the cluster
    """

    @click.option(
        "-n",
        "--node",
        "node",
        default=None,
        help="Node hosting the resource; all nodes are searched if unset.",
    )
    @wraps(function)
    def node_action(*args, **kwargs):
        return function(*args, **kwargs)

    return node_action


###############################################################################
# Click command definitions
###############################################################################


###############################################################################
# > pxve instance
###############################################################################
@click.group(
    name="instance",
    short_help="Manage Proxmox VE instances.",
    context_settings=CONTEXT_SETTINGS,
)
def cli_instance():
    """
    Manage the Proxmox VE API instances this client can connect to.
    """
    pass


###############################################################################
# > pxve instance add
###############################################################################
@click.command(
    name="add",
    short_help="Add an instance.",
)
@click.argument("name")
@click.option("-u", "--url", "url", required=True, help="The API URL of the instance.")
@click.option("--token-id", "token_id", default=None, help="API token ID (user@realm!token).")
@click.option("--token-secret", "token_secret", default=None, help="API token secret.")
@click.option("--username", "username", default=None, help="Username (user@realm).")
@click.option("--password", "password", default=None, help="Password for --username.")
@click.option(
    "--verify-ssl/--no-verify-ssl",
    "verify_ssl",
    is_flag=True,
    default=False,
    show_default=True,
    help="Verify the TLS certificate of the instance.",
)
@click.option(
    "-d", "--description", "description", default="", help="A text description of the instance."
)
def cli_instance_add(
    name, url, token_id, token_secret, username, password, verify_ssl, description
):
    """
    Add the Proxmox VE instance NAME at URL, authenticating with an API token or a username and password.

    The first instance added becomes the current instance.
    """

    if not (token_id and token_secret) and not (username and password):
        finish(False, "Either --token-id and --token-secret or --username and --password are required.")

    store_path = CLI_CONFIG["store_path"]
    store_data = get_store(store_path)
    store_data["instances"][name] = {
        "url": normalize_url(url),
        "token_id": token_id,
        "token_secret": token_secret,
        "username": username,
        "password": password,
        "verify_ssl": verify_ssl,
        "description": description,
    }
    if not store_data.get("current"):
        store_data["current"] = name
    update_store(store_path, store_data)

    finish(True, f"Added instance \"{name}\" ({normalize_url(url)}).")


###############################################################################
# > pxve instance remove
###############################################################################
@click.command(
    name="remove",
    short_help="Remove an instance.",
)
@click.argument("name")
@confirm_opt("Remove instance {name}")
def cli_instance_remove(name):
    """
    Remove the Proxmox VE instance NAME from the client configuration.
    """

    store_path = CLI_CONFIG["store_path"]
    store_data = get_store(store_path)
    if name not in store_data["instances"]:
        finish(False, f"No instance \"{name}\" is configured.")

    del store_data["instances"][name]
    if store_data.get("current") == name:
        store_data["current"] = None
    update_store(store_path, store_data)

    finish(True, f"Removed instance \"{name}\".")


###############################################################################
# > pxve instance use
###############################################################################
@click.command(
    name="use",
    short_help="Set the current instance.",
)
@click.argument("name")
def cli_instance_use(name):
    """
    Make NAME the instance used when none is given with --instance or PXVE_INSTANCE.
    """

    store_path = CLI_CONFIG["store_path"]
    store_data = get_store(store_path)
    if name not in store_data["instances"]:
        finish(False, f"No instance \"{name}\" is configured.")

    store_data["current"] = name
    update_store(store_path, store_data)

    finish(True, f"Now using instance \"{name}\".")


###############################################################################
# > pxve instance list
###############################################################################
@click.command(
    name="list",
    short_help="List all instances.",
)
@format_opt(output_formats(cli_instance_connection_list_format_pretty))
def cli_instance_list(format_function):
    """
    List all configured Proxmox VE instances; the current one is marked with "*".
    """

    store_data = get_store(CLI_CONFIG["store_path"])
    finish(True, cli_instance_list_parser(store_data), format_function)


###############################################################################
# > pxve instance show
###############################################################################
@click.command(
    name="show",
    short_help="Show an instance.",
)
@click.argument("name", default=None, required=False)
@format_opt(output_formats(lambda d: format_key_values(d)))
def cli_instance_show(name, format_function):
    """
    Show the details of instance NAME, or of the current instance; secrets are never shown.
    """

    store_data = get_store(CLI_CONFIG["store_path"])
    if name is None:
        name = store_data.get("current")

    for instance in cli_instance_list_parser(store_data):
        if instance["name"] == name:
            finish(True, instance, format_function)

    finish(False, f"No instance \"{name}\" is configured.")


###############################################################################
# > pxve node
###############################################################################
@click.group(
    name="node",
    short_help="Manage cluster nodes.",
    context_settings=CONTEXT_SETTINGS,
)
def cli_node():
    """
    View the nodes of the Proxmox VE cluster.
    """
    pass


###############################################################################
# > pxve node list
###############################################################################
@click.command(
    name="list",
    short_help="List all nodes.",
)
@connection_req
@format_opt(output_formats(cli_node_list_format_pretty))
def cli_node_list(format_function):
    """
    List all nodes of the cluster with their state and resource usage.
    """

    retdata = pxve.lib.node.node_list(CLI_CONFIG)
    finish(True, retdata, format_function)


###############################################################################
# > pxve node status
###############################################################################
@click.command(
    name="status",
    short_help="Show node status.",
)
@connection_req
@click.argument("node")
@format_opt(output_formats(cli_node_status_format_pretty))
def cli_node_status(node, format_function):
    """
    Show the detailed status of NODE.
    """

    retdata = pxve.lib.node.node_status(CLI_CONFIG, node)
    finish(True, retdata, format_function)


###############################################################################
# > pxve cluster
###############################################################################
@click.group(
    name="cluster",
    short_help="Manage the cluster.",
    context_settings=CONTEXT_SETTINGS,
)
def cli_cluster():
    """
    View the status and resources of the Proxmox VE cluster.
    """
    pass


###############################################################################
# > pxve cluster status
###############################################################################
@click.command(
    name="status",
    short_help="Show cluster status.",
)
@connection_req
@format_opt(output_formats(cli_cluster_status_format_pretty))
def cli_cluster_status(format_function):
    """
    Show the quorum state and member nodes of the cluster.
    """

    retdata = pxve.lib.cluster.get_info(CLI_CONFIG)
    finish(True, retdata, format_function)


###############################################################################
# > pxve cluster resources
###############################################################################
@click.command(
    name="resources",
    short_help="List cluster resources.",
)
@connection_req
@click.option(
    "-t",
    "--type",
    "resource_type",
    default=None,
    type=click.Choice(["vm", "storage", "node", "sdn"]),
    help="Limit to resources of this type.",
)
@format_opt(output_formats(cli_cluster_resources_format_pretty))
def cli_cluster_resources(resource_type, format_function):
    """
    List all resources (guests, storages, nodes) of the cluster.
    """

    retdata = pxve.lib.cluster.get_resources(CLI_CONFIG, resource_type)
    finish(True, retdata, format_function)


###############################################################################
# > pxve cluster tasks
###############################################################################
@click.command(
    name="tasks",
    short_help="List recent tasks.",
)
@connection_req
@format_opt(output_formats(cli_cluster_tasks_format_pretty))
def cli_cluster_tasks(format_function):
    """
    List the recent and running tasks of the whole cluster.
    """

    retdata = pxve.lib.cluster.get_tasks(CLI_CONFIG)
    finish(True, retdata, format_function)


###############################################################################
# > pxve cluster nextid
###############################################################################
@click.command(
    name="nextid",
    short_help="Show the next free VMID.",
)
@connection_req
def cli_cluster_nextid():
    """
    Show the next free VMID; it is not reserved, so a concurrent create may still take it.
    """

    retdata = pxve.lib.cluster.next_id(CLI_CONFIG)
    finish(True, retdata)


###############################################################################
# > pxve cluster tags
###############################################################################
@click.command(
    name="tags",
    short_help="List all tags in use.",
)
@connection_req
@format_opt(output_formats(cli_tags_format_pretty))
def cli_cluster_tags(format_function):
    """
    List every tag in use on any VM or container.
    """

    retdata = pxve.lib.instance.all_tags(CLI_CONFIG)
    finish(True, retdata, format_function)


###############################################################################
# > pxve vm, pxve ct
###############################################################################
def instance_commands(kind, name, label):
    """
    Build the command group for one kind of guest; VMs and containers share
    every command and differ only in {kind}
    """

    @click.group(
        name=name,
        short_help=f"Manage {label}s.",
        help=f"Manage the {label}s of the Proxmox VE cluster.",
        context_settings=CONTEXT_SETTINGS,
    )
    def cli_kind():
        pass

    ###########################################################################
    # > pxve {vm|ct} list
    ###########################################################################
    @click.command(name="list", short_help=f"List all {label}s.")
    @connection_req
    @click.option("-n", "--node", "node", default=None, help="Limit to this node.")
    @format_opt(output_formats(cli_instance_list_format_pretty))
    def cli_kind_list(node, format_function):
        """
        List all guests of this kind, sorted by VMID.
        """

        retdata = pxve.lib.instance.list_instances(CLI_CONFIG, kind, node)
        finish(True, retdata, format_function)

    ###########################################################################
    # > pxve {vm|ct} info
    ###########################################################################
    @click.command(name="info", short_help=f"Show details of a {label}.")
    @connection_req
    @click.argument("vmid", type=int)
    @node_opt
    @format_opt(output_formats(cli_instance_info_format_pretty))
    def cli_kind_info(vmid, node, format_function):
        """
        Show the status and configuration of VMID.
        """

        retdata = pxve.lib.instance.instance_info(CLI_CONFIG, kind, vmid, node)
        finish(True, retdata, format_function)

    ###########################################################################
    # > pxve {vm|ct} start|stop|shutdown|reboot
    ###########################################################################
    def power_command(action, verb, short_help, help_text):
        @click.command(name=action, short_help=short_help, help=help_text)
        @connection_req
        @click.argument("vmid", type=int)
        @node_opt
        @wait_opt
        def cli_kind_power(vmid, node, wait_flag, max_wait):
            handle = getattr(pxve.lib.instance, action)(CLI_CONFIG, kind, vmid, node)
            finish_task(handle, wait_flag, max_wait, f"{verb} {label} {vmid}.")

        return cli_kind_power

    cli_kind_start = power_command("start", "Starting", f"Start a {label}.", "Start VMID.")
    cli_kind_stop = power_command(
        "stop", "Stopping", f"Hard-stop a {label}.", "Stop VMID immediately, like pulling the power."
    )
    cli_kind_shutdown = power_command(
        "shutdown",
        "Shutting down",
        f"Gracefully shut down a {label}.",
        "Ask the guest OS of VMID to shut down.",
    )
    cli_kind_reboot = power_command("reboot", "Rebooting", f"Reboot a {label}.", "Reboot VMID.")

    ###########################################################################
    # > pxve {vm|ct} delete
    ###########################################################################
    @click.command(name="delete", short_help=f"Delete a {label}.")
    @connection_req
    @click.argument("vmid", type=int)
    @node_opt
    @confirm_opt(f"Delete {label} {{vmid}} and all its disks")
    @wait_opt
    def cli_kind_delete(vmid, node, wait_flag, max_wait):
        """
        Destroy VMID and all of its disks. THIS CANNOT BE UNDONE.
        """

        handle = pxve.lib.instance.delete(CLI_CONFIG, kind, vmid, node)
        finish_task(handle, wait_flag, max_wait, f"Deleting {label} {vmid}.")

    ###########################################################################
    # > pxve {vm|ct} clone
    ###########################################################################
    @click.command(name="clone", short_help=f"Clone a {label}.")
    @connection_req
    @click.argument("vmid", type=int)
    @click.option(
        "-i",
        "--newid",
        "newid",
        type=int,
        default=0,
        help="VMID of the clone; the next free VMID if unset.",
    )
    @click.option("-N", "--name", "name", default=None, help="Name of the clone.")
    @node_opt
    @wait_opt
    def cli_kind_clone(vmid, newid, name, node, wait_flag, max_wait):
        """
        Clone VMID into a new guest.
        """

        newid, handle = pxve.lib.instance.clone(CLI_CONFIG, kind, vmid, newid, name, node)
        finish_task(handle, wait_flag, max_wait, f"Cloning {label} {vmid} to {newid}.")

    ###########################################################################
    # > pxve {vm|ct} template
    ###########################################################################
    @click.command(name="template", short_help=f"Convert a {label} to a template.")
    @connection_req
    @click.argument("vmid", type=int)
    @node_opt
    @confirm_opt(f"Convert {label} {{vmid}} into a template")
    @wait_opt
    def cli_kind_template(vmid, node, wait_flag, max_wait):
        """
        Convert VMID into a template. Templates can be cloned but not started.
        """

        handle = pxve.lib.instance.convert_to_template(CLI_CONFIG, kind, vmid, node)
        finish_task(handle, wait_flag, max_wait, f"Converted {label} {vmid} to a template.")

    ###########################################################################
    # > pxve {vm|ct} tag
    ###########################################################################
    @click.group(
        name="tag",
        short_help=f"Manage tags of a {label}.",
        context_settings=CONTEXT_SETTINGS,
    )
    def cli_kind_tag():
        """
        View and edit the tags of a guest.
        """
        pass

    @click.command(name="get", short_help="Get the tags.")
    @connection_req
    @click.argument("vmid", type=int)
    @node_opt
    @format_opt(output_formats(cli_tags_format_pretty))
    def cli_kind_tag_get(vmid, node, format_function):
        """
        Get the tags of VMID.
        """

        _, retdata = pxve.lib.instance.get_tags(CLI_CONFIG, kind, vmid, node)
        finish(True, retdata, format_function)

    @click.command(name="add", short_help="Add a tag.")
    @connection_req
    @click.argument("vmid", type=int)
    @click.argument("tag")
    @node_opt
    def cli_kind_tag_add(vmid, tag, node):
        """
        Add TAG to VMID.
        """

        tags = pxve.lib.instance.add_tag(CLI_CONFIG, kind, vmid, tag, node)
        finish(True, f"Tags of {label} {vmid}: {', '.join(tags)}")

    @click.command(name="remove", short_help="Remove a tag.")
    @connection_req
    @click.argument("vmid", type=int)
    @click.argument("tag")
    @node_opt
    def cli_kind_tag_remove(vmid, tag, node):
        """
        Remove TAG from VMID.
        """

        tags = pxve.lib.instance.remove_tag(CLI_CONFIG, kind, vmid, tag, node)
        finish(True, f"Tags of {label} {vmid}: {', '.join(tags) or '(none)'}")

    ###########################################################################
    # > pxve {vm|ct} snapshot
    ###########################################################################
    @click.group(
        name="snapshot",
        short_help=f"Manage snapshots of a {label}.",
        context_settings=CONTEXT_SETTINGS,
    )
    def cli_kind_snapshot():
        """
        Manage the snapshots of a guest.
        """
        pass

    @click.command(name="list", short_help="List snapshots.")
    @connection_req
    @click.argument("vmid", type=int)
    @node_opt
    @format_opt(output_formats(cli_snapshot_list_format_pretty))
    def cli_kind_snapshot_list(vmid, node, format_function):
        """
        List the snapshots of VMID, newest first.
        """

        retdata = pxve.lib.instance.list_snapshots(CLI_CONFIG, kind, vmid, node)
        finish(True, retdata, format_function)

    @click.command(name="create", short_help="Create a snapshot.")
    @connection_req
    @click.argument("vmid", type=int)
    @click.argument("snapshot_name")
    @click.option("-d", "--description", "description", default=None, help="Snapshot description.")
    @node_opt
    @wait_opt
    def cli_kind_snapshot_create(vmid, snapshot_name, description, node, wait_flag, max_wait):
        """
        Create snapshot SNAPSHOT_NAME of VMID.
        """

        handle = pxve.lib.instance.create_snapshot(
            CLI_CONFIG, kind, vmid, snapshot_name, description, node
        )
        finish_task(handle, wait_flag, max_wait, f"Creating snapshot {snapshot_name} of {label} {vmid}.")

    @click.command(name="delete", short_help="Delete a snapshot.")
    @connection_req
    @click.argument("vmid", type=int)
    @click.argument("snapshot_name")
    @node_opt
    @confirm_opt(f"Delete snapshot {{snapshot_name}} of {label} {{vmid}}")
    @wait_opt
    def cli_kind_snapshot_delete(vmid, snapshot_name, node, wait_flag, max_wait):
        """
        Delete snapshot SNAPSHOT_NAME of VMID.
        """

        handle = pxve.lib.instance.delete_snapshot(CLI_CONFIG, kind, vmid, snapshot_name, node)
        finish_task(handle, wait_flag, max_wait, f"Deleting snapshot {snapshot_name} of {label} {vmid}.")

    @click.command(name="rollback", short_help="Roll back to a snapshot.")
    @connection_req
    @click.argument("vmid", type=int)
    @click.argument("snapshot_name")
    @click.option(
        "-s",
        "--start",
        "start_flag",
        is_flag=True,
        default=False,
        help="Start the guest after the rollback.",
    )
    @node_opt
    @confirm_opt(f"Roll back {label} {{vmid}} to snapshot {{snapshot_name}}, losing its current state")
    @wait_opt
    def cli_kind_snapshot_rollback(vmid, snapshot_name, start_flag, node, wait_flag, max_wait):
        """
        Roll VMID back to snapshot SNAPSHOT_NAME. Changes made since the snapshot are lost.
        """

        handle = pxve.lib.instance.rollback_snapshot(
            CLI_CONFIG, kind, vmid, snapshot_name, start_flag, node
        )
        finish_task(handle, wait_flag, max_wait, f"Rolling back {label} {vmid} to {snapshot_name}.")

    cli_kind.add_command(cli_kind_list)
    cli_kind.add_command(cli_kind_info)
    cli_kind.add_command(cli_kind_start)
    cli_kind.add_command(cli_kind_stop)
    cli_kind.add_command(cli_kind_shutdown)
    cli_kind.add_command(cli_kind_reboot)
    cli_kind.add_command(cli_kind_delete)
    cli_kind.add_command(cli_kind_clone)
    cli_kind.add_command(cli_kind_template)
    cli_kind_tag.add_command(cli_kind_tag_get)
    cli_kind_tag.add_command(cli_kind_tag_add)
    cli_kind_tag.add_command(cli_kind_tag_remove)
    cli_kind.add_command(cli_kind_tag)
    cli_kind_snapshot.add_command(cli_kind_snapshot_list)
    cli_kind_snapshot.add_command(cli_kind_snapshot_create)
    cli_kind_snapshot.add_command(cli_kind_snapshot_delete)
    cli_kind_snapshot.add_command(cli_kind_snapshot_rollback)
    cli_kind.add_command(cli_kind_snapshot)

    return cli_kind


cli_vm = instance_commands(KIND_VM, "vm", "VM")
cli_ct = instance_commands(KIND_CONTAINER, "ct", "container")


###############################################################################
# > pxve vm config
###############################################################################
@click.command(name="config", short_help="View or modify the configuration of a VM.")
@connection_req
@click.argument("vmid", type=int)
@click.option("-N", "--name", "name", default=None, help="Set the VM name.")
@click.option("-d", "--description", "description", default=None, help="Set the VM description.")
@click.option("--cores", "cores", type=int, default=None, help="Set the number of CPU cores.")
@click.option("--sockets", "sockets", type=int, default=None, help="Set the number of CPU sockets.")
@click.option("--memory", "memory", type=int, default=None, help="Set the memory in MiB.")
@click.option(
    "--balloon", "balloon", type=int, default=None, help="Set the balloon size in MiB; 0 disables it."
)
@click.option("--cpu", "cpu", default=None, help="Set the CPU type, e.g. host or kvm64.")
@click.option("--onboot/--no-onboot", "onboot", default=None, help="Start the VM on boot or not.")
@click.option(
    "--protection/--no-protection",
    "protection",
    default=None,
    help="Protect the VM and its disks against removal or not.",
)
@node_opt
@wait_opt
@format_opt(output_formats(cli_vm_config_format_pretty))
def cli_vm_config(
    vmid,
    name,
    description,
    cores,
    sockets,
    memory,
    balloon,
    cpu,
    onboot,
    protection,
    node,
    wait_flag,
    max_wait,
    format_function,
):
    """
    Show the configuration of VMID, or change it when any option is given.
    """

    options = {
        "name": name,
        "description": description,
        "cores": cores,
        "sockets": sockets,
        "memory": memory,
        "balloon": balloon,
        "cpu": cpu,
        "onboot": None if onboot is None else int(onboot),
        "protection": None if protection is None else int(protection),
    }
    options = {key: value for key, value in options.items() if value is not None}

    if options:
        handle = pxve.lib.instance.set_config(CLI_CONFIG, vmid, options, node)
        finish_task(handle, wait_flag, max_wait, f"Updating configuration of VM {vmid}.")

    ref, vm_config = pxve.lib.instance.get_instance_config(CLI_CONFIG, KIND_VM, vmid, node)
    retdata = {"vmid": ref.vmid, "node": ref.node, "config": vm_config}
    finish(True, retdata, format_function)


###############################################################################
# > pxve vm disk
###############################################################################
@click.group(
    name="disk",
    short_help="Manage disks of a VM.",
    context_settings=CONTEXT_SETTINGS,
)
def cli_vm_disk():
    """
    Resize, move and detach the disks of a VM.
    """
    pass


@click.command(name="resize", short_help="Grow a VM disk.")
@connection_req
@click.argument("vmid", type=int)
@click.argument("disk")
@click.argument("size")
@node_opt
@wait_opt
def cli_vm_disk_resize(vmid, disk, size, node, wait_flag, max_wait):
    """
    Grow DISK (e.g. scsi0, virtio0) of VMID by SIZE (e.g. 10G, +512M).

    Disks can only grow; the "+" is added to SIZE if missing.
    """

    size = pxve.lib.instance.normalize_disk_size(size)
    handle = pxve.lib.instance.resize_disk(CLI_CONFIG, vmid, disk, size, node)
    finish_task(handle, wait_flag, max_wait, f"Resizing disk {disk} of VM {vmid} by {size}.")


@click.command(name="move", short_help="Move a VM disk to another storage.")
@connection_req
@click.argument("vmid", type=int)
@click.argument("disk", required=False, default=None)
@click.option("-s", "--storage", "storage", required=True, help="Target storage.")
@click.option(
    "--delete/--keep",
    "delete_source",
    default=True,
    show_default=True,
    help="Delete the source volume after the move, or keep it as an unused disk.",
)
@click.option(
    "--bwlimit",
    "bwlimit",
    type=int,
    default=0,
    help="Bandwidth limit in KiB/s; 0 is unlimited.",
)
@node_opt
@wait_opt
def cli_vm_disk_move(vmid, disk, storage, delete_source, bwlimit, node, wait_flag, max_wait):
    """
    Move DISK of VMID to STORAGE; running VMs are moved live.

    If DISK is omitted it is picked automatically when the VM has one moveable disk, and asked for otherwise.
    """

    if disk is None:
        _, vm_config = pxve.lib.instance.get_instance_config(CLI_CONFIG, KIND_VM, vmid, node)
        disks = pxve.lib.instance.moveable_disks(vm_config, storage)
        if not disks:
            finish(False, f"VM {vmid} has no disks that can be moved to {storage}.")
        if len(disks) == 1:
            disk = list(disks)[0]
        else:
            echo(CLI_CONFIG, cli_disk_list_format_pretty(CLI_CONFIG, disks))
            disk = click.prompt("Disk to move", type=click.Choice(list(disks)))

    handle = pxve.lib.instance.move_disk(
        CLI_CONFIG, vmid, disk, storage, delete_source, bwlimit, node
    )
    finish_task(handle, wait_flag, max_wait, f"Moving disk {disk} of VM {vmid} to {storage}.")


@click.command(name="detach", short_help="Detach a disk from a VM.")
@connection_req
@click.argument("vmid", type=int)
@click.argument("disk")
@click.option(
    "--delete",
    "delete_data",
    is_flag=True,
    default=False,
    help="Destroy the disk data instead of keeping it as an unused disk.",
)
@click.option(
    "-y",
    "--yes",
    "confirm_flag",
    is_flag=True,
    default=False,
    help="Pre-confirm any unsafe operations.",
)
@node_opt
@wait_opt
def cli_vm_disk_detach(vmid, disk, delete_data, confirm_flag, node, wait_flag, max_wait):
    """
    Detach DISK from VMID. The data is kept as an "unusedN" disk unless "--delete" is given.

    With "--delete" the disk data is destroyed. THIS CANNOT BE UNDONE.
    """

    if delete_data and not confirm_flag and not CLI_CONFIG.get("unsafe", False):
        try:
            click.confirm(
                f"Permanently delete the data of disk {disk} of VM {vmid}",
                prompt_suffix="? ",
                abort=True,
            )
        except click.Abort:
            echo(CLI_CONFIG, "Aborted.")
            exit(0)

    handle = pxve.lib.instance.detach_disk(CLI_CONFIG, vmid, disk, delete_data, node)
    if delete_data:
        retmsg = f"Detaching disk {disk} of VM {vmid} and deleting its data."
    else:
        retmsg = f"Detaching disk {disk} of VM {vmid}; its data is kept as an unused disk."
    finish_task(handle, wait_flag, max_wait, retmsg)


###############################################################################
# > pxve vm agent
###############################################################################
@click.group(
    name="agent",
    short_help="Run guest agent commands in a VM.",
    context_settings=CONTEXT_SETTINGS,
)
def cli_vm_agent():
    """
    Use the QEMU guest agent of a running VM. The guest needs qemu-guest-agent installed and running.
    """
    pass


@click.command(name="exec", short_help="Execute a command inside a VM.")
@connection_req
@click.argument("vmid", type=int)
@click.argument("command", nargs=-1, required=True)
@click.option(
    "-t",
    "--timeout",
    "timeout",
    type=int,
    default=30,
    show_default=True,
    help="Seconds to wait for the command to exit.",
)
@click.option("--stdin", "input_data", default=None, help="Data passed to the command on stdin.")
@node_opt
@format_opt(output_formats(cli_agent_exec_format_pretty))
def cli_vm_agent_exec(vmid, command, timeout, input_data, node, format_function):
    """
    Execute COMMAND inside VMID through the guest agent; use "--" before COMMAND to separate its arguments, e.g. "pxve vm agent exec 100 -- ls -la /tmp".
    """

    retdata = pxve.lib.instance.agent_exec(
        CLI_CONFIG, vmid, list(command), input_data, timeout, node=node
    )
    # A non-zero exit of the guest command fails this command too
    retcode = True if retdata["exitcode"] == 0 else 1
    finish(retcode, retdata, format_function)


###############################################################################
# > pxve backup
###############################################################################
@click.group(
    name="backup",
    short_help="Manage backups.",
    context_settings=CONTEXT_SETTINGS,
)
def cli_backup():
    """
    Create, list, restore and delete vzdump backups of VMs and containers.
    """
    pass


###############################################################################
# > pxve backup storages
###############################################################################
@click.command(
    name="storages",
    short_help="List backup or restore storages.",
)
@connection_req
@click.option("-n", "--node", "node", default=None, help="Limit to this node.")
@click.option(
    "-r",
    "--restore",
    "restore_kind",
    default=None,
    type=click.Choice(["vm", "ct"]),
    help="List storages that can hold a restored guest of this kind instead.",
)
@format_opt(output_formats(cli_storage_list_format_pretty))
def cli_backup_storages(node, restore_kind, format_function):
    """
    List the storages that can hold backups, or with "--restore" the storages a VM or container can be restored onto.
    """

    if restore_kind is None:
        retdata = pxve.lib.backup.list_backup_storages(CLI_CONFIG, node)
    else:
        kind = KIND_VM if restore_kind == "vm" else KIND_CONTAINER
        retdata = pxve.lib.backup.list_restore_storages(CLI_CONFIG, kind, node)
    finish(True, retdata, format_function)


###############################################################################
# > pxve backup list
###############################################################################
@click.command(
    name="list",
    short_help="List backups.",
)
@connection_req
@click.option("-n", "--node", "node", default=None, help="Limit to this node.")
@click.option("-s", "--storage", "storage", default=None, help="Limit to this storage.")
@click.option("-i", "--vmid", "vmid", type=int, default=None, help="Limit to backups of this VMID.")
@format_opt(output_formats(cli_backup_list_format_pretty))
def cli_backup_list(node, storage, vmid, format_function):
    """
    List the backups of the cluster, newest first. Backups on shared storages are listed once.
    """

    retdata = pxve.lib.backup.list_backups(CLI_CONFIG, node, storage, vmid)
    finish(True, retdata, format_function)


###############################################################################
# > pxve backup create
###############################################################################
@click.command(
    name="create",
    short_help="Back up a guest.",
)
@connection_req
@click.argument("vmid", type=int)
@click.option("-n", "--node", "node", default=None, help="Node of the guest; looked up if unset.")
@click.option("-s", "--storage", "storage", default=None, help="Target backup storage.")
@click.option(
    "-m",
    "--mode",
    "mode",
    default=None,
    type=click.Choice(["snapshot", "suspend", "stop"]),
    help="Backup mode.",
)
@click.option(
    "-c",
    "--compress",
    "compress",
    default=None,
    type=click.Choice(["0", "gzip", "lzo", "zstd"]),
    help="Compression algorithm.",
)
@wait_opt
def cli_backup_create(vmid, node, storage, mode, compress, wait_flag, max_wait):
    """
    Create a vzdump backup of VMID.
    """

    handle = pxve.lib.backup.create_backup(CLI_CONFIG, vmid, node, storage, mode, compress)
    finish_task(handle, wait_flag, max_wait, f"Backing up VMID {vmid}.")


###############################################################################
# > pxve backup delete
###############################################################################
@click.command(
    name="delete",
    short_help="Delete a backup.",
)
@connection_req
@click.argument("volid")
@click.option("-n", "--node", "node", required=True, help="Node to access the storage from.")
@click.option("-s", "--storage", "storage", default=None, help="Storage of the backup; taken from VOLID if unset.")
@confirm_opt("Delete backup {volid}")
@wait_opt
def cli_backup_delete(volid, node, storage, wait_flag, max_wait):
    """
    Delete backup VOLID (e.g. "local:backup/vzdump-qemu-100-2024_01_01-00_00_00.vma.zst").
    """

    handle = pxve.lib.backup.delete_backup(CLI_CONFIG, node, volid, storage)
    finish_task(handle, wait_flag, max_wait, f"Deleting backup {volid}.")


###############################################################################
# > pxve backup restore
###############################################################################
@click.command(
    name="restore",
    short_help="Restore a backup.",
)
@connection_req
@click.argument("volid")
@click.option("-n", "--node", "node", required=True, help="Node to restore onto.")
@click.option(
    "-i",
    "--vmid",
    "vmid",
    type=int,
    default=0,
    help="VMID of the restored guest; the next free VMID if unset.",
)
@click.option("-N", "--name", "name", default=None, help="Name (hostname for containers) of the restored guest.")
@click.option("-s", "--storage", "target_storage", default=None, help="Storage for the restored disks.")
@wait_opt
def cli_backup_restore(volid, node, vmid, name, target_storage, wait_flag, max_wait):
    """
    Restore backup VOLID as a new VM or container, depending on the archive type.

    An existing VMID is never overwritten; restoring onto a VMID in use fails.
    """

    vmid, handle = pxve.lib.backup.restore_backup(
        CLI_CONFIG, node, volid, vmid, name, target_storage
    )
    finish_task(handle, wait_flag, max_wait, f"Restoring {volid} to VMID {vmid} on node {node}.")


###############################################################################
# > pxve backup info
###############################################################################
@click.command(
    name="info",
    short_help="Show the configuration in a backup.",
)
@connection_req
@click.argument("volid")
@click.option("-n", "--node", "node", required=True, help="Node to access the storage from.")
@format_opt(output_formats(cli_backup_info_format_pretty))
def cli_backup_info(volid, node, format_function):
    """
    Show the guest configuration stored in backup VOLID.
    """

    retdata = pxve.lib.backup.backup_config(CLI_CONFIG, node, volid)
    finish(True, retdata, format_function)


###############################################################################
# > pxve task
###############################################################################
@click.group(
    name="task",
    short_help="Manage tasks.",
    context_settings=CONTEXT_SETTINGS,
)
def cli_task():
    """
    View and watch asynchronous tasks by their UPID.
    """
    pass


###############################################################################
# > pxve task status
###############################################################################
@click.command(
    name="status",
    short_help="Show task status.",
)
@connection_req
@click.argument("upid")
@format_opt(output_formats(cli_task_status_format_pretty))
def cli_task_status(upid, format_function):
    """
    Show the status of task UPID.
    """

    handle = parse_upid(upid)
    retdata = dict(pxve.lib.task.task_status(CLI_CONFIG, handle))
    retdata.setdefault("upid", handle.upid)
    retdata.setdefault("node", handle.node)
    finish(True, retdata, format_function)


###############################################################################
# > pxve task watch
###############################################################################
@click.command(
    name="watch",
    short_help="Watch a task.",
)
@connection_req
@click.argument("upid")
@click.option(
    "--max-wait",
    "max_wait",
    type=int,
    default=300,
    show_default=True,
    help="Seconds to poll a task whose log cannot be followed.",
)
def cli_task_watch(upid, max_wait):
    """
    Follow the log of task UPID until it finishes. Ctrl-C stops watching; the task keeps running.
    """

    handle = parse_upid(upid)
    retcode, retmsg = wait_for_task(CLI_CONFIG, handle, max_wait)
    finish(retcode, retmsg)


###############################################################################
# > pxve user
###############################################################################
@click.group(
    name="user",
    short_help="Manage users.",
    context_settings=CONTEXT_SETTINGS,
)
def cli_user():
    """
    Manage the users of the cluster.
    """
    pass


@click.command(name="list", short_help="List all users.")
@connection_req
@format_opt(output_formats(cli_user_list_format_pretty))
def cli_user_list(format_function):
    """
    List all users of the cluster.
    """

    retdata = pxve.lib.access.list_users(CLI_CONFIG)
    finish(True, retdata, format_function)


@click.command(name="create", short_help="Create a user.")
@connection_req
@click.argument("userid")
@click.option(
    "-p",
    "--password",
    "password",
    default=None,
    help="Initial password (pve realm users only).",
)
@click.option("-e", "--email", "email", default=None, help="Email address.")
@click.option("-c", "--comment", "comment", default=None, help="Comment.")
@click.option(
    "-g",
    "--group",
    "groups",
    multiple=True,
    help="Group to add the user to; may be given multiple times.",
)
def cli_user_create(userid, password, email, comment, groups):
    """
    Create user USERID (user@realm).
    """

    pxve.lib.access.create_user(CLI_CONFIG, userid, password, email, comment, list(groups))
    finish(True, f"Created user {userid}.")


@click.command(name="delete", short_help="Delete a user.")
@connection_req
@click.argument("userid")
@confirm_opt("Delete user {userid}")
def cli_user_delete(userid):
    """
    Delete user USERID.
    """

    pxve.lib.access.delete_user(CLI_CONFIG, userid)
    finish(True, f"Deleted user {userid}.")


@click.command(name="password", short_help="Change a user's password.")
@connection_req
@click.argument("userid")
@click.option(
    "-p",
    "--password",
    "password",
    prompt=True,
    hide_input=True,
    confirmation_prompt=True,
    help="New password; prompted for if unset.",
)
def cli_user_password(userid, password):
    """
    Change the password of USERID.
    """

    pxve.lib.access.change_password(CLI_CONFIG, userid, password)
    finish(True, f"Changed password of user {userid}.")


###############################################################################
# > pxve user token
###############################################################################
@click.group(
    name="token",
    short_help="Manage API tokens of a user.",
    context_settings=CONTEXT_SETTINGS,
)
def cli_user_token():
    """
    Manage the API tokens of a user.
    """
    pass


@click.command(name="list", short_help="List API tokens.")
@connection_req
@click.argument("userid")
@format_opt(output_formats(cli_token_list_format_pretty))
def cli_user_token_list(userid, format_function):
    """
    List the API tokens of USERID.
    """

    retdata = pxve.lib.access.list_tokens(CLI_CONFIG, userid)
    finish(True, retdata, format_function)


@click.command(name="create", short_help="Create an API token.")
@connection_req
@click.argument("userid")
@click.argument("tokenid")
@click.option("-c", "--comment", "comment", default=None, help="Description of the token.")
@click.option(
    "-e",
    "--expire",
    "expire",
    type=int,
    default=0,
    help="Expiry as a Unix timestamp; 0 never expires.",
)
@click.option(
    "--privsep/--no-privsep",
    "privsep",
    default=True,
    show_default=True,
    help="Limit the token to ACLs granted to it directly, or inherit every permission of the user.",
)
@format_opt(output_formats(cli_token_create_format_pretty))
def cli_user_token_create(userid, tokenid, comment, expire, privsep, format_function):
    """
    Create API token TOKENID for USERID.

    The token secret is shown only once.
    """

    retdata = pxve.lib.access.create_token(CLI_CONFIG, userid, tokenid, comment, expire, privsep)
    finish(True, retdata, format_function)


@click.command(name="delete", short_help="Delete an API token.")
@connection_req
@click.argument("userid")
@click.argument("tokenid")
@confirm_opt("Delete API token {tokenid} of user {userid}")
def cli_user_token_delete(userid, tokenid):
    """
    Delete API token TOKENID of USERID.
    """

    pxve.lib.access.delete_token(CLI_CONFIG, userid, tokenid)
    finish(True, f"Deleted token {tokenid} of user {userid}.")


###############################################################################
# > pxve group
###############################################################################
@click.group(
    name="group",
    short_help="Manage groups.",
    context_settings=CONTEXT_SETTINGS,
)
def cli_group():
    """
    Manage the user groups of the cluster.
    """
    pass


@click.command(name="list", short_help="List all groups.")
@connection_req
@format_opt(output_formats(cli_group_list_format_pretty))
def cli_group_list(format_function):
    """
    List all groups of the cluster.
    """

    retdata = pxve.lib.access.list_groups(CLI_CONFIG)
    finish(True, retdata, format_function)


@click.command(name="show", short_help="Show a group.")
@connection_req
@click.argument("groupid")
@format_opt(output_formats(cli_group_info_format_pretty))
def cli_group_show(groupid, format_function):
    """
    Show the comment and members of GROUPID.
    """

    retdata = pxve.lib.access.get_group(CLI_CONFIG, groupid)
    finish(True, retdata, format_function)


@click.command(name="create", short_help="Create a group.")
@connection_req
@click.argument("groupid")
@click.option("-c", "--comment", "comment", default=None, help="Comment.")
def cli_group_create(groupid, comment):
    """
    Create group GROUPID.
    """

    pxve.lib.access.create_group(CLI_CONFIG, groupid, comment)
    finish(True, f"Created group {groupid}.")


@click.command(name="delete", short_help="Delete a group.")
@connection_req
@click.argument("groupid")
@confirm_opt("Delete group {groupid}")
def cli_group_delete(groupid):
    """
    Delete group GROUPID.
    """

    pxve.lib.access.delete_group(CLI_CONFIG, groupid)
    finish(True, f"Deleted group {groupid}.")


@click.command(name="add-member", short_help="Add a user to a group.")
@connection_req
@click.argument("groupid")
@click.argument("userid")
def cli_group_add_member(groupid, userid):
    """
    Add USERID to GROUPID; the user's other groups are kept.
    """

    pxve.lib.access.add_group_member(CLI_CONFIG, groupid, userid)
    finish(True, f"Added user {userid} to group {groupid}.")


@click.command(name="remove-member", short_help="Remove a user from a group.")
@connection_req
@click.argument("groupid")
@click.argument("userid")
def cli_group_remove_member(groupid, userid):
    """
    Remove USERID from GROUPID; the user's other groups are kept.
    """

    pxve.lib.access.remove_group_member(CLI_CONFIG, groupid, userid)
    finish(True, f"Removed user {userid} from group {groupid}.")


###############################################################################
# > pxve acl
###############################################################################
@click.group(
    name="acl",
    short_help="Manage access control lists.",
    context_settings=CONTEXT_SETTINGS,
)
def cli_acl():
    """
    Manage the access control lists of the cluster.
    """
    pass


@click.command(name="list", short_help="List all ACLs.")
@connection_req
@format_opt(output_formats(cli_acl_list_format_pretty))
def cli_acl_list(format_function):
    """
    List all ACL entries of the cluster.
    """

    retdata = pxve.lib.access.list_acls(CLI_CONFIG)
    finish(True, retdata, format_function)


@click.command(name="grant", short_help="Grant a role.")
@connection_req
@click.argument("userid")
@click.argument("role")
@click.option(
    "-i",
    "--vmid",
    "vmids",
    type=int,
    multiple=True,
    help="Grant on this VMID; may be given multiple times.",
)
@click.option("-p", "--path", "acl_path", default=None, help="Grant on this ACL path instead.")
@click.option(
    "--propagate",
    "propagate",
    is_flag=True,
    default=False,
    help="Propagate the grant to child paths.",
)
def cli_acl_grant(userid, role, vmids, acl_path, propagate):
    """
    Grant ROLE to USERID on one or more VMIDs or on an ACL path.
    """

    pxve.lib.access.grant_access(CLI_CONFIG, userid, role, list(vmids), acl_path, propagate)
    finish(True, f"Granted {role} to {userid}.")


@click.command(name="revoke", short_help="Revoke a role.")
@connection_req
@click.argument("userid")
@click.argument("role")
@click.option(
    "-i",
    "--vmid",
    "vmids",
    type=int,
    multiple=True,
    help="Revoke on this VMID; may be given multiple times.",
)
@click.option("-p", "--path", "acl_path", default=None, help="Revoke on this ACL path instead.")
def cli_acl_revoke(userid, role, vmids, acl_path):
    """
    Revoke ROLE from USERID on one or more VMIDs or on an ACL path.
    """

    pxve.lib.access.revoke_access(CLI_CONFIG, userid, role, list(vmids), acl_path)
    finish(True, f"Revoked {role} from {userid}.")


###############################################################################
# > pxve role
###############################################################################
@click.group(
    name="role",
    short_help="View roles.",
    context_settings=CONTEXT_SETTINGS,
)
def cli_role():
    """
    View the roles available for ACLs.
    """
    pass


@click.command(name="list", short_help="List all roles.")
@connection_req
@format_opt(output_formats(cli_role_list_format_pretty))
def cli_role_list(format_function):
    """
    List all roles and their privileges.
    """

    retdata = pxve.lib.access.list_roles(CLI_CONFIG)
    finish(True, retdata, format_function)


###############################################################################
# > pxve
###############################################################################
@click.group(context_settings=CONTEXT_SETTINGS)
@click.option(
    "-i",
    "--instance",
    "_instance",
    envvar="PXVE_INSTANCE",
    default=None,
    help="Instance to connect to.",
)
@click.option(
    "--url",
    "_url",
    envvar="PXVE_URL",
    default=None,
    help="Connect to this API URL without a stored instance.",
)
@click.option("--token-id", "_token_id", envvar="PXVE_TOKEN_ID", default=None, help="API token ID for --url.")
@click.option(
    "--token-secret",
    "_token_secret",
    envvar="PXVE_TOKEN_SECRET",
    default=None,
    help="API token secret for --url.",
)
@click.option("--username", "_username", envvar="PXVE_USERNAME", default=None, help="Username for --url.")
@click.option("--password", "_password", envvar="PXVE_PASSWORD", default=None, help="Password for --url.")
@click.option(
    "--secure",
    "_secure",
    envvar="PXVE_SECURE",
    is_flag=True,
    default=False,
    help="Verify the TLS certificate of --url.",
)
@click.option(
    "-v",
    "--debug",
    "_debug",
    envvar="PXVE_DEBUG",
    is_flag=True,
    default=False,
    help="Additional debug details.",
)
@click.option(
    "-q",
    "--quiet",
    "_quiet",
    envvar="PXVE_QUIET",
    is_flag=True,
    default=False,
    help="Suppress information sent to stderr.",
)
@click.option(
    "-s",
    "--silent",
    "_silent",
    envvar="PXVE_SILENT",
    is_flag=True,
    default=False,
    help="Suppress information sent to stdout and stderr.",
)
@click.option(
    "-u",
    "--unsafe",
    "_unsafe",
    envvar="PXVE_UNSAFE",
    is_flag=True,
    default=False,
    help='Perform unsafe operations without confirmation/"--yes" argument.',
)
@click.option(
    "--colour",
    "--color",
    "_colour",
    envvar="PXVE_COLOUR",
    is_flag=True,
    default=False,
    help="Force colourized output.",
)
@click.option(
    "--version",
    is_flag=True,
    callback=version,
    expose_value=False,
    is_eager=True,
    help="Show CLI version and exit.",
)
def cli(
    _instance,
    _url,
    _token_id,
    _token_secret,
    _username,
    _password,
    _secure,
    _debug,
    _quiet,
    _silent,
    _unsafe,
    _colour,
):
    """
    pxve Proxmox VE CLI management tool

    Environment variables:

      "PXVE_INSTANCE": Set the instance to access instead of using --instance/-i

      "PXVE_URL", "PXVE_TOKEN_ID", "PXVE_TOKEN_SECRET", "PXVE_USERNAME", "PXVE_PASSWORD": Connect without a stored instance

      "PXVE_DEBUG": Enable additional debugging details instead of using --debug/-v

      "PXVE_QUIET": Suppress stderr output from client instead of using --quiet/-q

      "PXVE_SILENT": Suppress stdout and stderr output from client instead of using --silent/-s

      "PXVE_UNSAFE": Always suppress confirmations instead of needing --unsafe/-u or --yes/-y; USE WITH EXTREME CARE

      "PXVE_COLOUR": Force colour on the output even if Click determines it is not a console (e.g. with 'watch')

      "PXVE_SCAN_WORKERS": Number of nodes or storages queried concurrently during scans

    If no "--url" is given, the instance from "-i"/"--instance"/"PXVE_INSTANCE" is used, then the current
    instance set with "pxve instance use". Instances are stored in "pxve.yaml" under "PXVE_CLIENT_DIR",
    or "~/.config/pxve" by default.
    """

    global CLI_CONFIG
    CLI_CONFIG["quiet"] = _quiet
    CLI_CONFIG["silent"] = _silent

    cli_client_dir = environ.get("PXVE_CLIENT_DIR", None)
    home_dir = environ.get("HOME", None)
    if cli_client_dir:
        store_path = cli_client_dir
    elif home_dir:
        store_path = f"{home_dir}/.config/pxve"
    else:
        echo(
            CLI_CONFIG,
            "WARNING: No client or home configuration directory found; using /tmp instead",
            stderr=True,
        )
        store_path = "/tmp/pxve"

    if not path.isdir(store_path):
        makedirs(store_path)

    if not path.isfile(f"{store_path}/{DEFAULT_STORE_FILENAME}"):
        update_store(store_path, DEFAULT_STORE_DATA)

    store_data = get_store(store_path)

    inline = {
        "url": _url,
        "token_id": _token_id,
        "token_secret": _token_secret,
        "username": _username,
        "password": _password,
        "verify_ssl": _secure,
    }
    CLI_CONFIG = get_config(store_data, _instance, inline)

    if not CLI_CONFIG.get("badcfg", None):
        CLI_CONFIG["debug"] = _debug
    CLI_CONFIG["unsafe"] = _unsafe
    CLI_CONFIG["colour"] = _colour
    CLI_CONFIG["quiet"] = _quiet
    CLI_CONFIG["silent"] = _silent
    CLI_CONFIG["store_path"] = store_path

    audit()


###############################################################################
# Click command tree
###############################################################################

cli_instance.add_command(cli_instance_add)
cli_instance.add_command(cli_instance_remove)
cli_instance.add_command(cli_instance_use)
cli_instance.add_command(cli_instance_list)
cli_instance.add_command(cli_instance_show)
cli.add_command(cli_instance)
cli_node.add_command(cli_node_list)
cli_node.add_command(cli_node_status)
cli.add_command(cli_node)
cli_cluster.add_command(cli_cluster_status)
cli_cluster.add_command(cli_cluster_resources)
cli_cluster.add_command(cli_cluster_tasks)
cli_cluster.add_command(cli_cluster_nextid)
cli_cluster.add_command(cli_cluster_tags)
cli.add_command(cli_cluster)
cli_vm.add_command(cli_vm_config)
cli_vm_disk.add_command(cli_vm_disk_resize)
cli_vm_disk.add_command(cli_vm_disk_move)
cli_vm_disk.add_command(cli_vm_disk_detach)
cli_vm.add_command(cli_vm_disk)
cli_vm_agent.add_command(cli_vm_agent_exec)
cli_vm.add_command(cli_vm_agent)
cli.add_command(cli_vm)
cli.add_command(cli_ct)
cli_backup.add_command(cli_backup_storages)
cli_backup.add_command(cli_backup_list)
cli_backup.add_command(cli_backup_create)
cli_backup.add_command(cli_backup_delete)
cli_backup.add_command(cli_backup_restore)
cli_backup.add_command(cli_backup_info)
cli.add_command(cli_backup)
cli_task.add_command(cli_task_status)
cli_task.add_command(cli_task_watch)
cli.add_command(cli_task)
cli_user.add_command(cli_user_list)
cli_user.add_command(cli_user_create)
cli_user.add_command(cli_user_delete)
cli_user.add_command(cli_user_password)
cli_user_token.add_command(cli_user_token_list)
cli_user_token.add_command(cli_user_token_create)
cli_user_token.add_command(cli_user_token_delete)
cli_user.add_command(cli_user_token)
cli.add_command(cli_user)
cli_group.add_command(cli_group_list)
cli_group.add_command(cli_group_show)
cli_group.add_command(cli_group_create)
cli_group.add_command(cli_group_delete)
cli_group.add_command(cli_group_add_member)
cli_group.add_command(cli_group_remove_member)
cli.add_command(cli_group)
cli_acl.add_command(cli_acl_list)
cli_acl.add_command(cli_acl_grant)
cli_acl.add_command(cli_acl_revoke)
cli.add_command(cli_acl)
cli_role.add_command(cli_role_list)
cli.add_command(cli_role)
