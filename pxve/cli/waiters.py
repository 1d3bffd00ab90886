#!/usr/bin/env python3

# waiters.py - pxve Click CLI output waiters library
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

from time import time

from pxve.cli.helpers import echo
from pxve.lib.common import TaskFailedError
from pxve.lib.models import raise_for_status

import pxve.lib.task


def wait_for_task(CLI_CONFIG, handle, max_wait=300):
    """
    Watch a task to completion, echoing its log as it runs

    Returns a (retcode, retmsg) pair; a failed task is a False retcode with
    the server's exit status as the message. Interrupting with Ctrl-C stops
    only the watching, never the task.
    """

    if handle is None:
        # The API completed the request synchronously
        return True, "done."

    echo(CLI_CONFIG, f"Task ID: {handle.upid} ({handle.task_type}) assigned to node {handle.node}")
    echo(CLI_CONFIG, "")

    def on_fallback(handle):
        echo(
            CLI_CONFIG,
            f"No log output available yet; waiting up to {max_wait}s for the task to finish...",
        )

    t_start = time()
    try:
        result = pxve.lib.task.watch_task(
            CLI_CONFIG,
            handle,
            max_wait=max_wait,
            on_line=lambda line: echo(CLI_CONFIG, f"  {line}"),
            on_fallback=on_fallback,
        )
        raise_for_status(result, handle)
    except KeyboardInterrupt:
        echo(CLI_CONFIG, "")
        return (
            False,
            f"Stopped watching task {handle.upid}; it continues running on node {handle.node}.",
        )
    except TaskFailedError as e:
        return False, f"Task failed: {e.message}"
    t_end = time()

    echo(CLI_CONFIG, "")
    if result.running:
        return (
            True,
            f"Task {handle.upid} is still running after {int(t_end - t_start)}s; check it later with \"pxve task status\".",
        )

    return True, f"Task finished: {result.exit_status} [{int(t_end - t_start)}s]"
