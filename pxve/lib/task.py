#!/usr/bin/env python3

# task.py - pxve CLI client function library, Task functions
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

from time import sleep, time

from pxve.lib.common import (
    APIError,
    PxveError,
    WatchCancelledError,
    call_api,
    error_context,
    get_data,
)
from pxve.lib.models import TaskResult


# Lines requested per log page
LOG_PAGE_SIZE = 50

# Placeholder line the API returns for a log with no output yet
NO_CONTENT = "no content"


class TaskLogUnavailableError(PxveError):
    """
    The log of a task could not be opened for following.
    """

    pass


#
# Primary functions
#
def task_status(config, handle):
    """
    Get the status of task {handle}

    API endpoint: GET /api2/json/nodes/{node}/tasks/{upid}/status
    API arguments:
    API schema: {"status":"running|stopped","exitstatus":"{message}",...}
    """
    response = call_api(config, "get", f"/nodes/{handle.node}/tasks/{handle.upid}/status")

    with error_context(f"task {handle.upid}"):
        return get_data(response) or dict()


def task_log(config, handle, start=0, limit=LOG_PAGE_SIZE):
    """
    Get up to {limit} log lines of task {handle} from line {start}

    API endpoint: GET /api2/json/nodes/{node}/tasks/{upid}/log
    API arguments: start={start}, limit={limit}
    API schema: [{"n":{line_number},"t":"{text}"},etc.]
    """
    params = {"start": start, "limit": limit}
    response = call_api(
        config, "get", f"/nodes/{handle.node}/tasks/{handle.upid}/log", params=params
    )

    with error_context(f"task {handle.upid}"):
        entries = get_data(response) or list()

    return [entry.get("t", "") for entry in entries]


def is_task_running(status):
    return status.get("status") == "running"


def is_task_failed(status):
    """
    A stopped task failed unless it exited "OK" or with a "WARNINGS: n" summary
    """
    if is_task_running(status):
        return False
    exit_status = status.get("exitstatus", "")
    return exit_status != "OK" and not exit_status.startswith("WARNINGS")


def task_result(status):
    return TaskResult(
        failed=is_task_failed(status),
        exit_status=status.get("exitstatus", ""),
        running=is_task_running(status),
    )


def _pause(interval, cancel):
    """
    Sleep for {interval}, returning True early if {cancel} is set
    """
    if cancel is None:
        sleep(interval)
        return False
    return cancel.wait(interval)


def _content(lines):
    return [line for line in lines if line != NO_CONTENT]


#
# Log following
#
def open_task_log(config, handle, interval=1, cancel=None):
    """
    Open a follow iterator over the log of task {handle}

    The first page is fetched before returning; an empty first page is
    retried three times, {interval} seconds apart. Raises
    TaskLogUnavailableError if the log cannot be read or stays empty.
    """
    try:
        lines = _content(task_log(config, handle))
        for _ in range(3):
            if lines:
                break
            if _pause(interval, cancel):
                break
            lines = _content(task_log(config, handle))
    except APIError as e:
        raise TaskLogUnavailableError(
            f"No log available for task {handle.upid}: {e.message}"
        )

    if not lines:
        raise TaskLogUnavailableError(f"No log available for task {handle.upid}")

    return _follow_task_log(config, handle, lines, interval, cancel)


def _follow_task_log(config, handle, lines, interval, cancel):
    """
    Yield {lines}, then new log lines until the task stops and its log is drained

    There is no timeout: the iterator ends only when the server reports the
    task stopped, an API error occurs, or {cancel} is set.
    """
    position = len(lines)
    for line in lines:
        yield line

    while True:
        try:
            # Check the state before reading so a stopped task gets fully drained
            running = is_task_running(task_status(config, handle))
            while True:
                page = _content(task_log(config, handle, position))
                position += len(page)
                for line in page:
                    yield line
                if len(page) < LOG_PAGE_SIZE:
                    break
        except APIError:
            return

        if not running:
            return
        if _pause(interval, cancel):
            return


def wait_for_task(config, handle, max_wait=300, interval=1, cancel=None):
    """
    Poll task {handle} until it stops or {max_wait} seconds elapse

    Status errors during polling are treated as "not finished yet". Returns
    the last status seen, or None if none could be read.
    """
    t_start = time()
    status = None

    while True:
        try:
            status = task_status(config, handle)
            if not is_task_running(status):
                return status
        except APIError:
            pass

        if time() - t_start >= max_wait:
            return status
        if _pause(interval, cancel):
            raise WatchCancelledError(
                f"Stopped watching task {handle.upid}; it continues on node {handle.node}",
                upid=handle.upid,
            )


def watch_task(
    config,
    handle,
    max_wait=300,
    on_line=None,
    on_fallback=None,
    cancel=None,
    interval=1,
):
    """
    Drive task {handle} to a terminal TaskResult

    The task log is followed when it can be opened, forwarding each non-empty
    line to {on_line}; otherwise {on_fallback} is called and the task status
    is polled for at most {max_wait} seconds. Either way one final status
    probe decides the result, since the log may end before the exit status
    is recorded.

    Setting the {cancel} event only stops this client from observing: the
    task keeps running on the server and WatchCancelledError is raised.
    Following the log has no timeout of its own.
    """

    def cancelled():
        return cancel is not None and cancel.is_set()

    def give_up():
        return WatchCancelledError(
            f"Stopped watching task {handle.upid}; it continues on node {handle.node}",
            upid=handle.upid,
        )

    try:
        stream = open_task_log(config, handle, interval=interval, cancel=cancel)
    except TaskLogUnavailableError:
        stream = None

    if cancelled():
        raise give_up()

    if stream is None:
        if on_fallback is not None:
            on_fallback(handle)
        wait_for_task(config, handle, max_wait=max_wait, interval=interval, cancel=cancel)
    else:
        for line in stream:
            if cancelled():
                break
            if line and on_line is not None:
                on_line(line)

    if cancelled():
        raise give_up()

    return task_result(task_status(config, handle))
