from __future__ import annotations

import threading

import pytest

from pxve.lib.common import TaskFailedError, WatchCancelledError
from pxve.lib.models import parse_upid, raise_for_status
import pxve.lib.task

from conftest import api_error, make_upid, sequence, task_log_route


UPID = make_upid(node="pve1", task_type="vzdump", task_id="100")
STATUS_PATH = f"/nodes/pve1/tasks/{UPID}/status"
LOG_PATH = f"/nodes/pve1/tasks/{UPID}/log"

RUNNING = {"status": "running"}
STOPPED_OK = {"status": "stopped", "exitstatus": "OK"}


def _handle():
    return parse_upid(UPID)


@pytest.mark.parametrize(
    ("status", "failed"),
    [
        (STOPPED_OK, False),
        ({"status": "stopped", "exitstatus": "WARNINGS: 2"}, False),
        ({"status": "stopped", "exitstatus": "job errors"}, True),
        ({"status": "stopped", "exitstatus": ""}, True),
        (RUNNING, False),
    ],
)
def test_is_task_failed(status, failed) -> None:
    assert pxve.lib.task.is_task_failed(status) is failed


def test_task_log_requests_pages(config, api) -> None:
    api.route("GET", LOG_PATH, task_log_route(["INFO: one", "INFO: two", "INFO: three"]))

    lines = pxve.lib.task.task_log(config, _handle(), start=1, limit=1)

    assert lines == ["INFO: two"]
    assert api.last("GET", LOG_PATH)["params"] == {"start": 1, "limit": 1}


def test_watch_task_streams_log_then_probes_status(config, api) -> None:
    log = ["INFO: starting new backup job: vzdump 100", "INFO: creating archive"]
    statuses = iter([RUNNING])

    def status_handler(params, data):
        status = next(statuses, STOPPED_OK)
        if status is RUNNING:
            # The task writes its last line while we are following it
            log.append("INFO: Finished Backup of VM 100 (00:00:05)")
        return status

    api.route("GET", LOG_PATH, task_log_route(log))
    api.route("GET", STATUS_PATH, status_handler)
    seen = []
    fallbacks = []

    result = pxve.lib.task.watch_task(
        config, _handle(), on_line=seen.append, on_fallback=fallbacks.append, interval=0
    )

    assert seen == [
        "INFO: starting new backup job: vzdump 100",
        "INFO: creating archive",
        "INFO: Finished Backup of VM 100 (00:00:05)",
    ]
    assert fallbacks == []
    assert result.failed is False
    assert result.exit_status == "OK"
    assert result.running is False


def test_watch_task_retries_empty_first_page(config, api) -> None:
    first_pages = iter([[{"n": 1, "t": "no content"}]])

    def log_handler(params, data):
        page = next(first_pages, None)
        if page is not None:
            return page
        return task_log_route(["TASK OK"])(params, data)

    api.route("GET", LOG_PATH, log_handler)
    api.route("GET", STATUS_PATH, STOPPED_OK)
    seen = []

    result = pxve.lib.task.watch_task(config, _handle(), on_line=seen.append, interval=0)

    assert seen == ["TASK OK"]
    assert result.exit_status == "OK"


def test_watch_task_falls_back_to_polling(config, api) -> None:
    api.route("GET", LOG_PATH, task_log_route([]))
    api.route("GET", STATUS_PATH, sequence(RUNNING, RUNNING, {"status": "stopped", "exitstatus": "job errors"}))
    seen = []
    fallbacks = []

    result = pxve.lib.task.watch_task(
        config, _handle(), max_wait=30, on_line=seen.append, on_fallback=fallbacks.append, interval=0
    )

    assert seen == []
    assert [handle.upid for handle in fallbacks] == [UPID]
    assert result.failed is True
    assert result.exit_status == "job errors"


def test_failed_task_message_is_verbatim(config, api) -> None:
    message = "unable to create VM 101 - VM 101 already exists on node 'pve1'"
    api.route("GET", STATUS_PATH, {"status": "stopped", "exitstatus": message})

    handle = _handle()
    result = pxve.lib.task.watch_task(config, handle, max_wait=0, interval=0)

    with pytest.raises(TaskFailedError) as excinfo:
        raise_for_status(result, handle)

    assert excinfo.value.message == message
    assert str(excinfo.value) == message


def test_watch_task_reports_running_after_polling_bound(config, api) -> None:
    api.route("GET", STATUS_PATH, RUNNING)

    result = pxve.lib.task.watch_task(config, _handle(), max_wait=0, interval=0)

    assert result.failed is False
    assert result.running is True


def test_watch_task_always_probes_status_at_the_end(config, api) -> None:
    api.route("GET", LOG_PATH, task_log_route(["INFO: restoring archive"]))
    api.route("GET", STATUS_PATH, sequence(api_error(500, "got timeout"), STOPPED_OK))

    result = pxve.lib.task.watch_task(config, _handle(), interval=0)

    assert result.exit_status == "OK"
    assert api.paths("GET").count(STATUS_PATH) == 2


def test_wait_for_task_ignores_status_errors(config, api) -> None:
    api.route("GET", STATUS_PATH, sequence(api_error(500, "got timeout"), RUNNING, STOPPED_OK))

    status = pxve.lib.task.wait_for_task(config, _handle(), max_wait=30, interval=0)

    assert status == STOPPED_OK


def test_cancel_before_watching_raises_without_side_effects(config, api) -> None:
    api.route("GET", LOG_PATH, task_log_route(["INFO: starting"]))
    api.route("GET", STATUS_PATH, RUNNING)
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(WatchCancelledError) as excinfo:
        pxve.lib.task.watch_task(config, _handle(), cancel=cancel, interval=0)

    assert excinfo.value.upid == UPID
    assert {call["method"] for call in api.calls} == {"GET"}


def test_cancel_while_streaming_stops_forwarding(config, api) -> None:
    api.route("GET", LOG_PATH, task_log_route(["INFO: one", "INFO: two", "INFO: three"]))
    api.route("GET", STATUS_PATH, RUNNING)
    cancel = threading.Event()
    seen = []

    def on_line(line):
        seen.append(line)
        cancel.set()

    with pytest.raises(WatchCancelledError):
        pxve.lib.task.watch_task(config, _handle(), on_line=on_line, cancel=cancel, interval=0)

    assert seen == ["INFO: one"]
    assert {call["method"] for call in api.calls} == {"GET"}


def test_cancel_while_polling(config, api) -> None:
    api.route("GET", STATUS_PATH, RUNNING)
    cancel = threading.Event()

    def on_fallback(handle):
        cancel.set()

    with pytest.raises(WatchCancelledError):
        pxve.lib.task.watch_task(
            config, _handle(), max_wait=30, on_fallback=on_fallback, cancel=cancel, interval=0
        )
