from __future__ import annotations

import pytest


UPID_TEMPLATE = "UPID:{node}:0000A1B2:00C3D4E5:65F1A2B3:{task_type}:{task_id}:root@pam:"


def make_upid(node="pve1", task_type="qmstart", task_id="100"):
    return UPID_TEMPLATE.format(node=node, task_type=task_type, task_id=task_id)


class FakeResponse:
    """
    Minimal stand-in for requests.Response carrying a Proxmox {"data": ...} body
    """

    def __init__(self, data=None, status_code=200, reason="OK", message=None):
        self.status_code = status_code
        self.reason = reason
        self.headers = {}
        self._body = {"data": data}
        if message is not None:
            self._body["message"] = message

    def json(self):
        return self._body


def api_error(status_code, reason):
    return FakeResponse(None, status_code=status_code, reason=reason)


def sequence(*results):
    """
    Route handler returning each of {results} in turn, repeating the last one
    """
    remaining = list(results)

    def handler(params, data):
        if len(remaining) > 1:
            return remaining.pop(0)
        return remaining[0]

    return handler


class FakeAPI:
    """
    Fake Proxmox VE API plugged in as the requests session of a config

    Routes map (METHOD, path) to a response body, a FakeResponse, or a
    callable(params, data) returning either. Unrouted requests answer 404.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []

    def route(self, method, path, result):
        self.routes[(method.upper(), path)] = result

    def request(self, method, url, timeout=None, headers=None, params=None, data=None, verify=None):
        path = url.split("/api2/json", 1)[1]
        self.calls.append(
            {"method": method, "path": path, "params": params, "data": data, "headers": headers}
        )

        if (method, path) not in self.routes:
            return api_error(404, f"no such path {path}")
        result = self.routes[(method, path)]
        if callable(result):
            result = result(params, data)
        if isinstance(result, FakeResponse):
            return result
        return FakeResponse(result)

    def paths(self, method=None):
        return [call["path"] for call in self.calls if method is None or call["method"] == method]

    def last(self, method, path):
        matching = [
            call for call in self.calls if call["method"] == method and call["path"] == path
        ]
        return matching[-1] if matching else None


@pytest.fixture
def api():
    return FakeAPI()


@pytest.fixture
def config(api):
    return {
        "debug": False,
        "instance": "test",
        "api_url": "https://pve.example.com:8006",
        "api_prefix": "/api2/json",
        "token_id": "root@pam!pxve",
        "token_secret": "11111111-2222-3333-4444-555555555555",
        "verify_ssl": True,
        "scan_workers": 1,
        "session": api,
    }


@pytest.fixture
def three_nodes(api):
    api.route("GET", "/nodes", [{"node": "pve1"}, {"node": "pve2"}, {"node": "pve3"}])
    return ["pve1", "pve2", "pve3"]


def task_log_route(lines):
    """
    Route handler serving {lines} (a list that may grow) as paged task log entries
    """

    def handler(params, data):
        start = params.get("start", 0)
        limit = params.get("limit", 50)
        page = lines[start : start + limit]
        if not page:
            return [{"n": start + 1, "t": "no content"}] if start == 0 else []
        return [{"n": start + idx + 1, "t": text} for idx, text in enumerate(page)]

    return handler
