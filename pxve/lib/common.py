#!/usr/bin/env python3

# common.py - pxve CLI client function library, Common functions
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

from click import echo
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from math import ceil
from requests import Session, Response
from requests.exceptions import RequestException
from urllib3 import disable_warnings

from pxve.cli.helpers import VERSION


#
# Exceptions
#
class PxveError(Exception):
    """
    Base class for all errors raised by the pxve library; carries a list of
    context strings (node, storage, id) appended as the error passes up.
    """

    def __init__(self, message, context=None):
        super().__init__(message)
        self.message = message
        self.context = list(context or [])

    def add_context(self, text):
        self.context.append(text)

    def __str__(self):
        if not self.context:
            return str(self.message)
        return "{} ({})".format(self.message, "; ".join(self.context))


class InvalidArgumentError(PxveError):
    """
    A malformed identifier, volume ID, or missing required value.
    """

    pass


class APIError(PxveError):
    """
    A non-success response from the Proxmox VE API.
    """

    def __init__(self, message, status_code=None, context=None):
        super().__init__(message, context=context)
        self.status_code = status_code


class NotFoundError(APIError):
    """
    The requested resource does not exist (on the queried node, or anywhere).
    """

    pass


class ConflictError(APIError):
    """
    The request collides with an existing resource, e.g. a duplicate VMID.
    """

    pass


class PermissionDeniedError(APIError):
    """
    The configured account may not perform the request.
    """

    pass


class APIConnectionError(APIError):
    """
    The API could not be reached at all.
    """

    pass


class TaskFailedError(PxveError):
    """
    A watched task stopped with a failure exit status; the message is the
    server-provided exit status verbatim.
    """

    def __init__(self, message, upid=None, context=None):
        super().__init__(message, context=context)
        self.upid = upid


class WatchCancelledError(PxveError):
    """
    The caller stopped observing a task. The task itself keeps running on the
    server; nothing is sent to stop it.
    """

    def __init__(self, message, upid=None, context=None):
        super().__init__(message, context=context)
        self.upid = upid


@contextmanager
def error_context(text):
    """
    Append {text} to any PxveError raised inside the block and re-raise it
    """
    try:
        yield
    except PxveError as e:
        e.add_context(text)
        raise


#
# Formatting helpers
#
def format_bytes(size_bytes):
    byte_unit_matrix = {
        "B": 1,
        "K": 1024,
        "M": 1024 * 1024,
        "G": 1024 * 1024 * 1024,
        "T": 1024 * 1024 * 1024 * 1024,
        "P": 1024 * 1024 * 1024 * 1024 * 1024,
    }
    human_bytes = "0B"
    for unit in sorted(byte_unit_matrix, key=byte_unit_matrix.get):
        formatted_bytes = int(ceil(size_bytes / byte_unit_matrix[unit]))
        if formatted_bytes < 10000:
            human_bytes = "{}{}".format(formatted_bytes, unit)
            break
    return human_bytes


def format_age(age_secs):
    human_age = f"{age_secs} seconds"

    age_minutes = int(age_secs / 60)
    age_minutes_rounded = int(round(age_secs / 60))
    if age_minutes > 0:
        if age_minutes_rounded > 1:
            s = "s"
        else:
            s = ""
        human_age = f"{age_minutes_rounded} minute{s}"
    age_hours = int(age_secs / 3600)
    age_hours_rounded = int(round(age_secs / 3600))
    if age_hours > 0:
        if age_hours_rounded > 1:
            s = "s"
        else:
            s = ""
        human_age = f"{age_hours_rounded} hour{s}"
    age_days = int(age_secs / 86400)
    age_days_rounded = int(round(age_secs / 86400))
    if age_days > 0:
        if age_days_rounded > 1:
            s = "s"
        else:
            s = ""
        human_age = f"{age_days_rounded} day{s}"

    return human_age


#
# API access
#
class ErrorResponse(Response):
    def __init__(self, json_data, status_code, headers, reason=None):
        super().__init__()
        self.json_data = json_data
        self.status_code = status_code
        self.headers = headers
        self.reason = reason
        self.connection_failed = True

    def json(self):
        return self.json_data


def get_session(config):
    """
    Return the requests Session for this config, creating it on first use

    The session is shared by every call made with the same config, including
    concurrent node and storage scans.
    """
    session = config.get("session")
    if session is None:
        session = Session()
        config["session"] = session
    return session


def login(config):
    """
    Obtain a ticket and CSRF token for username/password authentication

    API endpoint: POST /api2/json/access/ticket
    API arguments: username={username}, password={password}
    API schema: {"ticket":"{ticket}","CSRFPreventionToken":"{token}",...}
    """
    data = {"username": config["username"], "password": config["password"]}
    response = call_api(config, "post", "/access/ticket", data=data, authenticate=False)

    with error_context(f"logging in as {config['username']}"):
        ticket_data = get_data(response)

    config["ticket"] = ticket_data["ticket"]
    config["csrf_token"] = ticket_data["CSRFPreventionToken"]


def auth_headers(config, operation):
    headers = dict()

    if config.get("token_id") and config.get("token_secret"):
        headers["Authorization"] = "PVEAPIToken={}={}".format(
            config["token_id"], config["token_secret"]
        )
    elif config.get("username") and config.get("password"):
        if config.get("ticket") is None:
            login(config)
        headers["Cookie"] = "PVEAuthCookie={}".format(config["ticket"])
        if operation != "get":
            headers["CSRFPreventionToken"] = config["csrf_token"]

    return headers


def call_api(
    config,
    operation,
    request_uri,
    params=None,
    data=None,
    authenticate=True,
):
    # Set the connect timeout to 2 seconds but a long (1 hour) data timeout
    timeout = (2.05, config.get("api_timeout", 3600))

    # Craft the URI
    uri = "{}{}{}".format(config["api_url"], config["api_prefix"], request_uri)

    # Add custom User-Agent header
    headers = {"User-Agent": f"pxve/{VERSION}"}

    # Craft the authentication headers if required
    if authenticate:
        headers.update(auth_headers(config, operation))

    # Determine the request type and hit the API
    if not config.get("verify_ssl", True):
        disable_warnings()
    try:
        response = get_session(config).request(
            operation.upper(),
            uri,
            timeout=timeout,
            headers=headers,
            params=params,
            data=data,
            verify=config.get("verify_ssl", True),
        )
    except RequestException as e:
        message = "Failed to connect to the API: {}".format(e)
        response = ErrorResponse({"data": None}, 504, None, reason=message)

    # Display debug output
    if config.get("debug"):
        echo("API endpoint: {} {}".format(operation.upper(), uri), err=True)
        echo("Response code: {}".format(response.status_code), err=True)
        echo("Response headers: {}".format(response.headers), err=True)
        echo(err=True)

    # Return the response object
    return response


def error_message(response):
    """
    Build a readable message from an error response; the API puts the reason
    in the status line and parameter errors in an "errors" object
    """
    try:
        body = response.json() or dict()
    except ValueError:
        body = dict()

    message = body.get("message") or response.reason or ""
    message = message.strip() or f"HTTP {response.status_code}"

    errors = body.get("errors") or dict()
    if errors:
        details = "; ".join(f"{key}: {value}" for key, value in errors.items())
        message = f"{message} ({details})"

    return message


def error_class(response, message):
    if getattr(response, "connection_failed", False):
        return APIConnectionError
    if response.status_code in [401, 403]:
        return PermissionDeniedError
    lowered = message.lower()
    if response.status_code == 404 or "does not exist" in lowered:
        return NotFoundError
    if "already exists" in lowered:
        return ConflictError
    return APIError


def get_data(response):
    """
    Unwrap the {"data": ...} envelope of a successful response, or raise the
    error class matching a failed one
    """
    if response.status_code == 200:
        return response.json().get("data")

    message = error_message(response)
    raise error_class(response, message)(message, status_code=response.status_code)


def submitted_task(data):
    """
    Convert the data of a mutating call into a TaskHandle; None when the API
    completed the request synchronously and returned no task
    """
    from pxve.lib.models import parse_upid

    if not data:
        return None
    return parse_upid(data)


#
# Scanning helpers
#
def first_success(candidates, probe, workers=1, skip=(APIError,)):
    """
    Run probe(candidate) over {candidates} and return the first non-None
    result; None if every candidate missed

    Errors of the {skip} classes count as a miss for that candidate. With
    {workers} > 1 the probes run concurrently and whichever success completes
    first wins; outstanding probes are cancelled.
    """
    candidates = list(candidates)

    if workers <= 1 or len(candidates) <= 1:
        for candidate in candidates:
            try:
                result = probe(candidate)
            except skip:
                continue
            if result is not None:
                return result
        return None

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(probe, candidate) for candidate in candidates]
        try:
            for future in as_completed(futures):
                try:
                    result = future.result()
                except skip:
                    continue
                if result is not None:
                    return result
        finally:
            for future in futures:
                future.cancel()

    return None


def scan_map(items, function, workers=1, skip=(), default=None):
    """
    Return [function(item) for item in items], run with up to {workers}
    threads; results keep the order of {items}

    Errors of the {skip} classes give {default} for that item; any other error
    is propagated.
    """
    items = list(items)

    def _guarded(item):
        try:
            return function(item)
        except skip:
            return default

    if workers <= 1 or len(items) <= 1:
        return [_guarded(item) for item in items]

    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(_guarded, items))
