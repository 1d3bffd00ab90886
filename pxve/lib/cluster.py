#!/usr/bin/env python3

# cluster.py - pxve CLI client function library, Cluster functions
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

from pxve.lib.common import APIError, call_api, error_context, get_data


def get_info(config):
    """
    Get status of the cluster and its nodes

    API endpoint: GET /api2/json/cluster/status
    API arguments:
    API schema: [{json_data_object},{json_data_object},etc.]
    """
    response = call_api(config, "get", "/cluster/status")

    with error_context("getting cluster status"):
        return get_data(response) or list()


def get_resources(config, resource_type=None):
    """
    Get a snapshot of all cluster resources, optionally limited to a type

    API endpoint: GET /api2/json/cluster/resources
    API arguments: type={resource_type}
    API schema: [{json_data_object},{json_data_object},etc.]
    """
    params = dict()
    if resource_type:
        params["type"] = resource_type

    response = call_api(config, "get", "/cluster/resources", params=params)

    with error_context("listing cluster resources"):
        return get_data(response) or list()


def get_tasks(config):
    """
    Get the recent task list of the cluster

    API endpoint: GET /api2/json/cluster/tasks
    API arguments:
    API schema: [{json_data_object},{json_data_object},etc.]
    """
    response = call_api(config, "get", "/cluster/tasks")

    with error_context("listing cluster tasks"):
        return get_data(response) or list()


def next_id(config):
    """
    Get the next free VMID of the cluster

    The value is only valid at the moment of the call; nothing is reserved,
    and two callers may receive the same ID.

    API endpoint: GET /api2/json/cluster/nextid
    API arguments:
    API schema: "{vmid}"
    """
    response = call_api(config, "get", "/cluster/nextid")

    with error_context("getting next available ID"):
        data = get_data(response)
        try:
            return int(data)
        except (TypeError, ValueError):
            raise APIError(f"Invalid next ID '{data}' returned by the API")
