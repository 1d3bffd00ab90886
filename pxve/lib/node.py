#!/usr/bin/env python3

# node.py - pxve CLI client function library, Node functions
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

from pxve.lib.common import call_api, error_context, get_data
from pxve.lib.models import StorageInfo


#
# Primary functions
#
def node_list(config):
    """
    Get list information about all cluster nodes

    API endpoint: GET /api2/json/nodes
    API arguments:
    API schema: [{json_data_object},{json_data_object},etc.]
    """
    response = call_api(config, "get", "/nodes")

    with error_context("listing nodes"):
        return get_data(response) or list()


def get_nodes(config):
    """
    Get the names of all cluster nodes, in API order
    """
    return [node["node"] for node in node_list(config)]


def node_status(config, node):
    """
    Get the full status of node

    API endpoint: GET /api2/json/nodes/{node}/status
    API arguments:
    API schema: {json_data_object}
    """
    response = call_api(config, "get", f"/nodes/{node}/status")

    with error_context(f"node {node}"):
        return get_data(response)


def storage_has_content(storage, content_type):
    return content_type in [c.strip() for c in storage.get("content", "").split(",")]


def node_storages(config, node, content_type=None):
    """
    Get the storages of node, limited to those advertising {content_type}

    API endpoint: GET /api2/json/nodes/{node}/storage
    API arguments:
    API schema: [{json_data_object},{json_data_object},etc.]
    """
    response = call_api(config, "get", f"/nodes/{node}/storage")

    with error_context(f"listing storages on node {node}"):
        storages = get_data(response) or list()

    return [
        StorageInfo(
            name=storage["storage"],
            node=node,
            type=storage.get("type", ""),
            content=storage.get("content", ""),
            avail=storage.get("avail", 0),
            used=storage.get("used", 0),
            total=storage.get("total", 0),
        )
        for storage in storages
        if content_type is None or storage_has_content(storage, content_type)
    ]


def storage_content(config, node, storage, content_type=None):
    """
    Get the content listing of storage on node

    API endpoint: GET /api2/json/nodes/{node}/storage/{storage}/content
    API arguments: content={content_type}
    API schema: [{json_data_object},{json_data_object},etc.]
    """
    params = dict()
    if content_type:
        params["content"] = content_type

    response = call_api(
        config, "get", f"/nodes/{node}/storage/{storage}/content", params=params
    )

    with error_context(f"storage {storage} on node {node}"):
        return get_data(response) or list()
