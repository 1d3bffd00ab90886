#!/usr/bin/env python3

# access.py - pxve CLI client function library, User, group and ACL functions
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

from pxve.lib.common import InvalidArgumentError, call_api, error_context, get_data
from pxve.lib.models import validate_vmid


#
# Users
#
def list_users(config):
    """
    Get all users

    API endpoint: GET /api2/json/access/users
    API schema: [{json_data_object},{json_data_object},etc.]
    """
    response = call_api(config, "get", "/access/users")

    with error_context("listing users"):
        return get_data(response) or list()


def get_user(config, userid):
    """
    API endpoint: GET /api2/json/access/users/{userid}
    API schema: {json_data_object}
    """
    response = call_api(config, "get", f"/access/users/{userid}")

    with error_context(f"user {userid}"):
        return get_data(response) or dict()


def create_user(config, userid, password=None, email=None, comment=None, groups=None):
    """
    API endpoint: POST /api2/json/access/users
    API arguments: userid={userid}, password={password}, email={email}, comment={comment}, groups={groups}
    """
    params = {"userid": userid}
    if password:
        params["password"] = password
    if email:
        params["email"] = email
    if comment:
        params["comment"] = comment
    if groups:
        params["groups"] = ",".join(groups)

    response = call_api(config, "post", "/access/users", data=params)

    with error_context(f"creating user {userid}"):
        get_data(response)


def delete_user(config, userid):
    response = call_api(config, "delete", f"/access/users/{userid}")

    with error_context(f"deleting user {userid}"):
        get_data(response)


def change_password(config, userid, password):
    """
    API endpoint: PUT /api2/json/access/password
    API arguments: userid={userid}, password={password}
    """
    params = {"userid": userid, "password": password}
    response = call_api(config, "put", "/access/password", data=params)

    with error_context(f"changing password of user {userid}"):
        get_data(response)


def user_groups(user):
    groups = user.get("groups") or list()
    if isinstance(groups, str):
        groups = [group for group in groups.split(",") if group]
    return list(groups)


def validate_userid(userid):
    """
    Return {userid} if it has the "user@realm" form, else raise InvalidArgumentError
    """
    name, _, realm = str(userid).partition("@")
    if not name or not realm:
        raise InvalidArgumentError(f"Invalid user ID '{userid}'; expected user@realm, e.g. alice@pve")
    return userid


#
# API tokens
#
def list_tokens(config, userid):
    """
    API endpoint: GET /api2/json/access/users/{userid}/token
    API schema: [{"tokenid":"{tokenid}","comment":"{comment}","privsep":0|1,"expire":{timestamp}},etc.]
    """
    validate_userid(userid)
    response = call_api(config, "get", f"/access/users/{userid}/token")

    with error_context(f"listing tokens of user {userid}"):
        return get_data(response) or list()


def create_token(config, userid, tokenid, comment=None, expire=0, privsep=True):
    """
    Create API token {tokenid} of user {userid}; the returned secret ("value")
    cannot be read again later

    API endpoint: POST /api2/json/access/users/{userid}/token/{tokenid}
    API arguments: comment={comment}, expire={expire}, privsep={privsep}
    API schema: {"full-tokenid":"{userid}!{tokenid}","value":"{secret}","info":{json_data_object}}
    """
    validate_userid(userid)

    params = {"privsep": 1 if privsep else 0}
    if comment:
        params["comment"] = comment
    if expire:
        params["expire"] = expire

    response = call_api(config, "post", f"/access/users/{userid}/token/{tokenid}", data=params)

    with error_context(f"creating token {tokenid} of user {userid}"):
        return get_data(response) or dict()


def delete_token(config, userid, tokenid):
    validate_userid(userid)
    response = call_api(config, "delete", f"/access/users/{userid}/token/{tokenid}")

    with error_context(f"deleting token {tokenid} of user {userid}"):
        get_data(response)


#
# Groups
#
def list_groups(config):
    """
    API endpoint: GET /api2/json/access/groups
    API schema: [{json_data_object},{json_data_object},etc.]
    """
    response = call_api(config, "get", "/access/groups")

    with error_context("listing groups"):
        return get_data(response) or list()


def get_group(config, groupid):
    """
    API endpoint: GET /api2/json/access/groups/{groupid}
    API schema: {"comment":"{comment}","members":["{userid}",etc.]}
    """
    response = call_api(config, "get", f"/access/groups/{groupid}")

    with error_context(f"group {groupid}"):
        return get_data(response) or dict()


def create_group(config, groupid, comment=None):
    params = {"groupid": groupid}
    if comment:
        params["comment"] = comment

    response = call_api(config, "post", "/access/groups", data=params)

    with error_context(f"creating group {groupid}"):
        get_data(response)


def delete_group(config, groupid):
    response = call_api(config, "delete", f"/access/groups/{groupid}")

    with error_context(f"deleting group {groupid}"):
        get_data(response)


def _set_user_groups(config, userid, groups):
    """
    Replace the group list of a user; membership is edited from the user side

    API endpoint: PUT /api2/json/access/users/{userid}
    API arguments: groups={groups}
    """
    params = {"groups": ",".join(groups)}
    response = call_api(config, "put", f"/access/users/{userid}", data=params)

    with error_context(f"updating groups of user {userid}"):
        get_data(response)


def add_group_member(config, groupid, userid):
    members = get_group(config, groupid).get("members") or list()
    if userid in members:
        raise InvalidArgumentError(f"User {userid} is already a member of group {groupid}")

    groups = user_groups(get_user(config, userid))
    groups.append(groupid)
    _set_user_groups(config, userid, groups)


def remove_group_member(config, groupid, userid):
    members = get_group(config, groupid).get("members") or list()
    if userid not in members:
        raise InvalidArgumentError(f"User {userid} is not a member of group {groupid}")

    groups = [group for group in user_groups(get_user(config, userid)) if group != groupid]
    _set_user_groups(config, userid, groups)


#
# ACLs and roles
#
def list_acls(config):
    """
    API endpoint: GET /api2/json/access/acl
    API schema: [{json_data_object},{json_data_object},etc.]
    """
    response = call_api(config, "get", "/access/acl")

    with error_context("listing ACLs"):
        return get_data(response) or list()


def list_roles(config):
    """
    API endpoint: GET /api2/json/access/roles
    API schema: [{json_data_object},{json_data_object},etc.]
    """
    response = call_api(config, "get", "/access/roles")

    with error_context("listing roles"):
        return get_data(response) or list()


def acl_paths(vmids=None, path=None):
    """
    Return the ACL paths for a list of VMIDs (/vms/{vmid}) or one explicit path
    """
    if path:
        return [path]
    if not vmids:
        raise InvalidArgumentError("Either VMIDs or an ACL path must be given")
    return [f"/vms/{validate_vmid(vmid)}" for vmid in vmids]


def _update_acl(config, path, userid, role, propagate=False, revoke=False):
    """
    API endpoint: PUT /api2/json/access/acl
    API arguments: path={path}, users={userid}, roles={role}, propagate={propagate}, delete={revoke}
    """
    params = {"path": path, "users": userid, "roles": role}
    if propagate:
        params["propagate"] = 1
    if revoke:
        params["delete"] = 1

    response = call_api(config, "put", "/access/acl", data=params)

    with error_context(f"{'revoking' if revoke else 'granting'} {role} on {path}"):
        get_data(response)


def grant_access(config, userid, role, vmids=None, path=None, propagate=False):
    for acl_path in acl_paths(vmids, path):
        _update_acl(config, acl_path, userid, role, propagate=propagate)


def revoke_access(config, userid, role, vmids=None, path=None):
    for acl_path in acl_paths(vmids, path):
        _update_acl(config, acl_path, userid, role, revoke=True)
