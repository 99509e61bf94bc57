"""
Central constants for the device management console.
"""
from __future__ import annotations

# Session key under which the signed-in user's id is stored.
USER_SESSION_KEY = "user_id"

# Permission required to enroll new devices.
ENROLL_PERMISSION = "devices.add"

# Permission key -> UI permission identifier (order is the order shown to templates)
UI_PERMISSIONS = {
    "devices.list_all": "LIST_DEVICES",
    "devices.view": "LIST_OWN_DEVICES",
    "devices.add": "ADD_DEVICE",
    "devices.remove": "REMOVE_DEVICE",
    "groups.view": "LIST_GROUPS",
    "groups.create": "ADD_GROUP",
    "groups.assign": "MANAGE_GROUP_DEVICES",
}

DEVICE_STATUS_ACTIVE = "ACTIVE"
DEVICE_STATUS_REMOVED = "REMOVED"
