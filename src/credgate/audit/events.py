"""
credgate.audit.events

Audit event codes and severity levels.

Responsibilities:
- Define the fixed, persisted event-code taxonomy.
- Define integer severity levels stored with each record.
"""

from __future__ import annotations

import enum


class EventCode(enum.IntEnum):
    # Values are persisted; treat them as a stable contract.
    login_ok = 1000
    login_fail = 1001
    login_locked = 1002
    logout = 1003
    password_change_ok = 1004
    password_change_fail = 1005
    password_change_demand = 1006
    login_rotation_forced = 1007

    forbidden = 1100

    user_add_ok = 1200
    user_add_fail = 1201
    role_add_ok = 1210


class AuditLevel(enum.IntEnum):
    trace = 0
    debug = 1
    information = 2
    warning = 3
    error = 4
    critical = 5
    none = 6


def is_known_code(code: int) -> bool:
    return code in EventCode._value2member_map_


# --- Module Notes -----------------------------------------------------------
# Codes are grouped by hundreds: 10xx account, 11xx authorization, 12xx user admin.
