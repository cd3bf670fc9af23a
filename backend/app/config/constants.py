"""
Application-wide constants for the calling service.

This file centralizes roles, wire event names and operational values
so the registries, controller and schemas agree on one vocabulary.

Note: Environment-dependent settings (DB, Redis, timeouts) belong in settings.py.
This file is for values that never change between environments.
"""

# ==============================================================================
# ROLES
# ==============================================================================

ROLE_DOCTOR: str = "doctor"
ROLE_EMPLOYEE: str = "employee"
ROLE_ADMIN: str = "admin"

ROLES: tuple = (ROLE_DOCTOR, ROLE_EMPLOYEE, ROLE_ADMIN)

# Who each calling role sees as its counterpart pool.
# Admins are never part of the pool; they get the supervision channel instead.
COUNTERPART_ROLES: dict = {
    ROLE_DOCTOR: ROLE_EMPLOYEE,
    ROLE_EMPLOYEE: ROLE_DOCTOR,
}

# ==============================================================================
# CALL END REASONS
# ==============================================================================

END_REASON_HANGUP: str = "hangup"
END_REASON_DISCONNECT: str = "disconnect"
END_REASON_EXPIRED: str = "expired"
END_REASON_REJECTED: str = "rejected"
END_REASON_SERVER_RESTART: str = "server_restart"

# ==============================================================================
# RELAY
# ==============================================================================

RELAY_KINDS: tuple = ("offer", "answer", "ice-candidate")

# ==============================================================================
# REDIS KEYS
# ==============================================================================

PRESENCE_KEY_PREFIX: str = "online:"

# ==============================================================================
# CALL HISTORY API
# ==============================================================================

CALL_HISTORY_DEFAULT_LIMIT: int = 50
CALL_HISTORY_MAX_LIMIT: int = 200
