"""
Physical/logical reconciliation for file-backed databases.

A file-backed database can be registered on the server (logical) and/or
have its data file on disk (physical). The four combinations map to
exactly one action each.
"""

from enum import Enum


class ReconcileAction(Enum):
    """Action needed to bring a file-backed database to a usable state."""

    ATTACH = "attach"  # file exists, server doesn't know it
    CREATE = "create"  # neither exists
    DETACH_AND_CREATE = "detach_and_create"  # registration without a file
    NONE = "none"  # both exist


def decide_reconciliation(logical_exists: bool, physical_exists: bool) -> ReconcileAction:
    """
    Classify the state of a file-backed database.

    | logical | physical | action            |
    |---------|----------|-------------------|
    | no      | yes      | ATTACH            |
    | no      | no       | CREATE            |
    | yes     | no       | DETACH_AND_CREATE |
    | yes     | yes      | NONE              |
    """
    if logical_exists:
        return ReconcileAction.NONE if physical_exists else ReconcileAction.DETACH_AND_CREATE
    return ReconcileAction.ATTACH if physical_exists else ReconcileAction.CREATE
