"""
Connection slot declarations.

A test class declares where connections go instead of being scanned at
runtime: it exposes ``connection_slots``, a tuple of ConnectionSlot, and the
binding resolver writes into those attributes before each test.

Usage:
    class OrderTests:
        connection_slots = (
            ConnectionSlot("OrdersConnection"),
            ConnectionSlot("audit_factory", SlotShape.CONNECTION_FACTORY, database="Audit"),
        )
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Sequence, runtime_checkable


class SlotShape(Enum):
    """What gets written into a slot."""

    OPEN_CONNECTION = "open_connection"
    CONNECTION_FACTORY = "connection_factory"
    CONNECTION_STRING = "connection_string"


@dataclass(frozen=True)
class ConnectionSlot:
    """A named destination on a test object for a database connection."""

    attribute: str
    shape: SlotShape | str = SlotShape.OPEN_CONNECTION
    database: str | None = None


@runtime_checkable
class SupportsConnectionSlots(Protocol):
    """Capability contract for test objects that receive connections."""

    connection_slots: Sequence[ConnectionSlot]


def declared_slots(test_object: object) -> tuple[ConnectionSlot, ...]:
    """Return the slots a test object declares (empty when it declares none)."""
    if isinstance(test_object, SupportsConnectionSlots):
        return tuple(test_object.connection_slots)
    return ()


_WORD_SPLIT = re.compile(r"[^0-9A-Za-z]+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def pascal_case(name: str) -> str:
    """
    PascalCase a database name ("orders" -> "Orders", "order_audit" -> "OrderAudit").

    Only the first character of each word is changed, so existing inner
    capitals survive ("testDatabase2" -> "TestDatabase2").
    """
    words = [w for w in _WORD_SPLIT.split(name) if w]
    return "".join(w[0].upper() + w[1:] for w in words)


def snake_case(name: str) -> str:
    """snake_case a database name ("OrderAudit" -> "order_audit")."""
    spaced = _CAMEL_BOUNDARY.sub("_", name)
    words = [w for w in _WORD_SPLIT.split(spaced) if w]
    return "_".join(w.lower() for w in words)


def convention_attribute_names(database_name: str) -> tuple[str, str]:
    """Attribute names that receive ``database_name`` by naming convention."""
    return (
        f"{pascal_case(database_name)}Connection",
        f"{snake_case(database_name)}_connection",
    )
