"""
Connection Binding Resolver.

Writes connections into the slots a test object declares. For each required
database the best unbound slot is chosen by precedence:
1. A slot explicitly targeting the database
2. A slot named by convention (OrdersConnection / orders_connection)
3. A slot named by the database's connection_slot_hint

Remaining slots with an explicit database are bound next, then remaining
slots matching a hint.
"""

from __future__ import annotations

import functools
import logging
from typing import Sequence

from dbharness.domain.config import DatabaseSpec
from dbharness.domain.errors import BindingError
from dbharness.domain.slots import (
    ConnectionSlot,
    SlotShape,
    convention_attribute_names,
    declared_slots,
)
from dbharness.infrastructure.providers.base import DatabaseProvider
from dbharness.application.session import TestSession

logger = logging.getLogger(__name__)


def merge_slots(*sources: Sequence[ConnectionSlot]) -> tuple[ConnectionSlot, ...]:
    """Concatenate slot declarations, keeping the first slot per attribute."""
    merged: dict[str, ConnectionSlot] = {}
    for source in sources:
        for slot in source:
            merged.setdefault(slot.attribute, slot)
    return tuple(merged.values())


def _shape_of(slot: ConnectionSlot) -> SlotShape:
    if isinstance(slot.shape, SlotShape):
        return slot.shape
    try:
        return SlotShape(slot.shape)
    except ValueError:
        raise BindingError(
            f"Slot '{slot.attribute}' has unsupported shape {slot.shape!r}; expected one of "
            f"{', '.join(shape.value for shape in SlotShape)}",
            attribute=slot.attribute,
            shape=slot.shape,
        ) from None


class ConnectionBinder:
    """Binds a provider's connections into a test object's slots."""

    def __init__(self, provider: DatabaseProvider):
        self.provider = provider

    def bind(
        self,
        session: TestSession,
        specs: Sequence[DatabaseSpec],
        slots: Sequence[ConnectionSlot] | None = None,
    ) -> list[str]:
        """
        Bind every resolvable slot on ``session.test_object``.

        Args:
            session: The test's session; opened connections are tracked on it
            specs: Effective databases, in resolution order
            slots: Slots to consider (the test object's declared slots by default)

        Returns:
            Attributes bound in this pass, in binding order

        Raises:
            BindingError: Unsupported shape or an attribute that can't be written
        """
        if slots is None:
            slots = declared_slots(session.test_object)
        if not slots:
            return []

        bound: list[str] = []
        hints = {spec.connection_slot_hint: spec.name for spec in reversed(specs) if spec.connection_slot_hint}

        for spec in specs:
            slot = self._best_slot(spec, slots, session)
            if slot is not None:
                self._bind_slot(session, slot, spec.name)
                bound.append(slot.attribute)

        for slot in slots:
            if slot.database and not session.is_bound(slot.attribute):
                self._bind_slot(session, slot, slot.database)
                bound.append(slot.attribute)

        for slot in slots:
            if not session.is_bound(slot.attribute) and slot.attribute in hints:
                self._bind_slot(session, slot, hints[slot.attribute])
                bound.append(slot.attribute)

        unbound = [slot.attribute for slot in slots if not session.is_bound(slot.attribute)]
        if unbound:
            logger.debug("No database matched slot(s) %s on %r", unbound, session.test_object)
        return bound

    @staticmethod
    def _best_slot(
        spec: DatabaseSpec,
        slots: Sequence[ConnectionSlot],
        session: TestSession,
    ) -> ConnectionSlot | None:
        candidates = [slot for slot in slots if not session.is_bound(slot.attribute)]

        for slot in candidates:
            if slot.database == spec.name:
                return slot

        # Slots targeting another database explicitly never match by name
        unassigned = [slot for slot in candidates if slot.database is None]
        conventions = convention_attribute_names(spec.name)
        for slot in unassigned:
            if slot.attribute in conventions:
                return slot

        if spec.connection_slot_hint:
            for slot in unassigned:
                if slot.attribute == spec.connection_slot_hint:
                    return slot
        return None

    def _bind_slot(self, session: TestSession, slot: ConnectionSlot, database: str) -> None:
        shape = _shape_of(slot)

        if shape == SlotShape.OPEN_CONNECTION:
            value = session.track(self.provider.create_connection(database))
        elif shape == SlotShape.CONNECTION_FACTORY:
            value = functools.partial(self.provider.create_connection, database)
        else:
            # Opened and closed at once; only the string is kept
            connection = self.provider.create_connection(database)
            try:
                value = self.provider.connection_string(database)
            finally:
                connection.close()

        try:
            setattr(session.test_object, slot.attribute, value)
        except AttributeError as e:
            raise BindingError(
                f"Cannot write slot '{slot.attribute}' on {type(session.test_object).__name__}: {e}",
                attribute=slot.attribute,
                shape=shape,
            ) from e

        session.bound_slots.add(slot.attribute)
        logger.debug("Bound %s '%s' -> database '%s'", shape.value, slot.attribute, database)
