"""
Effective database set resolution.

Databases come from three sources, merged in order:
1. Databases declared on the test group (names resolved against configuration)
2. Databases in the configuration not already named
3. Databases named by declared connection slots not already named

The first spec seen for a name wins.
"""

from __future__ import annotations

import logging
from typing import Iterable

from dbharness.domain.config import DatabaseSpec, HarnessConfig
from dbharness.domain.slots import ConnectionSlot

logger = logging.getLogger(__name__)


def resolve_effective_specs(
    config: HarnessConfig,
    declared: Iterable[str | DatabaseSpec] = (),
    slots: Iterable[ConnectionSlot] = (),
) -> tuple[DatabaseSpec, ...]:
    """
    Merge the three database sources into one de-duplicated, ordered set.

    A name with no configured spec becomes a bare spec, which provisions an
    empty database.
    """
    effective: dict[str, DatabaseSpec] = {}

    def add(spec: DatabaseSpec, source: str) -> None:
        if spec.name in effective:
            logger.debug("Ignoring duplicate database '%s' from %s", spec.name, source)
            return
        effective[spec.name] = spec

    def by_name(name: str) -> DatabaseSpec:
        return config.database(name) or DatabaseSpec(name=name)

    for item in declared:
        add(item if isinstance(item, DatabaseSpec) else by_name(item), "group declaration")

    for spec in config.databases:
        add(spec, "configuration")

    for slot in slots:
        if slot.database:
            add(by_name(slot.database), f"slot '{slot.attribute}'")

    return tuple(effective.values())
