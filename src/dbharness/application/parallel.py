"""
Per-database fan-out.

Runs one action per database either sequentially, in resolution order, or
concurrently on a thread pool. In parallel mode every branch runs to
completion; failures are collected and raised together.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Sequence

from dbharness.domain.config import DatabaseSpec
from dbharness.domain.errors import ProvisioningError

logger = logging.getLogger(__name__)


def run_per_database(
    specs: Sequence[DatabaseSpec],
    action: Callable[[DatabaseSpec], None],
    parallel: bool = False,
    max_workers: int | None = None,
    operation: str = "Provisioning",
) -> None:
    """
    Apply ``action`` to every spec.

    Args:
        specs: Databases, distinct by name
        action: Work for one database
        parallel: Run concurrently on a thread pool
        max_workers: Pool size cap (defaults to one worker per database)
        operation: Label used in logs and errors

    Raises:
        ProvisioningError: Parallel mode, one or more actions failed
        Exception: Sequential mode, the first failure is raised as is
    """
    if not specs:
        return

    if not parallel:
        for spec in specs:
            logger.debug("%s: %s", operation, spec.name)
            action(spec)
        return

    workers = min(len(specs), max_workers or len(specs))
    logger.debug("%s: %d database(s) on %d worker(s)", operation, len(specs), workers)
    errors: dict[str, BaseException] = {}

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dbharness") as executor:
        future_to_spec = {executor.submit(action, spec): spec for spec in specs}

        for future in as_completed(future_to_spec):
            spec = future_to_spec[future]
            try:
                future.result()
            except Exception as e:
                logger.error("%s failed for '%s': %s", operation, spec.name, e)
                errors[spec.name] = e

    if errors:
        ordered = {spec.name: errors[spec.name] for spec in specs if spec.name in errors}
        raise ProvisioningError(
            f"{operation} failed for {len(errors)} of {len(specs)} database(s)", ordered
        )
