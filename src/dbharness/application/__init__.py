"""
Application layer.

- orchestrator: lifecycle operations around test groups and tests
- binding: connection slot binding
- spec_resolution: effective database set
- parallel: per-database fan-out
- session: per-test connection tracking
"""

from dbharness.application.orchestrator import (
    GroupDeclaration,
    GroupState,
    ProvisionedGroup,
    ProvisioningOrchestrator,
)
from dbharness.application.session import TestSession

__all__ = [
    "GroupDeclaration",
    "GroupState",
    "ProvisionedGroup",
    "ProvisioningOrchestrator",
    "TestSession",
]
