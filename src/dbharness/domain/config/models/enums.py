"""
Domain enums for configuration system.
"""

from enum import Enum


class ServerKind(Enum):
    """How the target SQL Server instance is managed."""

    LOCALDB = "localdb"  # instance created and started by the harness
    EXTERNAL = "external"  # reachable through a connection string, assumed ready
