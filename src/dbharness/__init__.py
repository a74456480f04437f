"""
dbharness - ephemeral SQL Server databases for automated tests.

Provisions, resets and binds throwaway SQL Server (LocalDB or external)
databases around test execution:
- Orchestrator lifecycle: group_setup, group_teardown, test_setup, test_teardown
  (dbharness.application)
- Schema deployment from packaged artifacts, SqlPackage or rapid deploy
  (dbharness.infrastructure.deploy)
- Connection binding into slots declared on test objects (dbharness.domain.slots)
"""

__version__ = "0.1.0"
