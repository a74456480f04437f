"""
Schema Deployment Engine package.

- artifact: deployment package loading and scratch unpacking
- sqlcmd: SQLCMD variable/directive handling
- script_splitter: GO splitting and statement classification
- rapid_deploy: model script re-execution with fixpoint table creation
- engine_deploy: SqlPackage publish
- reconciler: file-backed database reconciliation
- engine: SchemaDeploymentEngine tying the above together
"""

from dbharness.infrastructure.deploy.artifact import DeploymentArtifact, load_artifact, unpacked_artifact
from dbharness.infrastructure.deploy.engine import SchemaDeploymentEngine
from dbharness.infrastructure.deploy.rapid_deploy import RapidDeployer, create_tables_until_fixpoint

__all__ = [
    "DeploymentArtifact",
    "RapidDeployer",
    "SchemaDeploymentEngine",
    "create_tables_until_fixpoint",
    "load_artifact",
    "unpacked_artifact",
]
