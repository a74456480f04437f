"""
Tests for effective database set resolution.
"""

from dbharness.application.spec_resolution import resolve_effective_specs
from dbharness.domain.config import DatabaseSpec, HarnessConfig
from dbharness.domain.slots import ConnectionSlot


class TestResolveEffectiveSpecs:
    """Three sources, merged in order, first seen wins."""

    def test_source_order(self, harness_config):
        specs = resolve_effective_specs(
            harness_config,
            declared=("Audit",),
            slots=(ConnectionSlot("reporting", database="Reporting"),),
        )
        assert [spec.name for spec in specs] == ["Audit", "Orders", "Reporting"]

    def test_group_spec_wins_over_config(self, harness_config):
        group_spec = DatabaseSpec(name="Orders", rapid_deploy=True)

        specs = resolve_effective_specs(harness_config, declared=(group_spec,))

        assert specs[0] is group_spec
        assert [spec.name for spec in specs] == ["Orders", "Audit"]

    def test_declared_name_resolved_against_config(self, harness_config):
        specs = resolve_effective_specs(harness_config, declared=("Audit",))
        assert specs[0] is harness_config.database("Audit")

    def test_unknown_name_becomes_bare_spec(self):
        specs = resolve_effective_specs(HarnessConfig(), declared=("Scratch",))

        assert specs == (DatabaseSpec(name="Scratch"),)
        assert specs[0].schema_artifact_path is None

    def test_duplicates_across_sources_collapse(self, harness_config):
        specs = resolve_effective_specs(
            harness_config,
            declared=("Orders", DatabaseSpec(name="Orders", rapid_deploy=True), "Orders"),
            slots=(ConnectionSlot("a", database="Orders"), ConnectionSlot("b", database="Audit")),
        )

        assert [spec.name for spec in specs] == ["Orders", "Audit"]
        assert specs[0] is harness_config.database("Orders")

    def test_slots_without_database_imply_nothing(self):
        specs = resolve_effective_specs(HarnessConfig(), slots=(ConnectionSlot("OrdersConnection"),))
        assert specs == ()
