"""
Mode table tests.

Every shipped mode must validate, and an inconsistent table must fail
fast with MergeConfigurationError.
"""
import pytest

from dbcoach.core.exceptions import MergeConfigurationError
from dbcoach.orchestration.modes import (
    ENHANCED,
    MODES,
    STANDARD,
    ModeConfig,
    PhaseSpec,
    SlotRule,
    get_mode,
)


@pytest.mark.parametrize("name", sorted(MODES))
def test_shipped_modes_validate(name):
    get_mode(name).validate()


def test_standard_phase_order():
    assert STANDARD.phase_ids() == ("analysis", "schema", "implementation", "validation")
    assert all(not rule.is_composite for rule in STANDARD.slots)


def test_enhanced_phase_order_and_composite_slot():
    assert ENHANCED.phase_ids() == (
        "analysis", "schema", "sample_data", "api_endpoints", "validation", "visualization",
    )
    implementation = ENHANCED.get_slot("implementation")
    assert implementation.is_composite
    assert implementation.sources == ("sample_data", "api_endpoints")


def test_sample_data_and_api_depend_only_on_schema():
    assert ENHANCED.get_phase("sample_data").depends_on == ("schema",)
    assert ENHANCED.get_phase("api_endpoints").depends_on == ("schema",)


def test_unknown_mode():
    with pytest.raises(MergeConfigurationError):
        get_mode("turbo")


def test_slot_referencing_missing_phase_fails():
    mode = ModeConfig(
        name="broken",
        phases=(PhaseSpec("analysis", "Analysis", "Analyst"),),
        slots=(SlotRule("implementation", "Implementation", ("analysis", "sample_data")),),
    )
    with pytest.raises(MergeConfigurationError, match="sample_data"):
        mode.validate()


def test_dependency_on_later_phase_fails():
    mode = ModeConfig(
        name="backwards",
        phases=(
            PhaseSpec("schema", "Schema", "Architect", depends_on=("analysis",)),
            PhaseSpec("analysis", "Analysis", "Analyst"),
        ),
        slots=(),
    )
    with pytest.raises(MergeConfigurationError, match="does not run before"):
        mode.validate()


def test_duplicate_phase_fails():
    mode = ModeConfig(
        name="dupe",
        phases=(PhaseSpec("a", "A", "x"), PhaseSpec("a", "A again", "y")),
        slots=(),
    )
    with pytest.raises(MergeConfigurationError, match="duplicate"):
        mode.validate()


def test_empty_mode_fails():
    with pytest.raises(MergeConfigurationError):
        ModeConfig(name="empty", phases=(), slots=()).validate()
