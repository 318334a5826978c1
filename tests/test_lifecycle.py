"""Tests for the life cycle phase algebra.

Covers:
- Tolerant free-text parsing (lists, ranges, unicode dashes, noise)
- Strict single phase parsing
- Canonical string rendering
- Merge, intersection and diff
- Ordering
"""

import pytest

from carbontrace.exceptions import InvalidLifeCyclePhase
from carbontrace.lifecycle import (
    LIFE_CYCLE_PHASE_COLOR,
    LIFE_CYCLE_PHASE_SEQUENCE,
    UNSPECIFIED_COLOR,
    UNSPECIFIED_TEXT,
    LifeCyclePhases,
    life_cycle_phase_sort,
    parse_life_cycle_phase,
    phase_to_stage,
)


# ==============================================================================
# Parsing
# ==============================================================================

class TestParse:
    """Tests for LifeCyclePhases.parse."""

    @pytest.mark.parametrize("text", [
        "C1, A3, A1",
        "A3-A1",
        "B7; A2 | D / C4 + A1 & B1",
        "A1 A1 A1, A2",
        "D, C4-C1, B3",
    ])
    def test_phases_sorted_and_unique(self, text):
        """Parsed phases follow the fixed sequence without duplicates."""
        phases = LifeCyclePhases.parse(text).phases
        indexes = [LIFE_CYCLE_PHASE_SEQUENCE.index(p) for p in phases]

        assert phases
        assert indexes == sorted(set(indexes))

    def test_range_expands_inclusively(self):
        """A range covers every phase between its ends."""
        assert LifeCyclePhases.parse("A3-C1").phases == (
            "A3", "A4", "B1", "B2", "B3", "B4", "B5", "B6", "B7", "C1",
        )

    def test_range_is_direction_agnostic(self):
        """Reversed ranges give the same set."""
        assert LifeCyclePhases.parse("C1-A3") == LifeCyclePhases.parse("A3-C1")

    def test_chained_range(self):
        """A3-C1-D spans up to D."""
        phases = LifeCyclePhases.parse("A3-C1-D").phases
        assert phases[0] == "A3"
        assert phases[-1] == "D"
        assert "C4" in phases

    def test_unicode_dashes(self):
        """En and em dashes are treated like hyphens."""
        assert LifeCyclePhases.parse("A1 – A3").phases == ("A1", "A2", "A3")
        assert LifeCyclePhases.parse("A1—A3").phases == ("A1", "A2", "A3")

    def test_single_phase_range(self):
        """A range token with one phase is that phase."""
        assert LifeCyclePhases.parse("B2").phases == ("B2",)

    def test_phases_inside_free_text(self):
        """Phase codes are found inside prose."""
        phases = LifeCyclePhases.parse("Cradle to gate (A1-A3) plus end of life C1")
        assert phases.phases == ("A1", "A2", "A3", "C1")

    def test_d_inside_word_is_ignored(self):
        """An uppercase D adjacent to word characters is no phase."""
        assert LifeCyclePhases.parse("DIN EN 15804") == LifeCyclePhases.empty()
        assert LifeCyclePhases.parse("Module D").phases == ("D",)

    def test_malformed_tokens_are_dropped(self):
        """Tokens that look like phases but are not get ignored."""
        assert LifeCyclePhases.parse("A7, A1").phases == ("A1",)
        assert LifeCyclePhases.parse("C0") == LifeCyclePhases.empty()

    def test_malformed_range_end_keeps_valid_end(self):
        """A range with one malformed end still yields its valid end."""
        assert LifeCyclePhases.parse("A3-A7, C1").phases == ("A3", "C1")
        assert LifeCyclePhases.parse("C0-B2").phases == ("B2",)

    def test_malformed_middle_of_chained_range(self):
        """A chained range spans the valid ends around a malformed one."""
        assert LifeCyclePhases.parse("A3-A7-A4").phases == ("A3", "A4")

    def test_list_input(self):
        """Lists are joined before parsing."""
        phases = LifeCyclePhases.parse(["A1", "A2", "C1"])
        assert phases.phases == ("A1", "A2", "C1")
        assert phases.original == "A1, A2, C1"

    @pytest.mark.parametrize("value", [None, False, "", "   ", "no phases here", []])
    def test_empty_inputs_return_singleton(self, value):
        """Anything without phases yields the shared empty instance."""
        assert LifeCyclePhases.parse(value) is LifeCyclePhases.empty()

    def test_parse_existing_instance(self):
        """Parsing an instance returns it unchanged."""
        phases = LifeCyclePhases.parse("A1")
        assert LifeCyclePhases.parse(phases) is phases

    def test_original_string_retained(self):
        """The source string is kept for exact round-tripping."""
        assert LifeCyclePhases.parse("A1 - A3").original == "A1 - A3"


class TestSinglePhase:
    """Tests for the strict single phase helpers."""

    def test_parse_two_character_phase(self):
        assert parse_life_cycle_phase(" b5 ") == "B5"

    def test_parse_stage_d(self):
        assert parse_life_cycle_phase("D") == "D"

    @pytest.mark.parametrize("text", ["A7", "X1", "", "A"])
    def test_invalid_phase_raises(self, text):
        """Strict parsing fails hard."""
        with pytest.raises(InvalidLifeCyclePhase) as exc_info:
            parse_life_cycle_phase(text)
        assert exc_info.value.context["value"] == text

    def test_phase_to_stage(self):
        assert phase_to_stage("B3") == "B"
        assert phase_to_stage("D") == "D"

    def test_phase_to_stage_unknown(self):
        with pytest.raises(InvalidLifeCyclePhase):
            phase_to_stage("X1")


# ==============================================================================
# Rendering
# ==============================================================================

class TestToString:
    """Tests for canonical string rendering."""

    def test_consecutive_run_collapses(self):
        assert LifeCyclePhases.parse("A1,A2,A3").to_string() == "A1 - A3"

    def test_non_adjacent_phases_stay_separate(self):
        assert LifeCyclePhases.parse("A1,A3").to_string() == "A1, A3"

    def test_two_adjacent_phases_are_listed(self):
        assert LifeCyclePhases.parse("A1,A2").to_string() == "A1, A2"

    def test_mixed_runs(self):
        assert str(LifeCyclePhases.parse("A1-A3, B1, C1-C4")) == "A1 - A3, B1, C1 - C4"

    def test_description_for_single_phase(self):
        text = LifeCyclePhases.parse("A3").to_string(include_description_if_none_or_one=True)
        assert text == "A3 – production"

    def test_description_for_empty(self):
        empty = LifeCyclePhases.empty()
        assert empty.to_string() == ""
        assert empty.to_string(include_description_if_none_or_one=True) == UNSPECIFIED_TEXT

    def test_html_empty_is_italic(self):
        text = LifeCyclePhases.empty().to_string(as_html=True, include_description_if_none_or_one=True)
        assert text == f"<em>{UNSPECIFIED_TEXT}</em>"

    def test_html_dash(self):
        text = LifeCyclePhases.parse("D").to_string(as_html=True, include_description_if_none_or_one=True)
        assert text == "D &ndash; reuse"


# ==============================================================================
# Properties and set operations
# ==============================================================================

class TestProperties:
    """Tests for stages and colour."""

    def test_stages_collapse_consecutive_duplicates(self):
        assert LifeCyclePhases.parse("A1-A3, C1, D").stages == ("A", "C", "D")

    def test_color_is_mean_of_phases(self):
        phases = LifeCyclePhases.parse("A1, D")
        a1, d = LIFE_CYCLE_PHASE_COLOR["A1"], LIFE_CYCLE_PHASE_COLOR["D"]
        assert phases.color == tuple((x + y) / 2 for x, y in zip(a1, d))

    def test_empty_color_is_gray(self):
        assert LifeCyclePhases.empty().color == UNSPECIFIED_COLOR


class TestSetOperations:
    """Tests for merge, intersection and diff."""

    def test_merged_without_inputs_is_empty(self):
        assert LifeCyclePhases.merged() is LifeCyclePhases.empty()

    def test_merged_single_input_keeps_identity(self):
        phases = LifeCyclePhases.parse("B1")
        assert LifeCyclePhases.merged(phases) is phases

    def test_merged_union(self):
        merged = LifeCyclePhases.merged(
            LifeCyclePhases.parse("A1-A2"), LifeCyclePhases.parse("A2, C1"), None,
        )
        assert merged.phases == ("A1", "A2", "C1")

    def test_intersection_in_own_order(self):
        a = LifeCyclePhases.parse("A1-A4")
        b = LifeCyclePhases.parse("A3, A2, C1")
        assert a.intersection(b) == ["A2", "A3"]

    def test_diff_buckets(self):
        a = LifeCyclePhases.parse("A1-A3")
        b = LifeCyclePhases.parse("A3, B1")
        diff = a.diff(b)
        assert diff.only_this == ["A1", "A2"]
        assert diff.only_other == ["B1"]
        assert diff.both == ["A3"]

    def test_merged_diff_matches_set_algebra(self):
        """Diffing a union against one operand isolates the other operand's extras."""
        a = LifeCyclePhases.parse("A1, B1")
        b = LifeCyclePhases.parse("B1, C2, D")
        merged = LifeCyclePhases.merged(a, b)
        extra = [p for p in b.phases if p not in a.phases]

        diff = a.diff(merged)
        assert diff.only_other == extra
        assert diff.both == a.intersection(merged)
        assert diff.only_this == []

        reverse = merged.diff(a)
        assert reverse.only_this == extra
        assert reverse.only_other == []

    def test_space_separated_list(self):
        """Plain spaces separate phases, spaces around dashes do not."""
        assert LifeCyclePhases.parse("A1 C1").phases == ("A1", "C1")
        assert LifeCyclePhases.parse("A1 - A3 C1").phases == ("A1", "A2", "A3", "C1")

    def test_equality_and_hash(self):
        a = LifeCyclePhases.parse("A1-A3")
        b = LifeCyclePhases.parse("A1, A2, A3")
        assert a == b
        assert a.equals(b)
        assert len({a, b}) == 1
        assert a != LifeCyclePhases.parse("A1")

    def test_container_protocol(self):
        phases = LifeCyclePhases.parse("A1-A3")
        assert len(phases) == 3
        assert "A2" in phases
        assert list(phases) == ["A1", "A2", "A3"]
        assert not LifeCyclePhases.empty()


# ==============================================================================
# Ordering
# ==============================================================================

class TestOrdering:
    """Tests for life_cycle_phase_sort and LifeCyclePhases.sort."""

    def test_by_first_phase(self):
        assert life_cycle_phase_sort("A1", "B1") < 0
        assert life_cycle_phase_sort("C1", "B1") > 0
        assert life_cycle_phase_sort("B1", "B1") == 0

    def test_span_sorts_after_single_phase_with_same_start(self):
        single = LifeCyclePhases.parse("A1")
        span = LifeCyclePhases.parse("A1-A3")
        assert life_cycle_phase_sort(single, span) < 0
        assert span.compare_to(single) > 0

    def test_empty_sorts_last(self):
        empty = LifeCyclePhases.empty()
        assert life_cycle_phase_sort(empty, LifeCyclePhases.parse("D")) > 0
        assert life_cycle_phase_sort(empty, empty) == 0

    def test_sort(self):
        values = [
            LifeCyclePhases.parse("A1-D"),
            LifeCyclePhases.empty(),
            LifeCyclePhases.parse("B1"),
            LifeCyclePhases.parse("A1"),
        ]
        ordered = LifeCyclePhases.sort(values)
        assert [str(v) for v in ordered] == ["A1", "A1 - D", "B1", ""]

    def test_lt(self):
        assert LifeCyclePhases.parse("A1") < LifeCyclePhases.parse("A2")
