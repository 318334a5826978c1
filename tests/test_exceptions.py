"""Tests for the carbontrace exception hierarchy.

Covers:
- Base exception functionality
- TreeException hierarchy
- DataException hierarchy
- Exception serialization
- Exception utilities
"""

import json
from datetime import datetime

import pytest

from carbontrace.exceptions import (
    CarbonTraceException,
    CircularDependencyError,
    CorruptedToken,
    DataException,
    InvalidLifeCyclePhase,
    InvalidRecord,
    StructuralError,
    TreeException,
    format_exception_chain,
)


# ==============================================================================
# Base Exception Tests
# ==============================================================================

class TestCarbonTraceException:
    """Tests for base CarbonTraceException."""

    def test_create_basic_exception(self):
        """Can create basic exception with message."""
        exc = CarbonTraceException("Something went wrong")

        assert exc.message == "Something went wrong"
        assert exc.error_code == "CT_CARBON_TRACE_EXCEPTION"
        assert exc.context == {}
        assert isinstance(exc.timestamp, datetime)

    def test_exception_str_representation(self):
        """String representation includes the error code."""
        exc = CarbonTraceException("Broken", error_code="CT_CUSTOM")
        assert str(exc) == "[CT_CUSTOM] - Broken"
        assert "CarbonTraceException" in repr(exc)

    def test_exception_to_dict(self):
        exc = CarbonTraceException("Broken", context={"asset_id": "urn:a"})
        data = exc.to_dict()

        assert data["error_type"] == "CarbonTraceException"
        assert data["message"] == "Broken"
        assert data["context"] == {"asset_id": "urn:a"}
        assert "traceback" in data

    def test_exception_to_json(self):
        exc = CarbonTraceException("Broken", context={"when": datetime(2025, 1, 1)})
        data = json.loads(exc.to_json())
        assert data["context"]["when"].startswith("2025-01-01")


# ==============================================================================
# Tree Exceptions
# ==============================================================================

class TestTreeExceptions:
    """Tests for structural tree errors."""

    def test_structural_error(self):
        exc = StructuralError("Connection already exists", asset_id="urn:motor", operation="add_connection")

        assert exc.error_code == "CT_TREE_STRUCTURAL_ERROR"
        assert exc.context == {"asset_id": "urn:motor", "operation": "add_connection"}
        assert isinstance(exc, TreeException)

    def test_structural_error_merges_context(self):
        exc = StructuralError("x", context={"extra": 1}, asset_id="urn:a")
        assert exc.context == {"extra": 1, "asset_id": "urn:a"}

    def test_circular_dependency(self):
        exc = CircularDependencyError("loop", asset_id="urn:b", path=["urn:a", "urn:b"])
        assert exc.error_code == "CT_TREE_CIRCULAR_DEPENDENCY_ERROR"
        assert exc.context["path"] == ["urn:a", "urn:b"]
        assert not isinstance(exc, StructuralError)


# ==============================================================================
# Data Exceptions
# ==============================================================================

class TestDataExceptions:
    """Tests for errors in supplied data."""

    def test_invalid_life_cycle_phase(self):
        exc = InvalidLifeCyclePhase("Invalid phase", value="")
        assert exc.error_code == "CT_DATA_INVALID_LIFE_CYCLE_PHASE"
        assert exc.context == {"value": ""}

    def test_invalid_record(self):
        exc = InvalidRecord("bad", field="transport", errors=["co2eq: not a number"])
        assert exc.error_code == "CT_DATA_INVALID_RECORD"
        assert exc.context["errors"] == ["co2eq: not a number"]

    def test_corrupted_token(self):
        exc = CorruptedToken("bad token", token_length=0, stage="base64")
        assert exc.error_code == "CT_DATA_CORRUPTED_TOKEN"
        assert exc.context == {"token_length": 0, "stage": "base64"}
        assert isinstance(exc, DataException)


# ==============================================================================
# Utilities and Edge Cases
# ==============================================================================

class TestExceptionUtilities:

    def test_format_exception_chain_single(self):
        text = format_exception_chain(StructuralError("broken", asset_id="urn:a"))
        assert "[CT_TREE_STRUCTURAL_ERROR] - broken" in text
        assert "urn:a" in text

    def test_format_exception_chain_with_cause(self):
        try:
            try:
                raise ValueError("inner")
            except ValueError as e:
                raise CorruptedToken("outer", stage="json") from e
        except CorruptedToken as exc:
            text = format_exception_chain(exc)

        lines = text.splitlines()
        assert lines[0] == "[CT_DATA_CORRUPTED_TOKEN] - outer"
        assert lines[-1] == "ValueError: inner"


class TestEdgeCases:

    def test_catch_by_base_class(self):
        with pytest.raises(CarbonTraceException):
            raise InvalidRecord("x")

    def test_codes_are_unique(self):
        classes = (StructuralError, CircularDependencyError, InvalidLifeCyclePhase,
                   InvalidRecord, CorruptedToken)
        assert len({cls("x").error_code for cls in classes}) == len(classes)
