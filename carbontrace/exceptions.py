"""carbontrace Exception Hierarchy.

Every error raised by carbontrace carries a rich context for debugging and
for reporting back to whoever supplied the offending data.

Exception Hierarchy:
    CarbonTraceException (base)
    ├── TreeException
    │   ├── StructuralError
    │   └── CircularDependencyError
    └── DataException
        ├── InvalidLifeCyclePhase
        ├── InvalidRecord
        └── CorruptedToken

Structural errors and circular dependencies indicate a programming error in
the caller or a malformed source hierarchy; they are never swallowed.
Declared/aggregate footprint mismatches are not exceptions at all: they are
reported through :mod:`carbontrace.diagnostics`.

Example:
    >>> from carbontrace.exceptions import StructuralError
    >>> raise StructuralError(
    ...     message="Connection already exists",
    ...     asset_id="urn:asset:motor",
    ... )
"""

import json
import re
import traceback as tb
from datetime import datetime
from typing import Any, Dict, List, Optional


# ==============================================================================
# Base Exception
# ==============================================================================

class CarbonTraceException(Exception):
    """Base exception for all carbontrace errors.

    Attributes:
        message: Human-readable error message
        error_code: Unique error identifier (e.g., "CT_TREE_STRUCTURAL_ERROR")
        context: Dictionary with error-specific details
        timestamp: When the error occurred
        traceback_str: Stack at the point of creation
    """

    ERROR_PREFIX = "CT"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """Initialize carbontrace exception with rich context.

        Args:
            message: Human-readable error message
            error_code: Unique error identifier (auto-generated if not provided)
            context: Dictionary with error-specific details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self._generate_error_code()
        self.context = context or {}
        self.timestamp = datetime.now()
        self.traceback_str = "".join(tb.format_stack()[:-1])

    def _generate_error_code(self) -> str:
        """Generate error code based on exception class.

        Returns:
            Error code like "CT_TREE_STRUCTURAL_ERROR"
        """
        error_type = re.sub(r'(?<!^)(?=[A-Z])', '_', self.__class__.__name__).upper()
        return f"{self.ERROR_PREFIX}_{error_type}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "traceback": self.traceback_str,
        }

    def to_json(self) -> str:
        """Convert exception to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)

    def __str__(self) -> str:
        return f"[{self.error_code}] - {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}')"
        )


# ==============================================================================
# Tree Exceptions
# ==============================================================================

class TreeException(CarbonTraceException):
    """Base exception for errors in the carbon tree structure."""
    ERROR_PREFIX = "CT_TREE"


class StructuralError(TreeException):
    """The tree was used or constructed in a way its structure does not allow.

    Raised for missing ``entity``/``connections`` in a record, duplicate
    ``add_connection`` targets, swapping or resetting an id that does not
    exist, or a ``parent`` that is not a tree node.

    Example:
        >>> raise StructuralError(
        ...     message="Cannot swap urn:a because it does not exist in the current tree",
        ...     asset_id="urn:a",
        ...     operation="swap_connection",
        ... )
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        asset_id: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        context = context or {}
        if asset_id:
            context["asset_id"] = asset_id
        if operation:
            context["operation"] = operation
        super().__init__(message, context=context)


class CircularDependencyError(TreeException):
    """An asset id was reached twice while flattening the tree.

    Kept distinct from :class:`StructuralError` so callers can report a
    malformed source hierarchy instead of a generic failure.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        asset_id: Optional[str] = None,
        path: Optional[List[str]] = None,
    ):
        context = context or {}
        if asset_id:
            context["asset_id"] = asset_id
        if path:
            context["path"] = path
        super().__init__(message, context=context)


# ==============================================================================
# Data Exceptions
# ==============================================================================

class DataException(CarbonTraceException):
    """Base exception for errors in supplied data."""
    ERROR_PREFIX = "CT_DATA"


class InvalidLifeCyclePhase(DataException):
    """A single explicit life cycle phase string could not be parsed.

    Only raised when one phase is validated directly; the tolerant free-text
    parser drops unknown tokens instead.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        value: Optional[str] = None,
    ):
        context = context or {}
        if value is not None:
            context["value"] = value
        super().__init__(message, context=context)


class InvalidRecord(DataException):
    """A footprint or tree record does not match the expected shape.

    Example:
        >>> raise InvalidRecord(
        ...     message="Unknown transport process 'XYZ'",
        ...     field="processesForGreenhouseGasEmissionInATransportService",
        ... )
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        field: Optional[str] = None,
        errors: Optional[list] = None,
    ):
        context = context or {}
        if field:
            context["field"] = field
        if errors:
            context["errors"] = errors
        super().__init__(message, context=context)


class CorruptedToken(DataException):
    """A persisted simulation token could not be decoded.

    Fatal on decode: callers should discard the simulation and start over
    from the baseline rather than retry.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        token_length: Optional[int] = None,
        stage: Optional[str] = None,
    ):
        context = context or {}
        if token_length is not None:
            context["token_length"] = token_length
        if stage:
            context["stage"] = stage
        super().__init__(message, context=context)


# ==============================================================================
# Exception Utilities
# ==============================================================================

def format_exception_chain(exc: Exception) -> str:
    """Format exception chain for logging/display.

    Args:
        exc: Exception to format

    Returns:
        Formatted string with full exception chain
    """
    lines = []
    current = exc

    while current is not None:
        if isinstance(current, CarbonTraceException):
            lines.append(str(current))
            lines.append(f"  Context: {current.context}")
        else:
            lines.append(f"{type(current).__name__}: {current}")
        current = getattr(current, "__cause__", None)

    return "\n".join(lines)


__all__ = [
    "CarbonTraceException",
    "TreeException",
    "StructuralError",
    "CircularDependencyError",
    "DataException",
    "InvalidLifeCyclePhase",
    "InvalidRecord",
    "CorruptedToken",
    "format_exception_chain",
]
