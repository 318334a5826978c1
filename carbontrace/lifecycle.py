# -*- coding: utf-8 -*-
"""
Life Cycle Phase Algebra

Parses free-text life cycle phase codes (EN 15804 modules such as
``"A1-A3, C1"``) into a canonical, sorted, deduplicated set and provides the
merge, intersection, diff and ordering operations used when classifying and
colouring carbon contributions.

Phases come from the fixed sequence ``A1 .. A4, B1 .. B7, C1 .. C4, D`` and
belong to one of the stages ``A`` (production), ``B`` (use), ``C``
(disposal) and ``D`` (reuse).

Example:
    >>> from carbontrace.lifecycle import LifeCyclePhases
    >>> phases = LifeCyclePhases.parse("A3-A1; C1")
    >>> str(phases)
    'A1 - A3, C1'
    >>> phases.stages
    ('A', 'C')
"""

from __future__ import annotations

import logging
import math
import re
from functools import cmp_to_key
from itertools import chain
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Sequence, Tuple, Union

from carbontrace.exceptions import InvalidLifeCyclePhase

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

#: All life cycle phases in their canonical order.
LIFE_CYCLE_PHASE_SEQUENCE: Tuple[str, ...] = (
    "A1", "A2", "A3", "A4",
    "B1", "B2", "B3", "B4", "B5", "B6", "B7",
    "C1", "C2", "C3", "C4",
    "D",
)

#: All life cycle stages in their canonical order.
LIFE_CYCLE_STAGE_SEQUENCE: Tuple[str, ...] = ("A", "B", "C", "D")

_PHASE_INDEX: Dict[str, int] = {
    phase: i for i, phase in enumerate(LIFE_CYCLE_PHASE_SEQUENCE)
}

LIFE_CYCLE_PHASE_DESCRIPTION: Dict[str, str] = {
    "A1": "raw material supply (and upstream production)",
    "A2": "cradle-to-gate transport to factory",
    "A3": "production",
    "A4": "transport to final destination",
    "B1": "usage phase",
    "B2": "maintenance",
    "B3": "repair",
    "B4": "replacement",
    "B5": "update/upgrade, refurbishing",
    "B6": "usage energy consumption",
    "B7": "usage water consumption",
    "C1": "reassembly",
    "C2": "transport to recycler",
    "C3": "recycling, waste treatment",
    "C4": "landfill",
    "D": "reuse",
}

LIFE_CYCLE_STAGE_DESCRIPTION: Dict[str, str] = {
    "A": "production",
    "B": "use",
    "C": "disposal",
    "D": "reuse",
}

LIFE_CYCLE_PHASES_BY_STAGE: Dict[str, Tuple[str, ...]] = {
    stage: tuple(p for p in LIFE_CYCLE_PHASE_SEQUENCE if p.startswith(stage))
    for stage in LIFE_CYCLE_STAGE_SEQUENCE
}

#: RGB colour per phase.
LIFE_CYCLE_PHASE_COLOR: Dict[str, Tuple[int, int, int]] = {
    "A1": (96, 190, 182),
    "A2": (96, 194, 167),
    "A3": (96, 197, 151),
    "A4": (96, 201, 132),
    "B1": (97, 204, 113),
    "B2": (96, 207, 91),
    "B3": (97, 210, 69),
    "B4": (97, 211, 56),
    "B5": (97, 213, 43),
    "B6": (106, 216, 36),
    "B7": (120, 219, 37),
    "C1": (135, 222, 36),
    "C2": (153, 226, 35),
    "C3": (173, 228, 34),
    "C4": (195, 232, 33),
    "D": (219, 236, 34),
}

LIFE_CYCLE_STAGE_COLOR: Dict[str, Tuple[int, int, int]] = {
    "A": (96, 190, 182),
    "B": (96, 210, 69),
    "C": (153, 226, 35),
    "D": (219, 236, 34),
}

#: Colour used when no life cycle phase is specified.
UNSPECIFIED_COLOR: Tuple[float, float, float] = (204.0, 204.0, 204.0)

#: Text used when no life cycle phase is specified.
UNSPECIFIED_TEXT = "unspecified life cycle phase"

_TOKEN = r"(?:[A-C]\d\d?|(?<!\w)D(?!\w))"
_SEPARATORS = r"[ \-–—―‒,;|+&/\\]+"

# A phase token, or several joined by separators (lists and ranges).
_LIFE_CYCLE_RE = re.compile(
    rf"({_TOKEN}(?:{_SEPARATORS}{_TOKEN})*)", re.MULTILINE,
)
_LIST_SEPARATOR_RE = re.compile(r"[;|+&/\\ ]")
_DASH_RE = re.compile(r"[–—―‒]")
_SPACED_DASH_RE = re.compile(r" *- *")

PhaseLike = Union[str, "LifeCyclePhases", None]


class LifeCyclePhaseDiff(NamedTuple):
    """Result of :meth:`LifeCyclePhases.diff`."""

    only_this: List[str]
    only_other: List[str]
    both: List[str]


# ---------------------------------------------------------------------------
# Single phase helpers
# ---------------------------------------------------------------------------


def phase_to_stage(phase: str) -> str:
    """Return the stage letter a phase belongs to."""
    stage = phase[:1].upper()
    if stage in LIFE_CYCLE_STAGE_SEQUENCE:
        return stage
    raise InvalidLifeCyclePhase(f"Unknown life cycle stage of '{phase}'", value=phase)


def parse_life_cycle_phase(text: str) -> str:
    """Parse a string holding exactly one life cycle phase.

    Args:
        text: String whose first two characters name the phase.

    Returns:
        The canonical phase code.

    Raises:
        InvalidLifeCyclePhase: If the string does not start with a phase.
    """
    code = text.strip()[:2].upper()
    if code in _PHASE_INDEX:
        return code
    if code[:1] in _PHASE_INDEX:
        return code[:1]
    raise InvalidLifeCyclePhase(f"Invalid life cycle phase: {text!r}", value=text)


def _index(phase: Optional[str]) -> float:
    if not phase:
        return math.inf
    return _PHASE_INDEX[phase]


def _first(value: PhaseLike) -> Optional[str]:
    if isinstance(value, LifeCyclePhases):
        return value.phases[0] if value.phases else None
    return value


def _last(value: PhaseLike) -> Optional[str]:
    if isinstance(value, LifeCyclePhases):
        return value.phases[-1] if value.phases else None
    return value


def life_cycle_phase_sort(a: PhaseLike, b: PhaseLike) -> int:
    """Compare phases or phase sets for sorting.

    Orders by first phase. On a tie, where at least one side is a set, the
    last phases decide, so a span sorts after a single phase starting at
    the same point. Empty values sort last.

    Returns:
        Negative, zero or positive like a classic ``cmp`` function.
    """
    delta = _index(_first(a)) - _index(_first(b))
    if (delta == 0 or math.isnan(delta)) and (
        isinstance(a, LifeCyclePhases) or isinstance(b, LifeCyclePhases)
    ):
        delta = _index(_last(a)) - _index(_last(b))
    if math.isnan(delta):
        return 0
    return (delta > 0) - (delta < 0)


def _parse_range(text: str) -> List[str]:
    """Expand ``"A3-C1"`` (or chained ``"A3-C1-D"``) into its phases.

    Malformed endpoints are dropped and the range spans the valid ones,
    so ``"A3-A7"`` keeps ``A3``.
    """
    ends: List[str] = []
    for part in text.split("-"):
        if not part:
            continue
        try:
            ends.append(parse_life_cycle_phase(part))
        except InvalidLifeCyclePhase:
            logger.debug("Ignoring malformed life cycle token %r in %r", part, text)
    if len(ends) < 2:
        return ends
    phases: List[str] = []
    for one, other in zip(ends, ends[1:]):
        low, high = sorted((_PHASE_INDEX[one], _PHASE_INDEX[other]))
        phases.extend(LIFE_CYCLE_PHASE_SEQUENCE[low:high + 1])
    return phases


def _range_to_string(low: int, high: int) -> str:
    if low == high:
        return LIFE_CYCLE_PHASE_SEQUENCE[low]
    if low + 1 == high:
        return f"{LIFE_CYCLE_PHASE_SEQUENCE[low]}, {LIFE_CYCLE_PHASE_SEQUENCE[high]}"
    return f"{LIFE_CYCLE_PHASE_SEQUENCE[low]} - {LIFE_CYCLE_PHASE_SEQUENCE[high]}"


# ---------------------------------------------------------------------------
# LifeCyclePhases
# ---------------------------------------------------------------------------


class LifeCyclePhases:
    """Immutable, sorted and deduplicated set of life cycle phases.

    Use the factories :meth:`parse`, :meth:`from_phases` and :meth:`empty`
    instead of the constructor. Every factory returns the one shared empty
    instance when no phase is found, but compare with ``==`` or ``not``
    rather than identity.
    """

    __slots__ = ("_phases", "_original", "_color", "_as_string")

    def __init__(self, phases: Sequence[str], original: str):
        self._phases: Tuple[str, ...] = tuple(phases)
        self._original = original
        self._color: Optional[Tuple[float, float, float]] = None
        self._as_string: Optional[str] = None

    # -- Factories -------------------------------------------------------

    @classmethod
    def empty(cls) -> LifeCyclePhases:
        """Return the canonical empty instance."""
        return _EMPTY

    @classmethod
    def parse(cls, text: Union[str, Iterable[str], None, bool] = None) -> LifeCyclePhases:
        """Find every phase, list and range inside free text.

        Separators ``, ; | + & / \\`` and all dashes are accepted. Tokens
        that look like phases but are not (``"A7"``, ``"C0"``) are dropped.

        Args:
            text: Free text, a list of strings (joined with ``", "``), or a
                falsy value.

        Returns:
            The parsed phases, or the empty instance.
        """
        if isinstance(text, LifeCyclePhases):
            return text
        if text is None or text is False or text is True:
            return _EMPTY
        if not isinstance(text, str):
            text = ", ".join(text)
        if not text.strip():
            return _EMPTY

        phases: List[str] = []
        for match in _LIFE_CYCLE_RE.findall(text.strip()):
            dashed = _SPACED_DASH_RE.sub("-", _DASH_RE.sub("-", match))
            normalized = _LIST_SEPARATOR_RE.sub(",", dashed)
            for part in normalized.split(","):
                if part:
                    phases.extend(_parse_range(part))

        if not phases:
            return _EMPTY
        unique = sorted(set(phases), key=_PHASE_INDEX.__getitem__)
        return cls(unique, text)

    @classmethod
    def from_phases(cls, phases: Iterable[str]) -> LifeCyclePhases:
        """Build an instance from already separated phase codes."""
        return cls.parse(list(phases))

    @classmethod
    def merged(cls, *instances: Optional[LifeCyclePhases]) -> LifeCyclePhases:
        """Union of several instances.

        ``None`` entries are skipped. With no instance left the empty
        instance is returned; with exactly one, that very instance.
        """
        present = [p for p in instances if p is not None]
        if not present:
            return _EMPTY
        if len(present) == 1:
            return present[0]
        return cls.parse(list(chain.from_iterable(p.phases for p in present)))

    # -- Properties ------------------------------------------------------

    @property
    def phases(self) -> Tuple[str, ...]:
        """Phases in canonical order."""
        return self._phases

    @property
    def stages(self) -> Tuple[str, ...]:
        """Stages of the phases, consecutive duplicates collapsed."""
        stages = [phase_to_stage(p) for p in self._phases]
        return tuple(s for i, s in enumerate(stages) if i == 0 or stages[i - 1] != s)

    @property
    def original(self) -> str:
        """Source string; always ``""`` for the empty instance."""
        return self._original

    @property
    def color(self) -> Tuple[float, float, float]:
        """Mean RGB colour of all phases."""
        if self._color is not None:
            return self._color
        if not self._phases:
            return UNSPECIFIED_COLOR
        count = len(self._phases)
        channels = zip(*(LIFE_CYCLE_PHASE_COLOR[p] for p in self._phases))
        red, green, blue = (sum(c) / count for c in channels)
        self._color = (red, green, blue)
        return self._color

    # -- Set operations --------------------------------------------------

    def merge(self, *others: LifeCyclePhases) -> LifeCyclePhases:
        return LifeCyclePhases.merged(self, *others)

    def intersection(self, other: LifeCyclePhases) -> List[str]:
        """Phases present in both, in this instance's order."""
        return [p for p in self._phases if p in other._phases]

    def diff(self, other: LifeCyclePhases) -> LifeCyclePhaseDiff:
        """Split phases into only-this, only-other and both.

        Walks both sorted phase lists once, so it runs in linear time.
        """
        only_this: List[str] = []
        only_other: List[str] = []
        both: List[str] = []
        mine, theirs = self._phases, other._phases
        i = j = 0
        while i < len(mine) and j < len(theirs):
            this_index = _PHASE_INDEX[mine[i]]
            other_index = _PHASE_INDEX[theirs[j]]
            if this_index < other_index:
                only_this.append(mine[i])
                i += 1
            elif this_index > other_index:
                only_other.append(theirs[j])
                j += 1
            else:
                both.append(mine[i])
                i += 1
                j += 1
        only_this.extend(mine[i:])
        only_other.extend(theirs[j:])
        return LifeCyclePhaseDiff(only_this, only_other, both)

    def compare_to(self, other: PhaseLike) -> int:
        """Compare to a phase or phase set for sorting."""
        return life_cycle_phase_sort(self, other)

    @staticmethod
    def sort(values: Iterable[PhaseLike]) -> List[PhaseLike]:
        """Sort phases and phase sets with :func:`life_cycle_phase_sort`."""
        return sorted(values, key=cmp_to_key(life_cycle_phase_sort))

    def equals(self, other: object) -> bool:
        return isinstance(other, LifeCyclePhases) and self._phases == other._phases

    # -- Rendering -------------------------------------------------------

    def to_string(
        self,
        as_html: bool = False,
        include_description_if_none_or_one: bool = False,
    ) -> str:
        """Render the phases with consecutive runs collapsed into ranges.

        Args:
            as_html: Use ``&ndash;`` and wrap the unspecified text in ``<em>``.
            include_description_if_none_or_one: Append the description of a
                single phase, or name the empty set explicitly.
        """
        if self._as_string is None:
            groups: List[Tuple[int, int]] = []
            for phase in self._phases:
                current = _PHASE_INDEX[phase]
                if groups and groups[-1][1] + 1 == current:
                    groups[-1] = (groups[-1][0], current)
                else:
                    groups.append((current, current))
            self._as_string = ", ".join(_range_to_string(low, high) for low, high in groups)

        dash = "&ndash;" if as_html else "–"
        result = self._as_string
        if not result and include_description_if_none_or_one:
            result = UNSPECIFIED_TEXT
        if include_description_if_none_or_one and len(self._phases) == 1:
            result += f" {dash} {LIFE_CYCLE_PHASE_DESCRIPTION[self._phases[0]]}"
        if as_html and not self._phases and result:
            result = f"<em>{result}</em>"
        return result

    # -- Dunder protocol -------------------------------------------------

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"LifeCyclePhases({self.to_string()!r})"

    def __len__(self) -> int:
        return len(self._phases)

    def __iter__(self) -> Iterator[str]:
        return iter(self._phases)

    def __contains__(self, phase: object) -> bool:
        return phase in self._phases

    def __bool__(self) -> bool:
        return bool(self._phases)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LifeCyclePhases):
            return NotImplemented
        return self._phases == other._phases

    def __hash__(self) -> int:
        return hash(self._phases)

    def __lt__(self, other: PhaseLike) -> bool:
        return self.compare_to(other) < 0


_EMPTY = LifeCyclePhases((), "")


__all__ = [
    "LIFE_CYCLE_PHASE_SEQUENCE",
    "LIFE_CYCLE_STAGE_SEQUENCE",
    "LIFE_CYCLE_PHASE_DESCRIPTION",
    "LIFE_CYCLE_STAGE_DESCRIPTION",
    "LIFE_CYCLE_PHASES_BY_STAGE",
    "LIFE_CYCLE_PHASE_COLOR",
    "LIFE_CYCLE_STAGE_COLOR",
    "UNSPECIFIED_COLOR",
    "UNSPECIFIED_TEXT",
    "LifeCyclePhaseDiff",
    "LifeCyclePhases",
    "life_cycle_phase_sort",
    "parse_life_cycle_phase",
    "phase_to_stage",
]
