"""
Field identity — matching template fields to stored manual-input keys.

Saved inputs arrive from several generations of clients, so the key for a
field is not always its exact ``field_name``. A FieldId is computed once per
template load and carries the ordered list of candidate strategies; a
ManualInputIndex is built once per resolution pass over the stored inputs.
Matching walks the strategies in order and the first one that yields a key
holding a non-None value wins.

Strategy order:
    exact        field_name as stored
    lower        field_name.lower()
    upper        field_name.upper()
    snake        both sides normalised to snake_case, letter/digit split
                 (flashPoint21 and flash_point_21 both become flash_point_21)
    stripped     both sides lower-cased with separators removed
    order_index  question_<orderIndex>
    step_field   step_<stepNumber>_<field_name>
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

STRATEGY_EXACT = "exact"
STRATEGY_LOWER = "lower"
STRATEGY_UPPER = "upper"
STRATEGY_SNAKE = "snake"
STRATEGY_STRIPPED = "stripped"
STRATEGY_ORDER_INDEX = "order_index"
STRATEGY_STEP_FIELD = "step_field"

STRATEGY_ORDER = (
    STRATEGY_EXACT,
    STRATEGY_LOWER,
    STRATEGY_UPPER,
    STRATEGY_SNAKE,
    STRATEGY_STRIPPED,
    STRATEGY_ORDER_INDEX,
    STRATEGY_STEP_FIELD,
)

_SEPARATORS = re.compile(r"[\s\-.]+")
_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_LETTER_DIGIT = re.compile(r"([A-Za-z])(\d)")
_DIGIT_LETTER = re.compile(r"(\d)([A-Za-z])")
_UNDERSCORES = re.compile(r"_+")
_NON_ALNUM = re.compile(r"[^a-z0-9]")


def to_snake(name: str) -> str:
    """camelCase / PascalCase / kebab-case → snake_case with digits split off."""
    s = _SEPARATORS.sub("_", name.strip())
    s = _ACRONYM_BOUNDARY.sub(r"\1_\2", s)
    s = _CAMEL_BOUNDARY.sub(r"\1_\2", s)
    s = _LETTER_DIGIT.sub(r"\1_\2", s)
    s = _DIGIT_LETTER.sub(r"\1_\2", s)
    return _UNDERSCORES.sub("_", s).strip("_").lower()


def strip_separators(name: str) -> str:
    return _NON_ALNUM.sub("", name.lower())


@dataclass(frozen=True)
class FieldId:
    """Stable identity of one template field plus its lookup candidates."""

    name: str
    step_number: int
    order_index: int | None
    candidates: tuple[tuple[str, str], ...] = field(default=(), compare=False)

    @classmethod
    def for_template(cls, template) -> "FieldId":
        name = template.field_name
        order = template.effective_order
        candidates = [
            (STRATEGY_EXACT, name),
            (STRATEGY_LOWER, name.lower()),
            (STRATEGY_UPPER, name.upper()),
            (STRATEGY_SNAKE, to_snake(name)),
            (STRATEGY_STRIPPED, strip_separators(name)),
        ]
        if order is not None:
            candidates.append((STRATEGY_ORDER_INDEX, f"question_{order}"))
        candidates.append((STRATEGY_STEP_FIELD, f"step_{template.step_number}_{name}"))
        return cls(name=name, step_number=template.step_number, order_index=order, candidates=tuple(candidates))


@dataclass(frozen=True)
class FieldMatch:
    strategy: str
    key: str
    value: object


class ManualInputIndex:
    """Stored manual inputs indexed once for every matching strategy."""

    def __init__(self, inputs: dict | None) -> None:
        self.inputs = dict(inputs or {})
        self._by_snake: dict[str, list[str]] = {}
        self._by_stripped: dict[str, list[str]] = {}
        for key in self.inputs:
            self._by_snake.setdefault(to_snake(key), []).append(key)
            self._by_stripped.setdefault(strip_separators(key), []).append(key)
        self.matched_keys: set[str] = set()

    def _keys_for(self, strategy: str, candidate: str) -> list[str]:
        if strategy == STRATEGY_SNAKE:
            return self._by_snake.get(candidate, [])
        if strategy == STRATEGY_STRIPPED:
            return self._by_stripped.get(candidate, [])
        return [candidate] if candidate in self.inputs else []

    def match(self, field_id: FieldId) -> FieldMatch | None:
        """First strategy whose key holds a non-None value, or None."""
        for strategy, candidate in field_id.candidates:
            for key in self._keys_for(strategy, candidate):
                value = self.inputs[key]
                if value is not None:
                    self.matched_keys.add(key)
                    return FieldMatch(strategy=strategy, key=key, value=value)
        return None

    def lookup(self, field_id: FieldId):
        found = self.match(field_id)
        return found.value if found else None

    def unmatched_keys(self) -> list[str]:
        """Keys no ``match`` call has consumed so far, in stored order."""
        return [k for k in self.inputs if k not in self.matched_keys]
