# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Validation constraints for Para object fields.

A constraint is one of a closed set of kinds, each with a small payload
that the server understands::

    {"size": {"min": 1, "max": 50, "message": "messages.size"}}
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class ConstraintKind(StrEnum):
    """The constraint kinds the server validates."""

    REQUIRED = "required"
    MIN = "min"
    MAX = "max"
    SIZE = "size"
    DIGITS = "digits"
    PATTERN = "pattern"
    EMAIL = "email"
    FALSY = "falsy"
    TRUTHY = "truthy"
    FUTURE = "future"
    PAST = "past"
    URL = "url"


def _message(kind: ConstraintKind) -> str:
    return f"messages.{kind.value}"


def _require(**values: Any) -> None:
    missing = [name for name, value in values.items() if value is None]
    if missing:
        raise ValueError(f"Constraint arguments must not be None: {missing}")


@dataclass(frozen=True)
class Constraint:
    """A validation constraint: a kind plus its payload."""

    kind: ConstraintKind
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.kind.value

    def to_dict(self) -> dict[str, Any]:
        """Wire form: ``{name: payload}``."""
        return {self.name: dict(self.payload)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Constraint":
        """Parse the wire form produced by ``to_dict()``.

        Raises:
            ValueError: If the mapping does not hold exactly one known
                constraint.
        """
        if len(data) != 1:
            raise ValueError("Expected a single constraint entry")
        ((name, payload),) = data.items()
        kind = ConstraintKind(name)
        return cls(kind, dict(payload or {}))

    @classmethod
    def _simple(cls, kind: ConstraintKind) -> "Constraint":
        return cls(kind, {"message": _message(kind)})

    @classmethod
    def required(cls) -> "Constraint":
        return cls._simple(ConstraintKind.REQUIRED)

    @classmethod
    def min(cls, value: Any) -> "Constraint":
        _require(value=value)
        kind = ConstraintKind.MIN
        return cls(kind, {"value": value, "message": _message(kind)})

    @classmethod
    def max(cls, value: Any) -> "Constraint":
        _require(value=value)
        kind = ConstraintKind.MAX
        return cls(kind, {"value": value, "message": _message(kind)})

    @classmethod
    def size(cls, min: Any, max: Any) -> "Constraint":  # noqa: A002
        """Length bounds for strings and collections."""
        _require(min=min, max=max)
        kind = ConstraintKind.SIZE
        return cls(kind, {"min": min, "max": max, "message": _message(kind)})

    @classmethod
    def digits(cls, integer: Any, fraction: Any) -> "Constraint":
        """Maximum digits in the integral and fractional parts."""
        _require(integer=integer, fraction=fraction)
        kind = ConstraintKind.DIGITS
        return cls(
            kind,
            {
                "integer": integer,
                "fraction": fraction,
                "message": _message(kind),
            },
        )

    @classmethod
    def pattern(cls, regex: Any) -> "Constraint":
        _require(regex=regex)
        kind = ConstraintKind.PATTERN
        return cls(kind, {"value": regex, "message": _message(kind)})

    @classmethod
    def email(cls) -> "Constraint":
        return cls._simple(ConstraintKind.EMAIL)

    @classmethod
    def falsy(cls) -> "Constraint":
        return cls._simple(ConstraintKind.FALSY)

    @classmethod
    def truthy(cls) -> "Constraint":
        return cls._simple(ConstraintKind.TRUTHY)

    @classmethod
    def future(cls) -> "Constraint":
        return cls._simple(ConstraintKind.FUTURE)

    @classmethod
    def past(cls) -> "Constraint":
        return cls._simple(ConstraintKind.PAST)

    @classmethod
    def url(cls) -> "Constraint":
        return cls._simple(ConstraintKind.URL)
