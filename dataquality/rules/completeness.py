"""Weighted completeness scoring.

Pure logic, no DB: operates on an entity payload and a completeness
configuration mapping (``field_weights``, ``required_fields``,
``optional_fields``) already fetched by the caller.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from dataquality.rules import primitives
from dataquality.rules.defaults import GAP_RECOMMENDATIONS

DEFAULT_FIELD_WEIGHT = 1


@dataclass(frozen=True)
class CompletenessResult:
    score: int
    gaps: list[str]
    last_check: datetime
    earned_weight: float = 0
    total_weight: float = 0
    missing_optional: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "gaps": list(self.gaps),
            "last_check": self.last_check.isoformat(),
            "earned_weight": self.earned_weight,
            "total_weight": self.total_weight,
            "missing_optional": list(self.missing_optional),
        }


def field_weight(field_weights: Mapping[str, Any], field_name: str) -> float:
    weight = field_weights.get(field_name)
    if weight is None:
        return DEFAULT_FIELD_WEIGHT
    return weight


def calculate(
    instance: Mapping[str, Any],
    config: Mapping[str, Any],
    *,
    now: datetime | None = None,
) -> CompletenessResult:
    field_weights = config.get("field_weights") or {}
    gaps: list[str] = []
    missing_optional: list[str] = []
    total_weight: float = 0
    earned_weight: float = 0

    for name in config.get("required_fields") or []:
        weight = field_weight(field_weights, name)
        total_weight += weight
        if primitives.has_value(instance.get(name)):
            earned_weight += weight
        else:
            gaps.append(name)

    for name in config.get("optional_fields") or []:
        weight = field_weight(field_weights, name)
        total_weight += weight
        if primitives.has_value(instance.get(name)):
            earned_weight += weight
        else:
            missing_optional.append(name)

    score = primitives.clamp(primitives.percent(earned_weight, total_weight))
    return CompletenessResult(
        score=score,
        gaps=gaps,
        last_check=now or datetime.now(timezone.utc),
        earned_weight=earned_weight,
        total_weight=total_weight,
        missing_optional=missing_optional,
    )


def recommendations_for_fields(missing_fields: Iterable[str]) -> list[str]:
    missing = set(missing_fields)
    return [text for triggers, text in GAP_RECOMMENDATIONS if triggers & missing]
