"""
Declarative score tables.

A table turns a handful of summary statistics into a score in ``[0, 100]``
(higher means more AI-like). It is pure configuration data, loaded from the
calibration file, so thresholds can be retuned without touching the code
that computes the statistics.

JSON form::

    {
        "base": 50,
        "clamp": [5, 95],
        "groups": [
            {"rules": [["shot_correlation > 0.35", -30],
                       ["shot_correlation > 0.2", -20]],
             "else": 8},
            {"rules": [["cv < 0.12", 28], ["cv < 0.2", 18]]}
        ]
    }

Within a group the first matching rule contributes its value (or ``else``
when nothing matches); the score is ``base`` plus every group's
contribution, clamped. A single group with ``base`` 0 is a plain band table.
"""
import math
import operator
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from .errors import CalibrationError

OPERATORS = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}


@dataclass(frozen=True)
class Condition:
    """``<statistic> <op> <threshold>``."""
    statistic: str
    op: str
    threshold: float

    def matches(self, stats: Mapping[str, float]) -> bool:
        value = stats.get(self.statistic)
        if value is None:
            return False
        value = float(value)
        if not math.isfinite(value):
            return False
        return OPERATORS[self.op](value, self.threshold)

    def __str__(self) -> str:
        return f"{self.statistic} {self.op} {self.threshold:g}"


def parse_condition(text: str) -> Tuple[Condition, ...]:
    """Parse ``"a < 1 and b >= 2"`` into conditions; ``"always"`` yields none."""
    text = text.strip()
    if text == "always":
        return ()
    conditions = []
    for clause in text.split(" and "):
        parts = clause.split()
        if len(parts) != 3 or parts[1] not in OPERATORS:
            raise CalibrationError(f"Malformed condition: {clause!r}")
        name, op, raw = parts
        try:
            threshold = float(raw)
        except ValueError:
            raise CalibrationError(f"Threshold is not a number in condition: {clause!r}")
        conditions.append(Condition(name, op, threshold))
    return tuple(conditions)


@dataclass(frozen=True)
class Rule:
    conditions: Tuple[Condition, ...]
    value: float

    def matches(self, stats: Mapping[str, float]) -> bool:
        return all(c.matches(stats) for c in self.conditions)


@dataclass(frozen=True)
class RuleGroup:
    rules: Tuple[Rule, ...]
    otherwise: float = 0.0

    def evaluate(self, stats: Mapping[str, float]) -> float:
        for rule in self.rules:
            if rule.matches(stats):
                return rule.value
        return self.otherwise


@dataclass(frozen=True)
class ScoreTable:
    """Ordered piecewise mapping from statistics to a score."""
    groups: Tuple[RuleGroup, ...]
    base: float = 0.0
    lo: float = 0.0
    hi: float = 100.0
    statistics: Tuple[str, ...] = field(default=(), compare=False)

    def raw_score(self, stats: Mapping[str, float]) -> float:
        return self.base + sum(group.evaluate(stats) for group in self.groups)

    def clamp(self, score: float) -> float:
        return float(min(self.hi, max(self.lo, score)))

    def evaluate(self, stats: Mapping[str, float]) -> float:
        return self.clamp(self.raw_score(stats))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ScoreTable":
        """Build a table from its JSON form, validating structure and bounds."""
        if not isinstance(data, Mapping):
            raise CalibrationError("scoring must be an object")
        raw_groups = data.get("groups")
        if not isinstance(raw_groups, Sequence) or not raw_groups:
            raise CalibrationError("scoring.groups must be a non-empty list")

        groups: List[RuleGroup] = []
        names: List[str] = []
        for raw_group in raw_groups:
            if not isinstance(raw_group, Mapping):
                raise CalibrationError(f"Rule group must be an object, got {raw_group!r}")
            rules = []
            for entry in raw_group.get("rules", []):
                if not isinstance(entry, Sequence) or len(entry) != 2:
                    raise CalibrationError(f"Rule must be [condition, value], got {entry!r}")
                conditions = parse_condition(str(entry[0]))
                rules.append(Rule(conditions, _number(entry[1], "rule value")))
                names.extend(c.statistic for c in conditions)
            otherwise = _number(raw_group.get("else", 0.0), "else value")
            groups.append(RuleGroup(tuple(rules), otherwise))

        bounds = data.get("clamp", [0, 100])
        if not isinstance(bounds, Sequence) or len(bounds) != 2:
            raise CalibrationError(f"clamp must be [lo, hi], got {bounds!r}")
        lo, hi = bounds
        lo, hi = _number(lo, "clamp"), _number(hi, "clamp")
        if not 0 <= lo <= hi <= 100:
            raise CalibrationError(f"clamp must satisfy 0 <= lo <= hi <= 100, got [{lo}, {hi}]")

        return cls(
            groups=tuple(groups),
            base=_number(data.get("base", 0.0), "base"),
            lo=lo,
            hi=hi,
            statistics=tuple(dict.fromkeys(names)),
        )


def _number(value: Any, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise CalibrationError(f"{label} must be a number, got {value!r}")
    return float(value)


def band_table(bands: Sequence[Tuple[str, float]], otherwise: float,
               lo: float = 0.0, hi: float = 100.0) -> ScoreTable:
    """Convenience constructor for a single-group band table."""
    rules = tuple(Rule(parse_condition(cond), float(value)) for cond, value in bands)
    return ScoreTable(groups=(RuleGroup(rules, float(otherwise)),), lo=lo, hi=hi,
                      statistics=tuple(dict.fromkeys(
                          c.statistic for r in rules for c in r.conditions)))


def describe_table(table: ScoreTable) -> Dict[str, Any]:
    """Inverse of :meth:`ScoreTable.from_dict` (used for listings)."""
    return {
        "base": table.base,
        "clamp": [table.lo, table.hi],
        "groups": [
            {
                "rules": [
                    [" and ".join(str(c) for c in rule.conditions) or "always", rule.value]
                    for rule in group.rules
                ],
                "else": group.otherwise,
            }
            for group in table.groups
        ],
    }
