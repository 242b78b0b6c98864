"""Strategies that derive ``required()`` from total voting power."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from govledger.core.config import PolicyConfig


@runtime_checkable
class RequiredPolicy(Protocol):
    """Computes the approval threshold for the current total power."""

    def required(self, total_power: int) -> int: ...


class MajorityPolicy:
    """Strictly more than half of total power."""

    def required(self, total_power: int) -> int:
        return total_power // 2 + 1

    def __repr__(self) -> str:
        return "MajorityPolicy()"


class PercentagePolicy:
    """At least ``percent`` percent of total power, rounded up."""

    def __init__(self, percent: int) -> None:
        if not 0 < percent <= 100:
            raise ValueError(f"Percent must be in (0, 100], got {percent}")
        self.percent = percent

    def required(self, total_power: int) -> int:
        return max(1, -(-total_power * self.percent // 100))

    def __repr__(self) -> str:
        return f"PercentagePolicy(percent={self.percent})"


class FixedPolicy:
    """A constant threshold regardless of total power."""

    def __init__(self, threshold: int) -> None:
        if threshold < 1:
            raise ValueError(f"Threshold must be at least 1, got {threshold}")
        self.threshold = threshold

    def required(self, total_power: int) -> int:
        return self.threshold

    def __repr__(self) -> str:
        return f"FixedPolicy(threshold={self.threshold})"


def create_policy(config: PolicyConfig | None = None) -> RequiredPolicy:
    """Build the policy named by ``config.kind``.

    Raises:
        ValueError: If the kind is unknown.
    """
    config = config or PolicyConfig()
    kind = config.kind.lower()
    if kind == "majority":
        return MajorityPolicy()
    if kind == "percentage":
        return PercentagePolicy(config.percent)
    if kind == "fixed":
        return FixedPolicy(config.threshold)
    raise ValueError(
        f"Unknown policy kind '{config.kind}'. "
        f"Available kinds: ['majority', 'percentage', 'fixed']"
    )
