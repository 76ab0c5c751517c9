"""Domain-level validation rules for capacity thresholds and urgency weights."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CapacityThresholds:
    near_capacity_ratio: float
    at_capacity_ratio: float


@dataclass(frozen=True)
class UrgencyWeights:
    priority_weight: float
    utilization_weight: float
    utilization_cap: float
    scarcity_weight: float


def validate_capacity_thresholds(thresholds: CapacityThresholds) -> None:
    if thresholds.near_capacity_ratio <= 0.0:
        raise ValueError("near_capacity_ratio must be > 0")
    if thresholds.at_capacity_ratio <= 0.0:
        raise ValueError("at_capacity_ratio must be > 0")
    if thresholds.near_capacity_ratio > thresholds.at_capacity_ratio:
        raise ValueError("near_capacity_ratio must not exceed at_capacity_ratio")


def validate_urgency_weights(weights: UrgencyWeights) -> None:
    # Negative weights would let a higher input lower the score.
    if weights.priority_weight <= 0.0:
        raise ValueError("priority_weight must be > 0")
    if weights.utilization_weight < 0.0:
        raise ValueError("utilization_weight must be >= 0")
    if weights.utilization_cap <= 0.0:
        raise ValueError("utilization_cap must be > 0")
    if weights.scarcity_weight < 0.0:
        raise ValueError("scarcity_weight must be >= 0")
