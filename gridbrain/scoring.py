"""
Energy Scoring Function for GridBrain.

Turns a matched LocationRecord into a bounded integer placement score:
a sigmoid over the renewable surplus ratio blended with the battery
state of charge, optionally nudged by pod/node suffix affinity.
"""

import math
from dataclasses import dataclass
from typing import Optional

from . import config
from .telemetry_schema import LocationRecord


@dataclass
class ScoringResult:
    """Result from a scoring operation."""
    node_name: str
    score: int  # 0-100
    reasoning: str
    fallback_reason: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.fallback_reason is not None

    def to_dict(self) -> dict:
        return {
            "node_name": self.node_name,
            "score": self.score,
            "reasoning": self.reasoning,
        }


class UnscorableRecordError(ValueError):
    """The record has zero primary load or non-finite quantities."""


def clamp_score(value: float) -> int:
    """Round half-to-even and clamp into the host score band."""
    score = config.SCORE
    return max(score.MIN_SCORE, min(score.MAX_SCORE, int(round(value))))


def renewable_score(renewable_output: float, primary_load: float) -> float:
    """
    Logistic transform of the renewable surplus ratio, in [0, 100].

    renew_diff = (renewable_output - primary_load) / primary_load
    renew_score = 100 / (1 + e^(-k * renew_diff))

    Raises:
        UnscorableRecordError: if primary_load is zero.
    """
    if primary_load == 0:
        raise UnscorableRecordError("primary load is zero, renewable ratio undefined")
    renew_diff = (renewable_output - primary_load) / primary_load
    exponent = -config.SCORE.SIGMOID_STEEPNESS * renew_diff
    # e^x overflows a float above ~709; the sigmoid has saturated long before
    if exponent > 700:
        return 0.0
    return 100 / (1.0 + math.exp(exponent))


def blend_score(record: LocationRecord) -> float:
    """Unclamped blend of the renewable and battery terms."""
    if not record.is_scorable:
        raise UnscorableRecordError(
            f"record for {record.location!r} is not scorable "
            f"(primary_load={record.primary_load}, battery={record.battery_charge})"
        )
    weights = config.SCORE
    renew = renewable_score(record.renewable_output, record.primary_load)
    return (
        round(renew) * weights.RENEWABLE_WEIGHT
        + (round(record.battery_charge) - weights.BATTERY_OFFSET) * weights.BATTERY_WEIGHT
    )


def compute_score(record: LocationRecord) -> int:
    """
    Score a matched telemetry record.

    Deterministic; the result is always within [MIN_SCORE, MAX_SCORE].
    Records with zero primary load or NaN/Inf values get FALLBACK_SCORE.
    """
    try:
        return clamp_score(blend_score(record))
    except UnscorableRecordError:
        return config.SCORE.FALLBACK_SCORE


def apply_suffix_affinity(score: int, pod_digit: Optional[int], node_name: str) -> int:
    """
    Add SUFFIX_MATCH_BONUS when node_name ends in the pod's suffix digit.

    No pod digit, or a node name not ending in a digit, leaves the score
    unchanged.
    """
    if pod_digit is None or not node_name:
        return score
    last = node_name[-1]
    if last in "0123456789" and int(last) == pod_digit:
        return clamp_score(score + config.SCORE.SUFFIX_MATCH_BONUS)
    return score


def generate_reasoning(node_name: str, score: int, record: LocationRecord) -> str:
    """Human-readable reasoning for a score based on the telemetry used."""
    reasons = []

    surplus = record.renewable_output - record.primary_load
    if surplus > 0:
        reasons.append("renewable surplus")
    elif surplus < 0:
        reasons.append("renewable deficit")

    if record.battery_charge >= 80:
        reasons.append("battery well charged")
    elif record.battery_charge <= 20:
        reasons.append("battery depleted")

    if record.unmet_load > 0:
        reasons.append("unmet load reported")

    if not reasons:
        reasons.append("balanced grid")

    return (
        f"Node {node_name} @ {record.location}: {', '.join(reasons)} "
        f"(renewable={record.renewable_output:g}, load={record.primary_load:g}, "
        f"battery={record.battery_charge:g}%) -> {score}"
    )
