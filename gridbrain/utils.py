"""
GridBrain Utility Functions

Shared helper functions to ensure consistent behavior across the codebase.
"""

import logging
import sys
from typing import Optional

from . import config
from .scoring import ScoringResult


_LOGGING_CONFIGURED = False


def configure_logging(level: Optional[str] = None) -> None:
    """Configure process-wide logging once."""
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    logging.basicConfig(
        level=(level or config.LOGGING.LEVEL).upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    _LOGGING_CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the requested module."""
    return logging.getLogger(name)


def create_neutral_result(node_name: str, reason: str, detail: str = "") -> ScoringResult:
    """
    Create a fallback result with the standard neutral score.

    Used when:
    - Telemetry could not be fetched or decoded
    - The node has no location label, or no record matches it
    - The matched record cannot be scored (zero load, NaN/Inf)

    Args:
        node_name: Name of the node
        reason: Short machine-readable fallback reason (metric label)
        detail: Human-readable explanation

    Returns:
        ScoringResult carrying the fallback score
    """
    reasoning = f"FALLBACK ({reason}): {detail}" if detail else f"FALLBACK ({reason})"
    return ScoringResult(
        node_name=node_name,
        score=config.SCORE.FALLBACK_SCORE,
        reasoning=reasoning,
        fallback_reason=reason,
    )
