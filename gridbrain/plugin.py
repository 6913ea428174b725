"""
GridScore plugin: the scoring orchestrator.

Mirrors the scheduler-framework extension points the host forwards to us:

- pre_score: once per cycle, extracts the pod's suffix digit
- score / score_nodes: per candidate node, fetches telemetry once per
  cycle, matches the node's location and blends the energy score
- post_bind: reports the bind decision and ends the cycle

Nothing on the score path raises. Every failure degrades to
SCORE.FALLBACK_SCORE with a SUCCESS status so telemetry problems never
block placement.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from . import config
from .cycle_state import (
    PLUGIN_NAME,
    PRE_SCORE_STATE_KEY,
    CycleState,
    PodFeature,
    extract_suffix_digit,
)
from .errors import NodeLookupError, PluginConfigError, TelemetryError
from .metrics import fallback_scores, score_distribution
from .node_lister import NodeCandidate, NodeLister, PodInfo
from .notifier import BindNotifier
from .scoring import (
    ScoringResult,
    apply_suffix_affinity,
    compute_score,
    generate_reasoning,
)
from .telemetry_client import TelemetryClient, match_location
from .utils import create_neutral_result, get_logger

logger = get_logger(__name__)


class StatusCode(Enum):
    SUCCESS = "Success"
    ERROR = "Error"


@dataclass(frozen=True)
class Status:
    code: StatusCode = StatusCode.SUCCESS
    message: str = ""

    @property
    def is_success(self) -> bool:
        return self.code is StatusCode.SUCCESS

    def to_dict(self) -> dict:
        return {"code": self.code.value, "message": self.message}


SUCCESS = Status()


@dataclass(frozen=True)
class PluginArgs:
    """Arguments the host decodes from the scheduler profile."""
    reverse: bool = False

    @classmethod
    def from_dict(cls, payload: Optional[Mapping[str, Any]]) -> "PluginArgs":
        """
        Raises:
            PluginConfigError: unknown keys, a non-bool reverse, or
                reverse=true (reversed preference is not supported).
        """
        if payload is None:
            return cls()
        if not isinstance(payload, Mapping):
            raise PluginConfigError(f"{PLUGIN_NAME} args must be an object")
        unknown = set(payload) - {"reverse"}
        if unknown:
            raise PluginConfigError(f"unknown {PLUGIN_NAME} args: {sorted(unknown)}")
        reverse = payload.get("reverse", False)
        if not isinstance(reverse, bool):
            raise PluginConfigError(f"{PLUGIN_NAME} args: reverse must be a bool")
        if reverse:
            raise PluginConfigError(
                f"{PLUGIN_NAME} args: reverse=true is not supported, "
                "remove it from the scheduler profile"
            )
        return cls(reverse=reverse)


class GridScorePlugin:
    """
    Ranks candidate nodes by the energy telemetry at their location.

    Stateless across nodes: all per-cycle data lives in the CycleState
    passed to each call, so score() may run concurrently for different
    nodes of the same cycle.
    """

    def __init__(
        self,
        args: Optional[PluginArgs] = None,
        telemetry: Optional[TelemetryClient] = None,
        node_lister: Optional[NodeLister] = None,
        notifier: Optional[BindNotifier] = None,
        max_workers: Optional[int] = None,
    ):
        self.args = args or PluginArgs()
        self.telemetry = telemetry or TelemetryClient()
        self.node_lister = node_lister or NodeLister()
        self.notifier = notifier or BindNotifier()
        self.max_workers = max_workers or config.SERVER.MAX_WORKERS

    @property
    def name(self) -> str:
        return PLUGIN_NAME

    def pre_score(self, state: CycleState, pod: PodInfo) -> Status:
        """Store the pod's suffix digit; never fails the cycle."""
        digit = extract_suffix_digit(pod.name)
        state.write(PRE_SCORE_STATE_KEY, PodFeature(suffix_digit=digit))
        logger.debug("PreScore pod %s/%s suffix_digit=%s", pod.namespace, pod.name, digit)
        return SUCCESS

    def score(self, state: CycleState, pod: PodInfo, node: NodeCandidate) -> tuple[int, Status]:
        result = self.score_node(state, pod, node)
        return result.score, SUCCESS

    def score_node(self, state: CycleState, pod: PodInfo, node: NodeCandidate) -> ScoringResult:
        """Score one candidate, with reasoning and fallback reason."""
        result = self._score_node(state, node)
        if result.is_fallback:
            fallback_scores.labels(reason=result.fallback_reason).inc()
        score_distribution.observe(result.score)
        return result

    def _score_node(self, state: CycleState, node: NodeCandidate) -> ScoringResult:
        try:
            records = self._cycle_telemetry(state)
        except TelemetryError as e:
            return create_neutral_result(node.name, "telemetry_unavailable", str(e))

        try:
            location = self.node_lister.location_of(node)
        except NodeLookupError as e:
            logger.warning("Score: %s", e)
            return create_neutral_result(node.name, "node_lookup_failed", str(e))
        if location is None:
            return create_neutral_result(
                node.name,
                "missing_location_label",
                f"node has no '{self.node_lister.location_label}' label",
            )

        record = match_location(records, location)
        if record is None:
            logger.info("Score: no telemetry for location %r (node %s)", location, node.name)
            return create_neutral_result(
                node.name, "location_not_found", f"no telemetry for location {location!r}"
            )

        if not record.is_scorable:
            detail = (
                f"record for {location!r} is not scorable "
                f"(primary_load={record.primary_load}, battery={record.battery_charge})"
            )
            logger.warning("Score: %s", detail)
            return create_neutral_result(node.name, "invalid_telemetry", detail)

        energy_score = compute_score(record)

        feature = state.pod_feature()
        final = apply_suffix_affinity(energy_score, feature.suffix_digit, node.name)
        reasoning = generate_reasoning(node.name, final, record)
        if final != energy_score:
            reasoning += f" (+suffix match {feature.suffix_digit})"
        return ScoringResult(node_name=node.name, score=final, reasoning=reasoning)

    def _cycle_telemetry(self, state: CycleState) -> Sequence:
        def fetch():
            try:
                return self.telemetry.fetch_location_records()
            except TelemetryError as e:
                # Runs once per cycle, so this is logged once, not per node
                logger.warning("Telemetry unavailable for cycle %s, using fallback scores: %s",
                               state.cycle_id or "-", e)
                raise

        return state.telemetry(fetch)

    def score_nodes(
        self,
        state: CycleState,
        pod: PodInfo,
        nodes: Sequence[NodeCandidate],
    ) -> list[ScoringResult]:
        """Score all candidates concurrently, sharing one telemetry fetch."""
        if not nodes:
            return []
        workers = min(self.max_workers, len(nodes))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="gridbrain-score") as pool:
            return list(pool.map(lambda n: self.score_node(state, pod, n), nodes))

    def post_bind(self, state: Optional[CycleState], pod: PodInfo, node_name: str) -> None:
        """Report the bind; errors are logged by the notifier, never raised."""
        logger.info("PostBind pod %s/%s -> %s", pod.namespace, pod.name, node_name)
        self.notifier.notify(node_name)

    def close(self) -> None:
        self.notifier.shutdown(wait=False)
        self.telemetry.close()
