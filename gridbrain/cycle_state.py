"""
Per-scheduling-cycle state for GridBrain.

A CycleState lives from PreScore until the pod is bound (or the cycle is
evicted). It carries the pod's suffix feature and the one telemetry
snapshot shared by every Score call of the cycle.
"""

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from .errors import TelemetryError
from .telemetry_schema import LocationRecord

PLUGIN_NAME = "GridScore"
PRE_SCORE_STATE_KEY = "PreScore" + PLUGIN_NAME


@dataclass(frozen=True)
class PodFeature:
    """Feature extracted from the pod at PreScore."""
    suffix_digit: Optional[int] = None


def extract_suffix_digit(pod_name: Optional[str]) -> Optional[int]:
    """Return the pod name's last character as an int if it is 0-9, else None."""
    if not pod_name:
        return None
    last = pod_name[-1]
    # str.isdigit() also accepts superscripts and other non-ASCII digits
    if last in "0123456789":
        return int(last)
    return None


class CycleState:
    """
    Key/value state for one scheduling cycle plus the shared telemetry.

    telemetry() is single-flight: the first caller runs the fetch while
    holding the lock, later callers reuse its records or its failure.
    """

    def __init__(self, cycle_id: str = ""):
        self.cycle_id = cycle_id
        self._data: dict[str, Any] = {}
        self._data_lock = threading.Lock()
        self._telemetry_lock = threading.Lock()
        self._telemetry_done = False
        self._records: Optional[Sequence[LocationRecord]] = None
        self._telemetry_error: Optional[TelemetryError] = None
        self.fetch_count = 0

    def write(self, key: str, value: Any) -> None:
        with self._data_lock:
            self._data[key] = value

    def read(self, key: str, default: Any = None) -> Any:
        with self._data_lock:
            return self._data.get(key, default)

    def pod_feature(self) -> PodFeature:
        """The PreScore feature, or an empty one if PreScore stored none."""
        return self.read(PRE_SCORE_STATE_KEY) or PodFeature()

    def telemetry(self, fetch: Callable[[], Sequence[LocationRecord]]) -> Sequence[LocationRecord]:
        """
        Return the cycle's telemetry, calling fetch at most once per cycle.

        Raises:
            TelemetryError: the (single) fetch of this cycle failed.
        """
        with self._telemetry_lock:
            if not self._telemetry_done:
                self.fetch_count += 1
                try:
                    self._records = tuple(fetch())
                except TelemetryError as e:
                    self._telemetry_error = e
                self._telemetry_done = True

        if self._telemetry_error is not None:
            raise self._telemetry_error
        return self._records

    @property
    def telemetry_failed(self) -> bool:
        return self._telemetry_done and self._telemetry_error is not None


class CycleStore:
    """
    Bounded registry of live cycles, keyed by cycle id.

    Cycles are discarded on PostBind; cycles that never reach PostBind
    (the pod failed to bind elsewhere) are evicted oldest-first once
    max_cycles is exceeded.
    """

    def __init__(self, max_cycles: int):
        self.max_cycles = max_cycles
        self._cycles: "OrderedDict[str, CycleState]" = OrderedDict()
        self._lock = threading.Lock()

    def get_or_create(self, cycle_id: str) -> CycleState:
        with self._lock:
            state = self._cycles.get(cycle_id)
            if state is None:
                return self._insert(cycle_id)
            self._cycles.move_to_end(cycle_id)
            return state

    def start(self, cycle_id: str) -> CycleState:
        """Begin a fresh cycle, replacing any previous state for the id."""
        with self._lock:
            self._cycles.pop(cycle_id, None)
            return self._insert(cycle_id)

    def _insert(self, cycle_id: str) -> CycleState:
        state = CycleState(cycle_id)
        self._cycles[cycle_id] = state
        while len(self._cycles) > self.max_cycles:
            self._cycles.popitem(last=False)
        return state

    def pop(self, cycle_id: str) -> Optional[CycleState]:
        """Remove and return the cycle, if it is still live."""
        with self._lock:
            return self._cycles.pop(cycle_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._cycles)

    def __contains__(self, cycle_id: str) -> bool:
        with self._lock:
            return cycle_id in self._cycles
