"""
Energy Telemetry Schema for GridBrain

Defines the per-location energy record served by the external grid
telemetry endpoint, and how its JSON fields map onto LocationRecord.
"""

import math
from dataclasses import dataclass
from typing import Any, Mapping

from .errors import TelemetryError


@dataclass(frozen=True)
class TelemetryFieldSpec:
    """Specification for a single wire field."""
    wire_name: str
    attr: str
    kind: type
    unit: str
    description: str
    # Optional fields are not used by scoring; absent ones keep the record default
    required: bool = True


# Complete wire schema of one element of the telemetry JSON array
LOCATION_RECORD_SCHEMA: list[TelemetryFieldSpec] = [
    TelemetryFieldSpec(
        wire_name="Location",
        attr="location",
        kind=str,
        unit="",
        description="Location key, joined against the node 'location' label",
    ),
    TelemetryFieldSpec(
        wire_name="Time",
        attr="time",
        kind=str,
        unit="",
        description="Sample timestamp, opaque to scoring",
        required=False,
    ),
    TelemetryFieldSpec(
        wire_name="Battery_charge",
        attr="battery_charge",
        kind=float,
        unit="%",
        description="Battery state of charge, expected in [0, 100]",
    ),
    TelemetryFieldSpec(
        wire_name="Renewable_output",
        attr="renewable_output",
        kind=float,
        unit="kW",
        description="Renewable generation at the location",
    ),
    TelemetryFieldSpec(
        wire_name="Primary_load",
        attr="primary_load",
        kind=float,
        unit="kW",
        description="Primary load served at the location",
    ),
    TelemetryFieldSpec(
        wire_name="Unmet_load",
        attr="unmet_load",
        kind=float,
        unit="kW",
        description="Load the local grid failed to serve",
        required=False,
    ),
]


@dataclass(frozen=True)
class LocationRecord:
    """One telemetry sample for a named location."""
    location: str
    renewable_output: float
    primary_load: float
    battery_charge: float
    unmet_load: float = 0.0
    time: str = ""

    @property
    def is_scorable(self) -> bool:
        """True when the renewable ratio is defined for this record."""
        values = (self.renewable_output, self.primary_load, self.battery_charge)
        return self.primary_load != 0 and all(math.isfinite(v) for v in values)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "LocationRecord":
        """
        Decode one element of the telemetry JSON array.

        Raises:
            TelemetryError: if the element is not an object, a required
                field is missing, or a field has the wrong type.
        """
        if not isinstance(payload, Mapping):
            raise TelemetryError(f"expected a JSON object, got {type(payload).__name__}")

        values = {}
        for spec in LOCATION_RECORD_SCHEMA:
            if payload.get(spec.wire_name) is None and not spec.required:
                continue
            if spec.wire_name not in payload:
                raise TelemetryError(f"missing field {spec.wire_name!r}")
            raw = payload[spec.wire_name]
            if spec.kind is str:
                if not isinstance(raw, str):
                    raise TelemetryError(f"field {spec.wire_name!r} must be a string")
                values[spec.attr] = raw
            else:
                # bool is an int subclass, but never a valid quantity
                if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                    raise TelemetryError(f"field {spec.wire_name!r} must be a number")
                values[spec.attr] = float(raw)
        return cls(**values)

    def to_dict(self) -> dict:
        """Encode back to the wire field names."""
        return {spec.wire_name: getattr(self, spec.attr) for spec in LOCATION_RECORD_SCHEMA}


# Wire field names for payload validation
WIRE_FIELD_NAMES = [spec.wire_name for spec in LOCATION_RECORD_SCHEMA]
