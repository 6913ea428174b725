"""
GridBrain - Energy-aware Node Scoring

This package implements the scoring "Brain" behind the GridScore scheduler
plugin:
- config: Centralized configuration constants
- telemetry_schema: Per-location energy record definitions
- telemetry_client: External telemetry fetch and location matching
- cycle_state: Per-scheduling-cycle state and pod suffix feature
- scoring: Renewable/battery blend and suffix affinity
- plugin: PreScore/Score/PostBind orchestration
- server: gRPC server over Unix Domain Socket
- utils: Shared utility functions
"""

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "TELEMETRY",
    "SCORE",
    "SERVER",
    # Core classes
    "LocationRecord",
    "TelemetryClient",
    "match_location",
    "CycleState",
    "PodFeature",
    "extract_suffix_digit",
    "compute_score",
    "GridScorePlugin",
    "PluginArgs",
    # Server
    "GridBrainServer",
    "GridScoreServicer",
    # Utilities
    "create_neutral_result",
]

# Lazy imports keep `import gridbrain` free of grpc/kubernetes side effects
def __getattr__(name):
    if name in ("TELEMETRY", "SCORE", "SERVER"):
        from . import config
        return getattr(config, name)
    elif name == "LocationRecord":
        from .telemetry_schema import LocationRecord
        return LocationRecord
    elif name in ("TelemetryClient", "match_location"):
        from . import telemetry_client
        return getattr(telemetry_client, name)
    elif name in ("CycleState", "PodFeature", "extract_suffix_digit"):
        from . import cycle_state
        return getattr(cycle_state, name)
    elif name == "compute_score":
        from .scoring import compute_score
        return compute_score
    elif name in ("GridScorePlugin", "PluginArgs"):
        from . import plugin
        return getattr(plugin, name)
    elif name in ("GridBrainServer", "GridScoreServicer"):
        from . import server
        return getattr(server, name)
    elif name == "create_neutral_result":
        from .utils import create_neutral_result
        return create_neutral_result
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
