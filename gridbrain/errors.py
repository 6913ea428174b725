"""
Exception hierarchy for the GridBrain scoring sidecar.

Only configuration errors are allowed to escape to the process level.
Everything raised on the scoring path is caught by the plugin and turned
into a fallback score.
"""


class GridBrainError(Exception):
    """Base class for all GridBrain errors."""


class TelemetryError(GridBrainError):
    """The external energy telemetry could not be fetched or decoded."""


class NodeLookupError(GridBrainError):
    """A candidate node's labels could not be resolved."""


class PluginConfigError(GridBrainError):
    """Invalid plugin arguments or environment configuration."""
