"""
Node label resolution for GridBrain.

The host usually sends the candidate node's labels along with the Score
request. When it does not, labels are read from the Kubernetes API.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from kubernetes import client, config as k8s_config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError as TransportError

from . import config
from .errors import NodeLookupError
from .utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class NodeCandidate:
    """Read-only view of a candidate node supplied by the host."""
    name: str
    labels: Optional[Mapping[str, str]] = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "NodeCandidate":
        name = payload.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError("node.name is required")
        labels = payload.get("labels")
        if labels is not None and not isinstance(labels, Mapping):
            raise ValueError("node.labels must be an object")
        return cls(name=name, labels=dict(labels) if labels is not None else None)


@dataclass(frozen=True)
class PodInfo:
    """The pod being scheduled."""
    name: str
    namespace: str = "default"
    uid: str = ""
    labels: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PodInfo":
        name = payload.get("name")
        if not isinstance(name, str):
            raise ValueError("pod.name is required")
        return cls(
            name=name,
            namespace=payload.get("namespace") or "default",
            uid=payload.get("uid") or "",
            labels=dict(payload.get("labels") or {}),
        )


class NodeLister:
    """
    Resolves node labels, falling back to the Kubernetes API.

    Runs in offline mode (request labels only) when no cluster config
    can be loaded.
    """

    def __init__(
        self,
        v1: Optional[client.CoreV1Api] = None,
        location_label: Optional[str] = None,
        request_timeout: Optional[float] = None,
    ):
        self.location_label = location_label or config.KUBERNETES.LOCATION_LABEL
        self.request_timeout = request_timeout or config.KUBERNETES.REQUEST_TIMEOUT_SECONDS
        self.v1 = v1 if v1 is not None else self._connect()

    @staticmethod
    def _connect() -> Optional[client.CoreV1Api]:
        # Try in-cluster config first, then kube-config
        try:
            k8s_config.load_incluster_config()
        except k8s_config.config_exception.ConfigException:
            try:
                k8s_config.load_kube_config()
            except (k8s_config.config_exception.ConfigException, OSError):
                logger.warning("NodeLister: failed to load K8s config, running in offline mode")
                return None
        return client.CoreV1Api()

    def labels_of(self, node: NodeCandidate) -> Mapping[str, str]:
        """
        Raises:
            NodeLookupError: labels were not supplied and the API lookup failed.
        """
        if node.labels is not None:
            return node.labels
        if self.v1 is None:
            raise NodeLookupError(f"no labels supplied for node {node.name} and no K8s API available")
        try:
            api_node = self.v1.read_node(node.name, _request_timeout=self.request_timeout)
        except ApiException as e:
            raise NodeLookupError(f"reading node {node.name}: {e.status} {e.reason}") from e
        except (TransportError, OSError) as e:
            # API server unreachable or timed out
            raise NodeLookupError(f"reading node {node.name}: {e}") from e
        return api_node.metadata.labels or {}

    def location_of(self, node: NodeCandidate) -> Optional[str]:
        """The node's location label, or None when it has none."""
        return self.labels_of(node).get(self.location_label) or None
