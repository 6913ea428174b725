"""
Post-bind notification for GridBrain.

After the host binds a pod, the chosen node is reported to an external
endpoint. The POST runs on a background executor; failures are logged
and counted, never raised.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

import requests

from . import config
from .metrics import bind_notifications
from .utils import get_logger

logger = get_logger(__name__)


class BindNotifier:
    """Fire-and-forget reporter of bind decisions."""

    def __init__(
        self,
        url: Optional[str] = None,
        enabled: Optional[bool] = None,
        timeout_seconds: Optional[float] = None,
        session: Optional[requests.Session] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.url = url or config.NOTIFIER.URL
        self.enabled = config.NOTIFIER.ENABLED if enabled is None else enabled
        self.timeout_seconds = timeout_seconds or config.NOTIFIER.TIMEOUT_SECONDS
        self.session = session or requests.Session()
        self.executor = executor or ThreadPoolExecutor(
            max_workers=config.NOTIFIER.MAX_WORKERS,
            thread_name_prefix="gridbrain-notify",
        )

    def notify(self, node_name: str) -> Optional[Future]:
        """Dispatch the notification and return immediately."""
        if not self.enabled:
            bind_notifications.labels(outcome="disabled").inc()
            return None
        return self.executor.submit(self._send, node_name)

    def _send(self, node_name: str) -> bool:
        try:
            resp = self.session.post(
                self.url,
                json={"node": node_name},
                timeout=self.timeout_seconds,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Bind notification for node %s failed: %s", node_name, e)
            bind_notifications.labels(outcome="failed").inc()
            return False
        except Exception:
            # Nobody collects the future, so anything unexpected is logged here
            logger.exception("Bind notification for node %s failed unexpectedly", node_name)
            bind_notifications.labels(outcome="failed").inc()
            return False
        bind_notifications.labels(outcome="sent").inc()
        return True

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)
        self.session.close()
