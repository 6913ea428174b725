"""
gRPC Server for GridBrain

Listens on a Unix Domain Socket for PreScore/Score/PostBind calls from the
Go scheduler plugin. Messages are JSON objects; the service is registered
through a generic handler, so no generated stubs are needed on this side.
"""

import asyncio
import json
import os
import signal
import time
from concurrent import futures
from typing import Any, Optional

import grpc
from grpc import aio

from . import __version__, config
from .cycle_state import CycleStore
from .errors import PluginConfigError
from .metrics import start_metrics_server
from .node_lister import NodeCandidate, PodInfo
from .plugin import SUCCESS, GridScorePlugin, PluginArgs, Status, StatusCode
from .utils import configure_logging, create_neutral_result, get_logger

logger = get_logger(__name__)

SERVICE_NAME = "gridbrain.GridScore"


def decode_message(data: bytes) -> Optional[dict]:
    """Request deserializer: a JSON object, or None if the body is not one."""
    if not data:
        return {}
    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None
    return payload if isinstance(payload, dict) else None


def encode_message(payload: dict) -> bytes:
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


class InvalidRequest(ValueError):
    """The request body is missing required fields."""


def _parse_pod(request: Optional[dict]) -> tuple[str, PodInfo]:
    if request is None:
        raise InvalidRequest("request body must be a JSON object")
    pod_payload = request.get("pod")
    if not isinstance(pod_payload, dict):
        raise InvalidRequest("pod must be an object")
    try:
        pod = PodInfo.from_dict(pod_payload)
    except ValueError as e:
        raise InvalidRequest(str(e)) from e
    cycle_id = request.get("cycle_id") or pod.uid
    if not cycle_id:
        raise InvalidRequest("cycle_id or pod.uid is required")
    return str(cycle_id), pod


def _parse_node(payload: Any) -> NodeCandidate:
    if not isinstance(payload, dict):
        raise InvalidRequest("node must be an object")
    try:
        return NodeCandidate.from_dict(payload)
    except ValueError as e:
        raise InvalidRequest(str(e)) from e


class GridScoreServicer:
    """
    Implements the GridScore gRPC service.

    Handles PreScore, Score, BatchScore, PostBind and HealthCheck RPCs.
    Plugin calls block on network I/O, so they run on a thread pool.

    Safety Features:
    - Score/BatchScore never set an error code: a non-OK status drops the
      response body, so bad requests and failures are answered with the
      fallback score and logged here instead
    - Telemetry is fetched once per cycle and shared across nodes
    """

    def __init__(
        self,
        plugin: Optional[GridScorePlugin] = None,
        cycles: Optional[CycleStore] = None,
        max_workers: Optional[int] = None,
        version: str = __version__,
    ):
        self.plugin = plugin or GridScorePlugin()
        self.cycles = cycles or CycleStore(config.SERVER.MAX_LIVE_CYCLES)
        self.executor = futures.ThreadPoolExecutor(
            max_workers=max_workers or config.SERVER.MAX_WORKERS,
            thread_name_prefix="gridbrain-rpc",
        )
        self.version = version
        self.last_latency_ms = 0

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, fn, *args)

    @staticmethod
    def _reject(context, message: str) -> None:
        context.set_code(grpc.StatusCode.INVALID_ARGUMENT)
        context.set_details(message)

    async def PreScore(self, request, context):
        """Start a cycle and store the pod feature."""
        try:
            cycle_id, pod = _parse_pod(request)
        except InvalidRequest as e:
            self._reject(context, str(e))
            return {"status": Status(StatusCode.ERROR, str(e)).to_dict()}

        state = self.cycles.start(cycle_id)
        status = await self._run(self.plugin.pre_score, state, pod)
        return {
            "status": status.to_dict(),
            "suffix_digit": state.pod_feature().suffix_digit,
        }

    async def Score(self, request, context):
        """Handle single node score request."""
        start_time = time.perf_counter()
        node_name = ""
        try:
            cycle_id, pod = _parse_pod(request)
            node = _parse_node(request.get("node"))
            node_name = node.name
        except InvalidRequest as e:
            logger.warning("Score: invalid request: %s", e)
            result = create_neutral_result(node_name, "invalid_request", str(e))
            return {"score": result.score, "status": SUCCESS.to_dict(), "reasoning": result.reasoning}

        try:
            state = self.cycles.get_or_create(cycle_id)
            result = await self._run(self.plugin.score_node, state, pod, node)
        except Exception as e:
            logger.exception("Score failed for node %s", node_name)
            result = create_neutral_result(node_name, "internal_error", str(e))

        self.last_latency_ms = int((time.perf_counter() - start_time) * 1000)
        return {"score": result.score, "status": SUCCESS.to_dict(), "reasoning": result.reasoning}

    async def BatchScore(self, request, context):
        """Handle batch scoring for all candidate nodes of a cycle."""
        start_time = time.perf_counter()
        try:
            cycle_id, pod = _parse_pod(request)
            raw_nodes = request.get("nodes")
            if not isinstance(raw_nodes, list):
                raise InvalidRequest("nodes must be a list")
            nodes = [_parse_node(n) for n in raw_nodes]
        except InvalidRequest as e:
            logger.warning("BatchScore: invalid request: %s", e)
            return {"scores": [], "status": SUCCESS.to_dict()}

        try:
            state = self.cycles.get_or_create(cycle_id)
            results = await self._run(self.plugin.score_nodes, state, pod, nodes)
        except Exception as e:
            logger.exception("BatchScore failed for cycle %s", cycle_id)
            results = [create_neutral_result(n.name, "internal_error", str(e)) for n in nodes]

        self.last_latency_ms = int((time.perf_counter() - start_time) * 1000)
        return {
            "scores": [r.to_dict() for r in results],
            "status": SUCCESS.to_dict(),
        }

    async def PostBind(self, request, context):
        """Report the bind and end the cycle."""
        try:
            cycle_id, pod = _parse_pod(request)
            node_name = request.get("node_name")
            if not isinstance(node_name, str) or not node_name:
                raise InvalidRequest("node_name is required")
        except InvalidRequest as e:
            self._reject(context, str(e))
            return {"status": Status(StatusCode.ERROR, str(e)).to_dict()}

        state = self.cycles.pop(cycle_id)
        await self._run(self.plugin.post_bind, state, pod, node_name)
        return {"status": SUCCESS.to_dict()}

    async def HealthCheck(self, request, context):
        """Health check for the host's circuit breaker."""
        return {
            "healthy": True,
            "latency_ms": self.last_latency_ms,
            "version": self.version,
            "live_cycles": len(self.cycles),
        }

    def close(self) -> None:
        self.executor.shutdown(wait=False)
        self.plugin.close()


def build_generic_handler(servicer: GridScoreServicer) -> grpc.GenericRpcHandler:
    """Register the servicer's RPCs under SERVICE_NAME with the JSON codec."""
    methods = ("PreScore", "Score", "BatchScore", "PostBind", "HealthCheck")
    handlers = {
        name: grpc.unary_unary_rpc_method_handler(
            getattr(servicer, name),
            request_deserializer=decode_message,
            response_serializer=encode_message,
        )
        for name in methods
    }
    return grpc.method_handlers_generic_handler(SERVICE_NAME, handlers)


class GridBrainServer:
    """
    Async gRPC server that listens on Unix Domain Socket.
    """

    def __init__(
        self,
        uds_path: str = config.SERVER.DEV_UDS_PATH,
        tcp_port: Optional[int] = None,
        max_workers: Optional[int] = None,
        plugin: Optional[GridScorePlugin] = None,
    ):
        self.uds_path = uds_path
        self.tcp_port = tcp_port if tcp_port is not None else config.SERVER.TCP_PORT
        self.max_workers = max_workers or config.SERVER.MAX_WORKERS
        self.servicer = GridScoreServicer(plugin=plugin, max_workers=self.max_workers)
        self.server: Optional[aio.Server] = None

    async def start(self):
        """Start the gRPC server on UDS and TCP."""
        # Ensure socket directory exists
        socket_dir = os.path.dirname(self.uds_path)
        if socket_dir and not os.path.exists(socket_dir):
            os.makedirs(socket_dir, exist_ok=True)

        # Remove existing socket file
        if os.path.exists(self.uds_path):
            os.unlink(self.uds_path)

        self.server = aio.server(
            options=[
                ("grpc.max_send_message_length", 16 * 1024 * 1024),
                ("grpc.max_receive_message_length", 16 * 1024 * 1024),
            ],
        )
        self.server.add_generic_rpc_handlers((build_generic_handler(self.servicer),))

        self.server.add_insecure_port(f"unix://{self.uds_path}")
        # TCP for Kubernetes health checks and external access
        self.server.add_insecure_port(f"[::]:{self.tcp_port}")

        logger.info("GridBrain server starting on unix://%s and TCP port %d", self.uds_path, self.tcp_port)
        await self.server.start()
        logger.info("GridBrain server ready")

    async def stop(self):
        """Stop the server gracefully."""
        if self.server:
            await self.server.stop(grace=config.SERVER.GRACE_SECONDS)
        self.servicer.close()
        if os.path.exists(self.uds_path):
            os.unlink(self.uds_path)
        logger.info("GridBrain server stopped")

    async def wait_for_termination(self):
        """Wait for server termination."""
        if self.server:
            await self.server.wait_for_termination()


async def serve(uds_path: str = config.SERVER.DEV_UDS_PATH, plugin_args: Optional[PluginArgs] = None):
    """Main entry point to run the GridBrain server."""
    plugin = GridScorePlugin(args=plugin_args)
    server = GridBrainServer(uds_path=uds_path, plugin=plugin)

    # Handle shutdown signals (must use get_running_loop inside async context)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda: asyncio.create_task(server.stop()))

    await server.start()
    await server.wait_for_termination()


def main(argv=None):
    import argparse
    parser = argparse.ArgumentParser(description="GridBrain energy-aware scoring server")
    parser.add_argument(
        "--socket",
        default=config.SERVER.DEV_UDS_PATH,
        help="Unix socket path"
    )
    parser.add_argument(
        "--plugin-args",
        default="{}",
        help='Plugin arguments as JSON, e.g. \'{"reverse": false}\''
    )
    args = parser.parse_args(argv)

    try:
        config.load_from_env()
        plugin_args = PluginArgs.from_dict(json.loads(args.plugin_args))
    except (PluginConfigError, ValueError) as e:
        parser.error(str(e))

    configure_logging()
    if config.METRICS.ENABLED:
        start_metrics_server(config.METRICS.PORT)

    asyncio.run(serve(args.socket, plugin_args))


if __name__ == "__main__":
    main()
