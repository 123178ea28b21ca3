"""Mock server entry point: accept loop, per-connection handling and CLI."""

from __future__ import annotations

import argparse
import json
import logging
import socket
import sys
import time

from config import (
    HOST,
    LOG_FORMAT,
    LOG_LEVEL,
    METRICS_PATH,
    PORT,
    REQUEST_QUEUE_SIZE,
    SHUTDOWN_DRAIN_SECS,
    SOCKET_TIMEOUT_SECS,
    WORKER_COUNT,
)
from dispatcher import MockDispatcher
from metrics import DispatchMetrics
from mock_backend import BackendConfigError, load_backend
from request import HTTPRequest, HTTPRequestParseError
from response import REASON_PHRASES, HTTPResponse
from socket_handler import (
    HeaderTooLargeError,
    HTTPReadError,
    MalformedRequestError,
    PayloadTooLargeError,
    SocketTimeoutError,
    read_http_request,
    write_http_response,
)
from thread_pool import ThreadPool

logger = logging.getLogger(__name__)

READ_ERROR_STATUS: dict[type[Exception], int] = {
    MalformedRequestError: 400,
    SocketTimeoutError: 408,
    PayloadTooLargeError: 413,
    HeaderTooLargeError: 431,
}


class MockServer:
    def __init__(
        self,
        dispatcher: MockDispatcher,
        host: str = HOST,
        port: int = PORT,
        worker_count: int = WORKER_COUNT,
        request_queue_size: int = REQUEST_QUEUE_SIZE,
        *,
        log_format: str = LOG_FORMAT,
    ) -> None:
        self.dispatcher = dispatcher
        self.host = host
        self.port = port
        self.worker_count = worker_count
        self.request_queue_size = request_queue_size
        self.log_format = log_format
        self.metrics = DispatchMetrics()

        self._server_socket: socket.socket | None = None
        self._pool: ThreadPool | None = None
        self._running = False

    def start(self) -> None:
        """Bind, then serve until ``stop`` is called."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server_socket:
            self._server_socket = server_socket
            server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_socket.bind((self.host, self.port))
            server_socket.listen(128)
            server_socket.settimeout(0.2)
            self.port = server_socket.getsockname()[1]
            self._pool = ThreadPool(
                worker_count=self.worker_count,
                queue_size=self.request_queue_size,
                handler=self._handle_client,
            )
            self._pool.start()
            logger.info("mock server listening on %s:%s", self.host, self.port)

            self._running = True
            try:
                while self._running:
                    try:
                        client_socket, address = server_socket.accept()
                    except socket.timeout:
                        continue
                    except OSError:
                        break

                    if self._pool is None or not self._pool.submit(client_socket, address):
                        self._send_queue_full_response(client_socket)
            finally:
                if self._pool is not None:
                    self._pool.shutdown(drain_timeout=SHUTDOWN_DRAIN_SECS)
                    self._pool = None

    def stop(self) -> None:
        self._running = False
        if self._server_socket is not None:
            self._server_socket.close()
            self._server_socket = None

    def _send_queue_full_response(self, client_socket: socket.socket) -> None:
        self.metrics.record_rejected_connection()
        with client_socket:
            response = HTTPResponse(
                status_code=503,
                headers={"Connection": "close"},
                body="Service Unavailable",
            )
            try:
                write_http_response(client_socket, response)
            except OSError:
                logger.warning("could not send 503 to rejected client")

    def _handle_client(self, client_socket: socket.socket, address: tuple[str, int]) -> None:
        with client_socket:
            client_socket.settimeout(SOCKET_TIMEOUT_SECS)
            started_at = time.perf_counter()
            try:
                raw_request = read_http_request(client_socket)
            except HTTPReadError as exc:
                self.metrics.record_read_error(exc.__class__.__name__)
                status_code = READ_ERROR_STATUS.get(type(exc), 400)
                response = HTTPResponse(status_code=status_code, body=REASON_PHRASES[status_code])
                self._reply(client_socket, address, "-", "-", response, started_at, None)
                return
            except OSError:
                return

            if not raw_request:
                return

            try:
                request = HTTPRequest.from_bytes(raw_request)
            except HTTPRequestParseError as exc:
                response = HTTPResponse(
                    status_code=exc.status_code,
                    body=REASON_PHRASES.get(exc.status_code, "Bad Request"),
                )
                self._reply(client_socket, address, "-", "-", response, started_at, None)
                return
            except ValueError:
                response = HTTPResponse(status_code=400, body="Bad Request")
                self._reply(client_socket, address, "-", "-", response, started_at, None)
                return

            response, outcome = self._dispatch(request, started_at)
            self._reply(
                client_socket, address, request.method, request.path, response, started_at, outcome
            )

    def _dispatch(self, request: HTTPRequest, started_at: float) -> tuple[HTTPResponse, str | None]:
        if request.path == METRICS_PATH and request.method == "GET":
            snapshot = self.metrics.snapshot(self.dispatcher.backends)
            return (
                HTTPResponse(
                    status_code=200,
                    headers={"Content-Type": "application/json"},
                    body=json.dumps(snapshot, sort_keys=True),
                ),
                None,
            )

        try:
            dispatched = self.dispatcher.build_response(request, started_at)
        except Exception:
            logger.exception("Unhandled error while building mock response")
            return HTTPResponse(status_code=500, body="Internal Server Error"), "error"
        return dispatched.response, dispatched.outcome

    def _reply(
        self,
        client_socket: socket.socket,
        address: tuple[str, int],
        method: str,
        path: str,
        response: HTTPResponse,
        started_at: float,
        outcome: str | None,
    ) -> None:
        response.headers.setdefault("Connection", "close")
        try:
            bytes_sent = write_http_response(client_socket, response)
        except OSError as exc:
            logger.warning("write failed for %s: %s", address[0], exc)
            bytes_sent = 0
        self._record_and_log(address, method, path, response, bytes_sent, started_at, outcome)

    def _record_and_log(
        self,
        address: tuple[str, int],
        method: str,
        path: str,
        response: HTTPResponse,
        bytes_sent: int,
        started_at: float,
        outcome: str | None,
    ) -> None:
        duration_ms = (time.perf_counter() - started_at) * 1000
        self.metrics.record_request(
            status_code=response.status_code,
            duration_ms=duration_ms,
            bytes_sent=bytes_sent,
            outcome=outcome,
        )
        event = {
            "client": address[0],
            "method": method,
            "path": path,
            "status": response.status_code,
            "outcome": outcome or "-",
            "bytes_out": bytes_sent,
            "latency_ms": round(duration_ms, 3),
        }
        if self.log_format == "json":
            logger.info(json.dumps(event, sort_keys=True))
            return

        logger.info(
            "client=%s method=%s path=%s status=%s outcome=%s bytes_out=%s duration_ms=%.2f",
            event["client"],
            event["method"],
            event["path"],
            event["status"],
            event["outcome"],
            event["bytes_out"],
            duration_ms,
        )


def _parse_key_value(raw: str) -> tuple[str, str]:
    key, separator, value = raw.partition("=")
    if not separator or not key:
        raise argparse.ArgumentTypeError(f"expected key=value, got {raw!r}")
    return key, value


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the scenario mock server")
    parser.add_argument(
        "--backend",
        action="append",
        required=True,
        metavar="PATH",
        help="backend definition JSON file; repeat for more backends (order matters)",
    )
    parser.add_argument(
        "--arg",
        action="append",
        default=[],
        type=_parse_key_value,
        metavar="KEY=VALUE",
        help="value passed to every backend, overriding its own args",
    )
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--workers", type=int, default=WORKER_COUNT)
    parser.add_argument("--queue-size", type=int, default=REQUEST_QUEUE_SIZE)
    parser.add_argument("--log-format", choices=["plain", "json"], default=LOG_FORMAT)
    parser.add_argument("--log-level", default=LOG_LEVEL)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=args.log_level.upper())

    backend_args = dict(args.arg)
    try:
        backends = [load_backend(path, args=backend_args) for path in args.backend]
    except BackendConfigError as exc:
        sys.stderr.write(f"invalid backend configuration: {exc}\n")
        return 2

    server = MockServer(
        MockDispatcher(backends),
        host=args.host,
        port=args.port,
        worker_count=args.workers,
        request_queue_size=args.queue_size,
        log_format=args.log_format,
    )
    try:
        server.start()
    except KeyboardInterrupt:
        server.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
