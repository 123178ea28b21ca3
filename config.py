"""Configuration constants for the scenario mock server."""

HOST: str = "127.0.0.1"
PORT: int = 8080
SERVER_NAME: str = "scenario-mock-server/0.1"
BUFFER_SIZE: int = 4096
SOCKET_TIMEOUT_SECS: int = 5
MAX_HEADER_BYTES: int = 16_384
MAX_BODY_BYTES: int = 1_048_576
MAX_TARGET_LENGTH: int = 8_192
WORKER_COUNT: int = 8
REQUEST_QUEUE_SIZE: int = 64
SHUTDOWN_DRAIN_SECS: float = 2.0
LOG_FORMAT: str = "plain"
LOG_LEVEL: str = "INFO"

# Reserved path answered by the server itself, never routed to a backend.
METRICS_PATH: str = "/__mock/metrics"

TEXT_ENCODING: str = "utf-8"

# Static capability declaration advertised on every CORS preflight.
CORS_ALLOWED_METHODS: str = "GET, HEAD, POST, PUT, DELETE, PATCH"

# method, path, headers, params, body
SCORE_VECTOR_LENGTH: int = 5
