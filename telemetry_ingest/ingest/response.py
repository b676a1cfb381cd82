from datetime import datetime, timezone

from telemetry_ingest.schemas import Response

STORED = "Log received and stored"
STORE_FAILED = "Failed to store log"
POOL_EXHAUSTED = "Database connection pool exhausted"
SERVER_BUSY = "Server busy, too many connections"


def build_response(status: str, message: str) -> Response:
    return Response(
        status=status,
        message=message,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


def success(message: str = STORED) -> Response:
    return build_response("success", message)


def error(message: str) -> Response:
    return build_response("error", message)


def encode_response(response: Response) -> bytes:
    """Serialize one reply as a newline-terminated JSON line."""
    return response.model_dump_json().encode("utf-8") + b"\n"
