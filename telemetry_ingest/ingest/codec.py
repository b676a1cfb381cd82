from typing import NamedTuple

from pydantic import ValidationError

from telemetry_ingest.errors import CodecError
from telemetry_ingest.schemas import LogMessage


class DecodedMessage(NamedTuple):
    event: LogMessage
    # exact text received, stored as the audit payload
    raw_text: str


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        if err["type"] == "json_invalid":
            parts.append(str(err.get("ctx", {}).get("error", err["msg"])))
            continue
        loc = ".".join(str(p) for p in err["loc"]) or "body"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def decode_message(raw: bytes) -> DecodedMessage:
    """
    Decode one frame into a validated log event.

    Raises CodecError carrying the decoder's diagnostic when the bytes are
    not UTF-8 or the text is not a well-formed log envelope.
    """
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CodecError(f"Invalid UTF-8: {e}") from e

    try:
        event = LogMessage.model_validate_json(text)
    except ValidationError as e:
        raise CodecError(f"Invalid JSON: {_describe(e)}") from e

    return DecodedMessage(event=event, raw_text=text)
