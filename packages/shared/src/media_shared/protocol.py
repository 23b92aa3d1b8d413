"""
Protocol definitions for the media transcode runtime.

Message Flow:
    Caller -> Runtime: action = decodeBinary (base64 text to a binary object)
    Caller -> Runtime: action = transcodeImage (resize and re-encode an image)
    Runtime -> Caller: {id, binary, text?} on success
    Runtime -> Caller: {id, error} on failure

Every request carries a caller-generated id and is answered by exactly one
response with the same id. A message with an ``action`` key is a request, a
message with ``binary`` or ``error`` is a response.
"""
from __future__ import annotations

import base64
import binascii
import uuid
from dataclasses import dataclass
from typing import Any, Literal, Mapping, Union

Action = Literal["decodeBinary", "transcodeImage"]
OutputFormat = Literal["jpeg", "png", "webp"]

ACTIONS: tuple[str, ...] = ("decodeBinary", "transcodeImage")
OUTPUT_FORMATS: tuple[str, ...] = ("jpeg", "png", "webp")

DEFAULT_CONTENT_TYPE = "image/png"
DEFAULT_QUALITY = 0.8
DEFAULT_OUTPUT_FORMAT: OutputFormat = "jpeg"
MIN_QUALITY = 0.1
MAX_QUALITY = 1.0

MIME_TYPES: dict[str, str] = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}


class ProtocolError(Exception):
    """Raised when a message fails validation."""
    pass


class UnknownActionError(ProtocolError):
    """Raised when a request names an action the runtime does not serve."""

    def __init__(self, action: Any):
        self.action = action
        super().__init__(f"Unknown action: {action!r}")


class InvalidRequestError(ProtocolError):
    """Raised when a request is missing a field or a field is out of range."""
    pass


@dataclass(frozen=True)
class BinaryObject:
    """Immutable bytes tagged with a MIME content type."""
    data: bytes
    content_type: str = DEFAULT_CONTENT_TYPE

    def __post_init__(self) -> None:
        if isinstance(self.data, (bytearray, memoryview)):
            object.__setattr__(self, "data", bytes(self.data))
        if not isinstance(self.data, bytes):
            raise TypeError(f"BinaryObject data must be bytes, got {type(self.data).__name__}")

    def __len__(self) -> int:
        return len(self.data)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_uri(self) -> str:
        return f"data:{self.content_type};base64,{self.to_base64()}"


@dataclass(frozen=True)
class DecodeBinaryPayload:
    data: str
    content_type: str = DEFAULT_CONTENT_TYPE


@dataclass(frozen=True)
class TranscodeImagePayload:
    source: BinaryObject | str
    max_width: int
    max_height: int
    quality: float = DEFAULT_QUALITY
    output_format: OutputFormat = DEFAULT_OUTPUT_FORMAT

    @property
    def content_type(self) -> str:
        return MIME_TYPES[self.output_format]


ActionPayload = Union[DecodeBinaryPayload, TranscodeImagePayload]


@dataclass(frozen=True)
class DecodeResult:
    binary: BinaryObject


@dataclass(frozen=True)
class TranscodeResult:
    """Both representations of the same encoded image."""
    binary: BinaryObject
    text: str


def new_request_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Request:
    """Caller -> Runtime envelope."""
    id: str
    action: Action
    payload: ActionPayload

    @classmethod
    def decode_binary(
        cls,
        data: str,
        content_type: str = DEFAULT_CONTENT_TYPE,
        id: str | None = None,
    ) -> "Request":
        return cls(
            id=id or new_request_id(),
            action="decodeBinary",
            payload=DecodeBinaryPayload(data=data, content_type=content_type),
        )

    @classmethod
    def transcode_image(
        cls,
        source: BinaryObject | str,
        max_width: int,
        max_height: int,
        quality: float = DEFAULT_QUALITY,
        output_format: OutputFormat = DEFAULT_OUTPUT_FORMAT,
        id: str | None = None,
    ) -> "Request":
        return cls(
            id=id or new_request_id(),
            action="transcodeImage",
            payload=TranscodeImagePayload(
                source=source,
                max_width=max_width,
                max_height=max_height,
                quality=quality,
                output_format=output_format,
            ),
        )

    def to_message(self) -> dict[str, Any]:
        """Flat wire envelope. Binary sources stay as BinaryObject."""
        msg: dict[str, Any] = {"id": self.id, "action": self.action}
        payload = self.payload
        if isinstance(payload, DecodeBinaryPayload):
            msg["data"] = payload.data
            msg["contentType"] = payload.content_type
        else:
            msg["data"] = payload.source
            msg["maxWidth"] = payload.max_width
            msg["maxHeight"] = payload.max_height
            msg["quality"] = payload.quality
            msg["outputFormat"] = payload.output_format
        return msg


@dataclass(frozen=True)
class Response:
    """
    Runtime -> Caller envelope. Exactly one of a result (binary, and text
    for transcodes) or an error is present.
    """
    id: str
    binary: BinaryObject | None = None
    text: str | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if self.error is not None and (self.binary is not None or self.text is not None):
            raise ProtocolError("Response carries both a result and an error.")
        if self.error is None and self.binary is None:
            raise ProtocolError("Response carries neither a result nor an error.")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, id: str, result: DecodeResult | TranscodeResult) -> "Response":
        text = result.text if isinstance(result, TranscodeResult) else None
        return cls(id=id, binary=result.binary, text=text)

    @classmethod
    def failure(cls, id: str, message: str) -> "Response":
        return cls(id=id, error=message or "Unknown error")

    def to_message(self) -> dict[str, Any]:
        msg: dict[str, Any] = {"id": self.id}
        if self.error is not None:
            msg["error"] = self.error
            return msg
        msg["binary"] = self.binary
        if self.text is not None:
            msg["text"] = self.text
        return msg

    @classmethod
    def from_message(cls, msg: Mapping[str, Any]) -> "Response":
        if not is_response(msg):
            raise ProtocolError("Message is not a response.")
        binary = msg.get("binary")
        if binary is not None and not isinstance(binary, BinaryObject):
            raise ProtocolError("Response binary must be a BinaryObject.")
        return cls(
            id=msg["id"],
            binary=binary,
            text=msg.get("text"),
            error=msg.get("error"),
        )


def is_request(msg: Mapping[str, Any]) -> bool:
    return "action" in msg


def is_response(msg: Mapping[str, Any]) -> bool:
    return "action" not in msg and ("binary" in msg or "error" in msg)


def get_request_id(msg: Mapping[str, Any]) -> str | None:
    """Return the correlation id of a message, or None if it has no usable one."""
    msg_id = msg.get("id")
    if isinstance(msg_id, str) and msg_id:
        return msg_id
    return None


def _positive_int(msg: Mapping[str, Any], key: str) -> int:
    value = msg.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidRequestError(f"{key} must be a positive integer, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidRequestError(f"{key} must be a positive integer, got {value!r}")
        value = int(value)
    if value <= 0:
        raise InvalidRequestError(f"{key} must be a positive integer, got {value!r}")
    return value


def _quality(msg: Mapping[str, Any]) -> float:
    value = msg.get("quality")
    if value is None:
        return DEFAULT_QUALITY
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidRequestError(f"quality must be a number, got {value!r}")
    if not MIN_QUALITY <= value <= MAX_QUALITY:
        raise InvalidRequestError(
            f"quality must be within [{MIN_QUALITY}, {MAX_QUALITY}], got {value!r}"
        )
    return float(value)


def _output_format(msg: Mapping[str, Any]) -> OutputFormat:
    value = msg.get("outputFormat")
    if value is None:
        return DEFAULT_OUTPUT_FORMAT
    if not isinstance(value, str):
        raise InvalidRequestError(f"outputFormat must be a string, got {value!r}")
    fmt = value.lower()
    if fmt.startswith("image/"):
        fmt = fmt[len("image/"):]
    if fmt == "jpg":
        fmt = "jpeg"
    if fmt not in OUTPUT_FORMATS:
        raise InvalidRequestError(f"Unsupported outputFormat: {value!r}")
    return fmt  # type: ignore[return-value]


def parse_request(msg: Mapping[str, Any]) -> Request:
    """Validate an inbound envelope and build the typed Request."""
    msg_id = get_request_id(msg)
    if msg_id is None:
        raise InvalidRequestError("Request has no id.")

    action = msg.get("action")
    if action == "decodeBinary":
        data = msg.get("data")
        if not isinstance(data, str):
            raise InvalidRequestError("decodeBinary data must be a base64 string.")
        content_type = msg.get("contentType") or DEFAULT_CONTENT_TYPE
        if not isinstance(content_type, str):
            raise InvalidRequestError("contentType must be a string.")
        return Request.decode_binary(data, content_type, id=msg_id)

    if action == "transcodeImage":
        source = msg.get("data")
        if not isinstance(source, (BinaryObject, str)) or not source:
            raise InvalidRequestError(
                "transcodeImage data must be a binary object or a locator string."
            )
        return Request.transcode_image(
            source,
            max_width=_positive_int(msg, "maxWidth"),
            max_height=_positive_int(msg, "maxHeight"),
            quality=_quality(msg),
            output_format=_output_format(msg),
            id=msg_id,
        )

    raise UnknownActionError(action)


def to_json_message(msg: Mapping[str, Any]) -> dict[str, Any]:
    """Render binary objects in an envelope as {contentType, base64}."""
    out: dict[str, Any] = {}
    for key, value in msg.items():
        if isinstance(value, BinaryObject):
            out[key] = {"contentType": value.content_type, "base64": value.to_base64()}
        else:
            out[key] = value
    return out


def from_json_message(msg: Mapping[str, Any]) -> dict[str, Any]:
    """Inverse of to_json_message."""
    out: dict[str, Any] = {}
    for key, value in msg.items():
        if isinstance(value, dict) and "base64" in value:
            try:
                data = base64.b64decode(value["base64"], validate=True)
            except (binascii.Error, TypeError, ValueError) as e:
                raise ProtocolError(f"Invalid base64 in {key!r}: {e}") from e
            out[key] = BinaryObject(
                data=data,
                content_type=value.get("contentType") or DEFAULT_CONTENT_TYPE,
            )
        else:
            out[key] = value
    return out
