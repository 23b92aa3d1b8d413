"""
Shared protocol types and wire framing for media transcoding

The package is a dependency of the transcoder, the worker and the backend:
- Transcoder uses it for binary objects, payloads and results
- Worker uses it for envelopes and TCP framing
- Backend uses it for the JSON form of envelopes

Deployment:
    pip install media-transcode
"""

from .protocol import (
    ACTIONS,
    DEFAULT_CONTENT_TYPE,
    MIME_TYPES,
    OUTPUT_FORMATS,
    BinaryObject,
    DecodeBinaryPayload,
    DecodeResult,
    InvalidRequestError,
    ProtocolError,
    Request,
    Response,
    TranscodeImagePayload,
    TranscodeResult,
    UnknownActionError,
    from_json_message,
    get_request_id,
    is_request,
    is_response,
    new_request_id,
    parse_request,
    to_json_message,
)
from .tcp import (
    ConnectionFailed,
    RecvFailed,
    SendFailed,
    StreamConnection,
    TCPError,
    encode_frame,
    open_connection,
    read_frame,
)
from .files import (
    ALLOWED_IMG_EXTS,
    find_free_tcp_port,
    guess_content_type,
    is_in_dir,
)

__all__ = [
    # Protocol
    "ACTIONS",
    "OUTPUT_FORMATS",
    "MIME_TYPES",
    "DEFAULT_CONTENT_TYPE",
    "ProtocolError",
    "UnknownActionError",
    "InvalidRequestError",
    "BinaryObject",
    "DecodeBinaryPayload",
    "TranscodeImagePayload",
    "DecodeResult",
    "TranscodeResult",
    "Request",
    "Response",
    "new_request_id",
    "get_request_id",
    "is_request",
    "is_response",
    "parse_request",
    "to_json_message",
    "from_json_message",
    # TCP
    "TCPError",
    "ConnectionFailed",
    "SendFailed",
    "RecvFailed",
    "StreamConnection",
    "encode_frame",
    "read_frame",
    "open_connection",
    # Files
    "ALLOWED_IMG_EXTS",
    "is_in_dir",
    "guess_content_type",
    "find_free_tcp_port",
]
