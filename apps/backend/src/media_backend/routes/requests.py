"""Request submission routes."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from flask import Blueprint, abort, current_app, jsonify, request

from media_shared import protocol
from media_worker import ConnectionClosed

logger = logging.getLogger(__name__)

requests_bp = Blueprint("requests", __name__, url_prefix="/api")


def _parse_int(value: str | None) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _parse_float(value: str | None) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _submit(msg: dict[str, Any]):
    host = current_app.config["runtime_host"]
    try:
        response = host.submit(msg)
    except asyncio.TimeoutError:
        logger.warning("Request %s timed out", msg.get("id"))
        return jsonify({"id": msg.get("id"), "error": "Timed out waiting for the runtime"}), 504
    except ConnectionClosed as e:
        logger.error("Runtime unavailable: %s", e)
        return jsonify({"id": msg.get("id"), "error": "Runtime unavailable"}), 503
    except ValueError as e:
        abort(409, description=str(e))

    return jsonify(protocol.to_json_message(response.to_message()))


@requests_bp.post("/requests")
def submit_request():
    """Submit a JSON envelope; binary fields use {contentType, base64}."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        abort(400, description="Body must be a JSON object")

    try:
        msg = protocol.from_json_message(body)
    except protocol.ProtocolError as e:
        abort(400, description=str(e))

    if protocol.get_request_id(msg) is None:
        abort(400, description="Request needs a non-empty string id")
    if not protocol.is_request(msg):
        abort(400, description="Request needs an action")

    return _submit(msg)


@requests_bp.post("/transcode")
def transcode_upload():
    """Transcode an uploaded image file."""
    f = request.files.get("file")
    if f is None:
        abort(400, description="Missing file field 'file'")

    data = f.read()
    if not data:
        abort(400, description="Empty upload")

    msg: dict[str, Any] = {
        "id": request.form.get("id") or protocol.new_request_id(),
        "action": "transcodeImage",
        "data": protocol.BinaryObject(
            data=data,
            content_type=f.mimetype or "application/octet-stream",
        ),
        "maxWidth": _parse_int(request.form.get("maxWidth")),
        "maxHeight": _parse_int(request.form.get("maxHeight")),
    }
    quality = _parse_float(request.form.get("quality"))
    if quality is not None:
        msg["quality"] = quality
    output_format = request.form.get("outputFormat")
    if output_format:
        msg["outputFormat"] = output_format

    return _submit(msg)
