"""
Serverless function entry points (Netlify / Lambda style events).

Each handler forwards the event into the ASGI app from server.py, so the
function variant runs exactly the same pipelines as the always-on server.
"""

import asyncio
import base64
from typing import Any, Dict, Optional

import httpx
import structlog

from server import app

logger = structlog.get_logger()

TEXT_TO_IMAGE_PATH = "/api/text-to-image"
IMAGE_TO_IMAGE_PATH = "/api/image-to-image"

# Hop-by-hop or length headers that httpx recomputes for the forwarded body
DROPPED_HEADERS = {"host", "content-length", "connection", "transfer-encoding"}

FORWARDED_RESPONSE_HEADERS = ("x-generation-degraded",)


def _event_body(event: Dict[str, Any]) -> bytes:
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        return base64.b64decode(body)
    if isinstance(body, str):
        return body.encode("utf-8")
    return body


def _response(status_code: int, body: str, extra_headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    headers = {
        "Content-Type": "application/json",
        "Access-Control-Allow-Origin": "*"
    }
    if extra_headers:
        headers.update(extra_headers)
    return {"statusCode": status_code, "headers": headers, "body": body}


async def dispatch(path: str, event: Dict[str, Any], default_content_type: Optional[str] = None) -> Dict[str, Any]:
    """
    Run one function event through the ASGI app.

    Args:
        path: App route to invoke
        event: Event with httpMethod, headers, body and isBase64Encoded
        default_content_type: Used when the event carries no Content-Type

    Returns:
        Dict with statusCode, headers and a JSON string body
    """
    method = (event.get("httpMethod") or "").upper()
    if method != "POST":
        logger.warning("function_method_not_allowed", path=path, method=method)
        return _response(405, '{"error": "Method not allowed"}')

    headers = {
        name: value
        for name, value in (event.get("headers") or {}).items()
        if name.lower() not in DROPPED_HEADERS
    }
    if default_content_type and not any(name.lower() == "content-type" for name in headers):
        headers["content-type"] = default_content_type

    logger.info("function_invoked", path=path)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://function.local") as client:
        response = await client.post(path, content=_event_body(event), headers=headers)

    extra = {
        name: response.headers[name]
        for name in FORWARDED_RESPONSE_HEADERS
        if name in response.headers
    }
    return _response(response.status_code, response.text, extra)


def text_to_image_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """POST {prompt} -> generation result (placeholder on provider failure)."""
    return asyncio.run(dispatch(TEXT_TO_IMAGE_PATH, event, default_content_type="application/json"))


def image_to_image_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """POST multipart prompt + image -> transformed image or 500 with details."""
    return asyncio.run(dispatch(IMAGE_TO_IMAGE_PATH, event))
