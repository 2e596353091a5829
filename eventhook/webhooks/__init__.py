"""Outbound webhook delivery."""

from .dispatcher import WebhookDispatcher, build_headers, deliver
from .payload import build_payload, encode_payload, format_rfc3339

__all__ = [
    "WebhookDispatcher",
    "build_headers",
    "build_payload",
    "deliver",
    "encode_payload",
    "format_rfc3339",
]
