"""Transport layer.

Protocol-agnostic interfaces for issuing requests and opening event streams,
plus the httpx-based implementation.
"""

from .base import ByteStream, HTTPResult, Transport
from .http import HTTPByteStream, HTTPTransport

__all__ = [
    "ByteStream",
    "HTTPByteStream",
    "HTTPResult",
    "HTTPTransport",
    "Transport",
]
