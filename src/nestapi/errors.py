"""Error types raised by the Nest API client.

Synchronous errors (raised from the call that issued a request):
- APIError: non-2xx response, built from the JSON error body
- TransportTimeout: dial or response-header timeout
- TransportError / RedirectLimitError: other I/O failures

Asynchronous errors (mid-stream, delivered as ``event_error`` events):
- StreamDecodeError: malformed frame or payload
- StreamIOError: the connection broke or hit EOF
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Friendlier text for the reasons the service is known to send
HUMAN_MESSAGES: dict[str, str] = {
    "blocked": "The Nest API has blocked further requests. Please try again later.",
    "not-found": "The information requested was not found.",
    "auth-error": "Your are not authorized to view the Nest account.",
    "forbidden": "There is an issue with the Nest service. Please try again later.",
    "service-unavailable": "There is an issue with the Nest service. Please try again later.",
    "unknown": "An unknown error has occurred on the Nest service.",
}


class NestAPIError(Exception):
    """Base class for every error raised by this package."""


class APIErrorBody(BaseModel):
    """Wire shape of a non-2xx response body."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    old_error: str = Field(default="", alias="error")
    type: str = ""
    message: str = ""
    instance: str = ""
    details: Any = None


class APIError(NestAPIError):
    """Structured error returned by the service."""

    def __init__(
        self,
        type: str,
        message: str = "",
        instance: str = "",
        details: Any = None,
        old_error: str = "",
        status_code: int | None = None,
    ) -> None:
        self.type = type
        self.message = message
        self.instance = instance
        self.details = details
        self.old_error = old_error
        self.status_code = status_code
        super().__init__(str(self))

    @classmethod
    def from_body(cls, body: bytes, status_code: int | None = None) -> APIError:
        """Parse an error body, falling back to a parse-error variant."""
        try:
            parsed = APIErrorBody.model_validate_json(body)
        except ValueError:
            return cls(
                type="nestapi#parse-error",
                message="Unable to parse Nest API JSON",
                status_code=status_code,
            )
        return cls(
            type=parsed.type,
            message=parsed.message,
            instance=parsed.instance,
            details=parsed.details,
            old_error=parsed.old_error,
            status_code=status_code,
        )

    @property
    def reason(self) -> str:
        """The part of ``type`` after the ``#`` separator."""
        _, sep, reason = self.type.partition("#")
        return reason if sep else self.type

    @property
    def human_message(self) -> str:
        """Friendly text for known reasons, else the message.

        Bodies that only carry the legacy ``error`` field fall back to it.
        """
        return HUMAN_MESSAGES.get(self.reason) or self.message or self.old_error

    def __str__(self) -> str:
        return f"{self.reason}||{self.human_message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.type!r}, message={self.message!r})"


class TransportTimeout(APIError):
    """Connection establishment or header wait exceeded its deadline."""

    def __init__(self, message: str = "Timeout contacting Nest Server") -> None:
        super().__init__(type="nestapi#timeout", message=message)


class TransportError(NestAPIError):
    """Generic I/O failure while issuing a request."""


class RedirectLimitError(TransportError):
    """Too many consecutive redirects."""

    def __init__(self, hops: int) -> None:
        self.hops = hops
        super().__init__(f"{hops} consecutive requests (redirects)")


class StreamError(NestAPIError):
    """Base for faults that end a watch session mid-stream."""


class StreamDecodeError(StreamError):
    """A frame or its JSON payload could not be decoded."""


class StreamIOError(StreamError):
    """The event stream broke or ended."""


class StreamClosedError(StreamIOError):
    """Read on a stream that was closed locally."""


class ChannelClosedError(NestAPIError):
    """Operation on a closed event channel."""
