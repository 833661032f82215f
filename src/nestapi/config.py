"""Client configuration.

Defaults mirror the service's documented connection limits. Every value can be
overridden through ``NESTAPI_*`` environment variables via ``ClientConfig.from_env()``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields

ENV_PREFIX = "NESTAPI_"


@dataclass
class ClientConfig:
    """Connection and stream settings for a client handle."""

    # Connection establishment (dial) deadline
    dial_timeout: float = 120.0
    # How long idle pooled connections are kept
    keep_alive_timeout: float = 35.0
    # Deadline for the response headers once the request is sent
    response_header_timeout: float = 10.0

    # Redirect following
    max_redirects: int = 30

    # Frame reader buffer; longer lines are read in continuation fragments
    line_buffer_size: int = 4096

    def __post_init__(self) -> None:
        if self.max_redirects < 0:
            raise ValueError("max_redirects must be non-negative")
        if self.line_buffer_size < 16:
            raise ValueError("line_buffer_size must be at least 16 bytes")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> ClientConfig:
        """Build a config from ``NESTAPI_*`` environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Raises:
            ValueError: If a variable is set to a value of the wrong type
        """
        env = os.environ if environ is None else environ
        values: dict[str, float | int] = {}

        for f in fields(cls):
            name = f"{ENV_PREFIX}{f.name.upper()}"
            raw = env.get(name)
            if raw is None or raw == "":
                continue
            caster = int if f.type in ("int", int) else float
            try:
                values[f.name] = caster(raw)
            except ValueError as e:
                raise ValueError(f"Invalid value for {name}: {raw!r}") from e

        return cls(**values)
