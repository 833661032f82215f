"""nestapi CLI.

Usage:
    nestapi watch https://someapp.firebaseio.com/devices          # Stream events as JSON lines
    nestapi watch URL --auth TOKEN --buffer 16                    # Authenticated, buffered
    nestapi set https://someapp.firebaseio.com/foo '{"bar": 1}'   # Write a JSON value
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from .channel import EventChannel
from .client import NestAPI
from .config import ClientConfig
from .errors import NestAPIError
from .protocol.events import Event


def _configure_logging(verbose: bool) -> None:
    # Events go to stdout, logs to stderr
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _build_client(url: str, auth: str | None) -> NestAPI:
    client = NestAPI(url, config=ClientConfig.from_env())
    if auth:
        client.auth(auth)
    return client


def _format_event(event: Event) -> str:
    return event.model_dump_json(exclude_none=True, exclude={"raw_data"})


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr")
def main(verbose: bool) -> None:
    """Nest API client - write values and watch locations."""
    _configure_logging(verbose)


@main.command()
@click.argument("url")
@click.option("--auth", "auth_token", envvar="NESTAPI_AUTH", help="Auth token")
@click.option("--buffer", "buffer_size", default=0, show_default=True, help="Channel buffer size")
def watch(url: str, auth_token: str | None, buffer_size: int) -> None:
    """Print events for URL, one JSON object per line.

    Runs until the server closes the stream or Ctrl+C.
    """

    async def run() -> int:
        client = _build_client(url, auth_token)
        channel: EventChannel[Event] = EventChannel(maxsize=buffer_size)
        try:
            await client.watch(channel)
            exit_code = 0
            async for event in channel:
                click.echo(_format_event(event))
                if event.is_error():
                    exit_code = 1
            return exit_code
        finally:
            await client.aclose()

    try:
        code = asyncio.run(run())
    except NestAPIError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        code = 0
    sys.exit(code)


@main.command("set")
@click.argument("url")
@click.argument("value")
@click.option("--auth", "auth_token", envvar="NESTAPI_AUTH", help="Auth token")
def set_value(url: str, value: str, auth_token: str | None) -> None:
    """Write VALUE (JSON) at URL."""
    try:
        payload = json.loads(value)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="VALUE") from e

    async def run() -> None:
        client = _build_client(url, auth_token)
        try:
            await client.set(payload)
        finally:
            await client.aclose()

    try:
        asyncio.run(run())
    except NestAPIError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo("OK")


if __name__ == "__main__":
    main()
