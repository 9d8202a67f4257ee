"""obsws command line.

Usage:
    obsws version                                  # Remote version summary
    obsws request GetSceneList                     # Any request, JSON output
    obsws request SetCurrentProgramScene '{"sceneName": "Intro"}'
    obsws events                                   # Stream events as JSON lines
    obsws events --category scenes --count 5       # Only scene events, stop after 5

Connection options default to the OBS_* environment variables
(see obsws.config).
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import sys
from typing import Any

import click

from .broadcast import Lagged
from .client import ObsClient
from .config import ConnectConfig
from .connection import Connection
from .errors import ObsWebSocketError
from .protocol.opcodes import EventSubscription

logger = logging.getLogger(__name__)

# Iteration yields the single-bit categories only
CATEGORY_CHOICES = [member.name.lower() for member in EventSubscription if member.name]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _run(coro: Any) -> None:
    """Run a command coroutine, turning client errors into exit status 1."""
    try:
        asyncio.run(coro)
    except ObsWebSocketError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted", err=True)


@click.group()
@click.option("--host", default=None, help="Remote host (default: $OBS_HOST or localhost)")
@click.option("--port", type=int, default=None, help="Remote port (default: $OBS_PORT or 4455)")
@click.option("--password", default=None, help="Password (default: $OBS_PASSWORD)")
@click.option("--tls/--no-tls", default=None, help="Use wss:// (default: $OBS_TLS)")
@click.option(
    "--timeout",
    "connect_timeout",
    type=float,
    default=None,
    help="Connect and handshake timeout in seconds",
)
@click.option(
    "--verify-versions/--no-verify-versions",
    default=None,
    help="Check OBS and obs-websocket versions after connecting (default: $OBS_VERIFY_VERSIONS)",
)
@click.option("--verbose", "-v", is_flag=True, help="Log protocol traffic to stderr")
@click.pass_context
def main(
    ctx: click.Context,
    host: str | None,
    port: int | None,
    password: str | None,
    tls: bool | None,
    connect_timeout: float | None,
    verify_versions: bool | None,
    verbose: bool,
) -> None:
    """Remote-control client for obs-websocket."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = ConnectConfig.from_env(
            host=host,
            port=port,
            password=password,
            tls=tls,
            connect_timeout=connect_timeout,
            verify_versions=verify_versions,
        )
    except ValueError as e:
        raise click.UsageError(str(e)) from e


def _connection(ctx: click.Context, config: ConnectConfig | None = None) -> Connection:
    # Tests inject a transport factory through the context object
    return Connection(
        config or ctx.obj["config"],
        transport_factory=ctx.obj.get("transport_factory"),
    )


@main.command()
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def version(ctx: click.Context, output_json: bool) -> None:
    """Show remote version information."""

    async def _version() -> None:
        async with ObsClient(_connection(ctx)) as obs:
            info = await obs.general.get_version()

        if output_json:
            click.echo(info.model_dump_json(by_alias=True, indent=2))
            return
        click.echo(f"OBS Studio:    {info.obs_version}")
        click.echo(f"obs-websocket: {info.obs_web_socket_version}")
        click.echo(f"RPC version:   {info.rpc_version}")
        if info.platform_description:
            click.echo(f"Platform:      {info.platform_description}")

    _run(_version())


@main.command()
@click.argument("request_type")
@click.argument("data_json", required=False)
@click.pass_context
def request(ctx: click.Context, request_type: str, data_json: str | None) -> None:
    """Send REQUEST_TYPE with optional JSON object DATA_JSON and print the response."""
    data: dict[str, Any] | None = None
    if data_json is not None:
        try:
            data = json.loads(data_json)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"not valid JSON: {e}", param_hint="DATA_JSON") from e
        if not isinstance(data, dict):
            raise click.BadParameter("must be a JSON object", param_hint="DATA_JSON")

    async def _request() -> None:
        async with _connection(ctx) as conn:
            response = await conn.request(request_type, data)
        click.echo(json.dumps(response, indent=2))

    _run(_request())


@main.command()
@click.option(
    "--category",
    "-c",
    "categories",
    multiple=True,
    type=click.Choice(CATEGORY_CHOICES, case_sensitive=False),
    help="Event category to receive (repeatable, default: all regular categories)",
)
@click.option("--count", "-n", type=int, default=None, help="Stop after N events")
@click.pass_context
def events(ctx: click.Context, categories: tuple[str, ...], count: int | None) -> None:
    """Print events as JSON lines until interrupted."""
    config: ConnectConfig = ctx.obj["config"]
    if categories:
        config = dataclasses.replace(
            config, event_subscriptions=EventSubscription.from_names(categories)
        )

    async def _events() -> None:
        received = 0
        async with _connection(ctx, config) as conn, conn.subscribe() as subscription:
            async for item in subscription:
                if isinstance(item, Lagged):
                    logger.warning(f"Output too slow, skipped {item.skipped} event(s)")
                    continue
                line = {
                    "eventType": item.event_type,
                    "eventIntent": item.intent,
                    "eventData": item.data,
                }
                click.echo(json.dumps(line))
                received += 1
                if count is not None and received >= count:
                    break

    _run(_events())


if __name__ == "__main__":
    main()
