"""magicrelay CLI — run the relay and poke at it during rehearsal.

Usage:
    magicrelay serve                          # Run the relay with uvicorn
    magicrelay status                         # Uptime, subscribers, connected roles
    magicrelay channels                       # Configured channels and their symbols
    magicrelay publish zener circle           # Fire an event (as a trigger would)
    magicrelay publish oracle star -e day=12  # ... with extra attributes
    magicrelay latest zener                   # Cached event if still fresh
    magicrelay watch zener                    # Follow the SSE stream
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

from magicrelay import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:3000"


def _api_url() -> str:
    return os.environ.get("MAGICRELAY_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(timeout: Optional[float] = 30.0) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the relay."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=timeout)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous click handler.

    Handles nested event loops (e.g. CliRunner inside an async test) by
    offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _parse_extra(pairs: tuple[str, ...]) -> dict[str, str]:
    extra = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {pair!r}", param_hint="--extra")
        extra[key] = value
    return extra


def _fail(r: httpx.Response):
    try:
        detail = r.json().get("detail", r.text)
    except ValueError:
        detail = r.text
    click.secho(f"Error {r.status_code}: {detail}", fg="red", err=True)
    sys.exit(1)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="magicrelay")
def main():
    """magicrelay — broadcast channels and paired sessions for live performance."""


@main.command()
@click.option("--host", default=None, help="Bind address (default: MAGICRELAY_HOST)")
@click.option("--port", type=int, default=None, help="Port (default: MAGICRELAY_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the relay server."""
    import uvicorn

    from magicrelay.config import settings

    uvicorn.run(
        "magicrelay.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command()
def status():
    """Show uptime, channel subscribers, and connected session roles."""
    _run(_status_impl())


async def _status_impl():
    async with _client() as c:
        r = await c.get("/api/v1/status")
        if r.status_code != 200:
            _fail(r)
        data = r.json()

    click.secho(f"magicrelay {data['version']} — up {data['uptime_seconds']:.0f}s", bold=True)
    click.echo()
    click.secho("Channels", bold=True)
    for ch in data["channels"]:
        fresh = click.style("fresh", fg="green") if ch["fresh"] else click.style("stale", fg="white")
        click.echo(
            f"  {ch['name']:<12} {ch['subscribers']:>3} subscribers  "
            f"{ch['published']:>4} published  {fresh}"
        )
    click.echo()
    click.secho("Sessions", bold=True)
    for s in data["sessions"]:
        roles = "  ".join(
            click.style(role, fg="green" if connected else "red")
            for role, connected in s["roles"].items()
        )
        click.echo(f"  {s['name']:<12} {roles}  ({s['relayed']} relayed)")


@main.command()
def channels():
    """List configured channels."""
    _run(_channels_impl())


async def _channels_impl():
    async with _client() as c:
        r = await c.get("/api/v1/channels")
        if r.status_code != 200:
            _fail(r)
    for ch in r.json():
        mode = " silent" if ch["silent_catch_up"] else ""
        click.echo(
            f"{ch['name']:<12} ttl={ch['ttl_seconds']:g}s{mode}  {', '.join(ch['kinds'])}"
        )


@main.command()
@click.argument("channel")
@click.argument("kind")
@click.option("--magnitude", "-m", type=float, default=0.0, help="Numeric magnitude")
@click.option("--extra", "-e", multiple=True, help="Extra attribute as key=value (repeatable)")
def publish(channel: str, kind: str, magnitude: float, extra: tuple[str, ...]):
    """Publish KIND to CHANNEL."""
    body = {"kind": kind, "magnitude": magnitude, "extra": _parse_extra(extra)}
    _run(_publish_impl(channel, body))


async def _publish_impl(channel: str, body: dict):
    async with _client() as c:
        r = await c.post(f"/api/v1/channels/{channel}/events", json=body)
        if r.status_code != 204:
            _fail(r)
    click.secho(f"Published {body['kind']} to {channel}", fg="green")


@main.command()
@click.argument("channel")
def latest(channel: str):
    """Show the cached event of CHANNEL if it is still fresh."""
    _run(_latest_impl(channel))


async def _latest_impl(channel: str):
    async with _client() as c:
        r = await c.get(f"/api/v1/channels/{channel}/latest")
        if r.status_code != 200:
            _fail(r)
    data = r.json()
    if not data["fresh"]:
        click.echo("none")
        return
    click.echo(_pretty_json(data["event"]))


@main.command()
@click.argument("channel")
def watch(channel: str):
    """Follow CHANNEL's event stream until interrupted."""
    try:
        _run(_watch_impl(channel))
    except KeyboardInterrupt:
        pass


async def _watch_impl(channel: str):
    async with _client(timeout=None) as c:
        async with c.stream("GET", f"/api/v1/channels/{channel}/stream") as r:
            if r.status_code != 200:
                await r.aread()
                _fail(r)
            click.secho(f"Watching {channel} (Ctrl-C to stop)", bold=True)
            async for line in r.aiter_lines():
                if line.startswith("data: "):
                    event = json.loads(line[len("data: "):])
                    click.echo(f"{event['received_at']}  {event['kind']}  {event['magnitude']:g}")
                elif line.startswith(":"):
                    click.secho("· heartbeat", fg="white", dim=True)


if __name__ == "__main__":
    main()
