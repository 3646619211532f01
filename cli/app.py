from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_latest, render_registration, render_submission


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the UltraSense alerts service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each HTTP request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("register")
def register_command(
    ctx: typer.Context,
    token: str = typer.Argument(..., help="Device push token."),
    experience_id: str = typer.Argument(..., help="Experience the device belongs to."),
) -> None:
    """Register a device push token under an experience."""
    state = _get_state(ctx)
    payload = state.client.register_token(token, experience_id)
    render_registration(payload)


@app.command("send")
def send_command(
    ctx: typer.Context,
    distance: float = typer.Argument(..., help="Measured distance in centimetres."),
) -> None:
    """Submit a distance reading, as the sensor would."""
    state = _get_state(ctx)
    typer.echo(f"Sending distance {distance} to {state.config.base_url} ...")
    payload = state.client.send_distance(distance)
    render_submission(payload)

    failed = [o for o in payload.get("dispatch") or [] if o.get("status") == "failed"]
    if failed:
        typer.secho(f"{len(failed)} batch(es) failed to send.", fg=typer.colors.YELLOW, err=True)


@app.command("latest")
def latest_command(ctx: typer.Context) -> None:
    """Show the most recent stored reading."""
    state = _get_state(ctx)
    render_latest(state.client.latest_distance())
