from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_registration(payload: Dict[str, Any]) -> None:
    echo_heading("Token Registered")
    echo_key_values(
        [
            ("token", payload.get("token")),
            ("experience_id", payload.get("experience_id")),
            ("registered_at", payload.get("registered_at")),
        ]
    )


def render_latest(payload: Dict[str, Any]) -> None:
    echo_heading("Latest Reading")
    if payload.get("distance") is None:
        typer.echo("No readings stored yet.")
        return
    echo_key_values(
        [
            ("distance", payload.get("distance")),
            ("created_at", payload.get("created_at")),
        ]
    )


def render_submission(payload: Dict[str, Any]) -> None:
    stored = payload.get("stored") or {}
    echo_heading("Stored Reading")
    echo_key_values(
        [
            ("distance", stored.get("distance")),
            ("created_at", stored.get("created_at")),
        ]
    )

    typer.echo()
    echo_heading("Dispatch")
    outcomes = payload.get("dispatch")
    if outcomes is None:
        typer.echo("Below threshold, no alert sent.")
        return
    if not outcomes:
        typer.echo("Alert fired but no valid tokens are registered.")
        return

    for outcome in outcomes:
        line = (
            f"  - {outcome.get('tenant_id')} batch {outcome.get('batch_index')}: "
            f"{outcome.get('status')} ({outcome.get('token_count')} tokens)"
        )
        if outcome.get("status") == "failed":
            typer.secho(f"{line} {outcome.get('error')}", fg=typer.colors.RED)
        else:
            typer.echo(line)
