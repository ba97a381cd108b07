"""Perform one request through the service layer and print the envelope.

Usage:
    python -m scripts.fetch https://api.example.com/users/7 --value-key-path data
    python -m scripts.fetch /users --array --param page=2 --header X-Trace=1
    python -m scripts.fetch /users -X POST --param name=ada --error-key-path error
"""

from __future__ import annotations

import asyncio
import json
import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from config.settings import get_settings
from observability.logger import setup_logging
from observability.metrics import MetricsCollector
from pipeline.middleware import log_response
from pipeline.service import HTTPService
from schemas.response import Response

console = Console()


def _pairs(values: tuple[str, ...], what: str) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got {item!r}", param_hint=what)
        pairs[key] = value
    return pairs


def render(response: Response, metrics: MetricsCollector) -> None:
    color = "green" if response.ok else "red"
    status = response.status_code if response.status_code is not None else "-"

    if response.ok:
        body = escape(json.dumps(response.value, indent=2, default=str)) if response.value is not None else "(no value)"
    else:
        body = f"[bold]{type(response.error).__name__}[/bold]: {escape(str(response.error))}"
        if response.error_body is not None:
            body += "\n\n[bold]Error body:[/bold]\n" + escape(json.dumps(response.error_body, indent=2, default=str))

    console.print(Panel(body, title=f"HTTP {status}", border_style=color, padding=(1, 2)))

    table = Table(title="Request metrics", show_lines=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for key, value in metrics.summary().items():
        table.add_row(key, str(value))
    console.print(table)


async def fetch(
    endpoint: str,
    method: str,
    params: dict[str, str],
    headers: dict[str, str],
    value_key_path: str | None,
    error_key_path: str | None,
    array: bool,
) -> int:
    settings = get_settings()
    setup_logging(level=settings.log_level, fmt=settings.log_format)
    metrics = MetricsCollector()

    async with HTTPService.from_settings(
        settings,
        middlewares=[log_response],
        metrics=metrics,
        surface_middleware_abort=True,
    ) as service:
        start = service.request_array if array else service.request
        response = await start(
            endpoint,
            dict,
            method=method,  # type: ignore[arg-type]
            params=params or None,
            headers=headers,
            value_key_path=value_key_path,
            error_key_path=error_key_path,
        )

    if response is None:
        console.print("[yellow]Request cancelled.[/yellow]")
        return 1
    render(response, metrics)
    return 0 if response.ok else 1


@click.command("fetch")
@click.argument("endpoint")
@click.option("--method", "-X", default="GET", type=click.Choice(["GET", "POST", "PUT", "PATCH", "DELETE"], case_sensitive=False))
@click.option("--param", "-p", multiple=True, help="Request parameter as key=value (repeatable).")
@click.option("--header", "-H", multiple=True, help="Extra header as key=value (repeatable).")
@click.option("--value-key-path", default=None, help="Dotted path to the success payload.")
@click.option("--error-key-path", default=None, help="Dotted path to the error payload.")
@click.option("--array", is_flag=True, help="Decode the payload as a list of objects.")
def main(
    endpoint: str,
    method: str,
    param: tuple[str, ...],
    header: tuple[str, ...],
    value_key_path: str | None,
    error_key_path: str | None,
    array: bool,
) -> None:
    """Fetch ENDPOINT (absolute, or relative to HTTP_BASE_URL) and print the result."""
    code = asyncio.run(
        fetch(
            endpoint,
            method.upper(),
            _pairs(param, "--param"),
            _pairs(header, "--header"),
            value_key_path,
            error_key_path,
            array,
        ),
    )
    sys.exit(code)


if __name__ == "__main__":
    main()
