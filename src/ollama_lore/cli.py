"""Command-line front end for ollama-lore."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ollama_lore import __version__
from ollama_lore.config import LoreConfig, load_config
from ollama_lore.errors import GenerationError
from ollama_lore.llm.client import AsyncLoreClient
from ollama_lore.progress import NullProgressSink, RichProgressSink

console = Console()
err_console = Console(stderr=True)


def _load(ctx: click.Context) -> LoreConfig:
    config_path = ctx.obj.get("config_path")
    try:
        config, path = load_config(config_path)
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e
    except GenerationError as e:
        raise click.ClickException(f"{e.kind.value} error: {e}") from e
    if path:
        err_console.print(f"[dim]Config: {path}[/dim]")
    return config


@click.group()
@click.version_option(__version__, prog_name="ollama-lore")
@click.option("--config", "-c", "config_path", default=None,
              help="Path to ollama_lore.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """Generate schema-validated lore from a local or remote LLM."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@main.command()
@click.argument("text")
@click.option("--schema", "-s", "schema_path", type=click.Path(exists=True, dir_okay=False),
              default=None, help="JSON Schema file (defaults to content_schema in config)")
@click.option("--model", "-m", default=None, help="Model name (defaults to config)")
@click.option("--output", "-o", "output_path", type=click.Path(dir_okay=False),
              default=None, help="Write the generated JSON here instead of stdout")
@click.option("--no-ui", is_flag=True, help="Do not print streaming progress")
@click.pass_context
def generate(
    ctx: click.Context,
    text: str,
    schema_path: str | None,
    model: str | None,
    output_path: str | None,
    no_ui: bool,
) -> None:
    """Generate content for TEXT and print the validated JSON."""
    config = _load(ctx)
    schema = Path(schema_path).read_text(encoding="utf-8") if schema_path else None
    sink = NullProgressSink() if no_ui else RichProgressSink(err_console)

    async def _run() -> dict:
        async with AsyncLoreClient(config, sink=sink) as client:
            request = client.build_request(
                text, model=model, content_schema=schema, update_ui=not no_ui,
            )
            return await client.generate(request)

    try:
        result = asyncio.run(_run())
    except GenerationError as e:
        err_console.print(f"[red]{e.kind.value} error: {escape(str(e))}[/red]")
        sys.exit(1)

    rendered = json.dumps(result, indent=2, ensure_ascii=False)
    if output_path:
        Path(output_path).write_text(rendered + "\n", encoding="utf-8")
        err_console.print(f"[green]Wrote {output_path}[/green]")
    else:
        click.echo(rendered)


@main.command()
@click.pass_context
def models(ctx: click.Context) -> None:
    """List models available on the configured endpoint."""
    config = _load(ctx)

    async def _run() -> list[str]:
        async with AsyncLoreClient(config) as client:
            return await client.list_models()

    try:
        names = asyncio.run(_run())
    except GenerationError as e:
        err_console.print(f"[red]Failed to fetch models: {escape(str(e))}[/red]")
        _print_models(config.models, "Configured models (endpoint unavailable)", config)
        sys.exit(1)

    if not names:
        err_console.print(
            "[yellow]No models found. Pull a model using the Ollama CLI.[/yellow]"
        )
        _print_models(config.models, "Configured models", config)
        return

    _print_models(names, f"Models at {config.base_url}", config)


def _print_models(names: list[str], title: str, config: LoreConfig) -> None:
    if not names:
        return
    table = Table(title=title)
    table.add_column("Model")
    table.add_column("Selected", justify="center")
    for name in names:
        table.add_row(name, "*" if name == config.model else "")
    console.print(table)


@main.command()
@click.pass_context
def verify(ctx: click.Context) -> None:
    """Check that the configured endpoint is reachable."""
    config = _load(ctx)

    async def _run() -> bool:
        async with AsyncLoreClient(config) as client:
            return await client.verify_connection()

    if asyncio.run(_run()):
        console.print(f"[green]Connected[/green] to {config.base_url}")
        return
    console.print(f"[red]Disconnected[/red]: {config.base_url} did not respond")
    sys.exit(1)


if __name__ == "__main__":
    main()
