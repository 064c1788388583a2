# sticker_studio/cli.py
"""
CLI interface for sticker-studio.

Thin presentation layer over the same services the MCP tools use.
"""

import asyncio
import json
import time
from pathlib import Path

import typer

app = typer.Typer(
    name="sticker-studio",
    help="Generate captioned chat sticker packs with Gemini.",
    no_args_is_help=True,
)

_STATUS_ICONS = {
    "pending": ("○", "dim"),
    "generating": ("⟳", "yellow"),
    "success": ("✓", "green"),
    "error": ("✗", "red"),
}

_STATE_COLORS = {
    "complete": "green",
    "running": "yellow",
    "cancelled": "magenta",
    "failed": "red",
    "idle": "white",
}


def _fmt_duration(seconds: float) -> str:
    """Format seconds as human-readable duration (e.g. '5m17s', '42s')."""
    s = int(seconds)
    if s < 60:
        return f"{s}s"
    m, s = divmod(s, 60)
    return f"{m}m{s:02d}s"


def _run(coro):
    """Run async function from sync CLI context."""
    return asyncio.run(coro)


def _console():
    from rich.console import Console

    return Console(stderr=True)


def _fail(message: str) -> None:
    _console().print(f"[red]✗[/red] {message}")
    raise typer.Exit(1)


def _load():
    from sticker_studio.config.loader import load_config

    return load_config()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show JSON logs on stderr"),
):
    """Configure logging before any command runs."""
    from sticker_studio.logging_config import configure_logging

    configure_logging("verbose" if verbose else "quiet")


def _make_live_display(results, title: str, elapsed: float, strategy: str):
    """Build a rich renderable for the live progress display."""
    from rich.console import Group
    from rich.panel import Panel
    from rich.table import Table
    from rich.text import Text

    table = Table.grid(padding=(0, 2))
    table.add_column(width=3)
    table.add_column(justify="right", style="dim", width=3)
    table.add_column()
    table.add_column(style="red")

    done = 0
    for result in results:
        icon, style = _STATUS_ICONS[result.status.value]
        if result.status.is_terminal:
            done += 1
        table.add_row(
            Text(icon, style=style),
            str(result.id + 1),
            Text(result.caption_snapshot, style="bold" if style == "yellow" else ""),
            result.error_detail or "",
        )

    total = len(results) or 1
    bar_width = 36
    filled = int(done / total * bar_width)
    bar = "█" * filled + "░" * (bar_width - filled)
    footer = Text(
        f"\n  {bar}  {done}/{len(results)}  {_fmt_duration(elapsed)}  ({strategy})\n",
        style="cyan",
    )
    return Panel(
        Group(table, footer),
        title=Text(f" {title} ", style="bold"),
        border_style="bright_black",
    )


def _read_plan_file(path: Path):
    """Plan items from a JSON file written by `sticker-studio plan --save`."""
    from sticker_studio.models.items import PlanItem

    data = json.loads(path.read_text(encoding="utf-8"))
    items = data["items"] if isinstance(data, dict) else data
    return [
        PlanItem(
            id=index,
            caption=entry["caption"],
            caption_local=entry.get("caption_local", ""),
            caption_alt=entry.get("caption_alt", ""),
        )
        for index, entry in enumerate(items)
    ]


def _print_plan(plan) -> None:
    from rich.table import Table

    from sticker_studio.planning.plan import find_duplicate_captions

    console = _console()
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Caption")
    for item in plan:
        table.add_row(str(item.id + 1), item.caption)
    console.print(table)

    duplicates = find_duplicate_captions(plan)
    if duplicates:
        console.print(f"[yellow]Duplicate captions:[/yellow] {', '.join(duplicates)}")


async def _create_plan(config, count: int, context: str | None, mode: str):
    from sticker_studio.generation.factory import create_generation_client
    from sticker_studio.planning.plan import CaptionMode, build_plan
    from sticker_studio.validation.sanitize import sanitize_context, validate_count

    validate_count(count, config.planning.allowed_counts)
    client = create_generation_client(config)
    pairs = await client.generate_plan(count, sanitize_context(context))
    return build_plan(pairs, CaptionMode(mode))


@app.command()
def styles():
    """List the available art styles."""
    from rich.table import Table

    from sticker_studio.styles import StyleCatalog

    catalog = StyleCatalog.from_config(_load())
    table = Table(show_header=True, header_style="bold")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Prompt", style="dim", overflow="fold")
    for style in catalog.list():
        marker = " *" if style.id == catalog.default_style else ""
        table.add_row(f"{style.id}{marker}", style.name, style.prompt_modifier)
    _console().print(table)


@app.command()
def plan(
    count: int = typer.Option(8, "--count", "-n", help="Number of stickers (8, 16 or 24)"),
    context: str = typer.Option(None, "--context", "-c", help="Theme or usage context"),
    mode: str = typer.Option("both", "--mode", "-m", help="Caption language: local, alt or both"),
    save: Path = typer.Option(None, "--save", "-s", help="Write the plan as JSON for `generate --plan`"),
):
    """Generate a caption plan and print it."""
    from fastmcp.exceptions import ToolError

    from sticker_studio.generation.errors import StickerStudioError

    config = _load()
    try:
        items = _run(_create_plan(config, count, context, mode))
    except StickerStudioError as e:
        _fail(e.user_message)
    except (ToolError, ValueError) as e:
        _fail(str(e))

    _print_plan(items)
    if save:
        payload = {
            "caption_mode": mode,
            "items": [
                {
                    "id": item.id,
                    "caption": item.caption,
                    "caption_local": item.caption_local,
                    "caption_alt": item.caption_alt,
                }
                for item in items
            ],
        }
        save.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        _console().print(f"[dim]Saved:[/dim] {save}")


async def _prepare_reference(compositor, reference: str | None):
    from sticker_studio.models.images import ImagePayload
    from sticker_studio.validation.sanitize import sanitize_image_path

    if not reference:
        return None
    raw = ImagePayload.from_path(sanitize_image_path(reference))
    return await asyncio.to_thread(compositor.prepare_reference, raw)


@app.command()
def preview(
    style: str = typer.Option(None, "--style", help="Style id (default from config)"),
    reference: str = typer.Option(None, "--reference", "-r", help="Reference photo of the subject"),
    output: Path = typer.Option(Path("preview.png"), "--output", "-o", help="Where to write the preview"),
):
    """Generate one sample sticker to try a style."""
    from fastmcp.exceptions import ToolError

    from sticker_studio.compositor.processor import StickerCompositor
    from sticker_studio.generation.errors import StickerStudioError
    from sticker_studio.generation.factory import create_generation_client
    from sticker_studio.styles import StyleCatalog

    config = _load()

    async def _preview():
        catalog = StyleCatalog.from_config(config)
        compositor = StickerCompositor(config.compositor)
        ref = await _prepare_reference(compositor, reference)
        client = create_generation_client(config)
        raw = await client.generate_preview(catalog.resolve_prompt(style), ref)
        return await compositor.process(raw, config.planning.preview_caption)

    with _console().status("Generating preview..."):
        try:
            image = _run(_preview())
        except StickerStudioError as e:
            _fail(e.user_message)
        except (ToolError, ValueError) as e:
            _fail(str(e))

    output.write_bytes(image.data)
    _console().print(f"[green]✓[/green] Preview saved to {output}")


async def _run_inline(scheduler, items, style, ref, title: str, regenerate_failed: bool):
    """Run a generation with a live progress display; returns the final state."""
    from rich.live import Live

    from sticker_studio.models.items import GenerationStatus

    console = _console()
    start = time.monotonic()
    strategy = scheduler.strategy.name

    await scheduler.start(items, style_id=style, reference_image=ref)
    run_task = asyncio.create_task(scheduler.wait())

    def _render():
        return _make_live_display(
            scheduler.ledger.snapshot(), title, time.monotonic() - start, strategy
        )

    try:
        with Live(_render(), console=console, refresh_per_second=4) as live:
            while not run_task.done():
                live.update(_render())
                await asyncio.sleep(0.3)

            state = run_task.result()
            if regenerate_failed and state.value == "complete":
                for result in scheduler.ledger.snapshot():
                    if result.status is GenerationStatus.ERROR:
                        regen = asyncio.create_task(scheduler.regenerate(result.id))
                        while not regen.done():
                            live.update(_render())
                            await asyncio.sleep(0.3)
                        regen.result()
            live.update(_render())

    except (KeyboardInterrupt, asyncio.CancelledError):
        await scheduler.cancel()
        raise KeyboardInterrupt

    return scheduler.state


@app.command()
def generate(
    plan_file: Path = typer.Option(None, "--plan", "-p", help="Plan JSON from `sticker-studio plan --save`"),
    count: int = typer.Option(8, "--count", "-n", help="Stickers to plan when no --plan is given"),
    context: str = typer.Option(None, "--context", "-c", help="Theme when no --plan is given"),
    mode: str = typer.Option("both", "--mode", "-m", help="Caption language: local, alt or both"),
    style: str = typer.Option(None, "--style", help="Style id (default from config)"),
    reference: str = typer.Option(None, "--reference", "-r", help="Reference photo of the subject"),
    strategy: str = typer.Option(None, "--strategy", help="serial, grid or parallel"),
    output: str = typer.Option(None, "--output", "-o", help="Output directory"),
    regenerate_failed: bool = typer.Option(
        False, "--regenerate-failed", help="Retry failed stickers once after the run"
    ),
):
    """Generate a sticker pack with a live progress display, then export it."""
    from fastmcp.exceptions import ToolError

    from sticker_studio.compositor.processor import StickerCompositor
    from sticker_studio.export.archive import StickerArchiveBuilder
    from sticker_studio.generation.errors import StickerStudioError
    from sticker_studio.generation.factory import create_generation_client
    from sticker_studio.models.ledger import ResultLedger
    from sticker_studio.scheduling.scheduler import BatchScheduler
    from sticker_studio.scheduling.strategies import create_strategy
    from sticker_studio.styles import StyleCatalog
    from sticker_studio.validation.sanitize import sanitize_output_dir

    config = _load()
    console = _console()

    async def _generate():
        items = (
            _read_plan_file(plan_file)
            if plan_file
            else await _create_plan(config, count, context, mode)
        )
        catalog = StyleCatalog.from_config(config)
        compositor = StickerCompositor(config.compositor)
        builder = StickerArchiveBuilder(compositor, config.export)
        scheduler = BatchScheduler(
            create_generation_client(config),
            compositor,
            ResultLedger(),
            create_strategy(config.scheduler, strategy),
            catalog,
            archive_builder=builder,
        )
        ref = await _prepare_reference(compositor, reference)
        title = f"{len(items)} stickers · {style or catalog.default_style}"
        state = await _run_inline(scheduler, items, style, ref, title, regenerate_failed)
        return scheduler, builder, state

    try:
        scheduler, builder, state = _run(_generate())
    except KeyboardInterrupt:
        console.print("[magenta]Cancelled.[/magenta]")
        raise typer.Exit(130)
    except StickerStudioError as e:
        _fail(e.user_message)
    except (ToolError, ValueError, OSError) as e:
        _fail(str(e))

    counts = scheduler.ledger.counts()
    color = _STATE_COLORS.get(state.value, "white")
    console.print(
        f"[{color}]{state.value}[/{color}]  "
        f"success: {counts['success']}  error: {counts['error']}"
    )
    if scheduler.error:
        _fail(scheduler.error)

    successes = scheduler.ledger.successes()
    if not successes:
        _fail("No stickers were generated.")

    out_dir = sanitize_output_dir(output or config.output.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    for result in successes:
        (out_dir / builder.sticker_name(result)).write_bytes(result.processed_image.data)
    archive = builder.write(scheduler.ledger.snapshot(), out_dir)
    console.print(f"[dim]Saved:[/dim] {archive}")

    if counts["error"]:
        raise typer.Exit(1)


@app.command("config-path")
def config_path():
    """Print the config file location."""
    from sticker_studio.config.loader import get_config_path

    typer.echo(str(get_config_path()))


@app.command()
def serve():
    """Start the MCP server on stdio."""
    from sticker_studio.__main__ import main as server_main

    asyncio.run(server_main())


if __name__ == "__main__":
    app()
