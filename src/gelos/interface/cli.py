"""Gelos CLI: study sessions, deck stats, schedule previews and the HTTP server."""

import asyncio
import json
import logging
import random
import sys
from dataclasses import asdict
from datetime import date
from pathlib import Path
from typing import Annotated, Any

import typer

from gelos.application.config import AppConfig, resolve_config

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="gelos: spaced-repetition study for Gelos flashcard decks.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage gelos configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

_LOG_LEVELS = {0: logging.ERROR, 1: logging.WARNING, 2: logging.INFO}


def _resolve_with_overrides(**overrides: Any) -> AppConfig:
    """Resolve config, exiting cleanly on invalid values."""
    try:
        return resolve_config(overrides)
    except ValueError as e:
        typer.secho(f"Invalid configuration: {e}", fg="red", err=True)
        raise typer.Exit(2) from e


async def _close(repo: Any) -> None:
    aclose = getattr(repo, "aclose", None)
    if aclose is not None:
        await aclose()


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
):
    """Global settings for gelos."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    logging.getLogger().setLevel(_LOG_LEVELS.get(verbose, logging.DEBUG))


# ---------------------------------------------------------------------------
# Study
# ---------------------------------------------------------------------------


@app.command()
def study(
    deck: Annotated[str, typer.Argument(help="Deck id to study.")],
    backend: Annotated[
        str | None, typer.Option(help="Storage backend: auto, yaml, postgrest, memory.")
    ] = None,
    deck_dir: Annotated[
        Path | None, typer.Option(help="Directory holding YAML deck files.")
    ] = None,
    seed: Annotated[int | None, typer.Option(help="Fixed shuffle seed.")] = None,
):
    """[bold green]Study[/bold green] the cards of a deck that are due today."""
    from gelos.application.factory import get_study_repository
    from gelos.application.study.scheduler import (
        get_interval_description,
        get_rating_description,
    )
    from gelos.application.study.session import StudySession
    from gelos.domain.study.errors import SessionLoadError

    config = _resolve_with_overrides(backend=backend, deck_dir=deck_dir, seed=seed)

    def report_failure(failure):
        typer.secho(f"  Failed to save card {failure.card_id}: {failure.error}", fg="red")

    async def run():
        repo = get_study_repository(config)
        rng = random.Random(config.seed) if config.seed is not None else None
        session = StudySession(repo, deck, rng=rng, on_save_error=report_failure)

        try:
            await session.load()
        except SessionLoadError as e:
            typer.secho(str(e), fg="red", err=True)
            await _close(repo)
            raise typer.Exit(1) from e

        while not session.is_finished:
            card = session.current_card
            typer.echo(f"\n[{session.position}/{session.total}] {card.front}")
            await asyncio.to_thread(
                typer.prompt, "Press Enter to reveal", default="", show_default=False
            )

            session.reveal()
            typer.secho(f"  {card.back}", fg="cyan")
            preview = session.preview()
            typer.echo(
                "  "
                + "   ".join(
                    f"{r}={get_rating_description(r)} ({label})"
                    for r, label in sorted(preview.items())
                )
            )

            rating = await asyncio.to_thread(typer.prompt, "Rating", type=int)
            result = session.rate(rating)
            typer.echo(f"  Next review: {get_interval_description(result.interval)}")

        failures = await session.flush()
        if failures:
            typer.secho(f"Retrying {len(failures)} unsaved review(s)...", fg="yellow")
            failures = await session.retry_failed()

        summary = session.summary()
        stats = summary.stats
        typer.echo("")
        if stats.reviewed:
            typer.secho(
                f"Study session complete! You reviewed {stats.reviewed} cards "
                f"with {stats.accuracy}% accuracy.",
                fg="green",
            )
        else:
            typer.secho("No cards were due for review.", fg="green")

        if summary.deck_stats:
            ds = summary.deck_stats
            typer.echo(
                f"Deck: {ds.total_cards} cards, {ds.new_cards} new, "
                f"{ds.reviewed_today} reviewed today, {ds.accuracy}% overall accuracy"
            )

        await _close(repo)
        if failures:
            typer.secho(f"{len(failures)} review(s) could not be saved.", fg="red", err=True)
            raise typer.Exit(1)

    asyncio.run(run())


@app.command()
def due(
    deck: Annotated[str, typer.Argument(help="Deck id.")],
    backend: Annotated[str | None, typer.Option(help="Storage backend.")] = None,
    deck_dir: Annotated[Path | None, typer.Option(help="Directory holding YAML decks.")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List the cards of a deck that are due today."""
    from gelos.application.factory import get_study_repository
    from gelos.domain.study.errors import RepositoryError

    config = _resolve_with_overrides(backend=backend, deck_dir=deck_dir)

    async def run():
        repo = get_study_repository(config)
        try:
            return await repo.fetch_due_cards(deck)
        finally:
            await _close(repo)

    try:
        cards = asyncio.run(run())
    except RepositoryError as e:
        typer.secho(str(e), fg="red", err=True)
        raise typer.Exit(1) from e

    if json_output:
        typer.echo(json.dumps([asdict(c) for c in cards], indent=2))
        return

    if not cards:
        typer.secho("No cards due.", fg="green")
        return
    for card in cards:
        status = "new" if card.progress is None else f"every {card.progress.interval}d"
        typer.echo(f"{card.card_id}  [{status}]  {card.front}")


@app.command()
def stats(
    deck: Annotated[str, typer.Argument(help="Deck id.")],
    backend: Annotated[str | None, typer.Option(help="Storage backend.")] = None,
    deck_dir: Annotated[Path | None, typer.Option(help="Directory holding YAML decks.")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show aggregate study statistics for a deck."""
    from gelos.application.factory import get_study_repository
    from gelos.domain.study.errors import RepositoryError

    config = _resolve_with_overrides(backend=backend, deck_dir=deck_dir)

    async def run():
        repo = get_study_repository(config)
        try:
            return await repo.fetch_deck_stats(deck)
        finally:
            await _close(repo)

    try:
        deck_stats = asyncio.run(run())
    except RepositoryError as e:
        typer.secho(str(e), fg="red", err=True)
        raise typer.Exit(1) from e

    if json_output:
        typer.echo(json.dumps(asdict(deck_stats), indent=2))
        return

    typer.echo(f"Total cards:     {deck_stats.total_cards}")
    typer.echo(f"Due:             {deck_stats.due_cards}")
    typer.echo(f"New:             {deck_stats.new_cards}")
    typer.echo(f"Reviewed today:  {deck_stats.reviewed_today}")
    typer.echo(f"Accuracy:        {deck_stats.accuracy}%")


@app.command()
def schedule(
    rating: Annotated[int, typer.Argument(help="Rating 0-3 (Forgot, Hard, Good, Easy).")],
    ease: Annotated[float, typer.Option(help="Current ease factor.")] = 2.5,
    interval: Annotated[int, typer.Option(help="Current interval in days.")] = 0,
    repetitions: Annotated[int, typer.Option(help="Consecutive successful reviews.")] = 0,
    today: Annotated[
        str | None, typer.Option(help="Review date (YYYY-MM-DD). Defaults to today.")
    ] = None,
):
    """Compute the next review for a card without touching any deck."""
    from gelos.application.study.scheduler import (
        calculate_next_review,
        coerce_progress,
        get_interval_description,
    )

    try:
        review_date = date.fromisoformat(today) if today else date.today()
    except ValueError as e:
        typer.secho(f"Invalid date: {today}", fg="red", err=True)
        raise typer.Exit(2) from e

    progress = coerce_progress(
        {"ease_factor": ease, "interval": interval, "repetitions": repetitions}
    )
    result = calculate_next_review(progress, rating, review_date)
    typer.echo(
        json.dumps(
            {
                "ease_factor": result.ease_factor,
                "interval": result.interval,
                "repetitions": result.repetitions,
                "next_review_at": result.next_review_at.isoformat(),
                "label": get_interval_description(result.interval),
            },
            indent=2,
        )
    )


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@app.command()
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8787,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the study HTTP server."""
    import uvicorn

    uvicorn.run("gelos.server:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    if d.get("postgrest_key"):
        d["postgrest_key"] = "***"
    typer.echo(json.dumps(d, indent=2))
