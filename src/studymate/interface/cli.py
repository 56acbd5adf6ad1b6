"""studymate CLI: server launcher, review planner and config inspection."""

import json
import logging
import sys
from datetime import date
from typing import Annotated

import typer

from studymate.application.config import resolve_config
from studymate.domain.constants import DEFAULT_EASE_FACTOR
from studymate.domain.errors import ValidationError

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="studymate: Spaced repetition and interleaved study sessions.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

config_app = typer.Typer(help="Manage studymate configuration.")
app.add_typer(config_app, name="config")


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def serve(
    host: Annotated[str | None, typer.Option(help="Interface to bind.")] = None,
    port: Annotated[int | None, typer.Option(help="Port to listen on.")] = None,
    reload: Annotated[bool, typer.Option("--reload", help="Reload on code changes.")] = False,
):
    """[bold green]Serve[/bold green] the studymate HTTP API."""
    import uvicorn

    config = resolve_config({"host": host, "port": port})
    logging.getLogger().setLevel(config.log_level.upper())

    uvicorn.run(
        "studymate.server:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        reload=reload,
    )


@app.command()
def schedule(
    qualities: Annotated[
        list[int], typer.Argument(help="Quality ratings (0-5), one per review, in order.")
    ],
    start: Annotated[
        str | None, typer.Option(help="Day of the first review (YYYY-MM-DD). Defaults to today.")
    ] = None,
    ease: Annotated[float, typer.Option(help="Starting ease factor.")] = DEFAULT_EASE_FACTOR,
    interval: Annotated[int, typer.Option(help="Starting interval in days.")] = 1,
    repetitions: Annotated[int, typer.Option(help="Starting successful streak.")] = 0,
):
    """
    Print the review plan a card follows for a sequence of ratings.

    Each review is taken on the day the card falls due.
    """
    from studymate.application.scheduler import plan_reviews
    from studymate.domain.models import MemoryState

    try:
        start_day = date.fromisoformat(start) if start else date.today()
    except ValueError:
        typer.secho(f"Invalid start date: {start}", fg="red", err=True)
        raise typer.Exit(code=1) from None

    try:
        state = MemoryState(
            next_review_date=start_day,
            interval=interval,
            repetitions=repetitions,
            ease_factor=ease,
        )
        steps = plan_reviews(qualities, start_day, state)
    except ValidationError as e:
        typer.secho(f"Error: {e.message}", fg="red", err=True)
        raise typer.Exit(code=1) from None

    typer.echo(f"{'reviewed':<12} {'q':>2} {'reps':>5} {'interval':>9} {'ease':>6}  next")
    for step in steps:
        s = step.state
        typer.echo(
            f"{step.reviewed_on.isoformat():<12} {step.quality:>2} {s.repetitions:>5} "
            f"{s.interval:>9} {s.ease_factor:>6.2f}  {s.next_review_date.isoformat()}"
        )


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = config.model_dump()
    if d.get("openai_api_key"):
        d["openai_api_key"] = "***"
    typer.echo(json.dumps(d, indent=2))


def main():
    app()


if __name__ == "__main__":
    main()
