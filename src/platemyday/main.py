"""
PlateMyDay - CLI Entry Point.

Usage:
    platemyday serve               Start the API server
    platemyday recipe "PROMPT"     Generate one recipe
    platemyday plan                Stream a 7-day meal plan
    platemyday credits             Show plan and remaining credits
    platemyday --help              Show help
"""

import asyncio
import logging

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

app = typer.Typer(
    name="platemyday",
    help="PlateMyDay - AI recipes and weekly meal plans.",
    add_completion=False,
)
console = Console()


def configure_logging(level: str | None = None) -> None:
    from platemyday.config import settings

    logging.basicConfig(
        level=level or settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _client():
    from platemyday.client import PlateMyDayClient

    return PlateMyDayClient()


def _fail(error: Exception) -> None:
    console.print(f"[red]FAIL {error}[/red]")
    raise typer.Exit(1)


@app.command()
def serve(
    port: int = typer.Option(8000, "--port", "-p", help="Port to run on"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload for development"),
    log_prompts: bool = typer.Option(False, "--log-prompts", "-l", help="Log all prompts to prompt_logs/"),
) -> None:
    """Start the API server."""
    import os

    import uvicorn

    from platemyday.llm.prompt_logger import enable_prompt_logging

    configure_logging()
    if log_prompts:
        enable_prompt_logging(True)

    # Hosting platforms set PORT
    actual_port = int(os.environ.get("PORT", port))

    console.print("\n[bold green]PlateMyDay API[/bold green]")
    console.print(f"Starting server on http://localhost:{actual_port}")
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")

    uvicorn.run(
        "platemyday.web.app:app",
        host="0.0.0.0",
        port=actual_port,
        reload=reload,
    )


@app.command()
def recipe(
    prompt: str = typer.Argument(..., help="What to cook, e.g. 'quick vegetarian curry'"),
) -> None:
    """Generate a single recipe."""
    from platemyday.errors import PlateMyDayError

    async def run():
        async with _client() as client:
            return await client.generate_recipe(prompt)

    try:
        with console.status("Cooking up a recipe..."):
            result = asyncio.run(run())
    except PlateMyDayError as e:
        _fail(e)

    body = "\n".join(
        [
            result.description,
            "",
            f"[bold]Serves[/bold] {result.servings}  "
            f"[bold]Prep[/bold] {result.prep_time_minutes}m  "
            f"[bold]Cook[/bold] {result.cook_time_minutes}m",
            "",
            "[bold]Ingredients[/bold]",
            *(f"  - {item}" for item in result.ingredients),
            "",
            "[bold]Instructions[/bold]",
            *(f"  {i}. {step}" for i, step in enumerate(result.instructions, start=1)),
        ]
    )
    console.print(Panel(body, title=result.title, border_style="green"))


def _partial_table(partial: dict | None) -> Table:
    table = Table(title="Meal plan (streaming)", show_lines=False)
    table.add_column("Day")
    table.add_column("Meals")
    for day in (partial or {}).get("days") or []:
        meals = ", ".join(
            f"{m.get('mealType', '?')}: {m.get('recipeTitle', '...')}" for m in day.get("meals") or []
        )
        table.add_row(day.get("dayOfWeek", "..."), meals)
    return table


@app.command()
def plan(
    preferences: str = typer.Option("", "--preferences", "-p", help="Free-text preferences"),
    week_start: str = typer.Option("Monday", "--week-start", "-w", help="Day the week starts on"),
) -> None:
    """Generate a 7-day meal plan, showing it as it streams in."""
    from platemyday.errors import PlateMyDayError

    async def run():
        async with _client() as client:
            with Live(_partial_table(None), console=console, refresh_per_second=4) as live:
                return await client.stream_meal_plan(
                    preferences=preferences or None,
                    week_start_day=week_start,
                    on_partial=lambda partial: live.update(_partial_table(partial)),
                )

    try:
        week_plan = asyncio.run(run())
    except PlateMyDayError as e:
        _fail(e)

    console.print(f"\n[green]OK[/green] Saved plan for the week of {week_plan.week_start_date}")
    if week_plan.suggested_recipes:
        console.print("[bold]New recipe suggestions:[/bold]")
        for title in week_plan.suggested_recipes:
            console.print(f"  - {title}")


@app.command()
def credits() -> None:
    """Show plan and remaining credits."""
    from platemyday.errors import PlateMyDayError

    async def run():
        async with _client() as client:
            return await client.get_credits()

    try:
        info = asyncio.run(run())
    except PlateMyDayError as e:
        _fail(e)

    remaining = "unlimited" if info.unlimited else f"{info.credits_remaining} of {info.credits_limit}"
    console.print(f"Plan: [bold]{info.plan}[/bold]")
    console.print(f"Credits remaining: [bold]{remaining}[/bold]")


@app.command()
def version() -> None:
    """Show version information."""
    from platemyday import __version__

    console.print(f"PlateMyDay version {__version__}")


if __name__ == "__main__":
    app()
