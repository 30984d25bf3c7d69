"""
Trazabilidad CLI.

Command-line interface for database setup, lot listings and label previews.
"""

from datetime import date
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from shared.config.logging import setup_logging
from shared.infrastructure.db import engine, get_db_context
from shared.utils.exceptions import AppException
from trace_api.models import Base
from trace_api.seed import seed
from trace_api.services.domain import LabelService, LotService, RecipeService

app = typer.Typer(
    name="trazabilidad",
    help="Food-safety traceability CLI",
    add_completion=False,
)
console = Console()


def _fail(error: AppException) -> None:
    console.print(f"[red]✗ {error.detail}[/red]")
    raise typer.Exit(1)


# =============================================================================
# Database Commands
# =============================================================================

@app.command("init-db")
def init_db():
    """Create tables and storage triggers, then seed reference catalogs."""
    setup_logging()
    console.print("[blue]Creating tables...[/blue]")
    Base.metadata.create_all(bind=engine)
    with get_db_context() as db:
        try:
            seed(db)
        except AppException as e:
            _fail(e)
    console.print("[green]✓ Database ready[/green]")


# =============================================================================
# Recipe and Lot Commands
# =============================================================================

@app.command()
def recipes(
    shape: Optional[str] = typer.Option(None, help="Filter by shape: combine | split"),
):
    """List recipes."""
    with get_db_context() as db:
        rows = RecipeService(db).list_recipes(shape=shape, limit=500)

    if not rows:
        console.print("[yellow]No recipes found[/yellow]")
        return

    table = Table(title="Recipes")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Name")
    table.add_column("Shape")
    table.add_column("Weight", justify="right")
    table.add_column("Shelf life", justify="right")
    table.add_column("Lines", justify="right")
    for recipe in rows:
        table.add_row(
            str(recipe.id),
            recipe.name,
            recipe.shape,
            f"{recipe.obtained_weight:.3f}",
            f"{recipe.shelf_life_days} d",
            str(len(recipe.lines)),
        )
    console.print(table)


@app.command()
def lots(
    recipe_id: Optional[int] = typer.Option(None, "--recipe", "-r", help="Only lots of this recipe"),
):
    """List production lots with their computed status."""
    with get_db_context() as db:
        rows = LotService(db).list_lots(recipe_id=recipe_id, limit=500)

    if not rows:
        console.print("[yellow]No lots found[/yellow]")
        return

    table = Table(title="Lots")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Recipe")
    table.add_column("Number", justify="right")
    table.add_column("Produced")
    table.add_column("Expires")
    table.add_column("Weight", justify="right")
    table.add_column("Status")
    for lot in rows:
        status_style = "green" if lot.status == "open" else "red"
        table.add_row(
            str(lot.id),
            lot.recipe_name,
            str(lot.lot_number),
            lot.production_date.isoformat(),
            lot.expiry_date.isoformat() if lot.expiry_date else "-",
            f"{lot.total_weight:.3f} {lot.weight_unit}",
            f"[{status_style}]{lot.status}[/{status_style}]",
        )
    console.print(table)


@app.command()
def label(
    lot_id: int = typer.Argument(..., help="Lot ID"),
    today: Optional[str] = typer.Option(None, help="Reference date (YYYY-MM-DD) for the status"),
):
    """Preview the flattened label of a lot."""
    reference = date.fromisoformat(today) if today else None
    with get_db_context() as db:
        try:
            data = LabelService(db).flatten_for_label(lot_id, today=reference)
        except AppException as e:
            _fail(e)

    body = [
        f"[bold]{data.product_name}[/bold]",
        f"Ingredientes: {data.ingredients_text or '-'}",
        f"ALÉRGENOS: ({', '.join(data.allergens)})" if data.allergens else "ALÉRGENOS: -",
        f"Conservación: {data.conservation or '-'}",
        f"Elaboración: {data.production_date}",
        f"Caducidad: {data.expiry_date or '-'}",
        f"Peso: {data.total_weight:.3f} {data.weight_unit}",
    ]
    console.print(Panel("\n".join(body), title=f"Lote {data.display_code}", subtitle=data.status))


if __name__ == "__main__":
    app()
