"""Command-line interface for managing the inventory ledger."""

import json
import sys
from typing import Optional

import click

from .services.alert_engine import STATUS_EXPIRED, STATUS_EXPIRES_TODAY, STATUS_LOW_STOCK, STATUS_IN_STOCK
from .services.data_transfer import build_export, export_filename, import_document
from .services.inventory_service import InventoryService
from .services.scan_service import OUTCOME_DROPPED, OUTCOME_FOUND
from .utils.config import get_config
from .utils.exceptions import BaseAppException

STATUS_COLORS = {
    STATUS_EXPIRED: "red",
    STATUS_EXPIRES_TODAY: "red",
    STATUS_LOW_STOCK: "bright_red",
    STATUS_IN_STOCK: "green",
}


def _service() -> InventoryService:
    try:
        return InventoryService().load()
    except BaseAppException as e:
        _fail(f"Cannot open ledger: {e.message}")


def _fail(message: str):
    click.echo(click.style(f"✗ {message}", fg="red"), err=True)
    sys.exit(1)


@click.group()
@click.version_option(version="1.0.0")
def cli():
    """
    FreshTrack inventory CLI.

    Track perishable stock, movements and expiry alerts for one site.
    """
    pass


@cli.command("add-product")
@click.option("--name", required=True, help="Product name")
@click.option("--category", default="", help="Product category")
@click.option("--unit", default="", help="Unit of measure, e.g. kg")
@click.option("--stock", "current_stock", type=int, default=0, help="Initial stock")
@click.option("--min-stock", type=int, default=0, help="Low-stock threshold")
@click.option("--expiry", "expiry_date", default="", help="Expiry date DD.MM.YYYY")
@click.option("--location", default="", help="Storage location")
@click.option("--supplier", default="", help="Supplier")
@click.option("--barcode", default=None, help="Barcode used by the scanner")
def add_product(**data):
    """Create a product."""
    try:
        with _service() as service:
            product = service.processor.create_product(**data)
            click.echo(click.style(f"✓ Created {product.name} ({product.id})", fg="green"))
            for alert in service.store.alerts_for(product.id):
                click.echo(click.style(f"  ⚠ {alert.message}", fg="yellow"))
    except BaseAppException as e:
        _fail(e.message)


@cli.command("edit-product")
@click.argument("product_id")
@click.option("--field", "fields", multiple=True, metavar="NAME=VALUE",
              help="Field to change, e.g. --field min_stock=5 (repeatable)")
def edit_product(product_id: str, fields):
    """Change product attributes other than stock."""
    changes = {}
    try:
        for item in fields:
            name, sep, value = item.partition("=")
            if not sep:
                _fail(f"Expected NAME=VALUE, got '{item}'")
            if name == "min_stock":
                changes[name] = int(value)
            elif name == "price":
                changes[name] = float(value)
            else:
                changes[name] = value

        with _service() as service:
            product = service.processor.update_product(product_id, **changes)
            click.echo(click.style(f"✓ Updated {product.name}", fg="green"))
    except ValueError as e:
        _fail(f"Invalid value: {str(e)}")
    except BaseAppException as e:
        _fail(e.message)


@cli.command("delete-product")
@click.argument("product_id")
@click.confirmation_option(prompt="Delete this product and its alerts?")
def delete_product(product_id: str):
    """Delete a product; its movement history is kept."""
    try:
        with _service() as service:
            product = service.processor.delete_product(product_id)
            click.echo(click.style(f"✓ Deleted {product.name}", fg="green"))
    except BaseAppException as e:
        _fail(e.message)


@cli.command()
@click.argument("product_id")
@click.argument("movement_type", type=click.Choice(["in", "out", "adjustment"]))
@click.argument("quantity", type=int)
@click.option("--reason", required=True, help="Reason for the movement")
@click.option("--notes", default=None, help="Optional notes")
@click.option("--user", default=None, help="User recording the movement")
def move(product_id: str, movement_type: str, quantity: int, reason: str,
         notes: Optional[str], user: Optional[str]):
    """
    Record a stock movement.

    MOVEMENT_TYPE: in (receipt), out (issue) or adjustment (stock-take, sets the stock)
    """
    try:
        with _service() as service:
            movement = service.processor.apply_movement(
                product_id, movement_type, quantity, reason,
                user=user or get_config().env.default_user,
                notes=notes,
            )
            product = service.store.get_product(product_id)
            click.echo(click.style(
                f"✓ {movement.type} {movement.quantity} {product.unit} {product.name}: "
                f"stock now {product.current_stock}", fg="green"
            ))
            if product.current_stock < 0:
                click.echo(click.style("  ⚠ Stock is negative", fg="yellow"))
    except BaseAppException as e:
        _fail(e.message)


@cli.command()
@click.option("--search", "query", default="", help="Match name, category or location")
@click.option("--category", default=None, help="Only this category")
def products(query: str, category: Optional[str]):
    """List products with their status."""
    service = _service()
    results = service.store.search_products(query, category)
    if not results:
        click.echo("No products found.")
        return

    for product in results:
        status = service.alert_engine.status_of(product)
        click.echo(
            f"{product.id:<34} {product.name:<24} "
            f"{product.current_stock:>6} {product.unit:<6} "
            f"min {product.min_stock:<5} {product.expiry_date or '-':<11} "
            + click.style(status, fg=STATUS_COLORS.get(status, "yellow"))
        )


@cli.command()
@click.option("--type", "movement_type", type=click.Choice(["all", "in", "out", "adjustment"]),
              default="all", help="Filter by movement type")
@click.option("--limit", type=int, default=20, help="Number of movements to show")
def movements(movement_type: str, limit: int):
    """Show the most recent movements."""
    service = _service()
    for movement in service.store.filter_movements(movement_type)[:limit]:
        click.echo(
            f"{movement.timestamp:%d.%m.%Y %H:%M}  {movement.type:<10} {movement.quantity:>6}  "
            f"{movement.product_name:<24} {movement.reason} ({movement.user})"
        )


@cli.command()
@click.option("--all", "show_all", is_flag=True, help="Include acknowledged alerts")
def alerts(show_all: bool):
    """List alerts."""
    service = _service()
    shown = [a for a in service.store.alerts if show_all or not a.acknowledged]
    if not shown:
        click.echo(click.style("✓ No open alerts", fg="green"))
        return

    for alert in shown:
        color = "red" if alert.severity == "high" else "yellow"
        mark = "✓" if alert.acknowledged else "⚠"
        click.echo(click.style(f"{mark} [{alert.severity}] {alert.product_name}: {alert.message}", fg=color)
                   + f"  ({alert.id})")


@cli.command()
@click.argument("alert_id")
def ack(alert_id: str):
    """Acknowledge an alert."""
    try:
        with _service() as service:
            service.alert_engine.acknowledge(alert_id)
            click.echo(click.style(f"✓ Acknowledged {alert_id}", fg="green"))
    except BaseAppException as e:
        _fail(e.message)


@cli.command("refresh-alerts")
def refresh_alerts():
    """Recompute alerts for every product against today's date."""
    try:
        with _service() as service:
            active = service.refresh_alerts()
            click.echo(click.style(f"✓ {len(active)} active alerts", fg="green"))
    except BaseAppException as e:
        _fail(e.message)


@cli.command()
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None,
              help="Target file (defaults to freshtrack_export_DD.MM.YYYY.json)")
def export(output: Optional[str]):
    """Export the ledger to a JSON file."""
    config = get_config()
    service = _service()
    now = service.clock()
    document = build_export(service.store, now, config.export.version, config.export.format)
    path = output or export_filename(now)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2, ensure_ascii=False)

    counts = document["metadata"]["recordCounts"]
    click.echo(click.style(f"✓ Exported to {path}", fg="green"))
    click.echo(f"  Products:  {counts['products']}")
    click.echo(f"  Movements: {counts['movements']}")
    click.echo(f"  Alerts:    {counts['alerts']}")


@cli.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--replace", is_flag=True, help="Replace the ledger instead of merging by id")
def import_(path: str, replace: bool):
    """Import a JSON export file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            document = json.load(f)
    except json.JSONDecodeError as e:
        _fail(f"Invalid JSON: {str(e)}")

    try:
        with _service() as service:
            counts = import_document(service.store, document, "replace" if replace else "merge")
            click.echo(click.style("✓ Import complete", fg="green"))
            for name, count in counts.items():
                click.echo(f"  {name.capitalize():<10} {count}")
    except BaseAppException as e:
        _fail(e.message)


@cli.command()
def scan():
    """
    Manual-entry scan session.

    Enter one barcode per prompt; an empty line ends the session. Known
    barcodes offer a movement entry, unknown ones offer to create the product.
    """
    service = _service()
    scanner = service.scanner
    user = get_config().env.default_user
    click.echo("Scan session started. Empty barcode to finish.")

    try:
        while True:
            code = click.prompt("Barcode", default="", show_default=False).strip()
            if not code:
                break

            outcome = scanner.handle_scan(code)
            if outcome.outcome == OUTCOME_DROPPED:
                click.echo(click.style(f"  … {code} ignored (duplicate or too fast)", fg="bright_black"))
            elif outcome.outcome == OUTCOME_FOUND:
                _scan_movement(service, outcome.product, user)
            else:
                _scan_create(service, code)
    except click.Abort:
        click.echo()
    except BaseAppException as e:
        _fail(e.message)
    finally:
        scanner.reset()


def _scan_movement(service: InventoryService, product, user: str):
    click.echo(click.style(
        f"  ✓ {product.name}: {product.current_stock} {product.unit} in stock", fg="green"
    ))
    if not click.confirm("  Record a movement?", default=True):
        return

    movement_type = click.prompt("  Type", type=click.Choice(["in", "out", "adjustment"]), default="in")
    quantity = click.prompt("  Quantity", type=click.IntRange(min=0))
    reason = click.prompt("  Reason")
    try:
        service.processor.apply_movement(product.id, movement_type, quantity, reason, user=user)
    except BaseAppException as e:
        click.echo(click.style(f"  ✗ {e.message}", fg="red"))
        return
    updated = service.store.get_product(product.id)
    click.echo(click.style(f"  ✓ Stock now {updated.current_stock} {updated.unit}", fg="green"))


def _scan_create(service: InventoryService, code: str):
    scanner = service.scanner
    if not click.confirm(f"  No product with barcode {code}. Create it?", default=False):
        scanner.cancel_create()
        return

    name = click.prompt("  Name")
    current_stock = click.prompt("  Initial stock", type=click.IntRange(min=0), default=0)
    min_stock = click.prompt("  Minimum stock", type=click.IntRange(min=0), default=0)
    unit = click.prompt("  Unit", default="", show_default=False)
    expiry_date = click.prompt("  Expiry date (DD.MM.YYYY)", default="", show_default=False)
    try:
        product = scanner.confirm_create(
            name=name, current_stock=current_stock, min_stock=min_stock,
            unit=unit, expiry_date=expiry_date,
        )
    except BaseAppException as e:
        click.echo(click.style(f"  ✗ {e.message}", fg="red"))
        scanner.cancel_create()
        return
    click.echo(click.style(f"  ✓ Created {product.name} ({product.id})", fg="green"))


@cli.command("config-info")
def config_info():
    """Display current configuration settings."""
    try:
        config = get_config()

        click.echo("Configuration Settings:")
        click.echo("=" * 60)
        click.echo()

        click.echo("Environment:")
        click.echo(f"  Environment:     {config.env.environment}")
        click.echo(f"  Log level:       {config.logging.level}")
        click.echo(f"  Default user:    {config.env.default_user}")
        click.echo()

        click.echo("Storage:")
        click.echo(f"  Backend:         {config.storage.backend}")
        click.echo(f"  Data directory:  {config.storage.data_dir}")
        click.echo()

        click.echo("Scanner:")
        click.echo(f"  Cooldown:        {config.scanner.cooldown_ms} ms")
        click.echo(f"  Timeout:         {config.scanner.processing_timeout_ms} ms")
        click.echo()

        click.echo("Alerts:")
        click.echo(f"  Expiring soon:   {config.alerts.expiry_soon_days} days")
        click.echo(f"  This week:       {config.alerts.expiring_week_days} days")
        click.echo()

    except Exception as e:
        click.echo(click.style(f"✗ Error loading config: {str(e)}", fg="red"), err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
