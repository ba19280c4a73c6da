# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Insert demo units (pcs, box), a warehouse, a store and two products.
#
# Stock inspection:
# - python -m flask stock reconcile
#   Compare every stock level with the sum of its movements; exit 1 on mismatch.
# - python -m flask stock low [--threshold 10]
#   List product/location pairs at or below the threshold.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import UOM, UOMConversion, Product, Location
from .services import stock_service, monitoring_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Schema ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for sample data.")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Idempotently insert a small demo catalog."""
    pcs = db.session.query(UOM).filter_by(abbreviation="pcs").first()
    if not pcs:
        pcs = UOM(name="Piece", abbreviation="pcs")
        db.session.add(pcs)
    box = db.session.query(UOM).filter_by(abbreviation="box").first()
    if not box:
        box = UOM(name="Box", abbreviation="box")
        db.session.add(box)
    db.session.flush()

    if not db.session.query(UOMConversion).filter_by(from_uom_id=box.id, to_uom_id=pcs.id).first():
        db.session.add(UOMConversion(from_uom_id=box.id, to_uom_id=pcs.id, rate=12))
        click.echo("PASS Registered 1 box = 12 pcs")

    for name, loc_type in (("Main Warehouse", "warehouse"), ("Front Store", "store")):
        if not db.session.query(Location).filter_by(name=name).first():
            db.session.add(Location(name=name, type=loc_type))
            click.echo(f"PASS Created location: {name}")

    for name, barcode, price in (("Mineral Water 600ml", "8990001", 350), ("Instant Noodles", "8990002", 300)):
        if not db.session.query(Product).filter_by(barcode=barcode).first():
            db.session.add(Product(name=name, barcode=barcode, price_cents=price, uom_id=pcs.id))
            click.echo(f"PASS Created product: {name}")

    db.session.commit()
    click.echo("DONE Demo data ready.")


@click.group('stock')
def stock_group():
    """Stock ledger inspection commands."""


@stock_group.command('reconcile')
@with_appcontext
def reconcile():
    """Exit non-zero when any level disagrees with its movement log."""
    mismatches = stock_service.reconcile()
    if not mismatches:
        click.echo("PASS All stock levels match their movements.")
        return

    for row in mismatches:
        click.echo(
            f"FAIL product={row['product_id']} location={row['location_id']} "
            f"stock={row['stock']} movements={row['movement_total']}"
        )
    raise SystemExit(1)


@stock_group.command('low')
@click.option('--threshold', type=float, default=None, help='Defaults to LOW_STOCK_THRESHOLD')
@with_appcontext
def low_stock(threshold):
    """List product/location pairs at or below the threshold."""
    alerts = monitoring_service.get_low_stock_alerts(threshold)
    if not alerts:
        click.echo("PASS No low stock.")
        return
    for alert in alerts:
        click.echo(
            f"WARN {alert['product_name']} @ {alert['location_name']}: "
            f"{alert['stock']} (threshold {alert['threshold']})"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stock_group)
