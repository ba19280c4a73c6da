# Overview: Read-only stock projections for dashboards (low stock, summary, per-location totals).

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import StockLevel
from ..numbers import QTY_QUANT, ZERO, format_quantity, round_cents, to_quantity
from .catalog_service import list_active_locations, list_active_products


def _levels_by_key() -> dict[tuple[int, int], Decimal]:
    return {
        (level.product_id, level.location_id): Decimal(level.stock).quantize(QTY_QUANT)
        for level in db.session.query(StockLevel).all()
    }


def _threshold(threshold) -> Decimal:
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 10)
    return to_quantity(threshold, field="threshold")


def get_low_stock_alerts(threshold=None) -> list[dict]:
    """
    Every active product at every active location holding <= threshold.

    A pair that was never stocked counts as 0, so a new product shows up
    at every location until it is received.
    """
    limit = _threshold(threshold)
    levels = _levels_by_key()
    alerts = []
    for product in list_active_products():
        for location in list_active_locations():
            stock = levels.get((product.id, location.id), ZERO)
            if stock <= limit:
                alerts.append({
                    "product_id": product.id,
                    "product_name": product.name,
                    "location_id": location.id,
                    "location_name": location.name,
                    "stock": format_quantity(stock),
                    "threshold": format_quantity(limit),
                })
    return alerts


def get_stock_summary(threshold=None) -> dict:
    limit = _threshold(threshold)
    levels = _levels_by_key()
    products = list_active_products()
    locations = list_active_locations()
    location_ids = {loc.id for loc in locations}

    total_quantity = ZERO
    total_value = ZERO
    with_stock = 0
    low_stock = 0
    for product in products:
        product_total = ZERO
        for location_id in location_ids:
            stock = levels.get((product.id, location_id), ZERO)
            product_total += stock
            if stock <= limit:
                low_stock += 1
        total_quantity += product_total
        total_value += product_total * (product.price_cents or 0)
        if product_total > 0:
            with_stock += 1

    return {
        "total_products": len(products),
        "total_locations": len(locations),
        "total_quantity": format_quantity(total_quantity),
        "total_value_cents": round_cents(total_value),
        "products_with_stock": with_stock,
        "products_without_stock": len(products) - with_stock,
        "low_stock_count": low_stock,
    }


def get_location_stock_totals() -> list[dict]:
    levels = _levels_by_key()
    prices = {p.id: p.price_cents or 0 for p in list_active_products()}

    quantity = defaultdict(lambda: ZERO)
    value = defaultdict(lambda: ZERO)
    stocked = defaultdict(int)
    for (product_id, location_id), stock in levels.items():
        if product_id not in prices:
            continue
        quantity[location_id] += stock
        value[location_id] += stock * prices[product_id]
        if stock > 0:
            stocked[location_id] += 1

    return [
        {
            "location_id": loc.id,
            "location_name": loc.name,
            "location_type": loc.type,
            "product_count": stocked[loc.id],
            "total_quantity": format_quantity(quantity[loc.id]),
            "total_value_cents": round_cents(value[loc.id]),
        }
        for loc in list_active_locations()
    ]
