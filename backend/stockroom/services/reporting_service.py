# Overview: Read-only dashboard reports over sales, procurements and disposals, grouped by day.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import case, func

from ..extensions import db
from ..errors import InvalidInputError
from ..models import Disposal, Location, Procurement, Product, Sale, SaleItem
from ..models.adjustments import STATUS_APPROVED, STATUS_PENDING
from ..numbers import format_quantity, round_cents
from ..time_utils import parse_iso_datetime

MAX_TOP_PRODUCTS = 100


def _day(value: str | None, field: str) -> str | None:
    """'2026-10-19' or any ISO datetime -> '2026-10-19' (UTC calendar day)."""
    if value is None or not str(value).strip():
        return None
    try:
        dt = parse_iso_datetime(str(value))
    except ValueError:
        raise InvalidInputError(f"{field} must be an ISO-8601 date", details={"field": field})
    return dt.strftime("%Y-%m-%d")


def _parse_range(date_from: str | None, date_to: str | None) -> tuple[str | None, str | None]:
    start = _day(date_from, "date_from")
    end = _day(date_to, "date_to")
    if start and end and start > end:
        raise InvalidInputError(
            "date_from must not be after date_to",
            details={"date_from": start, "date_to": end},
        )
    return start, end


def _within(query, day_expr, start: str | None, end: str | None):
    # Both bounds are inclusive calendar days
    if start:
        query = query.filter(day_expr >= start)
    if end:
        query = query.filter(day_expr <= end)
    return query


def _decimal(value) -> Decimal:
    return Decimal(str(value or 0))


def _status_count(model, status: str):
    return func.coalesce(func.sum(case((model.status == status, 1), else_=0)), 0)


def get_sales_by_date(date_from: str | None = None, date_to: str | None = None) -> dict:
    start, end = _parse_range(date_from, date_to)
    day = func.strftime("%Y-%m-%d", Sale.sold_at)

    query = db.session.query(
        day.label("period"),
        func.count(func.distinct(Sale.id)).label("transaction_count"),
        func.coalesce(func.sum(Sale.total_amount_cents), 0).label("total_revenue_cents"),
    ).filter(Sale.deleted_at.is_(None))
    query = _within(query, day, start, end)

    rows = query.group_by("period").order_by("period").all()
    return {
        "date_from": start,
        "date_to": end,
        "rows": [
            {
                "date": row.period,
                "total_sales": int(row.transaction_count or 0),
                "transaction_count": int(row.transaction_count or 0),
                "total_revenue_cents": int(row.total_revenue_cents or 0),
            }
            for row in rows
        ],
    }


def get_procurements_by_date(date_from: str | None = None, date_to: str | None = None) -> dict:
    """Value is quantity as entered times unit price; rows without a price count as 0."""
    start, end = _parse_range(date_from, date_to)
    day = func.strftime("%Y-%m-%d", Procurement.created_at)

    query = db.session.query(
        day.label("period"),
        func.count(func.distinct(Procurement.id)).label("total_procurements"),
        func.coalesce(func.sum(Procurement.quantity), 0).label("total_quantity"),
        func.coalesce(
            func.sum(Procurement.quantity * func.coalesce(Procurement.unit_price_cents, 0)), 0
        ).label("total_value"),
        _status_count(Procurement, STATUS_APPROVED).label("approved_count"),
        _status_count(Procurement, STATUS_PENDING).label("pending_count"),
    ).filter(Procurement.deleted_at.is_(None))
    query = _within(query, day, start, end)

    rows = query.group_by("period").order_by("period").all()
    return {
        "date_from": start,
        "date_to": end,
        "rows": [
            {
                "date": row.period,
                "total_procurements": int(row.total_procurements or 0),
                "total_quantity": format_quantity(_decimal(row.total_quantity)),
                "total_value_cents": round_cents(_decimal(row.total_value)),
                "approved_count": int(row.approved_count or 0),
                "pending_count": int(row.pending_count or 0),
            }
            for row in rows
        ],
    }


def get_disposals_by_date(date_from: str | None = None, date_to: str | None = None) -> dict:
    start, end = _parse_range(date_from, date_to)
    day = func.strftime("%Y-%m-%d", Disposal.created_at)

    query = db.session.query(
        day.label("period"),
        func.count(func.distinct(Disposal.id)).label("total_disposals"),
        func.coalesce(func.sum(Disposal.quantity), 0).label("total_quantity"),
        _status_count(Disposal, STATUS_APPROVED).label("approved_count"),
        _status_count(Disposal, STATUS_PENDING).label("pending_count"),
    ).filter(Disposal.deleted_at.is_(None))
    query = _within(query, day, start, end)

    rows = query.group_by("period").order_by("period").all()
    return {
        "date_from": start,
        "date_to": end,
        "rows": [
            {
                "date": row.period,
                "total_disposals": int(row.total_disposals or 0),
                "total_quantity": format_quantity(_decimal(row.total_quantity)),
                "approved_count": int(row.approved_count or 0),
                "pending_count": int(row.pending_count or 0),
            }
            for row in rows
        ],
    }


def get_top_products(limit=10, date_from: str | None = None, date_to: str | None = None) -> dict:
    """
    Best sellers by revenue over non-deleted sales of non-deleted products.

    Quantities are summed in each product's base unit so lines entered
    in different units add up.
    """
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_TOP_PRODUCTS:
        raise InvalidInputError(
            f"limit must be an integer between 1 and {MAX_TOP_PRODUCTS}",
            details={"field": "limit"},
        )
    start, end = _parse_range(date_from, date_to)
    day = func.strftime("%Y-%m-%d", Sale.sold_at)

    revenue = func.coalesce(func.sum(SaleItem.subtotal_cents), 0).label("total_revenue_cents")
    query = (
        db.session.query(
            SaleItem.product_id.label("product_id"),
            Product.name.label("product_name"),
            func.coalesce(func.sum(SaleItem.base_quantity), 0).label("total_quantity_sold"),
            revenue,
            func.count(func.distinct(SaleItem.sale_id)).label("transaction_count"),
        )
        .join(Sale, Sale.id == SaleItem.sale_id)
        .join(Product, Product.id == SaleItem.product_id)
        .filter(Sale.deleted_at.is_(None), Product.deleted_at.is_(None))
    )
    query = _within(query, day, start, end)

    rows = (
        query.group_by(SaleItem.product_id, Product.name)
        .order_by(revenue.desc(), SaleItem.product_id.asc())
        .limit(limit)
        .all()
    )
    return {
        "date_from": start,
        "date_to": end,
        "limit": limit,
        "rows": [
            {
                "product_id": row.product_id,
                "product_name": row.product_name,
                "total_quantity_sold": format_quantity(_decimal(row.total_quantity_sold)),
                "total_revenue_cents": int(row.total_revenue_cents or 0),
                "transaction_count": int(row.transaction_count or 0),
            }
            for row in rows
        ],
    }


def get_location_stats(date_from: str | None = None, date_to: str | None = None) -> dict:
    start, end = _parse_range(date_from, date_to)
    day = func.strftime("%Y-%m-%d", Sale.sold_at)

    revenue = func.coalesce(func.sum(Sale.total_amount_cents), 0).label("total_revenue_cents")
    query = (
        db.session.query(
            Sale.location_id.label("location_id"),
            Location.name.label("location_name"),
            Location.type.label("location_type"),
            func.count(func.distinct(Sale.id)).label("transaction_count"),
            revenue,
        )
        .join(Location, Location.id == Sale.location_id)
        .filter(Sale.deleted_at.is_(None), Location.deleted_at.is_(None))
    )
    query = _within(query, day, start, end)

    rows = (
        query.group_by(Sale.location_id, Location.name, Location.type)
        .order_by(revenue.desc(), Sale.location_id.asc())
        .all()
    )
    return {
        "date_from": start,
        "date_to": end,
        "rows": [
            {
                "location_id": row.location_id,
                "location_name": row.location_name,
                "location_type": row.location_type,
                "total_sales": int(row.transaction_count or 0),
                "total_revenue_cents": int(row.total_revenue_cents or 0),
                "transaction_count": int(row.transaction_count or 0),
            }
            for row in rows
        ],
    }


def get_dashboard_summary(date_from: str | None = None, date_to: str | None = None) -> dict:
    """Headline totals; the date range narrows sales, procurements and disposals only."""
    start, end = _parse_range(date_from, date_to)

    sales = _within(
        db.session.query(
            func.coalesce(func.sum(Sale.total_amount_cents), 0),
            func.count(Sale.id),
        ).filter(Sale.deleted_at.is_(None)),
        func.strftime("%Y-%m-%d", Sale.sold_at),
        start,
        end,
    ).one()
    procurements = _within(
        db.session.query(
            func.coalesce(
                func.sum(Procurement.quantity * func.coalesce(Procurement.unit_price_cents, 0)), 0
            ),
            func.count(Procurement.id),
        ).filter(Procurement.deleted_at.is_(None)),
        func.strftime("%Y-%m-%d", Procurement.created_at),
        start,
        end,
    ).one()
    disposals_count = _within(
        db.session.query(func.count(Disposal.id)).filter(Disposal.deleted_at.is_(None)),
        func.strftime("%Y-%m-%d", Disposal.created_at),
        start,
        end,
    ).scalar()

    products_count = db.session.query(func.count(Product.id)).filter(Product.deleted_at.is_(None)).scalar()
    locations_count = db.session.query(func.count(Location.id)).filter(Location.deleted_at.is_(None)).scalar()

    return {
        "date_from": start,
        "date_to": end,
        "total_revenue_cents": int(sales[0] or 0),
        "total_sales_count": int(sales[1] or 0),
        "total_procurements_value_cents": round_cents(_decimal(procurements[0])),
        "total_procurements_count": int(procurements[1] or 0),
        "total_disposals_count": int(disposals_count or 0),
        "total_products": int(products_count or 0),
        "total_locations": int(locations_count or 0),
    }
