"""
Order math, numbering and status bookkeeping.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from storefront_api.models import Order, OrderStatusHistory

# Order status -> timestamp column stamped on first transition into it
STATUS_TIMESTAMPS = {
    "confirmed": "confirmed_at",
    "paid": "paid_at",
    "delivered": "fulfilled_at",
    "cancelled": "cancelled_at",
}

# Orders in these states can no longer change status
TERMINAL_STATUSES = ("cancelled", "refunded")


@dataclass
class LineTotals:
    quantity: int
    unit_price_cents: int
    tax_rate: float
    subtotal_cents: int
    tax_cents: int
    discount_cents: int
    total_cents: int


def calculate_line_item(
    quantity: int,
    unit_price_cents: int,
    tax_rate: float = 0.0,
    discount_cents: int = 0,
) -> LineTotals:
    """Tax is charged on the discounted subtotal and rounded to the cent."""
    subtotal = quantity * unit_price_cents
    discount = min(discount_cents, subtotal)
    tax = int(round((subtotal - discount) * tax_rate))
    return LineTotals(
        quantity=quantity,
        unit_price_cents=unit_price_cents,
        tax_rate=tax_rate,
        subtotal_cents=subtotal,
        tax_cents=tax,
        discount_cents=discount,
        total_cents=subtotal - discount + tax,
    )


def calculate_order_totals(
    lines: Iterable[LineTotals],
    shipping_cents: int = 0,
    order_discount_cents: int = 0,
) -> dict:
    lines = list(lines)
    subtotal = sum(line.subtotal_cents for line in lines)
    tax = sum(line.tax_cents for line in lines)
    discount = sum(line.discount_cents for line in lines) + order_discount_cents
    total = max(subtotal - discount + tax + shipping_cents, 0)
    return {
        "subtotal_cents": subtotal,
        "tax_cents": tax,
        "shipping_cents": shipping_cents,
        "discount_cents": discount,
        "total_cents": total,
    }


def generate_order_number(db: Session, now: Optional[datetime] = None) -> str:
    """ORD-YYYYMMDD-NNNN, sequential per day across the platform."""
    now = now or datetime.utcnow()
    prefix = f"ORD-{now:%Y%m%d}-"
    todays = db.query(Order).filter(Order.order_number.like(f"{prefix}%")).count()
    return f"{prefix}{todays + 1:04d}"


def record_status_change(
    order: Order,
    status_type: str,
    old_status: Optional[str],
    new_status: str,
    changed_by: Optional[str] = None,
    reason: Optional[str] = None,
    notes: Optional[str] = None,
) -> OrderStatusHistory:
    entry = OrderStatusHistory(
        status_type=status_type,
        old_status=old_status,
        new_status=new_status,
        changed_by=changed_by,
        reason=reason,
        notes=notes,
    )
    order.history.append(entry)
    return entry


def transition_order_status(
    order: Order,
    new_status: str,
    changed_by: Optional[str] = None,
    reason: Optional[str] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    """Set the order status, stamp its timestamp column and log history."""
    now = now or datetime.utcnow()
    old_status = order.order_status
    order.order_status = new_status

    column = STATUS_TIMESTAMPS.get(new_status)
    if column and getattr(order, column) is None:
        setattr(order, column, now)
    if new_status == "delivered":
        order.fulfillment_status = "fulfilled"

    record_status_change(order, "order", old_status, new_status, changed_by, reason, notes)
