"""
Order Endpoints

Orders placed against the current store's catalog. Prices default to the
catalog price at the time of ordering and are copied onto the line item.
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload
from typing import Optional

from storefront_api.database import get_db
from storefront_api.models import User, Tenant, Order, OrderItem, InventoryItem
from storefront_api.schemas.order import (
    OrderCreate,
    OrderStatusUpdate,
    OrderResponse,
    OrderDetailResponse,
    OrderListResponse,
)
from storefront_api.api.deps import get_current_user, get_current_tenant, require_member
from storefront_api.core.exceptions import InvalidInputError, OrderNotFoundError
from storefront_api.services.orders import (
    TERMINAL_STATUSES,
    calculate_line_item,
    calculate_order_totals,
    generate_order_number,
    record_status_change,
    transition_order_status,
)
from storefront_api.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


def get_tenant_order(db: Session, tenant_id: str, order_id: str, detail: bool = False) -> Order:
    query = db.query(Order)
    if detail:
        query = query.options(
            selectinload(Order.items),
            selectinload(Order.payments),
            selectinload(Order.history)
        )
    order = query.filter(Order.id == order_id, Order.tenant_id == tenant_id).first()
    if not order:
        raise OrderNotFoundError(order_id)
    return order


@router.post("", response_model=OrderDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: OrderCreate,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    item_ids = {line.inventory_item_id for line in order_data.items if line.inventory_item_id}
    catalog = {}
    if item_ids:
        catalog = {
            item.id: item
            for item in db.query(InventoryItem).filter(
                InventoryItem.tenant_id == tenant.id,
                InventoryItem.id.in_(item_ids)
            ).all()
        }
    unknown = sorted(item_ids - catalog.keys())
    if unknown:
        raise InvalidInputError({"error": "unknown_items", "inventory_item_ids": unknown})

    unpriced = sorted({
        line.inventory_item_id
        for line in order_data.items
        if line.unit_price_cents is None and catalog[line.inventory_item_id].price_cents is None
    })
    if unpriced:
        raise InvalidInputError({
            "error": "item_has_no_price",
            "message": "Catalog items without a price need unit_price_cents",
            "inventory_item_ids": unpriced,
        })

    order_items = []
    lines = []
    for line in order_data.items:
        product = catalog.get(line.inventory_item_id)
        unit_price = line.unit_price_cents if line.unit_price_cents is not None else product.price_cents
        totals = calculate_line_item(line.quantity, unit_price, line.tax_rate, line.discount_cents)
        lines.append(totals)
        order_items.append(OrderItem(
            inventory_item_id=product.id if product else None,
            sku=line.sku or product.sku,
            name=line.name or product.name,
            description=product.description if product else None,
            image_url=product.image_url if product else None,
            quantity=totals.quantity,
            unit_price_cents=totals.unit_price_cents,
            tax_rate=totals.tax_rate,
            subtotal_cents=totals.subtotal_cents,
            tax_cents=totals.tax_cents,
            discount_cents=totals.discount_cents,
            total_cents=totals.total_cents,
        ))

    shipping = order_data.shipping_address.model_dump() if order_data.shipping_address else None
    billing = order_data.billing_address.model_dump() if order_data.billing_address else shipping

    order = Order(
        tenant_id=tenant.id,
        order_number=generate_order_number(db),
        customer_email=order_data.customer.email,
        customer_name=order_data.customer.name,
        customer_phone=order_data.customer.phone,
        shipping_address=shipping,
        billing_address=billing,
        currency=order_data.currency.upper(),
        customer_notes=order_data.customer_notes,
        source=order_data.source,
        order_metadata=order_data.metadata,
        items=order_items,
        **calculate_order_totals(lines, order_data.shipping_cents, order_data.discount_cents),
    )
    record_status_change(order, "order", None, order.order_status or "draft", changed_by=current_user.id,
                         reason="Order created")

    db.add(order)
    db.commit()
    db.refresh(order)

    logger.info(f"Order created: {order.order_number} ({order.total_cents} cents) for tenant {tenant.id}")

    return order


@router.get("", response_model=OrderListResponse)
async def list_orders(
    order_status: Optional[str] = Query(None, alias="status"),
    payment_status: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    query = db.query(Order).filter(Order.tenant_id == tenant.id)
    if order_status:
        query = query.filter(Order.order_status == order_status)
    if payment_status:
        query = query.filter(Order.payment_status == payment_status)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Order.order_number.ilike(pattern),
            Order.customer_email.ilike(pattern),
            Order.customer_name.ilike(pattern)
        ))

    total = query.count()
    orders = query.order_by(Order.created_at.desc()).offset((page - 1) * page_size).limit(page_size).all()

    return OrderListResponse(
        orders=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_order(
    order_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return get_tenant_order(db, tenant.id, order_id, detail=True)


@router.patch("/{order_id}/status", response_model=OrderDetailResponse)
async def update_order_status(
    order_id: str,
    status_data: OrderStatusUpdate,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    order = get_tenant_order(db, tenant.id, order_id, detail=True)

    if order.order_status in TERMINAL_STATUSES and status_data.status != order.order_status:
        raise InvalidInputError({
            "error": "invalid_transition",
            "message": f"Order is {order.order_status} and can no longer change status",
        })

    if status_data.status != order.order_status:
        transition_order_status(
            order,
            status_data.status,
            changed_by=current_user.id,
            reason=status_data.reason,
            notes=status_data.notes,
        )
        db.commit()
        db.refresh(order)

        logger.info(f"Order {order.order_number} -> {order.order_status} by {current_user.id}")

    return order
