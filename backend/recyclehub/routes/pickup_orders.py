from datetime import datetime
from decimal import Decimal
from io import BytesIO
from typing import Any, Iterable, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from recyclehub.core.auth import get_current_staff, get_current_user, require_role
from recyclehub.core.config import LOCAL_TZ
from recyclehub.core.errors import RecycleHubError, http_error
from recyclehub.core.permissions import actor_for_user
from recyclehub.database.deps import get_order_lifecycle
from recyclehub.models.dropping_point import DroppingPoint
from recyclehub.models.pickup_order import PickupOrder
from recyclehub.models.user import User
from recyclehub.routes.uploads import build_upload_url
from recyclehub.schemas.pickup_order import (
    OrderCompletionIn,
    OrderCompletionOut,
    PickupOrderCreate,
    PickupOrderOut,
    PickupOrderReconciliationOut,
    PickupOrderStatusUpdateIn,
)
from recyclehub.services.order_lifecycle import OrderLifecycle
from recyclehub.services.pickup_order_pdf import build_pickup_order_pdf

router = APIRouter(prefix="/pickup-orders", tags=["PickupOrders"])
get_order_creator = require_role("vendor", "admin", "manager")


def _names_for(db: Session, orders: Iterable[PickupOrder]) -> tuple[dict[int, str], dict[int, DroppingPoint]]:
    orders = list(orders)
    user_ids = {order.vendor_id for order in orders} | {order.assigned_to for order in orders if order.assigned_to}
    point_ids = {order.dropping_point_id for order in orders}
    users = {}
    if user_ids:
        users = {user_id: name for user_id, name in db.query(User.id, User.name).filter(User.id.in_(user_ids)).all()}
    points = {}
    if point_ids:
        points = {point.id: point for point in db.query(DroppingPoint).filter(DroppingPoint.id.in_(point_ids)).all()}
    return users, points


def build_order_out(order: PickupOrder, users: dict[int, str], points: dict[int, DroppingPoint]) -> PickupOrderOut:
    point = points.get(order.dropping_point_id)
    return PickupOrderOut(
        id=order.id,
        order_id=order.order_id,
        vendor_id=order.vendor_id,
        vendor_name=users.get(order.vendor_id),
        dropping_point_id=order.dropping_point_id,
        location_name=point.location_name if point else None,
        category=order.category,
        quantity=order.quantity,
        price=order.price,
        phone_number=order.phone_number,
        comment=order.comment or "",
        image=order.image,
        image_url=build_upload_url(order.image),
        status=order.status,
        assigned_to=order.assigned_to,
        assigned_to_name=users.get(order.assigned_to) if order.assigned_to else None,
        status_updated_at=order.status_updated_at,
        created_at=order.created_at
    )


def build_orders_out(db: Session, orders: list[PickupOrder]) -> list[PickupOrderOut]:
    users, points = _names_for(db, orders)
    return [build_order_out(order, users, points) for order in orders]


@router.post("/", response_model=PickupOrderOut, status_code=status.HTTP_201_CREATED)
def create_pickup_order(
    payload: PickupOrderCreate,
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
    current_user: User = Depends(get_order_creator)
):
    actor = actor_for_user(current_user)
    vendor_id = payload.vendor_id if payload.vendor_id is not None else current_user.id
    if not actor.is_staff and vendor_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Vendors can only request pickups for themselves")

    try:
        order = lifecycle.create_order(
            vendor_id=vendor_id,
            dropping_point_id=payload.dropping_point_id,
            category=payload.category,
            quantity=payload.quantity,
            price=payload.price,
            phone_number=payload.phone_number,
            comment=payload.comment,
            image=payload.image,
        )
    except RecycleHubError as exc:
        raise http_error(exc) from exc
    return build_orders_out(lifecycle.db, [order])[0]


@router.get("/", response_model=list[PickupOrderOut])
def list_pickup_orders(
    vendor_id: Optional[int] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
    current_user: User = Depends(get_current_user)
):
    try:
        orders = lifecycle.list_orders(actor_for_user(current_user), vendor_id=vendor_id, status=status_filter)
    except RecycleHubError as exc:
        raise http_error(exc) from exc
    return build_orders_out(lifecycle.db, orders)


@router.get("/completions", response_model=list[OrderCompletionOut])
def list_order_completions(
    order_id: Optional[int] = Query(default=None),
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
    current_user: User = Depends(get_current_staff)
):
    return lifecycle.list_completions(order_id)


@router.get("/reconciliation", response_model=PickupOrderReconciliationOut)
def read_reconciliation(
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
    current_user: User = Depends(get_current_staff)
):
    found = lifecycle.find_inconsistencies()
    return PickupOrderReconciliationOut(
        completion_without_status=build_orders_out(lifecycle.db, found["completion_without_status"]),
        status_without_completion=build_orders_out(lifecycle.db, found["status_without_completion"]),
    )


@router.post("/reconciliation/repair", response_model=list[PickupOrderOut])
def repair_reconciliation(
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
    current_user: User = Depends(get_current_staff)
):
    try:
        repaired = lifecycle.repair_inconsistencies(actor_for_user(current_user))
    except RecycleHubError as exc:
        raise http_error(exc) from exc
    return build_orders_out(lifecycle.db, repaired)


@router.get("/{order_id}", response_model=PickupOrderOut)
def read_pickup_order(
    order_id: int,
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
    current_user: User = Depends(get_current_user)
):
    try:
        order = lifecycle.get_order(order_id, actor_for_user(current_user))
    except RecycleHubError as exc:
        raise http_error(exc) from exc
    return build_orders_out(lifecycle.db, [order])[0]


@router.put("/{order_id}/status", response_model=PickupOrderOut)
def update_pickup_order_status(
    order_id: int,
    payload: PickupOrderStatusUpdateIn,
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
    current_user: User = Depends(get_current_user)
):
    try:
        order = lifecycle.transition(
            order_id,
            payload.status,
            actor_for_user(current_user),
            assigned_to=payload.assigned_to,
            expected_status=payload.expected_status,
            completion_notes=payload.completion_notes,
        )
    except RecycleHubError as exc:
        raise http_error(exc) from exc
    return build_orders_out(lifecycle.db, [order])[0]


@router.post("/{order_id}/completion", response_model=OrderCompletionOut, status_code=status.HTTP_201_CREATED)
def record_order_completion(
    order_id: int,
    payload: OrderCompletionIn,
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
    current_user: User = Depends(get_current_user)
):
    try:
        return lifecycle.record_completion(order_id, actor_for_user(current_user), payload.completion_notes)
    except RecycleHubError as exc:
        raise http_error(exc) from exc


@router.post("/{order_id}/complete", response_model=PickupOrderOut)
def complete_pickup_order(
    order_id: int,
    payload: OrderCompletionIn,
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
    current_user: User = Depends(get_current_user)
):
    try:
        order = lifecycle.complete_order(order_id, actor_for_user(current_user), payload.completion_notes)
    except RecycleHubError as exc:
        raise http_error(exc) from exc
    return build_orders_out(lifecycle.db, [order])[0]


def _format_datetime(value: Optional[datetime]) -> str:
    if not value:
        return ""
    if value.tzinfo is not None:
        value = value.astimezone(LOCAL_TZ)
    return value.strftime("%d/%m/%Y %H:%M")


def _slip_payload(lifecycle: OrderLifecycle, order: PickupOrder) -> dict[str, Any]:
    users, points = _names_for(lifecycle.db, [order])
    point = points.get(order.dropping_point_id)
    unit_price = (Decimal(str(order.price)) / order.quantity).quantize(Decimal("0.01"))
    payload: dict[str, Any] = {
        "order_id": order.order_id,
        "status": order.status,
        "vendor_name": users.get(order.vendor_id, ""),
        "phone_number": order.phone_number,
        "location_name": point.location_name if point else "",
        "address": point.address if point else "",
        "created_at": _format_datetime(order.created_at),
        "assigned_to_name": users.get(order.assigned_to, "") if order.assigned_to else "",
        "category": order.category,
        "quantity": order.quantity,
        "unit_price": f"{unit_price:,.2f}",
        "price": f"{Decimal(str(order.price)):,.2f}",
        "comment": order.comment or "",
        "completion": None,
        "generated_at": datetime.now(LOCAL_TZ).strftime("%d/%m/%Y %H:%M"),
    }
    completions = lifecycle.list_completions(order.id)
    if completions:
        completion = completions[0]
        completer = lifecycle.db.query(User.name).filter(User.id == completion.completed_by).scalar()
        payload["completion"] = {
            "completed_at": _format_datetime(completion.completed_at),
            "completed_by_name": completer or "",
            "completion_notes": completion.completion_notes,
        }
    return payload


@router.get("/{order_id}/slip.pdf")
def download_pickup_order_slip(
    order_id: int,
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
    current_user: User = Depends(get_current_user)
):
    try:
        order = lifecycle.get_order(order_id, actor_for_user(current_user))
    except RecycleHubError as exc:
        raise http_error(exc) from exc

    pdf_bytes = build_pickup_order_pdf(_slip_payload(lifecycle, order))
    filename = f"pickup_order_{order.order_id or order.id}.pdf"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return StreamingResponse(BytesIO(pdf_bytes), media_type="application/pdf", headers=headers)
