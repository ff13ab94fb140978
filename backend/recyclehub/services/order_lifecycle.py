from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from recyclehub.core.config import ORDER_ID_PREFIX
from recyclehub.core.errors import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from recyclehub.core.permissions import (
    ORDER_STATUS_VALUES,
    Actor,
    can_transition,
    is_staff,
    is_valid_transition,
    roles_for_user,
)
from recyclehub.models.dropping_point import DroppingPoint
from recyclehub.models.pickup_order import OrderCompletion, PickupOrder
from recyclehub.models.user import User
from recyclehub.services.price_engine import PriceEngine, local_today, normalize_category, normalize_price

logger = logging.getLogger("uvicorn.error")

RECONCILIATION_NOTE = "Recorded during reconciliation."


def normalize_status(value: Any) -> str:
    status_value = str(value or "").strip().lower()
    if status_value not in ORDER_STATUS_VALUES:
        allowed = ", ".join(sorted(ORDER_STATUS_VALUES))
        raise ValidationError(f"Unknown status '{value}'. Use one of: {allowed}.")
    return status_value


def normalize_quantity(value: Any) -> int:
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ValidationError("Invalid quantity.") from exc
    if parsed <= 0:
        raise ValidationError("The quantity must be greater than zero.")
    return parsed


def build_order_number(order_pk: int, day: date) -> str:
    return f"{ORDER_ID_PREFIX}-{day.strftime('%Y%m%d')}-{order_pk:06d}"


class OrderLifecycle:
    """Pickup orders and their status state machine.

    Status writes are compare-and-set updates on the status read just before,
    so of two racing transitions only one lands and the other gets a
    ConflictError.
    """

    def __init__(
        self,
        db: Session,
        prices: Optional[PriceEngine] = None,
        today: Callable[[], date] = local_today,
    ):
        self.db = db
        self.today = today
        self.prices = prices or PriceEngine(db, today=today)

    def _load_order(self, order_id: int) -> PickupOrder:
        order = self.db.query(PickupOrder).filter(PickupOrder.id == order_id).first()
        if not order:
            raise NotFoundError(f"Pickup order {order_id} not found.")
        return order

    def _ensure_user(self, user_id: int, label: str = "User") -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError(f"{label} {user_id} not found.")
        return user

    def _check_visibility(self, order: PickupOrder, actor: Actor) -> None:
        if actor.is_staff:
            return
        if "vendor" in actor.roles and order.vendor_id == actor.user_id:
            return
        raise AuthorizationError("You can only view your own pickup orders.")

    def create_order(
        self,
        vendor_id: int,
        dropping_point_id: int,
        category: str,
        quantity: Any,
        price: Any = None,
        phone_number: str = "",
        comment: str = "",
        image: Optional[str] = None,
    ) -> PickupOrder:
        """Insert a pending order after validating every field.

        ``price`` is the order total. When it is missing it is taken from the
        current unit price times the quantity, and stored as a snapshot that
        later price changes never touch.
        """
        clean_category = normalize_category(category)
        clean_quantity = normalize_quantity(quantity)
        phone = str(phone_number or "").strip()
        if not phone:
            raise ValidationError("A phone number is required.")

        point = self.db.query(DroppingPoint).filter(DroppingPoint.id == dropping_point_id).first()
        if not point:
            raise NotFoundError(f"Dropping point {dropping_point_id} not found.")
        self._ensure_user(vendor_id, "Vendor")

        if price is None:
            unit_price = self.prices.current_price(dropping_point_id, clean_category)["price"]
            total = (Decimal(str(unit_price)) * clean_quantity).quantize(Decimal("0.01"))
        else:
            total = normalize_price(price)

        order = PickupOrder(
            vendor_id=vendor_id,
            dropping_point_id=dropping_point_id,
            category=clean_category,
            quantity=clean_quantity,
            price=total,
            phone_number=phone,
            comment=str(comment or "").strip(),
            image=str(image).strip() if image else None,
            status="pending",
            assigned_to=None,
        )
        try:
            self.db.add(order)
            self.db.flush()
            order.order_id = build_order_number(order.id, self.today())
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(order)
        logger.info(
            "Pickup order %s created: vendor=%s point=%s category=%s quantity=%s price=%s",
            order.order_id,
            vendor_id,
            dropping_point_id,
            clean_category,
            clean_quantity,
            total,
        )
        return order

    def get_order(self, order_id: int, actor: Actor) -> PickupOrder:
        order = self._load_order(order_id)
        self._check_visibility(order, actor)
        return order

    def list_orders(
        self,
        actor: Actor,
        vendor_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> list[PickupOrder]:
        query = self.db.query(PickupOrder)
        if actor.is_staff:
            if vendor_id is not None:
                query = query.filter(PickupOrder.vendor_id == vendor_id)
        elif "vendor" in actor.roles:
            if vendor_id is not None and vendor_id != actor.user_id:
                raise AuthorizationError("Vendors can only list their own pickup orders.")
            query = query.filter(PickupOrder.vendor_id == actor.user_id)
        else:
            raise AuthorizationError("Your profile cannot list pickup orders.")

        if status:
            query = query.filter(PickupOrder.status == normalize_status(status))
        return query.order_by(PickupOrder.created_at.desc(), PickupOrder.id.desc()).all()

    def _authorize_edge(self, order: PickupOrder, target: str, actor: Actor) -> None:
        if not is_valid_transition(order.status, target):
            raise InvalidTransitionError(
                f"Order {order.order_id} cannot move from {order.status} to {target}."
            )
        if not can_transition(actor.roles, order.status, target):
            raise AuthorizationError(f"Your profile cannot move orders to {target}.")

    def _compare_and_set(self, order: PickupOrder, expected_status: str, values: dict[str, Any]) -> None:
        updated = (
            self.db.query(PickupOrder)
            .filter(PickupOrder.id == order.id, PickupOrder.status == expected_status)
            .update(values, synchronize_session=False)
        )
        if updated != 1:
            logger.warning(
                "Lost status race on order %s (expected %s, wanted %s)",
                order.order_id,
                expected_status,
                values.get("status"),
            )
            raise ConflictError(
                f"Order {order.order_id} changed while it was being updated. Reload it and try again."
            )

    def _completion_for(self, order_pk: int) -> Optional[OrderCompletion]:
        return self.db.query(OrderCompletion).filter(OrderCompletion.order_id == order_pk).first()

    def transition(
        self,
        order_id: int,
        new_status: str,
        actor: Actor,
        assigned_to: Optional[int] = None,
        expected_status: Optional[str] = None,
        completion_notes: Optional[str] = None,
    ) -> PickupOrder:
        target = normalize_status(new_status)
        order = self._load_order(order_id)
        current = order.status

        if expected_status is not None and normalize_status(expected_status) != current:
            raise ConflictError(
                f"Order {order.order_id} is {current}, not {normalize_status(expected_status)}. Reload it and try again."
            )
        self._authorize_edge(order, target, actor)

        values: dict[str, Any] = {"status": target, "status_updated_at": func.now()}
        if target == "assigned":
            assignee_id = assigned_to if assigned_to is not None else actor.user_id
            assignee = self._ensure_user(assignee_id, "Assignee")
            if not is_staff(roles_for_user(assignee)):
                raise ValidationError(f"User {assignee_id} is not staff and cannot be assigned pickup orders.")
            values["assigned_to"] = assignee_id

        existing_completion = self._completion_for(order.id)
        if target == "cancelled" and existing_completion is not None:
            raise InvalidTransitionError(
                f"Order {order.order_id} already has a completion record; complete it instead of cancelling."
            )

        try:
            if target == "completed" and existing_completion is None:
                self.db.add(
                    OrderCompletion(
                        order_id=order.id,
                        completed_by=actor.user_id,
                        completion_notes=str(completion_notes or "").strip(),
                    )
                )
                self.db.flush()
            self._compare_and_set(order, current, values)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError(f"Order {order.order_id} was completed concurrently.") from exc
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(order)
        logger.info("Order %s moved %s -> %s by user %s", order.order_id, current, target, actor.user_id)
        return order

    def record_completion(self, order_id: int, completed_by: Actor, completion_notes: str = "") -> OrderCompletion:
        """Write the completion record without touching the status.

        This is the first half of the two-call completion flow; until the
        status follows, the order shows up in ``find_inconsistencies``.
        """
        order = self._load_order(order_id)
        if self._completion_for(order.id) is not None:
            raise ConflictError(f"Order {order.order_id} already has a completion record.")
        self._authorize_edge(order, "completed", completed_by)

        completion = OrderCompletion(
            order_id=order.id,
            completed_by=completed_by.user_id,
            completion_notes=str(completion_notes or "").strip(),
        )
        try:
            self.db.add(completion)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError(f"Order {order.order_id} already has a completion record.") from exc
        self.db.refresh(completion)
        logger.info("Completion recorded for order %s by user %s", order.order_id, completed_by.user_id)
        return completion

    def complete_order(self, order_id: int, actor: Actor, completion_notes: str = "") -> PickupOrder:
        return self.transition(order_id, "completed", actor, completion_notes=completion_notes)

    def list_completions(self, order_id: Optional[int] = None) -> list[OrderCompletion]:
        query = self.db.query(OrderCompletion)
        if order_id is not None:
            query = query.filter(OrderCompletion.order_id == order_id)
        return query.order_by(OrderCompletion.completed_at.desc(), OrderCompletion.id.desc()).all()

    def find_inconsistencies(self) -> dict[str, list[PickupOrder]]:
        """Orders whose status and completion record disagree."""
        completion_without_status = (
            self.db.query(PickupOrder)
            .join(OrderCompletion, OrderCompletion.order_id == PickupOrder.id)
            .filter(PickupOrder.status != "completed")
            .order_by(PickupOrder.id.asc())
            .all()
        )
        status_without_completion = (
            self.db.query(PickupOrder)
            .outerjoin(OrderCompletion, OrderCompletion.order_id == PickupOrder.id)
            .filter(PickupOrder.status == "completed", OrderCompletion.id.is_(None))
            .order_by(PickupOrder.id.asc())
            .all()
        )
        return {
            "completion_without_status": completion_without_status,
            "status_without_completion": status_without_completion,
        }

    def repair_inconsistencies(self, actor: Actor) -> list[PickupOrder]:
        if not actor.is_staff:
            raise AuthorizationError("Only staff can repair pickup orders.")

        found = self.find_inconsistencies()
        repaired: list[PickupOrder] = []
        for order in found["completion_without_status"]:
            if order.status != "assigned":
                logger.warning(
                    "Order %s has a completion record but is %s; left for manual review",
                    order.order_id,
                    order.status,
                )
                continue
            repaired.append(self.transition(order.id, "completed", actor, expected_status="assigned"))

        for order in found["status_without_completion"]:
            self.db.add(
                OrderCompletion(
                    order_id=order.id,
                    completed_by=order.assigned_to or actor.user_id,
                    completion_notes=RECONCILIATION_NOTE,
                )
            )
            self.db.commit()
            self.db.refresh(order)
            repaired.append(order)

        if repaired:
            logger.info("Reconciliation repaired %s pickup orders", len(repaired))
        return repaired
