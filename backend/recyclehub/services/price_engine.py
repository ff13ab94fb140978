from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

from sqlalchemy import case, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from recyclehub.core.config import LOCAL_TZ, PRICE_STALENESS_DAYS
from recyclehub.core.errors import NotFoundError, StalePriceError, ValidationError
from recyclehub.models.daily_price import CATEGORY_SORT_ORDER, PRICE_CATEGORIES, DailyPrice
from recyclehub.models.dropping_point import DroppingPoint
from recyclehub.models.user import User

logger = logging.getLogger("uvicorn.error")

CATEGORY_RANK = {category: index for index, category in enumerate(CATEGORY_SORT_ORDER, start=1)}
UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def local_today() -> date:
    return datetime.now(LOCAL_TZ).date()


def normalize_category(value: Any) -> str:
    category = str(value or "").strip().lower()
    if category not in PRICE_CATEGORIES:
        allowed = ", ".join(PRICE_CATEGORIES)
        raise ValidationError(f"Unknown category '{value}'. Use one of: {allowed}.")
    return category


def normalize_price(value: Any, field_name: str = "price") -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"Invalid {field_name}.") from exc
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"The {field_name} must be greater than zero.")
    return amount.quantize(Decimal("0.01"))


def category_rank(category: str) -> int:
    return CATEGORY_RANK.get(category, len(CATEGORY_RANK) + 1)


def price_row_payload(price: DailyPrice, location_name: Optional[str] = None, created_by_name: Optional[str] = None) -> dict[str, Any]:
    return {
        "id": price.id,
        "dropping_point_id": price.dropping_point_id,
        "category": price.category,
        "price": price.price,
        "effective_date": price.effective_date,
        "created_by": price.created_by,
        "created_at": price.created_at,
        "location_name": location_name,
        "created_by_name": created_by_name,
    }


class PriceEngine:
    """Daily prices per (dropping point, category) with effective dating.

    At most one row exists per point, category and effective date. Current-price
    queries only look back ``staleness_days``; older rows stay visible to history.
    """

    def __init__(
        self,
        db: Session,
        today: Callable[[], date] = local_today,
        staleness_days: int = PRICE_STALENESS_DAYS,
    ):
        self.db = db
        self.today = today
        self.staleness_days = staleness_days

    def window_start(self) -> date:
        return self.today() - timedelta(days=self.staleness_days)

    def _ensure_point(self, dropping_point_id: int) -> DroppingPoint:
        point = self.db.query(DroppingPoint).filter(DroppingPoint.id == dropping_point_id).first()
        if not point:
            raise NotFoundError(f"Dropping point {dropping_point_id} not found.")
        return point

    def _upsert_statement(self, values: dict[str, Any]):
        dialect_name = self.db.get_bind().dialect.name
        insert = UPSERT_DIALECTS.get(dialect_name)
        if insert is None:
            raise RuntimeError(f"Price upsert is not supported on the '{dialect_name}' dialect.")
        statement = insert(DailyPrice).values(**values)
        return statement.on_conflict_do_update(
            index_elements=[DailyPrice.dropping_point_id, DailyPrice.category, DailyPrice.effective_date],
            set_={
                "price": statement.excluded.price,
                "created_by": statement.excluded.created_by,
            },
        )

    def set_price(self, dropping_point_id: int, category: str, price: Any, created_by: Optional[int]) -> DailyPrice:
        clean_category = normalize_category(category)
        amount = normalize_price(price)
        self._ensure_point(dropping_point_id)

        effective_date = self.today()
        self.db.execute(
            self._upsert_statement(
                {
                    "dropping_point_id": dropping_point_id,
                    "category": clean_category,
                    "price": amount,
                    "effective_date": effective_date,
                    "created_by": created_by,
                }
            )
        )
        self.db.commit()
        logger.info(
            "Price set: point=%s category=%s price=%s date=%s by=%s",
            dropping_point_id,
            clean_category,
            amount,
            effective_date,
            created_by,
        )
        return (
            self.db.query(DailyPrice)
            .filter(
                DailyPrice.dropping_point_id == dropping_point_id,
                DailyPrice.category == clean_category,
                DailyPrice.effective_date == effective_date,
            )
            .populate_existing()
            .one()
        )

    def _current_rows(self, dropping_point_id: Optional[int] = None, category: Optional[str] = None):
        ranked = self.db.query(
            DailyPrice.id.label("price_id"),
            func.row_number()
            .over(
                partition_by=(DailyPrice.dropping_point_id, DailyPrice.category),
                order_by=(DailyPrice.effective_date.desc(), DailyPrice.created_at.desc(), DailyPrice.id.desc()),
            )
            .label("position"),
        ).filter(DailyPrice.effective_date >= self.window_start())
        if dropping_point_id is not None:
            ranked = ranked.filter(DailyPrice.dropping_point_id == dropping_point_id)
        if category is not None:
            ranked = ranked.filter(DailyPrice.category == category)
        ranked = ranked.subquery()

        rank_order = case(
            *[(DailyPrice.category == name, rank) for name, rank in CATEGORY_RANK.items()],
            else_=len(CATEGORY_RANK) + 1,
        )
        return (
            self.db.query(DailyPrice, DroppingPoint.location_name, User.name)
            .join(ranked, ranked.c.price_id == DailyPrice.id)
            .outerjoin(DroppingPoint, DroppingPoint.id == DailyPrice.dropping_point_id)
            .outerjoin(User, User.id == DailyPrice.created_by)
            .filter(ranked.c.position == 1)
            .order_by(DroppingPoint.location_name.asc(), DailyPrice.dropping_point_id.asc(), rank_order.asc())
            .all()
        )

    def resolve_current_prices(self, dropping_point_id: Optional[int] = None) -> list[dict[str, Any]]:
        """Latest in-window price per point and category.

        Categories without a recent row are left out; callers show them as
        "price not set".
        """
        if dropping_point_id is not None:
            self._ensure_point(dropping_point_id)
        rows = self._current_rows(dropping_point_id=dropping_point_id)
        return [price_row_payload(price, location_name, created_by_name) for price, location_name, created_by_name in rows]

    def current_price(self, dropping_point_id: int, category: str) -> dict[str, Any]:
        clean_category = normalize_category(category)
        self._ensure_point(dropping_point_id)
        rows = self._current_rows(dropping_point_id=dropping_point_id, category=clean_category)
        if not rows:
            raise StalePriceError(
                f"No current {clean_category} price for dropping point {dropping_point_id} "
                f"in the last {self.staleness_days} days."
            )
        price, location_name, created_by_name = rows[0]
        return price_row_payload(price, location_name, created_by_name)

    def _history_query(
        self,
        dropping_point_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        days: Optional[int] = None,
        exclude_today: bool = False,
    ):
        if start_date and end_date and start_date > end_date:
            raise ValidationError("The start date must not be after the end date.")
        if days is not None and days <= 0:
            raise ValidationError("The number of days must be greater than zero.")

        query = (
            self.db.query(DailyPrice, DroppingPoint.location_name, User.name)
            .outerjoin(DroppingPoint, DroppingPoint.id == DailyPrice.dropping_point_id)
            .outerjoin(User, User.id == DailyPrice.created_by)
        )
        if dropping_point_id is not None:
            query = query.filter(DailyPrice.dropping_point_id == dropping_point_id)
        if start_date is not None:
            query = query.filter(DailyPrice.effective_date >= start_date)
        if end_date is not None:
            query = query.filter(DailyPrice.effective_date <= end_date)
        if days is not None:
            query = query.filter(DailyPrice.effective_date >= self.today() - timedelta(days=days))
        if exclude_today:
            query = query.filter(DailyPrice.effective_date < self.today())
        return query.order_by(
            DailyPrice.effective_date.desc(),
            DailyPrice.created_at.desc(),
            DailyPrice.id.desc(),
        )

    def list_history(
        self,
        dropping_point_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        days: Optional[int] = None,
        exclude_today: bool = False,
    ) -> list[dict[str, Any]]:
        rows = self._history_query(dropping_point_id, start_date, end_date, days, exclude_today).all()
        return [price_row_payload(price, location_name, created_by_name) for price, location_name, created_by_name in rows]

    def history_by_date(self, **filters: Any) -> list[dict[str, Any]]:
        grouped: dict[date, list[dict[str, Any]]] = defaultdict(list)
        for row in self.list_history(**filters):
            grouped[row["effective_date"]].append(row)
        return [
            {"date": day, "prices": sorted(rows, key=lambda row: (row["dropping_point_id"], category_rank(row["category"])))}
            for day, rows in sorted(grouped.items(), key=lambda item: item[0], reverse=True)
        ]

    def delete_price(self, price_id: int) -> None:
        price = self.db.query(DailyPrice).filter(DailyPrice.id == price_id).first()
        if not price:
            raise NotFoundError(f"Price {price_id} not found.")
        point_id, category = price.dropping_point_id, price.category
        self.db.delete(price)
        self.db.commit()
        logger.info("Price %s deleted (point=%s category=%s)", price_id, point_id, category)
