from datetime import date, timedelta
from decimal import Decimal

import pytest

from recyclehub.core.errors import NotFoundError, StalePriceError, ValidationError
from recyclehub.models.daily_price import DailyPrice
from recyclehub.models.dropping_point import DroppingPoint
from recyclehub.services.price_engine import PriceEngine

TODAY = date(2026, 10, 19)


@pytest.fixture
def prices(db_session):
    return PriceEngine(db_session, today=lambda: TODAY)


def add_price_row(db, point_id: int, category: str, amount: str, effective_date: date, created_by=None) -> DailyPrice:
    row = DailyPrice(
        dropping_point_id=point_id,
        category=category,
        price=Decimal(amount),
        effective_date=effective_date,
        created_by=created_by,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def test_same_day_price_overwrites_instead_of_duplicating(db_session, prices, depot, admin, manager):
    prices.set_price(depot.id, "heavy", 50, admin.id)
    second = prices.set_price(depot.id, "heavy", 55, manager.id)

    rows = db_session.query(DailyPrice).filter(DailyPrice.dropping_point_id == depot.id).all()
    assert len(rows) == 1
    assert rows[0].id == second.id
    assert rows[0].price == Decimal("55.00")
    assert rows[0].created_by == manager.id
    assert rows[0].effective_date == TODAY

    current = prices.resolve_current_prices(depot.id)
    assert [(row["category"], row["price"]) for row in current] == [("heavy", Decimal("55.00"))]
    assert current[0]["location_name"] == "Depot A"


def test_new_day_adds_a_row_and_keeps_history(db_session, depot, admin):
    yesterday_engine = PriceEngine(db_session, today=lambda: TODAY - timedelta(days=1))
    today_engine = PriceEngine(db_session, today=lambda: TODAY)

    yesterday_engine.set_price(depot.id, "light", 30, admin.id)
    today_engine.set_price(depot.id, "light", 32, admin.id)

    history = today_engine.list_history(dropping_point_id=depot.id)
    assert [(row["effective_date"], row["price"]) for row in history] == [
        (TODAY, Decimal("32.00")),
        (TODAY - timedelta(days=1), Decimal("30.00")),
    ]
    current = today_engine.resolve_current_prices(depot.id)
    assert len(current) == 1
    assert current[0]["price"] == Decimal("32.00")


@pytest.mark.parametrize("bad_price", [0, -5, "abc", "NaN"])
def test_set_price_rejects_non_positive_or_invalid_prices(prices, depot, admin, bad_price):
    with pytest.raises(ValidationError):
        prices.set_price(depot.id, "heavy", bad_price, admin.id)


def test_set_price_rejects_unknown_category(prices, depot, admin):
    with pytest.raises(ValidationError):
        prices.set_price(depot.id, "plastic", 10, admin.id)


def test_set_price_requires_existing_point(prices, admin):
    with pytest.raises(NotFoundError):
        prices.set_price(999, "heavy", 10, admin.id)


def test_current_prices_follow_fixed_category_order(prices, depot, admin):
    for category, amount in [("mixer", 40), ("cast", 60), ("light", 30), ("heavy", 50)]:
        prices.set_price(depot.id, category, amount, admin.id)

    current = prices.resolve_current_prices(depot.id)
    assert [row["category"] for row in current] == ["heavy", "light", "cast", "mixer"]


def test_rows_older_than_window_are_not_current(db_session, prices, depot):
    add_price_row(db_session, depot.id, "cast", "60", TODAY - timedelta(days=8))
    add_price_row(db_session, depot.id, "heavy", "50", TODAY - timedelta(days=7))
    add_price_row(db_session, depot.id, "heavy", "48", TODAY - timedelta(days=9))

    current = prices.resolve_current_prices(depot.id)
    assert [(row["category"], row["price"]) for row in current] == [("heavy", Decimal("50.00"))]
    window_start = TODAY - timedelta(days=7)
    assert all(row["effective_date"] >= window_start for row in current)

    with pytest.raises(StalePriceError):
        prices.current_price(depot.id, "cast")

    history = prices.list_history(dropping_point_id=depot.id)
    assert len(history) == 3


def test_current_price_picks_latest_effective_date(db_session, prices, depot):
    add_price_row(db_session, depot.id, "mixer", "38", TODAY - timedelta(days=3))
    add_price_row(db_session, depot.id, "mixer", "41", TODAY - timedelta(days=1))
    add_price_row(db_session, depot.id, "mixer", "39", TODAY - timedelta(days=5))

    assert prices.current_price(depot.id, "mixer")["price"] == Decimal("41.00")


def test_current_prices_across_points(db_session, prices, depot, admin):
    other = DroppingPoint(location_name="Bay Depot", address="Harbour", created_by=admin.id)
    db_session.add(other)
    db_session.commit()

    prices.set_price(depot.id, "heavy", 50, admin.id)
    prices.set_price(other.id, "cast", 70, admin.id)
    prices.set_price(other.id, "heavy", 52, admin.id)

    current = prices.resolve_current_prices()
    assert [(row["location_name"], row["category"]) for row in current] == [
        ("Bay Depot", "heavy"),
        ("Bay Depot", "cast"),
        ("Depot A", "heavy"),
    ]


def test_history_filters(db_session, prices, depot):
    for days_ago, amount in [(0, "50"), (2, "49"), (10, "45"), (40, "40")]:
        add_price_row(db_session, depot.id, "heavy", amount, TODAY - timedelta(days=days_ago))

    ranged = prices.list_history(
        dropping_point_id=depot.id,
        start_date=TODAY - timedelta(days=10),
        end_date=TODAY - timedelta(days=2),
    )
    assert [row["price"] for row in ranged] == [Decimal("49.00"), Decimal("45.00")]

    last_week = prices.list_history(dropping_point_id=depot.id, days=7)
    assert [row["price"] for row in last_week] == [Decimal("50.00"), Decimal("49.00")]

    previous = prices.list_history(dropping_point_id=depot.id, exclude_today=True)
    assert all(row["effective_date"] < TODAY for row in previous)
    assert len(previous) == 3

    with pytest.raises(ValidationError):
        prices.list_history(start_date=TODAY, end_date=TODAY - timedelta(days=1))


def test_history_by_date_groups_and_orders_categories(db_session, prices, depot):
    add_price_row(db_session, depot.id, "mixer", "40", TODAY)
    add_price_row(db_session, depot.id, "heavy", "50", TODAY)
    add_price_row(db_session, depot.id, "light", "30", TODAY - timedelta(days=1))

    grouped = prices.history_by_date(dropping_point_id=depot.id)
    assert [bucket["date"] for bucket in grouped] == [TODAY, TODAY - timedelta(days=1)]
    assert [row["category"] for row in grouped[0]["prices"]] == ["heavy", "mixer"]


def test_delete_price(db_session, prices, depot, admin):
    price = prices.set_price(depot.id, "heavy", 50, admin.id)
    prices.delete_price(price.id)

    assert db_session.query(DailyPrice).count() == 0
    with pytest.raises(NotFoundError):
        prices.delete_price(price.id)
