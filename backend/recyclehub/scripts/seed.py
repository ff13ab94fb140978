"""Seed demo dropping points with today's prices.

Run with ``python -m recyclehub.scripts.seed`` once an admin user exists.
"""
import logging
import sys

from recyclehub.database.base import Base
from recyclehub.database.session import SessionLocal, engine
from recyclehub.models.dropping_point import DroppingPoint
from recyclehub.models.user import User
from recyclehub.services.price_engine import PriceEngine

logger = logging.getLogger("uvicorn.error")

DROPPING_POINTS = [
    {
        "name": "City Center Collection",
        "address": "123 Main Street, Downtown",
        "prices": {"heavy": 50, "mixer": 40, "light": 30, "cast": 60},
    },
    {
        "name": "Green Valley Station",
        "address": "456 Green Valley Road",
        "prices": {"heavy": 55, "mixer": 45, "light": 35, "cast": 65},
    },
    {
        "name": "Eco Park Depot",
        "address": "Eco Park, Sector 15",
        "prices": {"heavy": 48, "mixer": 38, "light": 28, "cast": 58},
    },
    {
        "name": "Industrial Zone Center",
        "address": "Industrial Area, Phase 2",
        "prices": {"heavy": 45, "mixer": 35, "light": 25, "cast": 55},
    },
    {
        "name": "Residential Hub",
        "address": "789 Residential Complex",
        "prices": {"heavy": 52, "mixer": 42, "light": 32, "cast": 62},
    },
    {
        "name": "Market Area Station",
        "address": "Central Market, 1st Floor",
        "prices": {"heavy": 53, "mixer": 43, "light": 33, "cast": 63},
    },
]


def seed(db) -> int:
    creator = db.query(User).order_by(User.id.asc()).first()
    if not creator:
        raise RuntimeError("No users found. Create an admin user first.")

    prices = PriceEngine(db)
    created = 0
    for item in DROPPING_POINTS:
        point = db.query(DroppingPoint).filter(DroppingPoint.location_name == item["name"]).first()
        if point:
            logger.info("Dropping point %s exists (id=%s), keeping it", item["name"], point.id)
        else:
            point = DroppingPoint(location_name=item["name"], address=item["address"], created_by=creator.id)
            db.add(point)
            db.commit()
            db.refresh(point)
            created += 1
            logger.info("Dropping point %s created (id=%s)", item["name"], point.id)

        for category, amount in item["prices"].items():
            prices.set_price(point.id, category, amount, creator.id)
    return created


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        created = seed(db)
    except Exception:
        logger.exception("Seeding failed")
        return 1
    finally:
        db.close()
    logger.info("Seeding completed (%s new dropping points).", created)
    return 0


if __name__ == "__main__":
    sys.exit(main())
