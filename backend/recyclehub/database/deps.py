from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from recyclehub.database.session import SessionLocal
from recyclehub.services.order_lifecycle import OrderLifecycle
from recyclehub.services.price_engine import PriceEngine


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_price_engine(db: Session = Depends(get_db)) -> PriceEngine:
    return PriceEngine(db)


def get_order_lifecycle(db: Session = Depends(get_db)) -> OrderLifecycle:
    return OrderLifecycle(db)
