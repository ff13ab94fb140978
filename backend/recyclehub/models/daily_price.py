from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint, func

from recyclehub.database.base import Base

PRICE_CATEGORIES = ("heavy", "mixer", "light", "cast")
# Presentation order, not alphabetical.
CATEGORY_SORT_ORDER = ("heavy", "light", "cast", "mixer")


class DailyPrice(Base):
    __tablename__ = "daily_prices"
    __table_args__ = (
        UniqueConstraint("dropping_point_id", "category", "effective_date", name="uq_daily_prices_point_category_date"),
        Index("ix_daily_prices_effective_date", "effective_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    dropping_point_id = Column(Integer, ForeignKey("dropping_points.id"), nullable=False, index=True)
    category = Column(String(20), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    effective_date = Column(Date, nullable=False, server_default=func.current_date())
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
