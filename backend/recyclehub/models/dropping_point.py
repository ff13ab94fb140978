from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func

from recyclehub.database.base import Base


class DroppingPoint(Base):
    __tablename__ = "dropping_points"

    id = Column(Integer, primary_key=True, index=True)
    location_name = Column(String(180), nullable=False, index=True)
    address = Column(String(255), nullable=False, default="")
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
