from sqlalchemy import Column, DateTime, Integer, String, Text, func

from recyclehub.database.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone_number = Column(String(40), nullable=True)
    password = Column(String(255), nullable=False)
    roles = Column(Text, nullable=False, default='["vendor"]')
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
