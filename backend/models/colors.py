from sqlalchemy import Column, Integer, String
from database import Base
from models.audit_mixin import TimestampMixin


class Color(Base, TimestampMixin):
    __tablename__ = "colors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    hex_code = Column(String(7), nullable=True)  # e.g. "#1A2B3C"
