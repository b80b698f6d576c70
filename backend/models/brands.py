from sqlalchemy import Column, Integer, String, Text
from database import Base
from models.audit_mixin import TimestampMixin


class Brand(Base, TimestampMixin):
    __tablename__ = "brands"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)
