"""Brands, colors and categories: plain lookup tables."""
from sqlalchemy.orm import Session

from exceptions import NotFound, Conflict
from database import transaction
from models.brands import Brand
from models.colors import Color
from models.categories import Category

CATALOG_MODELS = {
    "brands": Brand,
    "colors": Color,
    "categories": Category,
}


def get_entries(db: Session, model, skip: int = 0, limit: int = 100):
    return db.query(model).order_by(model.name).offset(skip).limit(limit).all()


def get_entry(db: Session, model, entry_id: int):
    entry = db.query(model).filter(model.id == entry_id).first()
    if entry is None:
        raise NotFound(f"{model.__name__} with ID {entry_id} not found")
    return entry


def create_entry(db: Session, model, data, user_id: str = None):
    if db.query(model).filter(model.name == data.name).first():
        raise Conflict(f"{model.__name__} '{data.name}' already exists")
    entry = model(**data.model_dump(), created_by=user_id)
    with transaction(db):
        db.add(entry)
    db.refresh(entry)
    return entry


def delete_entry(db: Session, model, entry_id: int):
    entry = get_entry(db, model, entry_id)
    with transaction(db):
        db.delete(entry)
    return True
