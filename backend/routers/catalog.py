import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from models.brands import Brand as BrandModel
from models.colors import Color as ColorModel
from models.categories import Category as CategoryModel
from schemas.catalog import Brand, BrandCreate, Color, ColorCreate, Category, CategoryCreate
from schemas.common import ApiResponse, ok
from crud import catalog as crud_catalog
from utils.auth_utils import get_current_user, get_user_identifier

logger = logging.getLogger(__name__)


def build_catalog_router(prefix: str, tag: str, model, create_schema, schema) -> APIRouter:
    """Plain list/get/create/delete endpoints over one lookup table."""
    router = APIRouter(prefix=prefix, tags=[tag])

    @router.get("/", response_model=ApiResponse[List[schema]])
    def read_entries(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
        return ok(crud_catalog.get_entries(db, model, skip=skip, limit=limit), with_count=True)

    @router.get("/{entry_id}", response_model=ApiResponse[schema])
    def read_entry(entry_id: int, db: Session = Depends(get_db)):
        return ok(crud_catalog.get_entry(db, model, entry_id))

    @router.post("/", response_model=ApiResponse[schema], status_code=status.HTTP_201_CREATED)
    def create_entry(
        entry: create_schema,
        db: Session = Depends(get_db),
        user: dict = Depends(get_current_user),
    ):
        created = crud_catalog.create_entry(db, model, entry, user_id=get_user_identifier(user))
        logger.info(f"{model.__name__} '{created.name}' created by user {get_user_identifier(user)}")
        return ok(created, message=f"{model.__name__} created")

    @router.delete("/{entry_id}", response_model=ApiResponse[None])
    def delete_entry(
        entry_id: int,
        db: Session = Depends(get_db),
        user: dict = Depends(get_current_user),
    ):
        crud_catalog.delete_entry(db, model, entry_id)
        logger.info(f"{model.__name__} (ID: {entry_id}) deleted by user {get_user_identifier(user)}")
        return ok(message=f"{model.__name__} deleted")

    return router


brands_router = build_catalog_router("/brands", "Brands", BrandModel, BrandCreate, Brand)
colors_router = build_catalog_router("/colors", "Colors", ColorModel, ColorCreate, Color)
categories_router = build_catalog_router("/categories", "Categories", CategoryModel, CategoryCreate, Category)
