import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from models.parts import PartStatus
from schemas.parts import Part, PartCreate, PartUpdate
from schemas.audit_log import AuditLog
from schemas.common import ApiResponse, ok
from crud import parts as crud_parts
from crud.audit_log import get_audit_logs
from utils.auth_utils import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/parts", tags=["Parts"], dependencies=[Depends(get_current_user)])


@router.get("/", response_model=ApiResponse[List[Part]])
def read_parts(
    skip: int = 0,
    limit: int = 100,
    category_id: Optional[int] = None,
    brand_id: Optional[int] = None,
    color_id: Optional[int] = None,
    status: Optional[PartStatus] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Retrieve parts, optionally filtered."""
    parts = crud_parts.get_parts(
        db,
        skip=skip,
        limit=limit,
        category_id=category_id,
        brand_id=brand_id,
        color_id=color_id,
        status=status,
        search=search,
    )
    return ok(parts, with_count=True)


@router.get("/low-stock", response_model=ApiResponse[List[Part]])
def read_low_stock_parts(db: Session = Depends(get_db)):
    return ok(crud_parts.get_low_stock_parts(db), with_count=True)


@router.get("/{part_id}", response_model=ApiResponse[Part])
def read_part(part_id: int, db: Session = Depends(get_db)):
    return ok(crud_parts.get_part(db, part_id))


@router.get("/{part_id}/audit", response_model=ApiResponse[List[AuditLog]])
def read_part_audit(part_id: int, db: Session = Depends(get_db)):
    """Change history of a part, including after it was deleted."""
    return ok(get_audit_logs(db, "parts", part_id), with_count=True)


@router.post("/", response_model=ApiResponse[Part], status_code=status.HTTP_201_CREATED)
def create_part(
    part: PartCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Register a part. An opening quantity is booked as an initial stock movement."""
    return ok(crud_parts.create_part(db, part, user), message="Part created successfully")


@router.patch("/{part_id}", response_model=ApiResponse[Part])
def update_part(
    part_id: int,
    part: PartUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return ok(crud_parts.update_part(db, part_id, part, user), message="Part updated successfully")


@router.delete("/{part_id}", response_model=ApiResponse[None])
def delete_part(
    part_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Soft delete a part."""
    crud_parts.delete_part(db, part_id, user)
    return ok(message="Part deleted successfully")
