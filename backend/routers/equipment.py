import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from models.equipment import EquipmentStatus
from schemas.equipment import (
    Equipment,
    EquipmentCreate,
    EquipmentCreated,
    EquipmentPartLine,
    EquipmentUpdate,
    ProduceRequest,
    ProductionReport,
)
from schemas.audit_log import AuditLog
from schemas.common import ApiResponse, ok
from crud import equipment as crud_equipment
from crud.audit_log import get_audit_logs
from utils.auth_utils import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/equipment", tags=["Equipment"], dependencies=[Depends(get_current_user)])


@router.get("/", response_model=ApiResponse[List[Equipment]])
def read_equipment_list(
    status: Optional[EquipmentStatus] = None,
    brand_id: Optional[int] = None,
    category_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    items = crud_equipment.get_equipment_list(
        db, skip=skip, limit=limit, status=status, brand_id=brand_id, category_id=category_id
    )
    return ok(items, with_count=True)


@router.get("/{equipment_id}", response_model=ApiResponse[Equipment])
def read_equipment(equipment_id: int, db: Session = Depends(get_db)):
    return ok(crud_equipment.get_equipment(db, equipment_id))


@router.get("/{equipment_id}/audit", response_model=ApiResponse[List[AuditLog]])
def read_equipment_audit(equipment_id: int, db: Session = Depends(get_db)):
    return ok(get_audit_logs(db, "equipment", equipment_id), with_count=True)


@router.post("/", response_model=ApiResponse[EquipmentCreated], status_code=status.HTTP_201_CREATED)
def create_equipment(
    equipment: EquipmentCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """
    Assemble equipment from a parts list and/or a template.

    With ``reduce_stock`` (the default) every component is checked first and the
    request fails listing all short parts if any is missing.
    """
    result = crud_equipment.create_equipment(db, equipment, user)
    message = "Equipment created and stock reduced" if result["stock_reduced"] else "Equipment created"
    return ok(result, message=message)


@router.patch("/{equipment_id}", response_model=ApiResponse[Equipment])
def update_equipment(
    equipment_id: int,
    equipment: EquipmentUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return ok(crud_equipment.update_equipment(db, equipment_id, equipment, user), message="Equipment updated")


@router.delete("/{equipment_id}", response_model=ApiResponse[None])
def delete_equipment(
    equipment_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    crud_equipment.delete_equipment(db, equipment_id, user)
    return ok(message="Equipment deleted")


@router.post("/{equipment_id}/parts", response_model=ApiResponse[Equipment], status_code=status.HTTP_201_CREATED)
def add_equipment_part(
    equipment_id: int,
    line: EquipmentPartLine,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return ok(crud_equipment.add_part(db, equipment_id, line, user), message="Part added to equipment")


@router.delete("/{equipment_id}/parts/{equipment_part_id}", response_model=ApiResponse[Equipment])
def remove_equipment_part(
    equipment_id: int,
    equipment_part_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return ok(crud_equipment.remove_part(db, equipment_id, equipment_part_id, user), message="Part removed from equipment")


@router.post("/{equipment_id}/produce", response_model=ApiResponse[ProductionReport])
def produce_equipment(
    equipment_id: int,
    request: ProduceRequest = ProduceRequest(),
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Consume this equipment's declared parts for ``units`` more units."""
    report = crud_equipment.produce(db, equipment_id, user, units=request.units)
    return ok(report, message=f"Produced {request.units} unit(s)")
