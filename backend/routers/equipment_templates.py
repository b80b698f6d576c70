import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from schemas.equipment import EquipmentCreate, EquipmentCreated
from schemas.equipment_templates import (
    EquipmentTemplate,
    EquipmentTemplateCreate,
    EquipmentTemplateUpdate,
    TemplateFromEquipment,
)
from schemas.audit_log import AuditLog
from schemas.common import ApiResponse, ok
from crud import equipment_templates as crud_templates
from crud import equipment as crud_equipment
from crud.audit_log import get_audit_logs
from utils.auth_utils import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/equipment-templates", tags=["Equipment Templates"], dependencies=[Depends(get_current_user)])


@router.get("/", response_model=ApiResponse[List[EquipmentTemplate]])
def read_templates(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return ok(crud_templates.get_templates(db, skip=skip, limit=limit), with_count=True)


@router.get("/{template_id}", response_model=ApiResponse[EquipmentTemplate])
def read_template(template_id: int, db: Session = Depends(get_db)):
    """Template with its bill-of-materials and each part's current stock."""
    return ok(crud_templates.get_template(db, template_id))


@router.get("/{template_id}/audit", response_model=ApiResponse[List[AuditLog]])
def read_template_audit(template_id: int, db: Session = Depends(get_db)):
    return ok(get_audit_logs(db, "equipment_templates", template_id), with_count=True)


@router.post("/", response_model=ApiResponse[EquipmentTemplate], status_code=status.HTTP_201_CREATED)
def create_template(
    template: EquipmentTemplateCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return ok(crud_templates.create_template(db, template, user), message="Template created")


@router.post("/from-equipment", response_model=ApiResponse[EquipmentTemplate], status_code=status.HTTP_201_CREATED)
def create_template_from_equipment(
    payload: TemplateFromEquipment,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return ok(crud_templates.create_from_equipment(db, payload, user), message="Template created from equipment")


@router.put("/{template_id}", response_model=ApiResponse[EquipmentTemplate])
def update_template(
    template_id: int,
    template: EquipmentTemplateUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return ok(crud_templates.update_template(db, template_id, template, user), message="Template updated")


@router.delete("/{template_id}", response_model=ApiResponse[None])
def delete_template(
    template_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    crud_templates.delete_template(db, template_id, user)
    return ok(message="Template deleted")


@router.post("/{template_id}/create-equipment", response_model=ApiResponse[EquipmentCreated], status_code=status.HTTP_201_CREATED)
def create_equipment_from_template(
    template_id: int,
    equipment: EquipmentCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Build equipment from this template; request parts override template lines."""
    equipment = equipment.model_copy(update={"template_id": template_id})
    result = crud_equipment.create_equipment(db, equipment, user)
    return ok(result, message="Equipment created from template")
