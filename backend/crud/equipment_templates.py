import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from exceptions import NotFound, Conflict, ValidationError
from database import transaction
from models.equipment import Equipment
from models.equipment_templates import EquipmentTemplate
from models.equipment_template_parts import EquipmentTemplatePart
from models.parts import Part
from schemas.audit_log import AuditLogCreate
from schemas.equipment_templates import (
    EquipmentTemplateCreate,
    EquipmentTemplateUpdate,
    TemplateFromEquipment,
    TemplatePartLine,
)
from crud.audit_log import create_audit_log
from utils import sqlalchemy_to_dict
from utils.auth_utils import get_user_identifier

logger = logging.getLogger(__name__)


def _template_query(db: Session):
    return db.query(EquipmentTemplate).options(
        selectinload(EquipmentTemplate.parts).selectinload(EquipmentTemplatePart.part)
    )


def get_template(db: Session, template_id: int) -> EquipmentTemplate:
    template = _template_query(db).filter(EquipmentTemplate.id == template_id).first()
    if template is None:
        raise NotFound(f"Equipment template with ID {template_id} not found")
    return template


def get_templates(db: Session, skip: int = 0, limit: int = 100):
    return _template_query(db).order_by(EquipmentTemplate.name).offset(skip).limit(limit).all()


def bill_of_materials(template: EquipmentTemplate) -> Dict[int, int]:
    """Template lines as ``{part_id: quantity}``."""
    return {line.part_id: line.quantity for line in template.parts}


def _normalize_lines(db: Session, lines: List[TemplatePartLine]) -> Dict[int, int]:
    # Repeated part ids are folded into one line
    merged: Dict[int, int] = {}
    for line in lines:
        if db.query(Part).filter(Part.id == line.part_id).first() is None:
            raise NotFound(f"Part with ID {line.part_id} not found")
        merged[line.part_id] = merged.get(line.part_id, 0) + line.quantity
    return merged


def check_template_name(db: Session, name: str, exclude_id: Optional[int] = None):
    query = db.query(EquipmentTemplate).filter(EquipmentTemplate.name == name)
    if exclude_id is not None:
        query = query.filter(EquipmentTemplate.id != exclude_id)
    if query.first():
        raise Conflict(f"Equipment template '{name}' already exists")


def save_as_template(
    db: Session,
    name: str,
    parts: Dict[int, int],
    user: Optional[dict],
    description: Optional[str] = None,
    brand_id: Optional[int] = None,
    category_id: Optional[int] = None,
    article_id: Optional[str] = None,
) -> EquipmentTemplate:
    """
    Stage a new template on the caller's transaction. Touches no stock.

    Used standalone by ``create_template`` and from equipment creation with
    ``save_as_template`` set, where it must commit or fail together with the
    equipment row.
    """
    if not name or not name.strip():
        raise ValidationError("Template name is required")
    check_template_name(db, name)
    user_identifier = get_user_identifier(user)
    template = EquipmentTemplate(
        name=name,
        description=description,
        brand_id=brand_id,
        category_id=category_id,
        article_id=article_id,
        user_id=user.get("id") if user else None,
        created_by=user_identifier,
        updated_by=user_identifier,
    )
    template.parts = [EquipmentTemplatePart(part_id=part_id, quantity=quantity) for part_id, quantity in parts.items()]
    db.add(template)
    db.flush()
    create_audit_log(db, AuditLogCreate(
        table_name='equipment_templates',
        record_id=template.id,
        changed_by=user_identifier or "system",
        action='CREATE',
        old_values={},
        new_values={**sqlalchemy_to_dict(template), "parts": {str(k): v for k, v in parts.items()}},
    ))
    return template


def create_template(db: Session, template: EquipmentTemplateCreate, user: dict) -> EquipmentTemplate:
    parts = _normalize_lines(db, template.parts)
    with transaction(db):
        db_template = save_as_template(
            db,
            template.name,
            parts,
            user,
            description=template.description,
            brand_id=template.brand_id,
            category_id=template.category_id,
            article_id=template.article_id,
        )
    logger.info(f"Equipment template '{db_template.name}' (ID: {db_template.id}) created by user {get_user_identifier(user)}")
    return get_template(db, db_template.id)


def update_template(db: Session, template_id: int, template: EquipmentTemplateUpdate, user: dict) -> EquipmentTemplate:
    db_template = get_template(db, template_id)
    update_data = template.model_dump(exclude_unset=True)
    new_lines = update_data.pop("parts", None)
    if update_data.get("name"):
        check_template_name(db, update_data["name"], exclude_id=template_id)
    parts = _normalize_lines(db, template.parts) if new_lines is not None else None

    old_values = {**sqlalchemy_to_dict(db_template), "parts": {str(k): v for k, v in bill_of_materials(db_template).items()}}
    with transaction(db):
        for key, value in update_data.items():
            setattr(db_template, key, value)
        if parts is not None:
            db_template.parts = [EquipmentTemplatePart(part_id=part_id, quantity=quantity) for part_id, quantity in parts.items()]
        db_template.updated_by = get_user_identifier(user)
        db.flush()
        create_audit_log(db, AuditLogCreate(
            table_name='equipment_templates',
            record_id=template_id,
            changed_by=get_user_identifier(user) or "system",
            action='UPDATE',
            old_values=old_values,
            new_values={**sqlalchemy_to_dict(db_template), "parts": {str(k): v for k, v in bill_of_materials(db_template).items()}},
        ))
    logger.info(f"Equipment template (ID: {template_id}) updated by user {get_user_identifier(user)}")
    db.expire_all()
    return get_template(db, template_id)


def delete_template(db: Session, template_id: int, user: dict) -> bool:
    """Delete a template. Equipment built from it keeps its ``created_from_template`` name."""
    db_template = get_template(db, template_id)
    old_values = sqlalchemy_to_dict(db_template)
    with transaction(db):
        db.query(Equipment).filter(Equipment.template_id == template_id).execution_options(
            include_deleted=True
        ).update({Equipment.template_id: None}, synchronize_session=False)
        db.delete(db_template)
        create_audit_log(db, AuditLogCreate(
            table_name='equipment_templates',
            record_id=template_id,
            changed_by=get_user_identifier(user) or "system",
            action='DELETE',
            old_values=old_values,
            new_values={},
        ))
    logger.info(f"Equipment template (ID: {template_id}) deleted by user {get_user_identifier(user)}")
    return True


def create_from_equipment(db: Session, payload: TemplateFromEquipment, user: dict) -> EquipmentTemplate:
    """Save an existing piece of equipment's parts list as a new template."""
    equipment = db.query(Equipment).filter(Equipment.id == payload.equipment_id).first()
    if equipment is None:
        raise NotFound(f"Equipment with ID {payload.equipment_id} not found")
    if not equipment.parts:
        raise ValidationError("Equipment has no parts to build a template from")

    parts: Dict[int, int] = {}
    for line in equipment.parts:
        parts[line.part_id] = parts.get(line.part_id, 0) + line.quantity_needed

    with transaction(db):
        db_template = save_as_template(
            db,
            payload.name or f"{equipment.model} template",
            parts,
            user,
            description=payload.description or f"Created from equipment {equipment.model}",
            brand_id=equipment.brand_id,
            category_id=equipment.category_id,
            article_id=payload.article_id or equipment.article_id,
        )
    logger.info(
        f"Equipment template '{db_template.name}' (ID: {db_template.id}) created from equipment "
        f"{equipment.id} by user {get_user_identifier(user)}"
    )
    return get_template(db, db_template.id)
