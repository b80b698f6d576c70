"""
Equipment assembly: building equipment from a bill-of-materials and consuming
its components from stock.

Stock-reducing operations check every component first and raise a single
``InsufficientStock`` naming all short parts before anything is written.
"""
import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session, selectinload

from exceptions import NotFound, Conflict, ValidationError, InsufficientStock
from database import transaction
from models.brands import Brand
from models.categories import Category
from models.equipment import Equipment, EquipmentStatus
from models.equipment_parts import EquipmentPart
from models.parts import Part
from models.stock_movements import MovementType, ReferenceType
from schemas.audit_log import AuditLogCreate
from schemas.equipment import EquipmentCreate, EquipmentUpdate, EquipmentPartLine
from crud.audit_log import create_audit_log
from crud.equipment_templates import get_template, bill_of_materials, save_as_template, check_template_name
from crud.stock_movements import get_part_for_update, record_movement
from utils import now, sqlalchemy_to_dict
from utils.auth_utils import get_user_identifier

logger = logging.getLogger(__name__)


def _equipment_query(db: Session):
    return db.query(Equipment).options(
        selectinload(Equipment.parts).selectinload(EquipmentPart.part)
    )


def get_equipment(db: Session, equipment_id: int) -> Equipment:
    equipment = _equipment_query(db).filter(Equipment.id == equipment_id).first()
    if equipment is None:
        raise NotFound(f"Equipment with ID {equipment_id} not found")
    return equipment


def get_equipment_list(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    status: Optional[EquipmentStatus] = None,
    brand_id: Optional[int] = None,
    category_id: Optional[int] = None,
):
    query = _equipment_query(db)
    if status:
        query = query.filter(Equipment.status == status)
    if brand_id:
        query = query.filter(Equipment.brand_id == brand_id)
    if category_id:
        query = query.filter(Equipment.category_id == category_id)
    return query.order_by(Equipment.created_at.desc(), Equipment.id.desc()).offset(skip).limit(limit).all()


def _check_serial(db: Session, serial_number: Optional[str], exclude_id: Optional[int] = None):
    if not serial_number:
        return
    query = db.query(Equipment).filter(Equipment.serial_number == serial_number).execution_options(include_deleted=True)
    if exclude_id is not None:
        query = query.filter(Equipment.id != exclude_id)
    if query.first():
        raise Conflict(f"Serial number '{serial_number}' already exists")


def _check_references(db: Session, brand_id: Optional[int], category_id: Optional[int]):
    for ref_id, model in ((brand_id, Brand), (category_id, Category)):
        if ref_id is not None and db.query(model).filter(model.id == ref_id).first() is None:
            raise NotFound(f"{model.__name__} with ID {ref_id} not found")


def check_availability(db: Session, needs: Dict[int, int]):
    """
    Lock every part in ``needs`` and verify on-hand covers the requested amount.

    Raises ``InsufficientStock`` listing every short part.
    """
    shortfalls = []
    for part_id, needed in needs.items():
        part = get_part_for_update(db, part_id)
        available = part.quantity or 0
        if available < needed:
            shortfalls.append({
                "part_id": part.id,
                "name": part.display_name,
                "needed": needed,
                "available": available,
                "shortfall": needed - available,
            })
    if shortfalls:
        logger.warning(f"Assembly rejected, {len(shortfalls)} part(s) short: {shortfalls}")
        raise InsufficientStock(
            f"Insufficient stock for {len(shortfalls)} part(s)",
            shortfalls=shortfalls,
        )


def _consume(db: Session, equipment: Equipment, needs: Dict[int, int], user: dict, note: str):
    for part_id, quantity in needs.items():
        record_movement(
            db,
            part_id=part_id,
            movement_type=MovementType.OUT,
            quantity=quantity,
            reference_type=ReferenceType.PRODUCTION,
            reference_id=equipment.id,
            user=user,
            notes=note,
        )


def create_equipment(db: Session, equipment: EquipmentCreate, user: dict) -> dict:
    """
    Build a piece of equipment, optionally from a template.

    Template lines are the defaults; request lines with the same part override
    their quantity. With ``reduce_stock`` each component is taken out of stock
    as a production movement. Everything happens in one transaction.
    """
    template = get_template(db, equipment.template_id) if equipment.template_id else None

    lines: Dict[int, EquipmentPartLine] = {}
    if template is not None:
        for part_id, quantity in bill_of_materials(template).items():
            lines[part_id] = EquipmentPartLine(part_id=part_id, quantity_needed=quantity)
    requested: Dict[int, EquipmentPartLine] = {}
    for line in equipment.parts:
        # Repeated part ids in one request add up
        if line.part_id in requested:
            earlier = requested[line.part_id]
            line = EquipmentPartLine(
                part_id=line.part_id,
                quantity_needed=earlier.quantity_needed + line.quantity_needed,
                notes=earlier.notes or line.notes,
            )
        requested[line.part_id] = line
    lines.update(requested)

    model = (equipment.model or (template.name if template else "") or "").strip()
    if not model:
        raise ValidationError("Equipment model is required")

    brand_id = equipment.brand_id if equipment.brand_id is not None else (template.brand_id if template else None)
    category_id = equipment.category_id if equipment.category_id is not None else (template.category_id if template else None)
    _check_serial(db, equipment.serial_number)
    _check_references(db, brand_id, category_id)
    for part_id in lines:
        if db.query(Part).filter(Part.id == part_id).first() is None:
            raise NotFound(f"Part with ID {part_id} not found")

    template_name = None
    if equipment.save_as_template:
        if not lines:
            raise ValidationError("Cannot save a template without parts")
        template_name = equipment.template_name or f"{model} template"
        check_template_name(db, template_name)

    needs = {part_id: line.quantity_needed for part_id, line in lines.items()}
    user_identifier = get_user_identifier(user)
    new_template = None
    with transaction(db):
        if equipment.reduce_stock and needs:
            check_availability(db, needs)

        db_equipment = Equipment(
            model=model,
            serial_number=equipment.serial_number or None,
            brand_id=brand_id,
            category_id=category_id,
            template_id=template.id if template else None,
            created_from_template=template.name if template else None,
            year_manufactured=equipment.year_manufactured,
            production_date=equipment.production_date,
            article_id=equipment.article_id or (template.article_id if template else None),
            status=equipment.status,
            created_by=user_identifier,
            updated_by=user_identifier,
        )
        db_equipment.parts = [
            EquipmentPart(part_id=line.part_id, quantity_needed=line.quantity_needed, notes=line.notes)
            for line in lines.values()
        ]
        db.add(db_equipment)
        db.flush()

        if equipment.reduce_stock and needs:
            _consume(db, db_equipment, needs, user, f"Used for equipment: {model}")

        if equipment.save_as_template:
            new_template = save_as_template(
                db,
                template_name,
                needs,
                user,
                description=f"Created from equipment {model}",
                brand_id=brand_id,
                category_id=category_id,
                article_id=db_equipment.article_id,
            )

        create_audit_log(db, AuditLogCreate(
            table_name='equipment',
            record_id=db_equipment.id,
            changed_by=user_identifier or "system",
            action='CREATE',
            old_values={},
            new_values=sqlalchemy_to_dict(db_equipment),
        ))

    logger.info(
        f"Equipment '{model}' (ID: {db_equipment.id}) created with {len(needs)} part line(s), "
        f"stock reduced: {bool(equipment.reduce_stock and needs)}, by user {user_identifier}"
    )
    return {
        "equipment": get_equipment(db, db_equipment.id),
        "stock_reduced": bool(equipment.reduce_stock and needs),
        "created_from_template": template.name if template else None,
        "new_template_id": new_template.id if new_template else None,
    }


def update_equipment(db: Session, equipment_id: int, equipment: EquipmentUpdate, user: dict) -> Equipment:
    db_equipment = get_equipment(db, equipment_id)
    update_data = equipment.model_dump(exclude_unset=True)
    if "serial_number" in update_data:
        _check_serial(db, update_data["serial_number"], exclude_id=equipment_id)
    _check_references(db, update_data.get("brand_id"), update_data.get("category_id"))

    old_values = sqlalchemy_to_dict(db_equipment)
    with transaction(db):
        for key, value in update_data.items():
            setattr(db_equipment, key, value)
        db_equipment.updated_by = get_user_identifier(user)
        db.flush()
        create_audit_log(db, AuditLogCreate(
            table_name='equipment',
            record_id=equipment_id,
            changed_by=get_user_identifier(user) or "system",
            action='UPDATE',
            old_values=old_values,
            new_values=sqlalchemy_to_dict(db_equipment),
        ))
    logger.info(f"Equipment (ID: {equipment_id}) updated by user {get_user_identifier(user)}")
    return get_equipment(db, equipment_id)


def delete_equipment(db: Session, equipment_id: int, user: dict) -> bool:
    """Soft delete. Consumed stock is not returned."""
    db_equipment = get_equipment(db, equipment_id)
    with transaction(db):
        db_equipment.deleted_at = now()
        db_equipment.deleted_by = get_user_identifier(user)
        db.flush()
        create_audit_log(db, AuditLogCreate(
            table_name='equipment',
            record_id=equipment_id,
            changed_by=get_user_identifier(user) or "system",
            action='DELETE',
            old_values={},
            new_values=sqlalchemy_to_dict(db_equipment),
        ))
    logger.info(f"Equipment (ID: {equipment_id}) soft deleted by user {get_user_identifier(user)}")
    return True


def add_part(db: Session, equipment_id: int, line: EquipmentPartLine, user: dict) -> Equipment:
    """Declare another component. Stock is only taken when the equipment is produced."""
    db_equipment = get_equipment(db, equipment_id)
    if db.query(Part).filter(Part.id == line.part_id).first() is None:
        raise NotFound(f"Part with ID {line.part_id} not found")
    if any(existing.part_id == line.part_id for existing in db_equipment.parts):
        raise Conflict("Part already added to this equipment")
    with transaction(db):
        db.add(EquipmentPart(
            equipment_id=equipment_id,
            part_id=line.part_id,
            quantity_needed=line.quantity_needed,
            notes=line.notes,
        ))
    logger.info(f"Part {line.part_id} x{line.quantity_needed} added to equipment {equipment_id} by user {get_user_identifier(user)}")
    db.expire_all()
    return get_equipment(db, equipment_id)


def remove_part(db: Session, equipment_id: int, equipment_part_id: int, user: dict) -> Equipment:
    get_equipment(db, equipment_id)
    line = db.query(EquipmentPart).filter(
        EquipmentPart.id == equipment_part_id, EquipmentPart.equipment_id == equipment_id
    ).first()
    if line is None:
        raise NotFound("Part not found in this equipment")
    with transaction(db):
        db.delete(line)
    logger.info(f"Part line {equipment_part_id} removed from equipment {equipment_id} by user {get_user_identifier(user)}")
    db.expire_all()
    return get_equipment(db, equipment_id)


def produce(db: Session, equipment_id: int, user: dict, units: int = 1) -> dict:
    """Consume the declared components for ``units`` more units of this equipment."""
    if units is None or units <= 0:
        raise ValidationError("Units to produce must be a positive integer")
    db_equipment = get_equipment(db, equipment_id)
    if not db_equipment.parts:
        raise ValidationError("Equipment has no parts to produce from")

    needs: Dict[int, int] = {}
    for line in db_equipment.parts:
        needs[line.part_id] = needs.get(line.part_id, 0) + line.quantity_needed * units

    parts_used = []
    with transaction(db):
        check_availability(db, needs)
        for part_id, quantity in needs.items():
            movement = record_movement(
                db,
                part_id=part_id,
                movement_type=MovementType.OUT,
                quantity=quantity,
                reference_type=ReferenceType.PRODUCTION,
                reference_id=db_equipment.id,
                user=user,
                notes=f"Produced {units} x {db_equipment.model}",
            )
            parts_used.append({
                "part_id": part_id,
                "part_name": movement.part.display_name,
                "quantity_used": quantity,
                "remaining_stock": movement.quantity_after,
            })

    logger.info(f"Equipment {equipment_id} produced {units} unit(s) by user {get_user_identifier(user)}")
    return {"equipment_id": equipment_id, "units": units, "parts_used": parts_used}
