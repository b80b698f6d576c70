import pytest

from exceptions import Conflict, InsufficientStock, NotFound, ValidationError
from models.equipment import Equipment
from models.equipment_parts import EquipmentPart
from models.equipment_templates import EquipmentTemplate
from models.stock_movements import StockMovement, ReferenceType
from schemas.equipment import EquipmentCreate, EquipmentPartLine, EquipmentUpdate
from schemas.equipment_templates import (
    EquipmentTemplateCreate,
    EquipmentTemplateUpdate,
    TemplateFromEquipment,
    TemplatePartLine,
)
from crud import equipment as crud_equipment
from crud import equipment_templates as crud_templates


def production_movements(db):
    return db.query(StockMovement).filter(StockMovement.reference_type == ReferenceType.PRODUCTION).all()


def test_assembly_short_on_stock_writes_nothing(db, admin, make_part):
    part = make_part(quantity=3)

    with pytest.raises(InsufficientStock) as exc:
        crud_equipment.create_equipment(
            db,
            EquipmentCreate(model="Lift 3000", parts=[EquipmentPartLine(part_id=part.id, quantity_needed=5)]),
            admin,
        )

    assert exc.value.shortfalls == [{
        "part_id": part.id, "name": part.name, "needed": 5, "available": 3, "shortfall": 2,
    }]
    assert db.query(Equipment).execution_options(include_deleted=True).count() == 0
    assert db.query(EquipmentPart).count() == 0
    assert production_movements(db) == []
    db.refresh(part)
    assert part.quantity == 3


def test_every_short_part_is_reported(db, admin, make_part):
    enough, short_a, short_b = make_part(quantity=10), make_part(quantity=1), make_part(quantity=0)
    lines = [
        EquipmentPartLine(part_id=enough.id, quantity_needed=2),
        EquipmentPartLine(part_id=short_a.id, quantity_needed=2),
        EquipmentPartLine(part_id=short_b.id, quantity_needed=4),
    ]

    with pytest.raises(InsufficientStock) as exc:
        crud_equipment.create_equipment(db, EquipmentCreate(model="Press", parts=lines), admin)

    assert sorted(s["part_id"] for s in exc.value.shortfalls) == sorted([short_a.id, short_b.id])
    db.refresh(enough)
    assert enough.quantity == 10


def test_assembly_reduces_stock(db, admin, make_part):
    frame, bolt = make_part(quantity=4), make_part(quantity=50)

    result = crud_equipment.create_equipment(
        db,
        EquipmentCreate(
            model="Cart",
            serial_number="SN-1",
            parts=[
                EquipmentPartLine(part_id=frame.id, quantity_needed=1),
                EquipmentPartLine(part_id=bolt.id, quantity_needed=12),
            ],
        ),
        admin,
    )

    assert result["stock_reduced"] is True
    equipment = result["equipment"]
    assert [(line.part_id, line.quantity_needed) for line in equipment.parts] == [(frame.id, 1), (bolt.id, 12)]
    db.refresh(frame)
    db.refresh(bolt)
    assert (frame.quantity, bolt.quantity) == (3, 38)
    assert {m.reference_id for m in production_movements(db)} == {equipment.id}


def test_assembly_without_stock_reduction(db, admin, make_part):
    part = make_part(quantity=0)

    result = crud_equipment.create_equipment(
        db,
        EquipmentCreate(model="Prototype", reduce_stock=False, parts=[EquipmentPartLine(part_id=part.id, quantity_needed=9)]),
        admin,
    )

    assert result["stock_reduced"] is False
    assert production_movements(db) == []


def test_model_is_required(db, admin):
    with pytest.raises(ValidationError):
        crud_equipment.create_equipment(db, EquipmentCreate(model="  "), admin)


def test_unknown_part_is_not_found(db, admin):
    with pytest.raises(NotFound):
        crud_equipment.create_equipment(
            db, EquipmentCreate(model="X", parts=[EquipmentPartLine(part_id=777, quantity_needed=1)]), admin
        )


def test_duplicate_serial_number_conflicts(db, admin):
    crud_equipment.create_equipment(db, EquipmentCreate(model="A", serial_number="SN-9"), admin)
    with pytest.raises(Conflict):
        crud_equipment.create_equipment(db, EquipmentCreate(model="B", serial_number="SN-9"), admin)

    other = crud_equipment.create_equipment(db, EquipmentCreate(model="C"), admin)["equipment"]
    with pytest.raises(Conflict):
        crud_equipment.update_equipment(db, other.id, EquipmentUpdate(serial_number="SN-9"), admin)


def test_template_lines_are_defaults_and_request_lines_override(db, admin, make_part):
    wheel, axle = make_part(quantity=20), make_part(quantity=20)
    template = crud_templates.create_template(
        db,
        EquipmentTemplateCreate(
            name="Trolley",
            parts=[TemplatePartLine(part_id=wheel.id, quantity=4), TemplatePartLine(part_id=axle.id, quantity=2)],
        ),
        admin,
    )

    result = crud_equipment.create_equipment(
        db,
        EquipmentCreate(template_id=template.id, parts=[EquipmentPartLine(part_id=wheel.id, quantity_needed=6)]),
        admin,
    )

    equipment = result["equipment"]
    assert equipment.model == "Trolley"
    assert equipment.created_from_template == "Trolley"
    assert result["created_from_template"] == "Trolley"
    assert {line.part_id: line.quantity_needed for line in equipment.parts} == {wheel.id: 6, axle.id: 2}
    db.refresh(wheel)
    db.refresh(axle)
    assert (wheel.quantity, axle.quantity) == (14, 18)


def test_repeated_part_lines_are_summed(db, admin, make_part):
    part = make_part(quantity=10)

    result = crud_equipment.create_equipment(
        db,
        EquipmentCreate(
            model="Bench",
            parts=[
                EquipmentPartLine(part_id=part.id, quantity_needed=2),
                EquipmentPartLine(part_id=part.id, quantity_needed=3),
            ],
        ),
        admin,
    )

    assert [(line.part_id, line.quantity_needed) for line in result["equipment"].parts] == [(part.id, 5)]
    db.refresh(part)
    assert part.quantity == 5


def test_repeated_request_lines_override_the_template_line_once(db, admin, make_part):
    wheel = make_part(quantity=20)
    template = crud_templates.create_template(
        db, EquipmentTemplateCreate(name="Dolly", parts=[TemplatePartLine(part_id=wheel.id, quantity=4)]), admin
    )

    result = crud_equipment.create_equipment(
        db,
        EquipmentCreate(
            template_id=template.id,
            parts=[
                EquipmentPartLine(part_id=wheel.id, quantity_needed=1),
                EquipmentPartLine(part_id=wheel.id, quantity_needed=1),
            ],
        ),
        admin,
    )

    assert {line.part_id: line.quantity_needed for line in result["equipment"].parts} == {wheel.id: 2}
    db.refresh(wheel)
    assert wheel.quantity == 18


def test_save_as_template_during_assembly(db, admin, make_part):
    part = make_part(quantity=5)

    result = crud_equipment.create_equipment(
        db,
        EquipmentCreate(
            model="Drill",
            parts=[EquipmentPartLine(part_id=part.id, quantity_needed=2)],
            save_as_template=True,
            template_name="Drill kit",
        ),
        admin,
    )

    template = crud_templates.get_template(db, result["new_template_id"])
    assert template.name == "Drill kit"
    assert crud_templates.bill_of_materials(template) == {part.id: 2}
    # Saving a template moves no stock of its own
    assert len(production_movements(db)) == 1


def test_save_as_template_name_conflict_aborts_assembly(db, admin, make_part):
    part = make_part(quantity=5)
    crud_templates.create_template(db, EquipmentTemplateCreate(name="Drill kit"), admin)

    with pytest.raises(Conflict):
        crud_equipment.create_equipment(
            db,
            EquipmentCreate(
                model="Drill",
                parts=[EquipmentPartLine(part_id=part.id, quantity_needed=2)],
                save_as_template=True,
                template_name="Drill kit",
            ),
            admin,
        )
    db.refresh(part)
    assert part.quantity == 5


def test_produce_multiplies_declared_parts(db, admin, make_part):
    gear, chain = make_part(quantity=10), make_part(quantity=10)
    equipment = crud_equipment.create_equipment(
        db,
        EquipmentCreate(
            model="Bike",
            reduce_stock=False,
            parts=[
                EquipmentPartLine(part_id=gear.id, quantity_needed=2),
                EquipmentPartLine(part_id=chain.id, quantity_needed=1),
            ],
        ),
        admin,
    )["equipment"]

    report = crud_equipment.produce(db, equipment.id, admin, units=3)

    assert report["units"] == 3
    assert {(p["part_id"], p["quantity_used"], p["remaining_stock"]) for p in report["parts_used"]} == {
        (gear.id, 6, 4), (chain.id, 3, 7),
    }

    with pytest.raises(InsufficientStock) as exc:
        crud_equipment.produce(db, equipment.id, admin, units=3)
    assert [s["part_id"] for s in exc.value.shortfalls] == [gear.id]
    db.refresh(chain)
    assert chain.quantity == 7


def test_add_and_remove_part_lines(db, admin, make_part):
    part = make_part()
    equipment = crud_equipment.create_equipment(db, EquipmentCreate(model="Frame"), admin)["equipment"]

    equipment = crud_equipment.add_part(db, equipment.id, EquipmentPartLine(part_id=part.id, quantity_needed=3), admin)
    assert [(line.part_id, line.quantity_needed) for line in equipment.parts] == [(part.id, 3)]
    with pytest.raises(Conflict):
        crud_equipment.add_part(db, equipment.id, EquipmentPartLine(part_id=part.id), admin)

    equipment = crud_equipment.remove_part(db, equipment.id, equipment.parts[0].id, admin)
    assert equipment.parts == []


def test_deleted_equipment_is_hidden(db, admin):
    equipment = crud_equipment.create_equipment(db, EquipmentCreate(model="Old"), admin)["equipment"]
    crud_equipment.delete_equipment(db, equipment.id, admin)

    with pytest.raises(NotFound):
        crud_equipment.get_equipment(db, equipment.id)
    assert crud_equipment.get_equipment_list(db) == []


def test_template_crud_and_from_equipment(db, admin, make_part):
    a, b = make_part(quantity=3), make_part(quantity=3)
    template = crud_templates.create_template(
        db, EquipmentTemplateCreate(name="Base", parts=[TemplatePartLine(part_id=a.id, quantity=1)]), admin
    )
    assert template.parts[0].current_stock == 3

    with pytest.raises(Conflict):
        crud_templates.create_template(db, EquipmentTemplateCreate(name="Base"), admin)

    template = crud_templates.update_template(
        db, template.id, EquipmentTemplateUpdate(description="Updated"), admin
    )
    assert crud_templates.bill_of_materials(template) == {a.id: 1}
    template = crud_templates.update_template(
        db, template.id, EquipmentTemplateUpdate(parts=[TemplatePartLine(part_id=b.id, quantity=2)]), admin
    )
    assert crud_templates.bill_of_materials(template) == {b.id: 2}

    equipment = crud_equipment.create_equipment(db, EquipmentCreate(template_id=template.id), admin)["equipment"]
    derived = crud_templates.create_from_equipment(db, TemplateFromEquipment(equipment_id=equipment.id), admin)
    assert derived.name == "Base template"
    assert crud_templates.bill_of_materials(derived) == {b.id: 2}

    crud_templates.delete_template(db, template.id, admin)
    assert db.query(EquipmentTemplate).filter(EquipmentTemplate.id == template.id).first() is None
    equipment = crud_equipment.get_equipment(db, equipment.id)
    assert equipment.template_id is None
    assert equipment.created_from_template == "Base"
