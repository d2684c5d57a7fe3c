# Equipment stock helpers
#
# available_quantity is the number of units not currently assigned; it only
# changes through assign_equipment, return_assignment and delete_assignment.

import sqlalchemy as sa

from app import db
from app.models import Equipment, EquipmentAssignment, Coach, Team, TrainingSession, utc_now
from app.errors import BadRequestError, ConflictError, NotFoundError

# Statuses set by staff; stock changes never override them
MANUAL_STATUSES = ('maintenance', 'retired')


def get_organization_equipment(organization, equipment_id):
    equipment = db.session.get(Equipment, equipment_id)
    if equipment is None or equipment.organization_id != organization.id:
        raise NotFoundError('Equipment not found')
    return equipment


def get_equipment_assignment(equipment, assignment_id):
    assignment = db.session.get(EquipmentAssignment, assignment_id)
    if assignment is None or assignment.equipment_id != equipment.id:
        raise NotFoundError('Assignment not found')
    return assignment


def lock_equipment(equipment_id):
    """Reload an equipment row with a row lock held until the transaction ends."""
    return db.session.scalar(
        sa.select(Equipment)
        .where(Equipment.id == equipment_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def refresh_equipment_status(equipment):
    """
    Derive in_use / available from the stock level.

    The status becomes in_use when no unit is left and available again once
    every unit is back. Partial returns keep the current status.
    """
    if equipment.status in MANUAL_STATUSES:
        return
    if equipment.available_quantity <= 0:
        equipment.status = 'in_use'
    elif equipment.available_quantity >= equipment.total_quantity:
        equipment.status = 'available'


def set_total_quantity(equipment, total_quantity):
    """
    Change the number of units owned, keeping the assigned units assigned.

    Raises:
        BadRequestError: if the new total is below the units currently assigned.
    """
    assigned = equipment.assigned_quantity
    if total_quantity < assigned:
        raise BadRequestError(f'Total quantity cannot be lower than the {assigned} units currently assigned')
    equipment.total_quantity = total_quantity
    equipment.available_quantity = total_quantity - assigned


def check_assignment_targets(organization, coach_id=None, team_id=None, training_session_id=None):
    """Ensure every assignment target belongs to the organization."""
    for model, record_id, label in ((Coach, coach_id, 'Coach'),
                                    (Team, team_id, 'Team'),
                                    (TrainingSession, training_session_id, 'Training session')):
        if record_id is None:
            continue
        record = db.session.get(model, record_id)
        if record is None or record.organization_id != organization.id:
            raise BadRequestError(f'{label} not found')


def assign_equipment(equipment, quantity, assigned_by_id=None, **targets):
    """
    Assign units of equipment. The caller commits.

    Raises:
        BadRequestError: if the equipment cannot be assigned or not enough
            units are available.
    """
    equipment = lock_equipment(equipment.id)
    if equipment.status in MANUAL_STATUSES:
        raise BadRequestError(f'Equipment in status {equipment.status} cannot be assigned')
    if quantity > equipment.available_quantity:
        raise BadRequestError(f'Only {equipment.available_quantity} units available')

    assignment = EquipmentAssignment(
        equipment_id=equipment.id,
        quantity=quantity,
        assigned_by_id=assigned_by_id,
        **targets
    )
    db.session.add(assignment)
    equipment.available_quantity -= quantity
    refresh_equipment_status(equipment)
    return assignment


def return_assignment(assignment, condition_on_return=None, notes=None):
    """
    Mark an assignment returned and put its units back in stock. The caller
    commits. A reported condition becomes the equipment's condition.
    """
    if assignment.is_returned:
        raise ConflictError('Assignment has already been returned')

    equipment = lock_equipment(assignment.equipment_id)
    assignment.returned_at = utc_now()
    assignment.condition_on_return = condition_on_return
    if notes:
        assignment.notes = f'{assignment.notes}\n{notes}' if assignment.notes else notes

    equipment.available_quantity = min(equipment.total_quantity, equipment.available_quantity + assignment.quantity)
    if condition_on_return:
        equipment.condition = condition_on_return
    refresh_equipment_status(equipment)
    return assignment


def delete_assignment(assignment):
    """Delete an assignment; units not yet returned go back in stock. The caller commits."""
    if not assignment.is_returned:
        equipment = lock_equipment(assignment.equipment_id)
        equipment.available_quantity = min(equipment.total_quantity,
                                           equipment.available_quantity + assignment.quantity)
        refresh_equipment_status(equipment)
    db.session.delete(assignment)


def get_active_assignment_count(equipment):
    return db.session.scalar(
        sa.select(sa.func.count(EquipmentAssignment.id)).where(
            EquipmentAssignment.equipment_id == equipment.id,
            EquipmentAssignment.returned_at.is_(None)
        )
    ) or 0
