"""
Equipment inventory and assignment routes.
"""

import sqlalchemy as sa
from flask import request, current_app, jsonify
from flask_login import login_required, current_user

from app import db
from app.equipment import bp
from app.equipment.forms import EquipmentForm, AssignmentForm, ReturnForm
from app.equipment.utils import (
    get_organization_equipment, get_equipment_assignment, refresh_equipment_status, set_total_quantity,
    check_assignment_targets, assign_equipment, return_assignment, delete_assignment,
    get_active_assignment_count
)
from app.models import Equipment, EquipmentAssignment
from app.routes import organization_required, MANAGER_ROLES, ADMIN_ROLES
from app.errors import FieldhouseError, ConflictError, validation_error_response
from app.utils import get_json_payload, json_formdata, paginate_query
from app.audit import audit_log_create, audit_log_update, audit_log_delete, get_model_changes


EQUIPMENT_FIELDS = [
    'name', 'description', 'category', 'brand', 'model', 'condition', 'status', 'purchase_date',
    'purchase_price', 'currency', 'storage_location', 'notes'
]


def _equipment_values(form):
    values = {field: getattr(form, field).data for field in EQUIPMENT_FIELDS}
    values['currency'] = values['currency'].upper()
    return values


@bp.route('')
@login_required
@organization_required(*MANAGER_ROLES)
def list_equipment(organization):
    """
    Paginated equipment list. Query args: search, category, status, condition,
    available=true (only items with free units).
    """
    query = sa.select(Equipment).where(Equipment.organization_id == organization.id)

    for arg, column in (('category', Equipment.category),
                        ('status', Equipment.status),
                        ('condition', Equipment.condition)):
        value = request.args.get(arg)
        if value:
            query = query.where(column == value)
    if request.args.get('available') == 'true':
        query = query.where(Equipment.available_quantity > 0)
    search = request.args.get('search', '').strip()
    if search:
        pattern = f'%{search}%'
        query = query.where(sa.or_(
            Equipment.name.ilike(pattern),
            Equipment.brand.ilike(pattern),
            Equipment.storage_location.ilike(pattern)
        ))

    items, pagination = paginate_query(query.order_by(Equipment.name, Equipment.id))
    return jsonify({
        'success': True,
        'equipment': [item.to_dict() for item in items],
        'pagination': pagination
    })


@bp.route('', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def create_equipment(organization):
    """
    Create an equipment item. All units start available.
    """
    form = EquipmentForm(formdata=json_formdata(get_json_payload(), base={
        'category': 'other', 'condition': 'good', 'status': 'available', 'total_quantity': 1,
        'currency': organization.currency
    }))
    if not form.validate():
        return validation_error_response(form)

    try:
        equipment = Equipment(
            organization_id=organization.id,
            total_quantity=form.total_quantity.data,
            available_quantity=form.total_quantity.data,
            **_equipment_values(form)
        )
        refresh_equipment_status(equipment)
        db.session.add(equipment)
        db.session.commit()

        audit_log_create('Equipment', equipment.id, f'Created equipment: {equipment.name}',
                         {'quantity': equipment.total_quantity})

        return jsonify({'success': True, 'equipment': equipment.to_dict()}), 201

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating equipment: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while creating the equipment'
        }), 500


@bp.route('/<int:equipment_id>')
@login_required
@organization_required(*MANAGER_ROLES)
def get_equipment(organization, equipment_id):
    """
    Equipment item with its open assignments.
    """
    equipment = get_organization_equipment(organization, equipment_id)
    data = equipment.to_dict()
    data['assigned_quantity'] = equipment.assigned_quantity
    data['active_assignments'] = [
        assignment.to_dict() for assignment in equipment.assignments if not assignment.is_returned
    ]
    return jsonify({'success': True, 'equipment': data})


@bp.route('/<int:equipment_id>', methods=['PATCH'])
@login_required
@organization_required(*MANAGER_ROLES)
def update_equipment(organization, equipment_id):
    """
    Update an equipment item. Changing total_quantity keeps assigned units
    assigned and fails if it would drop below them.
    """
    equipment = get_organization_equipment(organization, equipment_id)
    form = EquipmentForm(formdata=json_formdata(get_json_payload(), base=equipment.to_dict()))
    if not form.validate():
        return validation_error_response(form)

    try:
        values = _equipment_values(form)
        values['total_quantity'] = form.total_quantity.data
        changes = get_model_changes(equipment, values)

        set_total_quantity(equipment, form.total_quantity.data)
        for field, value in values.items():
            if field != 'total_quantity':
                setattr(equipment, field, value)
        refresh_equipment_status(equipment)
        db.session.commit()

        audit_log_update('Equipment', equipment.id, f'Updated equipment: {equipment.name}', changes)

        return jsonify({'success': True, 'equipment': equipment.to_dict()})

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating equipment {equipment_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while updating the equipment'
        }), 500


@bp.route('/<int:equipment_id>', methods=['DELETE'])
@login_required
@organization_required(*ADMIN_ROLES)
def delete_equipment(organization, equipment_id):
    """
    Delete an equipment item. Items with units still assigned cannot be deleted.
    """
    equipment = get_organization_equipment(organization, equipment_id)
    active = get_active_assignment_count(equipment)
    if active:
        raise ConflictError(f'Equipment has {active} open assignments; return them first')

    try:
        name = equipment.name
        db.session.delete(equipment)
        db.session.commit()

        audit_log_delete('Equipment', equipment_id, f'Deleted equipment: {name}')

        return jsonify({'success': True, 'message': f'Equipment {name} deleted'})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting equipment {equipment_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while deleting the equipment'
        }), 500


# =============================================================================
# ASSIGNMENTS
# =============================================================================

@bp.route('/<int:equipment_id>/assignments')
@login_required
@organization_required(*MANAGER_ROLES)
def list_assignments(organization, equipment_id):
    """
    Assignments of an equipment item, newest first. active=true limits the
    list to assignments not yet returned.
    """
    equipment = get_organization_equipment(organization, equipment_id)
    query = sa.select(EquipmentAssignment).where(EquipmentAssignment.equipment_id == equipment.id)
    if request.args.get('active') == 'true':
        query = query.where(EquipmentAssignment.returned_at.is_(None))
    assignments = db.session.scalars(
        query.order_by(EquipmentAssignment.assigned_at.desc(), EquipmentAssignment.id.desc())
    ).all()
    return jsonify({
        'success': True,
        'assignments': [assignment.to_dict() for assignment in assignments]
    })


@bp.route('/<int:equipment_id>/assignments', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def create_assignment(organization, equipment_id):
    """
    Assign units to a coach, team or training session.
    """
    equipment = get_organization_equipment(organization, equipment_id)
    form = AssignmentForm(formdata=json_formdata(get_json_payload(), base={'quantity': 1}))
    if not form.validate():
        return validation_error_response(form)

    targets = {
        'coach_id': form.coach_id.data,
        'team_id': form.team_id.data,
        'training_session_id': form.training_session_id.data,
    }
    check_assignment_targets(organization, **targets)

    try:
        assignment = assign_equipment(
            equipment,
            form.quantity.data,
            assigned_by_id=current_user.id,
            expected_return_date=form.expected_return_date.data,
            notes=form.notes.data,
            **targets
        )
        db.session.commit()

        audit_log_create('EquipmentAssignment', assignment.id,
                         f'Assigned {assignment.quantity} x {equipment.name}',
                         {key: value for key, value in targets.items() if value})

        return jsonify({
            'success': True,
            'assignment': assignment.to_dict(),
            'equipment': equipment.to_dict()
        }), 201

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error assigning equipment {equipment_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while assigning the equipment'
        }), 500


@bp.route('/<int:equipment_id>/assignments/<int:assignment_id>/return', methods=['POST'])
@login_required
@organization_required(*MANAGER_ROLES)
def return_equipment(organization, equipment_id, assignment_id):
    """
    Return the units of an assignment.
    """
    equipment = get_organization_equipment(organization, equipment_id)
    assignment = get_equipment_assignment(equipment, assignment_id)
    form = ReturnForm(formdata=json_formdata(request.get_json(silent=True) or {}))
    if not form.validate():
        return validation_error_response(form)

    try:
        return_assignment(assignment, condition_on_return=form.condition_on_return.data, notes=form.notes.data)
        db.session.commit()

        audit_log_update('EquipmentAssignment', assignment.id,
                         f'Returned {assignment.quantity} x {equipment.name}',
                         {'condition_on_return': assignment.condition_on_return})

        return jsonify({
            'success': True,
            'assignment': assignment.to_dict(),
            'equipment': equipment.to_dict()
        })

    except FieldhouseError:
        db.session.rollback()
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error returning assignment {assignment_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while returning the equipment'
        }), 500


@bp.route('/<int:equipment_id>/assignments/<int:assignment_id>', methods=['DELETE'])
@login_required
@organization_required(*MANAGER_ROLES)
def remove_assignment(organization, equipment_id, assignment_id):
    """
    Delete an assignment. Units not yet returned go back in stock.
    """
    equipment = get_organization_equipment(organization, equipment_id)
    assignment = get_equipment_assignment(equipment, assignment_id)

    try:
        restored = 0 if assignment.is_returned else assignment.quantity
        delete_assignment(assignment)
        db.session.commit()

        audit_log_delete('EquipmentAssignment', assignment_id,
                         f'Deleted assignment of {equipment.name}', {'restored': restored})

        return jsonify({'success': True, 'equipment': equipment.to_dict()})

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting assignment {assignment_id}: {str(e)}")
        return jsonify({
            'success': False,
            'error': 'An error occurred while deleting the assignment'
        }), 500
