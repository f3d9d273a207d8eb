from datetime import date
from flask import Blueprint, jsonify, request
from flask_login import login_required
from models import db, Tenant, TenantDocument, RoomType, utcnow
from errors import ApiError, NotFound
from services.payment_ledger import payment_summary
from utils import (
    log_audit, get_json_body, require_fields, parse_date, get_block_or_404, get_tenant_or_404
)

tenants_bp = Blueprint('tenants', __name__, url_prefix='/api')

TENANT_STATUSES = ('active', 'left', 'blacklisted', 'pending')

# JSON key -> column for the plain text fields
TENANT_FIELDS = {
    'name': 'name',
    'phone': 'phone',
    'email': 'email',
    'emergencyContact': 'emergency_contact',
    'idType': 'id_type',
    'idNumber': 'id_number',
    'address': 'address',
    'pinCode': 'pin_code',
    'profileImage': 'profile_image',
    'roomNumber': 'room_number',
}


def normalize_phone(value):
    return ''.join(ch for ch in str(value or '') if ch.isdigit())


def _check_room_type(block, name):
    if not RoomType.query.filter_by(block_id=block.id, name=name).first():
        raise ApiError(f"Unknown room type: {name}")


@tenants_bp.route('/blocks/<int:block_id>/tenants', methods=['GET'])
@login_required
def list_tenants(block_id):
    block = get_block_or_404(block_id)
    query = Tenant.query.filter_by(block_id=block.id)

    # Filter by Status
    status_filter = request.args.get('status')
    if status_filter and status_filter != 'all':
        query = query.filter(Tenant.status == status_filter)

    # Search Filter
    search_term = request.args.get('search')
    if search_term:
        term = f"%{search_term}%"
        query = query.filter(
            db.or_(
                Tenant.name.ilike(term),
                Tenant.phone.ilike(term),
                Tenant.room_number.ilike(term)
            )
        )

    tenants = query.order_by(Tenant.name).all()
    return jsonify([t.to_dict() for t in tenants])


@tenants_bp.route('/blocks/<int:block_id>/tenants', methods=['POST'])
@login_required
def create_tenant(block_id):
    block = get_block_or_404(block_id)
    data = get_json_body()
    require_fields(data, 'name', 'phone', 'roomNumber', 'roomType', 'joinDate')

    status = data.get('status', 'pending')
    if status not in TENANT_STATUSES:
        raise ApiError(f"Invalid status: {status}")
    _check_room_type(block, data['roomType'])

    tenant = Tenant(block_id=block.id, status=status)
    for key, attr in TENANT_FIELDS.items():
        if key in data:
            setattr(tenant, attr, data[key])
    tenant.phone = normalize_phone(data['phone'])
    tenant.room_type = data['roomType']
    tenant.join_date = parse_date(data['joinDate'], 'joinDate')

    db.session.add(tenant)
    db.session.commit()
    log_audit('CREATE', 'Tenant', tenant.id, f"Created tenant {tenant.name} in room {tenant.room_number}")
    return jsonify(tenant.to_dict()), 201


@tenants_bp.route('/tenants/<int:tenant_id>', methods=['GET'])
@login_required
def get_tenant(tenant_id):
    tenant = get_tenant_or_404(tenant_id)
    return jsonify(tenant.to_dict())


@tenants_bp.route('/tenants/<int:tenant_id>', methods=['PUT'])
@login_required
def update_tenant(tenant_id):
    tenant = get_tenant_or_404(tenant_id)
    data = get_json_body()

    if 'status' in data:
        raise ApiError('Use the status endpoint to change tenant status')

    for key, attr in TENANT_FIELDS.items():
        if key in data:
            setattr(tenant, attr, data[key])
    if 'phone' in data:
        tenant.phone = normalize_phone(data['phone'])
    if 'roomType' in data:
        _check_room_type(tenant.block, data['roomType'])
        tenant.room_type = data['roomType']
    if 'joinDate' in data:
        tenant.join_date = parse_date(data['joinDate'], 'joinDate')

    if not tenant.name or not tenant.phone or not tenant.room_number:
        raise ApiError('Name, phone and room number cannot be empty')

    db.session.commit()
    log_audit('UPDATE', 'Tenant', tenant.id, f"Updated tenant {tenant.name}")
    return jsonify(tenant.to_dict())


@tenants_bp.route('/tenants/<int:tenant_id>', methods=['DELETE'])
@login_required
def delete_tenant(tenant_id):
    tenant = get_tenant_or_404(tenant_id)
    name = tenant.name
    db.session.delete(tenant)
    db.session.commit()
    log_audit('DELETE', 'Tenant', tenant_id, f"Deleted tenant {name}")
    return jsonify(message='Tenant deleted successfully')


@tenants_bp.route('/tenants/<int:tenant_id>/status', methods=['PUT'])
@login_required
def change_status(tenant_id):
    tenant = get_tenant_or_404(tenant_id)
    data = get_json_body()

    status = data.get('status')
    reason = (data.get('reason') or '').strip()
    if not status or not reason:
        raise ApiError('Status and reason are required')
    if status not in TENANT_STATUSES:
        raise ApiError(f"Invalid status: {status}")

    previous = tenant.status
    tenant.status = status
    tenant.status_change_date = utcnow()
    tenant.status_change_reason = reason
    db.session.commit()

    log_audit('UPDATE', 'Tenant', tenant.id, f"Status {previous} -> {status}: {reason}")
    return jsonify(tenant.to_dict())


# --- Documents ---

@tenants_bp.route('/tenants/<int:tenant_id>/documents', methods=['GET'])
@login_required
def list_documents(tenant_id):
    tenant = get_tenant_or_404(tenant_id)
    return jsonify([d.to_dict() for d in tenant.documents])


@tenants_bp.route('/tenants/<int:tenant_id>/documents', methods=['POST'])
@login_required
def add_document(tenant_id):
    tenant = get_tenant_or_404(tenant_id)
    data = get_json_body()
    if not data.get('type') or not data.get('url'):
        raise ApiError('Document type and URL are required')

    document = TenantDocument(tenant_id=tenant.id, type=data['type'], url=data['url'])
    db.session.add(document)
    db.session.commit()
    log_audit('CREATE', 'TenantDocument', document.id, f"Added {document.type} document for tenant {tenant.name}")
    return jsonify(message='Document added successfully', document=document.to_dict()), 201


@tenants_bp.route('/tenants/<int:tenant_id>/documents/<int:document_id>', methods=['DELETE'])
@login_required
def delete_document(tenant_id, document_id):
    tenant = get_tenant_or_404(tenant_id)
    document = TenantDocument.query.filter_by(id=document_id, tenant_id=tenant.id).first()
    if not document:
        raise NotFound('Document not found')

    db.session.delete(document)
    db.session.commit()
    log_audit('DELETE', 'TenantDocument', document_id, f"Deleted document for tenant {tenant.name}")
    return jsonify(message='Document deleted successfully')


@tenants_bp.route('/tenants/<int:tenant_id>/payment-summary', methods=['GET'])
@login_required
def tenant_payment_summary(tenant_id):
    tenant = get_tenant_or_404(tenant_id)
    return jsonify(payment_summary(tenant, date.today()))
