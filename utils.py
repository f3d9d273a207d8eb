from datetime import datetime, date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import request, current_app
from flask_login import current_user

from errors import ApiError, NotFound
from models import db, AuditLog, Block, Hostel, HostelMember, Tenant, RentPayment


def log_audit(action, target_type, target_id, details=""):
    """
    Creates an AuditLog entry.
    """
    try:
        user_id = current_user.id if (current_user and current_user.is_authenticated) else None

        log = AuditLog(
            user_id=user_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            details=details
        )
        db.session.add(log)
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Error logging audit for %s %s", target_type, target_id)


def get_json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ApiError("Invalid JSON body")
    return data


def require_fields(data, *fields):
    missing = [f for f in fields if data.get(f) in (None, '')]
    if missing:
        raise ApiError(f"Missing required fields: {', '.join(missing)}")


def to_money(value, field='amount'):
    """Parses an amount into a float rounded to 2 decimal places."""
    try:
        val = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ApiError(f"Invalid {field}")
    if not val.is_finite() or val < 0:
        raise ApiError(f"Invalid {field}")
    return float(val.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def parse_date(value, field='date'):
    if isinstance(value, date):
        return value
    try:
        # Accept plain dates and ISO timestamps from JS clients
        return datetime.strptime(str(value)[:10], '%Y-%m-%d').date()
    except ValueError:
        raise ApiError(f"Invalid {field}, expected YYYY-MM-DD")


def parse_int(value, field):
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise ApiError(f"Invalid {field}")


def member_hostel_ids(user=None, roles=None):
    """Ids of the hostels the user is an approved member of."""
    user = user or current_user
    query = HostelMember.query.filter_by(user_id=user.id, status='approved')
    if roles:
        query = query.filter(HostelMember.role.in_(roles))
    return [m.hostel_id for m in query.all()]


def can_manage(owner_id, hostel_id=None):
    """Admins, the owner, and approved members of the hostel may manage it."""
    if current_user.is_admin or owner_id == current_user.id:
        return True
    return hostel_id is not None and hostel_id in member_hostel_ids()


def can_manage_members(hostel):
    if current_user.is_admin or hostel.owner_id == current_user.id:
        return True
    return hostel.id in member_hostel_ids(roles=('manager',))


def accessible_blocks_query():
    query = Block.query
    if not current_user.is_admin:
        query = query.filter(db.or_(
            Block.owner_id == current_user.id,
            Block.hostel_id.in_(member_hostel_ids())
        ))
    return query


def accessible_hostels_query():
    query = Hostel.query
    if not current_user.is_admin:
        query = query.filter(db.or_(
            Hostel.owner_id == current_user.id,
            Hostel.id.in_(member_hostel_ids())
        ))
    return query


def get_hostel_or_404(hostel_id):
    hostel = db.session.get(Hostel, hostel_id)
    if not hostel or not can_manage(hostel.owner_id, hostel.id):
        raise NotFound("Hostel not found")
    return hostel


def get_block_or_404(block_id):
    block = db.session.get(Block, block_id)
    if not block or not can_manage(block.owner_id, block.hostel_id):
        raise NotFound("Block not found")
    return block


def get_tenant_or_404(tenant_id):
    tenant = db.session.get(Tenant, tenant_id)
    if not tenant or not can_manage(tenant.block.owner_id, tenant.block.hostel_id):
        raise NotFound("Tenant not found")
    return tenant


def get_payment_or_404(payment_id):
    payment = db.session.get(RentPayment, payment_id)
    if not payment or not can_manage(payment.block.owner_id, payment.block.hostel_id):
        raise NotFound("Payment not found")
    return payment
