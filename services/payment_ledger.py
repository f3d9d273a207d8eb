from datetime import date

from flask import current_app
from flask_login import current_user
from sqlalchemy.exc import IntegrityError

from errors import ApiError, Conflict
from models import db, RentPayment, PaymentChangeLog, utcnow
from services.rent_schedule import (
    PaymentSettings, compute_due_date, effective_status, is_visible, month_name, month_number
)

EDITABLE_STATUSES = ('pending', 'paid', 'overdue', 'undefined')
PAYMENT_TYPES = ('monthly', 'additional')
MIN_YEAR = 2000
MAX_YEAR = 2100


def _acting_user_id():
    if current_user and current_user.is_authenticated:
        return current_user.id
    return None


def _require_message(message):
    message = str(message).strip() if message is not None else ''
    if not message:
        raise ApiError("A reason message is required")
    return message


def create_payment(tenant, amount, payment_type='monthly', month=None, year=None, due_date=None,
                   status='pending', label=None, payment_method=None, description=None,
                   paid_date=None, today=None):
    """Manually record a monthly or additional payment row for a tenant."""
    today = today or date.today()
    block = tenant.block

    if payment_type not in PAYMENT_TYPES:
        raise ApiError(f"Invalid payment type: {payment_type}")
    if status not in EDITABLE_STATUSES:
        raise ApiError(f"Invalid status: {status}")
    if payment_type == 'additional' and not (label or '').strip():
        raise ApiError("A label is required for additional payments")

    try:
        month_num = month_number(month) if month else today.month
        year = int(year) if year else today.year
    except ValueError as e:
        raise ApiError(str(e))
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ApiError(f"year must be between {MIN_YEAR} and {MAX_YEAR}")

    if due_date is None:
        if payment_type == 'monthly':
            due_date = compute_due_date(tenant, block, PaymentSettings.from_block(block), month_num, year)
        else:
            due_date = today

    if status == 'paid' and paid_date is None:
        paid_date = today

    payment = RentPayment(
        tenant_id=tenant.id,
        block_id=block.id,
        room_number=tenant.room_number,
        room_type=tenant.room_type,
        amount=amount,
        month=month_name(month_num),
        year=year,
        due_date=due_date,
        paid_date=paid_date,
        status=status,
        payment_method=payment_method,
        description=description,
        payment_type=payment_type,
        label=label.strip() if label else None
    )
    db.session.add(payment)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict(f"A monthly payment for {month_name(month_num)} {year} already exists")
    return payment


def edit_payment(payment, message, amount=None, status=None, payment_method=None, today=None):
    """
    Apply an audited edit. Only fields passed in (not None) are considered and
    only the ones that actually change are written to the change log.
    """
    message = _require_message(message)
    if payment.is_cancelled:
        raise Conflict("Cancelled payments cannot be edited")
    if status is not None and status not in EDITABLE_STATUSES:
        raise ApiError(f"Invalid status: {status}")

    proposed = {
        'amount': amount,
        'status': status,
        'paymentMethod': payment_method,
    }
    current = {
        'amount': payment.amount,
        'status': payment.status,
        'paymentMethod': payment.payment_method,
    }
    changes = {}
    for field, new_value in proposed.items():
        if new_value is not None and new_value != current[field]:
            changes[field] = {'from': current[field], 'to': new_value}

    if not changes:
        raise ApiError("No changes to apply")

    if 'amount' in changes:
        payment.amount = amount
    if 'status' in changes:
        payment.status = status
        if status == 'paid' and payment.paid_date is None:
            payment.paid_date = today or date.today()
        elif status != 'paid' and payment.paid_date is not None:
            changes['paidDate'] = {'from': payment.paid_date.isoformat(), 'to': None}
            payment.paid_date = None
    if 'paymentMethod' in changes:
        payment.payment_method = payment_method

    payment.change_log.append(PaymentChangeLog(
        type='edit',
        changes=changes,
        message=message,
        user_id=_acting_user_id()
    ))
    db.session.commit()
    current_app.logger.info("Payment %s edited: %s", payment.id, ", ".join(changes))
    return payment


def cancel_payment(payment, message):
    """Mark a payment cancelled. The row is kept for history."""
    message = _require_message(message)
    if payment.is_cancelled:
        raise Conflict("Payment is already cancelled")

    previous_status = payment.status
    payment.status = 'cancelled'
    payment.cancelled_at = utcnow()
    payment.change_log.append(PaymentChangeLog(
        type='cancel',
        changes={'status': {'from': previous_status, 'to': 'cancelled'}},
        message=message,
        user_id=_acting_user_id()
    ))
    db.session.commit()
    current_app.logger.info("Payment %s cancelled", payment.id)
    return payment


def payment_due_total(tenant, today=None):
    """Sum of visible, unpaid, non-cancelled payments of a tenant."""
    today = today or date.today()
    settings = PaymentSettings.from_block(tenant.block)
    total = 0.0
    for payment in tenant.payments:
        if payment.status in ('paid', 'cancelled'):
            continue
        if not is_visible(payment, settings, today):
            continue
        total += payment.amount
    return round(total, 2)


def payment_summary(tenant, today=None):
    today = today or date.today()
    active = [p for p in tenant.payments if not p.is_cancelled]
    paid = [p for p in active if p.status == 'paid']
    overdue = [p for p in active if effective_status(p, today) == 'overdue']
    return {
        'tenantId': tenant.id,
        'paymentDue': payment_due_total(tenant, today),
        'paidTotal': round(sum(p.amount for p in paid), 2),
        'paidCount': len(paid),
        'overdueCount': len(overdue),
        'cancelledCount': len(tenant.payments) - len(active),
    }


def serialize_payment(payment, today=None, settings=None):
    """Payment dict with the derived status and visibility flags."""
    today = today or date.today()
    settings = settings or PaymentSettings.from_block(payment.block)
    data = payment.to_dict()
    data['effectiveStatus'] = effective_status(payment, today)
    data['isVisible'] = is_visible(payment, settings, today)
    return data
