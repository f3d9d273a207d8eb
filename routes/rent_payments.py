from datetime import date
from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required
from models import RentPayment
from errors import ApiError
from services.rent_generation import RentGenerator
from services.payment_ledger import create_payment, edit_payment, cancel_payment, serialize_payment
from services.rent_schedule import PaymentSettings
from utils import (
    log_audit, get_json_body, require_fields, to_money, parse_date, parse_int,
    get_block_or_404, get_tenant_or_404, get_payment_or_404
)

rent_payments_bp = Blueprint('rent_payments', __name__, url_prefix='/api/rent-payments')


@rent_payments_bp.route('/refresh', methods=['POST'])
@login_required
def refresh():
    data = get_json_body()
    if not data.get('blockId'):
        raise ApiError('Block ID is required')
    block = get_block_or_404(parse_int(data['blockId'], 'blockId'))

    result = RentGenerator(block, date.today()).refresh()

    generated = result['currentMonthGenerated'] + result['nextMonthGenerated']
    if generated > 0:
        log_audit('GENERATE', 'RentPayment', 0, f"Generated {generated} rent entries for block {block.name}")
    return jsonify(result)


@rent_payments_bp.route('', methods=['GET'])
@login_required
def list_payments():
    tenant_id = request.args.get('tenantId')
    if not tenant_id:
        raise ApiError('Tenant ID is required')
    tenant = get_tenant_or_404(parse_int(tenant_id, 'tenantId'))

    limit = request.args.get('limit', current_app.config['PAYMENT_HISTORY_LIMIT'], type=int)
    payments = RentPayment.query.filter_by(tenant_id=tenant.id)\
        .order_by(RentPayment.due_date.desc(), RentPayment.id.desc())\
        .limit(max(limit, 1)).all()

    today = date.today()
    settings = PaymentSettings.from_block(tenant.block)
    return jsonify([serialize_payment(p, today, settings) for p in payments])


@rent_payments_bp.route('', methods=['POST'])
@login_required
def add_payment():
    data = get_json_body()
    require_fields(data, 'tenantId', 'amount')
    tenant = get_tenant_or_404(parse_int(data['tenantId'], 'tenantId'))

    payment = create_payment(
        tenant,
        amount=to_money(data['amount']),
        payment_type=data.get('type', 'monthly'),
        month=data.get('month'),
        year=parse_int(data['year'], 'year') if data.get('year') else None,
        due_date=parse_date(data['dueDate'], 'dueDate') if data.get('dueDate') else None,
        status=data.get('status', 'pending'),
        label=data.get('label'),
        payment_method=data.get('paymentMethod'),
        description=data.get('description'),
        paid_date=parse_date(data['paidDate'], 'paidDate') if data.get('paidDate') else None
    )
    log_audit('CREATE', 'RentPayment', payment.id,
              f"Added {payment.payment_type} payment of {payment.amount} for tenant {tenant.name}")
    return jsonify(serialize_payment(payment)), 201


@rent_payments_bp.route('/<int:payment_id>', methods=['GET'])
@login_required
def payment_details(payment_id):
    payment = get_payment_or_404(payment_id)
    return jsonify(serialize_payment(payment))


@rent_payments_bp.route('/<int:payment_id>/edit', methods=['PUT'])
@login_required
def edit(payment_id):
    payment = get_payment_or_404(payment_id)
    data = get_json_body()

    amount = to_money(data['amount']) if data.get('amount') is not None else None
    edit_payment(
        payment,
        message=data.get('message'),
        amount=amount,
        status=data.get('status'),
        payment_method=data.get('paymentMethod')
    )
    log_audit('UPDATE', 'RentPayment', payment.id, f"Edited payment: {data.get('message')}")
    return jsonify(serialize_payment(payment))


@rent_payments_bp.route('/<int:payment_id>/remove', methods=['DELETE'])
@login_required
def remove(payment_id):
    payment = get_payment_or_404(payment_id)
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}

    cancel_payment(payment, data.get('message'))
    log_audit('CANCEL', 'RentPayment', payment.id, f"Cancelled payment: {data.get('message')}")
    return jsonify(message='Payment cancelled successfully', payment=serialize_payment(payment))
