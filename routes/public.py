from datetime import date
from flask import Blueprint, jsonify, request, current_app
from models import Block, Tenant, RentPayment
from errors import ApiError
from services.payment_ledger import serialize_payment
from services.rent_schedule import PaymentSettings, is_visible
from routes.tenants import normalize_phone

public_bp = Blueprint('public', __name__, url_prefix='/api/public')


@public_bp.route('/tenants/search')
def search_tenants():
    """Lets a tenant look up their own dues by mobile number."""
    user_id = request.args.get('userId', type=int)
    phone = normalize_phone(request.args.get('phone'))

    if not user_id or not request.args.get('phone'):
        raise ApiError('Missing required parameters')
    if len(phone) != 10:
        raise ApiError('Phone number must have exactly 10 digits')

    blocks = {b.id: b for b in Block.query.filter_by(owner_id=user_id).all()}
    if not blocks:
        return jsonify([])

    tenants = Tenant.query.filter(
        Tenant.block_id.in_(list(blocks)),
        Tenant.phone == phone
    ).order_by(Tenant.name).all()

    today = date.today()
    limit = current_app.config['PUBLIC_RECENT_PAYMENTS']
    results = []
    for tenant in tenants:
        settings = PaymentSettings.from_block(blocks[tenant.block_id])
        payments = RentPayment.query.filter(
            RentPayment.tenant_id == tenant.id,
            RentPayment.status != 'cancelled'
        ).order_by(RentPayment.due_date.desc(), RentPayment.id.desc()).all()

        recent = [p for p in payments if is_visible(p, settings, today)][:limit]
        data = tenant.to_dict(public=True)
        data['recentPayments'] = [_public_payment(p, today, settings) for p in recent]
        results.append(data)

    return jsonify(results)


def _public_payment(payment, today, settings):
    data = serialize_payment(payment, today, settings)
    data.pop('changeLog', None)
    return data
