from flask import Blueprint, jsonify, request
from flask_login import login_required
from models import db, Tenant, RentPayment
from datetime import date
from sqlalchemy import func
from dateutil.relativedelta import relativedelta
from services.payment_ledger import payment_due_total
from services.rent_schedule import UNPAID_STATUSES, effective_status, month_name
from utils import get_block_or_404, parse_int, accessible_blocks_query

dashboard_bp = Blueprint('dashboard', __name__, url_prefix='/api/dashboard')


def get_dashboard_metrics(block_ids, today=None):
    """Helper to calculate all dashboard metrics"""
    today = today or date.today()
    current_month = month_name(today.month)

    # 1. Tenant Metrics
    tenants = Tenant.query.filter(Tenant.block_id.in_(block_ids)).all() if block_ids else []
    active_tenants = [t for t in tenants if t.status == 'active']
    new_this_month = [t for t in tenants
                      if t.join_date.year == today.year and t.join_date.month == today.month]

    # 2. Current Month Payments
    payments = RentPayment.query.filter(
        RentPayment.block_id.in_(block_ids),
        RentPayment.month == current_month,
        RentPayment.year == today.year,
        RentPayment.status != 'cancelled'
    ).all() if block_ids else []

    rent_collection = sum(p.amount for p in payments if p.status == 'paid')
    pending_count = sum(1 for p in payments if effective_status(p, today) in ('pending', 'undefined'))

    # 3. Overdue across all months
    overdue_count = 0
    if block_ids:
        unpaid = RentPayment.query.filter(
            RentPayment.block_id.in_(block_ids),
            RentPayment.status.in_(UNPAID_STATUSES)
        ).all()
        overdue_count = sum(1 for p in unpaid if effective_status(p, today) == 'overdue')

    outstanding = sum(payment_due_total(t, today) for t in active_tenants)

    # 4. Collection trend (Last 6 Months)
    trend = []
    for i in range(5, -1, -1):
        d = today - relativedelta(months=i)
        collected = 0
        if block_ids:
            collected = db.session.query(func.sum(RentPayment.amount)).filter(
                RentPayment.block_id.in_(block_ids),
                RentPayment.month == month_name(d.month),
                RentPayment.year == d.year,
                RentPayment.status == 'paid'
            ).scalar() or 0
        trend.append({'month': d.strftime('%b %Y'), 'collected': float(collected)})

    return {
        'totalBlocks': len(block_ids),
        'totalTenants': len(tenants),
        'activeTenants': len(active_tenants),
        'newTenantsThisMonth': len(new_this_month),
        'rentCollection': round(rent_collection, 2),
        'pendingPayments': pending_count,
        'overduePayments': overdue_count,
        'outstanding': round(outstanding, 2),
        'collectionTrend': trend,
    }


@dashboard_bp.route('/stats')
@login_required
def stats():
    block_id = request.args.get('blockId')
    if block_id:
        block_ids = [get_block_or_404(parse_int(block_id, 'blockId')).id]
    else:
        block_ids = [b.id for b in accessible_blocks_query().all()]

    return jsonify(get_dashboard_metrics(block_ids))
