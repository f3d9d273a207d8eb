from flask import Blueprint, request, send_file
from models import RentPayment, Tenant
from datetime import date
from flask_login import login_required
from errors import ApiError
from services.rent_schedule import effective_status, month_name
from utils import log_audit, get_block_or_404, parse_int
import io
from openpyxl import Workbook
from openpyxl.styles import Font, Alignment

reports_bp = Blueprint('reports', __name__, url_prefix='/api/blocks')

HEADERS = [
    'Tenant', 'Phone', 'Room No', 'Room Type', 'Type', 'Label',
    'Due Date', 'Paid Date', 'Status', 'Payment Method', 'Amount'
]


@reports_bp.route('/<int:block_id>/rent-payments/export')
@login_required
def export_rent_register(block_id):
    block = get_block_or_404(block_id)
    today = date.today()

    month = parse_int(request.args.get('month', today.month), 'month')
    year = parse_int(request.args.get('year', today.year), 'year')
    if not 1 <= month <= 12:
        raise ApiError('Invalid month')

    payments = RentPayment.query.join(Tenant).filter(
        RentPayment.block_id == block.id,
        RentPayment.month == month_name(month),
        RentPayment.year == year
    ).order_by(Tenant.name, RentPayment.due_date).all()

    # Create Excel
    wb = Workbook()
    ws = wb.active
    ws.title = f"{month_name(month)[:3]} {year}"

    ws.append(HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal='center')

    total_due = 0.0
    total_paid = 0.0
    for p in payments:
        status = effective_status(p, today)
        ws.append([
            p.tenant.name,
            p.tenant.phone,
            p.room_number,
            p.room_type,
            p.payment_type,
            p.label or '',
            p.due_date,
            p.paid_date,
            status,
            p.payment_method or '',
            p.amount
        ])
        if status == 'paid':
            total_paid += p.amount
        elif status != 'cancelled':
            total_due += p.amount

    # Summary Rows
    ws.append([])
    ws.append(['TOTAL PAID'] + [''] * 9 + [total_paid])
    ws.cell(row=ws.max_row, column=1).font = Font(bold=True)
    ws.append(['TOTAL DUE'] + [''] * 9 + [total_due])
    ws.cell(row=ws.max_row, column=1).font = Font(bold=True)

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)

    filename = f"Rent_Register_{block.name.replace(' ', '_')}_{year}_{month:02d}.xlsx"
    log_audit('REPORT', 'Block', block.id, f"Exported rent register for {month_name(month)} {year}")

    return send_file(
        output,
        mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        as_attachment=True,
        download_name=filename
    )
