from datetime import date

from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import db, Tenant, RoomType, RentPayment
from services.rent_schedule import (
    PaymentSettings, billing_months, compute_due_date, is_visible, month_name
)


class RentGenerator:
    """
    Creates the monthly rent rows of one block.

    For every active tenant the current month's row is created when missing,
    and next month's row once the current due date enters the visibility
    window, so it is ready before the new month starts.
    Each insert is committed on its own; the unique monthly index turns a
    concurrent duplicate into an IntegrityError which is counted as skipped.
    """

    def __init__(self, block, today=None):
        self.block = block
        self.settings = PaymentSettings.from_block(block)
        self.today = today or date.today()
        self.current_generated = 0
        self.next_generated = 0
        self.skipped = 0
        self.errors = 0

    def refresh(self):
        if not self.settings.enabled:
            return self._result("Rent generation is disabled for this block")

        tenants = Tenant.query.filter_by(block_id=self.block.id, status='active').order_by(Tenant.id).all()
        room_types = {rt.name: rt for rt in RoomType.query.filter_by(block_id=self.block.id).all()}
        (cur_month, cur_year), (next_month, next_year) = billing_months(self.today)

        for tenant in tenants:
            tenant_id = tenant.id
            try:
                room_type = room_types.get(tenant.room_type)
                if not room_type:
                    current_app.logger.warning(
                        "Tenant %s has unknown room type %r in block %s, skipping",
                        tenant_id, tenant.room_type, self.block.id)
                    self.skipped += 1
                    continue

                if self._create_if_absent(tenant, room_type, cur_month, cur_year):
                    self.current_generated += 1

                # Next month opens once this month's due date is inside the visibility window
                current_due = compute_due_date(tenant, self.block, self.settings, cur_month, cur_year)
                if is_visible(current_due, self.settings, self.today):
                    if self._create_if_absent(tenant, room_type, next_month, next_year):
                        self.next_generated += 1
            except Exception:
                # One bad tenant must not stop the rest of the block
                db.session.rollback()
                self.errors += 1
                current_app.logger.exception("Error generating rent for tenant %s", tenant_id)

        current_app.logger.info(
            "Rent refresh for block %s: %s current, %s next, %s skipped",
            self.block.id, self.current_generated, self.next_generated, self.skipped)
        return self._result("Payment entries refresh completed")

    def _create_if_absent(self, tenant, room_type, month, year, due_date=None):
        # Never bill a month before the tenant joined
        if (year, month) < (tenant.join_date.year, tenant.join_date.month):
            return False

        name = month_name(month)
        existing = RentPayment.query.filter_by(
            tenant_id=tenant.id,
            month=name,
            year=year,
            payment_type='monthly'
        ).first()
        if existing:
            self.skipped += 1
            return False

        if due_date is None:
            due_date = compute_due_date(tenant, self.block, self.settings, month, year)

        payment = RentPayment(
            tenant_id=tenant.id,
            block_id=self.block.id,
            room_number=tenant.room_number,
            room_type=tenant.room_type,
            amount=room_type.rent,
            month=name,
            year=year,
            due_date=due_date,
            status='pending',
            payment_type='monthly'
        )
        db.session.add(payment)
        try:
            db.session.commit()
        except IntegrityError:
            # Another refresh inserted the same month first
            db.session.rollback()
            self.skipped += 1
            return False
        return True

    def _result(self, message):
        return {
            'message': message,
            'currentMonthGenerated': self.current_generated,
            'nextMonthGenerated': self.next_generated,
            'skipped': self.skipped,
            'errors': self.errors,
        }
