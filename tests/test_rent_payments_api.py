from datetime import date

from models import db, RentPayment, PaymentChangeLog


def add_payment(client, tenant_id, **overrides):
    body = {
        'tenantId': tenant_id,
        'amount': 6500,
        'month': 'February',
        'year': 2024,
        'dueDate': '2024-02-15',
        'status': 'paid',
        'paymentMethod': 'upi',
    }
    body.update(overrides)
    return client.post('/api/rent-payments', json=body)


def summary(client, tenant_id):
    resp = client.get(f'/api/tenants/{tenant_id}/payment-summary')
    assert resp.status_code == 200
    return resp.get_json()


def test_add_monthly_payment(owner_client, seeded):
    resp = add_payment(owner_client, seeded['tenant_id'])
    assert resp.status_code == 201

    data = resp.get_json()
    assert data['type'] == 'monthly'
    assert data['month'] == 'February'
    assert data['dueDate'] == '2024-02-15'
    assert data['roomNumber'] == '101'
    assert data['effectiveStatus'] == 'paid'
    assert data['changeLog'] == []


def test_duplicate_monthly_payment_conflicts(owner_client, seeded):
    assert add_payment(owner_client, seeded['tenant_id']).status_code == 201
    resp = add_payment(owner_client, seeded['tenant_id'], status='pending')
    assert resp.status_code == 409


def test_cancelled_month_can_be_billed_again(owner_client, seeded):
    tenant_id = seeded['tenant_id']
    payment_id = add_payment(owner_client, tenant_id, status='pending').get_json()['id']
    resp = owner_client.delete(f'/api/rent-payments/{payment_id}/remove', json={'message': 'Wrong amount'})
    assert resp.status_code == 200

    resp = add_payment(owner_client, tenant_id, status='pending', amount=6000)
    assert resp.status_code == 201
    assert resp.get_json()['month'] == 'February'

    # Only one live row per month
    assert add_payment(owner_client, tenant_id, status='pending').status_code == 409


def test_additional_payments_need_label_and_may_repeat(owner_client, seeded):
    resp = add_payment(owner_client, seeded['tenant_id'], type='additional', amount=250)
    assert resp.status_code == 400

    for label in ('Electricity', 'Electricity'):
        resp = add_payment(owner_client, seeded['tenant_id'], type='additional', amount=250, label=label)
        assert resp.status_code == 201
        assert resp.get_json()['label'] == 'Electricity'


def test_add_payment_validates_input(owner_client, seeded):
    assert add_payment(owner_client, seeded['tenant_id'], amount=-5).status_code == 400
    assert add_payment(owner_client, seeded['tenant_id'], month='Smarch').status_code == 400
    assert add_payment(owner_client, seeded['tenant_id'], status='refunded').status_code == 400
    assert add_payment(owner_client, seeded['tenant_id'], dueDate='15/02/2024').status_code == 400
    assert add_payment(owner_client, seeded['tenant_id'], year=-5, dueDate=None).status_code == 400
    assert add_payment(owner_client, seeded['tenant_id'], year=10000, dueDate=None).status_code == 400
    assert owner_client.post('/api/rent-payments', json={'tenantId': seeded['tenant_id']}).status_code == 400


def test_edit_requires_message(owner_client, seeded):
    payment_id = add_payment(owner_client, seeded['tenant_id']).get_json()['id']

    resp = owner_client.put(f'/api/rent-payments/{payment_id}/edit', json={'status': 'pending'})
    assert resp.status_code == 400

    resp = owner_client.put(f'/api/rent-payments/{payment_id}/edit',
                            json={'status': 'pending', 'message': '   '})
    assert resp.status_code == 400

    detail = owner_client.get(f'/api/rent-payments/{payment_id}').get_json()
    assert detail['status'] == 'paid'
    assert detail['changeLog'] == []


def test_edit_records_single_change_entry(owner_client, seeded):
    payment_id = add_payment(owner_client, seeded['tenant_id']).get_json()['id']

    resp = owner_client.put(f'/api/rent-payments/{payment_id}/edit',
                            json={'status': 'pending', 'message': 'Cheque bounced'})
    assert resp.status_code == 200

    data = resp.get_json()
    assert data['status'] == 'pending'
    assert len(data['changeLog']) == 1
    entry = data['changeLog'][0]
    assert entry['type'] == 'edit'
    assert entry['changes']['status'] == {'from': 'paid', 'to': 'pending'}
    assert entry['message'] == 'Cheque bounced'
    assert entry['user'] == 'owner'


def test_edit_logs_only_changed_fields(owner_client, seeded):
    payment_id = add_payment(owner_client, seeded['tenant_id']).get_json()['id']

    resp = owner_client.put(f'/api/rent-payments/{payment_id}/edit', json={
        'amount': 7000, 'status': 'paid', 'paymentMethod': 'upi', 'message': 'Rent revised'
    })
    assert resp.status_code == 200
    assert resp.get_json()['changeLog'][0]['changes'] == {'amount': {'from': 6500.0, 'to': 7000.0}}

    resp = owner_client.put(f'/api/rent-payments/{payment_id}/edit',
                            json={'amount': 7000, 'message': 'Nothing new'})
    assert resp.status_code == 400


def test_marking_paid_stamps_paid_date(app, owner_client, seeded):
    payment_id = add_payment(owner_client, seeded['tenant_id'], status='pending').get_json()['id']
    assert owner_client.get(f'/api/rent-payments/{payment_id}').get_json()['paidDate'] is None

    resp = owner_client.put(f'/api/rent-payments/{payment_id}/edit',
                            json={'status': 'paid', 'message': 'Cash received'})
    assert resp.status_code == 200
    assert resp.get_json()['paidDate'] is not None


def test_leaving_paid_clears_paid_date(owner_client, seeded):
    payment = add_payment(owner_client, seeded['tenant_id']).get_json()
    paid_on = payment['paidDate']
    assert paid_on is not None

    resp = owner_client.put(f"/api/rent-payments/{payment['id']}/edit",
                            json={'status': 'pending', 'message': 'Cheque bounced'})
    assert resp.status_code == 200
    data = resp.get_json()
    assert data['paidDate'] is None
    assert data['changeLog'][0]['changes']['paidDate'] == {'from': paid_on, 'to': None}

    resp = owner_client.put(f"/api/rent-payments/{payment['id']}/edit",
                            json={'status': 'paid', 'message': 'Cash received'})
    assert resp.get_json()['paidDate'] is not None


def test_cancel_keeps_history_and_clears_due(owner_client, seeded):
    tenant_id = seeded['tenant_id']
    payment_id = add_payment(owner_client, tenant_id, status='pending').get_json()['id']
    assert summary(owner_client, tenant_id)['paymentDue'] == 6500.0

    resp = owner_client.delete(f'/api/rent-payments/{payment_id}/remove', json={})
    assert resp.status_code == 400
    resp = owner_client.delete(f'/api/rent-payments/{payment_id}/remove', json=[1])
    assert resp.status_code == 400

    resp = owner_client.delete(f'/api/rent-payments/{payment_id}/remove',
                               json={'message': 'Tenant was on leave'})
    assert resp.status_code == 200
    cancelled = resp.get_json()['payment']
    assert cancelled['status'] == 'cancelled'
    assert cancelled['cancelledAt'] is not None
    assert cancelled['changeLog'][-1]['changes'] == {'status': {'from': 'pending', 'to': 'cancelled'}}

    after = summary(owner_client, tenant_id)
    assert after['paymentDue'] == 0
    assert after['cancelledCount'] == 1

    history = owner_client.get(f'/api/rent-payments?tenantId={tenant_id}').get_json()
    assert [p['id'] for p in history] == [payment_id]
    assert history[0]['status'] == 'cancelled'


def test_cancelled_payment_is_terminal(owner_client, seeded):
    payment_id = add_payment(owner_client, seeded['tenant_id']).get_json()['id']
    owner_client.delete(f'/api/rent-payments/{payment_id}/remove', json={'message': 'Duplicate entry'})

    resp = owner_client.put(f'/api/rent-payments/{payment_id}/edit',
                            json={'status': 'paid', 'message': 'Undo'})
    assert resp.status_code == 409

    resp = owner_client.delete(f'/api/rent-payments/{payment_id}/remove', json={'message': 'Again'})
    assert resp.status_code == 409


def test_edit_cannot_cancel(owner_client, seeded):
    payment_id = add_payment(owner_client, seeded['tenant_id']).get_json()['id']
    resp = owner_client.put(f'/api/rent-payments/{payment_id}/edit',
                            json={'status': 'cancelled', 'message': 'Shortcut'})
    assert resp.status_code == 400


def test_history_is_newest_first_and_limited(owner_client, seeded):
    tenant_id = seeded['tenant_id']
    for month, due in (('January', '2024-01-15'), ('February', '2024-02-15'), ('March', '2024-03-15')):
        assert add_payment(owner_client, tenant_id, month=month, dueDate=due).status_code == 201

    history = owner_client.get(f'/api/rent-payments?tenantId={tenant_id}').get_json()
    assert [p['month'] for p in history] == ['March', 'February', 'January']

    limited = owner_client.get(f'/api/rent-payments?tenantId={tenant_id}&limit=2').get_json()
    assert [p['month'] for p in limited] == ['March', 'February']

    assert owner_client.get('/api/rent-payments').status_code == 400


def test_overdue_is_derived_not_stored(app, owner_client, seeded):
    payment_id = add_payment(owner_client, seeded['tenant_id'], status='pending').get_json()['id']

    data = owner_client.get(f'/api/rent-payments/{payment_id}').get_json()
    assert data['status'] == 'pending'
    assert data['effectiveStatus'] == 'overdue'
    assert data['isVisible'] is True
    with app.app_context():
        assert db.session.get(RentPayment, payment_id).status == 'pending'


def test_refresh_endpoint(app, owner_client, seeded):
    resp = owner_client.post('/api/rent-payments/refresh', json={'blockId': seeded['block_id']})
    assert resp.status_code == 200
    assert resp.get_json()['currentMonthGenerated'] == 1

    resp = owner_client.post('/api/rent-payments/refresh', json={'blockId': seeded['block_id']})
    assert resp.get_json()['currentMonthGenerated'] == 0

    today = date.today()
    with app.app_context():
        monthly = RentPayment.query.filter_by(tenant_id=seeded['tenant_id'], payment_type='monthly',
                                              year=today.year).all()
        assert len([p for p in monthly if p.due_date.month == today.month]) == 1

    assert owner_client.post('/api/rent-payments/refresh', json={}).status_code == 400


def test_payments_of_other_owners_are_hidden(owner_client, other_client, seeded):
    payment_id = add_payment(owner_client, seeded['tenant_id']).get_json()['id']

    assert other_client.get(f'/api/rent-payments/{payment_id}').status_code == 404
    assert other_client.put(f'/api/rent-payments/{payment_id}/edit',
                            json={'status': 'pending', 'message': 'x'}).status_code == 404
    assert other_client.delete(f'/api/rent-payments/{payment_id}/remove',
                               json={'message': 'x'}).status_code == 404
    assert other_client.get(f"/api/rent-payments?tenantId={seeded['tenant_id']}").status_code == 404
    assert other_client.post('/api/rent-payments/refresh',
                             json={'blockId': seeded['block_id']}).status_code == 404


def test_admin_can_edit_any_payment(app, owner_client, admin_client, seeded):
    payment_id = add_payment(owner_client, seeded['tenant_id']).get_json()['id']

    resp = admin_client.put(f'/api/rent-payments/{payment_id}/edit',
                            json={'paymentMethod': 'cash', 'message': 'Corrected method'})
    assert resp.status_code == 200
    with app.app_context():
        entry = PaymentChangeLog.query.filter_by(payment_id=payment_id).one()
        assert entry.user.username == 'root'
