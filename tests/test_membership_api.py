import pytest

from conftest import make_user, login


@pytest.fixture
def staff_client(app):
    make_user(app, 'warden')
    client = app.test_client()
    login(client, 'warden')
    return client


def join_code(owner_client, hostel_id):
    resp = owner_client.get(f'/api/hostels/{hostel_id}/users')
    assert resp.status_code == 200
    return resp.get_json()['joinCode']


def member_user_id(owner_client, hostel_id, username='warden'):
    users = owner_client.get(f'/api/hostels/{hostel_id}/users').get_json()['users']
    return next(u['userId'] for u in users if u['username'] == username)


def test_join_request_starts_pending(owner_client, staff_client, seeded):
    hostel_id = seeded['hostel_id']
    code = join_code(owner_client, hostel_id)

    resp = staff_client.post('/api/hostels/join', json={'joinCode': f' {code.lower()} '})
    assert resp.status_code == 201
    data = resp.get_json()
    assert data['hostel'] == {'id': hostel_id, 'name': 'Sunrise PG'}
    assert data['member']['status'] == 'pending'
    assert data['member']['role'] == 'staff'

    # No access until approved
    assert staff_client.get(f"/api/blocks/{seeded['block_id']}").status_code == 404
    assert staff_client.get('/api/blocks').get_json() == []

    pending = owner_client.get(f'/api/hostels/{hostel_id}/pending-users').get_json()
    assert pending['count'] == 1
    assert pending['users'][0]['username'] == 'warden'


def test_approved_member_manages_blocks(owner_client, staff_client, seeded):
    hostel_id = seeded['hostel_id']
    staff_client.post('/api/hostels/join', json={'joinCode': join_code(owner_client, hostel_id)})
    user_id = member_user_id(owner_client, hostel_id)

    resp = owner_client.put(f'/api/hostels/{hostel_id}/users/{user_id}', json={'status': 'approved'})
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'approved'
    assert resp.get_json()['decidedAt'] is not None
    assert owner_client.get(f'/api/hostels/{hostel_id}/pending-users').get_json()['count'] == 0

    block_id = seeded['block_id']
    assert staff_client.get(f'/api/blocks/{block_id}').status_code == 200
    assert [b['name'] for b in staff_client.get('/api/blocks').get_json()] == ['Block A']
    assert [h['name'] for h in staff_client.get('/api/hostels').get_json()] == ['Sunrise PG']
    assert staff_client.get(f'/api/blocks/{block_id}/tenants').status_code == 200
    assert staff_client.post('/api/rent-payments/refresh', json={'blockId': block_id}).status_code == 200


def test_staff_cannot_manage_members(owner_client, staff_client, seeded):
    hostel_id = seeded['hostel_id']
    staff_client.post('/api/hostels/join', json={'joinCode': join_code(owner_client, hostel_id)})
    user_id = member_user_id(owner_client, hostel_id)
    owner_client.put(f'/api/hostels/{hostel_id}/users/{user_id}', json={'status': 'approved'})

    assert staff_client.get(f'/api/hostels/{hostel_id}/users').status_code == 403
    assert staff_client.get(f'/api/hostels/{hostel_id}/pending-users').status_code == 403

    # A manager may, but not on their own membership
    owner_client.put(f'/api/hostels/{hostel_id}/users/{user_id}', json={'role': 'manager'})
    assert staff_client.get(f'/api/hostels/{hostel_id}/users').status_code == 200
    resp = staff_client.put(f'/api/hostels/{hostel_id}/users/{user_id}', json={'role': 'staff'})
    assert resp.status_code == 403


def test_rejecting_and_removing_revokes_access(owner_client, staff_client, seeded):
    hostel_id = seeded['hostel_id']
    block_id = seeded['block_id']
    staff_client.post('/api/hostels/join', json={'joinCode': join_code(owner_client, hostel_id)})
    user_id = member_user_id(owner_client, hostel_id)
    url = f'/api/hostels/{hostel_id}/users/{user_id}'

    owner_client.put(url, json={'status': 'approved'})
    assert staff_client.get(f'/api/blocks/{block_id}').status_code == 200

    owner_client.put(url, json={'status': 'rejected'})
    assert staff_client.get(f'/api/blocks/{block_id}').status_code == 404

    assert owner_client.delete(url).status_code == 200
    assert owner_client.get(f'/api/hostels/{hostel_id}/users').get_json()['users'] == []
    assert owner_client.delete(url).status_code == 404


def test_member_update_validates_input(owner_client, staff_client, seeded):
    hostel_id = seeded['hostel_id']
    staff_client.post('/api/hostels/join', json={'joinCode': join_code(owner_client, hostel_id)})
    url = f'/api/hostels/{hostel_id}/users/{member_user_id(owner_client, hostel_id)}'

    assert owner_client.put(url, json={}).status_code == 400
    assert owner_client.put(url, json={'role': 'owner'}).status_code == 400
    assert owner_client.put(url, json={'status': 'banned'}).status_code == 400
    assert owner_client.put(f'/api/hostels/{hostel_id}/users/9999', json={'status': 'approved'}).status_code == 404


def test_join_rejects_bad_requests(owner_client, staff_client, other_client, seeded):
    hostel_id = seeded['hostel_id']
    code = join_code(owner_client, hostel_id)

    assert staff_client.post('/api/hostels/join', json={'joinCode': 'NOPE1234'}).status_code == 404
    assert staff_client.post('/api/hostels/join', json={}).status_code == 400
    assert owner_client.post('/api/hostels/join', json={'joinCode': code}).status_code == 400

    assert staff_client.post('/api/hostels/join', json={'joinCode': code}).status_code == 201
    assert staff_client.post('/api/hostels/join', json={'joinCode': code}).status_code == 400

    # Outsiders cannot read the member list or the join code
    assert other_client.get(f'/api/hostels/{hostel_id}/users').status_code == 404
