"""
Test configuration and fixtures.

Every test gets a fresh app bound to an in-memory SQLite database. Fixtures
return plain ids; tests open an app context when they need the ORM.
"""
from datetime import date

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from config import TestingConfig
from models import db, User, Hostel, Block, RoomComponent, RoomType, Tenant

PASSWORD = 'secret123'


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(app, username, role='owner'):
    with app.app_context():
        user = User(username=username, name=username.title(),
                    password_hash=generate_password_hash(PASSWORD), role=role)
        db.session.add(user)
        db.session.commit()
        return user.id


def login(client, username):
    resp = client.post('/api/auth/login', json={'username': username, 'password': PASSWORD})
    assert resp.status_code == 200, resp.get_json()
    return resp


@pytest.fixture
def owner_id(app):
    return make_user(app, 'owner')


@pytest.fixture
def owner_client(app, owner_id):
    client = app.test_client()
    login(client, 'owner')
    return client


@pytest.fixture
def other_client(app):
    make_user(app, 'intruder')
    client = app.test_client()
    login(client, 'intruder')
    return client


@pytest.fixture
def admin_client(app):
    make_user(app, 'root', role='admin')
    client = app.test_client()
    login(client, 'root')
    return client


@pytest.fixture
def seeded(app, owner_id):
    """A hostel with one block, a 'Double Sharing' room type and an active tenant."""
    with app.app_context():
        hostel = Hostel(name='Sunrise PG', city='Pune', owner_id=owner_id)
        db.session.add(hostel)
        db.session.flush()

        block = Block(name='Block A', hostel_id=hostel.id, owner_id=owner_id,
                      payment_generation_type='join_date_based', payment_visibility_days=2,
                      rent_generation_day=5)
        db.session.add(block)
        db.session.flush()

        wifi = RoomComponent(block_id=block.id, name='Wi-Fi', description='100 Mbps fibre')
        cupboard = RoomComponent(block_id=block.id, name='Cupboard', description='Steel cupboard')
        db.session.add_all([wifi, cupboard])
        db.session.flush()

        room_type = RoomType(block_id=block.id, name='Double Sharing', description='Two beds', rent=6500.0)
        room_type.set_components([wifi, cupboard])
        db.session.add(room_type)

        tenant = Tenant(block_id=block.id, name='Asha Rao', phone='9876543210',
                        room_number='101', room_type='Double Sharing',
                        join_date=date(2024, 1, 15), status='active')
        db.session.add(tenant)
        db.session.commit()

        return {
            'hostel_id': hostel.id,
            'block_id': block.id,
            'room_type_id': room_type.id,
            'component_ids': [wifi.id, cupboard.id],
            'tenant_id': tenant.id,
        }
