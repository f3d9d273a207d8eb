import pytest
from werkzeug.security import check_password_hash

from app import create_app
from config import ProductionConfig, TestingConfig
from ensure_admin import ensure_admin
from models import db, User


class SeededConfig(TestingConfig):
    SEED_ADMIN = True
    ADMIN_USERNAME = 'boss'
    ADMIN_PASSWORD = 'boss-pass'


def test_production_requires_secret_key(monkeypatch):
    monkeypatch.setattr(ProductionConfig, 'SECRET_KEY', None)
    with pytest.raises(ValueError):
        create_app(ProductionConfig)


def test_config_by_name(monkeypatch):
    app = create_app('testing')
    assert app.config['TESTING'] is True
    assert app.config['SQLALCHEMY_DATABASE_URI'] == 'sqlite://'

    monkeypatch.setenv('CONFIG_CLASS', 'config.TestingConfig')
    assert create_app().config['SEED_ADMIN'] is False


def test_admin_seeded_on_start():
    app = create_app(SeededConfig)
    client = app.test_client()
    resp = client.post('/api/auth/login', json={'username': 'boss', 'password': 'boss-pass'})
    assert resp.status_code == 200
    assert resp.get_json()['role'] == 'admin'


def test_ensure_admin_creates_then_resets(app):
    assert ensure_admin(app, 'warden', 'first-pass') is True
    assert ensure_admin(app, 'warden', 'second-pass') is False

    with app.app_context():
        user = User.query.filter_by(username='warden').one()
        assert user.role == 'admin'
        assert check_password_hash(user.password_hash, 'second-pass')
        assert User.query.count() == 1


def test_new_blocks_use_configured_defaults(app, owner_client, seeded):
    app.config['DEFAULT_PAYMENT_GENERATION_TYPE'] = 'global'
    app.config['DEFAULT_RENT_GENERATION_DAY'] = 7

    resp = owner_client.post('/api/blocks', json={'name': 'Block C', 'hostelId': seeded['hostel_id']})
    data = resp.get_json()
    assert data['paymentGenerationType'] == 'global'
    assert data['rentGenerationDay'] == '7'

    resp = owner_client.post('/api/blocks', json={
        'name': 'Block D', 'hostelId': seeded['hostel_id'], 'paymentVisibilityDays': 0
    })
    assert resp.get_json()['paymentVisibilityDays'] == 0
