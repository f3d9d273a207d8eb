import logging
import os
from flask import Flask, jsonify
from flask_cors import CORS
from flask_login import LoginManager
from werkzeug.security import generate_password_hash
from werkzeug.utils import import_string
from config import CONFIGS
from models import db, User, utcnow
from errors import register_error_handlers
from routes.auth import auth_bp
from routes.hostels import hostels_bp
from routes.blocks import blocks_bp
from routes.tenants import tenants_bp
from routes.rent_payments import rent_payments_bp
from routes.public import public_bp
from routes.dashboard import dashboard_bp
from routes.reports import reports_bp


def _load_config(app, config_object):
    if config_object is None:
        config_object = os.environ.get('CONFIG_CLASS', 'config.DevelopmentConfig')
    if isinstance(config_object, str):
        # 'production' or a dotted path such as 'config.ProductionConfig'
        config_object = CONFIGS.get(config_object) or import_string(config_object)

    # ProductionConfig refuses to start without a real secret
    validate = getattr(config_object, 'validate', None)
    if callable(validate):
        validate()
    app.config.from_object(config_object)


def _configure_logging(app):
    level = app.config.get('LOG_LEVEL', 'INFO')
    app.logger.setLevel(level)

    # avoid duplicate handlers when the factory runs more than once
    if not any(getattr(h, '_hostel_handler', False) for h in app.logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s [%(name)s] %(message)s'))
        handler._hostel_handler = True
        app.logger.addHandler(handler)


def create_app(config_object=None):
    app = Flask(__name__)
    _load_config(app, config_object)
    _configure_logging(app)

    db.init_app(app)

    CORS(app, resources={r"/api/*": {"origins": app.config['CORS_ALLOWED_ORIGINS']}},
         supports_credentials=True)

    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify(error='Authentication required'), 401

    register_error_handlers(app)

    # Register Blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(hostels_bp)
    app.register_blueprint(blocks_bp)
    app.register_blueprint(tenants_bp)
    app.register_blueprint(rent_payments_bp)
    app.register_blueprint(public_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(reports_bp)

    @app.route('/api/health')
    def health():
        return jsonify(status='ok', time=utcnow().isoformat() + 'Z')

    with app.app_context():
        db.create_all()
        if app.config.get('SEED_ADMIN'):
            _seed_admin(app)

    return app


def _seed_admin(app):
    username = app.config['ADMIN_USERNAME']
    if not User.query.filter_by(username=username).first():
        admin = User(
            username=username,
            name='Administrator',
            password_hash=generate_password_hash(app.config['ADMIN_PASSWORD']),
            role='admin'
        )
        db.session.add(admin)
        db.session.commit()
        app.logger.info("Created default admin user %s.", username)


if __name__ == '__main__':
    app = create_app()
    app.run(debug=app.config.get('DEBUG', False))
