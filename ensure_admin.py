"""
Creates the admin account, or resets its password when it already exists.

    python ensure_admin.py [username] [password]

Falls back to ADMIN_USERNAME / ADMIN_PASSWORD from the active config.
"""
import sys

from werkzeug.security import generate_password_hash

from app import create_app
from models import db, User


def ensure_admin(app, username=None, password=None):
    username = username or app.config['ADMIN_USERNAME']
    password = password or app.config['ADMIN_PASSWORD']

    with app.app_context():
        user = User.query.filter_by(username=username).first()
        if not user:
            user = User(username=username, name='Administrator',
                        password_hash=generate_password_hash(password), role='admin')
            db.session.add(user)
            db.session.commit()
            app.logger.info("Admin user %s created.", username)
            return True

        user.password_hash = generate_password_hash(password)
        user.role = 'admin'
        db.session.commit()
        app.logger.info("Admin user %s already exists, password reset.", username)
        return False


if __name__ == '__main__':
    ensure_admin(create_app(), *sys.argv[1:3])
