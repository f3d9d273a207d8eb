from flask import Blueprint, jsonify, request
from flask_login import login_user, logout_user, login_required, current_user
from werkzeug.security import check_password_hash, generate_password_hash
from models import User, AuditLog, db
from functools import wraps
from errors import ApiError, Conflict

auth_bp = Blueprint('auth', __name__, url_prefix='/api')

USER_ROLES = ('admin', 'owner', 'staff')


def role_required(*roles):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_user.is_authenticated:
                return jsonify(error='Authentication required'), 401

            # Allow Admin to access everything
            if current_user.role == 'admin':
                return f(*args, **kwargs)

            if current_user.role not in roles:
                return jsonify(error='You do not have permission to access this resource.'), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator

from utils import log_audit, get_json_body, require_fields


@auth_bp.route('/auth/login', methods=['POST'])
def login():
    data = get_json_body()
    username = data.get('username')
    password = data.get('password')

    user = User.query.filter_by(username=username).first()

    if user and password and check_password_hash(user.password_hash, password):
        login_user(user)
        log_audit('LOGIN', 'User', user.id, 'User logged in')
        return jsonify(user.to_dict())

    return jsonify(error='Invalid username or password'), 401


@auth_bp.route('/auth/logout', methods=['POST'])
@login_required
def logout():
    log_audit('LOGOUT', 'User', current_user.id, 'User logged out')
    logout_user()
    return jsonify(message='Logged out')


@auth_bp.route('/auth/me')
@login_required
def me():
    return jsonify(current_user.to_dict())


@auth_bp.route('/audit-logs')
@login_required
@role_required('admin')
def view_audit_logs():
    limit = min(request.args.get('limit', 100, type=int), 500)
    logs = AuditLog.query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify([log.to_dict() for log in logs])


@auth_bp.route('/users', methods=['GET'])
@login_required
@role_required('admin')
def list_users():
    users = User.query.order_by(User.id).all()
    return jsonify([u.to_dict() for u in users])


@auth_bp.route('/users', methods=['POST'])
@login_required
@role_required('admin')
def register_user():
    data = get_json_body()
    require_fields(data, 'username', 'password')

    username = data['username'].strip()
    role = data.get('role', 'owner')
    if role not in USER_ROLES:
        raise ApiError(f"Invalid role: {role}")

    if len(data['password']) < 6:
        raise ApiError('Password must be at least 6 characters')

    # Check if user exists
    if User.query.filter_by(username=username).first():
        raise Conflict('Username already exists')

    new_user = User(
        username=username,
        name=data.get('name'),
        password_hash=generate_password_hash(data['password']),
        role=role
    )
    db.session.add(new_user)
    db.session.commit()

    log_audit('CREATE', 'User', new_user.id, f"Created user {username} as {role}")
    return jsonify(new_user.to_dict()), 201
