from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from models import db, Hostel, HostelMember, HostelProfile, utcnow
from errors import ApiError, NotFound
from utils import (
    log_audit, get_json_body, require_fields, can_manage, can_manage_members,
    get_hostel_or_404, accessible_hostels_query
)

hostels_bp = Blueprint('hostels', __name__, url_prefix='/api/hostels')

ACCOMMODATION_TYPES = ('boys', 'girls', 'coed', 'separate')


@hostels_bp.route('', methods=['GET'])
@login_required
def list_hostels():
    hostels = accessible_hostels_query().order_by(Hostel.created_at.desc()).all()
    return jsonify([h.to_dict() for h in hostels])


@hostels_bp.route('', methods=['POST'])
@login_required
def create_hostel():
    data = get_json_body()
    require_fields(data, 'name')

    hostel = Hostel(
        name=data['name'].strip(),
        address=data.get('address'),
        city=data.get('city'),
        state=data.get('state'),
        zip_code=data.get('zipCode'),
        owner_id=current_user.id
    )
    db.session.add(hostel)
    db.session.commit()
    log_audit('CREATE', 'Hostel', hostel.id, f"Created hostel {hostel.name}")
    return jsonify(hostel.to_dict()), 201


def _apply_profile(profile, data, hostel):
    """Copy the nested profile payload onto the row, keeping unspecified fields."""
    basic = data.get('basicInfo') or {}
    if not isinstance(basic, dict):
        raise ApiError('basicInfo must be an object')

    profile.name = basic.get('name') or profile.name or hostel.name
    for key, attr in (('description', 'description'), ('address', 'address'), ('landmark', 'landmark'),
                      ('city', 'city'), ('state', 'state'), ('pincode', 'pincode'),
                      ('contactNumber', 'contact_number'), ('email', 'email')):
        if key in basic:
            setattr(profile, attr, basic[key])

    if 'isOnlinePresenceEnabled' in data:
        profile.is_online_presence_enabled = bool(data['isOnlinePresenceEnabled'])

    if 'accommodationType' in data:
        if data['accommodationType'] not in ACCOMMODATION_TYPES:
            raise ApiError(f"Invalid accommodation type: {data['accommodationType']}")
        profile.accommodation_type = data['accommodationType']

    for key, attr in (('amenities', 'amenities'), ('photos', 'photos')):
        if key in data:
            if not isinstance(data[key], list):
                raise ApiError(f"{key} must be a list")
            setattr(profile, attr, [str(v) for v in data[key]])

    if 'rulesAndPolicies' in data:
        profile.rules_and_policies = data['rulesAndPolicies']
    if 'googleMapLink' in data:
        profile.google_map_link = data['googleMapLink']


def _new_profile(hostel):
    return HostelProfile(
        hostel_id=hostel.id,
        name=hostel.name,
        address=hostel.address,
        city=hostel.city,
        state=hostel.state,
        pincode=hostel.zip_code,
        accommodation_type='boys',
        amenities=[],
        photos=[]
    )


@hostels_bp.route('/<int:hostel_id>/profile', methods=['GET'])
def get_profile(hostel_id):
    """Public hostel page. Hidden unless online presence is switched on."""
    profile = HostelProfile.query.filter_by(hostel_id=hostel_id).first()
    if not profile:
        raise NotFound('Profile not found')

    is_manager = current_user.is_authenticated and can_manage(profile.hostel.owner_id, profile.hostel_id)
    if not profile.is_online_presence_enabled and not is_manager:
        raise NotFound('Profile not found')

    return jsonify(profile.to_dict())


@hostels_bp.route('/<int:hostel_id>/profile', methods=['POST'])
@login_required
def create_profile(hostel_id):
    hostel = get_hostel_or_404(hostel_id)
    if hostel.profile:
        raise ApiError('Profile already exists')

    data = get_json_body()
    profile = _new_profile(hostel)
    _apply_profile(profile, data, hostel)
    db.session.add(profile)
    db.session.commit()
    log_audit('CREATE', 'HostelProfile', profile.id, f"Created profile for hostel {hostel.name}")
    return jsonify(profile.to_dict()), 201


@hostels_bp.route('/<int:hostel_id>/profile', methods=['PUT'])
@login_required
def update_profile(hostel_id):
    hostel = get_hostel_or_404(hostel_id)
    data = get_json_body()

    profile = hostel.profile
    created = profile is None
    if created:
        profile = _new_profile(hostel)
        db.session.add(profile)

    _apply_profile(profile, data, hostel)
    db.session.commit()
    log_audit('CREATE' if created else 'UPDATE', 'HostelProfile', profile.id,
              f"{'Created' if created else 'Updated'} profile for hostel {hostel.name}")
    return jsonify(profile.to_dict())


# --- Members ---

MEMBER_ROLES = ('staff', 'manager')
MEMBER_STATUSES = ('pending', 'approved', 'rejected')


def _get_member_admin_hostel(hostel_id):
    hostel = get_hostel_or_404(hostel_id)
    if not can_manage_members(hostel):
        raise ApiError('Only the owner or a manager can manage members', 403)
    return hostel


def _get_member_or_404(hostel, user_id):
    member = HostelMember.query.filter_by(hostel_id=hostel.id, user_id=user_id).first()
    if not member:
        raise NotFound('User not found in hostel')
    return member


@hostels_bp.route('/join', methods=['POST'])
@login_required
def join_hostel():
    """Asks to join a hostel by its join code. The owner approves the request."""
    data = get_json_body()
    require_fields(data, 'joinCode')

    hostel = Hostel.query.filter_by(join_code=str(data['joinCode']).strip().upper()).first()
    if not hostel:
        raise NotFound('Invalid join code')
    if hostel.owner_id == current_user.id:
        raise ApiError('You already own this hostel')
    if HostelMember.query.filter_by(hostel_id=hostel.id, user_id=current_user.id).first():
        raise ApiError('User is already associated with this hostel')

    member = HostelMember(hostel_id=hostel.id, user_id=current_user.id, role='staff', status='pending')
    db.session.add(member)
    db.session.commit()
    log_audit('CREATE', 'HostelMember', member.id, f"{current_user.username} asked to join hostel {hostel.name}")
    return jsonify(message='Join request sent successfully', hostel={'id': hostel.id, 'name': hostel.name},
                   member=member.to_dict()), 201


@hostels_bp.route('/<int:hostel_id>/users', methods=['GET'])
@login_required
def list_members(hostel_id):
    hostel = _get_member_admin_hostel(hostel_id)
    members = HostelMember.query.filter_by(hostel_id=hostel.id).order_by(HostelMember.joined_at).all()
    return jsonify(users=[m.to_dict() for m in members], hostelName=hostel.name, joinCode=hostel.join_code)


@hostels_bp.route('/<int:hostel_id>/pending-users', methods=['GET'])
@login_required
def list_pending_members(hostel_id):
    hostel = _get_member_admin_hostel(hostel_id)
    pending = HostelMember.query.filter_by(hostel_id=hostel.id, status='pending')\
        .order_by(HostelMember.joined_at).all()
    return jsonify(count=len(pending), users=[m.to_dict() for m in pending])


@hostels_bp.route('/<int:hostel_id>/users/<int:user_id>', methods=['PUT'])
@login_required
def update_member(hostel_id, user_id):
    hostel = _get_member_admin_hostel(hostel_id)
    member = _get_member_or_404(hostel, user_id)
    if member.user_id == current_user.id:
        raise ApiError('You cannot change your own membership', 403)

    data = get_json_body()
    role = data.get('role')
    status = data.get('status')
    if not role and not status:
        raise ApiError('Role or status is required')
    if role and role not in MEMBER_ROLES:
        raise ApiError(f"Invalid role: {role}")
    if status and status not in MEMBER_STATUSES:
        raise ApiError(f"Invalid status: {status}")

    if role:
        member.role = role
    if status and status != member.status:
        member.status = status
        member.decided_at = utcnow()

    db.session.commit()
    log_audit('UPDATE', 'HostelMember', member.id,
              f"{member.user.username} in hostel {hostel.name}: {member.role}, {member.status}")
    return jsonify(member.to_dict())


@hostels_bp.route('/<int:hostel_id>/users/<int:user_id>', methods=['DELETE'])
@login_required
def remove_member(hostel_id, user_id):
    hostel = _get_member_admin_hostel(hostel_id)
    member = _get_member_or_404(hostel, user_id)

    username = member.user.username
    db.session.delete(member)
    db.session.commit()
    log_audit('DELETE', 'HostelMember', user_id, f"Removed {username} from hostel {hostel.name}")
    return jsonify(message='User removed from hostel')
