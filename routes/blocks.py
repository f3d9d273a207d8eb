from datetime import date
from flask import Blueprint, jsonify, current_app
from flask_login import login_required
from models import db, Block, BlockProfile, HostelProfile, RoomComponent, RoomType, RoomTypeComponent, Tenant
from errors import ApiError, Conflict, NotFound
from routes.hostels import ACCOMMODATION_TYPES
from services.rent_schedule import GENERATION_TYPES, MIN_GENERATION_DAY, MAX_GENERATION_DAY, MAX_VISIBILITY_DAYS
from utils import (
    log_audit, get_json_body, require_fields, to_money, parse_int,
    get_block_or_404, get_hostel_or_404, accessible_blocks_query
)

blocks_bp = Blueprint('blocks', __name__, url_prefix='/api/blocks')


@blocks_bp.route('', methods=['GET'])
@login_required
def list_blocks():
    blocks = accessible_blocks_query().order_by(Block.created_at.desc(), Block.id.desc()).all()
    return jsonify([b.to_dict() for b in blocks])


@blocks_bp.route('', methods=['POST'])
@login_required
def create_block():
    data = get_json_body()
    require_fields(data, 'name', 'hostelId')
    hostel = get_hostel_or_404(parse_int(data['hostelId'], 'hostelId'))

    block = Block(
        name=data['name'].strip(),
        description=data.get('description'),
        hostel_id=hostel.id,
        owner_id=hostel.owner_id,
        rent_generation_day=current_app.config['DEFAULT_RENT_GENERATION_DAY'],
        payment_generation_type=current_app.config['DEFAULT_PAYMENT_GENERATION_TYPE'],
        payment_visibility_days=current_app.config['DEFAULT_PAYMENT_VISIBILITY_DAYS']
    )
    _apply_payment_settings(block, data)
    db.session.add(block)
    db.session.commit()
    log_audit('CREATE', 'Block', block.id, f"Created block {block.name} in hostel {hostel.name}")
    return jsonify(block.to_dict()), 201


@blocks_bp.route('/<int:block_id>', methods=['GET'])
@login_required
def get_block(block_id):
    block = get_block_or_404(block_id)
    return jsonify(block.to_dict())


@blocks_bp.route('/<int:block_id>', methods=['PUT'])
@login_required
def update_block(block_id):
    block = get_block_or_404(block_id)
    data = get_json_body()

    if 'name' in data:
        if not (data['name'] or '').strip():
            raise ApiError('Block name cannot be empty')
        block.name = data['name'].strip()
    if 'description' in data:
        block.description = data['description']

    db.session.commit()
    log_audit('UPDATE', 'Block', block.id, f"Updated block {block.name}")
    return jsonify(block.to_dict())


@blocks_bp.route('/<int:block_id>', methods=['DELETE'])
@login_required
def delete_block(block_id):
    block = get_block_or_404(block_id)
    if Tenant.query.filter_by(block_id=block.id).count():
        raise Conflict('Cannot delete a block that still has tenants')

    name = block.name
    db.session.delete(block)
    db.session.commit()
    log_audit('DELETE', 'Block', block_id, f"Deleted block {name}")
    return jsonify(message='Block deleted successfully')


# --- Payment Settings ---

def _apply_payment_settings(block, data):
    if 'rentGenerationDay' in data:
        day = parse_int(data['rentGenerationDay'], 'rentGenerationDay')
        if not MIN_GENERATION_DAY <= day <= MAX_GENERATION_DAY:
            raise ApiError(f"rentGenerationDay must be between {MIN_GENERATION_DAY} and {MAX_GENERATION_DAY}")
        block.rent_generation_day = day

    if 'rentGenerationEnabled' in data:
        if not isinstance(data['rentGenerationEnabled'], bool):
            raise ApiError('rentGenerationEnabled must be true or false')
        block.rent_generation_enabled = data['rentGenerationEnabled']

    if 'paymentGenerationType' in data:
        if data['paymentGenerationType'] not in GENERATION_TYPES:
            raise ApiError(f"paymentGenerationType must be one of: {', '.join(GENERATION_TYPES)}")
        block.payment_generation_type = data['paymentGenerationType']

    if 'paymentVisibilityDays' in data:
        days = parse_int(data['paymentVisibilityDays'], 'paymentVisibilityDays')
        if not 0 <= days <= MAX_VISIBILITY_DAYS:
            raise ApiError(f"paymentVisibilityDays must be between 0 and {MAX_VISIBILITY_DAYS}")
        block.payment_visibility_days = days


@blocks_bp.route('/<int:block_id>/payment-settings', methods=['GET'])
@login_required
def get_payment_settings(block_id):
    block = get_block_or_404(block_id)
    return jsonify(block.payment_settings())


@blocks_bp.route('/<int:block_id>/payment-settings', methods=['PUT'])
@login_required
def update_payment_settings(block_id):
    block = get_block_or_404(block_id)
    data = get_json_body()
    before = block.payment_settings()

    _apply_payment_settings(block, data)
    db.session.commit()

    after = block.payment_settings()
    changed = [k for k in after if after[k] != before[k]]
    if changed:
        log_audit('UPDATE', 'Block', block.id,
                  "Payment settings: " + ", ".join(f"{k} {before[k]} -> {after[k]}" for k in changed))
    return jsonify(after)


# --- Room Components ---

@blocks_bp.route('/<int:block_id>/components', methods=['GET'])
@login_required
def list_components(block_id):
    block = get_block_or_404(block_id)
    components = RoomComponent.query.filter_by(block_id=block.id)\
        .order_by(RoomComponent.created_at.desc(), RoomComponent.id.desc()).all()
    return jsonify([c.to_dict() for c in components])


@blocks_bp.route('/<int:block_id>/components', methods=['POST'])
@login_required
def create_component(block_id):
    block = get_block_or_404(block_id)
    data = get_json_body()
    require_fields(data, 'name', 'description')

    component = RoomComponent(
        block_id=block.id,
        name=data['name'].strip(),
        description=data['description'].strip()
    )
    db.session.add(component)
    db.session.commit()
    log_audit('CREATE', 'RoomComponent', component.id, f"Created component {component.name}")
    return jsonify(component.to_dict()), 201


@blocks_bp.route('/<int:block_id>/components/<int:component_id>', methods=['DELETE'])
@login_required
def delete_component(block_id, component_id):
    block = get_block_or_404(block_id)
    component = RoomComponent.query.filter_by(id=component_id, block_id=block.id).first()
    if not component:
        raise NotFound('Component not found')

    if RoomTypeComponent.query.filter_by(component_id=component.id).count():
        raise Conflict('Component is used by a room type')

    db.session.delete(component)
    db.session.commit()
    log_audit('DELETE', 'RoomComponent', component_id, f"Deleted component {component.name}")
    return jsonify(message='Component deleted successfully')


# --- Room Types ---

def _resolve_components(block, ids):
    if not isinstance(ids, list):
        raise ApiError('components must be a list of component ids')

    resolved = []
    seen = set()
    for raw in ids:
        if raw in (None, ''):
            continue
        component_id = parse_int(raw, 'component id')
        if component_id in seen:
            continue
        component = RoomComponent.query.filter_by(id=component_id, block_id=block.id).first()
        if not component:
            raise ApiError(f"Unknown component: {component_id}")
        seen.add(component_id)
        resolved.append(component)

    if not resolved:
        raise ApiError('At least one valid component is required')
    return resolved


def _apply_media(room_type, data):
    if 'coverImage' in data:
        room_type.cover_image = data['coverImage']
    if 'galleryImages' in data:
        if not isinstance(data['galleryImages'], list):
            raise ApiError('galleryImages must be a list')
        room_type.gallery_images = [str(url) for url in data['galleryImages']]


@blocks_bp.route('/<int:block_id>/room-types', methods=['GET'])
@login_required
def list_room_types(block_id):
    block = get_block_or_404(block_id)
    room_types = RoomType.query.filter_by(block_id=block.id)\
        .order_by(RoomType.created_at.desc(), RoomType.id.desc()).all()
    return jsonify([rt.to_dict() for rt in room_types])


@blocks_bp.route('/<int:block_id>/room-types', methods=['POST'])
@login_required
def create_room_type(block_id):
    block = get_block_or_404(block_id)
    data = get_json_body()
    require_fields(data, 'name', 'description', 'components', 'rent')

    name = data['name'].strip()
    if RoomType.query.filter_by(block_id=block.id, name=name).first():
        raise Conflict(f"Room type {name} already exists")

    room_type = RoomType(
        block_id=block.id,
        name=name,
        description=data['description'].strip(),
        rent=to_money(data['rent'], 'rent'),
        gallery_images=[]
    )
    room_type.set_components(_resolve_components(block, data['components']))
    _apply_media(room_type, data)

    db.session.add(room_type)
    db.session.commit()
    log_audit('CREATE', 'RoomType', room_type.id, f"Created room type {name} with rent {room_type.rent}")
    return jsonify(room_type.to_dict()), 201


@blocks_bp.route('/<int:block_id>/room-types/<int:room_type_id>', methods=['PUT'])
@login_required
def update_room_type(block_id, room_type_id):
    block = get_block_or_404(block_id)
    room_type = RoomType.query.filter_by(id=room_type_id, block_id=block.id).first()
    if not room_type:
        raise NotFound('Room type not found')

    data = get_json_body()
    if 'name' in data:
        name = (data['name'] or '').strip()
        if not name:
            raise ApiError('Room type name cannot be empty')
        clash = RoomType.query.filter(RoomType.block_id == block.id, RoomType.name == name,
                                      RoomType.id != room_type.id).first()
        if clash:
            raise Conflict(f"Room type {name} already exists")
        room_type.name = name
    if 'description' in data:
        room_type.description = (data['description'] or '').strip()
    if 'rent' in data:
        room_type.rent = to_money(data['rent'], 'rent')
    if 'components' in data:
        room_type.set_components(_resolve_components(block, data['components']))
    _apply_media(room_type, data)

    db.session.commit()
    log_audit('UPDATE', 'RoomType', room_type.id, f"Updated room type {room_type.name}")
    return jsonify(room_type.to_dict())


@blocks_bp.route('/<int:block_id>/room-types/<int:room_type_id>', methods=['DELETE'])
@login_required
def delete_room_type(block_id, room_type_id):
    block = get_block_or_404(block_id)
    room_type = RoomType.query.filter_by(id=room_type_id, block_id=block.id).first()
    if not room_type:
        raise NotFound('Room type not found')

    name = room_type.name
    db.session.delete(room_type)
    db.session.commit()
    log_audit('DELETE', 'RoomType', room_type_id, f"Deleted room type {name}")
    return jsonify(message='Room type deleted successfully')


# --- Block Profile ---

BUILDING_TYPES = ('independent', 'apartment', 'commercial')
PHOTO_TYPES = ('boys', 'girls', 'common', 'exterior', 'interior', 'amenities')
LANDMARK_TYPES = ('hospital', 'school', 'market', 'transport', 'other')
TRANSPORT_MODES = ('bus', 'metro', 'train', 'auto')
DEFAULT_SAFETY_FEATURES = ('CCTV Surveillance', 'Security Guard', 'Biometric Access',
                           'Fire Safety Equipment', 'Emergency Exit', 'First Aid Kit')


def _object_list(data, key):
    items = data[key]
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        raise ApiError(f"{key} must be a list of objects")
    return items


def _checked_type(value, allowed, what):
    if value not in allowed:
        raise ApiError(f"Invalid {what}: {value}")
    return value


def _photos(items):
    photos = []
    for item in items:
        if not item.get('url'):
            raise ApiError('Every photo needs a url')
        photos.append({
            'url': str(item['url']),
            'title': item.get('title') or '',
            'description': item.get('description') or '',
            'type': _checked_type(item.get('type', 'common'), PHOTO_TYPES, 'photo type'),
            'isMain': bool(item.get('isMain')),
        })
    return photos


def _apply_block_profile(profile, data, block):
    basic = data.get('basicInfo') or {}
    details = data.get('propertyDetails') or {}
    location = data.get('locationInfo') or {}
    media = data.get('media') or {}
    for key, section in (('basicInfo', basic), ('propertyDetails', details),
                         ('locationInfo', location), ('media', media)):
        if not isinstance(section, dict):
            raise ApiError(f"{key} must be an object")

    profile.name = str(basic.get('name') or profile.name or block.name).strip()
    for key, attr in (('description', 'description'), ('address', 'address'), ('landmark', 'landmark'),
                      ('city', 'city'), ('state', 'state'), ('pincode', 'pincode'),
                      ('contactNumber', 'contact_number'), ('email', 'email')):
        if key in basic:
            setattr(profile, attr, basic[key])

    for key, attr in (('totalFloors', 'total_floors'), ('totalRooms', 'total_rooms')):
        if key in details:
            value = parse_int(details[key], key)
            if value < 1:
                raise ApiError(f"{key} must be at least 1")
            setattr(profile, attr, value)
    if 'accommodationType' in details:
        profile.accommodation_type = _checked_type(details['accommodationType'], ACCOMMODATION_TYPES,
                                                   'accommodation type')
    if 'buildingType' in details:
        profile.building_type = _checked_type(details['buildingType'], BUILDING_TYPES, 'building type')
    if 'establishedYear' in details:
        year = details['establishedYear']
        profile.established_year = None if year in (None, '') else parse_int(year, 'establishedYear')

    if 'googleMapLink' in location:
        profile.google_map_link = location['googleMapLink']
    for key in ('latitude', 'longitude'):
        if key in location:
            value = location[key]
            try:
                setattr(profile, key, None if value in (None, '') else float(value))
            except (TypeError, ValueError):
                raise ApiError(f"{key} must be a number")
    if 'nearbyLandmarks' in location:
        profile.nearby_landmarks = [
            {'name': str(item.get('name') or ''), 'distance': str(item.get('distance') or ''),
             'type': _checked_type(item.get('type', 'other'), LANDMARK_TYPES, 'landmark type')}
            for item in _object_list(location, 'nearbyLandmarks')
        ]
    if 'transportConnectivity' in location:
        profile.transport_connectivity = [
            {'mode': _checked_type(item.get('mode'), TRANSPORT_MODES, 'transport mode'),
             'distance': str(item.get('distance') or ''), 'details': item.get('details') or ''}
            for item in _object_list(location, 'transportConnectivity')
        ]

    if 'photos' in media:
        profile.photos = _photos(_object_list(media, 'photos'))
    if 'virtualTourLink' in media:
        profile.virtual_tour_link = media['virtualTourLink']

    if 'amenities' in data:
        profile.amenities = [
            {'name': str(item.get('name') or ''), 'available': bool(item.get('available', True)),
             'description': item.get('description') or '', 'floor': str(item.get('floor') or '')}
            for item in _object_list(data, 'amenities')
        ]
    if 'safetyFeatures' in data:
        profile.safety_features = [
            {'feature': str(item.get('feature') or ''), 'available': bool(item.get('available')),
             'details': item.get('details') or ''}
            for item in _object_list(data, 'safetyFeatures')
        ]


def _new_block_profile(block):
    return BlockProfile(block_id=block.id, name=block.name, nearby_landmarks=[], transport_connectivity=[],
                        photos=[], amenities=[], safety_features=[])


def _get_block_profile_or_404(block):
    if not block.profile:
        raise NotFound('Block profile not found')
    return block.profile


@blocks_bp.route('/<int:block_id>/profile', methods=['GET'])
@login_required
def get_block_profile(block_id):
    block = get_block_or_404(block_id)
    return jsonify(_get_block_profile_or_404(block).to_dict())


@blocks_bp.route('/<int:block_id>/profile', methods=['POST'])
@login_required
def create_block_profile(block_id):
    block = get_block_or_404(block_id)
    if block.profile:
        raise ApiError('Block profile already exists')
    data = get_json_body()

    profile = _new_block_profile(block)
    _apply_block_profile(profile, data, block)
    db.session.add(profile)
    db.session.commit()
    log_audit('CREATE', 'BlockProfile', profile.id, f"Created profile for block {block.name}")
    return jsonify(profile.to_dict()), 201


@blocks_bp.route('/<int:block_id>/profile', methods=['PUT'])
@login_required
def update_block_profile(block_id):
    block = get_block_or_404(block_id)
    data = get_json_body()

    profile = block.profile
    created = profile is None
    if created:
        profile = _new_block_profile(block)
        db.session.add(profile)

    _apply_block_profile(profile, data, block)
    db.session.commit()
    log_audit('CREATE' if created else 'UPDATE', 'BlockProfile', profile.id,
              f"{'Created' if created else 'Updated'} profile for block {block.name}")
    return jsonify(profile.to_dict())


@blocks_bp.route('/<int:block_id>/profile/auto-populate', methods=['GET'])
@login_required
def auto_populate_block_profile(block_id):
    """Draft block profile seeded from the hostel profile. Nothing is saved."""
    block = get_block_or_404(block_id)
    hostel_profile = HostelProfile.query.filter_by(hostel_id=block.hostel_id).first()
    if not hostel_profile:
        raise NotFound('Hostel profile not found. Create the hostel profile first.')

    return jsonify(
        basicInfo={
            'name': block.name,
            'description': '',
            'address': hostel_profile.address or '',
            'landmark': hostel_profile.landmark or '',
            'city': hostel_profile.city or '',
            'state': hostel_profile.state or '',
            'pincode': hostel_profile.pincode or '',
            'contactNumber': hostel_profile.contact_number or '',
            'email': hostel_profile.email or '',
        },
        propertyDetails={
            'totalFloors': 1,
            'totalRooms': 1,
            'accommodationType': hostel_profile.accommodation_type or 'boys',
            'establishedYear': date.today().year,
            'buildingType': 'independent',
        },
        locationInfo={
            'googleMapLink': hostel_profile.google_map_link or '',
            'nearbyLandmarks': [],
            'transportConnectivity': [],
        },
        media={'photos': [], 'virtualTourLink': ''},
        amenities=[{'name': name, 'available': True, 'description': '', 'floor': ''}
                   for name in hostel_profile.amenities or []],
        safetyFeatures=[{'feature': name, 'available': False, 'details': ''}
                        for name in DEFAULT_SAFETY_FEATURES],
    )


def _photo_index_or_400(profile, index):
    if not 0 <= index < len(profile.photos or []):
        raise ApiError('Invalid photo index')


@blocks_bp.route('/<int:block_id>/profile/photos/<int:index>', methods=['PUT'])
@login_required
def set_main_photo(block_id, index):
    block = get_block_or_404(block_id)
    profile = _get_block_profile_or_404(block)
    _photo_index_or_400(profile, index)
    data = get_json_body()
    if not data.get('isMain'):
        raise ApiError('isMain must be true')

    profile.photos = [dict(photo, isMain=(i == index)) for i, photo in enumerate(profile.photos)]
    db.session.commit()
    log_audit('UPDATE', 'BlockProfile', profile.id, f"Set main photo {index} for block {block.name}")
    return jsonify(profile.to_dict())


@blocks_bp.route('/<int:block_id>/profile/photos/<int:index>', methods=['DELETE'])
@login_required
def delete_photo(block_id, index):
    block = get_block_or_404(block_id)
    profile = _get_block_profile_or_404(block)
    _photo_index_or_400(profile, index)

    photos = [dict(photo) for i, photo in enumerate(profile.photos) if i != index]
    if photos and not any(photo.get('isMain') for photo in photos):
        photos[0]['isMain'] = True
    profile.photos = photos
    db.session.commit()
    log_audit('DELETE', 'BlockProfile', profile.id, f"Removed photo {index} from block {block.name}")
    return jsonify(profile.to_dict())
