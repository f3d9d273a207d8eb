from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from datetime import datetime, timezone
import secrets

db = SQLAlchemy()


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


def new_join_code():
    return secrets.token_hex(4).upper()


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    name = db.Column(db.String(100))
    role = db.Column(db.String(50), nullable=False, default='owner') # 'admin', 'owner', 'staff'
    created_at = db.Column(db.DateTime, default=utcnow)

    @property
    def is_admin(self):
        return self.role == 'admin'

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'name': self.name,
            'role': self.role,
        }


class AuditLog(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'))
    action = db.Column(db.String(50), nullable=False) # e.g. 'DELETE', 'UPDATE', 'CREATE', 'GENERATE'
    target_type = db.Column(db.String(50)) # e.g. 'RentPayment', 'Tenant'
    target_id = db.Column(db.Integer)
    details = db.Column(db.Text)
    timestamp = db.Column(db.DateTime, default=utcnow)

    user = db.relationship('User', backref=db.backref('audit_logs', lazy=True))

    def to_dict(self):
        return {
            'id': self.id,
            'user': self.user.username if self.user else None,
            'action': self.action,
            'targetType': self.target_type,
            'targetId': self.target_id,
            'details': self.details,
            'timestamp': _iso(self.timestamp),
        }


class Hostel(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    address = db.Column(db.String(200))
    city = db.Column(db.String(100))
    state = db.Column(db.String(100))
    zip_code = db.Column(db.String(20))
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    join_code = db.Column(db.String(12), unique=True, nullable=False, default=new_join_code)
    created_at = db.Column(db.DateTime, default=utcnow)

    owner = db.relationship('User', backref=db.backref('hostels', lazy=True))
    blocks = db.relationship('Block', backref='hostel', lazy=True)
    profile = db.relationship('HostelProfile', backref='hostel', uselist=False, cascade="all, delete-orphan")
    members = db.relationship('HostelMember', backref='hostel', lazy=True, cascade="all, delete-orphan")

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'address': self.address,
            'city': self.city,
            'state': self.state,
            'zipCode': self.zip_code,
            'ownerId': self.owner_id,
        }


class HostelMember(db.Model):
    """A user who asked to help run someone else's hostel."""
    id = db.Column(db.Integer, primary_key=True)
    hostel_id = db.Column(db.Integer, db.ForeignKey('hostel.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    role = db.Column(db.String(20), default='staff', nullable=False) # staff, manager
    status = db.Column(db.String(20), default='pending', nullable=False) # pending, approved, rejected
    joined_at = db.Column(db.DateTime, default=utcnow)
    decided_at = db.Column(db.DateTime)

    user = db.relationship('User', backref=db.backref('memberships', lazy=True))

    __table_args__ = (
        db.UniqueConstraint('hostel_id', 'user_id', name='uq_hostel_member'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'hostelId': self.hostel_id,
            'userId': self.user_id,
            'username': self.user.username if self.user else None,
            'name': self.user.name if self.user else None,
            'role': self.role,
            'status': self.status,
            'joinedAt': _iso(self.joined_at),
            'decidedAt': _iso(self.decided_at),
        }


class HostelProfile(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    hostel_id = db.Column(db.Integer, db.ForeignKey('hostel.id'), unique=True, nullable=False)
    is_online_presence_enabled = db.Column(db.Boolean, default=False, nullable=False)

    # Basic Info
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    address = db.Column(db.String(200))
    landmark = db.Column(db.String(200))
    city = db.Column(db.String(100))
    state = db.Column(db.String(100))
    pincode = db.Column(db.String(20))
    contact_number = db.Column(db.String(20))
    email = db.Column(db.String(100))

    accommodation_type = db.Column(db.String(20), default='boys') # boys, girls, coed, separate
    rules_and_policies = db.Column(db.Text) # Markdown, stored as entered
    amenities = db.Column(db.JSON, default=list)
    photos = db.Column(db.JSON, default=list) # Image URLs
    google_map_link = db.Column(db.String(500))

    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'hostelId': self.hostel_id,
            'isOnlinePresenceEnabled': self.is_online_presence_enabled,
            'basicInfo': {
                'name': self.name,
                'description': self.description or '',
                'address': self.address or '',
                'landmark': self.landmark or '',
                'city': self.city or '',
                'state': self.state or '',
                'pincode': self.pincode or '',
                'contactNumber': self.contact_number or '',
                'email': self.email or '',
            },
            'accommodationType': self.accommodation_type,
            'rulesAndPolicies': self.rules_and_policies or '',
            'amenities': self.amenities or [],
            'photos': self.photos or [],
            'googleMapLink': self.google_map_link or '',
            'updatedAt': _iso(self.updated_at),
        }


class Block(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500))
    hostel_id = db.Column(db.Integer, db.ForeignKey('hostel.id'), nullable=False)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)

    # Payment Settings
    rent_generation_day = db.Column(db.Integer, default=1, nullable=False) # 1-28, only for 'global'
    rent_generation_enabled = db.Column(db.Boolean, default=True, nullable=False)
    payment_generation_type = db.Column(db.String(20), default='join_date_based', nullable=False) # global, join_date_based
    payment_visibility_days = db.Column(db.Integer, default=2, nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow)

    owner = db.relationship('User', backref=db.backref('blocks', lazy=True))
    tenants = db.relationship('Tenant', backref='block', lazy=True)
    room_types = db.relationship('RoomType', backref='block', lazy=True, cascade="all, delete-orphan")
    components = db.relationship('RoomComponent', backref='block', lazy=True, cascade="all, delete-orphan")
    profile = db.relationship('BlockProfile', backref='block', uselist=False, cascade="all, delete-orphan")

    def payment_settings(self):
        return {
            'rentGenerationDay': str(self.rent_generation_day),
            'rentGenerationEnabled': self.rent_generation_enabled,
            'paymentGenerationType': self.payment_generation_type,
            'paymentVisibilityDays': self.payment_visibility_days,
        }

    def to_dict(self):
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'hostelId': self.hostel_id,
            'ownerId': self.owner_id,
            'createdAt': _iso(self.created_at),
        }
        data.update(self.payment_settings())
        return data


class BlockProfile(db.Model):
    """Public listing details of one block, shaped like the hostel profile."""
    id = db.Column(db.Integer, primary_key=True)
    block_id = db.Column(db.Integer, db.ForeignKey('block.id'), unique=True, nullable=False)

    # Basic Info
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    address = db.Column(db.String(200))
    landmark = db.Column(db.String(200))
    city = db.Column(db.String(100))
    state = db.Column(db.String(100))
    pincode = db.Column(db.String(20))
    contact_number = db.Column(db.String(20))
    email = db.Column(db.String(100))

    # Property Details
    total_floors = db.Column(db.Integer, default=1, nullable=False)
    total_rooms = db.Column(db.Integer, default=1, nullable=False)
    accommodation_type = db.Column(db.String(20), default='boys') # boys, girls, coed, separate
    established_year = db.Column(db.Integer)
    building_type = db.Column(db.String(20), default='independent') # independent, apartment, commercial

    # Location
    google_map_link = db.Column(db.String(500))
    latitude = db.Column(db.Float)
    longitude = db.Column(db.Float)
    nearby_landmarks = db.Column(db.JSON, default=list) # [{name, distance, type}]
    transport_connectivity = db.Column(db.JSON, default=list) # [{mode, distance, details}]

    # Media
    photos = db.Column(db.JSON, default=list) # [{url, title, description, type, isMain}]
    virtual_tour_link = db.Column(db.String(500))

    amenities = db.Column(db.JSON, default=list) # [{name, available, description, floor}]
    safety_features = db.Column(db.JSON, default=list) # [{feature, available, details}]

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'blockId': self.block_id,
            'basicInfo': {
                'name': self.name,
                'description': self.description or '',
                'address': self.address or '',
                'landmark': self.landmark or '',
                'city': self.city or '',
                'state': self.state or '',
                'pincode': self.pincode or '',
                'contactNumber': self.contact_number or '',
                'email': self.email or '',
            },
            'propertyDetails': {
                'totalFloors': self.total_floors,
                'totalRooms': self.total_rooms,
                'accommodationType': self.accommodation_type,
                'establishedYear': self.established_year,
                'buildingType': self.building_type,
            },
            'locationInfo': {
                'googleMapLink': self.google_map_link or '',
                'latitude': self.latitude,
                'longitude': self.longitude,
                'nearbyLandmarks': self.nearby_landmarks or [],
                'transportConnectivity': self.transport_connectivity or [],
            },
            'media': {
                'photos': self.photos or [],
                'virtualTourLink': self.virtual_tour_link or '',
            },
            'amenities': self.amenities or [],
            'safetyFeatures': self.safety_features or [],
            'updatedAt': _iso(self.updated_at),
        }


class RoomComponent(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    block_id = db.Column(db.Integer, db.ForeignKey('block.id'), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'blockId': self.block_id,
            'name': self.name,
            'description': self.description,
        }


class RoomTypeComponent(db.Model):
    """Ordered link between a room type and the components it offers."""
    room_type_id = db.Column(db.Integer, db.ForeignKey('room_type.id'), primary_key=True)
    component_id = db.Column(db.Integer, db.ForeignKey('room_component.id'), primary_key=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    component = db.relationship('RoomComponent', backref=db.backref('room_type_links', lazy=True))


class RoomType(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    block_id = db.Column(db.Integer, db.ForeignKey('block.id'), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=False)
    rent = db.Column(db.Float, nullable=False)

    # Media
    cover_image = db.Column(db.String(500))
    gallery_images = db.Column(db.JSON, default=list)

    created_at = db.Column(db.DateTime, default=utcnow)

    component_links = db.relationship('RoomTypeComponent', backref='room_type', lazy=True,
                                      order_by='RoomTypeComponent.position',
                                      cascade="all, delete-orphan")

    @property
    def components(self):
        return [link.component for link in self.component_links]

    def set_components(self, components):
        # Reuse existing links so unchanged components keep their row
        existing = {link.component_id: link for link in self.component_links}
        links = []
        for position, component in enumerate(components):
            link = existing.get(component.id) or RoomTypeComponent(component=component)
            link.position = position
            links.append(link)
        self.component_links = links

    def to_dict(self):
        return {
            'id': self.id,
            'blockId': self.block_id,
            'name': self.name,
            'description': self.description,
            'rent': self.rent,
            'components': [c.to_dict() for c in self.components],
            'coverImage': self.cover_image,
            'galleryImages': self.gallery_images or [],
        }


class Tenant(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    block_id = db.Column(db.Integer, db.ForeignKey('block.id'), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20), nullable=False, index=True)
    email = db.Column(db.String(100))
    emergency_contact = db.Column(db.String(20))
    id_type = db.Column(db.String(50))
    id_number = db.Column(db.String(50))
    address = db.Column(db.String(300))
    pin_code = db.Column(db.String(20))
    profile_image = db.Column(db.String(500))

    # Room Assignment
    room_number = db.Column(db.String(20), nullable=False)
    room_type = db.Column(db.String(100), nullable=False) # RoomType name within the block

    join_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), default='pending', nullable=False) # active, left, blacklisted, pending
    status_change_date = db.Column(db.DateTime)
    status_change_reason = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=utcnow)

    documents = db.relationship('TenantDocument', backref='tenant', lazy=True, cascade="all, delete-orphan")
    payments = db.relationship('RentPayment', backref='tenant', lazy=True, cascade="all, delete-orphan")

    def to_dict(self, public=False):
        data = {
            'id': self.id,
            'blockId': self.block_id,
            'name': self.name,
            'phone': self.phone,
            'roomNumber': self.room_number,
            'roomType': self.room_type,
            'joinDate': _iso(self.join_date),
            'status': self.status,
        }
        if public:
            return data
        data.update({
            'email': self.email,
            'emergencyContact': self.emergency_contact,
            'idType': self.id_type,
            'idNumber': self.id_number,
            'address': self.address,
            'pinCode': self.pin_code,
            'profileImage': self.profile_image,
            'statusChangeDate': _iso(self.status_change_date),
            'statusChangeReason': self.status_change_reason,
            'documents': [d.to_dict() for d in self.documents],
        })
        return data


class TenantDocument(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenant.id'), nullable=False)
    type = db.Column(db.String(50), nullable=False) # e.g. Aadhaar, Agreement
    url = db.Column(db.String(500), nullable=False)
    uploaded_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'url': self.url,
            'uploadedAt': _iso(self.uploaded_at),
        }


class RentPayment(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(db.Integer, db.ForeignKey('tenant.id'), nullable=False)
    block_id = db.Column(db.Integer, db.ForeignKey('block.id'), nullable=False)

    # Snapshot of the room at billing time
    room_number = db.Column(db.String(20), nullable=False)
    room_type = db.Column(db.String(100), nullable=False)

    amount = db.Column(db.Float, nullable=False)
    month = db.Column(db.String(20), nullable=False) # e.g. "January"
    year = db.Column(db.Integer, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    paid_date = db.Column(db.Date)
    status = db.Column(db.String(20), default='pending', nullable=False) # pending, paid, overdue, undefined, cancelled

    payment_method = db.Column(db.String(50))
    transaction_id = db.Column(db.String(100))
    receipt_number = db.Column(db.String(100))
    description = db.Column(db.String(500))

    payment_type = db.Column('type', db.String(20), default='monthly', nullable=False) # monthly, additional
    label = db.Column(db.String(100)) # For additional charges e.g. "Electricity"

    cancelled_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    block = db.relationship('Block', backref=db.backref('payments', lazy=True))
    change_log = db.relationship('PaymentChangeLog', backref='payment', lazy=True,
                                 order_by='PaymentChangeLog.id', cascade="all, delete-orphan")

    # One live monthly row per tenant per month; cancelled rows and additional charges are unrestricted
    __table_args__ = (
        db.Index('uq_rent_payment_monthly', 'tenant_id', 'month', 'year', unique=True,
                 sqlite_where=db.text("type = 'monthly' AND status != 'cancelled'"),
                 postgresql_where=db.text("type = 'monthly' AND status != 'cancelled'")),
    )

    @property
    def is_cancelled(self):
        return self.status == 'cancelled'

    def to_dict(self):
        return {
            'id': self.id,
            'tenantId': self.tenant_id,
            'blockId': self.block_id,
            'roomNumber': self.room_number,
            'roomType': self.room_type,
            'amount': self.amount,
            'month': self.month,
            'year': self.year,
            'dueDate': _iso(self.due_date),
            'paidDate': _iso(self.paid_date),
            'status': self.status,
            'paymentMethod': self.payment_method,
            'transactionId': self.transaction_id,
            'receiptNumber': self.receipt_number,
            'description': self.description,
            'type': self.payment_type,
            'label': self.label,
            'cancelledAt': _iso(self.cancelled_at),
            'createdAt': _iso(self.created_at),
            'changeLog': [entry.to_dict() for entry in self.change_log],
        }


class PaymentChangeLog(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    payment_id = db.Column(db.Integer, db.ForeignKey('rent_payment.id'), nullable=False)
    type = db.Column(db.String(20), nullable=False) # edit, cancel
    date = db.Column(db.DateTime, default=utcnow)
    changes = db.Column(db.JSON, default=dict) # {field: {"from": old, "to": new}}
    message = db.Column(db.String(500), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'))

    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'date': _iso(self.date),
            'changes': self.changes or {},
            'message': self.message,
            'user': self.user.username if self.user else None,
        }
