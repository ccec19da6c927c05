"""Database models for the PetCare backend."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from .extensions import db


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def isoformat_utc(value: datetime | None) -> str | None:
    """Render a stored (naive UTC) datetime as ISO-8601 with a Z suffix."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat() + "Z"


def parse_utc_datetime(value: object) -> datetime | None:
    """Parse an ISO-8601 string into a naive UTC datetime; None if malformed.

    Values without an offset are taken to be UTC already.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


# Roles that can be assigned to appointments and perform services.
STAFF_ROLES = ("CLINIC_STAFF", "GROOMER")

APPOINTMENT_STATUSES = (
    "SCHEDULED",
    "CONFIRMED",
    "COMPLETED",
    "CANCELLED",
    "RESCHEDULED",
    "NO_SHOW",
)

# Appointments in these states no longer hold their staff member's time.
INACTIVE_APPOINTMENT_STATUSES = ("CANCELLED", "NO_SHOW")

DAYCARE_SESSION_STATUSES = ("AVAILABLE", "FULL", "CLOSED")
DAYCARE_BOOKING_STATUSES = ("BOOKED", "CHECKED_IN", "CHECKED_OUT", "CANCELLED")

# Daycare bookings counted against a session's capacity.
ACTIVE_DAYCARE_STATUSES = ("BOOKED", "CHECKED_IN")

SERVICE_TYPES = ("VETERINARY", "GROOMING", "DAYCARE", "OTHER")

ACTIVITY_TYPES = (
    "FEEDING",
    "WALKING",
    "PLAYTIME",
    "MEDICATION",
    "GROOMING",
    "EXAMINATION",
    "OTHER",
)


class User(db.Model):
    __tablename__ = "users"

    user_id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    role = db.Column(
        db.Enum(
            "OWNER",
            "ADMIN",
            "CLINIC_STAFF",
            "GROOMER",
            name="user_role",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="OWNER",
    )
    phone = db.Column(db.String(30))
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    pets = db.relationship("Pet", back_populates="owner", lazy="dynamic")
    qualified_services = db.relationship(
        "Service",
        secondary="staff_services",
        back_populates="qualified_staff",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.user_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "role": self.role,
        }

    def to_staff_dict(self) -> dict[str, object]:
        data = self.to_dict_basic()
        data["phone"] = self.phone
        data["services"] = [
            {"id": service.service_id, "name": service.name}
            for service in sorted(self.qualified_services, key=lambda s: s.service_id)
        ]
        return data


class Pet(db.Model):
    __tablename__ = "pets"

    pet_id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    species = db.Column(db.String(50))
    breed = db.Column(db.String(100))
    date_of_birth = db.Column(db.Date)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    owner = db.relationship("User", back_populates="pets")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.pet_id,
            "owner_id": self.owner_id,
            "name": self.name,
            "species": self.species,
            "breed": self.breed,
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
        }


# Qualification records: which staff member may perform which service.
staff_services = db.Table(
    "staff_services",
    db.Column("staff_id", db.Integer, db.ForeignKey("users.user_id"), primary_key=True),
    db.Column("service_id", db.Integer, db.ForeignKey("services.service_id"), primary_key=True),
)


class Service(db.Model):
    """Veterinary and grooming services offered by the clinic."""

    __tablename__ = "services"

    service_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), unique=True, nullable=False)
    description = db.Column(db.Text)
    service_type = db.Column(
        db.Enum(
            *SERVICE_TYPES,
            name="service_type",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="OTHER",
    )
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    duration_minutes = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    qualified_staff = db.relationship(
        "User",
        secondary=staff_services,
        back_populates="qualified_services",
    )

    @property
    def duration(self) -> timedelta | None:
        if self.duration_minutes is None:
            return None
        return timedelta(minutes=self.duration_minutes)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.service_id,
            "name": self.name,
            "description": self.description,
            "service_type": self.service_type,
            "price": float(self.price) if self.price is not None else None,
            "duration_minutes": self.duration_minutes,
            "is_active": bool(self.is_active),
        }


class StaffAvailability(db.Model):
    """A contiguous window in which a staff member can perform services."""

    __tablename__ = "staff_availability"

    availability_id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    start_time = db.Column(db.DateTime, nullable=False)
    end_time = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    __table_args__ = (
        db.CheckConstraint("start_time < end_time", name="availability_positive_length"),
    )

    staff = db.relationship("User")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.availability_id,
            "staff_id": self.staff_id,
            "start_time": isoformat_utc(self.start_time),
            "end_time": isoformat_utc(self.end_time),
        }


class Appointment(db.Model):
    """Veterinary or grooming appointment booked by a pet owner."""

    __tablename__ = "appointments"

    appointment_id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    pet_id = db.Column(db.Integer, db.ForeignKey("pets.pet_id"), nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False)
    staff_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False, index=True)
    starts_at = db.Column(db.DateTime, nullable=False)
    status = db.Column(
        db.Enum(
            *APPOINTMENT_STATUSES,
            name="appointment_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default="SCHEDULED",
        server_default="SCHEDULED",
    )
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    # Last-resort guard against two live bookings racing for the same start time.
    # Cancelled and no-show rows are left out so their slot can be booked again.
    __table_args__ = (
        db.Index(
            "unique_staff_time_slot",
            "staff_id",
            "starts_at",
            unique=True,
            sqlite_where=db.text("status NOT IN ('CANCELLED', 'NO_SHOW')"),
            postgresql_where=db.text("status NOT IN ('CANCELLED', 'NO_SHOW')"),
        ),
    )

    owner = db.relationship("User", foreign_keys=[owner_id])
    staff = db.relationship("User", foreign_keys=[staff_id])
    pet = db.relationship("Pet")
    service = db.relationship("Service")

    @property
    def ends_at(self) -> datetime | None:
        if self.service is None or self.service.duration_minutes is None:
            return None
        return self.starts_at + timedelta(minutes=self.service.duration_minutes)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.appointment_id,
            "owner_id": self.owner_id,
            "pet_id": self.pet_id,
            "pet": {
                "id": self.pet.pet_id,
                "name": self.pet.name,
                "species": self.pet.species,
            } if self.pet else None,
            "service_id": self.service_id,
            "service": {
                "id": self.service.service_id,
                "name": self.service.name,
                "duration_minutes": self.service.duration_minutes,
            } if self.service else None,
            "staff_id": self.staff_id,
            "staff": {
                "id": self.staff.user_id,
                "first_name": self.staff.first_name,
                "last_name": self.staff.last_name,
            } if self.staff else None,
            "starts_at": isoformat_utc(self.starts_at),
            "ends_at": isoformat_utc(self.ends_at),
            "status": self.status,
            "notes": self.notes,
            "created_at": isoformat_utc(self.created_at),
            "updated_at": isoformat_utc(self.updated_at),
        }


class DaycareSession(db.Model):
    """One day of daycare with a fixed number of places."""

    __tablename__ = "daycare_sessions"

    session_id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.Date, unique=True, nullable=False)
    total_capacity = db.Column(db.Integer, nullable=False)
    # Denormalised count of BOOKED and CHECKED_IN bookings.
    current_bookings = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    price = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(
        db.Enum(
            *DAYCARE_SESSION_STATUSES,
            name="daycare_session_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default="AVAILABLE",
        server_default="AVAILABLE",
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    __table_args__ = (
        db.CheckConstraint("total_capacity >= 0", name="session_capacity_non_negative"),
        db.CheckConstraint("current_bookings >= 0", name="session_bookings_non_negative"),
    )

    bookings = db.relationship("DaycareBooking", back_populates="session", lazy="dynamic")

    @property
    def has_capacity(self) -> bool:
        return self.current_bookings < self.total_capacity

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.session_id,
            "date": self.date.isoformat() if self.date else None,
            "total_capacity": self.total_capacity,
            "current_bookings": self.current_bookings,
            "price": float(self.price) if self.price is not None else None,
            "status": self.status,
        }


class DaycareRoom(db.Model):
    __tablename__ = "daycare_rooms"

    room_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    capacity = db.Column(db.Integer, nullable=False, default=1)

    def to_dict(self) -> dict[str, object]:
        return {"id": self.room_id, "name": self.name, "capacity": self.capacity}


class DaycareBooking(db.Model):
    """A pet's place in a daycare session."""

    __tablename__ = "daycare_bookings"

    booking_id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(
        db.Integer, db.ForeignKey("daycare_sessions.session_id"), nullable=False, index=True
    )
    pet_id = db.Column(db.Integer, db.ForeignKey("pets.pet_id"), nullable=False)
    room_id = db.Column(db.Integer, db.ForeignKey("daycare_rooms.room_id"), nullable=True)
    status = db.Column(
        db.Enum(
            *DAYCARE_BOOKING_STATUSES,
            name="daycare_booking_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default="BOOKED",
        server_default="BOOKED",
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    session = db.relationship("DaycareSession", back_populates="bookings")
    pet = db.relationship("Pet")
    room = db.relationship("DaycareRoom")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.booking_id,
            "session_id": self.session_id,
            "session": self.session.to_dict() if self.session else None,
            "pet_id": self.pet_id,
            "pet": self.pet.to_dict() if self.pet else None,
            "room_id": self.room_id,
            "status": self.status,
            "created_at": isoformat_utc(self.created_at),
            "updated_at": isoformat_utc(self.updated_at),
        }


class ActivityLog(db.Model):
    """Something a staff member did with a pet, optionally tied to a visit."""

    __tablename__ = "activity_logs"

    log_id = db.Column(db.Integer, primary_key=True)
    pet_id = db.Column(db.Integer, db.ForeignKey("pets.pet_id"), nullable=False, index=True)
    staff_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    activity_type = db.Column(
        db.Enum(
            *ACTIVITY_TYPES,
            name="activity_type",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    details = db.Column(db.String(500), nullable=False)
    daycare_booking_id = db.Column(
        db.Integer, db.ForeignKey("daycare_bookings.booking_id"), nullable=True
    )
    appointment_id = db.Column(
        db.Integer, db.ForeignKey("appointments.appointment_id"), nullable=True
    )
    timestamp = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    __table_args__ = (
        db.CheckConstraint(
            "daycare_booking_id IS NULL OR appointment_id IS NULL",
            name="activity_log_single_link",
        ),
    )

    pet = db.relationship("Pet")
    staff = db.relationship("User")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.log_id,
            "pet_id": self.pet_id,
            "pet": self.pet.to_dict() if self.pet else None,
            "staff_id": self.staff_id,
            "staff": {
                "id": self.staff.user_id,
                "first_name": self.staff.first_name,
                "last_name": self.staff.last_name,
            } if self.staff else None,
            "activity_type": self.activity_type,
            "details": self.details,
            "daycare_booking_id": self.daycare_booking_id,
            "appointment_id": self.appointment_id,
            "timestamp": isoformat_utc(self.timestamp),
        }
