from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Date, Text, ForeignKey, Boolean, JSON, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime
from .database import Base
import enum


# --- Enums ---

class Role(str, enum.Enum):
    ADMIN = "admin"
    STAFF = "staff"
    CLIENT_ADMIN = "client_admin"
    CLIENT = "client"


STAFF_SIDE_ROLES = (Role.ADMIN.value, Role.STAFF.value)
CLIENT_SIDE_ROLES = (Role.CLIENT_ADMIN.value, Role.CLIENT.value)


class ClientStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


class QuoteStatus(str, enum.Enum):
    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    INFORMATION_REQUESTED = "Information Requested"
    QUOTED = "Quoted"
    UNDER_DISCUSSION = "Under Discussion"
    APPROVED = "Approved"
    DECLINED = "Declined"
    EXPIRED = "Expired"
    CONVERTED = "Converted"


class MessageType(str, enum.Enum):
    COMMENT = "comment"
    QUESTION = "question"
    RESPONSE = "response"
    QUOTE_PROVIDED = "quote_provided"
    QUOTE_UPDATED = "quote_updated"
    APPROVED = "approved"
    DECLINED_BY_STAFF = "declined_by_staff"
    DECLINED_BY_CLIENT = "declined_by_client"
    INFO_REQUESTED = "info_requested"
    EXPIRED = "expired"
    RENEWED = "renewed"
    STATUS_CHANGE = "status_change"
    CONVERTED = "converted"


# Types a user may post directly; everything else is written by the lifecycle
USER_MESSAGE_TYPES = (MessageType.COMMENT.value, MessageType.QUESTION.value, MessageType.RESPONSE.value)


class AttachmentType(str, enum.Enum):
    PHOTO = "photo"
    DOCUMENT = "document"
    OTHER = "other"


class WorkOrderStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


BREAKDOWN_CATEGORIES = ["materials", "labor", "subcontractor", "permits", "equipment", "other"]

ALERT_TYPES = ["work-order", "status-change", "completion", "urgent", "quote"]


# --- Tenancy ---

class Client(Base):
    """Tenant organization."""
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, nullable=False)  # immutable after creation
    status = Column(String(20), default=ClientStatus.ACTIVE.value, nullable=False)
    protected = Column(Boolean, default=False, nullable=False)
    primary_contact_name = Column(String(255), nullable=True)
    primary_contact_email = Column(String(255), nullable=True)
    primary_contact_phone = Column(String(50), nullable=True)
    settings = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    users = relationship("User", back_populates="client")
    work_orders = relationship("WorkOrder", back_populates="client")
    quotes = relationship("Quote", back_populates="client")


class User(Base):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("client_id", "email", name="uq_users_client_email"),)

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    role = Column(String(20), default=Role.CLIENT.value, nullable=False)
    full_name = Column(String(255), nullable=False)
    phone_number = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = relationship("Client", back_populates="users")
    alerts = relationship("Alert", back_populates="user", cascade="all, delete-orphan")


# --- Quotes ---

class Quote(Base):
    __tablename__ = "quotes"

    id = Column(Integer, primary_key=True, index=True)
    # Assigned on submission (QTE-YYYY-###), never changed afterwards
    quote_number = Column(String(20), unique=True, nullable=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    status = Column(String(32), default=QuoteStatus.DRAFT.value, nullable=False, index=True)

    property_name = Column(String(255), nullable=True)
    property_address = Column(Text, nullable=True)
    property_phone = Column(String(50), nullable=True)
    title = Column(String(255), nullable=True)
    work_type = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    scope_of_work = Column(Text, nullable=True)
    contact_person = Column(String(255), nullable=True)
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    is_urgent = Column(Boolean, default=False, nullable=False)
    required_by_date = Column(Date, nullable=True)
    special_instructions = Column(Text, nullable=True)

    # Costing, populated when staff provide the quote
    estimated_cost = Column(Numeric(10, 2), nullable=True)
    estimated_hours = Column(Numeric(8, 2), nullable=True)
    quote_notes = Column(Text, nullable=True)
    quote_valid_until = Column(DateTime, nullable=True)
    itemized_breakdown = Column(JSON, nullable=True)  # [{category, description, cost}]

    submitted_at = Column(DateTime, nullable=True)
    quoted_at = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    declined_at = Column(DateTime, nullable=True)
    expired_at = Column(DateTime, nullable=True)
    converted_at = Column(DateTime, nullable=True)
    converted_to_work_order_id = Column(Integer, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = relationship("Client", back_populates="quotes")
    creator = relationship("User", foreign_keys=[created_by])
    messages = relationship(
        "QuoteMessage", back_populates="quote", cascade="all, delete-orphan",
        order_by="QuoteMessage.id",
    )
    attachments = relationship(
        "QuoteAttachment", back_populates="quote", cascade="all, delete-orphan",
        order_by="QuoteAttachment.id",
    )


class QuoteMessage(Base):
    """Append-only timeline entry. Rows are never updated or deleted."""
    __tablename__ = "quote_messages"

    id = Column(Integer, primary_key=True, index=True)
    quote_id = Column(Integer, ForeignKey("quotes.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)  # null for system expiry
    message_type = Column(String(32), default=MessageType.COMMENT.value, nullable=False)
    message = Column(Text, nullable=False)
    previous_cost = Column(Numeric(10, 2), nullable=True)
    new_cost = Column(Numeric(10, 2), nullable=True)
    previous_hours = Column(Numeric(8, 2), nullable=True)
    new_hours = Column(Numeric(8, 2), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    quote = relationship("Quote", back_populates="messages")
    user = relationship("User")

    @property
    def author_name(self):
        return self.user.full_name if self.user else "System"

    @property
    def author_role(self):
        return self.user.role if self.user else "system"


class QuoteAttachment(Base):
    __tablename__ = "quote_attachments"

    id = Column(Integer, primary_key=True, index=True)
    quote_id = Column(Integer, ForeignKey("quotes.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    file_type = Column(String(20), default=AttachmentType.PHOTO.value, nullable=False)
    file_name = Column(String(255), nullable=False)
    file_url = Column(Text, nullable=False)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    uploaded_at = Column(DateTime, default=datetime.utcnow)

    quote = relationship("Quote", back_populates="attachments")
    uploader = relationship("User")


# --- Work orders ---

class WorkOrder(Base):
    __tablename__ = "work_orders"

    id = Column(Integer, primary_key=True, index=True)
    job_no = Column(String(50), unique=True, nullable=False)
    date = Column(Date, default=lambda: datetime.utcnow().date(), nullable=False)
    status = Column(String(20), default=WorkOrderStatus.PENDING.value, nullable=False, index=True)
    work_order_type = Column(String(50), nullable=True)  # 'manual' | 'from_quote'
    supplier_name = Column(String(255), nullable=False)
    supplier_phone = Column(String(50), nullable=True)
    supplier_email = Column(String(255), nullable=True)
    property_name = Column(String(255), nullable=False)
    property_address = Column(Text, nullable=True)
    property_phone = Column(String(50), nullable=True)
    description = Column(Text, nullable=False)
    po_number = Column(String(100), nullable=True)
    authorized_by = Column(String(255), nullable=True)
    authorized_contact = Column(String(100), nullable=True)
    authorized_email = Column(String(255), nullable=True)
    is_urgent = Column(Boolean, default=False, nullable=False)
    created_from_quote_id = Column(Integer, ForeignKey("quotes.id"), nullable=True)
    quote_number = Column(String(20), nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = relationship("Client", back_populates="work_orders")
    creator = relationship("User", foreign_keys=[created_by])
    notes = relationship(
        "WorkOrderNote", back_populates="work_order", cascade="all, delete-orphan",
        order_by="WorkOrderNote.id",
    )
    photos = relationship(
        "Photo", back_populates="work_order", cascade="all, delete-orphan",
        order_by="Photo.id",
    )
    status_updates = relationship(
        "StatusUpdate", back_populates="work_order", cascade="all, delete-orphan",
        order_by="StatusUpdate.id",
    )


class WorkOrderNote(Base):
    __tablename__ = "work_order_notes"

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=False, index=True)
    note = Column(Text, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    work_order = relationship("WorkOrder", back_populates="notes")
    creator = relationship("User")


class Photo(Base):
    """Photo metadata. The binary lives in external storage."""
    __tablename__ = "photos"

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=False, index=True)
    file_path = Column(Text, nullable=False)
    file_name = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    work_order = relationship("WorkOrder", back_populates="photos")


class StatusUpdate(Base):
    __tablename__ = "status_updates"

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=False, index=True)
    previous_status = Column(String(20), nullable=False)
    new_status = Column(String(20), nullable=False)
    notes = Column(Text, nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    work_order = relationship("WorkOrder", back_populates="status_updates")
    updater = relationship("User")


# --- Alerts ---

class Alert(Base):
    """Per-user notification, polled by the client."""
    __tablename__ = "alerts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=True)
    quote_id = Column(Integer, ForeignKey("quotes.id"), nullable=True)
    type = Column(String(20), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="alerts")
    work_order = relationship("WorkOrder")
