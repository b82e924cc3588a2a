from pydantic import BaseModel, field_validator
from typing import Optional, List
from datetime import date as DateType, datetime, timezone


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Stored datetimes are naive UTC
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# --- Auth ---

class LoginRequest(BaseModel):
    email: str
    password: str


# --- Clients ---

class ClientCreate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    status: Optional[str] = None
    primary_contact_name: Optional[str] = None
    primary_contact_email: Optional[str] = None
    primary_contact_phone: Optional[str] = None
    settings: Optional[dict] = None


class ClientUpdate(ClientCreate):
    pass


class ClientOut(BaseModel):
    id: int
    name: str
    code: str
    status: str
    protected: bool
    primary_contact_name: Optional[str] = None
    primary_contact_email: Optional[str] = None
    primary_contact_phone: Optional[str] = None
    settings: Optional[dict] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# --- Users ---

class UserCreate(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    password: Optional[str] = None
    phone_number: Optional[str] = None


class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None
    password: Optional[str] = None
    phone_number: Optional[str] = None
    is_active: Optional[bool] = None


class UserOut(BaseModel):
    id: int
    email: str
    full_name: str
    role: str
    phone_number: Optional[str] = None
    is_active: bool
    client_id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# --- Quotes ---

class QuoteFields(BaseModel):
    """Client-editable quote request fields. All optional while in Draft."""
    title: Optional[str] = None
    property_name: Optional[str] = None
    property_address: Optional[str] = None
    property_phone: Optional[str] = None
    work_type: Optional[str] = None
    description: Optional[str] = None
    scope_of_work: Optional[str] = None
    contact_person: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    is_urgent: Optional[bool] = None
    required_by_date: Optional[DateType] = None
    special_instructions: Optional[str] = None


class BreakdownLine(BaseModel):
    category: Optional[str] = "other"
    description: Optional[str] = None
    cost: Optional[float] = None


class ProvideQuoteRequest(BaseModel):
    estimated_cost: Optional[float] = None
    estimated_hours: Optional[float] = None
    quote_notes: Optional[str] = None
    quote_valid_until: Optional[datetime] = None
    itemized_breakdown: Optional[List[BreakdownLine]] = None

    @field_validator("quote_valid_until")
    @classmethod
    def _to_naive_utc(cls, v):
        return _naive_utc(v)


class RequestInfoRequest(BaseModel):
    message: Optional[str] = None


class DecisionRequest(BaseModel):
    """Optional comment attached to approve/decline."""
    message: Optional[str] = None


class ConvertRequest(BaseModel):
    supplier_name: Optional[str] = None
    schedule_date: Optional[DateType] = None
    po_number: Optional[str] = None


class MessageCreate(BaseModel):
    message: Optional[str] = None
    message_type: str = "comment"


class AttachmentCreate(BaseModel):
    file_name: Optional[str] = None
    file_url: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    description: Optional[str] = None


class QuoteMessageOut(BaseModel):
    id: int
    quote_id: int
    user_id: Optional[int] = None
    author_name: Optional[str] = None
    author_role: Optional[str] = None
    message_type: str
    message: str
    previous_cost: Optional[float] = None
    new_cost: Optional[float] = None
    previous_hours: Optional[float] = None
    new_hours: Optional[float] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AttachmentOut(BaseModel):
    id: int
    quote_id: int
    user_id: int
    file_type: str
    file_name: str
    file_url: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    description: Optional[str] = None
    uploaded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class QuoteOut(QuoteFields):
    id: int
    quote_number: Optional[str] = None
    client_id: int
    status: str
    is_urgent: bool = False
    estimated_cost: Optional[float] = None
    estimated_hours: Optional[float] = None
    quote_notes: Optional[str] = None
    quote_valid_until: Optional[datetime] = None
    itemized_breakdown: Optional[List[BreakdownLine]] = None
    submitted_at: Optional[datetime] = None
    quoted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    converted_at: Optional[datetime] = None
    converted_to_work_order_id: Optional[int] = None
    created_by: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class QuoteDetail(QuoteOut):
    messages: List[QuoteMessageOut] = []
    attachments: List[AttachmentOut] = []


# --- Work orders ---

class WorkOrderCreate(BaseModel):
    job_no: Optional[str] = None
    date: Optional[DateType] = None
    property_name: Optional[str] = None
    property_address: Optional[str] = None
    property_phone: Optional[str] = None
    description: Optional[str] = None
    po_number: Optional[str] = None
    authorized_by: Optional[str] = None
    authorized_contact: Optional[str] = None
    authorized_email: Optional[str] = None
    is_urgent: bool = False
    # Accepted for compatibility; always replaced by the default supplier
    supplier_name: Optional[str] = None
    supplier_phone: Optional[str] = None
    supplier_email: Optional[str] = None


class WorkOrderStatusUpdate(BaseModel):
    status: Optional[str] = None
    notes: Optional[str] = None


class NoteCreate(BaseModel):
    note: Optional[str] = None


class UrgentUpdate(BaseModel):
    is_urgent: bool


class NoteOut(BaseModel):
    id: int
    note: str
    created_by: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PhotoOut(BaseModel):
    id: int
    file_path: str
    file_name: Optional[str] = None
    description: Optional[str] = None
    uploaded_by: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StatusUpdateOut(BaseModel):
    id: int
    previous_status: str
    new_status: str
    notes: Optional[str] = None
    updated_by: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WorkOrderOut(BaseModel):
    id: int
    job_no: str
    date: Optional[DateType] = None
    status: str
    work_order_type: Optional[str] = None
    supplier_name: str
    supplier_phone: Optional[str] = None
    supplier_email: Optional[str] = None
    property_name: str
    property_address: Optional[str] = None
    property_phone: Optional[str] = None
    description: str
    po_number: Optional[str] = None
    authorized_by: Optional[str] = None
    authorized_contact: Optional[str] = None
    authorized_email: Optional[str] = None
    is_urgent: bool
    created_from_quote_id: Optional[int] = None
    quote_number: Optional[str] = None
    created_by: Optional[int] = None
    client_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WorkOrderDetail(WorkOrderOut):
    notes: List[NoteOut] = []
    photos: List[PhotoOut] = []
    status_updates: List[StatusUpdateOut] = []


# --- Alerts ---

class AlertOut(BaseModel):
    id: int
    type: str
    title: str
    message: str
    is_read: bool
    work_order_id: Optional[int] = None
    quote_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
