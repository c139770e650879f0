"""
Row models for the backend tables plus the request bodies the API accepts.
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Table(StrEnum):
    PROFILES = "profiles"
    CAREGIVER_PROFILES = "caregiver_profiles"
    BOOKINGS = "bookings"
    REVIEWS = "reviews"
    TRAINING_RESOURCES = "training_resources"
    NOTIFICATIONS = "notifications"
    PAYMENT_RECORDS = "payment_records"


class Role(StrEnum):
    PATIENT = "patient"
    CAREGIVER = "caregiver"


class Gender(StrEnum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class BookingStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    BookingStatus.PENDING: "Awaiting confirmation",
    BookingStatus.CONFIRMED: "Confirmed",
    BookingStatus.IN_PROGRESS: "In progress",
    BookingStatus.COMPLETED: "Completed",
    BookingStatus.CANCELLED: "Cancelled",
}


class ContentType(StrEnum):
    VIDEO = "video"
    ARTICLE = "article"
    DOCUMENT = "document"


class Row(BaseModel):
    # backend rows may carry columns we don't model
    model_config = ConfigDict(extra="ignore")


class Profile(Row):
    id: str
    role: Role
    full_name: str
    phone: str | None = None
    avatar_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CaregiverProfile(Row):
    id: str | None = None
    user_id: str
    gender: Gender | None = None
    age: int | None = None
    years_of_experience: int = 0
    skills: list[str] = Field(default_factory=list)
    bio: str | None = None
    hourly_rate: float
    is_available: bool = True
    rating_average: float = 0
    total_reviews: int = 0
    certifications: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Booking(Row):
    id: str
    patient_id: str
    caregiver_id: str
    service_type: str
    start_time: datetime
    end_time: datetime
    total_hours: float
    hourly_rate: float
    total_cost: float
    status: BookingStatus = BookingStatus.PENDING
    special_requirements: str | None = None
    address: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Review(Row):
    id: str
    booking_id: str
    caregiver_id: str
    patient_id: str
    rating: int
    comment: str | None = None
    created_at: datetime | None = None


class TrainingResource(Row):
    id: str
    title: str
    description: str | None = None
    content_type: ContentType
    content_url: str
    category: str
    created_at: datetime | None = None


class Notification(Row):
    id: str
    user_id: str
    title: str
    message: str
    type: str
    is_read: bool = False
    related_booking_id: str | None = None
    created_at: datetime | None = None


class PaymentRecord(Row):
    """
    Declared by the backend schema; nothing in the app reads or writes it yet.
    """

    id: str
    booking_id: str
    patient_id: str
    amount: float
    payment_method: str
    payment_status: str
    transaction_id: str | None = None
    created_at: datetime | None = None


class SignUpRequest(BaseModel):
    email: str
    password: str = Field(min_length=6)
    full_name: str = Field(min_length=1)
    role: Role = Role.PATIENT


class SignInRequest(BaseModel):
    email: str
    password: str


class BookingCreate(BaseModel):
    caregiver_id: str  # caregiver's profile (user) id
    service_type: str = Field(min_length=1)
    start_time: datetime
    total_hours: float = Field(default=4, ge=1, multiple_of=0.5)
    address: str = Field(min_length=1)
    special_requirements: str | None = None


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class ReviewCreate(BaseModel):
    booking_id: str
    rating: int = Field(default=5, ge=1, le=5)
    comment: str | None = None


class CaregiverProfileUpdate(BaseModel):
    gender: Gender | None = Gender.FEMALE
    age: int | None = Field(default=30, ge=0)
    years_of_experience: int = Field(default=0, ge=0)
    skills: list[str] = Field(default_factory=list)
    bio: str = ""
    hourly_rate: float = Field(default=50, ge=0)
    is_available: bool = True
    certifications: list[str] = Field(default_factory=list)
