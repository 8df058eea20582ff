# divein/models/opportunities.py
from datetime import datetime, timezone
from typing import Literal, Optional
from pydantic import AnyHttpUrl, BaseModel, EmailStr, Field, TypeAdapter, field_validator
import uuid

OpportunityStatus = Literal["active", "inactive"]

_http_url = TypeAdapter(AnyHttpUrl)


def validate_http_url(value: str) -> str:
    """Raise ValueError unless value is an absolute http(s) URL; returns the stripped input."""
    value = value.strip()
    _http_url.validate_python(value)
    return value


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class Opportunity(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), alias="_id")
    author_id: str
    title: str
    description: str
    category: str
    location: Optional[str] = None
    expires_at: Optional[datetime] = None
    external_link: str
    status: OpportunityStatus = "active"
    event_date: Optional[datetime] = None
    contact_email: Optional[str] = None
    image_url: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        populate_by_name = True
        from_attributes = True
        json_encoders = {
            datetime: lambda v: v.isoformat(),
        }

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return _as_utc(self.expires_at) <= _as_utc(now)


class OpportunityCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    category: str = Field(min_length=1)
    location: Optional[str] = None
    expires_at: Optional[datetime] = None
    external_link: str
    event_date: Optional[datetime] = None
    contact_email: Optional[EmailStr] = None
    image_url: Optional[str] = None

    @field_validator("title", "description", "category")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("external_link")
    @classmethod
    def _external_link_is_url(cls, v: str) -> str:
        return validate_http_url(v)

    @field_validator("expires_at", "event_date")
    @classmethod
    def _naive_is_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return None if v is None else _as_utc(v)

    @field_validator("location", "image_url")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None


class OpportunityUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    expires_at: Optional[datetime] = None
    external_link: Optional[str] = None
    event_date: Optional[datetime] = None
    contact_email: Optional[EmailStr] = None
    image_url: Optional[str] = None

    # Omitted fields keep their value; an explicit null may only clear the optional ones.
    @field_validator("title", "description", "category")
    @classmethod
    def _not_blank(cls, v: Optional[str]) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("external_link")
    @classmethod
    def _external_link_is_url(cls, v: Optional[str]) -> str:
        if v is None:
            raise ValueError("must not be empty")
        return validate_http_url(v)

    @field_validator("expires_at", "event_date")
    @classmethod
    def _naive_is_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return None if v is None else _as_utc(v)


class OpportunityStatusUpdate(BaseModel):
    status: OpportunityStatus
