from pydantic import BaseModel, Field, field_validator
from datetime import datetime, timezone
import re
import uuid
from typing import Any, Dict, List, Optional

from common.utils.slugs import is_valid_slug, is_reserved_slug
from common.utils.urls import is_valid_url


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes (SQLite, clients without offsets) are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _check_url(value: Optional[str]) -> Optional[str]:
    if value is not None and not is_valid_url(value):
        raise ValueError("url must be an absolute http or https URL")
    return value


EMAIL_PATTERN = re.compile(r"[^@\s]+@[^@\s]+\.[^@\s]+")
USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"


def _check_email(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().lower()
    if not EMAIL_PATTERN.fullmatch(value):
        raise ValueError("Invalid email address")
    return value


def _clean_tags(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return None
    tags = []
    for tag in value:
        tag = tag.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


class UTMParams(BaseModel):
    utm_source: Optional[str] = Field(default=None, max_length=255)
    utm_medium: Optional[str] = Field(default=None, max_length=255)
    utm_campaign: Optional[str] = Field(default=None, max_length=255)
    utm_term: Optional[str] = Field(default=None, max_length=255)
    utm_content: Optional[str] = Field(default=None, max_length=255)

    def as_dict(self) -> Dict[str, str]:
        """Only the parameters that are actually set."""
        return {key: value for key, value in self.model_dump().items() if value}


class Link(BaseModel):
    slug: str = Field(..., description="The short slug")
    url: str = Field(..., description="The destination URL")
    domain: Optional[str] = Field(default=None, description="Host used to render the short link")
    utm_params: Optional[UTMParams] = Field(default=None, description="UTM parameters merged on redirect")
    tags: List[str] = Field(default_factory=list, description="Free-text labels")
    description: Optional[str] = Field(default=None, description="Free-text description")
    created_at: datetime = Field(default_factory=utcnow, description="The creation date")
    updated_at: datetime = Field(default_factory=utcnow, description="The update date")
    expires_at: Optional[datetime] = Field(default=None, description="The expiration date")
    is_active: bool = Field(default=True, description="False once soft-deleted")
    click_count: int = Field(default=0, description="Best-effort redirect counter")

    model_config = {"from_attributes": True}

    @field_validator("created_at", "updated_at", "expires_at")
    @classmethod
    def normalize_dates(cls, value):
        return ensure_utc(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_default(cls, value):
        return value if value is not None else []

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utcnow())


class LinkRead(Link):
    short_url: str = Field(..., description="The rendered short link")


class LinkCreate(BaseModel):
    url: str = Field(..., description="The destination URL")
    slug: Optional[str] = Field(default=None, description="Custom slug, generated when omitted")
    domain: Optional[str] = Field(default=None, max_length=255)
    utm_params: Optional[UTMParams] = None
    tags: Optional[List[str]] = None
    description: Optional[str] = None
    expires_at: Optional[datetime] = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, value):
        return _check_url(value)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value):
        return _clean_tags(value)

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, value):
        return ensure_utc(value)

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, value):
        if value is None:
            return value
        if not is_valid_slug(value):
            raise ValueError("Invalid slug format. Use only letters, numbers, hyphens, and underscores (1-100 characters).")
        if is_reserved_slug(value):
            raise ValueError(f"Slug '{value}' is reserved")
        return value


class LinkUpdate(BaseModel):
    url: Optional[str] = None
    domain: Optional[str] = Field(default=None, max_length=255)
    utm_params: Optional[UTMParams] = None
    tags: Optional[List[str]] = None
    description: Optional[str] = None
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("url", "tags", "is_active")
    @classmethod
    def not_null(cls, value, info):
        if value is None:
            raise ValueError(f"{info.field_name} may not be null")
        return value

    @field_validator("url")
    @classmethod
    def validate_url(cls, value):
        return _check_url(value)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value):
        return _clean_tags(value)

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, value):
        return ensure_utc(value)

    def changes(self) -> Dict[str, Any]:
        """The fields the client actually sent, keeping nested models typed."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class Setting(BaseModel):
    key: str
    value: Any = None
    description: Optional[str] = None
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("updated_at")
    @classmethod
    def normalize_dates(cls, value):
        return ensure_utc(value)


class SettingUpdate(BaseModel):
    value: Any = Field(..., description="Any JSON value")
    description: Optional[str] = None


class DomainCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    is_default: bool = False


class Domain(BaseModel):
    name: str
    is_default: bool = False




class User(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    username: str
    email: str
    name: Optional[str] = None
    password_hash: Optional[str] = None
    provider: str = "basic"
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = {"from_attributes": True}

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_dates(cls, value):
        return ensure_utc(value)


class UserRead(BaseModel):
    """A user as the API shows it, without the password hash."""
    id: str
    username: str
    email: str
    name: Optional[str] = None
    provider: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserCreate(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    email: str = Field(..., max_length=255)
    # bcrypt only looks at the first 72 bytes
    password: str = Field(..., min_length=8, max_length=72)
    name: Optional[str] = Field(default=None, max_length=255)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value):
        return _check_email(value)


class UserUpdate(BaseModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=50, pattern=USERNAME_PATTERN)
    email: Optional[str] = Field(default=None, max_length=255)
    name: Optional[str] = Field(default=None, max_length=255)
    is_active: Optional[bool] = None

    @field_validator("username", "email", "is_active")
    @classmethod
    def not_null(cls, value, info):
        if value is None:
            raise ValueError(f"{info.field_name} may not be null")
        return value

    @field_validator("email")
    @classmethod
    def validate_email(cls, value):
        return _check_email(value)

    def changes(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.model_fields_set}


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=72)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: Optional[UserRead] = None
