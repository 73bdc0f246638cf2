from sqlalchemy import Column, String, Boolean, Integer, Text, DateTime, JSON
from common.db.sql.connection import Base
from common.models.schemas import Link, Setting, User, UTMParams, utcnow
from common.utils.urls import UTM_KEYS


class LinkRecord(Base):
    __tablename__ = "links"
    id = Column(Integer, primary_key=True, autoincrement=True)
    slug = Column(String(100), unique=True, index=True, nullable=False)
    url = Column(Text, nullable=False)
    domain = Column(String(255), nullable=True)
    utm_source = Column(String(255), nullable=True)
    utm_medium = Column(String(255), nullable=True)
    utm_campaign = Column(String(255), nullable=True)
    utm_term = Column(String(255), nullable=True)
    utm_content = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    click_count = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<LinkRecord(id={self.id}, slug={self.slug}, is_active={self.is_active})>"

    def set_utm_params(self, utm_params):
        values = utm_params.as_dict() if utm_params else {}
        for key in UTM_KEYS:
            setattr(self, key, values.get(key))

    def to_link(self) -> Link:
        utm = {key: getattr(self, key) for key in UTM_KEYS if getattr(self, key)}
        return Link(
            slug=self.slug,
            url=self.url,
            domain=self.domain,
            utm_params=UTMParams(**utm) if utm else None,
            tags=list(self.tags or []),
            description=self.description,
            created_at=self.created_at,
            updated_at=self.updated_at,
            expires_at=self.expires_at,
            is_active=self.is_active,
            click_count=self.click_count or 0,
        )

    @classmethod
    def from_link(cls, link: Link) -> "LinkRecord":
        record = cls(
            slug=link.slug,
            url=link.url,
            domain=link.domain,
            description=link.description,
            tags=list(link.tags),
            expires_at=link.expires_at,
            is_active=link.is_active,
            click_count=0,
        )
        record.set_utm_params(link.utm_params)
        return record


class SettingRecord(Base):
    __tablename__ = "settings"
    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(255), unique=True, index=True, nullable=False)
    value = Column(JSON, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<SettingRecord(key={self.key})>"

    def to_setting(self) -> Setting:
        return Setting(key=self.key, value=self.value, description=self.description, updated_at=self.updated_at)


class UserRecord(Base):
    __tablename__ = "users"
    id = Column(String(32), primary_key=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=True)
    provider = Column(String(20), nullable=False, default="basic")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<UserRecord(id={self.id}, username={self.username}, is_active={self.is_active})>"

    def to_user(self) -> User:
        return User.model_validate(self)

    @classmethod
    def from_user(cls, user: User) -> "UserRecord":
        return cls(**user.model_dump())
