import uuid
import sqlalchemy as sa
from sqlalchemy import (
    Column,
    String,
    Date,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


ROLE_ADMIN = "Admin"
ROLE_USER = "User"
ROLE_VIEWER = "Viewer"
USER_ROLES = (ROLE_ADMIN, ROLE_USER, ROLE_VIEWER)

FORM_DRAFT = "draft"
FORM_PUBLISHED = "published"
FORM_TEMPLATE = "template"
FORM_DELETED = "deleted"
FORM_STATUSES = (FORM_DRAFT, FORM_PUBLISHED, FORM_TEMPLATE, FORM_DELETED)

RESPONSE_PENDING = "pending"
RESPONSE_COMPLETED = "completed"


class User(Base):
    __tablename__ = "users"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False, index=True)
    role = Column(String, nullable=False, default=ROLE_USER)
    color = Column(String, nullable=False)
    pin_hash = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow)

    @property
    def has_pin(self) -> bool:
        return bool(self.pin_hash)


class Form(Base):
    __tablename__ = "forms"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String, nullable=False)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    status = Column(String, nullable=False, default=FORM_DRAFT, index=True)
    due_date = Column(Date, nullable=True)
    share_id = Column(String, unique=True, nullable=True, index=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    creator = relationship("User")


class Section(Base):
    __tablename__ = "sections"
    __table_args__ = (
        sa.UniqueConstraint("form_id", "order", name="uq_sections_form_order"),
    )
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    form_id = Column(UUID(as_uuid=True), ForeignKey("forms.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    assigned_to = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    order = Column("order", Integer, nullable=False)
    # list of {"id", "text", "type", "options", "required"}
    questions = Column(JSON, default=list)

    assignee = relationship("User")


class Response(Base):
    __tablename__ = "responses"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    section_id = Column(UUID(as_uuid=True), ForeignKey("sections.id"), unique=True, nullable=False)
    content = Column(JSON, default=dict)
    filled_by = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    status = Column(String, nullable=False, default=RESPONSE_PENDING)
    completed_at = Column(DateTime, nullable=True)


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    action = Column(String, nullable=False)
    target_type = Column(String)
    target_id = Column(UUID(as_uuid=True))
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, default=_utcnow)
