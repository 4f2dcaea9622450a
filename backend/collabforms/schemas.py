from datetime import date, datetime
from typing import Optional, Any, Dict, Literal, List
from pydantic import BaseModel, EmailStr, ConfigDict, Field
from uuid import UUID

UserRole = Literal["Admin", "User", "Viewer"]
FormStatus = Literal["draft", "published", "template", "deleted"]
QuestionType = Literal[
    "short-answer",
    "paragraph",
    "multiple-choice",
    "checkboxes",
    "signature",
    "rating",
    "date",
    "mobile",
    "email",
    "url",
    "file-upload",
]


class UserCreate(BaseModel):
    name: str
    email: EmailStr
    role: UserRole = "User"
    pin: Optional[str] = None


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    pin: Optional[str] = None


class UserOut(BaseModel):
    id: UUID
    name: str
    email: EmailStr
    role: UserRole
    color: str
    has_pin: bool = False
    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    pin: Optional[str] = None


class QuestionPayload(BaseModel):
    id: Optional[str] = None
    text: str
    type: QuestionType = "short-answer"
    options: List[str] = Field(default_factory=list)
    required: bool = False


class SectionPayload(BaseModel):
    title: str
    assigned_to: UUID
    questions: List[QuestionPayload] = Field(default_factory=list)


class FormPayload(BaseModel):
    """Editor contents for a form: used to create, edit and pre-fill forms."""

    title: str
    sections: List[SectionPayload] = Field(default_factory=list)
    due_date: Optional[date] = None


class FormSave(FormPayload):
    status: Literal["draft", "published"] = "draft"


class ProgressOut(BaseModel):
    section_count: int
    completed_count: int
    progress_percent: float
    is_complete: bool
    is_overdue: bool
    status: str
    model_config = ConfigDict(from_attributes=True)


class FormOut(BaseModel):
    id: UUID
    title: str
    created_by: UUID
    status: FormStatus
    due_date: Optional[date] = None
    share_id: Optional[str] = None
    created_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class FormSummary(FormOut):
    progress: ProgressOut


class QuestionOut(BaseModel):
    id: str
    text: str
    type: QuestionType
    options: List[str] = Field(default_factory=list)
    required: bool = False


class SectionOut(BaseModel):
    id: UUID
    form_id: UUID
    title: str
    assigned_to: UUID
    order: int
    questions: List[QuestionOut] = Field(default_factory=list)
    model_config = ConfigDict(from_attributes=True)


class SectionViewOut(SectionOut):
    assignee_name: Optional[str] = None
    status: Literal["pending", "completed"]
    mode: Literal["editable", "read_only", "placeholder"]
    content: Optional[Dict[str, Any]] = None
    placeholder: Optional[str] = None


class FormDetail(FormOut):
    progress: ProgressOut
    sections: List[SectionViewOut] = Field(default_factory=list)


class ResponseOut(BaseModel):
    id: UUID
    section_id: UUID
    content: Dict[str, Any] = Field(default_factory=dict)
    filled_by: UUID
    status: Literal["pending", "completed"]
    completed_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class SectionSubmit(BaseModel):
    answers: Dict[str, Any] = Field(default_factory=dict)


class NotificationOut(BaseModel):
    id: int
    kind: str
    message: str
    form_id: UUID
    addressed_to: Optional[UUID] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class SubmissionOut(BaseModel):
    response: ResponseOut
    progress: ProgressOut
    notifications: List[NotificationOut] = Field(default_factory=list)


class ReminderOut(BaseModel):
    sent_to: EmailStr


class ShareLinkOut(BaseModel):
    share_id: str
    link: str


class PublicSectionOut(BaseModel):
    title: str
    order: int
    assignee_name: Optional[str] = None
    questions: List[QuestionOut] = Field(default_factory=list)


class PublicFormOut(BaseModel):
    title: str
    due_date: Optional[date] = None
    sections: List[PublicSectionOut] = Field(default_factory=list)


class AuditReportItem(BaseModel):
    action: str
    count: int


class AuditLogOut(BaseModel):
    id: UUID
    user_id: Optional[UUID] = None
    action: str
    target_type: Optional[str] = None
    target_id: Optional[UUID] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
