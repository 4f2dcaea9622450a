"""Section locking, submission and read-path rules."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from .. import models, notify
from ..store import RecordStore
from .cascade import FormNotification, cascade_for_submission
from .errors import InvalidState, PermissionDenied, ValidationError
from .progress import FormProgress, compute_progress

# purpose: enforce the pending -> completed response transition for section assignees
# depends_on: collabforms.services.cascade, collabforms.store
# status: active

MODE_EDITABLE = "editable"
MODE_READ_ONLY = "read_only"
MODE_PLACEHOLDER = "placeholder"

CHOICE_TYPES = {"multiple-choice", "checkboxes"}


@dataclass(frozen=True)
class SectionView:
    section: models.Section
    status: str
    mode: str
    assignee_name: str | None
    content: dict[str, Any] | None = None
    placeholder: str | None = None


@dataclass(frozen=True)
class SubmissionResult:
    form: models.Form
    response: models.Response
    progress: FormProgress
    notifications: list[FormNotification]


def can_edit(actor: models.User, section: models.Section, response: models.Response | None) -> bool:
    return (
        actor.role == models.ROLE_USER
        and section.assigned_to == actor.id
        and response is not None
        and response.status == models.RESPONSE_PENDING
    )


def section_view(
    actor: models.User,
    section: models.Section,
    response: models.Response | None,
    assignee: models.User | None,
) -> SectionView:
    """Decide what ``actor`` sees of ``section``.

    Completed answers are readable by anyone who can open the form. Pending
    answers are only shown to the assignee (editable) and to Admins and
    Viewers (read-only); other users get a placeholder naming the assignee.
    """

    status = response.status if response is not None else models.RESPONSE_PENDING
    assignee_name = assignee.name if assignee is not None else None
    content = dict(response.content or {}) if response is not None else {}

    if can_edit(actor, section, response):
        return SectionView(section, status, MODE_EDITABLE, assignee_name, content=content)
    if status == models.RESPONSE_COMPLETED or actor.role in (models.ROLE_ADMIN, models.ROLE_VIEWER):
        return SectionView(section, status, MODE_READ_ONLY, assignee_name, content=content)
    return SectionView(
        section,
        status,
        MODE_PLACEHOLDER,
        assignee_name,
        placeholder=f"Awaiting completion from {assignee_name or 'Unknown'}.",
    )


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def _check_answer(question: Mapping[str, Any], value: Any) -> None:
    text = question.get("text", question["id"])
    qtype = question.get("type")
    if isinstance(value, str):
        if qtype == "multiple-choice" and value and value not in (question.get("options") or []):
            raise ValidationError(f'"{value}" is not an option for "{text}"')
        return
    if isinstance(value, list):
        if not all(isinstance(item, str) for item in value):
            raise ValidationError(f'Answers to "{text}" must be strings')
        if qtype == "checkboxes":
            options = set(question.get("options") or [])
            invalid = [item for item in value if item not in options]
            if invalid:
                raise ValidationError(f'{", ".join(invalid)} not options for "{text}"')
        return
    if isinstance(value, dict):
        if qtype != "file-upload" or not isinstance(value.get("name"), str):
            raise ValidationError(f'Answer to "{text}" is not valid file metadata')
        return
    raise ValidationError(f'Unsupported answer for "{text}"')


def validate_answers(section: models.Section, answers: Any) -> dict[str, Any]:
    if not isinstance(answers, Mapping):
        raise ValidationError("Answers must map question ids to values")
    questions = {question["id"]: question for question in section.questions or []}
    unknown = sorted(set(answers) - set(questions))
    if unknown:
        raise ValidationError(f"Unknown question ids: {', '.join(unknown)}")
    for question_id, value in answers.items():
        _check_answer(questions[question_id], value)
    missing = [
        question.get("text", question_id)
        for question_id, question in questions.items()
        if question.get("required") and _is_blank(answers.get(question_id))
    ]
    if missing:
        raise ValidationError(f"Required questions unanswered: {'; '.join(missing)}")
    return dict(answers)


def _response_for(store: RecordStore, section: models.Section) -> models.Response:
    rows = store.select("responses", section_id=section.id)
    if not rows:
        raise InvalidState("Section has no response record")
    return rows[0]


def submit_section(
    store: RecordStore,
    section_id,
    answers: Mapping[str, Any],
    actor: models.User,
) -> SubmissionResult:
    """Lock ``section_id`` with ``answers`` and build the notification cascade."""

    section = store.require("sections", section_id)
    if actor.role != models.ROLE_USER or section.assigned_to != actor.id:
        raise PermissionDenied("Only the assigned user can submit this section")
    form = store.require("forms", section.form_id)
    if form.status != models.FORM_PUBLISHED:
        raise InvalidState("Sections can only be submitted on published forms")
    response = _response_for(store, section)
    if response.status == models.RESPONSE_COMPLETED:
        raise InvalidState("Section has already been submitted")
    content = validate_answers(section, answers)

    with store.atomic(f"submit section {section.id}"):
        response = store.update(
            "responses",
            response.id,
            {
                "content": content,
                "status": models.RESPONSE_COMPLETED,
                "filled_by": actor.id,
                "completed_at": datetime.now(timezone.utc),
            },
        )

    sections = store.select("sections", form_id=form.id, order_by="order")
    responses = store.select_in("responses", "section_id", [s.id for s in sections])
    users = store.select_in("users", "id", {s.assigned_to for s in sections} | {actor.id})
    notifications = cascade_for_submission(actor, section, form, sections, responses, users)
    return SubmissionResult(
        form=form,
        response=response,
        progress=compute_progress(form, sections, responses),
        notifications=notifications,
    )


def remind_assignee(store: RecordStore, section_id, actor: models.User) -> models.User:
    """Email the assignee of a pending section on behalf of an Admin."""

    if actor.role != models.ROLE_ADMIN:
        raise PermissionDenied("Only admins can send reminders")
    section = store.require("sections", section_id)
    if section.assigned_to == actor.id:
        raise ValidationError("You cannot send a reminder to yourself")
    form = store.require("forms", section.form_id)
    if form.status != models.FORM_PUBLISHED:
        raise InvalidState("Reminders can only be sent for published forms")
    if _response_for(store, section).status == models.RESPONSE_COMPLETED:
        raise InvalidState("Section is already completed")
    assignee = store.require("users", section.assigned_to)
    message = (
        f'Hi {assignee.name}, {actor.name} is waiting on your "{section.title}" '
        f'section of "{form.title}".'
    )
    if form.due_date:
        message += f" It is due {form.due_date.isoformat()}."
    notify.send_email(assignee.email, f"Reminder: {form.title}", message)
    return assignee
