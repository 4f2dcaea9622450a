"""Completion and overdue derivations for forms."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Iterable

from .. import models

# purpose: derive per-form completion state from sections and responses
# inputs: form row, its sections, any superset of responses
# outputs: FormProgress value, recomputed on every read
# status: active

STATUS_COMPLETED = "completed"
STATUS_OVERDUE = "overdue"
STATUS_IN_PROGRESS = "in_progress"
STATUS_NOT_STARTED = "not_started"
PROGRESS_STATUSES = (STATUS_COMPLETED, STATUS_OVERDUE, STATUS_IN_PROGRESS, STATUS_NOT_STARTED)


@dataclass(frozen=True)
class FormProgress:
    section_count: int
    completed_count: int
    progress_percent: float
    is_complete: bool
    is_overdue: bool
    status: str


def due_moment(due_date: date) -> datetime:
    """Return the instant a due date starts counting as passed."""

    return datetime.combine(due_date, time.min, tzinfo=timezone.utc)


def is_past_due(due_date: date | None, now: datetime | None = None) -> bool:
    if due_date is None:
        return False
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now > due_moment(due_date)


def compute_progress(
    form: models.Form,
    sections: Iterable[models.Section],
    responses: Iterable[models.Response],
    now: datetime | None = None,
) -> FormProgress:
    """Compute completion for ``form``.

    Only sections owned by the form count, and only responses attached to
    those sections; callers may pass every response they have loaded.
    """

    section_ids = {section.id for section in sections if section.form_id == form.id}
    completed_count = sum(
        1
        for response in responses
        if response.section_id in section_ids and response.status == models.RESPONSE_COMPLETED
    )
    section_count = len(section_ids)
    progress_percent = (completed_count / section_count) * 100 if section_count else 0.0
    is_complete = progress_percent == 100
    is_overdue = not is_complete and is_past_due(form.due_date, now)

    if is_complete:
        status = STATUS_COMPLETED
    elif is_overdue:
        status = STATUS_OVERDUE
    elif completed_count > 0:
        status = STATUS_IN_PROGRESS
    else:
        status = STATUS_NOT_STARTED

    return FormProgress(
        section_count=section_count,
        completed_count=completed_count,
        progress_percent=progress_percent,
        is_complete=is_complete,
        is_overdue=is_overdue,
        status=status,
    )
