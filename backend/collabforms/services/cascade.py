"""Notifications emitted when a section is completed."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable
from uuid import UUID

from .. import models
from .progress import compute_progress

# purpose: derive the ordered notification list for a section submission
# inputs: acting user, completed section, owning form, post-submission sections/responses/users
# outputs: list[FormNotification]; never writes to the store
# status: active

KIND_SECTION_COMPLETED = "section_completed"
KIND_NEXT_ASSIGNEE = "next_assignee"
KIND_FORM_COMPLETED = "form_completed"

_id_lock = threading.Lock()
_last_id = 0


def next_notification_id() -> int:
    """Return a timestamp-derived id strictly greater than any issued before."""

    global _last_id
    with _id_lock:
        candidate = time.time_ns() // 1000
        _last_id = max(candidate, _last_id + 1)
        return _last_id


@dataclass(frozen=True)
class FormNotification:
    kind: str
    message: str
    form_id: UUID
    addressed_to: UUID | None = None
    id: int = field(default_factory=next_notification_id)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_event(self) -> dict:
        return {
            "type": "notification",
            "data": {
                "id": self.id,
                "kind": self.kind,
                "message": self.message,
                "form_id": str(self.form_id),
                "addressed_to": str(self.addressed_to) if self.addressed_to else None,
                "created_at": self.created_at,
            },
        }


def _first_name(name: str) -> str:
    parts = name.split()
    return parts[0] if parts else name


def cascade_for_submission(
    actor: models.User,
    section: models.Section,
    form: models.Form,
    sections: Iterable[models.Section],
    responses: Iterable[models.Response],
    users: Iterable[models.User],
) -> list[FormNotification]:
    """Build the notifications for ``actor`` completing ``section``.

    The three checks are independent; each one is evaluated on every call.
    """

    form_sections = [s for s in sections if s.form_id == form.id]
    responses = list(responses)
    response_by_section = {r.section_id: r for r in responses}
    users_by_id = {u.id: u for u in users}

    notifications = [
        FormNotification(
            kind=KIND_SECTION_COMPLETED,
            message=f'{actor.name} completed the "{section.title}" section in "{form.title}".',
            form_id=form.id,
        )
    ]

    next_section = next((s for s in form_sections if s.order == section.order + 1), None)
    if next_section is not None:
        next_user = users_by_id.get(next_section.assigned_to)
        next_response = response_by_section.get(next_section.id)
        # the reminder waits until every earlier section is locked
        turn_reached = all(
            response_by_section.get(s.id) is not None
            and response_by_section[s.id].status == models.RESPONSE_COMPLETED
            for s in form_sections
            if s.order < next_section.order
        )
        if (
            next_user is not None
            and next_user.id != actor.id
            and next_response is not None
            and next_response.status == models.RESPONSE_PENDING
            and turn_reached
        ):
            notifications.append(
                FormNotification(
                    kind=KIND_NEXT_ASSIGNEE,
                    message=(
                        f'Hi {_first_name(next_user.name)}, "{section.title}" is complete. '
                        f'It\'s your turn for "{next_section.title}".'
                    ),
                    form_id=form.id,
                    addressed_to=next_user.id,
                )
            )

    progress = compute_progress(form, form_sections, responses)
    if progress.section_count > 0 and progress.completed_count == progress.section_count:
        notifications.append(
            FormNotification(
                kind=KIND_FORM_COMPLETED,
                message=f'🎉 The form "{form.title}" is now fully completed!',
                form_id=form.id,
            )
        )

    return notifications
