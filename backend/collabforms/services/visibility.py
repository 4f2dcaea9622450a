"""Which forms a user may list or open."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable
from uuid import UUID

from .. import models
from .errors import PermissionDenied, ValidationError
from .progress import PROGRESS_STATUSES, compute_progress

VIEW_PUBLISHED = "published"
VIEW_DRAFTS = "drafts"
VIEW_TEMPLATES = "templates"
VIEW_TRASH = "trash"

_ADMIN_VIEWS = {
    VIEW_DRAFTS: models.FORM_DRAFT,
    VIEW_TEMPLATES: models.FORM_TEMPLATE,
    VIEW_TRASH: models.FORM_DELETED,
}


@dataclass(frozen=True)
class ListingQuery:
    """Dashboard navigation state: which view is open and how it is filtered."""

    view: str = VIEW_PUBLISHED
    search: str | None = None
    creator_id: UUID | None = None
    progress: str | None = None


def can_view_form(actor: models.User, form: models.Form, sections: Iterable[models.Section]) -> bool:
    if actor.role == models.ROLE_ADMIN:
        return True
    if actor.role == models.ROLE_VIEWER:
        return form.status != models.FORM_DELETED
    return form.status == models.FORM_PUBLISHED and any(
        section.form_id == form.id and section.assigned_to == actor.id for section in sections
    )


def visible_forms(
    actor: models.User,
    forms: Iterable[models.Form],
    sections: Iterable[models.Section],
    responses: Iterable[models.Response] = (),
    query: ListingQuery = ListingQuery(),
) -> list[models.Form]:
    """Return the forms ``actor`` sees in the listing described by ``query``."""

    sections = list(sections)
    responses = list(responses)

    if query.view == VIEW_PUBLISHED:
        wanted_status = models.FORM_PUBLISHED
    elif query.view in _ADMIN_VIEWS:
        if actor.role != models.ROLE_ADMIN:
            raise PermissionDenied(f"The {query.view} view is only available to admins")
        wanted_status = _ADMIN_VIEWS[query.view]
    else:
        raise ValidationError(f"Unknown view {query.view!r}")
    if query.progress and query.progress not in PROGRESS_STATUSES:
        raise ValidationError(f"Unknown progress filter {query.progress!r}")

    needle = (query.search or "").strip().lower()
    result = []
    for form in forms:
        if form.status != wanted_status:
            continue
        if needle and needle not in form.title.lower():
            continue
        if actor.role == models.ROLE_ADMIN and query.creator_id and form.created_by != query.creator_id:
            continue
        result.append(form)

    if query.view == VIEW_PUBLISHED:
        if query.progress:
            result = [
                form for form in result
                if compute_progress(form, sections, responses).status == query.progress
            ]
        if actor.role == models.ROLE_USER:
            assigned = {section.form_id for section in sections if section.assigned_to == actor.id}
            result = [form for form in result if form.id in assigned]
    return result
