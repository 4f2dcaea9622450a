"""Form lifecycle: create, edit, publish, trash, restore, purge, copy and share."""

from __future__ import annotations

import copy
import os
import re
from dataclasses import dataclass, field
from typing import Callable
from uuid import UUID, uuid4

from .. import audit, models, schemas
from ..store import RecordStore
from .errors import InvalidState, PermissionDenied, RecordNotFound, ValidationError

# purpose: own every form status transition and the section/response rebuilds tied to them
# inputs: RecordStore bound to a session, acting user, editor payloads
# outputs: FormSnapshot values describing the records each operation left behind
# depends_on: collabforms.store, collabforms.audit
# status: active

PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:3000")

CHOICE_TYPES = {"multiple-choice", "checkboxes"}
SAVEABLE_STATUSES = (models.FORM_DRAFT, models.FORM_PUBLISHED)
_TEMPLATE_PREFIX = re.compile(r"\[Template\]\s*", re.IGNORECASE)


@dataclass(frozen=True)
class FormSnapshot:
    form: models.Form
    sections: list[models.Section] = field(default_factory=list)
    responses: list[models.Response] = field(default_factory=list)


def _require_admin(actor: models.User, action: str) -> None:
    if actor.role != models.ROLE_ADMIN:
        raise PermissionDenied(f"Only admins can {action}")


def _normalize_questions(position: int, questions: list[schemas.QuestionPayload]) -> list[dict]:
    normalized: list[dict] = []
    seen: set[str] = set()
    for question in questions:
        text = question.text.strip()
        if not text:
            raise ValidationError(f"Every question in section {position} needs text")
        options = [option.strip() for option in question.options if option.strip()]
        if question.type in CHOICE_TYPES and not options:
            raise ValidationError(f'Question "{text}" needs at least one option')
        question_id = question.id or f"q-{uuid4().hex[:8]}"
        if question_id in seen:
            raise ValidationError(f'Duplicate question id "{question_id}" in section {position}')
        seen.add(question_id)
        normalized.append(
            {
                "id": question_id,
                "text": text,
                "type": question.type,
                "options": options,
                "required": question.required,
            }
        )
    return normalized


def validate_payload(store: RecordStore, payload: schemas.FormPayload) -> list[dict]:
    """Check editor contents and return normalized section definitions.

    Raises ValidationError before any write is attempted.
    """

    if not payload.title or not payload.title.strip():
        raise ValidationError("Please provide a title for the form.")
    if not payload.sections:
        raise ValidationError("Please add at least one section.")

    sections: list[dict] = []
    for position, section in enumerate(payload.sections, start=1):
        title = section.title.strip()
        if not title:
            raise ValidationError(f"Section {position} needs a title")
        sections.append(
            {
                "title": title,
                "assigned_to": section.assigned_to,
                "questions": _normalize_questions(position, section.questions),
            }
        )

    assignee_ids = {section["assigned_to"] for section in sections}
    known = {user.id for user in store.select_in("users", "id", assignee_ids)}
    unknown = assignee_ids - known
    if unknown:
        raise ValidationError(f"Unknown assignee(s): {', '.join(sorted(str(u) for u in unknown))}")
    return sections


def _insert_sections(
    store: RecordStore,
    form_id: UUID,
    definitions: list[dict],
    *,
    with_responses: bool = True,
) -> tuple[list[models.Section], list[models.Response]]:
    sections = store.insert_many(
        "sections",
        [
            {
                "form_id": form_id,
                "title": definition["title"],
                "assigned_to": definition["assigned_to"],
                "order": index,
                "questions": copy.deepcopy(definition["questions"]),
            }
            for index, definition in enumerate(definitions, start=1)
        ],
    )
    if not with_responses:
        return sections, []
    return sections, _insert_pending_responses(store, sections)


def _insert_pending_responses(store: RecordStore, sections: list[models.Section]) -> list[models.Response]:
    return store.insert_many(
        "responses",
        [
            {
                "section_id": section.id,
                "content": {},
                "filled_by": section.assigned_to,
                "status": models.RESPONSE_PENDING,
            }
            for section in sections
        ],
    )


def _ordered_definitions(store: RecordStore, form_id: UUID) -> list[dict]:
    return [
        {
            "title": section.title,
            "assigned_to": section.assigned_to,
            "questions": section.questions or [],
        }
        for section in store.select("sections", form_id=form_id, order_by="order")
    ]


def create_form(
    store: RecordStore,
    actor: models.User,
    payload: schemas.FormPayload,
    as_status: str = models.FORM_DRAFT,
) -> FormSnapshot:
    _require_admin(actor, "create forms")
    if as_status not in SAVEABLE_STATUSES:
        raise ValidationError("New forms are saved as draft or published")
    definitions = validate_payload(store, payload)

    with store.atomic("create form"):
        form = store.insert(
            "forms",
            {
                "title": payload.title.strip(),
                "created_by": actor.id,
                "status": as_status,
                "due_date": payload.due_date,
            },
        )
        sections, responses = _insert_sections(store, form.id, definitions)
        audit.log_action(store.db, actor.id, "form.created", "form", form.id, {"status": as_status})
    return FormSnapshot(form, sections, responses)


def edit_form(
    store: RecordStore,
    actor: models.User,
    form_id: UUID,
    payload: schemas.FormPayload,
    new_status: str,
) -> FormSnapshot:
    """Replace a form's title, due date, status and its entire section set.

    Old sections and their responses are deleted, never merged. Templates
    stay templates and get their sections back without responses.
    """

    _require_admin(actor, "edit forms")
    form = store.require("forms", form_id)
    is_template = form.status == models.FORM_TEMPLATE
    if form.status not in SAVEABLE_STATUSES and not is_template:
        raise InvalidState(f"A {form.status} form cannot be edited")
    if is_template:
        new_status = models.FORM_TEMPLATE
    elif new_status not in SAVEABLE_STATUSES:
        raise ValidationError("Forms are saved as draft or published")
    definitions = validate_payload(store, payload)

    with store.atomic(f"edit form {form_id}"):
        store.update(
            "forms",
            form.id,
            {"title": payload.title.strip(), "due_date": payload.due_date, "status": new_status},
        )
        old_section_ids = [section.id for section in store.select("sections", form_id=form.id)]
        store.delete_where("responses", "section_id", old_section_ids)
        store.delete_where("sections", "form_id", [form.id])
        sections, responses = _insert_sections(store, form.id, definitions, with_responses=not is_template)
        audit.log_action(
            store.db,
            actor.id,
            "form.edited",
            "form",
            form.id,
            {"status": new_status, "replaced_sections": len(old_section_ids)},
        )
    return FormSnapshot(form, sections, responses)


def _transition(
    store: RecordStore,
    actor: models.User,
    form_id: UUID,
    *,
    allowed_from: tuple[str, ...] | None,
    blocked_from: tuple[str, ...] = (),
    target: str,
    action: str,
    details: Callable[[models.Form], dict] | None = None,
) -> models.Form:
    """Move a form to ``target``; ``details`` runs inside the same unit of work."""

    _require_admin(actor, f"{action} forms")
    form = store.require("forms", form_id)
    if form.status in blocked_from or (allowed_from is not None and form.status not in allowed_from):
        raise InvalidState(f"Cannot {action} a {form.status} form")
    previous = form.status
    with store.atomic(f"{action} form {form_id}"):
        form = store.update("forms", form.id, {"status": target})
        extra = details(form) if details else {}
        audit.log_action(
            store.db, actor.id, f"form.{action}", "form", form.id,
            {"from": previous, "to": target, **extra},
        )
    return form


def publish_form(store: RecordStore, actor: models.User, form_id: UUID) -> models.Form:
    return _transition(
        store, actor, form_id,
        allowed_from=(models.FORM_DRAFT,),
        target=models.FORM_PUBLISHED,
        action="publish",
    )


def delete_form(store: RecordStore, actor: models.User, form_id: UUID) -> models.Form:
    """Move a form to the trash; its sections and responses stay in place."""

    return _transition(
        store, actor, form_id,
        allowed_from=None,
        blocked_from=(models.FORM_DELETED,),
        target=models.FORM_DELETED,
        action="trash",
    )


def _backfill_responses(store: RecordStore, form: models.Form) -> dict:
    # trashed templates carry no responses; a draft needs one per section
    sections = store.select("sections", form_id=form.id, order_by="order")
    answered = {r.section_id for r in store.select_in("responses", "section_id", [s.id for s in sections])}
    missing = [section for section in sections if section.id not in answered]
    if missing:
        _insert_pending_responses(store, missing)
    return {"backfilled_responses": len(missing)}


def restore_form(store: RecordStore, actor: models.User, form_id: UUID) -> models.Form:
    # restored forms always need to be published again
    return _transition(
        store, actor, form_id,
        allowed_from=(models.FORM_DELETED,),
        target=models.FORM_DRAFT,
        action="restore",
        details=lambda form: _backfill_responses(store, form),
    )


def purge_form(store: RecordStore, actor: models.User, form_id: UUID, confirm: bool = False) -> None:
    """Permanently delete a form: responses first, then sections, then the form."""

    _require_admin(actor, "permanently delete forms")
    if not confirm:
        raise ValidationError("Permanent deletion must be confirmed")
    form = store.require("forms", form_id)
    title = form.title
    with store.atomic(f"purge form {form_id}"):
        section_ids = [section.id for section in store.select("sections", form_id=form.id)]
        store.delete_where("responses", "section_id", section_ids)
        store.delete_where("sections", "form_id", [form.id])
        store.delete("forms", form.id)
        audit.log_action(
            store.db, actor.id, "form.purged", "form", form_id,
            {"title": title, "sections": len(section_ids)},
        )


def duplicate_form(store: RecordStore, actor: models.User, form_id: UUID) -> FormSnapshot:
    _require_admin(actor, "duplicate forms")
    source = store.require("forms", form_id)
    if source.status != models.FORM_DRAFT:
        raise ValidationError("Only draft forms can be duplicated.")
    definitions = _ordered_definitions(store, source.id)

    with store.atomic(f"duplicate form {form_id}"):
        form = store.insert(
            "forms",
            {
                "title": f"Copy of {source.title}",
                "created_by": actor.id,
                "status": models.FORM_DRAFT,
                "due_date": None,
            },
        )
        sections, responses = _insert_sections(store, form.id, definitions)
        audit.log_action(store.db, actor.id, "form.duplicated", "form", form.id, {"source": str(source.id)})
    return FormSnapshot(form, sections, responses)


def save_as_template(store: RecordStore, actor: models.User, form_id: UUID) -> FormSnapshot:
    _require_admin(actor, "save templates")
    source = store.require("forms", form_id)
    definitions = _ordered_definitions(store, source.id)

    with store.atomic(f"template form {form_id}"):
        template = store.insert(
            "forms",
            {
                "title": f"[Template] {_TEMPLATE_PREFIX.sub('', source.title, count=1)}",
                "created_by": actor.id,
                "status": models.FORM_TEMPLATE,
            },
        )
        sections, _ = _insert_sections(store, template.id, definitions, with_responses=False)
        audit.log_action(store.db, actor.id, "form.templated", "form", template.id, {"source": str(source.id)})
    return FormSnapshot(template, sections, [])


def instantiate_from_template(store: RecordStore, actor: models.User, template_id: UUID) -> schemas.FormPayload:
    """Return unsaved editor contents seeded from a template."""

    _require_admin(actor, "start forms from templates")
    template = store.require("forms", template_id)
    if template.status != models.FORM_TEMPLATE:
        raise InvalidState("Only templates can seed new forms")
    return schemas.FormPayload(
        title=_TEMPLATE_PREFIX.sub("", template.title, count=1),
        sections=[
            schemas.SectionPayload(
                title=definition["title"],
                assigned_to=definition["assigned_to"],
                questions=[schemas.QuestionPayload(**question) for question in definition["questions"]],
            )
            for definition in _ordered_definitions(store, template.id)
        ],
    )


def share_form(store: RecordStore, actor: models.User, form_id: UUID) -> tuple[models.Form, str]:
    """Return the form's public link, creating its share token on first use."""

    _require_admin(actor, "share forms")
    form = store.require("forms", form_id)
    if form.status == models.FORM_DELETED:
        raise InvalidState("Deleted forms cannot be shared")
    if not form.share_id:
        with store.atomic(f"share form {form_id}"):
            form = store.update("forms", form.id, {"share_id": uuid4().hex})
    return form, f"{PUBLIC_BASE_URL}?share={form.share_id}"


def resolve_share(store: RecordStore, share_id: str) -> FormSnapshot:
    matches = store.select("forms", share_id=share_id) if share_id else []
    if not matches or matches[0].status != models.FORM_PUBLISHED:
        raise RecordNotFound("Form not found")
    form = matches[0]
    return FormSnapshot(form, store.select("sections", form_id=form.id, order_by="order"), [])
