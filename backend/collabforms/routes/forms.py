"""Form listing, editing and lifecycle API routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import get_current_user
from ..database import get_db
from ..services import lifecycle
from ..services.completion import section_view
from ..services.progress import compute_progress
from ..services.visibility import ListingQuery, can_view_form, visible_forms
from ..store import RecordStore

# purpose: expose the form lifecycle manager and per-actor form views
# status: active
# depends_on: collabforms.services.lifecycle, collabforms.services.visibility

router = APIRouter(prefix="/api/forms", tags=["forms"])


def _summary(form: models.Form, sections, responses) -> schemas.FormSummary:
    return schemas.FormSummary(
        **schemas.FormOut.model_validate(form).model_dump(),
        progress=schemas.ProgressOut.model_validate(compute_progress(form, sections, responses)),
    )


def _detail(store: RecordStore, actor: models.User, form: models.Form) -> schemas.FormDetail:
    sections = store.select("sections", form_id=form.id, order_by="order")
    responses = store.select_in("responses", "section_id", [s.id for s in sections])
    users = {u.id: u for u in store.select_in("users", "id", {s.assigned_to for s in sections})}
    response_by_section = {r.section_id: r for r in responses}

    views = []
    for section in sections:
        view = section_view(actor, section, response_by_section.get(section.id), users.get(section.assigned_to))
        views.append(
            schemas.SectionViewOut(
                **schemas.SectionOut.model_validate(section).model_dump(),
                assignee_name=view.assignee_name,
                status=view.status,
                mode=view.mode,
                content=view.content,
                placeholder=view.placeholder,
            )
        )
    return schemas.FormDetail(
        **schemas.FormOut.model_validate(form).model_dump(),
        progress=schemas.ProgressOut.model_validate(compute_progress(form, sections, responses)),
        sections=views,
    )


@router.get("", response_model=list[schemas.FormSummary])
def list_forms(
    view: str = Query("published", description="published, drafts, templates or trash"),
    search: str | None = Query(None, description="Case-insensitive title filter"),
    creator_id: UUID | None = Query(None, description="Admin-only creator filter"),
    progress: str | None = Query(None, description="completed, overdue, in_progress or not_started"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    forms = db.query(models.Form).order_by(models.Form.created_at.desc()).all()
    sections = db.query(models.Section).all()
    responses = db.query(models.Response).all()
    query = ListingQuery(view=view, search=search, creator_id=creator_id, progress=progress)
    return [_summary(form, sections, responses) for form in visible_forms(user, forms, sections, responses, query)]


@router.post("", response_model=schemas.FormDetail, status_code=status.HTTP_201_CREATED)
def create_form(
    payload: schemas.FormSave,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    store = RecordStore(db)
    snapshot = lifecycle.create_form(store, user, payload, as_status=payload.status)
    return _detail(store, user, snapshot.form)


@router.get("/{form_id}", response_model=schemas.FormDetail)
def get_form(
    form_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    store = RecordStore(db)
    form = store.require("forms", form_id)
    if not can_view_form(user, form, store.select("sections", form_id=form.id)):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized")
    return _detail(store, user, form)


@router.put("/{form_id}", response_model=schemas.FormDetail)
def edit_form(
    form_id: UUID,
    payload: schemas.FormSave,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    store = RecordStore(db)
    snapshot = lifecycle.edit_form(store, user, form_id, payload, new_status=payload.status)
    return _detail(store, user, snapshot.form)


@router.post("/{form_id}/publish", response_model=schemas.FormOut)
def publish_form(form_id: UUID, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return lifecycle.publish_form(RecordStore(db), user, form_id)


@router.post("/{form_id}/trash", response_model=schemas.FormOut)
def trash_form(form_id: UUID, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return lifecycle.delete_form(RecordStore(db), user, form_id)


@router.post("/{form_id}/restore", response_model=schemas.FormOut)
def restore_form(form_id: UUID, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return lifecycle.restore_form(RecordStore(db), user, form_id)


@router.delete("/{form_id}")
def purge_form(
    form_id: UUID,
    confirm: bool = Query(False, description="Must be true to permanently delete"),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    lifecycle.purge_form(RecordStore(db), user, form_id, confirm=confirm)
    return {"message": "Form permanently deleted."}


@router.post("/{form_id}/duplicate", response_model=schemas.FormDetail, status_code=status.HTTP_201_CREATED)
def duplicate_form(form_id: UUID, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    store = RecordStore(db)
    snapshot = lifecycle.duplicate_form(store, user, form_id)
    return _detail(store, user, snapshot.form)


@router.post("/{form_id}/template", response_model=schemas.FormDetail, status_code=status.HTTP_201_CREATED)
def save_as_template(form_id: UUID, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    store = RecordStore(db)
    snapshot = lifecycle.save_as_template(store, user, form_id)
    return _detail(store, user, snapshot.form)


@router.get("/{form_id}/instantiate", response_model=schemas.FormPayload)
def instantiate_from_template(
    form_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return lifecycle.instantiate_from_template(RecordStore(db), user, form_id)


@router.post("/{form_id}/share", response_model=schemas.ShareLinkOut)
def share_form(form_id: UUID, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    form, link = lifecycle.share_form(RecordStore(db), user, form_id)
    return schemas.ShareLinkOut(share_id=form.share_id, link=link)
