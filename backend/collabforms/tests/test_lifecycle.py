from datetime import date

import pytest

from collabforms import models, schemas
from collabforms.services import completion, lifecycle
from collabforms.services.errors import (
    InvalidState,
    PermissionDenied,
    PersistenceFailure,
    RecordNotFound,
    ValidationError,
)
from collabforms.store import RecordStore

from .conftest import make_user


@pytest.fixture
def admin(db):
    return make_user(db, "Ada Admin", models.ROLE_ADMIN)


@pytest.fixture
def assignees(db):
    return [make_user(db, "Bea First"), make_user(db, "Cal Second")]


def payload_for(users, title="Vendor Intake", due_date=None):
    return schemas.FormPayload(
        title=title,
        due_date=due_date,
        sections=[
            schemas.SectionPayload(
                title=f"Part {index}",
                assigned_to=user.id,
                questions=[schemas.QuestionPayload(text=f"Question {index}", required=True)],
            )
            for index, user in enumerate(users, start=1)
        ],
    )


def counts(store, form_id):
    sections = store.select("sections", form_id=form_id)
    responses = store.select_in("responses", "section_id", [s.id for s in sections])
    return len(sections), len(responses)


def test_create_assigns_orders_and_pending_responses(store, admin, assignees):
    snapshot = lifecycle.create_form(store, admin, payload_for(assignees))
    form = snapshot.form
    assert form.status == models.FORM_DRAFT
    assert form.created_by == admin.id
    sections = store.select("sections", form_id=form.id, order_by="order")
    assert [s.order for s in sections] == [1, 2]
    assert [s.assigned_to for s in sections] == [u.id for u in assignees]
    assert all(q["id"].startswith("q-") for s in sections for q in s.questions)
    responses = store.select_in("responses", "section_id", [s.id for s in sections])
    assert {r.status for r in responses} == {models.RESPONSE_PENDING}
    assert {r.filled_by for r in responses} == {u.id for u in assignees}


def test_create_validates_before_writing(store, admin, assignees):
    with pytest.raises(ValidationError, match="title"):
        lifecycle.create_form(store, admin, payload_for(assignees, title="  "))
    with pytest.raises(ValidationError, match="at least one section"):
        lifecycle.create_form(store, admin, payload_for([]))
    with pytest.raises(PermissionDenied):
        lifecycle.create_form(store, assignees[0], payload_for(assignees))
    assert store.select("forms") == []


def test_edit_replaces_every_section(store, admin, assignees):
    form = lifecycle.create_form(store, admin, payload_for(assignees)).form
    old_ids = {s.id for s in store.select("sections", form_id=form.id)}

    edited = lifecycle.edit_form(
        store, admin, form.id,
        payload_for(list(reversed(assignees)) + [assignees[0]], title="Vendor Intake v2", due_date=date(2030, 1, 1)),
        new_status=models.FORM_PUBLISHED,
    )
    assert edited.form.title == "Vendor Intake v2"
    assert edited.form.status == models.FORM_PUBLISHED
    assert edited.form.due_date == date(2030, 1, 1)
    sections = store.select("sections", form_id=form.id, order_by="order")
    assert [s.order for s in sections] == [1, 2, 3]
    assert not old_ids & {s.id for s in sections}
    assert counts(store, form.id) == (3, 3)


def test_edit_discards_completed_answers(store, admin, assignees):
    form = lifecycle.create_form(store, admin, payload_for(assignees), as_status=models.FORM_PUBLISHED).form
    first_section = store.select("sections", form_id=form.id, order_by="order")[0]
    question_id = first_section.questions[0]["id"]
    completion.submit_section(store, first_section.id, {question_id: "done"}, assignees[0])

    lifecycle.edit_form(store, admin, form.id, payload_for(assignees), new_status=models.FORM_PUBLISHED)
    sections = store.select("sections", form_id=form.id)
    responses = store.select_in("responses", "section_id", [s.id for s in sections])
    assert {r.status for r in responses} == {models.RESPONSE_PENDING}


def test_status_transitions(store, admin, assignees):
    form = lifecycle.create_form(store, admin, payload_for(assignees)).form
    assert lifecycle.publish_form(store, admin, form.id).status == models.FORM_PUBLISHED
    with pytest.raises(InvalidState):
        lifecycle.publish_form(store, admin, form.id)

    assert lifecycle.delete_form(store, admin, form.id).status == models.FORM_DELETED
    assert counts(store, form.id) == (2, 2)
    with pytest.raises(InvalidState):
        lifecycle.delete_form(store, admin, form.id)

    assert lifecycle.restore_form(store, admin, form.id).status == models.FORM_DRAFT
    with pytest.raises(InvalidState):
        lifecycle.restore_form(store, admin, form.id)


def test_purge_removes_form_sections_and_responses(store, admin, assignees):
    form_id = lifecycle.create_form(store, admin, payload_for(assignees)).form.id
    with pytest.raises(ValidationError):
        lifecycle.purge_form(store, admin, form_id)

    lifecycle.purge_form(store, admin, form_id, confirm=True)
    assert store.get("forms", form_id) is None
    assert store.select("sections", form_id=form_id) == []
    assert store.select("responses") == []
    with pytest.raises(RecordNotFound):
        lifecycle.purge_form(store, admin, form_id, confirm=True)


def test_duplicate_only_drafts(store, admin, assignees):
    source = lifecycle.create_form(store, admin, payload_for(assignees)).form
    copy = lifecycle.duplicate_form(store, admin, source.id).form
    assert copy.title == "Copy of Vendor Intake"
    assert copy.status == models.FORM_DRAFT
    assert copy.id != source.id
    assert counts(store, copy.id) == (2, 2)

    lifecycle.publish_form(store, admin, source.id)
    with pytest.raises(ValidationError, match="Only draft forms can be duplicated."):
        lifecycle.duplicate_form(store, admin, source.id)


def test_template_round_trip(store, admin, assignees):
    source = lifecycle.create_form(store, admin, payload_for(assignees), as_status=models.FORM_PUBLISHED).form
    template = lifecycle.save_as_template(store, admin, source.id).form
    assert template.title == "[Template] Vendor Intake"
    assert template.status == models.FORM_TEMPLATE
    assert counts(store, template.id) == (2, 0)

    seeded = lifecycle.instantiate_from_template(store, admin, template.id)
    assert seeded.title == "Vendor Intake"
    assert [s.title for s in seeded.sections] == ["Part 1", "Part 2"]
    assert [s.assigned_to for s in seeded.sections] == [u.id for u in assignees]
    # nothing is saved until the editor submits it
    assert len(store.select("forms")) == 2

    with pytest.raises(InvalidState):
        lifecycle.instantiate_from_template(store, admin, source.id)


def test_share_link_resolves_only_published(store, admin, assignees):
    form = lifecycle.create_form(store, admin, payload_for(assignees)).form
    shared, link = lifecycle.share_form(store, admin, form.id)
    assert link.endswith(f"?share={shared.share_id}")
    assert lifecycle.share_form(store, admin, form.id)[0].share_id == shared.share_id

    with pytest.raises(RecordNotFound):
        lifecycle.resolve_share(store, shared.share_id)
    lifecycle.publish_form(store, admin, form.id)
    snapshot = lifecycle.resolve_share(store, shared.share_id)
    assert [s.order for s in snapshot.sections] == [1, 2]

    lifecycle.delete_form(store, admin, form.id)
    with pytest.raises(RecordNotFound):
        lifecycle.resolve_share(store, shared.share_id)
    with pytest.raises(InvalidState):
        lifecycle.share_form(store, admin, form.id)


def test_failed_response_insert_leaves_nothing_behind(db, admin, assignees, monkeypatch):
    store = RecordStore(db)
    original = RecordStore.insert_many

    def failing_insert_many(self, collection, rows):
        if collection == "responses":
            raise PersistenceFailure("Could not insert responses: disk full")
        return original(self, collection, rows)

    monkeypatch.setattr(RecordStore, "insert_many", failing_insert_many)
    with pytest.raises(PersistenceFailure):
        lifecycle.create_form(store, admin, payload_for(assignees))

    assert store.select("forms") == []
    assert store.select("sections") == []


def test_restored_template_can_be_completed(store, admin, assignees):
    source = lifecycle.create_form(store, admin, payload_for(assignees)).form
    template = lifecycle.save_as_template(store, admin, source.id).form
    lifecycle.delete_form(store, admin, template.id)

    restored = lifecycle.restore_form(store, admin, template.id)
    assert restored.status == models.FORM_DRAFT
    assert counts(store, template.id) == (2, 2)

    lifecycle.publish_form(store, admin, template.id)
    first = store.select("sections", form_id=template.id, order_by="order")[0]
    result = completion.submit_section(store, first.id, {first.questions[0]["id"]: "done"}, assignees[0])
    assert result.response.status == models.RESPONSE_COMPLETED
    assert result.progress.completed_count == 1


def test_restore_keeps_existing_responses(store, admin, assignees):
    form = lifecycle.create_form(store, admin, payload_for(assignees)).form
    before = {r.id for r in store.select("responses")}
    lifecycle.delete_form(store, admin, form.id)
    lifecycle.restore_form(store, admin, form.id)
    assert {r.id for r in store.select("responses")} == before


def test_edit_template_stays_template(store, admin, assignees):
    source = lifecycle.create_form(store, admin, payload_for(assignees)).form
    template = lifecycle.save_as_template(store, admin, source.id).form

    edited = lifecycle.edit_form(
        store, admin, template.id,
        payload_for(assignees[:1], title="[Template] Vendor Intake v2"),
        new_status=models.FORM_DRAFT,
    )
    assert edited.form.status == models.FORM_TEMPLATE
    assert edited.form.title == "[Template] Vendor Intake v2"
    assert counts(store, template.id) == (1, 0)

    seeded = lifecycle.instantiate_from_template(store, admin, template.id)
    assert seeded.title == "Vendor Intake v2"


def test_template_of_template_keeps_single_prefix(store, admin, assignees):
    source = lifecycle.create_form(store, admin, payload_for(assignees)).form
    template = lifecycle.save_as_template(store, admin, source.id).form
    again = lifecycle.save_as_template(store, admin, template.id).form
    assert again.title == "[Template] Vendor Intake"
    assert lifecycle.instantiate_from_template(store, admin, again.id).title == "Vendor Intake"


def fail_response_inserts(monkeypatch):
    original = RecordStore.insert_many

    def failing_insert_many(self, collection, rows):
        if collection == "responses":
            raise PersistenceFailure("Could not insert responses: disk full")
        return original(self, collection, rows)

    monkeypatch.setattr(RecordStore, "insert_many", failing_insert_many)


def test_failed_edit_keeps_previous_sections(store, admin, assignees, monkeypatch):
    form = lifecycle.create_form(store, admin, payload_for(assignees), as_status=models.FORM_PUBLISHED).form
    section_ids = {s.id for s in store.select("sections", form_id=form.id)}
    response_ids = {r.id for r in store.select("responses")}

    fail_response_inserts(monkeypatch)
    with pytest.raises(PersistenceFailure):
        lifecycle.edit_form(
            store, admin, form.id,
            payload_for(assignees[:1], title="Renamed"),
            new_status=models.FORM_DRAFT,
        )

    store.db.expire_all()
    kept = store.require("forms", form.id)
    assert kept.title == "Vendor Intake"
    assert kept.status == models.FORM_PUBLISHED
    assert {s.id for s in store.select("sections", form_id=form.id)} == section_ids
    assert {r.id for r in store.select("responses")} == response_ids


def test_failed_duplicate_leaves_no_copy(store, admin, assignees, monkeypatch):
    source = lifecycle.create_form(store, admin, payload_for(assignees)).form
    fail_response_inserts(monkeypatch)
    with pytest.raises(PersistenceFailure):
        lifecycle.duplicate_form(store, admin, source.id)

    assert [f.id for f in store.select("forms")] == [source.id]
    assert len(store.select("sections")) == 2
    assert len(store.select("responses")) == 2
