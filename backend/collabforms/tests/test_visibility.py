import uuid
from datetime import date

import pytest

from collabforms import models
from collabforms.services.errors import PermissionDenied, ValidationError
from collabforms.services.visibility import ListingQuery, can_view_form, visible_forms


def user(role, name="Someone"):
    return models.User(id=uuid.uuid4(), name=name, role=role)


@pytest.fixture
def catalogue():
    admin = user(models.ROLE_ADMIN, "Ada")
    bea = user(models.ROLE_USER, "Bea")
    cal = user(models.ROLE_USER, "Cal")
    forms = {
        status: models.Form(id=uuid.uuid4(), title=f"{status.title()} Checklist", status=status, created_by=admin.id)
        for status in models.FORM_STATUSES
    }
    other = models.Form(
        id=uuid.uuid4(), title="Safety Audit", status=models.FORM_PUBLISHED,
        created_by=uuid.uuid4(), due_date=date(2000, 1, 1),
    )
    forms["other"] = other
    sections = [
        models.Section(id=uuid.uuid4(), form_id=form.id, assigned_to=bea.id, order=1)
        for form in forms.values()
    ]
    sections.append(models.Section(id=uuid.uuid4(), form_id=other.id, assigned_to=cal.id, order=2))
    responses = [models.Response(section_id=s.id, status=models.RESPONSE_PENDING) for s in sections]
    return admin, bea, cal, forms, sections, responses


def test_users_see_only_assigned_published_forms(catalogue):
    admin, bea, cal, forms, sections, responses = catalogue
    bea_titles = {f.title for f in visible_forms(bea, forms.values(), sections, responses)}
    assert bea_titles == {"Published Checklist", "Safety Audit"}
    cal_titles = {f.title for f in visible_forms(cal, forms.values(), sections, responses)}
    assert cal_titles == {"Safety Audit"}


def test_viewers_and_admins_see_every_published_form(catalogue):
    admin, bea, cal, forms, sections, responses = catalogue
    viewer = user(models.ROLE_VIEWER)
    for actor in (admin, viewer):
        titles = {f.title for f in visible_forms(actor, forms.values(), sections, responses)}
        assert titles == {"Published Checklist", "Safety Audit"}


def test_admin_only_views(catalogue):
    admin, bea, cal, forms, sections, responses = catalogue
    for view, status in (("drafts", "draft"), ("templates", "template"), ("trash", "deleted")):
        result = visible_forms(admin, forms.values(), sections, responses, ListingQuery(view=view))
        assert [f.status for f in result] == [status]
        with pytest.raises(PermissionDenied):
            visible_forms(bea, forms.values(), sections, responses, ListingQuery(view=view))
    with pytest.raises(ValidationError):
        visible_forms(admin, forms.values(), sections, responses, ListingQuery(view="archive"))


def test_search_creator_and_progress_filters(catalogue):
    admin, bea, cal, forms, sections, responses = catalogue
    found = visible_forms(admin, forms.values(), sections, responses, ListingQuery(search="  safety "))
    assert [f.title for f in found] == ["Safety Audit"]

    mine = visible_forms(admin, forms.values(), sections, responses, ListingQuery(creator_id=admin.id))
    assert [f.title for f in mine] == ["Published Checklist"]
    # creator filter is ignored for non-admins
    assert len(visible_forms(bea, forms.values(), sections, responses, ListingQuery(creator_id=admin.id))) == 2

    overdue = visible_forms(admin, forms.values(), sections, responses, ListingQuery(progress="overdue"))
    assert [f.title for f in overdue] == ["Safety Audit"]
    with pytest.raises(ValidationError):
        visible_forms(admin, forms.values(), sections, responses, ListingQuery(progress="late"))


def test_can_view_form(catalogue):
    admin, bea, cal, forms, sections, responses = catalogue
    viewer = user(models.ROLE_VIEWER)
    assert can_view_form(admin, forms["deleted"], sections)
    assert can_view_form(viewer, forms["draft"], sections)
    assert not can_view_form(viewer, forms["deleted"], sections)
    assert can_view_form(bea, forms["published"], sections)
    assert not can_view_form(bea, forms["draft"], sections)
    assert not can_view_form(cal, forms["published"], sections)
