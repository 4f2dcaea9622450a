"""Operator commands for bootstrapping users and chasing overdue forms."""

# purpose: give operators a shell surface for tasks with no HTTP entry point
# status: active
# depends_on: collabforms.database, collabforms.services.directory, collabforms.notify

from __future__ import annotations

import json
from datetime import datetime, timezone

import typer

from .. import models, notify, schemas
from ..database import SessionLocal
from ..services import directory
from ..services.errors import FormWorkflowError
from ..services.progress import compute_progress
from ..store import RecordStore

app = typer.Typer(help="Collaborative forms maintenance commands")


def create_admin(name: str, email: str, pin: str | None = None) -> dict[str, str]:
    """Create an Admin account without an acting user."""

    session = SessionLocal()
    try:
        payload = schemas.UserCreate(name=name, email=email, role=models.ROLE_ADMIN, pin=pin)
        user = directory.create_user(RecordStore(session), None, payload)
        return {"id": str(user.id), "email": user.email, "role": user.role}
    finally:
        session.close()


@app.command("create-admin")
def create_admin_command(
    name: str = typer.Option(..., help="Display name"),
    email: str = typer.Option(..., help="Sign-in email"),
    pin: str = typer.Option(None, help="Optional 4 digit PIN"),
) -> None:
    try:
        summary = create_admin(name, email, pin)
    except FormWorkflowError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(json.dumps(summary))


def overdue_forms(now: datetime | None = None) -> list[dict[str, object]]:
    """Summarise every published form past its due date with pending sections."""

    now = now or datetime.now(timezone.utc)
    session = SessionLocal()
    try:
        store = RecordStore(session)
        rows = []
        for form in store.select("forms", order_by="created_at", status=models.FORM_PUBLISHED):
            sections = store.select("sections", form_id=form.id)
            responses = store.select_in("responses", "section_id", [s.id for s in sections])
            progress = compute_progress(form, sections, responses, now=now)
            if not progress.is_overdue:
                continue
            rows.append(
                {
                    "id": str(form.id),
                    "title": form.title,
                    "due_date": form.due_date.isoformat(),
                    "progress": progress.progress_percent,
                }
            )
        return rows
    finally:
        session.close()


@app.command("overdue")
def overdue_command(
    notify_assignees: bool = typer.Option(False, "--notify", help="Email assignees their overdue sections"),
) -> None:
    typer.echo(json.dumps(overdue_forms()))
    if notify_assignees:
        session = SessionLocal()
        try:
            sent = notify.send_overdue_digest(session)
        finally:
            session.close()
        typer.echo(json.dumps({"emails_sent": sent}))


if __name__ == "__main__":  # pragma: no cover
    app()
