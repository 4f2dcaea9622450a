import logging
import os
import smtplib
from email.message import EmailMessage

logger = logging.getLogger(__name__)

EMAIL_OUTBOX: list[tuple[str, str, str]] = []


def send_email(to_email: str, subject: str, message: str):
    if os.getenv("TESTING") == "1":
        EMAIL_OUTBOX.append((to_email, subject, message))
        return
    server = os.getenv("SMTP_SERVER")
    if not server:
        logger.info("SMTP_SERVER not configured; dropping email to %s", to_email)
        return
    from_addr = os.getenv("EMAIL_FROM", "noreply@example.com")
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = to_email
    msg.set_content(message)
    with smtplib.SMTP(server) as s:
        s.send_message(msg)


def send_overdue_digest(db, now=None) -> int:
    """Email every assignee a list of their pending sections on overdue forms.

    Returns the number of emails sent.
    """
    from . import models
    from .services.progress import compute_progress

    forms = db.query(models.Form).filter(models.Form.status == models.FORM_PUBLISHED).all()
    pending: dict = {}
    for form in forms:
        sections = db.query(models.Section).filter(models.Section.form_id == form.id).all()
        responses = (
            db.query(models.Response)
            .filter(models.Response.section_id.in_([s.id for s in sections]))
            .all()
        )
        if not compute_progress(form, sections, responses, now=now).is_overdue:
            continue
        status_by_section = {r.section_id: r.status for r in responses}
        for section in sections:
            if status_by_section.get(section.id) == models.RESPONSE_PENDING:
                pending.setdefault(section.assigned_to, []).append((form, section))

    sent = 0
    for user_id, items in pending.items():
        user = db.get(models.User, user_id)
        if not user or not user.email:
            continue
        content = "\n".join(
            f'- "{section.title}" in "{form.title}" (due {form.due_date.isoformat()})'
            for form, section in items
        )
        send_email(user.email, "Overdue sections awaiting you", content)
        sent += 1
    return sent
