from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas, pubsub
from ..auth import get_current_user
from ..database import get_db
from ..services import completion
from ..store import RecordStore

router = APIRouter(prefix="/api/sections", tags=["sections"])


@router.post("/{section_id}/submit", response_model=schemas.SubmissionOut)
async def submit_section(
    section_id: UUID,
    payload: schemas.SectionSubmit,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    """Lock the caller's section with their answers; this cannot be undone."""
    result = completion.submit_section(RecordStore(db), section_id, payload.answers, user)
    await pubsub.publish_notifications([n.as_event() for n in result.notifications])
    return schemas.SubmissionOut(
        response=schemas.ResponseOut.model_validate(result.response),
        progress=schemas.ProgressOut.model_validate(result.progress),
        notifications=[schemas.NotificationOut.model_validate(n) for n in result.notifications],
    )


@router.post("/{section_id}/remind", response_model=schemas.ReminderOut)
async def remind_assignee(
    section_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    assignee = completion.remind_assignee(RecordStore(db), section_id, user)
    return schemas.ReminderOut(sent_to=assignee.email)
