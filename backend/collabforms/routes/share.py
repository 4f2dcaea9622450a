from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import lifecycle
from ..store import RecordStore

# purpose: unauthenticated, read-only access to published forms by share token
# status: active

router = APIRouter(prefix="/api/share", tags=["share"])


@router.get("/{share_id}", response_model=schemas.PublicFormOut)
def read_shared_form(share_id: str, db: Session = Depends(get_db)):
    store = RecordStore(db)
    snapshot = lifecycle.resolve_share(store, share_id)
    names = {
        user.id: user.name
        for user in store.select_in("users", "id", {s.assigned_to for s in snapshot.sections})
    }
    return schemas.PublicFormOut(
        title=snapshot.form.title,
        due_date=snapshot.form.due_date,
        sections=[
            schemas.PublicSectionOut(
                title=section.title,
                order=section.order,
                assignee_name=names.get(section.assigned_to),
                questions=section.questions or [],
            )
            for section in snapshot.sections
        ],
    )
