from fastapi import APIRouter, Depends, HTTPException, Request
import os
from sqlalchemy.orm import Session
from ..database import get_db
from .. import schemas, audit
from ..auth import create_access_token
from ..services import directory
from ..store import RecordStore
from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
testing = os.getenv("TESTING") == "1"


def rate_limit(limit: str):
    if testing:
        def wrapper(func):
            return func
        return wrapper
    return limiter.limit(limit)


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=schemas.Token)
@rate_limit("10/minute")
async def login(request: Request, credentials: schemas.LoginRequest, db: Session = Depends(get_db)):
    user = directory.authenticate(RecordStore(db), credentials.email, credentials.pin)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    audit.log_action(db, user.id, "login", "user", user.id)
    db.commit()
    return schemas.Token(access_token=create_access_token({"sub": str(user.id)}))
