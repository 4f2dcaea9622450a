from __future__ import annotations

from fastapi import HTTPException

from . import models

# purpose: role guards for routes that bypass the workflow services
# status: active


def ensure_admin(user: models.User) -> None:
    if user.role != models.ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Not authorized")