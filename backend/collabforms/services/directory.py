"""User directory: creation, profile and role edits, PIN sign-in."""

from __future__ import annotations

import re
from uuid import UUID, uuid4

from .. import audit, models, schemas
from ..auth import get_pin_hash, verify_pin
from ..store import RecordStore
from .errors import PermissionDenied, ValidationError

# purpose: manage collaborators; users are created by admins and never removed
# status: active

USER_COLORS = (
    "bg-sky-600",
    "bg-lime-600",
    "bg-amber-600",
    "bg-violet-600",
    "bg-rose-600",
    "bg-teal-600",
    "bg-cyan-600",
    "bg-fuchsia-600",
    "bg-emerald-600",
    "bg-indigo-600",
)

_PIN_PATTERN = re.compile(r"^\d{4}$")


def color_for(user_id: UUID) -> str:
    return USER_COLORS[user_id.int % len(USER_COLORS)]


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Name cannot be empty.")
    return cleaned


def _clean_pin(pin: str) -> str:
    pin = pin.strip()
    if not _PIN_PATTERN.match(pin):
        raise ValidationError("PIN must be 4 digits.")
    return pin


def _ensure_email_free(store: RecordStore, email: str, exclude: UUID | None = None) -> None:
    for user in store.select("users", email=email):
        if user.id != exclude:
            raise ValidationError("Email already registered")


def create_user(store: RecordStore, actor: models.User | None, payload: schemas.UserCreate) -> models.User:
    """Create a user; ``actor`` is None only when bootstrapping the first admin."""

    if actor is not None and actor.role != models.ROLE_ADMIN:
        raise PermissionDenied("Only admins can create users")
    name = _clean_name(payload.name)
    email = normalize_email(payload.email)
    pin_hash = get_pin_hash(_clean_pin(payload.pin)) if payload.pin else None
    _ensure_email_free(store, email)

    user_id = uuid4()
    with store.atomic("create user"):
        user = store.insert(
            "users",
            {
                "id": user_id,
                "name": name,
                "email": email,
                "role": payload.role,
                "color": color_for(user_id),
                "pin_hash": pin_hash,
            },
        )
        audit.log_action(store.db, actor.id if actor else user.id, "user.created", "user", user.id, {"role": user.role})
    return user


def update_user(
    store: RecordStore,
    actor: models.User,
    user_id: UUID,
    payload: schemas.UserUpdate,
) -> models.User:
    target = store.require("users", user_id)
    is_admin = actor.role == models.ROLE_ADMIN
    if not is_admin:
        if target.id != actor.id:
            raise PermissionDenied("You can only edit your own profile")
        if payload.role is not None or payload.pin is not None:
            raise PermissionDenied("Only admins can change roles or PINs")
    if payload.role is not None and target.id == actor.id and payload.role != target.role:
        raise PermissionDenied("You cannot change your own role.")

    changes: dict = {}
    if payload.name is not None:
        changes["name"] = _clean_name(payload.name)
    if payload.email is not None:
        email = normalize_email(payload.email)
        _ensure_email_free(store, email, exclude=target.id)
        changes["email"] = email
    if payload.role is not None:
        changes["role"] = payload.role
    if payload.pin:
        changes["pin_hash"] = get_pin_hash(_clean_pin(payload.pin))
    if not changes:
        return target

    with store.atomic(f"update user {user_id}"):
        target = store.update("users", target.id, changes)
        audit.log_action(
            store.db, actor.id, "user.updated", "user", target.id,
            {"fields": sorted(key for key in changes if key != "pin_hash") + (["pin"] if "pin_hash" in changes else [])},
        )
    return target


def authenticate(store: RecordStore, email: str, pin: str | None) -> models.User | None:
    """Return the user for ``email`` if the PIN matches; PIN-less users need none."""

    matches = store.select("users", email=normalize_email(email))
    if not matches:
        return None
    user = matches[0]
    if not user.pin_hash:
        return user
    if not pin or not verify_pin(pin, user.pin_hash):
        return None
    return user
