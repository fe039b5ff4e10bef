"""Teams, users, invite codes and per-user bank preferences."""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
import secrets
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from familybudget.core.config import settings
from familybudget.core.errors import ConflictError, ValidationError
from familybudget.core.models import Team, User, UserRole
from familybudget.core.repositories import TeamRepo, UserRepo

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# scrypt parameters
_SCRYPT_N = 2**14
_SCRYPT_R = 8
_SCRYPT_P = 1


@dataclass
class TeamContext:
    """Who is acting, passed explicitly into every operation."""

    team_id: int
    user_id: int
    team_name: str
    user_name: str
    role: UserRole
    banks: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "user": {"id": self.user_id, "name": self.user_name, "role": self.role.value},
            "team": {"id": self.team_id, "name": self.team_name},
            "banks": list(self.banks),
        }


def hash_password(password: str) -> str:
    """Return "salt$hash" (hex) using scrypt."""
    salt = secrets.token_bytes(16)
    digest = hashlib.scrypt(
        password.encode("utf-8"), salt=salt, n=_SCRYPT_N, r=_SCRYPT_R, p=_SCRYPT_P
    )
    return f"{salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        salt_hex, digest_hex = stored.split("$", 1)
        salt = bytes.fromhex(salt_hex)
    except ValueError:
        return False
    digest = hashlib.scrypt(
        password.encode("utf-8"), salt=salt, n=_SCRYPT_N, r=_SCRYPT_R, p=_SCRYPT_P
    )
    return hmac.compare_digest(digest.hex(), digest_hex)


def generate_invite_code() -> str:
    return secrets.token_hex(8).upper()


def create_team(db: Session, name: str) -> Team:
    """Create a team with a fresh invite code (flushed, not committed)."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Team name must not be empty", field="team_name")

    team = Team(name=name, invite_code=generate_invite_code())
    db.add(team)
    db.flush()
    logger.info("Created team %s (%s)", team.id, team.name)
    return team


def register_user(
    db: Session,
    *,
    name: str,
    email: str,
    password: str,
    team_name: Optional[str] = None,
    invite_code: Optional[str] = None,
    banks: Optional[list[str]] = None,
) -> User:
    """Register a user, either founding a new team or joining one by invite code.

    The founder of a team becomes its admin; joiners are members.
    """
    email = _clean_email(email)
    _check_new_password(password, field="password")
    if UserRepo(db).find_by_email(email):
        raise ConflictError(f"Email {email} is already registered")

    if invite_code:
        team = TeamRepo(db).find_by_invite_code(invite_code)
        if team is None:
            raise ValidationError("Invalid invitation code", field="invite_code")
        role = UserRole.MEMBER
    elif team_name:
        team = create_team(db, team_name)
        role = UserRole.ADMIN
    else:
        raise ValidationError(
            "Either team name or invite code is required", field="team_name"
        )

    user = User(
        team_id=team.id,
        name=(name or "").strip() or email,
        email=email,
        password_hash=hash_password(password),
        role=role,
        preferences={"banks": _clean_banks(banks)} if banks else {},
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"Email {email} is already registered")

    db.refresh(user)
    logger.info("Registered user %s in team %s as %s", user.id, team.id, role.value)
    return user


def _clean_email(email: Optional[str]) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("A valid email is required", field="email")
    return email


def _check_new_password(password: Optional[str], field: str) -> None:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters", field=field
        )


def _require_password(user: User, password: Optional[str], field: str) -> None:
    if not password or not verify_password(password, user.password_hash):
        raise ValidationError("Password is incorrect", field=field)


def update_profile(
    db: Session,
    team_id: int,
    user_id: int,
    name: Optional[str] = None,
    email: Optional[str] = None,
) -> User:
    """Change the user's display name and/or email; None leaves a field as is."""
    user = UserRepo(db).get(user_id, team_id)

    if name is not None:
        if not name.strip():
            raise ValidationError("Name must not be empty", field="name")
        user.name = name.strip()
    if email is not None:
        email = _clean_email(email)
        if email != user.email:
            existing = UserRepo(db).find_by_email(email)
            if existing is not None and existing.id != user.id:
                raise ConflictError(f"Email {email} is already registered")
            user.email = email

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"Email {email} is already registered")
    db.refresh(user)
    logger.info("Updated profile of user %s in team %s", user_id, team_id)
    return user


def change_password(
    db: Session,
    team_id: int,
    user_id: int,
    current_password: str,
    new_password: str,
) -> None:
    user = UserRepo(db).get(user_id, team_id)
    _require_password(user, current_password, field="current_password")
    _check_new_password(new_password, field="new_password")

    user.password_hash = hash_password(new_password)
    db.commit()
    logger.info("Changed password of user %s in team %s", user_id, team_id)


def deactivate_user(db: Session, team_id: int, user_id: int, password: str) -> User:
    """Close the account after the password is confirmed.

    The row is kept so transactions and audit entries still resolve their
    author; an inactive user can no longer act and its banks stop counting
    toward the team's banks.
    """
    user = UserRepo(db).get(user_id, team_id)
    _require_password(user, password, field="password")

    user.is_active = False
    db.commit()
    logger.info("Deactivated user %s in team %s", user_id, team_id)
    return user


def _clean_banks(banks: list[str]) -> list[str]:
    cleaned: list[str] = []
    for bank in banks:
        name = (bank or "").strip()
        if name and name not in cleaned:
            cleaned.append(name)
    return cleaned


def set_user_banks(db: Session, team_id: int, user_id: int, banks: list[str]) -> list[str]:
    """Replace a user's configured banks."""
    cleaned = _clean_banks(banks)
    if not cleaned:
        raise ValidationError("At least one bank is required", field="banks")

    user = UserRepo(db).get(user_id, team_id)
    # Reassign so the JSON column is flagged dirty
    user.preferences = {**(user.preferences or {}), "banks": cleaned}
    db.commit()
    return cleaned


def get_team_banks(db: Session, team_id: int) -> list[str]:
    """Banks transactions of this team may reference.

    Union of the banks configured by the team's active members, in member
    order; falls back to the configured defaults when nobody set any.
    """
    banks: list[str] = []
    for user in UserRepo(db).find_active(team_id):
        for bank in (user.preferences or {}).get("banks") or []:
            if bank not in banks:
                banks.append(bank)
    return banks or list(settings.DEFAULT_BANKS)


def get_context(db: Session, team_id: int, user_id: int) -> TeamContext:
    """Resolve the acting user within the team; inactive users are rejected."""
    team = TeamRepo(db).get(team_id)
    user = UserRepo(db).get(user_id, team_id)
    if not user.is_active:
        raise ValidationError(f"User {user_id} is inactive", field="user_id")

    return TeamContext(
        team_id=team.id,
        user_id=user.id,
        team_name=team.name,
        user_name=user.name,
        role=user.role,
        banks=get_team_banks(db, team_id),
    )
