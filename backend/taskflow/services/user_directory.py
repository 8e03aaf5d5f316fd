"""Company user lookups used by assignment validation and notification fan-out."""
from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from ..models import User


def resolve_company_users(db: Session, *, company_id: UUID, user_ids: Iterable[UUID]) -> list[User]:
    """Return the active users of ``company_id`` among ``user_ids``."""
    ids = list(user_ids)
    if not ids:
        return []
    return db.query(User).filter(
        User.id.in_(ids),
        User.company_id == company_id,
        User.is_active.is_(True),
    ).all()


def list_company_admins(db: Session, *, company_id: UUID) -> list[User]:
    return db.query(User).filter(
        User.company_id == company_id,
        User.role == "admin",
        User.is_active.is_(True),
    ).all()


def list_company_users(db: Session, *, company_id: UUID) -> list[User]:
    return (
        db.query(User)
        .filter(User.company_id == company_id, User.is_active.is_(True))
        .order_by(User.name)
        .all()
    )
