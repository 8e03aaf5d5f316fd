"""Directory endpoints (safe, limited user listings).

These endpoints exist so the UI can build assignee pickers without granting
full user-management permissions.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from uuid import UUID

from ..auth import PermissionChecker
from ..database import get_db
from ..domain_errors import DomainError
from ..models import User
from ..schemas import UserDirectoryItem
from ..services.user_directory import list_company_users, resolve_company_users

router = APIRouter(prefix="/directory", tags=["directory"])


@router.get("/users", response_model=list[UserDirectoryItem])
def list_users(
    current_user: User = Depends(PermissionChecker("canViewDirectory")),
    db: Session = Depends(get_db),
):
    users = list_company_users(db, company_id=current_user.company_id)
    return [UserDirectoryItem.model_validate(u) for u in users]


@router.get("/users/{user_id}", response_model=UserDirectoryItem)
def get_user(
    user_id: UUID,
    current_user: User = Depends(PermissionChecker("canViewDirectory")),
    db: Session = Depends(get_db),
):
    users = resolve_company_users(db, company_id=current_user.company_id, user_ids=[user_id])
    if not users:
        raise DomainError(code="USER_NOT_FOUND", http_status=404, message="User not found")
    return UserDirectoryItem.model_validate(users[0])
