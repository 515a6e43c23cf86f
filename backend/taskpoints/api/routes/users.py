import uuid
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session
from taskpoints.core.config import settings
from taskpoints.core.database import get_db
from taskpoints.api.dependencies import get_current_user, require_same_user
from taskpoints.models.task import TASK_TYPE_MAX_LENGTH
from taskpoints.models.user import POINTS_MAX, User
from taskpoints.services.points_service import points_service
from taskpoints.services.user_service import user_service

router = APIRouter(prefix="/users", tags=["users"])

USER_NOT_FOUND_MESSAGE = "User not found"


class UserResponse(BaseModel):
    id: uuid.UUID
    username: str
    points: int
    referrer_id: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TaskCompleteRequest(BaseModel):
    task_type: str
    points: int


class TaskResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    task_type: str
    points: int
    completed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReferrerRequest(BaseModel):
    referrer_id: str


def parse_limit(raw: Optional[str]) -> int:
    """Leaderboard size from the query string; anything unusable falls back to the default"""
    if raw is None:
        return settings.LEADERBOARD_DEFAULT_LIMIT
    try:
        limit = int(raw)
    except ValueError:
        return settings.LEADERBOARD_DEFAULT_LIMIT
    return limit if limit > 0 else settings.LEADERBOARD_DEFAULT_LIMIT


@router.get("/leaderboard", response_model=List[UserResponse])
def get_leaderboard(
    limit: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Users with the highest balances, best first"""
    return user_service.get_leaderboard(db, parse_limit(limit))


@router.get("/{user_id}/status", response_model=UserResponse)
def get_user_status(
    user_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get a user's balance and referrer"""
    user = user_service.get_user_by_id(db, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=USER_NOT_FOUND_MESSAGE)
    return user


@router.post("/{user_id}/task/complete", response_model=TaskResponse)
def complete_task(
    user_id: uuid.UUID,
    request: TaskCompleteRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Record a completed task and credit its points"""
    require_same_user(user_id, current_user)

    if not request.task_type.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Task type is required")
    if request.points <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Points must be positive")
    if request.points > POINTS_MAX:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Points must not exceed {POINTS_MAX}")
    if len(request.task_type) > TASK_TYPE_MAX_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Task type must be at most {TASK_TYPE_MAX_LENGTH} characters"
        )

    return points_service.complete_task(
        db,
        user_id,
        request.task_type,
        request.points,
        timeout=settings.transaction_timeout(),
    )


@router.post("/{user_id}/referrer", response_model=UserResponse)
def add_referrer(
    user_id: uuid.UUID,
    request: ReferrerRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Link the user to the account that referred them"""
    require_same_user(user_id, current_user)

    if not request.referrer_id.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Referrer ID is required")
    try:
        referrer_id = uuid.UUID(request.referrer_id.strip())
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid referrer ID format")

    if referrer_id == user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User cannot refer themselves")

    return points_service.add_referrer(
        db,
        user_id,
        referrer_id,
        timeout=settings.transaction_timeout(),
    )
