from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from pydantic import BaseModel
from taskpoints.core.database import get_db
from taskpoints.core.security import create_access_token
from taskpoints.models.user import User
from taskpoints.api.dependencies import get_current_user
from taskpoints.api.routes.users import UserResponse
from taskpoints.services.user_service import user_service

router = APIRouter(prefix="/auth", tags=["auth"])


class UserCreate(BaseModel):
    username: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str


class RegisterResponse(Token):
    user: UserResponse


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(user_data: UserCreate, db: Session = Depends(get_db)):
    """Register a new user and log them in"""
    user = user_service.register_user(db, user_data.username, user_data.password)
    return {
        "user": UserResponse.model_validate(user),
        "access_token": create_access_token(user.id),
        "token_type": "bearer",
    }


@router.post("/login", response_model=Token)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """Login and get access token"""
    user = user_service.authenticate_user(db, form_data.username, form_data.password)
    return {"access_token": create_access_token(user.id), "token_type": "bearer"}


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current user information"""
    return current_user
