from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from blog_api.database import get_db
from blog_api.dependencies import get_current_user
from blog_api.models import User
from blog_api.schemas import LoginRequest, LoginResponse, SignupRequest, UserResponse
from blog_api.services import auth_service, user_service

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

@router.post("/signup", status_code=201, response_model=UserResponse)
async def signup(data: SignupRequest, db: AsyncSession = Depends(get_db)):
    try:
        user = await auth_service.create_user(db, data)
    except IntegrityError:
        raise HTTPException(
            status_code=409,
            detail="A user with this username or email already exists",
        )
    return user_service.user_to_dict(user)

@router.post("/login", response_model=LoginResponse)
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    user = await auth_service.authenticate_user(db, data.email, data.password)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return {
        "access_token": auth_service.create_access_token(user),
        "token_type": "bearer",
        "user": user_service.user_to_dict(user),
    }

@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return user_service.user_to_dict(current_user)
