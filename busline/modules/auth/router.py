from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select as sa_select
from sqlalchemy.ext.asyncio import AsyncSession

from busline.auth.deps import super_admin
from busline.db.session import get_session
from busline.models.models import User, ROLE_ADMIN, ROLE_SUPER_ADMIN
from busline.services import auth as auth_service
from busline.services.audit import log_audit

router = APIRouter(tags=["auth"])


class AdminIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: Optional[str] = None
    role: str = Field(ROLE_ADMIN, pattern=f"^({ROLE_ADMIN}|{ROLE_SUPER_ADMIN})$")


class AdminOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    full_name: Optional[str] = None
    role: str
    is_active: bool


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    refresh_token: str


class RefreshIn(BaseModel):
    refresh_token: str


@router.post("/users", status_code=201, response_model=AdminOut)
async def create_admin(payload: AdminIn, db: AsyncSession = Depends(get_session), current_user: User = Depends(super_admin)):
    """Super-Admins create the other back-office accounts."""
    user = User(
        email=payload.email.lower(),
        full_name=payload.full_name,
        role=payload.role,
        hashed_password=auth_service.hash_password(payload.password),
    )
    try:
        async with db.begin():
            db.add(user)
            await db.flush()
            await log_audit(db, actor_id=current_user.id, action="create_admin", object_type="user", object_id=str(user.id), detail={"email": user.email, "role": user.role})
    except IntegrityError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")
    return user


@router.get("/users", response_model=List[AdminOut])
async def list_admins(db: AsyncSession = Depends(get_session), current_user: User = Depends(super_admin)):
    async with db.begin():
        res = await db.execute(sa_select(User).order_by(User.email))
        return list(res.scalars().all())


@router.post("/login", response_model=TokenOut)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), db: AsyncSession = Depends(get_session)):
    identifier = form_data.username.lower()
    if await auth_service.login_blocked(identifier):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Too many login attempts, try later")

    user = await auth_service.authenticate(db, identifier, form_data.password)
    if user is None:
        await auth_service.record_failed_login(identifier)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    await auth_service.clear_failed_logins(identifier)
    access = auth_service.create_access_token(user.id, user.role)
    refresh_token, _ = await auth_service.create_refresh_token(user.id)
    return {"access_token": access, "refresh_token": refresh_token}


@router.post("/refresh", response_model=TokenOut)
async def refresh(payload: RefreshIn, db: AsyncSession = Depends(get_session)):
    try:
        user_id, old_jti = await auth_service.verify_refresh_token(payload.refresh_token)
    except Exception:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
    async with db.begin():
        user = await db.get(User, user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")
    new_refresh, _ = await auth_service.rotate_refresh_token(old_jti, user_id)
    return {"access_token": auth_service.create_access_token(user.id, user.role), "refresh_token": new_refresh}


@router.post("/logout", status_code=204)
async def logout(payload: RefreshIn):
    try:
        _, jti = await auth_service.verify_refresh_token(payload.refresh_token)
    except Exception:
        # already invalid / revoked
        return None
    await auth_service.revoke_refresh_token(jti)
    return None
