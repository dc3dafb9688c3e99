"""
Authentication router: sign-up, sign-in and current user.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from routers.auth_scope import AuthContext, get_auth_context
from services.accounts import confirm_email, get_current_user, sign_in, sign_up
from services.session_token import create_session_token

router = APIRouter()


class SignUpRequest(BaseModel):
    email: str
    password: str
    name: str


class SignInRequest(BaseModel):
    email: str
    password: str


class ConfirmEmailRequest(BaseModel):
    token: str


class CurrentUserResponse(BaseModel):
    user_id: str
    email: str
    name: str
    email_confirmed: bool = True


class SignUpResponse(CurrentUserResponse):
    needs_email_confirmation: bool = False
    session_token: Optional[str] = None
    session_expires_at: Optional[int] = None


class SessionResponse(CurrentUserResponse):
    session_token: str
    session_expires_at: int


@router.post("/signup", response_model=SignUpResponse, status_code=201)
async def signup(request: SignUpRequest, db: AsyncSession = Depends(get_db)):
    """Register an account; a session is issued only once the email is confirmed."""
    account = await sign_up(email=request.email, password=request.password, display_name=request.name, db=db)
    if account["needs_email_confirmation"]:
        return SignUpResponse(**account)

    session = create_session_token(account["user_id"], account["email"], account["name"])
    return SignUpResponse(**account, session_token=session["token"], session_expires_at=session["expires_at"])


@router.post("/confirm", response_model=SessionResponse)
async def confirm(request: ConfirmEmailRequest, db: AsyncSession = Depends(get_db)):
    """Confirm an email address from the emailed link and start a session."""
    account = await confirm_email(confirmation_token=request.token, db=db)
    session = create_session_token(account["user_id"], account["email"], account["name"])
    return SessionResponse(**account, session_token=session["token"], session_expires_at=session["expires_at"])


@router.post("/login", response_model=SessionResponse)
async def login(request: SignInRequest, db: AsyncSession = Depends(get_db)):
    account = await sign_in(email=request.email, password=request.password, db=db)
    session = create_session_token(account["user_id"], account["email"], account["name"])
    return SessionResponse(**account, session_token=session["token"], session_expires_at=session["expires_at"])


@router.get("/me", response_model=CurrentUserResponse)
async def me(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    return await get_current_user(user_id=auth.user_id, db=db)


@router.post("/logout")
async def logout(_auth: AuthContext = Depends(get_auth_context)):
    """Sessions are stateless; the client discards its token."""
    return {"message": "Logged out successfully"}
