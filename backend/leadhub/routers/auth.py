"""Auth router: register, email verification, login, logout, password reset"""
from fastapi import APIRouter, Depends, HTTPException, Response, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from leadhub.core.database import get_db
from leadhub.core.redis import get_redis
from leadhub.core.session import create_session, destroy_session, invalidate_user_sessions
from leadhub.core.csrf import generate_csrf_token
from leadhub.core.config import settings
from leadhub.core.rate_limit import (
    limiter,
    LOGIN_RATE_LIMIT,
    REGISTER_RATE_LIMIT,
    PASSWORD_RESET_RATE_LIMIT,
    VERIFY_CODE_RATE_LIMIT,
)
from leadhub.schemas.auth import (
    RegisterRequest,
    VerifyEmailRequest,
    LoginRequest,
    PasswordResetRequest,
    PasswordResetConfirm,
    AuthResponse,
    UserInfo,
)
from leadhub.services import auth_service
from leadhub.services.mail_service import send_verify_code_email, send_password_reset_email
from leadhub.routers.deps import require_login

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _set_session_cookie(response: Response, session_id: str, csrf_token: str) -> None:
    response.set_cookie(
        key="session_id",
        value=session_id,
        httponly=True,
        secure=not settings.DEBUG,
        samesite="lax",
        max_age=settings.SESSION_TIMEOUT_MINUTES * 60,
    )
    response.headers["X-CSRF-Token"] = csrf_token


@router.post("/register", response_model=AuthResponse)
@limiter.limit(REGISTER_RATE_LIMIT)
async def register(request: Request, req: RegisterRequest, db: Session = Depends(get_db), r=Depends(get_redis)):
    existing = auth_service.get_user_by_email(db, req.email)
    if existing:
        raise HTTPException(status_code=400, detail="This email address is already registered")

    user = auth_service.create_user(
        db=db,
        email=req.email,
        password=req.password,
        name=req.name,
    )

    code = await auth_service.generate_verify_code(r, user.id)
    if code:
        send_verify_code_email(to_email=user.email, name=user.name, code=code)

    return AuthResponse(message="Registered. A verification code has been sent to your email.", user_id=user.id)


@router.post("/verify-email", response_model=AuthResponse)
@limiter.limit(VERIFY_CODE_RATE_LIMIT)
async def verify_email(
    request: Request,
    req: VerifyEmailRequest,
    response: Response,
    db: Session = Depends(get_db),
    r=Depends(get_redis),
):
    """Check the 6-digit code, activate the account and sign in"""
    success, msg = await auth_service.verify_code(r, req.user_id, req.code)
    if not success:
        raise HTTPException(status_code=400, detail=msg)

    user = auth_service.get_user_by_id(db, req.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.status == "inactive":
        raise HTTPException(status_code=403, detail="This account has been deactivated")
    user = auth_service.mark_verified(db, user)
    auth_service.record_login(db, user)

    session_id = await create_session(r, user.id, user.role, user.email)
    csrf_token = await generate_csrf_token(session_id)
    _set_session_cookie(response, session_id, csrf_token)

    return AuthResponse(message="Email verified", user_id=user.id, csrf_token=csrf_token)


@router.post("/resend-code", response_model=AuthResponse)
@limiter.limit(VERIFY_CODE_RATE_LIMIT)
async def resend_verify_code(
    request: Request,
    user_id: int,
    db: Session = Depends(get_db),
    r=Depends(get_redis),
):
    user = auth_service.get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if user.verified:
        raise HTTPException(status_code=400, detail="This email address is already verified")

    code = await auth_service.generate_verify_code(r, user.id)
    if code is None:
        raise HTTPException(status_code=429, detail="Verification is locked. Please try again later.")

    send_verify_code_email(to_email=user.email, name=user.name, code=code)
    return AuthResponse(message="A new verification code has been sent")


@router.post("/login", response_model=AuthResponse)
@limiter.limit(LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    req: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    r=Depends(get_redis),
):
    user = auth_service.get_user_by_email(db, req.email)
    if not user or not auth_service.verify_password(req.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Incorrect email address or password")

    if user.status == "inactive":
        raise HTTPException(status_code=403, detail="This account has been deactivated")

    if not user.verified:
        code = await auth_service.generate_verify_code(r, user.id)
        if code:
            send_verify_code_email(to_email=user.email, name=user.name, code=code)
        return JSONResponse(
            status_code=403,
            content={
                "detail": "Your email address is not verified. A new code has been sent.",
                "needs_verification": True,
                "user_id": user.id,
            },
        )

    # new session id on every login
    session_id = await create_session(r, user.id, user.role, user.email)
    csrf_token = await generate_csrf_token(session_id)
    _set_session_cookie(response, session_id, csrf_token)
    auth_service.record_login(db, user)

    return AuthResponse(message="Logged in", user_id=user.id, csrf_token=csrf_token)


@router.post("/logout")
async def logout(request: Request, response: Response, r=Depends(get_redis)):
    session_id = request.cookies.get("session_id")
    if session_id:
        await destroy_session(r, session_id)
    response.delete_cookie("session_id")
    return {"message": "Logged out"}


@router.post("/password-reset/request", response_model=AuthResponse)
@limiter.limit(PASSWORD_RESET_RATE_LIMIT)
async def request_password_reset(
    request: Request,
    req: PasswordResetRequest,
    db: Session = Depends(get_db),
    r=Depends(get_redis),
):
    user = auth_service.get_user_by_email(db, req.email)
    # same answer whether or not the address exists
    if user and user.status != "inactive":
        token = await auth_service.create_reset_token(r, user.id)
        reset_url = f"{settings.SITE_URL}/reset-password?token={token}"
        send_password_reset_email(to_email=user.email, name=user.name, reset_url=reset_url)
    return AuthResponse(message="If the address is registered, a reset link has been sent")


@router.post("/password-reset/confirm", response_model=AuthResponse)
@limiter.limit(PASSWORD_RESET_RATE_LIMIT)
async def confirm_password_reset(
    request: Request,
    req: PasswordResetConfirm,
    db: Session = Depends(get_db),
    r=Depends(get_redis),
):
    user_id = await auth_service.validate_reset_token(r, req.token)
    if user_id is None:
        raise HTTPException(status_code=400, detail="The reset token is invalid or has expired")

    user = auth_service.get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    user.password_hash = auth_service.hash_password(req.new_password)
    db.commit()
    await invalidate_user_sessions(r, user.id)

    return AuthResponse(message="Your password has been reset")


@router.get("/me", response_model=UserInfo)
async def get_me(user=Depends(require_login)):
    return UserInfo.model_validate(user)
