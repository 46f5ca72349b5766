import logging
from typing import Any
from fastapi import APIRouter, Body, Depends, Request, Response, status
from sqlalchemy.orm import Session
from loan_tracker.database import get_db
from loan_tracker.errors import AuthenticationError, ValidationError
from loan_tracker.models.user import User
from loan_tracker.schemas.auth import RegisterResponse, Token, UserResponse
from loan_tracker.services.auth import get_current_user, register_user
from loan_tracker.services.rate_limit import LoginThrottle
from loan_tracker.utils.result import Err
from loan_tracker.validation import validate_login, validate_registration

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: Request,
    payload: Any = Body(None),
    db: Session = Depends(get_db)
):
    """Register a new user."""
    result = validate_registration(payload)
    if isinstance(result, Err):
        raise ValidationError(result.errors)

    user = register_user(db, request.app.state.password_hasher, result.value.email, result.value.password)
    return RegisterResponse(message="User created successfully", userId=user.id)

@router.post("/login", response_model=Token)
async def login(
    request: Request,
    response: Response,
    payload: Any = Body(None),
    db: Session = Depends(get_db)
):
    """Check credentials and open a session."""
    settings = request.app.state.settings
    throttle: LoginThrottle = request.app.state.login_throttle
    email = payload.get("email") if isinstance(payload, dict) else None
    client_ip = request.client.host if request.client else "unknown"
    key = LoginThrottle.key_for(str(email), client_ip)
    throttle.check(key)

    result = validate_login(payload)
    if isinstance(result, Err):
        raise ValidationError(result.errors)

    try:
        identity = request.app.state.credential_verifier.verify_credentials(
            db, result.value.email, result.value.password
        )
    except AuthenticationError:
        throttle.record_failure(key)
        logger.info(f"Failed login from {client_ip}")
        raise
    throttle.reset(key)

    access_token = request.app.state.token_service.create_access_token(identity)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=access_token,
        max_age=settings.jwt_access_token_expire_minutes * 60,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
    return Token(
        access_token=access_token,
        token_type="bearer",
        user=UserResponse(id=identity.id, email=identity.email),
    )

@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(request: Request, response: Response):
    """Clear the session cookie."""
    response.delete_cookie(request.app.state.settings.session_cookie_name)
    response.status_code = status.HTTP_204_NO_CONTENT
    return response

@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: User = Depends(get_current_user)):
    """Get current authenticated user information."""
    return UserResponse(id=current_user.id, email=current_user.email)
