import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from loan_tracker.config import Settings
from loan_tracker.database import get_db
from loan_tracker.errors import AuthenticationError, EmailTaken, StoreError, Unauthorized, UserNotFound
from loan_tracker.models.user import User
from loan_tracker.utils.timezone import now_utc
from loan_tracker.validation import check_email

logger = logging.getLogger(__name__)

# HTTP Bearer token - auto_error=False so we can fall back to the session cookie
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class UserIdentity:
    """Minimal identity projection handed out after authentication."""
    id: str
    email: str


class PasswordHasher:
    """bcrypt hashing with constant-time comparison."""

    def __init__(self, rounds: Optional[int] = None):
        options = {"bcrypt__rounds": rounds} if rounds else {}
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", **options)

    def hash(self, password: str) -> str:
        return self._context.hash(password)

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        try:
            return self._context.verify(plain_password, hashed_password)
        except ValueError as e:
            # Malformed stored hash counts as a mismatch
            logger.error(f"Password verification error: {e}. Hash format may be invalid.")
            return False

    def dummy_verify(self) -> None:
        """Spend the same time as a real verify when there is no user to check."""
        self._context.dummy_verify()


class TokenService:
    def __init__(self, settings: Settings):
        self.secret_key = settings.jwt_secret_key
        self.algorithm = settings.jwt_algorithm
        self.expire_minutes = settings.jwt_access_token_expire_minutes

    def create_access_token(self, identity: UserIdentity, expires_delta: Optional[timedelta] = None) -> str:
        """Create a signed session token for the identity."""
        expire = now_utc() + (expires_delta or timedelta(minutes=self.expire_minutes))
        to_encode = {"sub": identity.id, "email": identity.email, "exp": expire}
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def read_subject(self, token: str) -> str:
        """Return the user id carried by the token, or raise Unauthorized."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError as e:
            logger.warning(f"JWT validation error: {str(e)}")
            raise Unauthorized("Invalid or expired session")
        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            logger.warning("Token without subject")
            raise Unauthorized("Invalid or expired session")
        return subject


class CredentialVerifier:
    """Checks an email/password pair against the stored hash.

    Unknown email and wrong password fail with the same error, and both
    paths run one bcrypt verification so their timing matches.
    """

    def __init__(self, hasher: PasswordHasher):
        self.hasher = hasher

    def verify_credentials(self, db: Session, email: str, raw_password: str) -> UserIdentity:
        if check_email(email) or not raw_password:
            raise AuthenticationError()

        try:
            user = db.query(User).filter(User.email == email).first()
        except SQLAlchemyError as e:
            logger.error(f"Credential lookup failed: {e}", exc_info=True)
            raise StoreError()

        if user is None:
            self.hasher.dummy_verify()
            raise AuthenticationError()
        if not self.hasher.verify(raw_password, user.password_hash):
            raise AuthenticationError()

        return UserIdentity(id=user.id, email=user.email)


def register_user(db: Session, hasher: PasswordHasher, email: str, password: str) -> User:
    """Create a user; raises EmailTaken when the email is already registered."""
    if db.query(User).filter(User.email == email).first() is not None:
        raise EmailTaken()

    user = User(email=email, password_hash=hasher.hash(password))
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent registration of the same email
        db.rollback()
        raise EmailTaken()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to create user: {e}", exc_info=True)
        raise StoreError()
    db.refresh(user)
    logger.info(f"Registered user {user.id}")
    return user


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the request's session to a stored user.

    No usable session proof raises Unauthorized before any data access; a
    valid session for a user that no longer exists raises UserNotFound.
    """
    settings: Settings = request.app.state.settings
    token = credentials.credentials if credentials else request.cookies.get(settings.session_cookie_name)

    if not token:
        auth_header = request.headers.get("Authorization")
        if auth_header:
            logger.warning(f"Authorization header present but invalid format: {auth_header[:20]}")
        else:
            logger.warning("Session proof missing")
        raise Unauthorized()

    user_id = request.app.state.token_service.read_subject(token)

    try:
        user = db.query(User).filter(User.id == user_id).first()
    except SQLAlchemyError as e:
        logger.error(f"Identity lookup failed: {e}", exc_info=True)
        raise StoreError()
    if user is None:
        logger.warning(f"Session references unknown user {user_id}")
        raise UserNotFound()
    return user
