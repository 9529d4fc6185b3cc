import logging
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from sqlalchemy import exists, func, select
from sqlalchemy.orm import Session

from branch_transfers.config import settings
from branch_transfers.database import transaction
from branch_transfers.models.user import ActivityLog, User, UserRole

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode(), hashed.encode())


def token_max_age() -> int:
    """Token lifetime in seconds; the session cookie lives exactly as long."""
    return settings.ACCESS_TOKEN_EXPIRE_HOURS * 3600


def create_access_token(user_id: int, username: str) -> str:
    expires = datetime.now(timezone.utc) + timedelta(seconds=token_max_age())
    payload = {"sub": str(user_id), "username": username, "exp": expires}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None


def authenticate(db: Session, username: str, password: str) -> User | None:
    user = db.execute(
        select(User).where(User.username == username, User.active.is_(True))
    ).scalar_one_or_none()
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


def get_user(db: Session, user_id: int) -> User | None:
    return db.get(User, user_id)


def create_user(
    db: Session, username: str, password: str, display_name: str = "", role: UserRole | str = UserRole.STAFF
) -> User:
    """Add a user to the caller's unit of work. Raises ValueError for a bad role or a taken username."""
    try:
        role = UserRole(role)
    except ValueError:
        raise ValueError(f"Unknown role '{role}'") from None
    if db.execute(select(exists().where(User.username == username))).scalar():
        raise ValueError(f"Username '{username}' already exists")

    user = User(
        username=username,
        display_name=display_name or username,
        password_hash=hash_password(password),
        role=role,
    )
    db.add(user)
    db.flush()
    return user


def list_users(db: Session) -> list[User]:
    return list(db.execute(select(User).order_by(User.username)).scalars())


def ensure_default_admin(db: Session) -> None:
    """Create the configured admin account when the users table is empty."""
    with transaction(db):
        if db.execute(select(func.count(User.id))).scalar():
            return
        create_user(
            db,
            username=settings.DEFAULT_ADMIN_USERNAME,
            password=settings.DEFAULT_ADMIN_PASSWORD,
            display_name="Admin",
            role=UserRole.ADMIN,
        )
    logger.warning("Created default admin user '%s'; change its password", settings.DEFAULT_ADMIN_USERNAME)


# Activity log

def log_activity(
    db: Session,
    user: User,
    action: str,
    detail: str = "",
    ip: str = "",
    transfer_id: int | None = None,
) -> ActivityLog:
    """Stage an activity row; it commits with the caller's transaction."""
    entry = ActivityLog(
        user_id=user.id,
        username=user.username,
        action=action,
        transfer_id=transfer_id,
        detail=detail[:500],
        ip_address=ip,
    )
    db.add(entry)
    db.flush()
    return entry


def get_activity_logs(
    db: Session, limit: int = 100, user_id: int | None = None, transfer_id: int | None = None
) -> list[ActivityLog]:
    q = select(ActivityLog)
    if user_id is not None:
        q = q.where(ActivityLog.user_id == user_id)
    if transfer_id is not None:
        q = q.where(ActivityLog.transfer_id == transfer_id)
    q = q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit)
    return list(db.execute(q).scalars())
