from datetime import datetime

from fastapi import APIRouter, Cookie, Depends, HTTPException, Request, Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from branch_transfers.database import get_db, transaction
from branch_transfers.models.user import User, UserRole
from branch_transfers.services import auth_service

router = APIRouter(prefix="/auth", tags=["Auth"])

TOKEN_COOKIE = "token"


class LoginRequest(BaseModel):
    username: str
    password: str


class UserOut(BaseModel):
    id: int
    username: str
    display_name: str
    role: UserRole
    active: bool

    model_config = {"from_attributes": True}


class CreateUserRequest(BaseModel):
    username: str
    password: str
    display_name: str = ""
    role: str = UserRole.STAFF.value


class ActivityLogOut(BaseModel):
    id: int
    user_id: int
    username: str
    action: str
    transfer_id: int | None
    detail: str
    ip_address: str
    created_at: datetime | None

    model_config = {"from_attributes": True}


def get_current_user(
    token: str | None = Cookie(default=None, alias=TOKEN_COOKIE),
    db: Session = Depends(get_db),
) -> User:
    """Dependency: the active user named by the session cookie."""
    if not token:
        raise HTTPException(401, "Not authenticated")
    payload = auth_service.decode_token(token)
    if not payload:
        raise HTTPException(401, "Invalid or expired token")
    user = auth_service.get_user(db, int(payload["sub"]))
    if not user or not user.active:
        raise HTTPException(401, "User not found or disabled")
    return user


def require_roles(*roles: str):
    """Dependency factory: current user must hold one of ``roles``."""
    allowed = tuple(UserRole(r) for r in roles)

    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(403, f"Not allowed for role '{user.role.value}'")
        return user
    return checker


def client_ip(request: Request) -> str:
    return request.client.host if request.client else ""


@router.post("/login")
def login(data: LoginRequest, request: Request, response: Response, db: Session = Depends(get_db)):
    user = auth_service.authenticate(db, data.username, data.password)
    if not user:
        raise HTTPException(401, "Invalid username or password")
    token = auth_service.create_access_token(user.id, user.username)
    with transaction(db):
        auth_service.log_activity(db, user, "login", ip=client_ip(request))
    response.set_cookie(TOKEN_COOKIE, token, httponly=True, samesite="lax", max_age=auth_service.token_max_age())
    return {"token": token, "user": UserOut.model_validate(user)}


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(TOKEN_COOKIE)
    return {"ok": True}


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user


@router.get("/users", response_model=list[UserOut])
def list_users(user: User = Depends(require_roles("admin")), db: Session = Depends(get_db)):
    return auth_service.list_users(db)


@router.post("/users", response_model=UserOut, status_code=201)
def create_user(
    data: CreateUserRequest,
    request: Request,
    user: User = Depends(require_roles("admin")),
    db: Session = Depends(get_db),
):
    try:
        with transaction(db):
            created = auth_service.create_user(db, data.username, data.password, data.display_name, data.role)
            auth_service.log_activity(
                db, user, "create_user", detail=f"Created user {created.username} ({created.role.value})",
                ip=client_ip(request),
            )
    except ValueError as e:
        raise HTTPException(400, str(e))
    return created


@router.get("/activity", response_model=list[ActivityLogOut])
def activity_logs(
    limit: int = 100,
    user_id: int | None = None,
    transfer_id: int | None = None,
    user: User = Depends(require_roles("admin", "approver")),
    db: Session = Depends(get_db),
):
    return auth_service.get_activity_logs(db, limit=limit, user_id=user_id, transfer_id=transfer_id)
