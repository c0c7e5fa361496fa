"""Authentication routes.

Clients sign up themselves. Writers are provisioned by an admin. The
first admin is bootstrapped at startup from configuration.
"""

from fastapi import APIRouter, HTTPException, Request, Response, status

from inkwell.logging_config import log_marketplace_event
from inkwell.marketplace.errors import ValidationError
from inkwell.marketplace.identity import Role
from inkwell.marketplace.users import User

from ..auth import (
    AUTH_COOKIE_NAME,
    AdminUser,
    CurrentUser,
    generate_user_id,
    hash_password,
    verify_password,
)
from ..config import Settings
from ..context import Context
from ..logging_config import get_logger
from ..models import (
    LoginRequest,
    RoleResponse,
    SignupRequest,
    TokenResponse,
    UserInfo,
    WriterCreate,
)
from ..rate_limit import limiter

logger = get_logger("auth")
router = APIRouter(prefix="/api", tags=["auth"])


def set_auth_cookie(response: Response, token: str, settings: Settings):
    """Set httpOnly auth cookie."""
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.jwt_expire_minutes * 60,
        httponly=True,
        secure=not settings.debug,
        samesite="strict",
        path="/",
    )


def _new_user(body, role: Role) -> User:
    try:
        return User(
            id=generate_user_id(),
            email=body.email,
            password_hash=hash_password(body.password),
            role=role,
            name=body.name,
            phone=body.phone,
        )
    except ValueError as e:
        raise ValidationError(str(e)) from e


def _token_response(ctx, user: User) -> TokenResponse:
    return TokenResponse(
        access_token=ctx.identity.issue(user.id, user.role_enum),
        expires_in=ctx.settings.jwt_expire_minutes * 60,
        user_id=user.id,
        role=user.role,
    )


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def signup(request: Request, response: Response, body: SignupRequest, ctx: Context):
    """
    Register a client account.

    Only clients can sign up. Writers are added by an admin.
    """
    logger.info(f"POST /api/signup | email={body.email}")

    user = _new_user(body, Role.CLIENT)
    ctx.users.save_user(user)

    token = _token_response(ctx, user)
    set_auth_cookie(response, token.access_token, ctx.settings)
    log_marketplace_event("signup", f"role={user.role}", actor=user.id)
    logger.info(f"Client registered | id={user.id}")
    return token


@router.post("/login", response_model=TokenResponse)
@limiter.limit("10/minute")
async def login(request: Request, response: Response, body: LoginRequest, ctx: Context):
    """Exchange email and password for an access token."""
    logger.info(f"POST /api/login | email={body.email}")

    user = ctx.users.get_user_by_email(body.email)
    if not user or not verify_password(body.password, user.password_hash):
        logger.warning(f"Login failed | email={body.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = _token_response(ctx, user)
    set_auth_cookie(response, token.access_token, ctx.settings)
    log_marketplace_event("login", f"role={user.role}", actor=user.id)
    return token


@router.get("/user/role", response_model=RoleResponse)
@limiter.limit("60/minute")
async def get_user_role(request: Request, identity: CurrentUser):
    """Return the caller's role from their token."""
    return RoleResponse(user_id=identity.user_id, role=identity.role.value)


@router.post("/admin/writers", response_model=UserInfo, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def add_writer(request: Request, body: WriterCreate, admin: AdminUser, ctx: Context):
    """Provision a writer account (admin only)."""
    logger.info(f"POST /api/admin/writers | admin={admin.user_id} | email={body.email}")

    writer = _new_user(body, Role.WRITER)
    ctx.users.save_user(writer)

    log_marketplace_event("writer_added", f"writer={writer.id}", actor=admin.user_id)
    logger.info(f"Writer added | id={writer.id} | by={admin.user_id}")
    return UserInfo(**writer.to_public_dict())
