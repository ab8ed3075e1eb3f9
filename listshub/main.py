import logging
from datetime import timedelta
from typing import Optional

import psycopg2
from dotenv import load_dotenv
from fastapi import Cookie, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware

from listshub import app_context
from listshub.app.accounts.auth import InvalidCredentialsError
from listshub.app.accounts.models import UserAccount
from listshub.app.accounts.session import bootstrap_session
from listshub.app.accounts.tokens import create_access_token, decode_access_token
from listshub.app.clock import current_time
from listshub.app.errors import DOMAIN_ERRORS, to_http_exception
from listshub.app.routes.entitlements import router as entitlements_router
from listshub.app.routes.families import router as families_router
from listshub.app.routes.invites import family_router as family_invites_router
from listshub.app.routes.invites import router as invites_router
from listshub.app.routes.lists import router as lists_router
from listshub.app.schemas.accounts import (
    PasswordResetConfirm,
    PasswordResetRequest,
    PasswordResetResponse,
    SignInRequest,
    SignUpRequest,
)
from listshub.app.schemas.families import UserOut
from listshub.app.services.accounts import get_auth_service, get_user_repository
from listshub.config import load_config

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("listshub")

CONFIG = load_config()
SESSION_COOKIE_NAME = CONFIG.session_cookie_name


def get_conn():
    return psycopg2.connect(**CONFIG.db_params)


def resolve_user_from_session_token(session_token: str) -> Optional[UserAccount]:
    user_id = decode_access_token(
        session_token,
        secret_key=CONFIG.jwt_secret_key,
        algorithm=CONFIG.jwt_algorithm,
    )
    if user_id is None:
        return None
    return bootstrap_session(get_user_repository(), user_id)


def get_current_user(session_token: Optional[str] = Cookie(None, alias=SESSION_COOKIE_NAME)) -> UserAccount:
    if not session_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    user = resolve_user_from_session_token(session_token)
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user


app_context.configure(get_conn=get_conn, get_current_user=get_current_user)


def _set_session_cookie(response: Response, user: UserAccount) -> None:
    expires_delta = timedelta(minutes=CONFIG.jwt_exp_minutes)
    token = create_access_token(
        subject=user.id,
        secret_key=CONFIG.jwt_secret_key,
        expires_delta=expires_delta,
        algorithm=CONFIG.jwt_algorithm,
    )
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=CONFIG.session_cookie_secure,
        max_age=int(expires_delta.total_seconds()),
        path="/",
    )


app = FastAPI(title="ListsHub API")

# Vite proxy origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(families_router)
app.include_router(family_invites_router)
app.include_router(invites_router)
app.include_router(lists_router)
app.include_router(entitlements_router)


@app.post("/api/auth/signup", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def signup(payload: SignUpRequest, response: Response):
    service = get_auth_service()
    try:
        user = service.sign_up(
            payload.email,
            payload.password,
            payload.display_name,
            locale=payload.locale,
            family_name=payload.family_name,
        )
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc

    _set_session_cookie(response, user)
    logger.info("User %s signed up", user.id)
    return UserOut.from_user(user)


@app.post("/api/auth/login", response_model=UserOut)
def login(payload: SignInRequest, response: Response):
    service = get_auth_service()
    try:
        user = service.sign_in(payload.email, payload.password)
    except InvalidCredentialsError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is not active")
    _set_session_cookie(response, user)
    return UserOut.from_user(user)


@app.post("/api/auth/logout")
def logout(response: Response, request: Request):
    response.delete_cookie(
        SESSION_COOKIE_NAME,
        path="/",
        httponly=True,
        samesite="lax",
        secure=CONFIG.session_cookie_secure,
    )
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if token:
        user_id = decode_access_token(
            token, secret_key=CONFIG.jwt_secret_key, algorithm=CONFIG.jwt_algorithm
        )
        logger.info("User %s logged out", user_id)
    return {"ok": True}


@app.get("/api/auth/me", response_model=UserOut)
def read_current_user(current_user: UserAccount = Depends(get_current_user)):
    return UserOut.from_user(current_user)


@app.post("/api/auth/password-reset", response_model=PasswordResetResponse)
def request_password_reset(payload: PasswordResetRequest):
    service = get_auth_service()
    expires_at = service.request_password_reset(payload.email)
    if expires_at is None:
        expires_at = current_time(service.clock) + service.reset_token_ttl
    return PasswordResetResponse(
        message="If an account matches the information provided, a reset email has been sent.",
        expires_at=expires_at,
    )


@app.post("/api/auth/password-reset/confirm")
def confirm_password_reset(payload: PasswordResetConfirm):
    service = get_auth_service()
    try:
        service.reset_password(payload.token, payload.password)
    except DOMAIN_ERRORS as exc:
        raise to_http_exception(exc) from exc
    return {"ok": True}


@app.get("/api/healthz")
def healthz():
    return {"ok": True}
