from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer

from divein.errors import AuthError
from divein.models.users import (
    LogoutRequest,
    PasswordResetConfirm,
    PasswordResetRequest,
    Principal,
    RefreshRequest,
    UserCreate,
    UserLogin,
)
from divein.services.auth_service import INVALID_SESSION, AuthService, get_auth_service

router = APIRouter(tags=["auth"])

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


# -----------------------
# Session dependencies
# -----------------------
async def get_current_claims(
    token: Optional[str] = Depends(oauth2_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> Dict[str, Any]:
    if not token:
        raise AuthError(INVALID_SESSION)
    return await auth_service.get_claims(token)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> Principal:
    if not token:
        raise AuthError(INVALID_SESSION)
    return await auth_service.get_principal(token)


async def get_optional_principal(
    token: Optional[str] = Depends(oauth2_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> Optional[Principal]:
    """Session context for public routes: the organization when signed in, None for visitors."""
    if not token:
        return None
    try:
        return await auth_service.get_principal(token)
    except AuthError:
        return None


# -----------------------
# Routes
# -----------------------
@router.post("/register")
async def register(user: UserCreate, auth_service: AuthService = Depends(get_auth_service)):
    created = await auth_service.sign_up(user)
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={
            "success": True,
            "message": "Cont creat cu succes! Te poți conecta acum.",
            "data": created,
        },
    )


@router.post("/login")
async def login(credentials: UserLogin, auth_service: AuthService = Depends(get_auth_service)):
    session = await auth_service.sign_in(credentials.email, credentials.password)
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"success": True, "message": "Conectare reușită!", "data": session},
    )


@router.post("/refresh")
async def refresh_token(req: RefreshRequest, auth_service: AuthService = Depends(get_auth_service)):
    tokens = await auth_service.refresh(req.refresh_token)
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"success": True, "data": tokens},
    )


@router.post("/logout")
async def logout(
    req: Optional[LogoutRequest] = None,
    claims: Dict[str, Any] = Depends(get_current_claims),
    auth_service: AuthService = Depends(get_auth_service),
):
    await auth_service.sign_out(claims, req.refresh_token if req else None)
    return JSONResponse(status_code=status.HTTP_200_OK, content={"success": True})


@router.get("/me")
async def get_current_user_details(
    current_user: Principal = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    """
    Get current authenticated user details, including the organization name.
    Requires a valid access token.
    """
    user_info = await auth_service.describe(current_user)
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"success": True, "data": jsonable_encoder(user_info)},
    )


@router.post("/password-reset")
async def request_password_reset(req: PasswordResetRequest, auth_service: AuthService = Depends(get_auth_service)):
    await auth_service.request_password_reset(req.email, req.redirect_url)
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"success": True, "message": "Email de resetare trimis! Verifică-ți inbox-ul."},
    )


@router.post("/password-reset/confirm")
async def confirm_password_reset(req: PasswordResetConfirm, auth_service: AuthService = Depends(get_auth_service)):
    await auth_service.confirm_password_reset(req.token, req.password, req.confirm_password)
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"success": True, "message": "Parola a fost actualizată."},
    )
