"""
Auth Service
Organization accounts: sign-up, sign-in, sign-out, token refresh and password reset.
"""
import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlsplit
from uuid import uuid4

from fastapi.concurrency import run_in_threadpool
from jose import JWTError
from passlib.context import CryptContext
from pymongo.errors import DuplicateKeyError, PyMongoError

from divein.config import _now_utc, create_access_token, create_refresh_token, decode_token, settings
from divein.db import get_collection
from divein.errors import AuthError, StoreError, ValidationError
from divein.models.opportunities import validate_http_url
from divein.models.users import Principal, UserCreate
from divein.services.email_service import password_reset_email, send_email

logger = logging.getLogger(__name__)

EMAIL_ALREADY_REGISTERED = "Această adresă de email este deja înregistrată"
INVALID_CREDENTIALS = "Email sau parolă incorectă"
INVALID_SESSION = "Sesiune invalidă sau expirată"
INVALID_RESET_TOKEN = "Linkul de resetare este invalid sau a expirat"
INVALID_RESET_REDIRECT = "Linkul de resetare trebuie să ducă la aplicația DiveIn"
UNEXPECTED_ERROR = "A apărut o eroare neașteptată"

pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _prehash(password: str) -> bytes:
    """
    Pre-hash arbitrary-length password with SHA-256 and return raw bytes.
    This ensures bcrypt always receives a fixed-length input (32 bytes).
    """
    return hashlib.sha256(password.encode("utf-8")).digest()


def hash_password(password: str) -> str:
    return pwd_ctx.hash(_prehash(password))


def verify_password(plain: str, hashed: str) -> bool:
    pre = _prehash(plain)
    try:
        return pwd_ctx.verify(pre, hashed)
    except Exception:
        return False


def _hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode()).hexdigest()


def validate_new_password(password: str, confirm_password: str) -> None:
    if password != confirm_password:
        raise ValidationError("confirm_password", "Parolele nu coincid")
    if len(password) < settings.password_min_length:
        raise ValidationError(
            "password",
            f"Parola trebuie să aibă cel puțin {settings.password_min_length} caractere",
        )


def _origin(url: str) -> tuple:
    parts = urlsplit(url.strip())
    return parts.scheme.lower(), parts.netloc.lower()


def reset_link_base(redirect_url: Optional[str] = None) -> str:
    """
    Where the emailed reset link points. A caller-supplied URL must share the
    frontend origin.
    """
    default = f"{settings.frontend_url.rstrip('/')}/auth?mode=reset-password"
    if not redirect_url:
        return default
    try:
        redirect_url = validate_http_url(redirect_url)
    except ValueError:
        raise ValidationError("redirect_url", INVALID_RESET_REDIRECT)
    if _origin(redirect_url) != _origin(settings.frontend_url):
        raise ValidationError("redirect_url", INVALID_RESET_REDIRECT)
    return redirect_url


def _user_info(user_doc: Dict[str, Any], organization_name: Optional[str] = None) -> Dict[str, Any]:
    created_at = user_doc.get("created_at")
    return {
        "id": user_doc["_id"],
        "email": user_doc["email"],
        "role": user_doc.get("role", "organization"),
        "organization_name": organization_name,
        "created_at": created_at.isoformat() if created_at else None,
    }


class AuthService:
    def __init__(
        self,
        users=None,
        organizations=None,
        reset_tokens=None,
        revoked_tokens=None,
        mailer: Callable[[str, str, str], Any] = send_email,
    ) -> None:
        self.users = users if users is not None else get_collection("users")
        self.organizations = organizations if organizations is not None else get_collection("organizations")
        self.reset_tokens = reset_tokens if reset_tokens is not None else get_collection("password_reset_tokens")
        self.revoked_tokens = revoked_tokens if revoked_tokens is not None else get_collection("revoked_tokens")
        self.mailer = mailer

    # -----------------------
    # Sign-up / sign-in
    # -----------------------
    async def sign_up(self, data: UserCreate) -> Dict[str, Any]:
        validate_new_password(data.password, data.confirm_password)
        organization_name = (data.organization_name or "").strip()
        if not organization_name:
            raise ValidationError("organization_name", "Numele organizației este obligatoriu")

        email = data.email.lower()
        now = _now_utc()
        user_id = str(uuid4())
        user_doc = {
            "_id": user_id,
            "email": email,
            "password_hash": hash_password(data.password),
            "role": "organization",
            "created_at": now,
        }
        try:
            if await self.users.find_one({"email": email}):
                raise AuthError(EMAIL_ALREADY_REGISTERED, status_code=400)
            await self.users.insert_one(user_doc)
        except DuplicateKeyError:
            raise AuthError(EMAIL_ALREADY_REGISTERED, status_code=400)
        except PyMongoError as exc:
            logger.exception("Sign-up failed for %s", email)
            raise StoreError(UNEXPECTED_ERROR, cause=exc) from exc

        try:
            await self.organizations.insert_one({
                "_id": str(uuid4()),
                "user_id": user_id,
                "organization_name": organization_name,
                "created_at": now,
            })
        except PyMongoError as exc:
            logger.exception("Organization profile insert failed for %s, removing user %s", email, user_id)
            await self._discard_user(user_id)
            raise StoreError(UNEXPECTED_ERROR, cause=exc) from exc

        logger.info("Organization %s registered (%s)", organization_name, user_id)
        return _user_info(user_doc, organization_name)

    async def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        email = email.lower()
        try:
            user_doc = await self.users.find_one({"email": email})
        except PyMongoError as exc:
            logger.exception("Sign-in lookup failed for %s", email)
            raise StoreError(UNEXPECTED_ERROR, cause=exc) from exc

        if not user_doc or not verify_password(password, user_doc.get("password_hash", "")):
            raise AuthError(INVALID_CREDENTIALS)

        return {
            "user": _user_info(user_doc, await self._organization_name(user_doc["_id"])),
            **self._issue_tokens(user_doc),
        }

    async def refresh(self, refresh_token: str) -> Dict[str, str]:
        claims = self._decode(refresh_token, "refresh")
        if await self.is_revoked(claims.get("jti")):
            raise AuthError(INVALID_SESSION)

        user_doc = await self._find_user(claims.get("sub"))
        if not user_doc:
            raise AuthError(INVALID_SESSION)

        # rotation: the presented refresh token is single-use
        await self._revoke(claims)
        return self._issue_tokens(user_doc)

    async def sign_out(self, access_claims: Dict[str, Any], refresh_token: Optional[str] = None) -> None:
        await self._revoke(access_claims)
        if refresh_token:
            try:
                refresh_claims = self._decode(refresh_token, "refresh")
            except AuthError:
                logger.info("Ignoring invalid refresh token on sign-out for %s", access_claims.get("sub"))
            else:
                if refresh_claims.get("sub") == access_claims.get("sub"):
                    await self._revoke(refresh_claims)
        logger.info("User %s signed out", access_claims.get("sub"))

    # -----------------------
    # Session
    # -----------------------
    async def get_principal(self, token: str) -> Principal:
        claims = await self.get_claims(token)
        user_doc = await self._find_user(claims.get("sub"))
        if not user_doc:
            raise AuthError(INVALID_SESSION)
        return Principal(id=user_doc["_id"], email=user_doc["email"], role=user_doc.get("role", "organization"))

    async def get_claims(self, token: str) -> Dict[str, Any]:
        claims = self._decode(token, "access")
        if await self.is_revoked(claims.get("jti")):
            raise AuthError(INVALID_SESSION)
        return claims

    async def describe(self, principal: Principal) -> Dict[str, Any]:
        user_doc = await self._find_user(principal.id)
        if not user_doc:
            raise AuthError(INVALID_SESSION)
        return _user_info(user_doc, await self._organization_name(principal.id))

    async def get_organization(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            doc = await self.organizations.find_one({"user_id": user_id})
        except PyMongoError as exc:
            logger.exception("Organization lookup failed for user %s", user_id)
            raise StoreError(UNEXPECTED_ERROR, cause=exc) from exc
        if not doc:
            return None
        return {"user_id": doc["user_id"], "organization_name": doc["organization_name"]}

    async def is_revoked(self, jti: Optional[str]) -> bool:
        if not jti:
            return True
        try:
            return await self.revoked_tokens.find_one({"jti": jti}) is not None
        except PyMongoError as exc:
            logger.exception("Revocation lookup failed")
            raise StoreError(UNEXPECTED_ERROR, cause=exc) from exc

    # -----------------------
    # Password reset
    # -----------------------
    async def request_password_reset(self, email: str, redirect_url: Optional[str] = None) -> None:
        email = (email or "").strip().lower()
        if not email:
            raise ValidationError("email", "Introdu adresa de email pentru resetarea parolei")
        base_url = reset_link_base(redirect_url)

        try:
            user_doc = await self.users.find_one({"email": email})
        except PyMongoError as exc:
            logger.exception("Password reset lookup failed")
            raise StoreError(UNEXPECTED_ERROR, cause=exc) from exc
        if not user_doc:
            # same outcome as a known address
            logger.info("Password reset requested for unknown email")
            return

        raw_token = secrets.token_urlsafe(32)
        now = _now_utc()
        try:
            await self.reset_tokens.insert_one({
                "_id": str(uuid4()),
                "user_id": user_doc["_id"],
                "token_hash": _hash_token(raw_token),
                "used": False,
                "expires_at": now + timedelta(minutes=settings.password_reset_expire_minutes),
                "created_at": now,
            })
        except PyMongoError as exc:
            logger.exception("Failed to store password reset token for user %s", user_doc["_id"])
            raise StoreError(UNEXPECTED_ERROR, cause=exc) from exc

        separator = "&" if "?" in base_url else "?"
        reset_url = f"{base_url}{separator}token={raw_token}"
        try:
            await run_in_threadpool(
                self.mailer,
                user_doc["email"],
                "Resetarea parolei DiveIn",
                password_reset_email(reset_url),
            )
        except RuntimeError:
            # the caller sees the same response as for an unknown address
            logger.exception("Password reset email failed for user %s", user_doc["_id"])

    async def confirm_password_reset(self, token: str, password: str, confirm_password: str) -> None:
        validate_new_password(password, confirm_password)
        try:
            token_doc = await self.reset_tokens.find_one({
                "token_hash": _hash_token(token),
                "used": False,
                "expires_at": {"$gt": _now_utc()},
            })
            if not token_doc:
                raise AuthError(INVALID_RESET_TOKEN, status_code=400)

            await self.users.update_one(
                {"_id": token_doc["user_id"]},
                {"$set": {"password_hash": hash_password(password)}},
            )
            await self.reset_tokens.update_one(
                {"_id": token_doc["_id"]},
                {"$set": {"used": True, "used_at": _now_utc()}},
            )
        except PyMongoError as exc:
            logger.exception("Password reset confirmation failed")
            raise StoreError(UNEXPECTED_ERROR, cause=exc) from exc
        logger.info("Password reset completed for user %s", token_doc["user_id"])

    # -----------------------
    # Helpers
    # -----------------------
    def _issue_tokens(self, user_doc: Dict[str, Any]) -> Dict[str, str]:
        token_data = {"sub": user_doc["_id"], "email": user_doc["email"]}
        return {
            "access_token": create_access_token(token_data),
            "refresh_token": create_refresh_token(token_data),
        }

    def _decode(self, token: str, token_type: str) -> Dict[str, Any]:
        try:
            claims = decode_token(token)
        except JWTError:
            raise AuthError(INVALID_SESSION)
        if claims.get("type") != token_type or not claims.get("sub"):
            raise AuthError(INVALID_SESSION)
        return claims

    async def _find_user(self, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        try:
            return await self.users.find_one({"_id": user_id})
        except PyMongoError as exc:
            logger.exception("User lookup failed for %s", user_id)
            raise StoreError(UNEXPECTED_ERROR, cause=exc) from exc

    async def _discard_user(self, user_id: str) -> None:
        try:
            await self.users.delete_one({"_id": user_id})
        except PyMongoError:
            logger.exception("Could not remove incomplete user %s", user_id)

    async def _revoke(self, claims: Dict[str, Any]) -> None:
        jti = claims.get("jti")
        if not jti or await self.is_revoked(jti):
            return
        exp = claims.get("exp")
        try:
            await self.revoked_tokens.insert_one({
                "_id": str(uuid4()),
                "jti": jti,
                "user_id": claims.get("sub"),
                "expires_at": datetime.fromtimestamp(exp, tz=timezone.utc) if exp else None,
                "revoked_at": _now_utc(),
            })
        except DuplicateKeyError:
            logger.info("Token %s already revoked", jti)
        except PyMongoError as exc:
            logger.exception("Failed to revoke token for user %s", claims.get("sub"))
            raise StoreError(UNEXPECTED_ERROR, cause=exc) from exc

    async def _organization_name(self, user_id: str) -> Optional[str]:
        organization = await self.get_organization(user_id)
        return organization["organization_name"] if organization else None


def get_auth_service() -> AuthService:
    return AuthService()
