from datetime import timedelta
import logging

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from config import settings
from errors import Forbidden, Unauthorized
from models import parse_account, utcnow
from store import DocumentStore

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a secret
_BCRYPT_MAX_BYTES = 72


def _secret(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_secret(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_secret(password), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user_id: str, email: str, role: str) -> str:
    """Issue a signed token carrying the user id, email and role"""
    expire = utcnow() + timedelta(minutes=settings.JWT_EXPIRES_MINUTES)
    payload = {"sub": user_id, "email": email, "role": role, "exp": expire}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and expiry, returning the token payload"""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise Unauthorized("Your token has expired! Please log in again.")
    except JWTError:
        raise Unauthorized("Invalid token. Please log in again!")
    if not payload.get("sub"):
        raise Unauthorized("Invalid token. Please log in again!")
    return payload


def ensure_can_sign_in(account) -> None:
    if account.isBlocked:
        raise Forbidden("Account is blocked. Contact admin.")
    if not account.isActive:
        raise Forbidden("Account is deactivated.")


async def authenticate(store: DocumentStore, email: str, password: str):
    """Check email/password credentials and return the account with a fresh token"""
    matches = store.find("users", {"email": email.lower()}, limit=1)
    account = parse_account(matches[0]) if matches else None
    if account is None or not verify_password(password, account.passwordHash):
        logger.warning(f"Failed login attempt for {email}")
        raise Unauthorized("Invalid email or password")

    ensure_can_sign_in(account)
    token = create_access_token(account.id, account.email, account.role)
    logger.info(f"User logged in: {account.id}")
    return account, token
