"""Authentication helpers: password hashing, JWT tokens, shared-secret checks."""

# Standard library
import hmac
import logging
import warnings
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

# Third-party
from jose import jwt, JWTError, ExpiredSignatureError
from passlib.context import CryptContext

# Local
from geata_core.config import Settings, INSECURE_SECRET_KEY


# Load env from backend file
Settings().load_backend_env()

logger = logging.getLogger(__name__)

_settings = Settings()
SECRET_KEY = _settings.secret_key

if SECRET_KEY == INSECURE_SECRET_KEY:
    warnings.warn(
        "Using insecure default SECRET_KEY. Set a proper one in your environment!",
        RuntimeWarning,
    )
    logger.warning("auth: insecure default SECRET_KEY in use; set a proper one in env")

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = _settings.access_token_expire_hours

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a hashed value."""
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # unknown/corrupt hash format
        return False


def hash_password(password: str) -> str:
    """Return a hashed representation of ``password``."""
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT access token containing ``data``.

    note: accepts a dict (e.g., {"sub": user_id}).
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_token_raw(token: str) -> Dict:
    """Decode a JWT token without translating exceptions."""
    return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])


def decode_token(token: str) -> Dict:
    """Safe decode a JWT token with controlled exceptions."""
    try:
        return decode_token_raw(token)
    except ExpiredSignatureError as e:
        raise ExpiredSignatureError("Token expired") from e
    except JWTError as e:
        raise JWTError("Invalid token") from e


def safe_compare(a: Optional[str], b: Optional[str]) -> bool:
    """Constant-time string equality; ``None`` never matches."""
    if a is None or b is None:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


__all__ = [
    "verify_password",
    "hash_password",
    "create_access_token",
    "decode_token_raw",
    "decode_token",
    "safe_compare",
    "ExpiredSignatureError",
    "JWTError",
]
