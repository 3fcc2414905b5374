from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import HTTPException, status
from welfare.core.config import settings
import string

# bcrypt rounds come from settings so tests can hash cheaply
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)

PASSWORD_RULES = [
    (lambda p: any(c.isupper() for c in p), "Password must contain at least one uppercase letter"),
    (lambda p: any(c.islower() for c in p), "Password must contain at least one lowercase letter"),
    (lambda p: any(c.isdigit() for c in p), "Password must contain at least one digit"),
    (lambda p: any(c in string.punctuation for c in p), "Password must contain at least one special character"),
]
MIN_PASSWORD_LENGTH = 8


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def password_policy_error(password: str) -> Optional[str]:
    """First password rule the candidate breaks, or None if it passes"""
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    for check, message in PASSWORD_RULES:
        if not check(password):
            return message
    return None


def _encode(data: Dict[str, Any], token_type: str, lifetime: timedelta) -> str:
    claims = dict(data)
    claims["exp"] = datetime.now(timezone.utc) + lifetime
    claims["type"] = token_type
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Short-lived bearer token; `sub` carries the member id"""
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode(data, "access", lifetime)


def create_refresh_token(data: Dict[str, Any]) -> str:
    return _encode(data, "refresh", timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS))


def decode_token(token: str) -> Dict[str, Any]:
    """Decode a token, raising 401 when it is malformed, forged or expired"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


def token_seconds_remaining(payload: Dict[str, Any]) -> int:
    """Seconds until a decoded token expires (0 if already expired)"""
    exp = payload.get("exp")
    if exp is None:
        return 0
    return max(int(exp - datetime.now(timezone.utc).timestamp()), 0)


def mask_email(email: str) -> str:
    """j*****u@farova.org style masking for log lines"""
    username, sep, domain = email.partition("@")
    if not sep or not username:
        return email
    if len(username) <= 2:
        return f"{username[0]}*@{domain}"
    return f"{username[0]}{'*' * (len(username) - 2)}{username[-1]}@{domain}"
