from datetime import timedelta
from typing import Dict, List, Optional

from fastapi import Depends, HTTPException, status, Request
from jose import jwt
from jose.exceptions import JWTError, ExpiredSignatureError
from passlib.context import CryptContext

# To keep them secure, set these through environment variables.
import os
from dotenv import load_dotenv

from utils import now

load_dotenv()

SECRET_KEY = os.getenv("SECRET_KEY", "change-me-dev-secret")
# Algorithm used to encode the JWT token
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "480"))

bycrypt_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return bycrypt_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    return bycrypt_context.verify(password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign ``data`` as a bearer token. Callers pass ``sub``, ``id`` and ``role``."""
    to_encode = data.copy()
    expire = now() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def get_current_user(request: Request) -> Dict[str, any]:
    """
    FastAPI dependency to validate the JWT from the Authorization header.

    Returns the identity as ``{"id", "username", "role"}``.

    Usage:
        @router.get("/secure-data")
        def secure_endpoint(user: dict = Depends(get_current_user)):
            ...
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header is missing",
        )

    # The token is expected to be in the format "Bearer <token>"
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
        )

    token = parts[1]
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired"
        )
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Token validation failed: {e}"
        )

    if not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is missing the subject claim"
        )
    return {
        "id": payload.get("id"),
        "username": payload["sub"],
        "role": payload.get("role", "user"),
    }


def get_user_identifier(user: Optional[dict]) -> Optional[str]:
    """Name written to created_by/changed_by columns."""
    if not user:
        return None
    return user.get("username") or (str(user["id"]) if user.get("id") is not None else None)


def require_role(roles: List[str]):
    """Dependency factory restricting an endpoint to the given roles."""
    def checker(user: dict = Depends(get_current_user)) -> dict:
        if user.get("role") not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"This action requires one of the roles: {', '.join(roles)}",
            )
        return user
    return checker
