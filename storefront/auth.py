from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException
from jose import JWTError, jwt

from storefront import config
from storefront.models import Role


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: str = Role.CUSTOMER

    @property
    def is_admin(self):
        return self.role == Role.ADMIN


def create_session_token(user_id: str, role: str = Role.CUSTOMER) -> str:
    if not config.JWT_SECRET:
        raise RuntimeError("JWT_SECRET is not set. Check your .env file.")
    return jwt.encode({"sub": user_id, "role": role}, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def verify_token(authorization: Optional[str] = Header(None)) -> CurrentUser:
    try:
        # No signing key configured: no token can be trusted
        if not config.JWT_SECRET:
            raise ValueError("JWT_SECRET is not set")
        scheme, token = (authorization or "").split()
        if scheme.lower() != "bearer":
            raise ValueError("unsupported scheme")
        claims = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
        user_id = claims.get("sub")
        if not user_id:
            raise ValueError("token has no subject")
    except (ValueError, JWTError):
        raise HTTPException(status_code=401, detail="Invalid or missing token")

    return CurrentUser(id=user_id, role=claims.get("role") or Role.CUSTOMER)


def require_admin(user: CurrentUser = Depends(verify_token)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=401, detail="Admin access required")
    return user
