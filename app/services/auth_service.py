"""
Authentication service for JWT access tokens

Identity is owned by the surrounding portal; this service only issues and
validates the bearer tokens the API accepts.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt, JWTError

from app.core.config import settings
from app.models.user import User


class AuthService:
    """Authentication service for JWT tokens"""

    def __init__(self):
        self.algorithm = settings.ALGORITHM
        self.secret_key = settings.SECRET_KEY
        self.access_token_expire_minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES

    def create_access_token(self, data: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Create a JWT access token"""
        to_encode = data.copy()

        if expires_delta:
            expire = datetime.now(timezone.utc) + expires_delta
        else:
            expire = datetime.now(timezone.utc) + timedelta(minutes=self.access_token_expire_minutes)

        to_encode.update({"exp": expire})
        encoded_jwt = jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)
        return encoded_jwt

    def decode_access_token(self, token: str) -> Optional[dict]:
        """Decode and validate a JWT access token"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
            return payload
        except JWTError:
            return None

    def create_user_token(self, user: User, expires_delta: Optional[timedelta] = None) -> str:
        """Token carrying the user id as subject plus role and organization claims"""
        role = user.role.value if hasattr(user.role, "value") else user.role
        return self.create_access_token(
            data={
                "sub": str(user.id),
                "email": user.email,
                "role": role,
                "org": user.organization_id,
            },
            expires_delta=expires_delta,
        )


# Global auth service instance
auth_service = AuthService()
