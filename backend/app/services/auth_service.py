"""Authentication service for JWT bearer tokens."""

import base64
import hashlib
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from cryptography.fernet import Fernet

from app.config import get_settings

settings = get_settings()


class AuthService:
    """Issue and verify the JWTs that carry a user's GitHub credentials."""

    def __init__(self):
        self.secret_key = settings.jwt_secret
        self.algorithm = settings.jwt_algorithm
        self.expiry_hours = settings.jwt_expiry_hours
        self.cipher = Fernet(base64.urlsafe_b64encode(hashlib.sha256(self.secret_key.encode()).digest()))

    def create_jwt(self, user_id: str, github_token: str) -> str:
        """Create a JWT token for a user.

        Args:
            user_id: The user's GitHub id as string
            github_token: GitHub access token used for repository calls

        Returns:
            JWT token string
        """
        now = datetime.now(timezone.utc)
        expire = now + timedelta(hours=self.expiry_hours)

        payload = {
            "sub": user_id,
            "github_token": github_token,
            "iat": now,
            "exp": expire,
        }

        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_jwt(self, token: str) -> dict[str, Any] | None:
        """Verify a JWT token and return its payload.

        Args:
            token: JWT token string

        Returns:
            Token payload dict or None if invalid
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
            )
            return payload
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    def seal_github_token(self, github_token: str) -> str:
        """Encrypt a GitHub token so it can be passed as a job argument."""
        return self.cipher.encrypt(github_token.encode()).decode()

    def open_github_token(self, sealed_token: str) -> str:
        """Decrypt a token produced by ``seal_github_token``.

        Raises:
            cryptography.fernet.InvalidToken: the token was not sealed with this secret
        """
        return self.cipher.decrypt(sealed_token.encode()).decode()
