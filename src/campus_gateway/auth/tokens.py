"""
campus_gateway.auth.tokens

Credential issuing and validation.

Responsibilities:
- Issue signed, 7-day JWTs carrying identity and role claims.
- Decode and validate JWTs with strict claim requirements (iss/aud/exp/iat/sub).
- Collapse every validation failure into a single `Unauthenticated` outcome.

There is no server-side session store or revocation list: validity is a pure
function of the signed content and the clock.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import jwt
from jwt import InvalidTokenError

from campus_gateway.auth.models import TOKEN_TTL, Credential, Role
from campus_gateway.settings import ConfigurationError, Settings

# Single external message for every failure cause (missing, malformed, bad signature, expired).
UNAUTHENTICATED_MESSAGE = "Invalid or expired token"


@dataclass(frozen=True, slots=True)
class JwtConfig:
    # Algorithm/issuer/audience are enforced during decoding.
    alg: str
    issuer: str
    audience: str
    secret: str

    @classmethod
    def from_settings(cls, settings: Settings) -> JwtConfig:
        return cls(
            alg=settings.jwt_alg,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            secret=settings.jwt_secret,
        )


class Unauthenticated(Exception):
    def __init__(self, reason: str = "") -> None:
        # `reason` is for logs only; callers always see UNAUTHENTICATED_MESSAGE.
        super().__init__(UNAUTHENTICATED_MESSAGE)
        self.reason = reason


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class TokenService:
    def __init__(self, *, cfg: JwtConfig, clock: Callable[[], datetime] = _utcnow) -> None:
        if not cfg.secret:
            raise ConfigurationError("refusing to sign credentials with an empty secret")
        self._cfg = cfg
        self._clock = clock

    def issue(
        self,
        *,
        subject: str,
        email: str,
        role: Role,
        teacher_id: str | None = None,
        student_id: str | None = None,
    ) -> str:
        if teacher_id is not None and role is not Role.teacher:
            raise ValueError("teacher_id can only be attached to a teacher credential")
        if student_id is not None and role is not Role.student:
            raise ValueError("student_id can only be attached to a student credential")

        # Whole seconds: JWT NumericDate claims are integers.
        now = self._clock().replace(microsecond=0)
        payload: dict[str, Any] = {
            "iss": self._cfg.issuer,
            "aud": self._cfg.audience,
            "sub": subject,
            "email": email,
            "role": role.value,
            "iat": int(now.timestamp()),
            "exp": int((now + TOKEN_TTL).timestamp()),
        }
        if teacher_id is not None:
            payload["teacherId"] = teacher_id
        if student_id is not None:
            payload["studentId"] = student_id
        return jwt.encode(payload, self._cfg.secret, algorithm=self._cfg.alg)

    def verify(self, token: str | None) -> Credential:
        if not token:
            raise Unauthenticated("missing token")

        try:
            # Expiry is checked below against the injected clock, not the wall clock.
            payload = jwt.decode(
                token,
                self._cfg.secret,
                algorithms=[self._cfg.alg],
                issuer=self._cfg.issuer,
                audience=self._cfg.audience,
                options={
                    "require": ["exp", "iat", "iss", "aud", "sub"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except InvalidTokenError as e:
            raise Unauthenticated(type(e).__name__) from e

        try:
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=UTC)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=UTC)
            credential = Credential(
                subject=str(payload["sub"]),
                email=str(payload.get("email", "")),
                role=Role(payload.get("role")),
                issued_at=issued_at,
                expires_at=expires_at,
                teacher_id=payload.get("teacherId"),
                student_id=payload.get("studentId"),
            )
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise Unauthenticated("invalid claims") from e

        if self._clock() >= credential.expires_at:
            raise Unauthenticated("expired")
        return credential


# --- Module Notes -----------------------------------------------------------
# Token issuing is used by `api/routers/auth.py` (login); verification by
# `auth/deps.py` for every protected route, including the chat relay.
