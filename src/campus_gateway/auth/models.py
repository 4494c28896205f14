"""
campus_gateway.auth.models

Auth domain models.

Responsibilities:
- Define the closed role set.
- Define the verified `Credential` injected into endpoints.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta

# Fixed validity window; a credential's lifetime is not configurable.
TOKEN_TTL = timedelta(days=7)


class Role(enum.StrEnum):
    # Values are stored in the DB and carried in tokens; treat as stable API contract.
    admin = "admin"
    teacher = "teacher"
    student = "student"


@dataclass(frozen=True, slots=True)
class Credential:
    """
    Authenticated session, decoded from a verified token.

    Secondary record ids travel only with the matching role: `teacher_id`
    for teachers, `student_id` for students.
    """

    subject: str
    email: str
    role: Role
    issued_at: datetime
    expires_at: datetime
    teacher_id: str | None = None
    student_id: str | None = None

    def __post_init__(self) -> None:
        if self.expires_at - self.issued_at != TOKEN_TTL:
            raise ValueError("credential lifetime must equal the fixed validity window")
        if self.teacher_id is not None and self.role is not Role.teacher:
            raise ValueError("teacher_id is only valid for the teacher role")
        if self.student_id is not None and self.role is not Role.student:
            raise ValueError("student_id is only valid for the student role")

    @property
    def is_admin(self) -> bool:
        return self.role is Role.admin
