"""
campus_gateway.db.models

Identity tables used by login and registration.

Responsibilities:
- User: login identity (email, bcrypt hash, national id number, role).
- Student / Teacher: role-specific records whose ids travel in credentials.

Departments, courses, enrollments, grades and documents live in the records
store behind the CRUD services and are not mapped here.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Enum, ForeignKey, Integer, String, Uuid as SAUuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campus_gateway.auth.models import Role
from campus_gateway.db.base import Base


def _utcnow() -> datetime:
    # Naive UTC timestamps, matching the rest of the records store.
    return datetime.utcnow()


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
    password: Mapped[str] = mapped_column(String(128), nullable=False)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    tc_no: Mapped[str] = mapped_column(String(11), nullable=False, unique=True)
    role: Mapped[Role] = mapped_column(
        Enum(Role, values_callable=lambda e: [m.value for m in e]), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)

    student: Mapped[Student | None] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    teacher: Mapped[Teacher | None] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan"
    )


class Student(Base):
    __tablename__ = "students"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), ForeignKey("users.id"), nullable=False, unique=True
    )
    student_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    enrollment_year: Mapped[int] = mapped_column(Integer, nullable=False)

    user: Mapped[User] = relationship(back_populates="student")


class Teacher(Base):
    __tablename__ = "teachers"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), ForeignKey("users.id"), nullable=False, unique=True
    )
    title: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    office_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)

    user: Mapped[User] = relationship(back_populates="teacher")


# --- Module Notes -----------------------------------------------------------
# Keep this file aligned with `alembic/env.py`; prod schema changes go through migrations.
