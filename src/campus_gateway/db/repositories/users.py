"""
campus_gateway.db.repositories.users

Repository for `User` and its role-specific records.
"""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from campus_gateway.auth.models import Role
from campus_gateway.db.models import Student, Teacher, User


class UserRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: uuid.UUID) -> User | None:
        # Eager-load role records; async sessions cannot lazy-load on attribute access.
        stmt = (
            select(User)
            .where(User.id == user_id)
            .options(selectinload(User.student), selectinload(User.teacher))
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        stmt = (
            select(User)
            .where(User.email == email)
            .options(selectinload(User.student), selectinload(User.teacher))
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def create_user(
        self,
        *,
        email: str,
        password_hash: str,
        name: str,
        tc_no: str,
        role: Role,
    ) -> User:
        user = User(email=email, password=password_hash, name=name, tc_no=tc_no, role=role)
        self._session.add(user)
        await self._session.flush()
        return user

    async def create_student(
        self, *, user_id: uuid.UUID, student_number: str, enrollment_year: int
    ) -> Student:
        student = Student(
            user_id=user_id, student_number=student_number, enrollment_year=enrollment_year
        )
        self._session.add(student)
        await self._session.flush()
        return student

    async def create_teacher(
        self,
        *,
        user_id: uuid.UUID,
        title: str,
        office_number: str | None = None,
        phone: str | None = None,
    ) -> Teacher:
        teacher = Teacher(user_id=user_id, title=title, office_number=office_number, phone=phone)
        self._session.add(teacher)
        await self._session.flush()
        return teacher
