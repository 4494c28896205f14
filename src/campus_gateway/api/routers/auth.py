"""
campus_gateway.api.routers.auth

Login, registration and credential verification.

Responsibilities:
- Exchange email/password for a signed 7-day credential.
- Register users (and the student record for students).
- Resolve a presented credential back to the current user profile.
"""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_409_CONFLICT,
)

from campus_gateway.api.deps import db_session
from campus_gateway.api.errors import ApiError
from campus_gateway.auth.deps import get_credential, token_service
from campus_gateway.auth.models import Credential, Role
from campus_gateway.auth.password import hash_password, verify_password
from campus_gateway.auth.tokens import TokenService, Unauthenticated
from campus_gateway.db.models import User
from campus_gateway.db.repositories.users import UserRepo
from campus_gateway.observability.logging import get_logger

router = APIRouter(prefix="/api/auth", tags=["auth"])
log = get_logger(__name__)

INVALID_LOGIN_MESSAGE = "Invalid email or password"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)
    tcNo: str = Field(min_length=11, max_length=11)
    role: Role
    studentNumber: str | None = None
    enrollmentYear: int | None = None


def user_profile(user: User) -> dict[str, Any]:
    # None-valued role fields are dropped, like absent optional fields.
    profile: dict[str, Any] = {
        "id": str(user.id),
        "email": user.email,
        "name": user.name,
        "role": user.role.value,
        "tcNo": user.tc_no,
    }
    if user.student is not None:
        profile["studentId"] = str(user.student.id)
        profile["studentNumber"] = user.student.student_number
    if user.teacher is not None:
        profile["teacherId"] = str(user.teacher.id)
    return profile


@router.post("/login")
async def login(
    body: LoginRequest,
    session: AsyncSession = Depends(db_session),
    tokens: TokenService = Depends(token_service),
) -> dict[str, Any]:
    user = await UserRepo(session).get_by_email(body.email)
    # Unknown email and wrong password are indistinguishable to the caller.
    if user is None or not verify_password(body.password, user.password):
        log.info("auth.login_failed")
        raise ApiError(HTTP_401_UNAUTHORIZED, INVALID_LOGIN_MESSAGE)

    # Role records ride along only for the matching role.
    teacher_id: str | None = None
    student_id: str | None = None
    if user.role is Role.teacher and user.teacher is not None:
        teacher_id = str(user.teacher.id)
    if user.role is Role.student and user.student is not None:
        student_id = str(user.student.id)

    token = tokens.issue(
        subject=str(user.id),
        email=user.email,
        role=user.role,
        teacher_id=teacher_id,
        student_id=student_id,
    )
    log.info("auth.login", user_id=str(user.id), role=user.role.value)
    return {
        "status": "success",
        "message": "Login successful",
        "data": {"token": token, "user": user_profile(user)},
    }


@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    session: AsyncSession = Depends(db_session),
) -> dict[str, Any]:
    student_fields: tuple[str, int] | None = None
    if body.role is Role.student:
        if not body.studentNumber or body.enrollmentYear is None:
            raise ApiError(
                HTTP_400_BAD_REQUEST,
                "Student number and enrollment year are required for students",
            )
        student_fields = (body.studentNumber, body.enrollmentYear)

    users = UserRepo(session)
    if await users.get_by_email(body.email) is not None:
        raise ApiError(HTTP_409_CONFLICT, "User with this email already exists")

    try:
        user = await users.create_user(
            email=body.email,
            password_hash=hash_password(body.password),
            name=body.name,
            tc_no=body.tcNo,
            role=body.role,
        )
        if student_fields is not None:
            student_number, enrollment_year = student_fields
            await users.create_student(
                user_id=user.id,
                student_number=student_number,
                enrollment_year=enrollment_year,
            )
        await session.commit()
    except IntegrityError as e:
        # Concurrent registration, duplicate TC number or student number.
        await session.rollback()
        raise ApiError(
            HTTP_409_CONFLICT, "A record with this information already exists"
        ) from e

    log.info("auth.registered", user_id=str(user.id), role=user.role.value)
    return {
        "status": "success",
        "message": "User registered successfully",
        "data": {
            "id": str(user.id),
            "email": user.email,
            "name": user.name,
            "role": user.role.value,
        },
    }


@router.get("/verify")
async def verify(
    credential: Credential = Depends(get_credential),
    session: AsyncSession = Depends(db_session),
) -> dict[str, Any]:
    try:
        user_id = uuid.UUID(credential.subject)
    except ValueError as e:
        raise Unauthenticated("subject is not a user id") from e

    user = await UserRepo(session).get(user_id)
    if user is None:
        raise Unauthenticated("subject no longer exists")
    return {"status": "success", "data": {"user": user_profile(user)}}
