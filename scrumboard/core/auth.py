# scrumboard/core/auth.py
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from scrumboard.core.db import get_db
from scrumboard.models import User
from scrumboard.models.user import ROLE_TEACHER


@dataclass(frozen=True)
class Student:
    id: int


@dataclass(frozen=True)
class Teacher:
    id: int


Principal = Student | Teacher


def principal_for(user: User) -> Principal:
    return Teacher(user.id) if user.role == ROLE_TEACHER else Student(user.id)


def get_current_principal(request: Request, db: Session = Depends(get_db)) -> Principal:
    """Resolve the signed-in user from the cookie set by the GitHub callback."""
    raw = request.cookies.get("user_id")
    if not raw or not raw.isdigit():
        raise HTTPException(status_code=401, detail="Unauthorized")

    user = db.query(User).filter(User.id == int(raw)).first()
    if not user:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return principal_for(user)


def require_teacher(principal: Principal = Depends(get_current_principal)) -> Teacher:
    if not isinstance(principal, Teacher):
        raise HTTPException(status_code=403, detail="Only teachers can do this")
    return principal
