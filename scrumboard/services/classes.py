# scrumboard/services/classes.py
import structlog
from sqlalchemy.orm import Session

from scrumboard.core.errors import NotFoundError, ValidationError
from scrumboard.models import ClassRequest, Classroom, ClassTeacher, Team, TeamMember, User
from scrumboard.models.user import ROLE_STUDENT

log = structlog.get_logger()

ACTION_ALIASES = {"approve": "accept", "decline": "reject"}


def create_class(db: Session, teacher_id: int, name: str, description: str | None = None) -> Classroom:
    if not name or not name.strip():
        raise ValidationError("Class name is required")
    cls = Classroom(name=name.strip(), description=description, teacher_id=teacher_id)
    db.add(cls)
    db.flush()
    db.add(ClassTeacher(class_id=cls.id, teacher_id=teacher_id))
    db.commit()
    db.refresh(cls)
    return cls


def request_to_join(db: Session, user_id: int, class_id: int) -> ClassRequest:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    if user.role != ROLE_STUDENT:
        raise ValidationError("Only students can request to join classes")
    if user.class_id:
        raise ValidationError("You are already in a class")
    if not db.query(Classroom).filter(Classroom.id == class_id).first():
        raise NotFoundError("Class not found")

    existing = db.query(ClassRequest).filter(ClassRequest.class_id == class_id, ClassRequest.user_id == user_id).first()
    if existing:
        raise ValidationError("You already have a pending request for this class")

    req = ClassRequest(class_id=class_id, user_id=user_id, status="pending")
    db.add(req)
    db.commit()
    db.refresh(req)
    return req


def resolve_request(db: Session, class_id: int, request_id: int, action: str) -> str:
    """Accept or reject a join request. Returns the normalized action."""
    action = ACTION_ALIASES.get(action, action)
    if action not in ("accept", "reject"):
        raise ValidationError("Invalid action")

    req = db.query(ClassRequest).filter(ClassRequest.id == request_id).first()
    if not req or req.class_id != class_id:
        raise NotFoundError("Request not found")

    if action == "accept":
        # Removing the request and joining the class commit together
        student = db.query(User).filter(User.id == req.user_id).one()
        try:
            student.class_id = class_id
            db.delete(req)
            db.commit()
        except Exception:
            db.rollback()
            raise
        log.info("Class request accepted", class_id=class_id, user_id=student.id)
    else:
        db.delete(req)
        db.commit()
        log.info("Class request rejected", class_id=class_id, request_id=request_id)
    return action


def update_class(db: Session, cls: Classroom, name: str | None = None, description: str | None = None) -> Classroom:
    if name is not None:
        if not name.strip():
            raise ValidationError("Class name is required")
        cls.name = name.strip()
    if description is not None:
        cls.description = description or None
    db.commit()
    db.refresh(cls)
    return cls


def remove_student(db: Session, class_id: int, student_id: int) -> User:
    """Take a student out of the class together with their teams in it."""
    student = db.query(User).filter(User.id == student_id).first()
    if not student or student.class_id != class_id:
        raise NotFoundError("Student not found in this class")

    team_ids = db.query(Team.id).filter(Team.class_id == class_id)
    db.query(TeamMember).filter(
        TeamMember.user_id == student.id, TeamMember.team_id.in_(team_ids)
    ).delete(synchronize_session=False)
    student.class_id = None
    db.commit()
    db.refresh(student)
    log.info("Student removed from class", class_id=class_id, user_id=student.id)
    return student


def link_teacher(db: Session, class_id: int, teacher_id: int) -> tuple[ClassTeacher, bool]:
    """Add a co-teacher link. Returns the link and whether it was created."""
    if not db.query(Classroom).filter(Classroom.id == class_id).first():
        raise NotFoundError("Class not found")

    existing = (
        db.query(ClassTeacher).filter(ClassTeacher.class_id == class_id, ClassTeacher.teacher_id == teacher_id).first()
    )
    if existing:
        return existing, False

    link = ClassTeacher(class_id=class_id, teacher_id=teacher_id)
    db.add(link)
    db.commit()
    db.refresh(link)
    log.info("Teacher linked to class", class_id=class_id, teacher_id=teacher_id)
    return link, True
