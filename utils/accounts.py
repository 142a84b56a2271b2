from flask import current_app

from models import db
from models.student import Student
from models.user import User
from security.password import hash_password
from utils.seed import DEFAULT_ROLES, get_role

MIN_PASSWORD_LENGTH = 8


class AccountError(ValueError):
    pass


class UsernameTaken(AccountError):
    pass


def normalize_student_number(raw) -> str:
    """Numeric student numbers are zero-padded to five digits ("2314" -> "02314")."""
    text = str(raw or "").strip()
    return text.zfill(5) if text.isdigit() else text


def create_account(username, password, role="STUDENT", full_name=None):
    """Add a login account with a single role. The caller commits."""
    username = (username or "").strip()
    role = (role or "").strip().upper()
    if not username:
        raise AccountError("username is required")
    if role not in DEFAULT_ROLES:
        raise AccountError(f"Unknown role: {role}")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise AccountError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if User.query.filter_by(username=username).first():
        raise UsernameTaken("Username already taken")

    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    user = User(username=username, password_hash=hash_password(password, rounds=rounds), full_name=full_name)
    user.roles.append(get_role(role))
    db.session.add(user)
    db.session.flush()

    # students sign in with their student number
    if role == "STUDENT":
        student = Student.query.filter_by(student_number=username, user_id=None).first()
        if student is not None:
            student.user_id = user.id
    return user
