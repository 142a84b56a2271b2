from flask import Blueprint, request, jsonify, current_app, g

from models.user import User
from security.csrf import clear_csrf_token, issue_csrf_token
from security.password import verify_password
from security.session import create_session, revoke_session
from utils.audit import log_event
from utils.auth_context import current_student, login_required


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _cookie_name():
    return current_app.config.get("AUTH_COOKIE_NAME", "studyseat_session")


def user_payload(user, student=None):
    out = {
        "id": user.id,
        "username": user.username,
        "full_name": user.full_name,
        "roles": sorted(user.role_names),
        "is_staff": user.is_staff,
        "student": None,
    }
    if student is not None:
        out["student"] = {
            "id": student.id,
            "student_number": student.student_number,
            "full_name": student.full_name,
        }
    return out


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""

    if not username or not password:
        return jsonify(error="username and password are required"), 400

    user = User.query.filter_by(username=username).first()
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        log_event(
            "LOGIN_FAIL",
            user_id=user.id if user else None,
            metadata={"username": username},
        )
        return jsonify(error="Invalid credentials"), 401

    raw_token = create_session(user.id)

    resp = jsonify(message="Login OK", user=user_payload(user))
    resp.set_cookie(
        _cookie_name(),
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60),
        path="/",
    )
    resp = issue_csrf_token(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id)
    return resp, 200


@auth_bp.post("/logout")
@login_required
def logout():
    revoke_session(request.cookies.get(_cookie_name()))
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(message="Logged out")
    resp.delete_cookie(_cookie_name(), path="/")
    clear_csrf_token(resp)
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(user_payload(g.user, current_student())), 200
