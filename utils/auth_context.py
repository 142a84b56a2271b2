from functools import wraps
from flask import g, jsonify
from security.session import get_session_from_request
from models import db
from models.student import Student
from models.user import User

def load_current_user():
    sess = get_session_from_request()
    if not sess:
        g.user = None
        g.session = None
        return
    user = db.session.get(User, sess.user_id)
    if user is None or not user.is_active:
        g.user = None
        g.session = None
        return
    g.session = sess
    g.user = user

def current_student():
    """Student record linked to the logged-in account, if any."""
    user = getattr(g, "user", None)
    if user is None:
        return None
    return Student.query.filter_by(user_id=user.id).first()

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
