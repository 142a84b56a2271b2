from .health import health_bp
from .auth import auth_bp
from .zones import zones_bp
from .booking import booking_bp
from .wizard import wizard_bp
from .admin import admin_bp
from .manage import manage_bp
from .audit_logs import audit_logs_bp
