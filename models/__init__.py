from .db import db
from .user import User, Role, user_roles
from .student import Student
from .audit_log import AuditLog
from .session import LoginSession
from .zone import Zone
from .seat import Seat
from .study_session import StudySession, OperatingDay
from .operation import Quarter, ClosureException
from .booking import Booking, StudyPlan, Attendance
from .app_setting import AppSetting
