from .snapshot import (
    QuarterWindow,
    ClosureRule,
    OperatingRule,
    ZoneCalendar,
    RestrictionConfig,
    SeatRecord,
    BookingActivity,
)
from .operating import is_operating, active_sessions, weekday_index
from .booking_window import is_date_bookable, check_date_bookable, WindowReason
from .access import check_access, grade_from_student_number, AccessReason
from .activity import aggregate_activity
from .seats import resolve_seat, clean_seat_number
