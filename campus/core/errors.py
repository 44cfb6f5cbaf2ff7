"""
Domain errors raised by the attendance core and its directory
"""


class AttendanceError(Exception):
    """Base class for attendance service errors"""


class InvalidDescriptor(AttendanceError, ValueError):
    """Face descriptor has the wrong length or non-numeric values"""


class InvalidCoordinate(AttendanceError, ValueError):
    """Latitude/longitude outside the valid range"""


class NotFound(AttendanceError):
    """Requested user, class or enrollment does not exist"""


class Conflict(AttendanceError):
    """Record already exists"""
