from .base import Base
from .student import Enrollment, Student
from .attendance import AttendanceRecord, AttendanceSession

# for wildcard imports
__all__ = ["Base", "Student", "Enrollment", "AttendanceSession", "AttendanceRecord"]
