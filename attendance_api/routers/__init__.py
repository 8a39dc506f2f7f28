from .attendance import router as attendance_router
from .health import router as health_router
from .students import router as students_router

# for wildcard imports
__all__ = ["attendance_router", "health_router", "students_router"]
