from .user import User
from .attendance import TimeEntry
from .leave import LeaveRecord

__all__ = ["User", "TimeEntry", "LeaveRecord"]
