"""School portal domain logic: timetable scheduling, background tasks, authentication and errors."""

__version__ = "0.1.0"