"""
Date calculation service.
Handles calendar-day comparisons, day ranges and HH:MM schedule times.
All comparisons are done on naive local datetimes.
"""
from datetime import datetime, timedelta, date
from typing import Union


class DateService:
    """Service for date-related operations"""

    @staticmethod
    def today() -> date:
        """Server's current local date"""
        return datetime.now().date()

    @staticmethod
    def now() -> datetime:
        """Server's current local time (naive)"""
        return datetime.now()

    @staticmethod
    def yesterday(today: date) -> date:
        return today - timedelta(days=1)

    @staticmethod
    def start_of_day(target_date: date) -> datetime:
        """Midnight at the start of target_date"""
        return datetime.combine(target_date, datetime.min.time())

    @staticmethod
    def get_day_range(target_date: date) -> tuple[datetime, datetime]:
        """
        Get datetime range for a full day (midnight to midnight).

        Args:
            target_date: Date to get range for

        Returns:
            Tuple of (day_start, day_end) datetimes
        """
        day_start = DateService.start_of_day(target_date)
        day_end = DateService.start_of_day(target_date + timedelta(days=1))
        return day_start, day_end

    @staticmethod
    def to_local_naive(dt: datetime) -> datetime:
        """
        Convert timezone-aware datetimes to naive local time.
        Naive datetimes are assumed to be local already.
        """
        if dt.tzinfo is None:
            return dt
        return dt.astimezone().replace(tzinfo=None)

    @staticmethod
    def is_same_day(a: Union[date, datetime], b: Union[date, datetime]) -> bool:
        """True if both values fall on the same local calendar day"""
        if isinstance(a, datetime):
            a = DateService.to_local_naive(a).date()
        if isinstance(b, datetime):
            b = DateService.to_local_naive(b).date()
        return a == b

    @staticmethod
    def parse_time(time_str: str) -> tuple[int, int]:
        """
        Parse time string into hour and minute.

        Args:
            time_str: Time string in "HH:MM" format

        Returns:
            Tuple of (hour, minute)

        Raises:
            ValueError: If time string is invalid
        """
        try:
            hour_str, minute_str = time_str.split(":")
            hour, minute = int(hour_str), int(minute_str)
        except ValueError:
            raise ValueError(f"Invalid time: {time_str}")
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise ValueError(f"Invalid time: {time_str}")
        return hour, minute

    @staticmethod
    def is_time_reached(now: datetime, time_str: str) -> bool:
        """True once now's wall-clock time is at or past HH:MM"""
        hour, minute = DateService.parse_time(time_str)
        return now.hour * 60 + now.minute >= hour * 60 + minute
