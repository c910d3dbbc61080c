import math
from datetime import datetime
from typing import Optional

EARTH_RADIUS_MILES = 3959


def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points in miles"""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def worked_hours(clock_in_at: datetime, end: datetime, lunch_minutes: Optional[int]) -> float:
    """Hours between the punches minus lunch, rounded to 4 places"""
    elapsed = (end - clock_in_at).total_seconds() / 3600
    return round(max(0.0, elapsed - (lunch_minutes or 0) / 60), 4)


def lunch_minutes(start: datetime, end: datetime) -> int:
    return round((end - start).total_seconds() / 60)
