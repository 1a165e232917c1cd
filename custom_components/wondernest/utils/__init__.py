"""Pure utility modules for WonderNest (no Home Assistant imports)."""

from .dt_utils import (
    dt_now_utc,
    dt_parse,
    dt_parse_date,
    dt_to_iso,
    elapsed_minutes,
    format_time_of_day,
    is_same_day,
    is_time_in_window,
    parse_time_of_day,
)

__all__ = [
    "dt_now_utc",
    "dt_parse",
    "dt_parse_date",
    "dt_to_iso",
    "elapsed_minutes",
    "format_time_of_day",
    "is_same_day",
    "is_time_in_window",
    "parse_time_of_day",
]
