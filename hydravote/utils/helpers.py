"""Helper utilities for HydraVote."""

import asyncio
import logging
from datetime import date, timedelta
from functools import wraps
from typing import Any, Callable, Optional, Tuple

logger = logging.getLogger(__name__)


def async_retry(
    max_retries: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: tuple = (Exception,),
):
    """Decorator to retry a coroutine function on exception.

    Args:
        max_retries: Maximum number of retry attempts
        delay: Initial delay between retries in seconds
        backoff: Backoff multiplier for delay
        exceptions: Tuple of exceptions to catch

    Returns:
        Decorated coroutine function
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            current_delay = delay
            last_exception = None

            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e

                    if attempt < max_retries:
                        logger.info(
                            f"Attempt {attempt + 1}/{max_retries + 1} failed: {e}. "
                            f"Retrying in {current_delay}s..."
                        )
                        await asyncio.sleep(current_delay)
                        current_delay *= backoff
                    else:
                        logger.info(f"All {max_retries + 1} attempts failed.")

            raise last_exception

        return wrapper

    return decorator


def format_price(price: Optional[float]) -> str:
    """Format price for display.

    Args:
        price: Price value

    Returns:
        Formatted price string
    """
    if price is None:
        return "N/A"
    return f"${price:,.2f}"


def format_percentage(value: Optional[float]) -> str:
    """Format percentage for display.

    Args:
        value: Percentage value (0-1)

    Returns:
        Formatted percentage string
    """
    if value is None:
        return "N/A"
    return f"{value * 100:.1f}%"


def normalize_name(name: Optional[str]) -> str:
    """Normalize a free-text name for grouping (trim, collapse whitespace, casefold)."""
    if not name:
        return ""
    return " ".join(name.split()).casefold()


def week_bounds(day: date) -> Tuple[date, date]:
    """Get the Monday-aligned week containing a day.

    Args:
        day: Any day within the week

    Returns:
        Tuple of (week_start, week_end) where week_end is exclusive
    """
    week_start = day - timedelta(days=day.weekday())
    return week_start, week_start + timedelta(days=7)


def previous_week_start(today: date) -> date:
    """Get the start of the last fully completed Monday-Sunday week.

    Args:
        today: Reference day

    Returns:
        Monday of the previous week
    """
    current_start, _ = week_bounds(today)
    return current_start - timedelta(days=7)
