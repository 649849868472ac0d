"""
Utility functions for the trend strategy bot
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Union

import pandas as pd
from loguru import logger


def format_currency(amount: float, currency: str = "$") -> str:
    """
    Format currency amounts with proper formatting

    Args:
        amount: Amount to format
        currency: Currency symbol

    Returns:
        Formatted currency string, sign before the symbol
    """
    sign = "-" if amount < 0 else ""
    return f"{sign}{currency}{abs(amount):,.2f}"


def calculate_percentage_change(old_value: float, new_value: float) -> float:
    if old_value == 0:
        return 0.0
    return ((new_value - old_value) / old_value) * 100


def ms_to_datetime(timestamp_ms: int) -> datetime:
    """Epoch milliseconds -> timezone-aware UTC datetime"""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


def ms_to_iso(timestamp_ms: int) -> str:
    return ms_to_datetime(timestamp_ms).strftime("%Y-%m-%d %H:%M")


def to_epoch_ms(value: Union[str, datetime, pd.Timestamp, int, float]) -> int:
    """
    Convert a date string / datetime / pandas Timestamp / epoch number to epoch ms

    Naive datetimes are treated as UTC. Bare numbers below 1e11 are taken
    as seconds.
    """
    if isinstance(value, (int, float)):
        return int(value * 1000) if abs(value) < 1e11 else int(value)

    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        ts = ts.tz_localize('UTC')
    return int(ts.value // 1_000_000)


def create_summary_table(data: Dict[str, Any]) -> str:
    """
    Create a formatted summary table

    Args:
        data: Dictionary with data to display

    Returns:
        Formatted table string
    """
    table_lines = []
    table_lines.append("+" + "-" * 50 + "+")

    for key, value in data.items():
        key_str = str(key).replace('_', ' ').title()[:20]
        value_str = str(value)[:25]
        line = f"| {key_str:<20} | {value_str:<25} |"
        table_lines.append(line)

    table_lines.append("+" + "-" * 50 + "+")

    return "\n".join(table_lines)


def format_time_duration(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds}s"
    elif seconds < 3600:
        minutes = seconds // 60
        return f"{minutes}m"
    else:
        hours = seconds // 3600
        minutes = (seconds % 3600) // 60
        return f"{hours}h {minutes}m"


def save_to_json(data: Dict[str, Any], filename: str) -> str:
    """
    Save a result dictionary to a JSON file

    Returns:
        Filename used, or "" on error
    """
    try:
        with open(filename, 'w') as f:
            json.dump(data, f, indent=2, default=str)

        logger.info(f"Results saved to {filename}")
        return filename

    except OSError as e:
        logger.error(f"Error saving results to {filename}: {e}")
        return ""
