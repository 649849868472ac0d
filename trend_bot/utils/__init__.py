from .helpers import (
    format_currency,
    calculate_percentage_change,
    ms_to_datetime,
    ms_to_iso,
    to_epoch_ms,
    create_summary_table,
    format_time_duration,
    save_to_json,
)
from .logging_setup import configure_logging, LOG_FORMAT

__all__ = [
    'format_currency',
    'calculate_percentage_change',
    'ms_to_datetime',
    'ms_to_iso',
    'to_epoch_ms',
    'create_summary_table',
    'format_time_duration',
    'save_to_json',
    'configure_logging',
    'LOG_FORMAT',
]
