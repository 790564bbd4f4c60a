"""
Utility functions package.

This package contains reusable utility functions organized by domain:
- general.py: Result handling, JSON-safe conversion, number formatting
- periods.py: Period tokens, period bounds and cut as-of dates
"""

# Import commonly used utilities for convenient access
from .general import _handle_service_result, convert_to_json_safe
from .general import to_decimal, quantize_money, format_currency, format_multiplier, format_percentage

__all__ = [
    '_handle_service_result',
    'convert_to_json_safe',
    'to_decimal',
    'quantize_money',
    'format_currency',
    'format_multiplier',
    'format_percentage',
]
