# app/utils/general.py
"""
General-purpose utility functions.

This module contains helpers for service result handling, JSON-safe
conversion of query and engine values, and the number formatting used by
the exports.
"""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from flask import jsonify

CENT = Decimal('0.01')
TENTH = Decimal('0.1')


def _handle_service_result(result, default_error_status=500):
    """
    Parses the result from a service function.
    If it's a tuple (error_dict, status_code), it uses the custom status code.
    Otherwise, it assumes success (status 200) or uses the default error status.

    Adds 'error_code' field to error responses for structured frontend handling.
    """
    # Check if the result is a tuple (error_dict, status_code)
    if isinstance(result, tuple) and len(result) == 2:
        error_dict, status_code = result
        if not error_dict.get("success", True):
            error_dict["error_code"] = error_dict.get("error_code", status_code)
        return jsonify(convert_to_json_safe(error_dict)), status_code

    # If not a tuple, check the 'success' key in the dictionary
    if result.get("success"):
        return jsonify(convert_to_json_safe(result)), 200
    else:
        result["error_code"] = result.get("error_code", default_error_status)
        return jsonify(convert_to_json_safe(result)), default_error_status


def convert_to_json_safe(obj):
    """
    Recursively converts values to JSON-safe types.
    Decimals become floats, dates become ISO strings, NaN/inf become None.
    """
    if isinstance(obj, dict):
        return {k: convert_to_json_safe(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_to_json_safe(i) for i in obj]
    elif isinstance(obj, Decimal):
        return float(obj)
    elif isinstance(obj, float):
        # Handle special float values
        if obj != obj:  # NaN check (NaN != NaN is True)
            return None
        if obj == float('inf') or obj == float('-inf'):
            return None
        return obj
    elif isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return obj


def to_decimal(value, default='0'):
    """Converts a stored number (float, int, str, Decimal or None) to Decimal."""
    if value is None:
        return Decimal(default)
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value):
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_currency(value):
    """2-decimal string, e.g. 1500 -> '1500.00'."""
    return str(quantize_money(value))


def format_percentage(value):
    """One decimal plus '%' suffix; '-' when there is no value."""
    if value is None:
        return '-'
    return f"{to_decimal(value).quantize(TENTH, rounding=ROUND_HALF_UP)}%"


def format_multiplier(value):
    """One decimal, e.g. 1.5 -> '1.5'; empty when there is no value."""
    if value is None:
        return ''
    return str(to_decimal(value).quantize(TENTH, rounding=ROUND_HALF_UP))
