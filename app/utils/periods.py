# app/utils/periods.py
"""
Period helpers.

A settlement period is a calendar month encoded as YYYYMM. Months arrive from
the dashboard either as Spanish month names or as numbers; everything here
raises InvalidPeriodError before any query is issued.
"""

from datetime import datetime
from app.exceptions import InvalidPeriodError

MESES = {
    'enero': 1,
    'febrero': 2,
    'marzo': 3,
    'abril': 4,
    'mayo': 5,
    'junio': 6,
    'julio': 7,
    'agosto': 8,
    'septiembre': 9,
    'setiembre': 9,
    'octubre': 10,
    'noviembre': 11,
    'diciembre': 12,
}

MIN_YEAR = 2000
MAX_YEAR = 2100
DEFAULT_AS_OF_OFFSETS = {1: 1, 2: 2, 3: 3, 4: 4}


def parse_month(mes):
    """Accepts 'abril', 'Abril', 4 or '4' and returns the month number."""
    if isinstance(mes, bool):
        raise InvalidPeriodError(f"Invalid month: {mes!r}")
    if isinstance(mes, int):
        month = mes
    else:
        token = str(mes).strip().lower()
        if token in MESES:
            return MESES[token]
        try:
            month = int(token)
        except ValueError:
            raise InvalidPeriodError(f"Invalid month: {mes!r}")
    if not 1 <= month <= 12:
        raise InvalidPeriodError(f"Invalid month: {mes!r}")
    return month


def parse_year(year):
    try:
        value = int(str(year).strip())
    except ValueError:
        raise InvalidPeriodError(f"Invalid year: {year!r}")
    if not MIN_YEAR <= value <= MAX_YEAR:
        raise InvalidPeriodError(f"Invalid year: {year!r}")
    return value


def parse_zona(zona, zonas=('LIMA', 'PROVINCIA')):
    token = str(zona or '').strip().upper()
    if token not in zonas:
        raise InvalidPeriodError(f"Invalid zone: {zona!r}. Expected one of {', '.join(zonas)}.")
    return token


def parse_corte(corte):
    """Accepts 1, '1' or 'corte_1' / 'corte-1' / 'corte1'."""
    token = str(corte).strip().lower()
    for prefix in ('corte_', 'corte-', 'corte'):
        if token.startswith(prefix):
            token = token[len(prefix):]
            break
    try:
        value = int(token)
    except ValueError:
        raise InvalidPeriodError(f"Invalid cut: {corte!r}")
    if value not in (1, 2, 3, 4):
        raise InvalidPeriodError(f"Invalid cut: {corte!r}")
    return value


def make_periodo(year, month):
    return year * 100 + month


def parse_periodo(periodo):
    """Validates a YYYYMM token and returns (periodo, year, month)."""
    try:
        value = int(str(periodo).strip())
    except ValueError:
        raise InvalidPeriodError(f"Invalid period: {periodo!r}")
    year, month = divmod(value, 100)
    if not (MIN_YEAR <= year <= MAX_YEAR and 1 <= month <= 12):
        raise InvalidPeriodError(f"Invalid period: {periodo!r}")
    return value, year, month


def add_months(year, month, offset):
    """Returns the (year, month) that is `offset` months after the given one."""
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def period_bounds(year, month):
    """[first day of month, first day of next month)"""
    start = datetime(year, month, 1)
    next_year, next_month = add_months(year, month, 1)
    return start, datetime(next_year, next_month, 1)


def cut_as_of_date(year, month, corte, offsets=None):
    """
    First day of the month at which receipts are checked for a cut.
    By default cut N looks N months past the period start.
    """
    offsets = offsets or DEFAULT_AS_OF_OFFSETS
    as_of_year, as_of_month = add_months(year, month, offsets[corte])
    return datetime(as_of_year, as_of_month, 1)


def resolve_period(year, mes):
    """Validates (year, mes) and returns (periodo, year, month)."""
    year = parse_year(year)
    month = parse_month(mes)
    return make_periodo(year, month), year, month
