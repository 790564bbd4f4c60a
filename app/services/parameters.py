# app/services/parameters.py
# Parameter store: per-agency quota/tier rows, the multiplier band table and
# the marcha blanca / bono ARPU flags.

from datetime import datetime
from decimal import Decimal, InvalidOperation
from flask import current_app
from app import db
from app.exceptions import InvalidPeriodError
from app.models import CommissionParameter, MultiplierBand, MarchaBlanca, BonoArpu
from app.services.commission_rules import TIERS, normalize_top
from app.services.settlement_engine import AgencyFlags, AgencyParameter
from app.utils.periods import parse_periodo, parse_zona
from app.utils.upsert import upsert_rows

PARAMETER_KEY = ['ruc', 'periodo', 'zona']

FLAG_MODELS = {
    'marcha_blanca': MarchaBlanca,
    'bono_arpu': BonoArpu,
}

TRUE_TOKENS = {'true', '1', 'si', 'sí', 's', 'yes', 'y'}


def _as_bool(value):
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUE_TOKENS


def _clean_parameter(payload):
    """
    Validates one parameter payload and returns the row to upsert.
    Raises InvalidPeriodError / ValueError on bad input.
    """
    if not isinstance(payload, dict):
        raise ValueError(f"Each parameter row must be an object, got {payload!r}.")
    ruc = str(payload.get('ruc') or '').strip()
    if not ruc:
        raise ValueError("Missing 'ruc'.")

    periodo, _, _ = parse_periodo(payload.get('periodo'))
    zona = parse_zona(payload.get('zona'), current_app.config['ZONAS'])

    meta = payload.get('meta')
    if meta in (None, ''):
        meta = None
    else:
        try:
            meta = int(meta)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid meta for RUC {ruc}: {payload.get('meta')!r}")
        if meta < 0:
            raise ValueError(f"Invalid meta for RUC {ruc}: {meta}")

    return {
        'ruc': ruc,
        'agencia': str(payload.get('agencia') or '').strip() or None,
        'meta': meta,
        'top': normalize_top(payload.get('top')),
        'zona': zona,
        'periodo': periodo,
        'updated_at': datetime.utcnow(),
    }


# --- PARAMETER SERVICES ---

def get_parameters(zona=None, periodo=None):
    """Lists parameter rows, optionally filtered by zone and period."""
    try:
        query = CommissionParameter.query
        if zona:
            query = query.filter_by(zona=parse_zona(zona, current_app.config['ZONAS']))
        if periodo:
            query = query.filter_by(periodo=parse_periodo(periodo)[0])
        rows = query.order_by(CommissionParameter.periodo, CommissionParameter.ruc).all()
        return {"success": True, "data": [row.to_dict() for row in rows]}
    except InvalidPeriodError as e:
        return e.to_result()
    except Exception as e:
        current_app.logger.error(f"Error fetching parameters: {e}", exc_info=True)
        return {"success": False, "error": f"Database error fetching parameters: {str(e)}"}, 500


def upsert_parameter(payload):
    """Creates or overwrites the parameter row of one (ruc, periodo, zona)."""
    return upsert_parameters([payload])


def upsert_parameters(payloads):
    """
    Upserts many parameter rows in one transaction. A payload that repeats a
    (ruc, periodo, zona) key is rejected as a whole.
    """
    if not isinstance(payloads, list) or not payloads:
        return {"success": False, "error": "Expected a non-empty list of parameter rows."}, 400

    rows = []
    seen = set()
    try:
        for payload in payloads:
            row = _clean_parameter(payload)
            key = (row['ruc'], row['periodo'], row['zona'])
            if key in seen:
                return {"success": False, "error": f"Duplicate parameter row for RUC {key[0]}, periodo {key[1]}, zona {key[2]}."}, 400
            seen.add(key)
            rows.append(row)
    except InvalidPeriodError as e:
        return e.to_result()
    except ValueError as e:
        return {"success": False, "error": str(e)}, 400

    try:
        upsert_rows(CommissionParameter, rows, PARAMETER_KEY)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error saving parameters: {e}", exc_info=True)
        return {"success": False, "error": f"Database error saving parameters: {str(e)}"}, 500

    current_app.logger.info(f"Upserted {len(rows)} parameter row(s)")
    return {"success": True, "data": {"upserted": len(rows)}}


def load_parameters(periodo, zona):
    """{ruc: AgencyParameter} for one period and zone."""
    rows = CommissionParameter.query.filter_by(periodo=periodo, zona=zona).all()
    return {
        row.ruc: AgencyParameter(meta=row.meta, top=normalize_top(row.top), agencia=row.agencia or '')
        for row in rows
    }


# --- MULTIPLIER BAND SERVICES ---

def get_multiplier_bands(top=None):
    try:
        query = MultiplierBand.query
        if top:
            query = query.filter_by(top=normalize_top(top))
        bands = query.order_by(MultiplierBand.top, MultiplierBand.limite_inferior).all()
        return {"success": True, "data": [band.to_dict() for band in bands]}
    except Exception as e:
        current_app.logger.error(f"Error fetching multiplier bands: {e}", exc_info=True)
        return {"success": False, "error": f"Database error fetching multiplier bands: {str(e)}"}, 500


def _parse_band(band):
    if not isinstance(band, dict):
        raise ValueError(f"Invalid band: {band!r}")
    try:
        lower = Decimal(str(band['limite_inferior']))
        upper = band.get('limite_superior')
        upper = None if upper in (None, '') else Decimal(str(upper))
        factor = Decimal(str(band['factor']))
    except (KeyError, TypeError, InvalidOperation):
        raise ValueError(f"Invalid band: {band!r}")
    if upper is not None and upper <= lower:
        raise ValueError(f"Band upper limit must be greater than its lower limit: {band!r}")
    if factor < 0:
        raise ValueError(f"Band factor cannot be negative: {band!r}")
    return lower, upper, factor


def replace_multiplier_bands(top, bands):
    """
    Replaces the whole band table of a tier. Bands may not overlap; at most
    the last one may be open ended.
    """
    token = str(top or '').strip().upper()
    if token not in TIERS:
        return {"success": False, "error": f"Invalid tier '{top}'. Expected one of {', '.join(TIERS)}."}, 400
    if not isinstance(bands, list):
        return {"success": False, "error": "Expected a list of bands."}, 400

    try:
        parsed = sorted((_parse_band(band) for band in bands), key=lambda b: b[0])
    except ValueError as e:
        return {"success": False, "error": str(e)}, 400

    for current, following in zip(parsed, parsed[1:]):
        if current[1] is None or current[1] > following[0]:
            return {"success": False, "error": f"Overlapping bands for tier {token}."}, 400

    try:
        MultiplierBand.query.filter_by(top=token).delete()
        for lower, upper, factor in parsed:
            db.session.add(MultiplierBand(top=token, limite_inferior=lower, limite_superior=upper, factor=factor))
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error saving multiplier bands for {token}: {e}", exc_info=True)
        return {"success": False, "error": f"Database error saving multiplier bands: {str(e)}"}, 500

    current_app.logger.info(f"Replaced multiplier bands for tier {token} ({len(parsed)} band(s))")
    return {"success": True, "data": {"top": token, "bands": len(parsed)}}


# --- AGENCY FLAG SERVICES ---

def set_agency_flags(flag, payloads):
    """Upserts marcha_blanca or bono_arpu rows for a list of agencies."""
    model = FLAG_MODELS.get(flag)
    if model is None:
        return {"success": False, "error": f"Unknown agency flag '{flag}'."}, 400
    if isinstance(payloads, dict):
        payloads = [payloads]
    if not payloads:
        return {"success": False, "error": "Expected at least one agency flag row."}, 400

    rows = []
    try:
        for payload in payloads:
            if not isinstance(payload, dict):
                raise ValueError(f"Each flag row must be an object, got {payload!r}.")
            ruc = str(payload.get('ruc') or '').strip()
            if not ruc:
                raise ValueError("Missing 'ruc'.")
            rows.append({
                'ruc': ruc,
                'agencia': str(payload.get('agencia') or '').strip() or None,
                'periodo': parse_periodo(payload.get('periodo'))[0],
                'zona': parse_zona(payload.get('zona'), current_app.config['ZONAS']),
                'activo': _as_bool(payload.get('activo', True)),
            })
    except InvalidPeriodError as e:
        return e.to_result()
    except ValueError as e:
        return {"success": False, "error": str(e)}, 400

    try:
        upsert_rows(model, rows, PARAMETER_KEY)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error saving {flag} flags: {e}", exc_info=True)
        return {"success": False, "error": f"Database error saving {flag}: {str(e)}"}, 500

    return {"success": True, "data": {"flag": flag, "upserted": len(rows)}}


def load_flags(periodo, zona):
    """{ruc: AgencyFlags}; agencies without rows have both flags off."""
    marcha_blanca = {
        row.ruc for row in MarchaBlanca.query.filter_by(periodo=periodo, zona=zona, activo=True).all()
    }
    bono_arpu = {
        row.ruc for row in BonoArpu.query.filter_by(periodo=periodo, zona=zona, activo=True).all()
    }
    return {
        ruc: AgencyFlags(marcha_blanca=ruc in marcha_blanca, bono_arpu=ruc in bono_arpu)
        for ruc in marcha_blanca | bono_arpu
    }
