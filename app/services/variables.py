# app/services/variables.py
# Commission variable history and the CommissionSettings the engine runs with.

from decimal import Decimal
from flask import current_app
from sqlalchemy import func
from app import db
from app.models import CommissionVariable, MultiplierBand
from app.services.commission_rules import Band, CommissionSettings, TIERS, normalize_top

# --- COMMISSION VARIABLE SERVICES ---

def get_all_commission_variables(category=None):
    """
    Retrieves all records for commission variables, filtered by category if provided.
    """
    try:
        query = CommissionVariable.query.order_by(CommissionVariable.date_recorded.desc())

        if category:
            query = query.filter_by(category=category.upper())

        variables = query.all()

        return {
            "success": True,
            "data": [v.to_dict() for v in variables]
        }
    except Exception as e:
        current_app.logger.error(f"Error fetching commission variables: {e}", exc_info=True)
        return {"success": False, "error": f"Database error fetching commission variables: {str(e)}"}, 500


def update_commission_variable(variable_name, value, comment=None, recorded_by=None):
    """
    Inserts a new record for a commission variable (historical audit).
    """
    variable_config = current_app.config['COMMISSION_VARIABLES'].get(variable_name)

    # 1. Input Validation (checks if the variable is registered)
    if not variable_config:
        return {"success": False, "error": f"Variable name '{variable_name}' is not a registered commission variable."}, 400

    try:
        value = float(value)
    except (TypeError, ValueError):
        return {"success": False, "error": "Variable value must be a valid number."}, 400

    if value < 0:
        return {"success": False, "error": "Variable value cannot be negative."}, 400
    if variable_name == 'pagoCorte1Fraccion' and value > 1:
        return {"success": False, "error": "pagoCorte1Fraccion is a fraction between 0 and 1."}, 400

    try:
        # 2. Create a new record
        new_variable = CommissionVariable(
            variable_name=variable_name,
            variable_value=value,
            category=variable_config['category'],
            recorded_by=recorded_by,
            comment=comment
        )

        db.session.add(new_variable)
        db.session.commit()

        current_app.logger.info(f"Commission variable {variable_name} set to {value}")
        return {"success": True, "message": f"Successfully updated {variable_name} to {value}."}

    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error saving commission variable {variable_name}: {e}", exc_info=True)
        return {"success": False, "error": f"Database error saving variable: {str(e)}"}, 500


def get_latest_commission_variables(variable_names):
    """
    Retrieves the single most recent value for a list of variables.
    Returns a dictionary: {variable_name: latest_value, ...}
    """
    if not variable_names:
        return {}

    # 1. Find the latest date for each unique variable name
    subquery = db.session.query(
        CommissionVariable.variable_name,
        func.max(CommissionVariable.date_recorded).label('latest_date')
    ).filter(
        CommissionVariable.variable_name.in_(variable_names)
    ).group_by(
        CommissionVariable.variable_name
    ).subquery()

    # 2. Use the latest dates to select the full records
    latest_records = db.session.query(CommissionVariable).join(
        subquery,
        (CommissionVariable.variable_name == subquery.c.variable_name) &
        (CommissionVariable.date_recorded == subquery.c.latest_date)
    ).all()

    # 3. Map to a clean dictionary
    latest_values = {
        record.variable_name: record.variable_value
        for record in latest_records
    }

    # 4. Fill in missing variables with None if no history exists
    return {name: latest_values.get(name) for name in variable_names}


def get_effective_commission_variables():
    """Latest value of every registered variable, falling back to its default."""
    registry = current_app.config['COMMISSION_VARIABLES']
    latest = get_latest_commission_variables(list(registry.keys()))
    return {
        name: latest[name] if latest[name] is not None else config['default']
        for name, config in registry.items()
    }


def _decimal_or_none(value):
    return None if value is None else Decimal(str(value))


def load_band_tables():
    """{tier: (Band, ...)} ordered by lower limit."""
    tables = {tier: [] for tier in TIERS}
    bands = MultiplierBand.query.order_by(MultiplierBand.top, MultiplierBand.limite_inferior).all()
    for band in bands:
        tables.setdefault(normalize_top(band.top), []).append(Band(
            limite_inferior=Decimal(str(band.limite_inferior)),
            limite_superior=_decimal_or_none(band.limite_superior),
            factor=Decimal(str(band.factor)),
        ))
    return {tier: tuple(rows) for tier, rows in tables.items()}


def build_commission_settings():
    """
    Assembles the CommissionSettings the resolver and calculators run with:
    stored band tables plus the effective commission variables.
    """
    values = get_effective_commission_variables()
    return CommissionSettings(
        band_tables=load_band_tables(),
        churn_threshold_pct={
            corte: _decimal_or_none(values[f'churnUmbralCorte{corte}']) for corte in (2, 3, 4)
        },
        clawback_threshold_pct={
            corte: _decimal_or_none(values[f'clawbackUmbralCorte{corte}']) for corte in (2, 3, 4)
        },
        cut1_payment_fraction=_decimal_or_none(values['pagoCorte1Fraccion']),
        arpu_bonus_amount=Decimal(str(values['bonoArpuMonto'])),
        ramp_up_multiplier=Decimal(str(values['multiplicadorMarchaBlanca'])),
        default_multiplier=Decimal(str(values['multiplicadorDefault'])),
    )
