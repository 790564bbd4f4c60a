# app/services/kpi.py
# KPI calculation services for the settlement dashboard

from decimal import Decimal
from flask import current_app
from sqlalchemy import func
from app import db
from app.exceptions import InvalidPeriodError
from app.models import MarchaBlanca
from .consolidation import resolve_zone_period, load_consolidated

ZERO = Decimal('0.00')


def get_period_kpis(zona, periodo):
    """
    Returns the totals of the consolidated view for one zone and period.

    Returns:
        tuple: (dict, status_code) on error, or dict on success
    """
    try:
        zona, periodo = resolve_zone_period(zona, periodo)
    except InvalidPeriodError as e:
        return e.to_result()

    try:
        rows = load_consolidated(zona, periodo)

        def total(key):
            return sum((row[key] for row in rows), ZERO)

        # Ramp-up agencies come from the flag table, not from the cut rows
        marcha_blanca_count = db.session.query(func.count(MarchaBlanca.id)).filter(
            MarchaBlanca.periodo == periodo,
            MarchaBlanca.zona == zona,
            MarchaBlanca.activo.is_(True),
        ).scalar()

        return {
            "success": True,
            "data": {
                "zona": zona,
                "periodo": periodo,
                "agencias": len(rows),
                "altas": sum(int(row['altas'] or 0) for row in rows),
                "comision_total": total('comision_total'),
                "pago_corte_1": total('pago_corte_1'),
                "pago_corte_2": total('pago_corte_2'),
                "total_penalidades": total('total_penalidades'),
                "total_clawbacks": total('total_clawbacks'),
                "total_descuentos": total('total_descuentos'),
                "resultado_neto_final": total('resultado_neto_final'),
                "agencias_marcha_blanca": int(marcha_blanca_count or 0),
                "agencias_por_revisar": sum(1 for row in rows if row['needs_review']),
            },
        }

    except Exception as e:
        current_app.logger.error(f"Error computing KPIs for {zona} {periodo}: {e}", exc_info=True)
        return ({"success": False, "error": f"Database error: {str(e)}"}, 500)
