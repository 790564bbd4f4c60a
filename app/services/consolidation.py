# app/services/consolidation.py
# Read side: stored cut rows, the consolidated view and their exports.

import io

import pandas as pd
from flask import current_app
from sqlalchemy import Numeric
from app.exceptions import InvalidPeriodError
from app.models import CUT_MODELS
from app.utils.general import format_currency, format_multiplier, format_percentage
from app.utils.periods import parse_corte, parse_periodo, parse_zona
from .settlement_engine import consolidate_row

# Column header -> consolidated field, in export order
CSV_COLUMNS = [
    ('RUC', 'ruc'),
    ('Agencia', 'agencia'),
    ('Meta', 'meta'),
    ('Top', 'top'),
    ('Altas', 'altas'),
    ('% Cumpl.', 'porcentaje_cumplimiento'),
    ('M. Blanca', 'marcha_blanca'),
    ('Bono ARPU', 'bono_arpu'),
    ('Mult. Final', 'multiplicador_final'),
    ('Corte 1', 'corte_1'),
    ('Corte 2', 'corte_2'),
    ('Corte 3', 'corte_3'),
    ('Corte 4', 'corte_4'),
    ('Comisión Total', 'comision_total'),
    ('Pago Corte 1', 'pago_corte_1'),
    ('Pago Corte 2', 'pago_corte_2'),
    ('Penalidad 1', 'penalidad_1'),
    ('Penalidad 2', 'penalidad_2'),
    ('Penalidad 3', 'penalidad_3'),
    ('Total Penalidades', 'total_penalidades'),
    ('Clawback 1', 'clawback_1'),
    ('Clawback 2', 'clawback_2'),
    ('Clawback 3', 'clawback_3'),
    ('Total Clawbacks', 'total_clawbacks'),
    ('Total Descuentos', 'total_descuentos'),
    ('RESULTADO NETO FINAL', 'resultado_neto_final'),
]

CURRENCY_FIELDS = {
    'comision_total', 'pago_corte_1', 'pago_corte_2',
    'penalidad_1', 'penalidad_2', 'penalidad_3', 'total_penalidades',
    'clawback_1', 'clawback_2', 'clawback_3', 'total_clawbacks',
    'total_descuentos', 'resultado_neto_final',
}


def resolve_zone_period(zona, periodo):
    zona = parse_zona(zona, current_app.config['ZONAS'])
    periodo = parse_periodo(periodo)[0]
    return zona, periodo


def _rows_by_ruc(corte, zona, periodo):
    model = CUT_MODELS[corte]
    return {row.ruc: row.to_dict() for row in model.query.filter_by(periodo=periodo, zona=zona).all()}


def load_consolidated(zona, periodo):
    """
    Left join of corte 1 with cortes 2..4 on (periodo, zona, ruc), ordered by
    RUC. Agencies that never reached corte 1 do not appear.
    """
    cuts = {corte: _rows_by_ruc(corte, zona, periodo) for corte in CUT_MODELS}
    return [
        consolidate_row(cuts[1][ruc], cuts[2].get(ruc), cuts[3].get(ruc), cuts[4].get(ruc))
        for ruc in sorted(cuts[1])
    ]


def format_consolidated_row(row):
    """Presentation formatting of one consolidated row for the CSV export."""
    formatted = {}
    for header, key in CSV_COLUMNS:
        value = row.get(key)
        if key in CURRENCY_FIELDS:
            formatted[header] = format_currency(value)
        elif key == 'multiplicador_final':
            formatted[header] = format_multiplier(value)
        elif key == 'porcentaje_cumplimiento':
            formatted[header] = format_percentage(value)
        elif key == 'meta':
            formatted[header] = '-' if value is None else value
        else:
            formatted[header] = '' if value is None else value
    return formatted


# --- RESULT SERVICES ---

def get_cut_results(corte, zona, periodo):
    """Stored rows of one cut, ordered by RUC."""
    try:
        corte = parse_corte(corte)
        zona, periodo = resolve_zone_period(zona, periodo)
    except InvalidPeriodError as e:
        return e.to_result()

    try:
        rows = _rows_by_ruc(corte, zona, periodo)
        return {"success": True, "data": [rows[ruc] for ruc in sorted(rows)]}
    except Exception as e:
        current_app.logger.error(f"Error fetching corte {corte} results: {e}", exc_info=True)
        return {"success": False, "error": f"Database error: {str(e)}"}, 500


def get_consolidated_results(zona, periodo):
    try:
        zona, periodo = resolve_zone_period(zona, periodo)
    except InvalidPeriodError as e:
        return e.to_result()

    try:
        return {"success": True, "data": load_consolidated(zona, periodo)}
    except Exception as e:
        current_app.logger.error(f"Error building consolidated results: {e}", exc_info=True)
        return {"success": False, "error": f"Database error: {str(e)}"}, 500


def export_consolidated_csv(zona, periodo):
    """
    Returns {"success": True, "data": {"content": bytes, "filename": str}}
    with the consolidated view as CSV.
    """
    try:
        zona, periodo = resolve_zone_period(zona, periodo)
    except InvalidPeriodError as e:
        return e.to_result()

    try:
        rows = [format_consolidated_row(row) for row in load_consolidated(zona, periodo)]
        df = pd.DataFrame(rows, columns=[header for header, _ in CSV_COLUMNS])
        content = df.to_csv(index=False).encode('utf-8')
        return {"success": True, "data": {"content": content, "filename": f"resultados_finales_{zona}_{periodo}.csv"}}
    except Exception as e:
        current_app.logger.error(f"Error exporting consolidated results: {e}", exc_info=True)
        return {"success": False, "error": f"Error exporting results: {str(e)}"}, 500


def export_cut_xlsx(corte, zona, periodo):
    """
    Returns {"success": True, "data": {"content": BytesIO, "filename": str}}
    with the stored rows of one cut as a spreadsheet.
    """
    try:
        corte = parse_corte(corte)
        zona, periodo = resolve_zone_period(zona, periodo)
    except InvalidPeriodError as e:
        return e.to_result()

    try:
        rows = _rows_by_ruc(corte, zona, periodo)
        model = CUT_MODELS[corte]
        columns = [column for column in model.__table__.columns if column.name != 'id']
        df = pd.DataFrame([rows[ruc] for ruc in sorted(rows)], columns=[column.name for column in columns])
        # Numeric columns come back as Decimal and would be written as text
        for column in columns:
            if isinstance(column.type, Numeric):
                df[column.name] = pd.to_numeric(df[column.name])

        output = io.BytesIO()
        with pd.ExcelWriter(output, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name=f'Corte {corte}')
        output.seek(0)
        return {"success": True, "data": {"content": output, "filename": f"Corte{corte}_{zona}_{periodo}.xlsx"}}
    except Exception as e:
        current_app.logger.error(f"Error exporting corte {corte}: {e}", exc_info=True)
        return {"success": False, "error": f"Error exporting corte {corte}: {str(e)}"}, 500
