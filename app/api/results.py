# app/api/results.py
# (This file is for the stored cut results, the consolidated view and exports.)

import io
from flask import Blueprint, send_file
from app.utils import _handle_service_result
from app.services.consolidation import (
    get_cut_results,
    get_consolidated_results,
    export_consolidated_csv,
    export_cut_xlsx
)
from app.services.kpi import get_period_kpis

bp = Blueprint('results', __name__)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

@bp.route('/results/final/<zona>/<periodo>', methods=['GET'])
def consolidated_results_route(zona, periodo):
    result = get_consolidated_results(zona, periodo)
    return _handle_service_result(result)

@bp.route('/results/final/<zona>/<periodo>/export', methods=['GET'])
def export_consolidated_route(zona, periodo):
    result = export_consolidated_csv(zona, periodo)
    if isinstance(result, tuple):
        return _handle_service_result(result)
    data = result['data']
    return send_file(
        io.BytesIO(data['content']),
        mimetype='text/csv',
        as_attachment=True,
        download_name=data['filename'],
    )

@bp.route('/results/<corte>/<zona>/<periodo>', methods=['GET'])
def cut_results_route(corte, zona, periodo):
    result = get_cut_results(corte, zona, periodo)
    return _handle_service_result(result)

@bp.route('/results/<corte>/<zona>/<periodo>/export', methods=['GET'])
def export_cut_route(corte, zona, periodo):
    result = export_cut_xlsx(corte, zona, periodo)
    if isinstance(result, tuple):
        return _handle_service_result(result)
    data = result['data']
    return send_file(
        data['content'],
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=data['filename'],
    )

@bp.route('/kpi/<zona>/<periodo>', methods=['GET'])
def period_kpis_route(zona, periodo):
    result = get_period_kpis(zona, periodo)
    return _handle_service_result(result)
