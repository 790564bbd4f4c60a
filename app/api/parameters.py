# app/api/parameters.py
# (This file is for the parameter store: quotas, multiplier bands and agency flags.)

from flask import Blueprint, request, jsonify
from app.utils import _handle_service_result
from app.services.parameters import (
    get_parameters,
    upsert_parameter,
    upsert_parameters,
    get_multiplier_bands,
    replace_multiplier_bands,
    set_agency_flags
)

bp = Blueprint('parameters', __name__)

@bp.route('/parameters', methods=['GET'])
def get_parameters_route():
    zona = request.args.get('zona')
    periodo = request.args.get('periodo')
    result = get_parameters(zona, periodo)
    return _handle_service_result(result)

@bp.route('/parameters', methods=['POST'])
def upsert_parameter_route():
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"success": False, "error": "No data provided in the request"}), 400
    result = upsert_parameter(data)
    return _handle_service_result(result)

@bp.route('/parameters/bulk', methods=['POST'])
def bulk_parameters_route():
    """
    Upserts a list of parameter rows. A list that repeats a
    (ruc, periodo, zona) key is rejected as a whole.
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"success": False, "error": "No data provided in the request"}), 400
    rows = data.get('rows') if isinstance(data, dict) else data
    result = upsert_parameters(rows)
    return _handle_service_result(result)

@bp.route('/multiplier-bands', methods=['GET'])
def get_multiplier_bands_route():
    result = get_multiplier_bands(request.args.get('top'))
    return _handle_service_result(result)

@bp.route('/multiplier-bands', methods=['POST'])
def replace_multiplier_bands_route():
    data = request.get_json(silent=True)
    if not data or 'top' not in data:
        return jsonify({"success": False, "error": "Missing top or bands."}), 400
    result = replace_multiplier_bands(data.get('top'), data.get('bands', []))
    return _handle_service_result(result)

@bp.route('/agency-flags/<flag>', methods=['POST'])
def set_agency_flags_route(flag):
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"success": False, "error": "No data provided in the request"}), 400
    rows = data.get('rows', data) if isinstance(data, dict) else data
    result = set_agency_flags(flag, rows)
    return _handle_service_result(result)
