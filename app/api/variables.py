# app/api/variables.py
# (This file will hold all commission variable routes.)

from flask import Blueprint, request, jsonify, current_app
from app.utils import _handle_service_result
from app.services.variables import (
    get_all_commission_variables,
    update_commission_variable,
    get_effective_commission_variables
)

bp = Blueprint('variables', __name__)

@bp.route('/commission-variables', methods=['GET'])
def commission_variables_route():
    """
    Returns the historical record of commission variables, plus the value
    each registered variable currently resolves to.
    """
    category = request.args.get('category')
    result = get_all_commission_variables(category)
    if isinstance(result, dict) and result.get("success"):
        result["effective"] = get_effective_commission_variables()
        result["registry"] = {
            name: config['category'] for name, config in current_app.config['COMMISSION_VARIABLES'].items()
        }
    return _handle_service_result(result)

@bp.route('/commission-variables/update', methods=['POST'])
def update_commission_variable_route():
    data = request.get_json(silent=True) or {}
    variable_name = data.get('variable_name')
    value = data.get('variable_value')
    comment = data.get('comment')
    recorded_by = data.get('recorded_by')

    if not variable_name or value is None:
        return jsonify({"success": False, "error": "Missing variable_name or variable_value."}), 400

    result = update_commission_variable(variable_name, value, comment, recorded_by)

    # The service returns a tuple (dict, status_code) on 400 or 500 error, or a dict on success.
    return _handle_service_result(result)
