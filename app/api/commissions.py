# app/api/commissions.py
# (This file is for all settlement routes: preview, save and settle a period.)

from flask import Blueprint, request
from app.utils import _handle_service_result
from app.services.settlements import (
    preview_cut,
    save_cut,
    settle_period,
    get_base_calculo
)

bp = Blueprint('commissions', __name__)

@bp.route('/commissions/<corte>/<zona>/<year>/<mes>', methods=['GET'])
def preview_cut_route(corte, zona, year, mes):
    """
    Computes a cut for the zone and month without writing it.
    Optional ?as_of=YYYY-MM-DD overrides the cut's receipt as-of date.
    """
    result = preview_cut(corte, zona, year, mes, as_of=request.args.get('as_of'))
    return _handle_service_result(result)

@bp.route('/commissions/<corte>/<zona>/<year>/<mes>/save', methods=['POST'])
def save_cut_route(corte, zona, year, mes):
    result = save_cut(corte, zona, year, mes, as_of=request.args.get('as_of'))
    # Service returns a tuple (dict, status) on 400, 409 or 500 error
    return _handle_service_result(result)

@bp.route('/commissions/<zona>/<year>/<mes>/settle', methods=['POST'])
def settle_period_route(zona, year, mes):
    """
    Runs cuts 1..through (default 4) in order, stopping at the first failure.
    """
    through = request.args.get('through', 4)
    result = settle_period(zona, year, mes, through=through)
    return _handle_service_result(result)

@bp.route('/commissions/<zona>/<year>/<mes>/base-calculo', methods=['GET'])
def base_calculo_route(zona, year, mes):
    result = get_base_calculo(zona, year, mes)
    return _handle_service_result(result)
