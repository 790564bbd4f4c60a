# app/services/settlement_engine.py
"""
Settlement stage calculators (cortes 1..4) and the consolidation of the four
persisted cuts.

Pure functions: inputs are aggregates, parameter/flag values, the persisted
previous cut (as a dict) and a CommissionSettings object. Outputs are row
dicts shaped like the resultado_comisiones_corte_N tables. All arithmetic is
Decimal, money quantized to 0.01 ROUND_HALF_UP.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, ROUND_FLOOR
from typing import ClassVar, Optional, Tuple

from app.services.commission_rules import (
    MULTIPLIER_PLACES, attainment_pct, multiplier_at, normalize_top,
    resolve_multiplier, round_pct,
)
from app.utils.general import quantize_money as money, to_decimal

ZERO = Decimal('0.00')

# corte -> column holding the cumulative receipt count it reports
RECEIPT_COLUMNS = {
    1: 'primer_recibo_pagado',
    2: 'segundo_recibo_pagado',
    3: 'tercer_recibo_pagado',
}


def _si_no(flag):
    return 'Sí' if flag else 'No'


@dataclass(frozen=True)
class AgencyParameter:
    """Quota and tier of an agency; a missing parametros row means no quota."""
    meta: Optional[int] = None
    top: str = 'REGULAR'
    agencia: str = ''


@dataclass(frozen=True)
class AgencyFlags:
    marcha_blanca: bool = False
    bono_arpu: bool = False


# --- Validation against the previous cut ---

@dataclass(frozen=True)
class Validated:
    """Fresh (altas, corte_{N-1}) equal what cut N-1 persisted."""
    values: Tuple[int, int]
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class Mismatched:
    """Fresh counts diverge from the persisted previous cut."""
    expected: Tuple[int, int]
    actual: Tuple[int, int]
    ok: ClassVar[bool] = False


def validate_against_prior(corte, aggregate, prior_row):
    """Compares (altas, corte_{N-1}) of the fresh aggregate with the stored cut N-1 row."""
    expected = (int(prior_row.get('altas') or 0), int(prior_row.get(f'corte_{corte - 1}') or 0))
    actual = (aggregate.altas, aggregate.corte_count(corte - 1))
    if expected == actual:
        return Validated(values=actual)
    return Mismatched(expected=expected, actual=actual)


# --- Common block ---

def _base_row(aggregate, parameter, flags, settings):
    parameter = parameter or AgencyParameter()
    flags = flags or AgencyFlags()
    top = normalize_top(parameter.top)

    multiplier = resolve_multiplier(
        parameter.meta, aggregate.altas, top, flags.marcha_blanca, flags.bono_arpu, settings
    )
    precio = money(aggregate.precio_sin_igv_promedio)
    comision_total = money(Decimal(aggregate.altas) * precio * multiplier.multiplicador_final)

    return {
        'ruc': aggregate.ruc,
        'agencia': parameter.agencia or aggregate.agencia,
        'meta': parameter.meta,
        'top': top,
        'altas': aggregate.altas,
        'precio_sin_igv_promedio': precio,
        'corte_1': aggregate.corte_1,
        'corte_2': aggregate.corte_2,
        'corte_3': aggregate.corte_3,
        'corte_4': aggregate.corte_4,
        'porcentaje_cumplimiento': multiplier.porcentaje_cumplimiento,
        'marcha_blanca': _si_no(flags.marcha_blanca),
        'bono_arpu': _si_no(flags.bono_arpu),
        'factor_multiplicador': multiplier.factor_multiplicador,
        'multiplicador_final': multiplier.multiplicador_final,
        'comision_total': comision_total,
    }


# --- Cut 1 ---

def calculate_corte_1(aggregate, parameter, flags, settings):
    """Gross commission and the first installment."""
    settings.require(1)
    row = _base_row(aggregate, parameter, flags, settings)
    pago_corte_1 = money(row['comision_total'] * settings.cut1_payment_fraction)
    row['pago_corte_1'] = pago_corte_1
    row['total_a_pagar_corte_1'] = pago_corte_1
    return row


# --- Cuts 2..4 ---

def _previous_effective_multiplier(corte, prior_row, multiplicador_final):
    """
    Multiplier the agency was last paid at. For cut 2 that is the fresh final
    multiplier; later cuts start from the previous clawback multiplier.
    """
    if corte == 2:
        return multiplicador_final
    previous = prior_row.get(f'clawback_{corte - 2}_multiplicador')
    if previous is None:
        return multiplicador_final
    return min(to_decimal(previous), multiplicador_final)


def calculate_corte_n(corte, aggregate, prior_row, parameter, flags, settings):
    """
    Cut N (2..4): re-validation against cut N-1, churn penalty N-1 and quota
    clawback N-1, with the carry-forward totals updated.

    The fresh aggregate always drives the computation; a divergence from the
    stored previous cut only marks the row for review.
    """
    if corte not in (2, 3, 4):
        raise ValueError(f"calculate_corte_n handles cuts 2..4, got {corte}")
    settings.require(corte)
    flags = flags or AgencyFlags()
    parameter = parameter or AgencyParameter()
    stage = corte - 1

    validation = validate_against_prior(corte, aggregate, prior_row)
    row = _base_row(aggregate, parameter, flags, settings)
    altas = aggregate.altas
    precio = row['precio_sin_igv_promedio']

    row.update({
        'validacion_ok': validation.ok,
        'altas_guardado': int(prior_row.get('altas') or 0),
        'corte_previo_guardado': int(prior_row.get(f'corte_{corte - 1}') or 0),
        'altas_actual': altas,
        'corte_previo_actual': aggregate.corte_count(corte - 1),
    })
    for receipt in range(1, corte):
        row[RECEIPT_COLUMNS[receipt]] = aggregate.receipts_paid(receipt)

    # Penalty: only installs beyond the tolerated churn, never twice
    no_pagados = aggregate.recibos_no_pagados(corte)
    churn_pct = to_decimal(settings.churn_threshold_pct[corte])
    umbral = int((Decimal(altas) * churn_pct / Decimal(100)).to_integral_value(rounding=ROUND_FLOOR))
    previously_penalized = int(prior_row.get('altas_penalizadas_acumuladas') or 0)
    penalizadas = max(0, no_pagados - umbral - previously_penalized)
    penalidad_monto = money(Decimal(penalizadas) * precio)

    # Clawback: attainment net of unpaid installs against the cut's minimum
    clawback_umbral = to_decimal(settings.clawback_threshold_pct[corte])
    net_pct = attainment_pct(altas - no_pagados, parameter.meta)
    previous_multiplier = _previous_effective_multiplier(corte, prior_row, row['multiplicador_final'])
    clawback_multiplier = previous_multiplier
    clawback_monto = ZERO
    if not flags.marcha_blanca and net_pct is not None and net_pct < clawback_umbral:
        reduced = multiplier_at(row['top'], net_pct, flags.bono_arpu, settings)
        clawback_multiplier = min(reduced, previous_multiplier)
        clawback_monto = money(Decimal(altas) * precio * (previous_multiplier - clawback_multiplier))

    row.update({
        f'recibos_no_pagados_corte_{corte}': no_pagados,
        f'penalidad_{stage}_churn_pct': churn_pct,
        f'penalidad_{stage}_umbral': umbral,
        f'penalidad_{stage}_altas_penalizadas': penalizadas,
        f'penalidad_{stage}_monto': penalidad_monto,
        f'clawback_{stage}_umbral_corte_{corte}': clawback_umbral,
        f'clawback_{stage}_cumplimiento_pct': round_pct(net_pct),
        f'clawback_{stage}_multiplicador': clawback_multiplier.quantize(MULTIPLIER_PLACES, rounding=ROUND_HALF_UP),
        f'clawback_{stage}_monto': clawback_monto,
        'altas_penalizadas_acumuladas': previously_penalized + penalizadas,
        'penalidades_acumuladas': money(to_decimal(prior_row.get('penalidades_acumuladas')) + penalidad_monto),
        'clawbacks_acumulados': money(to_decimal(prior_row.get('clawbacks_acumulados')) + clawback_monto),
    })

    descuento = penalidad_monto + clawback_monto
    if corte == 2:
        pago_corte_1 = money(prior_row.get('pago_corte_1'))
        row['pago_corte_1'] = pago_corte_1
        row['total_a_pagar_corte_2'] = money(row['comision_total'] - pago_corte_1 - descuento)
    elif corte == 3:
        row['total_descuento_corte_3'] = money(descuento)
    else:
        row['total_descuento_corte_4'] = money(descuento)
        row['total_descuentos'] = money(row['penalidades_acumuladas'] + row['clawbacks_acumulados'])
        row['resultado_neto_final'] = money(row['comision_total'] - row['total_descuentos'])

    return row


def calculate_corte_2(aggregate, prior_row, parameter, flags, settings):
    return calculate_corte_n(2, aggregate, prior_row, parameter, flags, settings)


def calculate_corte_3(aggregate, prior_row, parameter, flags, settings):
    return calculate_corte_n(3, aggregate, prior_row, parameter, flags, settings)


def calculate_corte_4(aggregate, prior_row, parameter, flags, settings):
    return calculate_corte_n(4, aggregate, prior_row, parameter, flags, settings)


def row_validation(corte, row):
    """Rebuilds the tagged validation result from a cut N row."""
    if corte == 1:
        return Validated(values=(row['altas'], row['corte_1']))
    expected = (row['altas_guardado'], row['corte_previo_guardado'])
    actual = (row['altas_actual'], row['corte_previo_actual'])
    if row['validacion_ok']:
        return Validated(values=actual)
    return Mismatched(expected=expected, actual=actual)


# --- Consolidation ---

CONSOLIDATED_FIELDS = [
    'ruc', 'agencia', 'meta', 'top', 'altas', 'porcentaje_cumplimiento',
    'marcha_blanca', 'bono_arpu', 'multiplicador_final',
    'corte_1', 'corte_2', 'corte_3', 'corte_4',
    'comision_total', 'pago_corte_1', 'pago_corte_2',
    'penalidad_1', 'penalidad_2', 'penalidad_3', 'total_penalidades',
    'clawback_1', 'clawback_2', 'clawback_3', 'total_clawbacks',
    'total_descuentos', 'resultado_neto_final',
]


def consolidate_row(cut1, cut2=None, cut3=None, cut4=None):
    """
    Final record of an agency from its persisted cuts. Missing cuts
    contribute zero; descriptive fields and comision_total come from the
    latest cut present.
    """
    latest = next(row for row in (cut4, cut3, cut2, cut1) if row is not None)

    penalidades = [
        money((cut or {}).get(f'penalidad_{stage}_monto'))
        for stage, cut in ((1, cut2), (2, cut3), (3, cut4))
    ]
    clawbacks = [
        money((cut or {}).get(f'clawback_{stage}_monto'))
        for stage, cut in ((1, cut2), (2, cut3), (3, cut4))
    ]
    total_penalidades = sum(penalidades, ZERO)
    total_clawbacks = sum(clawbacks, ZERO)
    total_descuentos = total_penalidades + total_clawbacks
    comision_total = money(latest.get('comision_total'))

    needs_review = any(
        cut is not None and not cut.get('validacion_ok', True)
        for cut in (cut2, cut3, cut4)
    )

    return {
        'ruc': latest['ruc'],
        'agencia': latest.get('agencia'),
        'meta': latest.get('meta'),
        'top': latest.get('top'),
        'altas': latest.get('altas'),
        'porcentaje_cumplimiento': latest.get('porcentaje_cumplimiento'),
        'marcha_blanca': latest.get('marcha_blanca'),
        'bono_arpu': latest.get('bono_arpu'),
        'multiplicador_final': latest.get('multiplicador_final'),
        'corte_1': latest.get('corte_1') or 0,
        'corte_2': latest.get('corte_2') or 0,
        'corte_3': latest.get('corte_3') or 0,
        'corte_4': latest.get('corte_4') or 0,
        'comision_total': comision_total,
        'pago_corte_1': money(cut1.get('pago_corte_1')) if cut1 else ZERO,
        'pago_corte_2': money(cut2.get('total_a_pagar_corte_2')) if cut2 else ZERO,
        'penalidad_1': penalidades[0],
        'penalidad_2': penalidades[1],
        'penalidad_3': penalidades[2],
        'total_penalidades': total_penalidades,
        'clawback_1': clawbacks[0],
        'clawback_2': clawbacks[1],
        'clawback_3': clawbacks[2],
        'total_clawbacks': total_clawbacks,
        'total_descuentos': total_descuentos,
        'resultado_neto_final': comision_total - total_descuentos,
        'cortes_guardados': sum(1 for cut in (cut1, cut2, cut3, cut4) if cut is not None),
        'needs_review': needs_review,
    }
