"""
Tests for the cut calculators and the consolidation of persisted cuts.
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from app.exceptions import MissingConfigurationError
from app.services.aggregator import AgencyAggregate
from app.utils.general import quantize_money
from app.services.settlement_engine import (
    AgencyFlags, AgencyParameter, Mismatched, Validated, calculate_corte_1, calculate_corte_2,
    calculate_corte_3, calculate_corte_4, consolidate_row, validate_against_prior,
)

GOLD = AgencyParameter(meta=10, top="GOLD", agencia="AGENCIA NORTE SAC")


@pytest.fixture
def cuts(aggregate, settings):
    """The four cuts of the reference agency, each fed with the previous one."""
    cut1 = calculate_corte_1(aggregate, GOLD, AgencyFlags(), settings)
    cut2 = calculate_corte_2(aggregate, cut1, GOLD, AgencyFlags(), settings)
    cut3 = calculate_corte_3(aggregate, cut2, GOLD, AgencyFlags(), settings)
    cut4 = calculate_corte_4(aggregate, cut3, GOLD, AgencyFlags(), settings)
    return cut1, cut2, cut3, cut4


class TestCorte1:
    def test_gross_commission_and_first_payment(self, aggregate, settings):
        row = calculate_corte_1(aggregate, GOLD, AgencyFlags(), settings)
        assert row["ruc"] == "20100066603"
        assert row["multiplicador_final"] == Decimal("1.5")
        assert row["comision_total"] == Decimal("1500.00")
        assert row["pago_corte_1"] == Decimal("900.00")
        assert row["total_a_pagar_corte_1"] == Decimal("900.00")
        assert row["marcha_blanca"] == "No"
        assert row["bono_arpu"] == "No"

    def test_same_inputs_same_row(self, aggregate, settings):
        first = calculate_corte_1(aggregate, GOLD, AgencyFlags(), settings)
        second = calculate_corte_1(aggregate, GOLD, AgencyFlags(), settings)
        assert first == second

    def test_agency_without_parameters_uses_default_multiplier(self, aggregate, settings):
        row = calculate_corte_1(aggregate, None, None, settings)
        assert row["meta"] is None
        assert row["top"] == "REGULAR"
        assert row["porcentaje_cumplimiento"] is None
        assert row["multiplicador_final"] == Decimal("1.3")
        assert row["comision_total"] == Decimal("1300.00")
        assert row["agencia"] == "AGENCIA NORTE SAC"

    def test_ramp_up_and_bonus_flags(self, aggregate, settings):
        row = calculate_corte_1(aggregate, GOLD, AgencyFlags(marcha_blanca=True, bono_arpu=True), settings)
        assert row["factor_multiplicador"] == Decimal("2.5")
        assert row["multiplicador_final"] == Decimal("3.5")
        assert row["comision_total"] == Decimal("3500.00")
        assert row["marcha_blanca"] == "Sí"

    def test_payment_rounds_half_up(self, aggregate, settings):
        row = calculate_corte_1(aggregate, GOLD, AgencyFlags(), replace(settings, cut1_payment_fraction=Decimal("0.33335")))
        assert row["pago_corte_1"] == Decimal("500.03")
        assert row["pago_corte_1"] == quantize_money(Decimal("500.025"))

    def test_missing_payment_fraction_is_a_configuration_error(self, aggregate, settings):
        with pytest.raises(MissingConfigurationError):
            calculate_corte_1(aggregate, GOLD, AgencyFlags(), replace(settings, cut1_payment_fraction=None))


class TestValidation:
    def test_matching_counts(self, aggregate):
        result = validate_against_prior(2, aggregate, {"altas": 10, "corte_1": 10})
        assert result == Validated(values=(10, 10))
        assert result.ok

    def test_mismatch_keeps_both_values(self, aggregate):
        result = validate_against_prior(2, aggregate, {"altas": 9, "corte_1": 9})
        assert isinstance(result, Mismatched)
        assert not result.ok
        assert result.expected == (9, 9)
        assert result.actual == (10, 10)

    def test_mismatch_flags_row_but_uses_fresh_values(self, aggregate, settings):
        stale = calculate_corte_1(replace(aggregate, altas=9, corte_1=9), GOLD, AgencyFlags(), settings)
        row = calculate_corte_2(aggregate, stale, GOLD, AgencyFlags(), settings)
        assert row["validacion_ok"] is False
        assert row["altas_guardado"] == 9
        assert row["altas_actual"] == 10
        assert row["altas"] == 10
        assert row["comision_total"] == Decimal("1500.00")


class TestCorte2:
    def test_penalty_only_on_excess_over_tolerance(self, cuts):
        cut2 = cuts[1]
        assert cut2["recibos_no_pagados_corte_2"] == 2
        assert cut2["penalidad_1_churn_pct"] == Decimal("10")
        assert cut2["penalidad_1_umbral"] == 1
        assert cut2["penalidad_1_altas_penalizadas"] == 1
        assert cut2["penalidad_1_monto"] == Decimal("100.00")

    def test_clawback_reduces_to_band_at_net_attainment(self, cuts):
        cut2 = cuts[1]
        assert cut2["clawback_1_cumplimiento_pct"] == Decimal("80.00")
        assert cut2["clawback_1_multiplicador"] == Decimal("1.2")
        assert cut2["clawback_1_monto"] == Decimal("300.00")

    def test_amount_payable_at_corte_2(self, cuts):
        cut2 = cuts[1]
        assert cut2["pago_corte_1"] == Decimal("900.00")
        assert cut2["total_a_pagar_corte_2"] == Decimal("200.00")
        assert cut2["validacion_ok"] is True

    def test_no_clawback_above_threshold(self, aggregate, settings):
        lenient = replace(settings, clawback_threshold_pct={2: Decimal("50"), 3: Decimal("50"), 4: Decimal("50")})
        cut1 = calculate_corte_1(aggregate, GOLD, AgencyFlags(), lenient)
        cut2 = calculate_corte_2(aggregate, cut1, GOLD, AgencyFlags(), lenient)
        assert cut2["clawback_1_monto"] == Decimal("0.00")
        assert cut2["clawback_1_multiplicador"] == Decimal("1.5")
        assert cut2["total_a_pagar_corte_2"] == Decimal("500.00")

    def test_ramp_up_is_never_clawed_back(self, aggregate, settings):
        flags = AgencyFlags(marcha_blanca=True)
        cut1 = calculate_corte_1(aggregate, GOLD, flags, settings)
        cut2 = calculate_corte_2(aggregate, cut1, GOLD, flags, settings)
        assert cut2["clawback_1_monto"] == Decimal("0.00")

    def test_zero_quota_has_no_attainment_and_no_clawback(self, aggregate, settings):
        no_quota = AgencyParameter(meta=0, top="GOLD")
        cut1 = calculate_corte_1(aggregate, no_quota, AgencyFlags(), settings)
        cut2 = calculate_corte_2(aggregate, cut1, no_quota, AgencyFlags(), settings)
        assert cut1["porcentaje_cumplimiento"] is None
        assert cut1["multiplicador_final"] == Decimal("1.3")
        assert cut2["clawback_1_cumplimiento_pct"] is None
        assert cut2["clawback_1_monto"] == Decimal("0.00")

    def test_vanished_agency_reads_as_zero(self, aggregate, settings):
        cut1 = calculate_corte_1(aggregate, GOLD, AgencyFlags(), settings)
        cut2 = calculate_corte_2(AgencyAggregate.empty(aggregate.ruc), cut1, GOLD, AgencyFlags(), settings)
        assert cut2["validacion_ok"] is False
        assert cut2["altas"] == 0
        assert cut2["comision_total"] == Decimal("0.00")
        assert cut2["total_a_pagar_corte_2"] == Decimal("-900.00")


class TestCortes3And4:
    def test_installs_are_not_penalized_twice(self, cuts):
        cut3 = cuts[2]
        assert cut3["recibos_no_pagados_corte_3"] == 3
        assert cut3["penalidad_2_altas_penalizadas"] == 1
        assert cut3["penalidad_2_monto"] == Decimal("100.00")
        assert cut3["altas_penalizadas_acumuladas"] == 2

    def test_clawback_only_takes_the_new_reduction(self, cuts):
        cut3 = cuts[2]
        assert cut3["clawback_2_cumplimiento_pct"] == Decimal("70.00")
        assert cut3["clawback_2_multiplicador"] == Decimal("1.0")
        assert cut3["clawback_2_monto"] == Decimal("200.00")
        assert cut3["total_descuento_corte_3"] == Decimal("300.00")

    def test_carry_forward_totals(self, cuts):
        cut3 = cuts[2]
        assert cut3["penalidades_acumuladas"] == Decimal("200.00")
        assert cut3["clawbacks_acumulados"] == Decimal("500.00")
        assert cut3["primer_recibo_pagado"] == 8
        assert cut3["segundo_recibo_pagado"] == 7

    def test_corte_4_is_terminal(self, cuts):
        cut4 = cuts[3]
        assert cut4["penalidad_3_altas_penalizadas"] == 0
        assert cut4["penalidad_3_monto"] == Decimal("0.00")
        assert cut4["clawback_3_monto"] == Decimal("0.00")
        assert cut4["total_descuento_corte_4"] == Decimal("0.00")
        assert cut4["total_descuentos"] == Decimal("700.00")
        assert cut4["resultado_neto_final"] == Decimal("800.00")
        assert cut4["tercer_recibo_pagado"] == 7

    def test_corte_n_rejects_corte_1(self, aggregate, settings):
        from app.services.settlement_engine import calculate_corte_n
        with pytest.raises(ValueError):
            calculate_corte_n(1, aggregate, {}, GOLD, AgencyFlags(), settings)


class TestConsolidation:
    def test_full_chain(self, cuts):
        row = consolidate_row(*cuts)
        assert row["comision_total"] == Decimal("1500.00")
        assert row["pago_corte_1"] == Decimal("900.00")
        assert row["pago_corte_2"] == Decimal("200.00")
        assert (row["penalidad_1"], row["penalidad_2"], row["penalidad_3"]) == (
            Decimal("100.00"), Decimal("100.00"), Decimal("0.00"))
        assert row["total_penalidades"] == Decimal("200.00")
        assert row["total_clawbacks"] == Decimal("500.00")
        assert row["total_descuentos"] == Decimal("700.00")
        assert row["resultado_neto_final"] == Decimal("800.00")
        assert row["cortes_guardados"] == 4
        assert row["needs_review"] is False

    def test_missing_cuts_contribute_zero(self, cuts):
        row = consolidate_row(cuts[0])
        assert row["total_penalidades"] == Decimal("0.00")
        assert row["total_clawbacks"] == Decimal("0.00")
        assert row["pago_corte_2"] == Decimal("0.00")
        assert row["resultado_neto_final"] == Decimal("1500.00")

    def test_commission_comes_from_latest_cut(self, cuts):
        cut1 = dict(cuts[0], comision_total=Decimal("1400.00"))
        row = consolidate_row(cut1, cuts[1])
        assert row["comision_total"] == Decimal("1500.00")

    def test_additivity_holds_exactly(self, cuts):
        for present in (cuts[:1], cuts[:2], cuts[:3], cuts):
            row = consolidate_row(*present)
            assert row["total_descuentos"] == row["total_penalidades"] + row["total_clawbacks"]
            assert row["resultado_neto_final"] == row["comision_total"] - row["total_descuentos"]

    def test_mismatch_marks_review(self, cuts):
        cut2 = dict(cuts[1], validacion_ok=False)
        assert consolidate_row(cuts[0], cut2)["needs_review"] is True
