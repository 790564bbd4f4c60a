from datetime import datetime
from decimal import Decimal

from app import db
from app.models import CommissionVariable
from app.services.variables import (
    build_commission_settings, get_all_commission_variables, get_effective_commission_variables,
    get_latest_commission_variables, update_commission_variable,
)


def test_update_appends_history(app):
    assert update_commission_variable("churnUmbralCorte2", 5, comment="ajuste", recorded_by="finanzas")["success"]
    assert update_commission_variable("churnUmbralCorte2", "6.5")["success"]
    history = get_all_commission_variables("penalidades")["data"]
    assert len(history) == 2
    assert {row["variable_value"] for row in history} == {5.0, 6.5}


def test_unregistered_variable_rejected(app):
    error, status = update_commission_variable("bonoSecreto", 1)
    assert status == 400
    assert CommissionVariable.query.count() == 0


def test_invalid_values_rejected(app):
    assert update_commission_variable("churnUmbralCorte2", "abc")[1] == 400
    assert update_commission_variable("churnUmbralCorte2", -1)[1] == 400
    assert update_commission_variable("pagoCorte1Fraccion", 1.5)[1] == 400


def test_latest_value_wins(app):
    db.session.add(CommissionVariable(variable_name="pagoCorte1Fraccion", variable_value=0.5,
                                      category="PAGOS", date_recorded=datetime(2025, 1, 1)))
    db.session.add(CommissionVariable(variable_name="pagoCorte1Fraccion", variable_value=0.7,
                                      category="PAGOS", date_recorded=datetime(2025, 3, 1)))
    db.session.commit()
    latest = get_latest_commission_variables(["pagoCorte1Fraccion", "clawbackUmbralCorte2"])
    assert latest == {"pagoCorte1Fraccion": 0.7, "clawbackUmbralCorte2": None}


def test_effective_values_fall_back_to_defaults(app):
    effective = get_effective_commission_variables()
    assert effective["multiplicadorDefault"] == 1.3
    assert effective["multiplicadorMarchaBlanca"] == 2.5
    assert effective["churnUmbralCorte3"] == 3.5
    assert effective["pagoCorte1Fraccion"] is None


def test_build_settings_from_storage(configured):
    settings = build_commission_settings()
    assert settings.cut1_payment_fraction == Decimal("0.6")
    assert settings.churn_threshold_pct[2] == Decimal("10.0")
    assert settings.churn_threshold_pct[4] == Decimal("3.5")
    assert settings.clawback_threshold_pct[3] == Decimal("0.0")
    assert [band.factor for band in settings.band_tables["GOLD"]] == [Decimal("1.2"), Decimal("1.5")]
    assert settings.band_tables["SILVER"] == ()
    settings.require(4)
