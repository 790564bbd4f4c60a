from decimal import Decimal

from app.models import BonoArpu, CommissionParameter, MarchaBlanca, MultiplierBand
from app.services.parameters import (
    get_multiplier_bands, get_parameters, load_flags, load_parameters,
    replace_multiplier_bands, set_agency_flags, upsert_parameter, upsert_parameters,
)
from app.services.settlements import preview_cut

RUC = "20100066603"


def parameter(**overrides):
    payload = {"ruc": RUC, "agencia": "AGENCIA NORTE SAC", "meta": 20, "top": "GOLD", "zona": "LIMA", "periodo": 202504}
    payload.update(overrides)
    return payload


class TestParameters:
    def test_upsert_creates_row(self, app):
        result = upsert_parameter(parameter())
        assert result["success"] is True
        row = CommissionParameter.query.one()
        assert (row.ruc, row.meta, row.top, row.zona, row.periodo) == (RUC, 20, "GOLD", "LIMA", 202504)

    def test_upsert_overwrites_same_key(self, app):
        upsert_parameter(parameter(meta=20))
        upsert_parameter(parameter(meta=30, top="silver"))
        rows = CommissionParameter.query.all()
        assert len(rows) == 1
        assert rows[0].meta == 30
        assert rows[0].top == "SILVER"

    def test_other_tier_labels_become_regular(self, app):
        upsert_parameter(parameter(top="NO ES TOP"))
        assert CommissionParameter.query.one().top == "REGULAR"

    def test_bulk_with_duplicate_key_writes_nothing(self, app):
        error, status = upsert_parameters([parameter(meta=20), parameter(meta=25)])
        assert status == 400
        assert "Duplicate" in error["error"]
        assert CommissionParameter.query.count() == 0

    def test_bulk_rejects_bad_period(self, app):
        error, status = upsert_parameters([parameter(periodo="2025-13")])
        assert status == 400
        assert CommissionParameter.query.count() == 0

    def test_bulk_rejects_non_object_rows(self, app):
        error, status = upsert_parameters([parameter(), "20100066603"])
        assert status == 400
        assert CommissionParameter.query.count() == 0

    def test_numeric_agency_name_is_stored_as_text(self, app):
        upsert_parameter(parameter(agencia=12345))
        assert CommissionParameter.query.one().agencia == "12345"

    def test_negative_meta_rejected(self, app):
        error, status = upsert_parameter(parameter(meta=-1))
        assert status == 400

    def test_blank_meta_is_stored_as_missing(self, app):
        upsert_parameter(parameter(meta=""))
        assert load_parameters(202504, "LIMA")[RUC].meta is None

    def test_get_filters_by_zone_and_period(self, app):
        upsert_parameters([parameter(), parameter(zona="PROVINCIA"), parameter(periodo=202505)])
        data = get_parameters("LIMA", "202504")["data"]
        assert len(data) == 1
        assert data[0]["zona"] == "LIMA"


class TestMultiplierBands:
    def test_replace_band_table(self, app):
        bands = [
            {"limite_inferior": 100, "limite_superior": None, "factor": 1.5},
            {"limite_inferior": 0, "limite_superior": 100, "factor": 1.2},
        ]
        result = replace_multiplier_bands("gold", bands)
        assert result["data"] == {"top": "GOLD", "bands": 2}

        replace_multiplier_bands("GOLD", [{"limite_inferior": 0, "factor": 1.1}])
        stored = get_multiplier_bands("GOLD")["data"]
        assert len(stored) == 1
        assert stored[0]["factor"] == Decimal("1.100")

    def test_overlapping_bands_rejected(self, app):
        bands = [
            {"limite_inferior": 0, "limite_superior": 90, "factor": 1.0},
            {"limite_inferior": 80, "limite_superior": None, "factor": 1.2},
        ]
        error, status = replace_multiplier_bands("GOLD", bands)
        assert status == 400
        assert MultiplierBand.query.count() == 0

    def test_open_band_must_be_last(self, app):
        bands = [
            {"limite_inferior": 0, "limite_superior": None, "factor": 1.0},
            {"limite_inferior": 100, "limite_superior": None, "factor": 1.2},
        ]
        error, status = replace_multiplier_bands("SILVER", bands)
        assert status == 400

    def test_non_object_band_rejected(self, app):
        error, status = replace_multiplier_bands("GOLD", ["1.2"])
        assert status == 400

    def test_unknown_tier_rejected(self, app):
        error, status = replace_multiplier_bands("PLATINUM", [])
        assert status == 400


class TestAgencyFlags:
    def test_flags_are_loaded_per_period_and_zone(self, app):
        set_agency_flags("marcha_blanca", [{"ruc": RUC, "periodo": 202504, "zona": "LIMA"}])
        set_agency_flags("bono_arpu", {"ruc": RUC, "periodo": 202504, "zona": "LIMA", "activo": "si"})

        flags = load_flags(202504, "LIMA")
        assert flags[RUC].marcha_blanca is True
        assert flags[RUC].bono_arpu is True
        assert load_flags(202505, "LIMA") == {}

    def test_inactive_flag_is_ignored(self, app):
        set_agency_flags("bono_arpu", [{"ruc": RUC, "periodo": 202504, "zona": "LIMA", "activo": False}])
        assert BonoArpu.query.count() == 1
        assert load_flags(202504, "LIMA") == {}

    def test_flag_upsert_keeps_one_row(self, app):
        set_agency_flags("marcha_blanca", [{"ruc": RUC, "periodo": 202504, "zona": "LIMA"}])
        set_agency_flags("marcha_blanca", [{"ruc": RUC, "periodo": 202504, "zona": "LIMA", "activo": False}])
        assert MarchaBlanca.query.count() == 1
        assert MarchaBlanca.query.one().activo is False

    def test_flag_rows_must_be_objects(self, app):
        error, status = set_agency_flags("bono_arpu", [RUC])
        assert status == 400
        assert BonoArpu.query.count() == 0

    def test_unknown_flag(self, app):
        error, status = set_agency_flags("vip", [{"ruc": RUC}])
        assert status == 400

    def test_ramp_up_flag_changes_the_multiplier(self, scenario):
        set_agency_flags("marcha_blanca", [{"ruc": RUC, "periodo": 202504, "zona": "LIMA"}])
        row = preview_cut(1, "LIMA", 2025, "abril")["data"]["rows"][0]
        assert row["marcha_blanca"] == "Sí"
        assert row["multiplicador_final"] == Decimal("2.5")
        assert row["comision_total"] == Decimal("2500.00")
