import csv
import io
from decimal import Decimal

from openpyxl import load_workbook

from app.services.consolidation import (
    CSV_COLUMNS, export_consolidated_csv, export_cut_xlsx, get_consolidated_results,
    get_cut_results, format_consolidated_row,
)
from app.services.kpi import get_period_kpis
from app.services.settlements import save_cut, settle_period

RUC = "20100066603"


class TestConsolidatedView:
    def test_full_period(self, scenario):
        settle_period("LIMA", 2025, "abril")
        rows = get_consolidated_results("lima", "202504")["data"]
        assert len(rows) == 1
        row = rows[0]
        assert row["cortes_guardados"] == 4
        assert row["needs_review"] is False
        assert row["comision_total"] == Decimal("1500.00")
        assert row["pago_corte_1"] == Decimal("900.00")
        assert row["pago_corte_2"] == Decimal("500.00")
        assert row["penalidad_1"] == Decimal("100.00")
        assert row["penalidad_2"] == Decimal("100.00")
        assert row["penalidad_3"] == Decimal("0.00")
        assert row["total_descuentos"] == Decimal("200.00")
        assert row["resultado_neto_final"] == Decimal("1300.00")

    def test_partial_period_counts_missing_cuts_as_zero(self, scenario):
        save_cut(1, "LIMA", 2025, "abril")
        row = get_consolidated_results("LIMA", 202504)["data"][0]
        assert row["cortes_guardados"] == 1
        assert row["pago_corte_2"] == Decimal("0.00")
        assert row["total_descuentos"] == Decimal("0.00")
        assert row["resultado_neto_final"] == Decimal("1500.00")

    def test_empty_period(self, app):
        assert get_consolidated_results("LIMA", 202504)["data"] == []

    def test_bad_zone(self, app):
        error, status = get_consolidated_results("CUSCO", 202504)
        assert status == 400

    def test_cut_results_are_ordered_by_ruc(self, scenario, sale_factory):
        sale_factory(ruc="20000000001", count=1, asesor="AGENCIA ESTE")
        save_cut(1, "LIMA", 2025, "abril")
        rows = get_cut_results("corte_1", "LIMA", 202504)["data"]
        assert [row["ruc"] for row in rows] == ["20000000001", RUC]


class TestExports:
    def test_row_formatting(self):
        formatted = format_consolidated_row({
            "ruc": RUC, "meta": None, "porcentaje_cumplimiento": None,
            "comision_total": Decimal("1500"), "multiplicador_final": Decimal("1.5"),
        })
        assert formatted["Meta"] == "-"
        assert formatted["% Cumpl."] == "-"
        assert formatted["Comisión Total"] == "1500.00"
        assert formatted["Mult. Final"] == "1.5"
        assert formatted["Agencia"] == ""

    def test_csv_export(self, scenario):
        settle_period("LIMA", 2025, "abril")
        data = export_consolidated_csv("LIMA", 202504)["data"]
        assert data["filename"] == "resultados_finales_LIMA_202504.csv"

        reader = csv.DictReader(io.StringIO(data["content"].decode("utf-8")))
        assert reader.fieldnames == [header for header, _ in CSV_COLUMNS]
        rows = list(reader)
        assert len(rows) == 1
        assert rows[0]["RUC"] == RUC
        assert rows[0]["% Cumpl."] == "100.0%"
        assert rows[0]["Mult. Final"] == "1.5"
        assert rows[0]["Total Descuentos"] == "200.00"
        assert rows[0]["RESULTADO NETO FINAL"] == "1300.00"

    def test_csv_export_of_empty_period_has_headers(self, app):
        content = export_consolidated_csv("PROVINCIA", 202504)["data"]["content"].decode("utf-8")
        assert content.splitlines() == [",".join(header for header, _ in CSV_COLUMNS)]

    def test_xlsx_export(self, scenario):
        save_cut(1, "LIMA", 2025, "abril")
        data = export_cut_xlsx(1, "LIMA", 202504)["data"]
        assert data["filename"] == "Corte1_LIMA_202504.xlsx"

        sheet = load_workbook(data["content"]).active
        header = [cell.value for cell in sheet[1]]
        values = dict(zip(header, [cell.value for cell in sheet[2]]))
        assert sheet.title == "Corte 1"
        assert values["ruc"] == RUC
        assert values["comision_total"] == 1500
        assert sheet.max_row == 2


class TestKpis:
    def test_period_totals(self, scenario):
        settle_period("LIMA", 2025, "abril")
        data = get_period_kpis("LIMA", 202504)["data"]
        assert data["agencias"] == 1
        assert data["altas"] == 10
        assert data["comision_total"] == Decimal("1500.00")
        assert data["resultado_neto_final"] == Decimal("1300.00")
        assert data["agencias_marcha_blanca"] == 0
        assert data["agencias_por_revisar"] == 0
