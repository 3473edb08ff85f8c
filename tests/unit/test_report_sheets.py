"""Unit tests for bulk daily report import from spreadsheets."""

from __future__ import annotations

from datetime import datetime
from io import BytesIO

import pytest
from openpyxl import Workbook

from bmcalc.exceptions import UnsupportedFormatError
from bmcalc.ingestion.report_sheets import (
    SKIP_EMPTY,
    SKIP_INVALID_DATE,
    locate_columns,
    parse_count,
    parse_report_date,
    read_report_sheet,
)

REPORTS_CSV = (
    "Data;Contratada;Obra;Frente de Trabalho;Fiscal;Atividades;Observações;Efetivo Total;Máquinas\n"
    "01/03/2024;CONSTRUTORA EXEMPLO LTDA;SP-055;km 172+500;João Silva;Reboco;;12 pessoas;3\n"
    "2024-03-02;PAVIMENTA S.A.;SP-055;;;Pintura de faixa;Chuva à tarde;5;\n"
    "amanhã;CONSTRUTORA EXEMPLO LTDA;SP-055;;;Limpeza;;;\n"
    ";;;;;;só observação;;\n"
).encode("utf-8")


class TestLocateColumns:
    def test_alternative_names(self):
        header = ["Dia", "Empresa", "Local", "Responsável", "Serviço", "Mão de Obra", "Equipamentos"]

        columns = locate_columns(header)

        assert columns["date"] == 0
        assert columns["contractor"] == 1
        assert columns["job_site"] == 2
        assert columns["work_front"] == 2
        assert columns["fiscal"] == 3
        assert columns["activities"] == 4
        assert columns["crew_total"] == 5
        assert columns["equipment_total"] == 6
        assert "notes" not in columns

    def test_exact_header_is_not_taken_by_partial_match(self):
        """'Mão de obra' belongs to the crew, not to the job site."""
        columns = locate_columns(["Data", "Mão de obra", "Atividades"])

        assert columns["crew_total"] == 1
        assert "job_site" not in columns


class TestParsing:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("01/03/2024", "2024-03-01"),
            ("1/3/2024", "2024-03-01"),
            ("2024-03-01", "2024-03-01"),
            ("2024-03-01 00:00:00", "2024-03-01"),
            (datetime(2024, 3, 1, 8, 30), "2024-03-01"),
            (45352, "2024-03-01"),
            (45352.0, "2024-03-01"),
            ("31/02/2024", None),
            ("amanhã", None),
            (None, None),
            (0, None),
        ],
    )
    def test_parse_report_date(self, value, expected):
        assert parse_report_date(value) == expected

    def test_parse_count(self):
        assert parse_count(12) == 12
        assert parse_count(3.0) == 3
        assert parse_count("12 pessoas") == 12
        assert parse_count("") == 0
        assert parse_count(None) == 0
        assert parse_count(-2) == 0


class TestReadReportSheet:
    def test_csv(self):
        sheet = read_report_sheet(REPORTS_CSV, "rdas.csv")

        assert [report.date for report in sheet.reports] == ["2024-03-01", "2024-03-02"]
        first, second = sheet.reports
        assert first.weekday == "SEXTA-FEIRA"
        assert first.contractor == "CONSTRUTORA EXEMPLO LTDA"
        assert first.work_front == "km 172+500"
        assert first.fiscal == "João Silva"
        assert first.crew_total == 12
        assert first.equipment_total == 3
        assert first.weather == "Bom"
        assert second.notes == "Chuva à tarde"
        assert second.equipment_total == 0
        assert sheet.skipped == {SKIP_INVALID_DATE: 1, SKIP_EMPTY: 1}
        assert len(sheet.errors) == 2

    def test_xlsx_dates_and_serials(self):
        wb = Workbook()
        ws = wb.active
        ws.append(["Data", "Contratada", "Atividades", "Efetivo"])
        ws.append([datetime(2024, 3, 1), "CONSTRUTORA EXEMPLO LTDA", "Reboco", 12])
        ws.append([45353, "CONSTRUTORA EXEMPLO LTDA", "Chapisco", 8])
        output = BytesIO()
        wb.save(output)

        sheet = read_report_sheet(output.getvalue(), "rdas.xlsx")

        assert [report.date for report in sheet.reports] == ["2024-03-01", "2024-03-02"]
        assert [report.crew_total for report in sheet.reports] == [12, 8]

    def test_empty_file(self):
        sheet = read_report_sheet(b"", "vazio.csv")

        assert sheet.reports == []

    def test_unsupported_format(self):
        with pytest.raises(UnsupportedFormatError):
            read_report_sheet(b"%PDF", "rdas.pdf")
