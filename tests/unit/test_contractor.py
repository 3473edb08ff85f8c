"""Unit tests for contractor and contract detection."""

from __future__ import annotations

from bmcalc.ingestion.contractor import ContractorInfo, detect_contractor


class TestDetectContractor:
    def test_contractor_and_contract_in_separate_rows(self):
        grid = [
            ["BOLETIM DE MEDIÇÃO Nº 3"],
            ["Contratada: CONSTRUTORA EXEMPLO LTDA"],
            ["Contrato: 4600012345"],
        ]

        info = detect_contractor(grid)

        assert info.contractor == "CONSTRUTORA EXEMPLO LTDA"
        assert info.contract == "4600012345"

    def test_labels_split_across_cells(self):
        """Cells of a row are joined; the name stops at the next label."""
        grid = [["Contratada:", "PAVIMENTA S.A.", "Nº do Contrato:", "4600099999"]]

        info = detect_contractor(grid)

        assert info.contractor == "PAVIMENTA S.A."
        assert info.contract == "4600099999"

    def test_short_contract_number_ignored(self):
        """Contract numbers have at least ten digits."""
        grid = [["Contrato: 12345"]]

        assert detect_contractor(grid).contract == ""

    def test_absent_values_are_empty_strings(self):
        info = detect_contractor([["Código", "Descrição", "PU"], ["A1", "Serviço", "1,00"]])

        assert info == ContractorInfo(contractor="", contract="")

    def test_only_header_rows_scanned(self):
        grid = [["linha"]] * 15 + [["Contratada: TARDIA LTDA"]]

        assert detect_contractor(grid).contractor == ""
        assert detect_contractor(grid, max_rows=16).contractor == "TARDIA LTDA"

    def test_first_match_wins(self):
        grid = [
            ["Contratada: PRIMEIRA LTDA"],
            ["Contratada: SEGUNDA LTDA"],
        ]

        assert detect_contractor(grid).contractor == "PRIMEIRA LTDA"
