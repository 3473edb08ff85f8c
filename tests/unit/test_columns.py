"""Unit tests for price-sheet column inference."""

from __future__ import annotations

from decimal import Decimal

from bmcalc.config import IngestionConfig
from bmcalc.ingestion.columns import (
    ColumnInferenceSettings,
    cell_text,
    detect_by_header_patterns,
    detect_by_numeric_shape,
    detect_known_template,
    infer_columns,
    normalize_header,
)


class TestHeaderHelpers:
    def test_normalize_header(self):
        """Accents, case and parenthesised suffixes are dropped."""
        assert normalize_header("Preço Unitário (R$)") == "PRECO UNITARIO"
        assert normalize_header("  descrição   do  serviço ") == "DESCRICAO DO SERVICO"
        assert normalize_header(None) == ""

    def test_cell_text(self):
        assert cell_text(None) == ""
        assert cell_text(float("nan")) == ""
        assert cell_text(12.0) == "12"
        assert cell_text(12.5) == "12.5"
        assert cell_text("  BSO-01 ") == "BSO-01"


class TestHeaderPatterns:
    """Test detection from a recognisable header row."""

    def test_standard_header(self):
        """The canonical Portuguese header maps to columns 0..5."""
        grid = [
            ["Código", "Descrição", "Unid", "Qtd", "Preço Unit", "Total"],
            ["BSO-01", "Revestimento em argamassa", "m²", "10", "45,50", "455,00"],
        ]

        columns = infer_columns(grid)

        assert columns is not None
        assert columns.strategy == "header"
        assert columns.header_row_index == 0
        assert (columns.code_col, columns.desc_col, columns.unit_col) == (0, 1, 2)
        assert (columns.qty_col, columns.price_col, columns.total_col) == (3, 4, 5)

    def test_abbreviated_price_and_valor_headers(self):
        grid = [
            ["Código", "Descrição", "Unidade", "Qtd", "P.Unit", "Valor"],
            ["BSO-01", "Revestimento em argamassa", "m²", "10", "45,50", "455,00"],
        ]

        columns = infer_columns(grid)

        assert columns.strategy == "header"
        assert columns.header_row_index == 0
        assert (columns.code_col, columns.desc_col, columns.unit_col) == (0, 1, 2)
        assert (columns.qty_col, columns.price_col, columns.total_col) == (3, 4, 5)
        assert columns.measure_cols == (3, 5)

    def test_header_below_title_rows(self):
        grid = [
            ["BOLETIM DE MEDIÇÃO"],
            ["Contratada: CONSTRUTORA EXEMPLO LTDA"],
            [],
            ["Item", "Especificação", "UN", "Quantidade", "P.U.", "Valor Total"],
        ]

        columns = detect_by_header_patterns(grid, ColumnInferenceSettings())

        assert columns is not None
        assert columns.header_row_index == 3
        assert columns.code_col == 0
        assert columns.desc_col == 1
        assert columns.price_col == 4
        assert columns.total_col == 5

    def test_missing_columns_inferred_from_description(self):
        """Code sits left of the description; unit and quantity follow it."""
        grid = [["", "Descrição", "", "", "Preço"]]

        columns = detect_by_header_patterns(grid, ColumnInferenceSettings())

        assert columns is not None
        assert columns.code_col == 0
        assert columns.unit_col == 2
        assert columns.qty_col == 3
        assert columns.price_col == 4
        assert columns.total_col == 5

    def test_explicit_codigo_preferred_over_item(self):
        grid = [["Item", "Código", "Descrição", "Preço Unitário"]]

        columns = detect_by_header_patterns(grid, ColumnInferenceSettings())

        assert columns.code_col == 1

    def test_requires_price_header(self):
        grid = [["Código", "Descrição", "Unidade"]]

        assert detect_by_header_patterns(grid, ColumnInferenceSettings()) is None

    def test_scan_window_respected(self):
        grid = [["nada"]] * 3 + [["Código", "Descrição", "PU"]]
        settings = ColumnInferenceSettings(header_scan_rows=3)

        assert detect_by_header_patterns(grid, settings) is None


class TestKnownTemplate:
    def test_bm_template_layout(self):
        grid = [
            ["Planilha"],
            ["Cód", "Linha", "ID", "DESCRIÇÃO SERVIÇO", "", "", "", ""],
        ]

        columns = detect_known_template(grid, ColumnInferenceSettings())

        assert columns is not None
        assert columns.strategy == "template"
        assert columns.header_row_index == 1
        assert (columns.code_col, columns.desc_col, columns.unit_col) == (0, 3, 4)
        assert (columns.qty_col, columns.price_col, columns.total_col) == (5, 6, 7)


class TestNumericShape:
    """Test the positional fallback."""

    def test_numeric_fallback(self):
        grid = [
            ["Planilha orçamentária de obra"],
            ["X1", "Some text here", "3.50", "12.00"],
        ]

        columns = infer_columns(grid)

        assert columns is not None
        assert columns.strategy == "numeric"
        assert columns.header_row_index == 0
        assert columns.code_col == 0
        assert columns.desc_col == 1
        assert columns.price_col == 2
        assert columns.total_col == 3

    def test_three_numeric_cells(self):
        grid = [
            ["Relação de serviços contratados"],
            ["AB-1", "Serviço qualquer", "m", "4", "2,50", "10,00"],
        ]

        columns = detect_by_numeric_shape(grid, ColumnInferenceSettings())

        assert columns.qty_col == 3
        assert columns.price_col == 4
        assert columns.total_col == 5
        assert columns.unit_col == 2

    def test_short_header_text_rejected(self):
        grid = [["a", "b"], ["X1", "texto", "3.50", "12.00"]]

        assert detect_by_numeric_shape(grid, ColumnInferenceSettings()) is None

    def test_out_of_range_values_ignored(self):
        grid = [["Planilha de preços"], ["X1", "texto", "0", "2000000"]]

        assert detect_by_numeric_shape(grid, ColumnInferenceSettings()) is None


class TestInferColumns:
    def test_unrecognised_grid_returns_none(self):
        assert infer_columns([["foo", "bar"], ["baz", "qux"]]) is None
        assert infer_columns([]) is None

    def test_settings_from_config(self):
        config = IngestionConfig(header_scan_rows=10, numeric_max=Decimal("500"))

        settings = ColumnInferenceSettings.from_config(config)

        assert settings.header_scan_rows == 10
        assert settings.numeric_max == Decimal("500")
        assert settings.header_min_text_length == 5
