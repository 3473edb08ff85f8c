"""Unit tests for the AI extraction gateway client."""

from __future__ import annotations

import json
from decimal import Decimal

import httpx
import pytest

from bmcalc.config import ExtractionConfig
from bmcalc.exceptions import ExtractionError, QuotaExhaustedError, RateLimitedError
from bmcalc.extraction import ExtractedService, ExtractionClient
from bmcalc.extraction.client import parse_json_block
from bmcalc.extraction.prompts import NO_CATALOG_SECTION, services_prompt

CONFIG = ExtractionConfig(base_url="https://gateway.test/v1/chat/completions", api_key="test-key")


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _client(handler) -> ExtractionClient:
    return ExtractionClient(CONFIG, client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


class TestParseJsonBlock:
    def test_block_inside_markdown(self):
        content = 'Aqui está:\n```json\n{"servicos": [], "resumoAtividades": "ok"}\n```'

        assert parse_json_block(content) == {"servicos": [], "resumoAtividades": "ok"}

    def test_no_block(self):
        assert parse_json_block("sem json") == {}
        assert parse_json_block("") == {}

    def test_invalid_json(self):
        assert parse_json_block("{not json}") == {}


class TestExtractedService:
    def test_aliases_and_number_parsing(self):
        service = ExtractedService.model_validate(
            {
                "codigo": "BSO-01",
                "descricaoOriginal": "Reboco fachada",
                "descricaoPlanilha": "Revestimento em argamassa",
                "quantidade": "12,5",
                "unidade": "m²",
                "precoUnitario": "1.234,56",
                "localizacao": None,
                "confiancaMatch": "alta",
            }
        )

        assert service.quantity == Decimal("12.5")
        assert service.unit_price == Decimal("1234.56")
        assert service.location == ""

        occurrence = service.to_occurrence()
        assert occurrence.raw_code == "BSO-01"
        assert occurrence.description == "Reboco fachada"
        assert occurrence.quantity == Decimal("12.5")

    def test_null_code_becomes_no_raw_code(self):
        service = ExtractedService.model_validate({"codigo": None, "descricaoOriginal": "x"})

        assert service.to_occurrence().raw_code is None


class TestExtractionClient:
    """Test gateway calls and error classification."""

    @pytest.mark.asyncio
    async def test_extract_services_from_text(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            payload = {
                "servicos": [
                    {"codigo": "BSO-01", "descricaoOriginal": "Reboco", "quantidade": 10, "unidade": "m²"}
                ],
                "resumoAtividades": "Reboco da fachada norte",
            }
            return httpx.Response(200, json=_completion(json.dumps(payload)))

        async with _client(handler) as client:
            payload = await client.extract_services(text="Executado reboco 10 m²")

        assert captured["auth"] == "Bearer test-key"
        assert captured["body"]["model"] == CONFIG.model
        assert NO_CATALOG_SECTION in captured["body"]["messages"][0]["content"]
        assert payload.summary == "Reboco da fachada norte"
        assert [o.raw_code for o in payload.occurrences()] == ["BSO-01"]

    @pytest.mark.asyncio
    async def test_extract_services_from_image(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            parts = body["messages"][1]["content"]
            assert parts[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")
            return httpx.Response(200, json=_completion('{"servicos": []}'))

        async with _client(handler) as client:
            payload = await client.extract_services(document=b"\xff\xd8fake-jpeg")

        assert payload.services == []

    @pytest.mark.asyncio
    async def test_extract_report(self):
        content = json.dumps(
            {
                "atividades": [
                    {
                        "data": "2024-03-01",
                        "contratada": "CONSTRUTORA EXEMPLO LTDA",
                        "atividades": "Reboco",
                        "observacoes": None,
                    }
                ]
            }
        )

        async with _client(lambda request: httpx.Response(200, json=_completion(content))) as client:
            report = await client.extract_report("01/03/24 reboco")

        daily = report.activities[0].to_daily_report()
        assert daily.date == "2024-03-01"
        assert daily.contractor == "CONSTRUTORA EXEMPLO LTDA"
        assert daily.notes == ""

    @pytest.mark.asyncio
    async def test_extract_report_from_photo(self):
        """A photo comes back as one flat activity with crew and equipment counts."""

        def handler(request: httpx.Request) -> httpx.Response:
            parts = json.loads(request.content)["messages"][1]["content"]
            assert parts[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")
            flat = {
                "data": "2024-03-01",
                "diaSemana": "sexta-feira",
                "contratada": "CONSTRUTORA EXEMPLO LTDA",
                "condicaoClimatica": "chuvoso",
                "efetivoTotal": "12",
                "equipamentos": None,
                "atividades": "Reboco da fachada norte",
            }
            return httpx.Response(200, json=_completion(json.dumps(flat)))

        async with _client(handler) as client:
            report = await client.extract_report(document=b"\xff\xd8fake-jpeg")

        (activity,) = report.activities
        daily = activity.to_daily_report()
        assert daily.weekday == "SEXTA-FEIRA"
        assert daily.weather == "chuvoso"
        assert daily.crew_total == 12
        assert daily.equipment_total == 0
        assert daily.activities == "Reboco da fachada norte"

    @pytest.mark.asyncio
    async def test_extract_report_from_pdf(self):
        def handler(request: httpx.Request) -> httpx.Response:
            parts = json.loads(request.content)["messages"][1]["content"]
            assert parts[1]["image_url"]["url"].startswith("data:application/pdf;base64,")
            return httpx.Response(200, json=_completion('{"atividades": []}'))

        async with _client(handler) as client:
            report = await client.extract_report(document=b"%PDF-1.4", kind="pdf")

        assert report.activities == []

    @pytest.mark.asyncio
    async def test_extract_report_requires_input(self):
        async with _client(lambda request: httpx.Response(200)) as client:
            with pytest.raises(ValueError):
                await client.extract_report()

    @pytest.mark.asyncio
    async def test_extract_price_items_from_pdf(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            captured["system"] = body["messages"][0]["content"]
            captured["url"] = body["messages"][1]["content"][1]["image_url"]["url"]
            items = {
                "items": [
                    {
                        "codigo": "bso-01",
                        "descricao": "Revestimento em argamassa",
                        "unidade": "m²",
                        "precoUnitario": "45,50",
                        "categoria": "Acabamento",
                        "fonte": "DER-SP",
                    },
                    {"codigo": "BSO-01", "descricao": "Repetido", "precoUnitario": 1},
                    {"codigo": None, "descricao": "Sem código"},
                    {"codigo": "TER-10", "descricao": "Escavação", "precoUnitario": None},
                ]
            }
            return httpx.Response(200, json=_completion(json.dumps(items)))

        async with _client(handler) as client:
            payload = await client.extract_price_items(b"%PDF-1.4 fake")

        assert captured["url"].startswith("data:application/pdf;base64,")
        assert '"items"' in captured["system"]
        assert len(payload.items) == 4

        extracted = payload.to_extracted(contractor="CONSTRUTORA EXEMPLO LTDA")
        assert [item.code for item in extracted.items] == ["BSO-01", "TER-10"]
        first, second = extracted.items
        assert first.unit_price == Decimal("45.50")
        assert first.source == "DER-SP"
        assert first.contractor == "CONSTRUTORA EXEMPLO LTDA"
        assert second.unit == "UN"
        assert second.unit_price == Decimal("0")
        assert second.source == "PDF"
        assert sum(extracted.skipped.values()) == 2

    @pytest.mark.asyncio
    async def test_extract_price_items_rate_limited(self):
        async with _client(lambda request: httpx.Response(429)) as client:
            with pytest.raises(RateLimitedError):
                await client.extract_price_items(b"%PDF-1.4")

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        async with _client(lambda request: httpx.Response(429)) as client:
            with pytest.raises(RateLimitedError) as exc_info:
                await client.extract_services(text="x")

        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_quota_exhausted(self):
        async with _client(lambda request: httpx.Response(402)) as client:
            with pytest.raises(QuotaExhaustedError):
                await client.extract_services(text="x")

    @pytest.mark.asyncio
    async def test_server_error(self):
        async with _client(lambda request: httpx.Response(500, text="boom")) as client:
            with pytest.raises(ExtractionError) as exc_info:
                await client.extract_services(text="x")

        assert not isinstance(exc_info.value, (RateLimitedError, QuotaExhaustedError))
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(ExtractionError):
                await client.extract_services(text="x")

    @pytest.mark.asyncio
    async def test_missing_api_key(self):
        client = ExtractionClient(
            ExtractionConfig(api_key=None),
            client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200))),
        )

        with pytest.raises(ExtractionError, match="API key"):
            await client.extract_services(text="x")
        await client.client.aclose()

    @pytest.mark.asyncio
    async def test_requires_document_or_text(self):
        async with _client(lambda request: httpx.Response(200)) as client:
            with pytest.raises(ValueError):
                await client.extract_services()


def test_services_prompt_lists_catalog(price_items_catalog):
    prompt = services_prompt(price_items_catalog, {"contractor": "CONSTRUTORA EXEMPLO LTDA"})

    assert "CÓDIGO: BSO-01" in prompt
    assert "PREÇO: R$ 45.50" in prompt
    assert "CONTRATADA DO RDA: CONSTRUTORA EXEMPLO LTDA" in prompt
