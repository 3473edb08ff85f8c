"""Client for the AI gateway that reads daily reports and price sheets (OCR + structuring).

The gateway speaks the OpenAI chat-completions protocol. Failures are
classified and raised; nothing here retries.
"""

from __future__ import annotations

import base64
import json
import logging
import re
from collections.abc import Mapping
from typing import Any, Literal

import httpx

from bmcalc.config import ExtractionConfig
from bmcalc.exceptions import ExtractionError, QuotaExhaustedError, RateLimitedError
from bmcalc.extraction.models import ExtractedReport, ExtractionPayload, PriceSheetPayload
from bmcalc.extraction.prompts import (
    PRICE_SHEET_PROMPT,
    REPORT_PROMPT,
    context_block,
    services_prompt,
)
from bmcalc.models import PriceItem

logger = logging.getLogger(__name__)

DocumentKind = Literal["image", "pdf"]

RATE_LIMIT_MESSAGE = "Limite de requisições excedido. Tente novamente em alguns segundos."
QUOTA_MESSAGE = "Créditos insuficientes. Adicione créditos ao workspace."
GENERIC_MESSAGE = "Erro ao processar arquivo"

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

_MIME_TYPES = {"image": "image/jpeg", "pdf": "application/pdf"}


def parse_json_block(content: str) -> dict[str, Any]:
    """First ``{...}`` block of the model output, or ``{}`` when there is none."""
    match = _JSON_BLOCK.search(content or "")
    if not match:
        return {}
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning(f"Unparseable JSON in gateway response: {e}")
        return {}
    return data if isinstance(data, dict) else {}


def document_message(instruction: str, document: bytes, kind: DocumentKind) -> list[dict]:
    """Multimodal user content: an instruction followed by the base64 document."""
    encoded = base64.b64encode(document).decode("ascii")
    return [
        {"type": "text", "text": instruction},
        {
            "type": "image_url",
            "image_url": {"url": f"data:{_MIME_TYPES[kind]};base64,{encoded}"},
        },
    ]


class ExtractionClient:
    """Async client for the extraction gateway.

    Usage:
        async with ExtractionClient(config.extraction) as client:
            payload = await client.extract_services(text=report.activities)
    """

    def __init__(
        self,
        config: ExtractionConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or ExtractionConfig()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=self.config.timeout_seconds)

    async def __aenter__(self) -> ExtractionClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def extract_services(
        self,
        document: bytes | None = None,
        kind: DocumentKind = "image",
        text: str | None = None,
        price_items: list[PriceItem] | None = None,
        context: Mapping[str, str] | None = None,
    ) -> ExtractionPayload:
        """Extract executed services from a scanned report or its text.

        Raises:
            ValueError: If neither ``document`` nor ``text`` is given
            RateLimitedError: Gateway answered 429
            QuotaExhaustedError: Gateway answered 402
            ExtractionError: Any other gateway or transport failure
        """
        if not document and not text:
            raise ValueError("Forneça uma imagem ou texto de atividades")

        context = context or {}
        if document:
            user_content: Any = document_message(
                "Extraia os serviços executados com quantidades deste RDA/RDO.\n\n"
                + context_block(context),
                document,
                kind,
            )
        else:
            user_content = (
                "Analise o texto abaixo de um RDA/RDO e extraia os serviços com "
                f"quantidades.\n\nTEXTO DAS ATIVIDADES:\n{text}\n\n{context_block(context)}"
            )

        content = await self._complete(services_prompt(price_items or [], context), user_content)
        payload = ExtractionPayload.model_validate(parse_json_block(content))
        logger.info(f"Extracted {len(payload.services)} services")
        return payload

    async def extract_report(
        self,
        text: str | None = None,
        document: bytes | None = None,
        kind: DocumentKind = "image",
    ) -> ExtractedReport:
        """Structure a daily report, given as free text or as a photo/PDF, into activities.

        Raises:
            ValueError: If neither ``document`` nor ``text`` is given
            ExtractionError: Gateway or transport failure (see ``extract_services``)
        """
        if not document and not text:
            raise ValueError("Forneça uma imagem ou o texto do relatório")

        if document:
            user_content: Any = document_message(
                "Extraia os dados de atividade deste relatório de obra:", document, kind
            )
        else:
            user_content = f"Extraia todas as atividades deste relatório:\n\n{text}"

        data = parse_json_block(await self._complete(REPORT_PROMPT, user_content))
        # A scanned report often comes back as one flat activity object
        if data and not isinstance(data.get("atividades"), list):
            data = {"atividades": [data]}
        report = ExtractedReport.model_validate(data)
        logger.info(f"Extracted {len(report.activities)} activities from report")
        return report

    async def extract_price_items(
        self, document: bytes, kind: DocumentKind = "pdf"
    ) -> PriceSheetPayload:
        """Read the price items of a PDF or scanned price sheet."""
        if not document:
            raise ValueError("Nenhum arquivo enviado")

        content = await self._complete(
            PRICE_SHEET_PROMPT,
            document_message(
                "Extraia todos os itens de preço desta planilha/boletim de medição. "
                "Retorne apenas o JSON.",
                document,
                kind,
            ),
        )
        payload = PriceSheetPayload.model_validate(parse_json_block(content))
        logger.info(f"Extracted {len(payload.items)} price items")
        return payload

    async def _complete(self, system_prompt: str, user_content: Any) -> str:
        if not self.config.api_key:
            raise ExtractionError("API key not configured")

        try:
            response = await self.client.post(
                self.config.base_url,
                headers={"Authorization": f"Bearer {self.config.api_key}"},
                json={
                    "model": self.config.model,
                    "messages": [
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_content},
                    ],
                },
            )
        except httpx.HTTPError as e:
            raise ExtractionError(f"{GENERIC_MESSAGE}: {e}") from e

        if response.status_code == 429:
            raise RateLimitedError(RATE_LIMIT_MESSAGE, status_code=429)
        if response.status_code == 402:
            raise QuotaExhaustedError(QUOTA_MESSAGE, status_code=402)
        if response.is_error:
            logger.error(f"AI gateway error {response.status_code}: {response.text[:500]}")
            raise ExtractionError(GENERIC_MESSAGE, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise ExtractionError(GENERIC_MESSAGE, status_code=response.status_code) from e

        choices = data.get("choices") or [{}]
        return (choices[0].get("message") or {}).get("content") or ""
