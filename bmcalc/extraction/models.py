"""Structured results returned by the extraction gateway.

Field aliases follow the Portuguese JSON keys the model is asked to produce.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bmcalc.catalog.normalize import normalize_code
from bmcalc.ingestion.price_parser import parse_price
from bmcalc.ingestion.pricesheets import (
    DEFAULT_UNIT,
    SKIP_DUPLICATE,
    SKIP_INVALID_CODE,
    SKIP_SHORT_DESCRIPTION,
    ExtractedItems,
)
from bmcalc.models import DailyReport, PriceItem, ServiceOccurrence

PDF_SOURCE = "PDF"


def _text(value: object) -> str:
    return "" if value is None else str(value).strip()


class ExtractedService(BaseModel):
    """One executed service read from a daily report."""

    model_config = ConfigDict(populate_by_name=True)

    code: str | None = Field(default=None, alias="codigo")
    original_description: str = Field(default="", alias="descricaoOriginal")
    sheet_description: str | None = Field(default=None, alias="descricaoPlanilha")
    quantity: Decimal = Field(default=Decimal("0"), alias="quantidade")
    unit: str = Field(default="", alias="unidade")
    unit_price: Decimal = Field(default=Decimal("0"), alias="precoUnitario")
    location: str = Field(default="", alias="localizacao")
    notes: str | None = Field(default=None, alias="observacao")
    confidence: str | None = Field(default=None, alias="confiancaMatch")

    @field_validator("quantity", "unit_price", mode="before")
    @classmethod
    def parse_number(cls, v: object) -> Decimal:
        return parse_price(v)

    @field_validator("original_description", "unit", "location", mode="before")
    @classmethod
    def empty_string_for_null(cls, v: object) -> str:
        return _text(v)

    def to_occurrence(self) -> ServiceOccurrence:
        """Reconciler input; the gateway's code becomes the raw code."""
        return ServiceOccurrence(
            description=self.original_description or self.sheet_description or "",
            quantity=self.quantity,
            unit=self.unit,
            raw_code=self.code or None,
            location=self.location,
            notes=self.notes,
        )


class ExtractionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    services: list[ExtractedService] = Field(default_factory=list, alias="servicos")
    summary: str = Field(default="", alias="resumoAtividades")

    @field_validator("summary", mode="before")
    @classmethod
    def empty_string_for_null(cls, v: object) -> str:
        return _text(v)

    def occurrences(self) -> list[ServiceOccurrence]:
        return [service.to_occurrence() for service in self.services]


class ExtractedActivity(BaseModel):
    """One activity of a report, as structured by the gateway from text or a photo."""

    model_config = ConfigDict(populate_by_name=True)

    date: str = Field(default="", alias="data")
    weekday: str = Field(default="", alias="diaSemana")
    fiscal: str = Field(default="", alias="fiscal")
    contractor: str = Field(default="", alias="contratada")
    job_site: str = Field(default="", alias="obra")
    work_front: str = Field(default="", alias="frenteTrabalho")
    weather: str = Field(default="", alias="condicaoClimatica")
    crew_total: int = Field(default=0, alias="efetivoTotal")
    equipment_total: int = Field(default=0, alias="equipamentos")
    activities: str = Field(default="", alias="atividades")
    notes: str = Field(default="", alias="observacoes")

    @field_validator(
        "date",
        "weekday",
        "fiscal",
        "contractor",
        "job_site",
        "work_front",
        "weather",
        "activities",
        "notes",
        mode="before",
    )
    @classmethod
    def empty_string_for_null(cls, v: object) -> str:
        return _text(v)

    @field_validator("crew_total", "equipment_total", mode="before")
    @classmethod
    def parse_count(cls, v: object) -> int:
        return max(int(parse_price(v)), 0)

    def to_daily_report(self) -> DailyReport:
        report = DailyReport(
            date=self.date,
            weekday=self.weekday.upper(),
            fiscal=self.fiscal,
            contractor=self.contractor,
            job_site=self.job_site,
            work_front=self.work_front,
            crew_total=self.crew_total,
            equipment_total=self.equipment_total,
            activities=self.activities,
            notes=self.notes,
        )
        if self.weather:
            report.weather = self.weather
        return report


class ExtractedReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    activities: list[ExtractedActivity] = Field(default_factory=list, alias="atividades")


class ExtractedPriceItem(BaseModel):
    """One row of a price sheet read from a PDF or scan."""

    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(default="", alias="codigo")
    description: str = Field(default="", alias="descricao")
    unit: str = Field(default="", alias="unidade")
    unit_price: Decimal = Field(default=Decimal("0"), alias="precoUnitario")
    category: str = Field(default="", alias="categoria")
    source: str = Field(default="", alias="fonte")

    @field_validator("code", "description", "unit", "category", "source", mode="before")
    @classmethod
    def empty_string_for_null(cls, v: object) -> str:
        return _text(v)

    @field_validator("unit_price", mode="before")
    @classmethod
    def parse_number(cls, v: object) -> Decimal:
        return max(parse_price(v), Decimal("0"))


class PriceSheetPayload(BaseModel):
    items: list[ExtractedPriceItem] = Field(default_factory=list)

    def to_extracted(self, contractor: str = "", contract: str = "") -> ExtractedItems:
        """Catalog items ready for ``PriceSheetIngestor.ingest_extracted``.

        Rows without code or description, and repeated codes, are skipped and
        counted the same way as spreadsheet rows.
        """
        result = ExtractedItems(contractor=contractor, contract=contract)
        seen: set[str] = set()
        for row in self.items:
            code = row.code.upper()
            if not code:
                result.skipped[SKIP_INVALID_CODE] += 1
                continue
            if not row.description:
                result.skipped[SKIP_SHORT_DESCRIPTION] += 1
                continue
            key = normalize_code(code)
            if key in seen:
                result.skipped[SKIP_DUPLICATE] += 1
                continue
            seen.add(key)
            result.items.append(
                PriceItem(
                    code=code,
                    description=row.description,
                    unit=row.unit or DEFAULT_UNIT,
                    unit_price=row.unit_price,
                    category=row.category or None,
                    source=row.source or PDF_SOURCE,
                    contractor=contractor or None,
                    contract=contract or None,
                )
            )
        return result
