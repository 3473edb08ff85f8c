"""BMCalc Pydantic models for type-safe data validation.

Monetary values and quantities are Decimal. Dates are ISO ``YYYY-MM-DD``
strings so that period filters compare lexicographically.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator


class MatchMethod(str, Enum):
    """How a service occurrence was tied to a catalog item."""

    RAW_CODE = "raw_code"
    MATCH_HISTORY = "match_history"
    MANUAL = "manual"
    UNMATCHED = "unmatched"


class Side(str, Enum):
    """Side of the alignment where a service was executed."""

    LEFT = "E"
    RIGHT = "D"
    AXIS = "EIXO"


class PriceItem(BaseModel):
    """Priced service item from a contractor's catalog (BM sheet)."""

    id: UUID = Field(default_factory=uuid4)
    code: str
    description: str
    unit: str = "UN"
    unit_price: Decimal = Decimal("0")
    category: str | None = None
    source: str | None = None
    contractor: str | None = None
    contract: str | None = None
    sheet_id: UUID | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @field_validator("unit_price")
    @classmethod
    def validate_unit_price(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("unit_price must be non-negative")
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "code": "BSO-01",
                "description": "Revestimento em argamassa",
                "unit": "m²",
                "unit_price": Decimal("45.50"),
                "category": "Serviços",
                "source": "BM",
                "contractor": "CONSTRUTORA EXEMPLO LTDA",
                "contract": "4600012345",
            }
        }


class PriceSheetFile(BaseModel):
    """Provenance record for one imported catalog file."""

    id: UUID = Field(default_factory=uuid4)
    file_name: str
    file_path: str
    file_size: int
    contractor: str
    contract: str | None = None
    items_count: int = 0
    uploaded_at: datetime = Field(default_factory=datetime.utcnow)


class Location(BaseModel):
    """Structured sub-location of an executed service."""

    km_start: str | None = None
    km_end: str | None = None
    station_start: str | None = None
    station_end: str | None = None
    lane: str | None = None
    side: Side | None = None
    stretch: str | None = None
    segment: str | None = None

    def is_empty(self) -> bool:
        return not any(self.model_dump().values())

    def describe(self) -> str:
        """Compact label, e.g. ``km 172+500 a 173+200 | faixa 2 | lado D``."""
        parts = []
        if self.km_start or self.km_end:
            parts.append(f"km {self.km_start or '?'} a {self.km_end or '?'}")
        if self.station_start or self.station_end:
            parts.append(f"estaca {self.station_start or '?'} a {self.station_end or '?'}")
        if self.lane:
            parts.append(f"faixa {self.lane}")
        if self.side:
            parts.append(f"lado {self.side.value}")
        if self.stretch:
            parts.append(f"trecho {self.stretch}")
        if self.segment:
            parts.append(f"segmento {self.segment}")
        return " | ".join(parts)


class ServiceOccurrence(BaseModel):
    """A quantified service found in free text or entered manually."""

    description: str
    quantity: Decimal = Decimal("0")
    unit: str = ""
    raw_code: str | None = None
    location: str = ""
    location_detail: Location = Field(default_factory=Location)
    notes: str | None = None


class ServiceEntryDraft(BaseModel):
    """Reconciled occurrence, priced but not yet recorded."""

    occurrence: ServiceOccurrence
    matched: bool = False
    method: MatchMethod = MatchMethod.UNMATCHED
    price_item_id: UUID | None = None
    code: str = ""
    description: str = ""
    unit: str = ""
    unit_price: Decimal = Decimal("0")

    @property
    def quantity(self) -> Decimal:
        return self.occurrence.quantity

    @property
    def total_value(self) -> Decimal:
        return self.occurrence.quantity * self.unit_price

    @property
    def suspicious_quantity(self) -> bool:
        """Quantities <= 0 are recorded but should be flagged to the operator."""
        return self.occurrence.quantity <= 0


class ReportContext(BaseModel):
    """Daily-report fields copied onto every recorded service entry."""

    activity_id: str
    date: str
    contractor: str = ""
    fiscal: str = ""
    job_site: str = ""


class ServiceEntry(BaseModel):
    """One billed occurrence of a service."""

    id: UUID = Field(default_factory=uuid4)
    activity_id: str
    price_item_id: UUID | None = None
    code: str = ""
    description: str
    quantity: Decimal
    unit: str = ""
    unit_price: Decimal = Decimal("0")
    total_value: Decimal = Decimal("0")
    date: str
    contractor: str = ""
    fiscal: str = ""
    job_site: str = ""
    location: str = ""
    location_detail: Location = Field(default_factory=Location)
    notes: str | None = None
    matched: bool = False
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "activity_id": "rda-2024-03-01",
                "code": "BSO-01",
                "description": "Revestimento em argamassa",
                "quantity": Decimal("10"),
                "unit": "m²",
                "unit_price": Decimal("45.50"),
                "total_value": Decimal("455.00"),
                "date": "2024-03-01",
                "contractor": "CONSTRUTORA EXEMPLO LTDA",
                "matched": True,
            }
        }


class Period(BaseModel):
    """Inclusive date range as ISO strings."""

    start: str = ""
    end: str = ""

    def contains(self, date: str) -> bool:
        return self.start <= date <= self.end


class MeasurementSummary(BaseModel):
    """Rollup of service entries for one contractor (one bulletin)."""

    contractor: str
    period: Period
    entries: list[ServiceEntry] = Field(default_factory=list)
    total_value: Decimal = Decimal("0")
    job_site: str | None = None
    fiscal: str | None = None


class CodeRollup(BaseModel):
    """Entries of a summary grouped by service code."""

    code: str
    description: str
    unit: str
    unit_price: Decimal
    quantity: Decimal = Decimal("0")
    total_value: Decimal = Decimal("0")


class IngestionResult(BaseModel):
    """Outcome of a price sheet ingestion."""

    added: int
    updated: int = 0
    errors: list[str] = Field(default_factory=list)
    contractor: str = ""
    contract: str = ""
    sheet_id: UUID | None = None


class SheetSummary(BaseModel):
    """Per-contractor usage of the sheet quota."""

    contractor: str
    sheets: int
    items: int
    size: int
    can_add_more: bool


WEEKDAYS = (
    "SEGUNDA-FEIRA",
    "TERÇA-FEIRA",
    "QUARTA-FEIRA",
    "QUINTA-FEIRA",
    "SEXTA-FEIRA",
    "SÁBADO",
    "DOMINGO",
)


def weekday_name(iso_date: str) -> str:
    """Portuguese weekday of a ``YYYY-MM-DD`` date; ValueError when invalid."""
    return WEEKDAYS[date.fromisoformat(iso_date).weekday()]


class DailyReport(BaseModel):
    """Daily activity report (RDA/RDO)."""

    id: UUID = Field(default_factory=uuid4)
    date: str
    weekday: str = ""
    fiscal: str = ""
    contractor: str = ""
    job_site: str = ""
    work_front: str = ""
    weather: str = "Bom"
    crew_total: int = 0
    equipment_total: int = 0
    activities: str = ""
    notes: str = ""
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def context(self) -> ReportContext:
        return ReportContext(
            activity_id=str(self.id),
            date=self.date,
            contractor=self.contractor,
            fiscal=self.fiscal,
            job_site=self.job_site,
        )


class MonthSummary(BaseModel):
    """Headline numbers for the daily reports of one month."""

    total_reports: int = 0
    total_crew: int = 0
    total_equipment: int = 0
    contractors: list[str] = Field(default_factory=list)
    job_sites: list[str] = Field(default_factory=list)
    fiscals: list[str] = Field(default_factory=list)
