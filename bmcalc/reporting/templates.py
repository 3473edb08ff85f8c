"""Bulletin templates and header configuration for measurement exports."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from bmcalc.models import CodeRollup, Period, ServiceEntry


class ReportTemplate(str, Enum):
    DER_SP = "der-sp"
    DNIT = "dnit"
    SERVICE_NOTE = "nota-servico"
    CONSOLIDATED = "boletim-medicao"

    @property
    def title(self) -> str:
        return TEMPLATE_TITLES[self]

    @property
    def formal(self) -> bool:
        """Formal bulletins carry signature lines."""
        return self is not ReportTemplate.SERVICE_NOTE


TEMPLATE_TITLES = {
    ReportTemplate.DER_SP: "DER-SP - Boletim de Medição",
    ReportTemplate.DNIT: "DNIT - Planilha de Medição",
    ReportTemplate.SERVICE_NOTE: "Nota de Serviço Simples",
    ReportTemplate.CONSOLIDATED: "Boletim de Medição Consolidado",
}

SIGNATURES = ("Responsável Contratada", "Fiscal", "Contratante")

SUMMARY_HEADERS = [
    "ITEM",
    "CÓDIGO",
    "DESCRIÇÃO DO SERVIÇO",
    "UNIDADE",
    "QUANTIDADE",
    "PREÇO UNITÁRIO",
    "VALOR TOTAL",
]

DETAIL_HEADERS = [
    "DATA",
    "CÓDIGO",
    "DESCRIÇÃO",
    "LOCAL",
    "KM INICIAL",
    "KM FINAL",
    "ESTACA INICIAL",
    "ESTACA FINAL",
    "FAIXA",
    "LADO",
    "TRECHO",
    "SEGMENTO",
    "QTD",
    "UNIDADE",
    "P.UNIT",
    "TOTAL",
    "FISCAL",
    "CONTRATADA",
]


class BulletinConfig(BaseModel):
    """Header fields printed on an exported bulletin."""

    template: ReportTemplate = ReportTemplate.SERVICE_NOTE
    title: str = ""
    client: str = ""
    contractor: str = ""
    contract: str = ""
    number: int = 1
    period: Period = Field(default_factory=Period)

    @property
    def heading(self) -> str:
        return self.title or self.template.title


class Bulletin(BaseModel):
    """Everything a renderer needs: header, per-code rollup and detail rows."""

    config: BulletinConfig
    rollups: list[CodeRollup]
    entries: list[ServiceEntry]
    total_value: Decimal
    generated_at: datetime = Field(default_factory=datetime.now)

    @property
    def contractor(self) -> str:
        if self.config.contractor:
            return self.config.contractor
        return self.entries[0].contractor if self.entries else ""

    @property
    def period(self) -> Period:
        start = self.config.period.start or (self.entries[0].date if self.entries else "")
        end = self.config.period.end or (self.entries[-1].date if self.entries else "")
        return Period(start=start, end=end)


def format_currency(value: Decimal, symbol: str = "R$") -> str:
    """``Decimal("1234.5")`` -> ``"R$ 1.234,50"``."""
    return f"{symbol} {format_number(value)}"


def format_number(value: Decimal, places: int = 2) -> str:
    """pt-BR grouping: ``1234.5`` -> ``"1.234,50"``."""
    text = f"{value:,.{places}f}"
    return text.replace(",", "\x00").replace(".", ",").replace("\x00", ".")


def format_date(value: str, fmt: str = "%d/%m/%Y") -> str:
    """ISO date string to display format; unparseable values pass through."""
    try:
        return date.fromisoformat(value).strftime(fmt)
    except ValueError:
        return value
