"""Pytest configuration and fixtures for BMCalc tests.

Provides common fixtures for testing.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from bmcalc.catalog import PriceCatalog
from bmcalc.config import reset_config
from bmcalc.db.connection import create_engine_for_url
from bmcalc.db.models import Base
from bmcalc.ingestion.storage import InMemoryFileStorage
from bmcalc.models import PriceItem, ServiceEntry

CONTRACTOR = "CONSTRUTORA EXEMPLO LTDA"


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    reset_config()
    yield
    reset_config()


@pytest_asyncio.fixture()
async def db_session() -> AsyncSession:
    """Create in-memory database for testing."""
    engine = create_engine_for_url("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest.fixture
def storage() -> InMemoryFileStorage:
    return InMemoryFileStorage()


@pytest.fixture
def sample_price_item() -> PriceItem:
    """Create a sample price item."""
    return PriceItem(
        code="BSO-01",
        description="Revestimento em argamassa",
        unit="m²",
        unit_price=Decimal("45.50"),
        source="BM",
        contractor=CONTRACTOR,
    )


@pytest.fixture
def price_items_catalog(sample_price_item: PriceItem) -> list[PriceItem]:
    """Create a sample price catalog."""
    return [
        sample_price_item,
        PriceItem(
            code="BSO-02",
            description="Chapisco em parede",
            unit="m²",
            unit_price=Decimal("8.20"),
            contractor=CONTRACTOR,
        ),
        PriceItem(
            code="TER-10",
            description="Escavação mecânica de vala",
            unit="m³",
            unit_price=Decimal("32.00"),
            contractor=CONTRACTOR,
        ),
        PriceItem(
            code="PAV-100",
            description="Pintura de faixa de sinalização horizontal",
            unit="m",
            unit_price=Decimal("12.75"),
            contractor="PAVIMENTA S.A.",
        ),
    ]


@pytest.fixture
def catalog(price_items_catalog: list[PriceItem]) -> PriceCatalog:
    return PriceCatalog(price_items_catalog)


@pytest.fixture
def make_entry():
    """Factory for ServiceEntry with sensible defaults for aggregation and export tests."""

    def _make(**overrides) -> ServiceEntry:
        values = {
            "activity_id": "rda-1",
            "code": "BSO-01",
            "description": "Revestimento em argamassa",
            "quantity": Decimal("10"),
            "unit": "m²",
            "unit_price": Decimal("45.50"),
            "total_value": Decimal("455.00"),
            "date": "2024-03-01",
            "contractor": CONTRACTOR,
            "fiscal": "João Silva",
            "job_site": "SP-055",
            "matched": True,
        }
        values.update(overrides)
        return ServiceEntry(**values)

    return _make
