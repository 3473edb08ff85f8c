"""Error taxonomy for BMCalc.

Ingestion errors are user-correctable and carry a message meant to be shown
verbatim. Extraction errors classify failures of the external AI gateway; the
core never retries them.
"""

from __future__ import annotations


class BMCalcError(Exception):
    """Base class for all BMCalc errors."""


class IngestionError(BMCalcError):
    """Raised when a price sheet is rejected as a whole."""


class FileTooLargeError(IngestionError):
    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(
            f"Arquivo muito grande ({size / 1024 / 1024:.1f}MB). "
            f"Máximo: {limit // 1024 // 1024}MB"
        )


class SheetLimitExceededError(IngestionError):
    def __init__(self, contractor: str, limit: int) -> None:
        self.contractor = contractor
        self.limit = limit
        super().__init__(
            f"Limite de {limit} planilhas por contratada atingido para "
            f"'{contractor}'. Delete uma planilha antiga."
        )


class NoItemsFoundError(IngestionError):
    def __init__(self) -> None:
        super().__init__("Nenhum item encontrado. Verifique o formato da planilha.")


class UnsupportedFormatError(IngestionError):
    def __init__(self, suffix: str) -> None:
        self.suffix = suffix
        super().__init__(f"Formato de arquivo não suportado: {suffix or '(sem extensão)'}")


class StorageWriteError(BMCalcError):
    """Raised after a failed multi-step write has been rolled back."""


class NotFoundError(BMCalcError):
    """Raised when a referenced row does not exist."""


class ExtractionError(BMCalcError):
    """Generic failure of the AI extraction gateway."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class RateLimitedError(ExtractionError):
    """Gateway answered 429: too many requests."""


class QuotaExhaustedError(ExtractionError):
    """Gateway answered 402: credits exhausted."""


class NothingToExportError(BMCalcError):
    def __init__(self) -> None:
        super().__init__("Nenhum dado para exportar com os filtros selecionados")
