"""
Tests for settings-driven component wiring.
"""

import pytest
from pydantic import ValidationError

from ledger_engine.config import validate_all_settings
from ledger_engine.orchestrator import (
    create_ledger_components,
    create_rate_provider,
    create_storages,
)
from ledger_engine.services.rates import ExchangeRateApiProvider, StaticRateProvider
from ledger_engine.services.storage import (
    InMemoryAuditStorage,
    InMemoryTransactionStorage,
)


class TestWiring:
    """Tests for the component factory."""

    def test_memory_backend(self):
        storages = create_storages("memory")
        assert isinstance(storages.transactions, InMemoryTransactionStorage)
        assert isinstance(storages.audit, InMemoryAuditStorage)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown storage backend"):
            create_storages("postgres")

    def test_mock_rates_setting(self, monkeypatch):
        monkeypatch.setenv("USE_MOCK_EXCHANGE_RATES", "true")
        assert isinstance(create_rate_provider(), StaticRateProvider)

        monkeypatch.setenv("USE_MOCK_EXCHANGE_RATES", "false")
        assert isinstance(create_rate_provider(), ExchangeRateApiProvider)

    def test_components_share_storages(self, monkeypatch):
        monkeypatch.setenv("STORAGE_BACKEND", "memory")
        monkeypatch.setenv("USE_MOCK_EXCHANGE_RATES", "true")

        ledger = create_ledger_components()

        assert isinstance(ledger.storages.transactions, InMemoryTransactionStorage)
        assert ledger.posting._transactions is ledger.storages.transactions
        assert ledger.audit._storage is ledger.storages.audit

    def test_sheets_backend_fails_loudly(self, monkeypatch):
        """Test that a missing Sheets setup raises instead of falling back to memory."""
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        with pytest.raises(ValidationError):
            create_storages("google_sheets")

    def test_validate_all_settings(self, monkeypatch):
        monkeypatch.delenv("GOOGLE_SHEETS_CREDENTIALS_PATH", raising=False)
        monkeypatch.delenv("GOOGLE_SHEETS_SPREADSHEET_ID", raising=False)

        results = validate_all_settings()

        assert results["app"] is True
        assert results["exchange_rate_api"] is True
        assert results["google_sheets"] is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
