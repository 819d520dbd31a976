"""Tests for settings, database URLs and the operator CLI parser."""

import pytest
from sqlalchemy.engine import make_url

from swapvault.cli import build_parser, main
from swapvault.config import Settings
from swapvault.ledger.database import _database_url


class TestSettings:
    """Tests for Settings helpers."""

    def test_safe_dict_redacts_secrets(self):
        settings = Settings(
            vault_secret="hunter2",
            telegram_bot_token="123:abc",
            database_url="postgresql+asyncpg://app:pa55@db:5432/swapvault",
        )

        safe = settings.get_safe_dict()

        assert safe["vault_secret"] == "***"
        assert safe["telegram_bot_token"] == "***"
        assert safe["database_url"] == "postgresql+asyncpg://app:***@db:5432/swapvault"
        assert "hunter2" not in str(safe)

    def test_liquidswap_defaults_to_v05(self):
        settings = Settings()

        assert settings.liquidswap_version == "0.5"
        assert settings.liquidswap_module_address is None
        assert settings.get_safe_dict()["dex"]["liquidswap_version"] == "0.5"

    def test_is_production(self):
        assert Settings(environment="Production").is_production
        assert not Settings(environment="test").is_production


class TestParser:
    """Tests for the CLI argument parser."""

    def test_sell_arguments(self):
        args = build_parser().parse_args(["sell", "42", "3", "33", "--wallet", "9"])

        assert args.telegram_id == 42
        assert args.coin_id == 3
        assert args.percentage == 33
        assert args.wallet == 9

    def test_buy_defaults_to_default_wallet(self):
        args = build_parser().parse_args(["buy", "42", "3", "0.5"])

        assert args.amount == "0.5"
        assert args.wallet is None

    @pytest.mark.parametrize("amount", ["abc", "-1", "NaN"])
    def test_malformed_buy_amount_reports_error(self, amount, caplog):
        assert main(["buy", "42", "3", amount]) == 1
        assert "ValidationError" in caplog.text

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestDatabaseUrl:
    """Tests for database URL preparation."""

    def test_sqlite_gets_async_driver_and_directory(self, tmp_path):
        db_file = tmp_path / "nested" / "swapvault.db"

        url = make_url(_database_url(Settings(database_url=f"sqlite:///{db_file}")))

        assert url.drivername == "sqlite+aiosqlite"
        assert url.database == str(db_file)
        assert db_file.parent.is_dir()

    @pytest.mark.parametrize("raw", ["sqlite:///:memory:", "sqlite+aiosqlite:///:memory:"])
    def test_memory_database(self, raw):
        url = _database_url(Settings(database_url=raw))

        assert url == "sqlite+aiosqlite:///:memory:"
        assert make_url(url).database == ":memory:"

    def test_other_backends_untouched(self):
        raw = "postgresql+asyncpg://app:pa55@db:5432/swapvault"
        assert _database_url(Settings(database_url=raw)) == raw
