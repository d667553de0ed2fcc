"""Tests for closing configuration loading and validation."""

from decimal import Decimal

import pytest

from closing_config import DEFAULT_CONFIG_PATH, get_active_config, parse_config
from closing_config.loader import compute_checksum, load_yaml_file
from closing_config.schema import CurrencyRule
from closing_kernel.exceptions import ConfigurationError


def _minimal(**overrides):
    data = {
        "base_currency": "IDR",
        "currencies": {"IDR": {"decimal_places": 2}},
        "draft_sources": [{"category": "ledgers", "kind": "journal"}],
    }
    data.update(overrides)
    return data


class TestPackagedDefaults:

    def test_loads(self):
        config = get_active_config()
        assert config.base_currency == "IDR"
        assert config.source == str(DEFAULT_CONFIG_PATH)
        assert config.successor_cadence == "monthly"
        assert config.lock_ttl_seconds == 900

    def test_currency_tolerances(self):
        config = get_active_config()
        assert config.tolerance_for() == Decimal("0.01")
        assert config.tolerance_for("USD") == Decimal("0.01")
        assert config.tolerance_for("JPY") == Decimal("1")

    def test_categories_in_declaration_order(self):
        config = get_active_config()
        assert config.categories == ("ledgers", "invoices", "expenses", "purchase_orders")

    def test_expense_sources_share_a_category(self):
        config = get_active_config()
        tables = [s.table for s in config.draft_sources if s.category == "expenses"]
        assert tables == ["operational_expenses", "project_expenses"]

    def test_unknown_currency_rule(self):
        with pytest.raises(ConfigurationError):
            get_active_config().tolerance_for("EUR")

    def test_logs_config_loaded(self, captured_logs):
        config = get_active_config()
        records = [r for r in captured_logs() if r["message"] == "closing_config_loaded"]
        assert records
        assert records[-1]["checksum"] == config.checksum


class TestCurrencyRule:

    def test_default_tolerance_is_one_minor_unit(self):
        assert CurrencyRule("USD").tolerance == Decimal("0.01")
        assert CurrencyRule("JPY", decimal_places=0).tolerance == Decimal("1")
        assert CurrencyRule("BHD", decimal_places=3).tolerance == Decimal("0.001")

    def test_explicit_tolerance_wins(self):
        assert CurrencyRule("IDR", 2, Decimal("0.5")).tolerance == Decimal("0.5")


class TestParseConfig:

    def test_base_currency_required(self):
        with pytest.raises(ConfigurationError, match="base_currency"):
            parse_config({"currencies": {}})

    def test_base_currency_rule_added_when_missing(self):
        config = parse_config(_minimal(base_currency="USD"))
        assert config.tolerance_for("USD") == Decimal("0.01")

    def test_invalid_cadence(self):
        with pytest.raises(ConfigurationError, match="successor_cadence"):
            parse_config(_minimal(successor_cadence="weekly"))

    def test_invalid_fiscal_year_start(self):
        with pytest.raises(ConfigurationError):
            parse_config(_minimal(fiscal_year_start_month=13))

    def test_negative_tolerance(self):
        with pytest.raises(ConfigurationError):
            parse_config(_minimal(currencies={"IDR": {"balance_tolerance": "-1"}}))

    def test_non_numeric_tolerance(self):
        with pytest.raises(ConfigurationError, match="not a number"):
            parse_config(_minimal(currencies={"IDR": {"balance_tolerance": "abc"}}))

    def test_unknown_draft_source_kind(self):
        with pytest.raises(ConfigurationError, match="kind"):
            parse_config(_minimal(draft_sources=[{"category": "x", "kind": "api"}]))

    def test_table_source_needs_table(self):
        with pytest.raises(ConfigurationError, match="needs a table"):
            parse_config(_minimal(draft_sources=[{"category": "invoices"}]))

    def test_sql_identifiers_validated(self):
        source = {"category": "invoices", "table": "sales_invoices; DROP TABLE accounts"}
        with pytest.raises(ConfigurationError, match="identifier"):
            parse_config(_minimal(draft_sources=[source]))

    def test_single_status_string_accepted(self):
        source = {"category": "invoices", "table": "sales_invoices", "draft_statuses": "DRAFT"}
        config = parse_config(_minimal(draft_sources=[source]))
        assert config.draft_sources[0].draft_statuses == ("DRAFT",)

    def test_non_positive_workers(self):
        with pytest.raises(ConfigurationError):
            parse_config(_minimal(recalculation_workers=0))


class TestLoadFromFile:

    def test_custom_file(self, tmp_path):
        path = tmp_path / "closing.yaml"
        path.write_text(
            "base_currency: USD\n"
            "successor_cadence: quarterly\n"
            "fiscal_year_start_month: 7\n"
            "draft_sources:\n"
            "  - category: ledgers\n"
            "    kind: journal\n"
        )
        config = get_active_config(path)
        assert config.base_currency == "USD"
        assert config.successor_cadence == "quarterly"
        assert config.fiscal_year_start_month == 7
        assert config.categories == ("ledgers",)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("base_currency: [unterminated\n")
        with pytest.raises(ConfigurationError, match="invalid YAML"):
            load_yaml_file(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_yaml_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")


class TestChecksum:

    def test_key_order_does_not_matter(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})

    def test_changes_with_content(self):
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})

    def test_checksum_excluded_from_equality(self):
        assert parse_config(_minimal()) == parse_config(_minimal())
