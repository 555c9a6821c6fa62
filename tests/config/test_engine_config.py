"""
Tests for engine configuration loading.

Validates:
- Packaged defaults load and match the documented values
- Unknown sections/keys and float amounts are rejected
- Section validation fails at load time
- The process-wide config can be replaced and reset
"""

from decimal import Decimal

import pytest
import yaml

import erp_config
from erp_config import (
    DEFAULT_CONFIG_PATH,
    EngineConfig,
    get_engine_config,
    load_engine_config,
    set_engine_config,
)
from erp_config.loader import compute_checksum, parse_engine_config
from erp_config.schema import InvoicingConfig, MoneyConfig, NumberingConfig


def _write(tmp_path, data):
    path = tmp_path / "engine.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaults:

    def test_packaged_defaults(self):
        config = load_engine_config()
        assert config.money.decimal_places == 2
        assert config.money.rounding == "ROUND_HALF_UP"
        assert config.invoicing.payment_terms_days == 14
        assert config.invoicing.default_vat_rate_percent == Decimal("24")
        assert config.invoicing.credit_rounding_tolerance == Decimal("0")
        assert config.numbering.order_prefix == "ORD"
        assert config.numbering.invoice_prefix == "INV"
        assert config.numbering.credit_note_prefix == "CN"
        assert config.checksum

    def test_load_is_logged(self, captured_logs):
        load_engine_config()
        records = [r for r in captured_logs() if r["message"] == "engine_config_loaded"]
        assert records[-1]["source"] == str(DEFAULT_CONFIG_PATH)

    def test_empty_file_gives_schema_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        config = load_engine_config(path)
        assert config.money == MoneyConfig()
        assert config.invoicing == InvoicingConfig()
        assert config.numbering == NumberingConfig()

    def test_partial_override(self, tmp_path):
        config = load_engine_config(
            _write(tmp_path, {"invoicing": {"payment_terms_days": 30, "default_vat_rate_percent": "14"}})
        )
        assert config.invoicing.payment_terms_days == 30
        assert config.invoicing.default_vat_rate_percent == Decimal("14")
        assert config.money.decimal_places == 2

    def test_checksum_is_content_based(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})


class TestValidation:

    @pytest.mark.parametrize(
        "data",
        [
            {"ledger": {}},
            {"money": {"precision": 2}},
            {"numbering": {"quote_prefix": "Q"}},
            {"invoicing": "fourteen days"},
        ],
    )
    def test_unknown_or_malformed_structure(self, data):
        with pytest.raises(ValueError):
            parse_engine_config(data)

    def test_float_amounts_rejected(self):
        with pytest.raises(ValueError, match="quoted string"):
            parse_engine_config({"invoicing": {"default_vat_rate_percent": 24.0}})

    @pytest.mark.parametrize(
        "data",
        [
            {"money": {"decimal_places": 12}},
            {"money": {"rounding": "ROUND_SIDEWAYS"}},
            {"invoicing": {"payment_terms_days": -1}},
            {"invoicing": {"default_vat_rate_percent": "120"}},
            {"invoicing": {"credit_rounding_tolerance": "-0.01"}},
            {"invoicing": {"credit_rounding_tolerance": "a lot"}},
            {"numbering": {"invoice_prefix": "ORD"}},
            {"numbering": {"order_prefix": "SO-X"}},
            {"numbering": {"sequence_width": 0}},
        ],
    )
    def test_invalid_values(self, data):
        with pytest.raises(ValueError):
            parse_engine_config(data)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_engine_config(tmp_path / "missing.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("money: [unclosed")
        with pytest.raises(yaml.YAMLError):
            load_engine_config(path)


class TestActiveConfig:

    def test_set_and_reset(self):
        custom = EngineConfig(invoicing=InvoicingConfig(payment_terms_days=7))
        set_engine_config(custom)
        try:
            assert get_engine_config() is custom
        finally:
            set_engine_config(None)
        assert erp_config._active is None
        assert get_engine_config().invoicing.payment_terms_days == 14
        set_engine_config(None)
