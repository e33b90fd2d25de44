"""
Tests for payroll configuration and the YAML loader.

Validates:
- Defaults and __post_init__ validation
- YAML parsing with and without a ``payroll:`` section
- SHOP_PAYROLL_CONFIG environment override
"""

from datetime import date

import pytest
import yaml

from shop_config import CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH, get_active_config
from shop_config.loader import compute_checksum, load_payroll_config, parse_payroll_config
from shop_modules.payroll.config import PayrollConfig, PayScheduleConfig


class TestPayrollConfig:

    def test_defaults(self):
        config = PayrollConfig.with_defaults()
        assert config.timezone == "Asia/Manila"
        assert config.currency_symbol == "₱"
        assert config.default_expense_mode == "per-staff"
        assert config.max_batch_operations == 450
        assert config.pay_schedule == PayScheduleConfig()

    def test_bad_expense_mode(self):
        with pytest.raises(ValueError, match="default_expense_mode"):
            PayrollConfig(default_expense_mode="per-day")

    @pytest.mark.parametrize("size", [0, 500, 1000])
    def test_batch_size_must_stay_under_limit(self, size):
        with pytest.raises(ValueError, match="max_batch_operations"):
            PayrollConfig(max_batch_operations=size)

    def test_unknown_timezone(self):
        with pytest.raises(ValueError, match="timezone"):
            PayrollConfig(timezone="Mars/Olympus")

    def test_bad_schedule(self):
        with pytest.raises(ValueError):
            PayScheduleConfig(type="fortnightly-ish")

    def test_from_dict_ignores_unknown_keys(self):
        config = PayrollConfig.from_dict({"currency_symbol": "$", "colour": "blue"})
        assert config.currency_symbol == "$"


class TestLoader:

    def test_parse_nested_section(self):
        config = parse_payroll_config({
            "payroll": {
                "default_expense_mode": "per-shift",
                "pay_schedule": {"type": "weekly", "anchor_date": "2024-01-01"},
            }
        })
        assert config.default_expense_mode == "per-shift"
        assert config.pay_schedule.type == "weekly"
        assert config.pay_schedule.anchor_date == date(2024, 1, 1)

    def test_parse_rejects_non_mapping(self):
        with pytest.raises(ValueError):
            parse_payroll_config(["not", "a", "mapping"])

    def test_load_file(self, tmp_path):
        path = tmp_path / "payroll.yaml"
        path.write_text(yaml.safe_dump({"max_batch_operations": 100}))
        assert load_payroll_config(path).max_batch_operations == 100

    def test_bundled_default_file_loads(self):
        config = load_payroll_config(DEFAULT_CONFIG_PATH)
        assert config.pay_schedule.type == "biweekly"

    def test_env_override(self, tmp_path, monkeypatch):
        path = tmp_path / "shop.yaml"
        path.write_text("payroll:\n  staff_role: cashier\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert get_active_config().staff_role == "cashier"

    def test_checksum_is_order_independent(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})
