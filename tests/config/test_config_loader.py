"""
Tests for statutory configuration loading.

Covers:
- get_active_config scope matching and preference order
- Checksum determinism
- Schema validation of malformed tables
- PAYROLL_CONFIG_TRACE emission
"""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from payroll_config import ConfigStatus, get_active_config
from payroll_config.loader import (
    compute_checksum,
    load_yaml_file,
    parse_decimal,
    parse_statutory_config,
)

PACKAGED_SET = Path(__file__).resolve().parents[2] / "payroll_config" / "sets" / "ke_2024.yaml"


def _config_data(**overrides) -> dict:
    data = load_yaml_file(PACKAGED_SET)
    data.update(overrides)
    return data


def _write_set(directory: Path, name: str, data: dict) -> None:
    (directory / name).write_text(yaml.safe_dump(data, sort_keys=False))


class TestPackagedSet:

    def test_loads_published_kenya_set(self, ke_config):
        assert ke_config.config_id == "ke_statutory_2024"
        assert ke_config.status == ConfigStatus.PUBLISHED
        assert ke_config.scope.currency == "KES"
        assert len(ke_config.income_tax_bands) == 5
        assert len(ke_config.social_security_tiers) == 2
        assert len(ke_config.health_bands) == 17
        assert ke_config.personal_relief == Decimal("2400")

    def test_rates_parsed_exactly(self, ke_config):
        assert ke_config.income_tax_bands[3].rate == Decimal("0.325")
        assert ke_config.advance_policy.max_advance_rate == Decimal("0.25")
        assert ke_config.payroll_policy.default_overtime_multiplier == Decimal("1.5")

    def test_unknown_jurisdiction(self):
        with pytest.raises(FileNotFoundError, match="jurisdiction='UG'"):
            get_active_config("UG", date(2024, 6, 30))

    def test_date_before_effective_from(self):
        with pytest.raises(FileNotFoundError):
            get_active_config("KE", date(2023, 12, 31))

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="directory not found"):
            get_active_config("KE", date(2024, 6, 30), config_dir=tmp_path / "absent")


class TestSetSelection:
    """Published sets win, then the highest version."""

    def test_highest_published_version(self, tmp_path):
        _write_set(tmp_path, "v1.yaml", _config_data(version=1))
        _write_set(tmp_path, "v2.yaml", _config_data(version=2, income_tax={
            "personal_relief": 0,
            "bands": [{"min": 0, "max": None, "rate": "0.10", "base_amount": 0}],
        }))

        config = get_active_config("KE", date(2024, 6, 30), config_dir=tmp_path)

        assert config.version == 2
        assert config.personal_relief == Decimal("0")

    def test_published_preferred_over_newer_draft(self, tmp_path):
        _write_set(tmp_path, "v1.yaml", _config_data(version=1))
        _write_set(tmp_path, "v2.yaml", _config_data(version=2, status="draft"))

        assert get_active_config("KE", date(2024, 6, 30), config_dir=tmp_path).version == 1

    def test_effective_to_excludes_later_dates(self, tmp_path):
        _write_set(tmp_path, "old.yaml", _config_data(scope={
            "jurisdiction": "KE",
            "currency": "KES",
            "effective_from": "2023-01-01",
            "effective_to": "2023-12-31",
        }))

        assert get_active_config("KE", date(2023, 6, 30), config_dir=tmp_path).version == 1
        with pytest.raises(FileNotFoundError):
            get_active_config("KE", date(2024, 1, 1), config_dir=tmp_path)


class TestChecksum:

    def test_deterministic(self):
        data = _config_data()
        assert compute_checksum(data) == compute_checksum(dict(reversed(list(data.items()))))

    def test_changes_with_content(self):
        assert compute_checksum(_config_data()) != compute_checksum(_config_data(version=2))

    def test_loaded_config_carries_checksum(self, ke_config):
        assert ke_config.checksum == compute_checksum(load_yaml_file(PACKAGED_SET))
        assert len(ke_config.checksum) == 64


class TestValidation:

    def test_gap_between_tax_bands(self):
        data = _config_data(income_tax={
            "bands": [
                {"min": 0, "max": 100, "rate": "0.1"},
                {"min": 500, "max": None, "rate": "0.2", "base_amount": 10},
            ],
        })
        with pytest.raises(ValueError, match="not contiguous"):
            parse_statutory_config(data)

    def test_open_band_must_be_last(self):
        data = _config_data(income_tax={
            "bands": [
                {"min": 0, "max": None, "rate": "0.1"},
                {"min": 100, "max": None, "rate": "0.2"},
            ],
        })
        with pytest.raises(ValueError, match="open-ended"):
            parse_statutory_config(data)

    def test_rate_above_one(self):
        data = _config_data(social_security={"tiers": [{"upper_limit": 7000, "rate": "6"}]})
        with pytest.raises(ValueError, match="rate must be between 0 and 1"):
            parse_statutory_config(data)

    def test_decreasing_health_amounts(self):
        data = _config_data(health_contribution={"bands": [
            {"min": 0, "max": 999, "amount": 300},
            {"min": 1000, "max": None, "amount": 150},
        ]})
        with pytest.raises(ValueError, match="monotonically increasing"):
            parse_statutory_config(data)

    def test_invalid_advance_policy(self):
        data = _config_data(advance_policy={"max_advance_rate": "1.5"})
        with pytest.raises(ValueError, match="max_advance_rate"):
            parse_statutory_config(data)

    def test_missing_required_section(self):
        data = _config_data()
        del data["social_security"]
        with pytest.raises(KeyError):
            parse_statutory_config(data)

    def test_bool_is_not_a_decimal(self):
        with pytest.raises(ValueError):
            parse_decimal(True)

    def test_float_parsed_through_str(self):
        assert parse_decimal(0.325) == Decimal("0.325")


class TestConfigStatus:

    def test_missing_status_is_draft(self):
        data = _config_data()
        del data["status"]
        assert parse_statutory_config(data).status == ConfigStatus.DRAFT

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError, match="retired"):
            parse_statutory_config(_config_data(status="retired"))


class TestConfigTrace:

    def test_trace_emitted(self, captured_logs):
        config = get_active_config("KE", date(2024, 6, 30))

        traces = [r for r in captured_logs() if r["message"] == "PAYROLL_CONFIG_TRACE"]
        assert len(traces) == 1
        assert traces[0]["config_set_id"] == "ke_statutory_2024"
        assert traces[0]["checksum"] == config.checksum
        assert traces[0]["scope_jurisdiction"] == "KE"
