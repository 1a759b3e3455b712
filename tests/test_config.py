"""
Tests for YAML configuration loading.
"""

from pathlib import Path

import pytest

from bookingengine.config import AppConfig


def _write(tmp_path: Path, text: str) -> Path:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(text, encoding="utf-8")
    return config_path


class TestAppConfig:
    """Tests for AppConfig.load_from_yaml."""

    def test_defaults(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, ""))

        assert config.timezone == "America/Sao_Paulo"
        assert config.slots.granularity_minutes == 30
        assert config.slots.same_day_buffer_minutes == 15
        assert config.metrics.week_starts_on == "monday"
        assert config.store.backend == "memory"
        assert config.store.data_file is None

    def test_relative_data_file_resolved_against_config(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, "store:\n  data_file: data/demo.json\n"))

        assert config.store.data_file == (tmp_path / "data" / "demo.json").resolve()

    def test_week_start_is_normalized(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, "metrics:\n  week_starts_on: Sunday\n"))

        assert config.metrics.week_starts_on == "sunday"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.example.yaml"):
            AppConfig.load_from_yaml(tmp_path / "missing.yaml")

    @pytest.mark.parametrize(
        "text",
        [
            "slots:\n  granularity_minutes: 0\n",
            "slots:\n  same_day_buffer_minutes: -1\n",
            "metrics:\n  week_starts_on: someday\n",
            "timezone: Mars/Olympus_Mons\n",
            "store:\n  backend: rest\n",
            "store:\n  backend: carrier-pigeon\n",
            "- just\n- a list\n",
            "slots: [unclosed\n",
        ],
    )
    def test_invalid_config(self, tmp_path, text):
        with pytest.raises(ValueError):
            AppConfig.load_from_yaml(_write(tmp_path, text))

    def test_rest_backend(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(
            tmp_path,
            "store:\n"
            "  backend: rest\n"
            "  base_url: https://example.test/rest/v1\n"
            "  api_key: secret\n"
            "  timeout_seconds: 5\n",
        ))

        assert config.store.backend == "rest"
        assert config.store.timeout_seconds == 5
