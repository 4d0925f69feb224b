"""
Test settings loading and the configuration facade.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from selective_cron.config import SelectiveCronSettings, Settings, load_settings, split_job_codes
from selective_cron.cron.config import ConfigPaths, SelectiveCronConfig


class TestSettings:
    def test_defaults(self):
        cron_settings = SelectiveCronSettings()

        assert cron_settings.enabled is False
        assert cron_settings.selected_jobs == []
        assert cron_settings.default_cron_expression == "* * * * *"
        assert cron_settings.horizon_minutes == 60
        assert cron_settings.search_window_minutes == 1440
        assert cron_settings.timezone == "UTC"

    def test_selected_jobs_from_comma_separated_string(self):
        cron_settings = SelectiveCronSettings(selected_jobs="sitemap_generate, indexer_reindex,,")

        assert cron_settings.selected_jobs == ["sitemap_generate", "indexer_reindex"]

    def test_horizon_must_be_positive(self):
        with pytest.raises(ValidationError):
            SelectiveCronSettings(horizon_minutes=0)

    def test_env_overrides_nested_value(self, monkeypatch):
        monkeypatch.setenv("SELECTIVE_CRON_SELECTIVE_CRON__ENABLED", "true")
        monkeypatch.setenv("SELECTIVE_CRON_MASTER_TOKEN", "secret")

        loaded = Settings()

        assert loaded.selective_cron.enabled is True
        assert loaded.master_token == "secret"

    def test_load_from_toml_file(self, tmp_path):
        config_file = tmp_path / "config.toml"
        config_file.write_text(
            'database_url = "sqlite:///cron.db"\n'
            'logs_dir = "var/logs"\n'
            "\n"
            "[selective_cron]\n"
            "enabled = true\n"
            'selected_jobs = "sitemap_generate,indexer_reindex"\n'
            "horizon_minutes = 30\n"
            "\n"
            "[values]\n"
            '"jobs/sitemap/cron" = "0 3 * * *"\n'
        )

        loaded = load_settings(str(config_file))

        assert loaded.database_url == "sqlite:///cron.db"
        assert loaded.logs_dir == Path("var/logs")
        assert loaded.selective_cron.enabled is True
        assert loaded.selective_cron.selected_jobs == ["sitemap_generate", "indexer_reindex"]
        assert loaded.selective_cron.horizon_minutes == 30
        assert loaded.values == {"jobs/sitemap/cron": "0 3 * * *"}

    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, []),
            ("", []),
            ("a", ["a"]),
            (" a , b ", ["a", "b"]),
            (["a", " b", ""], ["a", "b"]),
        ],
    )
    def test_split_job_codes(self, value, expected):
        assert split_job_codes(value) == expected


class TestSelectiveCronConfig:
    def test_defaults_to_disabled(self):
        config = SelectiveCronConfig()

        assert not config.is_enabled()
        assert config.get_selected_jobs() == []
        assert config.get_value("anything") is None

    def test_selected_jobs_keep_order_and_drop_repeats(self):
        config = SelectiveCronConfig(enabled=True, selected_jobs="b,a,b,c,a")

        assert config.get_selected_jobs() == ["b", "a", "c"]

    def test_selected_jobs_are_a_copy(self):
        config = SelectiveCronConfig(selected_jobs=["a"])
        config.get_selected_jobs().append("b")

        assert config.get_selected_jobs() == ["a"]

    def test_from_settings(self):
        loaded = Settings(
            selective_cron=SelectiveCronSettings(
                enabled=True,
                selected_jobs=["sitemap_generate"],
                default_cron_expression="*/5 * * * *",
            ),
            values={"jobs/sitemap/cron": "0 3 * * *"},
        )

        config = SelectiveCronConfig.from_settings(loaded)

        assert config.is_enabled()
        assert config.get_selected_jobs() == ["sitemap_generate"]
        assert config.get_value("jobs/sitemap/cron") == "0 3 * * *"
        assert config.default_cron_expression == "*/5 * * * *"

    def test_config_paths(self):
        assert ConfigPaths.ENABLED == "system/selective_cron/enabled"
        assert ConfigPaths.SELECTED_JOBS == "system/selective_cron/selected_jobs"
