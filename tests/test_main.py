"""Tests for configuration loading, wiring and scheduling."""

from unittest.mock import Mock, patch

import yaml

import main
from pipeline.batch import BatchOrchestrator
from scheduler import build_scheduler


class TestLoadConfig:

    def test_defaults_when_file_missing(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ARTICLE_API_URL", raising=False)

        config = main.load_config(str(tmp_path / "missing.yaml"))

        assert config["settings"]["competitor_count"] == 2
        assert config["settings"]["success_cap"] == 10
        assert config["llm"]["verify_preservation"] is True

    def test_file_values_merge_over_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ARTICLE_API_URL", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"settings": {"success_cap": 3}, "scraper": {"extract_workers": 4}}))

        config = main.load_config(str(path))

        assert config["settings"]["success_cap"] == 3
        assert config["settings"]["delay_seconds"] == 20
        assert config["scraper"]["extract_workers"] == 4
        assert config["scraper"]["timeout_seconds"] == 15

    def test_env_overrides_api_url(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ARTICLE_API_URL", "https://articles.example.com/api")

        config = main.load_config(str(tmp_path / "missing.yaml"))

        assert config["article_api"]["base_url"] == "https://articles.example.com/api"

    def test_defaults_are_not_mutated(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"settings": {"success_cap": 1}}))

        main.load_config(str(path))

        assert main.DEFAULT_CONFIG["settings"]["success_cap"] == 10


class TestBuildOrchestrator:

    def test_wires_configured_settings(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ARTICLE_API_URL", raising=False)
        config = main.load_config(str(tmp_path / "missing.yaml"))
        config["settings"]["success_cap"] = 4
        generator = Mock()

        orchestrator = main.build_orchestrator(config, generator)

        assert isinstance(orchestrator, BatchOrchestrator)
        assert orchestrator.success_cap == 4
        assert orchestrator.analyzer.generator is generator
        assert orchestrator.enhancer.generator is generator
        assert orchestrator.discovery.exclude_domain == "beyondchats.com"


class TestExecute:

    def _config(self, tmp_path):
        config = main.load_config(str(tmp_path / "missing.yaml"))
        config["settings"]["reports_dir"] = str(tmp_path / "reports")
        return config

    @patch("storage.runs.get_active_run", return_value={"id": 3, "started_at": "2024-01-01 06:00:00"})
    @patch("storage.db.init_db")
    def test_refuses_to_start_while_another_run_is_active(self, _, __, tmp_path):
        job = Mock()

        assert main.execute(job, self._config(tmp_path)) == 1

        job.assert_not_called()

    @patch("storage.runs.get_active_run", return_value=None)
    @patch("storage.db.init_db")
    def test_missing_api_key_exits_with_error(self, _, __, tmp_path, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "your_anthropic_api_key_here")
        job = Mock()

        assert main.execute(job, self._config(tmp_path)) == 1

        job.assert_not_called()


class TestScheduler:

    def test_daily_job_never_overlaps(self):
        scheduler = build_scheduler(Mock(), schedule_hour=6)

        job = scheduler.get_job("daily_enhancement")

        assert job.max_instances == 1
        assert job.coalesce is True
        assert "hour='6'" in str(job.trigger)
