"""Tests for the YAML-backed deduplication tables."""
from __future__ import annotations

import pytest

from incident_linker.config import Settings, settings
from incident_linker.modules import dedup_config
from incident_linker.modules.dedup_config import load_dedup_config, reload_dedup_config
from incident_linker.modules.incident_types import incident_type_similarity
from incident_linker.modules.record_quality import source_priority


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Point DEDUP_CONFIG at a temp file and start from an empty cache."""
    path = tmp_path / "dedup.yaml"
    monkeypatch.setattr(settings, "DEDUP_CONFIG", str(path))
    monkeypatch.setattr(dedup_config, "_DEDUP_CONFIG", None)
    return path


class TestLoadDedupConfig:
    def test_missing_file_uses_builtin_tables(self, config_file, caplog):
        cfg = load_dedup_config()
        assert cfg["source_priorities"]["RECAAP"] == 5
        assert frozenset({"ROBBERY", "ROBBERY/THEFT", "THEFT"}) in cfg["incident_type_groups"]
        assert "not found" in caplog.text

    def test_shipped_file_found_by_default(self, monkeypatch, caplog):
        monkeypatch.delenv("DEDUP_CONFIG", raising=False)
        monkeypatch.setattr(settings, "DEDUP_CONFIG", Settings().DEDUP_CONFIG)
        monkeypatch.setattr(dedup_config, "_DEDUP_CONFIG", None)
        cfg = load_dedup_config()
        assert "not found" not in caplog.text
        assert cfg["source_priorities"]["UKMTO"] == 4
        assert frozenset({"DETENTION", "SEIZURE", "ARREST"}) in cfg["incident_type_groups"]

    def test_yaml_overrides(self, config_file):
        config_file.write_text(
            "source_priorities:\n  local_news: 1\n  IMB: 4\n"
            "incident_type_groups:\n  - [Smuggling, Contraband]\n"
        )
        cfg = load_dedup_config()
        assert cfg["source_priorities"] == {"LOCAL_NEWS": 1, "IMB": 4}
        assert source_priority("imb") == 4
        assert incident_type_similarity("Smuggling", "Contraband") == 0.8
        assert incident_type_similarity("Robbery", "Theft") == 0.0

    def test_partial_file_keeps_other_defaults(self, config_file, caplog):
        config_file.write_text("source_priorities:\n  IMB: 4\n")
        cfg = load_dedup_config()
        assert cfg["source_priorities"] == {"IMB": 4}
        assert len(cfg["incident_type_groups"]) == len(dedup_config.DEFAULT_INCIDENT_TYPE_GROUPS)
        assert "missing sections" in caplog.text

    def test_invalid_entries_skipped(self, config_file):
        config_file.write_text(
            "source_priorities:\n  GOOD: 2\n  BAD: high\n  NEG: -1\n"
            "incident_type_groups:\n  - [Lonely]\n  - [A, B]\n"
        )
        cfg = load_dedup_config()
        assert cfg["source_priorities"] == {"GOOD": 2}
        assert cfg["incident_type_groups"] == [frozenset({"A", "B"})]

    def test_cached_until_reload(self, config_file):
        config_file.write_text("source_priorities:\n  IMB: 4\n")
        assert load_dedup_config()["source_priorities"] == {"IMB": 4}
        config_file.write_text("source_priorities:\n  IMB: 2\n")
        assert load_dedup_config()["source_priorities"] == {"IMB": 4}
        assert reload_dedup_config()["source_priorities"] == {"IMB": 2}
