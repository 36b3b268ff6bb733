"""Tests for the config loader (.oaslint.yml)."""

import pytest

from oaslint import config as config_mod
from oaslint.config import load_config, load_ignore_file


@pytest.fixture(autouse=True)
def no_user_config(tmp_path, monkeypatch):
    """Point the user-level config at a file that does not exist."""
    monkeypatch.setattr(config_mod, "USER_CONFIG_PATH", tmp_path / "home" / "config.yml")


class TestDefaultConfig:
    def test_no_config_file_returns_defaults(self, tmp_path):
        (tmp_path / ".git").mkdir()
        cfg = load_config(spec_path=str(tmp_path / "api.yaml"))
        assert cfg.ruleset == "recommended"
        assert cfg.fail_on == "error"
        assert cfg.timeout_seconds == 5.0
        assert cfg.lookup_timeout_ms == 500
        assert cfg.lookup_timeout == 0.5
        assert cfg.ignore_file == ""
        assert cfg.skip_document_check is False
        assert cfg.allow_lookup is False
        assert cfg.project_config_path is None
        assert cfg.user_config_path is None


class TestLoadConfig:
    def test_loads_full_config(self, tmp_path):
        (tmp_path / ".git").mkdir()
        config = tmp_path / ".oaslint.yml"
        config.write_text("""\
lint:
  ruleset: ./rules.yaml
  fail_on: WARN
  timeout_seconds: 2.5
  lookup_timeout_ms: 250
  ignore_file: ./ignore.yaml
  skip_document_check: true
  allow_lookup: true
  ignore_circular_array_ref: true
  ignore_circular_polymorphic_ref: true
  extract_references_from_extensions: true
  base: https://example.com/specs/
""")
        cfg = load_config(spec_path=str(tmp_path / "api.yaml"))
        assert cfg.ruleset == "./rules.yaml"
        assert cfg.fail_on == "warn"
        assert cfg.timeout_seconds == 2.5
        assert cfg.lookup_timeout == 0.25
        assert cfg.ignore_file == "./ignore.yaml"
        assert cfg.skip_document_check is True
        assert cfg.allow_lookup is True
        assert cfg.ignore_circular_array_ref is True
        assert cfg.ignore_circular_polymorphic_ref is True
        assert cfg.extract_references_from_extensions is True
        assert cfg.base == "https://example.com/specs/"
        assert cfg.project_config_path == str(config)

    def test_partial_config_uses_defaults(self, tmp_path):
        (tmp_path / ".git").mkdir()
        (tmp_path / ".oaslint.yml").write_text("lint:\n  fail_on: info\n")
        cfg = load_config(spec_path=str(tmp_path / "api.yaml"))
        assert cfg.fail_on == "info"
        assert cfg.ruleset == "recommended"
        assert cfg.timeout_seconds == 5.0

    def test_empty_file_returns_defaults(self, tmp_path):
        (tmp_path / ".git").mkdir()
        (tmp_path / ".oaslint.yml").write_text("")
        cfg = load_config(spec_path=str(tmp_path / "api.yaml"))
        assert cfg.ruleset == "recommended"
        assert cfg.project_config_path is None

    def test_invalid_yaml_returns_defaults(self, tmp_path):
        (tmp_path / ".git").mkdir()
        (tmp_path / ".oaslint.yml").write_text("lint: [unclosed\n")
        cfg = load_config(spec_path=str(tmp_path / "api.yaml"))
        assert cfg.fail_on == "error"

    def test_found_in_parent_directory(self, tmp_path):
        (tmp_path / ".git").mkdir()
        (tmp_path / ".oaslint.yml").write_text("lint:\n  ruleset: all\n")
        nested = tmp_path / "specs" / "v1"
        nested.mkdir(parents=True)
        cfg = load_config(spec_path=str(nested / "api.yaml"))
        assert cfg.ruleset == "all"

    def test_search_stops_at_git_root(self, tmp_path):
        (tmp_path / ".oaslint.yml").write_text("lint:\n  ruleset: all\n")
        repo = tmp_path / "repo"
        (repo / ".git").mkdir(parents=True)
        cfg = load_config(spec_path=str(repo / "api.yaml"))
        assert cfg.ruleset == "recommended"

    def test_explicit_config_path(self, tmp_path):
        explicit = tmp_path / "custom.yml"
        explicit.write_text("lint:\n  fail_on: hint\n")
        cfg = load_config(config_path=str(explicit))
        assert cfg.fail_on == "hint"
        assert cfg.project_config_path == str(explicit)


class TestPrecedence:
    def test_project_overrides_user(self, tmp_path, monkeypatch):
        user = tmp_path / "user.yml"
        user.write_text("lint:\n  fail_on: info\n  ruleset: owasp\n")
        monkeypatch.setattr(config_mod, "USER_CONFIG_PATH", user)

        project = tmp_path / "project"
        (project / ".git").mkdir(parents=True)
        (project / ".oaslint.yml").write_text("lint:\n  fail_on: warn\n")

        cfg = load_config(spec_path=str(project / "api.yaml"))
        assert cfg.fail_on == "warn"
        assert cfg.ruleset == "owasp"
        assert cfg.user_config_path == str(user)
        assert cfg.project_config_path == str(project / ".oaslint.yml")

    def test_user_only(self, tmp_path, monkeypatch):
        user = tmp_path / "user.yml"
        user.write_text("lint:\n  timeout_seconds: 1\n")
        monkeypatch.setattr(config_mod, "USER_CONFIG_PATH", user)
        cfg = load_config()
        assert cfg.timeout_seconds == 1.0


class TestIgnoreFile:
    def test_loads_mapping(self, tmp_path):
        path = tmp_path / "ignore.yaml"
        path.write_text("""\
info-description:
  - $.info
operation-tags: $.paths['/pets'].get
""")
        assert load_ignore_file(path) == {
            "info-description": ["$.info"],
            "operation-tags": ["$.paths['/pets'].get"],
        }

    def test_missing_file(self, tmp_path, caplog):
        assert load_ignore_file(tmp_path / "nope.yaml") == {}
        assert "nope.yaml" in caplog.text
