"""Tests for loopguard.lib.envparse module."""

import pytest

from loopguard.lib.envparse import load_env, update_env


class TestLoadEnv:
    """Test safe option-file parsing."""

    def test_parses_keys_and_strips_quotes(self, tmp_path):
        path = tmp_path / "loop.env"
        path.write_text(
            "# comment\n"
            "\n"
            'AGENT_COMMAND="codex exec {prompt}"\n'
            "TEST_COMMAND='pytest -q'\n"
            "AGENT_TIMEOUT=600\n"
        )
        env = load_env(path)
        assert env == {
            "AGENT_COMMAND": "codex exec {prompt}",
            "TEST_COMMAND": "pytest -q",
            "AGENT_TIMEOUT": "600",
        }

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_env(tmp_path / "nope.env")

    def test_line_without_equals(self, tmp_path):
        path = tmp_path / "a.env"
        path.write_text("PAUSED\n")
        with pytest.raises(ValueError, match="Line 1"):
            load_env(path)

    def test_invalid_key(self, tmp_path):
        path = tmp_path / "a.env"
        path.write_text("paused=true\n")
        with pytest.raises(ValueError, match="Invalid key"):
            load_env(path)

    @pytest.mark.parametrize("value", ["`id`", "$(id)", "${HOME}", "a;b", "a && b", "a || b", "a | b"])
    def test_forbidden_patterns(self, tmp_path, value):
        path = tmp_path / "a.env"
        path.write_text(f"AGENT_COMMAND={value}\n")
        with pytest.raises(ValueError, match="Forbidden pattern"):
            load_env(path)


class TestUpdateEnv:
    """Test in-place option rewriting."""

    def test_replaces_and_appends(self, tmp_path):
        path = tmp_path / "agent.env"
        path.write_text("# contract\nPAUSED=false\nOWNER=ops\n")

        update_env(path, {"PAUSED": "true", "REQUIRE_TESTS": "false"})

        assert path.read_text() == '# contract\nPAUSED="true"\nOWNER=ops\nREQUIRE_TESTS="false"\n'

    def test_none_removes_key(self, tmp_path):
        path = tmp_path / "agent.env"
        path.write_text("PAUSED=false\nOWNER=ops\n")
        update_env(path, {"OWNER": None})
        assert load_env(path) == {"PAUSED": "false"}

    def test_commented_key_is_left_alone(self, tmp_path):
        path = tmp_path / "agent.env"
        path.write_text("# PAUSED=true\nPAUSED=false\n")
        update_env(path, {"PAUSED": "true"})
        assert path.read_text().startswith("# PAUSED=true\n")
        assert load_env(path)["PAUSED"] == "true"

    def test_creates_file(self, tmp_path):
        path = tmp_path / "new.env"
        update_env(path, {"PAUSED": "false"})
        assert load_env(path) == {"PAUSED": "false"}
