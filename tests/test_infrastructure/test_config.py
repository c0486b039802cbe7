"""Tests for configuration."""

from recur.infrastructure.config import SchedulerSettings, read_env_file, resolve_timezone


class TestReadEnvFile:
    def test_reads_env_values(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("KEY1=value1\nKEY2=value2\n")
        monkeypatch.chdir(tmp_path)

        result = read_env_file(["KEY1", "KEY2"])
        assert result == {"KEY1": "value1", "KEY2": "value2"}

    def test_strips_quotes(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text('KEY1="quoted"\nKEY2=\'single\'\n')
        monkeypatch.chdir(tmp_path)

        result = read_env_file(["KEY1", "KEY2"])
        assert result["KEY1"] == "quoted"
        assert result["KEY2"] == "single"

    def test_skips_comments_and_blank_lines(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("# comment\n\nACTION_WEBHOOK_URL=http://hooks.local\n\n")
        monkeypatch.chdir(tmp_path)

        result = read_env_file(["ACTION_WEBHOOK_URL"])
        assert result == {"ACTION_WEBHOOK_URL": "http://hooks.local"}

    def test_only_requested_keys(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("KEY1=value1\nKEY2=value2\n")
        monkeypatch.chdir(tmp_path)

        result = read_env_file(["KEY1"])
        assert "KEY2" not in result

    def test_value_may_contain_equals(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("ACTION_WEBHOOK_URL=http://hooks.local/?token=abc\n")
        monkeypatch.chdir(tmp_path)

        assert read_env_file(["ACTION_WEBHOOK_URL"])["ACTION_WEBHOOK_URL"] == "http://hooks.local/?token=abc"

    def test_missing_file_returns_empty(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert read_env_file(["KEY1"]) == {}

    def test_empty_values_skipped(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text("KEY1=\n")
        monkeypatch.chdir(tmp_path)

        assert "KEY1" not in read_env_file(["KEY1"])


class TestResolveTimezone:
    def test_known_zone(self):
        assert resolve_timezone("Europe/Berlin") == "Europe/Berlin"

    def test_unknown_zone_falls_back_to_utc(self):
        assert resolve_timezone("Atlantis/Capital") == "UTC"

    def test_empty_falls_back_to_utc(self):
        assert resolve_timezone("") == "UTC"
        assert resolve_timezone(None) == "UTC"


class TestSchedulerSettings:
    def test_defaults(self):
        settings = SchedulerSettings()
        assert settings.poll_interval > 0
        assert settings.max_concurrent >= 1
        assert settings.action_timeout > 0

    def test_custom_values(self):
        settings = SchedulerSettings(poll_interval=5, max_concurrent=3, default_timezone="Asia/Tokyo")
        assert settings.poll_interval == 5
        assert settings.max_concurrent == 3
        assert settings.default_timezone == "Asia/Tokyo"
