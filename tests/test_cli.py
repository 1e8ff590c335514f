"""Tests for CLI commands."""

import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from travelguard.cli import DEFAULT_CONFIG, app
from travelguard.config import load_config

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path):
    """Config with static addresses and no GeoLite2 database."""
    path = tmp_path / "travelguard.toml"
    path.write_text(f"""
[geoip]
db_path = "{(tmp_path / 'missing.mmdb').as_posix()}"

[geoip.static]
"91.207.175.104" = [34.0549, -118.2578, 200]
"206.81.252.7" = [39.2293, -76.6907, 10]
"24.242.71.20" = [30.3773, -97.71, 5]

[history]
db_path = "{(tmp_path / 'access.db').as_posix()}"
""", encoding="utf-8")
    return path


def _detect(config_file, event_id, timestamp, ip, *extra):
    return runner.invoke(app, [
        "detect",
        "--config", str(config_file),
        "-u", "bob",
        "-t", str(timestamp),
        "-e", event_id,
        "--ip", ip,
        *extra,
    ])


class TestDetectCommand:
    """Tests for the detect command."""

    def test_first_access_json(self, config_file):
        result = _detect(config_file, "e1", 1514761200, "91.207.175.104", "--format", "json")

        assert result.exit_code == 0
        output = json.loads(result.stdout)
        assert output["current_geo"]["latitude"] == 34.0549
        assert output["preceding_access"] is None
        assert output["travel_to_current_geo_suspicious"] is None

    def test_history_persists_between_runs(self, config_file):
        _detect(config_file, "e1", 1514761200, "91.207.175.104")
        result = _detect(config_file, "e2", 1514764800, "206.81.252.7", "--format", "json")

        assert result.exit_code == 0
        output = json.loads(result.stdout)
        assert output["preceding_access"]["implied_speed"] == 2311
        assert output["travel_to_current_geo_suspicious"] is True
        assert output["subsequent_access"] is None

    def test_terminal_output(self, config_file):
        _detect(config_file, "e1", 1514761200, "91.207.175.104")
        result = _detect(config_file, "e2", 1514764800, "206.81.252.7")

        assert result.exit_code == 0
        assert "Impossible travel detected" in result.stdout

    def test_duplicate_event_fails(self, config_file):
        _detect(config_file, "e1", 1514761200, "91.207.175.104")
        result = _detect(config_file, "e1", 1514764800, "206.81.252.7")

        assert result.exit_code == 1
        assert "duplicate_record" in result.stdout

    def test_unknown_address_fails(self, config_file):
        result = _detect(config_file, "e1", 1514761200, "192.0.2.1")

        assert result.exit_code == 1
        assert "geo_resolution_error" in result.stdout

    def test_no_geoip_source(self, tmp_path):
        config = tmp_path / "empty.toml"
        config.write_text(f'[geoip]\ndb_path = "{(tmp_path / "missing.mmdb").as_posix()}"\n', encoding="utf-8")

        result = _detect(config, "e1", 1514761200, "91.207.175.104", "--history-db", ":memory:")

        assert result.exit_code == 1
        assert "GeoIP database not found" in result.stdout

    def test_invalid_config(self, tmp_path):
        config = tmp_path / "bad.toml"
        config.write_text('[detection]\nscope = "tenant"\n', encoding="utf-8")

        result = _detect(config, "e1", 1514761200, "91.207.175.104")

        assert result.exit_code == 1
        assert "Config error" in result.stdout

    @patch("geoip2.database.Reader")
    def test_reader_closed_when_history_fails(self, mock_reader_class, tmp_path):
        mmdb = tmp_path / "GeoLite2-City.mmdb"
        mmdb.write_bytes(b"fake mmdb content")
        config = tmp_path / "travelguard.toml"
        config.write_text(
            f'[geoip]\ndb_path = "{mmdb.as_posix()}"\n\n'
            f'[history]\ndb_path = "{(tmp_path / ".." / "access.db").as_posix()}"\n',
            encoding="utf-8",
        )

        result = _detect(config, "e1", 1514761200, "91.207.175.104")

        assert result.exit_code == 1
        assert "Path traversal not allowed" in result.stdout
        mock_reader_class.return_value.close.assert_called_once()


class TestReplayCommand:
    """Tests for the replay command."""

    @pytest.fixture
    def events_file(self, tmp_path):
        path = tmp_path / "events.jsonl"
        events = [
            {"username": "bob", "unix_timestamp": 1514761200,
             "event_uuid": "85ad929a-db03-4bf4-9541-8f728fa12e42", "ip_address": "91.207.175.104"},
            {"username": "bob", "unix_timestamp": 1514851200,
             "event_uuid": "85ad929a-db03-4bf4-9541-8f728fa12e40", "ip_address": "24.242.71.20"},
            {"username": "bob", "unix_timestamp": 1514764800,
             "event_uuid": "85ad929a-db03-4bf4-9541-8f728fa12e41", "ip_address": "206.81.252.7"},
        ]
        path.write_text("\n".join(json.dumps(e) for e in events) + "\n", encoding="utf-8")
        return path

    def test_replay_json(self, config_file, events_file):
        result = runner.invoke(app, ["replay", str(events_file), "--config", str(config_file), "--format", "json"])

        assert result.exit_code == 0
        output = json.loads(result.stdout)
        assert output["total_events"] == 3
        assert output["errors"] == []

        last = output["results"][2]
        assert last["event_id"] == "85ad929a-db03-4bf4-9541-8f728fa12e41"
        assert last["preceding_access"]["implied_speed"] == 2311
        assert last["subsequent_access"]["implied_speed"] == 55
        assert last["travel_to_current_geo_suspicious"] is True
        assert last["travel_from_current_geo_suspicious"] is False

    def test_replay_terminal_summary(self, config_file, events_file):
        result = runner.invoke(app, ["replay", str(events_file), "--config", str(config_file)])

        assert result.exit_code == 0
        assert "Replay" in result.stdout
        assert "Impossible Travel" in result.stdout

    def test_replay_twice_reports_duplicates(self, config_file, events_file):
        runner.invoke(app, ["replay", str(events_file), "--config", str(config_file)])
        result = runner.invoke(app, ["replay", str(events_file), "--config", str(config_file), "--format", "json"])

        assert result.exit_code == 1
        output = json.loads(result.stdout)
        assert len(output["errors"]) == 3
        assert {e["kind"] for e in output["errors"]} == {"duplicate_record"}

    def test_replay_with_reset(self, config_file, events_file):
        runner.invoke(app, ["replay", str(events_file), "--config", str(config_file)])
        result = runner.invoke(app, ["replay", str(events_file), "--config", str(config_file), "--reset"])

        assert result.exit_code == 0

    def test_replay_bad_lines(self, config_file, tmp_path):
        path = tmp_path / "events.jsonl"
        path.write_text(
            '{"username": "bob", "timestamp": 1514761200, "event_id": "e1", "ip_address": "91.207.175.104"}\n'
            "not json\n"
            '{"username": "bob", "timestamp": "soon", "event_id": "e2", "ip_address": "91.207.175.104"}\n',
            encoding="utf-8",
        )

        result = runner.invoke(app, ["replay", str(path), "--config", str(config_file), "--format", "json"])

        assert result.exit_code == 1
        output = json.loads(result.stdout)
        assert output["total_events"] == 1
        assert len(output["parse_errors"]) == 2

    def test_replay_missing_file(self, config_file, tmp_path):
        result = runner.invoke(app, ["replay", str(tmp_path / "none.jsonl"), "--config", str(config_file)])

        assert result.exit_code == 1
        assert "File not found" in result.stdout


class TestHistoryCommand:
    """Tests for the history command."""

    def test_empty_history(self, config_file):
        result = runner.invoke(app, ["history", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "No accesses recorded" in result.stdout

    def test_lists_recorded_accesses(self, config_file):
        _detect(config_file, "e1", 1514761200, "91.207.175.104")

        result = runner.invoke(app, ["history", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "Recent Accesses" in result.stdout
        assert "bob" in result.stdout

    def test_listing_ignores_reset_on_start(self, config_file):
        _detect(config_file, "e1", 1514761200, "91.207.175.104")
        with config_file.open("a", encoding="utf-8") as f:
            f.write("reset_on_start = true\n")

        result = runner.invoke(app, ["history", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "e1" in result.stdout
        assert "No accesses recorded" not in result.stdout

    def test_reset_on_start_applies_to_detect(self, config_file):
        _detect(config_file, "e1", 1514761200, "91.207.175.104")
        with config_file.open("a", encoding="utf-8") as f:
            f.write("reset_on_start = true\n")

        result = _detect(config_file, "e1", 1514764800, "206.81.252.7", "--format", "json")

        assert result.exit_code == 0
        assert json.loads(result.stdout)["preceding_access"] is None


class TestGeoIPCommand:
    def test_missing_database(self, tmp_path):
        result = runner.invoke(app, ["geoip", "--db", str(tmp_path / "missing.mmdb")])

        assert result.exit_code == 1
        assert "Not found" in result.stdout


class TestInitCommand:
    """Tests for the init command."""

    def test_creates_loadable_config(self, tmp_path):
        output = tmp_path / "travelguard.toml"

        result = runner.invoke(app, ["init", "--output", str(output)])

        assert result.exit_code == 0
        assert output.read_text(encoding="utf-8") == DEFAULT_CONFIG
        assert load_config(output).detection.speed_threshold == 500

    def test_refuses_overwrite(self, tmp_path):
        output = tmp_path / "travelguard.toml"
        output.write_text("# mine\n", encoding="utf-8")

        result = runner.invoke(app, ["init", "--output", str(output)])

        assert result.exit_code == 1
        assert output.read_text(encoding="utf-8") == "# mine\n"

    def test_force_overwrite(self, tmp_path):
        output = tmp_path / "travelguard.toml"
        output.write_text("# mine\n", encoding="utf-8")

        result = runner.invoke(app, ["init", "--output", str(output), "--force"])

        assert result.exit_code == 0
        assert output.read_text(encoding="utf-8") == DEFAULT_CONFIG
