"""Tests for places_verification: command-line entry point."""

import json
from unittest.mock import patch

import pytest

from places_verification.cli import main, parse_args
from places_verification.places_client import API_KEY_ENV
from places_verification.progress import ProgressState


@pytest.fixture()
def input_file(tmp_path, raw_places):
    path = tmp_path / "places.json"
    path.write_text(json.dumps(raw_places), encoding="utf-8")
    return path


# ---- parse_args -------------------------------------------------------------


class TestParseArgs:
    def test_defaults(self):
        args = parse_args([])
        assert args.input == "places.json"
        assert args.output == "places.verified.json"
        assert args.progress == "verification_progress.json"
        assert not args.resume
        assert not args.clean
        assert args.save_every == 100
        assert args.limit is None

    def test_short_flags(self):
        args = parse_args(["-r", "-c", "-v"])
        assert args.resume and args.clean and args.verbose

    def test_save_every_must_be_positive(self):
        with pytest.raises(SystemExit):
            parse_args(["--save-every", "0"])

    def test_limit_must_be_positive(self):
        with pytest.raises(SystemExit):
            parse_args(["--limit", "0"])


# ---- main -------------------------------------------------------------------


class TestMain:
    def test_dry_run(self, input_file, capsys):
        assert main(["--input", str(input_file), "--dry-run"]) == 0
        out = capsys.readouterr().out
        assert "DRY RUN" in out
        assert "Valid to verify : 2" in out
        assert "Skipped         : 3" in out

    def test_dry_run_missing_input(self, tmp_path):
        assert main(["--input", str(tmp_path / "missing.json"), "--dry-run"]) == 1

    def test_missing_api_key(self, input_file, monkeypatch):
        monkeypatch.delenv(API_KEY_ENV, raising=False)
        assert main(["--input", str(input_file)]) == 1

    def test_bad_rules_file(self, input_file, tmp_path, monkeypatch):
        monkeypatch.setenv(API_KEY_ENV, "AIza-test")
        rules = tmp_path / "rules.yaml"
        rules.write_text("distance_thresholds_km:\n  very_close: 2.0\n", encoding="utf-8")
        assert main(["--input", str(input_file), "--rules", str(rules)]) == 1

    def test_malformed_rules_yaml(self, input_file, tmp_path, monkeypatch):
        monkeypatch.setenv(API_KEY_ENV, "AIza-test")
        rules = tmp_path / "rules.yaml"
        rules.write_text("distance_thresholds_km: [unclosed\n", encoding="utf-8")
        assert main(["--input", str(input_file), "--rules", str(rules)]) == 1

    def test_run_wires_options(self, input_file, tmp_path, monkeypatch):
        monkeypatch.setenv(API_KEY_ENV, "AIza-test")
        output = tmp_path / "out.json"
        progress = tmp_path / "progress.json"

        with patch("places_verification.cli.run_verification", return_value=ProgressState()) as mock_run:
            code = main([
                "--input", str(input_file),
                "--output", str(output),
                "--progress", str(progress),
                "--resume",
                "--clean",
                "--save-every", "10",
                "--delay", "0",
                "--limit", "5",
            ])

        assert code == 0
        args, kwargs = mock_run.call_args
        client = args[0]
        assert client.api_key == "AIza-test"
        assert args[1:] == (str(input_file), str(output), str(progress))
        options = kwargs["options"]
        assert options.resume and options.clean
        assert options.save_every == 10
        assert options.delay_s == 0.0
        assert options.limit == 5
        assert kwargs["config"].far_km == 0.5

    def test_keyboard_interrupt_exit_code(self, input_file, monkeypatch):
        monkeypatch.setenv(API_KEY_ENV, "AIza-test")
        with patch("places_verification.cli.run_verification", side_effect=KeyboardInterrupt):
            assert main(["--input", str(input_file)]) == 130
