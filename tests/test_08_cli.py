"""Tests for the command-line interface."""
from __future__ import annotations

import json
import shutil

import pytest

from conftest import FakeEncoder
from aurora_tts import cli
from aurora_tts.services.job_manager import JobManager


@pytest.fixture
def fake_encoding(monkeypatch):
    """Run CLI jobs with the mock backend and a fake encoder."""
    monkeypatch.setattr(cli, "JobManager", lambda settings: JobManager(settings, encoder=FakeEncoder()))


def _json_line(out: str) -> dict:
    """First JSON object printed; log lines may come before it."""
    for line in out.splitlines():
        if line.startswith("{"):
            return json.loads(line)
    raise AssertionError(f"no JSON in output: {out!r}")


class TestDryRun:
    def test_dry_run(self, capsys):
        code = cli.main(["--text", "Um teste de ensaio.", "--engine", "mock", "--dry-run"])
        assert code == 0
        assert "DRY_RUN_OK" in capsys.readouterr().out

    def test_dry_run_json(self, capsys):
        text = "Frase curta. " * 100
        code = cli.main(["--text", text, "--engine", "mock", "--dry-run", "--json", "--emotion", "Neutral"])
        assert code == 0

        payload = _json_line(capsys.readouterr().out)
        assert payload["ok"] is True
        assert payload["engine"] == "mock"
        assert payload["chunks"] > 1
        assert payload["emotion"] == "neutro"
        assert payload["voice"] == cli.DEFAULT_VOICE

    def test_file_input(self, tmp_path, capsys):
        script = tmp_path / "script.txt"
        script.write_text("Primeira linha.\nSegunda linha.", encoding="utf-8")

        code = cli.main(["--file", str(script), "--engine", "mock", "--dry-run", "--json"])
        assert code == 0
        assert _json_line(capsys.readouterr().out)["text_len"] == len("Primeira linha.\nSegunda linha.")


class TestValidation:
    def test_unknown_voice(self, capsys):
        code = cli.main(["--text", "Olá.", "--voice", "robot", "--engine", "mock", "--json"])
        assert code == 2
        payload = _json_line(capsys.readouterr().out)
        assert payload["error"] == "INVALID_REQUEST"

    def test_missing_text(self):
        with pytest.raises(SystemExit):
            cli.main(["--engine", "mock"])

    def test_conflicting_inputs(self, tmp_path):
        script = tmp_path / "script.txt"
        script.write_text("Olá.", encoding="utf-8")
        with pytest.raises(SystemExit):
            cli.main(["--text", "Olá.", "--file", str(script), "--engine", "mock"])


class TestVoices:
    def test_list_voices_json(self, capsys):
        assert cli.main(["--voices", "--json"]) == 0
        payload = _json_line(capsys.readouterr().out)
        ids = [v["id"] for v in payload["voices"]]
        assert "masc-deep" in ids
        assert "épico" in payload["emotions"]

    def test_list_voices_table(self, capsys):
        assert cli.main(["--voices"]) == 0
        assert "fem-soft" in capsys.readouterr().out


class TestSynthesize:
    def test_writes_audio(self, tmp_path, capsys, fake_encoding):
        out_path = tmp_path / "nested" / "out.mp3"
        code = cli.main(["Olá, mundo.", "--engine", "mock", "--out", str(out_path), "--json"])

        assert code == 0
        data = out_path.read_bytes()
        assert data.startswith(b"ID3")
        output = capsys.readouterr().out
        assert "CLI_OK" in output
        payload = _json_line(output)
        assert payload["bytes"] == len(data)
        assert payload["duration"] > 0

    @pytest.mark.slow
    @pytest.mark.skipif(shutil.which("ffmpeg") is None, reason="ffmpeg not installed")
    def test_writes_real_mp3(self, tmp_path):
        out_path = tmp_path / "out.mp3"
        code = cli.main(["--text", "Olá.", "--engine", "mock", "--out", str(out_path)])
        assert code == 0
        data = out_path.read_bytes()
        assert data[:3] == b"ID3" or data[0] == 0xFF
