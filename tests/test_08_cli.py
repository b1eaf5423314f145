import json

import pytest

from fakes import FakeBackend, numbered_sentences


def _json_lines(out):
    return [json.loads(line) for line in out.splitlines() if line.startswith("{")]


def _fake_service(monkeypatch, backend):
    from tts_gateway import cli
    from tts_gateway.services.tts_service import TTSService

    monkeypatch.setattr(cli, "TTSService", lambda settings: TTSService(settings, http=backend.client()))


def test_cli_dry_run(capsys):
    from tts_gateway import cli

    code = cli.main(["--text", "dry run test", "--dry-run"])
    assert code == 0
    out = capsys.readouterr().out
    assert "DRY_RUN_OK" in out


def test_cli_dry_run_json_plan(capsys):
    from tts_gateway import cli

    text = numbered_sentences(5)
    code = cli.main([
        "--text", text,
        "--dry-run", "--json",
        "--chunk-size", "100",
        "--concurrency", "2",
        "--voice", "alloy",
        "--speed", "1.5",
    ])
    assert code == 0

    payload = _json_lines(capsys.readouterr().out)[-1]
    assert payload["ok"] is True
    assert payload["dry_run"] is True
    assert payload["voice"] == "zh-CN-YunyangNeural"
    assert payload["rate"] == 50
    assert payload["pitch"] == 0
    assert payload["style"] == "general"
    assert payload["cleaned_chars"] == len(text)
    assert payload["chunk_size"] == 100
    assert payload["concurrency"] == 2
    assert payload["chunks"] == [99, 99, 49]
    assert payload["batches"] == [[0, 1], [2]]


def test_cli_dry_run_makes_no_backend_call(monkeypatch, capsys):
    from tts_gateway import cli

    backend = FakeBackend()
    _fake_service(monkeypatch, backend)

    assert cli.main(["Hello there.", "--dry-run"]) == 0
    assert backend.identity_calls == 0
    assert backend.synth_requests == []


def test_cli_rejects_out_of_range_concurrency(capsys):
    from tts_gateway import cli

    code = cli.main(["--text", "Hi.", "--dry-run", "--json", "--concurrency", "0"])
    assert code == 1

    payload = _json_lines(capsys.readouterr().out)[-1]
    assert payload["ok"] is False
    assert payload["error"]["code"] == "invalid_request_error"
    assert "concurrency" in payload["error"]["message"]


def test_cli_requires_input():
    from tts_gateway import cli

    with pytest.raises(SystemExit):
        cli.main(["--dry-run"])


def test_cli_file_and_text_conflict(tmp_path):
    from tts_gateway import cli

    src = tmp_path / "input.txt"
    src.write_text("From a file.", encoding="utf-8")

    with pytest.raises(SystemExit):
        cli.main(["--file", str(src), "--text", "Inline.", "--dry-run"])


def test_cli_reads_file(tmp_path, capsys):
    from tts_gateway import cli

    src = tmp_path / "input.txt"
    src.write_text("First line.\nSecond line.\n", encoding="utf-8")

    assert cli.main(["--file", str(src), "--dry-run", "--json"]) == 0
    payload = _json_lines(capsys.readouterr().out)[-1]
    assert payload["cleaned_chars"] == len("First line. Second line.")


def test_cli_synth_writes_audio(monkeypatch, tmp_path, capsys):
    from tts_gateway import cli
    from tts_gateway.tts.chunker import make_chunks

    backend = FakeBackend()
    _fake_service(monkeypatch, backend)
    out_path = tmp_path / "nested" / "out.mp3"
    text = numbered_sentences(4)

    code = cli.main(["--text", text, "--out", str(out_path), "--chunk-size", "100", "--json"])
    assert code == 0

    assert out_path.read_bytes() == b"".join(c.text.encode("utf-8") for c in make_chunks(text, 100))
    out = capsys.readouterr().out
    assert "CLI_OK" in out
    payload = _json_lines(out)[-1]
    assert payload["ok"] is True
    assert payload["chunks"] == 2
    assert payload["bytes"] == out_path.stat().st_size
    assert len(backend.synth_requests) == 2


def test_cli_synth_failure_returns_1(monkeypatch, tmp_path, capsys):
    from tts_gateway import cli

    _fake_service(monkeypatch, FakeBackend(fail=lambda t: True))
    out_path = tmp_path / "out.mp3"

    code = cli.main(["--text", "Hi.", "--out", str(out_path), "--json"])
    assert code == 1
    assert not out_path.exists()

    payload = _json_lines(capsys.readouterr().out)[-1]
    assert payload["ok"] is False
    assert payload["error"]["code"] == "tts_generation_error"
