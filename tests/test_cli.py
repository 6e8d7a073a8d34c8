from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from asesor import cli

runner = CliRunner()

APA = "García, R. (2021). Métodos cualitativos. Revista ABC."


def _env(tmp_path, monkeypatch) -> Path:
    data_dir = tmp_path / "asesor-data"
    monkeypatch.setenv("ASESOR_DATA_DIR", str(data_dir))
    monkeypatch.setenv("ASESOR_DB_FILENAME", "test.sqlite3")
    return data_dir


def test_config_json_flag(tmp_path, monkeypatch):
    data_dir = _env(tmp_path, monkeypatch)
    monkeypatch.setenv("ASESOR_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("ASESOR_AGENT_CITATIONS", "flow-c")
    monkeypatch.setenv("ASESOR_LANGFLOW_TOKEN", "secret")

    result = runner.invoke(cli.app, ["config", "--json"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout.strip())
    assert Path(payload["data_dir"]) == data_dir
    assert payload["db_filename"] == "test.sqlite3"
    assert payload["log_level"] == "DEBUG"
    assert payload["agent_flows"] == {"citations": "flow-c"}
    assert "langflow_token" not in payload


def test_ref_add_and_list(tmp_path, monkeypatch):
    _env(tmp_path, monkeypatch)

    result = runner.invoke(cli.app, ["ref", "add", APA])
    assert result.exit_code == 0
    assert "Stored" in result.stdout

    result = runner.invoke(cli.app, ["ref", "list"])
    assert result.exit_code == 0
    assert "No references yet" not in result.stdout

    result = runner.invoke(cli.app, ["export", "--format", "csljson"])
    assert result.exit_code == 0
    assert json.loads(result.stdout)[0]["title"] == "Métodos cualitativos"


def test_ref_add_rejects_unparseable_reference(tmp_path, monkeypatch):
    _env(tmp_path, monkeypatch)

    result = runner.invoke(cli.app, ["ref", "add", "just some notes"])

    assert result.exit_code == 1
    assert "no recognizable author" in result.stdout


def test_export_handles_empty_bibliography(tmp_path, monkeypatch):
    _env(tmp_path, monkeypatch)
    destination = tmp_path / "refs.txt"

    result = runner.invoke(cli.app, ["export", "--output", str(destination)])

    assert result.exit_code == 0
    assert "No references matched" in result.stdout
    assert not destination.exists()


def test_export_writes_text_bibliography(tmp_path, monkeypatch):
    _env(tmp_path, monkeypatch)
    runner.invoke(cli.app, ["ref", "add", APA])
    destination = tmp_path / "out" / "refs.txt"

    result = runner.invoke(cli.app, ["export", "-o", str(destination)])

    assert result.exit_code == 0
    content = destination.read_text(encoding="utf-8")
    assert "1. García, R. (2021). Métodos cualitativos. Revista ABC." in content
    assert "Total references: 1" in content


def test_doc_load_extracts_cited_references(tmp_path, monkeypatch):
    _env(tmp_path, monkeypatch)
    thesis = tmp_path / "tesis.txt"
    thesis.write_text(
        "Según García (2021), el método es válido.\n\n"
        "García, R. (2021). Métodos cualitativos. Revista ABC.",
        encoding="utf-8",
    )

    result = runner.invoke(cli.app, ["doc", "load", str(thesis)])
    assert result.exit_code == 0
    assert "Found 1 references, 1 new." in result.stdout

    result = runner.invoke(cli.app, ["ref", "list", "--used"])
    assert result.exit_code == 0
    assert "No references yet" not in result.stdout

    result = runner.invoke(cli.app, ["ref", "list", "--unused"])
    assert "No references yet" in result.stdout


def test_analyze_without_document_fails(tmp_path, monkeypatch):
    _env(tmp_path, monkeypatch)

    result = runner.invoke(cli.app, ["analyze"])

    assert result.exit_code == 1
    assert "at least 50 characters" in result.stdout
