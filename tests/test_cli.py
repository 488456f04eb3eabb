"""CLI tests using Typer's CliRunner."""
import json

import pytest
from typer.testing import CliRunner

from lineage.config import reset_config
from lineage.main import app

from conftest import SAMPLE_PROGRAM

runner = CliRunner()


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Each test starts from default configuration."""
    for name in ("LINEAGE_LOG_LEVEL", "LINEAGE_LANGUAGE", "LINEAGE_SHOW_UNRESOLVED"):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def sample_file(tmp_path):
    path = tmp_path / "sample.js"
    path.write_text(SAMPLE_PROGRAM)
    return path


def test_analyze_prints_declarations(sample_file):
    result = runner.invoke(app, ["analyze", str(sample_file)])
    assert result.exit_code == 0, result.output
    assert "globalVar" in result.output
    assert "outerVar" in result.output
    assert "Example::method" in result.output


def test_analyze_json(sample_file):
    result = runner.invoke(app, ["analyze", str(sample_file), "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    names = {d['name'] for d in data['declarations']}
    assert {'globalVar', 'outerVar', 'innerVar', 'classVar'} <= names


def test_analyze_single_variable(sample_file):
    result = runner.invoke(app, ["analyze", str(sample_file), "--variable", "innerVar"])
    assert result.exit_code == 0, result.output
    assert "innerVar" in result.output
    assert "globalVar" not in result.output


def test_unresolved_listed_on_request(tmp_path):
    path = tmp_path / "leak.js"
    path.write_text("function f() { return undeclaredThing; }\n")

    hidden = runner.invoke(app, ["analyze", str(path)])
    shown = runner.invoke(app, ["analyze", str(path), "--show-unresolved"])

    assert "undeclaredThing" not in hidden.output
    assert "undeclaredThing" in shown.output
    assert shown.exit_code == 0, "Non-fatal diagnostics must not fail the run"


def test_missing_file_fails(tmp_path):
    result = runner.invoke(app, ["analyze", str(tmp_path / "absent.js")])
    assert result.exit_code == 1


def test_unknown_extension_uses_configured_language(tmp_path, monkeypatch):
    monkeypatch.setenv("LINEAGE_LANGUAGE", "typescript")
    reset_config()
    path = tmp_path / "script.txt"
    path.write_text("const n: number = 1; n;\n")

    result = runner.invoke(app, ["analyze", str(path), "--json"])
    assert result.exit_code == 0, result.output
    assert len(json.loads(result.output)['edges']) == 1


def test_bad_config_fails(sample_file, monkeypatch):
    monkeypatch.setenv("LINEAGE_LANGUAGE", "cobol")
    reset_config()
    result = runner.invoke(app, ["analyze", str(sample_file)])
    assert result.exit_code == 1


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "lineage" in result.output
