"""Unit tests for the CLI."""

from __future__ import annotations

import json
import textwrap

import pytest

from motif_flow import cli

WORKFLOW_MODULE = """
from motif_flow import Workflow, step


@step("first")
def First(args):
    return {}


@step("second")
def Second(args):
    return {}


def build():
    wf = Workflow([First, Second])
    first, second = First(), Second()
    wf.register([first, second]).connect(first, second)
    return wf


prebuilt = build()
not_a_workflow = 42
"""


@pytest.fixture
def workflow_module(tmp_path, monkeypatch: pytest.MonkeyPatch) -> str:
    (tmp_path / "cli_sample_flow.py").write_text(textwrap.dedent(WORKFLOW_MODULE), encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)
    return "cli_sample_flow"


def test_describe_prints_graph_json(workflow_module, capsys) -> None:
    assert cli.main(["describe", f"{workflow_module}:build", "--indent", "0"]) == 0

    data = json.loads(capsys.readouterr().out)
    assert [n["id"] for n in data["nodes"]] == ["first:first", "second:second"]
    assert data["edges"][0]["from"] == "first:first"


def test_load_workflow_accepts_instances_and_factories(workflow_module) -> None:
    assert cli.load_workflow(f"{workflow_module}:prebuilt") is not None
    assert cli.load_workflow(f"{workflow_module}:build") is not None


def test_describe_reports_bad_targets(workflow_module, capsys) -> None:
    assert cli.main(["describe", f"{workflow_module}:not_a_workflow"]) == 1
    assert cli.main(["describe", "no-colon"]) == 1
    assert "Error:" in capsys.readouterr().err


def test_version_flag(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--version"])
    assert excinfo.value.code == 0
    assert "motif-flow" in capsys.readouterr().out
