"""
CLI Tests
"""

import json
import logging

import pytest

from logtrail.cli import file_sha256, main
from logtrail.config_loader import config

from helpers import make_line, numbered_ts


@pytest.fixture(autouse=True)
def restore_root_logging():
    """main() reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def run_cli(capsys, *argv):
    code = main(list(argv))
    out = capsys.readouterr().out
    return code, json.loads(out) if out.strip() else None


def test_register_analyze_and_read_back(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    log_path = tmp_path / "access.log"
    log_path.write_text("\n".join(make_line(ts=numbered_ts(i)) for i in range(12)) + "\n")
    db_path = str(tmp_path / "cli.db")

    code, log_file = run_cli(capsys, "--db", db_path, "register", str(log_path), "--owner", "carol")
    assert code == 0
    assert log_file["owner"] == "carol"
    assert log_file["sha256"] == file_sha256(log_path)

    code, job = run_cli(capsys, "--db", db_path, "analyze", log_file["id"], "--timeout", "30")
    assert code == 0
    assert job["status"] == "done"

    code, summary = run_cli(capsys, "--db", db_path, "summary", log_file["id"])
    assert code == 0
    assert summary["totalLines"] == 12

    code, page = run_cli(
        capsys, "--db", db_path, "events", log_file["id"], "--limit", "5", "--sort=-eventTs"
    )
    assert code == 0
    assert page["items"][0]["eventTs"] == numbered_ts(11)
    assert len(page["items"]) == 5

    code, newest = run_cli(capsys, "--db", db_path, "events", log_file["id"], "--limit", "5", "--desc")
    assert code == 0
    assert newest["items"] == page["items"]

    code, oldest = run_cli(capsys, "--db", db_path, "events", log_file["id"], "--limit", "5")
    assert oldest["items"][0]["eventTs"] == numbered_ts(0)

    code, jobs = run_cli(capsys, "--db", db_path, "jobs", log_file["id"])
    assert [j["jobId"] for j in jobs] == [job["jobId"]]


def test_unknown_log_exits_non_zero(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)

    code = main(["--db", str(tmp_path / "cli.db"), "analyze", "nope"])

    assert code == 1
    assert "log_not_found" in capsys.readouterr().err


def test_config_defaults():
    assert config.get('ingestion.batch_size') == 1000
    assert config.get('ingestion.top_n') == 10
    assert config.get('query.default_limit') == 100
    assert config.get('missing.key', 'fallback') == 'fallback'
    assert 'handlers' in config.get_section('logging')
