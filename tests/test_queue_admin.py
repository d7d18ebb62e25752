"""
Tests — queue_admin CLI against in-memory transport and file storage.

Run:
  pytest tests/test_queue_admin.py -v
"""
import json
import os
import sys
import pytest
import structlog

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "scripts"))

import queue_admin  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    structlog.reset_defaults()


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        "log_level: warning\n"
        "queue:\n  backend: memory\n"
        f"storage:\n  backend: file\n  file_dir: \"{tmp_path / 'blobs'}\"\n"
        "offload:\n  always_store: true\n  disk: local\n  prefix: admin\n"
    )
    return str(path)


def test_push_prints_message_id(config_path, capsys):
    assert queue_admin.main(["--config", config_path, "push", "SendInvoice", "--data", '{"id": 1}']) == 0
    assert capsys.readouterr().out.strip()


def test_push_raw_offloads_file_contents(config_path, tmp_path, capsys):
    payload = tmp_path / "payload.json"
    payload.write_text('{"uuid":"abc","job":"foo","data":[]}')

    assert queue_admin.main(["--config", config_path, "push-raw", str(payload)]) == 0

    assert (tmp_path / "blobs" / "local" / "admin" / "abc.json").read_text() == payload.read_text()


def test_pop_empty_queue(config_path, capsys):
    assert queue_admin.main(["--config", config_path, "pop"]) == 1
    assert "queue empty" in capsys.readouterr().out


def test_depth(config_path, capsys):
    assert queue_admin.main(["--config", config_path, "depth"]) == 0
    depth = json.loads(capsys.readouterr().out)
    assert depth == {"visible": 0, "delayed": 0, "in_flight": 0, "total": 0}


def test_clear_requires_confirmation(config_path, capsys):
    assert queue_admin.main(["--config", config_path, "clear"]) == 2
    assert "--yes" in capsys.readouterr().err


def test_clear_removes_offloaded_objects(config_path, tmp_path, capsys):
    blob = tmp_path / "blobs" / "local" / "admin" / "old.json"
    blob.parent.mkdir(parents=True)
    blob.write_text("{}")

    assert queue_admin.main(["--config", config_path, "--queue", "jobs", "clear", "--yes"]) == 0

    result = json.loads(capsys.readouterr().out)
    assert result["queue"] == "jobs"
    assert result["prefix"] == "admin"
    assert result["blobs_cleared"] is True
    assert not blob.exists()
