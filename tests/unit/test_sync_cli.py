import json

import pytest

from paper_search.cli import sync_papers
from paper_search.services.checkpoint import CheckpointStore, SyncCheckpoint


def test_parse_args_requires_command():
    with pytest.raises(SystemExit):
        sync_papers.parse_args([])


def test_parse_args_rejects_bad_batch_size():
    with pytest.raises(SystemExit):
        sync_papers.parse_args(["run", "--batch-size", "0"])


def test_status_prints_checkpoint(tmp_path, capsys):
    path = tmp_path / "sync.json"
    CheckpointStore(path).save(SyncCheckpoint(last_id="k42", total_indexed=40))

    rc = sync_papers.main(["status", "--checkpoint", str(path)])

    payload = json.loads(capsys.readouterr().out)
    assert rc == 0
    assert payload["last_id"] == "k42"
    assert payload["total_indexed"] == 40


def test_reset_clears_checkpoint(tmp_path, capsys):
    path = tmp_path / "sync.json"
    CheckpointStore(path).save(SyncCheckpoint(last_id="k42"))

    rc = sync_papers.main(["reset", "--checkpoint", str(path)])

    assert rc == 0
    assert CheckpointStore(path).load().last_id is None


def test_run_invokes_sync(monkeypatch, capsys):
    called = {}

    async def fake_run_sync(checkpoint_path=None, batch_size=None):
        called["args"] = (checkpoint_path, batch_size)
        return SyncCheckpoint(last_id="k9", total_indexed=9)

    monkeypatch.setattr(sync_papers, "run_sync", fake_run_sync)
    monkeypatch.setattr("paper_search.core.logging.configure_logging", lambda: None)

    rc = sync_papers.main(["run", "--batch-size", "50"])

    assert rc == 0
    assert called["args"] == (None, 50)
    assert json.loads(capsys.readouterr().out)["last_id"] == "k9"
