import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from haraj_scraper import pipeline
from haraj_scraper.models import AdRecord, Digest
from haraj_scraper.pipeline import main, parse_args, update_store
from haraj_scraper.storage import PersistenceError

NOW = datetime(2025, 11, 2, 12, 0, tzinfo=timezone.utc)


def _ad(replies: int) -> AdRecord:
    return AdRecord(id="11164391385", description="كامري 2020", link="https://haraj.com.sa/11164391385", reply_count=replies)


def test_parse_args_defaults():
    args = parse_args([])
    assert args.url == "https://haraj.com.sa/"
    assert args.store_path == Path("data/store.json")
    assert args.digest_path == Path("data/top24.json")
    assert args.max_passes == 8
    assert args.pass_delay_ms == 1200
    assert args.idle_passes == 0
    assert args.deadline_s is None


def test_parse_args_data_dir_and_overrides(tmp_path):
    args = parse_args(["--data-dir", str(tmp_path), "--digest-path", str(tmp_path / "d.json"), "--max-passes", "3"])
    assert args.store_path == tmp_path / "store.json"
    assert args.digest_path == tmp_path / "d.json"
    assert args.max_passes == 3


@pytest.mark.parametrize(
    "argv",
    [["--max-passes", "0"], ["--ttl-hours", "0"], ["--top-n", "0"], ["--pass-delay-ms", "-1"], ["--deadline-s", "0"]],
)
def test_parse_args_rejects_bad_values(argv):
    with pytest.raises(ValueError):
        parse_args(argv)


def test_update_store_writes_store_and_digest(tmp_path):
    args = parse_args(["--data-dir", str(tmp_path)])

    update_store(args, [_ad(6)], NOW)
    store, digest = update_store(args, [_ad(2)], NOW + timedelta(hours=1))

    assert store["11164391385"].latest_reply_count == 6
    data = json.loads((tmp_path / "top24.json").read_text(encoding="utf-8"))
    assert data["count"] == digest.count == 1
    assert data["items"][0]["latestReplyCount"] == 6
    assert data["items"][0]["firstSeenAt"] == NOW.isoformat()
    saved = json.loads((tmp_path / "store.json").read_text(encoding="utf-8"))
    assert saved["11164391385"]["lastSeenAt"] == (NOW + timedelta(hours=1)).isoformat()


def test_main_reports_success(monkeypatch, tmp_path, capsys):
    async def fake_run(args):
        return {}, Digest(updated_at=NOW.isoformat())

    monkeypatch.setattr(pipeline, "run", fake_run)

    assert main(["--data-dir", str(tmp_path)]) == 0
    assert "Saved 0 top items; store size: 0" in capsys.readouterr().out


def test_main_returns_nonzero_on_failure(monkeypatch, tmp_path):
    async def failing_run(args):
        raise PersistenceError("disk full")

    monkeypatch.setattr(pipeline, "run", failing_run)

    assert main(["--data-dir", str(tmp_path)]) == 1
    assert not (tmp_path / "store.json").exists()


def test_main_rejects_invalid_arguments():
    assert main(["--max-passes", "0"]) == 2


def test_update_store_writes_nothing_when_digest_cannot_be_saved(tmp_path):
    (tmp_path / "top24.json").mkdir()
    args = parse_args(["--data-dir", str(tmp_path)])

    with pytest.raises(PersistenceError):
        update_store(args, [_ad(3)], NOW)

    assert not (tmp_path / "store.json").exists()
