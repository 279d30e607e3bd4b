"""Tests for config loading, scheduling and the CLI."""

import sys
import types
from unittest.mock import MagicMock, patch
from datetime import datetime, timedelta, timezone

import pytest
import yaml

from reply_renderer import cli
from reply_renderer.runner import (
    build_service,
    cron_fires,
    load_config,
    run,
    run_schedules,
    schedules_to_run,
    validate_config,
)

CONFIG = {
    "channels": {"pushplus": {"type": "pushplus", "token": "tok"}},
    "renderers": {"greet": "fake_renderers:greet"},
    "content": {
        "categories": {"news": {"renderer": "#greet"}},
        "items": {"item1": {"category": "news", "data": {"title": "Morning"}}},
    },
    "users": {"alice": {"platform": "pushplus"}},
    "schedules": [
        {"id": "morning", "cron": "0 8 * * *", "jobs": [{"user_id": "alice", "renderer": "!item1"}]},
        {"id": "evening", "cron": "0 20 * * *", "jobs": [{"user_id": "alice", "renderer": "#greet"}]},
    ],
}


@pytest.fixture(autouse=True)
def fake_renderers(monkeypatch):
    module = types.ModuleType("fake_renderers")
    module.rendered = []

    def greet(ctx):
        module.rendered.append(ctx)
        return {"title": ctx.get("title", "Hi"), "text": f"Hello {ctx['user']['id']}"}

    module.greet = greet
    monkeypatch.setitem(sys.modules, "fake_renderers", module)
    return module


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(CONFIG), encoding="utf-8")
    return path


class TestValidateConfig:
    def test_valid(self):
        validate_config(CONFIG)

    def test_empty_channels(self):
        with pytest.raises(ValueError, match="channels is empty"):
            validate_config({})

    def test_unknown_channel_type(self):
        with pytest.raises(ValueError, match="unknown type"):
            validate_config({"channels": {"fax": {}}})

    def test_bad_renderer_path(self):
        with pytest.raises(ValueError, match="module:callable"):
            validate_config(dict(CONFIG, renderers={"greet": "no_colon"}))

    def test_duplicate_schedule(self):
        schedules = [{"id": "a"}, {"id": "a"}]
        with pytest.raises(ValueError, match="duplicate"):
            validate_config(dict(CONFIG, schedules=schedules))

    def test_unknown_user(self):
        schedules = [{"id": "a", "jobs": [{"user_id": "bob", "renderer": "#greet"}]}]
        with pytest.raises(ValueError, match="bob"):
            validate_config(dict(CONFIG, schedules=schedules))

    def test_job_without_renderer(self):
        schedules = [{"id": "a", "jobs": [{"user_id": "alice"}]}]
        with pytest.raises(ValueError, match="renderer"):
            validate_config(dict(CONFIG, schedules=schedules))


class TestSchedulesToRun:
    def test_by_id(self):
        assert schedules_to_run(CONFIG, datetime.now(timezone.utc), "evening")[0]["id"] == "evening"

    def test_unknown_id(self):
        with pytest.raises(ValueError):
            schedules_to_run(CONFIG, datetime.now(timezone.utc), "noon")

    def test_cron_match(self):
        now = datetime(2024, 5, 1, 8, 0, 30, tzinfo=timezone.utc)
        assert [s["id"] for s in schedules_to_run(CONFIG, now, None)] == ["morning"]

    def test_cron_no_match(self):
        now = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
        assert schedules_to_run(CONFIG, now, None) == []

    def test_disabled_schedule_skipped(self):
        config = dict(CONFIG, schedules=[dict(CONFIG["schedules"][0], enabled=False)])
        now = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)
        assert schedules_to_run(config, now, None) == []
        assert schedules_to_run(config, now, "morning")[0]["id"] == "morning"

    def test_bad_cron_skipped(self):
        config = dict(CONFIG, schedules=[{"id": "bad", "cron": "not a cron"}])
        assert schedules_to_run(config, datetime.now(timezone.utc), None) == []


def test_cron_fires_uses_utc_minute():
    plus_two = timezone(timedelta(hours=2))
    assert cron_fires("0 8 * * *", datetime(2024, 5, 1, 10, 0, 59, tzinfo=plus_two))
    assert not cron_fires("0 8 * * *", datetime(2024, 5, 1, 8, 1, tzinfo=timezone.utc))


def test_load_config(config_file):
    assert load_config(config_file)["users"] == {"alice": {"platform": "pushplus"}}


@pytest.mark.asyncio
async def test_build_service_and_run_schedules(fake_renderers):
    service = build_service(CONFIG, dry_run=True)
    assert service.is_registered("greet")
    assert "pushplus" in service.channels

    failed = await run_schedules(service, CONFIG["schedules"])
    assert failed == 0
    assert fake_renderers.rendered[0]["title"] == "Morning"
    assert fake_renderers.rendered[1]["user"]["id"] == "alice"


@pytest.mark.asyncio
async def test_failed_job_does_not_stop_others(fake_renderers):
    service = build_service(CONFIG, dry_run=True)
    schedules = [{"id": "x", "jobs": [
        {"user_id": "alice", "renderer": "#missing"},
        {"user_id": "alice", "renderer": "#greet"},
    ]}]
    assert await run_schedules(service, schedules) == 1
    assert len(fake_renderers.rendered) == 1


def test_run_dry_run(config_file, fake_renderers):
    assert run(config_file, schedule_id="morning", dry_run=True) == 0
    assert fake_renderers.rendered[0]["title"] == "Morning"


def test_run_missing_config(tmp_path):
    with pytest.raises(FileNotFoundError):
        run(tmp_path / "nope.yaml")


def test_cli_missing_config_exits(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(SystemExit) as exc:
        cli.main(["run", "--config", str(tmp_path / "nope.yaml")])
    assert exc.value.code == 1


def test_cli_dry_run(config_file, tmp_path, monkeypatch, fake_renderers):
    monkeypatch.chdir(tmp_path)
    cli.main(["run", "--config", str(config_file), "--schedule", "evening", "--dry-run"])
    assert len(fake_renderers.rendered) == 1


@pytest.mark.asyncio
async def test_user_channel_topic_reaches_pushplus(fake_renderers):
    users = {"alice": {"platform": "pushplus", "channel": {"topic": "family"}}}
    service = build_service(dict(CONFIG, users=users))
    resp = MagicMock(status_code=200)
    resp.json.return_value = {"code": 200}
    with patch("reply_renderer.channel.pushplus.requests.post", return_value=resp) as post:
        await service.proactive.send_to_user("alice", "#greet")
    sent = post.call_args.kwargs["json"]
    assert sent["topic"] == "family"
    assert sent["content"] == "Hello alice"


def test_cli_log_options(config_file, tmp_path, fake_renderers):
    cli.main([
        "--log-level", "DEBUG", "--log-dir", str(tmp_path / "logs"),
        "run", "--config", str(config_file), "--schedule", "morning", "--dry-run",
    ])
    assert fake_renderers.rendered[0]["title"] == "Morning"
