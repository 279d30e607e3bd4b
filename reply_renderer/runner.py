"""Runner: load config, build the service, match schedules by cron or --schedule, send jobs."""
from __future__ import annotations

import asyncio
import importlib
import logging
from datetime import datetime, timezone, timedelta
from pathlib import Path
from typing import Optional

import yaml
from croniter import croniter

from reply_renderer.channel import OutgoingRouter, get_channel
from reply_renderer.content import InMemoryContentStore
from reply_renderer.models import RenderFn
from reply_renderer.proactive import InMemoryUserStorage
from reply_renderer.service import RenderingService

logger = logging.getLogger(__name__)


def load_config(path: str | Path) -> dict:
    """Load YAML config from path."""
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def validate_config(config: dict) -> None:
    """Validate channels, renderers, users and schedules; raise ValueError on error."""
    channels = config.get("channels") or {}
    renderers = config.get("renderers") or {}
    users = config.get("users") or {}
    schedules = config.get("schedules") or []

    if not channels:
        raise ValueError("config: channels is empty")
    if not isinstance(channels, dict):
        raise ValueError("config: channels must be a dict")
    for platform, cfg in channels.items():
        chan_type = (cfg or {}).get("type", platform)
        try:
            get_channel(chan_type)
        except ValueError:
            raise ValueError(f"config: channel '{platform}' has unknown type '{chan_type}'")

    if not isinstance(renderers, dict):
        raise ValueError("config: renderers must be a dict")
    for name, target in renderers.items():
        if not isinstance(target, str) or target.count(":") != 1:
            raise ValueError(f"config: renderer '{name}' must be a 'module:callable' path")

    if not isinstance(users, dict):
        raise ValueError("config: users must be a dict")

    seen_schedule_ids = set()
    for i, sch in enumerate(schedules):
        if not isinstance(sch, dict):
            raise ValueError(f"config: schedules[{i}] must be a dict")
        sid = sch.get("id")
        if not sid:
            raise ValueError(f"config: schedules[{i}] missing 'id'")
        if sid in seen_schedule_ids:
            raise ValueError(f"config: duplicate schedule id '{sid}'")
        seen_schedule_ids.add(sid)
        jobs = sch.get("jobs") or []
        for j, job in enumerate(jobs):
            if not isinstance(job, dict):
                raise ValueError(f"config: schedules[{i}].jobs[{j}] must be a dict")
            uid = job.get("user_id")
            if uid not in users:
                raise ValueError(f"config: job user_id '{uid}' not in users")
            if not job.get("renderer"):
                raise ValueError(f"config: job missing 'renderer'")


def import_renderer(target: str) -> RenderFn:
    """Import 'package.module:callable'."""
    module_name, _, attr = target.partition(":")
    module = importlib.import_module(module_name)
    return getattr(module, attr)


def build_service(config: dict, dry_run: bool = False) -> RenderingService:
    """Create a RenderingService with channels, renderers, content and users from config."""
    router = OutgoingRouter(dry_run=dry_run)
    service = RenderingService(
        send_outgoing=router,
        content_store=InMemoryContentStore.from_config(config.get("content")),
        storage=InMemoryUserStorage(config.get("users")),
    )
    for platform, cfg in (config.get("channels") or {}).items():
        cfg = dict(cfg or {})
        channel_cls = get_channel(cfg.pop("type", platform))
        channel = channel_cls(platform=platform, **cfg)
        router.add(channel)
        service.register_channel(platform, channel.process_outgoing)
    for name, target in (config.get("renderers") or {}).items():
        service.register(name, import_renderer(target))
    return service


def cron_fires(cron_expr: str, now: datetime) -> bool:
    """True if cron_expr has a run in the UTC minute containing now."""
    minute = now.astimezone(timezone.utc).replace(second=0, microsecond=0)
    fire = croniter(cron_expr, minute - timedelta(minutes=1)).get_next(datetime)
    if fire.tzinfo is None:
        fire = fire.replace(tzinfo=timezone.utc)
    return fire == minute


def schedules_to_run(config: dict, now: datetime, schedule_id: Optional[str]) -> list[dict]:
    """Pick the schedule named schedule_id, or every enabled schedule due at now."""
    schedules = config.get("schedules") or []
    if schedule_id is not None:
        matching = [sch for sch in schedules if sch.get("id") == schedule_id]
        if not matching:
            raise ValueError(f"schedule id '{schedule_id}' not found in config")
        return matching[:1]

    due = []
    for sch in schedules:
        if not sch.get("cron") or sch.get("enabled", True) is False:
            continue
        try:
            if cron_fires(sch["cron"], now):
                due.append(sch)
        except (ValueError, KeyError) as e:
            logger.warning("skipping schedule %s, bad cron %r: %s", sch.get("id"), sch["cron"], e)
    return due


async def run_schedules(service: RenderingService, schedules: list[dict]) -> int:
    """Send every job of every schedule in order; returns the number of failed jobs."""
    failed = 0
    for sch in schedules:
        sid = sch.get("id", "?")
        for job in sch.get("jobs") or []:
            user_id = job["user_id"]
            renderer = job["renderer"]
            try:
                await service.proactive.send_to_user(user_id, renderer, job.get("data") or {})
            except Exception as e:
                failed += 1
                logger.exception("job failed schedule=%s user=%s renderer=%s: %s", sid, user_id, renderer, e)
    return failed


def run(config_path: str | Path, schedule_id: Optional[str] = None, dry_run: bool = False) -> int:
    """Load config, validate, run matched schedules and send messages.

    If dry_run is True, renderers are executed and messages are generated,
    but nothing is sent to channels; messages are only logged.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"config not found: {path}")

    config = load_config(path)
    validate_config(config)

    now = datetime.now(timezone.utc)
    schedules = schedules_to_run(config, now, schedule_id)
    if not schedules:
        logger.info("No schedules to run (current time does not match any cron). Use --schedule <id> to run a schedule anyway.")
        return 0
    if dry_run:
        logger.info("Dry-run mode enabled: will render messages but not send any to channels.")
    logger.info("Running %s schedule(s): %s", len(schedules), [s.get("id") for s in schedules])

    service = build_service(config, dry_run=dry_run)
    return asyncio.run(run_schedules(service, schedules))
