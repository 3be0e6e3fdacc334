"""Local match reminders driven by the upcoming-matches list.

Preferences live in a small JSON file keyed by team id. Reminders are
APScheduler date jobs that call a pluggable `notify(title, body, data)`;
the default notifier only logs. Live and result alerts are stored with the
preferences but need a push backend and are not scheduled here.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from koi_feed.models import GAME_LABELS, Match, NotificationPreference

logger = logging.getLogger(__name__)

REMINDER_MINUTES = 15
JOB_PREFIX = "reminder-"

Notifier = Callable[[str, str, Dict[str, Any]], Any]


def log_notifier(title: str, body: str, data: Dict[str, Any]) -> None:
    logger.info("Reminder: %s | %s", title, body.replace("\n", " | "))


class NotificationPreferenceStore:
    """JSON key-value file mapping team id to NotificationPreference."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> Dict[str, NotificationPreference]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read notification preferences: %s", exc)
            return {}
        prefs = {}
        for team_id, entry in (raw or {}).items():
            if not isinstance(entry, dict):
                continue
            prefs[team_id] = NotificationPreference(
                team_id=team_id,
                enabled=bool(entry.get("enabled", True)),
                match_reminders=bool(entry.get("match_reminders", True)),
                live_alerts=bool(entry.get("live_alerts", False)),
                result_alerts=bool(entry.get("result_alerts", False)),
            )
        return prefs

    def save(self, prefs: Iterable[NotificationPreference]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {p.team_id: p.to_dict() for p in prefs}
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2)

    def get(self, team_id: str) -> Optional[NotificationPreference]:
        return self.load().get(team_id)

    def set(self, pref: NotificationPreference) -> None:
        prefs = self.load()
        prefs[pref.team_id] = pref
        self.save(prefs.values())


def match_start(match: Match, tz: ZoneInfo) -> Optional[datetime]:
    """Kickoff from the match's local "YYYY-MM-DD" date and "HH:MM" time."""
    try:
        naive = datetime.strptime(f"{match.date} {match.time}", "%Y-%m-%d %H:%M")
    except (TypeError, ValueError):
        return None
    return naive.replace(tzinfo=tz)


def reminder_text(match: Match, minutes: int = REMINDER_MINUTES):
    label = GAME_LABELS.get(match.game, match.game)
    title = f"{match.home_team.name} vs {match.away_team.name}"
    body = f"{label} — {match.tournament}\nEmpieza en {minutes} minutos ({match.time})"
    return title, body


class ReminderScheduler:
    """Cancels and reschedules one reminder per eligible upcoming match."""

    def __init__(
        self,
        store: NotificationPreferenceStore,
        notify: Notifier = log_notifier,
        timezone_name: str = "Europe/Madrid",
        minutes: int = REMINDER_MINUTES,
        scheduler: Optional[BackgroundScheduler] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.store = store
        self.notify = notify
        self.tz = ZoneInfo(timezone_name)
        self.minutes = minutes
        self.scheduler = scheduler or BackgroundScheduler(timezone=self.tz)
        self._now = now

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def cancel_all(self) -> None:
        for job in self.scheduler.get_jobs():
            if job.id.startswith(JOB_PREFIX):
                job.remove()

    def scheduled(self) -> List[str]:
        return [job.id for job in self.scheduler.get_jobs() if job.id.startswith(JOB_PREFIX)]

    def schedule_match_reminders(self, matches: Iterable[Match]) -> int:
        """Replace every pending reminder; returns how many were scheduled.

        Only upcoming matches of teams with reminders enabled are scheduled,
        `minutes` before kickoff. Trigger times already in the past are skipped.
        """
        self.cancel_all()

        enabled = {
            team_id for team_id, p in self.store.load().items()
            if p.enabled and p.match_reminders
        }
        if not enabled:
            return 0

        now = self._now()
        count = 0
        for match in matches:
            if match.status != "upcoming" or match.team_id not in enabled:
                continue
            start = match_start(match, self.tz)
            if start is None:
                continue
            trigger = start - timedelta(minutes=self.minutes)
            if trigger <= now:
                continue

            title, body = reminder_text(match, self.minutes)
            try:
                self.scheduler.add_job(
                    self.notify,
                    trigger=DateTrigger(run_date=trigger),
                    args=[title, body, {"match_id": match.id, "team_id": match.team_id}],
                    id=f"{JOB_PREFIX}{match.id}",
                    replace_existing=True,
                )
            except ValueError as exc:
                logger.warning("Failed to schedule reminder for %s: %s", match.id, exc)
                continue
            count += 1

        logger.info("Scheduled %d match reminders", count)
        return count
