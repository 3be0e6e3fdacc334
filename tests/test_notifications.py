from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from apscheduler.schedulers.background import BackgroundScheduler

from koi_feed.models import Match, MatchTeam, NotificationPreference
from koi_feed.notifications import (
    NotificationPreferenceStore,
    ReminderScheduler,
    match_start,
    reminder_text,
)

MADRID = ZoneInfo("Europe/Madrid")
NOON_UTC = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)


def _match(mid, team_id="panda-1", time="18:00", status="upcoming", day="2026-01-10"):
    return Match(
        id=mid,
        team_id=team_id,
        game="league_of_legends",
        tournament="LEC — Winter 2026",
        date=day,
        time=time,
        status=status,
        home_team=MatchTeam(name="Movistar KOI", tag="KOI"),
        away_team=MatchTeam(name="Team Heretics", tag="TH"),
    )


def _scheduler(tmp_path, prefs=()):
    store = NotificationPreferenceStore(tmp_path / "prefs.json")
    for p in prefs:
        store.set(p)
    return ReminderScheduler(
        store,
        notify=lambda title, body, data: None,
        scheduler=BackgroundScheduler(timezone=MADRID),
        now=lambda: NOON_UTC,
    )


def test_store_round_trip_and_missing_file(tmp_path):
    store = NotificationPreferenceStore(tmp_path / "nested" / "prefs.json")
    assert store.load() == {}
    store.set(NotificationPreference(team_id="panda-1", live_alerts=True))
    store.set(NotificationPreference(team_id="static-tft", enabled=False))

    assert store.get("panda-1").live_alerts is True
    assert store.get("static-tft").enabled is False
    assert sorted(store.load()) == ["panda-1", "static-tft"]
    assert store.get("panda-2") is None


def test_unreadable_store_loads_empty(tmp_path):
    path = tmp_path / "prefs.json"
    path.write_text("{not json", encoding="utf-8")
    assert NotificationPreferenceStore(path).load() == {}


def test_match_start_is_local_time():
    start = match_start(_match("m1"), MADRID)
    assert start.astimezone(timezone.utc) == datetime(2026, 1, 10, 17, 0, tzinfo=timezone.utc)
    assert match_start(_match("m1", time="TBD"), MADRID) is None


def test_reminder_text():
    title, body = reminder_text(_match("m1"), 15)
    assert title == "Movistar KOI vs Team Heretics"
    assert body == "League of Legends — LEC — Winter 2026\nEmpieza en 15 minutos (18:00)"


def test_reminders_only_for_enabled_upcoming_future_matches(tmp_path):
    reminders = _scheduler(tmp_path, [
        NotificationPreference(team_id="panda-1"),
        NotificationPreference(team_id="panda-2", enabled=False),
        NotificationPreference(team_id="panda-3", match_reminders=False),
    ])
    matches = [
        _match("panda-match-1"),
        _match("panda-match-2", time="12:05"),
        _match("panda-match-3", status="live"),
        _match("panda-match-4", team_id="panda-2"),
        _match("panda-match-5", team_id="panda-3"),
        _match("panda-match-6", team_id="panda-9"),
    ]
    assert reminders.schedule_match_reminders(matches) == 1
    assert reminders.scheduled() == ["reminder-panda-match-1"]

    job = reminders.scheduler.get_jobs()[0]
    assert job.args[2] == {"match_id": "panda-match-1", "team_id": "panda-1"}
    assert job.trigger.run_date.astimezone(timezone.utc) == datetime(2026, 1, 10, 16, 45, tzinfo=timezone.utc)


def test_rescheduling_replaces_previous_reminders(tmp_path):
    reminders = _scheduler(tmp_path, [NotificationPreference(team_id="panda-1")])
    reminders.schedule_match_reminders([_match("panda-match-1"), _match("panda-match-2", day="2026-01-11")])
    assert sorted(reminders.scheduled()) == ["reminder-panda-match-1", "reminder-panda-match-2"]

    reminders.schedule_match_reminders([_match("panda-match-2", day="2026-01-11")])
    assert reminders.scheduled() == ["reminder-panda-match-2"]


def test_no_preferences_schedules_nothing(tmp_path):
    reminders = _scheduler(tmp_path)
    assert reminders.schedule_match_reminders([_match("panda-match-1")]) == 0
    assert reminders.scheduled() == []


def test_cancel_all_keeps_foreign_jobs(tmp_path):
    reminders = _scheduler(tmp_path, [NotificationPreference(team_id="panda-1")])
    reminders.scheduler.add_job(lambda: None, "interval", minutes=5, id="housekeeping")
    reminders.schedule_match_reminders([_match("panda-match-1")])
    reminders.cancel_all()
    assert [j.id for j in reminders.scheduler.get_jobs()] == ["housekeeping"]
