"""Tests for the job-alert dispatcher."""

import threading
from datetime import timedelta

import pytest

from conftest import BASE_URL, NOW, FakeSender
from hireloop.config import AppConfig, DispatchConfig
from hireloop.dispatch import run as run_module
from hireloop.dispatch.dispatcher import DispatchRun, NotificationDispatcher
from hireloop.dispatch.matching import JobSummary
from hireloop.dispatch.run import DispatchAlreadyRunning, run_dispatch
from hireloop.models import SavedSearch
from hireloop.storage.directory import UserDirectory
from hireloop.storage.saved_searches import SavedSearchStore
from hireloop.utils.dates import ensure_utc


class FakeMatchEngine:
    """Returns ``default`` jobs per call unless the keyword is listed in ``results``."""

    def __init__(self, default=3, results=None, fail_for=()):
        self.default = default
        self.results = results or {}
        self.fail_for = set(fail_for)
        self.calls = []
        self._lock = threading.Lock()

    def match(self, criteria, since):
        with self._lock:
            self.calls.append((criteria, since))
        keyword = criteria.get("keyword")
        if keyword in self.fail_for:
            raise RuntimeError("search index unavailable")
        count = self.results.get(keyword, self.default)
        return [
            JobSummary(
                id=i,
                title=f"Instructor {i}",
                company="Windy Bay",
                url=f"{BASE_URL}/jobs/{i}",
                city="Tarifa",
                created_at=NOW - timedelta(hours=2),
            )
            for i in range(1, count + 1)
        ]


def _dispatcher(session_factory, sender, engine, dry_run=False, **config):
    return NotificationDispatcher(
        store=SavedSearchStore(session_factory),
        users=UserDirectory(session_factory),
        match_engine=engine,
        sender=sender,
        base_url=BASE_URL,
        config=DispatchConfig(**config),
        dry_run=dry_run,
    )


def _search(session_factory, search_id):
    with session_factory() as s:
        return s.get(SavedSearch, search_id)


@pytest.fixture
def seeker(make_user):
    return make_user(name="Sam Seeker", email="sam@example.com")


@pytest.fixture
def engine_3():
    return FakeMatchEngine(default=3)


class TestEligibility:
    def test_daily_overdue_sends_one_alert(self, session_factory, sender, engine_3, make_search, seeker):
        search = make_search(seeker, "daily", keyword="kite", last_sent=NOW - timedelta(hours=25))

        summary = _dispatcher(session_factory, sender, engine_3).run(NOW)

        assert summary.emails_sent == 1
        assert summary.processed == 1
        assert len(sender.sent) == 1
        assert sender.sent[0]["subject"] == "New Jobs Matching Your Search - 3 jobs found"
        assert ensure_utc(_search(session_factory, search.id).last_sent) == NOW

    def test_match_window_starts_at_last_sent(self, session_factory, sender, engine_3, make_search, seeker):
        make_search(seeker, "daily", keyword="kite", last_sent=NOW - timedelta(hours=25))
        _dispatcher(session_factory, sender, engine_3).run(NOW)
        criteria, since = engine_3.calls[0]
        assert criteria == {"keyword": "kite"}
        assert since == NOW - timedelta(hours=25)

    def test_never_sent_uses_window_start(self, session_factory, sender, engine_3, make_search, seeker):
        make_search(seeker, "weekly", keyword="kite")
        _dispatcher(session_factory, sender, engine_3).run(NOW)
        assert engine_3.calls[0][1] == NOW - timedelta(days=7)

    def test_daily_too_recent_skipped(self, session_factory, sender, engine_3, make_search, seeker):
        make_search(seeker, "daily", last_sent=NOW - timedelta(hours=23))

        summary = _dispatcher(session_factory, sender, engine_3).run(NOW)

        assert summary.total_searches == 1
        assert summary.processed == 0
        assert summary.suppressed == 0
        assert sender.sent == []

    @pytest.mark.parametrize("days_ago,expected", [(6, 0), (8, 1)])
    def test_weekly_window(self, session_factory, sender, engine_3, make_search, seeker, days_ago, expected):
        make_search(seeker, "weekly", last_sent=NOW - timedelta(days=days_ago))
        summary = _dispatcher(session_factory, sender, engine_3).run(NOW)
        assert summary.emails_sent == expected

    def test_never_frequency_skipped(self, session_factory, sender, engine_3, make_search, seeker):
        make_search(seeker, "never")
        summary = _dispatcher(session_factory, sender, engine_3).run(NOW)
        assert summary.total_searches == 1
        assert summary.processed == 0
        assert engine_3.calls == []

    def test_inactive_searches_ignored(self, session_factory, sender, engine_3, make_search, seeker):
        make_search(seeker, "daily", active=False)
        summary = _dispatcher(session_factory, sender, engine_3).run(NOW)
        assert summary.total_searches == 0

    def test_configurable_daily_window(self, session_factory, sender, engine_3, make_search, seeker):
        make_search(seeker, "daily", last_sent=NOW - timedelta(hours=13))
        summary = _dispatcher(session_factory, sender, engine_3, daily_window_hours=12).run(NOW)
        assert summary.emails_sent == 1


class TestPerUserCap:
    def test_two_searches_same_user_one_email(self, session_factory, sender, engine_3, make_search, seeker):
        first = make_search(seeker, "daily", keyword="kite", name="Kite jobs")
        second = make_search(seeker, "daily", keyword="surf", name="Surf jobs")

        summary = _dispatcher(session_factory, sender, engine_3).run(NOW)

        assert summary.emails_sent == 1
        assert summary.suppressed == 1
        assert summary.processed == 2
        assert len(sender.to("sam@example.com")) == 1
        assert ensure_utc(_search(session_factory, first.id).last_sent) == NOW
        assert _search(session_factory, second.id).last_sent is None

    def test_rerun_sends_nothing_for_other_searches(self, session_factory, sender, engine_3, make_search, seeker):
        make_search(seeker, "daily", keyword="kite")
        second = make_search(seeker, "daily", keyword="surf")
        dispatcher = _dispatcher(session_factory, sender, engine_3)

        dispatcher.run(NOW)
        again = dispatcher.run(NOW)
        later = dispatcher.run(NOW + timedelta(hours=1))

        assert len(sender.to("sam@example.com")) == 1
        assert again.emails_sent == 0
        assert again.suppressed == 1
        assert later.emails_sent == 0
        assert _search(session_factory, second.id).last_sent is None

    def test_rerun_with_workers_sends_nothing(self, session_factory, sender, engine_3, make_search, make_user):
        users = [make_user(email=f"rider{i}@sea.test") for i in range(5)]
        for user in users:
            make_search(user, "daily", keyword="kite", last_sent=NOW - timedelta(hours=25))
            make_search(user, "weekly", keyword="surf")
        dispatcher = _dispatcher(session_factory, sender, engine_3, workers=4)

        first = dispatcher.run(NOW)
        second = dispatcher.run(NOW)

        assert first.emails_sent == 5
        assert first.suppressed == 5
        assert second.processed == 5
        assert second.emails_sent == 0
        assert second.suppressed == 5
        assert len(sender.sent) == 5

    def test_other_search_free_after_cap_window(self, session_factory, sender, engine_3, make_search, seeker):
        make_search(seeker, "weekly", keyword="kite", last_sent=NOW - timedelta(hours=25))
        surf = make_search(seeker, "daily", keyword="surf")

        summary = _dispatcher(session_factory, sender, engine_3).run(NOW)

        assert summary.emails_sent == 1
        assert ensure_utc(_search(session_factory, surf.id).last_sent) == NOW

    def test_cap_is_per_user(self, session_factory, sender, engine_3, make_search, make_user, seeker):
        other = make_user(email="olga@example.com")
        make_search(seeker, "daily")
        make_search(other, "daily")

        summary = _dispatcher(session_factory, sender, engine_3).run(NOW)

        assert summary.emails_sent == 2
        assert summary.suppressed == 0

    def test_parallel_workers_keep_cap(self, session_factory, sender, engine_3, make_search, make_user):
        users = [make_user(email=f"user{i}@sea.test") for i in range(6)]
        for user in users:
            for keyword in ("kite", "surf", "sail"):
                make_search(user, "daily", keyword=keyword)

        summary = _dispatcher(session_factory, sender, engine_3, workers=4).run(NOW)

        assert summary.total_searches == 18
        assert summary.emails_sent == 6
        assert summary.suppressed == 12
        for user in users:
            assert len(sender.to(user.email)) == 1


class TestHeartbeat:
    def test_zero_matches_sends_heartbeat(self, session_factory, sender, make_search, seeker):
        search = make_search(seeker, "daily", name="Tarifa kite", last_sent=NOW - timedelta(days=2))

        summary = _dispatcher(session_factory, sender, FakeMatchEngine(default=0)).run(NOW)

        assert summary.heartbeat_sent == 1
        assert summary.emails_sent == 0
        assert summary.suppressed == 1
        assert sender.sent[0]["subject"] == 'Your job search "Tarifa kite" is still active'
        stored = _search(session_factory, search.id)
        assert ensure_utc(stored.last_heartbeat_sent) == NOW
        assert ensure_utc(stored.last_sent) == NOW - timedelta(days=2)

    def test_heartbeat_leaves_last_sent_unset(self, session_factory, sender, make_search, seeker):
        search = make_search(seeker, "daily")
        _dispatcher(session_factory, sender, FakeMatchEngine(default=0)).run(NOW)
        assert _search(session_factory, search.id).last_sent is None

    def test_heartbeat_monthly(self, session_factory, sender, make_search, seeker):
        make_search(seeker, "daily", last_heartbeat_sent=NOW - timedelta(days=10))

        summary = _dispatcher(session_factory, sender, FakeMatchEngine(default=0)).run(NOW)

        assert summary.heartbeat_sent == 0
        assert summary.suppressed == 1
        assert sender.sent == []

    def test_old_heartbeat_is_due_again(self, session_factory, sender, make_search, seeker):
        make_search(seeker, "daily", last_heartbeat_sent=NOW - timedelta(days=31))
        summary = _dispatcher(session_factory, sender, FakeMatchEngine(default=0)).run(NOW)
        assert summary.heartbeat_sent == 1

    def test_heartbeat_does_not_count_towards_cap(self, session_factory, sender, make_search, seeker):
        make_search(seeker, "weekly", keyword="empty")
        make_search(seeker, "daily", keyword="kite")
        engine = FakeMatchEngine(default=3, results={"empty": 0})

        summary = _dispatcher(session_factory, sender, engine).run(NOW)

        assert summary.heartbeat_sent == 1
        assert summary.emails_sent == 1
        assert len(sender.to("sam@example.com")) == 2

    def test_capped_user_skips_matching(self, session_factory, sender, make_search, seeker):
        make_search(seeker, "daily", keyword="kite")
        make_search(seeker, "daily", keyword="empty")
        engine = FakeMatchEngine(default=3, results={"empty": 0})

        summary = _dispatcher(session_factory, sender, engine).run(NOW)

        assert summary.emails_sent == 1
        assert summary.heartbeat_sent == 0
        assert summary.suppressed == 1
        assert len(engine.calls) == 1

    def test_heartbeat_category_and_tags(self, session_factory, sender, make_search, seeker):
        search = make_search(seeker, "daily")
        _dispatcher(session_factory, sender, FakeMatchEngine(default=0)).run(NOW)
        email = sender.sent[0]
        assert email["category"].value == "user_notification"
        assert {"name": "search_id", "value": str(search.id)} in email["tags"]


class TestIdempotence:
    def test_second_run_sends_nothing(self, session_factory, sender, engine_3, make_search, make_user, seeker):
        other = make_user(email="olga@example.com")
        make_search(seeker, "daily", keyword="kite")
        make_search(other, "weekly", keyword="surf")
        make_search(make_user(email="nina@example.com"), "daily", keyword="empty")
        engine = FakeMatchEngine(default=3, results={"empty": 0})
        dispatcher = _dispatcher(session_factory, sender, engine)

        first = dispatcher.run(NOW)
        sent_after_first = len(sender.sent)
        second = dispatcher.run(NOW)

        assert first.emails_sent == 2
        assert first.heartbeat_sent == 1
        assert len(sender.sent) == sent_after_first
        assert second.emails_sent == 0
        assert second.heartbeat_sent == 0

    def test_zero_match_search_keeps_same_window(self, session_factory, sender, make_search, seeker):
        make_search(seeker, "daily", last_sent=NOW - timedelta(days=3))
        engine = FakeMatchEngine(default=0)
        dispatcher = _dispatcher(session_factory, sender, engine)

        dispatcher.run(NOW)
        dispatcher.run(NOW + timedelta(hours=1))

        assert [since for _, since in engine.calls] == [NOW - timedelta(days=3)] * 2


class TestFailures:
    def test_missing_user_is_skipped(self, session_factory, sender, engine_3, make_search, make_user):
        gone = make_user(is_active=False)
        make_search(gone, "daily")

        summary = _dispatcher(session_factory, sender, engine_3).run(NOW)

        assert summary.processed == 1
        assert summary.errors == 0
        assert sender.sent == []

    def test_user_without_email_is_skipped(self, session_factory, sender, engine_3, make_search, make_user):
        make_search(make_user(email=""), "daily")
        summary = _dispatcher(session_factory, sender, engine_3).run(NOW)
        assert summary.processed == 1
        assert sender.sent == []

    def test_match_error_does_not_stop_run(self, session_factory, sender, make_search, make_user, seeker):
        other = make_user(email="olga@example.com")
        make_search(seeker, "daily", keyword="broken")
        make_search(other, "daily", keyword="kite")

        summary = _dispatcher(session_factory, sender, FakeMatchEngine(fail_for={"broken"})).run(NOW)

        assert summary.errors == 1
        assert summary.emails_sent == 1
        assert len(sender.to("olga@example.com")) == 1

    def test_failed_send_is_counted_and_not_stamped(self, session_factory, engine_3, make_search, seeker):
        search = make_search(seeker, "daily")
        sender = FakeSender(fail_for={"sam@example.com"})

        summary = _dispatcher(session_factory, sender, engine_3).run(NOW)

        assert summary.errors == 1
        assert summary.emails_sent == 0
        assert _search(session_factory, search.id).last_sent is None

    def test_failed_send_does_not_consume_cap(self, session_factory, engine_3, make_search, seeker):
        make_search(seeker, "daily", keyword="kite")
        make_search(seeker, "daily", keyword="surf")
        sender = FakeSender(fail_for={"sam@example.com"})

        summary = _dispatcher(session_factory, sender, engine_3).run(NOW)

        assert summary.errors == 2
        assert summary.suppressed == 0

    def test_sender_exception_is_contained(self, session_factory, engine_3, make_search, make_user, seeker):
        make_search(seeker, "daily")
        make_search(make_user(email="olga@example.com"), "daily")
        sender = FakeSender(raise_for={"sam@example.com"})

        summary = _dispatcher(session_factory, sender, engine_3).run(NOW)

        assert summary.errors == 1
        assert summary.emails_sent == 1


class TestDryRun:
    def test_dry_run_sends_and_stamps_nothing(self, session_factory, sender, engine_3, make_search, seeker):
        search = make_search(seeker, "daily", keyword="kite")
        make_search(seeker, "daily", keyword="surf")

        summary = _dispatcher(session_factory, sender, engine_3, dry_run=True).run(NOW)

        assert sender.sent == []
        assert summary.emails_sent == 1
        assert summary.suppressed == 1
        assert _search(session_factory, search.id).last_sent is None


class TestDispatchRun:
    def test_cap_after_alert(self):
        run = DispatchRun(NOW)
        assert not run.alert_capped(1)
        run.record_alert(1)
        assert run.alert_capped(1)
        assert not run.alert_capped(2)
        assert run.counters["emails_sent"] == 1

    def test_seeded_from_persisted_alerts(self):
        searches = [
            SavedSearch(id=1, user_id=7, frequency="daily", last_sent=NOW - timedelta(hours=2)),
            SavedSearch(id=2, user_id=7, frequency="weekly"),
            SavedSearch(id=3, user_id=8, frequency="daily", last_sent=NOW - timedelta(hours=30)),
        ]
        run = DispatchRun(NOW, searches)

        assert run.alert_capped(7, search_id=2)
        assert not run.alert_capped(7, search_id=1)
        assert not run.alert_capped(8, search_id=3)
        assert run.counters["suppressed"] == 0

    def test_runs_share_nothing(self):
        first, second = DispatchRun(NOW), DispatchRun(NOW)
        first.record_alert(1)
        assert not second.alert_capped(1)
        assert second.counters["emails_sent"] == 0

    def test_summary_dict(self):
        run = DispatchRun(NOW)
        run.increment("suppressed")
        data = run.summary(total_searches=4).to_dict()
        assert data == {
            "total_searches": 4,
            "processed": 0,
            "emails_sent": 0,
            "heartbeat_sent": 0,
            "suppressed": 1,
            "errors": 0,
            "timestamp": NOW.isoformat(),
        }


class TestRunDispatch:
    def test_records_history(self, session_factory, sender, engine_3, make_search, seeker):
        make_search(seeker, "daily")

        summary = run_dispatch(
            now=NOW, config=AppConfig(), session_factory=session_factory, sender=sender, match_engine=engine_3
        )

        assert summary.emails_sent == 1
        stats = SavedSearchStore(session_factory).get_stats()
        assert stats["total_runs"] == 1
        assert stats["active_searches"] == 1
        assert stats["last_run"]["emails_sent"] == 1

    def test_dry_run_records_nothing(self, session_factory, sender, engine_3, make_search, seeker):
        make_search(seeker, "daily")
        run_dispatch(
            now=NOW, session_factory=session_factory, sender=sender, match_engine=engine_3, dry_run=True
        )
        assert SavedSearchStore(session_factory).get_stats()["total_runs"] == 0

    def test_overlapping_run_refused(self, session_factory, sender, engine_3):
        assert run_module._run_lock.acquire(blocking=False)
        try:
            with pytest.raises(DispatchAlreadyRunning):
                run_dispatch(now=NOW, session_factory=session_factory, sender=sender, match_engine=engine_3)
        finally:
            run_module._run_lock.release()

    def test_lock_released_after_run(self, session_factory, sender, engine_3):
        run_dispatch(now=NOW, session_factory=session_factory, sender=sender, match_engine=engine_3)
        run_dispatch(now=NOW, session_factory=session_factory, sender=sender, match_engine=engine_3)
