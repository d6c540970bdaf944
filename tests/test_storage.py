"""Tests for the SQLAlchemy stores."""

from datetime import timedelta

import pytest

from conftest import NOW
from hireloop.errors import DuplicateApplication, NotFound
from hireloop.models import Application, Role, SavedSearch
from hireloop.storage.applications import ApplicationStore
from hireloop.storage.directory import JobDirectory, UserDirectory
from hireloop.storage.saved_searches import SavedSearchStore
from hireloop.utils.dates import ensure_utc


class TestApplicationStore:
    def test_get_missing(self, db):
        with pytest.raises(NotFound):
            ApplicationStore(db).get(42)

    def test_find_one_general_contact(self, db, make_application, recruiter, candidate, job):
        general = make_application(recruiter, candidate, status="contacted")
        make_application(recruiter, candidate, job, status="applied")

        found = ApplicationStore(db).find_one(recruiter_id=recruiter.id, candidate_id=candidate.id, job_id=None)
        assert found.id == general.id

    def test_duplicate_job_candidate_rejected(self, db, make_application, recruiter, candidate, job):
        make_application(recruiter, candidate, job)
        store = ApplicationStore(db)

        with pytest.raises(DuplicateApplication):
            store.save(Application(recruiter_id=recruiter.id, candidate_id=candidate.id, job_id=job.id))

        # Session is usable again after the rollback
        assert len(store.find_all(candidate_id=candidate.id)) == 1

    def test_second_general_contact_rejected(self, db, make_application, recruiter, candidate):
        make_application(recruiter, candidate, status="contacted")
        with pytest.raises(DuplicateApplication):
            ApplicationStore(db).save(
                Application(recruiter_id=recruiter.id, candidate_id=candidate.id, status="contacted")
            )

    def test_save_bumps_version(self, db, make_application, recruiter, candidate, job):
        created = make_application(recruiter, candidate, job)
        store = ApplicationStore(db)

        application = store.get(created.id)
        application.recruiter_notes = "Strong swimmer"
        store.save(application)

        assert application.version == created.version + 1


class TestSavedSearchStore:
    def test_list_active(self, session_factory, make_search, candidate):
        active = make_search(candidate, "daily")
        make_search(candidate, "daily", active=False)

        assert [s.id for s in SavedSearchStore(session_factory).list_active()] == [active.id]

    def test_update_only_given_timestamp(self, session_factory, make_search, candidate):
        heartbeat = NOW - timedelta(days=3)
        search = make_search(candidate, "weekly", last_heartbeat_sent=heartbeat)
        store = SavedSearchStore(session_factory)

        store.update_timestamps(search.id, last_sent=NOW)

        with session_factory() as s:
            stored = s.get(SavedSearch, search.id)
            assert ensure_utc(stored.last_sent) == NOW
            assert ensure_utc(stored.last_heartbeat_sent) == heartbeat

    def test_update_missing_search_is_quiet(self, session_factory):
        SavedSearchStore(session_factory).update_timestamps(999, last_sent=NOW)

    def test_stats(self, session_factory, make_search, candidate):
        store = SavedSearchStore(session_factory)
        assert store.get_stats() == {"active_searches": 0, "total_runs": 0}

        make_search(candidate, "daily")
        store.record_run({"total_searches": 1, "processed": 1, "errors": 1}, duration_seconds=0.5)

        stats = store.get_stats()
        assert stats["active_searches"] == 1
        assert stats["last_run"]["errors"] == 1
        assert stats["last_run"]["emails_sent"] == 0
        assert stats["last_run"]["duration_seconds"] == 0.5


class TestDirectories:
    def test_name_and_email(self, session_factory, recruiter):
        assert UserDirectory(session_factory).get_name_and_email(recruiter.id) == (
            "Rita Recruiter",
            "rita@windybay.test",
        )

    def test_unknown_user(self, session_factory):
        with pytest.raises(NotFound):
            UserDirectory(session_factory).get_name_and_email(999)

    def test_notes_enabled(self, session_factory, make_user):
        users = UserDirectory(session_factory)
        assert users.notes_enabled(make_user(Role.RECRUITER).id)
        assert not users.notes_enabled(make_user(Role.RECRUITER, notes_enabled=False).id)

    def test_published_jobs(self, session_factory, make_job, recruiter):
        published = make_job(recruiter)
        make_job(recruiter, title="Draft", published=False)
        assert [j.id for j in JobDirectory(session_factory).list_published(recruiter.id)] == [published.id]


class TestSavedSearchModel:
    def test_rejects_unknown_frequency(self):
        with pytest.raises(ValueError, match="Invalid frequency"):
            SavedSearch(user_id=1, frequency="hourly")

    @pytest.mark.parametrize("frequency", ["daily", "weekly", "never"])
    def test_accepts_known_frequencies(self, frequency):
        assert SavedSearch(user_id=1, frequency=frequency).frequency == frequency
