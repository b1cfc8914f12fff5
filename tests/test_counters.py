"""Tests for atomic counter updates and counter rebuilding."""

import threading
from datetime import datetime, timezone

from sqlalchemy.exc import OperationalError

from forum.database import make_session_factory
from forum.models import Category, Thread
from forum.services.counter_service import CounterService
from forum.services.stats_service import StatsService
from forum.services.thread_service import ThreadService
from tests.conftest import assign, grant, make_category, make_post, make_role, make_thread


class TestCounterService:

    def test_increment_and_decrement(self, db):
        category = make_category(db)
        counters = CounterService(db)

        assert counters.adjust_category_threads(category.id, 3) is True
        assert counters.adjust_category_threads(category.id, -1) is True
        db.expire_all()

        assert db.get(Category, category.id).thread_count == 2

    def test_never_below_zero(self, db):
        category = make_category(db)
        thread = make_thread(db, category)
        counters = CounterService(db)

        counters.adjust_category_posts(category.id, -5)
        counters.adjust_thread_posts(thread.id, -1)
        db.expire_all()

        assert db.get(Category, category.id).post_count == 0
        assert db.get(Thread, thread.id).post_count == 0

    def test_failure_is_swallowed(self, db, monkeypatch):
        category = make_category(db)
        counters = CounterService(db)

        def broken(*args, **kwargs):
            raise OperationalError("UPDATE", {}, Exception("database is locked"))

        monkeypatch.setattr(db, "execute", broken)

        assert counters.adjust_category_threads(category.id, 1) is False

    def test_concurrent_increments_are_not_lost(self, file_engine):
        factory = make_session_factory(file_engine)
        with factory() as session:
            category = make_category(session)
            category_id = category.id

        workers, per_worker = 4, 25
        errors = []

        def work():
            session = factory()
            try:
                counters = CounterService(session)
                for _ in range(per_worker):
                    if not counters.adjust_category_posts(category_id, 1):
                        errors.append("update failed")
            finally:
                session.close()

        threads = [threading.Thread(target=work) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        with factory() as session:
            assert session.get(Category, category_id).post_count == workers * per_worker

    def test_concurrent_replies_keep_counts_consistent(self, file_engine):
        factory = make_session_factory(file_engine)
        workers, per_worker = 4, 10
        users = [f"user{i}" for i in range(workers)]
        with factory() as session:
            members = make_role(session, "Members", role_type="default", is_system_role=True)
            category = make_category(session, "Busy")
            grant(session, category, members, can_view=True, can_post=True, can_reply=True)
            for user_id in users:
                assign(session, user_id, members)
            thread = make_thread(session, category)
            category_id, thread_id = category.id, thread.id

        errors = []

        def work(user_id):
            session = factory()
            try:
                service = ThreadService(session)
                for i in range(per_worker):
                    service.create_post(user_id, thread_id, f"reply {i} from {user_id}")
            except Exception as e:
                errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=work, args=(user_id,)) for user_id in users]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        expected = workers * per_worker
        with factory() as session:
            assert session.get(Thread, thread_id).post_count == expected
            assert session.get(Category, category_id).post_count == expected
            assert StatsService(session).rebuild_thread_stats(thread_id) == expected


class TestStatsService:
    """Rebuilding counts only live replies and live threads."""

    def test_rebuild_thread_stats(self, db):
        category = make_category(db)
        thread = make_thread(db, category, post_count=40)
        make_post(db, thread)
        make_post(db, thread)
        make_post(db, thread, deleted_at=datetime.now(timezone.utc))

        assert StatsService(db).rebuild_thread_stats(thread.id) == 2
        db.expire_all()
        assert db.get(Thread, thread.id).post_count == 2

    def test_rebuild_all(self, db):
        category = make_category(db, thread_count=9, post_count=9)
        empty = make_category(db, "Empty", thread_count=3, post_count=3)
        live = make_thread(db, category)
        gone = make_thread(db, category, deleted_at=datetime.now(timezone.utc))
        make_post(db, live)
        make_post(db, gone)
        stats = StatsService(db)

        assert stats.rebuild_all_thread_stats() == 1
        assert stats.rebuild_all_category_stats() == 2
        db.expire_all()

        assert db.get(Thread, live.id).post_count == 1
        refreshed = db.get(Category, category.id)
        assert (refreshed.thread_count, refreshed.post_count) == (1, 1)
        refreshed_empty = db.get(Category, empty.id)
        assert (refreshed_empty.thread_count, refreshed_empty.post_count) == (0, 0)

    def test_rebuild_one_category(self, db):
        category = make_category(db, thread_count=5, post_count=5)
        thread = make_thread(db, category)
        make_post(db, thread)

        assert StatsService(db).rebuild_category_stats(category.id) == {"thread_count": 1, "post_count": 1}
