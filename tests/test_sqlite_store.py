"""Tests for grb SnippetStore: the transactional storage layer."""
import os
import sqlite3
import stat
import sys
import threading
import time

import pytest

from grb.errors import StorageUnavailable, StoreIOError
from grb.sqlite_store import SequenceGenerator, SnippetStore
from grb.types import Snippet


def _put(store, text, **fields):
    with store.write_transaction() as tx:
        snippet = Snippet(tx.next_id(), text, **fields)
        tx.put(snippet)
    return snippet


class TestOpen:
    def test_creates_file_and_parent(self, tmp_grb_dir):
        path = tmp_grb_dir / "nested" / "grb.db"
        with SnippetStore(db_path=path) as s:
            assert path.exists()
            assert s.view(lambda v: v.count()) == 0

    def test_default_path_under_grb_home(self, tmp_grb_dir):
        with SnippetStore() as s:
            assert s.db_path == tmp_grb_dir / "grb.db"

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_db_file_is_private(self, tmp_grb_dir):
        path = tmp_grb_dir / "private.db"
        SnippetStore(db_path=path).close()
        assert not path.stat().st_mode & (stat.S_IRWXG | stat.S_IRWXO)

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_tightens_existing_permissions(self, tmp_grb_dir):
        path = tmp_grb_dir / "open.db"
        path.touch()
        os.chmod(path, 0o644)
        SnippetStore(db_path=path).close()
        assert not path.stat().st_mode & (stat.S_IRWXG | stat.S_IRWXO)

    def test_uses_wal(self, store):
        mode = store._conn.execute("PRAGMA journal_mode").fetchone()[0]
        assert mode.lower() == "wal"

    def test_parent_is_a_file(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        with pytest.raises(StorageUnavailable):
            SnippetStore(db_path=blocker / "grb.db")

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "garbage.db"
        path.write_bytes(b"this is not a sqlite database" * 100)
        with pytest.raises(StorageUnavailable):
            SnippetStore(db_path=path)

    def test_reopen_keeps_data(self, db_path):
        with SnippetStore(db_path=db_path) as s:
            _put(s, "persisted")
        with SnippetStore(db_path=db_path) as s:
            assert [x.text for x in s.view(lambda v: list(v.scan()))] == ["persisted"]

    def test_close_is_idempotent(self, store):
        store.close()
        store.close()
        assert store.closed

    def test_closed_store_rejects_work(self, store):
        store.close()
        with pytest.raises(StoreIOError):
            store.view(lambda v: v.count())


class TestSequence:
    def test_starts_at_one(self, store):
        assert _put(store, "first").id == 1

    def test_strictly_increasing(self, store):
        ids = [_put(store, f"s{i}").id for i in range(5)]
        assert ids == [1, 2, 3, 4, 5]

    def test_not_reused_after_delete_of_max(self, store):
        _put(store, "a")
        second = _put(store, "b")
        with store.write_transaction() as tx:
            tx.delete(second.id)
        assert _put(store, "c").id == 3

    def test_survives_reopen(self, db_path):
        with SnippetStore(db_path=db_path) as s:
            _put(s, "a")
            _put(s, "b")
            s.update(lambda tx: [tx.delete(1), tx.delete(2)])
        with SnippetStore(db_path=db_path) as s:
            assert _put(s, "c").id == 3

    def test_generator_creates_missing_bucket(self, store):
        with store.write_transaction() as tx:
            gen = SequenceGenerator(tx._conn, bucket="other")
            assert gen.next() == 1
            assert gen.next() == 2


class TestWriteTransaction:
    def test_failure_rolls_back_everything(self, store):
        _put(store, "keep")

        def _boom(tx):
            tx.put(Snippet(tx.next_id(), "lost"))
            tx.delete(1)
            raise ValueError("boom")

        with pytest.raises(ValueError):
            store.update(_boom)
        snippets = store.view(lambda v: list(v.scan()))
        assert [s.text for s in snippets] == ["keep"]
        # Rolled-back allocation is not consumed
        assert _put(store, "next").id == 2

    def test_sqlite_error_becomes_store_io_error(self, store):
        with pytest.raises(StoreIOError):
            with store.write_transaction() as tx:
                tx._conn.execute("INSERT INTO no_such_table VALUES (1)")
        assert store.view(lambda v: v.count()) == 0

    def test_nested_transaction_rejected(self, store):
        with store.read_view():
            with pytest.raises(RuntimeError):
                with store.write_transaction():
                    pass

    def test_put_replaces_record(self, store):
        s = _put(store, "old")
        store.update(lambda tx: tx.put(s.replace(text="new")))
        assert store.view(lambda v: v.get(s.id)).text == "new"

    def test_delete_missing_returns_false(self, store):
        assert store.update(lambda tx: tx.delete(99)) is False


class TestReadView:
    def test_scan_is_numeric_key_order(self, store):
        for i in range(12):
            _put(store, f"s{i}")
        ids = [s.id for s in store.view(lambda v: list(v.scan()))]
        assert ids == list(range(1, 13))

    def test_get_missing(self, store):
        assert store.view(lambda v: v.get(5)) is None

    def test_snapshot_ignores_later_commit(self, db_path):
        reader = SnippetStore(db_path=db_path)
        writer = SnippetStore(db_path=db_path)
        try:
            _put(writer, "before")
            with reader.read_view() as view:
                assert view.count() == 1
                _put(writer, "during")
                assert view.count() == 1
                assert [s.text for s in view.scan()] == ["before"]
            assert reader.view(lambda v: v.count()) == 2
        finally:
            reader.close()
            writer.close()

    def test_reader_not_blocked_by_open_writer(self, db_path):
        reader = SnippetStore(db_path=db_path)
        writer = SnippetStore(db_path=db_path)
        try:
            _put(writer, "committed")
            with writer.write_transaction() as tx:
                tx.put(Snippet(tx.next_id(), "uncommitted"))
                texts = [s.text for s in reader.view(lambda v: list(v.scan()))]
                assert texts == ["committed"]
        finally:
            reader.close()
            writer.close()


class TestWriterExclusion:
    def test_second_writer_waits_for_first(self, db_path):
        first = SnippetStore(db_path=db_path)
        second = SnippetStore(db_path=db_path)
        done = threading.Event()
        result = {}

        def _second_writer():
            result["snippet"] = _put(second, "second")
            done.set()

        try:
            with first.write_transaction() as tx:
                tx.put(Snippet(tx.next_id(), "first"))
                worker = threading.Thread(target=_second_writer)
                worker.start()
                time.sleep(0.3)
                assert not done.is_set()
            worker.join(timeout=10)
            assert done.is_set()
            assert result["snippet"].id == 2
        finally:
            first.close()
            second.close()


class TestRetry:
    def test_retry_on_locked_retries_then_succeeds(self, monkeypatch):
        from grb import sqlite_store

        monkeypatch.setattr(sqlite_store, "_DB_RETRY_BASE_DELAY", 0)
        calls = []

        def _flaky():
            calls.append(1)
            if len(calls) < 3:
                raise sqlite3.OperationalError("database is locked")
            return "ok"

        assert sqlite_store._retry_on_locked(_flaky) == "ok"
        assert len(calls) == 3

    def test_other_errors_not_retried(self):
        from grb import sqlite_store

        calls = []

        def _broken():
            calls.append(1)
            raise sqlite3.OperationalError("no such table: x")

        with pytest.raises(sqlite3.OperationalError):
            sqlite_store._retry_on_locked(_broken)
        assert len(calls) == 1
