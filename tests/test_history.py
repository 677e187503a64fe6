"""
Tests for the search history store.
"""

import sqlite3
import threading
from datetime import date, datetime, timedelta
from unittest.mock import patch

import pytest

from beta_analyzer.analysis.history import SearchHistoryStorage, SearchRecord
from beta_analyzer.exceptions import HistoryStorageError


@pytest.fixture
def storage():
    store = SearchHistoryStorage(":memory:")
    yield store
    store.close()


def make_record(ticker="TCS.NS", created_at=None, **kwargs):
    return SearchRecord(
        ticker=ticker,
        exchange=kwargs.pop("exchange", "NSE"),
        start_date=kwargs.pop("start_date", date(2020, 1, 1)),
        end_date=kwargs.pop("end_date", date(2024, 12, 31)),
        beta=kwargs.pop("beta", 0.85),
        peers=kwargs.pop("peers", ["INFY.NS", "WIPRO.NS"]),
        created_at=created_at,
    )


class TestSearchRecord:
    def test_normalizes_fields(self):
        record = SearchRecord(
            ticker=" tcs.ns ",
            exchange="nse",
            start_date="2020-01-01",
            end_date=datetime(2024, 12, 31, 15, 30),
        )
        assert record.ticker == "TCS.NS"
        assert record.exchange == "NSE"
        assert record.start_date == date(2020, 1, 1)
        assert record.end_date == date(2024, 12, 31)
        assert record.created_at is not None

    def test_to_dict(self):
        record = make_record(created_at=datetime(2025, 1, 2, 3, 4, 5))
        assert record.to_dict() == {
            "id": None,
            "ticker": "TCS.NS",
            "exchange": "NSE",
            "startDate": "2020-01-01",
            "endDate": "2024-12-31",
            "beta": 0.85,
            "peers": ["INFY.NS", "WIPRO.NS"],
            "createdAt": "2025-01-02T03:04:05",
        }


class TestSearchHistoryStorage:
    """Tests for SearchHistoryStorage."""

    def test_save_and_get_by_id(self, storage):
        record = make_record()
        search_id = storage.save_search(record)

        loaded = storage.get_search_by_id(search_id)

        assert record.id == search_id
        assert loaded.ticker == "TCS.NS"
        assert loaded.peers == ["INFY.NS", "WIPRO.NS"]
        assert loaded.beta == pytest.approx(0.85)
        assert loaded.start_date == date(2020, 1, 1)
        assert loaded.created_at == record.created_at

    def test_get_missing_id(self, storage):
        assert storage.get_search_by_id(999) is None

    def test_recent_searches_newest_first(self, storage):
        base = datetime(2025, 1, 1)
        for i, ticker in enumerate(["A.NS", "B.NS", "C.NS"]):
            storage.save_search(make_record(ticker, created_at=base + timedelta(minutes=i)))

        recent = storage.get_recent_searches()

        assert [r.ticker for r in recent] == ["C.NS", "B.NS", "A.NS"]

    def test_recent_searches_default_limit(self, storage):
        base = datetime(2025, 1, 1)
        for i in range(12):
            storage.save_search(make_record(f"S{i}.NS", created_at=base + timedelta(minutes=i)))

        recent = storage.get_recent_searches()

        assert len(recent) == 10
        assert recent[0].ticker == "S11.NS"
        assert storage.count() == 12

    def test_empty_peers_round_trip(self, storage):
        search_id = storage.save_search(make_record(peers=[], beta=None))
        loaded = storage.get_search_by_id(search_id)
        assert loaded.peers == []
        assert loaded.beta is None

    def test_file_database(self, tmp_path):
        path = str(tmp_path / "history.db")
        SearchHistoryStorage(path).save_search(make_record())

        assert [r.ticker for r in SearchHistoryStorage(path).get_recent_searches()] == ["TCS.NS"]

    def test_closed_connection_raises_storage_error(self, storage):
        storage._connection.close()
        with pytest.raises(HistoryStorageError):
            storage.save_search(make_record())

    def test_file_connections_are_closed(self, tmp_path):
        opened = []
        real_connect = sqlite3.connect

        def tracking_connect(*args, **kwargs):
            conn = real_connect(*args, **kwargs)
            opened.append(conn)
            return conn

        with patch("beta_analyzer.analysis.history.sqlite3.connect", side_effect=tracking_connect):
            storage = SearchHistoryStorage(str(tmp_path / "history.db"))
            search_id = storage.save_search(make_record())
            storage.get_search_by_id(search_id)
            storage.get_recent_searches()
            storage.count()

        assert len(opened) == 5
        for conn in opened:
            with pytest.raises(sqlite3.ProgrammingError):
                conn.execute("SELECT 1")

    def test_memory_database_usable_from_worker_thread(self, storage):
        worker = threading.Thread(target=storage.save_search, args=(make_record(),))
        worker.start()
        worker.join()

        assert storage.count() == 1
