"""Tests for the SQLite-backed document store."""

import pytest

from src.core import db_client
from src.core.config import settings
from src.core.db_client import DatabaseError, RecordNotFoundError, parse_filter, sanitize_param


@pytest.fixture
async def sqlite_db(tmp_path, monkeypatch):
    """A fresh document store in a temporary SQLite file."""
    monkeypatch.setattr(settings, "sqlite_db_path", str(tmp_path / "test.db"))
    await db_client.init_db()
    yield
    await db_client.close_connection()


@pytest.mark.unit
class TestParseFilter:
    """Tests for filter parsing."""

    def test_empty(self):
        assert parse_filter("") == ("", [])

    def test_equality_on_document_field(self):
        assert parse_filter('status = "pending"') == ("json_extract(data, '$.status') = ?", ["pending"])

    def test_reserved_field_uses_column(self):
        assert parse_filter('id != "r1"') == ("id != ?", ["r1"])

    def test_and_conditions(self):
        where, params = parse_filter('family_id = "fam1" && status = "pending"')

        assert where.count(" AND ") == 1
        assert params == ["fam1", "pending"]

    def test_or_group(self):
        where, params = parse_filter('(status = "pending" || status = "completed")')

        assert " OR " in where
        assert params == ["pending", "completed"]

    def test_booleans_and_numbers(self):
        assert parse_filter('is_recurring = "true"')[1] == [True]
        assert parse_filter('snooze_count > "2"')[1] == [2]

    def test_invalid_syntax(self):
        with pytest.raises(ValueError, match="Invalid filter syntax"):
            parse_filter("status pending")

    def test_sanitize_param_escapes_quotes(self):
        assert sanitize_param('a"b') == 'a\\"b'


@pytest.mark.unit
class TestCrud:
    """Round trips through SQLite."""

    async def test_create_and_get(self, sqlite_db):
        created = await db_client.create_record(collection="reminders", data={"title": "Feed the cat", "count": 1})

        fetched = await db_client.get_record(collection="reminders", record_id=created["id"])

        assert fetched == created
        assert fetched["title"] == "Feed the cat"
        assert fetched["created"] and fetched["updated"]

    async def test_create_with_explicit_id(self, sqlite_db):
        created = await db_client.create_record(collection="members", data={"id": "mom", "role": "parent"})

        assert created["id"] == "mom"

    async def test_duplicate_id_is_database_error(self, sqlite_db):
        await db_client.create_record(collection="members", data={"id": "mom"})

        with pytest.raises(DatabaseError):
            await db_client.create_record(collection="members", data={"id": "mom"})

    async def test_missing_record(self, sqlite_db):
        with pytest.raises(RecordNotFoundError):
            await db_client.get_record(collection="reminders", record_id="nope")

    async def test_missing_record_is_a_key_error(self, sqlite_db):
        with pytest.raises(KeyError):
            await db_client.get_record(collection="reminders", record_id="nope")

    async def test_update_merges(self, sqlite_db):
        created = await db_client.create_record(collection="reminders", data={"title": "a", "status": "pending"})

        updated = await db_client.update_record(
            collection="reminders", record_id=created["id"], data={"status": "completed"}
        )

        assert updated["title"] == "a"
        assert updated["status"] == "completed"

    async def test_update_missing(self, sqlite_db):
        with pytest.raises(RecordNotFoundError):
            await db_client.update_record(collection="reminders", record_id="nope", data={"a": 1})

    async def test_empty_update_rejected(self, sqlite_db):
        with pytest.raises(ValueError, match="Empty update"):
            await db_client.update_record(collection="reminders", record_id="x", data={})

    async def test_delete(self, sqlite_db):
        created = await db_client.create_record(collection="reminders", data={"title": "a"})

        await db_client.delete_record(collection="reminders", record_id=created["id"])

        with pytest.raises(RecordNotFoundError):
            await db_client.delete_record(collection="reminders", record_id=created["id"])

    async def test_invalid_collection_name(self, sqlite_db):
        with pytest.raises(ValueError, match="Invalid collection name"):
            await db_client.get_record(collection="reminders; DROP TABLE documents", record_id="x")


@pytest.mark.unit
class TestListRecords:
    """Filtering, sorting and pagination."""

    async def test_filter_and_sort(self, sqlite_db):
        for record_id, status, title in [("a", "pending", "b"), ("b", "completed", "c"), ("c", "pending", "a")]:
            await db_client.create_record(
                collection="reminders", data={"id": record_id, "status": status, "title": title}
            )

        records = await db_client.list_records(collection="reminders", filter_query='status = "pending"', sort="title")

        assert [r["id"] for r in records] == ["c", "a"]

    async def test_descending_sort_and_pagination(self, sqlite_db):
        for n in range(5):
            await db_client.create_record(collection="reminders", data={"id": f"r{n}", "rank": n})

        page = await db_client.list_records(collection="reminders", sort="-rank", per_page=2, page=2)

        assert [r["id"] for r in page] == ["r2", "r1"]

    async def test_boolean_filter(self, sqlite_db):
        await db_client.create_record(collection="reminders", data={"id": "a", "is_recurring": True})
        await db_client.create_record(collection="reminders", data={"id": "b", "is_recurring": False})

        records = await db_client.list_records(collection="reminders", filter_query='is_recurring = "true"')

        assert [r["id"] for r in records] == ["a"]

    async def test_collections_are_isolated(self, sqlite_db):
        await db_client.create_record(collection="reminders", data={"id": "x"})
        await db_client.create_record(collection="members", data={"id": "x"})

        assert len(await db_client.list_records(collection="members")) == 1

    async def test_get_first_record(self, sqlite_db):
        await db_client.create_record(collection="members", data={"id": "kid", "role": "child"})

        assert (await db_client.get_first_record(collection="members", filter_query='role = "child"'))["id"] == "kid"
        assert await db_client.get_first_record(collection="members", filter_query='role = "parent"') is None
