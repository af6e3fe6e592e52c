"""Tests for the query facade."""

import pytest
from sqlalchemy import insert, select

from meditrack.db.facade import Database, RowSet
from meditrack.db.pool import ConnectionPool
from meditrack.exceptions import ConflictError, QueryError
from meditrack.models import staff

pytestmark = pytest.mark.anyio

INSERT_SQL = (
    "INSERT INTO staff (email, password_hash, first_name, last_name, role) "
    "VALUES (:email, :password_hash, :first_name, :last_name, :role) RETURNING id"
)


def staff_params(email="n@x.com", **overrides):
    params = {
        "email": email,
        "password_hash": "not-a-real-hash",
        "first_name": "N",
        "last_name": "M",
        "role": "Nurse",
    }
    params.update(overrides)
    return params


class TestExecute:
    async def test_insert_surfaces_inserted_id(self, db):
        result = await db.insert(INSERT_SQL, staff_params())
        assert isinstance(result, RowSet)
        assert result.inserted_id is not None
        assert result.rowcount == 1

    async def test_select_returns_rows_as_dicts(self, db):
        await db.insert(INSERT_SQL, staff_params("one@x.com"))
        await db.insert(INSERT_SQL, staff_params("two@x.com"))

        rows = await db.query("SELECT email FROM staff ORDER BY email")
        assert rows == [{"email": "one@x.com"}, {"email": "two@x.com"}]

        result = await db.execute("SELECT id FROM staff")
        assert len(result) == 2
        assert result.rowcount == 2

    async def test_core_statements_are_accepted(self, db):
        result = await db.insert(insert(staff).values(**staff_params()).returning(staff.c.id))
        row = await db.query_one(select(staff.c.email, staff.c.is_active).where(staff.c.id == result.inserted_id))
        assert row == {"email": "n@x.com", "is_active": True}

    async def test_core_insert_without_returning_surfaces_generated_key(self, db):
        result = await db.insert(insert(staff).values(**staff_params()))
        assert result.rowcount == 1
        assert result.inserted_id is not None
        row = await db.query_one(select(staff.c.id).where(staff.c.email == "n@x.com"))
        assert result.inserted_id == row["id"]

    async def test_text_insert_without_returning_surfaces_generated_key(self, db):
        result = await db.insert(INSERT_SQL.replace(" RETURNING id", ""), staff_params())
        assert result.rows == []
        row = await db.query_one(select(staff.c.id).where(staff.c.email == "n@x.com"))
        assert result.inserted_id == row["id"]

    async def test_non_insert_has_no_inserted_id(self, db):
        await db.insert(INSERT_SQL, staff_params())
        result = await db.execute("UPDATE staff SET first_name = 'Z'")
        assert result.inserted_id is None

    async def test_query_one_returns_none_for_zero_rows(self, db):
        assert await db.query_one("SELECT id FROM staff WHERE email = :email", {"email": "nobody@x.com"}) is None

    async def test_update_and_delete_report_affected_rows(self, db):
        await db.insert(INSERT_SQL, staff_params())
        changed = await db.update(
            "UPDATE staff SET first_name = :name WHERE email = :email", {"name": "Z", "email": "n@x.com"}
        )
        assert changed == 1
        missing = await db.update(
            "UPDATE staff SET first_name = :name WHERE email = :email", {"name": "Z", "email": "none@x.com"}
        )
        assert missing == 0
        assert await db.delete("DELETE FROM staff WHERE email = :email", {"email": "n@x.com"}) == 1

    async def test_parameters_are_not_interpolated(self, db):
        await db.insert(INSERT_SQL, staff_params())
        hostile = "' OR '1'='1"
        assert await db.query("SELECT id FROM staff WHERE email = :email", {"email": hostile}) == []

    async def test_connection_released_after_each_statement(self, db, pool):
        await db.query("SELECT 1 AS one")
        assert pool.checked_out() == 0


class TestErrorClassification:
    async def test_unique_violation_is_conflict(self, db):
        await db.insert(INSERT_SQL, staff_params())
        with pytest.raises(ConflictError):
            await db.insert(INSERT_SQL, staff_params())
        rows = await db.query("SELECT id FROM staff WHERE email = :email", {"email": "n@x.com"})
        assert len(rows) == 1

    async def test_malformed_statement_is_query_error(self, db):
        with pytest.raises(QueryError):
            await db.execute("SELEC nonsense FROM")

    async def test_conflict_is_not_a_query_error(self, db):
        await db.insert(INSERT_SQL, staff_params())
        with pytest.raises(ConflictError) as exc_info:
            await db.insert(INSERT_SQL, staff_params())
        assert not isinstance(exc_info.value, QueryError)
        assert exc_info.value.kind.value == "conflict"


class TestLazyInitialization:
    async def test_first_statement_initializes_pool(self, settings):
        pool = ConnectionPool(settings)
        db = Database(pool)
        assert not pool.is_initialized
        assert await db.query_one("SELECT 1 AS one") == {"one": 1}
        assert pool.is_initialized
        await pool.close()
