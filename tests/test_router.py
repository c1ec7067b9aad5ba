"""Tests for the tool dispatcher.

Each test runs a full call through validation, classification, the pool
manager (over FakePool) and rendering, and inspects the envelope.
"""
import asyncio

import psycopg
import pytest

from postgres_tool_bridge.errors import DatabaseError, ValidationError
from postgres_tool_bridge.router import ToolDispatcher, format_error
from postgres_tool_bridge.schemas import ToolResponse
from conftest import FakeResult


@pytest.fixture
def dispatcher(db, logger):
    return ToolDispatcher(db, logger)


def call(dispatcher, name, args=None) -> ToolResponse:
    return asyncio.run(dispatcher.handle(name, args))


def text_of(response: ToolResponse) -> str:
    assert len(response.content) == 1
    assert response.content[0].type == "text"
    return response.content[0].text


class TestDefinitions:

    def test_five_tools(self, dispatcher):
        names = [d.name for d in dispatcher.definitions()]
        assert names == [
            "postgresql_query",
            "postgresql_execute",
            "postgresql_create_table",
            "postgresql_describe_table",
            "postgresql_list_tables",
        ]

    def test_input_schemas_use_wire_names(self, dispatcher):
        schemas = {d.name: d.input_schema for d in dispatcher.definitions()}
        assert schemas["postgresql_query"]["required"] == ["query"]
        assert set(schemas["postgresql_create_table"]["required"]) == {"tableName", "columns"}
        assert "ifNotExists" in schemas["postgresql_create_table"]["properties"]
        assert schemas["postgresql_list_tables"].get("additionalProperties") is False

    def test_unknown_tool(self, dispatcher):
        response = call(dispatcher, "postgresql_vacuum", {})
        assert response.is_error is True
        assert text_of(response) == "Unknown tool: postgresql_vacuum"


class TestQueryTool:

    def test_select_runs(self, dispatcher, fake_pool):
        fake_pool.conn.results.append(FakeResult(rows=[{"n": 1}], fields=["n"]))
        response = call(dispatcher, "postgresql_query", {"query": "SELECT 1 AS n"})
        assert response.is_error is None
        assert "n\n---\n1" in text_of(response)

    def test_params_are_passed(self, dispatcher, fake_pool):
        call(dispatcher, "postgresql_query", {"query": "SELECT * FROM t WHERE id = %s", "params": [7]})
        assert fake_pool.conn.executed == [("SELECT * FROM t WHERE id = %s", [7])]

    def test_insert_points_to_execute_tool(self, dispatcher, fake_pool):
        response = call(dispatcher, "postgresql_query", {"query": "insert into t values (1)"})
        assert response.is_error is True
        assert text_of(response).startswith("Validation Error:")
        assert "postgresql_execute" in text_of(response)
        assert fake_pool.getconn_calls == 0

    def test_forbidden_select_rejected(self, dispatcher, fake_pool):
        response = call(dispatcher, "postgresql_query", {"query": "select 1; drop database prod"})
        assert response.is_error is True
        assert fake_pool.getconn_calls == 0

    def test_empty_result(self, dispatcher, fake_pool):
        fake_pool.conn.results.append(FakeResult(rows=[], fields=["id"]))
        response = call(dispatcher, "postgresql_query", {"query": "SELECT id FROM t WHERE false"})
        assert text_of(response) == "Query executed successfully but returned no rows."


class TestExecuteTool:

    def test_insert_runs(self, dispatcher, fake_pool):
        fake_pool.conn.results.append(FakeResult(rowcount=2, status="INSERT 0 2"))
        response = call(dispatcher, "postgresql_execute", {"query": "INSERT INTO t VALUES (%s), (%s)", "params": [1, 2]})
        assert response.is_error is None
        assert text_of(response) == "INSERT operation completed successfully. 2 row(s) inserted."

    def test_select_points_to_query_tool(self, dispatcher, fake_pool):
        response = call(dispatcher, "postgresql_execute", {"query": "select 1"})
        assert response.is_error is True
        assert "postgresql_query" in text_of(response)
        assert fake_pool.getconn_calls == 0

    def test_with_points_to_query_tool(self, dispatcher):
        response = call(dispatcher, "postgresql_execute", {"query": "WITH x AS (SELECT 1) SELECT * FROM x"})
        assert "postgresql_query" in text_of(response)

    def test_forbidden_phrase_is_named(self, dispatcher, fake_pool):
        response = call(dispatcher, "postgresql_execute", {"query": "DROP SCHEMA public CASCADE"})
        assert response.is_error is True
        assert "drop schema" in text_of(response)
        assert fake_pool.getconn_calls == 0

    def test_unrecognized_command(self, dispatcher):
        response = call(dispatcher, "postgresql_execute", {"query": "VACUUM FULL"})
        assert response.is_error is True
        assert "Command 'vacuum' is not allowed" in text_of(response)

    def test_engine_verb_is_reported(self, dispatcher, fake_pool):
        # Claimed verb is irrelevant; the command tag decides the sentence
        fake_pool.conn.results.append(FakeResult(rowcount=0, status="TRUNCATE TABLE"))
        response = call(dispatcher, "postgresql_execute", {"query": "truncate t"})
        assert text_of(response).startswith("TRUNCATE operation completed successfully.")


class TestShapeValidation:

    def test_missing_query(self, dispatcher, fake_pool):
        response = call(dispatcher, "postgresql_query", {})
        assert response.is_error is True
        assert "query: Field required" in text_of(response)
        assert fake_pool.getconn_calls == 0

    def test_every_violation_listed(self, dispatcher):
        response = call(dispatcher, "postgresql_create_table", {"tableName": 5, "columns": [{"name": "a"}]})
        text = text_of(response)
        assert "tableName" in text
        assert "columns.0.type" in text

    def test_empty_columns_rejected(self, dispatcher):
        response = call(dispatcher, "postgresql_create_table", {"tableName": "t", "columns": []})
        assert response.is_error is True
        assert "columns" in text_of(response)

    def test_params_must_be_list(self, dispatcher):
        response = call(dispatcher, "postgresql_query", {"query": "SELECT 1", "params": "oops"})
        assert response.is_error is True
        assert "params" in text_of(response)

    def test_non_object_arguments(self, dispatcher):
        response = call(dispatcher, "postgresql_query", ["SELECT 1"])
        assert response.is_error is True

    def test_list_tables_rejects_extra_arguments(self, dispatcher):
        response = call(dispatcher, "postgresql_list_tables", {"schema": "public"})
        assert response.is_error is True


class TestSchemaTools:

    def test_create_table_bad_name_never_reaches_pool(self, dispatcher, fake_pool):
        response = call(dispatcher, "postgresql_create_table", {
            "tableName": "1bad",
            "columns": [{"name": "id", "type": "INTEGER"}],
        })
        assert response.is_error is True
        assert "Invalid table name '1bad'" in text_of(response)
        assert fake_pool.getconn_calls == 0

    def test_create_table_bad_column_name(self, dispatcher, fake_pool):
        response = call(dispatcher, "postgresql_create_table", {
            "tableName": "users",
            "columns": [{"name": "id", "type": "INTEGER"}, {"name": "e-mail", "type": "TEXT"}],
        })
        assert "Invalid column name 'e-mail'" in text_of(response)
        assert fake_pool.getconn_calls == 0

    def test_create_table(self, dispatcher, fake_pool):
        fake_pool.conn.results.append(FakeResult(rowcount=-1, status="CREATE TABLE"))
        response = call(dispatcher, "postgresql_create_table", {
            "tableName": "users",
            "columns": [{"name": "id", "type": "SERIAL", "constraints": "PRIMARY KEY"}],
            "ifNotExists": False,
        })
        assert response.is_error is None
        assert text_of(response).startswith("Table 'users' created successfully with 1 column(s).")
        assert fake_pool.conn.executed[0][0] == "CREATE TABLE users (id SERIAL PRIMARY KEY)"

    def test_describe_table_bad_name(self, dispatcher, fake_pool):
        response = call(dispatcher, "postgresql_describe_table", {"tableName": "users; --"})
        assert response.is_error is True
        assert fake_pool.getconn_calls == 0

    def test_describe_missing_table(self, dispatcher, fake_pool):
        fake_pool.conn.results.append(FakeResult(rows=[], fields=["column_name"]))
        response = call(dispatcher, "postgresql_describe_table", {"tableName": "ghost"})
        assert response.is_error is None
        assert text_of(response) == "Table 'ghost' not found or has no columns."

    def test_list_tables_without_arguments(self, dispatcher, fake_pool):
        fake_pool.conn.results.append(FakeResult(
            rows=[{"schema_name": "public", "table_name": "users", "table_type": "BASE TABLE"}],
            fields=["schema_name", "table_name", "table_type"],
        ))
        response = call(dispatcher, "postgresql_list_tables")
        assert "public | users | BASE TABLE" in text_of(response)


class TestErrorEnvelope:

    def test_database_error_with_code_and_detail(self, dispatcher, fake_pool):
        fake_pool.conn.error = psycopg.errors.UndefinedTable('relation "nope" does not exist')
        response = call(dispatcher, "postgresql_query", {"query": "SELECT * FROM nope"})
        assert response.is_error is True
        assert text_of(response) == 'Database Error: relation "nope" does not exist (Code: 42P01)'
        assert fake_pool.putconn_calls == 1

    def test_unexpected_error(self, dispatcher, fake_pool):
        fake_pool.conn.error = RuntimeError("kaboom")
        response = call(dispatcher, "postgresql_query", {"query": "SELECT 1"})
        assert response.is_error is True
        assert text_of(response) == "Unexpected Error: kaboom"

    def test_format_database_detail(self):
        text = format_error(DatabaseError("duplicate key", code="23505", detail="Key (id)=(1) already exists."))
        assert text == "Database Error: duplicate key (Code: 23505)\nDetail: Key (id)=(1) already exists."

    def test_format_validation_issues(self):
        text = format_error(ValidationError("Invalid arguments", issues=[("query", "Field required")]))
        assert text == "Validation Error: Invalid arguments\nDetails: query: Field required"

    def test_wire_shape(self, dispatcher):
        ok = call(dispatcher, "postgresql_query", {"query": "SELECT 1"}).to_wire()
        assert set(ok) == {"content"}
        failed = call(dispatcher, "postgresql_query", {"query": "DELETE FROM t"}).to_wire()
        assert failed["isError"] is True
        assert failed["content"][0]["type"] == "text"

    def test_calls_keep_working_after_failures(self, dispatcher, fake_pool):
        fake_pool.conn.error = RuntimeError("transient")
        assert call(dispatcher, "postgresql_query", {"query": "SELECT 1"}).is_error
        fake_pool.conn.error = None
        assert call(dispatcher, "postgresql_query", {"query": "SELECT 1"}).is_error is None
        assert fake_pool.getconn_calls == fake_pool.putconn_calls == 2
