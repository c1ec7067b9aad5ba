"""Schema tools: create, describe and list tables.

Table and column names cannot be bound as parameters, so the identifier
pattern check here is the only thing standing between caller input and
the statement text.
"""
import logging
from typing import Any

from .base import definition_for, parse_args, require_identifier
from ..db import PoolManager
from ..render import render_columns, render_created, render_tables
from ..schemas import CreateTableParams, DescribeTableParams, ListTablesParams


class CreateTableTool:
    name = "postgresql_create_table"
    definition = definition_for(name, "Create a new table in the PostgreSQL database", CreateTableParams)

    def __init__(self, db: PoolManager, logger: logging.Logger):
        self._db = db
        self._logger = logger

    async def run(self, args: Any) -> str:
        params = parse_args(CreateTableParams, args)
        self._logger.info(
            "Creating table table=%s columns=%d if_not_exists=%s",
            params.table_name, len(params.columns), params.if_not_exists,
        )

        require_identifier(params.table_name, "table")
        for column in params.columns:
            require_identifier(column.name, "column")

        outcome = await self._db.create_table(params.table_name, params.columns, params.if_not_exists)
        self._logger.info("Table created successfully table=%s command=%s", params.table_name, outcome.command)
        return render_created(params.table_name, params.columns)


class DescribeTableTool:
    name = "postgresql_describe_table"
    definition = definition_for(
        name,
        "Get detailed information about a table structure including columns, data types, and constraints",
        DescribeTableParams,
    )

    def __init__(self, db: PoolManager, logger: logging.Logger):
        self._db = db
        self._logger = logger

    async def run(self, args: Any) -> str:
        params = parse_args(DescribeTableParams, args)
        self._logger.info("Describing table table=%s", params.table_name)
        require_identifier(params.table_name, "table")

        columns = await self._db.describe_table(params.table_name)
        self._logger.info("Table described table=%s columns=%d", params.table_name, len(columns))
        return render_columns(params.table_name, columns)


class ListTablesTool:
    name = "postgresql_list_tables"
    definition = definition_for(name, "List all tables in the PostgreSQL database", ListTablesParams)

    def __init__(self, db: PoolManager, logger: logging.Logger):
        self._db = db
        self._logger = logger

    async def run(self, args: Any) -> str:
        parse_args(ListTablesParams, args)
        self._logger.info("Listing tables")
        tables = await self._db.list_tables()
        self._logger.info("Tables listed successfully count=%d", len(tables))
        return render_tables(tables)
