"""SQL tools gated by the statement classifier.

Flow for both tools:
  1. Validate argument shape
  2. Classify the statement text
  3. Reject statement classes the tool does not accept
  4. Execute through the pool manager and render
"""
import logging
from typing import Any

from .base import definition_for, parse_args
from ..db import PoolManager
from ..errors import ValidationError
from ..render import DISPLAY_ROW_LIMIT, render_execute, render_query
from ..schemas import ExecuteParams, QueryParams
from ..sql_safety import MUTATING_COMMANDS, classify

QUERY_TOOL = "postgresql_query"
EXECUTE_TOOL = "postgresql_execute"


class QueryTool:
    name = QUERY_TOOL
    definition = definition_for(
        QUERY_TOOL, "Execute a PostgreSQL SELECT query and return the results", QueryParams
    )

    def __init__(self, db: PoolManager, logger: logging.Logger, display_limit: int = DISPLAY_ROW_LIMIT):
        self._db = db
        self._logger = logger
        self._display_limit = display_limit

    async def run(self, args: Any) -> str:
        """Run a read-only statement.

        Only statements classified READ_ONLY (SELECT / WITH) are accepted;
        anything else is sent to the execute tool.
        """
        params = parse_args(QueryParams, args)
        self._logger.info(
            "Executing query tool query_length=%d params=%d", len(params.query), len(params.params or [])
        )

        verdict = classify(params.query)
        if not verdict.is_read_only:
            raise ValidationError(
                f"Query tool only supports SELECT and WITH statements. "
                f"Use the {EXECUTE_TOOL} tool for other commands.",
                details={"verdict": verdict.kind.value, "reason": verdict.reason},
            )

        outcome = await self._db.query(params.query, params.params)
        self._logger.info("Query executed successfully rows=%d fields=%d", outcome.row_count, len(outcome.field_names))
        return render_query(outcome, self._display_limit)


class ExecuteTool:
    name = EXECUTE_TOOL
    definition = definition_for(
        EXECUTE_TOOL,
        "Execute PostgreSQL INSERT, UPDATE, DELETE, CREATE, ALTER, DROP, TRUNCATE, GRANT, or REVOKE commands",
        ExecuteParams,
    )

    def __init__(self, db: PoolManager, logger: logging.Logger):
        self._db = db
        self._logger = logger

    async def run(self, args: Any) -> str:
        params = parse_args(ExecuteParams, args)
        self._logger.info(
            "Executing command tool query_length=%d params=%d", len(params.query), len(params.params or [])
        )

        verdict = classify(params.query)
        if verdict.is_read_only:
            raise ValidationError(
                f"SELECT and WITH statements should use the {QUERY_TOOL} tool instead",
                details={"verdict": verdict.kind.value},
            )
        if verdict.is_forbidden:
            if verdict.phrase:
                message = (
                    f"Dangerous command detected: {verdict.phrase}. "
                    "This operation is not allowed for security reasons."
                )
            else:
                message = (
                    f"Command '{verdict.command}' is not allowed. "
                    f"Allowed commands: {', '.join(MUTATING_COMMANDS)}"
                )
            raise ValidationError(message, details={"verdict": verdict.kind.value, "reason": verdict.reason})

        outcome = await self._db.execute(params.query, params.params)
        self._logger.info("Command executed successfully command=%s rows=%d", outcome.command, outcome.row_count)
        return render_execute(outcome)
