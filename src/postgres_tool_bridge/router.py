from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .db import PoolManager
from .errors import DatabaseError, ValidationError
from .render import DISPLAY_ROW_LIMIT
from .schemas import ToolDefinition, ToolResponse
from .tools.base import Tool
from .tools.schema import CreateTableTool, DescribeTableTool, ListTablesTool
from .tools.sql import ExecuteTool, QueryTool


@dataclass
class Dispatched:
    tool: str
    response: ToolResponse
    elapsed_ms: float

    @property
    def is_error(self) -> bool:
        return bool(self.response.is_error)


def format_error(error: Exception) -> str:
    """Human-readable message for a failed call."""
    if isinstance(error, ValidationError):
        message = f"Validation Error: {error.message}"
        if error.issues:
            message += "\nDetails: " + ", ".join(f"{path}: {reason}" for path, reason in error.issues)
        return message
    if isinstance(error, DatabaseError):
        message = f"Database Error: {error.message}"
        if error.code:
            message += f" (Code: {error.code})"
        if error.detail:
            message += f"\nDetail: {error.detail}"
        return message
    return f"Unexpected Error: {error}"


class ToolDispatcher:
    """Routes named tool calls to their handlers.

    This is the single place where errors become caller-visible envelopes.
    A failing call returns ``isError``; it never propagates.
    """

    def __init__(
        self,
        db: PoolManager,
        logger: logging.Logger,
        display_limit: int = DISPLAY_ROW_LIMIT,
    ) -> None:
        self._logger = logger
        tools: list[Tool] = [
            QueryTool(db, logger, display_limit=display_limit),
            ExecuteTool(db, logger),
            CreateTableTool(db, logger),
            DescribeTableTool(db, logger),
            ListTablesTool(db, logger),
        ]
        self.tools: Dict[str, Tool] = {tool.name: tool for tool in tools}

    def definitions(self) -> list[ToolDefinition]:
        return [tool.definition for tool in self.tools.values()]

    async def handle(self, name: str, args: Optional[Any] = None) -> ToolResponse:
        return (await self.dispatch(name, args)).response

    async def dispatch(self, name: str, args: Optional[Any] = None) -> Dispatched:
        """Validate, execute and render one tool call.

        Args:
            name: Tool name as sent by the caller.
            args: Raw arguments; shape is validated by the tool.

        Returns:
            Dispatched with the response envelope and elapsed time.
        """
        self._logger.info("Tool called tool=%s has_arguments=%s", name, bool(args))
        start = time.perf_counter()

        tool = self.tools.get(name)
        if tool is None:
            self._logger.error("Unknown tool called tool=%s", name)
            response = ToolResponse.error(f"Unknown tool: {name}")
        else:
            try:
                response = ToolResponse.text(await tool.run(args))
            except Exception as e:
                self._logger.error("Tool error tool=%s type=%s error=%s", name, type(e).__name__, e)
                response = ToolResponse.error(format_error(e))

        elapsed = (time.perf_counter() - start) * 1000
        self._logger.info("Tool finished tool=%s is_error=%s elapsed_ms=%.1f", name, bool(response.is_error), elapsed)
        return Dispatched(tool=name, response=response, elapsed_ms=elapsed)
