"""Text rendering for tool results.

Output is deterministic and size-bounded: at most ``DISPLAY_ROW_LIMIT``
rows are rendered no matter how many the pool returned.
"""
import json
from typing import Any, Sequence

from .schemas import ColumnDefinition
from .schemas_sql import ColumnInfo, ExecuteOutcome, QueryOutcome, TableInfo

DISPLAY_ROW_LIMIT = 100

NO_ROWS_MESSAGE = "Query executed successfully but returned no rows."

# Engine verb -> sentence; {n} is the affected row count
EXECUTE_MESSAGES = {
    "INSERT": "INSERT operation completed successfully. {n} row(s) inserted.",
    "UPDATE": "UPDATE operation completed successfully. {n} row(s) updated.",
    "DELETE": "DELETE operation completed successfully. {n} row(s) deleted.",
    "CREATE": "CREATE operation completed successfully.",
    "ALTER": "ALTER operation completed successfully.",
    "DROP": "DROP operation completed successfully.",
    "TRUNCATE": "TRUNCATE operation completed successfully. All rows removed from table.",
    "GRANT": "GRANT operation completed successfully. Permissions granted.",
    "REVOKE": "REVOKE operation completed successfully. Permissions revoked.",
}


def format_value(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def _table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> list[str]:
    lines = [" | ".join(headers), " | ".join("---" for _ in headers)]
    lines.extend(" | ".join(row) for row in rows)
    return lines


def render_query(outcome: QueryOutcome, display_limit: int = DISPLAY_ROW_LIMIT) -> str:
    """Render a query outcome as a pipe-delimited table.

    Args:
        outcome: Rows from the pool manager.
        display_limit: Maximum rows to render.

    Returns:
        The no-rows message, or a summary line followed by the table and,
        when rows were cut, a note with the exact remaining count.
    """
    if not outcome.rows:
        return NO_ROWS_MESSAGE

    headers = outcome.field_names or list(outcome.rows[0].keys())
    shown = outcome.rows[:display_limit]

    lines = [f"Query executed successfully. Returned {outcome.row_count} row(s).", ""]
    lines.extend(_table(headers, [[format_value(row.get(h)) for h in headers] for row in shown]))

    remaining = len(outcome.rows) - len(shown)
    if remaining > 0:
        lines.append("")
        lines.append(f"... and {remaining} more rows (truncated for display)")

    return "\n".join(lines)


def render_execute(outcome: ExecuteOutcome) -> str:
    template = EXECUTE_MESSAGES.get(outcome.command.upper())
    if template is None:
        return f"{outcome.command} operation completed successfully. {outcome.row_count} row(s) affected."
    return template.format(n=outcome.row_count)


def render_tables(tables: Sequence[TableInfo]) -> str:
    if not tables:
        return "No tables found in the database."
    lines = [f"Found {len(tables)} table(s) in the database:", ""]
    lines.extend(_table(
        ["Schema", "Table Name", "Type"],
        [[t.schema_name, t.table_name, t.table_type] for t in tables],
    ))
    return "\n".join(lines)


def render_columns(table_name: str, columns: Sequence[ColumnInfo]) -> str:
    if not columns:
        return f"Table '{table_name}' not found or has no columns."

    def or_na(value: Any) -> str:
        return "N/A" if value is None else str(value)

    lines = [f"Table '{table_name}' structure:", ""]
    lines.extend(_table(
        ["Column Name", "Data Type", "Nullable", "Default", "Max Length", "Precision", "Scale"],
        [
            [
                c.column_name,
                c.data_type,
                "YES" if c.is_nullable else "NO",
                c.column_default if c.column_default is not None else "NULL",
                or_na(c.character_maximum_length),
                or_na(c.numeric_precision),
                or_na(c.numeric_scale),
            ]
            for c in columns
        ],
    ))
    return "\n".join(lines)


def render_created(table_name: str, columns: Sequence[ColumnDefinition]) -> str:
    lines = [f"Table '{table_name}' created successfully with {len(columns)} column(s).", "", "Columns:"]
    for col in columns:
        suffix = f" {col.constraints}" if col.constraints else ""
        lines.append(f"- {col.name}: {col.type}{suffix}")
    return "\n".join(lines)


def render(outcome: QueryOutcome | ExecuteOutcome, display_limit: int = DISPLAY_ROW_LIMIT) -> str:
    if isinstance(outcome, ExecuteOutcome):
        return render_execute(outcome)
    return render_query(outcome, display_limit)
