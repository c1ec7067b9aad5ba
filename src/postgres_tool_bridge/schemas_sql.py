"""Pydantic schemas for pool manager outcomes.

These are the only shapes that leave the pool manager. No psycopg objects
(cursors, Column descriptions, Notify...) leak past it.
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Optional


class QueryOutcome(BaseModel):
    """Rows returned by a read query, already bounded by ``max_rows``."""
    rows: list[dict[str, Any]] = Field(
        ...,
        description="Result rows keyed by column name",
        examples=[[{"id": 1, "name": "alice"}]]
    )
    row_count: int = Field(
        ...,
        ge=0,
        description="Row count reported by the engine (may exceed len(rows))",
        examples=[1]
    )
    field_names: list[str] = Field(
        default_factory=list,
        description="Column names in result order",
        examples=[["id", "name"]]
    )

    model_config = ConfigDict(frozen=True)


class ExecuteOutcome(BaseModel):
    """Outcome of a mutating statement."""
    row_count: int = Field(..., ge=0, description="Rows affected")
    command: str = Field(
        ...,
        description="Verb reported by the engine's command tag",
        examples=["INSERT", "CREATE"]
    )

    model_config = ConfigDict(frozen=True)


class TableInfo(BaseModel):
    schema_name: str
    table_name: str
    table_type: str

    model_config = ConfigDict(frozen=True)


class ColumnInfo(BaseModel):
    column_name: str
    data_type: str
    is_nullable: bool
    column_default: Optional[str] = None
    character_maximum_length: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None

    model_config = ConfigDict(frozen=True)
