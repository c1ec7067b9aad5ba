"""Pydantic schemas for tool inputs and the response envelope."""
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Literal, Optional

ToolName = Literal[
    "postgresql_query",
    "postgresql_execute",
    "postgresql_create_table",
    "postgresql_describe_table",
    "postgresql_list_tables",
]


class QueryParams(BaseModel):
    query: str = Field(
        ...,
        min_length=1,
        description="The SQL SELECT query to execute. Only SELECT and WITH statements are allowed.",
    )
    params: Optional[list[Any]] = Field(
        None,
        description="Optional positional parameters bound to %s placeholders (recommended for security)",
    )


class ExecuteParams(BaseModel):
    query: str = Field(
        ...,
        min_length=1,
        description=(
            "The SQL command to execute. Allowed commands: INSERT, UPDATE, DELETE, CREATE, ALTER, "
            "DROP, TRUNCATE, GRANT, REVOKE. Dangerous operations are blocked."
        ),
    )
    params: Optional[list[Any]] = Field(
        None,
        description="Optional positional parameters bound to %s placeholders (recommended for security)",
    )


class ColumnDefinition(BaseModel):
    name: str = Field(..., min_length=1, description="Column name. Must be a valid SQL identifier.")
    type: str = Field(..., min_length=1, description="PostgreSQL data type (e.g. VARCHAR(100), INTEGER)")
    constraints: Optional[str] = Field(
        None, description="Optional column constraints (e.g. NOT NULL, PRIMARY KEY, DEFAULT 0)"
    )


class CreateTableParams(BaseModel):
    table_name: str = Field(
        ..., alias="tableName", min_length=1, description="Name of the table to create. Must be a valid SQL identifier."
    )
    columns: list[ColumnDefinition] = Field(..., min_length=1, description="Column definitions")
    if_not_exists: bool = Field(
        True, alias="ifNotExists", description="Use IF NOT EXISTS to avoid errors if the table already exists"
    )

    model_config = ConfigDict(populate_by_name=True)


class DescribeTableParams(BaseModel):
    table_name: str = Field(
        ..., alias="tableName", min_length=1, description="Name of the table to describe. Must be a valid SQL identifier."
    )

    model_config = ConfigDict(populate_by_name=True)


class ListTablesParams(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ToolDefinition(BaseModel):
    """Static description of one tool, built once at startup."""
    name: ToolName
    description: str
    input_schema: dict[str, Any] = Field(..., serialization_alias="inputSchema")

    model_config = ConfigDict(frozen=True)


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResponse(BaseModel):
    """Uniform envelope returned from every call."""
    content: list[TextContent]
    is_error: Optional[bool] = Field(None, serialization_alias="isError")

    @classmethod
    def text(cls, text: str) -> "ToolResponse":
        return cls(content=[TextContent(text=text)])

    @classmethod
    def error(cls, text: str) -> "ToolResponse":
        return cls(content=[TextContent(text=text)], is_error=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
