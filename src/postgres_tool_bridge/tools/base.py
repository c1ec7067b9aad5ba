from typing import Any, Protocol, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from ..errors import ValidationError
from ..schemas import ToolDefinition
from ..sql_safety import is_valid_identifier

M = TypeVar("M", bound=BaseModel)


class Tool(Protocol):
    name: str
    definition: ToolDefinition

    async def run(self, args: Any) -> str:
        """Execute the tool with raw caller arguments.

        Args:
            args: Arguments as received from the transport (usually a dict).

        Returns:
            Rendered text for the response envelope.

        Raises:
            ValidationError: If arguments or the statement are rejected.
            DatabaseError: If the engine fails.
        """
        ...


def parse_args(model: type[M], raw: Any) -> M:
    """Validate raw arguments against a tool's input model.

    Every violated field is reported at once; nothing is applied on failure.
    """
    try:
        return model.model_validate(raw if raw is not None else {})
    except PydanticValidationError as e:
        issues = [
            (".".join(str(p) for p in err["loc"]) or "(root)", err["msg"])
            for err in e.errors()
        ]
        raise ValidationError("Invalid arguments", issues=issues) from e


def require_identifier(name: str, kind: str) -> None:
    if not is_valid_identifier(name):
        raise ValidationError(
            f"Invalid {kind} name '{name}'. {kind.capitalize()} names must start with a letter or "
            "underscore and contain only letters, numbers, and underscores.",
            details={"identifier": name, "kind": kind},
        )


def definition_for(name: Any, description: str, model: type[BaseModel]) -> ToolDefinition:
    return ToolDefinition(name=name, description=description, input_schema=model.model_json_schema(by_alias=True))
