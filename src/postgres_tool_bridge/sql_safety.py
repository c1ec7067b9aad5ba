"""Lexical SQL statement classifier.

Decides whether raw SQL is read-only, mutating, or forbidden:

  1. Forbidden phrases anywhere in the normalized text -> FORBIDDEN
  2. Leading token ``select`` or text starting with ``with`` -> READ_ONLY
  3. Leading token in MUTATING_COMMANDS -> MUTATING
  4. Anything else -> FORBIDDEN("unrecognized command")

This is a lexer-level check, not a parser. A verb hidden inside a string
literal, a comment, or a later statement of a semicolon-separated batch is
not seen. Bound parameters and the database role's own grants remain the
real defense.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

# Verbs accepted by the execute tool
MUTATING_COMMANDS = (
    "insert", "update", "delete", "create", "alter",
    "drop", "truncate", "grant", "revoke",
)

# Matched by substring anywhere in the text, regardless of leading verb
FORBIDDEN_PHRASES = (
    "drop database",
    "drop schema",
    "drop user",
    "drop role",
    "shutdown",
    "restart",
)

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class StatementClass(Enum):
    READ_ONLY = "read_only"
    MUTATING = "mutating"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class ClassificationVerdict:
    kind: StatementClass
    reason: str = ""
    phrase: Optional[str] = None   # Forbidden phrase that matched, if any
    command: str = ""              # Leading token of the statement

    @property
    def is_read_only(self) -> bool:
        return self.kind is StatementClass.READ_ONLY

    @property
    def is_mutating(self) -> bool:
        return self.kind is StatementClass.MUTATING

    @property
    def is_forbidden(self) -> bool:
        return self.kind is StatementClass.FORBIDDEN


def classify(sql: str) -> ClassificationVerdict:
    """Classify a raw SQL string.

    Args:
        sql: Statement text as sent by the caller.

    Returns:
        ClassificationVerdict for the statement.
    """
    normalized = sql.strip().lower()
    tokens = normalized.split()
    command = tokens[0] if tokens else ""

    for phrase in FORBIDDEN_PHRASES:
        if phrase in normalized:
            return ClassificationVerdict(
                kind=StatementClass.FORBIDDEN,
                reason=f"dangerous command detected: {phrase}",
                phrase=phrase,
                command=command,
            )

    if command == "select" or normalized.startswith("with"):
        return ClassificationVerdict(kind=StatementClass.READ_ONLY, command=command)

    if command in MUTATING_COMMANDS:
        return ClassificationVerdict(kind=StatementClass.MUTATING, command=command)

    return ClassificationVerdict(
        kind=StatementClass.FORBIDDEN,
        reason="unrecognized command",
        command=command,
    )


def is_valid_identifier(name: str) -> bool:
    """True if ``name`` is safe to splice into SQL as an unquoted identifier."""
    return bool(IDENTIFIER_PATTERN.fullmatch(name))
