"""
SQL identifier validation and quoting.

Table and column names come from configuration, so they are validated
against a strict ASCII pattern before being quoted into statements.
Values are always passed as bound parameters, never formatted in.
"""

import re
from typing import Literal

QuoteStyle = Literal["postgresql", "ansi", "mysql", "sqlserver"]

QUOTE_STYLES: tuple[str, ...] = ("postgresql", "ansi", "mysql", "sqlserver")

VALID_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
VALID_SCHEMA_TABLE = re.compile(
    r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)?$"
)


def validate_identifier(identifier: str) -> None:
    """
    Raises:
        ValueError: If the identifier is empty or not a plain ASCII name
    """
    if not identifier:
        raise ValueError("SQL identifier cannot be empty")

    if not VALID_IDENTIFIER.match(identifier):
        raise ValueError(
            f"Invalid SQL identifier: {identifier!r}. "
            "Only ASCII letters, digits, and underscores are allowed, "
            "and must start with a letter or underscore."
        )


def validate_schema_table(schema_table: str) -> None:
    if not schema_table:
        raise ValueError("Schema.table identifier cannot be empty")

    if not VALID_SCHEMA_TABLE.match(schema_table):
        raise ValueError(
            f"Invalid schema.table identifier: {schema_table!r}. "
            "Only ASCII letters, digits, and underscores are allowed."
        )


def validate_quote_style(style: str) -> None:
    if style not in QUOTE_STYLES:
        raise ValueError(
            f"Unknown quote style: {style!r}. Expected one of {', '.join(QUOTE_STYLES)}."
        )


def _wrap(name: str, style: QuoteStyle) -> str:
    if style == "mysql":
        return f"`{name}`"
    if style == "sqlserver":
        return f"[{name}]"
    return f'"{name}"'


def quote_identifier(identifier: str, style: QuoteStyle) -> str:
    """
    Validate and quote a column or table name

    Args:
        identifier: Bare identifier
        style: "postgresql"/"ansi" ("x"), "mysql" (`x`) or "sqlserver" ([x])

    Returns:
        Quoted identifier

    Raises:
        ValueError: If the identifier or style is invalid
    """
    validate_quote_style(style)
    validate_identifier(identifier)
    return _wrap(identifier, style)


def quote_schema_table(schema_table: str, style: QuoteStyle) -> str:
    """Validate and quote ``table`` or ``schema.table``."""
    validate_quote_style(style)
    validate_schema_table(schema_table)
    return ".".join(_wrap(part, style) for part in schema_table.split("."))
