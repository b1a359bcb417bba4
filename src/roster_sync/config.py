"""
Settings for roster-sync.

Settings are read from environment variables (the CLI loads a ``.env``
file first and lets command-line options override individual values).
Table and column names default to the original deployment: an
``etu_users`` roster on the source and ``persons``/``taggables`` on the
target.
"""

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from roster_sync.utils.db_pool.odbc import DEFAULT_ODBC_DRIVER
from roster_sync.utils.sql_safety import (
    QUOTE_STYLES,
    validate_identifier,
    validate_schema_table,
)

DEFAULT_SUBJECT_TYPE = "Robert2\\API\\Models\\Person"

TRUTHY = ("true", "1", "yes", "on")
FALSY = ("false", "0", "no", "off")


class ConfigurationError(ValueError):
    """Invalid or missing settings."""


@dataclass(frozen=True)
class SourceSchema:
    """Where the roster lives in the source store."""

    table: str = "etu_users"
    first_name_column: str = "firstName"
    last_name_column: str = "lastName"
    login_column: str = "login"
    email_column: str = "mail"
    quote_style: str = "mysql"


@dataclass(frozen=True)
class TargetSchema:
    """Member and association tables in the target store."""

    member_table: str = "persons"
    association_table: str = "taggables"
    id_column: str = "id"
    first_name_column: str = "first_name"
    last_name_column: str = "last_name"
    nickname_column: str = "nickname"
    email_column: str = "email"
    management_link_column: str = "user_id"
    created_at_column: str = "created_at"
    updated_at_column: str = "updated_at"
    # profile fields written as explicit NULLs on insert
    null_profile_columns: tuple[str, ...] = (
        "phone",
        "street",
        "postal_code",
        "locality",
        "country_id",
        "company_id",
        "note",
    )
    tag_column: str = "tag_id"
    subject_type_column: str = "taggable_type"
    subject_id_column: str = "taggable_id"


@dataclass(frozen=True)
class ActivityPredicate:
    """
    Decides which source accounts count as active

    An account is active while its membership end column is after the
    reference time (``>``), or at/after it when ``inclusive`` is set.
    The reference time comes from ``clock`` when given, else from the
    local wall clock or UTC, and is passed as a naive datetime to match
    DATETIME columns.
    """

    column: str = "bdeMembershipEnd"
    inclusive: bool = False
    use_utc: bool = False
    clock: Callable[[], datetime] | None = None

    @property
    def operator(self) -> str:
        return ">=" if self.inclusive else ">"

    def reference_time(self) -> datetime:
        if self.clock is not None:
            now = self.clock()
        elif self.use_utc:
            now = datetime.now(UTC)
        else:
            now = datetime.now()

        if now.tzinfo is not None:
            now = now.astimezone(UTC if self.use_utc else None).replace(tzinfo=None)
        return now


@dataclass
class SyncSettings:
    """Everything one sync process needs."""

    source: dict[str, Any]
    target: dict[str, Any]
    tag_id: int | None
    subject_type: str = DEFAULT_SUBJECT_TYPE
    interval_minutes: int = 15
    activity: ActivityPredicate = field(default_factory=ActivityPredicate)
    source_schema: SourceSchema = field(default_factory=SourceSchema)
    target_schema: TargetSchema = field(default_factory=TargetSchema)
    run_timeout: float = 300.0
    statement_timeout: int = 60
    transactional: bool = True
    metrics_port: int | None = None

    def validate(self) -> None:
        """
        Raises:
            ConfigurationError: On the first invalid setting found
        """
        if isinstance(self.interval_minutes, bool) or not isinstance(self.interval_minutes, int) \
                or self.interval_minutes <= 0:
            raise ConfigurationError(
                f"Sync interval must be a positive integer number of minutes, "
                f"got {self.interval_minutes!r}"
            )
        if self.tag_id is None:
            raise ConfigurationError("A tag id is required (TAG_ID or --tag-id)")
        if isinstance(self.tag_id, bool) or not isinstance(self.tag_id, int):
            raise ConfigurationError(f"Tag id must be an integer, got {self.tag_id!r}")
        if not self.subject_type:
            raise ConfigurationError("Association subject type cannot be empty")
        if self.run_timeout <= 0:
            raise ConfigurationError(f"Run timeout must be positive, got {self.run_timeout!r}")
        if self.statement_timeout < 0:
            raise ConfigurationError(
                f"Statement timeout cannot be negative, got {self.statement_timeout!r}"
            )

        if not self.source.get("connection_string"):
            for key in ("host", "database", "user", "password"):
                if not self.source.get(key):
                    raise ConfigurationError(f"Source store setting '{key}' is required")
        for key in ("host", "database", "user", "password"):
            if not self.target.get(key):
                raise ConfigurationError(f"Target store setting '{key}' is required")

        if self.source_schema.quote_style not in QUOTE_STYLES:
            raise ConfigurationError(
                f"Unknown source quote style {self.source_schema.quote_style!r}, "
                f"expected one of {', '.join(QUOTE_STYLES)}"
            )

        try:
            validate_schema_table(self.source_schema.table)
            validate_schema_table(self.target_schema.member_table)
            validate_schema_table(self.target_schema.association_table)
            for name in (
                self.source_schema.first_name_column,
                self.source_schema.last_name_column,
                self.source_schema.login_column,
                self.source_schema.email_column,
                self.activity.column,
            ):
                validate_identifier(name)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    def source_pool_config(self) -> dict[str, Any]:
        return {**self.source, "query_timeout": self.statement_timeout}

    def target_pool_config(self) -> dict[str, Any]:
        return {**self.target, "statement_timeout": self.statement_timeout}

    def with_credentials(self, source: Mapping[str, Any], target: Mapping[str, Any]) -> "SyncSettings":
        """Copy with store connection fields replaced by ``source``/``target`` values."""
        return replace(self, source={**self.source, **source}, target={**self.target, **target})

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "SyncSettings":
        """
        Build settings from environment variables

        Raises:
            ConfigurationError: If a variable cannot be parsed; call
                ``validate()`` for the semantic checks
        """
        env = os.environ if env is None else env

        def get(name: str, default: str | None = None) -> str | None:
            value = env.get(name)
            return value if value not in (None, "") else default

        def get_int(name: str, default: int | None) -> int | None:
            raw = get(name)
            if raw is None:
                return default
            try:
                return int(raw)
            except ValueError:
                raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None

        def get_bool(name: str, default: bool) -> bool:
            raw = get(name)
            if raw is None:
                return default
            if raw.lower() in TRUTHY:
                return True
            if raw.lower() in FALSY:
                return False
            raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")

        source: dict[str, Any]
        if get("SOURCE_CONNECTION_STRING"):
            source = {"connection_string": get("SOURCE_CONNECTION_STRING")}
        else:
            source = {
                "host": get("SOURCE_HOST", "localhost"),
                "port": get_int("SOURCE_PORT", 3306),
                "database": get("SOURCE_DATABASE"),
                "user": get("SOURCE_USER"),
                "password": get("SOURCE_PASSWORD"),
                "driver": get("SOURCE_DRIVER", DEFAULT_ODBC_DRIVER),
            }

        target = {
            "host": get("TARGET_HOST", "localhost"),
            "port": get_int("TARGET_PORT", 5432),
            "database": get("TARGET_DATABASE"),
            "user": get("TARGET_USER"),
            "password": get("TARGET_PASSWORD"),
        }

        return cls(
            source=source,
            target=target,
            tag_id=get_int("TAG_ID", None),
            subject_type=get("TAGGABLE_TYPE", DEFAULT_SUBJECT_TYPE),
            interval_minutes=get_int("SYNC_GAP_MINUTES", 15),
            activity=ActivityPredicate(
                column=get("ACTIVITY_COLUMN", "bdeMembershipEnd"),
                inclusive=get_bool("ACTIVITY_INCLUSIVE", False),
                use_utc=get_bool("ACTIVITY_UTC", False),
            ),
            source_schema=SourceSchema(
                table=get("SOURCE_TABLE", "etu_users"),
                quote_style=get("SOURCE_QUOTE_STYLE", "mysql"),
            ),
            target_schema=TargetSchema(
                member_table=get("TARGET_MEMBER_TABLE", "persons"),
                association_table=get("TARGET_ASSOCIATION_TABLE", "taggables"),
            ),
            run_timeout=float(get_int("SYNC_RUN_TIMEOUT", 300)),
            statement_timeout=get_int("SYNC_STATEMENT_TIMEOUT", 60),
            transactional=get_bool("SYNC_TRANSACTIONAL", True),
            metrics_port=get_int("METRICS_PORT", None),
        )
