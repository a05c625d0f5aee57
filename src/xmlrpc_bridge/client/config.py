"""Per-call client configuration.

A CallConfig is immutable. A client keeps one as its defaults; per-call
overrides always produce a new ephemeral config, so concurrent calls from one
client never need locking.
"""

from __future__ import annotations

import codecs
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..errors import ConfigError


class BasicAuth(BaseModel):
    """HTTP basic-auth credentials, passed through to the transport untouched."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user: str
    password: str = Field(default="", repr=False)


class CallConfig(BaseModel):
    """Configuration applied to a single call.

    Timeouts are in milliseconds. ``python_compat`` (accept and emit
    extension types without the Apache namespace, as Python, PHP and most
    other implementations do) implies ``extensions``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    basic_auth: BasicAuth | None = None
    connect_timeout: int | None = Field(default=None, gt=0)
    reply_timeout: int | None = Field(default=None, gt=0)
    content_length_optional: bool = False
    gzip_compressing: bool = False
    gzip_requesting: bool = False
    encoding: str = "UTF-8"
    user_agent: str | None = None
    extensions: bool = False
    python_compat: bool = False

    @model_validator(mode="before")
    @classmethod
    def _compat_implies_extensions(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and data.get("python_compat"):
            data = {**data, "extensions": True}
        return data

    @field_validator("basic_auth", mode="before")
    @classmethod
    def _credentials_pair(cls, value: Any) -> Any:
        if isinstance(value, (tuple, list)) and len(value) == 2:
            user, password = value
            return {"user": user, "password": password}
        return value

    @field_validator("encoding")
    @classmethod
    def _known_encoding(cls, value: str) -> str:
        try:
            codecs.lookup(value)
        except LookupError as e:
            raise ValueError(f"Unknown character encoding: {value}") from e
        return value

    @classmethod
    def build(cls, **options: Any) -> CallConfig:
        """Build a config from keyword options.

        Raises:
            ConfigError: If an option is unknown or invalid
        """
        try:
            return cls.model_validate(options)
        except ValidationError as e:
            raise ConfigError(f"Invalid call configuration: {e}") from e

    def with_overrides(self, overrides: Mapping[str, Any]) -> CallConfig:
        """Return a new config with ``overrides`` merged over this one.

        Turning ``python_compat`` off also drops the ``extensions`` it implied,
        unless the overrides set ``extensions`` themselves.
        """
        if not overrides:
            return self
        base = self.model_dump()
        if self.python_compat and "python_compat" in overrides and not overrides["python_compat"]:
            base.pop("extensions")
        return self.build(**{**base, **overrides})

    @property
    def connect_timeout_seconds(self) -> float | None:
        return None if self.connect_timeout is None else self.connect_timeout / 1000

    @property
    def reply_timeout_seconds(self) -> float | None:
        return None if self.reply_timeout is None else self.reply_timeout / 1000
