"""
Routing Models

Static routing table loaded once at startup: broker settings plus one
outbound HTTP call template per event type. Frozen after validation, so
a single instance is shared by every concurrent handler invocation.
"""
from typing import Any, Optional
from urllib.parse import urlsplit
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

# Broker default when max_retries is unset or zero
DEFAULT_MAX_RETRIES = 16

ALLOWED_HTTP_METHODS = frozenset({"GET", "POST", "PUT", "DELETE", "PATCH"})


class MQConfig(BaseModel):
    """Broker connection settings and the dead-letter threshold."""
    model_config = ConfigDict(frozen=True)

    name_server: str = ""
    access_key: str = ""
    secret_key: str = ""
    group_name: str = ""
    max_retries: int = DEFAULT_MAX_RETRIES

    @field_validator("max_retries")
    @classmethod
    def default_max_retries(cls, value: int) -> int:
        if value < 0:
            raise ValueError("mq.max_retries cannot be negative")
        return value or DEFAULT_MAX_RETRIES


class RoutingRule(BaseModel):
    """
    How to notify an external system for one event type.

    Field aliases match the keys of the routing file
    (``http_method``, ``http_url``, ``body``).
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    event_type: str = Field(..., min_length=1)
    queue_name: str = Field(..., min_length=1)
    method: str = Field(..., alias="http_method", min_length=1)
    url: str = Field(..., alias="http_url", min_length=1)
    headers: dict[str, str] = Field(default_factory=dict)
    body_template: Any = Field(None, alias="body")

    @field_validator("method")
    @classmethod
    def validate_method(cls, value: str) -> str:
        method = value.upper()
        if method not in ALLOWED_HTTP_METHODS:
            raise ValueError(f"http_method '{value}' is invalid")
        return method

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        parts = urlsplit(value)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"http_url '{value}' is not an absolute URL")
        return value


class RelayConfig(BaseModel):
    """
    Complete routing configuration.

    Lookup by event type is an exact string match; when the file repeats
    an event type, the first entry wins.
    """
    model_config = ConfigDict(frozen=True)

    mq: MQConfig = Field(default_factory=MQConfig)
    notifications: list[RoutingRule] = Field(..., min_length=1)

    _rules: dict[str, RoutingRule] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        rules: dict[str, RoutingRule] = {}
        for rule in self.notifications:
            if rule.event_type in rules:
                logger.bind(event_type=rule.event_type, queue_name=rule.queue_name).warning(
                    f"Duplicate routing rule for event type {rule.event_type}, keeping the first"
                )
                continue
            rules[rule.event_type] = rule
        self._rules = rules

    @property
    def max_retries(self) -> int:
        """Redelivery count at which a message is dead-lettered."""
        return self.mq.max_retries

    def find_rule(self, event_type: str) -> Optional[RoutingRule]:
        """Return the rule configured for an event type, if any."""
        return self._rules.get(event_type)

    def topics(self) -> list[str]:
        """Distinct queue names in configuration order."""
        return list(dict.fromkeys(rule.queue_name for rule in self.notifications))
