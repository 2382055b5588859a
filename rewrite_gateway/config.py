import json
from os import getenv
from re import Pattern

from pydantic import BaseModel, Field

from .routing import Router, create_router


class RouteRule(BaseModel):
    pattern: Pattern[str]
    upstream: str


class Settings(BaseModel):
    routes: list[RouteRule] = Field(default_factory=list)
    upstream_timeout: float = 20.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from GATEWAY_* environment variables.

        GATEWAY_ROUTES holds a JSON list of {"pattern": ..., "upstream": ...}
        objects; unset variables keep their defaults.
        """
        values = {}
        routes = getenv("GATEWAY_ROUTES")
        if routes:
            values["routes"] = json.loads(routes)
        timeout = getenv("GATEWAY_UPSTREAM_TIMEOUT")
        if timeout:
            values["upstream_timeout"] = timeout
        log_level = getenv("GATEWAY_LOG_LEVEL")
        if log_level:
            values["log_level"] = log_level
        return cls.model_validate(values)

    def router(self) -> Router[str]:
        return create_router((rule.pattern, rule.upstream) for rule in self.routes)


# default in-memory config
settings = Settings(
    routes=[
        RouteRule(pattern=r"^/api/users", upstream="http://users-service:8000"),
        RouteRule(pattern=r"^/api/orders", upstream="http://orders-service:8000"),
    ]
)
