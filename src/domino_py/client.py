from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, cast

import boto3
from botocore.config import Config

from .errors import ValidationError

logger = logging.getLogger(__name__)

DefaultConnectTimeout = 60.0
DefaultReadTimeout = 60.0
LambdaConnectTimeout = 1.0
LambdaReadTimeout = 3.0
DefaultMaxAttempts = 3


@dataclass(frozen=True)
class AwsCallMetric:
    service: str
    operation: str
    seconds: float
    ok: bool


@dataclass(frozen=True)
class ClientSettings:
    endpoint_url: str | None = None
    region: str | None = None
    connect_timeout: float = DefaultConnectTimeout
    read_timeout: float = DefaultReadTimeout
    max_attempts: int = DefaultMaxAttempts

    @staticmethod
    def from_env(environ: Mapping[str, str] = os.environ) -> ClientSettings:
        """Read settings from the environment; Lambda gets the short timeout defaults."""
        connect_timeout, read_timeout = DefaultConnectTimeout, DefaultReadTimeout
        if is_lambda_environment(environ):
            connect_timeout, read_timeout = LambdaConnectTimeout, LambdaReadTimeout
        return ClientSettings(
            endpoint_url=(environ.get("DYNAMODB_ENDPOINT") or "").strip() or None,
            region=(environ.get("AWS_REGION") or environ.get("AWS_DEFAULT_REGION") or "").strip() or None,
            connect_timeout=_env_number(environ, "DOMINO_CONNECT_TIMEOUT", float, connect_timeout),
            read_timeout=_env_number(environ, "DOMINO_READ_TIMEOUT", float, read_timeout),
            max_attempts=_env_number(environ, "DOMINO_MAX_ATTEMPTS", int, DefaultMaxAttempts),
        )


def _env_number[N: (int, float)](
    environ: Mapping[str, str], name: str, parse: Callable[[str], N], default: N
) -> N:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = parse(raw)
    except ValueError as err:
        raise ValidationError(f"{name} must be a number: {raw!r}") from err
    if value <= 0:
        raise ValidationError(f"{name} must be > 0")
    return value


def is_lambda_environment(environ: Mapping[str, str] = os.environ) -> bool:
    return bool(
        environ.get("AWS_LAMBDA_FUNCTION_NAME") or "AWS_Lambda" in (environ.get("AWS_EXECUTION_ENV") or "")
    )


def create_boto3_config(settings: ClientSettings | None = None) -> Config:
    settings = settings or ClientSettings()
    return Config(
        connect_timeout=settings.connect_timeout,
        read_timeout=settings.read_timeout,
        retries={"max_attempts": settings.max_attempts, "mode": "adaptive"},
    )


class _InstrumentedClient:
    def __init__(self, client: Any, service: str, on_call: Callable[[AwsCallMetric], None]) -> None:
        self._client = client
        self._service = service
        self._on_call = on_call

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._client, name)
        if name.startswith("_") or not callable(attr):
            return attr

        def wrapped(*args: Any, **kwargs: Any) -> Any:
            start = time.monotonic()
            ok = False
            try:
                out = attr(*args, **kwargs)
                ok = True
                return out
            finally:
                self._on_call(
                    AwsCallMetric(
                        service=self._service,
                        operation=name,
                        seconds=time.monotonic() - start,
                        ok=ok,
                    )
                )

        return wrapped


def instrument_client(
    client: Any,
    *,
    service: str = "dynamodb",
    on_call: Callable[[AwsCallMetric], None],
) -> Any:
    return _InstrumentedClient(client, service, on_call)


_clients: dict[tuple[str | None, str | None], Any] = {}


def get_dynamodb_client(
    settings: ClientSettings | None = None,
    *,
    session: Any | None = None,
    metrics: Callable[[AwsCallMetric], None] | None = None,
) -> Any:
    """Return a DynamoDB client, cached per ``(endpoint, region)``.

    Settings default to :meth:`ClientSettings.from_env`.
    """
    settings = settings or ClientSettings.from_env()
    key = (settings.endpoint_url, settings.region)
    existing = _clients.get(key)
    if existing is not None:
        return existing

    sess = session or boto3.session.Session(region_name=settings.region)
    client = cast(Any, sess).client(
        "dynamodb",
        region_name=settings.region,
        endpoint_url=settings.endpoint_url,
        config=create_boto3_config(settings),
    )
    if metrics is not None:
        client = instrument_client(client, service="dynamodb", on_call=metrics)

    logger.debug("created dynamodb client endpoint=%s region=%s", settings.endpoint_url, settings.region)
    _clients[key] = client
    return client


def _reset_clients_for_tests() -> None:
    _clients.clear()
