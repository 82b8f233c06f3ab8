from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .cursor import Cursor, Page, decode_cursor, encode_cursor
from .errors import (
    AwsError,
    BatchRetryExceededError,
    ConditionFailedError,
    DominoError,
    NotFoundError,
    SerializationError,
    ValidationError,
)
from .expression import (
    CONDITION_COUNTER_START,
    KEY_CONDITION_COUNTER_START,
    UPDATE_COUNTER_START,
    Condition,
    Expression,
    ExpressionGroup,
    KeyCondition,
    Negation,
    Rendered,
    and_,
    not_,
    or_,
)
from .fields import (
    BinaryField,
    BinarySetField,
    BoolField,
    EmptyField,
    Field,
    ListField,
    MapField,
    NumericField,
    NumericSetField,
    StringField,
    StringSetField,
)
from .model import GlobalSecondaryIndex, KeyValue, LocalSecondaryIndex, Projection
from .table import DynamoTable
from .update import UpdateExpression, build_update_expression

if TYPE_CHECKING:
    from .client import (
        AwsCallMetric,
        ClientSettings,
        create_boto3_config,
        get_dynamodb_client,
        instrument_client,
        is_lambda_environment,
    )
    from .schema import build_create_table_request, create_table, delete_table, describe_table, ensure_table


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except Exception:
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name in {
        "build_create_table_request",
        "create_table",
        "delete_table",
        "describe_table",
        "ensure_table",
    }:
        from . import schema

        return getattr(schema, name)
    if name in {
        "AwsCallMetric",
        "ClientSettings",
        "create_boto3_config",
        "get_dynamodb_client",
        "instrument_client",
        "is_lambda_environment",
    }:
        from . import client

        return getattr(client, name)
    raise AttributeError(name)


__all__ = [
    "AwsCallMetric",
    "AwsError",
    "BatchRetryExceededError",
    "BinaryField",
    "BinarySetField",
    "BoolField",
    "CONDITION_COUNTER_START",
    "ClientSettings",
    "Condition",
    "ConditionFailedError",
    "Cursor",
    "DominoError",
    "DynamoTable",
    "EmptyField",
    "Expression",
    "ExpressionGroup",
    "Field",
    "GlobalSecondaryIndex",
    "KEY_CONDITION_COUNTER_START",
    "KeyCondition",
    "KeyValue",
    "ListField",
    "LocalSecondaryIndex",
    "MapField",
    "Negation",
    "NotFoundError",
    "NumericField",
    "NumericSetField",
    "Page",
    "Projection",
    "Rendered",
    "SerializationError",
    "StringField",
    "StringSetField",
    "UPDATE_COUNTER_START",
    "UpdateExpression",
    "ValidationError",
    "__repo_version__",
    "__version__",
    "and_",
    "build_create_table_request",
    "build_update_expression",
    "create_boto3_config",
    "create_table",
    "decode_cursor",
    "delete_table",
    "describe_table",
    "encode_cursor",
    "ensure_table",
    "get_dynamodb_client",
    "instrument_client",
    "is_lambda_environment",
    "not_",
    "or_",
]
