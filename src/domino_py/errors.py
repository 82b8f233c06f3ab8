from __future__ import annotations


class DominoError(Exception):
    pass


class ValidationError(DominoError):
    pass


class SerializationError(ValidationError):
    def __init__(self, *, value: object, reason: str) -> None:
        super().__init__(f"cannot serialize {type(value).__name__} value: {reason}")
        self.value = value
        self.reason = reason


class ConditionFailedError(DominoError):
    pass


class NotFoundError(DominoError):
    pass


class BatchRetryExceededError(DominoError):
    def __init__(self, *, operation: str, unprocessed_count: int) -> None:
        super().__init__(f"{operation}: retry limit exceeded (unprocessed={unprocessed_count})")
        self.operation = operation
        self.unprocessed_count = unprocessed_count


class AwsError(DominoError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
