"""Outcome types for receipt validation and purchase/restore requests."""

import dataclasses
from enum import Enum
from typing import Optional

from warehouse.exceptions import WarehouseError

from .receipt import Receipt


@dataclasses.dataclass(frozen=True)
class ValidationResult:
    """Success(receipt) or Error(error) for one validation call."""

    receipt: Optional[Receipt] = None
    error: Optional[WarehouseError] = None

    @classmethod
    def success(cls, receipt: Receipt) -> "ValidationResult":
        return cls(receipt=receipt)

    @classmethod
    def failure(cls, error: WarehouseError) -> "ValidationResult":
        return cls(error=error)

    @property
    def is_success(self) -> bool:
        return self.error is None


class ResultKind(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"


@dataclasses.dataclass(frozen=True)
class WarehouseResult:
    """Outcome delivered to the caller of a purchase or restore."""

    kind: ResultKind
    error: Optional[BaseException] = None

    @classmethod
    def success(cls) -> "WarehouseResult":
        return cls(ResultKind.SUCCESS)

    @classmethod
    def failure(cls, error: BaseException) -> "WarehouseResult":
        return cls(ResultKind.FAILURE, error)

    @classmethod
    def cancelled(cls) -> "WarehouseResult":
        return cls(ResultKind.CANCELLED)

    @property
    def is_success(self) -> bool:
        return self.kind is ResultKind.SUCCESS

    @property
    def is_cancelled(self) -> bool:
        return self.kind is ResultKind.CANCELLED
