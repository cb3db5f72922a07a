from __future__ import annotations

from decimal import Decimal


class LedgerError(ValueError):
    """Base class for operations the ledger refuses to perform."""


class NotFoundError(LedgerError):
    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(f'{entity} not found')
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(LedgerError):
    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class InvalidStateError(LedgerError):
    pass


class InvalidTransitionError(LedgerError):
    def __init__(self, current: object, requested: object) -> None:
        current_label = getattr(current, 'value', current)
        requested_label = getattr(requested, 'value', requested)
        super().__init__(f'Invalid status transition from {current_label} to {requested_label}')
        self.current = current
        self.requested = requested


class InvalidAmountError(LedgerError):
    def __init__(
        self,
        message: str,
        *,
        requested: Decimal | None = None,
        outstanding: Decimal | None = None,
    ) -> None:
        super().__init__(message)
        self.requested = requested
        self.outstanding = outstanding


class InvalidInputError(LedgerError):
    pass
