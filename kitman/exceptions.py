"""
Exceptions for Kitman.

All errors are KitError with a structured code for programmatic handling.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any


class KitError(Exception):
    """
    Structured exception for inventory and MRP operations.

    Usage:
        try:
            inventory.allocate(10, material, order)
        except KitError as e:
            if e.code == 'INSUFFICIENT_STOCK':
                print(f"Only {e.available} available")

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context data
    """

    _default_messages = {
        'INSUFFICIENT_STOCK': 'Requested quantity exceeds available stock',
        'INVALID_TRANSITION': 'Allocation cannot move to the requested state',
        'INVALID_QUANTITY': 'Invalid quantity',
        'NOT_FOUND': 'Referenced record does not exist',
        'ALLOCATION_EXISTS': 'An active allocation already exists for this material and order',
        'REASON_REQUIRED': 'A reason is required',
        'IMMUTABLE_TRANSACTION': 'Inventory transactions cannot be changed or deleted',
        'WRONG_ORDER': 'Allocation belongs to a different order',
    }

    code: str = ''

    def __init__(self, code: str | None = None, message: str | None = None, **data):
        self.code = code or self.code
        self.message = message or self._default_messages.get(self.code, self.code)
        self.data = data
        super().__init__(self.message)

    def __getattr__(self, name):
        # Only reached for attributes not found normally
        data = self.__dict__.get('data', {})
        if name in data:
            return data[name]
        raise AttributeError(name)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    @property
    def available(self) -> Decimal:
        """Shortcut for data['available']."""
        return self.data.get('available', Decimal('0'))

    @property
    def requested(self):
        """Shortcut for data['requested']."""
        return self.data.get('requested', Decimal('0'))

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'code': self.code,
            'message': self.message,
            'data': {
                k: str(v) if isinstance(v, Decimal) else v
                for k, v in self.data.items()
            }
        }


class InvalidTransition(KitError):
    """Requested allocation state change is not in the transition table."""

    code = 'INVALID_TRANSITION'

    def __init__(self, current, requested, message=None, **data):
        super().__init__(None, message, current=current, requested=requested, **data)

    @property
    def current(self):
        return self.data['current']


class InsufficientStock(KitError):
    code = 'INSUFFICIENT_STOCK'

    def __init__(self, available, requested, message=None, **data):
        super().__init__(None, message, available=available, requested=requested, **data)


class InvalidQuantity(KitError):
    code = 'INVALID_QUANTITY'

    def __init__(self, message=None, **data):
        super().__init__(None, message, **data)


class NotFound(KitError):
    code = 'NOT_FOUND'

    def __init__(self, entity: str, id, message=None, **data):
        super().__init__(None, message, entity=entity, id=id, **data)


@dataclass(frozen=True)
class VarianceWarning:
    """
    Non-fatal signal that a return did not add up.

    variance = issued - counted - consumed - waste (either sign).
    """

    allocation_id: int
    material_id: int
    issued: Decimal
    counted: Decimal
    consumed: Decimal
    waste: Decimal
    variance: Decimal

    def as_dict(self) -> dict[str, Any]:
        return {
            'allocation_id': self.allocation_id,
            'material_id': self.material_id,
            'issued': str(self.issued),
            'counted': str(self.counted),
            'consumed': str(self.consumed),
            'waste': str(self.waste),
            'variance': str(self.variance),
        }
