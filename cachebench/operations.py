"""
Operation kinds a workload phase can execute.

Each kind maps one cache call to an outcome category. New kinds are added by
extending OperationKind, subclassing Operation and registering the class:

    @OperationRegistry.register
    class RemoveOperation(Operation):
        kind = OperationKind.REMOVE
        ...
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type

from cachebench.config import OperationKind, OutcomeCategory
from cachebench.errors import PhaseSetupError


class Operation(ABC):
    """One cache call, classified into an OutcomeCategory.

    Attributes:
        kind: The OperationKind this class implements.
        error_category: Category recorded when the cache call raises.
        categories: Every category the operation can produce.
    """

    kind: OperationKind = None
    error_category: OutcomeCategory = None
    categories: tuple = ()

    @property
    def needs_value(self) -> bool:
        return False

    @abstractmethod
    def execute(self, cache, key, value=None) -> OutcomeCategory:
        """
        Run the operation against the cache.

        Exceptions raised by the cache propagate; the worker turns them into
        ``error_category``.
        """
        pass


class OperationRegistry:
    """Registry of the available operation kinds."""

    _operations: Dict[OperationKind, Type[Operation]] = {}

    @classmethod
    def register(cls, operation_class: Type[Operation]) -> Type[Operation]:
        """Register an operation class. Can be used as a decorator."""
        cls._operations[operation_class.kind] = operation_class
        return operation_class

    @classmethod
    def get(cls, kind: OperationKind) -> Optional[Type[Operation]]:
        return cls._operations.get(kind)

    @classmethod
    def create(cls, kind: OperationKind, phase_name: str = None) -> Operation:
        operation_class = cls._operations.get(kind)
        if operation_class is None:
            raise PhaseSetupError(f"No operation registered for kind {kind}", phase=phase_name,
                                  reason=f"available kinds: {', '.join(str(getattr(k, 'name', k)) for k in cls._operations)}")
        return operation_class()

    @classmethod
    def available_kinds(cls) -> List[OperationKind]:
        return list(cls._operations.keys())


@OperationRegistry.register
class PutOperation(Operation):
    kind = OperationKind.PUT
    error_category = OutcomeCategory.PUT_ERROR
    categories = (OutcomeCategory.PUT_OK, OutcomeCategory.PUT_ERROR)

    @property
    def needs_value(self) -> bool:
        return True

    def execute(self, cache, key, value=None) -> OutcomeCategory:
        cache.put(key, value)
        return OutcomeCategory.PUT_OK


@OperationRegistry.register
class GetOperation(Operation):
    kind = OperationKind.GET
    error_category = OutcomeCategory.GET_ERROR
    categories = (OutcomeCategory.GET_HIT, OutcomeCategory.GET_MISS, OutcomeCategory.GET_ERROR)

    def execute(self, cache, key, value=None) -> OutcomeCategory:
        if cache.get(key) is None:
            return OutcomeCategory.GET_MISS
        return OutcomeCategory.GET_HIT
