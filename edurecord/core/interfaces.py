"""
Core interfaces and abstract base classes for the EduRecord platform.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, TypeVar, Generic

from .enums import RecordOperation, UserRole


T = TypeVar('T')


class AccessControl(ABC):
    """Abstract base class for access control mechanisms."""

    @abstractmethod
    def check_access(self, role: UserRole, operation: RecordOperation) -> bool:
        """Check if the role may perform the operation."""
        pass

    @abstractmethod
    def get_permissions(self, role: UserRole) -> List[RecordOperation]:
        """Get list of operations permitted for the role."""
        pass


class Repository(ABC, Generic[T]):
    """Abstract base class for repositories."""

    @abstractmethod
    def save(self, entity: T) -> T:
        """Save an entity."""
        pass

    @abstractmethod
    def find_by_id(self, entity_id: str) -> Optional[T]:
        """Find entity by ID."""
        pass

    @abstractmethod
    def delete(self, entity_id: str) -> bool:
        """Delete an entity by ID."""
        pass
