"""
Base classes and interfaces for VI-CBF membership filters.

This module defines the abstract base class that membership filters implement
to provide a consistent interface for insertion, querying, deletion,
serialization and introspection.
"""

import abc
import json
import sys
from typing import Any, Dict, Union

from vicbf.core.hash import KeyLike


class MembershipFilter(abc.ABC):
    """
    Abstract base class for approximate set membership filters with deletion.

    Subclasses implement the insert/query/remove protocol plus a dictionary and
    a binary representation. This class layers the convenience API on top:
    `update`/`contains` aliases, the `in` operator, format-dispatching
    serialization and statistics hooks.
    """

    @abc.abstractmethod
    def insert(self, key: KeyLike) -> None:
        """
        Add a key to the filter.

        Args:
            key: The key to insert.
        """
        pass

    @abc.abstractmethod
    def query(self, key: KeyLike) -> bool:
        """
        Test whether a key may be in the filter.

        Args:
            key: The key to test.

        Returns:
            True if the key may be present, False if it is definitely absent.
        """
        pass

    @abc.abstractmethod
    def remove(self, key: KeyLike) -> None:
        """
        Remove a previously inserted key.

        Args:
            key: The key to remove.

        Raises:
            NotPresentError: If the filter cannot have contained the key.
        """
        pass

    def update(self, key: KeyLike) -> None:
        """Alias for insert()."""
        self.insert(key)

    def contains(self, key: KeyLike) -> bool:
        """Alias for query()."""
        return self.query(key)

    def __contains__(self, key: object) -> bool:
        return self.query(key)  # type: ignore[arg-type]

    @abc.abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the filter to a dictionary for serialization.

        Returns:
            A dictionary representation of the filter.
        """
        pass

    def _base_dict(self) -> Dict[str, Any]:
        """
        Create a dictionary with attributes common to all filters.

        Returns:
            A dictionary with base attributes.
        """
        return {"type": self.__class__.__name__}

    @classmethod
    @abc.abstractmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MembershipFilter":
        """
        Create a filter from a dictionary representation.

        Args:
            data: The dictionary containing the filter state.

        Returns:
            A new filter initialized with the given state.
        """
        pass

    @abc.abstractmethod
    def to_bytes(self) -> bytes:
        """Encode the filter in its binary wire format."""
        pass

    @classmethod
    @abc.abstractmethod
    def from_bytes(cls, data: bytes) -> "MembershipFilter":
        """Decode a filter from its binary wire format."""
        pass

    def serialize(self, format: str = "binary") -> Union[str, bytes]:
        """
        Serialize the filter to a string or bytes.

        Args:
            format: The serialization format ('binary' or 'json').

        Returns:
            The serialized representation of the filter.

        Raises:
            ValueError: If the format is not supported.
        """
        if format == "binary":
            return self.to_bytes()
        elif format == "json":
            return json.dumps(self.to_dict())
        else:
            raise ValueError(f"Unsupported serialization format: {format}")

    @classmethod
    def deserialize(
        cls, data: Union[str, bytes], format: str = "binary"
    ) -> "MembershipFilter":
        """
        Deserialize a filter from a string or bytes.

        Args:
            data: The serialized filter.
            format: The serialization format ('binary' or 'json').

        Returns:
            A new filter.

        Raises:
            ValueError: If the format is not supported.
            TypeError: If a binary dump is passed as str.
        """
        if format == "binary":
            if isinstance(data, str):
                raise TypeError("Binary dumps must be bytes, not str")
            return cls.from_bytes(bytes(data))
        elif format == "json":
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            return cls.from_dict(json.loads(data))
        else:
            raise ValueError(f"Unsupported serialization format: {format}")

    def estimate_size(self) -> int:
        """
        Estimate the current memory usage of this filter in bytes.

        This is a rough figure covering the object and its instance dictionary.
        Derived classes add the size of their counter storage.

        Returns:
            Estimated memory usage in bytes.
        """
        size = sys.getsizeof(self)
        if hasattr(self, "__dict__"):
            size += sys.getsizeof(self.__dict__)
        return size

    def get_stats(self) -> Dict[str, Any]:
        """
        Get detailed statistics about the current state of the filter.

        Derived classes should override this method to include their specific
        statistics while calling super().get_stats() to include base metrics.

        Returns:
            A dictionary containing various statistics about the filter state.
        """
        stats: Dict[str, Any] = {
            "type": self.__class__.__name__,
            "memory_bytes": self.estimate_size(),
        }

        error_bounds = self.error_bounds()
        if error_bounds:
            stats.update(error_bounds)

        return stats

    def error_bounds(self) -> Dict[str, Any]:
        """
        Get the theoretical error bounds for this filter.

        The base implementation returns an empty dictionary.

        Returns:
            A dictionary containing error bound information.
        """
        return {}
