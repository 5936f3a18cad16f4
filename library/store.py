"""
Interface of the document store the services run against.

Records are plain dicts whose identifier is exposed as the string field
``id``. The MongoDB implementation lives in ``api.database``.
"""

from typing import Any, Dict, Iterable, List, Optional, Protocol


class RecordStore(Protocol):
    """One collection of records keyed by opaque string identifiers."""

    async def find_by_field(self, field: str, value: Any) -> Optional[Dict[str, Any]]:
        ...

    async def find_by_id(self, record_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def find_by_ids(self, record_ids: Iterable[str]) -> List[Dict[str, Any]]:
        ...

    async def find_many(self, filter_query: Dict[str, Any]) -> List[Dict[str, Any]]:
        ...

    async def insert(self, record: Dict[str, Any]) -> str:
        """Insert a record and return its new identifier.

        Raises ConflictError when a unique constraint is violated.
        """
        ...

    async def save(self, record_id: str, fields: Dict[str, Any]) -> bool:
        """Overwrite the given fields; returns False if the record is gone."""
        ...

    async def delete_by_id(self, record_id: str) -> bool:
        ...

    def is_valid_id(self, record_id: str) -> bool:
        ...
