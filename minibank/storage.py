"""
Storage Backend Module

Provides the abstract table interface and the in-memory implementation used by
the managers. Records are kept as live objects (accounts hold back-references
to their owners), so nothing is serialised or copied on the way in or out.
Tables preserve insertion order, which is the default listing order.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional
import threading


class StorageInterface(ABC):
    """Abstract interface for storage backends"""
    
    @abstractmethod
    def save(self, table: str, record_id: str, record: Any) -> None:
        """Save a record to storage"""
        pass
    
    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Any]:
        """Load a record from storage"""
        pass
    
    @abstractmethod
    def load_all(self, table: str) -> List[Any]:
        """Load all records from a table in table order"""
        pass
    
    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from storage"""
        pass
    
    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        pass
    
    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Any]:
        """Find records whose attributes match all filters"""
        pass
    
    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""
        pass
    
    @abstractmethod
    def reorder(self, table: str, record_ids: Iterable[str]) -> None:
        """Replace the table order with the given id sequence"""
        pass
    
    @abstractmethod
    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        pass


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation"""
    
    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()
    
    def _ensure_table(self, table: str) -> Dict[str, Any]:
        """Ensure table exists"""
        if table not in self._data:
            self._data[table] = {}
        return self._data[table]
    
    def save(self, table: str, record_id: str, record: Any) -> None:
        """Insert or replace a record; replacing keeps its position"""
        with self._lock:
            self._ensure_table(table)[record_id] = record
    
    def load(self, table: str, record_id: str) -> Optional[Any]:
        """Load a record from memory"""
        with self._lock:
            return self._ensure_table(table).get(record_id)
    
    def load_all(self, table: str) -> List[Any]:
        """Load all records from a table"""
        with self._lock:
            return list(self._ensure_table(table).values())
    
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from memory"""
        with self._lock:
            rows = self._ensure_table(table)
            if record_id in rows:
                del rows[record_id]
                return True
            return False
    
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        with self._lock:
            return record_id in self._ensure_table(table)
    
    def find(self, table: str, filters: Dict[str, Any]) -> List[Any]:
        """Find records matching filters"""
        with self._lock:
            results = []
            for record in self._ensure_table(table).values():
                match = True
                for key, value in filters.items():
                    if getattr(record, key, None) != value:
                        match = False
                        break
                if match:
                    results.append(record)
            return results
    
    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            return len(self._ensure_table(table))
    
    def reorder(self, table: str, record_ids: Iterable[str]) -> None:
        """Rebuild the table in the given order"""
        with self._lock:
            rows = self._ensure_table(table)
            ordered_ids = list(record_ids)
            if set(ordered_ids) != set(rows) or len(ordered_ids) != len(rows):
                raise ValueError(f"Reorder of {table} must list every record exactly once")
            self._data[table] = {record_id: rows[record_id] for record_id in ordered_ids}
    
    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._data[table] = {}
