"""
Audit Trail Module

Hash-chained append-only audit log with SHA-256 for tamper detection.
Every operator action and state change in the system is logged here and
presented most-recent-first.
"""

import hashlib
import json
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
from enum import Enum
from decimal import Decimal

from .storage import StorageInterface
from .history import as_recency_ordered_view


class AuditEventType(Enum):
    """Types of audit events"""
    # Customer events
    CUSTOMER_CREATED = "customer_created"
    CUSTOMER_DELETED = "customer_deleted"
    PROFILE_UPDATED = "profile_updated"

    # Account events
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_DELETED = "account_deleted"
    OVERDRAFT_LIMIT_CHANGED = "overdraft_limit_changed"
    INTEREST_APPLIED = "interest_applied"
    ACCOUNTS_SORTED = "accounts_sorted"

    # Transaction events
    TRANSACTION_POSTED = "transaction_posted"
    TRANSACTION_FAILED = "transaction_failed"

    # Security events
    ACCESS_DENIED = "access_denied"
    USER_REGISTERED = "user_registered"
    USER_DELETED = "user_deleted"
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"
    PASSWORD_CHANGED = "password_changed"

    # Free-form operator actions reported by the CLI layer
    USER_ACTION = "user_action"


@dataclass
class AuditEvent:
    """
    Audit event with hash chaining for tamper detection
    """
    id: str
    created_at: datetime
    event_type: AuditEventType
    entity_type: str  # customer, account, transaction, user, ...
    entity_id: str
    details: str
    previous_hash: str
    current_hash: str
    username: Optional[str] = None
    role: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.metadata:
            self._serialize_metadata()

    def _serialize_metadata(self) -> None:
        """Convert metadata values to JSON-serializable format"""
        def convert_value(value):
            if isinstance(value, Decimal):
                return str(value)
            elif isinstance(value, datetime):
                return value.isoformat()
            elif isinstance(value, Enum):
                return value.value
            elif isinstance(value, dict):
                return {k: convert_value(v) for k, v in value.items()}
            elif isinstance(value, (list, tuple)):
                return [convert_value(v) for v in value]
            else:
                return value

        self.metadata = {k: convert_value(v) for k, v in self.metadata.items()}

    def calculate_hash(self) -> str:
        """
        Calculate SHA-256 hash of this event
        Hash includes all fields except current_hash
        """
        hash_data = {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'details': self.details,
            'previous_hash': self.previous_hash,
            'username': self.username,
            'role': self.role,
            'metadata': self.metadata
        }

        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        """Verify that the current hash is correct"""
        return self.current_hash == self.calculate_hash()

    def to_line(self) -> str:
        """One-line rendering for audit listings"""
        who = f"{self.username} ({self.role})" if self.username else "SYSTEM"
        stamp = self.created_at.strftime("%Y-%m-%d %H:%M:%S")
        return f"[{stamp}] {who} {self.event_type.value.upper()}: {self.details}"


class AuditTrail:
    """
    Hash-chained audit trail
    """

    def __init__(self, storage: StorageInterface, table_name: str = "audit_events",
                 enabled: bool = True):
        self.storage = storage
        self.table_name = table_name
        self.enabled = enabled
        self._sequence = storage.count(table_name)
        self._last_hash: Optional[str] = None
        events = storage.load_all(table_name)
        if events:
            self._last_hash = events[-1].current_hash

    def log_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        details: str = "",
        username: Optional[str] = None,
        role: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Optional[AuditEvent]:
        """
        Log an audit event with hash chaining

        Args:
            event_type: Type of audit event
            entity_type: Type of entity being audited
            entity_id: ID of the entity
            details: Human-readable description
            username: Operator who initiated the action
            role: Operator role
            metadata: Additional event-specific data

        Returns:
            Created AuditEvent, or None when audit logging is disabled
        """
        if not self.enabled:
            return None

        self._sequence += 1
        event = AuditEvent(
            id=f"AUD{self._sequence:06d}",
            created_at=datetime.now(timezone.utc),
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
            previous_hash=self._last_hash or "",
            current_hash="",
            username=username,
            role=role,
            metadata=metadata or {}
        )
        event.current_hash = event.calculate_hash()

        self.storage.save(self.table_name, event.id, event)
        self._last_hash = event.current_hash
        return event

    def get_all_events(self) -> List[AuditEvent]:
        """All events in the order they were logged"""
        return self.storage.load_all(self.table_name)

    def recent(self, limit: Optional[int] = None) -> List[AuditEvent]:
        """Events most-recent-first, optionally truncated to the newest `limit`"""
        events = as_recency_ordered_view(self.get_all_events())
        if limit is not None:
            events = events[:limit]
        return events

    def events_for(self, username: str) -> List[AuditEvent]:
        """Events initiated by one operator, most-recent-first"""
        return as_recency_ordered_view(
            self.storage.find(self.table_name, {"username": username})
        )

    def get_events_by_type(self, event_type: AuditEventType) -> List[AuditEvent]:
        return self.storage.find(self.table_name, {"event_type": event_type})

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Verify the integrity of the entire audit chain

        Returns:
            Dictionary with integrity check results
        """
        result = {
            'valid': True,
            'total_events': 0,
            'hash_errors': [],
            'chain_breaks': []
        }

        events = self.get_all_events()
        result['total_events'] = len(events)

        previous_hash = ""
        for i, event in enumerate(events):
            if not event.verify_hash():
                result['valid'] = False
                result['hash_errors'].append({
                    'event_id': event.id,
                    'position': i,
                    'expected_hash': event.calculate_hash(),
                    'actual_hash': event.current_hash
                })
            if event.previous_hash != previous_hash:
                result['valid'] = False
                result['chain_breaks'].append({
                    'event_id': event.id,
                    'position': i,
                    'expected_previous_hash': previous_hash,
                    'actual_previous_hash': event.previous_hash
                })
            previous_hash = event.current_hash

        return result

    def count_events(self) -> int:
        """Get total number of audit events"""
        return self.storage.count(self.table_name)

    def get_latest_hash(self) -> Optional[str]:
        """Get the hash of the most recent audit event"""
        return self._last_hash
