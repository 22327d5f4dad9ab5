from __future__ import annotations

import itertools
import uuid
from abc import ABC, abstractmethod
from typing import Any

from ..models.upload_result import UploadHistoryRecord

"""Store-access interface used by the batch writer.

The pipeline never reaches a global database handle; the caller passes a
PayrollStore in. Documents are plain dicts keyed with the camelCase field
names of the payslip / upload history records and carry their id under "id".

InMemoryStore backs the tests and dry runs.
"""

__all__ = [
    "StoreError",
    "WriteBatch",
    "PayrollStore",
    "InMemoryStore",
]


class StoreError(Exception):
    """Raised by a store when a read or a commit fails."""


class WriteBatch(ABC):
    """A group of payslip writes applied atomically on commit()."""

    @abstractmethod
    def set(self, doc_id: str, data: dict[str, Any], merge: bool = True) -> None:
        """Stage a write. With merge=True existing fields not in ``data`` survive."""

    @abstractmethod
    def commit(self) -> None:
        """Apply every staged write or none of them."""

    @abstractmethod
    def __len__(self) -> int: ...


class PayrollStore(ABC):
    @abstractmethod
    def get_user_by_email(self, email: str, org_id: str) -> dict[str, Any] | None: ...

    @abstractmethod
    def get_payslip_by_user_and_month(self, user_id: str, month: str, org_id: str) -> dict[str, Any] | None: ...

    @abstractmethod
    def new_payslip_id(self) -> str: ...

    @abstractmethod
    def batch(self) -> WriteBatch: ...

    @abstractmethod
    def add_upload_history(self, record: UploadHistoryRecord) -> str: ...

    @abstractmethod
    def get_upload_history(self, org_id: str, limit: int = 50) -> list[dict[str, Any]]:
        """Latest history records of an organization, newest first."""


class _InMemoryWriteBatch(WriteBatch):
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store
        self._writes: list[tuple[str, dict[str, Any], bool]] = []

    def set(self, doc_id: str, data: dict[str, Any], merge: bool = True) -> None:
        self._writes.append((doc_id, dict(data), merge))

    def commit(self) -> None:
        self._store._apply(self._writes)
        self._writes = []

    def __len__(self) -> int:
        return len(self._writes)


class InMemoryStore(PayrollStore):
    """Dict-backed store.

    ``fail_commits`` holds 1-based commit numbers that raise StoreError
    without applying anything; ``fail_lookups`` holds emails whose user
    lookup raises StoreError.
    """

    def __init__(self) -> None:
        self.users: dict[str, dict[str, Any]] = {}
        self.payslips: dict[str, dict[str, Any]] = {}
        self.upload_history: dict[str, dict[str, Any]] = {}
        self.commit_count = 0
        self.fail_commits: set[int] = set()
        self.fail_lookups: set[str] = set()
        self._seq = itertools.count(1)

    def add_user(self, email: str, org_id: str, user_id: str | None = None, **fields: Any) -> str:
        uid = user_id or f"user_{next(self._seq)}"
        self.users[uid] = {"id": uid, "email": email, "orgId": org_id, **fields}
        return uid

    def get_user_by_email(self, email: str, org_id: str) -> dict[str, Any] | None:
        if email in self.fail_lookups:
            raise StoreError(f"lookup failed for {email}")
        for user in self.users.values():
            if user["email"] == email and user["orgId"] == org_id:
                return dict(user)
        return None

    def get_payslip_by_user_and_month(self, user_id: str, month: str, org_id: str) -> dict[str, Any] | None:
        for doc in self.payslips.values():
            if doc.get("orgId") == org_id and doc.get("userId") == user_id and doc.get("month") == month:
                return dict(doc)
        return None

    def payslips_for(self, org_id: str) -> list[dict[str, Any]]:
        return [dict(d) for d in self.payslips.values() if d.get("orgId") == org_id]

    def new_payslip_id(self) -> str:
        return uuid.uuid4().hex

    def batch(self) -> WriteBatch:
        return _InMemoryWriteBatch(self)

    def _apply(self, writes: list[tuple[str, dict[str, Any], bool]]) -> None:
        self.commit_count += 1
        if self.commit_count in self.fail_commits:
            raise StoreError(f"commit #{self.commit_count} rejected")
        for doc_id, data, merge in writes:
            current = self.payslips.get(doc_id) if merge else None
            merged = dict(current) if current else {}
            merged.update(data)
            merged["id"] = doc_id
            self.payslips[doc_id] = merged

    def add_upload_history(self, record: UploadHistoryRecord) -> str:
        doc_id = f"history_{next(self._seq)}"
        self.upload_history[doc_id] = {"id": doc_id, **record.to_document()}
        return doc_id

    def get_upload_history(self, org_id: str, limit: int = 50) -> list[dict[str, Any]]:
        # insertion order breaks createdAt ties
        docs = [d for d in self.upload_history.values() if d["orgId"] == org_id]
        ordered = sorted(enumerate(docs), key=lambda p: (p[1]["createdAt"], p[0]), reverse=True)
        return [dict(d) for _, d in ordered[:limit]]
