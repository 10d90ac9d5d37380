"""
Base building blocks for desired-state records:
(namespace, name) identity, deletion guards and deletion marks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, Final

if TYPE_CHECKING:
    from datetime import datetime

DELETION_GUARD: Final[str] = "dbfleet.io/finalizer"


@dataclass(frozen=True, slots=True, order=True)
class ResourceRef:
    """Reference to a record in the desired-state store."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def parse(cls, value: str, *, default_namespace: str = "default") -> ResourceRef:
        namespace, sep, name = value.partition("/")
        if not sep:
            return cls(namespace=default_namespace, name=namespace)
        return cls(namespace=namespace, name=name)


@dataclass(eq=False, kw_only=True)
class Record:
    """A stored record keyed by ``(namespace, name)``.

    ``finalizers`` block physical deletion: a record marked for deletion is only
    purged by the store once the list is empty. Lists are always reassigned, never
    mutated in place, so the persistence layer sees every change.
    """

    KIND: ClassVar[str]

    namespace: str
    name: str
    finalizers: list[str] = field(default_factory=list)
    deletion_requested_at: datetime | None = None
    resource_version: int = 0

    @property
    def ref(self) -> ResourceRef:
        return ResourceRef(namespace=self.namespace, name=self.name)

    @property
    def key(self) -> str:
        return str(self.ref)

    @property
    def is_being_deleted(self) -> bool:
        return self.deletion_requested_at is not None

    def has_finalizer(self, finalizer: str = DELETION_GUARD) -> bool:
        return finalizer in self.finalizers

    def add_finalizer(self, finalizer: str = DELETION_GUARD) -> bool:
        if finalizer in self.finalizers:
            return False
        self.finalizers = [*self.finalizers, finalizer]
        return True

    def remove_finalizer(self, finalizer: str = DELETION_GUARD) -> bool:
        if finalizer not in self.finalizers:
            return False
        self.finalizers = [item for item in self.finalizers if item != finalizer]
        return True

    @property
    def purgeable(self) -> bool:
        return self.is_being_deleted and not self.finalizers
