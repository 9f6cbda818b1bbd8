# symptom_mem/storage/base.py

from datetime import datetime
from typing import Protocol

from ..models import MemoryKind, MemoryModel


class MemoryStore(Protocol):
    """CRUD surface the facade needs from a memory backend."""

    def create(self, mem: MemoryModel) -> None: ...

    def update(self, mem: MemoryModel) -> None: ...

    def get(self, mem_id: str) -> MemoryModel | None: ...

    def deactivate(self, mem_id: str, when: datetime | None = None) -> None: ...

    def query_active(
        self,
        user_id: str,
        kinds: list[MemoryKind] | None = None,
        symptom: str | None = None,
    ) -> list[MemoryModel]: ...

    def list_by_user(self, user_id: str, active_only: bool = True) -> list[MemoryModel]: ...

    def get_meta(self, key: str) -> str | None: ...

    def set_meta(self, key: str, value: str) -> None: ...
