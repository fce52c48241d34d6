"""Registry of representative ids known to the tracking engine."""

from __future__ import annotations

import threading
from typing import Dict, List, Optional

from ..models.domain import Representative


class RepresentativeDirectory:
    """Profiles are owned elsewhere; this only remembers ids and display fields."""

    def __init__(self) -> None:
        self._items: Dict[str, Representative] = {}
        self._lock = threading.Lock()

    def register(self, representative_id: str, name: Optional[str] = None, contact: Optional[str] = None) -> Representative:
        with self._lock:
            current = self._items.get(representative_id)
            if current is None:
                current = Representative(id=representative_id, name=name, contact=contact)
                self._items[representative_id] = current
            else:
                if name is not None:
                    current.name = name
                if contact is not None:
                    current.contact = contact
            return current

    def ensure(self, representative_id: str) -> None:
        if representative_id not in self._items:
            self.register(representative_id)

    def get(self, representative_id: str) -> Optional[Representative]:
        with self._lock:
            return self._items.get(representative_id)

    def is_known(self, representative_id: str) -> bool:
        return representative_id in self._items

    def ids(self) -> List[str]:
        with self._lock:
            return sorted(self._items)

    def display_name(self, representative_id: str) -> str:
        representative = self.get(representative_id)
        if representative and representative.name:
            return representative.name
        return representative_id
