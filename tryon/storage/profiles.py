"""User profile lookups needed at dispatch time."""

from abc import ABC, abstractmethod
from typing import Dict, Optional


class ProfileStore(ABC):
    @abstractmethod
    async def get_preferred_model(self, user_id: str) -> Optional[str]:
        """The user's saved AI model selector, or None."""
        ...


class InMemoryProfileStore(ProfileStore):
    def __init__(self, preferences: Optional[Dict[str, str]] = None):
        self._preferences: Dict[str, str] = dict(preferences or {})

    def set_preferred_model(self, user_id: str, model: str) -> None:
        self._preferences[user_id] = model

    async def get_preferred_model(self, user_id: str) -> Optional[str]:
        return self._preferences.get(user_id)
