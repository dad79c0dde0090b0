import logging
from typing import List, Optional

from .gateway import PersistenceGateway
from .models import WrongWordEntry

logger = logging.getLogger(__name__)


class WrongWordTracker:
    """Per-user counters of missed words, kept per list and in a global pool."""

    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    def record_wrong(
        self, user_id: str, word_id: str, word_list_id: Optional[str], at: str
    ) -> None:
        """Bumps the list-scoped counter (when there is a list) and the global one."""
        if word_list_id is not None:
            self.gateway.increment_wrong_word(user_id, word_id, word_list_id, at)
        self.gateway.increment_wrong_word(user_id, word_id, None, at)
        logger.info(f"Wrong answer recorded: user={user_id} word={word_id} list={word_list_id}")

    def list_view(self, user_id: str, word_list_id: str) -> List[WrongWordEntry]:
        return self.gateway.list_wrong_words(user_id, word_list_id=word_list_id)

    def global_view(self, user_id: str) -> List[WrongWordEntry]:
        return self.gateway.list_wrong_words(user_id, global_only=True)

    def all_entries(self, user_id: str) -> List[WrongWordEntry]:
        return self.gateway.list_wrong_words(user_id)

    def query(
        self, user_id: str, list_id: Optional[str] = None, scope: Optional[str] = None
    ) -> List[WrongWordEntry]:
        if list_id:
            return self.list_view(user_id, list_id)
        if scope == "global":
            return self.global_view(user_id)
        return self.all_entries(user_id)
