"""
DeckRepository - deck CRUD over a whole-collection store

Decks are kept in memory keyed by id and written back to the store as a
whole after every change. A store that cannot be read or written does not
end the session: the failure is logged and the repository carries on with
what it has in memory.

When the store reports that another writer replaced the collection
(ConflictError), the repository reloads it, re-applies the change that
was being saved and tries once more.
"""

import logging
import threading
from typing import Dict, List, Optional

from deck_models import Deck
from deck_store import ConflictError, DeckStore, StoreError

logger = logging.getLogger(__name__)


class DeckRepository:
    """
    Repository for decks.

    Usage:
        repo = DeckRepository(LocalDeckStore('/tmp/decks.json'))

        repo.put(deck)              # insert or replace by id, then save
        deck = repo.get(deck.id)    # None if unknown
        repo.remove(deck.id)

    Safe to share between threads.
    """

    def __init__(self, store: DeckStore):
        self.store = store
        self._decks: Dict[str, Deck] = {}
        self._loaded = False
        self._lock = threading.RLock()

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        try:
            decks = self.store.load()
        except StoreError as e:
            logger.error(f"Could not load decks, starting with an empty collection: {e}")
            return
        self._decks = {deck.id: deck for deck in decks}
        logger.info(f"Loaded {len(self._decks)} decks")

    def _save(self) -> None:
        self.store.save(list(self._decks.values()))

    def _persist(self, deck_id: str) -> bool:
        """
        Save the collection after deck_id was put or removed.

        Returns:
            bool: True if the collection was persisted
        """
        try:
            self._save()
            return True
        except ConflictError as e:
            logger.warning(f"Deck collection changed in the store, reloading before retry: {e}")
        except StoreError as e:
            logger.error(f"Could not save decks, keeping in-memory state: {e}")
            return False

        try:
            latest = {deck.id: deck for deck in self.store.load()}
        except StoreError as e:
            logger.error(f"Could not reload decks, keeping in-memory state: {e}")
            return False

        if deck_id in self._decks:
            latest[deck_id] = self._decks[deck_id]
        else:
            latest.pop(deck_id, None)
        self._decks = latest

        try:
            self._save()
        except StoreError as e:
            logger.error(f"Could not save decks after reload, keeping in-memory state: {e}")
            return False
        logger.info(f"Saved deck {deck_id} on top of the reloaded collection")
        return True

    def list(self) -> List[Deck]:
        with self._lock:
            self._ensure_loaded()
            return list(self._decks.values())

    def get(self, deck_id: str) -> Optional[Deck]:
        with self._lock:
            self._ensure_loaded()
            return self._decks.get(deck_id)

    def put(self, deck: Deck) -> bool:
        """
        Insert or replace a deck and save the collection.

        Returns:
            bool: True if the collection was persisted
        """
        with self._lock:
            self._ensure_loaded()
            self._decks[deck.id] = deck
            return self._persist(deck.id)

    def remove(self, deck_id: str) -> bool:
        """
        Delete a deck and save the collection.

        Returns:
            bool: True if the deck existed (whether or not the save succeeded)
        """
        with self._lock:
            self._ensure_loaded()
            if self._decks.pop(deck_id, None) is None:
                return False
            self._persist(deck_id)
            return True

    def reload(self) -> None:
        """Drop the in-memory state and read the store again on next access."""
        with self._lock:
            self._decks = {}
            self._loaded = False
