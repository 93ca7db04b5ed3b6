"""
DeckService - deck editing and review operations

Every mutation follows the same read-modify-write: fetch the deck from the
repository, change it, recompute or filter card_order as the change
requires, and put the whole deck back in one save.

    rating a card   -> progress appended, card_order fully recomputed
    deleting a card -> card, progress and order entries removed
    hide / unhide   -> card flag only; card_order is filtered lazily on read
    adding a card   -> id appended to the end of card_order

All public operations run under one service-wide lock, so concurrent
requests never interleave their changes to a deck.
"""

import logging
import random
import threading
import time
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Tuple

from deck_import import import_deck, new_card_id
from deck_models import Card, Deck, DeckFormatError, Rating
from deck_repository import DeckRepository
from review_order import card_score, next_card, recompute_order, visible_order

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def serialized(method):
    """Run a DeckService method while holding the service lock."""
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self.lock:
            return method(self, *args, **kwargs)

    return wrapper


class DeckService:

    def __init__(
        self,
        repository: DeckRepository,
        rng: Optional[random.Random] = None,
        clock: Callable[[], int] = _now_ms,
    ):
        """
        Args:
            repository: Where decks are read from and saved to
            rng: Random source for initial card orders (seed it for fixed output)
            clock: Returns the current time in epoch milliseconds
        """
        self.repository = repository
        self.rng = rng if rng is not None else random.Random()
        self.clock = clock
        # Held across each read-modify-write; the API holds it for whole requests
        self.lock = threading.RLock()

    # --- Decks ---

    @serialized
    def list_decks(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": deck.id,
                "name": deck.name,
                "cardCount": len(deck.cards),
                "visibleCount": len(deck.visible_cards()),
            }
            for deck in self.repository.list()
        ]

    @serialized
    def get_deck(self, deck_id: str) -> Deck:
        deck = self.repository.get(deck_id)
        if deck is None:
            raise DeckNotFoundError(f"Deck {deck_id} not found")
        return deck

    @serialized
    def import_deck(self, document: Dict[str, Any]) -> Deck:
        deck = import_deck(document, self.rng)
        self.repository.put(deck)
        return deck

    @serialized
    def rename_deck(self, deck_id: str, name: str) -> Deck:
        deck = self.get_deck(deck_id)
        name = (name or "").strip()
        if not name:
            raise ValidationError("Deck name cannot be empty")
        old_name = deck.name
        deck.name = name
        self.repository.put(deck)
        logger.info(f"Renamed deck {deck_id} from '{old_name}' to '{name}'")
        return deck

    @serialized
    def delete_deck(self, deck_id: str) -> None:
        if not self.repository.remove(deck_id):
            raise DeckNotFoundError(f"Deck {deck_id} not found")
        logger.info(f"Deleted deck {deck_id}")

    @serialized
    def deck_stats(self, deck_id: str) -> Dict[str, Any]:
        """Card counts plus per-card score and review count in current review order."""
        deck = self.get_deck(deck_id)
        visible = deck.visible_cards()
        cards = []
        for card_id in visible_order(deck):
            record = deck.progress.get(card_id)
            cards.append({
                "cardId": card_id,
                "score": card_score(deck, card_id),
                "reviews": len(record.ratings) if record else 0,
                "lastReviewed": record.last_reviewed if record else None,
            })
        return {
            "total": len(deck.cards),
            "visible": len(visible),
            "hidden": len(deck.cards) - len(visible),
            "rated": sum(1 for record in deck.progress.values() if record.ratings),
            "reviews": sum(len(record.ratings) for record in deck.progress.values()),
            "cards": cards,
        }

    # --- Cards ---

    def _get_card(self, deck: Deck, card_id: str) -> Card:
        card = deck.cards.get(card_id)
        if card is None:
            raise CardNotFoundError(f"Card {card_id} not found in deck {deck.id}")
        return card

    @serialized
    def add_card(self, deck_id: str, question: str, answer: str) -> Card:
        deck = self.get_deck(deck_id)
        question, answer = _clean_card_text(question, answer)
        card = Card(id=new_card_id(), question=question, answer=answer)
        deck.add_card(card)
        deck.card_order.append(card.id)
        self.repository.put(deck)
        logger.info(f"Added card {card.id} to deck {deck_id}")
        return card

    @serialized
    def update_card(self, deck_id: str, card_id: str, question: str, answer: str) -> Card:
        deck = self.get_deck(deck_id)
        card = self._get_card(deck, card_id)
        card.question, card.answer = _clean_card_text(question, answer)
        self.repository.put(deck)
        return card

    @serialized
    def set_card_hidden(self, deck_id: str, card_id: str, hidden: Optional[bool] = None) -> Card:
        """Hide or unhide a card; hidden=None flips the current flag."""
        deck = self.get_deck(deck_id)
        card = self._get_card(deck, card_id)
        card.hidden = (not card.hidden) if hidden is None else bool(hidden)
        self.repository.put(deck)
        logger.info(f"Card {card_id} in deck {deck_id} is now {'hidden' if card.hidden else 'visible'}")
        return card

    @serialized
    def delete_card(self, deck_id: str, card_id: str) -> None:
        deck = self.get_deck(deck_id)
        self._get_card(deck, card_id)
        deck.remove_card(card_id)
        self.repository.put(deck)
        logger.info(f"Deleted card {card_id} from deck {deck_id}")

    # --- Review ---

    @serialized
    def next_card(self, deck_id: str, current_card_id: Optional[str] = None) -> Optional[Card]:
        return next_card(self.get_deck(deck_id), current_card_id)

    @serialized
    def rate_card(self, deck_id: str, card_id: str, rating) -> Tuple[Deck, Optional[Card]]:
        """
        Record a rating and reorder the deck.

        Args:
            deck_id: Deck being reviewed
            card_id: Card that was just shown
            rating: Rating or its wire tag ("VERY_BAD" ... "VERY_GOOD")

        Returns:
            tuple: (deck, next card to show or None)
        """
        if not isinstance(rating, Rating):
            try:
                rating = Rating.parse(rating)
            except DeckFormatError as e:
                raise ValidationError(str(e))

        deck = self.get_deck(deck_id)
        self._get_card(deck, card_id)

        deck.progress_for(card_id).record(rating, self.clock())
        deck.card_order = recompute_order(deck)
        self.repository.put(deck)

        logger.info(f"Rated card {card_id} in deck {deck_id} as {rating.value}")
        return deck, next_card(deck, card_id)


def _clean_card_text(question: str, answer: str) -> Tuple[str, str]:
    question = (question or "").strip()
    answer = (answer or "").strip()
    if not question or not answer:
        raise ValidationError("Both question and answer are required")
    return question, answer


class DeckNotFoundError(LookupError):
    """Raised when a deck id is unknown."""
    pass


class CardNotFoundError(LookupError):
    """Raised when a card id is not part of the deck."""
    pass


class ValidationError(ValueError):
    """Raised when user input for an edit is rejected."""
    pass
