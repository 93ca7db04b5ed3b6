"""
Deck data model

Cards, ratings, progress records and decks as they live in memory.

Inside a Deck the cards and progress records are kept in insertion-ordered
dicts keyed by card id, so lookups during scoring and review are O(1).
On the wire (store documents, API responses, imports) a deck is the
ordered-sequence shape:

    {
        "id": "deck-...",
        "name": "Spanish verbs",
        "cards": [{"id": "...", "question": "...", "answer": "...", "hidden": false}],
        "progress": [{"cardId": "...", "ratings": ["GOOD"], "lastReviewed": 1700000000000}],
        "cardOrder": ["..."]
    }
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Any


class Rating(Enum):
    """Five-point self assessment given after a card is reviewed."""
    VERY_BAD = "VERY_BAD"
    BAD = "BAD"
    NEUTRAL = "NEUTRAL"
    GOOD = "GOOD"
    VERY_GOOD = "VERY_GOOD"

    @property
    def weight(self) -> int:
        return RATING_WEIGHTS[self]

    @classmethod
    def parse(cls, tag: str) -> "Rating":
        """Map a wire tag ("GOOD") to a Rating, raising DeckFormatError if unknown."""
        try:
            return cls(tag)
        except ValueError:
            raise DeckFormatError(f"Unknown rating: {tag!r}")


# Lower is worse
RATING_WEIGHTS = {
    Rating.VERY_BAD: -2,
    Rating.BAD: -1,
    Rating.NEUTRAL: 0,
    Rating.GOOD: 1,
    Rating.VERY_GOOD: 2,
}


@dataclass
class Card:
    id: str
    question: str
    answer: str
    hidden: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "question": self.question,
            "answer": self.answer,
            "hidden": self.hidden,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Card":
        if not data.get("id"):
            raise DeckFormatError(f"Card without id: {data!r}")
        return cls(
            id=str(data["id"]),
            question=data.get("question", ""),
            answer=data.get("answer", ""),
            hidden=bool(data.get("hidden", False)),
        )


@dataclass
class ProgressRecord:
    """Append-only rating history for one card."""
    card_id: str
    ratings: List[Rating] = field(default_factory=list)
    last_reviewed: Optional[int] = None  # epoch milliseconds

    def record(self, rating: Rating, reviewed_at_ms: int) -> None:
        self.ratings.append(rating)
        self.last_reviewed = reviewed_at_ms

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "cardId": self.card_id,
            "ratings": [rating.value for rating in self.ratings],
        }
        if self.last_reviewed is not None:
            data["lastReviewed"] = self.last_reviewed
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressRecord":
        if not data.get("cardId"):
            raise DeckFormatError(f"Progress record without cardId: {data!r}")
        last_reviewed = data.get("lastReviewed")
        if last_reviewed is not None:
            try:
                last_reviewed = int(last_reviewed)
            except (TypeError, ValueError):
                raise DeckFormatError(f"Invalid lastReviewed for card {data['cardId']}: {last_reviewed!r}")
        return cls(
            card_id=str(data["cardId"]),
            ratings=[Rating.parse(tag) for tag in data.get("ratings") or []],
            last_reviewed=last_reviewed,
        )


@dataclass
class Deck:
    """
    A named collection of cards with their progress and review priority.

    Attributes:
        id: Deck identifier
        name: Display name
        cards: card id -> Card, in enumeration order
        progress: card id -> ProgressRecord (at most one per card)
        card_order: card ids in review priority order; may hold ids of
            hidden cards, which are skipped when read
    """
    id: str
    name: str
    cards: Dict[str, Card] = field(default_factory=dict)
    progress: Dict[str, ProgressRecord] = field(default_factory=dict)
    card_order: List[str] = field(default_factory=list)

    def add_card(self, card: Card) -> None:
        self.cards[card.id] = card

    def remove_card(self, card_id: str) -> Optional[Card]:
        """Delete a card together with its progress and its order entries."""
        card = self.cards.pop(card_id, None)
        self.progress.pop(card_id, None)
        self.card_order = [cid for cid in self.card_order if cid != card_id]
        return card

    def progress_for(self, card_id: str) -> ProgressRecord:
        """Return the card's progress record, creating it on first use."""
        record = self.progress.get(card_id)
        if record is None:
            record = ProgressRecord(card_id=card_id)
            self.progress[card_id] = record
        return record

    def visible_cards(self) -> List[Card]:
        return [card for card in self.cards.values() if not card.hidden]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "cards": [card.to_dict() for card in self.cards.values()],
            "progress": [record.to_dict() for record in self.progress.values()],
            "cardOrder": list(self.card_order),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Deck":
        try:
            deck = cls(id=str(data["id"]), name=data["name"])
        except (KeyError, TypeError) as e:
            raise DeckFormatError(f"Deck is missing a required field: {e}")

        for card_data in data.get("cards") or []:
            deck.add_card(Card.from_dict(card_data))

        # Duplicate records for a card id collapse to the last one
        for record_data in data.get("progress") or []:
            record = ProgressRecord.from_dict(record_data)
            deck.progress[record.card_id] = record

        deck.card_order = [str(cid) for cid in data.get("cardOrder") or []]
        return deck


class DeckFormatError(ValueError):
    """Raised when a deck document does not have the expected shape."""
    pass
