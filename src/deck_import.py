"""
Deck import and export

Import accepts the loose document users hand-write or export from other
tools:

    {
        "name": "Capitals",
        "cards": [
            {"id": "optional", "question": "...", "answer": "..."},
            {"front": "...", "back": "..."}
        ]
    }

and normalises it into a Deck with fresh ids where they are missing and a
randomised starting order. Export writes the same document shape back out
so a deck can be moved between collections.
"""

import json
import logging
import random
import re
import time
import uuid
from typing import Any, Dict, Optional, Tuple, Union

from deck_models import Card, Deck
from review_order import initialize_order

logger = logging.getLogger(__name__)


def new_deck_id() -> str:
    return f"deck-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def new_card_id() -> str:
    return f"card-{uuid.uuid4().hex}"


def parse_deck_document(data: Union[str, bytes]) -> Dict[str, Any]:
    """Decode an uploaded JSON deck file (UTF-8 when given bytes)."""
    try:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return json.loads(data)
    except UnicodeDecodeError as e:
        raise DeckImportError(f"Deck file is not UTF-8 text: {e}")
    except json.JSONDecodeError as e:
        raise DeckImportError(f"Deck file is not valid JSON: {e}")


def import_deck(document: Dict[str, Any], rng: Optional[random.Random] = None) -> Deck:
    """
    Build a new Deck from an import document.

    Args:
        document: Parsed import document (see module docstring)
        rng: Random source for the initial card order

    Returns:
        Deck: New deck with no progress and a shuffled card_order

    Raises:
        DeckImportError: If name or cards are missing or malformed
    """
    if not isinstance(document, dict):
        raise DeckImportError("Invalid deck format. Expected { name: string, cards: Array }")

    name = document.get("name")
    cards = document.get("cards")
    if not isinstance(name, str) or not name.strip() or not isinstance(cards, list):
        raise DeckImportError("Invalid deck format. Expected { name: string, cards: Array }")

    deck = Deck(id=new_deck_id(), name=name.strip())

    for index, entry in enumerate(cards):
        if not isinstance(entry, dict):
            raise DeckImportError(f"Card #{index} is not an object")

        card_id = entry.get("id")
        if card_id is not None:
            card_id = str(card_id)
        if not card_id or card_id in deck.cards:
            card_id = new_card_id()

        deck.add_card(Card(
            id=card_id,
            question=str(entry.get("question") or entry.get("front") or ""),
            answer=str(entry.get("answer") or entry.get("back") or ""),
            hidden=False,
        ))

    deck.card_order = initialize_order(deck.cards.values(), rng)

    logger.info(f"Imported deck '{deck.name}' ({deck.id}) with {len(deck.cards)} cards")
    return deck


def export_deck(deck: Deck) -> Tuple[bytes, str]:
    """
    Serialise a deck to an importable JSON document.

    Returns:
        tuple: (json_bytes, filename), e.g. "capitals_export_20250121_143022.json"
    """
    document = {
        "name": deck.name,
        "cards": [card.to_dict() for card in deck.cards.values()],
    }
    slug = re.sub(r"[^a-z0-9]+", "_", deck.name.lower()).strip("_") or "deck"
    timestamp = time.strftime("%Y%m%d_%H%M%S")
    filename = f"{slug}_export_{timestamp}.json"

    data = json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")
    logger.info(f"Exported deck {deck.id} as {filename} ({len(data) / 1024:.1f} KB)")
    return data, filename


class DeckImportError(ValueError):
    """Raised when an import document cannot be turned into a deck."""
    pass
