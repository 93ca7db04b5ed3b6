"""
Review ordering for a deck

Three pure pieces, none of which keeps state between calls:

- calculate_score: reduces a rating history to one comparable number
- initialize_order / recompute_order: build the deck's card_order
- next_card: walks the visible part of card_order as a ring

Worst-performing cards come first. Nothing here raises on a structurally
valid deck: missing progress scores as neutral, stale or hidden ids in
card_order are skipped, and a current card that vanished falls back to
the head of the ring.
"""

import logging
import random
from typing import Iterable, List, Optional, Sequence

from deck_models import Card, Deck, Rating

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 0.0


def calculate_score(ratings: Sequence[Rating]) -> float:
    """
    Mean weight of every rating in the history.

    Unrated cards get the neutral score, so they sort between cards that
    are going badly and cards that are going well.
    """
    if not ratings:
        return NEUTRAL_SCORE
    return sum(rating.weight for rating in ratings) / len(ratings)


def card_score(deck: Deck, card_id: str) -> float:
    record = deck.progress.get(card_id)
    if record is None:
        return NEUTRAL_SCORE
    return calculate_score(record.ratings)


def shuffle_ids(card_ids: Sequence[str], rng: random.Random) -> List[str]:
    """Fisher-Yates shuffle into a new list; every permutation equally likely."""
    shuffled = list(card_ids)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def initialize_order(cards: Iterable[Card], rng: Optional[random.Random] = None) -> List[str]:
    """
    Random starting order for a freshly imported deck.

    Args:
        cards: Cards of the deck; hidden ones are left out
        rng: Random source (pass a seeded random.Random for a fixed result)

    Returns:
        list: Ids of the visible cards in random order
    """
    if rng is None:
        rng = random.Random()
    visible_ids = [card.id for card in cards if not card.hidden]
    return shuffle_ids(visible_ids, rng)


def recompute_order(deck: Deck) -> List[str]:
    """
    Order the deck's visible cards by score, lowest first.

    sorted() is stable, so cards with equal scores keep their enumeration
    order and repeated recomputes over unchanged data give the same list.
    """
    visible_ids = [card.id for card in deck.visible_cards()]
    order = sorted(visible_ids, key=lambda card_id: card_score(deck, card_id))
    logger.debug(f"Recomputed order for deck {deck.id}: {len(order)} visible cards")
    return order


def visible_order(deck: Deck) -> List[str]:
    """Stored card_order minus ids that are deleted or hidden."""
    visible = []
    for card_id in deck.card_order:
        card = deck.cards.get(card_id)
        if card is not None and not card.hidden:
            visible.append(card_id)
    return visible


def next_card(deck: Deck, current_card_id: Optional[str] = None) -> Optional[Card]:
    """
    Card to show after current_card_id.

    Args:
        deck: Deck to review
        current_card_id: Card just shown, or None when starting

    Returns:
        Card: the following visible card, wrapping to the start of the
            order; the first visible card when current_card_id is None or
            no longer visible; None when nothing is visible
    """
    order = visible_order(deck)
    if not order:
        return None

    if not current_card_id:
        return deck.cards[order[0]]

    try:
        position = order.index(current_card_id)
    except ValueError:
        # Current card was deleted or hidden since it was shown
        logger.debug(f"Card {current_card_id} no longer visible in deck {deck.id}, restarting at head")
        return deck.cards[order[0]]

    return deck.cards[order[(position + 1) % len(order)]]
