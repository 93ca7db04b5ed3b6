"""
Review ordering: scoring, order building and the review ring.
"""

import random

import pytest

from conftest import make_deck
from deck_models import Card, Rating
from review_order import (
    calculate_score,
    initialize_order,
    next_card,
    recompute_order,
    shuffle_ids,
    visible_order,
)


# --- Scoring ---

def test_score_of_empty_history_is_neutral():
    assert calculate_score([]) == 0.0


@pytest.mark.parametrize('ratings, expected', [
    ([Rating.VERY_BAD], -2.0),
    ([Rating.VERY_GOOD], 2.0),
    ([Rating.GOOD, Rating.GOOD], 1.0),
    ([Rating.BAD, Rating.GOOD], 0.0),
    ([Rating.VERY_BAD, Rating.BAD, Rating.NEUTRAL, Rating.GOOD], -0.5),
    ([Rating.VERY_BAD, Rating.VERY_GOOD, Rating.VERY_GOOD], 2 / 3),
])
def test_score_is_mean_weight_of_whole_history(ratings, expected):
    assert calculate_score(ratings) == pytest.approx(expected)


def test_score_is_not_windowed():
    history = [Rating.VERY_BAD] * 10 + [Rating.VERY_GOOD]
    assert calculate_score(history) == pytest.approx(-18 / 11)


# --- Initial order ---

def test_initialize_order_is_permutation_of_visible_ids():
    cards = [Card(id=f'c{i}', question='q', answer='a', hidden=(i % 3 == 0)) for i in range(12)]
    order = initialize_order(cards, random.Random(7))

    expected = {card.id for card in cards if not card.hidden}
    assert sorted(order) == sorted(expected)
    assert len(order) == len(set(order))


def test_initialize_order_is_reproducible_with_seed():
    cards = [Card(id=f'c{i}', question='q', answer='a') for i in range(20)]
    first = initialize_order(cards, random.Random(42))
    second = initialize_order(cards, random.Random(42))
    assert first == second


def test_shuffle_follows_fisher_yates_draws():
    ids = ['a', 'b', 'c', 'd', 'e']

    # Replay the same draws by hand: i from last to 1, j in [0, i]
    replay = random.Random(3)
    expected = list(ids)
    for i in range(len(expected) - 1, 0, -1):
        j = replay.randint(0, i)
        expected[i], expected[j] = expected[j], expected[i]

    assert shuffle_ids(ids, random.Random(3)) == expected
    assert ids == ['a', 'b', 'c', 'd', 'e']


def test_shuffle_reaches_every_permutation():
    rng = random.Random(0)
    seen = {tuple(shuffle_ids(['a', 'b', 'c'], rng)) for _ in range(600)}
    assert len(seen) == 6


def test_initialize_order_of_no_cards_is_empty():
    assert initialize_order([], random.Random(1)) == []


# --- Recomputed order ---

def test_recompute_puts_worst_first(abc_deck):
    assert recompute_order(abc_deck) == ['A', 'B', 'C']


def test_unrated_card_sorts_between_bad_and_good():
    deck = make_deck(
        ['good', 'new', 'bad'],
        ratings={'good': [Rating.GOOD, Rating.GOOD], 'bad': [Rating.BAD]},
    )
    assert recompute_order(deck) == ['bad', 'new', 'good']


def test_recompute_leaves_out_hidden_cards():
    deck = make_deck(['a', 'b', 'c', 'd'], ratings={'b': [Rating.VERY_BAD]}, hidden={'b', 'd'})
    order = recompute_order(deck)
    assert sorted(order) == ['a', 'c']


def test_recompute_ties_keep_enumeration_order():
    deck = make_deck(
        ['z', 'y', 'x', 'w'],
        ratings={'y': [Rating.BAD, Rating.GOOD], 'w': [Rating.NEUTRAL]},
    )
    # Everything scores 0.0
    assert recompute_order(deck) == ['z', 'y', 'x', 'w']
    assert recompute_order(deck) == recompute_order(deck)


def test_recompute_ignores_progress_for_unknown_cards():
    deck = make_deck(['a', 'b'], ratings={'ghost': [Rating.VERY_BAD], 'b': [Rating.BAD]})
    assert recompute_order(deck) == ['b', 'a']


def test_very_bad_rating_never_moves_card_later():
    deck = make_deck(
        ['a', 'b', 'c', 'd'],
        ratings={'a': [Rating.BAD], 'b': [Rating.GOOD], 'c': [Rating.NEUTRAL]},
    )
    for target in ['a', 'b', 'c', 'd']:
        before = recompute_order(deck).index(target)
        deck.progress_for(target).ratings.append(Rating.VERY_BAD)
        after = recompute_order(deck).index(target)
        assert after <= before, f'{target} moved from {before} to {after}'


# --- Review ring ---

def test_first_call_returns_head(abc_deck):
    abc_deck.card_order = recompute_order(abc_deck)
    assert next_card(abc_deck).id == 'A'
    assert next_card(abc_deck, '').id == 'A'


def test_next_wraps_around(abc_deck):
    abc_deck.card_order = recompute_order(abc_deck)
    assert next_card(abc_deck, 'A').id == 'B'
    assert next_card(abc_deck, 'B').id == 'C'
    assert next_card(abc_deck, 'C').id == 'A'


def test_hidden_card_is_skipped_without_reordering(abc_deck):
    abc_deck.card_order = recompute_order(abc_deck)
    abc_deck.cards['B'].hidden = True

    assert abc_deck.card_order == ['A', 'B', 'C']
    assert visible_order(abc_deck) == ['A', 'C']
    assert next_card(abc_deck, 'A').id == 'C'
    assert next_card(abc_deck, 'C').id == 'A'


def test_vanished_current_card_falls_back_to_head(abc_deck):
    abc_deck.card_order = recompute_order(abc_deck)
    abc_deck.remove_card('B')

    assert next_card(abc_deck, 'B').id == 'A'


def test_hidden_current_card_falls_back_to_head(abc_deck):
    abc_deck.card_order = recompute_order(abc_deck)
    abc_deck.cards['C'].hidden = True

    assert next_card(abc_deck, 'C').id == 'A'


def test_unknown_current_card_falls_back_to_head(abc_deck):
    abc_deck.card_order = ['C', 'A', 'B']
    assert next_card(abc_deck, 'nope').id == 'C'


def test_stale_ids_in_order_are_skipped():
    deck = make_deck(['a', 'b'], card_order=['gone', 'b', 'also-gone', 'a'])
    assert visible_order(deck) == ['b', 'a']
    assert next_card(deck).id == 'b'
    assert next_card(deck, 'b').id == 'a'


def test_no_visible_cards_gives_none():
    assert next_card(make_deck([])) is None

    all_hidden = make_deck(['a', 'b'], hidden={'a', 'b'})
    assert next_card(all_hidden) is None
    assert next_card(all_hidden, 'a') is None

    only_stale = make_deck(['a'], card_order=['x', 'y'])
    assert next_card(only_stale) is None


def test_single_card_ring_returns_itself():
    deck = make_deck(['solo'])
    assert next_card(deck, 'solo').id == 'solo'


def test_cycling_visits_every_visible_card_once():
    deck = make_deck(
        [f'c{i}' for i in range(7)],
        hidden={'c2', 'c5'},
        card_order=['c6', 'c2', 'c0', 'c4', 'c1', 'c5', 'c3'],
    )
    order = visible_order(deck)

    start = next_card(deck)
    visited = [start.id]
    current = start
    for _ in range(len(order)):
        current = next_card(deck, current.id)
        visited.append(current.id)

    assert visited[:-1] == order
    assert len(set(visited[:-1])) == len(order)
    assert visited[-1] == start.id


def test_next_card_does_not_mutate_deck(abc_deck):
    before = abc_deck.to_dict()
    next_card(abc_deck, 'A')
    next_card(abc_deck, 'missing')
    assert abc_deck.to_dict() == before
