import io
import os
import sys

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import boto3
import pytest
from botocore.response import StreamingBody

from deck_models import Card, Deck, ProgressRecord, Rating


def make_deck(card_ids, ratings=None, hidden=(), card_order=None, deck_id='deck-test'):
    """
    Build a deck from card ids.

    Args:
        card_ids: Card ids in enumeration order
        ratings: {card_id: [Rating, ...]} progress to attach
        hidden: Card ids to hide
        card_order: Stored order (defaults to card_ids)
    """
    deck = Deck(id=deck_id, name='Test deck')
    for card_id in card_ids:
        deck.add_card(Card(
            id=card_id,
            question=f'Question {card_id}',
            answer=f'Answer {card_id}',
            hidden=card_id in hidden,
        ))
    for card_id, history in (ratings or {}).items():
        deck.progress[card_id] = ProgressRecord(card_id=card_id, ratings=list(history))
    deck.card_order = list(card_order if card_order is not None else card_ids)
    return deck


@pytest.fixture
def abc_deck():
    """A scores -2, B unrated (0), C scores 1."""
    return make_deck(
        ['B', 'C', 'A'],
        ratings={
            'A': [Rating.VERY_BAD],
            'C': [Rating.GOOD, Rating.VERY_GOOD, Rating.NEUTRAL],
        },
    )


def s3_body(data):
    return StreamingBody(io.BytesIO(data), len(data))


@pytest.fixture
def s3_client():
    """Real boto3 client for use under botocore's Stubber; never reaches AWS."""
    return boto3.client(
        's3',
        region_name='us-east-1',
        aws_access_key_id='testing',
        aws_secret_access_key='testing',
    )
