"""
flashorder Flask application

JSON API over the deck service:
- deck import / export / rename / delete and stats
- card add / edit / hide / delete
- review: next card and rating

Storage backend, shuffle seed and logging are configured through
environment variables (see config.py).
"""

import io
import logging
from functools import wraps
from typing import Optional

from flask import Blueprint, Flask, current_app, g, jsonify, request, send_file
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from config import build_store, get_config
from deck_import import DeckImportError, export_deck, parse_deck_document
from deck_repository import DeckRepository
from deck_service import CardNotFoundError, DeckNotFoundError, DeckService, ValidationError
from review_order import visible_order

api = Blueprint("api", __name__, url_prefix="/api")


def get_service() -> DeckService:
    return current_app.extensions["deck_service"]


def _card_json(card) -> Optional[dict]:
    return card.to_dict() if card is not None else None


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


# --- Decorator for deck lookup ---

def with_deck(f):
    """
    Load the deck named by the deck_id URL parameter into g.deck.

    Usage:
        @api.route('/decks/<deck_id>', methods=['GET'])
        @with_deck
        def get_deck(deck_id):
            return jsonify(g.deck.to_dict())

    Answers 404 if the deck does not exist. The service lock is held for
    the whole request, so g.deck cannot change under the route.
    """
    @wraps(f)
    def decorated(deck_id, *args, **kwargs):
        service = get_service()
        with service.lock:
            try:
                g.deck = service.get_deck(deck_id)
            except DeckNotFoundError as e:
                current_app.logger.warning(str(e))
                return jsonify({"error": "Deck not found"}), 404
            return f(deck_id, *args, **kwargs)

    return decorated


# --- Error handlers ---

@api.errorhandler(ValidationError)
@api.errorhandler(DeckImportError)
def handle_bad_request(e):
    current_app.logger.warning(f"Rejected request to {request.path}: {e}")
    return jsonify({"error": str(e)}), 400


@api.errorhandler(DeckNotFoundError)
@api.errorhandler(CardNotFoundError)
def handle_not_found(e):
    return jsonify({"error": str(e)}), 404


@api.errorhandler(Exception)
def handle_unexpected(e):
    if isinstance(e, HTTPException):
        return e
    current_app.logger.exception(f"Unexpected error on {request.method} {request.path}")
    return jsonify({"error": "Internal server error"}), 500


# --- Routes ---

@api.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok"}), 200


@api.route("/decks", methods=["GET"])
def list_decks():
    return jsonify({"decks": get_service().list_decks()}), 200


@api.route("/decks/import", methods=["POST"])
def import_deck():
    """
    Import a deck.

    Request body: the import document itself, or an uploaded JSON file
    in the "file" form field.
        {
            "name": "Capitals",
            "cards": [{"question": "...", "answer": "..."}, {"front": "...", "back": "..."}]
        }

    Returns:
        201: full deck
        400: {"error": "..."} for malformed documents
    """
    upload = request.files.get("file")
    if upload is not None:
        document = parse_deck_document(upload.read())
    else:
        document = request.get_json(silent=True)

    deck = get_service().import_deck(document)
    current_app.logger.info(f"Imported deck '{deck.name}' ({deck.id})")
    return jsonify(deck.to_dict()), 201


@api.route("/decks/<deck_id>", methods=["GET"])
@with_deck
def get_deck(deck_id):
    return jsonify(g.deck.to_dict()), 200


@api.route("/decks/<deck_id>/rename", methods=["PUT"])
@with_deck
def rename_deck(deck_id):
    data = _json_body()
    name = data.get("name")
    if not isinstance(name, str):
        raise ValidationError("Deck name cannot be empty")
    deck = get_service().rename_deck(deck_id, name)
    return jsonify({"id": deck.id, "name": deck.name}), 200


@api.route("/decks/<deck_id>", methods=["DELETE"])
def delete_deck(deck_id):
    get_service().delete_deck(deck_id)
    return jsonify({"message": "Deck deleted"}), 200


@api.route("/decks/<deck_id>/stats", methods=["GET"])
@with_deck
def deck_stats(deck_id):
    return jsonify(get_service().deck_stats(deck_id)), 200


@api.route("/decks/<deck_id>/export", methods=["GET"])
@with_deck
def export(deck_id):
    data, filename = export_deck(g.deck)
    return send_file(
        io.BytesIO(data),
        mimetype="application/json",
        as_attachment=True,
        download_name=filename,
    )


@api.route("/decks/<deck_id>/cards", methods=["POST"])
@with_deck
def add_card(deck_id):
    data = _json_body()
    card = get_service().add_card(deck_id, _text(data, "question"), _text(data, "answer"))
    return jsonify(card.to_dict()), 201


@api.route("/decks/<deck_id>/cards/<card_id>", methods=["PUT"])
@with_deck
def update_card(deck_id, card_id):
    data = _json_body()
    card = get_service().update_card(deck_id, card_id, _text(data, "question"), _text(data, "answer"))
    return jsonify(card.to_dict()), 200


@api.route("/decks/<deck_id>/cards/<card_id>", methods=["DELETE"])
@with_deck
def delete_card(deck_id, card_id):
    get_service().delete_card(deck_id, card_id)
    return jsonify({"message": "Card deleted"}), 200


@api.route("/decks/<deck_id>/cards/<card_id>/hidden", methods=["PUT"])
@with_deck
def set_hidden(deck_id, card_id):
    """
    Hide or unhide a card.

    Request body (optional):
        {"hidden": true}    # omit to toggle
    """
    data = request.get_json(silent=True) or {}
    hidden = data.get("hidden") if isinstance(data, dict) else None
    if hidden is not None and not isinstance(hidden, bool):
        raise ValidationError("hidden must be true or false")
    card = get_service().set_card_hidden(deck_id, card_id, hidden)
    return jsonify(card.to_dict()), 200


@api.route("/decks/<deck_id>/review/next", methods=["GET"])
@with_deck
def review_next(deck_id):
    """
    Next card to review.

    Query params:
        current: id of the card just shown (omit on the first call)

    Returns:
        200: {"card": {...} or null, "remaining": <visible card count>}
    """
    card = get_service().next_card(deck_id, request.args.get("current"))
    return jsonify({
        "card": _card_json(card),
        "remaining": len(visible_order(g.deck)),
    }), 200


@api.route("/decks/<deck_id>/review/<card_id>", methods=["POST"])
@with_deck
def review_rate(deck_id, card_id):
    """
    Rate the card just reviewed.

    Request body:
        {"rating": "VERY_BAD" | "BAD" | "NEUTRAL" | "GOOD" | "VERY_GOOD"}

    Returns:
        200: {"cardOrder": [...], "nextCard": {...} or null}
    """
    data = _json_body()
    deck, upcoming = get_service().rate_card(deck_id, card_id, data.get("rating"))
    return jsonify({
        "cardOrder": deck.card_order,
        "nextCard": _card_json(upcoming),
    }), 200


def _text(data: dict, key: str) -> str:
    value = data.get(key, "")
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value


# --- Application factory ---

def create_app(service: Optional[DeckService] = None, config=None) -> Flask:
    """
    Build the Flask app.

    Args:
        service: DeckService to serve (built from config if None)
        config: ServiceConfig (read from the environment if None)
    """
    flask_app = Flask(__name__)

    if service is None:
        config = config or get_config()
        repository = DeckRepository(build_store(config))
        service = DeckService(repository, rng=config.make_rng())

    flask_app.extensions["deck_service"] = service
    flask_app.register_blueprint(api)

    # CORS (allow requests from the browser frontend)
    CORS(flask_app)

    return flask_app


if __name__ == "__main__":
    config = get_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(config=config)
    app.run(host="0.0.0.0", port=config.api_port, debug=False)
