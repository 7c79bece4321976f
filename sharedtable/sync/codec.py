"""
JSON encoding of the shoe and of a player's hands.

Both are stored as JSON text. Cards are ``{"rank", "suit", "index"}`` objects
with the printed rank and suit symbol. Hands carry their id, cards, bet,
result and the total computed by the publishing client; the total is installed
as authoritative when the hand is loaded.

The ``load_*`` functions accept the stored text or an already decoded list and
return None for absent or malformed data, so callers can fall back to a
regenerated shoe or a fresh hand.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Union

from sharedtable.blackjack.hand import BlackjackHand, HandResult
from sharedtable.common.card import Card, Rank, Suit
from sharedtable.errors import MalformedPayloadError

logger = logging.getLogger("sharedtable.sync")

Payload = Union[str, List[Any], None]


def card_to_dict(card: Card) -> Dict[str, Any]:
    return {"rank": card.rank.value, "suit": card.suit.value, "index": card.index}


def card_from_dict(data: Dict[str, Any]) -> Card:
    """
    Rebuild a card from its stored form.

    The suit may be given as its symbol or its name.

    Raises:
        MalformedPayloadError: If the rank or suit is missing or unknown
    """
    try:
        rank = Rank(str(data["rank"]))
        suit_value = data["suit"]
        if suit_value in Suit.__members__:
            suit = Suit[suit_value]
        else:
            suit = Suit(suit_value)
        return Card(rank, suit, int(data.get("index", 0)))
    except (KeyError, ValueError, TypeError) as e:
        raise MalformedPayloadError(f"Invalid card {data!r}: {e}") from e


def hand_to_dict(hand: BlackjackHand) -> Dict[str, Any]:
    return {
        "id": hand.id,
        "cards": [card_to_dict(card) for card in hand.cards],
        "bet": hand.bet,
        "result": hand.result.value if hand.result else None,
        "total": hand.total,
    }


def hand_from_dict(data: Dict[str, Any]) -> BlackjackHand:
    """
    Rebuild a hand from its stored form.

    Raises:
        MalformedPayloadError: If the hand or any of its cards is invalid
    """
    if not isinstance(data, dict):
        raise MalformedPayloadError(f"Hand must be an object, got {type(data).__name__}")
    try:
        cards = [card_from_dict(card) for card in data.get("cards") or []]
        hand = BlackjackHand(bet=data.get("bet") or 0, cards=cards, id=data.get("id"))
        if data.get("result"):
            hand.result = HandResult(data["result"])
        if data.get("total") is not None:
            hand.override_total(int(data["total"]))
    except (ValueError, TypeError) as e:
        raise MalformedPayloadError(f"Invalid hand {data!r}: {e}") from e
    return hand


def _decode_list(payload: Payload) -> List[Any]:
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise MalformedPayloadError(f"Invalid JSON: {e}") from e
    if not isinstance(payload, list):
        raise MalformedPayloadError(f"Expected a list, got {type(payload).__name__}")
    return payload


def decode_shoe(payload: Payload) -> List[Card]:
    """
    Parse a stored shoe.

    Raises:
        MalformedPayloadError: If the payload is not a list of cards
    """
    items = _decode_list(payload)
    cards = []
    for item in items:
        if not isinstance(item, dict):
            raise MalformedPayloadError(f"Card must be an object, got {item!r}")
        cards.append(card_from_dict(item))
    return cards


def decode_hands(payload: Payload) -> List[BlackjackHand]:
    """
    Parse a player's stored hands.

    Raises:
        MalformedPayloadError: If the payload is not a list of hands
    """
    return [hand_from_dict(item) for item in _decode_list(payload)]


def dump_shoe(cards: List[Card]) -> str:
    return json.dumps([card_to_dict(card) for card in cards])


def dump_hands(hands: List[BlackjackHand]) -> str:
    return json.dumps([hand_to_dict(hand) for hand in hands])


def load_shoe(payload: Payload) -> Optional[List[Card]]:
    """Parse a stored shoe, or return None if it is absent or malformed."""
    if not payload:
        return None
    try:
        return decode_shoe(payload)
    except MalformedPayloadError as e:
        logger.warning(f"Dropping malformed shoe payload: {e}")
        return None


def load_hands(payload: Payload) -> Optional[List[BlackjackHand]]:
    """Parse a player's stored hands, or return None if absent or malformed."""
    if not payload:
        return None
    try:
        return decode_hands(payload)
    except MalformedPayloadError as e:
        logger.warning(f"Dropping malformed hands payload: {e}")
        return None
