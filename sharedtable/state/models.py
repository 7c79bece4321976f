"""
State model for a shared blackjack table.

``TableState`` is the in-memory model the turn engine works on. Its persisted
part (game id, shoe, cards played, game-over flag, and each player's bank and
hands) is mirrored to the store by the synchroniser; the active player, active
hand, dealing flag and hole-card flag are local only and never published.

Unlike a snapshot model, the table state is mutated in place: the engine keeps
direct references to the active player and hand, and inbound updates are merged
into those same objects.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional

from sharedtable.blackjack.hand import BlackjackHand
from sharedtable.blackjack.player import Player
from sharedtable.common.shoe import Shoe


class GameStage(Enum):
    """
    Possible stages of a round at the table.
    """

    AWAITING_ROUND = auto()
    BETTING = auto()
    DEALING = auto()
    PLAYER_TURN = auto()
    DEALER_TURN = auto()
    SETTLING = auto()
    GAME_OVER = auto()


@dataclass(eq=False)
class TableState:
    """
    Mutable state of the single active game.

    Attributes:
        id: Store id of the game, None until initialised
        shoe: The undealt cards and the played counter
        is_game_over: Set when the first seat can no longer cover the minimum bet
        players: Seated players in seat order, dealer last
        active_player: Player whose turn it is
        active_hand: Hand being played
        is_dealing: True while a deal or animation step is in progress
        show_dealer_hole_card: Whether the dealer's second card is visible
        stage: Current stage of the round
        round_number: Rounds started since the table was loaded
        local_player: The player joined from this client, if any
        error: Last user-visible error message
        is_loading: True while the table is talking to the store at startup
        show_join_dialog: Whether the join dialog should stay open
    """

    id: Optional[str] = None
    shoe: Shoe = field(default_factory=Shoe)
    is_game_over: bool = False
    players: List[Player] = field(default_factory=lambda: [Player.dealer()])
    active_player: Optional[Player] = None
    active_hand: Optional[BlackjackHand] = None
    is_dealing: bool = False
    show_dealer_hole_card: bool = False
    stage: GameStage = GameStage.AWAITING_ROUND
    round_number: int = 0
    local_player: Optional[Player] = None
    error: Optional[str] = None
    is_loading: bool = False
    show_join_dialog: bool = False

    @property
    def dealer(self) -> Player:
        """The dealer, kept at the end of the roster."""
        for player in reversed(self.players):
            if player.is_dealer:
                return player
        dealer = Player.dealer()
        self.players.append(dealer)
        return dealer

    @property
    def seated_players(self) -> List[Player]:
        return [player for player in self.players if not player.is_dealer]

    def find_player(self, player_id: Optional[str]) -> Optional[Player]:
        if player_id is None:
            return None
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def insert_player(self, player: Player) -> None:
        """Insert a player in seat order, ahead of the dealer."""
        dealer = self.dealer
        seated = self.seated_players
        position = len(seated)
        for i, existing in enumerate(seated):
            if (existing.seat_number or 0) > (player.seat_number or 0):
                position = i
                break
        seated.insert(position, player)
        self.players = seated + [dealer]

    def remove_player(self, player_id: str) -> Optional[Player]:
        player = self.find_player(player_id)
        if player is None or player.is_dealer:
            return None
        self.players.remove(player)
        return player

    def next_player(self, player: Player) -> Optional[Player]:
        """
        Player who acts after ``player``.

        Seats are ordered by seat number and the dealer follows the last seat.
        Seats dealt out of the current round are skipped. Returns None after
        the dealer.
        """
        if player.is_dealer:
            return None
        seat = player.seat_number or 0
        for candidate in self.seated_players:
            if (candidate.seat_number or 0) > seat and candidate.is_in_round:
                return candidate
        return self.dealer

    def to_adapter_format(self) -> Dict[str, Any]:
        """
        Convert the table state to a format suitable for platform adapters.

        The dealer's hole card is masked until it has been revealed.

        Returns:
            Dictionary in adapter-friendly format
        """
        dealer_hand = self.dealer.hands[0]
        hidden = not self.show_dealer_hole_card and len(dealer_hand.cards) > 1
        visible_cards = dealer_hand.cards[:1] if hidden else dealer_hand.cards

        state_dict: Dict[str, Any] = {
            "game_id": self.id,
            "stage": self.stage.name,
            "round_number": self.round_number,
            "is_game_over": self.is_game_over,
            "cards_remaining": self.shoe.cards_remaining,
            "dealer": {
                "hand": [str(card) for card in visible_cards],
                "value": BlackjackHand(cards=visible_cards).total
                if hidden
                else dealer_hand.total,
                "hide_second_card": hidden,
            },
            "active_player_id": self.active_player.id if self.active_player else None,
            "players": [],
        }

        for player in self.seated_players:
            player_dict = {
                "id": player.id,
                "name": player.name,
                "seat": player.seat_number,
                "bank": player.bank,
                "hands": [],
            }
            for hand in player.hands:
                player_dict["hands"].append(
                    {
                        "cards": [str(card) for card in hand.cards],
                        "value": hand.total,
                        "bet": hand.bet,
                        "result": hand.result.value if hand.result else None,
                        "is_active": hand is self.active_hand,
                    }
                )
            state_dict["players"].append(player_dict)

        return state_dict
