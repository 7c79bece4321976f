"""
Turn engine for the shared blackjack table.

``BlackjackTableEngine`` drives a round through betting, dealing, each seated
player's turn, the dealer's turn and settlement. Every visible step pauses for
a pacing delay, announces itself on the event bus and to the platform adapter,
and hands the changed state to the synchroniser for publishing.

Public operations (``play_round``, ``hit``, ``stand``, ``split``,
``double_down``) are serialised by a lock, so two callers can never act on the
shoe at the same time. A decision point is reached when a player's hand is
waiting for an action; the engine then returns and waits for the next call.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from sharedtable.adapters.base import PlatformAdapter
from sharedtable.blackjack.action import Action
from sharedtable.blackjack.hand import BlackjackHand, HandResult
from sharedtable.blackjack.player import Player
from sharedtable.common.card import Card
from sharedtable.config import TableConfig
from sharedtable.errors import (
    IllegalActionError,
    InsufficientBankError,
    ValidationError,
)
from sharedtable.events import EventBus, EventEmitter, TableEventType
from sharedtable.state.models import GameStage, TableState
from sharedtable.sync.synchronizer import Synchronizer

logger = logging.getLogger("sharedtable.engine")


class BlackjackTableEngine:
    """
    Round and turn state machine for one table.

    Args:
        state: The table state the engine mutates
        synchronizer: Publishes every change to the shared store
        adapter: Platform adapter to render the table and receive events
        config: Table settings
        event_bus: Emitter for table events, defaults to the global bus
    """

    def __init__(
        self,
        state: TableState,
        synchronizer: Synchronizer,
        adapter: PlatformAdapter,
        config: Optional[TableConfig] = None,
        event_bus: Optional[EventEmitter] = None,
    ):
        self.state = state
        self.sync = synchronizer
        self.adapter = adapter
        self.config = config or TableConfig()
        self.event_bus = event_bus or EventBus.get_instance()
        self._lock = asyncio.Lock()

    # Pacing and announcements

    async def _pause(self, seconds: Optional[float] = None) -> None:
        delay = self.config.pace_delay if seconds is None else seconds
        await asyncio.sleep(delay)

    async def _announce(
        self,
        event_type: Union[str, Enum],
        data: Dict[str, Any],
        render: bool = True,
    ) -> None:
        self.event_bus.emit(event_type, data)
        await self.adapter.notify_game_event(event_type, data)
        if render:
            await self.adapter.render_game_state(self.state.to_adapter_format())

    # Rules

    def can_split(self) -> bool:
        return self._split_error() is None

    def can_double_down(self) -> bool:
        return self._double_error() is None

    def _split_error(self) -> Optional[IllegalActionError]:
        player, hand = self.state.active_player, self.state.active_hand
        if self.state.is_dealing or player is None or hand is None:
            return IllegalActionError("No hand is waiting for a decision")
        if len(hand.cards) != 2 or len(player.hands) != 1:
            return IllegalActionError("Only an unsplit two-card hand can be split")
        if hand.cards[0].rank is not hand.cards[1].rank:
            return IllegalActionError("Only a pair of the same rank can be split")
        if player.bank < hand.bet:
            return InsufficientBankError(hand.bet, player.bank)
        return None

    def _double_error(self) -> Optional[IllegalActionError]:
        player, hand = self.state.active_player, self.state.active_hand
        if self.state.is_dealing or player is None or hand is None:
            return IllegalActionError("No hand is waiting for a decision")
        if len(hand.cards) != 2 or len(player.hands) != 1:
            return IllegalActionError("Only an unsplit two-card hand can be doubled")
        if player.bank < hand.bet:
            return InsufficientBankError(hand.bet, player.bank)
        return None

    def valid_actions(self) -> List[Action]:
        """Actions the active player may take now."""
        if (
            self.state.stage is not GameStage.PLAYER_TURN
            or self.state.is_dealing
            or self.state.active_hand is None
        ):
            return []
        actions = [Action.HIT, Action.STAND]
        if self.can_double_down():
            actions.append(Action.DOUBLE)
        if self.can_split():
            actions.append(Action.SPLIT)
        return actions

    def _require_turn(self, player_id: Optional[str]) -> Player:
        player = self.state.active_player
        if self.state.is_dealing:
            raise IllegalActionError("Cards are being dealt, please wait")
        if (
            self.state.stage is not GameStage.PLAYER_TURN
            or player is None
            or self.state.active_hand is None
        ):
            raise IllegalActionError("No hand is waiting for a decision")
        if player_id is not None and player_id != player.id:
            raise IllegalActionError("It is not your turn")
        return player

    # Public operations

    async def play_round(self) -> GameStage:
        """
        Start a round and play it up to the first decision point.

        With continuous play, rounds that settle without any decision roll
        straight into the next one.

        Returns:
            The stage the table is in when control returns

        Raises:
            IllegalActionError: If a round is already in progress or the game is over
        """
        async with self._lock:
            if self.state.stage is GameStage.GAME_OVER or self.state.is_game_over:
                raise IllegalActionError("The game is over")
            if self.state.stage is not GameStage.AWAITING_ROUND:
                raise IllegalActionError("A round is already in progress")
            await self._start_round()
            await self._continue_play()
            return self.state.stage

    async def hit(self, player_id: Optional[str] = None) -> None:
        """Draw one card into the active hand."""
        async with self._lock:
            player = self._require_turn(player_id)
            await self._announce(
                TableEventType.PLAYER_ACTION,
                {"player_id": player.id, "action": Action.HIT.name},
                render=False,
            )
            ended = await self._hit()
            if not ended:
                await self._request_decision()
            await self._continue_play()

    async def stand(self, player_id: Optional[str] = None) -> None:
        """End the active hand without drawing."""
        async with self._lock:
            player = self._require_turn(player_id)
            await self._announce(
                TableEventType.PLAYER_ACTION,
                {"player_id": player.id, "action": Action.STAND.name},
                render=False,
            )
            await self.end_hand()
            await self._continue_play()

    async def split(self, player_id: Optional[str] = None) -> None:
        """
        Split a pair into two hands and restart the player's turn.

        The second hand takes a bet equal to the first.

        Raises:
            IllegalActionError: If the hand cannot be split
            InsufficientBankError: If the bank cannot cover the second bet
        """
        async with self._lock:
            player = self._require_turn(player_id)
            error = self._split_error()
            if error is not None:
                raise error

            self.state.is_dealing = True
            hand = self.state.active_hand
            bet = hand.bet
            split_hands = [
                BlackjackHand(bet, cards=hand.cards[:1]),
                BlackjackHand(0, cards=hand.cards[1:]),
            ]
            self.state.active_hand = None
            await self._announce(
                TableEventType.PLAYER_ACTION,
                {"player_id": player.id, "action": Action.SPLIT.name},
                render=False,
            )
            await self._pause()

            player.hands = split_hands
            await self.place_bet(player, split_hands[1], bet)
            await self.sync.publish_player_hands(player)
            await self._announce(
                TableEventType.HAND_SPLIT,
                {
                    "player_id": player.id,
                    "hands": [hand.id for hand in split_hands],
                    "bet": bet,
                },
            )

            await self.play_turn(player)
            await self._continue_play()

    async def double_down(self, player_id: Optional[str] = None) -> None:
        """
        Double the bet, take exactly one card and end the hand.

        Raises:
            IllegalActionError: If the hand cannot be doubled
            InsufficientBankError: If the bank cannot cover the extra bet
        """
        async with self._lock:
            player = self._require_turn(player_id)
            error = self._double_error()
            if error is not None:
                raise error

            hand = self.state.active_hand
            await self._announce(
                TableEventType.PLAYER_ACTION,
                {"player_id": player.id, "action": Action.DOUBLE.name},
                render=False,
            )
            await self.place_bet(player, hand, hand.bet)
            ended = await self._hit()
            if not ended:
                await self.end_hand()
            await self._continue_play()

    async def execute_action(self, player_id: Optional[str], action: Action) -> None:
        """Dispatch an ``Action`` to the matching operation."""
        if action is Action.HIT:
            await self.hit(player_id)
        elif action is Action.STAND:
            await self.stand(player_id)
        elif action is Action.DOUBLE:
            await self.double_down(player_id)
        elif action is Action.SPLIT:
            await self.split(player_id)
        else:
            raise ValidationError(f"Unknown action: {action}")

    async def forfeit_turn(self, player: Player) -> None:
        """
        Handle a player who left the table.

        Bets already placed are forfeit. Cards the player held go back to the
        shoe, and if it was their turn play moves on to the next seat.
        """
        async with self._lock:
            cards = [card for hand in player.hands for card in hand.cards]
            if cards:
                forfeited = player.total_bet
                self.state.shoe.return_cards(cards)
                player.reset_hands()
                logger.info(f"{player.name} left mid-round, forfeiting {forfeited}")

            if (
                self.state.active_player is player
                and self.state.stage is GameStage.PLAYER_TURN
            ):
                self.state.active_hand = None
                next_player = self.state.next_player(player)
                if next_player is not None:
                    await self.play_turn(next_player)
                await self._continue_play()

    # Round flow

    async def _continue_play(self) -> None:
        while (
            self.state.stage is GameStage.AWAITING_ROUND
            and self.config.continuous_play
            and self.state.seated_players
        ):
            await self._start_round()

    async def _start_round(self) -> None:
        seated = self.state.seated_players
        if not seated:
            self.state.stage = GameStage.AWAITING_ROUND
            return

        first = seated[0]
        if self.state.is_game_over or first.bank < self.config.minimum_bet:
            await self._game_over(first)
            return

        self.state.stage = GameStage.BETTING
        self.state.round_number += 1
        for player in self.state.players:
            player.reset_hands()
        self.state.show_dealer_hole_card = False
        self.state.active_player = None
        self.state.active_hand = None
        self.state.error = None

        await self._announce(
            TableEventType.ROUND_STARTED,
            {
                "round_number": self.state.round_number,
                "players": [player.id for player in seated],
            },
            render=False,
        )
        await self.place_bet(first, first.hands[0], self.config.minimum_bet)

        self.state.stage = GameStage.DEALING
        await self.deal_round()

        await self.sync.publish_game_state()
        for player in self.state.seated_players:
            await self.sync.publish_player_hands(player)

        dealer = self.state.dealer
        if dealer.hands[0].is_blackjack:
            await self._announce(
                TableEventType.DEALER_BLACKJACK, {"round_number": self.state.round_number}
            )
            await self.end_round()
            return

        await self.play_turn(first)

    async def _game_over(self, player: Player) -> None:
        self.state.is_game_over = True
        self.state.stage = GameStage.GAME_OVER
        self.state.is_dealing = False
        logger.info(f"Game over: {player.name} has {player.bank} left")
        await self.sync.publish_game_state()
        await self._announce(
            TableEventType.GAME_OVER, {"player_id": player.id, "bank": player.bank}
        )

    async def place_bet(self, player: Player, hand: BlackjackHand, amount: float) -> None:
        """
        Move ``amount`` from the player's bank onto a hand and publish the bank.

        Raises:
            ValidationError: If the amount is negative
            InsufficientBankError: If the bank cannot cover the amount
        """
        if amount < 0:
            raise ValidationError("Bet must be non-negative")
        if player.bank < amount:
            raise InsufficientBankError(amount, player.bank)

        self.state.is_dealing = True
        player.bank -= amount
        hand.bet += amount
        await self.sync.publish_player_bank(player)
        await self._announce(
            TableEventType.PLAYER_BET,
            {"player_id": player.id, "amount": amount, "bank": player.bank},
        )
        await self._pause()

    async def _draw(self) -> Card:
        shoe = self.state.shoe
        if shoe.reshuffle_if_needed():
            await self.sync.publish_game_state()
            await self._announce(
                TableEventType.SHUFFLE,
                {"cards_remaining": shoe.cards_remaining},
                render=False,
            )
        return shoe.draw()

    async def deal_round(self) -> None:
        """Deal two passes of one card each to every seated player, then the dealer."""
        self.state.is_dealing = True
        participants = self.state.seated_players + [self.state.dealer]
        for pass_number in range(2):
            for player in participants:
                card = await self._draw()
                player.hands[0].add_card(card)
                hole_card = player.is_dealer and pass_number == 1
                await self._announce(
                    TableEventType.CARD_DEALT,
                    {
                        "player_id": player.id,
                        "card": None if hole_card else str(card),
                        "hole_card": hole_card,
                    },
                )
                await self._pause(self.config.deal_delay)

    async def play_turn(self, player: Player) -> None:
        """Make ``player`` the active player and start their first hand."""
        self.state.active_player = player
        if player.is_dealer:
            await self.play_dealer_hand()
            return
        self.state.stage = GameStage.PLAYER_TURN
        await self.play_hand(player.hands[0])

    async def play_hand(self, hand: BlackjackHand) -> None:
        """
        Make ``hand`` the active hand.

        A natural blackjack is paid and ended at once. A freshly split hand
        is dealt its second card; split aces end after that card.
        """
        self.state.is_dealing = True
        self.state.active_hand = hand
        if await self._check_for_blackjack(hand):
            return
        if len(hand.cards) == 1:
            if await self._hit():
                return
            if hand.cards[0].is_ace:
                await self.end_hand()
                return
        self.state.is_dealing = False
        await self._request_decision()

    async def _request_decision(self) -> None:
        player = self.state.active_player
        await self._announce(
            TableEventType.PLAYER_DECISION_NEEDED,
            {
                "player_id": player.id,
                "name": player.name,
                "hand_id": self.state.active_hand.id,
                "valid_actions": [action.name for action in self.valid_actions()],
            },
        )

    async def _check_for_blackjack(self, hand: BlackjackHand) -> bool:
        if not hand.is_blackjack:
            return False
        player = self.state.active_player
        payout = hand.bet * 3
        player.bank += payout
        hand.bet = 0
        hand.resolve(HandResult.BLACKJACK)
        await self.sync.publish_player_hands(player)
        await self.sync.publish_player_bank(player)
        await self._announce(
            TableEventType.HAND_BLACKJACK,
            {"player_id": player.id, "hand_id": hand.id, "payout": payout},
        )
        await self._pause()
        await self.end_hand()
        return True

    async def _hit(self) -> bool:
        """
        Deal a card into the active hand.

        Returns:
            True if the hand ended (21 or bust)
        """
        self.state.is_dealing = True
        player = self.state.active_player
        hand = self.state.active_hand

        hand.add_card(await self._draw())
        await self.sync.publish_player_hands(player)
        await self._announce(
            TableEventType.CARD_DEALT,
            {"player_id": player.id, "card": str(hand.cards[-1]), "total": hand.total},
        )

        if hand.total == 21:
            await self._announce(
                TableEventType.HAND_TWENTY_ONE,
                {"player_id": player.id, "hand_id": hand.id},
                render=False,
            )
            await self._pause()
            await self.end_hand()
            return True

        if hand.is_bust:
            await self._pause()
            self.state.active_hand = None
            hand.resolve(HandResult.BUST)
            await self.sync.publish_player_hands(player)
            await self._announce(
                TableEventType.HAND_BUSTED,
                {"player_id": player.id, "hand_id": hand.id, "total": hand.total},
            )
            await self.end_hand()
            return True

        await self._pause()
        if not player.is_dealer:
            self.state.is_dealing = False
        return False

    async def end_hand(self) -> None:
        """Advance to the second split hand, the next seat, or the dealer."""
        player = self.state.active_player
        if player is None or player.is_dealer:
            return

        self.event_bus.emit(
            TableEventType.HAND_COMPLETED,
            {"player_id": player.id, "hands": len(player.hands)},
        )

        if len(player.hands) > 1 and len(player.hands[1].cards) == 1:
            await self.play_hand(player.hands[1])
            return

        next_player = self.state.next_player(player)
        if next_player is not None:
            await self.play_turn(next_player)

    async def play_dealer_hand(self) -> None:
        """Reveal the hole card, then hit below 17 unless every player hand is resolved."""
        dealer = self.state.dealer
        hand = dealer.hands[0]
        self.state.stage = GameStage.DEALER_TURN
        self.state.is_dealing = True
        self.state.active_player = dealer
        self.state.active_hand = hand
        await self.reveal_hole_card()

        while True:
            player_hands = [
                player_hand
                for player in self.state.seated_players
                if player.is_in_round
                for player_hand in player.hands
            ]
            if all(player_hand.is_resolved for player_hand in player_hands):
                break
            if hand.is_resolved or hand.total >= 17:
                break
            await self._announce(
                TableEventType.DEALER_ACTION,
                {"action": Action.HIT.name, "total": hand.total},
                render=False,
            )
            self.state.active_hand = hand
            await self._hit()

        await self.end_round()

    async def reveal_hole_card(self) -> None:
        """Show the dealer's second card. Does nothing if it is already shown."""
        if self.state.show_dealer_hole_card:
            return
        await self._pause()
        self.state.show_dealer_hole_card = True
        hand = self.state.dealer.hands[0]
        await self._announce(
            TableEventType.CARD_REVEALED,
            {
                "card": str(hand.cards[1]) if len(hand.cards) > 1 else None,
                "total": hand.total,
            },
        )
        await self._pause()

    async def end_round(self) -> None:
        """Determine results, settle bets, collect winnings and reset every hand."""
        self.state.is_dealing = True
        self.state.stage = GameStage.SETTLING
        await self.reveal_hole_card()
        self.state.active_hand = None
        self.state.active_player = None

        await self.determine_results()
        await self.settle_bets()
        await self.collect_winnings()
        await self.reset_hands()
        await self.sync.publish_game_state()

        self.state.stage = GameStage.AWAITING_ROUND
        self.state.is_dealing = False
        await self._announce(
            TableEventType.ROUND_ENDED,
            {
                "round_number": self.state.round_number,
                "banks": {player.id: player.bank for player in self.state.seated_players},
            },
        )

    async def determine_results(self) -> None:
        """Compare every unresolved player hand with the dealer's final total."""
        dealer_total = self.state.dealer.hands[0].total
        for player in self.state.seated_players:
            for hand in player.hands:
                if not hand.cards or hand.is_resolved:
                    continue
                if dealer_total > 21:
                    result = HandResult.WIN
                elif dealer_total == hand.total:
                    result = HandResult.PUSH
                elif dealer_total < hand.total:
                    result = HandResult.WIN
                else:
                    result = HandResult.LOSE
                hand.resolve(result)
                await self._announce(
                    TableEventType.HAND_RESULT,
                    {
                        "player_id": player.id,
                        "hand_id": hand.id,
                        "result": result.value,
                        "total": hand.total,
                        "dealer_total": dealer_total,
                    },
                    render=False,
                )
                await self._pause()

    async def settle_bets(self) -> float:
        """
        Turn each hand's bet into its payout.

        Blackjacks were paid when they were dealt and pushes keep their stake.

        Returns:
            The total paid back across all hands
        """
        total = 0
        for player in self.state.seated_players:
            for hand in player.hands:
                if hand.result is HandResult.WIN:
                    hand.bet *= 2
                elif hand.result in (HandResult.LOSE, HandResult.BUST):
                    hand.bet = 0
                total += hand.bet
        await self._announce(
            TableEventType.MONEY_PAYOUT, {"total": total}, render=False
        )
        await self._pause()
        return total

    async def collect_winnings(self) -> None:
        """Add each player's hand bets to their bank and publish the bank."""
        for player in self.state.seated_players:
            total = player.total_bet
            player.bank += total
            for hand in player.hands:
                hand.bet = 0
            await self.sync.publish_player_bank(player)
            if total > 0:
                await self._announce(
                    TableEventType.BANKROLL_UPDATED,
                    {"player_id": player.id, "amount": total, "bank": player.bank},
                    render=False,
                )
        await self._pause(0.3 * self.config.pace_delay)

    async def reset_hands(self) -> None:
        """Return every hand's cards to the shoe and clear the hands."""
        for player in self.state.players:
            for hand in player.hands:
                self.state.shoe.return_cards(hand.cards)
                hand.reset()
            if not player.is_dealer:
                await self.sync.publish_player_hands(player)
        await self._pause()
