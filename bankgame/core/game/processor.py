"""
Authoritative action processor.

Applies one player intent at a time against persisted state under
optimistic concurrency. Every call loads the current state, validates the
intent, computes the new turn state and the events to append, and commits
them through the gateway. The processor keeps no state between calls.
"""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from bankgame.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from bankgame.core.game.actions import (
    HOST_ACTIONS,
    Action,
    ActionType,
)
from bankgame.core.game.board import BoardCatalog, BoardPack
from bankgame.core.game.cards import CardDefinition, CardKind, DeckKind, draw_card
from bankgame.core.game.dice import roll_dice
from bankgame.core.game.economy import (
    apply_one_off_effects,
    development_cost,
    owns_full_color_set,
    pass_start_salary,
    rent_due,
)
from bankgame.core.game.events import (
    AllowExtraRoll,
    BuildHouse,
    BuyProperty,
    CardApplied,
    DeclineProperty,
    EndGame,
    EndTurn,
    EventBuffer,
    GameEvent,
    GoToJail,
    LandEvent,
    LandFreeParking,
    LandGoToJail,
    LandJail,
    LandOnTile,
    LandProperty,
    LandStart,
    LandTax,
    MovePlayer,
    MoveResolved,
    OfferPurchase,
    RollDice,
    RolledDouble,
    StartGame,
)
from bankgame.core.game.macro import (
    activate_card,
    draw_macro_card,
    get_macro_deck,
    tick_modifiers,
)
from bankgame.core.game.player import Loan, Player, PropertyOwnership
from bankgame.core.game.spaces import Tile, TileType
from bankgame.core.game.turn_order import first_player_id, next_player_id, ordered_players
from bankgame.core.game.turn_state import (
    BuyPropertyDecision,
    CardDecision,
    TurnState,
)
from bankgame.data.gateway import GameRecord, GameStatus, PersistenceGateway

logger = logging.getLogger(__name__)

JOIN_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
JOIN_CODE_ATTEMPTS = 5
MAX_CONSECUTIVE_DOUBLES = 3


@dataclass
class ActionResult:
    """Outcome of one applied intent."""

    game: GameRecord
    turn_state: Optional[TurnState]
    events: List[GameEvent] = field(default_factory=list)
    player: Optional[Player] = None
    players: Optional[List[Player]] = None
    ownership: Optional[Dict[int, PropertyOwnership]] = None
    already_ended: bool = False

    @property
    def version(self) -> int:
        return self.turn_state.version if self.turn_state else 0


class _TurnContext:
    """Working copy of one game's state while a turn action is computed."""

    def __init__(
        self,
        game: GameRecord,
        pack: BoardPack,
        players: List[Player],
        state: TurnState,
        ownership: Dict[int, PropertyOwnership],
        loans: List[Loan],
        actor: Player,
    ):
        self.game = game
        self.pack = pack
        self.players = players
        self.state = state
        self.ownership = ownership
        self.loans = loans
        self.actor = actor

        self.balances = dict(state.balances)
        self.positions = {p.player_id: p.position for p in players}
        self.doubles = state.consecutive_doubles_count
        self.last_roll = state.last_roll
        self.pending = state.pending_action
        self.current_player_id = state.current_player_id
        self.round_number = state.round_number
        self.modifiers = list(state.active_modifiers)
        self.last_macro_card_id = state.last_macro_card_id
        self.deck_index = {
            DeckKind.CHANCE.value: state.chance_index,
            DeckKind.COMMUNITY.value: state.community_index,
        }

        self.events = EventBuffer(state.version, actor.player_id)
        self.moved: Dict[str, int] = {}
        self.new_ownership: List[PropertyOwnership] = []
        self.developed: Dict[int, int] = {}

    def player(self, player_id: Optional[str]) -> Optional[Player]:
        for p in self.players:
            if p.player_id == player_id:
                return p
        return None

    def credit(self, player_id: str, amount: int) -> None:
        self.balances[player_id] = self.balances.get(player_id, 0) + amount

    def move(self, player_id: str, position: int) -> None:
        self.positions[player_id] = position
        self.moved[player_id] = position

    def new_state(self) -> TurnState:
        return self.state.with_changes(
            version=self.events.last_version,
            current_player_id=self.current_player_id,
            last_roll=self.last_roll,
            consecutive_doubles_count=self.doubles,
            pending_action=self.pending,
            balances=self.balances,
            round_number=self.round_number,
            active_modifiers=self.modifiers,
            last_macro_card_id=self.last_macro_card_id,
            chance_index=self.deck_index[DeckKind.CHANCE.value],
            community_index=self.deck_index[DeckKind.COMMUNITY.value],
        )


class ActionProcessor:
    """
    Validates and applies player intents.

    The random source is injected so tests can script dice and macro draws.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        catalog: BoardCatalog,
        rng: Optional[random.Random] = None,
        *,
        macro_interval_rounds: int = 5,
        join_code_length: int = 6,
    ):
        self.gateway = gateway
        self.catalog = catalog
        self.rng = rng or random.Random()
        self.macro_interval_rounds = macro_interval_rounds
        self.join_code_length = join_code_length

    async def apply(self, user_id: str, action: Action) -> ActionResult:
        """
        Apply one intent on behalf of an authenticated user.

        Args:
            user_id: Verified identity of the caller
            action: The intent, including game id and expected version

        Returns:
            ActionResult with the new turn state and appended events

        Raises:
            ValidationError: Missing or malformed intent fields
            NotFoundError: Game (or tile) does not exist
            AuthorizationError: Not a member, not host, or not your turn
            ConflictError: Expected version is stale or a conditional write lost
            StateError: Intent does not fit the lifecycle status or turn phase
        """
        action.validate()

        if action.action_type == ActionType.CREATE_GAME:
            return await self._create_game(user_id, action)
        if action.action_type == ActionType.JOIN_GAME:
            return await self._join_game(user_id, action)

        game = await self.gateway.get_game(action.game_id)
        if game is None:
            raise NotFoundError(f"Game {action.game_id} not found", code="game_not_found")

        players = await self.gateway.list_players(game.game_id)
        actor = next((p for p in players if p.user_id == user_id), None)
        if actor is None:
            raise AuthorizationError("You are not a member of this game", code="not_a_member")

        if action.action_type in HOST_ACTIONS and game.host_user_id != user_id:
            raise AuthorizationError("Only the host can do that", code="not_host")

        if action.action_type == ActionType.END_GAME and game.status == GameStatus.ENDED:
            return await self._already_ended(game)

        state = await self.gateway.get_turn_state(game.game_id)
        if state is None:
            raise NotFoundError(f"Game {game.game_id} has no turn state", code="state_not_found")
        if state.version != action.expected_version:
            logger.warning(
                f"Version conflict on {game.game_id}: expected {action.expected_version}, "
                f"current {state.version}"
            )
            raise ConflictError(
                f"Expected version {action.expected_version} but current version is {state.version}"
            )

        if game.status == GameStatus.ENDED:
            raise StateError("Game has ended", code="game_ended")

        if action.action_type == ActionType.START_GAME:
            return await self._start_game(game, players, state)
        if action.action_type == ActionType.END_GAME:
            return await self._end_game(game, actor, state)

        if game.status != GameStatus.IN_PROGRESS:
            raise StateError("Game is not in progress", code="game_not_started")
        if state.current_player_id != actor.player_id:
            raise AuthorizationError("It is not your turn", code="not_your_turn")

        ownership = await self.gateway.list_ownership(game.game_id)
        loans = await self.gateway.list_loans(game.game_id)
        pack = self.catalog.get_pack(game.board_pack_id)
        ctx = _TurnContext(game, pack, players, state, ownership, loans, actor)

        handler = {
            ActionType.ROLL_DICE: self._roll_dice,
            ActionType.BUY_PROPERTY: self._buy_property,
            ActionType.DECLINE_PROPERTY: self._decline_property,
            ActionType.CONFIRM_CARD: self._confirm_card,
            ActionType.BUILD_HOUSE: self._build_house,
            ActionType.END_TURN: self._end_turn,
        }[action.action_type]
        handler(ctx, action)

        return await self._commit(ctx, action.action_type)

    # ---- Lobby ----

    def _new_join_code(self) -> str:
        return "".join(self.rng.choice(JOIN_CODE_ALPHABET) for _ in range(self.join_code_length))

    async def _create_game(self, user_id: str, action: Action) -> ActionResult:
        pack_id = action.board_pack_id or self.catalog.default_pack_id
        if not self.catalog.has_pack(pack_id):
            raise ValidationError(f"Unknown board pack '{pack_id}'", code="unknown_board_pack")
        pack = self.catalog.get_pack(pack_id)
        starting_cash = (
            action.starting_cash
            if action.starting_cash is not None
            else pack.economy.starting_balance
        )

        host = Player(
            player_id=str(uuid.uuid4()),
            user_id=user_id,
            display_name=action.display_name or "Host",
            join_order=0,
        )
        state = TurnState()

        for attempt in range(1, JOIN_CODE_ATTEMPTS + 1):
            game = GameRecord(
                game_id=str(uuid.uuid4()),
                join_code=self._new_join_code(),
                status=GameStatus.LOBBY,
                host_user_id=user_id,
                board_pack_id=pack.pack_id,
                starting_cash=starting_cash,
            )
            try:
                async with self.gateway.transaction():
                    await self.gateway.create_game(game, host, state)
            except ConflictError:
                if attempt == JOIN_CODE_ATTEMPTS:
                    raise
                logger.warning(f"Join code collision on attempt {attempt}, retrying")
                continue
            logger.info(f"Created game {game.game_id} (code {game.join_code}, pack {pack.pack_id})")
            return ActionResult(game=game, turn_state=state, player=host, players=[host], ownership={})
        raise ConflictError("Could not allocate a join code")  # pragma: no cover

    async def _join_game(self, user_id: str, action: Action) -> ActionResult:
        if action.game_id:
            game = await self.gateway.get_game(action.game_id)
        else:
            game = await self.gateway.find_game_by_join_code(action.join_code.strip().upper())
        if game is None:
            raise NotFoundError("Game not found", code="game_not_found")
        if game.status != GameStatus.LOBBY:
            raise StateError("Game is no longer accepting players", code="game_not_in_lobby")

        async with self.gateway.transaction():
            locked = await self.gateway.lock_game(game.game_id)
            if locked is None or locked.status != GameStatus.LOBBY:
                raise StateError("Game is no longer accepting players", code="game_not_in_lobby")
            player = await self.gateway.upsert_player(
                game.game_id, user_id, action.display_name or "Player"
            )

        players = await self.gateway.list_players(game.game_id)
        ownership = await self.gateway.list_ownership(game.game_id)
        state = await self.gateway.get_turn_state(game.game_id)
        logger.info(f"User {user_id} joined game {game.game_id} as {player.player_id}")
        return ActionResult(
            game=game,
            turn_state=state,
            player=player,
            players=players,
            ownership=ownership,
        )

    async def _start_game(self, game: GameRecord, players: List[Player], state: TurnState) -> ActionResult:
        if game.status != GameStatus.LOBBY:
            raise StateError("Game has already started", code="already_started")
        order = ordered_players(players)
        if not order:
            raise StateError("Game has no players", code="no_players")

        events = EventBuffer(state.version)
        events.log(StartGame(
            player_order=[p.player_id for p in order],
            starting_cash=game.starting_cash,
        ))
        new_state = state.with_changes(
            version=events.last_version,
            current_player_id=first_player_id(order),
            last_roll=None,
            consecutive_doubles_count=0,
            pending_action=None,
            balances={p.player_id: game.starting_cash for p in order},
            round_number=1,
        )

        async with self.gateway.transaction():
            await self.gateway.lock_game(game.game_id)
            flipped = await self.gateway.update_game_status(
                game.game_id, [GameStatus.LOBBY], GameStatus.IN_PROGRESS
            )
            if not flipped:
                raise ConflictError("Game was started concurrently", code="already_started")
            roster = ordered_players(await self.gateway.list_players(game.game_id))
            if [p.player_id for p in roster] != [p.player_id for p in order]:
                raise ConflictError("Players joined while starting", code="roster_changed")
            await self.gateway.append_events(game.game_id, events.events)
            await self._write_turn_state(game.game_id, state.version, new_state)

        logger.info(f"Started game {game.game_id} with {len(order)} players")
        started = replace(game, status=GameStatus.IN_PROGRESS)
        return ActionResult(game=started, turn_state=new_state, events=events.events, players=order)

    async def _end_game(self, game: GameRecord, actor: Player, state: TurnState) -> ActionResult:
        events = EventBuffer(state.version, actor.player_id)
        events.log(EndGame(ended_by=actor.player_id))
        new_state = state.with_changes(version=events.last_version, pending_action=None)

        async with self.gateway.transaction():
            flipped = await self.gateway.update_game_status(
                game.game_id, [GameStatus.LOBBY, GameStatus.IN_PROGRESS], GameStatus.ENDED
            )
            if flipped:
                await self.gateway.append_events(game.game_id, events.events)
                await self._write_turn_state(game.game_id, state.version, new_state)

        if not flipped:
            return await self._already_ended(game)

        logger.info(f"Ended game {game.game_id}")
        ended = replace(game, status=GameStatus.ENDED)
        return ActionResult(game=ended, turn_state=new_state, events=events.events)

    async def _already_ended(self, game: GameRecord) -> ActionResult:
        logger.info(f"Game {game.game_id} was already ended")
        state = await self.gateway.get_turn_state(game.game_id)
        ended = replace(game, status=GameStatus.ENDED)
        return ActionResult(game=ended, turn_state=state, already_ended=True)

    # ---- Turn actions ----

    def _roll_dice(self, ctx: _TurnContext, action: Action) -> None:
        if ctx.pending is not None:
            raise StateError("Resolve the pending decision first", code="decision_pending")
        if ctx.last_roll is not None and ctx.doubles == 0:
            raise StateError("You have already rolled this turn", code="already_rolled")

        roll = roll_dice(self.rng)
        player_id = ctx.actor.player_id
        ctx.doubles = ctx.doubles + 1 if roll.is_double else 0
        ctx.last_roll = roll.total

        ctx.events.log(RollDice(dice=list(roll.dice), total=roll.total, is_double=roll.is_double))
        if roll.is_double:
            ctx.events.log(RolledDouble(consecutive_doubles=ctx.doubles))

        if ctx.doubles >= MAX_CONSECUTIVE_DOUBLES:
            jail_index = ctx.pack.jail_index
            ctx.events.log(GoToJail(
                from_index=ctx.positions[player_id],
                jail_index=jail_index,
                reason="three_doubles",
            ))
            ctx.move(player_id, jail_index)
            ctx.doubles = 0
            self._pass_turn(ctx)
            return

        position = ctx.positions[player_id]
        target = (position + roll.total) % ctx.pack.size
        passed_start = position + roll.total >= ctx.pack.size
        self._move_and_resolve(ctx, target, roll.total, passed_start)
        self._maybe_allow_extra_roll(ctx)

    def _buy_property(self, ctx: _TurnContext, action: Action) -> None:
        decision = self._pending_purchase(ctx, action.tile_index)
        player_id = ctx.actor.player_id
        if ctx.balances.get(player_id, 0) < decision.price:
            raise StateError("Not enough cash to buy this tile", code="insufficient_funds")

        ctx.credit(player_id, -decision.price)
        entry = PropertyOwnership(tile_index=decision.tile_index, owner_id=player_id)
        ctx.ownership[decision.tile_index] = entry
        ctx.new_ownership.append(entry)
        ctx.pending = None
        ctx.events.log(BuyProperty(tile_index=decision.tile_index, price=decision.price))
        self._maybe_allow_extra_roll(ctx)

    def _decline_property(self, ctx: _TurnContext, action: Action) -> None:
        decision = self._pending_purchase(ctx, action.tile_index)
        ctx.pending = None
        ctx.events.log(DeclineProperty(tile_index=decision.tile_index))
        self._pass_turn(ctx)

    def _confirm_card(self, ctx: _TurnContext, action: Action) -> None:
        decision = ctx.pending
        if not isinstance(decision, CardDecision):
            raise StateError("No card is waiting to be confirmed", code="no_pending_card")
        ctx.pending = None

        card = self._find_card(ctx.pack, decision)
        if card is None:
            logger.warning(f"Card {decision.card_id} is not in pack {ctx.pack.pack_id}; skipping")
            ctx.events.log(CardApplied(
                deck=decision.deck, card_id=decision.card_id, card_kind=decision.card_kind,
                card_title=decision.title,
            ))
            self._maybe_allow_extra_roll(ctx)
            return

        player_id = ctx.actor.player_id
        position = ctx.positions[player_id]
        amount = 0
        if card.kind == CardKind.RECEIVE:
            amount = card.amount
        elif card.kind == CardKind.PAY:
            amount = -card.amount
        applied = CardApplied(
            deck=decision.deck,
            card_id=card.card_id,
            card_kind=card.kind.value,
            card_title=card.title,
            amount=amount,
        )

        if card.kind in (CardKind.PAY, CardKind.RECEIVE):
            ctx.credit(player_id, applied.amount)
            ctx.events.log(applied)

        elif card.kind == CardKind.MOVE_TO:
            ctx.events.log(applied)
            target = (card.tile_index or 0) % ctx.pack.size
            spaces = (target - position) % ctx.pack.size
            self._move_and_resolve(ctx, target, spaces, position + spaces >= ctx.pack.size)

        elif card.kind == CardKind.MOVE_REL:
            ctx.events.log(applied)
            target = (position + card.spaces) % ctx.pack.size
            passed_start = card.spaces > 0 and position + card.spaces >= ctx.pack.size
            self._move_and_resolve(ctx, target, card.spaces, passed_start)

        elif card.kind == CardKind.GO_TO_JAIL:
            ctx.events.log(applied)
            jail_index = ctx.pack.jail_index
            ctx.events.log(GoToJail(from_index=position, jail_index=jail_index, reason="card"))
            ctx.move(player_id, jail_index)
            ctx.doubles = 0

        self._maybe_allow_extra_roll(ctx)

    def _build_house(self, ctx: _TurnContext, action: Action) -> None:
        if ctx.pending is not None:
            raise StateError("Resolve the pending decision first", code="decision_pending")
        tile = ctx.pack.get_tile(action.tile_index)
        if tile is None:
            raise NotFoundError(f"Tile {action.tile_index} not found", code="tile_not_found")
        if tile.tile_type != TileType.PROPERTY:
            raise ValidationError("Only properties can be developed", code="not_a_property")

        player_id = ctx.actor.player_id
        entry = ctx.ownership.get(tile.index)
        if entry is None or entry.owner_id != player_id:
            raise AuthorizationError("You do not own this property", code="not_owner")
        if not owns_full_color_set(ctx.pack, ctx.ownership, player_id, tile.color_group):
            raise StateError("You need the whole color group to build", code="incomplete_color_set")
        if entry.is_encumbered():
            raise StateError("Property is held as loan collateral", code="property_encumbered")

        cost = development_cost(tile, ctx.modifiers)
        if ctx.balances.get(player_id, 0) < cost:
            raise StateError("Not enough cash to build", code="insufficient_funds")

        ctx.credit(player_id, -cost)
        level = entry.houses + 1
        ctx.ownership[tile.index] = PropertyOwnership(
            tile_index=entry.tile_index,
            owner_id=entry.owner_id,
            houses=level,
            collateral_loan_id=entry.collateral_loan_id,
            purchase_mortgage_id=entry.purchase_mortgage_id,
        )
        ctx.developed[tile.index] = level
        ctx.events.log(BuildHouse(tile_index=tile.index, level=level, cost=cost))

    def _end_turn(self, ctx: _TurnContext, action: Action) -> None:
        if ctx.pending is not None:
            raise StateError("Resolve the pending decision first", code="decision_pending")
        if ctx.last_roll is None:
            raise StateError("You must roll before ending your turn", code="not_rolled")
        self._pass_turn(ctx)

    # ---- Movement and landing ----

    def _move_and_resolve(self, ctx: _TurnContext, target: int, spaces: int, passed_start: bool) -> None:
        player_id = ctx.actor.player_id
        salary = 0
        if passed_start:
            salary = pass_start_salary(ctx.pack, ctx.ownership, player_id, ctx.modifiers)
            ctx.credit(player_id, salary)

        ctx.events.log(MovePlayer(
            from_index=ctx.positions[player_id],
            to_index=target,
            spaces=spaces,
            passed_start=passed_start,
            salary=salary,
        ))
        ctx.move(player_id, target)

        tile = ctx.pack.get_tile(target)
        ctx.events.log(LandOnTile(
            tile_index=tile.index,
            tile_id=tile.tile_id,
            tile_type=tile.tile_type.value,
            tile_name=tile.name,
        ))
        self._resolve_landing(ctx, tile)
        ctx.events.log(MoveResolved(tile_index=ctx.positions[player_id]))

    def _resolve_landing(self, ctx: _TurnContext, tile: Tile) -> None:
        player_id = ctx.actor.player_id

        if tile.is_ownable:
            entry = ctx.ownership.get(tile.index)
            if entry is None or not entry.is_owned():
                ctx.events.log(LandProperty(tile_index=tile.index))
                ctx.pending = BuyPropertyDecision(tile_index=tile.index, price=tile.price or 0)
                ctx.events.log(OfferPurchase(tile_index=tile.index, price=tile.price or 0))
                return
            owner = ctx.player(entry.owner_id)
            rent = 0
            if entry.owner_id != player_id and owner is not None and not owner.is_eliminated:
                rent = rent_due(ctx.pack, tile, ctx.ownership, ctx.modifiers, ctx.last_roll)
                ctx.credit(player_id, -rent)
                ctx.credit(entry.owner_id, rent)
            ctx.events.log(LandProperty(tile_index=tile.index, owner_player_id=entry.owner_id, rent=rent))

        elif tile.tile_type == TileType.TAX:
            amount = tile.tax_amount or 0
            ctx.credit(player_id, -amount)
            ctx.events.log(LandTax(tile_index=tile.index, amount=amount))

        elif tile.tile_type == TileType.EVENT:
            deck_kind = tile.deck or DeckKind.CHANCE.value
            card = draw_card(ctx.pack.deck(deck_kind), ctx.deck_index.get(deck_kind, 0))
            ctx.deck_index[deck_kind] = ctx.deck_index.get(deck_kind, 0) + 1
            ctx.events.log(LandEvent(
                tile_index=tile.index,
                deck=deck_kind,
                card_id=card.card_id if card else None,
                card_title=card.title if card else "",
                card_kind=card.kind.value if card else None,
            ))
            if card is not None:
                ctx.pending = CardDecision(
                    deck=deck_kind, card_id=card.card_id, title=card.title, card_kind=card.kind.value
                )

        elif tile.tile_type == TileType.JAIL:
            ctx.events.log(LandJail(tile_index=tile.index))

        elif tile.tile_type == TileType.GO_TO_JAIL:
            jail_index = ctx.pack.jail_index
            ctx.events.log(LandGoToJail(tile_index=tile.index, jail_index=jail_index))
            ctx.move(player_id, jail_index)
            ctx.doubles = 0

        elif tile.tile_type == TileType.START:
            ctx.events.log(LandStart(tile_index=tile.index))

        elif tile.tile_type == TileType.FREE_PARKING:
            ctx.events.log(LandFreeParking(tile_index=tile.index))

    def _maybe_allow_extra_roll(self, ctx: _TurnContext) -> None:
        if ctx.doubles > 0 and ctx.pending is None:
            ctx.events.log(AllowExtraRoll(consecutive_doubles=ctx.doubles))

    def _pending_purchase(self, ctx: _TurnContext, tile_index: Optional[int]) -> BuyPropertyDecision:
        decision = ctx.pending
        if not isinstance(decision, BuyPropertyDecision):
            raise StateError("No purchase is being offered", code="no_pending_purchase")
        if decision.tile_index != tile_index:
            raise StateError(
                f"Pending purchase is for tile {decision.tile_index}, not {tile_index}",
                code="decision_mismatch",
            )
        return decision

    def _find_card(self, pack: BoardPack, decision: CardDecision) -> Optional[CardDefinition]:
        for card in pack.deck(decision.deck):
            if card.card_id == decision.card_id:
                return card
        return None

    # ---- Turn passing and rounds ----

    def _pass_turn(self, ctx: _TurnContext) -> None:
        from_player_id = ctx.actor.player_id
        next_id, wrapped = next_player_id(ctx.players, ctx.current_player_id)

        expired: List[str] = []
        macro_card = None
        deltas: Dict[str, int] = {}
        color_groups: List[str] = []

        if wrapped:
            ctx.round_number += 1
            ctx.modifiers, dropped = tick_modifiers(ctx.modifiers)
            expired = [m.card_id for m in dropped]
            if self._macro_due(ctx.round_number):
                macro_card = draw_macro_card(
                    get_macro_deck(ctx.pack.macro_deck_id), ctx.last_macro_card_id, self.rng
                )
                ctx.modifiers = ctx.modifiers + activate_card(macro_card, ctx.round_number)
                ctx.last_macro_card_id = macro_card.card_id
                shock = apply_one_off_effects(
                    macro_card,
                    ctx.pack,
                    [p.player_id for p in ctx.players if not p.is_eliminated],
                    ctx.ownership,
                    ctx.loans,
                    self.rng,
                )
                for player_id, delta in shock.deltas.items():
                    ctx.credit(player_id, delta)
                deltas = dict(shock.deltas)
                color_groups = list(shock.affected_color_groups)
                logger.info(
                    f"Macro card {macro_card.card_id} drawn in game {ctx.game.game_id} "
                    f"(round {ctx.round_number})"
                )

        ctx.events.log(EndTurn(
            from_player_id=from_player_id,
            next_player_id=next_id,
            round_completed=wrapped,
            round_number=ctx.round_number,
            expired_modifiers=expired,
            macro_card_id=macro_card.card_id if macro_card else None,
            macro_card_name=macro_card.name if macro_card else None,
            macro_balance_deltas=deltas,
            macro_color_groups=color_groups,
        ))

        ctx.current_player_id = next_id
        ctx.last_roll = None
        ctx.doubles = 0
        ctx.pending = None

    def _macro_due(self, round_number: int) -> bool:
        if self.macro_interval_rounds <= 0:
            return False
        completed = round_number - 1
        return completed > 0 and completed % self.macro_interval_rounds == 0

    # ---- Commit ----

    async def _commit(self, ctx: _TurnContext, action_type: ActionType) -> ActionResult:
        new_state = ctx.new_state()
        game_id = ctx.game.game_id

        async with self.gateway.transaction():
            for entry in ctx.new_ownership:
                await self.gateway.insert_ownership(game_id, entry)
            for tile_index, level in ctx.developed.items():
                await self.gateway.update_ownership_level(game_id, tile_index, level)
            for player_id, position in ctx.moved.items():
                await self.gateway.update_player_position(game_id, player_id, position)
            await self.gateway.append_events(game_id, ctx.events.events)
            await self._write_turn_state(game_id, ctx.state.version, new_state)

        logger.info(
            f"Applied {action_type.value} to game {game_id}: "
            f"v{ctx.state.version} -> v{new_state.version} ({len(ctx.events.events)} events)"
        )
        return ActionResult(game=ctx.game, turn_state=new_state, events=ctx.events.events)

    async def _write_turn_state(self, game_id: str, expected_version: int, new_state: TurnState) -> None:
        updated = await self.gateway.update_turn_state(game_id, expected_version, new_state)
        if not updated:
            logger.warning(f"Turn state of {game_id} moved past v{expected_version} during commit")
            raise ConflictError(
                f"Game {game_id} changed while the action was being applied"
            )
