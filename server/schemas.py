from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from bankgame.core.game.player import Player, PropertyOwnership
from bankgame.core.game.processor import ActionResult


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys; snake_case is accepted too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ActionRequest(CamelModel):
    action: str = Field(min_length=1)
    game_id: Optional[str] = None
    expected_version: Optional[int] = None
    tile_index: Optional[int] = None
    join_code: Optional[str] = None
    display_name: Optional[str] = Field(default=None, max_length=255)
    board_pack_id: Optional[str] = None
    starting_cash: Optional[int] = None


class PlayerDTO(CamelModel):
    player_id: str
    user_id: str
    display_name: str
    position: int
    is_eliminated: bool
    join_order: int

    @classmethod
    def from_player(cls, player: Player) -> "PlayerDTO":
        return cls(
            player_id=player.player_id,
            user_id=player.user_id,
            display_name=player.display_name,
            position=player.position,
            is_eliminated=player.is_eliminated,
            join_order=player.join_order,
        )


class OwnershipDTO(CamelModel):
    tile_index: int
    owner_player_id: Optional[str] = None
    houses: int = 0
    collateral_loan_id: Optional[str] = None
    purchase_mortgage_id: Optional[str] = None

    @classmethod
    def from_ownership(cls, entry: PropertyOwnership) -> "OwnershipDTO":
        return cls(
            tile_index=entry.tile_index,
            owner_player_id=entry.owner_id,
            houses=entry.houses,
            collateral_loan_id=entry.collateral_loan_id,
            purchase_mortgage_id=entry.purchase_mortgage_id,
        )


class GameDTO(CamelModel):
    game_id: str
    join_code: str
    status: str
    host_user_id: str
    board_pack_id: str
    starting_cash: int


class ActionResponse(CamelModel):
    game: GameDTO
    version: int
    turn_state: Optional[Dict[str, Any]] = None
    events: List[Dict[str, Any]] = Field(default_factory=list)
    player: Optional[PlayerDTO] = None
    players: Optional[List[PlayerDTO]] = None
    ownership: Optional[List[OwnershipDTO]] = None
    already_ended: bool = False

    @classmethod
    def from_result(cls, result: ActionResult) -> "ActionResponse":
        game = result.game
        return cls(
            game=GameDTO(
                game_id=game.game_id,
                join_code=game.join_code,
                status=game.status.value,
                host_user_id=game.host_user_id,
                board_pack_id=game.board_pack_id,
                starting_cash=game.starting_cash,
            ),
            version=result.version,
            turn_state=result.turn_state.to_dict() if result.turn_state else None,
            events=[event.to_dict() for event in result.events],
            player=PlayerDTO.from_player(result.player) if result.player else None,
            players=[PlayerDTO.from_player(p) for p in result.players]
            if result.players is not None
            else None,
            ownership=[
                OwnershipDTO.from_ownership(result.ownership[index])
                for index in sorted(result.ownership)
            ]
            if result.ownership is not None
            else None,
            already_ended=result.already_ended,
        )


class ResolveRequest(CamelModel):
    join_code: str = ""


class ResolveResponse(CamelModel):
    game_id: str
    status: str


class ErrorResponse(BaseModel):
    error: str
    code: str
