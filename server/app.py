from __future__ import annotations

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from bankgame.core.exceptions import BankError, ValidationError
from bankgame.core.game.actions import Action, ActionType
from bankgame.core.game.board import BoardCatalog
from bankgame.core.game.processor import ActionProcessor
from bankgame.data import GameRepository, close_db, create_tables, get_session, get_settings, init_db
from bankgame.data.gateway import PersistenceGateway
from bankgame.services import (
    GameActionService,
    HttpIdentityVerifier,
    IdentityVerifier,
    RealtimeNotifier,
    SnapshotService,
    parse_bearer_token,
)
from bankgame.services.notifier import RESYNC
from bankgame.settings import configure_logging, get_auth_settings, get_game_settings
from .schemas import ActionRequest, ActionResponse, ErrorResponse, ResolveRequest, ResolveResponse

logger = logging.getLogger(__name__)

HEARTBEAT_SECONDS = 5.0
WS_CLOSE_NOT_FOUND = 4404
WS_CLOSE_RESYNC = 4408


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown."""
    configure_logging()
    logger.info("Starting bank server")
    await init_db()
    if get_settings().is_sqlite:
        await create_tables()

    yield

    logger.info("Shutting down bank server")
    await close_db()


app = FastAPI(
    title="Board Game Bank Server",
    version="0.3.0",
    lifespan=lifespan,
)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# ---- Error handling ----
@app.exception_handler(BankError)
async def bank_error_handler(request: Request, exc: BankError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message, "code": exc.code})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid field '{field}': {first.get('msg')}" if field else "Malformed request body"
    return JSONResponse(status_code=400, content={"error": message, "code": "invalid_request"})


# ---- Dependencies ----
@lru_cache
def get_catalog() -> BoardCatalog:
    return BoardCatalog(default_pack_id=get_game_settings().default_board_pack)


@lru_cache
def get_rng() -> random.Random:
    return random.SystemRandom()


@lru_cache
def get_notifier() -> RealtimeNotifier:
    return RealtimeNotifier(queue_size=get_game_settings().subscriber_queue_size)


@lru_cache
def get_identity_verifier() -> IdentityVerifier:
    return HttpIdentityVerifier(get_auth_settings())


async def get_gateway(session: AsyncSession = Depends(get_session)) -> PersistenceGateway:
    return GameRepository(session)


async def current_user(
    authorization: Optional[str] = Header(default=None),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> str:
    return await verifier.verify(parse_bearer_token(authorization))


async def get_action_service(
    gateway: PersistenceGateway = Depends(get_gateway),
    catalog: BoardCatalog = Depends(get_catalog),
    rng: random.Random = Depends(get_rng),
    notifier: RealtimeNotifier = Depends(get_notifier),
) -> GameActionService:
    settings = get_game_settings()
    processor = ActionProcessor(
        gateway,
        catalog,
        rng,
        macro_interval_rounds=settings.macro_interval_rounds,
        join_code_length=settings.join_code_length,
    )
    return GameActionService(processor, notifier)


async def get_snapshot_service(
    gateway: PersistenceGateway = Depends(get_gateway),
    catalog: BoardCatalog = Depends(get_catalog),
) -> SnapshotService:
    return SnapshotService(gateway, catalog, recent_events=get_game_settings().recent_events_limit)


def _to_action(req: ActionRequest) -> Action:
    try:
        action_type = ActionType(req.action.strip().upper())
    except ValueError:
        raise ValidationError(f"Unknown action '{req.action}'", code="unknown_action") from None
    return Action(
        action_type=action_type,
        game_id=req.game_id.strip() if req.game_id else None,
        expected_version=req.expected_version,
        tile_index=req.tile_index,
        join_code=req.join_code,
        display_name=req.display_name.strip() if req.display_name else None,
        board_pack_id=req.board_pack_id,
        starting_cash=req.starting_cash,
    )


# ---- Commands ----
@app.post("/api/bank/action", response_model=ActionResponse, responses=ERROR_RESPONSES)
async def bank_action(
    req: ActionRequest,
    user_id: str = Depends(current_user),
    service: GameActionService = Depends(get_action_service),
):
    """Apply one player intent under optimistic concurrency."""
    result = await service.apply(user_id, _to_action(req))
    return ActionResponse.from_result(result)


# ---- Reads ----
@app.get("/api/games/{game_id}/snapshot", responses=ERROR_RESPONSES)
async def get_snapshot(game_id: str, service: SnapshotService = Depends(get_snapshot_service)):
    """Consistent snapshot of a watchable game."""
    return await service.get_snapshot(game_id)


@app.post("/api/board/resolve", response_model=ResolveResponse, responses=ERROR_RESPONSES)
async def resolve_board(req: ResolveRequest, service: SnapshotService = Depends(get_snapshot_service)):
    """Resolve a join code to the id of a watchable game."""
    game = await service.resolve_join_code(req.join_code)
    return ResolveResponse(game_id=game.game_id, status=game.status.value)


@app.get("/health")
async def health():
    return {"status": "ok"}


# ---- Realtime ----
@app.websocket("/ws/games/{game_id}")
async def ws_game(
    websocket: WebSocket,
    game_id: str,
    snapshots: SnapshotService = Depends(get_snapshot_service),
    notifier: RealtimeNotifier = Depends(get_notifier),
):
    await websocket.accept()
    try:
        snapshot = await snapshots.get_snapshot(game_id)
    except BankError as exc:
        logger.info(f"Refusing subscription to {game_id}: {exc.message}")
        await websocket.close(code=WS_CLOSE_NOT_FOUND)
        return

    queue = notifier.subscribe(game_id)
    await websocket.send_json({"type": "snapshot", "game_id": game_id, "snapshot": snapshot})

    async def sender():
        while True:
            msg = await queue.get()
            await websocket.send_json(msg)
            if msg.get("type") == RESYNC:
                return

    async def heartbeat():
        while True:
            await asyncio.sleep(HEARTBEAT_SECONDS)
            await websocket.send_json({"type": "heartbeat"})

    async def receiver():
        # Inputs are ignored; actions go through the HTTP endpoint
        while True:
            await websocket.receive_text()

    tasks = [asyncio.create_task(sender()), asyncio.create_task(heartbeat()), asyncio.create_task(receiver())]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        notifier.unsubscribe(game_id, queue)
        for task in tasks:
            task.cancel()

    resynced = False
    for task in done:
        exc = task.exception()
        if exc is None:
            resynced = task is tasks[0]
        elif not isinstance(exc, WebSocketDisconnect):
            logger.debug(f"Subscription to {game_id} ended: {exc!r}")
    if resynced:
        await websocket.close(code=WS_CLOSE_RESYNC)


if __name__ == "__main__":
    # Convenience entrypoint for running directly: python -m server.app
    import uvicorn

    uvicorn.run("server.app:app", host="0.0.0.0", port=8000, reload=True)
