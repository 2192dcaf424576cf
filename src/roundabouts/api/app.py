from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Optional, Set

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from roundabouts.events import BoardChangeEvent, serialize_event
from roundabouts.game import Game
from roundabouts.geometry import Coord, coord_to_notation, notation_to_coord
from roundabouts.serialization import serialize_game

logger = logging.getLogger(__name__)


class CreateMatchRequest(BaseModel):
    animate_loops: bool = True
    step_interval: Optional[float] = None


class MoveRequest(BaseModel):
    origin: str
    target: str


class LoopRequest(BaseModel):
    origin: str


class MatchResponse(BaseModel):
    id: str
    animate_loops: bool
    state: Dict


class Hub:
    def __init__(self) -> None:
        self.connections: Dict[str, Set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def connect(self, match_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self.connections[match_id].add(websocket)

    async def disconnect(self, match_id: str, websocket: WebSocket) -> None:
        async with self._lock:
            self.connections[match_id].discard(websocket)

    async def broadcast(self, match_id: str, payload: Dict) -> None:
        async with self._lock:
            recipients = list(self.connections.get(match_id, set()))
        for ws in recipients:
            try:
                await ws.send_json(payload)
            except WebSocketDisconnect:
                await self.disconnect(match_id, ws)
            except RuntimeError:
                # Socket already closed underneath us.
                await self.disconnect(match_id, ws)


@dataclass
class Match:
    """One game bound to the front-end connected through the hub.

    The match is its game's UI adapter: loop animations are either pushed to
    websocket clients, or completed on the spot when ``animate_loops`` is off.
    """

    id: str
    hub: Hub
    loop: asyncio.AbstractEventLoop
    animate_loops: bool = True
    step_interval: Optional[float] = None
    game: Game = field(init=False)
    pending_loop: Optional[Coord] = None

    def __post_init__(self) -> None:
        self.game = Game.double_user_game(ui_adapter=self, step_interval=self.step_interval)
        self.game.add_board_change_listener(self.on_board_change)

    def request_loop_animation(self, row: int, column: int) -> None:
        if not self.animate_loops:
            self.game.notify_loop_input(row, column)
            return
        self.pending_loop = (row, column)
        self.publish({"type": "loop-animation", "origin": coord_to_notation((row, column))})

    def on_board_change(self, event: BoardChangeEvent) -> None:
        self.publish(serialize_event(event))

    def publish(self, payload: Dict) -> None:
        # Board changes may come from the long move thread.
        if self.loop.is_closed():
            logger.debug("Dropping %s for match %s, event loop closed", payload.get("type"), self.id)
            return
        asyncio.run_coroutine_threadsafe(self.hub.broadcast(self.id, payload), self.loop)


def create_app() -> FastAPI:
    hub = Hub()
    matches: Dict[str, Match] = {}

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        for match in matches.values():
            match.game.close()

    app = FastAPI(title="Roundabouts API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def serialize_match(match: Match) -> Dict:
        return {
            "id": match.id,
            "animate_loops": match.animate_loops,
            "state": serialize_game(match.game),
        }

    def require_match(match_id: str) -> Match:
        match = matches.get(match_id)
        if match is None:
            raise HTTPException(status_code=404, detail="Match not found")
        return match

    def parse_coord(token: str) -> Coord:
        try:
            return notation_to_coord(token)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/match", response_model=MatchResponse)
    async def create_match(req: CreateMatchRequest) -> MatchResponse:
        match = Match(
            id=uuid.uuid4().hex[:8],
            hub=hub,
            loop=asyncio.get_running_loop(),
            animate_loops=req.animate_loops,
            step_interval=req.step_interval,
        )
        match.game.place_all_pieces()
        matches[match.id] = match
        logger.info("Created match %s", match.id)
        payload = serialize_match(match)
        return MatchResponse(**payload)

    @app.get("/match/{match_id}", response_model=MatchResponse)
    async def get_match(match_id: str) -> MatchResponse:
        match = require_match(match_id)
        return MatchResponse(**serialize_match(match))

    @app.get("/match/{match_id}/connectors")
    async def get_connectors(match_id: str) -> Dict:
        match = require_match(match_id)
        return {"id": match.id, "connectors": serialize_game(match.game)["connectors"]}

    @app.post("/match/{match_id}/move", response_model=MatchResponse)
    async def play_move(match_id: str, body: MoveRequest) -> MatchResponse:
        match = require_match(match_id)
        origin = parse_coord(body.origin)
        target = parse_coord(body.target)
        if not match.game.notify_input(*origin, *target):
            raise HTTPException(status_code=400, detail="Illegal move")
        return MatchResponse(**serialize_match(match))

    @app.post("/match/{match_id}/loop", response_model=MatchResponse)
    async def play_loop(match_id: str, body: LoopRequest) -> MatchResponse:
        match = require_match(match_id)
        origin = parse_coord(body.origin)
        if not match.game.notify_loop_input(*origin):
            raise HTTPException(
                status_code=400, detail="Illegal loop move or a long move is in progress"
            )
        return MatchResponse(**serialize_match(match))

    @app.post("/match/{match_id}/loop-complete", response_model=MatchResponse)
    async def complete_loop(match_id: str, body: LoopRequest) -> MatchResponse:
        match = require_match(match_id)
        origin = parse_coord(body.origin)
        if match.pending_loop != origin or not match.game.move_repeating:
            raise HTTPException(status_code=400, detail="No loop animation pending there")
        match.pending_loop = None
        if not match.game.notify_loop_input(*origin):
            raise HTTPException(status_code=400, detail="Loop could not be resumed")
        return MatchResponse(**serialize_match(match))

    @app.websocket("/ws/match/{match_id}")
    async def ws_match(websocket: WebSocket, match_id: str) -> None:
        await hub.connect(match_id, websocket)
        try:
            match = matches.get(match_id)
            if match:
                await websocket.send_json({"type": "snapshot", **serialize_match(match)})
            while True:
                # Input arrives over REST; keep the socket open for pushes.
                await websocket.receive_text()
        except WebSocketDisconnect:
            await hub.disconnect(match_id, websocket)

    return app

