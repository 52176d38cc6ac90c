"""
FastAPI server with frame loop and WebSocket support.

This module creates the main server application, owns the global frame
loop, ticks it from an asyncio task at the configured frame rate, and
streams binary frame packets to WebSocket clients.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from wavecal.config.config_manager import get_config
from wavecal.config.config_schema import WaveCalConfig
from wavecal.core.events import MonthGeometry
from wavecal.core.frame_loop import FrameLoop, LoopState
from wavecal.core.grid_state import field_energy
from wavecal.recovery import SimulatorNotRunning
from wavecal.wavecal_logging import get_logger
from wavecal.api.serializers import serialize_frame
from wavecal.api.routes import (
    SetEventsRequest,
    SetEventsResponse,
    PointerMoveRequest,
    PointerResponse,
    DropRequest,
    StatusResponse,
    FrameSummaryResponse,
)

logger = get_logger(__name__)


# ============================================================================
# Global State
# ============================================================================

frame_loop: Optional[FrameLoop] = None
frame_task: Optional[asyncio.Task] = None
websocket_clients: Set[WebSocket] = set()


def _require_loop() -> FrameLoop:
    if frame_loop is None:
        raise HTTPException(status_code=503, detail="Frame loop not initialized")
    return frame_loop


# ============================================================================
# Application Lifecycle
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the frame loop on startup, tear it down on shutdown."""
    global frame_loop, frame_task

    config: WaveCalConfig = getattr(app.state, 'config', None) or get_config()
    frame_loop = FrameLoop(config)
    state = frame_loop.start()
    logger.info(f"Wave calendar server ready (state={state.value})")

    frame_task = asyncio.create_task(frame_loop_task(config.simulation.dt))

    yield

    if frame_task:
        frame_task.cancel()
        try:
            await frame_task
        except asyncio.CancelledError:
            pass
    frame_loop.teardown()
    frame_loop = None
    frame_task = None
    logger.info("Wave calendar server stopped")


# ============================================================================
# FastAPI Application
# ============================================================================

app = FastAPI(
    title="WaveCal API",
    description="Event-driven wave field behind a monthly calendar",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Frame Loop
# ============================================================================

async def frame_loop_task(dt: float):
    """
    Tick the frame loop once per display refresh and broadcast each frame.
    """
    event_loop = asyncio.get_running_loop()

    try:
        while True:
            loop_start = event_loop.time()

            loop = frame_loop
            if loop is None or loop.state == LoopState.IDLE:
                await asyncio.sleep(dt)
                continue

            frame = loop.tick()

            if websocket_clients:
                packet = serialize_frame(frame)
                disconnected = set()
                for client in list(websocket_clients):
                    try:
                        await client.send_bytes(packet)
                    except Exception as e:
                        logger.debug(f"Dropping WebSocket client: {e}")
                        disconnected.add(client)
                websocket_clients.difference_update(disconnected)

            elapsed = event_loop.time() - loop_start
            await asyncio.sleep(max(0.001, dt - elapsed))

    except asyncio.CancelledError:
        logger.debug("Frame loop task cancelled")
        raise
    except Exception:
        logger.exception("Error in frame loop task")
        raise


# ============================================================================
# REST API Endpoints
# ============================================================================

@app.get("/")
async def root():
    return {"message": "WaveCal API Server", "status": "ready", "docs": "/docs"}


@app.get("/health")
async def health():
    loop = _require_loop()
    healthy = loop.is_healthy()
    return {"status": "healthy" if healthy else "degraded", "state": loop.state.value}


@app.get("/status", response_model=StatusResponse)
async def get_status():
    return StatusResponse(**_require_loop().get_status())


@app.post("/events", response_model=SetEventsResponse)
async def set_events(request: SetEventsRequest):
    """Replace the displayed month's events."""
    loop = _require_loop()
    geometry = MonthGeometry.from_month(request.year, request.month)
    try:
        count = loop.set_events([e.to_event() for e in request.events], geometry)
    except SimulatorNotRunning as e:
        raise HTTPException(status_code=409, detail=str(e))
    return SetEventsResponse(status="scheduled", impulses=count)


def _pointer_response(loop: FrameLoop) -> PointerResponse:
    state = loop.pointer.state
    return PointerResponse(
        active=state.active,
        hovered=loop.pointer.hovered,
        position=list(state.position) if state.active else None,
    )


@app.post("/pointer/move", response_model=PointerResponse)
async def pointer_move(request: PointerMoveRequest):
    loop = _require_loop()
    loop.pointer.on_pointer_move(request.x, request.y, request.width, request.height)
    return _pointer_response(loop)


@app.post("/pointer/down", response_model=PointerResponse)
async def pointer_down():
    loop = _require_loop()
    loop.pointer.on_pointer_down()
    return _pointer_response(loop)


@app.post("/pointer/up", response_model=PointerResponse)
async def pointer_up():
    loop = _require_loop()
    loop.pointer.on_pointer_up()
    return _pointer_response(loop)


@app.post("/pointer/leave", response_model=PointerResponse)
async def pointer_leave():
    loop = _require_loop()
    loop.pointer.on_pointer_leave()
    return _pointer_response(loop)


@app.post("/drop")
async def drop(request: DropRequest):
    """Drop a transient impulse on a calendar cell."""
    loop = _require_loop()
    try:
        impulse = loop.drop(request.row, request.col)
    except SimulatorNotRunning as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {
        "status": "dropped",
        "cell": list(impulse.cell),
        "onset_time": impulse.onset_time,
        "intensity": impulse.intensity,
    }


@app.get("/frame", response_model=FrameSummaryResponse)
async def get_frame():
    """Summary of the latest frame."""
    loop = _require_loop()
    frame = loop.latest_frame
    if frame is None:
        raise HTTPException(status_code=503, detail="No frame rendered yet")

    return FrameSummaryResponse(
        step=frame.step,
        time=frame.time,
        grid_size=int(frame.height.shape[0]),
        min_height=float(frame.height.min()),
        max_height=float(frame.height.max()),
        energy=field_energy(frame.height),
        pointer_active=frame.pointer_active,
        hovered=frame.hovered,
        static=frame.static,
        markers=[m.to_dict() for m in frame.markers],
    )


@app.get("/metrics")
async def get_metrics():
    return _require_loop().metrics.to_dict()


# ============================================================================
# WebSocket
# ============================================================================

def _handle_message(loop: FrameLoop, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Apply one client message to the frame loop.

    Returns:
        Reply to send back, or None

    Raises:
        ValidationError / ValueError: malformed or unknown message
    """
    msg_type = data.get('type')
    if msg_type == 'PING':
        return {"type": "PONG", **loop.get_status()}

    if msg_type == 'POINTER_MOVE':
        move = PointerMoveRequest.model_validate(data)
        loop.pointer.on_pointer_move(move.x, move.y, move.width, move.height)
    elif msg_type == 'POINTER_DOWN':
        loop.pointer.on_pointer_down()
    elif msg_type == 'POINTER_UP':
        loop.pointer.on_pointer_up()
    elif msg_type == 'POINTER_LEAVE':
        loop.pointer.on_pointer_leave()
    elif msg_type == 'DROP':
        request = DropRequest.model_validate(data)
        loop.drop(request.row, request.col)
    else:
        raise ValueError(f"unknown message type {msg_type!r}")
    return None


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Bidirectional WebSocket.

    Server -> Client: binary frame packets
    Client -> Server: JSON pointer and control messages

    Invalid messages get an ERROR reply; the connection stays open.
    """
    await websocket.accept()
    loop = frame_loop
    if loop is None:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    await websocket.send_json({"type": "STATUS", **loop.get_status()})
    websocket_clients.add(websocket)

    try:
        while True:
            text = await websocket.receive_text()
            try:
                data = json.loads(text)
                if not isinstance(data, dict):
                    raise ValueError("message must be a JSON object")
                reply = _handle_message(loop, data)
            except (ValidationError, ValueError, SimulatorNotRunning) as e:
                logger.debug(f"Rejected WebSocket message: {e}")
                await websocket.send_json({"type": "ERROR", "detail": str(e)})
                continue

            if reply is not None:
                await websocket.send_json(reply)
    except WebSocketDisconnect:
        pass
    finally:
        websocket_clients.discard(websocket)
