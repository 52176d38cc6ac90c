"""
Binary serialization of frames for WebSocket transmission.

Packet format (little-endian):

    header : 4 x uint32 + 1 x float32
        - grid size N
        - step
        - flags (bit0: pointer active, bit1: hovered, bit2: static fallback)
        - marker count M
        - simulated time (seconds)
    payload:
        - heights : float32[N * N]
        - normals : float32[N * N * 3]
        - colors  : float32[N * N * 3]
        - markers : float32[M * 3]  (x, z, intensity)
"""

from __future__ import annotations

import struct
from typing import Any, Dict

import numpy as np

from wavecal.core.frame_loop import Frame


_HEADER_STRUCT = struct.Struct("<4If")
FLAG_POINTER_ACTIVE = 1 << 0
FLAG_HOVERED = 1 << 1
FLAG_STATIC = 1 << 2


def frame_flags(frame: Frame) -> int:
    flags = 0
    if frame.pointer_active:
        flags |= FLAG_POINTER_ACTIVE
    if frame.hovered:
        flags |= FLAG_HOVERED
    if frame.static:
        flags |= FLAG_STATIC
    return flags


def serialize_frame(frame: Frame) -> bytes:
    """Serialize a frame into a binary packet for streaming."""
    heights = np.asarray(frame.height, dtype=np.float32)
    normals = np.asarray(frame.surface.normals, dtype=np.float32)
    colors = np.asarray(frame.surface.colors, dtype=np.float32)

    if frame.markers:
        markers = np.asarray([(m.x, m.z, m.intensity) for m in frame.markers], dtype=np.float32)
    else:
        markers = np.zeros((0, 3), dtype=np.float32)

    header = _HEADER_STRUCT.pack(
        heights.shape[0],
        frame.step,
        frame_flags(frame),
        markers.shape[0],
        float(frame.time),
    )

    return (
        header
        + heights.ravel().tobytes(order="C")
        + normals.reshape(-1).tobytes(order="C")
        + colors.reshape(-1).tobytes(order="C")
        + markers.reshape(-1).tobytes(order="C")
    )


def deserialize_packet_info(packet: bytes) -> Dict[str, Any]:
    """Inspect packet header without full deserialisation."""

    if len(packet) < _HEADER_STRUCT.size:
        raise ValueError(f"Packet too short: {len(packet)} bytes")

    grid_size, step, flags, marker_count, sim_time = _HEADER_STRUCT.unpack_from(packet)

    return {
        "grid_size": int(grid_size),
        "step": int(step),
        "pointer_active": bool(flags & FLAG_POINTER_ACTIVE),
        "hovered": bool(flags & FLAG_HOVERED),
        "static": bool(flags & FLAG_STATIC),
        "marker_count": int(marker_count),
        "time": float(sim_time),
        "packet_size": len(packet),
        "valid": len(packet) == compute_packet_size(grid_size, marker_count),
    }


def deserialize_heights(packet: bytes) -> np.ndarray:
    """Decode the (N, N) height block of a packet."""
    info = deserialize_packet_info(packet)
    n = info["grid_size"]
    return np.frombuffer(packet, dtype="<f4", count=n * n, offset=_HEADER_STRUCT.size).reshape(n, n)


def compute_packet_size(grid_size: int, marker_count: int = 0) -> int:
    """
    Total packet size in bytes.

    - Header: 4 uint32 + 1 float = 20 bytes
    - Heights: N * N float32
    - Normals and colors: 2 * N * N * 3 float32
    - Markers: M * 3 float32
    """
    cells = grid_size * grid_size
    return _HEADER_STRUCT.size + cells * 4 + 2 * cells * 3 * 4 + marker_count * 3 * 4
