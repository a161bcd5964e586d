"""Binary float32 vector encoding shared by the row store and sqlite-vec."""

import struct


def serialize_f32(vec: list[float]) -> bytes:
    """Serialize a list of floats to a compact binary format for sqlite-vec."""
    return struct.pack(f"{len(vec)}f", *vec)


def deserialize_f32(blob: bytes | None) -> list[float] | None:
    """Inverse of serialize_f32. Returns None for a missing embedding."""
    if not blob:
        return None
    return list(struct.unpack(f"{len(blob) // 4}f", blob))
