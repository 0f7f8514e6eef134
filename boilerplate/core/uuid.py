import time
import uuid

NIL_UUID = str(uuid.UUID(int=0))


def uuid7() -> uuid.UUID:
    """
    Generate a UUIDv7: 48 bits of unix milliseconds followed by random bits,
    so ids sort by creation time.
    """
    timestamp_ms = int(time.time() * 1000)
    raw = timestamp_ms.to_bytes(6, byteorder="big") + uuid.uuid4().bytes[6:]

    # version 7 in the high nibble of byte 6, RFC 4122 variant in byte 8
    raw = raw[:6] + bytes([(raw[6] & 0x0F) | 0x70]) + raw[7:]
    raw = raw[:8] + bytes([(raw[8] & 0x3F) | 0x80]) + raw[9:]

    return uuid.UUID(bytes=raw)
