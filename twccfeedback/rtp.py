"""RTP header with RFC 8285 extensions, and the transport-wide sequence extension."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

RTP_VERSION = 2
FIXED_HEADER_LENGTH = 12
ONE_BYTE_PROFILE = 0xBEDE
TWO_BYTE_PROFILE = 0x1000
TRANSPORT_CC_EXTENSION_SIZE = 2


def _fits(profile: int, ext_id: int, payload: bytes) -> bool:
    if profile == ONE_BYTE_PROFILE:
        return 1 <= ext_id <= 14 and 1 <= len(payload) <= 16
    if profile == TWO_BYTE_PROFILE:
        return 1 <= ext_id <= 255 and len(payload) <= 255
    return ext_id == 0


@dataclass
class RTPHeader:
    """The fixed RTP header plus its header extensions.

    ``extension_profile`` is None while the header carries no extension.
    With an unknown profile the whole extension body is kept under ID 0.
    """

    version: int = RTP_VERSION
    padding: bool = False
    marker: bool = False
    payload_type: int = 0
    sequence_number: int = 0
    timestamp: int = 0
    ssrc: int = 0
    csrc: list[int] = field(default_factory=list)
    extension_profile: int | None = None
    extensions: dict[int, bytes] = field(default_factory=dict)

    def set_extension(self, ext_id: int, payload: bytes) -> None:
        """Set or replace extension ``ext_id``; the first one picks the profile."""
        payload = bytes(payload)
        profiles = (
            (ONE_BYTE_PROFILE, TWO_BYTE_PROFILE)
            if self.extension_profile is None
            else (self.extension_profile,)
        )
        profile = next((p for p in profiles if _fits(p, ext_id, payload)), None)
        if profile is None:
            raise ValueError(f"extension {ext_id} with {len(payload)} bytes does not fit")
        self.extension_profile = profile
        self.extensions[ext_id] = payload

    def get_extension(self, ext_id: int) -> bytes | None:
        """Payload of extension ``ext_id``, or None if absent."""
        return None if self.extension_profile is None else self.extensions.get(ext_id)

    def marshal(self) -> bytes:
        """Encode the header, extensions included."""
        if len(self.csrc) > 15:
            raise ValueError("too many CSRC identifiers")
        profile = self.extension_profile
        first = (self.version << 6) | (self.padding << 5) | ((profile is not None) << 4) | len(self.csrc)
        out = bytearray(struct.pack(
            "!BBHII", first, (self.marker << 7) | (self.payload_type & 0x7F),
            self.sequence_number & 0xFFFF, self.timestamp & 0xFFFFFFFF, self.ssrc & 0xFFFFFFFF,
        ))
        out += b"".join(struct.pack("!I", c & 0xFFFFFFFF) for c in self.csrc)
        if profile is not None:
            body = bytearray()
            for ext_id, payload in self.extensions.items():
                if profile == ONE_BYTE_PROFILE:
                    body.append((ext_id << 4) | (len(payload) - 1))
                elif profile == TWO_BYTE_PROFILE:
                    body += bytes([ext_id, len(payload)])
                body += payload
            body += bytes(-len(body) % 4)
            out += struct.pack("!HH", profile, len(body) // 4) + body
        return bytes(out)


def _parse_extensions(profile: int, body: bytes) -> dict[int, bytes]:
    if profile not in (ONE_BYTE_PROFILE, TWO_BYTE_PROFILE):
        return {0: body}
    extensions: dict[int, bytes] = {}
    position = 0
    while position < len(body):
        if body[position] == 0:
            position += 1
            continue
        if profile == ONE_BYTE_PROFILE:
            ext_id, length = body[position] >> 4, (body[position] & 0x0F) + 1
            if ext_id == 15:
                break
            position += 1
        else:
            if position + 1 >= len(body):
                raise ValueError("header extension truncated")
            ext_id, length = body[position], body[position + 1]
            position += 2
        if position + length > len(body):
            raise ValueError("header extension truncated")
        extensions[ext_id] = body[position:position + length]
        position += length
    return extensions


def parse_rtp_header(data: bytes) -> RTPHeader:
    """Decode the RTP header at the start of ``data``."""
    data = bytes(data)
    if len(data) < FIXED_HEADER_LENGTH:
        raise ValueError("RTP header too short")
    first, second, sequence_number, timestamp, ssrc = struct.unpack_from("!BBHII", data)
    if first >> 6 != RTP_VERSION:
        raise ValueError(f"unsupported RTP version {first >> 6}")
    csrc_count = first & 0x0F
    position = FIXED_HEADER_LENGTH + 4 * csrc_count
    if len(data) < position:
        raise ValueError("RTP header too short for its CSRC list")
    header = RTPHeader(
        version=first >> 6,
        padding=bool(first & 0x20),
        marker=bool(second & 0x80),
        payload_type=second & 0x7F,
        sequence_number=sequence_number,
        timestamp=timestamp,
        ssrc=ssrc,
        csrc=list(struct.unpack_from(f"!{csrc_count}I", data, FIXED_HEADER_LENGTH)),
    )
    if first & 0x10:
        end = position + 4
        if len(data) >= end:
            profile, words = struct.unpack_from("!HH", data, position)
            end += 4 * words
        if len(data) < end:
            raise ValueError("RTP header extension truncated")
        header.extension_profile = profile
        header.extensions = _parse_extensions(profile, data[position + 4:end])
    return header


@dataclass(frozen=True)
class TransportCCExtension:
    """The transport-wide sequence number header extension."""

    transport_sequence: int

    def marshal(self) -> bytes:
        if not 0 <= self.transport_sequence <= 0xFFFF:
            raise ValueError(f"transport sequence {self.transport_sequence} out of range")
        return struct.pack("!H", self.transport_sequence)


def unmarshal_transport_cc_extension(data: bytes) -> TransportCCExtension:
    """Decode a transport-wide sequence number extension."""
    if data is None or len(data) < TRANSPORT_CC_EXTENSION_SIZE:
        raise ValueError("transport-wide CC extension too short")
    return TransportCCExtension(struct.unpack_from("!H", data)[0])