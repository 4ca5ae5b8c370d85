"""Transport-wide congestion control feedback packets (RTCP PT 205, FMT 15)."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Union

RTCP_VERSION = 2
FIXED_LENGTH = 20
FORMAT_TCC = 15
TYPE_TRANSPORT_SPECIFIC_FEEDBACK = 205
DELTA_SCALE_FACTOR = 250
MAX_RUN_LENGTH = 0x1FFF
ONE_BIT_SYMBOLS = 14
TWO_BIT_SYMBOLS = 7


class PacketStatus(IntEnum):
    """Status symbol of a single packet in a feedback report."""

    NOT_RECEIVED = 0
    RECEIVED_SMALL_DELTA = 1
    RECEIVED_LARGE_DELTA = 2
    RECEIVED_WITHOUT_DELTA = 3


class SymbolSize(IntEnum):
    """Width of the symbols in a status vector chunk."""

    ONE_BIT = 0
    TWO_BIT = 1


def trunc_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero."""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


@dataclass
class RunLengthChunk:
    """A run of ``run_length`` packets that all share one status."""

    packet_status_symbol: int
    run_length: int

    def marshal(self) -> bytes:
        """Encode the chunk as two bytes."""
        if not 0 <= self.packet_status_symbol <= 3 or not 0 <= self.run_length <= MAX_RUN_LENGTH:
            raise ValueError("invalid run length chunk")
        return struct.pack("!H", (self.packet_status_symbol << 13) | self.run_length)


@dataclass
class StatusVectorChunk:
    """A vector of per-packet status symbols, one or two bits each."""

    symbol_size: int
    symbol_list: list[int] = field(default_factory=list)

    def marshal(self) -> bytes:
        """Encode the chunk as two bytes; missing trailing symbols are zero."""
        size = SymbolSize(self.symbol_size)
        width = 1 if size is SymbolSize.ONE_BIT else 2
        if len(self.symbol_list) > 14 // width:
            raise ValueError("too many symbols for a status vector chunk")
        value = 0x8000 | (size << 14)
        for position, symbol in enumerate(self.symbol_list, 1):
            if not 0 <= symbol < (1 << width):
                raise ValueError(f"symbol {symbol} does not fit in {width} bit(s)")
            value |= symbol << (14 - width * position)
        return struct.pack("!H", value)


PacketStatusChunk = Union[RunLengthChunk, StatusVectorChunk]


@dataclass
class RecvDelta:
    """Receive delta of one packet, in microseconds."""

    type: int
    delta: int

    def marshal(self) -> bytes:
        """Encode the delta in units of 250 microseconds."""
        scaled = trunc_div(self.delta, DELTA_SCALE_FACTOR)
        if self.type == PacketStatus.RECEIVED_SMALL_DELTA and 0 <= scaled <= 0xFF:
            return bytes([scaled])
        if self.type == PacketStatus.RECEIVED_LARGE_DELTA and -0x8000 <= scaled <= 0x7FFF:
            return struct.pack("!h", scaled)
        raise ValueError(f"delta {self.delta} exceeds the limit of its type")


@dataclass
class RTCPHeader:
    """Common RTCP header."""

    padding: bool = False
    count: int = FORMAT_TCC
    type: int = TYPE_TRANSPORT_SPECIFIC_FEEDBACK
    length: int = 0

    def marshal(self) -> bytes:
        """Encode the header as four bytes."""
        first = (RTCP_VERSION << 6) | (int(self.padding) << 5) | (self.count & 0x1F)
        return struct.pack("!BBH", first, self.type, self.length)


@dataclass
class TransportLayerCC:
    """A transport-wide congestion control feedback report."""

    header: RTCPHeader = field(default_factory=RTCPHeader)
    sender_ssrc: int = 0
    media_ssrc: int = 0
    base_sequence_number: int = 0
    packet_status_count: int = 0
    reference_time: int = 0
    fb_pkt_count: int = 0
    packet_chunks: list[PacketStatusChunk] = field(default_factory=list)
    recv_deltas: list[RecvDelta] = field(default_factory=list)

    def marshal(self) -> bytes:
        """Encode the packet, padded to a multiple of four bytes."""
        out = bytearray(self.header.marshal())
        out += struct.pack(
            "!IIHH", self.sender_ssrc, self.media_ssrc,
            self.base_sequence_number, self.packet_status_count,
        )
        out += (self.reference_time & 0xFFFFFF).to_bytes(3, "big")
        out.append(self.fb_pkt_count & 0xFF)
        for item in [*self.packet_chunks, *self.recv_deltas]:
            out += item.marshal()
        pad = -len(out) % 4
        if pad:
            out += bytes(pad)
            if self.header.padding:
                out[-1] = pad
        return bytes(out)


def _decode_chunk(value: int) -> PacketStatusChunk:
    if not value & 0x8000:
        return RunLengthChunk(PacketStatus((value >> 13) & 0x3), value & MAX_RUN_LENGTH)
    if not (value >> 14) & 0x1:
        symbols = [PacketStatus((value >> (13 - i)) & 0x1) for i in range(ONE_BIT_SYMBOLS)]
        return StatusVectorChunk(SymbolSize.ONE_BIT, symbols)
    symbols = [PacketStatus((value >> (12 - 2 * i)) & 0x3) for i in range(TWO_BIT_SYMBOLS)]
    return StatusVectorChunk(SymbolSize.TWO_BIT, symbols)


def unmarshal_transport_layer_cc(data: bytes) -> TransportLayerCC:
    """Decode a transport-wide congestion control feedback packet."""
    if len(data) < FIXED_LENGTH:
        raise ValueError("packet too short")
    first, packet_type, length = struct.unpack_from("!BBH", data)
    count = first & 0x1F
    if first >> 6 != RTCP_VERSION:
        raise ValueError("invalid RTCP version")
    if packet_type != TYPE_TRANSPORT_SPECIFIC_FEEDBACK or count != FORMAT_TCC:
        raise ValueError("not a transport-wide congestion control packet")
    total = (length + 1) * 4
    if total > len(data):
        raise ValueError("packet shorter than its header length")

    sender_ssrc, media_ssrc, base, status_count = struct.unpack_from("!IIHH", data, 4)
    packet = TransportLayerCC(
        header=RTCPHeader(bool(first & 0x20), count, packet_type, length),
        sender_ssrc=sender_ssrc,
        media_ssrc=media_ssrc,
        base_sequence_number=base,
        packet_status_count=status_count,
        reference_time=int.from_bytes(data[16:19], "big"),
        fb_pkt_count=data[19],
    )

    position = FIXED_LENGTH
    statuses: list[int] = []
    while len(statuses) < status_count:
        if position + 2 > total:
            raise ValueError("packet status chunks truncated")
        chunk = _decode_chunk(struct.unpack_from("!H", data, position)[0])
        position += 2
        remaining = status_count - len(statuses)
        if isinstance(chunk, RunLengthChunk):
            statuses += [chunk.packet_status_symbol] * min(chunk.run_length, remaining)
        else:
            statuses += chunk.symbol_list[:remaining]
        packet.packet_chunks.append(chunk)

    for status in statuses:
        if status == PacketStatus.RECEIVED_SMALL_DELTA:
            fmt = "!B"
        elif status == PacketStatus.RECEIVED_LARGE_DELTA:
            fmt = "!h"
        else:
            continue
        if position + struct.calcsize(fmt) > total:
            raise ValueError("receive deltas truncated")
        (scaled,) = struct.unpack_from(fmt, data, position)
        position += struct.calcsize(fmt)
        packet.recv_deltas.append(RecvDelta(PacketStatus(status), scaled * DELTA_SCALE_FACTOR))
    return packet