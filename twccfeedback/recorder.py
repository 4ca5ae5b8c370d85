"""Recording of received packets and building of transport-wide feedback."""

from __future__ import annotations

from dataclasses import dataclass, field

from twccfeedback.arrival_time_map import PacketArrivalTimeMap
from twccfeedback.rtcp import (
    DELTA_SCALE_FACTOR,
    FIXED_LENGTH,
    MAX_RUN_LENGTH,
    ONE_BIT_SYMBOLS,
    TWO_BIT_SYMBOLS,
    PacketStatus,
    PacketStatusChunk,
    RecvDelta,
    RTCPHeader,
    RunLengthChunk,
    StatusVectorChunk,
    SymbolSize,
    TransportLayerCC,
    trunc_div,
)

PACKET_WINDOW_MICROSECONDS = 500_000
MAX_MISSING_SEQUENCE_NUMBERS = 0x7FFE
REFERENCE_TIME_UNIT_US = 64_000

MAX_RUN_LENGTH_CAP = MAX_RUN_LENGTH
MAX_ONE_BIT_CAP = ONE_BIT_SYMBOLS
MAX_TWO_BIT_CAP = TWO_BIT_SYMBOLS


class SequenceUnwrapper:
    """Turns 16-bit wrapping sequence numbers into monotonic integers."""

    def __init__(self) -> None:
        self._last: int | None = None

    def unwrap(self, sequence_number: int) -> int:
        sequence_number &= 0xFFFF
        if self._last is None:
            self._last = sequence_number
        else:
            diff = (sequence_number - self._last) & 0xFFFF
            self._last += diff - 0x10000 if diff > 0x8000 else diff
        return self._last


@dataclass
class Chunk:
    """Accumulates packet statuses until they fill one status chunk."""

    deltas: list[PacketStatus] = field(default_factory=list)
    has_large_delta: bool = False
    has_different_types: bool = False

    def can_add(self, delta: int) -> bool:
        count = len(self.deltas)
        return (
            count < MAX_TWO_BIT_CAP
            or (count < MAX_ONE_BIT_CAP and not self.has_large_delta
                and delta != PacketStatus.RECEIVED_LARGE_DELTA)
            or (count < MAX_RUN_LENGTH_CAP and not self.has_different_types
                and delta == self.deltas[0])
        )

    def add(self, delta: int) -> None:
        status = PacketStatus(delta)
        self.deltas.append(status)
        self.has_large_delta |= status == PacketStatus.RECEIVED_LARGE_DELTA
        self.has_different_types |= status != self.deltas[0]

    def encode(self) -> PacketStatusChunk:
        """Emit a status chunk, keeping any statuses that did not fit."""
        if not self.deltas:
            raise ValueError("cannot encode an empty chunk")
        if not self.has_different_types:
            encoded: PacketStatusChunk = RunLengthChunk(self.deltas[0], len(self.deltas))
            rest: list[PacketStatus] = []
        elif len(self.deltas) == MAX_ONE_BIT_CAP:
            encoded, rest = StatusVectorChunk(SymbolSize.ONE_BIT, self.deltas), []
        else:
            encoded = StatusVectorChunk(SymbolSize.TWO_BIT, self.deltas[:MAX_TWO_BIT_CAP])
            rest = self.deltas[MAX_TWO_BIT_CAP:]
        self.deltas = rest
        self.has_large_delta = PacketStatus.RECEIVED_LARGE_DELTA in rest
        self.has_different_types = len(set(rest)) > 1
        return encoded


class Feedback:
    """A single feedback report under construction."""

    def __init__(self, sender_ssrc: int = 0, media_ssrc: int = 0, fb_pkt_count: int = 0) -> None:
        self.sender_ssrc = sender_ssrc
        self.media_ssrc = media_ssrc
        self.fb_pkt_count = fb_pkt_count
        self.base_sequence_number = 0
        self.ref_timestamp_64ms = 0
        self.last_timestamp_us = 0
        self.next_sequence_number = 0
        self.sequence_number_count = 0
        self.delta_bytes = 0
        self.last_chunk = Chunk()
        self.chunks: list[PacketStatusChunk] = []
        self.deltas: list[RecvDelta] = []

    def set_base(self, sequence_number: int, time_us: int) -> None:
        self.base_sequence_number = self.next_sequence_number = sequence_number & 0xFFFF
        self.ref_timestamp_64ms = trunc_div(time_us, REFERENCE_TIME_UNIT_US)
        self.last_timestamp_us = self.ref_timestamp_64ms * REFERENCE_TIME_UNIT_US

    def add_received(self, sequence_number: int, timestamp_us: int) -> bool:
        """Add a received packet; False if its delta does not fit this report."""
        delta_us = timestamp_us - self.last_timestamp_us
        half = DELTA_SCALE_FACTOR // 2
        delta_250us = trunc_div(delta_us + (half if delta_us >= 0 else -half), DELTA_SCALE_FACTOR)
        if not -0x8000 <= delta_250us <= 0x7FFF:
            return False

        sequence_number &= 0xFFFF
        while self.next_sequence_number != sequence_number:
            self._add_status(PacketStatus.NOT_RECEIVED)

        small = 0 <= delta_250us <= 0xFF
        self.delta_bytes += 1 if small else 2
        status = PacketStatus.RECEIVED_SMALL_DELTA if small else PacketStatus.RECEIVED_LARGE_DELTA
        self._add_status(status)
        self.deltas.append(RecvDelta(status, delta_250us * DELTA_SCALE_FACTOR))
        self.last_timestamp_us += delta_250us * DELTA_SCALE_FACTOR
        return True

    def to_rtcp(self) -> TransportLayerCC:
        """Finish the report and return it as an RTCP packet."""
        while self.last_chunk.deltas:
            self.chunks.append(self.last_chunk.encode())
        unpadded = FIXED_LENGTH + 2 * len(self.chunks) + self.delta_bytes
        padded = unpadded + (-unpadded % 4)
        return TransportLayerCC(
            header=RTCPHeader(padding=unpadded % 4 != 0, length=(padded // 4 - 1) & 0xFFFF),
            sender_ssrc=self.sender_ssrc,
            media_ssrc=self.media_ssrc,
            base_sequence_number=self.base_sequence_number,
            packet_status_count=self.sequence_number_count,
            reference_time=self.ref_timestamp_64ms & 0xFFFFFFFF,
            fb_pkt_count=self.fb_pkt_count,
            packet_chunks=list(self.chunks),
            recv_deltas=list(self.deltas),
        )

    def _add_status(self, status: PacketStatus) -> None:
        if not self.last_chunk.can_add(status):
            self.chunks.append(self.last_chunk.encode())
        self.last_chunk.add(status)
        self.sequence_number_count = (self.sequence_number_count + 1) & 0xFFFF
        self.next_sequence_number = (self.next_sequence_number + 1) & 0xFFFF


class Recorder:
    """Records incoming packets and builds transport-wide feedback reports."""

    def __init__(self, sender_ssrc: int) -> None:
        self.sender_ssrc = sender_ssrc
        self.media_ssrc = 0
        self._arrival_times = PacketArrivalTimeMap()
        self._unwrapper = SequenceUnwrapper()
        self._start: int | None = None
        self._fb_pkt_count = 0
        self._packets_held = 0

    @property
    def packets_held(self) -> int:
        """Number of received packets not yet reported."""
        return self._packets_held

    def record(self, media_ssrc: int, sequence_number: int, arrival_time: int) -> None:
        """Mark a packet as received at ``arrival_time`` microseconds."""
        self.media_ssrc = media_ssrc
        unwrapped = self._unwrapper.unwrap(sequence_number)
        arrivals = self._arrival_times
        if (
            self._start is not None
            and self._start >= arrivals.end_sequence_number
            and arrival_time >= PACKET_WINDOW_MICROSECONDS
        ):
            arrivals.remove_old_packets(unwrapped, arrival_time - PACKET_WINDOW_MICROSECONDS)
        if self._start is None or unwrapped < self._start:
            self._start = unwrapped
        if arrivals.has_received(unwrapped):
            return
        arrivals.add_packet(unwrapped, arrival_time)
        self._packets_held += 1
        self._start = max(self._start, arrivals.begin_sequence_number)

    def build_feedback_packet(self) -> list[TransportLayerCC]:
        """Build the feedback reports covering every packet not yet reported."""
        if self._start is None:
            return []
        end = self._arrival_times.end_sequence_number
        feedbacks: list[TransportLayerCC] = []
        while self._start < end:
            feedback = self._maybe_build_feedback(self._start, end)
            if feedback is None:
                break
            # Packets stay in the history; record() drops them once they are old.
            feedbacks.append(feedback.to_rtcp())
        self._packets_held = 0
        return feedbacks

    def _maybe_build_feedback(self, begin_inclusive: int, end_exclusive: int) -> Feedback | None:
        arrivals = self._arrival_times
        seq, end = arrivals.clamp(begin_inclusive), arrivals.clamp(end_exclusive)
        feedback: Feedback | None = None
        next_sequence_number = begin_inclusive

        while seq < end:
            found = arrivals.find_next_at_or_after(seq)
            if found is None or found[0] >= end:
                break
            seq, arrival_time = found
            if feedback is None:
                feedback = Feedback(self.sender_ssrc, self.media_ssrc, self._fb_pkt_count)
                self._fb_pkt_count = (self._fb_pkt_count + 1) & 0xFF
                # Missing packets too far before seq are not reported.
                feedback.set_base(max(begin_inclusive, seq - MAX_MISSING_SEQUENCE_NUMBERS), arrival_time)
                if not feedback.add_received(seq, arrival_time):
                    self._start = seq
                    return None
            elif not feedback.add_received(seq, arrival_time):
                break  # the report is full; continue in a fresh one
            next_sequence_number = seq = seq + 1

        self._start = next_sequence_number
        return feedback