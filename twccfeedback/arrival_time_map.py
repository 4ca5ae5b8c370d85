"""Circular buffer of packet arrival times indexed by unwrapped sequence number."""

from __future__ import annotations

MIN_CAPACITY = 128
MAX_NUMBER_OF_PACKETS = 1 << 15

_NOT_RECEIVED = -1


class PacketArrivalTimeMap:
    """Tracks arrival times of packets for building transport-wide feedback.

    Sequence numbers in ``[begin_sequence_number, end_sequence_number)`` are
    valid; a packet with sequence number ``sn`` lives in slot
    ``sn % capacity``, where the capacity is always a power of two.
    """

    def __init__(self) -> None:
        self._times: list[int] = []
        self._begin = 0
        self._end = 0

    @property
    def begin_sequence_number(self) -> int:
        """First valid sequence number in the map."""
        return self._begin

    @property
    def end_sequence_number(self) -> int:
        """First sequence number after the last valid one."""
        return self._end

    @property
    def capacity(self) -> int:
        """Number of slots in the underlying buffer."""
        return len(self._times)

    def add_packet(self, sequence_number: int, arrival_time: int) -> None:
        """Record that ``sequence_number`` arrived at ``arrival_time``."""
        if not self._times:
            self._reallocate(MIN_CAPACITY)
            self._begin = sequence_number
            self._end = sequence_number + 1
            self._set(sequence_number, arrival_time)
            return

        if self._begin <= sequence_number < self._end:
            self._set(sequence_number, arrival_time)
            return

        if sequence_number < self._begin:
            new_size = self._end - sequence_number
            if new_size > MAX_NUMBER_OF_PACKETS:
                # Expanding back would drop newer packets.
                return
            self._adjust_to_size(new_size)
            self._set(sequence_number, arrival_time)
            self._set_not_received(sequence_number + 1, self._begin)
            self._begin = sequence_number
            return

        new_end = sequence_number + 1
        if new_end >= self._end + MAX_NUMBER_OF_PACKETS:
            # Every old packet falls out of the window.
            self._begin = sequence_number
            self._end = new_end
            self._set(sequence_number, arrival_time)
            return

        if self._begin < new_end - MAX_NUMBER_OF_PACKETS:
            self._begin = new_end - MAX_NUMBER_OF_PACKETS

        self._adjust_to_size(new_end - self._begin)
        self._set_not_received(self._end, sequence_number)
        self._end = new_end
        self._set(sequence_number, arrival_time)

    def find_next_at_or_after(self, sequence_number: int) -> tuple[int, int] | None:
        """Return ``(sequence_number, arrival_time)`` of the first received packet
        at or after ``sequence_number``, or None if there is none."""
        for seq in range(self.clamp(sequence_number), self._end):
            arrival_time = self.get(seq)
            if arrival_time >= 0:
                return seq, arrival_time
        return None

    def erase_to(self, sequence_number: int) -> None:
        """Erase every entry before ``sequence_number``."""
        if sequence_number < self._begin:
            return
        if sequence_number >= self._end:
            self._begin = self._end
            return
        self._begin = sequence_number
        self._adjust_to_size(self._end - self._begin)

    def remove_old_packets(self, sequence_number: int, arrival_time_limit: int) -> None:
        """Drop leading packets before ``sequence_number`` that arrived no later
        than ``arrival_time_limit``."""
        check_to = min(sequence_number, self._end)
        while self._begin < check_to and self.get(self._begin) <= arrival_time_limit:
            self._begin += 1
        self._adjust_to_size(self._end - self._begin)

    def has_received(self, sequence_number: int) -> bool:
        """Whether a packet with ``sequence_number`` has been received."""
        return self.get(sequence_number) >= 0

    def clamp(self, sequence_number: int) -> int:
        """Clamp ``sequence_number`` to ``[begin, end]``."""
        return max(self._begin, min(sequence_number, self._end))

    def get(self, sequence_number: int) -> int:
        """Arrival time of ``sequence_number``, or -1 if not received or out of range."""
        if not self._begin <= sequence_number < self._end:
            return _NOT_RECEIVED
        return self._times[self._index(sequence_number)]

    def _set(self, sequence_number: int, arrival_time: int) -> None:
        self._times[self._index(sequence_number)] = arrival_time

    def _set_not_received(self, start_inclusive: int, end_exclusive: int) -> None:
        for seq in range(start_inclusive, end_exclusive):
            self._set(seq, _NOT_RECEIVED)

    def _index(self, sequence_number: int) -> int:
        return sequence_number & (self.capacity - 1)

    def _adjust_to_size(self, new_size: int) -> None:
        if new_size > self.capacity:
            new_capacity = self.capacity
            while new_capacity < new_size:
                new_capacity *= 2
            self._reallocate(new_capacity)
        if self.capacity > max(MIN_CAPACITY, new_size * 4):
            new_capacity = self.capacity
            while new_capacity >= 2 * max(new_size, MIN_CAPACITY):
                new_capacity //= 2
            self._reallocate(new_capacity)

    def _reallocate(self, new_capacity: int) -> None:
        mask = new_capacity - 1
        buffer = [0] * new_capacity
        for seq in range(self._begin, self._end):
            buffer[seq & mask] = self.get(seq)
        self._times = buffer