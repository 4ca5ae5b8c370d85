from twccfeedback.arrival_time_map import (
    MAX_NUMBER_OF_PACKETS,
    MIN_CAPACITY,
    PacketArrivalTimeMap,
)


def test_consistent_when_empty():
    m = PacketArrivalTimeMap()
    assert m.begin_sequence_number == m.end_sequence_number
    assert not m.has_received(0)
    assert m.clamp(-5) == 0
    assert m.clamp(5) == 0


def test_inserts_first_item():
    m = PacketArrivalTimeMap()
    m.add_packet(42, 10)
    assert m.begin_sequence_number == 42
    assert m.end_sequence_number == 43
    assert not m.has_received(41)
    assert m.has_received(42)
    assert not m.has_received(43)
    assert not m.has_received(44)
    assert m.clamp(-100) == 42
    assert m.clamp(42) == 42
    assert m.clamp(100) == 43


def test_inserts_with_gaps():
    m = PacketArrivalTimeMap()
    m.add_packet(42, 0)
    m.add_packet(45, 11)
    assert m.begin_sequence_number == 42
    assert m.end_sequence_number == 46
    assert not m.has_received(41)
    assert m.has_received(42)
    assert not m.has_received(43)
    assert not m.has_received(44)
    assert m.has_received(45)
    assert not m.has_received(46)
    assert m.get(42) == 0
    assert m.get(43) < 0
    assert m.get(44) < 0
    assert m.get(45) == 11
    assert m.clamp(-100) == 42
    assert m.clamp(44) == 44
    assert m.clamp(100) == 46


def test_find_next_at_or_after_with_gaps():
    m = PacketArrivalTimeMap()
    m.add_packet(42, 0)
    m.add_packet(45, 11)
    assert m.find_next_at_or_after(42) == (42, 0)
    assert m.find_next_at_or_after(43) == (45, 11)


def test_inserts_within_buffer():
    m = PacketArrivalTimeMap()
    m.add_packet(42, 10)
    m.add_packet(45, 11)
    m.add_packet(43, 12)
    m.add_packet(44, 13)
    assert not m.has_received(41)
    assert m.has_received(42)
    assert m.has_received(43)
    assert m.has_received(44)
    assert m.has_received(45)
    assert not m.has_received(46)
    assert m.get(42) == 10
    assert m.get(43) == 12
    assert m.get(44) == 13
    assert m.get(45) == 11


def test_grows_buffer_and_removes_old():
    m = PacketArrivalTimeMap()
    large = 42 + MAX_NUMBER_OF_PACKETS
    m.add_packet(42, 10)
    m.add_packet(43, 11)
    m.add_packet(44, 12)
    m.add_packet(45, 13)
    m.add_packet(large, 12)
    assert m.begin_sequence_number == 43
    assert m.end_sequence_number == large + 1
    assert not m.has_received(41)
    assert not m.has_received(42)
    assert m.has_received(43)
    assert m.has_received(44)
    assert m.has_received(45)
    assert not m.has_received(46)
    assert m.has_received(large)
    assert not m.has_received(large + 1)


def test_sequence_number_jump_deletes_all():
    m = PacketArrivalTimeMap()
    large = 42 + 2 * MAX_NUMBER_OF_PACKETS
    m.add_packet(42, 10)
    m.add_packet(large, 12)
    assert m.begin_sequence_number == large
    assert m.end_sequence_number == large + 1
    assert not m.has_received(42)
    assert m.has_received(large)
    assert not m.has_received(large + 1)


def test_expands_before_beginning():
    m = PacketArrivalTimeMap()
    m.add_packet(42, 10)
    m.add_packet(-1000, 13)
    assert m.begin_sequence_number == -1000
    assert m.end_sequence_number == 43
    assert not m.has_received(-1001)
    assert m.has_received(-1000)
    assert not m.has_received(-999)
    assert m.has_received(42)
    assert not m.has_received(43)


def test_expanding_before_beginning_keeps_received():
    m = PacketArrivalTimeMap()
    small = 42 - 2 * MAX_NUMBER_OF_PACKETS
    m.add_packet(42, 10)
    m.add_packet(small, 13)
    assert m.begin_sequence_number == 42
    assert m.end_sequence_number == 43


def test_erase_to_removes_elements():
    m = PacketArrivalTimeMap()
    for seq, ts in [(42, 10), (43, 11), (44, 12), (45, 13)]:
        m.add_packet(seq, ts)
    m.erase_to(44)
    assert m.begin_sequence_number == 44
    assert m.end_sequence_number == 46
    assert not m.has_received(43)
    assert m.has_received(44)
    assert m.has_received(45)
    assert not m.has_received(46)


def test_erases_in_empty_map():
    m = PacketArrivalTimeMap()
    assert m.begin_sequence_number == m.end_sequence_number
    m.erase_to(m.end_sequence_number)
    assert m.begin_sequence_number == m.end_sequence_number


def test_tolerant_to_wrong_erase_arguments():
    m = PacketArrivalTimeMap()
    m.add_packet(42, 10)
    m.add_packet(43, 11)
    m.erase_to(1)
    assert m.begin_sequence_number == 42
    assert m.end_sequence_number == 44
    m.erase_to(100)
    assert m.begin_sequence_number == 44
    assert m.end_sequence_number == 44


def test_erase_all_remembers_beginning():
    m = PacketArrivalTimeMap()
    for seq, ts in [(42, 10), (43, 11), (44, 12), (45, 13)]:
        m.add_packet(seq, ts)
    m.erase_to(46)
    m.add_packet(50, 10)
    assert m.begin_sequence_number == 46
    assert m.end_sequence_number == 51
    for seq in (45, 46, 47, 48, 49):
        assert not m.has_received(seq)
    assert m.has_received(50)
    assert not m.has_received(51)


def test_erase_to_missing_sequence_number():
    m = PacketArrivalTimeMap()
    for seq, ts in [(37, 10), (39, 11), (40, 12), (41, 13)]:
        m.add_packet(seq, ts)
    m.erase_to(38)
    m.add_packet(42, 40)
    assert m.begin_sequence_number == 38
    assert m.end_sequence_number == 43
    assert not m.has_received(37)
    assert not m.has_received(38)
    assert m.has_received(39)
    assert m.has_received(40)
    assert m.has_received(41)
    assert m.has_received(42)
    assert not m.has_received(43)


def test_remove_old_packets():
    m = PacketArrivalTimeMap()
    for seq, ts in [(37, 10), (39, 11), (40, 12), (41, 13)]:
        m.add_packet(seq, ts)
    m.remove_old_packets(42, 11)
    assert m.begin_sequence_number == 40
    assert m.end_sequence_number == 42
    assert not m.has_received(39)
    assert m.has_received(40)
    assert m.has_received(41)
    assert not m.has_received(42)


def test_shrinks_buffer_when_necessary():
    m = PacketArrivalTimeMap()
    large = 100 + MAX_NUMBER_OF_PACKETS - 1
    m.add_packet(100, 10)
    m.add_packet(large, 11)
    m.erase_to(large - 1)
    assert m.begin_sequence_number == large - 1
    assert m.end_sequence_number == large + 1
    assert m.capacity == MIN_CAPACITY


def test_find_next_at_or_after_with_invalid_sequence():
    m = PacketArrivalTimeMap()
    m.add_packet(100, 10)
    assert m.find_next_at_or_after(101) is None


def test_capacity_stays_power_of_two_and_keeps_values():
    m = PacketArrivalTimeMap()
    for seq in range(0, 1000, 3):
        m.add_packet(seq, seq * 2)
    cap = m.capacity
    assert cap & (cap - 1) == 0
    assert cap >= m.end_sequence_number - m.begin_sequence_number
    for seq in range(0, 1000):
        assert m.has_received(seq) == (seq % 3 == 0)
    assert m.get(999) == 1998