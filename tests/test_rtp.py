import pytest

from twccfeedback.rtp import (
    ONE_BYTE_PROFILE,
    TWO_BYTE_PROFILE,
    RTPHeader,
    TransportCCExtension,
    parse_rtp_header,
    unmarshal_transport_cc_extension,
)


def test_one_byte_extension_wire_format():
    header = RTPHeader(sequence_number=1)
    header.set_extension(1, b"\x00\x05")
    expected = bytes.fromhex("90000001" "00000000" "00000000" "bede0001" "11000500")
    assert header.marshal() == expected


def test_round_trip_with_one_byte_extension():
    header = RTPHeader(
        marker=True,
        payload_type=96,
        sequence_number=4321,
        timestamp=123456,
        ssrc=0xDEADBEEF,
        csrc=[7, 8],
    )
    header.set_extension(1, TransportCCExtension(77).marshal())
    header.set_extension(3, b"abc")
    assert header.extension_profile == ONE_BYTE_PROFILE
    assert parse_rtp_header(header.marshal()) == header


def test_round_trip_with_two_byte_extension_and_payload():
    header = RTPHeader(sequence_number=9)
    header.set_extension(20, bytes(range(20)))
    assert header.extension_profile == TWO_BYTE_PROFILE
    parsed = parse_rtp_header(header.marshal() + b"payload bytes")
    assert parsed == header
    assert parsed.get_extension(20) == bytes(range(20))


def test_round_trip_without_extension():
    header = RTPHeader(sequence_number=5, ssrc=1)
    parsed = parse_rtp_header(header.marshal())
    assert parsed == header
    assert parsed.get_extension(1) is None


def test_set_extension_replaces_existing():
    header = RTPHeader()
    header.set_extension(1, b"\x00\x01")
    header.set_extension(1, b"\x00\x02")
    assert header.get_extension(1) == b"\x00\x02"
    assert list(header.extensions) == [1]


def test_missing_extension_is_none():
    header = RTPHeader()
    header.set_extension(2, b"x")
    assert header.get_extension(4) is None


@pytest.mark.parametrize("ext_id", [0, 15])
def test_one_byte_profile_rejects_ids(ext_id):
    header = RTPHeader()
    header.set_extension(1, b"x")
    with pytest.raises(ValueError):
        header.set_extension(ext_id, b"y")


def test_extension_that_fits_no_profile():
    with pytest.raises(ValueError):
        RTPHeader().set_extension(300, b"x")
    with pytest.raises(ValueError):
        RTPHeader().set_extension(1, bytes(300))


def test_parse_rejects_short_data():
    with pytest.raises(ValueError):
        parse_rtp_header(b"\x80\x00\x00")


def test_parse_rejects_wrong_version():
    data = bytearray(RTPHeader().marshal())
    data[0] = 0x40
    with pytest.raises(ValueError):
        parse_rtp_header(bytes(data))


def test_parse_rejects_truncated_extension():
    header = RTPHeader()
    header.set_extension(1, b"abcd")
    with pytest.raises(ValueError):
        parse_rtp_header(header.marshal()[:-4])


def test_transport_cc_extension_wire_format():
    assert TransportCCExtension(0x1234).marshal() == b"\x12\x34"


@pytest.mark.parametrize("sequence", [0, 1, 255, 65535])
def test_transport_cc_extension_round_trip(sequence):
    data = TransportCCExtension(sequence).marshal()
    assert unmarshal_transport_cc_extension(data).transport_sequence == sequence


def test_transport_cc_extension_errors():
    with pytest.raises(ValueError):
        unmarshal_transport_cc_extension(b"\x01")
    with pytest.raises(ValueError):
        TransportCCExtension(70000).marshal()