# twccfeedback

Transport-wide congestion control (TWCC) for RTP streams. The package
covers both sides of the exchange:

- **Sending media**: `HeaderExtensionInterceptor` stamps every outgoing RTP
  packet with an increasing transport-wide sequence number.
- **Receiving media**: `SenderInterceptor` reads those sequence numbers from
  incoming packets, records their arrival times in a `Recorder`, and
  periodically writes RTCP transport-layer feedback (`TransportLayerCC`)
  through a writer you supply.

It uses only the standard library.

## Installation

```
pip install .
```

## Modules

| Module | Contents |
| --- | --- |
| `twccfeedback.streaminfo` | `StreamInfo`, `RTPHeaderExtension`, `RTCPFeedback` |
| `twccfeedback.arrival_time_map` | `PacketArrivalTimeMap`, a ring buffer of arrival times |
| `twccfeedback.rtcp` | `TransportLayerCC`, `RTCPHeader`, `RunLengthChunk`, `StatusVectorChunk`, `RecvDelta`, `PacketStatus`, `SymbolSize`, `unmarshal_transport_layer_cc` |
| `twccfeedback.recorder` | `Recorder`, `Feedback`, `Chunk`, `SequenceUnwrapper` |
| `twccfeedback.rtp` | `RTPHeader`, `parse_rtp_header`, `TransportCCExtension`, `unmarshal_transport_cc_extension` |
| `twccfeedback.header_extension` | `HeaderExtensionInterceptor`, its factory, `HeaderIsNilError`, `TRANSPORT_CC_URI` |
| `twccfeedback.sender_interceptor` | `SenderInterceptor`, its factory, `new_sender_interceptor`, `send_interval`, `with_logger`, `InterceptorClosedError` |

## Building feedback directly

`Recorder` works on its own, without any interceptor. Arrival times are in
microseconds.

```python
from twccfeedback.recorder import Recorder
from twccfeedback.rtcp import unmarshal_transport_layer_cc

recorder = Recorder(5000)                  # sender SSRC used in the feedback
recorder.record(1234, 0, 64_000)           # media SSRC, transport seq, arrival time
recorder.record(1234, 1, 64_250)
recorder.record(1234, 3, 128_000)

for packet in recorder.build_feedback_packet():
    wire = packet.marshal()                # bytes ready to send as RTCP
    assert unmarshal_transport_layer_cc(wire).base_sequence_number == 0
```

- 16-bit sequence numbers are unwrapped internally, so feedback continues
  across the 65535 → 0 wrap.
- A sequence number recorded twice is reported once, with its first arrival
  time.
- `packets_held` counts packets recorded since the last
  `build_feedback_packet()` call.
- Reported packets stay in the history so late, reordered packets can still
  be placed; once everything has been reported, packets that arrived more
  than 500 ms before a new one are dropped.
- Each report gets an increasing feedback packet count (wrapping at 255);
  a report that cannot hold all deltas is split into several.

## Stamping outgoing packets

```python
from twccfeedback.header_extension import (
    TRANSPORT_CC_URI,
    HeaderExtensionInterceptorFactory,
)
from twccfeedback.rtp import RTPHeader
from twccfeedback.streaminfo import RTPHeaderExtension, StreamInfo

def send(header, payload, attributes):
    ...                                    # hand the packet on; return bytes written
    return len(payload)

info = StreamInfo(rtp_header_extensions=[RTPHeaderExtension(uri=TRANSPORT_CC_URI, id=1)])
interceptor = HeaderExtensionInterceptorFactory().new_interceptor("")
write = interceptor.bind_local_stream(info, send)
write(RTPHeader(sequence_number=7), b"payload", None)
```

All streams bound to one interceptor share one counter. If the stream did
not negotiate the transport-cc extension (or negotiated ID 0), the writer is
returned unchanged. Writing a `None` header raises `HeaderIsNilError`.

## Sending feedback for incoming packets

```python
from twccfeedback.sender_interceptor import new_sender_interceptor, send_interval

def send_rtcp(packets, attributes):
    ...                                    # packets is a list of TransportLayerCC
    return 0

def receive(attributes):
    ...                                    # return (raw RTP bytes, attributes or None)

factory = new_sender_interceptor(send_interval(0.1))
interceptor = factory.new_interceptor("")
interceptor.bind_rtcp_writer(send_rtcp)
read = interceptor.bind_remote_stream(info, receive)
data, attributes = read(None)
...
interceptor.close()
```

- `bind_rtcp_writer` starts a background thread that, after the first packet
  arrives, builds feedback every interval (100 ms by default, in seconds via
  `send_interval`) and passes non-empty reports to the writer. Errors raised
  by the writer are logged, via the logger given with `with_logger` or the
  `twcc_sender_interceptor` logger, and sending continues.
- The wrapped reader parses the RTP header (or reuses one already stored
  under the `"rtp_header"` attribute), and records packets that carry the
  extension, timed in microseconds since the interceptor was created.
- `close()` stops the thread and waits for it. Reading a packet that carries
  the extension after `close()` raises `InterceptorClosedError`.
- `send_interval` with a value that is not positive raises `ValueError`
  when the factory creates an interceptor.

## What the package does not do

It does no network I/O: RTP and RTCP packets are passed to and from the
callables you supply. It builds and parses feedback but does not estimate
bandwidth from it, and it has no chaining or registry of interceptors; each
interceptor is bound directly.

## Running the tests

```
pip install .[test]
pytest
```