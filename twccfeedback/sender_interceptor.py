"""Interceptor that sends transport-wide congestion control feedback reports."""

from __future__ import annotations

import logging
import queue
import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, NamedTuple, Optional

from twccfeedback.header_extension import TRANSPORT_CC_URI
from twccfeedback.recorder import Recorder
from twccfeedback.rtcp import TransportLayerCC
from twccfeedback.rtp import parse_rtp_header, unmarshal_transport_cc_extension
from twccfeedback.streaminfo import StreamInfo

RTP_HEADER_ATTRIBUTE = "rtp_header"
DEFAULT_INTERVAL = 0.1
LOGGER_NAME = "twcc_sender_interceptor"

Attributes = dict[Any, Any]
RTCPWriter = Callable[[list[TransportLayerCC], Optional[Attributes]], int]
RTPReader = Callable[[Optional[Attributes]], "tuple[bytes, Optional[Attributes]]"]
Option = Callable[["SenderInterceptor"], None]


class InterceptorClosedError(RuntimeError):
    """Raised when a packet is read after the interceptor was closed."""

    def __init__(self) -> None:
        super().__init__("interceptor is closed")


class _Packet(NamedTuple):
    ssrc: int
    sequence_number: int
    arrival_time: int


_CLOSED = object()


def send_interval(interval: float) -> Option:
    """Option setting the seconds between feedback reports."""

    def apply(interceptor: SenderInterceptor) -> None:
        if interval <= 0:
            raise ValueError("send interval must be positive")
        interceptor.interval = interval

    return apply


def with_logger(logger: logging.Logger) -> Option:
    """Option setting the logger used for write errors."""

    def apply(interceptor: SenderInterceptor) -> None:
        interceptor.log = logger

    return apply


class SenderInterceptor:
    """Records incoming packets and periodically writes feedback reports."""

    def __init__(self) -> None:
        self.interval = DEFAULT_INTERVAL
        self.log = logging.getLogger(LOGGER_NAME)
        self._start_ns = time.monotonic_ns()
        self._lock = threading.Lock()
        self._closed = threading.Event()
        self._packets: queue.Queue[Any] = queue.Queue()
        self._threads: list[threading.Thread] = []
        self._recorder: Recorder | None = None

    def bind_rtcp_writer(self, writer: RTCPWriter) -> RTCPWriter:
        """Start sending feedback through ``writer``; returns it unchanged."""
        with self._lock:
            recorder = Recorder(random.getrandbits(32))
            self._recorder = recorder
            if self._closed.is_set():
                return writer
            thread = threading.Thread(
                target=self._loop, args=(writer, recorder), daemon=True
            )
            self._threads.append(thread)
            thread.start()
        return writer

    def bind_remote_stream(self, info: StreamInfo, reader: RTPReader) -> RTPReader:
        """Wrap ``reader`` so packets carrying a transport-wide sequence number
        are recorded; ``reader`` is returned unchanged if none was negotiated."""
        ext_id = info.extension_id(TRANSPORT_CC_URI)
        if ext_id == 0:
            return reader

        def read(attributes: Attributes | None = None) -> tuple[bytes, Attributes]:
            data, attrs = reader(attributes)
            if attrs is None:
                attrs = {}
            header = attrs.get(RTP_HEADER_ATTRIBUTE)
            if header is None:
                header = parse_rtp_header(data)
                attrs[RTP_HEADER_ATTRIBUTE] = header
            extension = header.get_extension(ext_id)
            if extension is not None:
                tcc = unmarshal_transport_cc_extension(extension)
                arrival_time = (time.monotonic_ns() - self._start_ns) // 1000
                if self._closed.is_set():
                    raise InterceptorClosedError()
                self._packets.put(_Packet(info.ssrc, tcc.transport_sequence, arrival_time))
            return data, attrs

        return read

    def close(self) -> None:
        """Stop sending feedback and wait for the sender threads to end."""
        with self._lock:
            if not self._closed.is_set():
                self._closed.set()
                for _ in self._threads:
                    self._packets.put(_CLOSED)
            threads = list(self._threads)
        for thread in threads:
            thread.join()

    def _loop(self, writer: RTCPWriter, recorder: Recorder) -> None:
        item = self._packets.get()
        if item is _CLOSED:
            return
        recorder.record(*item)

        next_tick = time.monotonic() + self.interval
        while True:
            now = time.monotonic()
            if now >= next_tick:
                next_tick += self.interval
                if next_tick <= now:
                    next_tick = now + self.interval
                self._send_feedback(writer, recorder)
                continue
            try:
                item = self._packets.get(timeout=next_tick - now)
            except queue.Empty:
                continue
            if item is _CLOSED:
                return
            recorder.record(*item)

    def _send_feedback(self, writer: RTCPWriter, recorder: Recorder) -> None:
        packets = recorder.build_feedback_packet()
        if not packets:
            return
        try:
            writer(packets, None)
        except Exception as exc:  # a failed write must not stop the sender
            self.log.error("%s", exc)


@dataclass(frozen=True)
class SenderInterceptorFactory:
    """Creates SenderInterceptor instances configured with options."""

    options: tuple[Option, ...] = ()

    def new_interceptor(self, id: str) -> SenderInterceptor:  # noqa: A002
        """Return a new interceptor with every option applied; ``id`` is not used."""
        interceptor = SenderInterceptor()
        for option in self.options:
            option(interceptor)
        return interceptor


def new_sender_interceptor(*args: Option) -> SenderInterceptorFactory:
    """Return a factory configured with the given options."""
    return SenderInterceptorFactory(tuple(args))