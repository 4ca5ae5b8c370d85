"""Interceptor that stamps outgoing RTP packets with transport-wide sequence numbers."""

from __future__ import annotations

import itertools
import threading
from typing import Any, Callable, Optional

from twccfeedback.rtp import RTPHeader, TransportCCExtension
from twccfeedback.streaminfo import StreamInfo

TRANSPORT_CC_URI = "http://www.ietf.org/id/draft-holmer-rmcat-transport-wide-cc-extensions-01"

RTPWriter = Callable[[Optional[RTPHeader], bytes, Optional[dict[Any, Any]]], int]


class HeaderIsNilError(ValueError):
    """Raised when a packet is written without a header."""

    def __init__(self) -> None:
        super().__init__("header is None")


class HeaderExtensionInterceptor:
    """Adds increasing transport-wide sequence numbers to each outgoing packet.

    One counter is shared by every stream bound to the interceptor.
    """

    def __init__(self) -> None:
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def _next_sequence_number(self) -> int:
        with self._lock:
            return next(self._counter) & 0xFFFF

    def bind_local_stream(self, info: StreamInfo, writer: RTPWriter) -> RTPWriter:
        """Wrap ``writer`` so each packet gets the transport-wide CC extension.

        ``writer`` is returned unchanged when the stream did not negotiate it.
        """
        ext_id = info.extension_id(TRANSPORT_CC_URI)
        if ext_id == 0:
            # 0 is not a valid extension ID.
            return writer

        def write(
            header: RTPHeader | None,
            payload: bytes,
            attributes: dict[Any, Any] | None = None,
        ) -> int:
            extension = TransportCCExtension(self._next_sequence_number()).marshal()
            if header is None:
                raise HeaderIsNilError()
            header.set_extension(ext_id, extension)
            return writer(header, payload, attributes)

        return write


class HeaderExtensionInterceptorFactory:
    """Creates HeaderExtensionInterceptor instances."""

    def new_interceptor(self, id: str) -> HeaderExtensionInterceptor:  # noqa: A002
        """Return a new interceptor; ``id`` is not used."""
        return HeaderExtensionInterceptor()