"""Transport-wide congestion control for RTP: sequence stamping, arrival recording and RTCP feedback."""

__version__ = "0.1.0"

__all__ = [
    "streaminfo",
    "arrival_time_map",
    "rtcp",
    "recorder",
    "rtp",
    "header_extension",
    "sender_interceptor",
]