"""Channel framing for the exec subresource (``v4.channel.k8s.io``).

Every binary WebSocket message starts with one byte selecting a logical
stream: 0 stdin, 1 stdout, 2 stderr, 3 error/status.
"""

import codecs
import json
from dataclasses import dataclass, field
from urllib.parse import quote, urlencode, urlsplit, urlunsplit

STDIN_CHANNEL = 0
STDOUT_CHANNEL = 1
STDERR_CHANNEL = 2
ERROR_CHANNEL = 3

RED = "\x1b[31m"
GREEN = "\x1b[32m"
RESET = "\x1b[0m"


def red(message: str) -> str:
    return f"\r\n{RED}{message}{RESET}\r\n"


def green(message: str) -> str:
    return f"\r\n{GREEN}{message}{RESET}\r\n"


def frame_stdin(data: bytes) -> bytes:
    """Prefix terminal input with the stdin channel byte."""
    return bytes([STDIN_CHANNEL]) + data


def is_resize_message(data: bytes) -> bool:
    """Whether client input is a ``{"type": "resize", ...}`` control message."""
    if not data.lstrip().startswith(b"{"):
        return False
    try:
        message = json.loads(data)
    except (ValueError, RecursionError):
        return False
    return isinstance(message, dict) and message.get("type") == "resize"


@dataclass(frozen=True)
class Frame:
    channel: int
    payload: bytes


def parse_frame(data: bytes) -> Frame | None:
    """Split an upstream message into channel and payload; None if empty."""
    if not data:
        return None
    return Frame(channel=data[0], payload=data[1:])


def _utf8_decoder() -> codecs.IncrementalDecoder:
    return codecs.getincrementaldecoder("utf-8")(errors="replace")


@dataclass
class OutputRenderer:
    """Turns upstream frames into text for the browser terminal.

    stdout and stderr are forwarded as-is, without distinguishing them.
    Each keeps its own incremental decoder so a multi-byte character split
    across frames survives. The error channel is shown as a red message.
    """

    _decoders: dict[int, codecs.IncrementalDecoder] = field(
        default_factory=lambda: {STDOUT_CHANNEL: _utf8_decoder(), STDERR_CHANNEL: _utf8_decoder()}
    )

    def render(self, frame: Frame) -> str | None:
        decoder = self._decoders.get(frame.channel)
        if decoder is not None:
            return decoder.decode(frame.payload) or None
        if frame.channel == ERROR_CHANNEL:
            return red(f"Error: {frame.payload.decode('utf-8', errors='replace')}")
        return None


def build_exec_url(
    server_url: str,
    namespace: str,
    pod: str,
    command: list[str],
    container: str | None = None,
) -> str:
    """Build the WebSocket URL of a pod's exec subresource.

    The session is interactive: stdin, stdout, stderr and a TTY are all
    requested. ``https`` servers map to ``wss`` and ``http`` to ``ws``.
    """
    parsed = urlsplit(server_url)
    scheme = {"https": "wss", "http": "ws"}.get(parsed.scheme, parsed.scheme)
    path = (
        f"{parsed.path.rstrip('/')}/api/v1/namespaces/{quote(namespace, safe='')}"
        f"/pods/{quote(pod, safe='')}/exec"
    )

    params = [("command", part) for part in command]
    params += [("stdin", "true"), ("stdout", "true"), ("stderr", "true"), ("tty", "true")]
    if container:
        params.append(("container", container))

    return urlunsplit((scheme, parsed.netloc, path, urlencode(params), ""))
