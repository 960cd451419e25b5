"""Unit tests for exec channel framing."""

from urllib.parse import parse_qsl, urlsplit

from src.services.terminal.framing import (
    Frame,
    OutputRenderer,
    build_exec_url,
    frame_stdin,
    green,
    is_resize_message,
    parse_frame,
    red,
)


class TestStdinFraming:
    def test_prefixes_channel_zero(self):
        assert frame_stdin(b"ls\n") == b"\x00ls\n"

    def test_empty_input(self):
        assert frame_stdin(b"") == b"\x00"


class TestResizeDetection:
    def test_resize_message(self):
        assert is_resize_message(b'{"type":"resize","cols":80,"rows":24}') is True

    def test_other_json_is_terminal_input(self):
        assert is_resize_message(b'{"type":"input","data":"x"}') is False
        assert is_resize_message(b"[1, 2]") is False

    def test_plain_text(self):
        assert is_resize_message(b"ls -la\n") is False

    def test_invalid_utf8(self):
        assert is_resize_message(b"\xff\xfe") is False

    def test_deeply_nested_input_is_terminal_input(self):
        assert is_resize_message(b"[" * 100_000) is False
        assert is_resize_message(b"{\"a\":" * 100_000) is False


class TestParseFrame:
    def test_splits_channel_and_payload(self):
        assert parse_frame(b"\x01hello") == Frame(channel=1, payload=b"hello")

    def test_empty_message(self):
        assert parse_frame(b"") is None

    def test_channel_only(self):
        assert parse_frame(b"\x02") == Frame(channel=2, payload=b"")


class TestOutputRenderer:
    """Tests for turning upstream frames into terminal text."""

    def test_stdout_and_stderr_pass_through(self):
        renderer = OutputRenderer()
        assert renderer.render(Frame(1, b"out")) == "out"
        assert renderer.render(Frame(2, b"err")) == "err"

    def test_error_channel_is_red(self):
        renderer = OutputRenderer()
        assert renderer.render(Frame(3, b"oops")) == "\r\n\x1b[31mError: oops\x1b[0m\r\n"

    def test_unknown_channel_is_dropped(self):
        assert OutputRenderer().render(Frame(4, b"resize")) is None

    def test_split_multibyte_character(self):
        """Test that a UTF-8 character split across frames is not mangled."""
        renderer = OutputRenderer()
        euro = "€".encode()

        assert renderer.render(Frame(1, euro[:2])) is None
        assert renderer.render(Frame(1, euro[2:] + b"!")) == "€!"

    def test_channels_decode_independently(self):
        renderer = OutputRenderer()
        snowman = "☃".encode()

        assert renderer.render(Frame(1, snowman[:1])) is None
        assert renderer.render(Frame(2, b"plain")) == "plain"
        assert renderer.render(Frame(1, snowman[1:])) == "☃"

    def test_empty_payload(self):
        assert OutputRenderer().render(Frame(1, b"")) is None


class TestStatusMessages:
    def test_red(self):
        assert red("bad") == "\r\n\x1b[31mbad\x1b[0m\r\n"

    def test_green(self):
        assert green("Session closed") == "\r\n\x1b[32mSession closed\x1b[0m\r\n"


class TestBuildExecUrl:
    """Tests for the exec subresource URL."""

    def test_https_becomes_wss(self):
        url = build_exec_url("https://10.0.0.1:6443", "ns", "pod-1", ["/bin/sh", "-i"])
        parts = urlsplit(url)

        assert parts.scheme == "wss"
        assert parts.netloc == "10.0.0.1:6443"
        assert parts.path == "/api/v1/namespaces/ns/pods/pod-1/exec"
        assert parse_qsl(parts.query) == [
            ("command", "/bin/sh"),
            ("command", "-i"),
            ("stdin", "true"),
            ("stdout", "true"),
            ("stderr", "true"),
            ("tty", "true"),
        ]

    def test_http_becomes_ws(self):
        assert build_exec_url("http://localhost:8001", "ns", "p", ["sh"]).startswith("ws://localhost:8001/")

    def test_container(self):
        url = build_exec_url("https://k8s", "ns", "p", ["sh"], container="sidecar")
        assert ("container", "sidecar") in parse_qsl(urlsplit(url).query)

    def test_server_path_prefix_is_kept(self):
        url = build_exec_url("https://rancher.example.com/k8s/clusters/c-1/", "ns", "p", ["sh"])
        assert urlsplit(url).path == "/k8s/clusters/c-1/api/v1/namespaces/ns/pods/p/exec"
