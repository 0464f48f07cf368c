import socket
import threading
from datetime import timedelta
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from rezolus.recorder import (
    CaptureState,
    Config,
    Format,
    build_parser,
    config_from_args,
    main,
    metrics_url,
    parse_duration,
    record,
)

BODY = b"sample-body"


@pytest.fixture
def server():
    """A local endpoint serving BODY; calls `on_request` after each request."""
    hooks = {"on_request": None, "paths": []}

    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            hooks["paths"].append(self.path)
            if hooks["on_request"] is not None:
                hooks["on_request"]()
            self.send_response(200)
            self.send_header("Content-Length", str(len(BODY)))
            self.end_headers()
            self.wfile.write(BODY)

        def log_message(self, *args):
            pass

    httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    hooks["url"] = f"http://127.0.0.1:{httpd.server_address[1]}"
    yield hooks
    httpd.shutdown()
    httpd.server_close()


def _closed_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_parse_duration_seconds():
    assert parse_duration("1s") == timedelta(seconds=1)


def test_parse_duration_combinations_agree():
    assert parse_duration("1m 30s") == parse_duration("90s")
    assert parse_duration("1h30m") == parse_duration("90min")
    assert parse_duration("1000ms") == parse_duration("1s")


@pytest.mark.parametrize("text", ["", "   ", "5", "5 parsecs", "abc", "1s 2"])
def test_parse_duration_rejects_malformed(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_metrics_url_sets_binary_path():
    assert metrics_url("http://localhost:4241") == "http://localhost:4241/metrics/binary"
    assert metrics_url("http://localhost:4241/") == "http://localhost:4241/metrics/binary"


@pytest.mark.parametrize("url", ["http://localhost:4241/metrics", "localhost", "not a url"])
def test_metrics_url_rejects_bad_urls(url):
    with pytest.raises(ValueError):
        metrics_url(url)


def test_parser_defaults():
    args = build_parser().parse_args(["http://localhost:4241", "out.parquet"])
    config = config_from_args(args)
    assert config.format is Format.PARQUET
    assert config.interval == parse_duration("1s")
    assert config.duration is None
    assert config.verbose == 0
    assert config.url == "http://localhost:4241"
    assert config.output.name == "out.parquet"


def test_parser_options():
    args = build_parser().parse_args(
        ["-vv", "-f", "raw", "-i", "250ms", "-d", "1m", "http://localhost:4241", "out.bin"]
    )
    config = config_from_args(args)
    assert config.verbose == 2
    assert config.format is Format.RAW
    assert config.interval == parse_duration("250ms")
    assert config.duration == parse_duration("60s")


@pytest.mark.parametrize(
    "argv",
    [
        ["http://localhost:4241"],
        ["-f", "csv", "http://localhost:4241", "out"],
        ["-i", "soon", "http://localhost:4241", "out"],
    ],
)
def test_parser_rejects_bad_arguments(argv):
    with pytest.raises(SystemExit):
        build_parser().parse_args(argv)


def test_capture_state_transitions():
    state = CaptureState()
    assert state.running
    assert state.on_interrupt() == "capturing"
    assert not state.running
    assert state.on_interrupt() == "terminating"
    with pytest.raises(SystemExit) as info:
        state.on_interrupt()
    assert info.value.code == 2


def test_record_raw_until_interrupted(server, tmp_path):
    state = CaptureState()
    server["on_request"] = state.on_interrupt
    output = tmp_path / "out.bin"
    config = Config(url=server["url"], output=output, interval=timedelta(milliseconds=10),
                    format=Format.RAW)
    assert record(config, state) == 1
    assert output.read_bytes() == BODY
    assert server["paths"] == ["/metrics/binary"]


def test_record_zero_duration_takes_no_samples(server, tmp_path):
    output = tmp_path / "out.bin"
    config = Config(url=server["url"], output=output, duration=timedelta(0),
                    format=Format.RAW)
    assert record(config) == 0
    assert output.read_bytes() == b""
    assert server["paths"] == []


def test_record_parquet_uses_converter(server, tmp_path):
    state = CaptureState()
    server["on_request"] = state.on_interrupt
    output = tmp_path / "out.parquet"

    def converter(source, destination):
        destination.write(b"converted:" + source.read())

    config = Config(url=server["url"], output=output, interval=timedelta(milliseconds=10),
                    converter=converter)
    assert record(config, state) == 1
    assert output.read_bytes() == b"converted:" + BODY
    assert [p.name for p in tmp_path.iterdir()] == ["out.parquet"]


def test_record_parquet_without_converter_reports_error(server, tmp_path, capsys):
    state = CaptureState()
    server["on_request"] = state.on_interrupt
    output = tmp_path / "out.parquet"
    config = Config(url=server["url"], output=output, interval=timedelta(milliseconds=10))
    assert record(config, state) == 1
    assert "error saving parquet file" in capsys.readouterr().err
    assert output.read_bytes() == b""


def test_record_stops_when_endpoint_unreachable(tmp_path):
    output = tmp_path / "out.bin"
    config = Config(url=f"http://127.0.0.1:{_closed_port()}", output=output,
                    interval=timedelta(milliseconds=10), format=Format.RAW)
    assert record(config) == 0
    assert output.read_bytes() == b""


def test_record_rejects_non_root_url(tmp_path):
    config = Config(url="http://localhost:4241/foo", output=tmp_path / "out",
                    format=Format.RAW)
    with pytest.raises(ValueError, match="non-root path"):
        record(config)


def test_record_rejects_zero_interval(tmp_path):
    config = Config(url="http://localhost:4241", output=tmp_path / "out",
                    interval=timedelta(0), format=Format.RAW)
    with pytest.raises(ValueError):
        record(config)


def test_record_missing_directory_raises(tmp_path):
    config = Config(url="http://localhost:4241", output=tmp_path / "missing" / "out",
                    format=Format.RAW)
    with pytest.raises(OSError, match="failed to open destination file"):
        record(config)


def test_main_reports_non_root_url(tmp_path, capsys):
    assert main(["http://localhost:4241/foo", str(tmp_path / "out")]) == 1
    assert "non-root path" in capsys.readouterr().err


def test_main_records_raw(server, tmp_path):
    output = tmp_path / "out.bin"
    assert main(["-f", "raw", "-d", "0s", server["url"], str(output)]) == 0
    assert output.exists()
    assert output.read_bytes() == b""