"""On-demand recording of a Rezolus endpoint's binary metrics to a file."""

from __future__ import annotations

import argparse
import enum
import logging
import re
import signal
import sys
import tempfile
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import BinaryIO, Callable, Optional
from urllib.parse import urlsplit, urlunsplit

import requests

log = logging.getLogger(__name__)

TRACE = 5
METRICS_PATH = "/metrics/binary"
REQUEST_TIMEOUT = 30.0

_NANOS = {
    "nsec": 1, "ns": 1,
    "usec": 1_000, "us": 1_000, "\u00b5s": 1_000,
    "msec": 1_000_000, "ms": 1_000_000, "millis": 1_000_000,
    "seconds": 1_000_000_000, "second": 1_000_000_000, "sec": 1_000_000_000,
    "s": 1_000_000_000,
    "minutes": 60_000_000_000, "minute": 60_000_000_000, "min": 60_000_000_000,
    "mins": 60_000_000_000, "m": 60_000_000_000,
    "hours": 3_600_000_000_000, "hour": 3_600_000_000_000, "hr": 3_600_000_000_000,
    "hrs": 3_600_000_000_000, "h": 3_600_000_000_000,
    "days": 86_400_000_000_000, "day": 86_400_000_000_000, "d": 86_400_000_000_000,
    "weeks": 604_800_000_000_000, "week": 604_800_000_000_000,
    "wk": 604_800_000_000_000, "wks": 604_800_000_000_000, "w": 604_800_000_000_000,
    "months": 2_630_016_000_000_000, "month": 2_630_016_000_000_000,
    "M": 2_630_016_000_000_000,
    "years": 31_557_600_000_000_000, "year": 31_557_600_000_000_000,
    "yr": 31_557_600_000_000_000, "yrs": 31_557_600_000_000_000,
    "y": 31_557_600_000_000_000,
}

_DURATION_PART = re.compile(r"\s*([0-9]+)\s*([^0-9\s]*)")

Converter = Callable[[BinaryIO, BinaryIO], None]


class Format(enum.Enum):
    """The format of the recording written to disk."""

    RAW = "raw"
    PARQUET = "parquet"

    def __str__(self) -> str:
        return self.value


def parse_duration(text: str) -> timedelta:
    """Parse a human-friendly duration such as "1s", "250ms" or "1h 30m".

    Resolution is one microsecond. Raises ValueError on malformed input.
    """
    stripped = text.strip()
    if not stripped:
        raise ValueError("empty duration")
    total = 0
    pos = 0
    while pos < len(stripped):
        match = _DURATION_PART.match(stripped, pos)
        if match is None:
            raise ValueError(f"invalid duration: {text!r}")
        number, unit = match.groups()
        if not unit:
            raise ValueError(f"time unit needed in duration: {text!r}")
        if unit not in _NANOS:
            raise ValueError(f"unknown time unit {unit!r} in duration: {text!r}")
        total += int(number) * _NANOS[unit]
        pos = match.end()
    return timedelta(microseconds=total // 1_000)


def _parse_format(text: str) -> Format:
    try:
        return Format(text)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"invalid format {text!r}, choose from: {', '.join(f.value for f in Format)}"
        ) from None


def _parse_duration_arg(text: str) -> timedelta:
    try:
        return parse_duration(text)
    except ValueError as error:
        raise argparse.ArgumentTypeError(str(error)) from None


@dataclass
class Config:
    """Settings for one recording."""

    url: str
    output: Path
    verbose: int = 0
    interval: timedelta = timedelta(seconds=1)
    duration: Optional[timedelta] = None
    format: Format = Format.PARQUET
    converter: Optional[Converter] = None


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser for the record command."""
    parser = argparse.ArgumentParser(prog="record", description="On-demand recording to a file")
    parser.add_argument("url", metavar="URL", help="Rezolus HTTP endpoint")
    parser.add_argument("output", metavar="OUTPUT", type=Path, help="Path to the output file")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Increase the verbosity")
    parser.add_argument("-i", "--interval", type=_parse_duration_arg, default="1s",
                        help="Sets the collection interval")
    parser.add_argument("-d", "--duration", type=_parse_duration_arg, default=None,
                        help="Sets the collection duration")
    parser.add_argument("-f", "--format", type=_parse_format, default="parquet",
                        help="Sets the collection format (raw or parquet)")
    return parser


def config_from_args(args: argparse.Namespace) -> Config:
    """Build a Config from parsed command-line arguments."""
    return Config(
        url=args.url,
        output=Path(args.output),
        verbose=args.verbose or 0,
        interval=args.interval if args.interval is not None else timedelta(seconds=1),
        duration=args.duration,
        format=args.format if args.format is not None else Format.PARQUET,
    )


def metrics_url(url: str) -> str:
    """Return the binary metrics endpoint for a root URL.

    Raises ValueError if the URL is not absolute or has a non-root path.
    """
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"invalid URL: {url}")
    if parts.path not in ("", "/"):
        raise ValueError(f"URL should not have an non-root path: {url}")
    return urlunsplit((parts.scheme, parts.netloc, METRICS_PATH, parts.query, parts.fragment))


class _Phase(enum.Enum):
    RUNNING = "running"
    CAPTURING = "capturing"
    TERMINATING = "terminating"


class CaptureState:
    """Tracks whether recording should continue, advanced by interrupts."""

    def __init__(self) -> None:
        self._phase = _Phase.RUNNING
        self._lock = threading.Lock()

    @property
    def phase(self) -> str:
        return self._phase.value

    @property
    def running(self) -> bool:
        return self._phase is _Phase.RUNNING

    def on_interrupt(self) -> str:
        """Advance on an interrupt and return the new phase.

        The first interrupt stops sampling, the second asks to exit once the
        capture is saved, and a third raises SystemExit(2).
        """
        with self._lock:
            if self._phase is _Phase.RUNNING:
                log.info("triggering ringbuffer capture")
                self._phase = _Phase.CAPTURING
            elif self._phase is _Phase.CAPTURING:
                log.info("waiting for capture to complete before exiting")
                self._phase = _Phase.TERMINATING
            else:
                log.info("terminating immediately")
                raise SystemExit(2)
            return self._phase.value


def _open_writer(config: Config, destination: BinaryIO) -> BinaryIO:
    if config.format is Format.RAW:
        return destination
    directory = config.output.parent
    try:
        return tempfile.TemporaryFile(dir=directory)
    except OSError as error:
        raise OSError(f"could not open temporary file in: {str(directory)!r}\n{error}") from error


def _sample_loop(config: Config, state: CaptureState, url: str, writer: BinaryIO) -> int:
    interval = config.interval.total_seconds()
    subsecond = (time.time_ns() % 1_000_000_000) / 1e9
    start = time.monotonic() - subsecond + interval
    next_tick = start
    limit = config.duration.total_seconds() if config.duration is not None else None
    samples = 0

    with requests.Session() as session:
        while state.running:
            if limit is not None and max(0.0, time.monotonic() - start) >= limit:
                break

            delay = next_tick - time.monotonic()
            if delay > 0:
                time.sleep(delay)
            next_tick += interval

            began = time.monotonic()
            try:
                response = session.get(url, timeout=REQUEST_TIMEOUT)
            except requests.RequestException:
                log.error("failed to get metrics. terminating early")
                break
            try:
                body = response.content
            except requests.RequestException:
                log.error("failed read response. terminating early")
                break
            log.debug("sampling latency: %d us", int((time.monotonic() - began) * 1e6))

            try:
                writer.write(body)
            except OSError as error:
                log.error("error writing to temporary file: %s", error)
                raise
            samples += 1
    return samples


def record(config: Config, state: Optional[CaptureState] = None) -> int:
    """Sample the endpoint into the output file and return the number of samples taken.

    Sampling stops when the state leaves its running phase, the duration has
    passed, or a request fails. Raises ValueError for a bad URL or interval and
    OSError when files cannot be opened or written.
    """
    if config.interval <= timedelta(0):
        raise ValueError("interval must be greater than zero")
    url = metrics_url(config.url)
    state = state if state is not None else CaptureState()

    try:
        destination = open(config.output, "wb")
    except OSError as error:
        log.error("failed to open destination file: %s", error)
        raise OSError(f"failed to open destination file: {error}") from error

    with destination:
        writer = _open_writer(config, destination)
        try:
            samples = _sample_loop(config, state, url, writer)

            log.debug("flushing writer")
            writer.flush()

            if config.format is Format.RAW:
                log.debug("finished")
            else:
                log.debug("converting temp file to parquet")
                writer.seek(0)
                try:
                    if config.converter is None:
                        raise RuntimeError("no parquet converter is available")
                    config.converter(writer, destination)
                except Exception as error:  # conversion failures are reported, not fatal
                    print(f"error saving parquet file: {error}", file=sys.stderr)
        finally:
            if writer is not destination:
                writer.close()
    return samples


def _configure_logging(verbose: int) -> None:
    if verbose <= 0:
        level = logging.INFO
    elif verbose == 1:
        level = logging.DEBUG
    else:
        level = TRACE
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(message)s",
        force=True,
    )


def main(argv: Optional[list[str]] = None) -> int:
    """Run the record command and return its exit status."""
    args = build_parser().parse_args(argv)
    config = config_from_args(args)
    _configure_logging(config.verbose)

    state = CaptureState()
    previous = signal.signal(signal.SIGINT, lambda signum, frame: state.on_interrupt())
    try:
        record(config, state)
    except (ValueError, OSError) as error:
        print(error, file=sys.stderr)
        return 1
    finally:
        signal.signal(signal.SIGINT, previous)
    return 0


if __name__ == "__main__":
    sys.exit(main())