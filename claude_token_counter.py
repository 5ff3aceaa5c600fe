#!/usr/bin/env python3
"""
Claude Code session logs → token usage counter.

Scans ~/.claude/projects/**/*.jsonl (by default) and sums the usage counters
attached to logged messages (input, output, cache creation, cache read), with
an estimated pay-as-you-go cost. Usage can also be read from the Anthropic
usage report API with an Admin API key.

Commands:
- live     redraw the local usage report every N seconds until interrupted
- local    print the local usage report once
- status   current usage from the API, optionally against a monthly limit
- history  per-day usage from the API
- config   store the API key and monthly limit

Example:
  python3 claude_token_counter.py live --refresh 5
  python3 claude_token_counter.py local --root /path/to/projects
  python3 claude_token_counter.py config --api-key sk-ant-admin-...
  python3 claude_token_counter.py history --days 7
"""

import argparse
import json
import os
import signal
import sys
import threading
import time
import urllib.error
import urllib.parse
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, TextIO, Tuple


__version__ = "0.1.0"

U64_MAX = 2**64 - 1

USAGE_FIELDS = (
    "input_tokens",
    "output_tokens",
    "cache_creation_input_tokens",
    "cache_read_input_tokens",
)

# USD per 1M tokens
RATES_PER_MILLION: Dict[str, float] = {
    "input": 3.00,
    "output": 15.00,
    "cache_creation": 3.75,
    "cache_read": 0.30,
}

DEFAULT_REFRESH_SECONDS = 2
MIN_REFRESH_SECONDS = 1.0

API_BASE_URL = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"
USER_AGENT = f"claude-token-counter/{__version__}"

CLEAR_SCREEN = "\x1b[2J\x1b[H"
RESET = "\x1b[0m"
BOLD = "\x1b[1m"
RED = "\x1b[31m"
GREEN = "\x1b[32m"
YELLOW = "\x1b[33m"
CYAN = "\x1b[36m"
WHITE = "\x1b[37m"
BRIGHT_BLACK = "\x1b[90m"
BRIGHT_YELLOW = "\x1b[93m"
BRIGHT_BLUE = "\x1b[94m"
BRIGHT_CYAN = "\x1b[96m"
BRIGHT_WHITE = "\x1b[97m"


def print_warning(msg: str) -> None:
    print(f"Warning: {msg}", file=sys.stderr)


WarnFn = Callable[[str], None]


class UsageError(Exception):
    """Base class for failures reported to the user."""


class LogRootNotFound(UsageError):
    pass


class LogFileError(UsageError):
    """A single log file could not be opened or read."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class NoLogFilesError(UsageError):
    pass


class MonitorError(UsageError):
    """A full aggregation pass failed inside the live monitor."""


class ConfigError(UsageError):
    pass


class ApiError(UsageError):
    pass


# ---------------------------------------------------------------------------
# Log records


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0

    def total(self) -> int:
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_input_tokens
            + self.cache_read_input_tokens
        )


@dataclass
class Message:
    model: Optional[str] = None
    usage: Optional[Usage] = None


@dataclass
class LogEntry:
    message: Optional[Message] = None
    timestamp: Optional[str] = None
    agent_id: Optional[str] = None

    @property
    def usage(self) -> Optional[Usage]:
        if self.message is None:
            return None
        return self.message.usage


@dataclass
class AggregatedUsage:
    total_input: int = 0
    total_output: int = 0
    total_cache_creation: int = 0
    total_cache_read: int = 0
    message_count: int = 0

    def total(self) -> int:
        return self.total_input + self.total_output + self.total_cache_creation + self.total_cache_read

    def add(self, usage: Usage) -> None:
        self.total_input += usage.input_tokens
        self.total_output += usage.output_tokens
        self.total_cache_creation += usage.cache_creation_input_tokens
        self.total_cache_read += usage.cache_read_input_tokens
        self.message_count += 1

    def merge(self, other: "AggregatedUsage") -> None:
        self.total_input += other.total_input
        self.total_output += other.total_output
        self.total_cache_creation += other.total_cache_creation
        self.total_cache_read += other.total_cache_read
        self.message_count += other.message_count

    def __add__(self, other: "AggregatedUsage") -> "AggregatedUsage":
        if not isinstance(other, AggregatedUsage):
            return NotImplemented
        out = AggregatedUsage()
        out.merge(self)
        out.merge(other)
        return out


def _shape_error(obj: Any) -> Optional[str]:
    """Return why a decoded line is not a log entry, or None when it is one."""
    if not isinstance(obj, dict):
        return f"expected a JSON object, got {type(obj).__name__}"
    for key in ("timestamp", "agentId"):
        if obj.get(key) is not None and not isinstance(obj[key], str):
            return f"{key}: expected a string"
    message = obj.get("message")
    if message is None:
        return None
    if not isinstance(message, dict):
        return "message: expected an object"
    if message.get("model") is not None and not isinstance(message["model"], str):
        return "message.model: expected a string"
    usage = message.get("usage")
    if usage is None:
        return None
    if not isinstance(usage, dict):
        return "message.usage: expected an object"
    for key in USAGE_FIELDS:
        val = usage.get(key)
        if val is None:
            continue
        # bool is an int subclass; JSON true/false are not token counts
        if isinstance(val, bool) or not isinstance(val, int) or val < 0 or val > U64_MAX:
            return f"message.usage.{key}: expected a 64-bit unsigned integer, got {val!r}"
    return None


def parse_log_line(line: str) -> Tuple[Optional[LogEntry], Optional[str]]:
    """Parse one JSONL line.

    Returns (entry, None) on success and (None, reason) when the line is not
    valid JSON or does not have the shape of a log entry. Never raises for bad
    input; unknown fields are ignored and missing counters default to 0.
    """
    try:
        obj = json.loads(line)
    except (ValueError, RecursionError) as e:
        return None, str(e) or type(e).__name__
    err = _shape_error(obj)
    if err is not None:
        return None, err

    message: Optional[Message] = None
    raw_msg = obj.get("message")
    if raw_msg is not None:
        usage: Optional[Usage] = None
        raw_usage = raw_msg.get("usage")
        if raw_usage is not None:
            usage = Usage(**{k: int(raw_usage.get(k) or 0) for k in USAGE_FIELDS})
        message = Message(model=raw_msg.get("model"), usage=usage)
    return LogEntry(message=message, timestamp=obj.get("timestamp"), agent_id=obj.get("agentId")), None


# ---------------------------------------------------------------------------
# Discovery


def default_log_root(home: Optional[str] = None) -> str:
    """Claude Code keeps one directory of session logs per project here."""
    base = home if home is not None else os.path.expanduser("~")
    return os.path.join(base, ".claude", "projects")


def locate_log_root(root: str) -> str:
    if not os.path.isdir(root):
        raise LogRootNotFound(
            f"Claude Code projects directory not found at {root}\n"
            "Make sure you have used Claude Code at least once."
        )
    return root


def is_log_file_name(name: str) -> bool:
    # splitext() keeps a leading dot in the stem, so ".jsonl" alone does not match
    return os.path.splitext(name)[1] == ".jsonl"


def find_log_files(root: str) -> List[str]:
    """Recursively list *.jsonl files under root, following symlinks.

    Unreadable directories and broken links are skipped. A directory reached
    twice (symlink cycles, or two links to the same target) is walked once.
    """
    locate_log_root(root)
    files: List[str] = []
    seen: Set[Tuple[int, int]] = set()
    for dirpath, dirnames, filenames in os.walk(root, followlinks=True):
        try:
            st = os.stat(dirpath)
        except OSError:
            dirnames[:] = []
            continue
        key = (st.st_dev, st.st_ino)
        if key in seen:
            dirnames[:] = []
            continue
        seen.add(key)
        for name in filenames:
            if not is_log_file_name(name):
                continue
            path = os.path.join(dirpath, name)
            if os.path.isfile(path):
                files.append(path)
    return files


# ---------------------------------------------------------------------------
# Aggregation


def aggregate_lines(lines: Iterable[str], source: str = "<input>", warn: WarnFn = print_warning) -> AggregatedUsage:
    """Sum usage over JSONL lines. Bad lines are reported through warn and skipped."""
    agg = AggregatedUsage()
    for line_no, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        entry, err = parse_log_line(line)
        if entry is None:
            warn(f"Failed to parse line {line_no} in {source}: {err}")
            continue
        usage = entry.usage
        if usage is not None:
            agg.add(usage)
    return agg


def aggregate_file(path: str, warn: WarnFn = print_warning) -> AggregatedUsage:
    """Aggregate one log file. Raises LogFileError when it cannot be opened or read."""
    try:
        f = open(path, "r", encoding="utf-8", newline="\n")
    except OSError as e:
        raise LogFileError(path, f"failed to open: {e.strerror or e}") from e
    with f:
        try:
            return aggregate_lines(f, source=path, warn=warn)
        except (OSError, UnicodeDecodeError) as e:
            raise LogFileError(path, f"failed to read: {e}") from e


def aggregate_corpus(root: str, warn: WarnFn = print_warning, jobs: int = 1) -> AggregatedUsage:
    """Aggregate every log file under root into one total.

    Raises LogRootNotFound when root is missing and NoLogFilesError when it
    holds no log files. Files that cannot be read are reported and skipped.
    With jobs > 1 files are parsed on a thread pool; the total is the same.
    """
    files = find_log_files(root)
    if not files:
        raise NoLogFilesError(f"No JSONL files found in Claude Code projects directory {root}")

    def parse_one(path: str) -> Optional[AggregatedUsage]:
        try:
            return aggregate_file(path, warn=warn)
        except LogFileError as e:
            warn(f"Skipping {e.path}: {e.reason}")
            return None

    total = AggregatedUsage()
    if jobs > 1 and len(files) > 1:
        with ThreadPoolExecutor(max_workers=jobs) as pool:
            for usage in pool.map(parse_one, files):
                if usage is not None:
                    total.merge(usage)
    else:
        for path in files:
            usage = parse_one(path)
            if usage is not None:
                total.merge(usage)
    return total


def estimate_cost(usage: AggregatedUsage) -> float:
    """Estimated USD cost of the aggregated counters (unrounded)."""
    cost = 0.0
    cost += (usage.total_input / 1_000_000) * RATES_PER_MILLION["input"]
    cost += (usage.total_output / 1_000_000) * RATES_PER_MILLION["output"]
    cost += (usage.total_cache_creation / 1_000_000) * RATES_PER_MILLION["cache_creation"]
    cost += (usage.total_cache_read / 1_000_000) * RATES_PER_MILLION["cache_read"]
    return cost


# ---------------------------------------------------------------------------
# Rendering


def format_number(n: int) -> str:
    return f"{int(n):,}"


def colors_enabled(out: TextIO) -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    try:
        return out.isatty()
    except Exception:
        return False


def paint(text: str, *codes: str, color: bool = True) -> str:
    if not color or not codes:
        return text
    return "".join(codes) + text + RESET


def local_tzinfo():
    try:
        return datetime.now().astimezone().tzinfo or timezone.utc
    except Exception:
        return timezone.utc


def render_usage_report(usage: AggregatedUsage, cost: float, now: Optional[datetime] = None, interval: Optional[float] = None, color: bool = False) -> str:
    """Text block for the local usage report; the refresh footer only when interval is given."""
    now = now or datetime.now(timezone.utc)
    rule = paint("═" * 60, BRIGHT_BLUE, color=color)
    stamp = now.astimezone(local_tzinfo()).strftime("%Y-%m-%d %H:%M:%S %Z")
    title = "  CLAUDE CODE TOKEN USAGE" + (" (LIVE)" if interval is not None else "")

    def row(label: str, value: str, *codes: str) -> str:
        return f"  {paint(label.ljust(24), CYAN, color=color)}{paint(value.rjust(16), *codes, color=color)}"

    lines = [
        rule,
        paint(title, BRIGHT_CYAN, BOLD, color=color),
        f"  {stamp}",
        rule,
        row("Input tokens:", format_number(usage.total_input), BRIGHT_WHITE),
        row("Output tokens:", format_number(usage.total_output), BRIGHT_WHITE),
        row("Cache creation tokens:", format_number(usage.total_cache_creation), BRIGHT_WHITE),
        row("Cache read tokens:", format_number(usage.total_cache_read), BRIGHT_WHITE),
        "  " + paint("─" * 40, BRIGHT_BLACK, color=color),
        row("Total tokens:", format_number(usage.total()), BRIGHT_YELLOW, BOLD),
        row("Messages:", format_number(usage.message_count), BRIGHT_WHITE),
        row("Estimated cost:", f"${cost:,.2f}", GREEN),
        rule,
    ]
    if interval is not None:
        secs = f"{interval:g}"
        lines.append(paint(f"  Refreshing every {secs}s. Press Ctrl+C to stop.", BRIGHT_BLACK, color=color))
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Live monitor


class LiveMonitor:
    """Re-aggregates the log root every `interval` seconds and redraws the report.

    run() loops until stop() is called (or max_ticks is reached). Per-file
    problems are only warnings; a pass that cannot produce any total raises
    MonitorError and ends the loop.
    """

    def __init__(
        self,
        root: str,
        interval: float = DEFAULT_REFRESH_SECONDS,
        out: Optional[TextIO] = None,
        warn: WarnFn = print_warning,
        jobs: int = 1,
        clock: Callable[[], float] = time.monotonic,
        wait: Optional[Callable[[float], Any]] = None,
    ) -> None:
        self.root = root
        self.interval = max(MIN_REFRESH_SECONDS, float(interval))
        self.out = out if out is not None else sys.stdout
        self.warn = warn
        self.jobs = jobs
        self.clock = clock
        self._stopped = threading.Event()
        # Event.wait returns early when stop() is called
        self._wait = wait if wait is not None else self._stopped.wait

    @property
    def running(self) -> bool:
        return not self._stopped.is_set()

    def stop(self) -> None:
        self._stopped.set()

    def tick(self) -> AggregatedUsage:
        try:
            usage = aggregate_corpus(self.root, warn=self.warn, jobs=self.jobs)
        except Exception as e:
            raise MonitorError(str(e)) from e
        cost = estimate_cost(usage)
        self.out.write(CLEAR_SCREEN)
        self.out.write(render_usage_report(usage, cost, interval=self.interval, color=colors_enabled(self.out)))
        self.out.flush()
        return usage

    def run(self, max_ticks: Optional[int] = None) -> int:
        """Run ticks until stopped; returns how many completed."""
        ticks = 0
        try:
            while self.running:
                started = self.clock()
                self.tick()
                ticks += 1
                if max_ticks is not None and ticks >= max_ticks:
                    break
                if not self.running:
                    break
                delay = max(0.0, started + self.interval - self.clock())
                self._wait(delay)
        finally:
            self.stop()
        return ticks


def run_live(root: str, interval: float, jobs: int = 1) -> int:
    monitor = LiveMonitor(root, interval=interval, jobs=jobs)

    def _stop(signum, frame):
        monitor.stop()

    prev_int = signal.signal(signal.SIGINT, _stop)
    prev_term = signal.signal(signal.SIGTERM, _stop)
    try:
        monitor.run()
    except MonitorError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        signal.signal(signal.SIGINT, prev_int)
        signal.signal(signal.SIGTERM, prev_term)
    return 0


# ---------------------------------------------------------------------------
# Config store


def xdg_config_home() -> str:
    return os.environ.get("XDG_CONFIG_HOME") or os.path.expanduser("~/.config")


def config_path() -> str:
    return os.path.join(xdg_config_home(), "claude-token-counter", "config.json")


@dataclass
class Config:
    api_key: str
    monthly_limit: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"api_key": self.api_key}
        if self.monthly_limit is not None:
            data["monthly_limit"] = self.monthly_limit
        return data


def load_config(path: Optional[str] = None) -> Config:
    path = path or config_path()
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"No configuration found at {path}\nRun `claude-token-counter config --api-key KEY` first.")
    except (OSError, ValueError) as e:
        raise ConfigError(f"Could not read config file at {path}: {e}") from e
    if not isinstance(raw, dict) or not isinstance(raw.get("api_key"), str) or not raw["api_key"]:
        raise ConfigError(f"Config file at {path} has no api_key")
    limit = raw.get("monthly_limit")
    if limit is not None and (isinstance(limit, bool) or not isinstance(limit, int) or limit < 0):
        raise ConfigError(f"Config file at {path}: monthly_limit must be a non-negative integer")
    return Config(api_key=raw["api_key"], monthly_limit=limit)


def save_config(config: Config, path: Optional[str] = None) -> str:
    """Write the config as JSON readable by the owner only. Returns the path."""
    path = path or config_path()
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(config.to_dict(), f, indent=2)
            f.write("\n")
        # O_CREAT mode does not apply to a file that already existed
        os.chmod(path, 0o600)
    except OSError as e:
        raise ConfigError(f"Could not write config file to {path}: {e}") from e
    return path


def mask_key(key: str) -> str:
    if len(key) <= 14:
        return "*" * len(key)
    return f"{key[:10]}...{key[-4:]}"


# ---------------------------------------------------------------------------
# Usage report API


def _count(obj: Dict[str, Any], key: str) -> int:
    val = obj.get(key) or 0
    if isinstance(val, bool) or not isinstance(val, int):
        raise ValueError(f"{key}: expected an integer, got {val!r}")
    return val


@dataclass
class UsageDetail:
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cache_read_input_tokens: int = 0

    def total(self) -> int:
        return self.input_tokens + self.output_tokens + self.cache_creation_input_tokens + self.cache_read_input_tokens

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "UsageDetail":
        return cls(**{k: _count(obj, k) for k in USAGE_FIELDS})


@dataclass
class UsageRecord:
    starting_at: str
    ending_at: str
    results: List[UsageDetail] = field(default_factory=list)

    def total(self) -> int:
        return sum(r.total() for r in self.results)

    def input_tokens(self) -> int:
        return sum(r.input_tokens for r in self.results)

    def output_tokens(self) -> int:
        return sum(r.output_tokens for r in self.results)

    def date(self) -> str:
        return self.starting_at.split("T", 1)[0]

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "UsageRecord":
        results = obj.get("results") or []
        return cls(
            starting_at=str(obj["starting_at"]),
            ending_at=str(obj["ending_at"]),
            results=[UsageDetail.from_dict(r) for r in results],
        )


@dataclass
class UsageResponse:
    data: List[UsageRecord]
    has_more: bool = False
    next_page: Optional[str] = None

    @classmethod
    def from_dict(cls, obj: Any) -> "UsageResponse":
        if not isinstance(obj, dict) or not isinstance(obj.get("data"), list):
            raise ValueError("expected an object with a 'data' list")
        return cls(
            data=[UsageRecord.from_dict(r) for r in obj["data"]],
            has_more=bool(obj.get("has_more", False)),
            next_page=obj.get("next_page"),
        )


@dataclass
class UsageSummary:
    total_input_tokens: int
    total_output_tokens: int
    total_tokens: int
    days_with_usage: int

    @classmethod
    def from_records(cls, records: List[UsageRecord]) -> "UsageSummary":
        total_in = sum(r.input_tokens() for r in records)
        total_out = sum(r.output_tokens() for r in records)
        return cls(
            total_input_tokens=total_in,
            total_output_tokens=total_out,
            total_tokens=total_in + total_out,
            days_with_usage=sum(1 for r in records if r.total() > 0),
        )

    def percentage_used(self, limit: int) -> float:
        if limit == 0:
            return 0.0
        return self.total_tokens / limit * 100.0

    def remaining(self, limit: int) -> int:
        return limit - self.total_tokens


ADMIN_KEY_HINT = (
    "API endpoint not found. This likely means:\n"
    "1. You need an Admin API key (starts with 'sk-ant-admin-...')\n"
    "2. Regular API keys (sk-ant-api...) don't have access to usage data\n"
    "3. Get an Admin key from: https://console.anthropic.com/settings/keys"
)


class UsageApiClient:
    """Client for the Claude Code usage report endpoint of the Admin API."""

    def __init__(self, api_key: str, base_url: str = API_BASE_URL, timeout: float = 30.0) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def build_headers(self) -> Dict[str, str]:
        if not self.api_key or not all(0x20 < ord(ch) < 0x7F for ch in self.api_key):
            raise ApiError("Invalid API key format")
        return {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
            "user-agent": USER_AGENT,
        }

    def build_url(self, days_back: int = 1, today: Optional[datetime] = None) -> str:
        today = today or datetime.now(timezone.utc)
        start = today - timedelta(days=max(days_back, 1) - 1)
        query = urllib.parse.urlencode({"starting_at": start.strftime("%Y-%m-%d"), "limit": 1000})
        return f"{self.base_url}/organizations/usage_report/claude_code?{query}"

    def fetch_usage(self, days_back: int = 1, today: Optional[datetime] = None) -> UsageResponse:
        """One GET for usage since `days_back` days ago (UTC). Pages beyond the first are not followed."""
        req = urllib.request.Request(self.build_url(days_back, today), headers=self.build_headers(), method="GET")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                body = resp.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            detail = e.read().decode("utf-8", errors="replace") if e.fp is not None else ""
            if e.code == 404:
                raise ApiError(f"{ADMIN_KEY_HINT}\n\nError details: {detail}") from e
            raise ApiError(f"API request failed with status {e.code}: {detail}") from e
        except urllib.error.URLError as e:
            raise ApiError(f"Failed to send request to Anthropic API: {e.reason}") from e
        except OSError as e:
            raise ApiError(f"Failed to send request to Anthropic API: {e}") from e
        try:
            return UsageResponse.from_dict(json.loads(body))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise ApiError(f"Failed to parse API response: {e}") from e


def pick_color(pct: float) -> Tuple[str, ...]:
    if pct < 50.0:
        return (GREEN,)
    if pct < 80.0:
        return (YELLOW,)
    if pct < 100.0:
        return (BRIGHT_YELLOW,)
    return (RED, BOLD)


def progress_bar(pct: float, width: int = 40) -> str:
    filled = min(max(int(pct / 100.0 * width), 0), width)
    return "[" + "█" * filled + "░" * (width - filled) + "]"


def display_status(summary: UsageSummary, monthly_limit: Optional[int] = None, out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    color = colors_enabled(out)
    rule = paint("═" * 60, BRIGHT_BLUE, color=color)

    def emit(s: str = "") -> None:
        out.write(s + "\n")

    emit()
    emit(rule)
    emit(paint("  TOKEN USAGE SUMMARY", BRIGHT_CYAN, BOLD, color=color))
    emit(rule)
    emit()
    emit(paint("Token Counts:", BRIGHT_WHITE, BOLD, color=color))
    emit(f"  {paint('Input tokens: ', CYAN, color=color)} {paint(format_number(summary.total_input_tokens), BRIGHT_WHITE, color=color)}")
    emit(f"  {paint('Output tokens:', CYAN, color=color)} {paint(format_number(summary.total_output_tokens), BRIGHT_WHITE, color=color)}")
    emit(f"  {paint('Total tokens: ', CYAN, BOLD, color=color)} {paint(format_number(summary.total_tokens), BRIGHT_YELLOW, BOLD, color=color)}")
    emit()
    emit(paint("Usage Stats:", BRIGHT_WHITE, BOLD, color=color))
    emit(f"  {paint('Days with usage:', CYAN, color=color)} {paint(str(summary.days_with_usage), BRIGHT_WHITE, color=color)}")

    if monthly_limit is not None:
        pct = summary.percentage_used(monthly_limit)
        remaining = summary.remaining(monthly_limit)
        emit()
        emit(paint("Monthly Quota:", BRIGHT_WHITE, BOLD, color=color))
        emit(f"  {paint('Limit:       ', CYAN, color=color)} {paint(format_number(monthly_limit), BRIGHT_WHITE, color=color)}")
        emit(f"  {paint('Used:        ', CYAN, color=color)} {paint(format_number(summary.total_tokens), BRIGHT_YELLOW, color=color)}")
        if remaining >= 0:
            emit(f"  {paint('Remaining:   ', CYAN, color=color)} {paint(format_number(remaining), GREEN, color=color)}")
        else:
            emit(f"  {paint('Overage:     ', CYAN, color=color)} {paint(format_number(-remaining), RED, color=color)}")
        emit(f"  {paint('Usage:       ', CYAN, color=color)} {paint(f'{pct:.1f}%', *pick_color(pct), color=color)}")
        emit("  " + paint(progress_bar(pct), *pick_color(pct), color=color))

    emit()
    emit(rule)


def display_history(records: List[UsageRecord], days: int, out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    color = colors_enabled(out)
    rule = paint("═" * 80, BRIGHT_BLUE, color=color)
    out.write("\n" + rule + "\n")
    out.write(paint(f"  USAGE HISTORY - Last {days} Days", BRIGHT_CYAN, BOLD, color=color) + "\n")
    out.write(rule + "\n")

    if not records:
        out.write("\n  " + paint("No usage data found for the specified period.", YELLOW, color=color) + "\n")
        out.write("\n" + rule + "\n")
        return

    # pad before painting so escapes do not skew the columns
    out.write("\n  " + " ".join([
        paint(f"{'Date':<12}", CYAN, BOLD, color=color),
        paint(f"{'Input':>15}", CYAN, BOLD, color=color),
        paint(f"{'Output':>15}", CYAN, BOLD, color=color),
        paint(f"{'Total':>15}", CYAN, BOLD, color=color),
    ]) + "\n")
    out.write("  " + paint("─" * 76, BRIGHT_BLACK, color=color) + "\n")

    for rec in sorted(records, key=lambda r: r.date(), reverse=True)[:days]:
        total = rec.total()
        if total > 100_000:
            total_codes: Tuple[str, ...] = (RED,)
        elif total > 50_000:
            total_codes = (YELLOW,)
        else:
            total_codes = (WHITE,)
        out.write("  " + " ".join([
            paint(f"{rec.date():<12}", BRIGHT_WHITE, color=color),
            paint(f"{format_number(rec.input_tokens()):>15}", WHITE, color=color),
            paint(f"{format_number(rec.output_tokens()):>15}", WHITE, color=color),
            paint(f"{format_number(total):>15}", *total_codes, color=color),
        ]) + "\n")

    out.write("\n" + rule + "\n")


# ---------------------------------------------------------------------------
# CLI


def positive_int(val: str) -> int:
    try:
        n = int(val)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {val!r}")
    if n < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {n}")
    return n


def non_negative_int(val: str) -> int:
    try:
        n = int(val)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {val!r}")
    if n < 0:
        raise argparse.ArgumentTypeError(f"must not be negative, got {n}")
    return n


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="claude-token-counter",
        description="Visualize Claude token usage from the usage API or local Claude Code logs",
    )
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = ap.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    p_status = sub.add_parser("status", help="Display current token usage and remaining quota")
    p_status.add_argument("--limit", type=non_negative_int, default=None,
                          help="Monthly token limit (default: monthly_limit from config)")

    p_history = sub.add_parser("history", help="Show usage history over time")
    p_history.add_argument("-d", "--days", type=positive_int, default=30,
                           help="Number of days to show (default: 30)")

    p_config = sub.add_parser("config", help="Configure API key and subscription details")
    p_config.add_argument("--api-key", default=None, help="Anthropic Admin API key")
    p_config.add_argument("--monthly-limit", type=non_negative_int, default=None,
                          help="Monthly token limit used by `status`")

    for name, help_text in (("live", "Live view of local Claude Code usage"),
                            ("local", "Print local Claude Code usage once")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--root", default=None,
                       help="Log root to scan (default: ~/.claude/projects)")
        p.add_argument("-j", "--jobs", type=positive_int, default=1,
                       help="Parse files on N threads (default: 1)")
        if name == "live":
            p.add_argument("-r", "--refresh", type=positive_int, default=DEFAULT_REFRESH_SECONDS,
                           help=f"Refresh interval in seconds (default: {DEFAULT_REFRESH_SECONDS})")
    return ap


def cmd_status(args: argparse.Namespace) -> int:
    config = load_config()
    print("Fetching current token usage...", file=sys.stderr)
    resp = UsageApiClient(config.api_key).fetch_usage(days_back=1)
    limit = args.limit if args.limit is not None else config.monthly_limit
    display_status(UsageSummary.from_records(resp.data), limit)
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    config = load_config()
    print(f"Showing usage history for the last {args.days} days...", file=sys.stderr)
    resp = UsageApiClient(config.api_key).fetch_usage(days_back=args.days)
    display_history(resp.data, args.days)
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    try:
        existing: Optional[Config] = load_config()
    except ConfigError:
        existing = None

    if args.api_key is None and args.monthly_limit is None:
        if existing is None:
            print("No API key provided", file=sys.stderr)
            return 1
        print(f"Config file: {config_path()}")
        print(f"API key:     {mask_key(existing.api_key)}")
        limit = format_number(existing.monthly_limit) if existing.monthly_limit is not None else "(none)"
        print(f"Monthly limit: {limit}")
        return 0

    api_key = args.api_key if args.api_key is not None else (existing.api_key if existing else "")
    if not api_key:
        print("Error: No API key provided (use --api-key)", file=sys.stderr)
        return 1
    limit_val = args.monthly_limit
    if limit_val is None and existing is not None:
        limit_val = existing.monthly_limit
    print("Configuring API key...", file=sys.stderr)
    path = save_config(Config(api_key=api_key, monthly_limit=limit_val))
    print(f"Configuration saved to: {path}")
    return 0


def cmd_local(args: argparse.Namespace) -> int:
    root = args.root or default_log_root()
    usage = aggregate_corpus(root, jobs=args.jobs)
    sys.stdout.write(render_usage_report(usage, estimate_cost(usage), color=colors_enabled(sys.stdout)))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        if args.command == "live":
            return run_live(args.root or default_log_root(), args.refresh, jobs=args.jobs)
        if args.command == "local":
            return cmd_local(args)
        if args.command == "status":
            return cmd_status(args)
        if args.command == "history":
            return cmd_history(args)
        return cmd_config(args)
    except UsageError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
