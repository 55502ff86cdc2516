# /one_copy.py
"""
One Copy (no UI)
- Copies every file found under a source folder into a destination folder exactly once.
- Identity is the SHA-256 of the file content, so renames at the source and
  renames/deletions at the destination never trigger a second copy.
- Copied content is recorded in two append-only manifests in the data folder:
  copied_hashes.manifest (one hex digest per line) and copied_files.manifest
  (one relative path per line, kept for stores written before hash tracking).
- Periodic full-tree scans (no filesystem events), or a single scan with --once.
- Optional extension filter (include/exclude), gitignore-style ignore rules and
  flattened output layout.
- Styled console output:
  - COPY green
  - errors red
  - file paths white
  - folder paths light brown
- Log file (optional) is always plain (no color codes).
- Configuration comes from environment variables; command line flags override them.

Usage
  pip install pathspec colorama
  python one_copy.py
  python one_copy.py --input "/src" --output "/dst" --data-dir "/state" --interval 30
  RUN_ONCE=true FILE_EXTENSIONS=jpg,png python one_copy.py
"""

from __future__ import annotations

import argparse
import dataclasses
import datetime as dt
import enum
import hashlib
import logging
import math
import os
import shutil
import signal
import sys
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Iterable, Mapping, Optional

from colorama import just_fix_windows_console
from pathspec import PathSpec

LOGGER_NAME = "one_copy"

PATHS_MANIFEST = "copied_files.manifest"
HASHES_MANIFEST = "copied_hashes.manifest"
LOCK_FILE = "sync.lock"

DEFAULT_INPUT_DIR = "/input"
DEFAULT_OUTPUT_DIR = "/output"
DEFAULT_DATA_DIR = "/data"
DEFAULT_SYNC_INTERVAL = 60.0

HASH_PREVIEW_LEN = 12


# -------------------------
# Errors
# -------------------------

class OneCopyError(Exception):
    """Base class for errors raised by one_copy."""


class ConfigError(OneCopyError):
    """Invalid configuration value; reported at startup, never mid-scan."""


class StartupError(OneCopyError):
    """The service cannot run at all (state location unusable, lock not writable)."""


class CopyError(OneCopyError):
    """
    A single file could not be copied. Carries enough context for the operator:
    the source, the destination, the OS error text and any extra findings.
    """

    def __init__(
        self,
        message: str,
        src: Path,
        dst: Path,
        os_error: str = "",
        diagnostics: Iterable[str] = (),
    ):
        super().__init__(message)
        self.message = message
        self.src = src
        self.dst = dst
        self.os_error = os_error
        self.diagnostics = list(diagnostics)


# -------------------------
# Console styling
# -------------------------

class Ansi:
    RESET = "\x1b[0m"
    RED = "\x1b[31m"
    GREEN = "\x1b[32m"
    YELLOW = "\x1b[93m"
    BLUE = "\x1b[34m"
    WHITE = "\x1b[97m"
    LIGHT_BROWN = "\x1b[33m"


ACTION_COLORS = {
    "COPY": Ansi.GREEN,
    "MKDIR": Ansi.LIGHT_BROWN,
    "SKIP": Ansi.WHITE,
}

LEVEL_COLORS = {
    logging.DEBUG: Ansi.BLUE,
    logging.INFO: Ansi.GREEN,
    logging.WARNING: Ansi.YELLOW,
}


def _supports_color(stream) -> bool:
    try:
        return hasattr(stream, "isatty") and stream.isatty()
    except Exception:
        return False


class ColorizingFormatter(logging.Formatter):
    def __init__(self, use_color: bool, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if not self.use_color:
            return base

        if record.levelno >= logging.ERROR:
            return f"{Ansi.RED}{base}{Ansi.RESET}"

        level_color = LEVEL_COLORS.get(record.levelno)
        level_token = f"| {record.levelname} |"
        if level_color and level_token in base:
            base = base.replace(level_token, f"| {level_color}{record.levelname}{Ansi.RESET} |", 1)

        action = getattr(record, "action", None)
        is_dir = getattr(record, "is_dir", None)
        path_text = getattr(record, "path_text", None)

        if action:
            action_color = ACTION_COLORS.get(action, "")
            token = f"{action} |"
            if action_color and token in base:
                base = base.replace(token, f"{action_color}{action}{Ansi.RESET} |", 1)

        if path_text and path_text in base:
            pcolor = Ansi.LIGHT_BROWN if is_dir else Ansi.WHITE
            base = base.replace(path_text, f"{pcolor}{path_text}{Ansi.RESET}")

        return base


def _today_log_name(prefix: str = "one_copy") -> str:
    return f"{prefix}_{dt.date.today().isoformat()}.log"


def setup_logger(level: int = logging.INFO, log_dir: Optional[Path] = None) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    just_fix_windows_console()

    fmt = "%(asctime)s | %(levelname)s | %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"

    ch = logging.StreamHandler(sys.stdout)
    ch.setLevel(level)
    ch.setFormatter(ColorizingFormatter(use_color=_supports_color(sys.stdout), fmt=fmt, datefmt=datefmt))
    logger.addHandler(ch)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / _today_log_name()
        fh = logging.FileHandler(log_path, encoding="utf-8")
        fh.setFormatter(logging.Formatter(fmt=fmt, datefmt=datefmt))
        fh.setLevel(level)
        logger.addHandler(fh)
        logger.info("Logging to: %s", log_path)

    return logger


def log_action(
    logger: logging.Logger,
    action: str,
    message: str,
    path: Optional[Path] = None,
    is_dir: Optional[bool] = None,
    level: int = logging.INFO,
) -> None:
    extra = {"action": action}
    if path is not None:
        extra["path_text"] = str(path)
        extra["is_dir"] = bool(is_dir) if is_dir is not None else (path.exists() and path.is_dir())
    logger.log(level, f"{action} | {message}", extra=extra)


# -------------------------
# Filters
# -------------------------

class ExtensionMode(str, enum.Enum):
    INCLUDE = "include"
    EXCLUDE = "exclude"

    @classmethod
    def parse(cls, value: str) -> "ExtensionMode":
        raw = (value or "").strip().lower()
        for mode in cls:
            if mode.value == raw:
                return mode
        raise ConfigError(f"EXTENSION_MODE must be 'include' or 'exclude', got {value!r}")


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    if ext.startswith("."):
        ext = ext[1:]
    return ext


def parse_extensions(raw: Optional[str]) -> frozenset[str]:
    """Split a comma separated extension list ("jpg, .PNG,pdf") into normalized extensions."""
    if not raw:
        return frozenset()
    return frozenset(e for e in (_normalize_extension(part) for part in raw.split(",")) if e)


def file_extension(filename: str) -> Optional[str]:
    """Lowercased text after the final dot of the base name; None when there is no dot."""
    name = PurePosixPath(filename).name
    if "." not in name:
        return None
    return name.rsplit(".", 1)[1].lower()


def should_process(filename: str, extensions: Iterable[str], mode: ExtensionMode) -> bool:
    """
    Decide whether a file passes the extension filter.

    An empty extension list lets everything through. Files without an extension
    never match the list: they are rejected in include mode and accepted in
    exclude mode.
    """
    wanted = {_normalize_extension(e) for e in extensions} - {""}
    if not wanted:
        return True

    ext = file_extension(filename)
    if ext is None:
        return mode is ExtensionMode.EXCLUDE

    found = ext in wanted
    if mode is ExtensionMode.INCLUDE:
        return found
    if mode is ExtensionMode.EXCLUDE:
        return not found
    raise ConfigError(f"Unknown extension mode: {mode!r}")


def parse_patterns(raw: Optional[str]) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(p.strip() for p in raw.split(",") if p.strip())


class IgnoreMatcher:
    def __init__(self, patterns: Iterable[str]):
        self.patterns = list(patterns)
        self.spec = PathSpec.from_lines("gitwildmatch", self.patterns)

    def is_ignored(self, relative_path: str) -> bool:
        if not self.patterns:
            return False
        return self.spec.match_file(relative_path)


# -------------------------
# Config / CLI
# -------------------------

_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off", ""}

_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


@dataclass(frozen=True)
class AppConfig:
    input_dir: Path
    output_dir: Path
    data_dir: Path
    sync_interval_sec: float = DEFAULT_SYNC_INTERVAL
    run_once: bool = False
    extensions: frozenset[str] = frozenset()
    extension_mode: ExtensionMode = ExtensionMode.INCLUDE
    flatten_output: bool = False
    ignore_patterns: tuple[str, ...] = ()
    log_level: int = logging.INFO
    log_dir: Optional[Path] = None


def parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_WORDS:
        return True
    if value in _FALSE_WORDS:
        return False
    raise ConfigError(f"{name} must be true or false, got {raw!r}")


def parse_interval(raw: str) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"SYNC_INTERVAL must be a number of seconds, got {raw!r}") from None
    if not math.isfinite(value) or value <= 0:
        raise ConfigError(f"SYNC_INTERVAL must be a finite number greater than zero, got {raw!r}")
    return value


def parse_log_level(raw: str) -> int:
    try:
        return _LOG_LEVELS[raw.strip().upper()]
    except KeyError:
        raise ConfigError(f"LOG_LEVEL must be one of DEBUG, INFO, WARN, ERROR, got {raw!r}") from None


def parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Copy every new file from one folder to another, once.")
    p.add_argument("--input", type=str, default=None, help="Folder to copy from (env INPUT_DIR).")
    p.add_argument("--output", type=str, default=None, help="Folder to copy to (env OUTPUT_DIR).")
    p.add_argument("--data-dir", type=str, default=None, help="Folder holding the manifests (env DATA_DIR).")
    p.add_argument("--interval", type=str, default=None, help="Seconds between scans (env SYNC_INTERVAL).")
    p.add_argument("--once", action="store_true", default=None, help="Run a single scan and exit (env RUN_ONCE).")
    p.add_argument("--extensions", type=str, default=None, help="Comma separated extensions (env FILE_EXTENSIONS).")
    p.add_argument("--extension-mode", type=str, default=None, help="include or exclude (env EXTENSION_MODE).")
    p.add_argument("--flatten", action="store_true", default=None, help="Copy every file into the output root (env FLATTEN_OUTPUT).")
    p.add_argument("--ignore", type=str, default=None, help="Comma separated gitignore-style patterns (env IGNORE_PATTERNS).")
    p.add_argument("--log-level", type=str, default=None, help="DEBUG, INFO, WARN or ERROR (env LOG_LEVEL).")
    p.add_argument("--log-dir", type=str, default=None, help="Directory for log files (env LOG_DIR).")
    return p.parse_args(argv)


def build_effective_config(args: argparse.Namespace, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    env = os.environ if environ is None else environ

    def pick(flag, name: str, default: str) -> str:
        if flag is not None:
            return str(flag)
        return env.get(name, default)

    log_dir_raw = pick(args.log_dir, "LOG_DIR", "")

    return AppConfig(
        input_dir=Path(pick(args.input, "INPUT_DIR", DEFAULT_INPUT_DIR)),
        output_dir=Path(pick(args.output, "OUTPUT_DIR", DEFAULT_OUTPUT_DIR)),
        data_dir=Path(pick(args.data_dir, "DATA_DIR", DEFAULT_DATA_DIR)),
        sync_interval_sec=parse_interval(pick(args.interval, "SYNC_INTERVAL", "60")),
        run_once=True if args.once else parse_bool("RUN_ONCE", env.get("RUN_ONCE", "false")),
        extensions=parse_extensions(pick(args.extensions, "FILE_EXTENSIONS", "")),
        extension_mode=ExtensionMode.parse(pick(args.extension_mode, "EXTENSION_MODE", "include")),
        flatten_output=True if args.flatten else parse_bool("FLATTEN_OUTPUT", env.get("FLATTEN_OUTPUT", "false")),
        ignore_patterns=parse_patterns(pick(args.ignore, "IGNORE_PATTERNS", "")),
        log_level=parse_log_level(pick(args.log_level, "LOG_LEVEL", "INFO")),
        log_dir=Path(log_dir_raw) if log_dir_raw else None,
    )


def _is_subpath(child: Path, parent: Path) -> bool:
    try:
        child.resolve().relative_to(parent.resolve())
        return True
    except ValueError:
        return False


def validate_paths(cfg: AppConfig) -> AppConfig:
    source = cfg.input_dir.expanduser().resolve()
    output = cfg.output_dir.expanduser().resolve()
    data = cfg.data_dir.expanduser().resolve()

    if not source.exists() or not source.is_dir():
        raise ConfigError(f"Input folder does not exist or is not a folder: {source}")
    if source == output:
        raise ConfigError("Input and output folders must be different.")
    if _is_subpath(output, source):
        raise ConfigError("Output folder must NOT be inside input folder (would copy its own copies).")
    if _is_subpath(source, output):
        raise ConfigError("Input folder must NOT be inside output folder.")
    if _is_subpath(data, source):
        raise ConfigError("Data folder must NOT be inside input folder (manifests would be copied).")

    try:
        output.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StartupError(f"Cannot create output folder {output}: {e}") from e

    return dataclasses.replace(cfg, input_dir=source, output_dir=output, data_dir=data)


# -------------------------
# Hashing + copy helpers
# -------------------------

def sha256_file(path: Path, chunk_size: int = 1024 * 1024) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        while True:
            b = f.read(chunk_size)
            if not b:
                break
            h.update(b)
    return h.hexdigest()


def destination_for(output_root: Path, relative_path: str, flatten: bool) -> Path:
    """
    Map a source-relative path to its place under the output root.

    With flatten, only the base name is kept: two sources with the same name
    land on the same destination and the one processed last wins.
    """
    rel = PurePosixPath(relative_path)
    if flatten:
        return output_root / rel.name
    return output_root.joinpath(*rel.parts)


def ensure_parent(path: Path) -> bool:
    """Create the parent folder of path. Returns True if it had to be created."""
    if path.parent.is_dir():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    return True


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError:
        logging.getLogger(LOGGER_NAME).warning("Could not remove temporary file: %s", path)


def _copy_diagnostics(src: Path, dst_dir: Path) -> list[str]:
    notes = []
    if not os.access(src, os.R_OK):
        notes.append("Source file is not readable")
    if not os.access(dst_dir, os.W_OK):
        notes.append(f"Destination directory is not writable: {dst_dir}")
    return notes


def copy_file(src: Path, dst: Path, logger: Optional[logging.Logger] = None) -> None:
    """
    Copy src to dst with its metadata (mtime, permission bits).

    The bytes go to a temporary sibling of dst which is renamed over dst only
    once complete, so dst is either the previous file or a full copy.
    Raises CopyError on any failure.
    """
    try:
        created = ensure_parent(dst)
    except OSError as e:
        raise CopyError(f"Failed to create directory: {dst.parent}", src, dst, os_error=str(e)) from e
    if created and logger is not None:
        log_action(logger, "MKDIR", f"Created directory: {dst.parent}", path=dst.parent, is_dir=True, level=logging.DEBUG)

    tmp: Optional[Path] = None
    try:
        fd, tmp_name = tempfile.mkstemp(dir=dst.parent, prefix=".one_copy.", suffix=".part")
        os.close(fd)
        tmp = Path(tmp_name)
        shutil.copy2(src, tmp)
        os.replace(tmp, dst)
    except OSError as e:
        if tmp is not None:
            _discard(tmp)
        raise CopyError(
            f"Failed to copy: {src}",
            src,
            dst,
            os_error=str(e),
            diagnostics=_copy_diagnostics(src, dst.parent),
        ) from e


# -------------------------
# Manifest
# -------------------------

def _read_lines(path: Path) -> set[str]:
    with path.open("r", encoding="utf-8", errors="surrogateescape") as f:
        return {line.rstrip("\n") for line in f if line.strip()}


def _append_line(path: Path, line: str) -> None:
    with path.open("a", encoding="utf-8", errors="surrogateescape") as f:
        f.write(line + "\n")
        f.flush()
        os.fsync(f.fileno())


class ManifestStore:
    """
    Append-only record of what has already been copied.

    Two plain text files live in the data folder, one entry per line:
    copied_hashes.manifest holds content digests (the identity that counts) and
    copied_files.manifest holds relative paths for stores created before hashes
    were tracked. Nothing is ever removed here; clearing the files is left to
    the operator. Entries may repeat without changing membership.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = data_dir
        self.paths_file = data_dir / PATHS_MANIFEST
        self.hashes_file = data_dir / HASHES_MANIFEST
        self._paths: set[str] = set()
        self._hashes: set[str] = set()
        self._guard = threading.Lock()

    def init(self, logger: Optional[logging.Logger] = None) -> None:
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            for f in (self.paths_file, self.hashes_file):
                if not f.exists():
                    f.touch()
                    if logger is not None:
                        logger.info("Created new tracking file: %s", f)
            self.reload()
        except OSError as e:
            raise StartupError(f"Cannot initialize manifest store in {self.data_dir}: {e}") from e

    def reload(self) -> None:
        """Re-read both files so entries cleared or added by the operator are honored."""
        paths = _read_lines(self.paths_file)
        hashes = _read_lines(self.hashes_file)
        with self._guard:
            self._paths = paths
            self._hashes = hashes

    def contains_hash(self, digest: str) -> bool:
        with self._guard:
            return digest in self._hashes

    def contains_path(self, relative_path: str) -> bool:
        with self._guard:
            return relative_path in self._paths

    def is_copied(self, relative_path: str, digest: str) -> bool:
        return self.contains_hash(digest) or self.contains_path(relative_path)

    def record_copy(self, relative_path: str, digest: str) -> None:
        """
        Append both facts and fsync them before returning. Raises OSError.

        The hash goes first: if the path append fails the content is still known.
        """
        with self._guard:
            _append_line(self.hashes_file, digest)
            self._hashes.add(digest)
            _append_line(self.paths_file, relative_path)
            self._paths.add(relative_path)

    def counts(self) -> tuple[int, int]:
        with self._guard:
            return len(self._paths), len(self._hashes)


# -------------------------
# Sync scan
# -------------------------

@dataclass
class ScanResult:
    copied: int = 0
    skipped_already_copied: int = 0
    skipped_by_extension: int = 0
    skipped_ignored: int = 0
    errors: int = 0
    interrupted: bool = False

    def summary(self) -> str:
        text = (
            f"Sync complete - Copied: {self.copied}, "
            f"Skipped (already copied): {self.skipped_already_copied}, "
            f"Skipped (extension filter): {self.skipped_by_extension}, "
            f"Skipped (ignored): {self.skipped_ignored}, "
            f"Errors: {self.errors}"
        )
        if self.interrupted:
            text += " (interrupted)"
        return text


@dataclass
class SyncEngine:
    """
    One full pass over the input tree per scan() call.

    Every regular file goes through: ignore rules, extension filter, SHA-256,
    manifest lookup, then copy + record for content never seen before. Files
    are visited in sorted relative-path order. Per-file failures are logged and
    counted; the file is not recorded so the next scan tries it again.
    """

    cfg: AppConfig
    manifest: ManifestStore
    logger: logging.Logger
    stop_event: threading.Event = field(default_factory=threading.Event)

    def __post_init__(self) -> None:
        self.ignore = IgnoreMatcher(self.cfg.ignore_patterns)

    def iter_source_files(self) -> list[tuple[str, Path]]:
        root = self.cfg.input_dir
        found: list[tuple[str, Path]] = []
        for src in root.rglob("*"):
            try:
                if src.is_symlink() or not src.is_file():
                    continue
            except OSError:
                continue
            found.append((src.relative_to(root).as_posix(), src))
        found.sort()
        return found

    def scan(self) -> ScanResult:
        result = ScanResult()
        self.logger.info("Starting sync scan...")

        if not self.cfg.input_dir.is_dir():
            self.logger.error("Input folder is missing or not a folder: %s", self.cfg.input_dir)
            self.logger.info(result.summary())
            return result

        try:
            self.manifest.reload()
        except OSError as e:
            self.logger.error("Could not read manifest in %s, skipping scan | %s", self.manifest.data_dir, e)
            result.errors += 1
            self.logger.info(result.summary())
            return result

        for relative_path, src in self.iter_source_files():
            if self.stop_event.is_set():
                result.interrupted = True
                self.logger.info("Stop requested, ending scan early.")
                break
            self.process_file(relative_path, src, result)

        self.logger.info(result.summary())
        return result

    def process_file(self, relative_path: str, src: Path, result: ScanResult) -> None:
        if self.ignore.is_ignored(relative_path):
            result.skipped_ignored += 1
            log_action(self.logger, "SKIP", f"ignored: {relative_path}", path=src, is_dir=False, level=logging.DEBUG)
            return

        if not should_process(src.name, self.cfg.extensions, self.cfg.extension_mode):
            result.skipped_by_extension += 1
            log_action(self.logger, "SKIP", f"extension filter: {relative_path}", path=src, is_dir=False, level=logging.DEBUG)
            return

        try:
            digest = sha256_file(src)
        except OSError as e:
            result.errors += 1
            log_action(self.logger, "HASH", f"Could not calculate hash for: {relative_path} | {e}", path=src, is_dir=False, level=logging.ERROR)
            return

        if self.manifest.is_copied(relative_path, digest):
            result.skipped_already_copied += 1
            log_action(self.logger, "SKIP", f"already copied: {relative_path}", path=src, is_dir=False, level=logging.DEBUG)
            return

        dst = destination_for(self.cfg.output_dir, relative_path, self.cfg.flatten_output)
        try:
            copy_file(src, dst, self.logger)
        except CopyError as e:
            result.errors += 1
            self._report_copy_error(relative_path, e)
            return

        try:
            self.manifest.record_copy(relative_path, digest)
        except OSError as e:
            result.errors += 1
            log_action(
                self.logger,
                "RECORD",
                f"Copied but could not record {relative_path} (it will be copied again) | {e}",
                path=dst,
                is_dir=False,
                level=logging.ERROR,
            )
            return

        result.copied += 1
        log_action(self.logger, "COPY", f"Copied: {relative_path} (hash: {digest[:HASH_PREVIEW_LEN]}...)", path=dst, is_dir=False)

    def _report_copy_error(self, relative_path: str, e: CopyError) -> None:
        log_action(self.logger, "COPY", f"{e.message} ({relative_path})", path=e.dst, is_dir=False, level=logging.ERROR)
        self.logger.error("Source: %s", e.src)
        self.logger.error("Destination: %s", e.dst)
        if e.os_error:
            self.logger.error("OS error: %s", e.os_error)
        for note in e.diagnostics:
            self.logger.error(note)


# -------------------------
# Scheduler + lock marker
# -------------------------

class LockMarker:
    """PID file in the data folder, present while the service runs."""

    def __init__(self, path: Path):
        self.path = path

    def acquire(self) -> None:
        try:
            self.path.write_text(f"{os.getpid()}\n", encoding="utf-8")
        except OSError as e:
            raise StartupError(f"Cannot write lock file {self.path}: {e}") from e

    def release(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class SyncScheduler(threading.Thread):
    def __init__(
        self,
        engine: SyncEngine,
        interval_sec: float,
        run_once: bool,
        logger: logging.Logger,
        stop_event: threading.Event,
    ):
        super().__init__(name="one-copy-scheduler", daemon=True)
        self.engine = engine
        self.interval_sec = float(interval_sec)
        self.run_once = run_once
        self.logger = logger
        self.stop_event = stop_event
        self.scans = 0
        self.last_result: Optional[ScanResult] = None

    def run(self) -> None:
        while not self.stop_event.is_set():
            try:
                self.last_result = self.engine.scan()
            except Exception as e:
                self.logger.exception("Scan loop error: %s", e)
            self.scans += 1

            if self.run_once:
                self.logger.info("Run once complete. Exiting.")
                return
            if self.stop_event.is_set():
                break

            self.logger.info("Sleeping for %g seconds...", self.interval_sec)
            self.stop_event.wait(self.interval_sec)


def install_signal_handlers(stop_event: threading.Event, logger: logging.Logger) -> dict:
    """SIGTERM/SIGINT let the current file finish, then stop. Returns the previous handlers."""

    def _handle(signum, frame):
        logger.info("Shutting down... (%s)", signal.Signals(signum).name)
        stop_event.set()

    previous = {}
    for sig in (signal.SIGTERM, signal.SIGINT):
        previous[sig] = signal.signal(sig, _handle)
    return previous


def restore_signal_handlers(previous: dict) -> None:
    for sig, handler in previous.items():
        signal.signal(sig, handler)


def log_banner(logger: logging.Logger, cfg: AppConfig, manifest: ManifestStore) -> None:
    rule = "=" * 44
    logger.info(rule)
    logger.info("One-Time Copy Service Starting")
    logger.info(rule)
    logger.info("Input Directory: %s", cfg.input_dir)
    logger.info("Output Directory: %s", cfg.output_dir)
    logger.info("Tracking File: %s", manifest.paths_file)
    logger.info("Hash Tracking File: %s", manifest.hashes_file)
    logger.info("Sync Interval: %gs", cfg.sync_interval_sec)
    logger.info("Run Once Mode: %s", str(cfg.run_once).lower())
    if cfg.extensions:
        logger.info("Extension Filter: %s", ",".join(sorted(cfg.extensions)))
        logger.info("Extension Mode: %s (%sd extensions)", cfg.extension_mode.value, cfg.extension_mode.value)
    else:
        logger.info("Extension Filter: None (all files)")
    if cfg.ignore_patterns:
        logger.info("Ignore Patterns: %s", ", ".join(cfg.ignore_patterns))
    logger.info("Flatten Output: %s", str(cfg.flatten_output).lower())
    logger.info(rule)


# -------------------------
# Main
# -------------------------

def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)

    try:
        cfg = build_effective_config(args)
    except ConfigError as e:
        setup_logger().error("Config error: %s", e)
        return 2

    logger = setup_logger(cfg.log_level, cfg.log_dir.expanduser() if cfg.log_dir else None)

    try:
        cfg = validate_paths(cfg)
    except ConfigError as e:
        logger.error("Config error: %s", e)
        return 2
    except StartupError as e:
        logger.error("Startup error: %s", e)
        return 1

    manifest = ManifestStore(cfg.data_dir)
    log_banner(logger, cfg, manifest)

    lock = LockMarker(cfg.data_dir / LOCK_FILE)
    try:
        manifest.init(logger)
        lock.acquire()
    except StartupError as e:
        logger.error("Startup error: %s", e)
        return 1

    paths_count, hashes_count = manifest.counts()
    logger.info("Manifest: %d paths, %d hashes already copied", paths_count, hashes_count)

    stop_event = threading.Event()
    previous_handlers = install_signal_handlers(stop_event, logger)

    engine = SyncEngine(cfg, manifest, logger, stop_event)
    scheduler = SyncScheduler(
        engine=engine,
        interval_sec=cfg.sync_interval_sec,
        run_once=cfg.run_once,
        logger=logger,
        stop_event=stop_event,
    )

    scheduler.start()
    try:
        while scheduler.is_alive():
            scheduler.join(0.5)
    except KeyboardInterrupt:
        logger.info("Stopping...")
    finally:
        stop_event.set()
        scheduler.join()
        lock.release()
        restore_signal_handlers(previous_handlers)
        logger.info("Stopped.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
