#!/usr/bin/env python3
"""
===================================================================
REPOSITORY SIZE & SECRET SCANNER
===================================================================

PURPOSE:
    Shallow-clones a single GitHub repository and reports two kinds of
    risk in its current working tree: files larger than a configured
    size threshold, and files containing a probable leaked GitHub
    personal access token.

PIPELINE:
    1. Retrieve   - `git clone --depth 1` into a fresh temp directory
    2. Enumerate  - walk the snapshot, skipping .git and dotfiles, stat
                    every regular file on a bounded worker pool
    3. Classify   - oversized files are terminal; empty files are inert;
                    binary/media extensions are never content-scanned
    4. Detect     - stream each remaining file line by line and stop at
                    the first token match
    5. Report     - counts plus detail lists, emitted as JSON on stdout

REQUIREMENTS:
    pip install aiofiles tqdm
    The `git` executable must be on PATH.

USAGE:
    # input.json: {"clone_url": "https://github.com/org/repo", "size": 10}
    python repo_scanner.py input.json
    python repo_scanner.py input.json --output report.json --log-format json
    python repo_scanner.py input.json --custom-patterns patterns.json -v

CONFIGURATION:
    Set via environment variables (CLI flags take precedence):
    - CLONE_DEPTH: Git shallow clone depth (default: 1)
    - CLONE_TIMEOUT_SECONDS: Abort the clone after this many seconds (default: 300)
    - MAX_CONCURRENT_FILES: Parallel stat/scan operations (default: 50)
    - CUSTOM_PATTERNS_FILE: Path to extra token regex patterns JSON
    - LOG_FORMAT: text|json (default: text)
    - SHOW_PROGRESS: true|false (default: true)

OUTPUT:
    {
      "total_big_files": 1,
      "big_files": [{"name": "assets/video.mp4", "size_mb": 12.5}],
      "total_secret_files": 1,
      "secret_files": [{"name": "config/settings.py", "line": 7}]
    }

===================================================================
"""
import argparse
import asyncio
import json
import logging
import os
import re
import shutil
import stat
import sys
import tempfile
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, Dict, FrozenSet, List, Optional, Tuple

import aiofiles
from tqdm import tqdm

__version__ = "1.0.0"


# ===================================================================
# CONFIGURATION & CONSTANTS
# ===================================================================

# Environment-driven configuration
CLONE_DEPTH = int(os.environ.get("CLONE_DEPTH", "1"))
CLONE_TIMEOUT_SECONDS = int(os.environ.get("CLONE_TIMEOUT_SECONDS", "300"))
MAX_CONCURRENT_FILES = int(os.environ.get("MAX_CONCURRENT_FILES", "50"))
CUSTOM_PATTERNS_FILE = os.environ.get("CUSTOM_PATTERNS_FILE", "")
LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # text|json
SHOW_PROGRESS = os.environ.get("SHOW_PROGRESS", "true").lower() == "true"

# Operational constants
BYTES_PER_MB = 1024 * 1024
GIT_METADATA_DIR = ".git"
CLONE_DIR_PREFIX = "repo-"
CLONE_ERROR_PREVIEW_CHARS = 200

# Accepted repository URLs (HTTPS or SSH, github.com only)
GITHUB_URL_PATTERN = re.compile(
    r'^(https://|git@)github\.com[/:][\w\-]+/[\w\-]+(\.git)?$'
)

# GitHub classic personal access token
GITHUB_TOKEN_PATTERN = re.compile(r'ghp_[0-9a-zA-Z]{36}')

DEFAULT_TOKEN_PATTERNS: Tuple[Tuple[re.Pattern, str], ...] = (
    (GITHUB_TOKEN_PATTERN, "GITHUB_TOKEN"),
)

# Extensions never content-scanned (binary, archive, image, media, font)
SKIP_SCAN_EXTENSIONS: FrozenSet[str] = frozenset({
    # Binary / Compiled
    '.pdf', '.exe', '.dll', '.so', '.a', '.o', '.jar', '.class',
    # Archives
    '.zip', '.gz', '.tar', '.rar', '.7z',
    # Images
    '.png', '.jpg', '.jpeg', '.gif', '.bmp', '.tiff', '.ico',
    # Vector images (often one enormous line)
    '.svg',
    # Audio / Video
    '.mp3', '.wav', '.mp4', '.avi', '.mov', '.wmv',
    # Fonts
    '.ttf', '.otf', '.woff', '.woff2',
})


# ===================================================================
# LOGGING SETUP
# ===================================================================

class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add custom fields
        if hasattr(record, 'repo'):
            log_data["repo"] = record.repo
        if hasattr(record, 'file_count'):
            log_data["file_count"] = record.file_count

        return json.dumps(log_data)


def setup_logging(log_format: str = "text", stream=None) -> logging.Logger:
    """
    Setup logging with either text or JSON format.

    Logs default to stderr so that stdout stays reserved for the report.
    """
    logger = logging.getLogger(__name__)
    logger.setLevel(logging.INFO)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)

    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))

    logger.addHandler(handler)
    return logger


logger = setup_logging(LOG_FORMAT)


# ===================================================================
# ERRORS
# ===================================================================

class ScanError(Exception):
    """Base class for errors that abort a scan run."""


class InvalidInputError(ScanError):
    """Scan input file is unreadable, malformed or fails validation."""


class CloneError(ScanError):
    """Remote repository could not be fetched."""


class EnumerationError(ScanError):
    """Snapshot directory tree could not be walked."""


# ===================================================================
# DATA MODEL
# ===================================================================

@dataclass(frozen=True)
class ScanTarget:
    """Repository to scan and the size threshold in megabytes."""
    clone_url: str
    size_mb: int


@dataclass(frozen=True)
class FileDescriptor:
    """A regular file discovered in the snapshot."""
    name: str          # path relative to the snapshot root
    full_path: Path
    size: int          # bytes, read once at enumeration time


@dataclass
class OversizedFinding:
    name: str
    size_mb: float

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "size_mb": self.size_mb}


@dataclass
class SecretFinding:
    name: str
    line: int

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "line": self.line}


@dataclass
class ScanReport:
    """Final scan result. Lists are kept exactly as the classifier produced them."""
    total_big_files: int
    big_files: List[OversizedFinding] = field(default_factory=list)
    total_secret_files: int = 0
    secret_files: List[SecretFinding] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_big_files": self.total_big_files,
            "big_files": [f.to_dict() for f in self.big_files],
            "total_secret_files": self.total_secret_files,
            "secret_files": [f.to_dict() for f in self.secret_files],
        }


class WalkDirective(Enum):
    """Decision taken by the tree walker for a single entry."""
    DESCEND = "descend"
    SKIP = "skip"
    ABORT = "abort"


class DetectionOutcome(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    READ_ERROR = "read_error"


@dataclass(frozen=True)
class DetectionResult:
    outcome: DetectionOutcome
    line: int = 0
    pattern_name: Optional[str] = None


class Verdict(Enum):
    """Classification of one file."""
    OVERSIZED = "oversized"
    EMPTY = "empty"
    SKIPPED_EXTENSION = "skipped_extension"
    SECRET = "secret"
    CLEAN = "clean"
    UNREADABLE = "unreadable"


@dataclass(frozen=True)
class FileClassification:
    descriptor: FileDescriptor
    verdict: Verdict
    line: int = 0


# ===================================================================
# SETTINGS
# ===================================================================

@dataclass(frozen=True)
class ScannerSettings:
    """
    Immutable per-run configuration shared by every pipeline stage.

    Built once (normally via `from_environment`) and passed by reference;
    use `dataclasses.replace` or `with_custom_patterns` to derive variants.
    """
    clone_depth: int = CLONE_DEPTH
    clone_timeout: Optional[float] = CLONE_TIMEOUT_SECONDS or None
    max_concurrent_files: int = MAX_CONCURRENT_FILES
    token_patterns: Tuple[Tuple[re.Pattern, str], ...] = DEFAULT_TOKEN_PATTERNS
    skip_extensions: FrozenSet[str] = SKIP_SCAN_EXTENSIONS
    show_progress: bool = SHOW_PROGRESS

    @classmethod
    def from_environment(cls) -> "ScannerSettings":
        """Settings from the environment-driven module constants (custom patterns excluded)."""
        return cls(
            clone_depth=CLONE_DEPTH,
            clone_timeout=CLONE_TIMEOUT_SECONDS or None,
            max_concurrent_files=MAX_CONCURRENT_FILES,
            show_progress=SHOW_PROGRESS,
        )

    def with_custom_patterns(self, patterns: List[Tuple[re.Pattern, str]]) -> "ScannerSettings":
        """Return a copy whose token patterns are extended by `patterns`."""
        return replace(self, token_patterns=self.token_patterns + tuple(patterns))


def load_custom_patterns(filepath: str) -> List[Tuple[re.Pattern, str]]:
    """
    Load extra token regex patterns from a JSON file.

    Expected format:
    {
      "patterns": [
        {"name": "GITHUB_FINE_GRAINED", "regex": "github_pat_[A-Za-z0-9_]{82}"}
      ]
    }

    Invalid entries are logged and skipped; a missing or unparsable file
    yields an empty list.

    Args:
        filepath: Path to custom patterns JSON file

    Returns:
        List of (compiled_pattern, pattern_name) tuples
    """
    custom_patterns = []

    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)

        for pattern_def in data.get('patterns', []):
            if not isinstance(pattern_def, dict):
                logger.warning(f"Skipping pattern entry {pattern_def!r}: not an object")
                continue

            name = pattern_def.get('name', 'CUSTOM_PATTERN')
            regex = pattern_def.get('regex')

            if not regex:
                logger.warning(f"Skipping pattern {name}: no regex provided")
                continue

            try:
                custom_patterns.append((re.compile(regex), name))
                logger.info(f"Loaded custom pattern: {name}")
            except (re.error, TypeError) as e:
                logger.error(f"Invalid regex for pattern {name}: {e}")

    except FileNotFoundError:
        logger.warning(f"Custom patterns file not found: {filepath}")
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in custom patterns file: {e}")
    except (OSError, AttributeError) as e:
        logger.error(f"Error loading custom patterns: {e}")

    return custom_patterns


# ===================================================================
# INPUT
# ===================================================================

def read_scan_target(path: Path) -> ScanTarget:
    """
    Read the scan input file (`{"clone_url": ..., "size": ...}`).

    Missing keys fall back to empty values and are rejected later by
    `validate_target`.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except OSError as e:
        raise InvalidInputError(f"Cannot read input file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise InvalidInputError(f"Invalid JSON in input file {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise InvalidInputError(f"Input file {path} is not valid UTF-8: {e}") from e

    if not isinstance(data, dict):
        raise InvalidInputError(f"Input file {path} must contain a JSON object")

    return ScanTarget(clone_url=data.get("clone_url", ""), size_mb=data.get("size", 0))


def validate_target(target: ScanTarget) -> None:
    """Raise InvalidInputError unless the target names a GitHub repo and a positive size."""
    if not target.clone_url:
        raise InvalidInputError("clone URL is required")

    if not isinstance(target.clone_url, str) or not GITHUB_URL_PATTERN.match(target.clone_url):
        raise InvalidInputError("clone URL must be a valid GitHub link")

    size = target.size_mb
    if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
        raise InvalidInputError("size must be a positive integer")


# ===================================================================
# REPOSITORY RETRIEVAL
# ===================================================================

async def clone_repo_async(clone_url: str, settings: ScannerSettings) -> Path:
    """
    Shallow-clone a repository into a fresh temporary directory.

    Only the latest revision is fetched. On any failure the directory is
    removed before the error propagates; on success the caller owns it.

    Args:
        clone_url: Repository URL understood by `git clone`
        settings: Clone depth and timeout

    Returns:
        Path to the cloned working tree

    Raises:
        CloneError: git is missing, exited non-zero, or timed out
    """
    repo_dir = Path(tempfile.mkdtemp(prefix=CLONE_DIR_PREFIX))
    logger.info(f"Cloning {clone_url} into {repo_dir}", extra={"repo": clone_url})

    proc = None
    try:
        try:
            proc = await asyncio.create_subprocess_exec(
                "git", "clone",
                "--depth", str(settings.clone_depth),
                "--single-branch",
                "--no-tags",
                clone_url,
                str(repo_dir),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
            )
        except FileNotFoundError as e:
            raise CloneError("git executable not found on PATH") from e

        try:
            _, stderr = await asyncio.wait_for(
                proc.communicate(),
                timeout=settings.clone_timeout
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise CloneError(
                f"Clone of {clone_url} timed out after {settings.clone_timeout}s"
            ) from None

        if proc.returncode != 0:
            error_msg = stderr.decode('utf-8', errors='ignore').strip()[:CLONE_ERROR_PREVIEW_CHARS]
            raise CloneError(f"git clone exited with status {proc.returncode}: {error_msg}")

    except BaseException:
        # git must be gone before its target directory is removed
        if proc is not None and proc.returncode is None:
            try:
                proc.kill()
            except ProcessLookupError:
                pass
            await proc.wait()
        shutil.rmtree(repo_dir, ignore_errors=True)
        raise

    logger.info(f"✓ Successfully cloned {clone_url}", extra={"repo": clone_url})
    return repo_dir


def remove_snapshot(repo_dir: Path) -> bool:
    """Delete a snapshot directory. Failures are logged, not raised."""
    logger.info(f"Cleaning up temporary directory: {repo_dir}")
    try:
        shutil.rmtree(repo_dir)
    except OSError as e:
        logger.error(f"Failed to remove temporary directory {repo_dir}: {e}")
        return False
    return True


@asynccontextmanager
async def repository_snapshot(clone_url: str, settings: ScannerSettings) -> AsyncIterator[Path]:
    """Clone `clone_url` and yield the snapshot root; always removed on exit."""
    repo_dir = await clone_repo_async(clone_url, settings)
    try:
        yield repo_dir
    finally:
        remove_snapshot(repo_dir)


# ===================================================================
# FILE ENUMERATION
# ===================================================================

def visit_entry(name: str, error: Optional[OSError] = None) -> WalkDirective:
    """
    Decide what the walker does with one directory entry.

    Args:
        name: Entry name (not the full path)
        error: Error raised while reading the entry, if any

    Returns:
        ABORT on error, SKIP for the metadata directory and dot-entries,
        DESCEND otherwise
    """
    if error is not None:
        return WalkDirective.ABORT
    if name == GIT_METADATA_DIR or name.startswith("."):
        return WalkDirective.SKIP
    return WalkDirective.DESCEND


def collect_candidate_paths(root: Path) -> List[Path]:
    """
    Walk `root` and return every non-directory entry that survives `visit_entry`.

    Directories only control recursion. Symlinks are never followed; they
    are returned here and dropped once stat shows they are not regular.

    Raises:
        EnumerationError: a directory or entry could not be read
    """
    candidates: List[Path] = []
    pending = [root]

    while pending:
        directory = pending.pop()
        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as e:
            if visit_entry(os.path.basename(directory), e) is WalkDirective.ABORT:
                raise EnumerationError(f"Cannot read directory {directory}: {e}") from e
            continue

        for entry in entries:
            if visit_entry(entry.name) is WalkDirective.SKIP:
                logger.debug(f"Skipping hidden entry: {entry.path}")
                continue

            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError as e:
                if visit_entry(entry.name, e) is WalkDirective.ABORT:
                    raise EnumerationError(f"Cannot access {entry.path}: {e}") from e
                continue

            if is_dir:
                pending.append(Path(entry.path))
            else:
                candidates.append(Path(entry.path))

    return candidates


async def _stat_file(
    file_path: Path,
    root: Path,
    semaphore: asyncio.Semaphore
) -> Optional[FileDescriptor]:
    """Stat one candidate under the semaphore; None for non-regular or unreadable files."""
    async with semaphore:
        try:
            st = await asyncio.get_running_loop().run_in_executor(None, os.lstat, file_path)
        except OSError as e:
            logger.warning(f"Cannot stat {file_path}, omitting: {e}")
            return None

    if not stat.S_ISREG(st.st_mode):
        logger.debug(f"Skipping non-regular file: {file_path}")
        return None

    return FileDescriptor(
        name=str(file_path.relative_to(root)),
        full_path=file_path,
        size=st.st_size,
    )


async def enumerate_files_async(root: Path, settings: ScannerSettings) -> List[FileDescriptor]:
    """
    List every regular, non-hidden file in the snapshot outside `.git`.

    The tree walk runs once in a worker thread; per-file stats then fan out
    over a pool bounded by `settings.max_concurrent_files` and are joined
    before returning. Result order is unspecified.

    Raises:
        EnumerationError: the tree walk failed
    """
    root = Path(root)
    candidates = await asyncio.get_running_loop().run_in_executor(
        None, collect_candidate_paths, root
    )

    semaphore = asyncio.Semaphore(settings.max_concurrent_files)
    results = await asyncio.gather(
        *(_stat_file(path, root, semaphore) for path in candidates)
    )

    files = [descriptor for descriptor in results if descriptor is not None]
    logger.info(f"Enumerated {len(files)} files", extra={"file_count": len(files)})
    return files


# ===================================================================
# SECRET DETECTION
# ===================================================================

async def detect_first_token_async(
    file_path: Path,
    patterns: Tuple[Tuple[re.Pattern, str], ...] = DEFAULT_TOKEN_PATTERNS
) -> DetectionResult:
    """
    Stream a file and report the first line containing a token.

    Scanning stops at the first match. Open and read failures are logged
    and reported as READ_ERROR; this function never raises for I/O.

    Args:
        file_path: Absolute path to the file
        patterns: (compiled_pattern, pattern_name) pairs to try on each line

    Returns:
        DetectionResult with a 1-based line number when found
    """
    line_number = 0
    try:
        # Line numbers count '\n'-terminated lines only. Undecodable bytes become
        # U+FFFD so they still break a token run.
        async with aiofiles.open(file_path, 'r', encoding='utf-8', errors='replace', newline='\n') as f:
            async for line in f:
                line_number += 1
                for pattern, pattern_name in patterns:
                    if pattern.search(line):
                        return DetectionResult(DetectionOutcome.FOUND, line_number, pattern_name)
    except OSError as e:
        logger.warning(f"Failed to read {file_path} at line {line_number + 1}: {e}")
        return DetectionResult(DetectionOutcome.READ_ERROR)

    return DetectionResult(DetectionOutcome.NOT_FOUND)


async def find_token_line_async(
    file_path: Path,
    patterns: Tuple[Tuple[re.Pattern, str], ...] = DEFAULT_TOKEN_PATTERNS
) -> int:
    """Line number (1-based) of the first token in `file_path`, or 0."""
    result = await detect_first_token_async(file_path, patterns)
    return result.line


# ===================================================================
# CLASSIFICATION
# ===================================================================

def file_extension(name: str) -> str:
    """Lowercase extension including the dot, or '' when the name has none."""
    return os.path.splitext(name)[1].lower()


async def classify_file_async(
    descriptor: FileDescriptor,
    limit_bytes: int,
    settings: ScannerSettings
) -> FileClassification:
    """
    Classify a single file.

    Size is checked first: an oversized file is never content-scanned.
    """
    if descriptor.size > limit_bytes:
        return FileClassification(descriptor, Verdict.OVERSIZED)

    if descriptor.size == 0:
        return FileClassification(descriptor, Verdict.EMPTY)

    ext = file_extension(descriptor.name)
    if ext in settings.skip_extensions:
        logger.debug(f"Skipping secret scan for extension {ext}: {descriptor.name}")
        return FileClassification(descriptor, Verdict.SKIPPED_EXTENSION)

    result = await detect_first_token_async(descriptor.full_path, settings.token_patterns)
    if result.outcome is DetectionOutcome.FOUND:
        logger.debug(f"Token ({result.pattern_name}) in {descriptor.name}:{result.line}")
        return FileClassification(descriptor, Verdict.SECRET, result.line)
    if result.outcome is DetectionOutcome.READ_ERROR:
        return FileClassification(descriptor, Verdict.UNREADABLE)
    return FileClassification(descriptor, Verdict.CLEAN)


async def classify_all_async(
    files: List[FileDescriptor],
    size_mb: int,
    settings: ScannerSettings
) -> List[FileClassification]:
    """Classify every file, at most `max_concurrent_files` at a time, in input order."""
    limit_bytes = size_mb * BYTES_PER_MB
    semaphore = asyncio.Semaphore(settings.max_concurrent_files)

    with tqdm(
        total=len(files),
        desc="Scanning files",
        unit="file",
        file=sys.stderr,
        disable=not settings.show_progress
    ) as pbar:

        async def _classify(descriptor: FileDescriptor) -> FileClassification:
            async with semaphore:
                classification = await classify_file_async(descriptor, limit_bytes, settings)
            pbar.update(1)
            return classification

        return list(await asyncio.gather(*(_classify(f) for f in files)))


async def classify_files_async(
    files: List[FileDescriptor],
    size_mb: int,
    settings: ScannerSettings
) -> Tuple[List[OversizedFinding], List[SecretFinding]]:
    """
    Partition files into oversized findings and secret findings.

    Args:
        files: Descriptors produced by `enumerate_files_async`
        size_mb: Threshold; files strictly larger than this many MiB are oversized
        settings: Token patterns, skip set and concurrency bound

    Returns:
        (oversized findings, secret findings)
    """
    big_files: List[OversizedFinding] = []
    secret_files: List[SecretFinding] = []

    for classification in await classify_all_async(files, size_mb, settings):
        descriptor = classification.descriptor
        if classification.verdict is Verdict.OVERSIZED:
            big_files.append(OversizedFinding(descriptor.name, descriptor.size / BYTES_PER_MB))
        elif classification.verdict is Verdict.SECRET:
            secret_files.append(SecretFinding(descriptor.name, classification.line))

    return big_files, secret_files


def build_report(
    big_files: List[OversizedFinding],
    secret_files: List[SecretFinding]
) -> ScanReport:
    return ScanReport(
        total_big_files=len(big_files),
        big_files=list(big_files),
        total_secret_files=len(secret_files),
        secret_files=list(secret_files),
    )


# ===================================================================
# MAIN ORCHESTRATION
# ===================================================================

async def run_scan_async(target: ScanTarget, settings: ScannerSettings) -> ScanReport:
    """
    Clone, enumerate, classify and aggregate one repository.

    The snapshot is removed whether or not the scan succeeds.

    Raises:
        InvalidInputError, CloneError, EnumerationError
    """
    validate_target(target)
    logger.info(f"Scanning repository: {target.clone_url}", extra={"repo": target.clone_url})

    async with repository_snapshot(target.clone_url, settings) as repo_dir:
        files = await enumerate_files_async(repo_dir, settings)
        logger.info(f"Found {len(files)} files in repository. Filtering...")
        big_files, secret_files = await classify_files_async(files, target.size_mb, settings)

    report = build_report(big_files, secret_files)
    logger.info(
        f"Summary: {report.total_big_files} oversized, {report.total_secret_files} with secrets"
    )
    return report


def write_report(report: ScanReport, output_path: Optional[Path] = None, indent: int = 2) -> None:
    """Write the report as JSON to `output_path`, or to stdout when None."""
    payload = json.dumps(report.to_dict(), indent=indent)
    if output_path is None:
        print(payload)
        return

    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(payload + "\n")
    logger.info(f"JSON report written to {output_path}")


# ===================================================================
# COMMAND LINE INTERFACE
# ===================================================================

def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Scan a GitHub repository for oversized files and leaked GitHub tokens',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
INPUT FILE:
  {"clone_url": "https://github.com/org/repo", "size": 10}
  size is the oversized-file threshold in megabytes (MiB)

ENVIRONMENT VARIABLES (Optional):
  CLONE_DEPTH             Git shallow clone depth (default: 1)
  CLONE_TIMEOUT_SECONDS   Clone timeout in seconds (default: 300)
  MAX_CONCURRENT_FILES    Parallel stat/scan operations (default: 50)
  CUSTOM_PATTERNS_FILE    Extra token regex patterns JSON file
  LOG_FORMAT              text|json (default: text)
  SHOW_PROGRESS           true|false (default: true)

EXIT CODES:
  0   Success
  1   Error (invalid input, clone failure, unreadable tree)
  130 Interrupted by user (Ctrl+C)
        '''
    )

    parser.add_argument(
        'input_file',
        type=Path,
        help='JSON file with clone_url and size'
    )

    parser.add_argument(
        '-o', '--output',
        type=Path,
        metavar='FILE',
        help='Write the JSON report to FILE instead of stdout'
    )

    parser.add_argument(
        '--indent',
        type=int,
        default=2,
        help='JSON report indentation (default: 2)'
    )

    parser.add_argument(
        '--custom-patterns',
        type=str,
        metavar='FILE',
        default=CUSTOM_PATTERNS_FILE,
        help='Path to extra token regex patterns JSON file'
    )

    parser.add_argument(
        '--clone-timeout',
        type=int,
        default=CLONE_TIMEOUT_SECONDS,
        metavar='SECONDS',
        help=f'Abort the clone after SECONDS, 0 disables (default: {CLONE_TIMEOUT_SECONDS})'
    )

    parser.add_argument(
        '--max-concurrent-files',
        type=int,
        default=MAX_CONCURRENT_FILES,
        metavar='N',
        help=f'Parallel stat/scan operations (default: {MAX_CONCURRENT_FILES})'
    )

    parser.add_argument(
        '--log-format',
        type=str,
        choices=['text', 'json'],
        default=LOG_FORMAT,
        help=f'Logging format (default: {LOG_FORMAT})'
    )

    parser.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable the progress bar'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose debug logging'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    args = parser.parse_args(argv)
    if args.max_concurrent_files < 1:
        parser.error("--max-concurrent-files must be at least 1")
    return args


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with validation and error handling."""
    args = parse_arguments(argv)

    setup_logging(args.log_format)
    if args.verbose:
        logger.setLevel(logging.DEBUG)

    # Override config from CLI args
    settings = replace(
        ScannerSettings.from_environment(),
        clone_timeout=args.clone_timeout or None,
        max_concurrent_files=args.max_concurrent_files,
        show_progress=SHOW_PROGRESS and not args.no_progress,
    )
    if args.custom_patterns:
        settings = settings.with_custom_patterns(load_custom_patterns(args.custom_patterns))

    try:
        target = read_scan_target(args.input_file)
        report = asyncio.run(run_scan_async(target, settings))
        write_report(report, args.output, args.indent)
    except KeyboardInterrupt:
        logger.warning("Scan interrupted by user")
        return 130
    except InvalidInputError as e:
        logger.error(f"Invalid input: {e}")
        return 1
    except ScanError as e:
        logger.error(f"Scan failed: {e}")
        return 1
    except OSError as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1

    logger.info("Scan completed successfully.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
