"""
Concurrency-bounded file walker.

Expands include/exclude globs under a root, then analyzes each file with
at most `config.concurrency` files in flight. Per-file problems (unreadable
files, oversized or binary files, analysis timeouts) degrade to zero
findings for that file and are counted in ScanStats.
"""
import asyncio
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, List, Optional, Union

import aiofiles
from tqdm import tqdm

from secret_scanner.analyzer import analyze
from secret_scanner.config import ScanConfiguration
from secret_scanner.errors import FileReadError, ScanPathNotFound, TimeoutExceeded
from secret_scanner.models import Finding, ScanStats
from secret_scanner.patterns import SignatureCatalog, get_default_catalog

logger = logging.getLogger(__name__)

# Binary file extensions to skip without reading
BINARY_FILE_EXTENSIONS = {
    # Images
    '.png', '.jpg', '.jpeg', '.gif', '.bmp', '.ico', '.webp', '.tiff', '.psd',
    # Media
    '.mp4', '.avi', '.mov', '.webm', '.mp3', '.wav', '.flac', '.ogg',
    # Archives
    '.zip', '.tar', '.gz', '.bz2', '.7z', '.rar', '.xz', '.tgz',
    # Executables, libraries & compiled objects
    '.exe', '.dll', '.so', '.dylib', '.bin', '.wasm', '.pyc', '.class', '.o', '.a',
    # Documents
    '.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx',
    # Fonts
    '.ttf', '.otf', '.woff', '.woff2', '.eot',
    # Databases
    '.db', '.sqlite', '.sqlite3',
}

BINARY_SAMPLE_SIZE = 8192         # Bytes sniffed for binary detection
BINARY_NON_TEXT_THRESHOLD = 0.30  # Share of non-text bytes marking a file binary

_TEXT_BYTES = bytes({7, 8, 9, 10, 12, 13, 27} | set(range(0x20, 0x100)) - {0x7f})


def is_binary_file(file_path: Path, sample_size: int = BINARY_SAMPLE_SIZE) -> bool:
    """
    Detect binary content from the first chunk of a file.

    A null byte, or more than 30% non-text bytes, marks the file binary.

    Raises:
        OSError: the file cannot be opened
    """
    with open(file_path, 'rb') as f:
        chunk = f.read(sample_size)

    if not chunk:
        return False
    if b'\x00' in chunk:
        return True
    non_text = sum(1 for byte in chunk if byte not in _TEXT_BYTES)
    return non_text / len(chunk) > BINARY_NON_TEXT_THRESHOLD


# ===================================================================
# GLOB SELECTION
# ===================================================================

def matches_glob(relative_path: str, pattern: str) -> bool:
    """
    Case-sensitive fnmatch against a POSIX path relative to the scan root.

    `*` crosses directory separators; a leading `**/` also matches at the
    root (so `**/*.js` selects `app.js`).
    """
    if fnmatchcase(relative_path, pattern):
        return True
    return pattern.startswith("**/") and fnmatchcase(relative_path, pattern[3:])


def matches_any(relative_path: str, patterns: Iterable[str]) -> bool:
    return any(matches_glob(relative_path, pattern) for pattern in patterns)


def collect_files(root: Path, config: ScanConfiguration) -> List[Path]:
    """
    Walk `root` and return files selected by include minus exclude.

    Excluded directories are pruned instead of descended into. Symlinked
    directories are not followed.
    """
    selected = []

    def _on_error(error: OSError) -> None:
        logger.debug(f"Cannot access {error.filename}: {error}")

    for dirpath, dirs, files in os.walk(root, onerror=_on_error):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else rel_dir + "/"

        # Filter directories in-place to skip excluded trees
        dirs[:] = sorted(d for d in dirs if not matches_any(f"{prefix}{d}/", config.exclude))

        for filename in sorted(files):
            relative_path = prefix + filename
            if matches_any(relative_path, config.exclude):
                continue
            if not matches_any(relative_path, config.include):
                continue
            selected.append(Path(dirpath) / filename)

    return selected


# ===================================================================
# SCANNING
# ===================================================================

async def scan_file_async(
    file_path: Path,
    config: ScanConfiguration,
    catalog: SignatureCatalog,
    executor: ThreadPoolExecutor,
    stats: ScanStats,
) -> List[Finding]:
    """
    Scan a single file, absorbing per-file failures.

    Args:
        file_path: File to scan (also the path reported on findings)
        config: Scan configuration
        catalog: Signatures to apply
        executor: Pool the synchronous analysis runs on
        stats: Counters updated for skips, failures and timeouts

    Returns:
        Findings for the file; empty when skipped, unreadable or timed out
    """
    display_path = str(file_path)

    if file_path.suffix.lower() in BINARY_FILE_EXTENSIONS:
        logger.debug(f"Skipping binary file (extension): {display_path}")
        stats.files_skipped_binary += 1
        return []

    try:
        # Check file size BEFORE reading
        file_size = file_path.stat().st_size
        if file_size > config.max_file_size:
            logger.debug(f"Skipping large file: {display_path} ({file_size} bytes)")
            stats.files_skipped_size += 1
            return []

        if is_binary_file(file_path):
            logger.debug(f"Skipping binary file (content): {display_path}")
            stats.files_skipped_binary += 1
            return []

        async with aiofiles.open(file_path, 'r', encoding='utf-8', errors='ignore') as f:
            content = await f.read()
    except OSError as e:
        error = FileReadError(display_path, e)
        logger.debug(str(error), extra={"file_path": display_path})
        stats.files_failed += 1
        return []

    stats.files_scanned += 1
    if not content:
        return []

    loop = asyncio.get_running_loop()
    started = asyncio.Event()

    def _analyze() -> List[Finding]:
        loop.call_soon_threadsafe(started.set)
        return analyze(content, display_path, config, catalog)

    future = loop.run_in_executor(executor, _analyze)
    try:
        # The deadline covers running time only, not time queued behind
        # workers still busy with earlier timed-out files
        await started.wait()
        return await asyncio.wait_for(asyncio.shield(future), timeout=config.timeout)
    except asyncio.TimeoutError:
        # The worker keeps running; its late result is dropped
        future.cancel()
        error = TimeoutExceeded(display_path, config.timeout)
        logger.warning(str(error), extra={"file_path": display_path})
        stats.files_timed_out += 1
        return []
    except Exception as e:
        logger.error(f"Error analyzing file {display_path}: {e}", extra={"file_path": display_path})
        stats.files_failed += 1
        return []


async def _scan_directory(
    root: Path,
    config: ScanConfiguration,
    catalog: SignatureCatalog,
    executor: ThreadPoolExecutor,
    stats: ScanStats,
) -> List[Finding]:
    all_findings: List[Finding] = []
    file_semaphore = asyncio.Semaphore(config.concurrency)

    # Run discovery in the default pool to avoid blocking the event loop
    files_to_scan = await asyncio.get_running_loop().run_in_executor(
        None, collect_files, root, config
    )
    logger.info(f"Found {len(files_to_scan)} files to scan", extra={"scan_root": str(root)})

    async def _scan_with_semaphore(file_path: Path) -> List[Finding]:
        async with file_semaphore:
            return await scan_file_async(file_path, config, catalog, executor, stats)

    scan_tasks = [_scan_with_semaphore(file_path) for file_path in files_to_scan]

    with tqdm(
        total=len(scan_tasks),
        desc="Scanning files",
        unit="file",
        disable=not config.show_progress,
    ) as pbar:
        for coro in asyncio.as_completed(scan_tasks):
            try:
                all_findings.extend(await coro)
            except Exception as e:
                logger.error(f"Scan task failed: {e}")
                stats.files_failed += 1
            pbar.update(1)

    return all_findings


async def scan_path(
    root: Union[str, os.PathLike],
    config: Optional[ScanConfiguration] = None,
    *,
    catalog: Optional[SignatureCatalog] = None,
    stats: Optional[ScanStats] = None,
) -> List[Finding]:
    """
    Scan a file or directory tree for credentials.

    Args:
        root: File or directory to scan
        config: Scan configuration (defaults when omitted)
        catalog: Signature catalog (the shared default when omitted)
        stats: Optional counters object filled in during the scan

    Returns:
        All findings. Order across files is unspecified; within a file
        findings follow source order.

    Raises:
        ScanPathNotFound: `root` does not exist
        ConfigurationError: `config` fails validation
    """
    config = (config or ScanConfiguration()).validate()
    catalog = catalog or get_default_catalog()
    stats = stats if stats is not None else ScanStats()

    root_path = Path(root)
    if not root_path.exists():
        raise ScanPathNotFound(str(root))

    logger.info(f"Starting scan: {root_path}", extra={"scan_root": str(root_path)})
    started = time.monotonic()
    executor = ThreadPoolExecutor(max_workers=config.concurrency, thread_name_prefix="secret-scan")
    try:
        if root_path.is_dir():
            findings = await _scan_directory(root_path, config, catalog, executor, stats)
        else:
            findings = await scan_file_async(root_path, config, catalog, executor, stats)
    finally:
        # Timed-out analyses keep their worker thread; don't wait for them
        executor.shutdown(wait=False, cancel_futures=True)
        stats.duration = time.monotonic() - started

    logger.info(
        f"Scan complete. Found {len(findings)} potential credentials in {stats.files_scanned} files",
        extra={"scan_root": str(root_path), "finding_count": len(findings)},
    )
    return findings


def scan_path_sync(
    root: Union[str, os.PathLike],
    config: Optional[ScanConfiguration] = None,
    *,
    catalog: Optional[SignatureCatalog] = None,
    stats: Optional[ScanStats] = None,
) -> List[Finding]:
    """Blocking wrapper around scan_path() for callers without an event loop."""
    return asyncio.run(scan_path(root, config, catalog=catalog, stats=stats))
