import logging
import os
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 100 * 1024 * 1024  # 100MB
ALLOWED_EXTENSIONS = [".pdf"]
OUTPUT_SUFFIX = ".highlighted.pdf"

DEFAULT_SEARCH_DIRECTORIES = [
    os.path.expanduser("~/Downloads"),
    os.path.expanduser("~/Documents"),
    os.getcwd(),
]

# Configured at startup by setup_search_directories
SEARCH_DIRECTORIES: List[str] = []


def _real(path: str) -> str:
    return os.path.realpath(os.path.abspath(os.path.expanduser(path)))


def _is_within(base: str, target: str) -> bool:
    base = os.path.join(os.path.realpath(base), "")  # ensure trailing separator
    target = os.path.realpath(target)
    return target.startswith(base) or target == base[:-1]


def is_allowed(path: str) -> bool:
    return any(_is_within(root, path) for root in SEARCH_DIRECTORIES)


def setup_search_directories(directories: List[str], max_file_size: int = MAX_FILE_SIZE) -> List[str]:
    """Validate the accessible directories; falls back to the defaults when none are usable."""
    global MAX_FILE_SIZE

    MAX_FILE_SIZE = int(max_file_size)
    validated: List[str] = []
    for d in directories:
        real_path = _real(d)
        if not os.path.isdir(real_path):
            logger.warning(f"Not a directory, skipped: {d} -> {real_path}")
            continue
        if not os.access(real_path, os.R_OK):
            logger.warning(f"Unreadable directory, skipped: {d} -> {real_path}")
            continue
        validated.append(real_path)

    if not validated:
        logger.info("No usable directories given; using defaults.")
        validated = [_real(d) for d in DEFAULT_SEARCH_DIRECTORIES if os.path.isdir(_real(d))]

    # mutate in place so modules holding a reference see the update
    SEARCH_DIRECTORIES.clear()
    SEARCH_DIRECTORIES.extend(validated)
    return SEARCH_DIRECTORIES


def validate_pdf_path(file_path: str) -> Optional[Path]:
    """Absolute Path for an existing, allowed, size-limited PDF, else None."""
    real_path = _real(file_path)
    if not is_allowed(real_path) or ".." in Path(file_path).parts:
        logger.warning(f"Outside accessible directories: {file_path}")
        return None
    resolved = Path(real_path)
    if not resolved.is_file():
        return None
    if resolved.suffix.lower() not in ALLOWED_EXTENSIONS:
        logger.warning(f"Disallowed file extension: {file_path}")
        return None
    if resolved.stat().st_size > MAX_FILE_SIZE:
        logger.warning(f"File too large: {file_path}")
        return None
    return resolved


def find_file(file_name: str) -> Optional[Path]:
    """Resolve an absolute path, or a name relative to one of the accessible directories."""
    if os.path.isabs(file_name) or file_name.startswith("~"):
        return validate_pdf_path(file_name)
    for directory in SEARCH_DIRECTORIES:
        path = validate_pdf_path(os.path.join(directory, file_name))
        if path:
            return path
    logger.warning(f"File not found: {file_name}")
    return None


def output_path_for(source: Path, output_path: Optional[str] = None) -> Path:
    """Where the highlighted copy goes: `output_path` if allowed, else `<stem>.highlighted.pdf`."""
    if output_path:
        target = _real(output_path)
        if not is_allowed(target) or not target.lower().endswith(".pdf"):
            raise ValueError(f"Output path not allowed: {output_path}")
        return Path(target)
    return source.with_name(source.stem + OUTPUT_SUFFIX)
