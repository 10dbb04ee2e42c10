# utils/common.py
"""Common utilities: paths, file names, identifiers and text helpers"""
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path

# ⚠️ DO NOT import settings here - causes circular import with config.py


# ============= Path Management =============

def get_project_root() -> str:
    """Returns the absolute path to the project's root directory."""
    return os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))


def get_log_file_path() -> str:
    """Creates the log directory if it doesn't exist and returns the full log file path."""
    project_root = get_project_root()
    log_dir = os.path.join(project_root, 'log')

    if not os.path.exists(log_dir):
        os.makedirs(log_dir, exist_ok=True)

    return os.path.join(log_dir, 'studyquest.log')


# ============= File Utilities =============

def get_file_extension(filename: str) -> str:
    """Extracts and normalizes the file extension from a filename ('' when there is none)."""
    return Path(filename or "").suffix[1:].lower()


# ============= Text Utilities =============

def count_words(text: str) -> int:
    """Whitespace-delimited word count."""
    return len((text or "").split())


def truncate_text(text: str, limit: int, marker: str) -> str:
    """Cut text at `limit` characters and append `marker` if anything was removed."""
    if len(text) <= limit:
        return text
    return text[:limit] + marker


# ============= Identifiers & Time =============

def generate_id(prefix: str) -> str:
    """Prefixed unique identifier, e.g. 'session-3f2a...'."""
    return f"{prefix}-{uuid.uuid4().hex}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
