"""
Anonymous visitor id.

Generated once and kept in a local file, the same way the web app keeps it
in local storage, so credits and records follow the visitor until sign-in.
"""

import logging
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)


def load_or_create_anonymous_id(path: Path) -> str:
    path = path.expanduser()
    if path.exists():
        existing = path.read_text(encoding="utf-8").strip()
        if existing:
            return existing

    anonymous_id = str(uuid.uuid4())
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(anonymous_id, encoding="utf-8")
    logger.debug(f"Created anonymous id at {path}")
    return anonymous_id


def forget_anonymous_id(path: Path) -> None:
    """Drop the stored id (after its data has been migrated to an account)."""
    path.expanduser().unlink(missing_ok=True)
