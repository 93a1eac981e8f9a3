"""Format sniffing and file ingestion.

Pasted text and uploaded files are routed to the backup reader or the text
protocol reader by content; ``.zip`` uploads are treated as a bundle of text
protocol files.
"""

import asyncio
import io
import logging
import os
import zipfile
from typing import List, Optional

from .backup_format import ParseOutcome, decode_backup_document
from .models import IdFactory, TunnelConfig
from .text_format import looks_like_text_protocol, parse_text_protocol

logger = logging.getLogger(__name__)

FORMAT_BACKUP = "backup"
FORMAT_TEXT = "text"


def detect_format(text: str) -> Optional[str]:
    stripped = text.strip()
    if stripped.startswith("{") or stripped.startswith("["):
        return FORMAT_BACKUP
    if looks_like_text_protocol(text):
        return FORMAT_TEXT
    return None


def parse_any(text: str, id_factory: Optional[IdFactory] = None) -> List[TunnelConfig]:
    configs: List[TunnelConfig] = []
    outcome = None
    if detect_format(text) == FORMAT_BACKUP:
        result = decode_backup_document(text, id_factory=id_factory)
        outcome, configs = result.outcome, result.configs
    # A bracketed paste that is not a backup may still be text protocol
    if not configs and looks_like_text_protocol(text):
        configs = parse_text_protocol(text, id_factory=id_factory)
    elif outcome is ParseOutcome.MALFORMED:
        logger.warning("Input looked like a backup document but is not valid JSON")
    if not configs:
        logger.info("No profiles found in input")
    return configs


def parse_archive(data: bytes, id_factory: Optional[IdFactory] = None) -> List[TunnelConfig]:
    """Parse every file inside a zip archive as text protocol."""
    try:
        zf = zipfile.ZipFile(io.BytesIO(data))
    except (zipfile.BadZipFile, ValueError) as e:
        logger.warning("Failed to open archive: %s", e)
        return []

    configs: List[TunnelConfig] = []
    files = 0
    with zf:
        for info in zf.infolist():
            if info.is_dir():
                continue
            try:
                text = zf.read(info).decode("utf-8", errors="replace")
            except Exception:
                logger.debug("Skipping unreadable archive member %s", info.filename, exc_info=True)
                continue
            parsed = parse_text_protocol(text, id_factory=id_factory)
            if parsed:
                files += 1
                configs.extend(parsed)
    logger.info("Extracted %d profile(s) from %d archive member(s)", len(configs), files)
    return configs


def _is_archive(path: str) -> bool:
    return path.lower().endswith(".zip")


def load_file(path: str, id_factory: Optional[IdFactory] = None) -> List[TunnelConfig]:
    if _is_archive(path):
        with open(path, "rb") as f:
            return parse_archive(f.read(), id_factory=id_factory)
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        text = f.read()
    configs = parse_any(text, id_factory=id_factory)
    logger.info("Parsed %d profile(s) from %s", len(configs), os.path.basename(path))
    return configs


async def load_file_async(path: str, id_factory: Optional[IdFactory] = None) -> List[TunnelConfig]:
    return await asyncio.to_thread(load_file, path, id_factory)
