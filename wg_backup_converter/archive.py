import asyncio
import io
import logging
import re
import zipfile
from typing import Dict, Iterable, Optional

import qrcode
from qrcode.image.styledpil import StyledPilImage
from qrcode.image.styles.moduledrawers import RoundedModuleDrawer
from qrcode.image.styles.colormasks import HorizontalGradiantColorMask

from .backup_format import generate_backup_document
from .common import settings_or_default
from .models import PackagedFile, TunnelConfig
from .settings import ConverterSettings
from .text_format import generate_bulk_text, generate_text_protocol

logger = logging.getLogger(__name__)

FALLBACK_STEM = "config"
TEXT_MEDIA_TYPE = "text/plain; charset=utf-8"

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9]")


def file_stem(config: TunnelConfig) -> str:
    """Derive a filesystem-safe stem from the name, else the endpoint host."""
    stem = config.name or config.endpoint_host() or FALLBACK_STEM
    return _UNSAFE_RE.sub("_", stem)


def render_qr(config: TunnelConfig) -> bytes:
    qr = qrcode.QRCode(error_correction=qrcode.constants.ERROR_CORRECT_Q)
    qr.add_data(generate_text_protocol(config))
    qr.make(fit=True)
    color_mask = HorizontalGradiantColorMask(
        back_color=(255, 255, 255),
        left_color=(128, 0, 255),
        right_color=(0, 123, 255),
    )
    img = qr.make_image(
        image_factory=StyledPilImage,
        module_drawer=RoundedModuleDrawer(),
        color_mask=color_mask,
    )
    buf = io.BytesIO()
    img.save(buf)
    return buf.getvalue()


def _member(arcname: str) -> zipfile.ZipInfo:
    zi = zipfile.ZipInfo(arcname)
    # profiles carry private keys
    zi.external_attr = (0o600 & 0xFFFF) << 16
    return zi


def package_archive(
    configs: Iterable[TunnelConfig], settings: Optional[ConverterSettings] = None
) -> PackagedFile:
    """Zip one ``<stem>.conf`` member per profile.

    Profiles whose stems collide share one member; the last one wins.
    """
    s = settings_or_default(settings)
    members: Dict[str, TunnelConfig] = {}
    for config in configs:
        stem = file_stem(config)
        if stem in members:
            logger.warning("Archive member %s.conf overwritten by profile %s", stem, config.id)
        members[stem] = config

    memory_file = io.BytesIO()
    with zipfile.ZipFile(memory_file, "w", zipfile.ZIP_DEFLATED) as zf:
        for stem, config in members.items():
            zf.writestr(
                _member(f"{stem}.conf"),
                generate_text_protocol(config),
                compress_type=zipfile.ZIP_DEFLATED,
            )
            if s.emit_qr:
                zf.writestr(_member(f"{stem}.png"), render_qr(config), compress_type=zipfile.ZIP_DEFLATED)
    logger.info("Packaged %d profile(s) into %s", len(members), s.archive_name)
    return PackagedFile(s.archive_name, memory_file.getvalue(), "application/zip")


async def package_archive_async(
    configs: Iterable[TunnelConfig], settings: Optional[ConverterSettings] = None
) -> PackagedFile:
    return await asyncio.to_thread(package_archive, list(configs), settings)


def package_single(config: TunnelConfig) -> PackagedFile:
    text = generate_text_protocol(config)
    return PackagedFile(f"{file_stem(config)}.conf", text.encode("utf-8"), TEXT_MEDIA_TYPE)


def export_bulk_text(
    configs: Iterable[TunnelConfig], settings: Optional[ConverterSettings] = None
) -> PackagedFile:
    s = settings_or_default(settings)
    return PackagedFile(s.bulk_name, generate_bulk_text(configs).encode("utf-8"), TEXT_MEDIA_TYPE)


def export_backup_document(
    configs: Iterable[TunnelConfig], settings: Optional[ConverterSettings] = None
) -> PackagedFile:
    s = settings_or_default(settings)
    document = generate_backup_document(configs, s)
    return PackagedFile(s.backup_name, document.encode("utf-8"), "application/json")
