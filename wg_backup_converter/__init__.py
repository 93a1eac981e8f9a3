from .models import (
    TunnelConfig,
    InterfaceSection,
    PeerSection,
    PackagedFile,
    ProfileId,
    new_id,
)
from .settings import ConverterSettings, ObfuscationSettings
from .exceptions import ConverterError, MalformedDocumentError, SettingsError
from .text_format import parse_text_protocol, generate_text_protocol, generate_bulk_text
from .backup_format import (
    BackupParseResult,
    ParseOutcome,
    decode_backup_document,
    parse_backup_document,
    generate_backup_document,
)
from .transforms import deduplicate, apply_obfuscation
from .archive import (
    package_archive,
    package_archive_async,
    package_single,
    render_qr,
    export_bulk_text,
    export_backup_document,
)
from .ingest import detect_format, parse_any, parse_archive, load_file, load_file_async
from .common import load_settings

__all__ = [
    "TunnelConfig",
    "InterfaceSection",
    "PeerSection",
    "PackagedFile",
    "ProfileId",
    "new_id",
    "ConverterSettings",
    "ObfuscationSettings",
    "ConverterError",
    "MalformedDocumentError",
    "SettingsError",
    "parse_text_protocol",
    "generate_text_protocol",
    "generate_bulk_text",
    "BackupParseResult",
    "ParseOutcome",
    "decode_backup_document",
    "parse_backup_document",
    "generate_backup_document",
    "deduplicate",
    "apply_obfuscation",
    "package_archive",
    "package_archive_async",
    "package_single",
    "render_qr",
    "export_bulk_text",
    "export_backup_document",
    "detect_format",
    "parse_any",
    "parse_archive",
    "load_file",
    "load_file_async",
    "load_settings",
]
