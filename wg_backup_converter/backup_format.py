"""Reading and writing Amnezia client backup documents.

A backup is a JSON document whose profiles live in ``wireguard`` / ``awg``
containers, each holding a ``last_config`` value. Older exports nest those
containers at arbitrary depth, store ``last_config`` as a JSON string or as
raw text protocol, and sometimes JSON-encode the whole server list, so the
reader walks the entire tree instead of relying on a fixed path.
"""

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .common import settings_or_default
from .exceptions import MalformedDocumentError
from .models import (
    OBFUSCATION_KEYS,
    IdFactory,
    InterfaceSection,
    PeerSection,
    ProfileId,
    TunnelConfig,
    new_id,
)
from .settings import ConverterSettings
from .text_format import INTERFACE_MARKER, parse_text_protocol

logger = logging.getLogger(__name__)

CONTAINER_TYPE = "amnezia-awg"
CONTAINER_KEYS = ("wireguard", "awg")
# Top-level fields that older exports store as JSON strings
ENCODED_LIST_KEYS = ("Servers", "serversList")

INTERFACE_BACKUP_KEYS = ("PrivateKey", "Address", "DNS") + OBFUSCATION_KEYS
PEER_BACKUP_KEYS = ("PublicKey", "AllowedIPs", "Endpoint", "PersistentKeepalive")


class ParseOutcome(enum.Enum):
    MALFORMED = "malformed"
    EMPTY = "empty"
    FOUND = "found"


@dataclass(frozen=True)
class BackupParseResult:
    outcome: ParseOutcome
    configs: List[TunnelConfig] = field(default_factory=list)


def _load_document(text: str) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError, RecursionError) as e:
        raise MalformedDocumentError(f"Backup document is not valid JSON: {e}") from e


def _unwrap_encoded_lists(data: Any) -> Any:
    if not isinstance(data, dict):
        return data
    root = dict(data)
    for key in ENCODED_LIST_KEYS:
        value = root.get(key)
        if isinstance(value, str) and value:
            try:
                root[key] = json.loads(value)
            except ValueError:
                logger.debug("Top-level %s is a plain string, leaving as is", key)
    return root


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, ensure_ascii=False)


def _pick(source: Any, keys: Iterable[str]) -> Dict[str, str]:
    if not isinstance(source, dict):
        return {}
    picked: Dict[str, str] = {}
    for key in keys:
        value = _as_text(source.get(key))
        if value is not None:
            picked[key] = value
    return picked


def _label(node: Dict[str, Any]) -> Optional[str]:
    value = node.get("description") or node.get("name")
    return _as_text(value) if value else None


class _ProfileCollector:
    """Depth-first walk over a decoded backup, collecting every profile found."""

    def __init__(self, id_factory: IdFactory) -> None:
        self._make_id = id_factory
        self.configs: List[TunnelConfig] = []

    def walk(self, value: Any) -> None:
        if isinstance(value, dict):
            try:
                self._visit(value)
            except Exception:
                logger.debug("Skipping backup node that failed extraction", exc_info=True)
            for child in value.values():
                self.walk(child)
        elif isinstance(value, list):
            for item in value:
                self.walk(item)
        # str, int, float, bool and None hold no profiles

    def _visit(self, node: Dict[str, Any]) -> None:
        container = None
        for key in CONTAINER_KEYS:
            if node.get(key):
                container = node[key]
                break
        if not isinstance(container, dict):
            return
        last_config = container.get("last_config")
        if not last_config:
            return

        payload = last_config
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except ValueError:
                # not JSON, may still be raw text protocol
                pass

        if isinstance(payload, str):
            if INTERFACE_MARKER in payload.lower():
                self._adopt_text(node, payload)
        elif isinstance(payload, dict):
            self._adopt_object(node, payload)

    def _adopt_text(self, node: Dict[str, Any], text: str) -> None:
        label = _label(node)
        node_id = _as_text(node.get("id")) if node.get("id") else None
        for config in parse_text_protocol(text, id_factory=self._make_id):
            if label:
                config.name = label
            if node_id:
                config.id = ProfileId(node_id)
            self.configs.append(config)

    def _adopt_object(self, node: Dict[str, Any], payload: Dict[str, Any]) -> None:
        peers = payload.get("peers")
        first_peer = peers[0] if isinstance(peers, list) and peers else {}
        interface = InterfaceSection.from_fields(_pick(payload.get("config"), INTERFACE_BACKUP_KEYS))
        peer = PeerSection.from_fields(_pick(first_peer, PEER_BACKUP_KEYS))
        # Only the private key is required here; the text reader is stricter.
        if not interface.private_key:
            logger.debug("Dropping backup profile without PrivateKey")
            return
        node_id = _as_text(node.get("id")) if node.get("id") else None
        self.configs.append(
            TunnelConfig(
                id=ProfileId(node_id or self._make_id()),
                name=_label(node) or f"Amnezia-{len(self.configs) + 1}",
                interface=interface,
                peer=peer,
            )
        )


def decode_backup_document(text: str, id_factory: Optional[IdFactory] = None) -> BackupParseResult:
    """Parse a backup document, keeping malformed input apart from empty input.

    Malformed input is only logged at DEBUG here; callers decide whether it
    deserves a warning.
    """
    try:
        data = _load_document(text)
    except MalformedDocumentError as e:
        logger.debug("%s", e)
        return BackupParseResult(ParseOutcome.MALFORMED)

    collector = _ProfileCollector(id_factory or new_id)
    collector.walk(_unwrap_encoded_lists(data))
    if not collector.configs:
        return BackupParseResult(ParseOutcome.EMPTY)
    logger.debug("Parsed %d profile(s) from backup document", len(collector.configs))
    return BackupParseResult(ParseOutcome.FOUND, collector.configs)


def parse_backup_document(text: str, id_factory: Optional[IdFactory] = None) -> List[TunnelConfig]:
    result = decode_backup_document(text, id_factory=id_factory)
    if result.outcome is ParseOutcome.MALFORMED:
        logger.warning("Backup document is not valid JSON")
    return result.configs


def split_endpoint(endpoint: Optional[str], settings: Optional[ConverterSettings] = None) -> Tuple[str, int]:
    """Split ``host:port`` at the last colon, filling in configured defaults.

    A bracketed IPv6 host (``[2001:db8::1]:443``) is returned without its
    brackets, since ``hostName`` in a backup holds a bare address.
    """
    s = settings_or_default(settings)
    ep = (endpoint or "").strip()
    if ep.startswith("["):
        host, _, tail = ep[1:].partition("]")
        _, _, port = tail.partition(":")
    elif ":" in ep:
        host, _, port = ep.rpartition(":")
    else:
        host, port = ep, ""
    port = port.strip()
    numeric = port.isascii() and port.isdigit()
    return host or s.placeholder_host, int(port) if numeric else int(s.default_port)


def _server_entry(config: TunnelConfig, index: int, settings: ConverterSettings) -> Dict[str, Any]:
    inner = {
        "config": config.interface.fields(),
        "peers": [config.peer.fields()],
    }
    last_config = json.dumps(inner, ensure_ascii=False, separators=(",", ":"))
    host, port = split_endpoint(config.peer.endpoint, settings)
    return {
        "id": config.id,
        "description": config.name or f"Server {index + 1}",
        "hostName": host,
        "port": port,
        "defaultContainer": CONTAINER_TYPE,
        "containers": [
            {
                "id": config.id,
                "containerType": CONTAINER_TYPE,
                "awg": {"last_config": last_config},
                "wireguard": {"last_config": last_config},
            }
        ],
    }


def generate_backup_document(
    configs: Iterable[TunnelConfig], settings: Optional[ConverterSettings] = None
) -> str:
    s = settings_or_default(settings)
    backup = {
        "version": 1,
        "defaultServerIndex": 0,
        "servers": [_server_entry(c, i, s) for i, c in enumerate(configs)],
    }
    return json.dumps(backup, ensure_ascii=False, indent=2)
