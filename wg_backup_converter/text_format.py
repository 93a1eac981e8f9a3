"""Reading and writing the ``[Interface]`` / ``[Peer]`` text protocol."""

import logging
import re
from typing import Iterable, List, Optional

from .models import IdFactory, InterfaceSection, PeerSection, ProfileId, TunnelConfig, new_id

logger = logging.getLogger(__name__)

INTERFACE_MARKER = "[interface]"
PEER_MARKER = "[peer]"
PRIVATE_KEY_TOKEN = "privatekey"

_INTERFACE_SPLIT_RE = re.compile(r"\[interface\]", re.IGNORECASE)


def looks_like_text_protocol(text: str) -> bool:
    lowered = text.lower()
    return INTERFACE_MARKER in lowered or PRIVATE_KEY_TOKEN in lowered


def _fragments(text: str) -> List[str]:
    parts = _INTERFACE_SPLIT_RE.split(text)
    # Headerless single-profile paste
    if len(parts) == 1 and PRIVATE_KEY_TOKEN in text.lower():
        return [text]
    return parts


def _parse_fragment(raw: str, config: TunnelConfig) -> None:
    section = "interface"
    for line in raw.split("\n"):
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        lowered = trimmed.lower()
        if PEER_MARKER in lowered:
            section = "peer"
            continue
        if INTERFACE_MARKER in lowered:
            section = "interface"
            continue
        key, sep, value = trimmed.partition("=")
        if not sep:
            continue
        target = config.interface if section == "interface" else config.peer
        target.set(key.strip(), value.strip())


def parse_text_protocol(text: str, id_factory: Optional[IdFactory] = None) -> List[TunnelConfig]:
    """Parse one or more profiles out of a text protocol document.

    Every ``[Interface]`` header starts a new profile. Profiles without a
    private key, or without both a peer public key and an endpoint, are
    dropped. Never raises; unusable input yields an empty list.
    """
    make_id = id_factory or new_id
    configs: List[TunnelConfig] = []
    if not text:
        return configs
    normalized = text.replace("\r\n", "\n")

    for index, raw in enumerate(_fragments(normalized)):
        if not raw.strip():
            continue
        config = TunnelConfig(
            id=ProfileId(make_id()),
            name=f"Config-{len(configs) + 1}",
            interface=InterfaceSection(),
            peer=PeerSection(),
        )
        _parse_fragment(raw, config)
        if not config.is_valid():
            logger.debug("Dropping text fragment %d: missing PrivateKey or peer identity", index)
            continue
        configs.append(config)

    logger.debug("Parsed %d profile(s) from text protocol", len(configs))
    return configs


def generate_text_protocol(config: TunnelConfig) -> str:
    lines: List[str] = ["[Interface]\n"]
    for key, value in config.interface.items():
        if value != "":
            lines.append(f"{key} = {value}\n")
    lines.append("\n[Peer]\n")
    for key, value in config.peer.items():
        if value != "":
            lines.append(f"{key} = {value}\n")
    return "".join(lines)


def generate_bulk_text(configs: Iterable[TunnelConfig]) -> str:
    return "\n\n".join(generate_text_protocol(c) for c in configs)
