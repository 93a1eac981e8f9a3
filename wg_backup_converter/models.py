import uuid
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, Mapping, NewType, Optional, Tuple

# Granular type aliases
ProfileId = NewType("ProfileId", str)
IdFactory = Callable[[], str]

OBFUSCATION_KEYS: Tuple[str, ...] = ("Jc", "Jmin", "Jmax", "S1", "S2", "H1", "H2", "H3", "H4")

# (wire key, attribute) pairs in the order they are emitted
INTERFACE_KEYS: Tuple[Tuple[str, str], ...] = (
    ("PrivateKey", "private_key"),
    ("Address", "address"),
    ("DNS", "dns"),
) + tuple((k, k) for k in OBFUSCATION_KEYS)

PEER_KEYS: Tuple[Tuple[str, str], ...] = (
    ("PublicKey", "public_key"),
    ("AllowedIPs", "allowed_ips"),
    ("Endpoint", "endpoint"),
    ("PersistentKeepalive", "persistent_keepalive"),
)


def new_id() -> str:
    return str(uuid.uuid4())


class _Section:
    """Known fields are attributes; anything else lands in ``extra`` in source order."""

    _keys: Tuple[Tuple[str, str], ...] = ()
    extra: Dict[str, str]

    @classmethod
    def from_fields(cls, values: Mapping[str, Optional[str]]):
        section = cls()
        for key, value in values.items():
            section.set(key, value)
        return section

    def _attr(self, key: str) -> Optional[str]:
        for wire, attr in self._keys:
            if wire == key:
                return attr
        return None

    def set(self, key: str, value: Optional[str]) -> None:
        attr = self._attr(key)
        if attr is not None:
            setattr(self, attr, value)
        elif value is None:
            self.extra.pop(key, None)
        else:
            self.extra[key] = value

    def get(self, key: str) -> Optional[str]:
        attr = self._attr(key)
        if attr is not None:
            return getattr(self, attr)
        return self.extra.get(key)

    def fields(self) -> Dict[str, str]:
        """Merge known fields (canonical order) with the overflow mapping."""
        out: Dict[str, str] = {}
        for wire, attr in self._keys:
            val = getattr(self, attr)
            if val is not None:
                out[wire] = val
        for key, val in self.extra.items():
            if val is not None:
                out[key] = val
        return out

    def items(self) -> Iterable[Tuple[str, str]]:
        return self.fields().items()


@dataclass()
class InterfaceSection(_Section):
    private_key: Optional[str] = None
    address: Optional[str] = None
    dns: Optional[str] = None
    Jc: Optional[str] = None
    Jmin: Optional[str] = None
    Jmax: Optional[str] = None
    S1: Optional[str] = None
    S2: Optional[str] = None
    H1: Optional[str] = None
    H2: Optional[str] = None
    H3: Optional[str] = None
    H4: Optional[str] = None
    extra: Dict[str, str] = field(default_factory=dict)

    _keys = INTERFACE_KEYS


@dataclass()
class PeerSection(_Section):
    public_key: Optional[str] = None
    allowed_ips: Optional[str] = None
    endpoint: Optional[str] = None
    persistent_keepalive: Optional[str] = None
    extra: Dict[str, str] = field(default_factory=dict)

    _keys = PEER_KEYS


@dataclass()
class TunnelConfig:
    """One tunnel profile, independent of the format it was read from."""

    id: ProfileId
    name: str = ""
    interface: InterfaceSection = field(default_factory=InterfaceSection)
    peer: PeerSection = field(default_factory=PeerSection)

    def is_valid(self) -> bool:
        if not self.interface.private_key:
            return False
        return bool(self.peer.public_key or self.peer.endpoint)

    def endpoint_host(self) -> str:
        # Archive naming cuts at the first colon; backup hostName uses split_endpoint (last colon).
        endpoint = self.peer.endpoint or ""
        return endpoint.split(":")[0]

    def copy(self) -> "TunnelConfig":
        return replace(
            self,
            interface=replace(self.interface, extra=dict(self.interface.extra)),
            peer=replace(self.peer, extra=dict(self.peer.extra)),
        )


@dataclass(frozen=True)
class PackagedFile:
    filename: str
    content: bytes
    media_type: str = "application/octet-stream"

    def text(self) -> str:
        return self.content.decode("utf-8")
