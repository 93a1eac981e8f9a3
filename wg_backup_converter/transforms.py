import logging
import random
from typing import Iterable, List, Optional, Set, Tuple

from .common import settings_or_default
from .models import TunnelConfig
from .settings import OBFUSCATION_FIELDS, ConverterSettings

logger = logging.getLogger(__name__)


def dedup_key(config: TunnelConfig) -> Tuple[str, str]:
    return (config.peer.public_key or "", config.peer.endpoint or "")


def deduplicate(configs: Iterable[TunnelConfig]) -> List[TunnelConfig]:
    """Keep the first profile for every (PublicKey, Endpoint) pair, in order."""
    seen: Set[Tuple[str, str]] = set()
    unique: List[TunnelConfig] = []
    dropped = 0
    for config in configs:
        key = dedup_key(config)
        if key in seen:
            dropped += 1
            continue
        seen.add(key)
        unique.append(config)
    if dropped:
        logger.info("Removed %d duplicate profile(s)", dropped)
    return unique


def apply_obfuscation(
    configs: Iterable[TunnelConfig],
    rng: Optional[random.Random] = None,
    settings: Optional[ConverterSettings] = None,
) -> List[TunnelConfig]:
    """Return copies of ``configs`` with AmneziaWG junk/padding/header parameters set.

    Jc, Jmin, Jmax, S1, S2 and PersistentKeepalive are overwritten with the
    configured constants; H1..H4 are drawn independently from
    ``[0, h_upper)`` on every call. Identifiers are kept.
    """
    source = rng if rng is not None else random
    params = settings_or_default(settings).obfuscation
    result: List[TunnelConfig] = []
    for config in configs:
        updated = config.copy()
        for key in OBFUSCATION_FIELDS:
            setattr(updated.interface, key, getattr(params, key))
        updated.interface.H1 = str(source.randrange(params.h_upper))
        updated.interface.H2 = str(source.randrange(params.h_upper))
        updated.interface.H3 = str(source.randrange(params.h_upper))
        updated.interface.H4 = str(source.randrange(params.h_upper))
        updated.peer.persistent_keepalive = params.persistent_keepalive
        result.append(updated)
    return result
