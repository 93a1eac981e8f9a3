import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import yaml  # type: ignore

from .exceptions import SettingsError

ENV_PREFIX = "WGBC_"

DEFAULT_PORT = 51820
PLACEHOLDER_HOST = "0.0.0.0"
ARCHIVE_NAME = "wireguard_configs.zip"
BACKUP_NAME = "amnezia_backup.json"
BULK_NAME = "wireguard_bulk.conf"

OBFUSCATION_FIELDS = ("Jc", "Jmin", "Jmax", "S1", "S2")


@dataclass()
class ObfuscationSettings:
    Jc: str = "5"
    Jmin: str = "50"
    Jmax: str = "1000"
    S1: str = "30"
    S2: str = "30"
    persistent_keepalive: str = "25"
    # H1..H4 are drawn from [0, h_upper)
    h_upper: int = 1_000_000_000

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "ObfuscationSettings":
        ob = EnvReader(env).with_prefix("OBFUSCATION_")
        defaults = cls()
        return cls(
            Jc=ob.get("JC", defaults.Jc) or defaults.Jc,
            Jmin=ob.get("JMIN", defaults.Jmin) or defaults.Jmin,
            Jmax=ob.get("JMAX", defaults.Jmax) or defaults.Jmax,
            S1=ob.get("S1", defaults.S1) or defaults.S1,
            S2=ob.get("S2", defaults.S2) or defaults.S2,
            persistent_keepalive=ob.get("KEEPALIVE", defaults.persistent_keepalive)
            or defaults.persistent_keepalive,
            h_upper=ob.get_int("H_UPPER", defaults.h_upper),
        )

    def validate(self) -> List[str]:
        errs: List[str] = []
        jc = _to_int(self.Jc)
        if jc is None or jc < 1 or jc > 128:
            errs.append("obfuscation.Jc must be an integer in [1,128]")
        jmin = _to_int(self.Jmin)
        jmax = _to_int(self.Jmax)
        if jmin is None or jmax is None:
            errs.append("obfuscation.Jmin and obfuscation.Jmax must be integers")
        else:
            if not (jmin < 1280):
                errs.append("obfuscation.Jmin must be < 1280")
            if not (jmin < jmax):
                errs.append("obfuscation.Jmax must be > Jmin")
            if not (jmax <= 1280):
                errs.append("obfuscation.Jmax must be ≤ 1280")
        s1 = _to_int(self.S1)
        s2 = _to_int(self.S2)
        if s1 is None:
            errs.append("obfuscation.S1 must be an integer")
        elif not (s1 <= 1132):
            errs.append("obfuscation.S1 must be ≤ 1132")
        if s2 is None:
            errs.append("obfuscation.S2 must be an integer")
        elif not (s2 <= 1188):
            errs.append("obfuscation.S2 must be ≤ 1188")
        if s1 is not None and s2 is not None and (s1 + 56 == s2):
            errs.append("obfuscation.S1 + 56 must not equal S2")
        keepalive = _to_int(self.persistent_keepalive)
        if keepalive is None or keepalive < 0 or keepalive > 65535:
            errs.append(f"obfuscation.persistent_keepalive out of range: {self.persistent_keepalive}")
        if self.h_upper <= 0:
            errs.append("obfuscation.h_upper must be positive")
        return errs


@dataclass()
class ConverterSettings:
    archive_name: str = ARCHIVE_NAME
    backup_name: str = BACKUP_NAME
    bulk_name: str = BULK_NAME
    default_port: int = DEFAULT_PORT
    placeholder_host: str = PLACEHOLDER_HOST
    emit_qr: bool = False
    obfuscation: ObfuscationSettings = field(default_factory=ObfuscationSettings)

    # File IO
    @classmethod
    def read_file(cls, path: str) -> "ConverterSettings":
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
        data = load_yaml(text)
        return parse_settings(data)

    def write_file(self, path: str, overwrite: bool = False) -> None:
        if os.path.exists(path) and not overwrite:
            raise FileExistsError(f"Refusing to overwrite existing file: {path}")
        parent = os.path.dirname(os.path.abspath(path))
        if parent and not os.path.exists(parent):
            os.makedirs(parent, exist_ok=True)
        text = dump_yaml(to_yaml_dict(self))
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)

    # Validation
    def validate(self) -> List[str]:
        errs: List[str] = []
        for label, name in (
            ("archive_name", self.archive_name),
            ("backup_name", self.backup_name),
            ("bulk_name", self.bulk_name),
        ):
            if not name:
                errs.append(f"{label} must be non-empty")
            elif os.path.basename(name) != name:
                errs.append(f"{label} must be a bare file name: {name}")
        if not self.archive_name.lower().endswith(".zip"):
            errs.append(f"archive_name must end with .zip: {self.archive_name}")
        port = int(self.default_port)
        if port < 1 or port > 65535:
            errs.append(f"default_port out of range: {port}")
        if not self.placeholder_host:
            errs.append("placeholder_host must be non-empty")
        errs.extend(self.obfuscation.validate())
        return errs

    def validate_or_raise(self) -> None:
        errs = self.validate()
        if errs:
            raise SettingsError("Settings validation failed:\n- " + "\n- ".join(errs))

    @classmethod
    def from_env(cls, env: Mapping[str, str]) -> "ConverterSettings":
        r = EnvReader(env)
        return cls(
            archive_name=r.get("ARCHIVE_NAME", ARCHIVE_NAME) or ARCHIVE_NAME,
            backup_name=r.get("BACKUP_NAME", BACKUP_NAME) or BACKUP_NAME,
            bulk_name=r.get("BULK_NAME", BULK_NAME) or BULK_NAME,
            default_port=r.get_int("DEFAULT_PORT", DEFAULT_PORT),
            placeholder_host=r.get("PLACEHOLDER_HOST", PLACEHOLDER_HOST) or PLACEHOLDER_HOST,
            emit_qr=r.get_bool("EMIT_QR", False),
            obfuscation=ObfuscationSettings.from_env(env),
        )


class EnvReader:
    def __init__(self, env: Mapping[str, str], prefix: str = ENV_PREFIX) -> None:
        self._env = env
        self._prefix = prefix

    def with_prefix(self, more: str) -> "EnvReader":
        return EnvReader(self._env, self._prefix + more)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._env.get(self._prefix + key, default)

    def get_bool(self, key: str, default: bool) -> bool:
        val = self._env.get(self._prefix + key)
        if val is None:
            return default
        val_lower = val.strip().lower()
        if val_lower in {"1", "true", "yes", "y", "on"}:
            return True
        if val_lower in {"0", "false", "no", "n", "off"}:
            return False
        return default

    def get_int(self, key: str, default: int) -> int:
        val = self._env.get(self._prefix + key)
        if val is None:
            return default
        try:
            return int(val)
        except ValueError:
            return default


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def to_yaml_dict(settings: ConverterSettings) -> Dict[str, Any]:
    ob = settings.obfuscation
    ob_map: Dict[str, Any] = {k: getattr(ob, k) for k in OBFUSCATION_FIELDS}
    ob_map["persistent-keepalive"] = ob.persistent_keepalive
    ob_map["h-upper"] = int(ob.h_upper)
    return {
        "archive-name": settings.archive_name,
        "backup-name": settings.backup_name,
        "bulk-name": settings.bulk_name,
        "default-port": int(settings.default_port),
        "placeholder-host": settings.placeholder_host,
        "emit-qr": bool(settings.emit_qr),
        "obfuscation": ob_map,
    }


def dump_yaml(data: Dict[str, Any]) -> str:
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True)


def load_yaml(text: str) -> Dict[str, Any]:
    obj = yaml.safe_load(text)
    if obj is None:
        return {}
    if not isinstance(obj, dict):
        raise SettingsError("Invalid YAML root: expected mapping")
    return obj


def parse_settings(data: Dict[str, Any]) -> ConverterSettings:
    defaults = ObfuscationSettings()
    ob_map = data.get("obfuscation", {}) or {}
    if not isinstance(ob_map, dict):
        raise SettingsError("obfuscation must be a mapping")
    try:
        ob = ObfuscationSettings(
            Jc=str(ob_map.get("Jc", defaults.Jc)),
            Jmin=str(ob_map.get("Jmin", defaults.Jmin)),
            Jmax=str(ob_map.get("Jmax", defaults.Jmax)),
            S1=str(ob_map.get("S1", defaults.S1)),
            S2=str(ob_map.get("S2", defaults.S2)),
            persistent_keepalive=str(ob_map.get("persistent-keepalive", defaults.persistent_keepalive)),
            h_upper=int(ob_map.get("h-upper", defaults.h_upper)),
        )
        return ConverterSettings(
            archive_name=str(data.get("archive-name", ARCHIVE_NAME)),
            backup_name=str(data.get("backup-name", BACKUP_NAME)),
            bulk_name=str(data.get("bulk-name", BULK_NAME)),
            default_port=int(data.get("default-port", DEFAULT_PORT)),
            placeholder_host=str(data.get("placeholder-host", PLACEHOLDER_HOST)),
            emit_qr=bool(data.get("emit-qr", False)),
            obfuscation=ob,
        )
    except (TypeError, ValueError) as e:
        raise SettingsError(f"Invalid settings value: {e}") from e
