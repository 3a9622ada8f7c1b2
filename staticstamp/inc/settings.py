# staticstamp/inc/settings.py
from __future__ import annotations
import os, json
from pathlib import Path
from configobj import ConfigObj  # keeps unknown keys, preserves case, nested sections
from typing import Any, Callable, Dict, Optional
from staticstamp.inc.errors import ConfigError

CFG_PATH_DEFAULT = Path(os.getenv("HOME", "")) / ".config" / "staticstamp.ini"

ENV_PREFIX = "STATICSTAMP__"
_TYPED_PREFIXES = {
    "STATICSTAMP_INT__": "INT",
    "STATICSTAMP_BOOL__": "BOOL",
    "STATICSTAMP_JSON__": "JSON",
    "STATICSTAMP_FILE__": "FILE",
}

# --------- helpers ---------
def _coerce_bool(v: Any, default: bool=False) -> bool:
    if isinstance(v, bool): return v
    if v is None: return default
    s = str(v).strip().lower()
    return s in ("1", "true", "yes", "on")

def _coerce_int(v: Any, default: int=0) -> int:
    try: return int(str(v).strip())
    except (TypeError, ValueError): return default

def _parse_json(v, default=None):
    if v is None:
        return default
    # ConfigObj may already have parsed it to a list
    if isinstance(v, (list, dict)):
        return v
    s = str(v).strip()
    if not s:
        return default
    try:
        return json.loads(s)
    except ValueError:
        return default

def _clean_key_name(k: str) -> str:
    # remove zero-width/control chars and trim
    bad = {0x200B, 0x200C, 0x200D, 0xFEFF}
    out = []
    for ch in k:
        oc = ord(ch)
        if oc < 32 or oc == 127 or oc in bad:
            continue
        out.append(ch)
    return "".join(out).strip()

def _normalize_section_keys(sec: Dict[str, Any]):
    for k in list(sec.keys()):
        nk = _clean_key_name(k)
        if nk != k:
            sec[nk] = sec.pop(k)
        if isinstance(sec[nk], dict):
            _normalize_section_keys(sec[nk])

def _env_overrides(cfg: ConfigObj, environ: Optional[Dict[str, str]] = None):
    """
    Overlay env vars onto config without needing code for each new key.
    Patterns:
      STATICSTAMP__Section__Key=val         (string)
      STATICSTAMP_INT__Section__Key=123     (int)
      STATICSTAMP_BOOL__Section__Key=true   (bool)
      STATICSTAMP_JSON__Section__Key={...}  (json array/object or primitive)
      STATICSTAMP_FILE__Section__Key=/path  (contents of file, trimmed)
    """
    environ = os.environ if environ is None else environ
    for name, val in environ.items():
        kind = None
        for prefix, k in _TYPED_PREFIXES.items():
            if name.startswith(prefix):
                kind, rest = k, name[len(prefix):]
                break
        if kind is None:
            if not name.startswith(ENV_PREFIX):
                continue
            kind, rest = "STR", name[len(ENV_PREFIX):]

        parts = rest.split("__", 1)
        if len(parts) != 2:  # malformed
            continue
        sec, key = parts[0].strip(), parts[1].strip()
        if not sec or not key:
            continue

        if kind == "INT":
            value = _coerce_int(val, 0)
        elif kind == "BOOL":
            value = _coerce_bool(val, False)
        elif kind == "JSON":
            value = _parse_json(val, None)
        elif kind == "FILE":
            try:
                with open(val, "r", encoding="utf-8") as f:
                    value = f.read().strip()
            except OSError:
                continue
        else:
            value = val

        cfg.setdefault(sec, {})
        cfg[sec][key] = value

class Settings:
    """
    Read-only settings:
      - Read INI once (no write-backs)
      - Normalize key names (no invisible junk)
      - Overlay environment variables (patterns above)
      - Helpers to parse types on-demand
    """
    def __init__(self, path: Path = CFG_PATH_DEFAULT, environ: Optional[Dict[str, str]] = None):
        self.path = Path(path)
        if self.path.exists():
            self._cfg = ConfigObj(str(self.path), encoding="utf-8")
        else:
            self._cfg = ConfigObj(encoding="utf-8")

        for secname, sec in list(self._cfg.items()):
            if isinstance(sec, dict):
                nk = _clean_key_name(secname)
                if nk != secname:
                    self._cfg[nk] = self._cfg.pop(secname)
                    secname = nk
                _normalize_section_keys(self._cfg[secname])

        _env_overrides(self._cfg, environ)

    @property
    def base_dir(self) -> Path:
        """Directory relative config paths are resolved against."""
        return self.path.parent

    def section(self, name: str) -> Dict[str, Any]:
        return self._cfg.get(name, {})

    def get(self, dotted: str, default: Any=None, cast: Optional[Callable[[Any], Any]]=None) -> Any:
        """
        settings.get("Section.key", default, cast=int/bool/json or custom)
        """
        if "." not in dotted:
            return default
        sec, key = dotted.split(".", 1)
        secmap = self._cfg.get(sec, {})
        val = secmap.get(key, default)
        if cast is None:
            return val
        if cast is bool:
            return _coerce_bool(val, bool(default) if isinstance(default, bool) else False)
        if cast is int:
            return _coerce_int(val, int(default) if isinstance(default, int) else 0)
        if cast == "json":
            return _parse_json(val, default)
        try:
            return cast(val)
        except (TypeError, ValueError):
            return default

    def require(self, section: str, *keys: str, allow_empty: bool=True):
        """
        Fail loud if section/keys missing.
        """
        if section not in self._cfg:
            raise ConfigError(f"Config error: missing [{section}] in {self.path}")
        sec = self._cfg[section]
        missing = []
        empties = []
        for k in keys:
            if k not in sec:
                missing.append(k)
            elif not allow_empty:
                v = sec.get(k)
                if v is None or (isinstance(v, str) and v.strip() == ""):
                    empties.append(k)
        if missing or empties:
            msg = [f"Config error in [{section}] ({self.path}):"]
            if missing:
                msg.append(f"  - missing keys: {', '.join(missing)}")
            if empties:
                msg.append(f"  - empty keys: {', '.join(empties)}")
            raise ConfigError("\n".join(msg))

def default_config_path() -> Path:
    override = os.getenv("STATICSTAMP_CONFIG")
    return Path(override) if override else CFG_PATH_DEFAULT

def load_settings(path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None) -> Settings:
    return Settings(path or default_config_path(), environ)
