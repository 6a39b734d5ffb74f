from __future__ import annotations

import os
from typing import Mapping, MutableMapping, Optional

from hyni import config
from hyni import logger as logger_mod
from hyni.context.errors import ValidationError

log = logger_mod.get_logger()


def mask_api_key(api_key: Optional[str]) -> str:
    if not api_key or len(api_key) < 8:
        return "***"
    return f"{api_key[:4]}...{api_key[-4:]}"


def parse_hynirc(content: str) -> dict[str, str]:
    """Parse `.hynirc` text.

    Accepts both `export KEY=value` and `KEY=value` lines; blank lines and
    `#` comments are skipped, and matching surrounding quotes are removed.
    """

    parsed: dict[str, str] = {}
    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        if trimmed.startswith("export "):
            trimmed = trimmed[len("export ") :].strip()

        key, sep, value = trimmed.partition("=")
        key = key.strip()
        if not sep or not key:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        parsed[key] = value
    return parsed


class KeyResolver:
    """Single place the rest of the code asks for provider API keys.

    Lookup order:
    1. keys set explicitly in this process (`set_key`)
    2. session keys loaded from a config mapping or `.hynirc` file
    3. persistent keys from the environment (including `.env` via python-dotenv)

    The context engine never talks to this directly; callers pass the result to
    `GeneralContext.set_api_key`.
    """

    def __init__(
        self,
        *,
        env_map: Optional[Mapping[str, str]] = None,
        environ: Optional[Mapping[str, str]] = None,
        rc_path: Optional[str] = None,
    ):
        self._env_map = dict(env_map or config.PROVIDER_KEY_ENV)
        self._environ = environ if environ is not None else os.environ
        self._rc_path = rc_path if rc_path is not None else config.HYNIRC_PATH
        self._explicit: MutableMapping[str, str] = {}
        self._session: MutableMapping[str, str] = {}

    def env_var(self, provider: str) -> Optional[str]:
        return self._env_map.get(provider)

    @property
    def providers(self) -> list[str]:
        return list(self._env_map)

    def get_key(self, provider: str) -> Optional[str]:
        env_var = self.env_var(provider)
        if not env_var:
            log.warning(f"⚠️ Unknown provider: {provider}")
            return None
        for tier in (self._explicit, self._session, self._environ):
            value = tier.get(env_var)
            if value:
                return value
        return None

    def set_key(self, provider: str, api_key: str, *, persistent: bool = False) -> None:
        env_var = self.env_var(provider)
        if not env_var:
            raise ValidationError(f"Unknown provider: {provider}")
        if not api_key:
            raise ValidationError("API key cannot be empty")

        self._explicit[env_var] = api_key
        if persistent:
            self._persist(env_var, api_key)
        log.info(f"✅ Stored API key for {provider}: {mask_api_key(api_key)}")

    def remove_key(self, provider: str) -> None:
        env_var = self.env_var(provider)
        if not env_var:
            return
        self._explicit.pop(env_var, None)
        self._session.pop(env_var, None)

    def clear(self) -> None:
        self._explicit.clear()
        self._session.clear()

    def load_config(self, values: Mapping[str, str]) -> int:
        """Take every `*_API_KEY` (or mapped env var) entry as a session key."""
        known = set(self._env_map.values())
        loaded = 0
        for key, value in values.items():
            if value and (key.endswith("_API_KEY") or key in known):
                self._session[key] = value
                loaded += 1
        return loaded

    def load_hynirc(self, path: Optional[str] = None) -> int:
        path = path or self._rc_path
        if not path or not os.path.isfile(path):
            log.debug(f"No .hynirc found at {path}")
            return 0
        with open(path, "r", encoding="utf-8") as f:
            loaded = self.load_config(parse_hynirc(f.read()))
        log.info(f"Loaded {loaded} API key(s) from {path}")
        return loaded

    def _persist(self, env_var: str, api_key: str) -> None:
        if not self._rc_path:
            raise ValidationError("No .hynirc path configured for persistent keys")

        lines: list[str] = []
        if os.path.isfile(self._rc_path):
            with open(self._rc_path, "r", encoding="utf-8") as f:
                lines = [
                    line.rstrip("\n")
                    for line in f
                    if env_var not in parse_hynirc(line)
                ]
        lines.append(f"export {env_var}={api_key}")

        os.makedirs(os.path.dirname(self._rc_path) or ".", exist_ok=True)
        with open(self._rc_path, "w", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")

    def configured_providers(self) -> list[dict[str, object]]:
        status = []
        for provider, env_var in self._env_map.items():
            key = self.get_key(provider)
            status.append(
                {
                    "provider": provider,
                    "env_var": env_var,
                    "has_key": bool(key),
                    "masked_key": mask_api_key(key) if key else None,
                }
            )
        return status
