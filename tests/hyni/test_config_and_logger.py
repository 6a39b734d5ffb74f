import importlib.util
from pathlib import Path

SRC = Path(__file__).resolve().parents[2] / "src" / "hyni"


def _load_module_from_path(module_name: str, path: Path):
    """Load a module from a file path under a custom name.

    The imported `hyni.config` has already read the environment, so loading a
    fresh copy is the only way to see env overrides take effect.
    """

    spec = importlib.util.spec_from_file_location(module_name, str(path))
    assert spec and spec.loader
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)  # type: ignore[attr-defined]
    return mod


def test_config_env_overrides_are_applied(monkeypatch, tmp_path):
    monkeypatch.setenv("LOGGING_LEVEL", "info")
    monkeypatch.setenv("HYNI_SCHEMA_DIR", str(tmp_path))
    monkeypatch.setenv("HYNI_ENABLE_VALIDATION", "false")
    monkeypatch.setenv("HYNI_DEFAULT_MAX_TOKENS", "512")
    monkeypatch.setenv("HYNI_DEFAULT_TEMPERATURE", "0.25")
    monkeypatch.setenv("HYNI_HTTP_TIMEOUT_S", "5")

    cfg = _load_module_from_path("hyni_real_config", SRC / "config.py")

    assert cfg.LOGGING_LEVEL == "INFO"
    assert cfg.SCHEMA_DIR == str(tmp_path)
    assert cfg.ENABLE_VALIDATION is False
    assert cfg.DEFAULT_MAX_TOKENS == 512
    assert cfg.DEFAULT_TEMPERATURE == 0.25
    assert cfg.HTTP_TIMEOUT_S == 5.0


def test_config_defaults_and_bad_values(monkeypatch):
    for name in (
        "HYNI_ENABLE_VALIDATION",
        "HYNI_DEFAULT_TEMPERATURE",
        "HYNI_HTTP_TIMEOUT_S",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HYNI_DEFAULT_MAX_TOKENS", "lots")

    cfg = _load_module_from_path("hyni_default_config", SRC / "config.py")

    assert cfg.ENABLE_VALIDATION is True
    assert cfg.DEFAULT_MAX_TOKENS is None
    assert cfg.DEFAULT_TEMPERATURE is None
    assert cfg.HTTP_TIMEOUT_S == 120.0
    assert cfg.PROVIDER_KEY_ENV["claude"] == "CL_API_KEY"


def test_logger_helpers():
    from hyni import logger as logger_mod

    log = logger_mod.get_logger()
    assert log is logger_mod.logger
    assert log.name == "hyni"

    # Shortcut aliases exist and are callable
    assert callable(logger_mod.info)
    assert callable(logger_mod.error)
