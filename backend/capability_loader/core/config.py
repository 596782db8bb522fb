from pathlib import Path
from pydantic import BaseModel
import os
from capability_loader import __version__
# Optionally load a config.env file for local development so overrides can
# live next to the working directory instead of the shell environment.
try:
    from dotenv import load_dotenv
    cfg_override = os.getenv('CAPABILITY_LOADER_CONFIG_FILE')
    candidates = []
    if cfg_override:
        candidates.append(Path(cfg_override))

    candidates.append(Path.cwd() / 'config.env')
    candidates.append(Path.cwd() / 'backend' / 'config.env')

    for p in candidates:
        try:
            if p and p.exists():
                load_dotenv(str(p))
                break
        except Exception:
            continue
except Exception:
    # If python-dotenv isn't available or load fails, fall back to env vars
    pass

"""Central configuration.

Env vars:
  CAPABILITY_LOADER_LOG_LEVEL          - root log level (DEBUG, INFO, ...)
  CAPABILITY_LOADER_VERSION            - override reported version
  CAPABILITY_LOADER_CATALOG_FILE       - YAML catalog merged over the built-ins
  CAPABILITY_LOADER_INCLUDE_BUILTINS   - register the built-in capabilities (default on)
  CAPABILITY_LOADER_FETCH_TIMEOUT      - seconds allowed for a remote source fetch
  CAPABILITY_LOADER_GRACE_PERIOD       - default wait after activation before the readiness re-check
  CAPABILITY_LOADER_PROGRESS_INTERVAL  - cosmetic progress tick interval for heavyweight capabilities
  CAPABILITY_LOADER_PROGRESS_STEP      - cosmetic progress increment per tick
  CAPABILITY_LOADER_PROGRESS_CEILING   - cosmetic progress never passes this value
  CAPABILITY_LOADER_HOST / _PORT       - bind address for the entrypoint
"""

_diagnostics: list[str] = []

_PREFIX = 'CAPABILITY_LOADER_'


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(_PREFIX + name, default)


def _env_flag(name: str, default: bool = False) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_number(name: str, default: float, cast=float):
    raw = _env(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw)
    except ValueError:
        _diagnostics.append(f"invalid_{name.lower()}={raw!r} using_default={default}")
        return default
    if value < 0:
        _diagnostics.append(f"negative_{name.lower()}={raw!r} using_default={default}")
        return default
    return value


_catalog_file = _env('CATALOG_FILE')
catalog_path: Path | None = None
if _catalog_file:
    catalog_path = Path(_catalog_file).expanduser()
    if catalog_path.exists():
        _diagnostics.append(f"catalog_file={catalog_path}")
    else:
        _diagnostics.append(f"catalog_file_missing path={catalog_path}")

_include_builtins = _env_flag('INCLUDE_BUILTINS', True)
if not _include_builtins:
    _diagnostics.append("builtin_capabilities=disabled")


class Settings(BaseModel):
    app_name: str = 'Capability Loader'
    api_v1_prefix: str = '/api/v1'
    version: str = _env('VERSION', __version__)
    # Logging level for the process (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = _env('LOG_LEVEL', 'INFO')
    catalog_file: Path | None = catalog_path
    include_builtins: bool = _include_builtins
    fetch_timeout: float = _env_number('FETCH_TIMEOUT', 30.0)
    grace_period: float = _env_number('GRACE_PERIOD', 0.1)
    progress_interval: float = _env_number('PROGRESS_INTERVAL', 0.5)
    progress_step: int = _env_number('PROGRESS_STEP', 5, int)
    progress_ceiling: int = min(_env_number('PROGRESS_CEILING', 70, int), 99)
    host: str = _env('HOST', '127.0.0.1')
    port: int = _env_number('PORT', 4160, int)
    diagnostics: list[str] | None = _diagnostics

settings = Settings()
