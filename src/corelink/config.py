from __future__ import annotations
import json
from pathlib import Path
from typing import List, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from corelink.client.errors import ConfigError
from corelink.protocol.constants import DEFAULT_HOSTNAME, DEFAULT_PORT

logger = structlog.get_logger()


class ServerConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    hostname: str = DEFAULT_HOSTNAME
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    public_key_path: Path = Field(alias="public_key")
    private_key_path: Path = Field(alias="private_key")
    verify_tls: bool = False
    timeout: Optional[float] = Field(default=None, gt=0)


class PackageHandlerConfig(BaseModel):
    name: str
    enabled: bool = False
    version: Optional[Union[str, int]] = None


class PackageConfig(BaseModel):
    name: str
    enabled: bool = False
    handlers: List[PackageHandlerConfig] = Field(default_factory=list)


class AppConfig(BaseModel):
    server: ServerConfig
    packages: List[PackageConfig] = Field(default_factory=list)

    def package(self, name: str) -> Optional[PackageConfig]:
        return next((p for p in self.packages if p.name == name), None)

    def enabled_packages(self) -> List[PackageConfig]:
        return [p for p in self.packages if p.enabled]

    def is_handler_enabled(self, package_name: str, handler_name: str) -> Optional[bool]:
        pkg = self.package(package_name)
        if pkg is None:
            return None
        handler = next((h for h in pkg.handlers if h.name == handler_name), None)
        return handler.enabled if handler else None


def load_config(path: str | Path) -> AppConfig:
    """
    Load the JSON config file. Relative key paths are resolved against the
    directory holding the config file.
    """
    p = Path(path).resolve()
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"cannot read config {p}: {e.strerror or type(e).__name__}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"config {p} is not valid JSON: {e.msg} (line {e.lineno})") from e

    try:
        cfg = AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"invalid config {p}: {e.error_count()} error(s)\n{e}") from e

    server = cfg.server
    for attr in ("public_key_path", "private_key_path"):
        key_path = getattr(server, attr)
        if not key_path.is_absolute():
            setattr(server, attr, p.parent / key_path)

    logger.debug("config_loaded", path=str(p), host=server.hostname, port=server.port,
                 packages=len(cfg.packages))
    return cfg
