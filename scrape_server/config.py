from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass
from functools import lru_cache

import yaml

CONFIG_ENV_VAR = "SCRAPE_SERVER_CONFIG"

_TRANSPORTS = ("stdio", "http")

_DEFAULT_LAUNCH_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
)


@dataclass(frozen=True)
class Config:
    headless: bool = True
    executable_path: str = ""
    launch_args: tuple[str, ...] = _DEFAULT_LAUNCH_ARGS
    viewport_width: int = 1200
    viewport_height: int = 800
    log_level: str = "INFO"
    transport: str = "stdio"
    host: str = "127.0.0.1"
    port: int = 8000

    @property
    def viewport(self) -> dict:
        return {"width": self.viewport_width, "height": self.viewport_height}


def load_config(path: str | None = None) -> Config:
    if not path:
        return Config()

    raw = pathlib.Path(path).read_text(encoding="utf-8")
    data = yaml.safe_load(raw)
    if data is None:
        return Config()
    if not isinstance(data, dict):
        raise ValueError(f"config file must be a YAML mapping, got {type(data).__name__}")

    defaults = Config()

    headless = bool(data.get("headless", defaults.headless))
    executable_path = str(data.get("executable_path") or "")
    viewport_width = int(data.get("viewport_width", defaults.viewport_width))
    viewport_height = int(data.get("viewport_height", defaults.viewport_height))
    log_level = str(data.get("log_level", defaults.log_level)).upper()
    transport = str(data.get("transport", defaults.transport)).lower()
    host = str(data.get("host", defaults.host))
    port = int(data.get("port", defaults.port))

    launch_args = defaults.launch_args
    if "launch_args" in data:
        raw_args = data["launch_args"]
        if isinstance(raw_args, list):
            launch_args = tuple(str(x) for x in raw_args)
        else:
            launch_args = (str(raw_args),) if raw_args else ()

    if viewport_width <= 0 or viewport_height <= 0:
        raise ValueError(
            f"viewport must be positive, got {viewport_width}x{viewport_height}"
        )
    if transport not in _TRANSPORTS:
        raise ValueError(f"transport must be one of {', '.join(_TRANSPORTS)}, got: {transport}")
    if not 0 < port < 65536:
        raise ValueError(f"port must be between 1 and 65535, got {port}")

    return Config(
        headless=headless,
        executable_path=executable_path,
        launch_args=launch_args,
        viewport_width=viewport_width,
        viewport_height=viewport_height,
        log_level=log_level,
        transport=transport,
        host=host,
        port=port,
    )


@lru_cache
def get_config() -> Config:
    return load_config(os.environ.get(CONFIG_ENV_VAR))
