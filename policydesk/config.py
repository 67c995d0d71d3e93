from __future__ import annotations

import configparser
from pathlib import Path

from policydesk.exceptions import ConfigError
from policydesk.models.config import AppConfig

CONFIG_FILENAME = ".policydesk.ini"
_SECTION = "policydesk"
_REQUIRED_KEYS = ("api_url", "api_key", "access_token")


def config_exists(directory: Path) -> bool:
    return (directory / CONFIG_FILENAME).is_file()


def write_config(directory: Path, config: AppConfig) -> None:
    cp = configparser.ConfigParser(interpolation=None)
    cp[_SECTION] = {
        "api_url": config.api_url,
        "api_key": config.api_key,
        "access_token": config.access_token,
        "user_email": config.user_email,
    }
    with open(directory / CONFIG_FILENAME, "w", encoding="utf-8") as f:
        cp.write(f)


def read_config(directory: Path) -> AppConfig:
    path = directory / CONFIG_FILENAME
    if not path.is_file():
        raise ConfigError("Configuration not found. Run policydesk --init first.")

    cp = configparser.ConfigParser(interpolation=None)
    try:
        cp.read(str(path), encoding="utf-8")
    except configparser.Error as exc:
        raise ConfigError(
            f"Invalid configuration format in {CONFIG_FILENAME}. "
            "Run policydesk --init to reconfigure."
        ) from exc

    if not cp.has_section(_SECTION):
        raise ConfigError(
            f"Invalid configuration: missing [{_SECTION}] section in {CONFIG_FILENAME}."
        )

    for key in _REQUIRED_KEYS:
        if not cp.has_option(_SECTION, key) or not cp.get(_SECTION, key).strip():
            raise ConfigError(
                f"Invalid configuration: missing or empty '{key}' in {CONFIG_FILENAME}. "
                "Run policydesk --init to reconfigure."
            )

    return AppConfig(
        api_url=cp.get(_SECTION, "api_url"),
        api_key=cp.get(_SECTION, "api_key"),
        access_token=cp.get(_SECTION, "access_token"),
        user_email=cp.get(_SECTION, "user_email", fallback=""),
    )
