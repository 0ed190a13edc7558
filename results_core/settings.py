"""
Results core settings provider

Settings are collected from (in descending priority) keyword arguments,
environment variables (nested sections separated by ``__``, e.g.
``DATABASE__CONNECTION``), the ``.env`` file, secret files, the JSON
config file and finally the built-in defaults.
"""

import os
import sys
import functools
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

try:
    import ujson as json
except ImportError:
    import json

from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from .schemas import config


SETTINGS_CREATE_NONEXISTENT: bool = False
"""
switch to write the default configuration to the first config path when no config file exists
"""

SETTINGS_EXIT_ON_ERROR: bool = False
"""
switch to exit the program when no config file exists (the defaults are used otherwise)
"""

SETTINGS_LOG_ERROR_FUNCTION: Optional[Callable[[str], Any]] = functools.partial(print, file=sys.stderr)
SETTINGS_LOG_INFO_FUNCTION: Optional[Callable[[str], Any]] = None

CONFIG_PATHS: List[str] = ["config.json", os.path.join("..", "config.json")]
"""
candidate locations of the config file, the first existing one is used
"""

if os.environ.get("CONFIG_PATH"):
    CONFIG_PATHS = [os.environ["CONFIG_PATH"]]


def get_db_from_env(db_override: Optional[str] = None) -> Optional[str]:
    return db_override or os.environ.get("DATABASE_CONNECTION") or os.environ.get("DATABASE__CONNECTION")


class Settings(BaseSettings, config.CoreConfig):
    """
    Results core settings

    The settings are read once when the application is created. Restart
    the server after changing the config file, since changes at runtime
    aren't picked up by the already created application.
    """

    model_config = SettingsConfigDict(env_nested_delimiter="__", env_file=".env", extra="ignore")

    @classmethod
    def settings_customise_sources(
            cls,
            settings_cls: Type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,
            file_secret_settings: PydanticBaseSettingsSource
    ) -> Tuple[Callable[[], Dict[str, Any]], ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
            read_settings_from_file,
            get_default_config
        )


def store_configuration(conf: Optional[config.CoreConfig] = None, path: Optional[str] = None) -> config.CoreConfig:
    """
    Write the configuration (or the defaults) as JSON file to the path (or the first config path)
    """

    target = path or os.path.abspath(CONFIG_PATHS[0])
    conf = conf or get_default_core_config(get_db_from_env())
    with open(target, "w", encoding="UTF-8") as file:
        json.dump(conf.model_dump(mode="json"), file, indent=4)
    if SETTINGS_LOG_INFO_FUNCTION:
        SETTINGS_LOG_INFO_FUNCTION(f"Stored the configuration in {target!r}.")
    return conf


def read_settings_from_file() -> Dict[str, Any]:
    """
    Return the content of the first existing config file (or an empty dict)
    """

    for path in CONFIG_PATHS:
        if os.path.exists(path):
            with open(path, "r", encoding="UTF-8") as file:
                return json.load(file)

    if SETTINGS_CREATE_NONEXISTENT:
        return store_configuration().model_dump(mode="json")
    if SETTINGS_EXIT_ON_ERROR:
        if SETTINGS_LOG_ERROR_FUNCTION:
            SETTINGS_LOG_ERROR_FUNCTION("No config file found! Run the 'init' command to create one.")
        sys.exit(1)
    return {}


def get_default_core_config(database_override: Optional[str] = None) -> config.CoreConfig:
    defaults = config.CoreConfig(
        server=config.ServerConfig(),
        auth=config.AuthConfig(),
        database=config.DatabaseConfig(),
        logging=config.LoggingConfig()
    )
    if database_override:
        defaults.database.connection = database_override
    return defaults


def get_default_config() -> Dict[str, Any]:
    return get_default_core_config().model_dump(mode="json")
