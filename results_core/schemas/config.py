"""
Schemas of the sections of the config file
"""

from typing import Dict, Optional, Union

import pydantic


class ServerConfig(pydantic.BaseModel):
    host: str = "127.0.0.1"
    port: pydantic.conint(gt=0, lt=65536) = 8000
    public_base_url: Optional[pydantic.HttpUrl] = None


class AuthConfig(pydantic.BaseModel):
    secret_key: Optional[pydantic.constr(min_length=16)] = None
    """Key to sign and verify access tokens (a random per-process key will be used if unset)"""
    token_expiration_minutes: pydantic.PositiveInt = 120


class DatabaseConfig(pydantic.BaseModel):
    connection: str = "sqlite://"
    debug_sql: bool = False


class LoggingConfig(pydantic.BaseModel):
    version: pydantic.conint(ge=1, le=1) = 1
    disable_existing_loggers: bool = False
    incremental: bool = False
    filters: Dict[str, Dict[str, Union[str, list]]] = {
        "sqlalchemy_no_debug": {
            "()": "results_core.misc.logger.NoDebugFilter",
            "name": "sqlalchemy.engine"
        }
    }
    formatters: Dict[str, Dict[str, str]] = {
        "default": {
            "style": "{",
            "format": "{asctime} [{levelname:<8}] {name}: {message}",
            "datefmt": "%Y-%m-%d %H:%M:%S"
        },
        "file": {
            "style": "{",
            "format": "{asctime} {process:>6} [{levelname:<8}] {name}: {message}",
            "datefmt": "%Y-%m-%dT%H:%M:%S"
        },
        "access": {
            "()": "uvicorn.logging.AccessFormatter",
            "fmt": "%(asctime)s %(client_addr)s \"%(request_line)s\" %(status_code)s"
        }
    }
    loggers: Dict[str, dict] = {
        "uvicorn.access": {
            "level": "INFO",
            "handlers": ["access"],
            "propagate": False
        }
    }
    handlers: Dict[str, Dict[str, Union[str, list]]] = {
        "default": {
            "level": "INFO",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "default"
        },
        "file": {
            "level": "DEBUG",
            "class": "logging.FileHandler",
            "filename": "./results_core.log",
            "formatter": "file",
            "filters": ["sqlalchemy_no_debug"]
        },
        "access": {
            "level": "INFO",
            "class": "logging.FileHandler",
            "filename": "./access.log",
            "formatter": "access"
        }
    }
    root: dict = {
        "level": "INFO",
        "handlers": ["default", "file"]
    }


class CoreConfig(pydantic.BaseModel):
    server: ServerConfig
    auth: AuthConfig
    database: DatabaseConfig
    logging: LoggingConfig
