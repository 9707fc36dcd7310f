from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from typing import Optional

import mysql.connector
from mysql.connector import pooling

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str
    connection_timeout: int = 5
    pool_size: int = 5

    @classmethod
    def from_settings(cls, db_config: dict) -> "DBConfig":
        return cls(
            host=str(db_config["host"]),
            port=int(db_config.get("port", 3306)),
            user=str(db_config["user"]),
            password=str(db_config["password"]),
            database=str(db_config["database"]),
            connection_timeout=int(db_config.get("connection_timeout", 5)),
            pool_size=int(db_config.get("pool_size", 5)),
        )


class DatabaseConnection:
    """Process-wide connection source, one per distinct DBConfig.

    Each repository call borrows a connection and closes it when done; with a
    pool, closing hands the connection back instead of dropping it.
    """

    _instances: dict[DBConfig, "DatabaseConnection"] = {}
    _instances_lock = threading.Lock()

    def __init__(self, config: DBConfig):
        self._config = config
        self._pool: Optional[pooling.MySQLConnectionPool] = None
        self._pool_lock = threading.Lock()

    @classmethod
    def get_instance(cls, config: DBConfig) -> "DatabaseConnection":
        with cls._instances_lock:
            instance = cls._instances.get(config)
            if instance is None:
                instance = cls(config)
                cls._instances[config] = instance
            return instance

    def _connect_kwargs(self) -> dict:
        kwargs = asdict(self._config)
        kwargs.pop("pool_size")
        return kwargs

    def _get_pool(self) -> pooling.MySQLConnectionPool:
        # Created lazily so building the app never needs a reachable database.
        with self._pool_lock:
            if self._pool is None:
                self._pool = pooling.MySQLConnectionPool(
                    pool_name=f"classroom-{self._config.database}",
                    pool_size=self._config.pool_size,
                    **self._connect_kwargs(),
                )
                logger.info(
                    "MySQL pool ready: %s@%s:%s/%s (size=%s)",
                    self._config.user, self._config.host, self._config.port,
                    self._config.database, self._config.pool_size,
                )
            return self._pool

    def connect(self):
        if self._config.pool_size <= 0:
            return mysql.connector.connect(**self._connect_kwargs())
        return self._get_pool().get_connection()
