"""Server properties and the server option set."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from embedded_mariadb.domain.value_objects import Credentials, OperatingSystemType

DEFAULT_PORT = 3306

# Typed option fields in the order they are emitted, paired with the server's
# option name. Free-form arguments always precede these.
_TYPED_OPTIONS: tuple[tuple[str, str], ...] = (
    ("port", "port"),
    ("max_allowed_packet_bytes", "max_allowed_packet"),
    ("key_buffer_bytes", "key_buffer_size"),
    ("thread_stack_bytes", "thread_stack"),
    ("thread_cache_size", "thread_cache_size"),
    ("table_open_cache", "table_open_cache"),
    ("max_heap_table_bytes", "max_heap_table_size"),
    ("query_cache_limit_bytes", "query_cache_limit"),
    ("query_cache_bytes", "query_cache_size"),
    ("innodb_buffer_pool_instances", "innodb_buffer_pool_instances"),
    ("innodb_buffer_pool_bytes", "innodb_buffer_pool_size"),
    ("innodb_log_file_bytes", "innodb_log_file_size"),
    ("innodb_log_buffer_bytes", "innodb_log_buffer_size"),
    ("max_connections", "max_connections"),
    ("innodb_flush_log_at_trx_commit", "innodb_flush_log_at_trx_commit"),
    ("innodb_flush_method", "innodb_flush_method"),
    ("innodb_io_capacity", "innodb_io_capacity"),
    ("innodb_io_capacity_max", "innodb_io_capacity_max"),
    ("innodb_page_cleaners", "innodb_page_cleaners"),
    ("innodb_max_dirty_pages_pct", "innodb_max_dirty_pages_pct"),
    ("innodb_max_dirty_pages_pct_lwm", "innodb_max_dirty_pages_pct_lwm"),
    ("innodb_read_io_threads", "innodb_read_io_threads"),
    ("innodb_write_io_threads", "innodb_write_io_threads"),
    ("innodb_lru_scan_depth", "innodb_lru_scan_depth"),
    ("myisam_sort_buffer_bytes", "myisam_sort_buffer_size"),
    ("performance_schema", "performance_schema"),
    ("slow_query_log", "slow_query_log"),
    ("slow_query_log_file", "slow_query_log_file"),
    ("long_query_time", "long_query_time"),
    ("general_log", "general_log"),
    ("general_log_file", "general_log_file"),
)

_TYPED_OPTION_NAMES = frozenset(name for _, name in _TYPED_OPTIONS)

# Boolean options and how the server spells (true, false) for them.
_BOOLEAN_SPELLINGS: dict[str, tuple[str, str]] = {
    "performance_schema": ("ON", "OFF"),
    "slow_query_log": ("1", "0"),
    "general_log": ("1", "0"),
}


@dataclass(frozen=True)
class ServerOptions:
    """Immutable server option set.

    Typed fields cover commonly tuned server variables; a field left as
    ``None`` is not emitted. Anything else goes through ``with_argument``,
    which takes a fully specified argument such as ``--skip-name-resolve`` or
    ``--character-set-server=utf8mb4``. Free-form arguments are emitted first,
    in insertion order, followed by the typed fields in a fixed order.

    See https://mariadb.com/kb/en/server-system-variables/ for semantics.
    """

    arguments: tuple[str, ...] = ()

    port: int | None = None
    max_connections: int | None = None
    max_allowed_packet_bytes: int | None = None
    key_buffer_bytes: int | None = None
    thread_stack_bytes: int | None = None
    thread_cache_size: int | None = None
    table_open_cache: int | None = None
    max_heap_table_bytes: int | None = None
    query_cache_limit_bytes: int | None = None
    query_cache_bytes: int | None = None
    innodb_buffer_pool_instances: int | None = None
    innodb_buffer_pool_bytes: int | None = None
    innodb_log_file_bytes: int | None = None
    innodb_log_buffer_bytes: int | None = None
    innodb_flush_log_at_trx_commit: int | None = None
    innodb_flush_method: str | None = None  # fsync, O_DSYNC, O_DIRECT, O_DIRECT_NO_FSYNC, ...
    innodb_io_capacity: int | None = None
    innodb_io_capacity_max: int | None = None
    innodb_page_cleaners: int | None = None
    innodb_max_dirty_pages_pct: float | None = None  # 0.00 - 99.99
    innodb_max_dirty_pages_pct_lwm: float | None = None  # 0.00 - 99.99
    innodb_read_io_threads: int | None = None
    innodb_write_io_threads: int | None = None
    innodb_lru_scan_depth: int | None = None
    myisam_sort_buffer_bytes: int | None = None
    performance_schema: bool | None = None
    slow_query_log: bool | None = None
    slow_query_log_file: str | None = None
    long_query_time: float | None = None
    general_log: bool | None = None
    general_log_file: str | None = None

    def with_argument(self, argument: str) -> ServerOptions:
        """Return a copy with a free-form argument appended.

        Raises:
            ValueError: If the argument is blank or names an option that has a
                typed field (``--port=3307``, ``--max-connections=10``).
        """
        if not argument.strip():
            raise ValueError("Argument must not be blank")
        name = argument.strip().lstrip("-").split("=", 1)[0].strip().replace("-", "_")
        if name in _TYPED_OPTION_NAMES:
            raise ValueError(f"Option {name} has a typed field; set it with with_options()")
        return dataclasses.replace(self, arguments=(*self.arguments, argument))

    def with_options(self, **changes: object) -> ServerOptions:
        """Return a copy with typed fields replaced (``None`` unsets a field)."""
        return dataclasses.replace(self, **changes)

    def with_slow_query_log(self, log_file: str, min_query_seconds: float) -> ServerOptions:
        return self.with_options(
            slow_query_log=True,
            slow_query_log_file=log_file,
            long_query_time=min_query_seconds,
        )

    def with_general_log(self, log_file: str) -> ServerOptions:
        return self.with_options(general_log=True, general_log_file=log_file)

    def typed_items(self) -> list[tuple[str, str]]:
        """Return ``(option_name, value)`` pairs for every typed field that is set."""
        items: list[tuple[str, str]] = []
        for field_name, option_name in _TYPED_OPTIONS:
            value = getattr(self, field_name)
            if value is None:
                continue
            if isinstance(value, bool):
                when_true, when_false = _BOOLEAN_SPELLINGS[field_name]
                items.append((option_name, when_true if value else when_false))
            else:
                items.append((option_name, str(value)))
        return items

    def to_arguments(self) -> list[str]:
        """Return the option set as command-line arguments."""
        return [
            *self.arguments,
            *(f"--{name}={value}" for name, value in self.typed_items()),
        ]


def _freeze(mapping: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class ServerProperties:
    """Everything the lifecycle manager needs to know about one server.

    Created by the caller before install/start and never mutated afterwards.

    Attributes:
        root_password: Password assigned to root during bootstrap.
        credentials: Least-privilege application account.
        schema: Application schema created during bootstrap.
        installation_directory: Where binaries are extracted.
        data_directory: Where the server keeps its data files.
        operating_system: Selects packaged binaries and launch conventions.
        options: Server option set written to the defaults file.
        connection_options: Driver-level options passed to the connection factory.
    """

    root_password: str = field(repr=False)
    credentials: Credentials
    schema: str
    installation_directory: Path
    data_directory: Path
    operating_system: OperatingSystemType = field(default_factory=OperatingSystemType.detect)
    hostname: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    options: ServerOptions = field(default_factory=ServerOptions)
    connection_options: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.schema:
            raise ValueError("schema must not be empty")
        if not 1 <= self.port <= 65535:
            raise ValueError(f"port out of range: {self.port}")
        object.__setattr__(self, "installation_directory", Path(self.installation_directory))
        object.__setattr__(self, "data_directory", Path(self.data_directory))
        object.__setattr__(self, "connection_options", _freeze(self.connection_options))

    @property
    def root_credentials(self) -> Credentials:
        return Credentials.root(self.root_password)

    @property
    def maintenance_credentials(self) -> Credentials:
        return Credentials.maintenance(self.schema, self.root_password)

    def server_options(self) -> ServerOptions:
        """Return the configured option set with this server's port applied."""
        return self.options.with_options(port=self.port)
