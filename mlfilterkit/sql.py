"""Database connections for the tracking store, with SQL statement logging."""

from __future__ import annotations

import inspect
import logging
import sys
import time
import weakref
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Tuple
from urllib.parse import SplitResult, unquote, urlsplit, urlunsplit

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import QueuePool

_NO_SCHEME_MESSAGE = (
    "no database schema was found, we suspect you might be trying to use the file store,"
    " which is not supported. Please pass a '--backend-store-uri' argument pointing to a database"
)

_MAXIMUM_CALLER_DEPTH = 15
_QUERY_STARTS = "mlfilterkit_query_starts"
_THIS_FILE = Path(__file__).resolve()

SqlFunction = Callable[[], Tuple[str, int]]


class StoreURLError(ValueError):
    """Raised when a store URL does not name a supported database."""


class RecordNotFoundError(LookupError):
    """Raised when a query that expects a record finds none."""


@dataclass(frozen=True)
class Dialector:
    """The database kind and connection strings derived from a store URL.

    ``dsn`` is the driver-level connection string, ``sqlalchemy_url`` the URL
    handed to :func:`sqlalchemy.create_engine`.
    """

    name: str
    dsn: str
    sqlalchemy_url: str


def _sqlite_dsn(netloc: str, path: str, query: str) -> str:
    text = ""
    if netloc:
        text = "//" + netloc
        if path and not path.startswith("/"):
            text += "/"
    elif ":" in path.split("/", 1)[0]:
        # Keep a leading segment with a colon from being read as a scheme.
        text = "./"
    text += path
    if query:
        text += "?" + query
    return text


def _sqlite_dialector(parts: SplitResult) -> Dialector:
    if not parts.path:
        raise StoreURLError("missing sqlite database path")

    path = parts.path[1:]
    decoded = unquote(path)
    if decoded == ":memory:":
        raise StoreURLError("in-memory sqlite databases (:memory:) are not supported")

    if sys.platform == "win32":
        if parts.query:
            raise StoreURLError("query parameters are not supported on Windows")
        dsn = decoded.replace("/", "\\")
    else:
        dsn = _sqlite_dsn(parts.netloc, path, parts.query)

    url = "sqlite:///" + decoded
    if parts.query:
        url += "?" + parts.query
    return Dialector("sqlite", dsn, url)


def get_dialector(store_url: str) -> Dialector:
    """Work out which database a store URL points at and how to reach it."""
    parts = urlsplit(store_url)
    scheme, _, driver = parts.scheme.partition("+")

    if scheme == "mssql":
        dsn = urlunsplit(parts._replace(scheme="sqlserver"))
        return Dialector("sqlserver", dsn, store_url)
    if scheme == "mysql":
        userinfo, _, host = parts.netloc.rpartition("@")
        return Dialector(
            "mysql", f"{userinfo}@tcp({host}){parts.path}?{parts.query}", store_url
        )
    if scheme in ("postgres", "postgresql"):
        dsn = urlunsplit(parts._replace(scheme=scheme))
        engine_scheme = "postgresql" + (f"+{driver}" if driver else "")
        return Dialector(
            "postgres", dsn, urlunsplit(parts._replace(scheme=engine_scheme))
        )
    if scheme == "sqlite":
        return _sqlite_dialector(parts)
    if not scheme:
        raise StoreURLError(_NO_SCHEME_MESSAGE)
    raise StoreURLError(f'unsupported store URL scheme "{scheme}"')


@dataclass
class LoggerAdaptorConfig:
    """Settings for :class:`LoggerAdaptor`; ``slow_threshold`` is in seconds, 0 disables it."""

    slow_threshold: float = 0.0
    ignore_record_not_found_error: bool = False
    parameterized_queries: bool = False


def _format_duration(seconds: float) -> str:
    if seconds >= 1:
        return f"{seconds:g}s"
    return f"{seconds * 1000:g}ms"


def _is_internal_file(filename: str) -> bool:
    try:
        path = Path(filename).resolve()
    except (OSError, ValueError):
        return False
    return path == _THIS_FILE or "sqlalchemy" in path.parts


class LoggerAdaptor:
    """Sends database messages and SQL traces to a :mod:`logging` logger."""

    def __init__(
        self, logger: logging.Logger, config: Optional[LoggerAdaptorConfig] = None
    ) -> None:
        self.logger = logger
        self.config = config if config is not None else LoggerAdaptorConfig()

    @staticmethod
    def _caller_fields() -> dict[str, Any]:
        frame = inspect.currentframe()
        depth = 0
        while frame is not None and depth < _MAXIMUM_CALLER_DEPTH:
            code = frame.f_code
            if not _is_internal_file(code.co_filename):
                return {
                    "app_file": f"{code.co_filename}:{frame.f_lineno}",
                    "app_func": f"{code.co_name}()",
                }
            frame = frame.f_back
            depth += 1
        return {}

    def info(self, message: str, *args: Any) -> None:
        """Log a message at info level."""
        self.logger.info(message, *args, extra=self._caller_fields(), stacklevel=2)

    def warn(self, message: str, *args: Any) -> None:
        """Log a message at warning level."""
        self.logger.warning(message, *args, extra=self._caller_fields(), stacklevel=2)

    def error(self, message: str, *args: Any) -> None:
        """Log a message at error level."""
        self.logger.error(message, *args, extra=self._caller_fields(), stacklevel=2)

    def _sql_fields(self, elapsed: float, function: Optional[SqlFunction]) -> dict[str, Any]:
        fields = self._caller_fields()
        if function is not None:
            sql, rows = function()
            fields.update(
                elapsed=f"{elapsed * 1000:.3f}ms",
                rows="-" if rows == -1 else rows,
                sql=sql,
            )
        return fields

    def trace(
        self,
        begin: float,
        function: Optional[SqlFunction],
        err: Optional[BaseException],
    ) -> None:
        """Log one executed statement.

        ``begin`` is a :func:`time.monotonic` reading taken when the statement
        started; ``function`` returns the SQL text and affected row count.
        """
        log = self.logger
        if not log.isEnabledFor(logging.ERROR):
            return

        elapsed = time.monotonic() - begin
        threshold = self.config.slow_threshold

        if (
            err is not None
            and log.isEnabledFor(logging.ERROR)
            and (
                not isinstance(err, RecordNotFoundError)
                or not self.config.ignore_record_not_found_error
            )
        ):
            fields = self._sql_fields(elapsed, function)
            fields["error"] = str(err)
            log.error("SQL error", extra=fields)
        elif threshold and elapsed > threshold and log.isEnabledFor(logging.WARNING):
            log.warning(
                "SLOW SQL >= %s",
                _format_duration(threshold),
                extra=self._sql_fields(elapsed, function),
            )
        elif log.isEnabledFor(logging.DEBUG):
            log.debug("SQL trace", extra=self._sql_fields(elapsed, function))


_ADAPTORS: "weakref.WeakKeyDictionary[Engine, LoggerAdaptor]" = weakref.WeakKeyDictionary()


def _pop_start(connection: Any) -> float:
    if connection is None:
        return time.monotonic()
    starts = connection.info.get(_QUERY_STARTS)
    return starts.pop() if starts else time.monotonic()


def _install_tracing(engine: Engine, adaptor: LoggerAdaptor) -> None:
    @event.listens_for(engine, "before_cursor_execute")
    def _before(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault(_QUERY_STARTS, []).append(time.monotonic())

    @event.listens_for(engine, "after_cursor_execute")
    def _after(conn, cursor, statement, parameters, context, executemany):
        begin = _pop_start(conn)
        rows = cursor.rowcount
        adaptor.trace(begin, lambda: (statement, rows), None)

    @event.listens_for(engine, "handle_error")
    def _error(context):
        begin = _pop_start(context.connection)
        statement = context.statement or ""
        adaptor.trace(begin, lambda: (statement, -1), context.original_exception)


def _install_sqlite_setup(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.execute("PRAGMA case_sensitive_like = true;")


def new_database(store_url: str, logger: Optional[logging.Logger] = None) -> Engine:
    """Open the database named by ``store_url`` and check that it can be reached."""
    logger = logger if logger is not None else logging.getLogger(__name__)
    dialector = get_dialector(store_url)
    adaptor = LoggerAdaptor(logger, LoggerAdaptorConfig(ignore_record_not_found_error=True))

    options: dict[str, Any] = {}
    if dialector.name == "sqlite":
        # A single connection avoids "database is locked" under parallel transactions.
        options.update(
            poolclass=QueuePool,
            pool_size=1,
            max_overflow=0,
            connect_args={"check_same_thread": False},
        )

    try:
        engine = create_engine(dialector.sqlalchemy_url, **options)
    except (SQLAlchemyError, ImportError) as err:
        raise ConnectionError(f'failed to connect to database "{store_url}": {err}') from err

    _install_tracing(engine, adaptor)
    if dialector.name == "sqlite":
        _install_sqlite_setup(engine)

    try:
        with engine.connect():
            pass
    except SQLAlchemyError as err:
        engine.dispose()
        raise ConnectionError(f'failed to connect to database "{store_url}": {err}') from err

    _ADAPTORS[engine] = adaptor
    return engine


def close_database(engine: Engine) -> None:
    """Close every pooled connection; fail if some were still checked out."""
    adaptor = _ADAPTORS.get(engine) or LoggerAdaptor(logging.getLogger(__name__))
    adaptor.info("closing sql connection")

    checkedout = getattr(engine.pool, "checkedout", None)
    in_use = checkedout() if callable(checkedout) else 0

    try:
        engine.dispose()
    except SQLAlchemyError as err:
        raise ConnectionError(f"error while closing store: {err}") from err

    if in_use > 0:
        raise RuntimeError(f"there are still in use connections: {in_use}")