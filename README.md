# mlfilterkit

Building blocks for the back end of an ML experiment tracking server:

- `mlfilterkit.lexer`: a tokenizer for run search filters such as
  `metrics.accuracy > 0.9 AND params.solver ILIKE "L%"`;
- `mlfilterkit.sql`: turns a backend store URI into a SQLAlchemy engine,
  with a logging adaptor for SQL traces;
- `mlfilterkit.command`: runs a helper process in its own process group and
  stops the whole group on cancellation.

## Installing

```
pip install .
```

For the test suite:

```
pip install ".[test]"
pytest
```

## Tokenizing search filters

```python
from mlfilterkit.lexer import tokenize, LexerError

tokens = tokenize("metrics.accuracy > 0.72")
print(" ".join(token.debug() for token in tokens))
# identifier(metrics) dot identifier(accuracy) greater number(0.72) eof
```

`tokenize` returns a list of `Token` objects (each with a `kind`, a
`TokenKind`, and the matched `value` text) and always ends with an EOF
token. Whitespace is skipped. Strings may be quoted with `"`, `'` or
backticks and keep their quotes in `value`; numbers may carry a leading
minus and a fractional part. The words `AND`, `NOT`, `IN`, `LIKE` and
`ILIKE` are recognised in any letter case; other words are identifiers.

`Token.debug()` gives the lower-case kind name, followed by the text in
parentheses for identifiers, numbers and strings. `token_kind_string(kind)`
gives the kind name alone, or `unknown(n)` for a value that is not a kind.

Text that matches no token, such as an unterminated string, raises
`LexerError`:

```python
try:
    tokenize("params.acc = 'LR")
except LexerError as exc:
    print(exc)  # unrecognized token near ''LR'
```

## Connecting to a store

```python
import logging
from mlfilterkit.sql import new_database, close_database

engine = new_database("sqlite:///mlruns.db", logging.getLogger("store"))
# ... use the engine ...
close_database(engine)
```

`get_dialector(store_url)` works out which database a URI names and returns
a `Dialector` with its `name` (`sqlite`, `mysql`, `postgres` or
`sqlserver`), a driver-level `dsn` and the `sqlalchemy_url` handed to
SQLAlchemy. Supported schemes are `sqlite`, `mysql`, `postgres`/`postgresql`
and `mssql`, each optionally with a `+driver` suffix. An in-memory SQLite
database, a URI without a scheme and an unknown scheme are rejected with
`StoreURLError`; on Windows, SQLite URIs with query parameters are rejected
too.

`new_database` opens the engine, checks that a connection can be made and
raises `ConnectionError` if not. SQLite engines use a single pooled
connection and turn on `case_sensitive_like`. Every statement is reported
through a `LoggerAdaptor`: failures at error level ("SQL error"), and
otherwise a debug-level "SQL trace" with the SQL text, row count and elapsed
time as log record attributes.

`close_database` disposes of the engine's connections and raises
`RuntimeError` if some were still checked out.

`LoggerAdaptor(logger, LoggerAdaptorConfig(...))` can also be used directly.
Its `info`, `warn` and `error` methods log a message with the calling code's
file and function attached; `trace(begin, function, err)` logs one statement,
where `begin` is a `time.monotonic()` reading and `function` returns the SQL
text and affected row count. With `slow_threshold` (seconds) set, statements
slower than it are logged as warnings; with `ignore_record_not_found_error`
set, a `RecordNotFoundError` is not logged as an error.

## Launching a helper process

```python
import logging
import threading
from mlfilterkit.command import launch_command

cancel = threading.Event()
launch_command(["python", "-m", "http.server"], ["PORT=5001"], cancel,
               logging.getLogger("helper"))
```

The command runs in a new process group with the current environment plus
the given `KEY=VALUE` entries (a mapping works as well). Its standard output
and error go to the logger at info level, one record per line. Setting
`cancel` sends an interrupt to the process group (on Windows the process
tree is terminated); if the process is still running `WAIT_DELAY` seconds
later it is killed. `CommandError` is raised when the command is empty,
cannot be started, exits with a non-zero status, or was cancelled.

## What this package does not do

The lexer stops at tokens: there is no parser that builds comparison
expressions from them and no check that identifiers, keys and values form a
valid search filter. The package also has no HTTP server and no tracking or
model registry store; `new_database` gives an engine but creates no tables.