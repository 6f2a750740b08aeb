"""
Streaming dump transpiler.

Reads a MySQL/MariaDB or PostgreSQL dump line by line and replays it into a
staging SQLite file. The reader is a small state machine:

- NORMAL: lines are converted and accumulated until a line ends with ``;``,
  then the statement is classified and executed.
- CREATE_TABLE: lines pass through the type/option rule table until the
  closing ``);`` line.
- FUNCTION_BODY: stored routine bodies are discarded.
- BULK_LOAD: ``COPY ... FROM stdin`` data rows are captured until ``\\.`` and
  inserted as one batch.

SQL-level failures never stop the transpiler; they are logged and counted.
Only failing to open, stage or read the dump is fatal.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, TextIO, Union

import structlog
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from sql2csv.config.settings import Settings, get_settings
from sql2csv.database.dialects import DBType, parse_dump_dialect
from sql2csv.exceptions import BulkLoadRowMismatch, TranspileError, TranspileStage
from sql2csv.transpiler.bulk_load import (
    END_OF_DATA,
    BulkLoadBatch,
    insert_batch,
    parse_copy_header,
)
from sql2csv.transpiler.classifier import should_skip_statement
from sql2csv.transpiler.constraints import rewrite_constraint
from sql2csv.transpiler.rules import convert_types, normalize_statement_line
from sql2csv.transpiler.staging import (
    StagingStore,
    TranspileStats,
    create_staging_store,
)

logger = structlog.get_logger(__name__)

# Progress reporting interval (lines)
PROGRESS_INTERVAL = 100000

COMMENT_PREFIXES = ("--", "#", "/*")

CREATE_TABLE_HEADER = re.compile(
    r"^CREATE\s+(?:(?:GLOBAL|LOCAL)\s+)?(?:UNLOGGED\s+|TEMP\s+|TEMPORARY\s+)?TABLE\b",
    re.IGNORECASE,
)
FUNCTION_HEADER = re.compile(
    r"^CREATE\s+(?:OR\s+REPLACE\s+)?(?:DEFINER\s*=\s*\S+\s+)?(?:FUNCTION|PROCEDURE)\b",
    re.IGNORECASE,
)
DOLLAR_TAG = re.compile(r"\$(?:[A-Za-z_][A-Za-z_0-9]*)?\$")
END_OF_ROUTINE = re.compile(r"^END\s*(?:;;|;|\$\$|//)\s*$", re.IGNORECASE)
INLINE_ROUTINE_END = re.compile(r"\bEND\s*;+$", re.IGNORECASE)
DELIMITER_LINE = re.compile(r"^DELIMITER\s+(\S+)", re.IGNORECASE)

# BEGIN ... END and CASE ... END nesting inside a routine body
BLOCK_OPEN = re.compile(
    r"\bBEGIN\b(?!\s+(?:TRANSACTION|WORK)\b)|(?<!\bEND\s)\bCASE\b", re.IGNORECASE
)
BLOCK_CLOSE = re.compile(r"\bEND\b(?!\s+(?:IF|LOOP|WHILE|REPEAT|FOR)\b)", re.IGNORECASE)
QUOTED_TEXT = re.compile(r"'(?:[^'\\]|\\.|'')*'")

SEQUENCE_STATEMENT = re.compile(r"\b(?:CREATE|ALTER)\s+SEQUENCE\b|\bSEQUENCE\s+NAME\b")
SEQUENCE_OPTION = re.compile(
    r"^(?:AS\s+(?:smallint|integer|bigint)|START\s+WITH|INCREMENT\s+BY|NO\s+MINVALUE"
    r"|NO\s+MAXVALUE|MINVALUE\s+-?\d|MAXVALUE\s+\d|CACHE\s+\d|NO\s+CYCLE|CYCLE)\b[^;]*;?$",
    re.IGNORECASE,
)

# Trailing comma before the last closing parenthesis of a statement
TRAILING_COMMA = re.compile(r",\s*\)(?=[^)]*;\s*$)")


class ParseMode(Enum):
    """What the transpiler does with the next line."""

    NORMAL = "normal"
    FUNCTION_BODY = "function_body"
    BULK_LOAD = "bulk_load"
    CREATE_TABLE = "create_table"


@dataclass
class _ParserState:
    """Current mode together with the data that belongs to it."""

    mode: ParseMode = ParseMode.NORMAL
    batch: Optional[BulkLoadBatch] = None
    dollar_tags: int = 0
    block_depth: int = 0

    def to_normal(self) -> None:
        self.mode = ParseMode.NORMAL
        self.batch = None
        self.dollar_tags = 0
        self.block_depth = 0

    def to_function_body(self, dollar_tags: int, block_depth: int = 0) -> None:
        self.to_normal()
        self.mode = ParseMode.FUNCTION_BODY
        self.dollar_tags = dollar_tags
        self.block_depth = block_depth

    def to_bulk_load(self, batch: BulkLoadBatch) -> None:
        self.to_normal()
        self.mode = ParseMode.BULK_LOAD
        self.batch = batch

    def to_create_table(self) -> None:
        self.to_normal()
        self.mode = ParseMode.CREATE_TABLE


@dataclass
class PendingStatement:
    """Converted fragments of the statement being accumulated."""

    fragments: List[str] = field(default_factory=list)
    start_line: int = 0

    def append(self, fragment: str, line_number: int) -> None:
        if not self.fragments:
            self.start_line = line_number
        self.fragments.append(fragment)

    def flush(self) -> str:
        statement = " ".join(self.fragments)
        self.fragments = []
        return statement

    def __bool__(self) -> bool:
        return bool(self.fragments)


def is_comment(line: str) -> bool:
    return line.startswith(COMMENT_PREFIXES)


def convert_syntax(line: str, dialect: DBType) -> str:
    """
    Convert one line outside CREATE TABLE and bulk-load blocks.

    Sequence, ownership and ``pg_catalog`` lines have no SQLite equivalent and
    become empty. ``ADD CONSTRAINT`` lines go through the constraint rewriter.
    Everything else only gets dialect clean-ups.
    """
    if SEQUENCE_STATEMENT.search(line) or SEQUENCE_OPTION.match(line):
        return ""
    if "OWNER TO" in line:
        return ""
    if "pg_catalog." in line:
        return ""
    if line.startswith("DELIMITER"):
        return ""
    if "ADD CONSTRAINT" in line:
        return rewrite_constraint(normalize_statement_line(line, dialect))
    return normalize_statement_line(line, dialect)


def block_depth_change(line: str) -> int:
    """
    Net number of ``BEGIN``/``CASE`` blocks opened by ``line``.

    Example:
        >>> block_depth_change("DECLARE EXIT HANDLER FOR SQLEXCEPTION BEGIN")
        1
        >>> block_depth_change("END IF;")
        0
    """
    line = QUOTED_TEXT.sub("''", line)
    return len(BLOCK_OPEN.findall(line)) - len(BLOCK_CLOSE.findall(line))


def routine_body_ends(
    line: str, dollar_tags: int, delimiter: str = ";", block_depth: int = 0
) -> bool:
    """
    Decide whether ``line`` terminates a stored routine.

    ``dollar_tags`` is the number of ``$tag$`` markers seen so far, including
    those on ``line``. Dollar-quoted bodies end once the markers are balanced
    and the line ends with ``;``. Under a ``DELIMITER`` other than ``;`` the
    body ends on the first line ending with that delimiter. Otherwise the body
    ends on ``END;`` or on a line carrying the ``LANGUAGE`` clause, once
    ``block_depth`` (open BEGIN/CASE blocks after ``line``) is back to zero.
    """
    if dollar_tags:
        return dollar_tags % 2 == 0 and line.endswith(";")
    if delimiter != ";":
        return line.endswith(delimiter)
    if block_depth > 0:
        return False
    if END_OF_ROUTINE.match(line):
        return True
    return line.endswith(";") and "LANGUAGE" in line.upper()



def close_create_table(statement: str) -> str:
    """Remove a trailing comma left before the closing parenthesis."""
    return TRAILING_COMMA.sub(")", statement)


class DumpTranspiler:
    """
    Transpile one dump file into a new staging store.

    Example:
        >>> store = DumpTranspiler("dump.sql", "postgres").run()
        >>> engine = store.create_engine()
    """

    def __init__(
        self,
        source_path: Union[str, Path],
        dialect: Union[str, DBType],
        settings: Optional[Settings] = None,
    ):
        self.source_path = Path(source_path)
        self.dialect = parse_dump_dialect(dialect)
        self.settings = settings or get_settings()
        self._state = _ParserState()
        self._pending = PendingStatement()
        self._stats = TranspileStats()
        self._dollar_quoting = self.dialect == DBType.POSTGRES
        self._delimiter = ";"

    @property
    def mode(self) -> ParseMode:
        return self._state.mode

    def run(self) -> StagingStore:
        """
        Transpile the dump and return the populated staging store.

        Raises:
            TranspileError: If the dump cannot be opened or read, or the
                staging store cannot be created
        """
        log = logger.bind(source=str(self.source_path), dialect=self.dialect.value)
        log.info("transpiler.started")

        try:
            source = open(
                self.source_path, "r", encoding=self.settings.dump_encoding, errors="strict"
            )
        except OSError as e:
            log.error("transpiler.open_failed", error=str(e))
            raise TranspileError(
                str(self.source_path),
                TranspileStage.OPEN_SOURCE,
                e,
                f"failed to open SQL dump file: {e}",
            ) from e

        with source:
            store = None
            try:
                store = create_staging_store(self.settings.staging_dir)
                engine = store.create_engine()
                conn = engine.connect()
            except (OSError, SQLAlchemyError) as e:
                if store is not None:
                    store.release()
                log.error("transpiler.staging_failed", error=str(e))
                raise TranspileError(
                    str(self.source_path),
                    TranspileStage.CREATE_STAGING,
                    e,
                    f"failed to create temp database: {e}",
                ) from e

            store.stats = self._stats
            try:
                with conn:
                    self._scan(source, conn)
            except (UnicodeDecodeError, OSError) as e:
                store.release()
                log.error(
                    "transpiler.read_failed",
                    line_number=self._stats.lines_read + 1,
                    error=str(e),
                )
                raise TranspileError(
                    str(self.source_path),
                    TranspileStage.READ_SOURCE,
                    e,
                    f"error reading SQL dump: {e}",
                ) from e
            except Exception:
                store.release()
                raise
            engine.dispose()

        log.info("transpiler.completed", staging_path=str(store.path), **self._stats.to_dict())
        return store

    def _scan(self, source: TextIO, conn: Connection) -> None:
        for line_number, raw_line in enumerate(source, 1):
            self._stats.lines_read = line_number
            if line_number % PROGRESS_INTERVAL == 0:
                logger.debug(
                    "transpiler.progress",
                    line_number=line_number,
                    executed=self._stats.statements_executed,
                )

            if self._state.mode is ParseMode.BULK_LOAD:
                self._capture_bulk_line(raw_line, conn)
                continue

            line = raw_line.strip()
            if not line or is_comment(line):
                continue
            self._handle_line(line, line_number, conn)

        self._finish(conn)

    def _capture_bulk_line(self, raw_line: str, conn: Connection) -> None:
        data = raw_line.rstrip("\r\n")
        if data.strip() == END_OF_DATA:
            batch = self._state.batch
            self._state.to_normal()
            self._apply_bulk_load(conn, batch)
            return
        if data:
            self._state.batch.add(data)

    def _handle_line(self, line: str, line_number: int, conn: Connection) -> None:
        state = self._state

        delimiter = DELIMITER_LINE.match(line)
        if delimiter:
            self._delimiter = delimiter.group(1)
            return

        if state.mode is ParseMode.FUNCTION_BODY:
            if self._dollar_quoting:
                state.dollar_tags += len(DOLLAR_TAG.findall(line))
            state.block_depth += block_depth_change(line)
            if routine_body_ends(line, state.dollar_tags, self._delimiter, state.block_depth):
                state.to_normal()
                self._stats.statements_skipped += 1
            return

        if self._open_block(line, line_number):
            return

        if state.mode is ParseMode.CREATE_TABLE:
            converted = convert_types(line, self.dialect)
            if converted:
                self._pending.append(converted, line_number)
            if line.endswith(";") and (")" in line or len(self._pending.fragments) == 1):
                state.to_normal()
                if self._pending:
                    self._execute(conn, close_create_table(self._pending.flush()))
            return

        if "ADD CONSTRAINT" in line and self._pending:
            # ALTER TABLE ONLY x
            #     ADD CONSTRAINT ...;
            start_line = self._pending.start_line
            line = f"{self._pending.flush()} {line}"
            line_number = start_line

        converted = convert_syntax(line, self.dialect)
        if not converted:
            if line.endswith(";") and self._pending:
                self._pending.flush()
                self._stats.statements_skipped += 1
            return

        self._pending.append(converted, line_number)
        if converted.endswith(";"):
            self._execute(conn, self._pending.flush())

    def _open_block(self, line: str, line_number: int) -> bool:
        """
        Switch mode when ``line`` opens a routine, a bulk load or a table.

        Returns True when the line has been fully consumed.
        """
        if FUNCTION_HEADER.match(line):
            self._discard_pending(line_number)
            tags = len(DOLLAR_TAG.findall(line)) if self._dollar_quoting else 0
            depth = block_depth_change(line)
            if tags or self._delimiter != ";":
                single_line = routine_body_ends(line, tags, self._delimiter)
            else:
                single_line = (
                    depth <= 0
                    and line.endswith(";")
                    and ("LANGUAGE" in line.upper() or INLINE_ROUTINE_END.search(line))
                )
            if single_line:
                self._stats.statements_skipped += 1
            else:
                self._state.to_function_body(tags, max(depth, 0))
            return True

        batch = parse_copy_header(line, line_number)
        if batch is not None:
            self._discard_pending(line_number)
            self._state.to_bulk_load(batch)
            return True

        if CREATE_TABLE_HEADER.match(line):
            self._discard_pending(line_number)
            self._state.to_create_table()
        return False

    def _discard_pending(self, line_number: int) -> None:
        if not self._pending:
            return
        start_line = self._pending.start_line
        statement = self._pending.flush()
        self._stats.statements_discarded += 1
        logger.warning(
            "transpiler.unterminated_statement",
            start_line=start_line,
            line_number=line_number,
            statement=_preview(statement),
        )

    def _execute(self, conn: Connection, statement: str) -> None:
        if should_skip_statement(statement):
            self._stats.statements_skipped += 1
            return
        try:
            conn.exec_driver_sql(statement)
            conn.commit()
            self._stats.statements_executed += 1
        except SQLAlchemyError as e:
            conn.rollback()
            self._stats.statements_failed += 1
            logger.warning(
                "transpiler.statement_failed",
                start_line=self._pending.start_line,
                error=str(getattr(e, "orig", None) or e),
                statement=_preview(statement),
            )

    def _apply_bulk_load(self, conn: Connection, batch: BulkLoadBatch) -> None:
        self._stats.bulk_batches += 1
        try:
            outcome = insert_batch(conn, batch, strict=self.settings.strict_bulk_load)
        except BulkLoadRowMismatch as e:
            self._stats.bulk_rows_rejected += len(batch.lines)
            logger.warning(
                "transpiler.bulk_load_rolled_back",
                table=batch.table,
                start_line=batch.start_line,
                error=str(e),
            )
            return
        except SQLAlchemyError as e:
            self._stats.bulk_rows_rejected += len(batch.lines)
            logger.warning(
                "transpiler.bulk_load_failed",
                table=batch.table,
                start_line=batch.start_line,
                error=str(getattr(e, "orig", None) or e),
            )
            return
        self._stats.bulk_rows_inserted += outcome.inserted
        self._stats.bulk_rows_rejected += outcome.rejected

    def _finish(self, conn: Connection) -> None:
        state = self._state
        line_number = self._stats.lines_read

        if state.mode is ParseMode.BULK_LOAD:
            batch = state.batch
            state.to_normal()
            logger.warning(
                "transpiler.unterminated_bulk_load",
                table=batch.table,
                start_line=batch.start_line,
                rows=len(batch.lines),
            )
            self._apply_bulk_load(conn, batch)
        elif state.mode is ParseMode.FUNCTION_BODY:
            state.to_normal()
            logger.warning("transpiler.unterminated_routine", line_number=line_number)

        state.to_normal()
        self._discard_pending(line_number)


def _preview(statement: str, limit: int = 200) -> str:
    if len(statement) <= limit:
        return statement
    return statement[:limit] + "..."


def transpile(
    source_path: Union[str, Path],
    source_dialect: Union[str, DBType],
    settings: Optional[Settings] = None,
) -> StagingStore:
    """
    Transpile a dump file into a new staging store.

    Args:
        source_path: Path of the dump file
        source_dialect: ``mysql``, ``mariadb`` or ``postgres``
        settings: Settings to use instead of :func:`get_settings`

    Returns:
        The staging store; the caller releases it

    Raises:
        UnsupportedDialectError: For any other dialect, before reading the file
        TranspileError: If the dump cannot be opened or read
    """
    return DumpTranspiler(source_path, source_dialect, settings).run()
