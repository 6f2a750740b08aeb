"""
Find/replace rules that rewrite MySQL and PostgreSQL DDL into SQLite DDL.

Each rule is a compiled pattern plus a replacement. Rules are kept
independent: a rule's output never matches another rule's pattern, and a
rule's output re-matched by the same rule rewrites to itself. Applying the
rules in any order therefore gives the same line.

Type names are matched case-insensitively as whole words that are not part of
a quoted identifier or string (``"date"``, `` `text` ``, ``'serial'`` are left
alone), optionally followed by a parenthesized length/precision suffix. String
literals are masked while the rules run, and column names in CREATE TABLE
definitions are never rewritten (``uuid uuid`` stays a column named ``uuid``).
"""

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Tuple, Union

from sql2csv.database.dialects import DBType

Replacement = Union[str, Callable[[re.Match], str]]

# Characters that glue a word to an identifier or literal
_BEFORE = r"(?<![\w\"`'$])"
_AFTER = r"(?![\w\"`'$])"
_SUFFIX = r"(?P<suffix>\s*\(\s*\d+(?:\s*,\s*\d+)?\s*\))?"


@dataclass(frozen=True)
class SyntaxRule:
    """One find/replace rule."""

    name: str
    pattern: re.Pattern
    replacement: Replacement

    def apply(self, line: str) -> str:
        return self.pattern.sub(self.replacement, line)


def _type_rule(
    name: str, synonyms: Iterable[str], target: str, keep_suffix: bool = False
) -> SyntaxRule:
    alternation = "|".join(synonyms)
    pattern = re.compile(rf"{_BEFORE}(?:{alternation}){_AFTER}{_SUFFIX}", re.IGNORECASE)

    def replace(match: re.Match) -> str:
        suffix = match.group("suffix")
        if keep_suffix and suffix:
            return target + re.sub(r"\s+", "", suffix)
        return target

    return SyntaxRule(name=name, pattern=pattern, replacement=replace)


# Longer synonyms come first inside each alternation
TYPE_RULES: Tuple[SyntaxRule, ...] = (
    _type_rule(
        "integer",
        [
            r"bigserial",
            r"smallserial",
            r"serial[248]?",
            r"bigint",
            r"smallint",
            r"tinyint",
            r"mediumint",
            r"integer",
            r"int[248]?",
        ],
        "INTEGER",
    ),
    _type_rule(
        "datetime",
        [
            r"timestamp(?:\s*\(\s*\d+\s*\))?\s+with(?:out)?\s+time\s+zone",
            r"timestamptz",
            r"timestamp",
            r"datetime",
        ],
        "DATETIME",
    ),
    _type_rule("date", [r"date"], "DATE"),
    _type_rule(
        "real",
        [
            r"double\s+precision",
            r"double",
            r"float[48]?",
            r"real",
            r"decimal",
            r"numeric",
        ],
        "REAL",
    ),
    _type_rule(
        "varchar",
        [r"character\s+varying", r"nvarchar", r"varchar"],
        "VARCHAR",
        keep_suffix=True,
    ),
    _type_rule(
        "char",
        [r"character(?!\s+(?:varying|set)\b)", r"nchar", r"bpchar", r"char"],
        "CHAR",
        keep_suffix=True,
    ),
    _type_rule("boolean", [r"boolean", r"bool"], "BOOLEAN"),
    _type_rule(
        "blob",
        [r"bytea", r"tinyblob", r"mediumblob", r"longblob", r"blob", r"varbinary", r"binary"],
        "BLOB",
    ),
    _type_rule(
        "text",
        [
            r"tinytext",
            r"mediumtext",
            r"longtext",
            r"text",
            r"jsonb",
            r"json",
            r"uuid",
            r"citext",
            r"enum\s*\([^)]*\)",
            r"set\s*\([^)]*\)",
        ],
        "TEXT",
    ),
)


def _auto_increment(match: re.Match) -> str:
    # PRIMARY KEY AUTO_INCREMENT -> PRIMARY KEY AUTOINCREMENT, anything else dropped
    if match.group("pk"):
        return f"{match.group('lead')}{match.group('pk')} AUTOINCREMENT"
    return ""


# DEFAULT now() / CURRENT_TIMESTAMP(6) -> DEFAULT CURRENT_TIMESTAMP
TIMESTAMP_DEFAULT_RULE = SyntaxRule(
    "timestamp_default",
    re.compile(
        r"\bDEFAULT\s+(?:now\s*\(\s*\)|transaction_timestamp\s*\(\s*\)"
        r"|CURRENT_TIMESTAMP\s*\(\s*\d*\s*\)|LOCALTIMESTAMP(?:\s*\(\s*\d*\s*\))?)",
        re.IGNORECASE,
    ),
    "DEFAULT CURRENT_TIMESTAMP",
)

MYSQL_RULES: Tuple[SyntaxRule, ...] = (
    TIMESTAMP_DEFAULT_RULE,
    SyntaxRule(
        "auto_increment",
        re.compile(
            r"(?P<lead>\s*)(?:(?P<pk>PRIMARY\s+KEY)\s+)?AUTO_INCREMENT(?:\s*=\s*\d+)?"
            + _AFTER,
            re.IGNORECASE,
        ),
        _auto_increment,
    ),
    SyntaxRule(
        "table_options",
        re.compile(
            r"\s*(?:DEFAULT\s+)?(?:ENGINE|CHARSET|CHARACTER\s+SET|COLLATE|ROW_FORMAT"
            r"|KEY_BLOCK_SIZE|PACK_KEYS|STATS_PERSISTENT)\s*=\s*[\w-]+",
            re.IGNORECASE,
        ),
        "",
    ),
    SyntaxRule(
        "table_comment",
        re.compile(r"\s*COMMENT\s*=\s*'(?:[^'\\]|\\.|'')*'", re.IGNORECASE),
        "",
    ),
    SyntaxRule(
        "column_charset",
        re.compile(
            r"\s+(?:DEFAULT\s+)?(?:CHARACTER\s+SET|CHARSET|COLLATE)\s+[\w-]+",
            re.IGNORECASE,
        ),
        "",
    ),
    SyntaxRule(
        "column_comment",
        re.compile(r"\s+COMMENT\s+'(?:[^'\\]|\\.|'')*'", re.IGNORECASE),
        "",
    ),
    SyntaxRule(
        "unsigned",
        re.compile(r"\s+(?:UNSIGNED|ZEROFILL)" + _AFTER, re.IGNORECASE),
        "",
    ),
    SyntaxRule(
        "on_update",
        re.compile(
            r"\s+ON\s+UPDATE\s+(?:CURRENT_TIMESTAMP|NOW)(?:\s*\(\s*\d*\s*\))?",
            re.IGNORECASE,
        ),
        "",
    ),
    SyntaxRule(
        "inline_index",
        re.compile(
            r"^(?:UNIQUE\s+|FULLTEXT\s+|SPATIAL\s+)?(?:KEY|INDEX)\s+.*$",
            re.IGNORECASE,
        ),
        "",
    ),
)

SCHEMA_QUALIFIER_RULE = SyntaxRule(
    "public_schema",
    re.compile(
        r"(?P<kw>\b(?:INTO|TABLE|ONLY|REFERENCES|ON|FROM|EXISTS|COPY)\s+)public\.",
        re.IGNORECASE,
    ),
    r"\g<kw>",
)

# CREATE INDEX ... USING btree (col)
INDEX_METHOD_RULE = SyntaxRule(
    "index_method",
    re.compile(r"\s+USING\s+(?:btree|hash|gin|gist|brin|spgist)(?=\s*\()", re.IGNORECASE),
    "",
)

POSTGRES_RULES: Tuple[SyntaxRule, ...] = (
    SCHEMA_QUALIFIER_RULE,
    TIMESTAMP_DEFAULT_RULE,
    SyntaxRule(
        "cast",
        re.compile(
            r"::\s*(?:\"[^\"]+\"|[A-Za-z_][\w.]*)"
            r"(?:\s+(?:varying|precision|with(?:out)?\s+time\s+zone))?"
            r"(?:\s*\(\s*\d+(?:\s*,\s*\d+)?\s*\))?(?:\[\])*"
        ),
        "",
    ),
    SyntaxRule(
        "nextval_default",
        re.compile(r"\s+DEFAULT\s+nextval\s*\([^)]*\)", re.IGNORECASE),
        "",
    ),
)


def rules_for(dialect: DBType) -> Tuple[SyntaxRule, ...]:
    """Return the full CREATE TABLE rule table for a dump dialect."""
    if dialect.is_mysql_family:
        return TYPE_RULES + MYSQL_RULES
    if dialect == DBType.POSTGRES:
        return TYPE_RULES + POSTGRES_RULES
    return TYPE_RULES


_STRING_LITERAL = re.compile(r"'(?:[^'\\]|\\.|'')*'")
_MASKED_LITERAL = re.compile(r"'\x00(\d+)\x00'")

# Leading column name of a column definition, with the whitespace after it
_COLUMN_NAME = re.compile(r'^(?:"(?:[^"]|"")+"|`(?:[^`]|``)+`|[A-Za-z_][\w$]*)\s+(?=\S)')
_TABLE_ELEMENT_KEYWORDS = frozenset(
    {
        "CHECK",
        "CONSTRAINT",
        "CREATE",
        "EXCLUDE",
        "FOREIGN",
        "FULLTEXT",
        "INDEX",
        "KEY",
        "LIKE",
        "PRIMARY",
        "SPATIAL",
        "UNIQUE",
    }
)

# CREATE TABLE name (  -- up to and including the opening parenthesis
_TABLE_HEADER = re.compile(r"^CREATE\b[^(]*?\bTABLE\b[^(]*\(", re.IGNORECASE)


def _mask_literals(line: str) -> Tuple[str, List[str]]:
    literals: List[str] = []

    def mask(match: re.Match) -> str:
        literals.append(match.group(0))
        return f"'\x00{len(literals) - 1}\x00'"

    return _STRING_LITERAL.sub(mask, line), literals


def _unmask_literals(line: str, literals: List[str]) -> str:
    if not literals:
        return line
    return _MASKED_LITERAL.sub(lambda m: literals[int(m.group(1))], line)


def apply_rules(line: str, rules: Iterable[SyntaxRule]) -> str:
    """
    Apply every rule to ``line`` once, in the given order.

    String literals are replaced by numbered placeholders first and put back
    afterwards, so no rule rewrites text inside quotes.
    """
    line, literals = _mask_literals(line)
    for rule in rules:
        line = rule.apply(line)
    return _unmask_literals(line, literals)


def split_column_name(line: str) -> Tuple[str, str]:
    """
    Split a column definition into its name (with trailing space) and the rest.

    Lines that start with a table-level keyword (PRIMARY KEY, CONSTRAINT, ...)
    have no column name and come back as ``("", line)``.

    Example:
        >>> split_column_name("uuid uuid NOT NULL,")
        ('uuid ', 'uuid NOT NULL,')
    """
    match = _COLUMN_NAME.match(line)
    if match is None or match.group(0).strip().upper() in _TABLE_ELEMENT_KEYWORDS:
        return "", line
    return match.group(0), line[match.end():]


def _split_definitions(body: str) -> Tuple[List[str], str]:
    """
    Split the text after ``CREATE TABLE name (`` at top-level commas.

    Returns the definitions and the tail starting at the closing parenthesis.
    """
    pieces = []
    depth = 0
    start = 0
    for i, ch in enumerate(body):
        if ch == "(":
            depth += 1
        elif ch == ")":
            if depth == 0:
                pieces.append(body[start:i])
                return pieces, body[i:]
            depth -= 1
        elif ch == "," and depth == 0:
            pieces.append(body[start:i])
            start = i + 1
    pieces.append(body[start:])
    return pieces, ""


def _convert_definition(definition: str, rules: Tuple[SyntaxRule, ...]) -> str:
    stripped = definition.lstrip()
    name, rest = split_column_name(stripped)
    return definition[: len(definition) - len(stripped)] + name + apply_rules(rest, rules)


def convert_types(line: str, dialect: DBType) -> str:
    """
    Convert one CREATE TABLE line to SQLite types and options.

    Column names are kept as written. A header line that carries column
    definitions (``CREATE TABLE t (id integer, uuid uuid);``) is converted one
    definition at a time.

    Examples:
        >>> convert_types("created_at timestamp without time zone,", DBType.POSTGRES)
        'created_at DATETIME,'
        >>> convert_types("name character varying(255) NOT NULL,", DBType.POSTGRES)
        'name VARCHAR(255) NOT NULL,'
        >>> convert_types("uuid uuid,", DBType.POSTGRES)
        'uuid TEXT,'
    """
    if dialect.is_mysql_family:
        line = unescape_mysql_strings(line)
    rules = rules_for(dialect)

    header = _TABLE_HEADER.match(line)
    if header is None:
        name, definition = split_column_name(line)
        return name + apply_rules(definition, rules)

    prefix = header.group(0)
    if dialect == DBType.POSTGRES:
        prefix = SCHEMA_QUALIFIER_RULE.apply(prefix)
    body, literals = _mask_literals(line[header.end():])
    definitions, tail = _split_definitions(body)
    converted = [_convert_definition(d, rules) for d in definitions]
    body = ",".join(d for d in converted if d.strip()) + apply_rules(tail, rules)
    return prefix + _unmask_literals(body, literals)


# Single-quoted literal with MySQL backslash escapes
_MYSQL_STRING = re.compile(r"'(?:[^'\\]|\\.|'')*'", re.DOTALL)

_MYSQL_ESCAPES = {
    "0": "\x00",
    "'": "''",
    '"': '"',
    "b": "\b",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "Z": "\x1a",
    "\\": "\\",
    # \% and \_ keep their backslash
    "%": "\\%",
    "_": "\\_",
}


def _unescape_literal(match: re.Match) -> str:
    literal = match.group(0)
    if "\\" not in literal:
        return literal
    body = literal[1:-1]
    out = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            out.append(_MYSQL_ESCAPES.get(nxt, nxt))
            i += 2
        else:
            out.append(ch)
            i += 1
    return "'" + "".join(out) + "'"


def unescape_mysql_strings(line: str) -> str:
    """
    Rewrite MySQL backslash escapes inside string literals to standard SQL.

    Example:
        >>> unescape_mysql_strings(r"(1,'O\\'Brien')")
        "(1,'O''Brien')"
    """
    if "\\" not in line:
        return line
    return _MYSQL_STRING.sub(_unescape_literal, line)


def normalize_statement_line(line: str, dialect: DBType) -> str:
    """
    Make a non-DDL line executable on SQLite without changing its meaning.

    PostgreSQL lines lose the ``public.`` qualifier after table keywords and
    the index access method; MySQL lines get their string escapes rewritten.
    """
    if dialect.is_mysql_family:
        return unescape_mysql_strings(line)
    if dialect == DBType.POSTGRES:
        return apply_rules(line, (SCHEMA_QUALIFIER_RULE, INDEX_METHOD_RULE))
    return line
