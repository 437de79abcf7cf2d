"""In-memory backend for unit tests.

Records every statement and parameter list it receives and emulates the
subset of SQL the writer and reader emit: single and multi-row INSERT,
DELETE and filtered SELECT with ORDER BY / LIMIT / OFFSET. Other
statements (DDL, transactions) are recorded and accepted.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Sequence

from sqlogger.database.base import Backend, Row
from sqlogger.database.dialect import DatabaseType

logger = logging.getLogger(__name__)

LAST_INSERT_ID_COLUMN = "LAST_INSERT_ID()"

_TOKEN_RE = re.compile(
    r"""\s*(?:
        (?P<ident>"(?:[^"]|"")*"|`(?:[^`]|``)*`)
      | (?P<string>'(?:[^']|'')*')
      | (?P<param>\?|\$\d+)
      | (?P<op>>=|<=|!=|<>|=|>|<)
      | (?P<punct>[(),*;])
      | (?P<word>[^\s(),;*=<>!'"`?]+)
    )""",
    re.VERBOSE,
)

_LAST_INSERT_FUNCTIONS = ("LAST_INSERT_ID", "LAST_INSERT_ROWID", "CURRVAL")


class _Token:
    __slots__ = ("kind", "text")

    def __init__(self, kind: str, text: str):
        self.kind = kind
        self.text = text

    @property
    def upper(self) -> str:
        return self.text.upper() if self.kind == "word" else ""


def _tokenize(sql: str) -> list[_Token]:
    tokens = []
    pos = 0
    sql = sql.rstrip()
    while pos < len(sql):
        match = _TOKEN_RE.match(sql, pos)
        if not match or match.end() == pos:
            raise ValueError(f"Unexpected input at offset {pos}: {sql[pos:pos + 20]!r}")
        pos = match.end()
        kind = match.lastgroup
        tokens.append(_Token(kind, match.group(kind)))
    return tokens


def _is_last_insert_query(tokens: list[_Token]) -> bool:
    """True for ``SELECT <fn>(...)`` where fn is a last-insert-id function."""
    return (
        len(tokens) >= 3
        and tokens[0].upper == "SELECT"
        and tokens[1].upper in _LAST_INSERT_FUNCTIONS
        and tokens[2].text == "("
    )


def _unquote(token: _Token) -> str:
    if token.kind == "ident":
        quote = token.text[0]
        return token.text[1:-1].replace(quote * 2, quote)
    return token.text


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def _as_number(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _sort_key(value: str | None) -> tuple:
    if value is None:
        return (0, 0.0, "")
    number = _as_number(value)
    if number is not None:
        return (1, number, "")
    return (2, 0.0, value)


def _like_to_regex(pattern: str) -> re.Pattern:
    parts = []
    for ch in pattern:
        if ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("^" + "".join(parts) + "$", re.DOTALL | re.IGNORECASE)


def _compare(left: str | None, op: str, right: Any) -> bool:
    if op == "IS NULL":
        return left is None
    if op == "IS NOT NULL":
        return left is not None
    if op in ("IN", "NOT IN"):
        found = any(_compare(left, "=", value) for value in right)
        return found if op == "IN" else not found
    right_text = _as_text(right)
    if left is None or right_text is None:
        return False
    if op in ("LIKE", "NOT LIKE"):
        matched = bool(_like_to_regex(right_text).match(left))
        return matched if op == "LIKE" else not matched

    left_num, right_num = _as_number(left), _as_number(right_text)
    if left_num is not None and right_num is not None:
        a: Any = left_num
        b: Any = right_num
    else:
        a, b = left, right_text
    if op == "=":
        return a == b
    if op in ("!=", "<>"):
        return a != b
    if op == ">":
        return a > b
    if op == "<":
        return a < b
    if op == ">=":
        return a >= b
    if op == "<=":
        return a <= b
    raise ValueError(f"Unsupported operator: {op}")


class _Parser:
    """Cursor over a token list with positional parameter binding."""

    def __init__(self, tokens: list[_Token], params: Sequence[Any]):
        self.tokens = tokens
        self.pos = 0
        self.params = list(params)
        self.next_param = 0

    def peek(self, offset: int = 0) -> _Token | None:
        index = self.pos + offset
        return self.tokens[index] if index < len(self.tokens) else None

    def take(self) -> _Token:
        token = self.peek()
        if token is None:
            raise ValueError("Unexpected end of statement")
        self.pos += 1
        return token

    def expect_word(self, word: str) -> None:
        token = self.take()
        if token.upper != word:
            raise ValueError(f"Expected {word}, got {token.text!r}")

    def accept_word(self, word: str) -> bool:
        token = self.peek()
        if token is not None and token.upper == word:
            self.pos += 1
            return True
        return False

    def expect_punct(self, punct: str) -> None:
        token = self.take()
        if token.text != punct:
            raise ValueError(f"Expected {punct!r}, got {token.text!r}")

    def identifier(self) -> str:
        token = self.take()
        if token.kind not in ("ident", "word"):
            raise ValueError(f"Expected identifier, got {token.text!r}")
        return _unquote(token)

    def value(self) -> Any:
        token = self.take()
        if token.kind == "param":
            if token.text.startswith("$"):
                return self.params[int(token.text[1:]) - 1]
            value = self.params[self.next_param]
            self.next_param += 1
            return value
        if token.kind == "string":
            return token.text[1:-1].replace("''", "'")
        if token.upper == "NULL":
            return None
        return token.text

    def at_end(self) -> bool:
        token = self.peek()
        return token is None or token.text == ";"

    def conditions(self) -> list[tuple[str, str, Any]]:
        """Parse ``col op value [AND ...]`` up to ORDER/LIMIT or the end."""
        result = []
        while True:
            column = self.identifier()
            result.append((column, *self._operator_and_value()))
            if not self.accept_word("AND"):
                return result

    def _operator_and_value(self) -> tuple[str, Any]:
        token = self.take()
        if token.kind == "op":
            return token.text, self.value()
        word = token.upper
        if word == "IS":
            if self.accept_word("NOT"):
                self.expect_word("NULL")
                return "IS NOT NULL", None
            self.expect_word("NULL")
            return "IS NULL", None
        if word == "NOT":
            word = "NOT " + self.take().upper
        if word in ("LIKE", "NOT LIKE"):
            return word, self.value()
        if word in ("IN", "NOT IN"):
            self.expect_punct("(")
            values = [self.value()]
            while self.peek() is not None and self.peek().text == ",":
                self.pos += 1
                values.append(self.value())
            self.expect_punct(")")
            return word, values
        raise ValueError(f"Unsupported operator: {token.text!r}")


class MockBackend(Backend):
    """Backend double keeping tables as lists of rows in memory.

    Attributes:
        fail_message: When set, every execute/query fails with this error.
    """

    database_type = DatabaseType.MOCK

    def __init__(self, connection_string: str = "", allow_drop: bool = False):
        super().__init__(connection_string, allow_drop)
        self._connected = False
        self._tables: dict[str, list[Row]] = {}
        self._counters: dict[str, int] = {}
        self._last_insert_id = 0
        self._executed_queries: list[str] = []
        self._executed_params: list[list[Any]] = []
        self._in_transaction = False
        self.fail_message = ""

    def connect(self, connection_string: str = "") -> bool:
        with self._lock:
            self.connection_string = connection_string
            self._connected = True
            self._clear_error()
            return True

    def disconnect(self) -> None:
        with self._lock:
            self._connected = False
            self._in_transaction = False

    def is_connected(self) -> bool:
        return self._connected

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> bool:
        with self._lock:
            self._record(sql, params)
            self.last_affected_rows = 0
            if self.fail_message:
                self._set_error(self.fail_message)
                return False
            try:
                tokens = _tokenize(sql)
                if not tokens:
                    return True
                head = tokens[0].upper
                if head == "INSERT":
                    self.last_affected_rows = self._insert(_Parser(tokens, params or ()))
                elif head == "DELETE":
                    self.last_affected_rows = self._delete(_Parser(tokens, params or ()))
            except (ValueError, IndexError) as e:
                self._set_error(f"Mock could not execute statement: {e}")
                return False
            self._clear_error()
            return True

    def query(self, sql: str, params: Sequence[Any] | None = None) -> list[Row]:
        with self._lock:
            self._record(sql, params)
            if self.fail_message:
                self._set_error(self.fail_message)
                return []
            try:
                tokens = _tokenize(sql)
                if _is_last_insert_query(tokens):
                    self._clear_error()
                    return [{LAST_INSERT_ID_COLUMN: str(self._last_insert_id)}]
                if not tokens or tokens[0].upper != "SELECT":
                    self._clear_error()
                    return []
                rows = self._select(_Parser(tokens, params or ()))
            except (ValueError, IndexError) as e:
                self._set_error(f"Mock could not run query: {e}")
                return []
            self._clear_error()
            return rows

    def begin_transaction(self) -> bool:
        with self._lock:
            self._record("BEGIN", None)
            self._in_transaction = True
            return True

    def commit_transaction(self) -> bool:
        with self._lock:
            self._record("COMMIT", None)
            self._in_transaction = False
            return True

    def rollback_transaction(self) -> bool:
        with self._lock:
            self._record("ROLLBACK", None)
            self._in_transaction = False
            return True

    def drop_database_if_exists(self, connection_string: str) -> bool:
        with self._lock:
            self._record(f"DROP DATABASE IF EXISTS {connection_string}", None)
            if not self._check_drop_allowed():
                return False
            self._tables.clear()
            self._counters.clear()
            self._last_insert_id = 0
            return True

    def get_executed_queries(self) -> list[str]:
        """Every statement passed to execute or query, in order."""
        with self._lock:
            return list(self._executed_queries)

    def get_executed_params(self) -> list[list[Any]]:
        """Parameter lists matching ``get_executed_queries``."""
        with self._lock:
            return [list(p) for p in self._executed_params]

    def get_table_data(self, table: str) -> list[Row]:
        """Copy of the rows stored for ``table``."""
        with self._lock:
            return [dict(row) for row in self._tables.get(table, [])]

    def clear_mock_data(self) -> None:
        """Forget all rows and recorded statements."""
        with self._lock:
            self._tables.clear()
            self._counters.clear()
            self._executed_queries.clear()
            self._executed_params.clear()
            self._last_insert_id = 0

    def _record(self, sql: str, params: Sequence[Any] | None) -> None:
        self._executed_queries.append(sql)
        self._executed_params.append(list(params or ()))

    def _insert(self, parser: _Parser) -> int:
        parser.expect_word("INSERT")
        parser.expect_word("INTO")
        table = parser.identifier()
        parser.expect_punct("(")
        columns = [parser.identifier()]
        while parser.peek() is not None and parser.peek().text == ",":
            parser.pos += 1
            columns.append(parser.identifier())
        parser.expect_punct(")")
        parser.expect_word("VALUES")

        rows = self._tables.setdefault(table, [])
        inserted = 0
        while True:
            parser.expect_punct("(")
            values = [parser.value()]
            while parser.peek() is not None and parser.peek().text == ",":
                parser.pos += 1
                values.append(parser.value())
            parser.expect_punct(")")
            if len(values) != len(columns):
                raise ValueError(f"Expected {len(columns)} values, got {len(values)}")
            row_id = self._counters.get(table, 0) + 1
            self._counters[table] = row_id
            row: Row = {"id": str(row_id)}
            for column, value in zip(columns, values):
                row[column] = _as_text(value)
            rows.append(row)
            self._last_insert_id = row_id
            inserted += 1
            if parser.peek() is None or parser.peek().text != ",":
                break
            parser.pos += 1
        return inserted

    def _delete(self, parser: _Parser) -> int:
        parser.expect_word("DELETE")
        parser.expect_word("FROM")
        table = parser.identifier()
        rows = self._tables.get(table, [])
        conditions = parser.conditions() if parser.accept_word("WHERE") else []
        kept = [row for row in rows if not self._matches(row, conditions)]
        removed = len(rows) - len(kept)
        if table in self._tables:
            self._tables[table] = kept
        return removed

    def _select(self, parser: _Parser) -> list[Row]:
        parser.expect_word("SELECT")
        columns: list[str] = []
        if parser.peek() is not None and parser.peek().text == "*":
            parser.pos += 1
        else:
            columns.append(parser.identifier())
            while parser.peek() is not None and parser.peek().text == ",":
                parser.pos += 1
                columns.append(parser.identifier())
        parser.expect_word("FROM")
        table = parser.identifier()

        conditions = parser.conditions() if parser.accept_word("WHERE") else []
        order_by: list[str] = []
        if parser.accept_word("ORDER"):
            parser.expect_word("BY")
            order_by.append(parser.identifier())
            parser.accept_word("ASC")
            while parser.peek() is not None and parser.peek().text == ",":
                parser.pos += 1
                order_by.append(parser.identifier())
                parser.accept_word("ASC")
        limit = -1
        offset = 0
        if parser.accept_word("LIMIT"):
            limit = int(parser.value())
            if parser.accept_word("OFFSET"):
                offset = int(parser.value())

        rows = [row for row in self._tables.get(table, []) if self._matches(row, conditions)]
        if order_by:
            rows.sort(key=lambda r: tuple(_sort_key(r.get(c)) for c in order_by))
        rows = rows[offset:]
        if limit >= 0:
            rows = rows[:limit]
        if columns:
            return [{c: row.get(c) for c in columns} for row in rows]
        return [dict(row) for row in rows]

    @staticmethod
    def _matches(row: Row, conditions: list[tuple[str, str, Any]]) -> bool:
        return all(_compare(row.get(column), op, value) for column, op, value in conditions)
