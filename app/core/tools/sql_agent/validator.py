"""
SQL Validator.

Single Responsibility: Decide whether a raw SQL string may be sent to the
read-only execution function.

This is a lexical gate, not a parser. The read-only transaction forced by the
execution function is the authoritative control; this layer only rejects the
obvious cases early and cheaply.
"""

import logging
import re

from app.core.tools.sql_agent.models import SQLValidationResult

logger = logging.getLogger(__name__)

# Literals come first so comment markers inside them are kept as text.
LEXEME_PATTERN = re.compile(
    r"(?P<literal>"
    r"'(?:[^']|'')*'"
    r'|"(?:[^"]|"")*"'
    r"|\$\$.*?\$\$"
    r"|\$(?P<tag>[A-Za-z_][A-Za-z0-9_]*)\$.*?\$(?P=tag)\$"
    r")"
    r"|(?P<comment>/\*.*?\*/|--[^\n]*)",
    re.DOTALL,
)
READ_STATEMENT_PATTERN = re.compile(r"^(select|with|values)\b")
LEADING_WORD_PATTERN = re.compile(r"^([a-z_]+)")


class SQLValidator:
    """
    Validates SQL statements before execution.

    Rules are applied in order and the first failing rule wins:
    comments are stripped, the statement must start with a read verb,
    the original text may not contain a statement separator, and no
    forbidden keyword may appear as a whole word.
    """

    # Keep this list bounded; it is not meant to enumerate every injection vector.
    FORBIDDEN_KEYWORDS: tuple[str, ...] = (
        # data mutation
        "insert",
        "update",
        "delete",
        "truncate",
        # schema mutation
        "create",
        "alter",
        "drop",
        "grant",
        "revoke",
        # resource exhaustion / administrative
        "pg_sleep",
        "copy",
        "vacuum",
        "analyze",
        "pg_terminate_backend",
        "pg_cancel_backend",
    )

    def __init__(self) -> None:
        keywords = "|".join(re.escape(keyword) for keyword in self.FORBIDDEN_KEYWORDS)
        self._forbidden_pattern = re.compile(rf"\b({keywords})\b", re.IGNORECASE)

    @staticmethod
    def strip_comments(sql: str) -> str:
        """Remove block and line comments, leaving quoted literals untouched."""
        return LEXEME_PATTERN.sub(lambda m: " " if m.group("comment") is not None else m.group(0), sql)

    def validate(self, sql: str) -> SQLValidationResult:
        """
        Validate a statement.

        Args:
            sql: Raw SQL text exactly as it will be executed

        Returns:
            SQLValidationResult with the decision and, on rejection, the reason
        """
        cleaned = self.strip_comments(sql or "").strip().lower()

        if not READ_STATEMENT_PATTERN.match(cleaned):
            leading = LEADING_WORD_PATTERN.match(cleaned)
            if leading and leading.group(1) in self.FORBIDDEN_KEYWORDS:
                keyword = leading.group(1)
                return self._reject(f"only read statements allowed ('{keyword}')", keyword=keyword)
            return self._reject("only read statements allowed")

        if ";" in sql:
            return self._reject("no statement separators allowed")

        match = self._forbidden_pattern.search(cleaned)
        if match:
            keyword = match.group(1).lower()
            return self._reject(f"forbidden keyword '{keyword}' is not allowed", keyword=keyword)

        return SQLValidationResult.accept()

    def _reject(self, reason: str, keyword: str | None = None) -> SQLValidationResult:
        logger.warning(f"SQL rejected by validator: {reason}")
        return SQLValidationResult.reject(reason, keyword=keyword)
