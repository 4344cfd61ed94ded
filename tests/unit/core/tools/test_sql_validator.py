"""Unit tests for SQLValidator.

Covers the ordered rules of the read-only lexical gate: comment stripping,
read-verb prefix, statement separators and whole-word forbidden keywords.
"""

import pytest

from app.core.tools.sql_agent.validator import SQLValidator


@pytest.fixture
def validator() -> SQLValidator:
    return SQLValidator()


class TestAcceptedStatements:
    """Read statements that must pass."""

    @pytest.mark.parametrize(
        "sql",
        [
            "select name from artist",
            "SELECT * FROM artist WHERE artist_id = 1",
            "  \n\tselect 1",
            "WITH recent AS (SELECT * FROM api_request_logs) SELECT count(*) FROM recent",
            "VALUES (1, 'a'), (2, 'b')",
        ],
    )
    def test_read_statements_are_accepted(self, validator: SQLValidator, sql: str) -> None:
        """Should accept statements starting with select, with or values."""
        result = validator.validate(sql)
        assert result.accepted is True
        assert result.reason is None

    def test_keyword_inside_line_comment_is_inert(self, validator: SQLValidator) -> None:
        """Should accept a forbidden keyword that only appears in a comment."""
        assert validator.validate("SELECT * FROM t -- drop table t").accepted is True

    def test_keyword_inside_block_comment_is_inert(self, validator: SQLValidator) -> None:
        """Should accept a forbidden keyword hidden in a block comment."""
        assert validator.validate("SELECT /* delete everything */ name FROM artist").accepted is True

    @pytest.mark.parametrize(
        "sql",
        [
            "select updated_flag from t",
            "select created_at from api_request_logs",
            "select 'deleted_items' as label",
            "select analyzed_count, dropped_at from stats",
        ],
    )
    def test_keyword_substrings_do_not_false_positive(self, validator: SQLValidator, sql: str) -> None:
        """Should match forbidden keywords on word boundaries only."""
        assert validator.validate(sql).accepted is True


class TestReadVerbRule:
    """Statements must begin with a read verb."""

    @pytest.mark.parametrize(
        "sql",
        [
            "update artist set name='x'",
            "DELETE FROM artist",
            "Insert into artist values (1)",
            "drop table artist",
            "TRUNCATE artist",
            "explain select 1",
            "",
        ],
    )
    def test_non_read_statement_is_rejected(self, validator: SQLValidator, sql: str) -> None:
        """Should reject anything not starting with select, with or values."""
        result = validator.validate(sql)
        assert result.accepted is False
        assert result.reason.startswith("only read statements allowed")

    @pytest.mark.parametrize(
        "sql, keyword",
        [
            ("update artist set name='x'", "update"),
            ("DELETE FROM artist", "delete"),
            ("drop table artist", "drop"),
        ],
    )
    def test_leading_forbidden_keyword_is_named(self, validator: SQLValidator, sql: str, keyword: str) -> None:
        """Should report the write verb that opened the statement."""
        result = validator.validate(sql)
        assert result.accepted is False
        assert result.keyword == keyword
        assert result.reason == f"only read statements allowed ('{keyword}')"

    def test_unknown_leading_word_has_no_keyword(self, validator: SQLValidator) -> None:
        """Should not invent a keyword for verbs outside the forbidden list."""
        result = validator.validate("explain select 1")
        assert result.reason == "only read statements allowed"
        assert result.keyword is None

    def test_leading_comment_does_not_hide_write(self, validator: SQLValidator) -> None:
        """Should inspect the text after comments are stripped."""
        result = validator.validate("/* select */ delete from artist")
        assert result.accepted is False
        assert result.keyword == "delete"

    def test_selectx_is_not_a_read_verb(self, validator: SQLValidator) -> None:
        """Should require a word boundary after the verb."""
        assert validator.validate("selectx from artist").accepted is False


class TestSeparatorRule:
    """Statement stacking is rejected."""

    def test_stacked_statement_is_rejected(self, validator: SQLValidator) -> None:
        """Should reject on the separator before looking at keywords."""
        result = validator.validate("SELECT * FROM t; DROP TABLE t")
        assert result.accepted is False
        assert result.reason == "no statement separators allowed"
        assert result.keyword is None

    def test_trailing_semicolon_is_rejected(self, validator: SQLValidator) -> None:
        """Should reject even a harmless trailing semicolon."""
        assert validator.validate("select 1;").accepted is False

    def test_semicolon_inside_comment_is_still_rejected(self, validator: SQLValidator) -> None:
        """Should check the original text, not the stripped one."""
        result = validator.validate("select 1 -- ; nothing")
        assert result.accepted is False
        assert result.reason == "no statement separators allowed"


class TestForbiddenKeywordRule:
    """Forbidden keywords anywhere in a read statement."""

    @pytest.mark.parametrize("keyword", list(SQLValidator.FORBIDDEN_KEYWORDS))
    def test_each_forbidden_keyword_is_named(self, validator: SQLValidator, keyword: str) -> None:
        """Should reject and name the offending keyword."""
        result = validator.validate(f"select * from t where x = {keyword.upper()}(1)")
        assert result.accepted is False
        assert result.keyword == keyword
        assert keyword in result.reason

    def test_pg_sleep_in_cte_is_rejected(self, validator: SQLValidator) -> None:
        """Should catch resource-exhaustion primitives in otherwise read queries."""
        result = validator.validate("with s as (select pg_sleep(100)) select * from s")
        assert result.accepted is False
        assert result.keyword == "pg_sleep"

    def test_first_keyword_in_text_is_reported(self, validator: SQLValidator) -> None:
        """Should report the earliest match."""
        result = validator.validate("select * from t where a = 'x' or delete or drop")
        assert result.keyword == "delete"


class TestStripComments:
    """Comment removal helper."""

    def test_removes_line_and_block_comments(self) -> None:
        """Should blank out both comment styles."""
        cleaned = SQLValidator.strip_comments("select 1 /* a\nb */ -- c\nfrom t")
        assert "a" not in cleaned.replace("from", "")
        assert "--" not in cleaned
        assert "from t" in cleaned

    def test_comment_markers_inside_literals_are_kept(self) -> None:
        """Should leave quoted text alone, including comment markers."""
        sql = "select '--' as a, \"x /* y\" as b, $$ -- */ $$ as c from t"
        assert SQLValidator.strip_comments(sql) == sql

    def test_doubled_quote_does_not_end_literal(self) -> None:
        """Should treat '' as an escaped quote inside a literal."""
        cleaned = SQLValidator.strip_comments("select 'it''s -- here' as a -- gone")
        assert "it''s -- here" in cleaned
        assert "gone" not in cleaned


class TestCommentMarkersInLiterals:
    """Comment markers inside quoted text cannot hide what follows."""

    @pytest.mark.parametrize(
        "sql",
        [
            "select '--' as x, pg_sleep(100)",
            "select '/*' as a, pg_sleep(100), '*/' as b",
            'select 1 as "--col", pg_sleep(100)',
            "select $$/*$$ as a, pg_sleep(100), $$*/$$ as b",
            "select $q$--$q$ as a, pg_sleep(100)",
        ],
    )
    def test_keyword_after_quoted_marker_is_rejected(self, validator: SQLValidator, sql: str) -> None:
        """Should still see the keyword that follows a quoted comment marker."""
        result = validator.validate(sql)
        assert result.accepted is False
        assert result.keyword == "pg_sleep"

    def test_real_comment_after_literal_is_still_stripped(self, validator: SQLValidator) -> None:
        """Should strip a genuine comment that follows a literal."""
        assert validator.validate("select 'a' as label -- drop table t").accepted is True
