"""Tests for search query tokenizing, parsing and evaluation.

Parsing is pure; the SQL tests compile the generated clause against the
SQLite dialect and run it on an in-memory table.
"""

import pytest
from sqlalchemy import Column, Integer, MetaData, String, Table, insert, select

from forum.database import build_engine
from forum.exceptions import SearchParseError
from forum.services.query_parser import (
    And,
    Not,
    Or,
    Phrase,
    Term,
    escape_like,
    parse_query,
    tokenize,
)


class TestPrecedence:
    """Adjacency is AND, OR binds looser, parentheses override."""

    def test_adjacent_terms_are_and(self):
        assert parse_query("a b") == And(Term("a"), Term("b"))

    def test_or_binds_looser_than_implicit_and(self):
        assert parse_query("a b OR c") == Or(And(Term("a"), Term("b")), Term("c"))

    def test_or_binds_looser_than_explicit_and(self):
        assert parse_query("a OR b AND c") == Or(Term("a"), And(Term("b"), Term("c")))

    def test_parentheses_override(self):
        assert parse_query("a (b OR c)") == And(Term("a"), Or(Term("b"), Term("c")))

    def test_nested_parentheses(self):
        assert parse_query("((a))") == Term("a")

    def test_operators_are_case_insensitive(self):
        assert parse_query("a or b and c") == parse_query("a OR b AND c")

    def test_chained_and_is_left_associative(self):
        assert parse_query("a AND b AND c") == And(And(Term("a"), Term("b")), Term("c"))


class TestExclusion:
    """A leading '-' negates only the following term or phrase."""

    def test_negated_term_then_term(self):
        assert parse_query("-x y") == And(Not(Term("x")), Term("y"))

    def test_negated_phrase_only(self):
        assert parse_query('-"a b" c') == And(Not(Phrase("a b")), Term("c"))

    def test_hyphen_inside_word_is_literal(self):
        assert parse_query("well-known") == Term("well-known")

    def test_lone_dash_is_error(self):
        with pytest.raises(SearchParseError):
            parse_query("a - b")

    def test_trailing_dash_is_error(self):
        with pytest.raises(SearchParseError):
            parse_query("a -")

    def test_dash_before_group_is_error(self):
        with pytest.raises(SearchParseError):
            parse_query("-(a b)")


class TestPhrases:
    """Quoted phrases are single leaves."""

    def test_phrase(self):
        assert parse_query('"exact match"') == Phrase("exact match")

    def test_escaped_quote(self):
        assert parse_query(r'"say \"hi\""') == Phrase('say "hi"')

    def test_keywords_inside_phrase_are_text(self):
        assert parse_query('"this OR that"') == Phrase("this OR that")

    def test_phrase_next_to_word(self):
        assert parse_query('foo"bar baz"') == And(Term("foo"), Phrase("bar baz"))

    def test_unterminated_phrase(self):
        with pytest.raises(SearchParseError) as exc_info:
            parse_query('hello "world')
        assert exc_info.value.position == 6

    def test_empty_phrase(self):
        with pytest.raises(SearchParseError):
            parse_query('""')


class TestSyntaxErrors:
    """Malformed queries raise SearchParseError."""

    @pytest.mark.parametrize("query", ["", "   ", "\t\n"])
    def test_empty_query(self, query):
        with pytest.raises(SearchParseError):
            parse_query(query)

    @pytest.mark.parametrize("query", ["(a", "(a OR b", "a)", "a (b))"])
    def test_unbalanced_parentheses(self, query):
        with pytest.raises(SearchParseError):
            parse_query(query)

    @pytest.mark.parametrize("query", ["a AND", "OR a", "a OR", "a AND OR b", "AND"])
    def test_missing_operand(self, query):
        with pytest.raises(SearchParseError):
            parse_query(query)

    def test_empty_group(self):
        with pytest.raises(SearchParseError):
            parse_query("a ()")

    def test_error_carries_status_and_code(self):
        with pytest.raises(SearchParseError) as exc_info:
            parse_query("a AND")
        assert exc_info.value.status_code == 400
        assert exc_info.value.to_dict()["error"] == "SEARCH_PARSE_ERROR"


class TestTokenize:
    """Token stream details."""

    def test_token_kinds(self):
        kinds = [t.kind for t in tokenize('(a OR "b c") AND -d')]
        assert kinds == ["LPAREN", "WORD", "OR", "PHRASE", "RPAREN", "AND", "WORD", "EOF"]

    def test_negation_flag(self):
        tokens = tokenize("-d")
        assert tokens[0].value == "d"
        assert tokens[0].negated is True

    def test_positions(self):
        tokens = tokenize("ab  cd")
        assert [t.position for t in tokens[:2]] == [0, 4]


class TestMatches:
    """In-memory evaluation of a parsed tree."""

    def test_case_insensitive(self):
        assert parse_query("ALPHA").matches("the alpha release")

    def test_and_not(self):
        node = parse_query("alpha AND -beta")
        assert node.matches("alpha only")
        assert not node.matches("alpha and beta")
        assert not node.matches("beta only")

    def test_phrase_must_be_contiguous(self):
        node = parse_query('"quick fox"')
        assert node.matches("the quick fox")
        assert not node.matches("the quick brown fox")

    def test_none_text_matches_nothing_positive(self):
        assert not parse_query("a").matches(None)
        assert parse_query("-a").matches(None)


class TestSql:
    """Generated SQL clauses behave like the in-memory evaluation."""

    @pytest.fixture()
    def texts(self):
        engine = build_engine("sqlite://")
        metadata = MetaData()
        table = Table("docs", metadata, Column("id", Integer, primary_key=True), Column("body", String))
        metadata.create_all(engine)
        rows = [
            "Alpha release notes",
            "alpha and beta",
            "beta only",
            "100% done",
            "snake_case name",
            "back\\slash",
            None,
            "Ärger mit Übersetzung",
        ]
        with engine.begin() as conn:
            conn.execute(insert(table), [{"id": i, "body": body} for i, body in enumerate(rows, 1)])
        yield engine, table, rows
        engine.dispose()

    def _run(self, texts, query):
        engine, table, rows = texts
        node = parse_query(query)
        with engine.connect() as conn:
            ids = conn.execute(select(table.c.id).where(node.to_sql(table.c.body)).order_by(table.c.id)).scalars().all()
        expected = [i for i, body in enumerate(rows, 1) if node.matches(body)]
        return ids, expected

    @pytest.mark.parametrize("query", [
        "alpha",
        "alpha AND -beta",
        "alpha OR beta",
        '"release notes"',
        "-beta",
        "100%",
        "e_c",
        "k\\s",
        "ärger",
        "ÜBERSETZUNG AND -beta",
    ])
    def test_sql_agrees_with_matches(self, texts, query):
        ids, expected = self._run(texts, query)
        assert ids == expected

    def test_non_ascii_case_folding(self, texts):
        ids, _ = self._run(texts, "ärger")
        assert ids == [8]
        ids, _ = self._run(texts, "übersetzung")
        assert ids == [8]

    def test_wildcards_are_literal(self, texts):
        ids, _ = self._run(texts, "%")
        assert ids == [4]
        ids, _ = self._run(texts, "_")
        assert ids == [5]

    def test_escape_like(self):
        assert escape_like("50%_a\\b") == "50\\%\\_a\\\\b"
