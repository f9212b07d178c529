import pytest

from mlfilterkit.lexer import LexerError, Token, TokenKind, token_kind_string, tokenize


def _debug(source):
    return " ".join(token.debug() for token in tokenize(source))


@pytest.mark.parametrize(
    "source, expected",
    [
        (
            "metrics.accuracy > 0.72",
            "identifier(metrics) dot identifier(accuracy) greater number(0.72) eof",
        ),
        (
            'metrics."accuracy" > 0.72',
            'identifier(metrics) dot string("accuracy") greater number(0.72) eof',
        ),
        (
            "metrics.accuracy > 0.72 AND metrics.loss <= 0.15",
            "identifier(metrics) dot identifier(accuracy) greater number(0.72) and "
            "identifier(metrics) dot identifier(loss) less_equals number(0.15) eof",
        ),
        (
            'params.batch_size = "2"',
            'identifier(params) dot identifier(batch_size) equals string("2") eof',
        ),
        (
            'tags.task ILIKE "classif%"',
            'identifier(tags) dot identifier(task) ilike string("classif%") eof',
        ),
        (
            "datasets.digest IN ('s8ds293b', 'jks834s2')",
            "identifier(datasets) dot identifier(digest) in open_paren string('s8ds293b') "
            "comma string('jks834s2') close_paren eof",
        ),
        (
            "attributes.created > 1664067852747",
            "identifier(attributes) dot identifier(created) greater number(1664067852747) eof",
        ),
        (
            'params.batch_size != "None"',
            'identifier(params) dot identifier(batch_size) not_equals string("None") eof',
        ),
        (
            "datasets.digest NOT IN ('s8ds293b', 'jks834s2')",
            "identifier(datasets) dot identifier(digest) not in open_paren string('s8ds293b') "
            "comma string('jks834s2') close_paren eof",
        ),
        (
            'params.`random_state` = "8888"',
            'identifier(params) dot string(`random_state`) equals string("8888") eof',
        ),
        (
            "metrics.measure_a != -12.0",
            "identifier(metrics) dot identifier(measure_a) not_equals number(-12.0) eof",
        ),
    ],
)
def test_queries(source, expected):
    assert _debug(source) == expected


@pytest.mark.parametrize(
    "source",
    [
        "params.'acc = LR",
        "params.acc = 'LR",
        "params.acc = LR'",
        "params.acc = \"LR'",
        "tags.acc = \"LR'",
    ],
)
def test_invalid_input(source):
    with pytest.raises(LexerError):
        tokenize(source)


def test_error_message_shows_remainder():
    with pytest.raises(LexerError, match="unrecognized token near 'LR'") as info:
        tokenize("params.acc = \"LR'")
    assert "near" in str(info.value)


def test_keywords_are_case_insensitive_and_keep_text():
    tokens = tokenize("a and b")
    assert tokens[1] == Token(TokenKind.AND, "and")


def test_empty_source_yields_eof_only():
    assert tokenize("") == [Token(TokenKind.EOF, "EOF")]


def test_whitespace_is_skipped():
    assert _debug("  \t(\n)  ") == "open_paren close_paren eof"


def test_all_comparison_operators():
    assert _debug("< <= > >= = !=") == (
        "less less_equals greater greater_equals equals not_equals eof"
    )


def test_token_kind_string_unknown():
    assert token_kind_string(99) == "unknown(99)"


def test_token_kind_string_known():
    assert token_kind_string(TokenKind.LIKE) == "like"


def test_debug_of_plain_token_has_no_value():
    assert Token(TokenKind.COMMA, ",").debug() == "comma"