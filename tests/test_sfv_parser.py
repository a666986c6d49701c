"""Unit tests for the structured field parser."""

import logging

import pytest

from sfv_parser import (
    ParseError,
    Parser,
    TooManyDigitsError,
    UnexpectedEOLError,
    UnrecognizedError,
    join_multi_lines,
    parse_dict,
    parse_dict_line,
    parse_item_line,
    parse_list,
    parse_list_line,
)
from sfv_struct import (
    Bool,
    ByteSeq,
    Decimal,
    Dictionary,
    InnerList,
    Integer,
    Item,
    MemberList,
    ParamList,
    String,
    Token,
)


def bare(text):
    return parse_item_line(text).bare


class TestJoinMultiLines:
    """Test joining of header fragments."""

    def test_join_strips_and_drops_empty(self):
        """Fragments are trimmed and empty ones dropped."""
        assert join_multi_lines(["  sugar, tea ", "", "   ", "rum"]) == "sugar, tea, rum"

    def test_join_nothing(self):
        """No fragments give an empty line."""
        assert join_multi_lines([]) == ""

    @pytest.mark.parametrize("lines", ["a=1", b"a=1"])
    def test_join_refuses_plain_string(self, lines):
        """A single string is not a list of fragments."""
        with pytest.raises(TypeError):
            join_multi_lines(lines)

    def test_parse_dict_refuses_plain_string(self):
        with pytest.raises(TypeError):
            parse_dict("a=1")
        with pytest.raises(TypeError):
            parse_list("sugar, tea")


class TestHeaderExamples:
    """Full headers that must come back in canonical form."""

    def test_parse_dict_multi_line(self):
        """Dictionary fragments are joined before parsing."""
        assert parse_dict(["foo=1", "bar=2"]).encode() == "foo=1, bar=2"

    @pytest.mark.parametrize(
        "header,expected",
        [
            ('en="Applepie", da=:w4ZibGV0w6ZydGU=:', 'en="Applepie", da=:w4ZibGV0w6ZydGU=:'),
            ("a=?0, b, c; foo=bar", "a=?0, b, c;foo=bar"),
            ("rating=1.5, feelings=(joy sadness)", "rating=1.5, feelings=(joy sadness)"),
            ("a=(1 2), b=3, c=4;aa=bb, d=(5 6);valid", "a=(1 2), b=3, c=4;aa=bb, d=(5 6);valid"),
            ("  a=1 ,  b=2  ", "a=1, b=2"),
        ],
    )
    def test_parse_dict_line(self, header, expected):
        """Dictionary lines re-encode canonically."""
        assert parse_dict_line(header).encode() == expected

    def test_parse_list_multi_line(self):
        """List fragments are joined before parsing."""
        assert parse_list(["sugar, tea", "rum"]).encode() == "sugar, tea, rum"

    @pytest.mark.parametrize(
        "header,expected",
        [
            ("sugar, tea, rum", "sugar, tea, rum"),
            ('("foo" "bar");lvl=5, ("baz");lvl=1', '("foo" "bar");lvl=5, ("baz");lvl=1'),
            ("text/html;q=1.0, */*;q=0.80", "text/html;q=1.0, */*;q=0.8"),
        ],
    )
    def test_parse_list_line(self, header, expected):
        """List lines re-encode canonically."""
        assert parse_list_line(header).encode() == expected

    @pytest.mark.parametrize(
        "header,expected",
        [
            ("5; foo=bar", "5;foo=bar"),
            ("4.5", "4.5"),
            ('"hello world"', '"hello world"'),
            ("foo123/456", "foo123/456"),
            ("  ?1  ", "?1"),
        ],
    )
    def test_parse_item_line(self, header, expected):
        """Item lines re-encode canonically."""
        assert parse_item_line(header).encode() == expected

    def test_bytes_input(self):
        """Raw header bytes are accepted."""
        assert parse_item_line(b"?1") == Item(Bool(True))


class TestEmptyInput:
    """Empty headers are empty values, not errors."""

    def test_empty_dict(self):
        assert parse_dict_line("") == Dictionary()

    def test_blank_list(self):
        assert len(parse_list_line("    ")) == 0

    def test_empty_fragments(self):
        assert parse_dict(["", "  "]) == Dictionary()
        assert parse_list([]) == MemberList()

    def test_empty_item_fails(self):
        """An item is never optional."""
        with pytest.raises(UnexpectedEOLError):
            parse_item_line("")


class TestNumbers:
    """Test integer and decimal parsing."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("42", Integer(42)),
            ("-17", Integer(-17)),
            ("0", Integer(0)),
            ("007", Integer(7)),
            ("999999999999999", Integer(999999999999999)),
            ("1.5", Decimal(1500)),
            ("1.05", Decimal(1050)),
            ("1.25", Decimal(1250)),
            ("-0.001", Decimal(-1)),
            ("123456789012.345", Decimal(123456789012345)),
        ],
    )
    def test_valid_numbers(self, text, expected):
        assert bare(text) == expected

    def test_sixteen_digit_integer(self):
        """A 16th digit is one too many."""
        with pytest.raises(TooManyDigitsError):
            parse_item_line("1234567890123456")

    def test_sixteen_digit_decimal(self):
        """Integer and fractional digits share the budget."""
        with pytest.raises(TooManyDigitsError):
            parse_item_line("1234567890123.456")

    def test_four_fractional_digits(self):
        with pytest.raises(TooManyDigitsError):
            parse_item_line("1.2345")

    def test_trailing_dot_rejected(self):
        """A decimal point needs at least one digit after it."""
        with pytest.raises(UnrecognizedError):
            parse_item_line("1.")

    def test_dot_before_params_rejected(self):
        with pytest.raises(UnrecognizedError):
            parse_item_line("1.;a")

    def test_second_dot_left_for_caller(self):
        """The number ends at a second '.', which is then trailing garbage."""
        parser = Parser("1.2.3")
        assert parser.parse_number() == Decimal(1200)
        assert parser.pos == 3
        with pytest.raises(UnrecognizedError):
            parse_item_line("1.2.3")

    def test_lone_minus(self):
        with pytest.raises(UnexpectedEOLError):
            parse_item_line("-")

    def test_minus_without_digit(self):
        with pytest.raises(UnrecognizedError):
            parse_item_line("-a")


class TestStrings:
    """Test string parsing."""

    def test_escapes_are_removed(self):
        assert bare(r'"a\"b"') == String('a"b')
        assert bare(r'"back\\slash"') == String("back\\slash")

    def test_empty_string(self):
        assert bare('""') == String("")

    def test_unknown_escape(self):
        with pytest.raises(UnrecognizedError):
            parse_item_line(r'"bad\n"')

    def test_unterminated_escape(self):
        """A backslash right before the end of input."""
        with pytest.raises(UnexpectedEOLError):
            parse_item_line('"abc\\')

    def test_unterminated_string(self):
        with pytest.raises(UnexpectedEOLError):
            parse_item_line('"abc')

    @pytest.mark.parametrize("text", ['"tab\there"', '"café"', '"bell\x07"'])
    def test_non_printable(self, text):
        with pytest.raises(UnrecognizedError):
            parse_item_line(text)


class TestTokens:
    """Test token parsing."""

    @pytest.mark.parametrize("text", ["gzip", "*foo", "a:b/c", "Foo-Bar_1.2", "x!#$%&'*+-.^_`|~"])
    def test_valid_tokens(self, text):
        assert bare(text) == Token(text)

    def test_token_stops_at_disallowed_char(self):
        """The token ends quietly; the caller decides what follows."""
        parser = Parser("foo=bar")
        assert parser.parse_token() == Token("foo")
        assert parser.peek() == "="

    def test_token_followed_by_garbage(self):
        with pytest.raises(UnrecognizedError):
            parse_item_line("foo bar")


class TestByteSequences:
    """Test byte sequence parsing."""

    def test_decode(self):
        assert bare(":aGVsbG8=:") == ByteSeq(b"hello")

    def test_empty(self):
        assert bare("::") == ByteSeq(b"")

    def test_missing_padding_tolerated(self):
        assert bare(":YQ:") == ByteSeq(b"a")
        assert bare(":YQ=:") == ByteSeq(b"a")
        assert bare(":YWI:") == ByteSeq(b"ab")
        assert bare(":YWJj:") == ByteSeq(b"abc")

    def test_unterminated(self):
        with pytest.raises(UnexpectedEOLError):
            parse_item_line(":aGVsbG8=")

    def test_illegal_char(self):
        with pytest.raises(UnrecognizedError):
            parse_item_line(":aGVs!G8=:")

    def test_url_safe_alphabet_rejected(self):
        with pytest.raises(UnrecognizedError):
            parse_item_line(":a-_b:")

    def test_malformed_payload_loose(self, caplog):
        """By default a payload that does not decode becomes empty bytes."""
        with caplog.at_level(logging.WARNING, logger="sfv_parser"):
            assert bare(":YQ=YQ==:") == ByteSeq(b"")
        assert "malformed base64" in caplog.text

    def test_malformed_payload_strict(self):
        with pytest.raises(UnrecognizedError):
            parse_item_line(":YQ=YQ==:", strict_byte_seq=True)

    def test_strict_accepts_valid_payload(self):
        assert parse_dict_line("a=:aGk=:", strict_byte_seq=True)["a"] == Item(ByteSeq(b"hi"))


class TestBooleans:
    """Test boolean parsing."""

    def test_values(self):
        assert bare("?1") == Bool(True)
        assert bare("?0") == Bool(False)

    def test_missing_digit(self):
        with pytest.raises(UnexpectedEOLError):
            parse_item_line("?")

    def test_bad_digit(self):
        with pytest.raises(UnrecognizedError):
            parse_item_line("?2")


class TestBareItemDispatch:
    """Test selection of the bare item parser."""

    @pytest.mark.parametrize("text", ["@foo", "=1", "(1)", ";a", ")"])
    def test_unrecognized_start(self, text):
        with pytest.raises(UnrecognizedError):
            parse_item_line(text)


class TestKeysAndParams:
    """Test keys and parameter lists."""

    def test_key_chars(self):
        d = parse_dict_line("*a=1, a_b-c.d*9=2")
        assert d.keys() == ["*a", "a_b-c.d*9"]

    def test_uppercase_key(self):
        with pytest.raises(UnrecognizedError):
            parse_dict_line("A=1")

    def test_key_at_end(self):
        with pytest.raises(UnexpectedEOLError):
            parse_item_line("abc;")

    def test_bad_param_key(self):
        with pytest.raises(UnrecognizedError):
            parse_item_line("abc;A")

    def test_dangling_equals(self):
        with pytest.raises(UnexpectedEOLError):
            parse_item_line("abc;a=")

    def test_default_value_is_true(self):
        item = parse_item_line("abc;flag")
        assert item.params["flag"] == Bool(True)

    def test_duplicate_param_keeps_position(self):
        item = parse_item_line("abc;a=1;b=2;a=3")
        assert item.params.keys() == ["a", "b"]
        assert item.params["a"] == Integer(3)
        assert item.encode() == "abc;a=3;b=2"

    def test_params_stop_without_semicolon(self):
        """Spaces not followed by ';' are left in place."""
        parser = Parser("abc;a=1 ,")
        parser.parse_item()
        assert parser.pos == 7


class TestInnerLists:
    """Test inner list parsing."""

    def test_empty(self):
        assert parse_list_line("()")[0] == InnerList()

    def test_items_and_params(self):
        inner = parse_list_line("(1 2);x=?0")[0]
        assert inner.items == [Item(Integer(1)), Item(Integer(2))]
        assert inner.params["x"] == Bool(False)

    def test_extra_spaces(self):
        assert parse_list_line("(  a   b  )").encode() == "(a b)"

    def test_item_params_inside(self):
        inner = parse_list_line("(a;x=1 b);y")[0]
        assert inner.items[0].params["x"] == Integer(1)
        assert "y" in inner.params
        assert inner.encode() == "(a;x=1 b);y"

    def test_unterminated(self):
        with pytest.raises(UnexpectedEOLError):
            parse_list_line("(1 2")

    def test_only_open_paren(self):
        with pytest.raises(UnexpectedEOLError):
            parse_list_line("(")

    def test_items_need_spaces(self):
        with pytest.raises(UnrecognizedError):
            parse_list_line("(1,2)")

    def test_no_nesting(self):
        with pytest.raises(UnrecognizedError):
            parse_list_line("((1))")


class TestDictionaries:
    """Test dictionary-specific rules."""

    def test_duplicate_key_keeps_position(self):
        d = parse_dict_line("a=1, b=2, a=3")
        assert d.encode() == "a=3, b=2"

    def test_implicit_true_with_params(self):
        d = parse_dict_line("a;x=1")
        assert d["a"] == Item(Bool(True), ParamList().add("x", Integer(1)))
        assert d.encode() == "a;x=1"

    def test_explicit_true_uses_shorthand(self):
        assert parse_dict_line("a=?1").encode() == "a"
        assert parse_dict_line("a=?1;x").encode() == "a;x"

    def test_inner_list_value(self):
        d = parse_dict_line("feelings=(joy sadness)")
        assert d["feelings"] == InnerList([Item(Token("joy")), Item(Token("sadness"))])

    def test_missing_value(self):
        with pytest.raises(UnexpectedEOLError):
            parse_dict_line("a=")


class TestTopLevelSeparators:
    """Test commas and trailing input at the top level."""

    def test_list_trailing_comma(self):
        with pytest.raises(UnexpectedEOLError):
            parse_list_line("a, b,")

    def test_dict_trailing_comma(self):
        with pytest.raises(UnexpectedEOLError):
            parse_dict_line("a=1, ")

    def test_list_trailing_garbage(self):
        with pytest.raises(UnrecognizedError):
            parse_list_line("a b")

    def test_dict_trailing_garbage(self):
        with pytest.raises(UnrecognizedError):
            parse_dict_line("a=1 b=2")

    def test_item_trailing_garbage(self):
        with pytest.raises(UnrecognizedError) as exc_info:
            parse_item_line("5 garbage")
        assert exc_info.value.pos == 2


class TestErrors:
    """Test error types and reporting."""

    @pytest.mark.parametrize("cls", [UnexpectedEOLError, UnrecognizedError, TooManyDigitsError])
    def test_hierarchy(self, cls):
        assert issubclass(cls, ParseError)

    def test_message_has_position(self):
        with pytest.raises(ParseError, match="at pos 1"):
            parse_item_line("?x")

    def test_failure_is_logged(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="sfv_parser"):
            with pytest.raises(TooManyDigitsError):
                parse_list_line("1, 12345678901234567")
        assert "Failed to parse structured field list" in caplog.text
