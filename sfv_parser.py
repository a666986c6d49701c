# Structured field value parser (RFC 8941)

from __future__ import annotations

import base64
import binascii
import logging
from typing import Callable, Iterable, TypeVar, Union

from sfv_chars import (
    is_base64_char,
    is_digit,
    is_key_char,
    is_key_start,
    is_print,
    is_token_char,
    is_token_start,
)
from sfv_struct import (
    BareItem,
    Bool,
    ByteSeq,
    Decimal,
    Dictionary,
    InnerList,
    Integer,
    Item,
    Member,
    MemberList,
    Pair,
    ParamList,
    String,
    Token,
)

logger = logging.getLogger(__name__)

MAX_DIGITS = 15
MAX_FRACTION_DIGITS = 3


# -----------------------------
# Errors

class ParseError(Exception):
    """Base class for all parse failures. `pos` is the offset in the joined line."""

    def __init__(self, message: str, pos: int):
        super().__init__(f"{message} at pos {pos}")
        self.pos = pos


class UnexpectedEOLError(ParseError):
    pass


class UnrecognizedError(ParseError):
    pass


class TooManyDigitsError(ParseError):
    pass


# -----------------------------
# Multi-line headers

def join_multi_lines(lines: Iterable[str]) -> str:
    """
    Join header fragments into a single line:

      ["  sugar, tea ", "", "rum"]  ->  "sugar, tea, rum"

    A bare string is refused rather than iterated char by char; single-line
    headers go to the *_line entry points.
    """
    if isinstance(lines, (str, bytes)):
        raise TypeError(f"Expected a sequence of header lines, got {type(lines).__name__}")
    return ", ".join(s for s in (line.strip() for line in lines) if s)


# -----------------------------
# Parser

class Parser:
    def __init__(self, text: Union[str, bytes], strict_byte_seq: bool = False):
        if isinstance(text, bytes):
            # one char per byte, so positions still match the raw header
            text = text.decode("latin-1")
        self.text = text
        self.n = len(text)
        self.pos = 0
        self.strict_byte_seq = strict_byte_seq

    # basic utilities
    def at_end(self) -> bool:
        return self.pos >= self.n

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < self.n else ""

    def skip_spaces(self) -> None:
        while self.pos < self.n and self.text[self.pos] == " ":
            self.pos += 1

    def _eol(self, what: str) -> UnexpectedEOLError:
        return UnexpectedEOLError(f"Unexpected end of input in {what}", self.pos)

    def _unrecognized(self, what: str) -> UnrecognizedError:
        return UnrecognizedError(f"Unrecognized char {self.peek()!r} in {what}", self.pos)

    # top-level values
    def parse_list(self) -> MemberList:
        members = MemberList()
        self.skip_spaces()
        if self.at_end():
            return members

        while True:
            members.append(self.parse_member())
            self.skip_spaces()
            if self.at_end():
                break
            if self.peek() != ",":
                raise self._unrecognized("list")
            self.pos += 1

        return members

    def parse_dict(self) -> Dictionary:
        dictionary = Dictionary()
        self.skip_spaces()
        if self.at_end():
            return dictionary

        while True:
            pair = self.parse_pair()
            dictionary.add(pair.key, pair.value)
            self.skip_spaces()
            if self.at_end():
                break
            if self.peek() != ",":
                raise self._unrecognized("dictionary")
            self.pos += 1

        return dictionary

    def parse_item_line(self) -> Item:
        item = self.parse_item()
        self.skip_spaces()
        if not self.at_end():
            raise self._unrecognized("item")
        return item

    # structural parsers
    def parse_pair(self) -> Pair:
        """
        Parse one dictionary member:

          key=member
          key;params     (shorthand for key=?1;params)
        """
        key = self.parse_key()
        if self.peek() == "=":
            self.pos += 1
            return Pair(key, self.parse_member())
        return Pair(key, Item(Bool(True), self.parse_params()))

    def parse_member(self) -> Member:
        self.skip_spaces()
        if self.at_end():
            raise self._eol("member")
        if self.peek() == "(":
            return self.parse_inner_list()
        return self.parse_item()

    def parse_inner_list(self) -> InnerList:
        if self.at_end():
            raise self._eol("inner list")
        if self.peek() != "(":
            raise self._unrecognized("inner list")
        self.pos += 1

        items = []
        while True:
            self.skip_spaces()
            if self.at_end():
                raise self._eol("inner list")
            if self.peek() == ")":
                self.pos += 1
                break
            items.append(self.parse_item())
            # items are separated by spaces only
            if self.at_end():
                raise self._eol("inner list")
            if self.peek() not in (" ", ")"):
                raise self._unrecognized("inner list")

        return InnerList(items, self.parse_params())

    def parse_item(self) -> Item:
        bare = self.parse_bare_item()
        return Item(bare, self.parse_params())

    def parse_params(self) -> ParamList:
        """
        Parse a run of `;key[=value]` parameters. Stops quietly at the first
        position not starting with ';' and leaves it to the caller.
        """
        params = ParamList()
        while True:
            mark = self.pos
            self.skip_spaces()
            if self.peek() != ";":
                self.pos = mark
                break
            self.pos += 1

            key = self.parse_key()
            value: BareItem = Bool(True)
            if self.peek() == "=":
                self.pos += 1
                value = self.parse_bare_item()
            params.add(key, value)

        return params

    def parse_key(self) -> str:
        self.skip_spaces()
        if self.at_end():
            raise self._eol("key")
        if not is_key_start(self.peek()):
            raise self._unrecognized("key")
        start = self.pos
        while self.pos < self.n and is_key_char(self.text[self.pos]):
            self.pos += 1
        return self.text[start:self.pos]

    # bare items
    def parse_bare_item(self) -> BareItem:
        self.skip_spaces()
        if self.at_end():
            raise self._eol("bare item")

        ch = self.peek()
        if ch == "-" or is_digit(ch):
            return self.parse_number()
        if ch == '"':
            return self.parse_string()
        if is_token_start(ch):
            return self.parse_token()
        if ch == ":":
            return self.parse_byte_seq()
        if ch == "?":
            return self.parse_bool()
        raise self._unrecognized("bare item")

    def parse_number(self) -> BareItem:
        """
        Integer or decimal. At most 15 digits overall and 3 after the point;
        decimals come back scaled by 1000.
        """
        sign = 1
        if self.peek() == "-":
            sign = -1
            self.pos += 1
        if self.at_end():
            raise self._eol("number")
        if not is_digit(self.peek()):
            raise self._unrecognized("number")

        digits = []
        decimal_places = -1  # -1 until a '.' is seen
        while not self.at_end():
            ch = self.peek()
            if is_digit(ch):
                if len(digits) == MAX_DIGITS:
                    raise TooManyDigitsError("Too many digits in number", self.pos)
                if decimal_places == MAX_FRACTION_DIGITS:
                    raise TooManyDigitsError("Too many fractional digits in decimal", self.pos)
                digits.append(ch)
                if decimal_places >= 0:
                    decimal_places += 1
            elif ch == "." and decimal_places == -1:
                decimal_places = 0
            else:
                # a second '.' is left for the caller
                break
            self.pos += 1

        n = sign * int("".join(digits))
        if decimal_places == -1:
            return Integer(n)
        if decimal_places == 0:
            raise UnrecognizedError("Decimal point without fractional digits", self.pos)
        return Decimal(n * 10 ** (MAX_FRACTION_DIGITS - decimal_places))

    def parse_string(self) -> String:
        if self.peek() != '"':
            raise self._unrecognized("string")
        self.pos += 1

        buf = []
        while True:
            if self.at_end():
                raise self._eol("string")
            ch = self.peek()
            if ch == '"':
                self.pos += 1
                return String("".join(buf))
            if ch == "\\":
                self.pos += 1
                if self.at_end():
                    raise self._eol("string escape")
                ch = self.peek()
                if ch not in ('"', "\\"):
                    raise self._unrecognized("string escape")
            elif not is_print(ch):
                raise self._unrecognized("string")
            buf.append(ch)
            self.pos += 1

    def parse_token(self) -> Token:
        if not is_token_start(self.peek()):
            raise self._unrecognized("token")
        start = self.pos
        while self.pos < self.n and is_token_char(self.text[self.pos]):
            self.pos += 1
        return Token(self.text[start:self.pos])

    def parse_byte_seq(self) -> ByteSeq:
        if self.peek() != ":":
            raise self._unrecognized("byte sequence")
        self.pos += 1

        start = self.pos
        while not self.at_end() and self.peek() != ":":
            if not is_base64_char(self.peek()):
                raise self._unrecognized("byte sequence")
            self.pos += 1
        if self.at_end():
            raise self._eol("byte sequence")

        payload = self.text[start:self.pos]
        self.pos += 1
        return ByteSeq(self._decode_base64(payload, start))

    def _decode_base64(self, payload: str, start: int) -> bytes:
        # missing or short '=' padding is tolerated, as RFC 8941 asks of parsers
        payload += "=" * (-len(payload) % 4)
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            if self.strict_byte_seq:
                raise UnrecognizedError(f"Malformed base64 in byte sequence ({exc})", start) from exc
            logger.warning(f"Dropping malformed base64 payload {payload!r} at pos {start}: {exc}")
            return b""

    def parse_bool(self) -> Bool:
        if self.peek() != "?":
            raise self._unrecognized("boolean")
        self.pos += 1
        if self.at_end():
            raise self._eol("boolean")
        ch = self.peek()
        if ch == "0":
            self.pos += 1
            return Bool(False)
        if ch == "1":
            self.pos += 1
            return Bool(True)
        raise self._unrecognized("boolean")


# -----------------------------
# Public entry

T = TypeVar("T")


def _run(kind: str, text: Union[str, bytes], strict_byte_seq: bool, entry: Callable[[Parser], T]) -> T:
    parser = Parser(text, strict_byte_seq=strict_byte_seq)
    try:
        return entry(parser)
    except ParseError as exc:
        logger.debug(f"Failed to parse structured field {kind}: {type(exc).__name__}: {exc}")
        raise


def parse_dict_line(text: Union[str, bytes], strict_byte_seq: bool = False) -> Dictionary:
    return _run("dictionary", text, strict_byte_seq, Parser.parse_dict)


def parse_dict(lines: Iterable[str], strict_byte_seq: bool = False) -> Dictionary:
    return parse_dict_line(join_multi_lines(lines), strict_byte_seq=strict_byte_seq)


def parse_list_line(text: Union[str, bytes], strict_byte_seq: bool = False) -> MemberList:
    return _run("list", text, strict_byte_seq, Parser.parse_list)


def parse_list(lines: Iterable[str], strict_byte_seq: bool = False) -> MemberList:
    return parse_list_line(join_multi_lines(lines), strict_byte_seq=strict_byte_seq)


def parse_item_line(text: Union[str, bytes], strict_byte_seq: bool = False) -> Item:
    """Parse a single item; anything but spaces after it is an error."""
    return _run("item", text, strict_byte_seq, Parser.parse_item_line)
