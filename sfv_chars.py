# Character classes for the structured field grammar

from string import ascii_letters, ascii_lowercase, digits

DIGITS = frozenset(digits)
LOWER = frozenset(ascii_lowercase)
ALPHA = frozenset(ascii_letters)

KEY_START_CHARS = LOWER | {"*"}
KEY_CHARS = LOWER | DIGITS | frozenset("_-.*")

# tchar from RFC 9110 plus ':' and '/'
TOKEN_START_CHARS = ALPHA | {"*"}
TOKEN_CHARS = ALPHA | DIGITS | frozenset("!#$%&'*+-.^_`|~:/")

BASE64_CHARS = ALPHA | DIGITS | frozenset("+/=")


def is_digit(ch: str) -> bool:
    return ch in DIGITS


def is_print(ch: str) -> bool:
    """Printable ASCII, space through '~'."""
    return " " <= ch <= "~"


def is_key_start(ch: str) -> bool:
    return ch in KEY_START_CHARS


def is_key_char(ch: str) -> bool:
    return ch in KEY_CHARS


def is_token_start(ch: str) -> bool:
    return ch in TOKEN_START_CHARS


def is_token_char(ch: str) -> bool:
    return ch in TOKEN_CHARS


def is_base64_char(ch: str) -> bool:
    return ch in BASE64_CHARS
