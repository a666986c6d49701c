# Value model and encoder for structured field values (RFC 8941)

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Union

from sfv_chars import is_print


# -----------------------------
# Bare items

@dataclass(frozen=True)
class Integer:
    """
    Integer item.

    Values are plain Python ints. The parser only admits 15 digits, other
    implementations may not cope with anything wider than that.
    """
    value: int

    def encode(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Decimal:
    """
    Decimal item, stored as an integer scaled by 1000:

      Decimal(1500)  ->  1.5
      Decimal(-1050) -> -1.05
    """
    value: int  # scaled x1000, i.e. exactly 3 implicit fractional digits

    @classmethod
    def from_float(cls, number: float) -> "Decimal":
        # extra fractional digits are rounded away
        return cls(int(round(number * 1000)))

    def to_float(self) -> float:
        return self.value / 1000

    def encode(self) -> str:
        sign = "-" if self.value < 0 else ""
        int_part, frac_part = divmod(abs(self.value), 1000)
        frac = f"{frac_part:03d}".rstrip("0") or "0"
        return f"{sign}{int_part}.{frac}"


_CONTROL_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
}


def _quote_ascii(text: str) -> str:
    """
    Quote `text` as an ASCII-only string literal.

    '"' and '\\' get a backslash. Anything outside printable ASCII is written
    as an escape sequence, which keeps the output ASCII but is not a valid
    structured field string anymore.
    """
    out: List[str] = ['"']
    for ch in text:
        if ch in ('"', "\\"):
            out.append("\\" + ch)
        elif is_print(ch):
            out.append(ch)
        elif ch in _CONTROL_ESCAPES:
            out.append(_CONTROL_ESCAPES[ch])
        else:
            cp = ord(ch)
            if cp < 0x80:
                out.append(f"\\x{cp:02x}")
            elif cp <= 0xFFFF:
                out.append(f"\\u{cp:04x}")
            else:
                out.append(f"\\U{cp:08x}")
    out.append('"')
    return "".join(out)


@dataclass(frozen=True)
class String:
    value: str  # unescaped

    def encode(self) -> str:
        return _quote_ascii(self.value)


@dataclass(frozen=True)
class Token:
    value: str

    def encode(self) -> str:
        return self.value


@dataclass(frozen=True)
class ByteSeq:
    value: bytes  # raw bytes, base64 only on the wire

    def encode(self) -> str:
        return ":" + base64.b64encode(self.value).decode("ascii") + ":"


@dataclass(frozen=True)
class Bool:
    value: bool

    def encode(self) -> str:
        return "?1" if self.value else "?0"


BareItem = Union[Integer, Decimal, String, Token, ByteSeq, Bool]

BARE_ITEM_TYPES = (Integer, Decimal, String, Token, ByteSeq, Bool)


def _is_true_flag(bare: BareItem) -> bool:
    return isinstance(bare, Bool) and bare.value is True


# -----------------------------
# Parameters

@dataclass(frozen=True)
class Param:
    key: str
    value: BareItem

    def encode(self) -> str:
        if _is_true_flag(self.value):
            return self.key
        return f"{self.key}={self.value.encode()}"


@dataclass
class ParamList:
    """
    Ordered parameters. Keys are unique: adding an existing key replaces its
    value and keeps the original position.
    """
    params: List[Param] = field(default_factory=list)

    def add(self, key: str, value: BareItem) -> "ParamList":
        for idx, p in enumerate(self.params):
            if p.key == key:
                self.params[idx] = Param(key, value)
                return self
        self.params.append(Param(key, value))
        return self

    def get(self, key: str, default: Optional[BareItem] = None) -> Optional[BareItem]:
        for p in self.params:
            if p.key == key:
                return p.value
        return default

    def keys(self) -> List[str]:
        return [p.key for p in self.params]

    def __getitem__(self, key: str) -> BareItem:
        for p in self.params:
            if p.key == key:
                return p.value
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        return any(p.key == key for p in self.params)

    def __iter__(self) -> Iterator[Param]:
        return iter(self.params)

    def __len__(self) -> int:
        return len(self.params)

    def encode(self) -> str:
        if not self.params:
            return ""
        return ";" + ";".join(p.encode() for p in self.params)


# -----------------------------
# Members

@dataclass(frozen=True)
class Item:
    bare: BareItem
    params: ParamList = field(default_factory=ParamList)

    def encode(self) -> str:
        return self.bare.encode() + self.params.encode()


@dataclass(frozen=True)
class InnerList:
    """
    Parenthesized list of items. Inner lists never nest, and `params` belong
    to the list itself, not to its items.
    """
    items: List[Item] = field(default_factory=list)
    params: ParamList = field(default_factory=ParamList)

    def encode(self) -> str:
        inner = " ".join(it.encode() for it in self.items)
        return f"({inner})" + self.params.encode()


Member = Union[Item, InnerList]


@dataclass
class MemberList:
    """Top-level list. Member order is the wire order."""
    members: List[Member] = field(default_factory=list)

    def append(self, member: Member) -> "MemberList":
        self.members.append(member)
        return self

    def __iter__(self) -> Iterator[Member]:
        return iter(self.members)

    def __len__(self) -> int:
        return len(self.members)

    def __getitem__(self, idx: int) -> Member:
        return self.members[idx]

    def encode(self) -> str:
        return ", ".join(m.encode() for m in self.members)


# -----------------------------
# Dictionaries

@dataclass(frozen=True)
class Pair:
    key: str
    value: Member

    def encode(self) -> str:
        # key;params is the shorthand for key=?1;params
        if isinstance(self.value, Item) and _is_true_flag(self.value.bare):
            return self.key + self.value.params.encode()
        return f"{self.key}={self.value.encode()}"


@dataclass
class Dictionary:
    """
    Ordered dictionary. Same replace-in-place rule as ParamList: adding an
    existing key swaps the value without moving the pair.
    """
    pairs: List[Pair] = field(default_factory=list)

    def add(self, key: str, value: Member) -> "Dictionary":
        for idx, p in enumerate(self.pairs):
            if p.key == key:
                self.pairs[idx] = Pair(key, value)
                return self
        self.pairs.append(Pair(key, value))
        return self

    def get(self, key: str, default: Optional[Member] = None) -> Optional[Member]:
        for p in self.pairs:
            if p.key == key:
                return p.value
        return default

    def keys(self) -> List[str]:
        return [p.key for p in self.pairs]

    def __getitem__(self, key: str) -> Member:
        for p in self.pairs:
            if p.key == key:
                return p.value
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        return any(p.key == key for p in self.pairs)

    def __iter__(self) -> Iterator[Pair]:
        return iter(self.pairs)

    def __len__(self) -> int:
        return len(self.pairs)

    def encode(self) -> str:
        return ", ".join(p.encode() for p in self.pairs)
