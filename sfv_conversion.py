# JSON conversion for structured field values

from __future__ import annotations

import base64
from typing import Any, Dict, List

from sfv_chars import is_key_char, is_key_start, is_print, is_token_char, is_token_start
from sfv_struct import (
    BARE_ITEM_TYPES,
    BareItem,
    ByteSeq,
    Decimal,
    Dictionary,
    InnerList,
    Item,
    Member,
    MemberList,
    ParamList,
)

_BARE_TYPES_BY_NAME = {t.__name__: t for t in BARE_ITEM_TYPES}

# largest magnitude that still encodes within the 15 digit budget
_MAX_NUMBER = 10 ** 15 - 1


# -----------------------------
# Full JSON conversion: every node tagged with __type__, reversible.

def _bare_to_dict(b: BareItem) -> dict:
    value: Any = b.value
    if isinstance(b, ByteSeq):
        value = base64.b64encode(b.value).decode("ascii")
    return {
        "__type__": type(b).__name__,
        "value": value,  # Decimal keeps its x1000 integer
    }


def _require(d: Any, name: str, expected: type, what: str) -> Any:
    """Fetch `d[name]` and check its type, raising ValueError for anything malformed."""
    if not isinstance(d, dict):
        raise ValueError(f"{what} must be an object, got {d!r}")
    if name not in d:
        raise ValueError(f"{what} is missing {name!r}")
    value = d[name]
    if not isinstance(value, expected):
        raise ValueError(f"{what} field {name!r} must be {expected.__name__}, got {value!r}")
    return value


def _check_key(key: str) -> str:
    if not key or not is_key_start(key[0]) or not all(is_key_char(ch) for ch in key):
        raise ValueError(f"Invalid key {key!r}")
    return key


def _bare_from_dict(d: Any) -> BareItem:
    t = _require(d, "__type__", str, "bare item")
    if t not in _BARE_TYPES_BY_NAME:
        raise ValueError(f"Unknown bare item type {t!r}")
    if "value" not in d:
        raise ValueError(f"{t} is missing 'value'")

    value = d["value"]
    if t == "ByteSeq":
        try:
            return ByteSeq(base64.b64decode(value, validate=True))
        except (ValueError, TypeError) as exc:
            raise ValueError(f"ByteSeq value is not base64: {value!r}") from exc
    if t in ("Integer", "Decimal"):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{t} value must be an integer, got {value!r}")
        if abs(value) > _MAX_NUMBER:
            raise ValueError(f"{t} value {value} has too many digits")
    elif t == "Bool":
        if not isinstance(value, bool):
            raise ValueError(f"Bool value must be true/false, got {value!r}")
    elif not isinstance(value, str):
        raise ValueError(f"{t} value must be a string, got {value!r}")
    elif t == "String" and not all(is_print(ch) for ch in value):
        raise ValueError(f"String value must be printable ASCII, got {value!r}")
    elif t == "Token" and (
        not value or not is_token_start(value[0]) or not all(is_token_char(ch) for ch in value)
    ):
        raise ValueError(f"Invalid token {value!r}")
    return _BARE_TYPES_BY_NAME[t](value)


def _params_to_list(params: ParamList) -> List[dict]:
    # a list, not an object, so that key order survives any JSON tooling
    return [{"key": p.key, "value": _bare_to_dict(p.value)} for p in params]


def _optional_list(d: dict, name: str, what: str) -> list:
    value = d.get(name, [])
    if not isinstance(value, list):
        raise ValueError(f"{what} field {name!r} must be list, got {value!r}")
    return value


def _params_from_list(data: Any) -> ParamList:
    if not isinstance(data, list):
        raise ValueError(f"params must be a list, got {data!r}")
    params = ParamList()
    for p in data:
        key = _check_key(_require(p, "key", str, "parameter"))
        params.add(key, _bare_from_dict(_require(p, "value", dict, "parameter")))
    return params


def _item_to_dict(it: Item) -> dict:
    return {
        "__type__": "Item",
        "bare": _bare_to_dict(it.bare),
        "params": _params_to_list(it.params),
    }


def _item_from_dict(d: Any) -> Item:
    return Item(
        bare=_bare_from_dict(_require(d, "bare", dict, "Item")),
        params=_params_from_list(_optional_list(d, "params", "Item")),
    )


def _inner_list_to_dict(il: InnerList) -> dict:
    return {
        "__type__": "InnerList",
        "items": [_item_to_dict(it) for it in il.items],
        "params": _params_to_list(il.params),
    }


def _inner_list_from_dict(d: dict) -> InnerList:
    return InnerList(
        items=[_item_from_dict(it) for it in _optional_list(d, "items", "InnerList")],
        params=_params_from_list(_optional_list(d, "params", "InnerList")),
    )


def _member_from_dict(d: Any) -> Member:
    t = _require(d, "__type__", str, "member")
    if t == "Item":
        return _item_from_dict(d)
    if t == "InnerList":
        return _inner_list_from_dict(d)
    raise ValueError(f"Expected Item or InnerList, got {t!r}")


def _to_json_value(v: Any) -> Any:
    """
    Recursively convert value-model nodes into JSON-serializable structures
    with type tags.
    """
    if isinstance(v, Dictionary):
        return {
            "__type__": "Dictionary",
            "pairs": [{"key": p.key, "value": _to_json_value(p.value)} for p in v],
        }

    if isinstance(v, MemberList):
        return {
            "__type__": "MemberList",
            "members": [_to_json_value(m) for m in v],
        }

    if isinstance(v, InnerList):
        return _inner_list_to_dict(v)

    if isinstance(v, Item):
        return _item_to_dict(v)

    if isinstance(v, ParamList):
        return {"__type__": "ParamList", "params": _params_to_list(v)}

    if isinstance(v, BARE_ITEM_TYPES):
        return _bare_to_dict(v)

    raise ValueError(f"Not a structured field value: {v!r}")


def _from_json_value(v: Any) -> Any:
    """
    Recursively reconstruct value-model nodes from the tagged JSON form.
    """
    if not isinstance(v, dict):
        raise ValueError(f"Expected a tagged object, got {v!r}")

    t = v.get("__type__")

    if t == "Dictionary":
        dictionary = Dictionary()
        for p in _optional_list(v, "pairs", "Dictionary"):
            key = _check_key(_require(p, "key", str, "pair"))
            dictionary.add(key, _member_from_dict(_require(p, "value", dict, "pair")))
        return dictionary
    if t == "MemberList":
        return MemberList([_member_from_dict(m) for m in _optional_list(v, "members", "MemberList")])
    if t in ("Item", "InnerList"):
        return _member_from_dict(v)
    if t == "ParamList":
        return _params_from_list(_optional_list(v, "params", "ParamList"))
    if t in _BARE_TYPES_BY_NAME:
        return _bare_from_dict(v)

    raise ValueError(f"Unknown structured field type {t!r}")


def value_to_json_dict(value: Any) -> Any:
    """
    Convert a parsed value (Dictionary, MemberList, Item, ...) into its tagged
    JSON form.
    """
    return _to_json_value(value)


def value_from_json_dict(data: Any) -> Any:
    """
    Convert the output of value_to_json_dict back into value-model nodes.
    """
    return _from_json_value(data)


# -----------------------------
# SIMPLE JSON conversion: no __type__, plain Python values.
# Handy for printing or diffing, but unlike the full form it cannot be
# converted back: tokens and strings look the same, decimals become floats.

def _bare_to_simple(b: BareItem) -> Any:
    if isinstance(b, Decimal):
        return b.to_float()
    if isinstance(b, ByteSeq):
        return base64.b64encode(b.value).decode("ascii")
    # Integer, String, Token, Bool
    return b.value


def _params_to_simple(params: ParamList) -> Dict[str, Any]:
    return {p.key: _bare_to_simple(p.value) for p in params}


def _simple_value(v: Any) -> Any:
    if isinstance(v, Dictionary):
        return {p.key: _simple_value(p.value) for p in v}

    if isinstance(v, MemberList):
        return [_simple_value(m) for m in v]

    if isinstance(v, InnerList):
        out: Dict[str, Any] = {"items": [_simple_value(it) for it in v.items]}
        if v.params:
            out["params"] = _params_to_simple(v.params)
        return out

    if isinstance(v, Item):
        # items without parameters collapse to their value
        if not v.params:
            return _bare_to_simple(v.bare)
        return {"value": _bare_to_simple(v.bare), "params": _params_to_simple(v.params)}

    if isinstance(v, ParamList):
        return _params_to_simple(v)

    if isinstance(v, BARE_ITEM_TYPES):
        return _bare_to_simple(v)

    raise ValueError(f"Not a structured field value: {v!r}")


def value_to_simple_json(value: Any) -> Any:
    """
    Public entry-point: plain JSON for humans (not convertible back).
    """
    return _simple_value(value)
