"""JSON conversion between caller values and plaintext bytes.

Values are written as compact UTF-8 JSON followed by a newline. Dataclass
instances become objects keyed by field name, in field order. Enum
members are written as their value.

Decoding writes into a destination the caller already owns:

- a mutable mapping receives the decoded object's keys
- a mutable sequence has its contents replaced by the decoded array
- a (non-frozen) dataclass instance has the fields present in the decoded
  object assigned, after each value is checked against the field annotation

The destination is only touched once the whole payload has been converted,
so a DeserializationError leaves it unchanged.
"""

from __future__ import annotations

import copy
import dataclasses
import json
import types
import typing
from collections.abc import MutableMapping, MutableSequence
from enum import Enum
from typing import Any, Dict, Union

from .exceptions import DeserializationError, InvalidArgumentError, SerializationError


def _default(obj):
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def dumps(value: Any) -> bytes:
    try:
        text = json.dumps(
            value,
            default=_default,
            ensure_ascii=False,
            allow_nan=False,
            separators=(",", ":"),
        )
    except (TypeError, ValueError, RecursionError) as e:
        raise SerializationError(f"cannot serialize {type(value).__name__}: {e}") from e
    return (text + "\n").encode("utf-8")


def check_destination(dest: Any) -> None:
    """Raise InvalidArgumentError unless ``dest`` can be decoded into."""
    if dest is None or isinstance(dest, type):
        raise InvalidArgumentError("destination must be a mutable instance, not "
                                   f"{'None' if dest is None else 'a class'}")
    if isinstance(dest, (bytes, bytearray, memoryview, str)):
        raise InvalidArgumentError(f"cannot decode into {type(dest).__name__}")
    if isinstance(dest, (MutableMapping, MutableSequence)):
        return
    if dataclasses.is_dataclass(dest):
        if dest.__dataclass_params__.frozen:
            raise InvalidArgumentError(f"cannot decode into frozen dataclass {type(dest).__name__}")
        return
    raise InvalidArgumentError(
        "destination must be a mutable mapping, mutable sequence or dataclass instance, "
        f"got {type(dest).__name__}"
    )


def load_into(data: bytes, dest: Any) -> Any:
    """Decode JSON ``data`` into ``dest`` and return ``dest``."""
    check_destination(dest)
    try:
        decoded = json.loads(data)
    except ValueError as e:
        raise DeserializationError(f"invalid JSON payload: {e}") from e

    if isinstance(dest, MutableMapping):
        if not isinstance(decoded, dict):
            raise _mismatch(decoded, type(dest).__name__, "$")
        dest.update(decoded)
    elif isinstance(dest, MutableSequence):
        if not isinstance(decoded, list):
            raise _mismatch(decoded, type(dest).__name__, "$")
        dest[:] = decoded
    else:
        _apply(dest, _dataclass_updates(dest, decoded, "$"))
    return dest


# ---------------------------------------------------------------------------
# dataclass support
# ---------------------------------------------------------------------------


def _kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def _mismatch(value: Any, expected: str, path: str) -> DeserializationError:
    return DeserializationError(f"{path}: cannot decode JSON {_kind(value)} into {expected}")


def _type_hints(cls) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(cls)
    except (NameError, TypeError):
        # unresolvable forward references: fall back to raw annotations
        return {f.name: f.type for f in dataclasses.fields(cls)}


def _dataclass_updates(obj, decoded: Any, path: str) -> Dict[str, Any]:
    if not isinstance(decoded, dict):
        raise _mismatch(decoded, type(obj).__name__, path)
    hints = _type_hints(type(obj))
    updates = {}
    for f in dataclasses.fields(obj):
        if f.name not in decoded:
            continue
        raw = decoded[f.name]
        field_path = f"{path}.{f.name}"
        current = getattr(obj, f.name, None)
        if (
            isinstance(raw, dict)
            and dataclasses.is_dataclass(current)
            and not isinstance(current, type)
            and not current.__dataclass_params__.frozen
        ):
            # populate nested structs in place, through a copy until all fields convert
            clone = copy.copy(current)
            _apply(clone, _dataclass_updates(clone, raw, field_path))
            updates[f.name] = clone
        else:
            updates[f.name] = _convert(raw, hints.get(f.name, Any), field_path)
    return updates


def _apply(obj, updates: Dict[str, Any]) -> None:
    for name, value in updates.items():
        setattr(obj, name, value)


def _convert(value: Any, hint: Any, path: str) -> Any:
    if hint is Any or hint is object or isinstance(hint, str):
        return value

    origin = typing.get_origin(hint)
    args = typing.get_args(hint)

    if origin is Union or origin is types.UnionType:
        if value is None and type(None) in args:
            return None
        for arg in args:
            if arg is type(None):
                continue
            try:
                return _convert(value, arg, path)
            except DeserializationError:
                continue
        raise _mismatch(value, str(hint), path)

    if hint is type(None):
        if value is None:
            return None
        raise _mismatch(value, "None", path)

    if isinstance(hint, type) and issubclass(hint, Enum):
        if not isinstance(value, bool):
            try:
                return hint(value)
            except (ValueError, TypeError):
                pass
        raise _mismatch(value, hint.__name__, path)

    if hint is bool:
        if isinstance(value, bool):
            return value
        raise _mismatch(value, "bool", path)
    if hint is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        raise _mismatch(value, "int", path)
    if hint is float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        raise _mismatch(value, "float", path)
    if hint is str:
        if isinstance(value, str):
            return value
        raise _mismatch(value, "str", path)

    if hint is list or origin is list:
        if not isinstance(value, list):
            raise _mismatch(value, "list", path)
        item = args[0] if args else Any
        return [_convert(v, item, f"{path}[{i}]") for i, v in enumerate(value)]

    if hint is tuple or origin is tuple:
        if not isinstance(value, list):
            raise _mismatch(value, "tuple", path)
        if not args or (len(args) == 2 and args[1] is Ellipsis):
            item = args[0] if args else Any
            return tuple(_convert(v, item, f"{path}[{i}]") for i, v in enumerate(value))
        if len(value) != len(args):
            raise DeserializationError(f"{path}: expected {len(args)} items, got {len(value)}")
        return tuple(_convert(v, t, f"{path}[{i}]") for i, (v, t) in enumerate(zip(value, args)))

    if hint is dict or origin is dict:
        if not isinstance(value, dict):
            raise _mismatch(value, "dict", path)
        key, item = args if len(args) == 2 else (Any, Any)
        return {
            _convert_key(k, key, path): _convert(v, item, f"{path}.{k}")
            for k, v in value.items()
        }

    if isinstance(hint, type) and dataclasses.is_dataclass(hint):
        if not isinstance(value, dict):
            raise _mismatch(value, hint.__name__, path)
        hints = _type_hints(hint)
        kwargs = {
            f.name: _convert(value[f.name], hints.get(f.name, Any), f"{path}.{f.name}")
            for f in dataclasses.fields(hint)
            if f.init and f.name in value
        }
        try:
            return hint(**kwargs)
        except TypeError as e:
            raise DeserializationError(f"{path}: cannot build {hint.__name__}: {e}") from e

    raise DeserializationError(f"{path}: unsupported field type {hint!r}")


def _key_text(value: Any) -> str:
    # how json.dumps spells a non-string object key
    return value if isinstance(value, str) else json.dumps(value)


def _convert_key(key: str, hint: Any, path: str) -> Any:
    """Rebuild a mapping key that JSON could only carry as a string."""
    if hint is Any or hint is str or isinstance(hint, str):
        return key
    if isinstance(hint, type) and issubclass(hint, Enum):
        for member in hint:
            if _key_text(member.value) == key:
                return member
    elif hint is bool:
        if key in ("true", "false"):
            return key == "true"
    elif hint is int or hint is float:
        try:
            return hint(key)
        except ValueError:
            pass
    else:
        raise DeserializationError(f"{path}: unsupported key type {hint!r}")
    raise DeserializationError(f"{path}: cannot decode key {key!r} into {hint.__name__}")
