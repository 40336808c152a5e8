"""JSON codec shared by the log channel and the state store.

A record type tells the codec how to turn parsed JSON back into a value:

    None                     any JSON value, returned as parsed
    dict | list | str | ...  parsed value must be an instance of it
    class with from_dict()   from_dict(obj) / to_dict()
    @dataclass               cls(**fields) / dataclasses.asdict()

Dataclass fields are rebuilt from their annotations: nested dataclasses and
from_dict classes, list[X], tuple[X, ...], dict[str, X], X | None, Literal
and Enum values.  A value that does not match its annotation is a decode
error.  Annotations the codec does not know (Any, Path, ...) are passed
through unchecked.

Only strict JSON is accepted both ways: NaN and Infinity are neither written
nor read.
"""

from __future__ import annotations

import dataclasses
import enum
import json
import types
import typing
from typing import Any

_JSON_TYPES = (dict, list, str, int, float, bool)


class SerializationError(ValueError):
    """A value could not be encoded, or stored text could not be decoded."""


class JsonCodec:
    """Encode/decode one record type to and from JSON text."""

    def __init__(self, record_type: type | None = None) -> None:
        if not (
            record_type is None
            or record_type in _JSON_TYPES
            or callable(getattr(record_type, "from_dict", None))
            or dataclasses.is_dataclass(record_type)
        ):
            msg = f"unsupported record type: {record_type!r}"
            raise TypeError(msg)
        self.record_type = record_type

    def __repr__(self) -> str:
        name = getattr(self.record_type, "__name__", None)
        return f"JsonCodec({name})"

    # ------------------------------------------------------------------
    # Encode
    # ------------------------------------------------------------------

    def encode_line(self, record: Any) -> bytes:
        """Compact single-line encoding, newline-terminated."""
        return self._dumps(record, separators=(",", ":"))

    def encode_document(self, value: Any) -> bytes:
        """Indented encoding for whole-file snapshots."""
        return self._dumps(value, indent=2)

    def _dumps(self, value: Any, **kwargs: Any) -> bytes:
        try:
            text = json.dumps(
                value,
                default=_to_jsonable,
                ensure_ascii=False,
                allow_nan=False,
                **kwargs,
            )
            # lone surrogates (os.fsdecode names) fail here, not in dumps
            return (text + "\n").encode("utf-8")
        except (TypeError, ValueError, RecursionError) as exc:
            msg = f"cannot encode {type(value).__name__}: {exc}"
            raise SerializationError(msg) from exc

    # ------------------------------------------------------------------
    # Decode
    # ------------------------------------------------------------------

    def decode(self, text: str | bytes) -> Any:
        try:
            if isinstance(text, bytes):
                text = text.decode("utf-8")
            obj = json.loads(text, parse_constant=_reject_constant)
        except ValueError as exc:
            raise SerializationError(f"invalid JSON: {exc}") from exc
        return self.from_jsonable(obj)

    def from_jsonable(self, obj: Any) -> Any:
        if self.record_type is None:
            return obj
        return _build(self.record_type, obj, self.record_type.__name__)


def _reject_constant(name: str) -> Any:
    msg = f"{name} is not valid JSON"
    raise ValueError(msg)


def _to_jsonable(obj: Any) -> Any:
    """json.dumps hook for records (top-level or nested) that aren't plain JSON."""
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, enum.Enum):
        return obj.value
    msg = f"Object of type {type(obj).__name__} is not JSON serializable"
    raise TypeError(msg)


# ---------------------------------------------------------------------------
# Typed decoding
# ---------------------------------------------------------------------------


def _mismatch(where: str, expected: str, obj: Any) -> SerializationError:
    return SerializationError(f"{where}: expected {expected}, got {type(obj).__name__}")


def _build(tp: Any, obj: Any, where: str) -> Any:
    """Rebuild obj (parsed JSON) as annotation tp."""
    if tp is Any or isinstance(tp, (str, typing.TypeVar)):
        return obj
    if tp is None or tp is type(None):
        if obj is not None:
            raise _mismatch(where, "null", obj)
        return None

    origin = typing.get_origin(tp)
    args = typing.get_args(tp)

    if origin is typing.Union or origin is types.UnionType:
        if obj is None and type(None) in args:
            return None
        errors = []
        for arm in args:
            if arm is type(None):
                continue
            try:
                return _build(arm, obj, where)
            except SerializationError as exc:
                errors.append(str(exc))
        raise SerializationError("; ".join(errors))

    if origin is typing.Literal:
        if obj not in args:
            raise SerializationError(f"{where}: {obj!r} not one of {args!r}")
        return obj

    if origin is list:
        if not isinstance(obj, list):
            raise _mismatch(where, "array", obj)
        item = args[0] if args else Any
        return [_build(item, v, f"{where}[{i}]") for i, v in enumerate(obj)]

    if origin is tuple:
        if not isinstance(obj, list):
            raise _mismatch(where, "array", obj)
        if not args:
            return tuple(obj)
        if len(args) == 2 and args[1] is Ellipsis:
            items = [args[0]] * len(obj)
        elif len(args) != len(obj):
            raise SerializationError(f"{where}: expected {len(args)} items, got {len(obj)}")
        else:
            items = list(args)
        return tuple(_build(a, v, f"{where}[{i}]") for i, (a, v) in enumerate(zip(items, obj)))

    if origin is dict:
        if not isinstance(obj, dict):
            raise _mismatch(where, "object", obj)
        value_tp = args[1] if len(args) == 2 else Any
        return {k: _build(value_tp, v, f"{where}.{k}") for k, v in obj.items()}

    if origin is not None:
        # other generics (set[X], Callable, ...) are not JSON shapes
        return obj

    if tp in _JSON_TYPES:
        if tp is float and isinstance(obj, int) and not isinstance(obj, bool):
            return float(obj)
        # bool is an int subclass; keep the two apart
        if not isinstance(obj, tp) or (tp in (int, float) and isinstance(obj, bool)):
            raise _mismatch(where, tp.__name__, obj)
        return obj

    if isinstance(tp, type) and issubclass(tp, enum.Enum):
        try:
            return tp(obj)
        except ValueError as exc:
            raise SerializationError(f"{where}: {exc}") from exc

    from_dict = getattr(tp, "from_dict", None)
    if callable(from_dict) or dataclasses.is_dataclass(tp):
        if not isinstance(obj, dict):
            raise _mismatch(where, f"object for {tp.__name__}", obj)
        try:
            if callable(from_dict):
                return from_dict(obj)
            return tp(**_dataclass_kwargs(tp, obj, where))
        except SerializationError:
            raise
        except (KeyError, TypeError, ValueError) as exc:
            raise SerializationError(f"{where}: cannot build {tp.__name__}: {exc}") from exc

    return obj


def _dataclass_kwargs(cls: type, obj: dict[str, Any], where: str) -> dict[str, Any]:
    try:
        hints = typing.get_type_hints(cls)
    except (NameError, TypeError):
        # annotations referring to names not visible at module level
        hints = {}
    fields = {f.name: f for f in dataclasses.fields(cls) if f.init}
    unknown = sorted(set(obj) - set(fields))
    if unknown:
        raise SerializationError(f"{where}: unexpected field(s) {', '.join(unknown)}")
    return {
        name: _build(hints.get(name, Any), value, f"{where}.{name}")
        for name, value in obj.items()
    }
