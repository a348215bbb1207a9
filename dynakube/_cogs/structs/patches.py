"""
All the structures needed for Kubernetes patching.

It is implemented via a JSON patch (RFC 6902): an ordered sequence of
``add``/``replace``/``remove`` operations addressed by JSON pointers (RFC 6901),
which the server applies atomically and in order.

The order of the operations is significant (later operations can refer to
the paths created by the earlier ones), so it is preserved exactly as built:
there is no reordering, no deduplication, and no coalescing of operations.
Avoiding the conflicting operations on the same paths is the caller's job.
"""
import dataclasses
import json
from collections.abc import Iterable, Iterator
from typing import Any

from typing_extensions import Literal, Self, TypedDict

JSONPatchOp = Literal["add", "replace", "remove"]


def pointer(*keys: str | int) -> str:
    """
    Build an appropriately escaped JSON pointer from the path's keys.

    See https://datatracker.ietf.org/doc/html/rfc6901#section-3 for more details.
    """
    return ''.join('/' + str(key).replace('~', '~0').replace('/', '~1') for key in keys)


def _validated(path: str) -> str:
    if path and not path.startswith('/'):
        raise ValueError(f"JSON pointers must start with a slash: {path!r}")
    return path


class JSONPatchItem(TypedDict, total=False):
    op: JSONPatchOp
    path: str
    value: Any


@dataclasses.dataclass(frozen=True)
class Add:
    path: str
    value: Any
    op: JSONPatchOp = dataclasses.field(default='add', init=False)

    def __post_init__(self) -> None:
        _validated(self.path)

    def as_item(self) -> JSONPatchItem:
        return JSONPatchItem(op=self.op, path=self.path, value=self.value)


@dataclasses.dataclass(frozen=True)
class Replace:
    path: str
    value: Any
    op: JSONPatchOp = dataclasses.field(default='replace', init=False)

    def __post_init__(self) -> None:
        _validated(self.path)

    def as_item(self) -> JSONPatchItem:
        return JSONPatchItem(op=self.op, path=self.path, value=self.value)


@dataclasses.dataclass(frozen=True)
class Remove:
    path: str
    op: JSONPatchOp = dataclasses.field(default='remove', init=False)

    def __post_init__(self) -> None:
        _validated(self.path)

    def as_item(self) -> JSONPatchItem:
        return JSONPatchItem(op=self.op, path=self.path)


PatchOperation = Add | Replace | Remove


class JSONPatch:
    """
    An ordered, append-only sequence of patch operations.

    Usage::

        patch = JSONPatch().replace('/spec/replicas', 3).remove('/spec/paused')
        await patch_obj(..., patch=patch)
    """

    def __init__(self, __src: Iterable[PatchOperation] = ()) -> None:
        super().__init__()
        self._ops: list[PatchOperation] = list(__src)

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self._ops!r})'

    def __len__(self) -> int:
        return len(self._ops)

    def __bool__(self) -> bool:
        return bool(self._ops)

    def __iter__(self) -> Iterator[PatchOperation]:
        return iter(self._ops)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, JSONPatch):
            return self._ops == other._ops
        else:
            return NotImplemented

    def append(self, op: PatchOperation) -> Self:
        self._ops.append(op)
        return self

    def add(self, path: str, value: Any) -> Self:
        return self.append(Add(path, value))

    def replace(self, path: str, value: Any) -> Self:
        return self.append(Replace(path, value))

    def remove(self, path: str) -> Self:
        return self.append(Remove(path))

    def as_payload(self) -> list[JSONPatchItem]:
        return [op.as_item() for op in self._ops]

    def as_json(self) -> bytes:
        return json.dumps(self.as_payload()).encode('utf-8')
