"""
Generic objects, as returned by K8s API for any kind.

The objects are not typed by their kinds: the bodies are untyped documents
(JSON-decoded mappings). Only the fields needed for addressing and for the
optimistic concurrency are extracted and typed: the object's metadata
(name, namespace, resource version, uid, generation), its API version & kind.

The extraction is strict: a response which is not a JSON object or which
misses any of these fields fails the whole decoding (:class:`DecodeError`).
There are no partially decoded objects with some metadata absent.
"""
import dataclasses
import json
from collections.abc import Mapping
from typing import Any

from dynakube._cogs.structs import identities

# A raw body as it is sent to or received from K8s API, untyped.
RawBody = Mapping[str, Any]


class DecodeError(Exception):
    """ A response body cannot be decoded into an object. Never retried, never trusted. """

    def __init__(self, message: str, *, raw: bytes | None = None) -> None:
        super().__init__(message)
        self.raw = raw


@dataclasses.dataclass(frozen=True)
class ObjectMeta:
    name: str
    namespace: str | None = None
    resource_version: str | None = None
    uid: str | None = None
    generation: int | None = None


@dataclasses.dataclass(frozen=True, repr=False)
class GenericObject:
    raw: bytes
    document: RawBody
    api_version: str
    kind: str
    metadata: ObjectMeta

    def __repr__(self) -> str:
        return f'<{self.kind} {self.identity}>'

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str | None:
        return self.metadata.namespace

    @property
    def resource_version(self) -> str | None:
        return self.metadata.resource_version

    @property
    def uid(self) -> str | None:
        return self.metadata.uid

    @property
    def generation(self) -> int | None:
        return self.metadata.generation

    @property
    def spec(self) -> RawBody:
        spec = self.document.get('spec')
        return spec if isinstance(spec, Mapping) else {}

    @property
    def status(self) -> RawBody:
        status = self.document.get('status')
        return status if isinstance(status, Mapping) else {}

    @property
    def identity(self) -> identities.ResourceIdentity:
        """ The identity as echoed by the server (the name can be generated there). """
        group, version = identities.split_api_version(self.api_version)
        return identities.ResourceIdentity(
            group=group,
            version=version,
            kind=self.kind,
            namespace=self.namespace,
            name=self.name,
        )


def decode(raw: bytes) -> GenericObject:
    try:
        document = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(f"The response is not a valid JSON: {e}", raw=raw) from e
    if not isinstance(document, Mapping):
        raise DecodeError(f"The response is not an object: {type(document).__name__}", raw=raw)

    api_version = document.get('apiVersion')
    kind = document.get('kind')
    metadata = document.get('metadata')
    if not isinstance(api_version, str) or not api_version:
        raise DecodeError("The response has no apiVersion.", raw=raw)
    if not isinstance(kind, str) or not kind:
        raise DecodeError("The response has no kind.", raw=raw)
    if not isinstance(metadata, Mapping):
        raise DecodeError("The response has no metadata.", raw=raw)

    return GenericObject(
        raw=raw,
        document=document,
        api_version=api_version,
        kind=kind,
        metadata=_decode_meta(metadata, raw=raw),
    )


def _decode_meta(metadata: RawBody, *, raw: bytes) -> ObjectMeta:
    name = metadata.get('name')
    namespace = metadata.get('namespace')
    resource_version = metadata.get('resourceVersion')
    uid = metadata.get('uid')
    generation = metadata.get('generation')
    if not isinstance(name, str) or not name:
        raise DecodeError("The response's metadata has no name.", raw=raw)
    for field, value in [('namespace', namespace), ('resourceVersion', resource_version), ('uid', uid)]:
        if value is not None and not isinstance(value, str):
            raise DecodeError(f"The response's metadata.{field} is not a string.", raw=raw)
    if generation is not None and (not isinstance(generation, int) or isinstance(generation, bool)):
        raise DecodeError("The response's metadata.generation is not an integer.", raw=raw)
    return ObjectMeta(
        name=name,
        namespace=namespace or None,
        resource_version=resource_version,
        uid=uid,
        generation=generation,
    )
