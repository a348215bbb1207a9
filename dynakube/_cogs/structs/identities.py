"""
Compact identifiers of individual objects, as remembered between the calls.

An identity is a group, a version, a kind, an optional namespace, and a name.
It is rendered to and parsed from a compact string of the form
``group/version/name`` (cluster-scoped) or ``group/version/namespace/name``
(namespace-scoped). The core API group is an empty string, so the core
objects look like ``/v1/default/my-config``.

The kind is not a part of the compact string: it is known to the caller
from elsewhere (e.g. from the configuration that refers to the object).
"""
import dataclasses
from collections.abc import Mapping
from typing import Any


class IdentityFormatError(ValueError):
    """ Raised when a compact identifier cannot be parsed. """


def collection_name(kind: str) -> str:
    """
    Guess the REST collection name of a kind: lower-cased with an ``s`` added.

    This is a naive fallback: irregular plurals are not handled, so
    ``"Policy"`` becomes ``"policys"``, not ``"policies"``. Only the discovery
    knows the real names (see :class:`dynakube.Discovery`).
    """
    return f'{kind.lower()}s'


def split_api_version(api_version: str) -> tuple[str, str]:
    """ Split ``"apps/v1"`` into ``("apps", "v1")``, and ``"v1"`` into ``("", "v1")``. """
    group, _, version = api_version.rpartition('/')
    return group, version


@dataclasses.dataclass(frozen=True)
class ResourceIdentity:
    group: str
    version: str
    name: str
    namespace: str | None = None
    kind: str | None = None

    def __str__(self) -> str:
        return self.composite_id

    @property
    def api_version(self) -> str:
        """ The ``apiVersion`` as used in the object bodies: ``"apps/v1"`` or ``"v1"``. """
        return f'{self.group}/{self.version}' if self.group else self.version

    @property
    def composite_id(self) -> str:
        """ The compact id; the inverse of :meth:`parse`. """
        parts = [self.group, self.version]
        if self.namespace is not None:
            parts.append(self.namespace)
        parts.append(self.name)
        return '/'.join(parts)

    @property
    def collection_name(self) -> str:
        if self.kind is None:
            raise ValueError(f"The kind is unknown for {self.composite_id!r}.")
        return collection_name(self.kind)

    @classmethod
    def parse(cls, raw: str, kind: str | None = None) -> "ResourceIdentity | None":
        """
        Parse the compact id into an identity.

        An empty or whitespace-only string means that there is no remote object
        associated yet, so ``None`` is returned (not an error). Otherwise,
        exactly 3 or 4 segments are expected; anything else is a format error.
        """
        text = raw.strip()
        if not text:
            return None

        parts = text.split('/')
        match parts:
            case [group, version, name]:
                namespace = None
            case [group, version, namespace, name]:
                pass
            case _:
                raise IdentityFormatError(
                    f"Expected group/version/name or group/version/namespace/name, "
                    f"got {len(parts)} segment(s) in {raw!r}.")

        if not version or not name or namespace == '':
            raise IdentityFormatError(f"Empty version, namespace, or name in {raw!r}.")

        return cls(group=group, version=version, namespace=namespace, name=name, kind=kind)

    @classmethod
    def from_body(cls, body: Mapping[str, Any], kind: str | None = None) -> "ResourceIdentity":
        """
        Build an identity from a raw object body (a manifest or a server response).

        The kind of the body is used unless explicitly overridden.
        The name can be empty for the objects with server-generated names.
        """
        api_version = body.get('apiVersion')
        if not isinstance(api_version, str) or not api_version:
            raise IdentityFormatError("The body has no apiVersion.")
        metadata = body.get('metadata') or {}
        group, version = split_api_version(api_version)
        return cls(
            group=group,
            version=version,
            kind=kind if kind is not None else body.get('kind'),
            name=metadata.get('name') or '',
            namespace=metadata.get('namespace') or None,
        )

    def with_name(self, name: str, namespace: str | None = None) -> "ResourceIdentity":
        """ A copy with the name & namespace as echoed by the server (e.g. generated names). """
        return dataclasses.replace(self, name=name, namespace=namespace)
