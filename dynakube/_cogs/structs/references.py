import dataclasses
import urllib.parse
from collections.abc import Iterator

from dynakube._cogs.structs import identities


@dataclasses.dataclass(frozen=True, eq=False, repr=False)
class Resource:
    """
    A reference to a very specific custom or built-in resource kind.

    It is used to form the K8s API URLs (it is the "REST mapping" of a kind).
    Generally, K8s API only needs an API group, an API version, and a plural
    name of the resource, plus the scope to decide on the namespace segment.
    All other names are remembered for logging and informational purposes.
    """

    group: str
    """
    The resource's API group; e.g. ``"dynakube.dev"``, ``"apps"``, ``"batch"``.
    For Core v1 API resources, an empty string: ``""``.
    """

    version: str
    """
    The resource's API version; e.g. ``"v1"``, ``"v1beta1"``, etc.
    """

    plural: str
    """
    The resource's plural name; e.g. ``"pods"``, ``"networkpolicies"``.
    It is used as an API endpoint (the REST collection), together with
    the API group & version.
    """

    kind: str | None = None
    """
    The resource's kind (as in YAML files); e.g. ``"Pod"``, ``"NetworkPolicy"``.
    """

    singular: str | None = None
    """
    The resource's singular name; e.g. ``"pod"``, ``"networkpolicy"``.
    """

    shortcuts: frozenset[str] = frozenset()
    """
    The resource's short names; e.g. ``{"po"}``, ``{"netpol"}``.
    """

    categories: frozenset[str] = frozenset()
    """
    The resource's categories, to which the resource belongs; e.g. ``{"all"}``.
    """

    subresources: frozenset[str] = frozenset()
    """
    The resource's subresources, if defined; e.g. ``{"status", "scale"}``.
    """

    namespaced: bool | None = None
    """
    Whether the resource is namespaced (``True``) or cluster-scoped (``False``).
    """

    preferred: bool = True
    """
    Whether the resource belong to a "preferred" API version of its group.
    """

    verbs: frozenset[str] = frozenset()
    """
    All available verbs for the resource, as supported by K8s API;
    e.g., ``{"list", "watch", "create", "update", "delete", "patch"}``.
    Note that it is not the same as all verbs permitted by RBAC.
    """

    def __hash__(self) -> int:
        return hash((self.group, self.version, self.plural))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Resource):
            self_tuple = (self.group, self.version, self.plural)
            other_tuple = (other.group, other.version, other.plural)
            return self_tuple == other_tuple
        else:
            return NotImplemented

    def __repr__(self) -> str:
        plural_main, *subs = self.plural.split('/')
        name_text = f'{plural_main}.{self.version}.{self.group}'.strip('.')
        subs_text = f'/{"/".join(subs)}' if subs else ''
        return f'{name_text}{subs_text}'

    # Mostly for tests, to be unpacked as `Resource(*resource)`.
    def __iter__(self) -> Iterator[str]:
        return iter((self.group, self.version, self.plural))

    @property
    def api_version(self) -> str:
        return f'{self.group}/{self.version}' if self.group else self.version

    @classmethod
    def guess(cls, identity: identities.ResourceIdentity, *, namespaced: bool) -> "Resource":
        """
        Build a reference without the discovery, with a naively guessed plural name.

        It is a fallback for the cases when the discovery is not possible or not
        desired; the plural name is wrong for irregular kinds (e.g. policies).
        """
        return cls(
            group=identity.group,
            version=identity.version,
            plural=identity.collection_name,
            kind=identity.kind,
            namespaced=namespaced,
        )

    def get_url(
            self,
            *,
            namespace: str | None = None,
            name: str | None = None,
    ) -> str:
        """
        Build a URL to be used with K8s API.

        If the namespace is not set, a cluster-wide URL is returned.
        For cluster-scoped resources, a namespace is an error.

        If the name is not set, the URL for the resource list is returned.
        Otherwise (if set), the URL for the individual resource is returned.
        """
        if not self.namespaced and namespace is not None:
            raise ValueError("Specific namespaces are not supported for cluster-scoped resources.")
        if self.namespaced and namespace is None and name is not None:
            raise ValueError("Specific namespaces are required for specific namespaced resources.")

        parts: list[str | None] = [
            '/api' if self.group == '' else '/apis',
            self.group,
            self.version,
            'namespaces' if self.namespaced and namespace is not None else None,
            urllib.parse.quote(namespace, safe='') if self.namespaced and namespace is not None else None,
            self.plural,
            urllib.parse.quote(name, safe='') if name is not None else None,
        ]
        return '/'.join([part for part in parts if part])

    def get_identity_url(self, identity: identities.ResourceIdentity) -> str:
        """
        Build a URL for an identity: the namespace segment goes iff the resource is namespaced.

        The identity's namespace is ignored for cluster-scoped resources.
        """
        namespace = identity.namespace if self.namespaced else None
        if self.namespaced and namespace is None:
            raise ValueError(f"Namespace must be provided for {self!r} (namespaced) objects.")
        if not identity.name:
            raise ValueError(f"The name must be provided for a specific {self!r} object.")
        return self.get_url(namespace=namespace, name=identity.name)
