"""
Resolution of the resource kinds to their REST mappings via the cluster discovery.

Discovery is the dominant latency cost of the dynamic operations, so its
results are cached for the lifetime of a :class:`Discovery` instance,
which is meant to live as long as a logical session (e.g. one CLI command).
There is no cache invalidation except for an explicit :meth:`Discovery.refresh`:
the served kinds are assumed to be stable during the session.

The cache is a snapshot which is never modified in place. Every update builds
a new snapshot and replaces the reference to it, so that the concurrent
readers always see a complete and consistent snapshot (old or new),
never a partially updated one.
"""
import dataclasses
from collections.abc import Mapping

from dynakube._cogs.clients import auth, errors, scanning
from dynakube._cogs.configs import configuration
from dynakube._cogs.helpers import typedefs
from dynakube._cogs.structs import bodies, identities, references


@dataclasses.dataclass(frozen=True)
class DiscoveryCache:
    groups: Mapping[str, scanning.APIGroup] | None = None
    resources: Mapping[tuple[str, str], frozenset[references.Resource]] = dataclasses.field(default_factory=dict)


class Discovery:

    def __init__(
            self,
            *,
            context: auth.APIContext,
            settings: configuration.ClientSettings,
            logger: typedefs.Logger,
    ) -> None:
        super().__init__()
        self.context = context
        self.settings = settings
        self.logger = logger
        self._cache = DiscoveryCache()

    @property
    def cache(self) -> DiscoveryCache:
        return self._cache

    async def refresh(self) -> None:
        """ Forget everything discovered so far (the whole cache is replaced at once). """
        self._cache = DiscoveryCache()

    async def resolve_identity(self, identity: identities.ResourceIdentity) -> references.Resource:
        if identity.kind is None:
            raise ValueError(f"The kind is unknown for {identity}; it is required for the discovery.")
        return await self.resolve(identity.group, identity.version, identity.kind)

    async def resolve(self, group: str, version: str, kind: str) -> references.Resource:
        """
        Map a group/version/kind to a REST mapping: the plural name and the scope.

        The requested version must be served by the group: there is no silent
        fallback to other (e.g. preferred) versions of the same group.
        """
        groups = await self._get_groups(group=group, version=version, kind=kind)
        served = groups.get(group)
        if served is None:
            raise errors.ResourceNotFoundError(
                f"API group {group!r} is not served; kind {kind!r} cannot be resolved.",
                group=group, version=version, kind=kind)
        if version not in served.versions:
            raise errors.ResourceNotFoundError(
                f"Kind {kind!r} is not found for version {version!r} in API group {group!r}; "
                f"served versions are: {', '.join(served.versions) or 'none'}.",
                group=group, version=version, kind=kind)

        resources = await self._get_resources(served=served, version=version, kind=kind)
        for resource in resources:
            if resource.kind == kind:
                self.logger.debug(f"Resolved {kind} in {group}/{version} to {resource!r}.")
                return resource
        raise errors.ResourceNotFoundError(
            f"Kind {kind!r} is not found for version {version!r} in API group {group!r}.",
            group=group, version=version, kind=kind)

    async def _get_groups(self, *, group: str, version: str, kind: str) -> Mapping[str, scanning.APIGroup]:
        groups = self._cache.groups
        if groups is None:
            try:
                groups = await scanning.read_groups(
                    context=self.context,
                    settings=self.settings,
                    logger=self.logger,
                )
            except (errors.APIError, bodies.DecodeError, KeyError, TypeError) as e:
                raise errors.DiscoveryError(
                    f"Failed to discover the API groups: {e}",
                    group=group, version=version, kind=kind) from e
            self._cache = dataclasses.replace(self._cache, groups=groups)
        return groups

    async def _get_resources(
            self,
            *,
            served: scanning.APIGroup,
            version: str,
            kind: str,
    ) -> frozenset[references.Resource]:
        key = (served.name, version)
        resources = self._cache.resources.get(key)
        if resources is None:
            try:
                resources = frozenset(await scanning.read_resources(
                    group=served.name,
                    version=version,
                    preferred=version == served.preferred,
                    context=self.context,
                    settings=self.settings,
                    logger=self.logger,
                ))
            except (errors.APIError, bodies.DecodeError, KeyError, TypeError) as e:
                raise errors.DiscoveryError(
                    f"Failed to discover the resources of {served.name}/{version}: {e}",
                    group=served.name, version=version, kind=kind) from e
            self._cache = dataclasses.replace(self._cache, resources={**self._cache.resources, key: resources})
        return resources
