import asyncio
import dataclasses
from collections.abc import Collection, Mapping

from dynakube._cogs.clients import api, auth, errors
from dynakube._cogs.configs import configuration
from dynakube._cogs.helpers import typedefs
from dynakube._cogs.structs import references


@dataclasses.dataclass(frozen=True)
class APIGroup:
    name: str  # "" for the core API group.
    versions: tuple[str, ...]
    preferred: str | None = None


async def read_version(
        *,
        context: auth.APIContext,
        settings: configuration.ClientSettings,
        logger: typedefs.Logger,
) -> Mapping[str, str]:
    rsp: Mapping[str, str] = await api.get('/version', context=context, settings=settings, logger=logger)
    return rsp


async def read_groups(
        *,
        context: auth.APIContext,
        settings: configuration.ClientSettings,
        logger: typedefs.Logger,
) -> Mapping[str, APIGroup]:
    """
    Read all served API groups with their versions, including the core API group.
    """
    core_rsp, apis_rsp = await asyncio.gather(
        api.get('/api', context=context, settings=settings, logger=logger),
        api.get('/apis', context=context, settings=settings, logger=logger),
    )
    core_versions = tuple(core_rsp.get('versions') or [])
    groups: dict[str, APIGroup] = {
        '': APIGroup(name='', versions=core_versions, preferred=core_versions[0] if core_versions else None),
    }
    for group_dat in apis_rsp.get('groups') or []:
        groups[group_dat['name']] = APIGroup(
            name=group_dat['name'],
            versions=tuple(version['version'] for version in group_dat.get('versions') or []),
            preferred=(group_dat.get('preferredVersion') or {}).get('version'),
        )
    return groups


async def read_resources(
        *,
        group: str,
        version: str,
        preferred: bool = True,
        context: auth.APIContext,
        settings: configuration.ClientSettings,
        logger: typedefs.Logger,
) -> Collection[references.Resource]:
    """
    Read the resources of one specific group/version, with their names & scopes.
    """
    url = f'/api/{version}' if group == '' else f'/apis/{group}/{version}'
    try:
        rsp = await api.get(url, context=context, settings=settings, logger=logger)
    except errors.APINotFoundError:
        # This happens when the last and the only resource of a group/version
        # has been deleted, the whole group/version is gone, and we rescan it.
        return set()
    else:
        # Note: builtins' singulars are empty strings in K3s (reasons unknown):
        # fall back to the lowercased kind so that the names are always there.
        return {
            references.Resource(
                group=group,
                version=version,
                kind=resource['kind'],
                plural=resource['name'],
                singular=resource.get('singularName') or resource['kind'].lower(),
                shortcuts=frozenset(resource.get('shortNames', [])),
                categories=frozenset(resource.get('categories', [])),
                subresources=frozenset(
                    subresource['name'].split('/', 1)[-1]
                    for subresource in rsp.get('resources', [])
                    if subresource['name'].startswith(f'{resource["name"]}/')
                ),
                namespaced=resource['namespaced'],
                preferred=preferred,
                verbs=frozenset(resource.get('verbs') or []),
            )
            for resource in rsp.get('resources', [])
            if '/' not in resource['name']
        }


async def scan_resources(
        *,
        context: auth.APIContext,
        settings: configuration.ClientSettings,
        logger: typedefs.Logger,
        groups: Collection[str] | None = None,
) -> Collection[references.Resource]:
    """
    Read all the resources of all (or only the selected) groups in all their versions.
    """
    served = await read_groups(context=context, settings=settings, logger=logger)
    coros = [
        read_resources(
            group=group.name,
            version=version,
            preferred=version == group.preferred,
            context=context,
            settings=settings,
            logger=logger,
        )
        for group in served.values()
        if groups is None or group.name in groups
        for version in group.versions
    ]
    resources: set[references.Resource] = set()
    for coro in asyncio.as_completed(coros):
        resources.update(await coro)
    return resources
