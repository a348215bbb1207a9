from dynakube._cogs.clients import api, auth
from dynakube._cogs.configs import configuration
from dynakube._cogs.helpers import typedefs
from dynakube._cogs.structs import bodies, identities, references


async def read_obj(
        *,
        identity: identities.ResourceIdentity,
        resource: references.Resource,
        context: auth.APIContext,
        settings: configuration.ClientSettings,
        logger: typedefs.Logger,
) -> bodies.GenericObject:
    """
    Read one specific object of a specific resource kind.

    The absence of the object is not hidden: it is raised as
    :class:`APINotFoundError`, so that the callers could treat it
    as a valid outcome (e.g. "deleted externally") explicitly.
    """
    _, raw = await api.read(
        method='get',
        url=resource.get_identity_url(identity),
        identity=identity,
        context=context,
        settings=settings,
        logger=logger,
    )
    return bodies.decode(raw)
