from dynakube._cogs.clients import api, auth
from dynakube._cogs.configs import configuration
from dynakube._cogs.helpers import typedefs
from dynakube._cogs.structs import bodies, identities, patches, references


async def patch_obj(
        *,
        identity: identities.ResourceIdentity,
        resource: references.Resource,
        patch: patches.JSONPatch,
        context: auth.APIContext,
        settings: configuration.ClientSettings,
        logger: typedefs.Logger,
) -> bodies.GenericObject:
    """
    Patch one specific object with a JSON patch (RFC 6902).

    The patch always goes to the individual object's URL, never to the collection.
    To guard against the lost updates, the patch can contain an operation
    replacing ``/metadata/resourceVersion``: a stale version is then
    rejected by the server with HTTP 409 (:class:`APIConflictError`),
    which is escalated to the caller as is -- it is the caller's job
    to re-read the object and retry.
    """
    data = patch.as_json()
    logger.info(f"Patching {identity.kind or resource.kind} {identity}: {data.decode('utf-8')}")
    _, raw = await api.read(
        method='patch',
        url=resource.get_identity_url(identity),
        headers={'Content-Type': 'application/json-patch+json'},
        data=data,
        identity=identity,
        context=context,
        settings=settings,
        logger=logger,
    )
    return bodies.decode(raw)
