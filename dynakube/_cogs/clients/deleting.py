from dynakube._cogs.clients import api, auth, errors
from dynakube._cogs.configs import configuration
from dynakube._cogs.helpers import typedefs
from dynakube._cogs.structs import identities, references


async def delete_obj(
        *,
        identity: identities.ResourceIdentity,
        resource: references.Resource,
        context: auth.APIContext,
        settings: configuration.ClientSettings,
        logger: typedefs.Logger,
) -> int:
    """
    Delete one specific object, and return the HTTP status of the deletion.

    An already absent object (HTTP 404) is a successful deletion by convention,
    so the deletion is idempotent. The status is returned anyway: 2xx if it was
    deleted (or its deletion has been started), 404 if it was absent already.
    The callers that need the strict semantics can check it.
    """
    try:
        status, _ = await api.read(
            method='delete',
            url=resource.get_identity_url(identity),
            identity=identity,
            context=context,
            settings=settings,
            logger=logger,
        )
    except errors.APINotFoundError as e:
        logger.debug(f"{identity.kind or resource.kind} {identity} is already absent.")
        return e.status
    else:
        logger.info(f"Deleted {identity.kind or resource.kind} {identity}.")
        return status
