import copy
from collections.abc import MutableMapping
from typing import Any

from dynakube._cogs.clients import api, auth
from dynakube._cogs.configs import configuration
from dynakube._cogs.helpers import typedefs
from dynakube._cogs.structs import bodies, identities, references


async def create_obj(
        *,
        identity: identities.ResourceIdentity,
        resource: references.Resource,
        body: bodies.RawBody,
        context: auth.APIContext,
        settings: configuration.ClientSettings,
        logger: typedefs.Logger,
) -> bodies.GenericObject:
    """
    Create an object from a caller-built body.

    The body is not validated, only serialised. The name & namespace of the
    identity are put into the body's metadata unless already there; if both
    are set but differ, it is a ``ValueError``, as the URL would then point
    to another place than the object. The namespace falls back to the body's
    one, then to the context's default.

    The created object can have a name different from the identity's one
    (e.g. with ``metadata.generateName``), so the callers must re-read it
    from the result's :attr:`GenericObject.identity`, not use the original one.
    """
    payload: MutableMapping[str, Any] = copy.deepcopy(dict(body))
    metadata = payload.setdefault('metadata', {})
    if identity.name and metadata.get('name') not in (None, identity.name):
        raise ValueError(f"The name {identity.name!r} differs from the body's {metadata['name']!r}.")
    if identity.name:
        metadata.setdefault('name', identity.name)

    namespace: str | None = None
    if resource.namespaced:
        if identity.namespace and metadata.get('namespace') not in (None, identity.namespace):
            raise ValueError(f"The namespace {identity.namespace!r} differs "
                             f"from the body's {metadata['namespace']!r}.")
        namespace = identity.namespace or metadata.get('namespace') or context.default_namespace
        if not namespace:
            raise ValueError(f"Namespace must be provided for {resource!r} (namespaced) objects.")
        metadata.setdefault('namespace', namespace)

    logger.debug(f"Creating {identity.kind or resource.kind} {metadata.get('name') or '(generated)'}.")
    _, raw = await api.read(
        method='post',
        url=resource.get_url(namespace=namespace),
        payload=payload,
        identity=identity,
        context=context,
        settings=settings,
        logger=logger,
    )
    return bodies.decode(raw)
