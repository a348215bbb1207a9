import asyncio
import json
from collections.abc import Mapping
from typing import Any

import aiohttp

from dynakube._cogs.clients import auth, errors
from dynakube._cogs.configs import configuration
from dynakube._cogs.helpers import typedefs
from dynakube._cogs.structs import bodies, identities


async def request(
        method: str,
        url: str,  # relative to the server/api root.
        *,
        context: auth.APIContext,
        settings: configuration.ClientSettings,
        payload: object | None = None,
        data: bytes | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        identity: identities.ResourceIdentity | None = None,
        logger: typedefs.Logger,
) -> aiohttp.ClientResponse:
    """
    Perform a single request, check it for errors, but do not parse it.

    There are no retries of any kind: neither for the network errors, nor for
    the server-side errors. All the retrying happens in the convergence polling
    with the caller-chosen classification of errors.
    """
    if '://' not in url:
        url = context.server.rstrip('/') + '/' + url.lstrip('/')

    if timeout is None:
        timeout = aiohttp.ClientTimeout(
            total=settings.networking.request_timeout,
            sock_connect=settings.networking.connect_timeout,
        )

    what = f"{method.upper()} {url}"
    try:
        response = await context.session.request(
            method=method,
            url=url,
            json=payload if data is None else None,
            data=data,
            headers=headers,
            timeout=timeout,
        )
        await errors.check_response(response, identity=identity)  # but do not parse it!
    except (aiohttp.ClientConnectionError, errors.APIError, asyncio.TimeoutError) as e:
        logger.debug(f"Request failed: {what} -> {e!r}")
        raise
    else:
        logger.debug(f"Request succeeded: {what} -> {response.status}")
        return response


async def read(
        method: str,
        url: str,  # relative to the server/api root.
        *,
        context: auth.APIContext,
        settings: configuration.ClientSettings,
        payload: object | None = None,
        data: bytes | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        identity: identities.ResourceIdentity | None = None,
        logger: typedefs.Logger,
) -> tuple[int, bytes]:
    """ Perform a request and return the status and the raw (unparsed) content. """
    response = await request(
        method=method,
        url=url,
        context=context,
        settings=settings,
        payload=payload,
        data=data,
        headers=headers,
        timeout=timeout,
        identity=identity,
        logger=logger,
    )
    async with response:
        return response.status, await response.read()


async def get(
        url: str,  # relative to the server/api root.
        *,
        context: auth.APIContext,
        settings: configuration.ClientSettings,
        headers: Mapping[str, str] | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        logger: typedefs.Logger,
) -> Any:
    """ Get and parse an arbitrary JSON document, e.g. the discovery listings. """
    _, raw = await read(
        method='get',
        url=url,
        context=context,
        settings=settings,
        headers=headers,
        timeout=timeout,
        logger=logger,
    )
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise bodies.DecodeError(f"The response of {url} is not a valid JSON: {e}", raw=raw) from e
