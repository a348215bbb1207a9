import base64
import contextlib
import os
import ssl
import tempfile
from types import TracebackType

import aiohttp
from typing_extensions import Self

from dynakube._cogs.helpers import versions
from dynakube._cogs.structs import credentials


class APIContext:
    """
    A container for an aiohttp session and the environment info.

    The context is created once per logical session by the caller and is passed
    explicitly to every API call. It owns the session, so it must be closed
    (or used as an async context manager) when the work is done.

    We assume that all the calls run in the same event loop as the context.
    """

    # The main contained object used by the API methods.
    session: aiohttp.ClientSession

    # Contextual information for URL building.
    server: str
    default_namespace: str | None

    def __init__(
            self,
            info: credentials.ConnectionInfo,
            *,
            session: aiohttp.ClientSession | None = None,
    ) -> None:
        super().__init__()
        self.session = session if session is not None else self.make_aiohttp_session(info)

        # It is a good practice to self-identify a bit, even with a user-provided session.
        if self.session.headers.get('User-Agent') is None:
            self.session.headers['User-Agent'] = f'dynakube/{versions.version or "unknown"}'

        self.server = info.server
        self.default_namespace = info.default_namespace

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
            self,
            exc_type: type[BaseException] | None,
            exc_val: BaseException | None,
            exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        await self.session.close()

    @staticmethod
    def make_aiohttp_session(info: credentials.ConnectionInfo) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=0, ssl=make_ssl_context(info)),
            headers=make_auth_headers(info),
            auth=make_basic_auth(info),
        )


def make_ssl_context(info: credentials.ConnectionInfo) -> ssl.SSLContext:
    """
    Build the SSL context for both the server verification and the client certificates.

    The inline certificates & keys are only accepted by :mod:`ssl` as files,
    so they are materialized into temporary files for the time of loading.
    Nothing is written to disk when the paths are given or there is no data.
    """
    context = ssl.create_default_context(
        purpose=ssl.Purpose.SERVER_AUTH,
        cafile=os.path.expanduser(info.ca_path) if info.ca_path else None,
        cadata=decode_to_pem(info.ca_data) if info.ca_data is not None else None,
    )
    with contextlib.ExitStack() as stack:
        cert_path = _materialize(stack, info.certificate_path, info.certificate_data)
        pkey_path = _materialize(stack, info.private_key_path, info.private_key_data)
        if cert_path and pkey_path:
            context.load_cert_chain(certfile=cert_path, keyfile=pkey_path)
    if info.insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def make_auth_headers(info: credentials.ConnectionInfo) -> dict[str, str]:
    if info.token:
        return {'Authorization': f'{info.scheme or "Bearer"} {info.token}'}
    elif info.scheme:
        return {'Authorization': info.scheme}
    else:
        return {}


def make_basic_auth(info: credentials.ConnectionInfo) -> aiohttp.BasicAuth | None:
    if info.username and info.password:
        return aiohttp.BasicAuth(info.username, info.password)
    return None


def _materialize(stack: contextlib.ExitStack, path: str | None, data: str | bytes | None) -> str | None:
    if path:
        return path
    if not data:
        return None
    file = stack.enter_context(tempfile.NamedTemporaryFile(buffering=0))
    file.write(decode_to_pem(data).encode('ascii'))
    return file.name


def decode_to_pem(data: str | bytes) -> str:
    """ Accept both PEM texts and their base64-encoded forms (as in kubeconfigs). """
    match data:
        case str() if data.startswith('-----BEGIN '):
            return data
        case bytes() if data.startswith(b'-----BEGIN '):
            return data.decode('ascii')
        case _:
            return base64.b64decode(data).decode('ascii')
