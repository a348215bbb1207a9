import collections
import dataclasses
import functools
import json
import logging
import re
from collections.abc import Callable
from typing import Any

import aiohttp.web
import pytest

from dynakube._cogs.clients.auth import APIContext
from dynakube._cogs.configs.configuration import ClientSettings
from dynakube._cogs.structs.credentials import ConnectionInfo
from dynakube._cogs.structs.identities import ResourceIdentity
from dynakube._cogs.structs.references import Resource


@pytest.fixture()
def namespaced_resource():
    """ The resource used in the tests. Usually faked, so it does not matter. """
    return Resource('dynakube.dev', 'v1', 'widgets', kind='Widget', namespaced=True)


@pytest.fixture()
def cluster_resource():
    """ The resource used in the tests. Usually faked, so it does not matter. """
    return Resource('dynakube.dev', 'v1', 'widgets', kind='Widget', namespaced=False)


@pytest.fixture(params=[True, False], ids=['namespaced', 'cluster'])
def resource(request):
    """ The resource used in the tests. Usually faked, so it does not matter. """
    return Resource('dynakube.dev', 'v1', 'widgets', kind='Widget', namespaced=request.param)


@pytest.fixture()
def namespace(resource):
    return 'ns' if resource.namespaced else None


@pytest.fixture()
def identity(resource, namespace):
    return ResourceIdentity(group=resource.group, version=resource.version, kind=resource.kind,
                            namespace=namespace, name='name1')


@pytest.fixture()
def settings():
    return ClientSettings()


@pytest.fixture()
def logger():
    return logging.getLogger('dynakube.tests')


#
# Mocks for Kubernetes API (via `aresponses`). Reasons:
# 1. We do not test the cluster, we test the client on top of the HTTP protocol,
#    so the server side should be fully controlled by the tests.
# 2. No external calls must be made under any circumstances.
#    The unit-tests must be fully isolated from the environment.
#

@pytest.fixture()
def hostname():
    """ A fake hostname to be used in all aiohttp/aresponses tests. """
    return 'fake-host'


@dataclasses.dataclass(frozen=True)
class FakeRequest:
    method: str
    path: str
    query: dict[str, str]
    headers: dict[str, str]
    data: Any  # parsed JSON if possible, raw text otherwise.


class FakeAPI:
    """
    Pre-programmed responses per method & path, served by `aresponses`.

    The responses are served in the order they were added; the last one
    repeats forever. The unknown paths get HTTP 404 with a K8s Status.
    All the requests are recorded for assertions (in the order of arrival).

    Sample usage::

        async def test_me(fake_api, context):
            fake_api.add('get', '/api/v1/namespaces/ns/pods/p1', json={...})
            await do_something(context=context)
            assert fake_api.requests[0].method == 'GET'
    """

    def __init__(self, server: str) -> None:
        super().__init__()
        self.server = server
        self.requests: list[FakeRequest] = []
        self._responses: dict[tuple[str, str], collections.deque[Callable[[], aiohttp.web.Response]]] = {}

    def add(self, method: str, path: str, *, status: int = 200, json: Any = None, text: str | None = None) -> None:
        if text is not None:
            factory = functools.partial(aiohttp.web.Response, status=status, text=text,
                                        content_type='application/json')
        else:
            factory = functools.partial(aiohttp.web.json_response, json, status=status)
        queue = self._responses.setdefault((method.upper(), path), collections.deque())
        queue.append(factory)

    def add_status(self, method: str, path: str, status: int, message: str = 'faked') -> None:
        self.add(method, path, status=status, json={
            'apiVersion': 'v1', 'kind': 'Status', 'status': 'Failure',
            'code': status, 'message': message, 'reason': 'Faked',
        })

    def calls(self, method: str, path: str) -> list[FakeRequest]:
        return [r for r in self.requests if r.method == method.upper() and r.path == path]

    async def handle(self, request: aiohttp.web.Request) -> aiohttp.web.Response:
        # The request's content can be read inside of the handler only. We preserve
        # the data into a conventional field, so that they could be asserted later.
        raw = await request.read()
        try:
            data = json.loads(raw) if raw else None
        except json.JSONDecodeError:
            data = raw.decode('utf-8', errors='replace')
        self.requests.append(FakeRequest(
            method=request.method,
            path=request.path,
            query=dict(request.query),
            headers=dict(request.headers),
            data=data,
        ))

        queue = self._responses.get((request.method, request.path))
        if not queue:
            return aiohttp.web.json_response(status=404, data={
                'apiVersion': 'v1', 'kind': 'Status', 'status': 'Failure',
                'code': 404, 'message': f'{request.method} {request.path} is not faked',
                'reason': 'NotFound',
            })
        factory = queue.popleft() if len(queue) > 1 else queue[0]
        return factory()


@pytest.fixture()
def fake_api(aresponses, hostname):
    api = FakeAPI(server=f'https://{hostname}')
    aresponses.add(hostname, aresponses.ANY, aresponses.ANY, api.handle, repeat=aresponses.INFINITY)
    return api


@pytest.fixture()
def connection_info(fake_api):
    return ConnectionInfo(server=fake_api.server, default_namespace='default-ns')


@pytest.fixture()
async def context(connection_info):
    async with APIContext(connection_info) as context:
        yield context


#
# Helpers for the logging checks.
#


@pytest.fixture()
def assert_logs(caplog):
    """
    A function to assert the logs are present (by pattern).

    The listed message patterns MUST be present, in the order specified.
    Some other log messages can also be present, but they are ignored.
    """
    def assert_logs_fn(patterns, prohibited=[], strict=False):
        __traceback_hide__ = True
        remaining_patterns = list(patterns)
        for message in caplog.messages:
            # The expected pattern is at position 0.
            # Looking-ahead: if one of the following patterns matches, while the
            # 0th does not, then the log message is missing, and we fail the test.
            for idx, pattern in enumerate(remaining_patterns):
                m = re.search(pattern, message)
                if m:
                    if idx == 0:
                        remaining_patterns[:1] = []
                        break  # out of `remaining_patterns` cycle
                    else:
                        skipped_patterns = remaining_patterns[:idx]
                        raise AssertionError(f"Few patterns were skipped: {skipped_patterns!r}")
                elif strict:
                    raise AssertionError(f"Unexpected log message: {message!r}")

            # Check that the prohibited patterns do not appear in any message.
            for pattern in prohibited:
                m = re.search(pattern, message)
                if m:
                    raise AssertionError(f"Prohibited log pattern found: {message!r} ~ {pattern!r}")

        # If all patterns have been matched in order, we are done.
        # if some are left, but the messages are over, then we fail.
        if remaining_patterns:
            raise AssertionError(f"Few patterns were missed: {remaining_patterns!r}")

    return assert_logs_fn
