import contextlib
import json
import logging
from unittest.mock import AsyncMock, MagicMock

import click.testing
import pytest

from dynakube._cogs.structs.bodies import decode


@pytest.fixture(autouse=True)
def restore_logging():
    """ The CLI reconfigures the logging, and streams into the runner's temporary streams. """
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    try:
        yield
    finally:
        root.handlers[:] = handlers
        root.setLevel(level)


@pytest.fixture()
def invoke():
    runner = click.testing.CliRunner()

    def invoke_fn(args, **kwargs):
        from dynakube.cli import main
        return runner.invoke(main, args, catch_exceptions=False, **kwargs)

    return invoke_fn


@pytest.fixture()
def api_context():
    return MagicMock(name='context')


@pytest.fixture(autouse=True)
def connect(mocker, api_context):
    """ No real logins and no real connections in the CLI tests. """
    @contextlib.asynccontextmanager
    async def fake_connect(kubecontext):
        yield api_context

    return mocker.patch('dynakube.cli.connect', side_effect=fake_connect)


@pytest.fixture()
def make_obj():
    def make_obj_fn(document):
        return decode(json.dumps(document).encode('utf-8'))
    return make_obj_fn


@pytest.fixture()
def resolve(mocker, namespaced_resource):
    return mocker.patch('dynakube.cli.resolve', AsyncMock(return_value=namespaced_resource))
