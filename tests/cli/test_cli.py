import asyncio
from unittest.mock import AsyncMock

import aiohttp
import click
import pytest

from dynakube import cli
from dynakube._cogs.clients.errors import APINotFoundError
from dynakube._cogs.structs.identities import ResourceIdentity
from dynakube._cogs.structs.patches import Add, Remove, Replace
from dynakube._cogs.structs.references import Resource
from dynakube._core.engines.polling import PollingTimeoutError
from dynakube.cli import PHASE_PENDINGS, parse_op, run

DEPLOYMENT = {
    'apiVersion': 'apps/v1',
    'kind': 'Deployment',
    'metadata': {'name': 'web', 'namespace': 'ns1', 'resourceVersion': '7'},
    'spec': {'replicas': 3},
}


def test_help(invoke):
    result = invoke(['--help'])
    assert result.exit_code == 0
    for command in ['discover', 'get', 'create', 'patch', 'delete', 'wait']:
        assert command in result.output


@pytest.mark.parametrize('text, expected', [
    ('add:/spec/replicas=3', Add('/spec/replicas', 3)),
    ('add:/metadata/labels/a=b', Add('/metadata/labels/a', 'b')),
    ('add:/spec/x={"a": [1, 2]}', Add('/spec/x', {'a': [1, 2]})),
    ('replace:/spec/paused=true', Replace('/spec/paused', True)),
    ('replace:/spec/x=null', Replace('/spec/x', None)),
    ('replace:/spec/x=', Replace('/spec/x', '')),
    ('replace:/spec/url=http://a/b?c=d', Replace('/spec/url', 'http://a/b?c=d')),
    ('remove:/spec/paused', Remove('/spec/paused')),
])
def test_parsing_of_ops(text, expected):
    assert parse_op(text) == expected


@pytest.mark.parametrize('text', [
    '/spec/replicas=3',
    'add:/spec/replicas',
    'remove:/spec/paused=1',
    'move:/a=/b',
    'add:spec/replicas=3',
])
def test_parsing_of_invalid_ops(text):
    with pytest.raises(click.BadParameter):
        parse_op(text)


async def test_resolving_without_discovery(api_context, settings):
    identity = ResourceIdentity(group='apps', version='v1', kind='Deployment', namespace='ns1', name='web')
    resource = await cli.resolve(identity, use_discovery=False, namespaced=True,
                                 context=api_context, settings=settings)
    assert resource == Resource('apps', 'v1', 'deployments')
    assert resource.kind == 'Deployment'
    assert resource.namespaced


def test_expected_errors_are_rendered_as_messages():
    async def fail():
        raise PollingTimeoutError("Timed out after 1s", timeout=1)

    with pytest.raises(click.ClickException, match=r"Timed out after 1s"):
        run(fail())


@pytest.mark.parametrize('error, message', [
    (aiohttp.ClientConnectionError("Cannot connect to host"), r"Cannot connect to host"),
    (asyncio.TimeoutError(), r"TimeoutError while talking to the cluster"),
    (ValueError("Namespace must be provided"), r"Namespace must be provided"),
])
def test_connection_and_usage_errors_are_rendered_as_messages(error, message):
    async def fail():
        raise error

    with pytest.raises(click.ClickException, match=message):
        run(fail())


def test_missing_namespaces_fail_the_creation_with_a_message(invoke, mocker, resolve, tmp_path):
    manifest = tmp_path / 'web.yaml'
    manifest.write_text("apiVersion: apps/v1\nkind: Deployment\nmetadata:\n  name: web\n")
    mocker.patch('dynakube._cogs.clients.creating.create_obj',
                 AsyncMock(side_effect=ValueError("Namespace must be provided")))

    result = invoke(['create', '-f', str(manifest)])

    assert result.exit_code == 1
    assert 'Namespace must be provided' in result.output


def test_unexpected_errors_are_escalated():
    async def fail():
        raise ZeroDivisionError()

    with pytest.raises(ZeroDivisionError):
        run(fail())


def test_discover(invoke, mocker, connect):
    scan = mocker.patch('dynakube._cogs.clients.scanning.scan_resources', AsyncMock(return_value=[
        Resource('', 'v1', 'pods', kind='Pod', namespaced=True),
        Resource('apps', 'v1', 'deployments', kind='Deployment', namespaced=True),
        Resource('', 'v1', 'namespaces', kind='Namespace', namespaced=False),
    ]))

    result = invoke(['discover', '--context', 'ctx1', 'apps', ''])

    assert result.exit_code == 0
    assert result.output.splitlines() == [
        "v1\tNamespace\tnamespaces\tcluster",
        "v1\tPod\tpods\tnamespaced",
        "apps/v1\tDeployment\tdeployments\tnamespaced",
    ]
    assert connect.call_args.args == ('ctx1',)
    assert scan.call_args.kwargs['groups'] == ('apps', '')


def test_get_renders_yaml(invoke, mocker, resolve, make_obj):
    read_obj = mocker.patch('dynakube._cogs.clients.fetching.read_obj',
                            AsyncMock(return_value=make_obj(DEPLOYMENT)))

    result = invoke(['get', 'Deployment', 'apps/v1/ns1/web'])

    assert result.exit_code == 0
    assert 'kind: Deployment' in result.output
    assert 'replicas: 3' in result.output
    identity = read_obj.call_args.kwargs['identity']
    assert identity == ResourceIdentity(group='apps', version='v1', kind='Deployment',
                                        namespace='ns1', name='web')


def test_get_renders_json(invoke, mocker, resolve, make_obj):
    mocker.patch('dynakube._cogs.clients.fetching.read_obj', AsyncMock(return_value=make_obj(DEPLOYMENT)))

    result = invoke(['get', 'Deployment', 'apps/v1/ns1/web', '-o', 'json'])

    assert result.exit_code == 0
    assert '"kind": "Deployment"' in result.output


def test_get_of_absent_objects_fails_with_a_message(invoke, mocker, resolve):
    mocker.patch('dynakube._cogs.clients.fetching.read_obj',
                 AsyncMock(side_effect=APINotFoundError({'message': 'nope'}, status=404)))

    result = invoke(['get', 'Deployment', 'apps/v1/ns1/web'])

    assert result.exit_code == 1
    assert 'nope' in result.output


def test_get_without_discovery(invoke, mocker, make_obj):
    read_obj = mocker.patch('dynakube._cogs.clients.fetching.read_obj',
                            AsyncMock(return_value=make_obj(DEPLOYMENT)))

    result = invoke(['get', '--no-discovery', '--namespaced', 'Deployment', 'apps/v1/ns1/web'])

    assert result.exit_code == 0
    assert read_obj.call_args.kwargs['resource'].plural == 'deployments'


def test_no_discovery_requires_a_scope(invoke):
    result = invoke(['get', '--no-discovery', 'Deployment', 'apps/v1/ns1/web'])
    assert result.exit_code == 2
    assert '--namespaced' in result.output


@pytest.mark.parametrize('id', ['', 'web', 'a/b/c/d/e'])
def test_malformed_ids_are_rejected(invoke, resolve, id):
    result = invoke(['get', 'Deployment', id])
    assert result.exit_code != 0


def test_create_prints_the_compact_id(invoke, mocker, resolve, make_obj, tmp_path):
    manifest = tmp_path / 'web.yaml'
    manifest.write_text("apiVersion: apps/v1\nkind: Deployment\nmetadata:\n  generateName: web-\n")
    create_obj = mocker.patch('dynakube._cogs.clients.creating.create_obj', AsyncMock(
        return_value=make_obj(dict(DEPLOYMENT, metadata={'name': 'web-x7z', 'namespace': 'ns1'}))))
    wait_for_existence = mocker.patch('dynakube._core.intents.convergence.wait_for_existence', AsyncMock())

    result = invoke(['create', '-f', str(manifest)])

    assert result.exit_code == 0
    assert result.output.strip() == 'apps/v1/ns1/web-x7z'
    assert create_obj.call_args.kwargs['body'] == {
        'apiVersion': 'apps/v1', 'kind': 'Deployment', 'metadata': {'generateName': 'web-'},
    }
    assert not wait_for_existence.called


def test_create_and_wait(invoke, mocker, resolve, make_obj, tmp_path):
    manifest = tmp_path / 'web.yaml'
    manifest.write_text("apiVersion: apps/v1\nkind: Deployment\nmetadata:\n  name: web\n  namespace: ns1\n")
    mocker.patch('dynakube._cogs.clients.creating.create_obj', AsyncMock(return_value=make_obj(DEPLOYMENT)))
    wait_for_existence = mocker.patch('dynakube._core.intents.convergence.wait_for_existence',
                                      AsyncMock(return_value='Present'))

    result = invoke(['create', '-f', str(manifest), '--wait', '--timeout', '7'])

    assert result.exit_code == 0
    assert wait_for_existence.called
    assert wait_for_existence.call_args.kwargs['identity'].name == 'web'
    assert wait_for_existence.call_args.kwargs['settings'].timeouts.create == 7


@pytest.mark.parametrize('content', ['- a\n- b\n', 'kind: Deployment\n', 'apiVersion: v1\n'])
def test_create_rejects_bad_manifests(invoke, resolve, tmp_path, content):
    manifest = tmp_path / 'bad.yaml'
    manifest.write_text(content)
    result = invoke(['create', '-f', str(manifest)])
    assert result.exit_code == 2


def test_patch_sends_the_ops_in_order(invoke, mocker, resolve, make_obj):
    patch_obj = mocker.patch('dynakube._cogs.clients.patching.patch_obj',
                             AsyncMock(return_value=make_obj(DEPLOYMENT)))

    result = invoke(['patch', 'Deployment', 'apps/v1/ns1/web',
                     '-p', 'replace:/spec/replicas=3', '-p', 'remove:/spec/paused'])

    assert result.exit_code == 0
    assert patch_obj.call_args.kwargs['patch'].as_payload() == [
        {'op': 'replace', 'path': '/spec/replicas', 'value': 3},
        {'op': 'remove', 'path': '/spec/paused'},
    ]


def test_patch_rejects_bad_ops(invoke, resolve):
    result = invoke(['patch', 'Deployment', 'apps/v1/ns1/web', '-p', 'move:/a=/b'])
    assert result.exit_code == 2


def test_delete_without_waiting(invoke, mocker, resolve):
    delete_obj = mocker.patch('dynakube._cogs.clients.deleting.delete_obj', AsyncMock(return_value=200))
    delete_and_wait = mocker.patch('dynakube._core.intents.convergence.delete_and_wait', AsyncMock())

    result = invoke(['delete', 'Deployment', 'apps/v1/ns1/web'])

    assert result.exit_code == 0
    assert delete_obj.called
    assert not delete_and_wait.called


def test_delete_with_waiting(invoke, mocker, resolve):
    delete_obj = mocker.patch('dynakube._cogs.clients.deleting.delete_obj', AsyncMock())
    delete_and_wait = mocker.patch('dynakube._core.intents.convergence.delete_and_wait',
                                   AsyncMock(return_value='Absent'))

    result = invoke(['delete', 'Deployment', 'apps/v1/ns1/web', '--wait', '--interval', '0.5'])

    assert result.exit_code == 0
    assert not delete_obj.called
    assert delete_and_wait.call_args.kwargs['settings'].polling.interval == 0.5


@pytest.mark.parametrize('condition, waiter', [
    ('replicas', 'wait_for_replicas'),
    ('exists', 'wait_for_existence'),
    ('absent', 'wait_for_absence'),
    ('certificate', 'wait_for_certificate'),
])
def test_wait_for_conditions(invoke, mocker, resolve, condition, waiter):
    fn = mocker.patch(f'dynakube._core.intents.convergence.{waiter}', AsyncMock(return_value='Done'))

    result = invoke(['wait', 'Deployment', 'apps/v1/ns1/web', '--for', condition])

    assert result.exit_code == 0
    assert result.output.strip() == 'Done'
    assert fn.called


def test_wait_for_phases(invoke, mocker, resolve):
    fn = mocker.patch('dynakube._core.intents.convergence.wait_for_phase', AsyncMock(return_value='Bound'))

    result = invoke(['wait', 'PersistentVolumeClaim', '/v1/ns1/data', '--for', 'phase=Bound,Lost'])

    assert result.exit_code == 0
    assert result.output.strip() == 'Bound'
    assert fn.call_args.kwargs['targets'] == {'Bound', 'Lost'}
    assert fn.call_args.kwargs['pendings'] == PHASE_PENDINGS


def test_wait_for_a_pending_phase_excludes_it_from_the_pending_ones(invoke, mocker, resolve):
    fn = mocker.patch('dynakube._core.intents.convergence.wait_for_phase', AsyncMock(return_value='Running'))

    result = invoke(['wait', 'Pod', '/v1/ns1/pod1', '--for', 'phase=Running'])

    assert result.exit_code == 0
    assert 'Running' not in fn.call_args.kwargs['pendings']
    assert 'Pending' in fn.call_args.kwargs['pendings']


def test_wait_timeouts_fail_with_a_message(invoke, mocker, resolve):
    mocker.patch('dynakube._core.intents.convergence.wait_for_replicas',
                 AsyncMock(side_effect=PollingTimeoutError("Timed out after 1.0s", timeout=1.0)))

    result = invoke(['wait', 'Deployment', 'apps/v1/ns1/web', '--for', 'replicas'])

    assert result.exit_code == 1
    assert 'Timed out after 1.0s' in result.output


@pytest.mark.parametrize('condition', ['phase', 'phase=', 'ready', 'replicas=3'])
def test_wait_rejects_unknown_conditions(invoke, resolve, condition):
    result = invoke(['wait', 'Deployment', 'apps/v1/ns1/web', '--for', condition])
    assert result.exit_code == 2
