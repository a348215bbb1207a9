import pytest

CORE_GROUP = {'kind': 'APIVersions', 'versions': ['v1']}

APIS_GROUPS = {
    'kind': 'APIGroupList',
    'groups': [
        {
            'name': 'apps',
            'versions': [{'groupVersion': 'apps/v1', 'version': 'v1'}],
            'preferredVersion': {'groupVersion': 'apps/v1', 'version': 'v1'},
        },
        {
            'name': 'dynakube.dev',
            'versions': [
                {'groupVersion': 'dynakube.dev/v1', 'version': 'v1'},
                {'groupVersion': 'dynakube.dev/v1beta1', 'version': 'v1beta1'},
            ],
            'preferredVersion': {'groupVersion': 'dynakube.dev/v1', 'version': 'v1'},
        },
    ],
}

CORE_V1_RESOURCES = {
    'kind': 'APIResourceList',
    'groupVersion': 'v1',
    'resources': [
        {'name': 'pods', 'singularName': '', 'namespaced': True, 'kind': 'Pod',
         'verbs': ['create', 'delete', 'get', 'list', 'patch'], 'shortNames': ['po'],
         'categories': ['all']},
        {'name': 'pods/status', 'singularName': '', 'namespaced': True, 'kind': 'Pod',
         'verbs': ['get', 'patch']},
        {'name': 'namespaces', 'singularName': '', 'namespaced': False, 'kind': 'Namespace',
         'verbs': ['create', 'delete', 'get', 'list', 'patch'], 'shortNames': ['ns']},
    ],
}

APPS_V1_RESOURCES = {
    'kind': 'APIResourceList',
    'groupVersion': 'apps/v1',
    'resources': [
        {'name': 'deployments', 'singularName': 'deployment', 'namespaced': True,
         'kind': 'Deployment', 'verbs': ['get', 'patch']},
        {'name': 'deployments/scale', 'singularName': '', 'namespaced': True,
         'kind': 'Scale', 'verbs': ['get', 'patch']},
    ],
}

WIDGETS_V1_RESOURCES = {
    'kind': 'APIResourceList',
    'groupVersion': 'dynakube.dev/v1',
    'resources': [
        {'name': 'policies', 'singularName': 'policy', 'namespaced': False,
         'kind': 'Policy', 'verbs': ['get']},
    ],
}


@pytest.fixture()
def discovery_api(fake_api):
    """ A fake cluster serving a few well-known and custom resources. """
    fake_api.add('get', '/api', json=CORE_GROUP)
    fake_api.add('get', '/apis', json=APIS_GROUPS)
    fake_api.add('get', '/api/v1', json=CORE_V1_RESOURCES)
    fake_api.add('get', '/apis/apps/v1', json=APPS_V1_RESOURCES)
    fake_api.add('get', '/apis/dynakube.dev/v1', json=WIDGETS_V1_RESOURCES)
    # dynakube.dev/v1beta1 is listed as served, but has no resources (404).
    return fake_api
