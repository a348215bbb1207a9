"""
Rudimentary authentication from the standard sources of the credentials.

Dynakube is not a full-featured client library, and avoids bringing too much
logic for proper authentication, especially all the complex auth-providers.
Instead, it reads the basic credentials from the kubeconfig files
or from the in-cluster service account, and uses them as is.

.. seealso::
    :mod:`credentials` and :mod:`auth`.
"""
import os
from typing import Any

import yaml

from dynakube._cogs.helpers import typedefs
from dynakube._cogs.structs import credentials

# As per https://kubernetes.io/docs/tasks/run-application/access-api-from-pod/
SERVICE_ACCOUNT_DIR = '/var/run/secrets/kubernetes.io/serviceaccount'
DEFAULT_KUBECONFIG = '~/.kube/config'


def login_with_service_account() -> credentials.ConnectionInfo | None:
    """
    Get the credentials of the pod's service account, if running in a cluster.

    No parsing or sophisticated multi-step token retrieval is performed.
    """
    token_path = os.path.join(SERVICE_ACCOUNT_DIR, 'token')
    ns_path = os.path.join(SERVICE_ACCOUNT_DIR, 'namespace')
    ca_path = os.path.join(SERVICE_ACCOUNT_DIR, 'ca.crt')

    if not os.path.exists(token_path):
        return None

    with open(token_path, encoding='utf-8') as f:
        token = f.read().strip()

    namespace: str | None = None
    if os.path.exists(ns_path):
        with open(ns_path, encoding='utf-8') as f:
            namespace = f.read().strip()

    # The env vars are injected into every pod; the DNS name is the fallback.
    host = os.environ.get('KUBERNETES_SERVICE_HOST')
    port = os.environ.get('KUBERNETES_SERVICE_PORT', '443')
    server = f'https://{host}:{port}' if host else 'https://kubernetes.default.svc'

    return credentials.ConnectionInfo(
        server=server,
        ca_path=ca_path if os.path.exists(ca_path) else None,
        token=token or None,
        default_namespace=namespace or None,
    )


def login_with_kubeconfig(
        *,
        context: str | None = None,
) -> credentials.ConnectionInfo | None:
    """
    Get the credentials from the kubeconfig files of the current (or a specific) context.

    As per https://kubernetes.io/docs/concepts/configuration/organize-cluster-access-kubeconfig/,
    ``$KUBECONFIG`` can contain several paths; the first value of every
    entry wins, so the earlier files override the later ones.
    """
    kubeconfig = os.environ.get('KUBECONFIG')
    if not kubeconfig and os.path.exists(os.path.expanduser(DEFAULT_KUBECONFIG)):
        kubeconfig = DEFAULT_KUBECONFIG
    if not kubeconfig:
        return None

    paths = [path.strip() for path in kubeconfig.split(os.pathsep)]
    paths = [os.path.expanduser(path) for path in paths if path]

    # If the file is absent or non-deserialisable, then fail.
    current_context: str | None = None
    contexts: dict[Any, Any] = {}
    clusters: dict[Any, Any] = {}
    users: dict[Any, Any] = {}
    for path in paths:

        with open(path, encoding='utf-8') as f:
            config = yaml.safe_load(f.read()) or {}

        if current_context is None:
            current_context = config.get('current-context')
        for item in config.get('contexts') or []:
            contexts.setdefault(item['name'], item.get('context') or {})
        for item in config.get('clusters') or []:
            clusters.setdefault(item['name'], item.get('cluster') or {})
        for item in config.get('users') or []:
            users.setdefault(item['name'], item.get('user') or {})

    context_name = context if context is not None else current_context
    if context_name is None:
        raise credentials.LoginError("Current context is not set in kubeconfigs.")
    if context_name not in contexts:
        raise credentials.LoginError(f"Context {context_name!r} is not found in kubeconfigs.")
    ctx = contexts[context_name]
    if ctx.get('cluster') not in clusters:
        raise credentials.LoginError(f"Cluster {ctx.get('cluster')!r} is not found in kubeconfigs.")
    cluster = clusters[ctx['cluster']]
    user = users.get(ctx.get('user'), {})

    # No fake API request is made to refresh the auth-provider's token: it is used as is.
    provider_token = (user.get('auth-provider') or {}).get('config', {}).get('access-token')

    return credentials.ConnectionInfo(
        server=cluster.get('server'),
        ca_path=cluster.get('certificate-authority'),
        ca_data=cluster.get('certificate-authority-data'),
        insecure=cluster.get('insecure-skip-tls-verify'),
        certificate_path=user.get('client-certificate'),
        certificate_data=user.get('client-certificate-data'),
        private_key_path=user.get('client-key'),
        private_key_data=user.get('client-key-data'),
        username=user.get('username'),
        password=user.get('password'),
        token=user.get('token') or provider_token,
        default_namespace=ctx.get('namespace'),
    )


def login(
        *,
        context: str | None = None,
        logger: typedefs.Logger,
) -> credentials.ConnectionInfo:
    """
    Login with the most preferred available source of credentials.

    The in-cluster service account goes first, the kubeconfig files next.
    An explicitly requested kubeconfig context skips the service account.
    """
    if context is None:
        info = login_with_service_account()
        if info is not None:
            logger.debug("Client is configured in cluster with a service account.")
            return info

    info = login_with_kubeconfig(context=context)
    if info is not None:
        logger.debug("Client is configured via kubeconfig files.")
        return info

    raise credentials.LoginError("Cannot authenticate neither in-cluster, nor via kubeconfig.")
