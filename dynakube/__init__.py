"""
The main Dynakube module for all the exported functions & classes.
"""
# isort: skip_file

# Unlike all other places, where we import other modules and refer
# the functions via the modules, this is the library's top-level interface,
# as it is seen by the users. So, we export the individual functions.

from dynakube._cogs.configs.configuration import (
    ClientSettings,
    NetworkingSettings,
    PollingSettings,
    TimeoutSettings,
)
from dynakube._cogs.helpers.typedefs import (
    Logger,
)
from dynakube._cogs.helpers.versions import (
    version as __version__,
)
from dynakube._cogs.structs.bodies import (
    RawBody,
    DecodeError,
    ObjectMeta,
    GenericObject,
    decode,
)
from dynakube._cogs.structs.credentials import (
    LoginError,
    ConnectionInfo,
)
from dynakube._cogs.structs.identities import (
    IdentityFormatError,
    ResourceIdentity,
    collection_name,
)
from dynakube._cogs.structs.patches import (
    JSONPatch,
    PatchOperation,
    Add,
    Replace,
    Remove,
    pointer,
)
from dynakube._cogs.structs.references import (
    Resource,
)
from dynakube._cogs.clients.auth import (
    APIContext,
)
from dynakube._cogs.clients.errors import (
    APIError,
    APIUnauthorizedError,
    APIForbiddenError,
    APINotFoundError,
    APIConflictError,
    APIServerError,
    DiscoveryError,
    ResourceNotFoundError,
)
from dynakube._cogs.clients.discovery import (
    Discovery,
    DiscoveryCache,
)
from dynakube._cogs.clients.scanning import (
    scan_resources,
)
from dynakube._cogs.clients.fetching import (
    read_obj,
)
from dynakube._cogs.clients.creating import (
    create_obj,
)
from dynakube._cogs.clients.patching import (
    patch_obj,
)
from dynakube._cogs.clients.deleting import (
    delete_obj,
)
from dynakube._core.actions.loggers import (
    LogFormat,
    ObjectLogger,
    configure,
)
from dynakube._core.engines.polling import (
    Verdict,
    ErrorsMode,
    PermanentError,
    TemporaryError,
    PollingError,
    PollingTimeoutError,
    PollingTerminalError,
    UnexpectedStateError,
    poll,
)
from dynakube._core.intents.convergence import (
    wait_for_replicas,
    wait_for_existence,
    wait_for_absence,
    wait_for_phase,
    wait_for_certificate,
    delete_and_wait,
)
from dynakube._core.intents.piggybacking import (
    login,
    login_with_kubeconfig,
    login_with_service_account,
)

__all__ = [
    'ClientSettings', 'NetworkingSettings', 'PollingSettings', 'TimeoutSettings',
    'Logger',
    'RawBody', 'DecodeError', 'ObjectMeta', 'GenericObject', 'decode',
    'LoginError', 'ConnectionInfo',
    'IdentityFormatError', 'ResourceIdentity', 'collection_name',
    'JSONPatch', 'PatchOperation', 'Add', 'Replace', 'Remove', 'pointer',
    'Resource',
    'APIContext',
    'APIError',
    'APIUnauthorizedError',
    'APIForbiddenError',
    'APINotFoundError',
    'APIConflictError',
    'APIServerError',
    'DiscoveryError',
    'ResourceNotFoundError',
    'Discovery', 'DiscoveryCache',
    'scan_resources',
    'read_obj', 'create_obj', 'patch_obj', 'delete_obj',
    'LogFormat', 'ObjectLogger', 'configure',
    'Verdict', 'ErrorsMode',
    'PermanentError', 'TemporaryError',
    'PollingError', 'PollingTimeoutError', 'PollingTerminalError', 'UnexpectedStateError',
    'poll',
    'wait_for_replicas', 'wait_for_existence', 'wait_for_absence',
    'wait_for_phase', 'wait_for_certificate', 'delete_and_wait',
    'login', 'login_with_kubeconfig', 'login_with_service_account',
]
