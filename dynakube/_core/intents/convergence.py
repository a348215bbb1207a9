"""
Well-known convergence predicates for the common kinds of objects.

Every predicate is a factory of a refresh function for :func:`polling.poll`,
plus its own vocabulary of target & pending labels. The refresh function
reads the object and reduces its state to a label. The reading errors
are left as is: the poller classifies them (non-temporary errors are terminal
by default); only the expected ones (e.g. HTTP 404 while waiting for the object
to appear or to disappear) are converted to labels.
"""
from collections.abc import Collection

from dynakube._cogs.clients import auth, deleting, errors, fetching
from dynakube._cogs.configs import configuration
from dynakube._cogs.helpers import typedefs
from dynakube._cogs.structs import bodies, identities, references
from dynakube._core.engines import polling

WAITING = 'Waiting'
ROLLING = 'Rolling'
READY = 'Ready'
REPLICAS_TARGETS = frozenset({READY})
REPLICAS_PENDINGS = frozenset({WAITING, ROLLING})

ABSENT = 'Absent'
PRESENT = 'Present'
TERMINATING = 'Terminating'
EXISTENCE_TARGETS = frozenset({PRESENT})
EXISTENCE_PENDINGS = frozenset({ABSENT})
ABSENCE_TARGETS = frozenset({ABSENT})
ABSENCE_PENDINGS = frozenset({PRESENT, TERMINATING})

APPROVED = 'Approved'
ISSUED = 'Issued'
CERTIFICATE_TARGETS = frozenset({ISSUED})
CERTIFICATE_PENDINGS = frozenset({'', APPROVED})


def get_replicas_state(obj: bodies.GenericObject) -> str:
    """
    Reduce a replicated workload (deployments, stateful sets, etc) to its rollout state.
    """
    spec, status = obj.spec, obj.status

    generation = obj.generation or 0
    observed = status.get('observedGeneration') or 0
    if observed > generation:
        raise polling.PermanentError(
            f"{obj.kind} {obj.identity} is observed at generation {observed} "
            f"beyond its own generation {generation}.")
    if observed < generation:
        return WAITING

    # The conditions are only meaningful for the observed generation.
    for condition in status.get('conditions') or []:
        if condition.get('type') == 'Progressing' and condition.get('reason') == 'ProgressDeadlineExceeded':
            raise polling.PermanentError(
                f"{obj.kind} {obj.identity} exceeded its progress deadline: {condition.get('message')}")

    desired = spec.get('replicas')
    desired = 1 if desired is None else desired
    counts = [status.get(field) or 0 for field in ['updatedReplicas', 'readyReplicas', 'availableReplicas']]
    total = status.get('replicas') or 0
    if any(count < desired for count in counts) or total != desired:
        return ROLLING
    return READY


def get_certificate_state(obj: bodies.GenericObject) -> str:
    """
    Reduce a certificate signing request to its issuance state.
    """
    conditions = obj.status.get('conditions') or []
    for condition in conditions:
        if condition.get('type') in ['Denied', 'Failed']:
            raise polling.PermanentError(
                f"{obj.kind} {obj.identity} is {condition.get('type').lower()}: {condition.get('message')}")
    if any(condition.get('type') == 'Approved' for condition in conditions):
        return ISSUED if obj.status.get('certificate') else APPROVED
    return ''


def get_phase_state(obj: bodies.GenericObject) -> str:
    phase = obj.status.get('phase')
    return phase if isinstance(phase, str) else ''


def get_absence_state(obj: bodies.GenericObject) -> str:
    if obj.document.get('metadata', {}).get('deletionTimestamp') or get_phase_state(obj) == TERMINATING:
        return TERMINATING
    return PRESENT


class _Refresher:
    """ A refresh function bound to a specific object. """

    def __init__(
            self,
            *,
            identity: identities.ResourceIdentity,
            resource: references.Resource,
            context: auth.APIContext,
            settings: configuration.ClientSettings,
            logger: typedefs.Logger,
    ) -> None:
        super().__init__()
        self.identity = identity
        self.resource = resource
        self.context = context
        self.settings = settings
        self.logger = logger

    async def read(self) -> bodies.GenericObject:
        return await fetching.read_obj(
            identity=self.identity,
            resource=self.resource,
            context=self.context,
            settings=self.settings,
            logger=self.logger,
        )


class ReplicasRefresher(_Refresher):
    async def __call__(self) -> str:
        return get_replicas_state(await self.read())


class PhaseRefresher(_Refresher):
    async def __call__(self) -> str:
        return get_phase_state(await self.read())


class CertificateRefresher(_Refresher):
    async def __call__(self) -> str:
        return get_certificate_state(await self.read())


class ExistenceRefresher(_Refresher):
    async def __call__(self) -> str:
        try:
            await self.read()
        except errors.APINotFoundError:
            return ABSENT
        return PRESENT


class AbsenceRefresher(_Refresher):
    async def __call__(self) -> str:
        try:
            obj = await self.read()
        except errors.APINotFoundError:
            return ABSENT
        return get_absence_state(obj)


async def _wait(
        refresh: _Refresher,
        *,
        targets: Collection[str],
        pendings: Collection[str],
        timeout: float | None,
) -> str:
    return await polling.poll(
        refresh,
        targets=targets,
        pendings=pendings,
        timeout=timeout,
        interval=refresh.settings.polling.interval,
        delay=refresh.settings.polling.delay,
        identity=refresh.identity,
        logger=refresh.logger,
    )


async def wait_for_replicas(
        *,
        identity: identities.ResourceIdentity,
        resource: references.Resource,
        context: auth.APIContext,
        settings: configuration.ClientSettings,
        logger: typedefs.Logger,
        timeout: float | None = None,
) -> str:
    """ Wait until all the desired replicas are updated, ready, and available. """
    refresh = ReplicasRefresher(identity=identity, resource=resource,
                                context=context, settings=settings, logger=logger)
    return await _wait(refresh, targets=REPLICAS_TARGETS, pendings=REPLICAS_PENDINGS,
                       timeout=settings.timeouts.update if timeout is None else timeout)


async def wait_for_existence(
        *,
        identity: identities.ResourceIdentity,
        resource: references.Resource,
        context: auth.APIContext,
        settings: configuration.ClientSettings,
        logger: typedefs.Logger,
        timeout: float | None = None,
) -> str:
    """ Wait until the object appears, e.g. when created by a controller. """
    refresh = ExistenceRefresher(identity=identity, resource=resource,
                                 context=context, settings=settings, logger=logger)
    return await _wait(refresh, targets=EXISTENCE_TARGETS, pendings=EXISTENCE_PENDINGS,
                       timeout=settings.timeouts.create if timeout is None else timeout)


async def wait_for_absence(
        *,
        identity: identities.ResourceIdentity,
        resource: references.Resource,
        context: auth.APIContext,
        settings: configuration.ClientSettings,
        logger: typedefs.Logger,
        timeout: float | None = None,
) -> str:
    """ Wait until the object is gone completely, i.e. after all its finalizers. """
    refresh = AbsenceRefresher(identity=identity, resource=resource,
                               context=context, settings=settings, logger=logger)
    return await _wait(refresh, targets=ABSENCE_TARGETS, pendings=ABSENCE_PENDINGS,
                       timeout=settings.timeouts.delete if timeout is None else timeout)


async def wait_for_phase(
        *,
        identity: identities.ResourceIdentity,
        resource: references.Resource,
        context: auth.APIContext,
        settings: configuration.ClientSettings,
        logger: typedefs.Logger,
        targets: Collection[str],
        pendings: Collection[str] = ('',),
        timeout: float | None = None,
) -> str:
    """
    Wait until the object's ``status.phase`` reaches one of the target phases.

    E.g., a persistent volume claim from ``Pending`` to ``Bound``,
    or a pod from ``Pending`` to ``Running``. The unset phase is ``""``.
    """
    refresh = PhaseRefresher(identity=identity, resource=resource,
                             context=context, settings=settings, logger=logger)
    return await _wait(refresh, targets=targets, pendings=pendings,
                       timeout=settings.timeouts.create if timeout is None else timeout)


async def wait_for_certificate(
        *,
        identity: identities.ResourceIdentity,
        resource: references.Resource,
        context: auth.APIContext,
        settings: configuration.ClientSettings,
        logger: typedefs.Logger,
        timeout: float | None = None,
) -> str:
    refresh = CertificateRefresher(identity=identity, resource=resource,
                                   context=context, settings=settings, logger=logger)
    return await _wait(refresh, targets=CERTIFICATE_TARGETS, pendings=CERTIFICATE_PENDINGS,
                       timeout=settings.timeouts.create if timeout is None else timeout)


async def delete_and_wait(
        *,
        identity: identities.ResourceIdentity,
        resource: references.Resource,
        context: auth.APIContext,
        settings: configuration.ClientSettings,
        logger: typedefs.Logger,
        timeout: float | None = None,
) -> str:
    """
    Delete the object and wait until it is gone.

    If the object is absent already, there is nothing to wait for.
    """
    status = await deleting.delete_obj(identity=identity, resource=resource,
                                       context=context, settings=settings, logger=logger)
    if status == 404:
        return ABSENT
    return await wait_for_absence(identity=identity, resource=resource,
                                  context=context, settings=settings, logger=logger,
                                  timeout=timeout)
