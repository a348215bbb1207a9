import asyncio
import contextlib
import functools
import json
from collections.abc import AsyncIterator, Awaitable, Callable, Collection
from typing import Any, TypeVar

import aiohttp
import click
import yaml

from dynakube._cogs.clients import auth, creating, deleting, discovery, errors, fetching, patching, scanning
from dynakube._cogs.configs import configuration
from dynakube._cogs.structs import bodies, credentials, identities, patches, references
from dynakube._core.actions import loggers
from dynakube._core.engines import polling
from dynakube._core.intents import convergence, piggybacking

_T = TypeVar('_T')

# All the failures that are reported as plain messages, not as tracebacks.
EXPECTED_ERRORS = (
    errors.APIError,
    errors.DiscoveryError,
    bodies.DecodeError,
    credentials.LoginError,
    identities.IdentityFormatError,
    polling.PollingError,
    aiohttp.ClientConnectionError,
    asyncio.TimeoutError,
    ValueError,  # e.g. a namespaced object with no namespace at all.
)


class LogFormatParamType(click.Choice):

    def __init__(self) -> None:
        super().__init__(choices=[v.name.lower() for v in loggers.LogFormat])

    def convert(self, value: Any, param: Any, ctx: Any) -> loggers.LogFormat:
        if isinstance(value, loggers.LogFormat):
            return value
        name: str = super().convert(value, param, ctx)
        return loggers.LogFormat[name.upper()]


def logging_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to configure logging in all commands the same way."""
    @click.option('-v', '--verbose', is_flag=True)
    @click.option('-d', '--debug', is_flag=True)
    @click.option('-q', '--quiet', is_flag=True)
    @click.option('--log-format', type=LogFormatParamType(), default='full')
    @click.option('--log-refkey', type=str)
    @click.option('--log-prefix/--no-log-prefix', default=None)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(verbose: bool, quiet: bool, debug: bool,
                log_format: loggers.LogFormat = loggers.LogFormat.FULL,
                log_prefix: bool | None = None,
                log_refkey: str | None = None,
                *args: Any, **kwargs: Any) -> Any:
        loggers.configure(debug=debug, verbose=verbose, quiet=quiet,
                          log_format=log_format, log_refkey=log_refkey, log_prefix=log_prefix)
        return fn(*args, **kwargs)

    return wrapper


def connection_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator for the commands that talk to the cluster. """
    @click.option('--context', 'kubecontext', type=str, default=None,
                  help="A kubeconfig context to use instead of the current one.")
    @click.option('--timeout', type=float, default=None,
                  help="A convergence deadline in seconds (the operation's default if omitted).")
    @click.option('--interval', type=float, default=None,
                  help="A sleep between the convergence checks in seconds.")
    @functools.wraps(fn)
    def wrapper(kubecontext: str | None, timeout: float | None, interval: float | None,
                *args: Any, **kwargs: Any) -> Any:
        settings = configuration.ClientSettings()
        if interval is not None:
            settings.polling.interval = interval
        if timeout is not None:
            settings.timeouts.create = settings.timeouts.update = settings.timeouts.delete = timeout
        return fn(*args, kubecontext=kubecontext, settings=settings, **kwargs)

    return wrapper


def discovery_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator for the commands that resolve the kinds to their REST mappings. """
    @click.option('--discovery/--no-discovery', default=True,
                  help="Resolve the kind via the cluster's discovery (or guess the plural).")
    @click.option('--namespaced/--cluster-scoped', default=None,
                  help="The scope of the kind when the discovery is disabled.")
    @functools.wraps(fn)
    def wrapper(discovery: bool, namespaced: bool | None, *args: Any, **kwargs: Any) -> Any:
        if not discovery and namespaced is None:
            raise click.UsageError("--no-discovery requires either --namespaced or --cluster-scoped.")
        return fn(*args, use_discovery=discovery, namespaced=namespaced, **kwargs)

    return wrapper


def run(coro: Awaitable[_T]) -> _T:
    """ Run a command's coroutine, and render the expected errors as CLI errors. """
    async def _run() -> _T:
        return await coro
    try:
        return asyncio.run(_run())
    except EXPECTED_ERRORS as e:
        raise click.ClickException(str(e) or f"{type(e).__name__} while talking to the cluster.")


@contextlib.asynccontextmanager
async def connect(kubecontext: str | None) -> AsyncIterator[auth.APIContext]:
    info = piggybacking.login(context=kubecontext, logger=loggers.logger)
    async with auth.APIContext(info) as context:
        yield context


async def resolve(
        identity: identities.ResourceIdentity,
        *,
        use_discovery: bool,
        namespaced: bool | None,
        context: auth.APIContext,
        settings: configuration.ClientSettings,
) -> references.Resource:
    if not use_discovery:
        return references.Resource.guess(identity, namespaced=bool(namespaced))
    mapper = discovery.Discovery(context=context, settings=settings, logger=loggers.logger)
    return await mapper.resolve_identity(identity)


def parse_identity(kind: str, id: str) -> identities.ResourceIdentity:
    try:
        identity = identities.ResourceIdentity.parse(id, kind=kind)
    except identities.IdentityFormatError as e:
        raise click.BadParameter(str(e), param_hint='ID')
    if identity is None:
        raise click.BadParameter("The id cannot be empty.", param_hint='ID')
    return identity


def parse_op(text: str) -> patches.PatchOperation:
    """ Parse ``add:/path=VALUE``, ``replace:/path=VALUE``, ``remove:/path``; values are JSON or strings. """
    op, sep, rest = text.partition(':')
    if not sep:
        raise click.BadParameter(f"Expected op:/path[=value], got {text!r}.", param_hint='--op')
    path, has_value, raw = rest.partition('=')
    try:
        value = json.loads(raw) if has_value else None
    except json.JSONDecodeError:
        value = raw
    try:
        match op:
            case 'add' if has_value:
                return patches.Add(path, value)
            case 'replace' if has_value:
                return patches.Replace(path, value)
            case 'remove' if not has_value:
                return patches.Remove(path)
            case _:
                raise click.BadParameter(f"Unsupported operation {text!r}.", param_hint='--op')
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='--op')


def render(document: bodies.RawBody, output: str) -> str:
    if output == 'json':
        return json.dumps(document, indent=2)
    else:
        return yaml.safe_dump(dict(document), sort_keys=False).rstrip('\n')


@click.version_option(prog_name='dynakube')
@click.group(name='dynakube', context_settings=dict(
    auto_envvar_prefix='DYNAKUBE',
))
def main() -> None:
    pass


@main.command()
@logging_options
@click.option('--context', 'kubecontext', type=str, default=None)
@click.argument('groups', nargs=-1)
def discover(kubecontext: str | None, groups: Collection[str]) -> None:
    """ List the served resources of all (or only the specified) API groups. """
    async def _discover() -> Collection[references.Resource]:
        async with connect(kubecontext) as context:
            return await scanning.scan_resources(
                groups=groups or None,
                context=context,
                settings=configuration.ClientSettings(),
                logger=loggers.logger,
            )

    resources = run(_discover())
    for resource in sorted(resources, key=lambda r: (r.group, r.version, r.plural)):
        scope = 'namespaced' if resource.namespaced else 'cluster'
        click.echo(f"{resource.api_version}\t{resource.kind}\t{resource.plural}\t{scope}")


@main.command()
@logging_options
@connection_options
@discovery_options
@click.option('-o', '--output', type=click.Choice(['yaml', 'json']), default='yaml')
@click.argument('kind')
@click.argument('id')
def get(
        kind: str,
        id: str,
        output: str,
        kubecontext: str | None,
        settings: configuration.ClientSettings,
        use_discovery: bool,
        namespaced: bool | None,
) -> None:
    """ Read one object by its kind and compact id. """
    identity = parse_identity(kind, id)

    async def _get() -> bodies.GenericObject:
        async with connect(kubecontext) as context:
            resource = await resolve(identity, use_discovery=use_discovery, namespaced=namespaced,
                                     context=context, settings=settings)
            return await fetching.read_obj(identity=identity, resource=resource, context=context,
                                           settings=settings, logger=loggers.ObjectLogger(identity=identity))

    obj = run(_get())
    click.echo(render(obj.document, output))


@main.command()
@logging_options
@connection_options
@discovery_options
@click.option('-f', '--filename', type=click.File('r'), required=True)
@click.option('--wait/--no-wait', default=False)
def create(
        filename: Any,
        wait: bool,
        kubecontext: str | None,
        settings: configuration.ClientSettings,
        use_discovery: bool,
        namespaced: bool | None,
) -> None:
    """ Create an object from a YAML or JSON manifest, and print its compact id. """
    body = yaml.safe_load(filename.read())
    if not isinstance(body, dict):
        raise click.BadParameter("The manifest must be a single object.", param_hint='--filename')
    try:
        identity = identities.ResourceIdentity.from_body(body)
    except identities.IdentityFormatError as e:
        raise click.BadParameter(str(e), param_hint='--filename')
    if not identity.kind:
        raise click.BadParameter("The manifest has no kind.", param_hint='--filename')

    async def _create() -> identities.ResourceIdentity:
        async with connect(kubecontext) as context:
            resource = await resolve(identity, use_discovery=use_discovery, namespaced=namespaced,
                                     context=context, settings=settings)
            obj = await creating.create_obj(identity=identity, resource=resource, body=body,
                                            context=context, settings=settings,
                                            logger=loggers.ObjectLogger(identity=identity))
            created = obj.identity
            if wait:
                await convergence.wait_for_existence(identity=created, resource=resource,
                                                     context=context, settings=settings,
                                                     logger=loggers.ObjectLogger(identity=created))
            return created

    created = run(_create())
    click.echo(created.composite_id)


@main.command()
@logging_options
@connection_options
@discovery_options
@click.option('-p', '--op', 'ops', multiple=True, required=True,
              help="add:/path=VALUE, replace:/path=VALUE, or remove:/path; applied in order.")
@click.option('-o', '--output', type=click.Choice(['yaml', 'json']), default='yaml')
@click.argument('kind')
@click.argument('id')
def patch(
        kind: str,
        id: str,
        ops: Collection[str],
        output: str,
        kubecontext: str | None,
        settings: configuration.ClientSettings,
        use_discovery: bool,
        namespaced: bool | None,
) -> None:
    """ Patch one object with a JSON patch of the listed operations. """
    identity = parse_identity(kind, id)
    jsonpatch = patches.JSONPatch(parse_op(op) for op in ops)

    async def _patch() -> bodies.GenericObject:
        async with connect(kubecontext) as context:
            resource = await resolve(identity, use_discovery=use_discovery, namespaced=namespaced,
                                     context=context, settings=settings)
            return await patching.patch_obj(identity=identity, resource=resource, patch=jsonpatch,
                                            context=context, settings=settings,
                                            logger=loggers.ObjectLogger(identity=identity))

    obj = run(_patch())
    click.echo(render(obj.document, output))


@main.command()
@logging_options
@connection_options
@discovery_options
@click.option('--wait/--no-wait', default=False)
@click.argument('kind')
@click.argument('id')
def delete(
        kind: str,
        id: str,
        wait: bool,
        kubecontext: str | None,
        settings: configuration.ClientSettings,
        use_discovery: bool,
        namespaced: bool | None,
) -> None:
    """ Delete one object; an absent object is not an error. """
    identity = parse_identity(kind, id)

    async def _delete() -> None:
        async with connect(kubecontext) as context:
            resource = await resolve(identity, use_discovery=use_discovery, namespaced=namespaced,
                                     context=context, settings=settings)
            logger = loggers.ObjectLogger(identity=identity)
            if wait:
                await convergence.delete_and_wait(identity=identity, resource=resource,
                                                  context=context, settings=settings, logger=logger)
            else:
                await deleting.delete_obj(identity=identity, resource=resource,
                                          context=context, settings=settings, logger=logger)

    run(_delete())


@main.command()
@logging_options
@connection_options
@discovery_options
@click.option('--for', 'condition', required=True,
              help="replicas, exists, absent, certificate, or phase=<Phase>[,<Phase>...].")
@click.argument('kind')
@click.argument('id')
def wait(
        kind: str,
        id: str,
        condition: str,
        kubecontext: str | None,
        settings: configuration.ClientSettings,
        use_discovery: bool,
        namespaced: bool | None,
) -> None:
    """ Wait until the object converges to the requested state; print the state. """
    identity = parse_identity(kind, id)
    name, _, arg = condition.partition('=')
    if name == 'phase' and not arg:
        raise click.BadParameter("The phase must be specified: phase=<Phase>.", param_hint='--for')
    if name != 'phase' and arg:
        raise click.BadParameter(f"The condition {name!r} accepts no value.", param_hint='--for')
    if name not in ['replicas', 'exists', 'absent', 'certificate', 'phase']:
        raise click.BadParameter(f"Unsupported condition: {condition!r}.", param_hint='--for')

    async def _wait() -> str:
        async with connect(kubecontext) as context:
            resource = await resolve(identity, use_discovery=use_discovery, namespaced=namespaced,
                                     context=context, settings=settings)
            kwargs: dict[str, Any] = dict(identity=identity, resource=resource, context=context,
                                          settings=settings, logger=loggers.ObjectLogger(identity=identity))
            match name:
                case 'replicas':
                    return await convergence.wait_for_replicas(**kwargs)
                case 'exists':
                    return await convergence.wait_for_existence(**kwargs)
                case 'absent':
                    return await convergence.wait_for_absence(**kwargs)
                case 'certificate':
                    return await convergence.wait_for_certificate(**kwargs)
                case _:
                    targets = frozenset(arg.split(','))
                    return await convergence.wait_for_phase(**kwargs, targets=targets,
                                                            pendings=PHASE_PENDINGS - targets)

    click.echo(run(_wait()))


# The phases that are transitional for pods, claims, namespaces, jobs, etc.
PHASE_PENDINGS = frozenset({'', 'Pending', 'Running', 'Available', 'Released', 'Active', 'Terminating'})
