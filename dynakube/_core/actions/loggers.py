"""
Per-object logging and the logging configuration for the CLI.

The messages about specific objects are logged via :class:`ObjectLogger`,
which attaches a reference to the object to every log record. The text
formatters can show it as a ``[namespace/name]`` prefix of the message;
the JSON formatter puts it into a separate field for the log parsers.
"""
import copy
import enum
import logging
from collections.abc import MutableMapping
from typing import Any

from pythonjsonlogger.core import RESERVED_ATTRS
from pythonjsonlogger.json import JsonFormatter

from dynakube._cogs.helpers import typedefs
from dynakube._cogs.structs import identities

logger = logging.getLogger('dynakube.objects')

REF_ATTR = 'k8s_ref'  # the record's attribute with the object reference.
DEFAULT_JSON_REFKEY = 'object'
HANDLER_NAME = 'dynakube'  # only this handler is replaced on re-configuration.

SEVERITIES = [
    (logging.DEBUG, 'debug'),
    (logging.INFO, 'info'),
    (logging.WARNING, 'warn'),
    (logging.ERROR, 'error'),
]


class LogFormat(enum.Enum):
    """ Log formats, as specified on CLI. """
    PLAIN = '%(message)s'
    FULL = '[%(asctime)s] %(name)-20.20s [%(levelname)-8.8s] %(message)s'
    JSON = 'json'


def _prefixed(record: logging.LogRecord) -> logging.LogRecord:
    ref = getattr(record, REF_ATTR, None)
    if not ref:
        return record
    namespace, name = ref.get('namespace'), ref.get('name') or ''
    prefixed = copy.copy(record)  # the other handlers must see the original message.
    prefixed.msg = f"[{namespace}/{name}] {record.msg}" if namespace else f"[{name}] {record.msg}"
    return prefixed


class ObjectTextFormatter(logging.Formatter):

    def __init__(self, fmt: str | None = None, *, prefix: bool = False) -> None:
        super().__init__(fmt)
        self.prefixing = prefix

    def format(self, record: logging.LogRecord) -> str:
        return super().format(_prefixed(record) if self.prefixing else record)


class ObjectJsonFormatter(JsonFormatter):
    """
    JSON lines with the object reference under its own key and a severity.

    The raw reference attribute is excluded: it is exposed only
    under the ``refkey`` name, e.g. ``{"object": {"kind": ..., "name": ...}}``.
    """

    def __init__(self, *, refkey: str | None = None, prefix: bool = False) -> None:
        super().__init__(reserved_attrs=set(RESERVED_ATTRS) | {REF_ATTR}, timestamp=True)
        self.refkey = refkey or DEFAULT_JSON_REFKEY
        self.prefixing = prefix

    def format(self, record: logging.LogRecord) -> str:
        return super().format(_prefixed(record) if self.prefixing else record)

    def add_fields(
            self,
            log_record: dict[str, Any],
            record: logging.LogRecord,
            message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        ref = getattr(record, REF_ATTR, None)
        if ref is not None:
            log_record[self.refkey] = ref
        log_record.setdefault('severity', next(
            (severity for level, severity in SEVERITIES if record.levelno <= level), 'fatal'))


class ObjectLogger(typedefs.LoggerAdapter):
    """
    A logger that marks all its messages as related to one specific object.

    The reference has the shape of K8s's object references, but only with
    the fields known from the identity.
    """

    def __init__(self, *, identity: identities.ResourceIdentity) -> None:
        super().__init__(logger, {REF_ATTR: {
            'apiVersion': identity.api_version,
            'kind': identity.kind,
            'name': identity.name,
            'namespace': identity.namespace,
        }})

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        # The stdlib adapter replaces the call's extras; keep both instead.
        kwargs['extra'] = {**(self.extra or {}), **kwargs.get('extra', {})}
        return msg, kwargs


def make_formatter(
        log_format: LogFormat = LogFormat.FULL,
        *,
        prefix: bool | None = None,
        refkey: str | None = None,
) -> logging.Formatter:
    """
    Pick a formatter for the CLI's log format.

    If not set explicitly, the prefixes are added to the text formats only:
    in JSON, the references are already available as a separate field.
    """
    if log_format is LogFormat.JSON:
        return ObjectJsonFormatter(refkey=refkey, prefix=bool(prefix))
    return ObjectTextFormatter(log_format.value, prefix=True if prefix is None else prefix)


def configure(
        debug: bool | None = None,
        verbose: bool | None = None,
        quiet: bool | None = None,
        log_format: LogFormat = LogFormat.FULL,
        log_prefix: bool | None = None,
        log_refkey: str | None = None,
) -> None:
    handler = logging.StreamHandler()
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(make_formatter(log_format, prefix=log_prefix, refkey=log_refkey))

    # Click's runner closes its streams after every CLI invocation, so the old handler must go.
    root = logging.getLogger()
    root.handlers[:] = [h for h in root.handlers if h.get_name() != HANDLER_NAME] + [handler]
    root.setLevel(logging.DEBUG if debug or verbose else logging.WARNING if quiet else logging.INFO)

    # The low-level libraries are too noisy unless explicitly debugged.
    for name in ['asyncio', 'aiohttp']:
        lib_logger = logging.getLogger(name)
        lib_logger.propagate = bool(debug)
        if not debug:
            lib_logger.handlers[:] = [logging.NullHandler()]
