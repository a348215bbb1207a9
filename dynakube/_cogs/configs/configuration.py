"""
All configuration flags, options, settings to fine-tune the client.

All settings are grouped semantically just for convenience
(instead of a flat mega-object with all the values in it).

Some of the settings are flags, some are scalars, some are optional,
some are not (but all of them have reasonable defaults).

The settings are passed explicitly to every call that needs them.
There is no process-wide default instance.
"""
import dataclasses


@dataclasses.dataclass
class NetworkingSettings:

    request_timeout: float | None = 5 * 60  # == aiohttp.client.DEFAULT_TIMEOUT
    """
    A timeout for a single API request, in seconds.
    ``None`` disables the timeout (not recommended).
    """

    connect_timeout: float | None = None
    """
    A timeout to establish a connection for a single API request, in seconds.
    """


@dataclasses.dataclass
class PollingSettings:

    interval: float = 10
    """
    How long to sleep between two consecutive reads of a converging object.
    The last sleep is shortened so that the deadline is never overslept.
    """

    delay: float = 0
    """
    How long to wait before the first read after a mutation.
    Usually not needed: the pending states are polled for anyway.
    """


@dataclasses.dataclass
class TimeoutSettings:
    """
    Operation-specific ceilings (in seconds) for the convergence after a mutation.

    ``None`` means no deadline: the waiting continues until converged,
    failed, or cancelled by the caller.
    """

    create: float | None = 5 * 60
    update: float | None = 5 * 60
    delete: float | None = 5 * 60


@dataclasses.dataclass
class ClientSettings:
    networking: NetworkingSettings = dataclasses.field(default_factory=NetworkingSettings)
    polling: PollingSettings = dataclasses.field(default_factory=PollingSettings)
    timeouts: TimeoutSettings = dataclasses.field(default_factory=TimeoutSettings)
