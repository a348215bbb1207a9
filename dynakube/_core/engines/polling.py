"""
Convergence polling: waiting until the asynchronously reconciled state settles.

The control plane accepts the writes immediately, but reconciles their effects
asynchronously (scaling, rollouts, admission, finalization, etc). So, "done"
is defined as a predicate over repeated reads, not over the write's response.

The poller is a small state machine driven by ticks. On every tick,
a caller-supplied ``refresh`` coroutine is awaited, and its outcome
is classified into one of the verdicts:

* :attr:`Verdict.TARGET` -- the returned label is one of the target labels:
  the polling is over, the label is returned.
* :attr:`Verdict.PENDING` -- the returned label is one of the pending labels
  (including the empty/unknown one before the first real status appears):
  the polling continues.
* :attr:`Verdict.RETRY` -- an error is raised and classified as retryable
  (e.g. a transient read failure): the polling continues.
* :attr:`Verdict.TERMINAL` -- an error is raised and classified as terminal
  (e.g. the object will never converge), or the returned label is in neither
  set of labels (a contract violation by the refresh function): the polling
  stops immediately, even if there is time left until the deadline.

Once the deadline is reached while still pending or retrying, the polling
fails with :class:`PollingTimeoutError`. The sleeps between the ticks are
shortened to never oversleep the deadline, and the refresh itself is limited
by the time remaining, so the total time stays within one interval
of the deadline. The deadline is owned by the caller: the poller only enforces
whatever timeout it is given. The polling is also cancellable by cancelling
the awaiting task: the sleeps & refreshes are interrupted at once.
"""
import asyncio
import enum
from collections.abc import Callable, Collection, Coroutine
from typing import Any

from dynakube._cogs.helpers import typedefs
from dynakube._cogs.structs import identities

# A refresh function is any coroutine function returning the observed label.
RefreshFn = Callable[[], Coroutine[Any, Any, str]]


class PermanentError(Exception):
    """ An observed state that will never converge; the polling is useless. """


class TemporaryError(Exception):
    """ A potentially recoverable failure of an observation; the polling continues. """


class ErrorsMode(enum.Enum):
    """ How arbitrary (non-temporary/non-permanent) exceptions are treated. """
    TEMPORARY = enum.auto()
    PERMANENT = enum.auto()


class Verdict(enum.Enum):
    TARGET = enum.auto()
    PENDING = enum.auto()
    RETRY = enum.auto()
    TERMINAL = enum.auto()


ClassifierFn = Callable[[Exception], Verdict]


class PollingError(Exception):
    """ A base class for all polling failures. """

    def __init__(
            self,
            message: str,
            *,
            identity: identities.ResourceIdentity | None = None,
            last_label: str | None = None,
            last_error: Exception | None = None,
            ticks: int = 0,
    ) -> None:
        super().__init__(message)
        self.identity = identity
        self.last_label = last_label
        self.last_error = last_error
        self.ticks = ticks


class PollingTimeoutError(PollingError):
    """ The deadline has been reached while the state was still pending. """

    def __init__(self, message: str, *, timeout: float | None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.timeout = timeout


class PollingTerminalError(PollingError):
    """ The remote side has signalled that the state will never converge. """


class UnexpectedStateError(PollingTerminalError):
    """ The refresh function has returned a label which is neither pending nor targeted. """


def classify_errors(
        exc: Exception,
        *,
        errors: ErrorsMode = ErrorsMode.PERMANENT,
) -> Verdict:
    """
    The default classification: temporary errors are retried, permanent are not.

    All other errors are treated according to the errors mode:
    permanent by default, since a poller should not hide the bugs.
    """
    if isinstance(exc, TemporaryError):
        return Verdict.RETRY
    elif isinstance(exc, PermanentError):
        return Verdict.TERMINAL
    elif errors == ErrorsMode.TEMPORARY:
        return Verdict.RETRY
    else:
        return Verdict.TERMINAL


async def poll(
        refresh: RefreshFn,
        *,
        targets: Collection[str],
        pendings: Collection[str],
        timeout: float | None,
        interval: float,
        delay: float = 0,
        classify: ClassifierFn | None = None,
        errors: ErrorsMode = ErrorsMode.PERMANENT,
        identity: identities.ResourceIdentity | None = None,
        logger: typedefs.Logger,
) -> str:
    """
    Poll until the refreshed state reaches a target label; return that label.
    """
    if interval <= 0:
        raise ValueError(f"The polling interval must be positive, got {interval!r}.")
    if set(targets) & set(pendings):
        raise ValueError(f"Labels cannot be both targeted and pending: {set(targets) & set(pendings)}")

    what = f" for {identity}" if identity is not None else ""
    loop = asyncio.get_running_loop()
    deadline = None if timeout is None else loop.time() + timeout
    last_label: str | None = None
    last_error: Exception | None = None
    ticks = 0

    if delay > 0:
        await asyncio.sleep(delay if deadline is None else min(delay, max(0, deadline - loop.time())))

    while True:
        remaining = None if deadline is None else deadline - loop.time()
        if remaining is not None and remaining <= 0 and ticks > 0:
            raise PollingTimeoutError(
                f"Timed out after {timeout}s{what} in state {last_label!r}"
                + (f" with the last error: {last_error}" if last_error is not None else ""),
                timeout=timeout, identity=identity, ticks=ticks,
                last_label=last_label, last_error=last_error)

        ticks += 1
        try:
            # The very first tick goes even if the deadline is reached (e.g. a zero timeout).
            if remaining is None or remaining <= 0:
                outcome = await _observe(refresh)
            else:
                outcome = await asyncio.wait_for(_observe(refresh), timeout=remaining)
        except asyncio.TimeoutError as e:
            raise PollingTimeoutError(
                f"Timed out after {timeout}s{what} while refreshing in state {last_label!r}",
                timeout=timeout, identity=identity, ticks=ticks,
                last_label=last_label, last_error=last_error) from e

        if isinstance(outcome, Exception):
            error = outcome
            verdict = classify(error) if classify is not None else classify_errors(error, errors=errors)
            if verdict == Verdict.TERMINAL:
                raise PollingTerminalError(
                    f"Failed to converge{what}: {error}",
                    identity=identity, ticks=ticks,
                    last_label=last_label, last_error=error) from error
            elif verdict == Verdict.RETRY or verdict == Verdict.PENDING:
                logger.debug(f"Still converging{what} (tick #{ticks}): {error}")
                last_error = error
            else:
                raise PollingError(f"Errors cannot be classified as {verdict}: {error!r}") from error
        else:
            label = outcome
            last_label, last_error = label, None
            if label in targets:
                logger.debug(f"Converged{what} to state {label!r} (tick #{ticks}).")
                return label
            elif label in pendings:
                logger.debug(f"Still converging{what} in state {label!r} (tick #{ticks}).")
            else:
                raise UnexpectedStateError(
                    f"Unexpected state {label!r}{what}; "
                    f"expected one of {sorted(targets)} or pending in {sorted(pendings)}.",
                    identity=identity, ticks=ticks, last_label=label)

        # Never oversleep the deadline: the last sleep is shortened (or skipped) to meet it.
        remaining = None if deadline is None else deadline - loop.time()
        if remaining is None:
            await asyncio.sleep(interval)
        elif remaining > 0:
            await asyncio.sleep(min(interval, remaining))


async def _observe(refresh: RefreshFn) -> str | Exception:
    """ Return the refresh's error instead of raising it, so that it is never mistaken for the deadline. """
    try:
        return await refresh()
    except Exception as e:
        return e
