"""Send one request and wait for the reply carrying its message-id.

An :class:`Exchange` moves through::

    IDLE -> SENT -> REPLIED | TIMED_OUT | TRANSPORT_ERROR | CANCELLED

Replies for other message-ids are discarded while the wait budget lasts.
The clock is injectable so the budget can be simulated.
"""
import enum
import logging
import threading
import time

from ncrpc.config import DEFAULT_TIMEOUT
from ncrpc.errors import Cancelled, ReplyTimeout, SendFailed, TransportError

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.5


class State(enum.Enum):
    IDLE = "idle"
    SENT = "sent"
    REPLIED = "replied"
    TIMED_OUT = "timed-out"
    TRANSPORT_ERROR = "transport-error"
    CANCELLED = "cancelled"


class Exchange:

    def __init__(self, session, request, timeout=DEFAULT_TIMEOUT, clock=time.monotonic,
                 poll_interval=POLL_INTERVAL):
        self.session = session
        self.request = request
        self.timeout = timeout
        self.clock = clock
        self.poll_interval = poll_interval
        self.state = State.IDLE
        self.message_id = None
        self.discarded = 0
        self._cancelled = threading.Event()

    def cancel(self):
        """Abandon the wait; safe to call from another thread."""
        self._cancelled.set()

    def run(self):
        """Submit the request and return the raw text of the matching reply."""
        if self.state is not State.IDLE:
            raise RuntimeError(f"exchange already run (state {self.state.value})")
        try:
            self._send()
            return self._wait()
        except KeyboardInterrupt:
            self.state = State.CANCELLED
            raise Cancelled(f"interrupted while waiting for reply to message-id {self.message_id}") from None
        finally:
            self.request = None

    def _send(self):
        try:
            self.message_id = self.session.submit(self.request)
        except (SendFailed, TransportError):
            self.state = State.TRANSPORT_ERROR
            raise
        self.state = State.SENT
        logger.debug("Waiting up to %ss for message-id %s", self.timeout, self.message_id)

    def _wait(self):
        deadline = self.clock() + self.timeout
        while True:
            if self._cancelled.is_set():
                self.state = State.CANCELLED
                raise Cancelled(f"wait for message-id {self.message_id} cancelled")
            remaining = deadline - self.clock()
            if remaining <= 0:
                self.state = State.TIMED_OUT
                raise ReplyTimeout(
                    f"no reply for message-id {self.message_id} within {self.timeout}s "
                    f"({self.discarded} unrelated repl{'y' if self.discarded == 1 else 'ies'} discarded)")
            try:
                reply = self.session.next_reply(min(remaining, self.poll_interval))
            except TransportError:
                self.state = State.TRANSPORT_ERROR
                raise
            if reply is None:
                continue
            message_id, raw = reply
            if message_id != self.message_id:
                self.discarded += 1
                logger.debug("Discarding reply for message-id %s (waiting for %s)",
                             message_id, self.message_id)
                continue
            self.state = State.REPLIED
            return raw


def exchange(session, request, timeout=DEFAULT_TIMEOUT, **kwargs):
    return Exchange(session, request, timeout=timeout, **kwargs).run()
