import itertools
import time

import pytest

from ncrpc.errors import SendFailed

NC_NS = "urn:ietf:params:xml:ns:netconf:base:1.0"


def ok_reply(message_id):
    return f'<rpc-reply xmlns="{NC_NS}" message-id="{message_id}"><ok/></rpc-reply>'


def data_reply(message_id, inner):
    return f'<rpc-reply xmlns="{NC_NS}" message-id="{message_id}"><data>{inner}</data></rpc-reply>'


def error_reply(message_id, severity="error"):
    return (f'<rpc-reply xmlns="{NC_NS}" message-id="{message_id}">'
            f'<rpc-error><error-type>application</error-type>'
            f'<error-tag>operation-not-supported</error-tag>'
            f'<error-severity>{severity}</error-severity>'
            f'<error-message>not here</error-message></rpc-error></rpc-reply>')


class FakeClock:

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class FakeSession:
    """In-memory stand-in for NetconfSession.

    ``responder(message_id, xml)`` returns ``(delay, reply_message_id, raw)``
    tuples that become readable *delay* seconds after the submit. With a
    :class:`FakeClock` time only moves when the exchange waits; without one
    waiting really sleeps.
    """

    def __init__(self, responder=None, clock=None, submit_error=None, reply_error=None):
        self.responder = responder or (lambda message_id, xml: [(0.0, message_id, ok_reply(message_id))])
        self.clock = clock
        self.submit_error = submit_error
        self.reply_error = reply_error
        self.sent = []
        self.scheduled = []
        self.closed = False
        self._ids = itertools.count(1)

    @property
    def connected(self):
        return not self.closed

    def _now(self):
        return self.clock() if self.clock is not None else time.monotonic()

    def submit(self, request):
        if self.submit_error is not None:
            raise self.submit_error
        if self.closed:
            raise SendFailed("session is not connected")
        message_id = next(self._ids)
        xml = request.to_xml(message_id)
        self.sent.append((message_id, xml))
        for delay, reply_id, raw in self.responder(message_id, xml):
            self.scheduled.append((self._now() + delay, reply_id, raw))
        self.scheduled.sort(key=lambda item: item[0])
        return message_id

    def next_reply(self, timeout):
        if self.reply_error is not None:
            raise self.reply_error
        now = self._now()
        if self.scheduled and self.scheduled[0][0] <= now + timeout:
            due, reply_id, raw = self.scheduled.pop(0)
            self._advance(max(due - now, 0))
            return reply_id, raw
        self._advance(timeout)
        return None

    def _advance(self, seconds):
        if self.clock is not None:
            self.clock.now += seconds
        elif seconds > 0:
            time.sleep(seconds)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rpc_reply_xml():
    return (
        f'<nc:rpc-reply xmlns:nc="{NC_NS}" xmlns:junos="http://xml.juniper.net/junos/22.2R0/junos" '
        f'message-id="1">'
        f'<system-uptime-information xmlns="http://xml.juniper.net/junos/22.2R0/junos">'
        f'<current-time><date-time junos:seconds="1700000000">2023-11-14 22:13:20 UTC</date-time>'
        f'</current-time><!-- uptime --><active-user-count junos:format="1 user">1</active-user-count>'
        f'</system-uptime-information></nc:rpc-reply>'
    )
