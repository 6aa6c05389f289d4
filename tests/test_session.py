import pytest
from lxml import etree
from ncclient.transport.errors import TransportError as NcTransportError

from ncrpc import session as session_module
from ncrpc.errors import SendFailed, TransportError
from ncrpc.request import BareText, build
from ncrpc.session import NetconfSession

from conftest import NC_NS, ok_reply


class FakeTransport:
    """Stands in for ncclient's SSHSession: listeners, send and close.

    With ``auto_reply`` every sent <rpc> is answered at once with <ok/>
    through the registered listeners, as the transport thread would.
    """

    def __init__(self, auto_reply=True, send_error=None):
        self.listeners = []
        self.sent = []
        self.connected = True
        self.closed = False
        self.auto_reply = auto_reply
        self.send_error = send_error
        self.server_capabilities = ["urn:ietf:params:netconf:base:1.0"]

    def add_listener(self, listener):
        self.listeners.append(listener)

    def send(self, message):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(message)
        if self.auto_reply:
            root = etree.fromstring(message.encode("utf-8"))
            self.deliver(ok_reply(root.get("message-id")))

    def deliver(self, raw):
        root = etree.fromstring(raw.encode("utf-8"))
        for listener in self.listeners:
            listener.callback((root.tag, root.attrib), raw)

    def fail(self, ex):
        for listener in self.listeners:
            listener.errback(ex)

    def close(self):
        self.closed = True
        self.connected = False


def sent_rpc(transport, index):
    return etree.fromstring(transport.sent[index].encode("utf-8"))


@pytest.fixture
def short_close(monkeypatch):
    monkeypatch.setattr(session_module, "CLOSE_TIMEOUT", 0.05)


def test_message_ids_count_up_from_one():
    transport = FakeTransport()
    session = NetconfSession(transport)

    assert session.submit(build(BareText("get"))) == 1
    assert session.submit(build(BareText("get-config"))) == 2

    assert [sent_rpc(transport, i).get("message-id") for i in range(2)] == ["1", "2"]
    assert sent_rpc(transport, 1)[0].tag == f"{{{NC_NS}}}get-config"


def test_next_reply_returns_numeric_id_and_raw_text():
    transport = FakeTransport()
    session = NetconfSession(transport)

    message_id = session.submit(build(BareText("get")))

    assert session.next_reply(1.0) == (message_id, ok_reply(message_id))


def test_non_reply_messages_are_ignored():
    transport = FakeTransport(auto_reply=False)
    session = NetconfSession(transport)

    transport.deliver(f'<hello xmlns="{NC_NS}"><session-id>4</session-id></hello>')

    assert session.next_reply(0.05) is None


def test_next_reply_times_out():
    session = NetconfSession(FakeTransport(auto_reply=False))
    assert session.next_reply(0.05) is None


def test_transport_error_surfaces_from_next_reply():
    transport = FakeTransport(auto_reply=False)
    session = NetconfSession(transport)

    transport.fail(RuntimeError("channel closed"))

    with pytest.raises(TransportError):
        session.next_reply(1.0)


def test_submit_on_disconnected_session():
    transport = FakeTransport()
    transport.connected = False
    session = NetconfSession(transport)

    with pytest.raises(SendFailed):
        session.submit(build(BareText("get")))
    assert transport.sent == []


def test_submit_transport_error_is_send_failed():
    session = NetconfSession(FakeTransport(send_error=NcTransportError("Not connected to NETCONF server")))

    with pytest.raises(SendFailed):
        session.submit(build(BareText("get")))


def test_close_sends_close_session():
    transport = FakeTransport()
    session = NetconfSession(transport)
    session.submit(build(BareText("get")))
    session.next_reply(1.0)

    session.close()

    rpc = sent_rpc(transport, -1)
    assert rpc.get("message-id") == "2"
    assert rpc[0].tag == f"{{{NC_NS}}}close-session"
    assert transport.closed


def test_close_without_acknowledgement(short_close):
    transport = FakeTransport(auto_reply=False)
    session = NetconfSession(transport)

    session.close()

    assert len(transport.sent) == 1
    assert transport.closed


def test_close_on_dead_transport_still_closes_it():
    transport = FakeTransport()
    transport.connected = False
    session = NetconfSession(transport)

    session.close()

    assert transport.sent == []
    assert transport.closed


def test_close_when_send_fails_still_closes():
    transport = FakeTransport(send_error=NcTransportError("Socket closed"))
    session = NetconfSession(transport)

    session.close()

    assert transport.closed
    with pytest.raises(SendFailed):
        session.submit(build(BareText("get")))


def test_context_manager_closes():
    transport = FakeTransport()

    with NetconfSession(transport) as session:
        session.submit(build(BareText("get")))

    assert transport.closed
    assert etree.QName(sent_rpc(transport, -1)[0]).localname == "close-session"
