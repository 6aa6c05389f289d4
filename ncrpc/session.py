"""NETCONF-over-SSH session built on ncclient's transport layer.

ncclient's :class:`~ncclient.manager.Manager` pairs every request with its
reply internally; here the transport is used directly so message-id
correlation stays visible to :mod:`ncrpc.exchange`. Replies delivered by the
transport thread are queued and handed out one at a time by
:meth:`NetconfSession.next_reply`.
"""
import itertools
import logging
import queue
import socket
import time
from contextlib import closing

from lxml import etree
from ncclient import manager, transport
from ncclient.transport.errors import TransportError as NcTransportError
from ncclient.xml_ import BASE_NS_1_0

from ncrpc.errors import SendFailed, TransportError

logger = logging.getLogger(__name__)

CLOSE_TIMEOUT = 5.0


def port_open(host, port, timeout=3):
    try:
        with closing(socket.create_connection((host, port), timeout=timeout)):
            return True
    except OSError:
        return False


def _message_id(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return value


class _ReplyListener(transport.SessionListener):
    """Queue ``(message_id, raw)`` for every <rpc-reply> the transport reads."""

    def __init__(self, replies):
        self._replies = replies

    def callback(self, root, raw):
        tag, attrs = root
        if etree.QName(tag).localname != "rpc-reply":
            logger.debug("Ignoring non-reply message <%s>", tag)
            return
        self._replies.put((_message_id(attrs.get("message-id")), raw))

    def errback(self, ex):
        self._replies.put(ex)


class NetconfSession:
    """One NETCONF session: submit requests, hand out replies, close."""

    def __init__(self, nc_session):
        self._session = nc_session
        self._replies = queue.Queue()
        self._ids = itertools.count(1)
        self._session.add_listener(_ReplyListener(self._replies))

    @classmethod
    def connect(cls, config):
        device_handler = manager.make_device_handler({"name": config.device})
        kwds = dict(
            host=config.host,
            port=config.port,
            username=config.username,
            password=config.password,
            hostkey_verify=config.hostkey_verify,
            allow_agent=False,
            look_for_keys=False,
            timeout=config.timeout,
        )
        device_handler.add_additional_ssh_connect_params(kwds)
        nc_session = transport.SSHSession(device_handler)
        t0 = time.perf_counter()
        try:
            nc_session.connect(**kwds)
        except (NcTransportError, OSError) as e:
            raise TransportError(
                f"could not establish NETCONF over SSH to {config.host}:{config.port}: "
                f"{type(e).__name__}: {e}") from e
        logger.info("Connected to %s:%s in %.2fs (session-id %s)",
                    config.host, config.port, time.perf_counter() - t0, nc_session.id)
        return cls(nc_session)

    @property
    def connected(self):
        return self._session.connected

    @property
    def server_capabilities(self):
        return list(self._session.server_capabilities)

    def submit(self, request):
        """Send *request* and return the message-id it was sent with."""
        if not self.connected:
            raise SendFailed("session is not connected")
        message_id = next(self._ids)
        try:
            xml = request.to_xml(message_id)
            self._session.send(xml)
        except NcTransportError as e:
            raise SendFailed(f"transport rejected message-id {message_id}: {e}") from e
        logger.debug("Sent message-id %s:\n%s", message_id, xml)
        return message_id

    def next_reply(self, timeout):
        """Return the next ``(message_id, raw)`` reply, or ``None`` after *timeout* seconds."""
        try:
            item = self._replies.get(timeout=max(timeout, 0))
        except queue.Empty:
            return None
        if isinstance(item, Exception):
            raise TransportError(f"session failed while waiting for a reply: {item}") from item
        return item

    def close(self):
        """Send <close-session> if the session is still up, then close the transport."""
        try:
            if self.connected:
                self._close_session()
        finally:
            self._session.close()
        logger.info("Session closed")

    def _close_session(self):
        message_id = next(self._ids)
        rpc = etree.Element(etree.QName(BASE_NS_1_0, "rpc"), nsmap={None: BASE_NS_1_0})
        rpc.set("message-id", str(message_id))
        etree.SubElement(rpc, etree.QName(BASE_NS_1_0, "close-session"))
        try:
            self._session.send(etree.tostring(rpc, xml_declaration=True, encoding="UTF-8").decode("utf-8"))
            deadline = time.monotonic() + CLOSE_TIMEOUT
            while time.monotonic() < deadline:
                reply = self.next_reply(deadline - time.monotonic())
                if reply is None or reply[0] == message_id:
                    break
        except (NcTransportError, TransportError) as e:
            logger.debug("close-session not acknowledged: %s", e)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
