"""Decode a raw <rpc-reply> into what gets rendered.

Typed exchanges (get / get-config) are split into the protocol envelope and
the ``<data>`` payload; the payload is ``None`` when the reply carries none.
Untyped exchanges keep the whole reply as one document.
"""
import logging
from copy import deepcopy
from dataclasses import dataclass
from typing import Optional

from lxml import etree

from ncrpc.errors import MalformedInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RpcErrorInfo:
    type: Optional[str]
    tag: Optional[str]
    severity: Optional[str]
    message: Optional[str]


def _text(parent, name):
    child = parent.find("{*}" + name)
    if child is None or child.text is None:
        return None
    return child.text.strip()


class _ReplyStatus:

    _status_root = None

    @property
    def ok(self):
        return self._status_root.find("{*}ok") is not None

    @property
    def errors(self):
        return [
            RpcErrorInfo(
                type=_text(err, "error-type"),
                tag=_text(err, "error-tag"),
                severity=_text(err, "error-severity"),
                message=_text(err, "error-message"),
            )
            for err in self._status_root.iterfind("{*}rpc-error")
        ]

    @property
    def failed(self):
        return any(e.severity != "warning" for e in self.errors)


class TypedReply(_ReplyStatus):
    """Envelope plus optional payload.

    ``document`` is the reply exactly as received; queries and file output
    use it so the envelope and payload are seen as one tree.
    """

    def __init__(self, envelope, payload=None, document=None):
        self.envelope = envelope
        self.payload = payload
        self.document = document if document is not None else envelope
        self._status_root = envelope

    def documents(self):
        if self.payload is None:
            return [self.envelope]
        return [self.payload, self.envelope]

    def __repr__(self):
        return f"<TypedReply payload={'absent' if self.payload is None else 'present'}>"


class RawReply(_ReplyStatus):

    def __init__(self, document):
        self.document = document
        self._status_root = document

    def documents(self):
        return [self.document]

    def __repr__(self):
        return "<RawReply>"


def decode(raw, typed):
    """Parse *raw* reply text and return a :class:`TypedReply` or :class:`RawReply`."""
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    try:
        root = etree.fromstring(raw)
    except etree.XMLSyntaxError as e:
        raise MalformedInput(f"unable to parse reply: {e}", stage="decode") from e
    if etree.QName(root).localname != "rpc-reply":
        raise MalformedInput(f"expected <rpc-reply>, got <{root.tag}>", stage="decode")

    if not typed:
        return RawReply(root)

    envelope = deepcopy(root)
    data = envelope.find("{*}data")
    payload = None
    if data is not None:
        payload = deepcopy(data)
        envelope.remove(data)
    reply = TypedReply(envelope, payload, document=root)
    logger.debug("Decoded %r", reply)
    return reply
