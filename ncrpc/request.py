"""Build outbound NETCONF requests from the three input modes.

A request is either *typed* (``get`` / ``get-config`` with constrained
parameters) or *untyped* (an opaque operation element taken from a bare
command token, inline XML, or an XML file).
"""
import enum
import logging
from copy import deepcopy
from dataclasses import dataclass
from typing import Optional

from lxml import etree
from ncclient.xml_ import BASE_NS_1_0

from ncrpc.errors import FormatError, InvalidArgument, MalformedInput
from ncrpc.namespaces import BindingSet

logger = logging.getLogger(__name__)

TYPED_OPERATIONS = ("get", "get-config")


class Datastore(enum.Enum):
    CANDIDATE = "candidate"
    RUNNING = "running"
    STARTUP = "startup"

    @classmethod
    def parse(cls, name):
        if name is None:
            return cls.RUNNING
        try:
            return cls(name)
        except ValueError:
            raise InvalidArgument(
                f"invalid datastore {name!r}; use candidate, running, startup or neither") from None


# ------------------- Input modes -------------------

@dataclass(frozen=True)
class BareText:
    text: str


@dataclass(frozen=True)
class InlineXml:
    text: str


@dataclass(frozen=True)
class XmlFile:
    path: str


# ------------------- Request values -------------------

def _nc(tag):
    return etree.QName(BASE_NS_1_0, tag)


@dataclass
class Operation:
    """A schema-typed ``get`` or ``get-config`` operation."""
    name: str
    filter: Optional[str] = None
    datastore: Optional[Datastore] = None
    bindings: Optional[BindingSet] = None

    def to_element(self):
        op = etree.Element(_nc(self.name))
        if self.name == "get-config":
            source = etree.SubElement(op, _nc("source"))
            etree.SubElement(source, _nc(self.datastore.value))
        if self.filter:
            op.append(self._filter_element())
        return op

    def _filter_element(self):
        if self.filter.lstrip().startswith("<"):
            flt = etree.Element(_nc("filter"), type="subtree")
            flt.append(_parse_xml(self.filter, "subtree filter"))
            return flt
        nsmap = {p: u for p, u in (self.bindings or ()) if p}
        flt = etree.Element(_nc("filter"), nsmap=nsmap or None)
        flt.set("type", "xpath")
        flt.set("select", self.filter)
        return flt


class Request:
    """A send-once NETCONF request.

    Exactly one of ``operation`` (typed) and ``payload`` (an lxml element for
    an untyped request) is set.
    """

    def __init__(self, operation=None, payload=None):
        if (operation is None) == (payload is None):
            raise ValueError("a request carries either a typed operation or an untyped payload")
        self.operation = operation
        self.payload = payload
        self.message_id = None

    @property
    def typed(self):
        return self.operation is not None

    @property
    def name(self):
        if self.typed:
            return self.operation.name
        return etree.QName(self.payload).localname

    def to_element(self, message_id):
        if self.message_id is not None and self.message_id != message_id:
            raise RuntimeError(f"request already sent as message-id {self.message_id}")
        self.message_id = message_id
        rpc = etree.Element(_nc("rpc"), nsmap={None: BASE_NS_1_0})
        rpc.set("message-id", str(message_id))
        if self.typed:
            rpc.append(self.operation.to_element())
        else:
            for child in _operation_children(self.payload):
                rpc.append(child)
        return rpc

    def to_xml(self, message_id):
        ele = self.to_element(message_id)
        return etree.tostring(ele, xml_declaration=True, encoding="UTF-8").decode("utf-8")

    def __repr__(self):
        kind = "typed" if self.typed else "untyped"
        return f"<Request {kind} {self.name}>"


def _operation_children(payload):
    # A complete <rpc> document contributes its children; anything else is the
    # operation itself.
    if etree.QName(payload).localname == "rpc":
        return [deepcopy(child) for child in payload if isinstance(child.tag, str)]
    return [deepcopy(payload)]


def _parse_xml(text, what):
    try:
        root = etree.fromstring(text.strip().encode("utf-8"))
    except etree.XMLSyntaxError as e:
        raise MalformedInput(f"invalid XML in {what}: {e}") from e
    return root


def _read_xml_file(path):
    try:
        tree = etree.parse(path)
    except OSError as e:
        raise MalformedInput(f"unable to read RPC file {path!r}: {e}") from e
    except etree.XMLSyntaxError as e:
        raise MalformedInput(f"unable to parse RPC file {path!r}: {e}") from e
    return tree.getroot()


# ------------------- Builder -------------------

def build(source, params=(), bindings=None):
    """Turn an input-mode value plus optional parameters into a :class:`Request`.

    ``BareText("get")`` takes ``[filter]``; ``BareText("get-config")`` takes
    ``[datastore [filter]]``. Every other input produces an untyped request
    and takes no parameters.
    """
    params = [p for p in params if p is not None]

    if isinstance(source, BareText):
        name = source.text.strip()
        if name in TYPED_OPERATIONS:
            return _build_typed(name, params, bindings)

    if params:
        raise InvalidArgument(f"unexpected parameters {params!r} for an untyped RPC")

    if isinstance(source, BareText):
        try:
            payload = etree.Element(_nc(name))
        except ValueError as e:
            raise FormatError(f"{source.text!r} is not a valid RPC name") from e
    elif isinstance(source, InlineXml):
        payload = _parse_xml(source.text, "RPC text")
    elif isinstance(source, XmlFile):
        payload = _read_xml_file(source.path)
    else:
        raise TypeError(f"unknown input mode: {source!r}")

    if not _operation_children(payload):
        raise FormatError("rpc has no operation")

    request = Request(payload=payload)
    logger.debug("Built untyped request %r", request)
    return request


def _build_typed(name, params, bindings):
    if name == "get":
        if len(params) > 1:
            raise InvalidArgument("get takes at most one parameter: [xpath-filter]")
        operation = Operation(name, filter=params[0] if params else None, bindings=bindings)
    else:
        if len(params) > 2:
            raise InvalidArgument("get-config takes at most two parameters: [datastore] [xpath-filter]")
        datastore = Datastore.parse(params[0] if params else None)
        operation = Operation(name, filter=params[1] if len(params) > 1 else None,
                              datastore=datastore, bindings=bindings)
    if operation.filter and operation.filter.lstrip().startswith("<"):
        # fail now rather than at send time
        _parse_xml(operation.filter, "subtree filter")
    request = Request(operation=operation)
    logger.debug("Built typed request %r (datastore=%s, filter=%r)",
                 request, operation.datastore, operation.filter)
    return request
