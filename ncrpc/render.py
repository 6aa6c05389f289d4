"""Print reply documents, whole or narrowed by an XPath expression."""
import logging
import os
import sys

from lxml import etree

from ncrpc.errors import QueryError

logger = logging.getLogger(__name__)

# libxml2 node type codes
XML_ELEMENT_NODE = 1
XML_ATTRIBUTE_NODE = 2
XML_TEXT_NODE = 3
XML_PI_NODE = 7
XML_COMMENT_NODE = 8


def serialize(document):
    return etree.tostring(document, pretty_print=True, encoding="unicode")


def evaluate(document, expression, bindings=None):
    """Evaluate *expression* against *document* and return the node set as a list."""
    namespaces = bindings.as_dict() if bindings else None
    try:
        xpath = etree.XPath(expression, namespaces=namespaces)
        result = xpath(document)
    except etree.XPathError as e:
        raise QueryError(f"unable to evaluate xpath expression {expression!r}: {e}") from e
    except (TypeError, ValueError) as e:
        # lxml rejects unusable prefixes (e.g. empty) when registering them
        raise QueryError(f"failed to register namespaces {bindings!r}: {e}") from e
    if not isinstance(result, list):
        raise QueryError(f"xpath expression {expression!r} does not select a node set "
                         f"(got {type(result).__name__})")
    logger.debug("%r matched %d node(s)", expression, len(result))
    return result


def _qualified(namespace, name):
    return f"{namespace}:{name}" if namespace else name


# Keeps only namespace nodes: anything that is not the root, an element,
# text, comment, processing instruction or attribute.
_NAMESPACE_NODES = ("[.. and not(self::* or self::text() or self::comment()"
                    " or self::processing-instruction())"
                    " and count(. | ../@*) != count(../@*)]")


def namespace_owners(document, expression, bindings=None):
    """Pair every namespace node *expression* selects with the element it belongs to.

    lxml hands namespace nodes back as bare ``(prefix, uri)`` tuples, so the
    owners are recovered through the parent axis, one owner at a time.
    Returns ``(owner, (prefix, uri))`` pairs in owner document order.
    """
    namespaces = bindings.as_dict() if bindings else None
    selected = f"({expression}){_NAMESPACE_NODES}"
    try:
        owners = etree.XPath(f"{selected}/..", namespaces=namespaces)(document)
        of_owner = etree.XPath(f"{selected}[count(.. | $owner) = 1]", namespaces=namespaces)
        return [(owner, ns) for owner in owners for ns in of_owner(document, owner=owner)]
    except etree.XPathError as e:
        raise QueryError(f"unable to resolve namespace owners for {expression!r}: {e}") from e


def describe(node, owner=None):
    """One summary line for a node returned by :func:`evaluate`."""
    if isinstance(node, tuple):
        prefix, uri = node
        qname = etree.QName(owner)
        return (f'= namespace "{prefix or ""}"="{uri}" for node '
                f'{_qualified(qname.namespace, qname.localname)}')
    if isinstance(node, etree._Comment):
        return f'= node "comment": type {XML_COMMENT_NODE}'
    if isinstance(node, etree._ProcessingInstruction):
        return f'= node "{node.target}": type {XML_PI_NODE}'
    if isinstance(node, etree._Element):
        qname = etree.QName(node)
        return f'= element node "{_qualified(qname.namespace, qname.localname)}"'
    if getattr(node, "is_attribute", False):
        return f'= node "{etree.QName(node.attrname).localname}": type {XML_ATTRIBUTE_NODE}'
    return f'= node "text": type {XML_TEXT_NODE}'


def summarize(nodes, document, owners=()):
    """Format the node set; *owners* comes from :func:`namespace_owners`."""
    pending = list(owners)
    lines = [f"Result ({len(nodes)} nodes):"]
    for node in nodes:
        owner = None
        if isinstance(node, tuple):
            owner = document
            for i, (candidate, ns) in enumerate(pending):
                if ns == node:
                    owner = candidate
                    del pending[i]
                    break
        lines.append(describe(node, owner))
    return "\n".join(lines) + "\n"


def _write(text, sink):
    if isinstance(sink, (str, os.PathLike)):
        with open(sink, "w", encoding="utf-8") as f:
            f.write(text)
    else:
        sink.write(text)
        sink.flush()


def render(document, expression=None, bindings=None, sink=None):
    """Write *document* to *sink*, or only the nodes *expression* selects.

    *sink* is a text stream (stdout by default) or a file path. Output is
    produced in full before anything is written.
    """
    if sink is None:
        sink = sys.stdout
    if expression is None:
        text = serialize(document)
    else:
        nodes = evaluate(document, expression, bindings)
        owners = ()
        if any(isinstance(node, tuple) for node in nodes):
            owners = namespace_owners(document, expression, bindings)
        text = summarize(nodes, document, owners)
    _write(text, sink)


def write_document(document, path):
    """Save *document* to *path* with an XML declaration."""
    data = etree.tostring(document, pretty_print=True, xml_declaration=True, encoding="UTF-8")
    with open(path, "wb") as f:
        f.write(data)
    logger.info("Wrote reply to %s", path)
