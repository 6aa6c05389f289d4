import logging

from ncrpc.errors import FormatError

logger = logging.getLogger(__name__)


class BindingSet:
    """Ordered prefix -> namespace URI bindings used to resolve XPath prefixes."""

    def __init__(self, bindings=()):
        self._bindings = []
        for prefix, uri in bindings:
            self.add(prefix, uri)

    def add(self, prefix, uri):
        if any(p == prefix for p, _ in self._bindings):
            raise FormatError(f"duplicate namespace prefix {prefix!r}")
        self._bindings.append((prefix, uri))

    def as_dict(self):
        return dict(self._bindings)

    def __iter__(self):
        return iter(self._bindings)

    def __len__(self):
        return len(self._bindings)

    def __bool__(self):
        return bool(self._bindings)

    def __repr__(self):
        inner = " ".join(f"{p}={u}" for p, u in self._bindings)
        return f"BindingSet({inner!r})"


def parse(binding_string):
    """Parse ``"prefix1=uri1 prefix2=uri2 ..."`` into a :class:`BindingSet`.

    Each token is split on its first ``=``. Nothing is returned unless every
    token is well formed, and a prefix may appear only once.
    """
    if not binding_string:
        return BindingSet()
    pairs = []
    for token in binding_string.split():
        prefix, sep, uri = token.partition("=")
        if not sep:
            raise FormatError(f"invalid namespaces list format: {token!r} has no '='")
        pairs.append((prefix, uri))
    bindings = BindingSet(pairs)
    logger.debug("Parsed %d namespace binding(s): %r", len(bindings), bindings)
    return bindings
