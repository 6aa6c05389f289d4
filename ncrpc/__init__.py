"""Send a NETCONF RPC, correlate its reply and print it."""
from ncrpc.errors import (
    Cancelled,
    FormatError,
    InvalidArgument,
    MalformedInput,
    NcrpcError,
    QueryError,
    ReplyTimeout,
    RpcReplyError,
    SendFailed,
    TransportError,
)

__version__ = "0.1.0"
