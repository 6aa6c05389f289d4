"""Typed failures raised by the RPC pipeline.

Every error carries the pipeline stage it came from so the CLI can print
``[stage] message`` and exit non-zero.
"""


class NcrpcError(Exception):
    stage = "client"

    def __init__(self, message, stage=None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage

    def __str__(self):
        return f"[{self.stage}] {self.args[0]}"


class FormatError(NcrpcError):
    stage = "parse"


class InvalidArgument(NcrpcError):
    stage = "build"


class MalformedInput(NcrpcError):
    stage = "build"


class TransportError(NcrpcError):
    stage = "connect"


class SendFailed(NcrpcError):
    stage = "send"


class ReplyTimeout(NcrpcError):
    stage = "receive"


class Cancelled(NcrpcError):
    stage = "receive"


class QueryError(NcrpcError):
    stage = "query"


class RpcReplyError(NcrpcError):
    """The server answered with one or more <rpc-error> elements."""

    stage = "reply"

    def __init__(self, errors):
        self.errors = list(errors)
        text = "; ".join(f"{e.tag}: {e.message}" if e.message else e.tag for e in self.errors)
        super().__init__(f"server returned rpc-error ({text})")
