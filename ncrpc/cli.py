#!/usr/bin/env python3
# ncrpc - send one NETCONF RPC and print the reply.
#
# - Builds the request before connecting, so bad input never opens a session
# - Typed <get>/<get-config> with optional XPath filter and datastore
# - Anything else is sent as-is: a bare RPC name, inline XML (-x) or a file (-i)
# - Reply XML goes to stdout (or -o FILE); -f narrows it with an XPath query
# - Step narration goes to stderr; --quiet silences it

import argparse
import getpass
import logging
import sys
import time

from ncrpc import namespaces
from ncrpc.config import DEFAULT_TIMEOUT, NETCONF_SSH_PORT, ClientConfig
from ncrpc.errors import NcrpcError, RpcReplyError, TransportError
from ncrpc.exchange import Exchange
from ncrpc.printer import ICON, Printer
from ncrpc.render import render, write_document
from ncrpc.reply import decode
from ncrpc.request import BareText, InlineXml, XmlFile, build
from ncrpc.session import NetconfSession, port_open

EPILOG = """\
Example usage:
    ncrpc -s 10.10.10.10 -u user -p pass -i rpc-request.xml
    ncrpc -s 10.10.10.10 -u user -p pass -o rpc-reply.xml get-chassis-inventory
    ncrpc -s 10.10.10.10 -u user -p pass -x '<rpc><get-system-uptime-information/></rpc>'
    ncrpc -s 10.10.10.10 -u user -p pass -n nc=urn:ietf:params:xml:ns:netconf:base:1.0 \\
          -f //nc:rpc-reply get-config running

Available RPCs:
    get [xpath-filter]                       send a <get> RPC with optional filter
    get-config [datastore] [xpath-filter]    send a <get-config> RPC with optional datastore
                                             (candidate, running, startup; default running)
                                             and filter
    anything else                            sent verbatim as <rpc><NAME/></rpc>
"""


def build_parser():
    parser = argparse.ArgumentParser(
        prog="ncrpc",
        description="Send a NETCONF RPC over SSH and print the reply",
        epilog=EPILOG,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("-s", "--server", default="localhost", help="SSH server IP address or domain name (default: localhost)")
    parser.add_argument("-t", "--port", type=int, default=NETCONF_SSH_PORT, help=f"SSH server port (default: {NETCONF_SSH_PORT})")
    parser.add_argument("-u", "--user", default=None, help="Username for connecting to the server")
    parser.add_argument("-p", "--password", default=None,
                        help="Password; env:VAR and file:PATH read it from elsewhere (default: $NCRPC_PASSWORD or prompt)")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("-x", "--xml", dest="mode", action="store_const", const="xml",
                      help="RPC is given as XML text")
    mode.add_argument("-i", "--input", dest="mode", action="store_const", const="file",
                      help="RPC is the name of a file holding the XML request")
    parser.add_argument("-o", "--output", default=None, help="File to write the XML reply to")
    parser.add_argument("-f", "--filter", default=None, help="XPath query applied to the reply")
    parser.add_argument("-n", "--namespaces", default=None,
                        help='Namespace bindings for XPath, "prefix1=uri1 prefix2=uri2 ..."')
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT,
                        help=f"Seconds to wait for connect and for the reply (default: {DEFAULT_TIMEOUT:g})")
    parser.add_argument("--device", default="default", help="ncclient device handler, e.g. junos, iosxe (default: default)")
    parser.add_argument("--hostkey-verify", action="store_true", help="Verify the server's SSH host key")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable ncclient/paramiko DEBUG logging to stderr")
    parser.add_argument("--no-color", action="store_true", help="Disable ANSI colors")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only print the reply")
    parser.add_argument("rpc", nargs="?", help="RPC name, XML text (-x) or file name (-i)")
    parser.add_argument("params", nargs="*", help="get/get-config parameters")
    return parser


def input_source(args):
    if args.mode == "xml":
        return InlineXml(args.rpc)
    if args.mode == "file":
        return XmlFile(args.rpc)
    return BareText(args.rpc)


def connect(config, p: Printer):
    p.step("Preflight", ICON["preflight"], f"Checking TCP reachability to {config.host}:{config.port}")
    if not port_open(config.host, config.port):
        raise TransportError(f"TCP {config.host}:{config.port} is CLOSED")
    p.ok(f"TCP {config.host}:{config.port} is OPEN")
    p.step("Connect", ICON["connect"], f"NETCONF over SSH to {config.host}:{config.port}")
    t0 = time.perf_counter()
    session = NetconfSession.connect(config)
    p.ok(f"Connected ({time.perf_counter() - t0:.2f}s)")
    return session


def run(args, p: Printer):
    p.section("NETCONF RPC")
    p.step("Plan", ICON["plan"], "Inputs")
    p.info(f"Server: {args.server}:{args.port}  User: {args.user}")
    p.info(f"RPC: {args.rpc}  Params: {args.params or '-'}  Mode: {args.mode or 'text'}")

    p.step("Build", ICON["build"], "Construct the request")
    bindings = namespaces.parse(args.namespaces)
    request = build(input_source(args), args.params, bindings)
    p.ok(f"{'Typed' if request.typed else 'Untyped'} <{request.name}> request ready")

    config = ClientConfig.from_args(args)
    if config.password is None and config.username and sys.stdin.isatty():
        config.password = getpass.getpass(f"{config.username}@{config.host} password: ")

    with connect(config, p) as session:
        p.step("Send", ICON["send"], f"Submit <{request.name}> and wait up to {config.timeout:g}s")
        exchange = Exchange(session, request, timeout=config.timeout)
        t0 = time.perf_counter()
        raw = exchange.run()
        p.ok(f"Reply for message-id {exchange.message_id} ({time.perf_counter() - t0:.2f}s)")

    p.step("Reply", ICON["reply"], "Decode the reply")
    reply = decode(raw, request.typed)
    for err in reply.errors:
        p.warn(f"rpc-error {err.severity}: {err.tag} {err.message or ''}".rstrip())

    p.step("Render", ICON["render"], args.output or "stdout")
    if args.filter:
        render(reply.document, args.filter, bindings)
    if args.output:
        write_document(reply.document, args.output)
    elif not args.filter:
        for document in reply.documents():
            render(document)

    if reply.failed:
        raise RpcReplyError(reply.errors)
    p.step("Done", ICON["done"], "Session closed")


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.rpc:
        parser.error("expected the name of RPC after options")

    if args.debug:
        logging.basicConfig(stream=sys.stderr, level=logging.DEBUG)

    p = Printer(enable_color=not args.no_color, quiet=args.quiet)
    try:
        run(args, p)
    except RpcReplyError as e:
        p.fail(str(e))
        return 2
    except NcrpcError as e:
        p.fail(str(e))
        return 1
    except KeyboardInterrupt:
        p.fail("Aborted by user.")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
