import os
from dataclasses import dataclass
from typing import Optional

from ncrpc.errors import InvalidArgument

NETCONF_SSH_PORT = 830
DEFAULT_TIMEOUT = 100.0
PASSWORD_ENV = "NCRPC_PASSWORD"


def parse_password_arg(password):
    """Resolve ``env:VAR`` and ``file:PATH`` password forms to the secret itself."""
    if password:
        if password.startswith("env:"):
            _, key = password.split(":", 1)
            try:
                password = os.environ[key]
            except KeyError:
                raise InvalidArgument(f"password variable {key} is not set", stage="config") from None
        elif password.startswith("file:"):
            _, path = password.split(":", 1)
            try:
                with open(path) as f:
                    password = f.read().rstrip("\n")
            except OSError as e:
                raise InvalidArgument(f"unable to read password file: {e}", stage="config") from e
    return password


@dataclass
class ClientConfig:
    """Everything needed to open a session and run one exchange."""
    host: str
    port: int = NETCONF_SSH_PORT
    username: Optional[str] = None
    password: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    hostkey_verify: bool = False
    device: str = "default"
    debug: bool = False

    @classmethod
    def from_args(cls, args):
        password = parse_password_arg(args.password) or os.environ.get(PASSWORD_ENV)
        port = args.port if args.port else NETCONF_SSH_PORT
        return cls(
            host=args.server,
            port=port,
            username=args.user,
            password=password,
            timeout=args.timeout,
            hostkey_verify=args.hostkey_verify,
            device=args.device,
            debug=args.debug,
        )
