"""
Server address parsing shared by the SFTP and mail adapters.
"""

from typing import Tuple


def split_host_port(server: str, default_port: int) -> Tuple[str, int]:
    """
    Split ``host``, ``host:port``, ``[ipv6]`` or ``[ipv6]:port`` into (host, port).

    A bare IPv6 literal (more than one ':' and no brackets) is taken as a host
    on the default port.
    """
    if server.startswith("["):
        addr, sep, rest = server[1:].partition("]")
        if sep and addr:
            if rest.startswith(":") and rest[1:].isdigit():
                return addr, int(rest[1:])
            if not rest:
                return addr, default_port
        return server, default_port

    if server.count(":") > 1:
        return server, default_port

    host, sep, port = server.rpartition(":")
    if sep and host and port.isdigit():
        return host, int(port)
    return server, default_port
