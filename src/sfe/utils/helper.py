import getpass
import os
import platform
import socket


def now_stamp() -> str:
    import datetime as _dt
    return _dt.datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def machine_name() -> str:
    return platform.node() or socket.gethostname()


def user_name() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return os.environ.get("USERNAME", "")


def user_domain() -> str:
    """USERDOMAIN on Windows; the machine name elsewhere, as Windows does for local accounts."""
    return os.environ.get("USERDOMAIN") or machine_name()


def local_ip_address() -> str:
    try:
        infos = socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET)
    except OSError:
        return "Not connected to the internet"
    for info in infos:
        addr = info[4][0]
        if addr:
            return addr
    return "Could not get IP address"
