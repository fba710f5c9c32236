import ipaddress
import logging
from urllib.parse import urljoin

import ifaddr

from .const import DEFAULT_SERVICE_ID_PREFIX


def _getLogger(name):
    """
    Retrieve a logger instance. Checks if a handler is defined so we avoid the
    'No handlers could be found' message.
    """
    logger = logging.getLogger(name)
    # if not logging.root.handlers:
    #     logger.disabled = 1
    return logger


def absolute_url(base, url):
    """
    Resolve a (possibly relative) URL found in a description document against
    the URL the document was retrieved from.
    """
    return urljoin(base, url.strip())


def resolve_service_id(service_id):
    """
    Expand a bare service name such as 'RenderingControl' to its fully
    qualified form. Anything already containing a ':' is left untouched.
    """
    if ":" in service_id:
        return service_id
    return DEFAULT_SERVICE_ID_PREFIX + service_id


def get_addresses_ipv4():
    # Get all adapters on current machine
    adapters = ifaddr.get_adapters()
    # Ignore localhost and IPv6 addresses
    return [
        addr
        for iface in adapters
        for addr in iface.ips
        if addr.is_IPv4 and addr.ip != "127.0.0.1"
    ]


def get_callback_address(target_host):
    """
    Pick the local IPv4 address a device at `target_host` is most likely to
    reach us on: one on the same network if there is one, otherwise the first
    non-loopback address.
    """
    try:
        target = ipaddress.ip_address(target_host)
    except ValueError:
        target = None
    if target is not None and target.is_loopback:
        return "127.0.0.1"

    addresses = get_addresses_ipv4()
    for addr in addresses:
        network = ipaddress.ip_network(
            "%s/%d" % (addr.ip, addr.network_prefix), strict=False
        )
        if target is not None and target in network:
            return addr.ip
    if addresses:
        return addresses[0].ip
    return "127.0.0.1"
