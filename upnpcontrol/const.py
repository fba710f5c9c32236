import os
import platform

HTTP_TIMEOUT = 10

# Lifetime requested in SUBSCRIBE requests, in seconds
SUBSCRIPTION_TIMEOUT = 300
# Renew this many seconds before expiry, and never sooner than this
SUBSCRIPTION_TIMEOUT_MIN = 30

DEFAULT_SERVICE_ID_PREFIX = "urn:upnp-org:serviceId:"

SOAP_ENVELOPE_NS = "http://schemas.xmlsoap.org/soap/envelope/"
SOAP_ENCODING_STYLE = "http://schemas.xmlsoap.org/soap/encoding/"

DEFAULT_USER_AGENT = "%s/%s UPnP/1.1 uPnPControl/0.1.0" % (
    platform.system() or os.name,
    platform.release(),
)
