from urllib.parse import urlparse

import aiohttp
from lxml import etree

from .const import HTTP_TIMEOUT, SOAP_ENCODING_STYLE, SOAP_ENVELOPE_NS
from .errors import ERR_CODE_DESCRIPTIONS, SOAPError, UnexpectedResponse
from .util import _getLogger


def _to_text(value):
    if value is None:
        return ""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, bytes):
        return value.decode("utf8")
    return str(value)


class SOAP(object):
    """SOAP (Simple Object Access Protocol) implementation
    This class defines a simple SOAP client for calling the actions of one
    service at its control URL.
    """

    def __init__(self, url, service_type, session=None):
        self.url = url
        self.service_type = service_type
        self.session = session
        self._host = urlparse(self.url).netloc
        self._log = _getLogger("SOAP")

    def build_envelope(self, action_name, arg_in=None):
        """
        Return the request body for calling `action_name` with the arguments
        in `arg_in`, in iteration order. None is sent as an empty string.
        """
        envelope = etree.Element(
            etree.QName(SOAP_ENVELOPE_NS, "Envelope"), nsmap={"s": SOAP_ENVELOPE_NS}
        )
        envelope.set(etree.QName(SOAP_ENVELOPE_NS, "encodingStyle"), SOAP_ENCODING_STYLE)
        body = etree.SubElement(envelope, etree.QName(SOAP_ENVELOPE_NS, "Body"))
        action = etree.SubElement(
            body,
            etree.QName(self.service_type, action_name),
            nsmap={"u": self.service_type},
        )
        for name, value in (arg_in or {}).items():
            etree.SubElement(action, name).text = _to_text(value)
        return etree.tostring(envelope, xml_declaration=True, encoding="utf-8")

    def build_headers(self, action_name, body):
        return {
            "SOAPAction": '"%s#%s"' % (self.service_type, action_name),
            "Host": self._host,
            "Content-Type": 'text/xml; charset="utf-8"',
            "Content-Length": str(len(body)),
        }

    @staticmethod
    def parse_response(data, action_name, output_names):
        """
        Pick the declared outputs out of an action response. Outputs the
        device didn't send are left out of the result.
        """
        contents = etree.fromstring(data)
        response_name = "%sResponse" % action_name
        response_node = None
        for node in contents.iter(tag=etree.Element):
            if etree.QName(node).localname == response_name:
                response_node = node
                break
        if response_node is None:
            raise UnexpectedResponse(
                "Returned XML did not include an element which matches the tag name '%s'"
                % response_name
            )

        values = {}
        for node in response_node.iterchildren(tag=etree.Element):
            values[etree.QName(node).localname] = node.text or ""

        params_out = {}
        for name in output_names:
            if name in values:
                params_out[name] = values[name]
        return params_out

    @staticmethod
    def parse_fault(status_code, data):
        """
        Return a SOAPError built from a fault envelope.
        """
        try:
            contents = etree.fromstring(data)
        except (etree.XMLSyntaxError, ValueError):
            return SOAPError(status_code)

        error_code = None
        error_description = None
        for node in contents.iter(tag=etree.Element):
            name = etree.QName(node).localname
            if name == "errorCode" and error_code is None:
                try:
                    error_code = int((node.text or "").strip())
                except ValueError:
                    error_code = (node.text or "").strip() or None
            elif name == "errorDescription" and error_description is None:
                error_description = (node.text or "").strip()

        if error_description is None and isinstance(error_code, int):
            error_description = ERR_CODE_DESCRIPTIONS.get(error_code)
        return SOAPError(status_code, error_code, error_description)

    async def async_call(
        self, action_name, arg_in=None, output_names=(), http_auth=None, http_headers=None
    ):
        body = self.build_envelope(action_name, arg_in)
        headers = dict(http_headers or {})
        headers.update(self.build_headers(action_name, body))

        self._log.debug(">> %s %s", self.url, action_name)
        async with self.session.post(
            self.url,
            data=body,
            headers=headers,
            auth=http_auth,
            timeout=aiohttp.ClientTimeout(total=HTTP_TIMEOUT),
        ) as resp:
            data = await resp.read()
            if not 200 <= resp.status < 300:
                raise self.parse_fault(resp.status, data)

        params_out = self.parse_response(data, action_name, output_names)
        self._log.debug("<< %s %s: %s", self.url, action_name, params_out)
        return params_out
