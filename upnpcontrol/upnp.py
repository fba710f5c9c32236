import asyncio

import aiohttp

from .const import DEFAULT_USER_AGENT, HTTP_TIMEOUT
from .description import parse_device_description, parse_service_description
from .errors import InvalidActionException, NoServiceError
from .soap import SOAP
from .util import _getLogger, resolve_service_id


class Device(object):
    """
    UPNP Device represention.
    This class represents an UPnP device. `location` is an URL to a control XML
    file, per UPnP standard section 2.3 ('Device Description'). This MUST match
    the URL as given in the 'Location' header when using discovery (SSDP).

    The device description is fetched on first use and kept for the lifetime of
    the instance, as is each service description once it has been needed.

    Example:

    >>> device = Device('http://192.168.1.254:80/upnp/IGD.xml')
    >>> description = await device.async_get_device_description()
    >>> for service_id in description.services:
    ...     print(service_id)
    ...
    urn:upnp-org:serviceId:layer3f
    urn:upnp-org:serviceId:wancic
    urn:upnp-org:serviceId:wanipc:Internet
    """

    def __init__(
        self,
        location,
        session=None,
        ignore_urlbase=False,
        http_auth=None,
        http_headers=None,
        user_agent=DEFAULT_USER_AGENT,
    ):
        self.location = location
        self._ignore_urlbase = ignore_urlbase
        self._log = _getLogger("Device")

        self._owns_session = session is None
        self._session = session
        self.http_auth = aiohttp.BasicAuth(*http_auth) if http_auth else None
        self.http_headers = dict(http_headers or {})
        self.http_headers.setdefault("User-Agent", user_agent)

        self._device_description = None
        self._service_descriptions = {}
        self._description_lock = asyncio.Lock()

    def __repr__(self):
        return "<Device '%s'>" % (self.location)

    async def async_request(self, method, url, headers=None):
        """
        Issue a request and return (status, headers, body). HTTP error
        statuses are returned rather than raised.
        """
        request_headers = dict(self.http_headers)
        request_headers.update(headers or {})
        async with self.session.request(
            method,
            url,
            headers=request_headers,
            auth=self.http_auth,
            timeout=aiohttp.ClientTimeout(total=HTTP_TIMEOUT),
        ) as resp:
            body = await resp.read()
            return resp.status, resp.headers, body

    @property
    def session(self):
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _async_fetch(self, url):
        self._log.debug("Reading %s", url)
        async with self.session.get(
            url,
            headers=self.http_headers,
            auth=self.http_auth,
            timeout=aiohttp.ClientTimeout(total=HTTP_TIMEOUT),
        ) as resp:
            resp.raise_for_status()
            return await resp.read()

    async def async_get_device_description(self):
        """
        Retrieve and parse the device description, once.
        """
        async with self._description_lock:
            if self._device_description is None:
                data = await self._async_fetch(self.location)
                self._device_description = parse_device_description(
                    data, self.location, ignore_urlbase=self._ignore_urlbase
                )
                for service in self._device_description.services.values():
                    self._log.debug(
                        "%s: Service %r at %r",
                        self.location,
                        service.service_id,
                        service.scpd_url,
                    )
        return self._device_description

    async def async_has_service(self, service_id):
        description = await self.async_get_device_description()
        return resolve_service_id(service_id) in description.services

    async def async_get_service(self, service_id):
        """
        Return the `ServiceRef` for `service_id`, raising NoServiceError if the
        device doesn't offer it.
        """
        service_id = resolve_service_id(service_id)
        description = await self.async_get_device_description()
        try:
            return description.services[service_id]
        except KeyError:
            raise NoServiceError(service_id)

    async def async_get_service_description(self, service_id):
        """
        Retrieve and parse the SCPD document of a service, once per service.
        """
        service = await self.async_get_service(service_id)
        async with self._description_lock:
            if service.service_id not in self._service_descriptions:
                data = await self._async_fetch(service.scpd_url)
                self._service_descriptions[service.service_id] = (
                    parse_service_description(data)
                )
        return self._service_descriptions[service.service_id]

    async def async_find_variable_service(self, variable, include_non_evented=False):
        """
        Return the id of the first service, in device description order, which
        has a state variable called `variable`. Unless `include_non_evented` is
        set, only variables which send events are considered. Returns None if
        no service qualifies.
        """
        description = await self.async_get_device_description()
        for service_id in description.services:
            service_description = await self.async_get_service_description(service_id)
            statevar = service_description.state_variables.get(variable)
            if statevar is None:
                continue
            if statevar.send_events or include_non_evented:
                return service_id
        return None

    async def async_call(self, service_id, action_name, params=None, **kwargs):
        """
        Call `action_name` on a service and return its declared outputs as
        text, exactly as the device sent them.
        """
        service = await self.async_get_service(service_id)
        service_description = await self.async_get_service_description(
            service.service_id
        )
        try:
            action = service_description.actions[action_name]
        except KeyError:
            raise InvalidActionException(action_name)

        arguments = dict(params or {}, **kwargs)
        # Preserve the order of call args, as listed in SCPD XML spec
        arg_in = {}
        for arg in action.inputs:
            if arg.name in arguments:
                arg_in[arg.name] = arguments.pop(arg.name)
        arg_in.update(arguments)

        self._log.debug(">> %s (%s)", action_name, arg_in)
        soap_client = SOAP(service.control_url, service.service_type, session=self.session)
        soap_response = await soap_client.async_call(
            action_name,
            arg_in,
            output_names=[arg.name for arg in action.outputs],
            http_auth=self.http_auth,
            http_headers=self.http_headers,
        )
        self._log.debug("<< %s (%s): %s", action_name, arg_in, soap_response)
        return soap_response

    async def async_close(self):
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
