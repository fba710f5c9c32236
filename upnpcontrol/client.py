import asyncio

from .const import DEFAULT_USER_AGENT, SUBSCRIPTION_TIMEOUT
from .errors import NoEventsError
from .subscription import SubscriptionManager
from .upnp import Device
from .util import _getLogger


class UPnPClient(object):
    """
    Control point for a single device: inspect its descriptions, call its
    actions and listen to changes of its state variables.

    >>> client = UPnPClient('http://192.168.1.20:49152/description.xml')
    >>> await client.async_call('RenderingControl', 'GetVolume',
    ...                         InstanceID=0, Channel='Master')
    {'CurrentVolume': '12'}
    >>> await client.async_on('Volume', print, force=True)
    """

    def __init__(
        self,
        location,
        session=None,
        http_auth=None,
        http_headers=None,
        user_agent=DEFAULT_USER_AGENT,
        ignore_urlbase=False,
        callback_host=None,
        callback_port=0,
        subscription_timeout=SUBSCRIPTION_TIMEOUT,
    ):
        self.device = Device(
            location,
            session=session,
            ignore_urlbase=ignore_urlbase,
            http_auth=http_auth,
            http_headers=http_headers,
            user_agent=user_agent,
        )
        self.subscriptions = SubscriptionManager(
            self.device,
            callback_host=callback_host,
            callback_port=callback_port,
            subscription_timeout=subscription_timeout,
        )
        # variable name -> listeners, in the order they were added
        self._variable_listeners = {}
        # variable name -> id of the service it is subscribed through
        self._variable_services = {}
        self._log = _getLogger("UPnPClient")

    def __repr__(self):
        return "<UPnPClient '%s'>" % (self.device.location)

    async def async_get_device_description(self):
        return await self.device.async_get_device_description()

    async def async_has_service(self, service_id):
        return await self.device.async_has_service(service_id)

    async def async_get_service_description(self, service_id):
        return await self.device.async_get_service_description(service_id)

    async def async_find_variable_service(self, variable, include_non_evented=False):
        return await self.device.async_find_variable_service(
            variable, include_non_evented
        )

    async def async_call(self, service_id, action_name, params=None, **kwargs):
        return await self.device.async_call(service_id, action_name, params, **kwargs)

    async def async_subscribe(self, service_id, listener):
        return await self.subscriptions.async_subscribe(service_id, listener)

    async def async_unsubscribe(self, service_id, listener):
        return await self.subscriptions.async_unsubscribe(service_id, listener)

    def has_subscriptions(self):
        return self.subscriptions.has_subscriptions()

    def add_error_listener(self, listener):
        return self.subscriptions.add_error_listener(listener)

    def remove_error_listener(self, listener):
        return self.subscriptions.remove_error_listener(listener)

    async def _async_handle_state_update(self, event):
        for listener in list(self._variable_listeners.get(event.name, ())):
            try:
                result = listener(event.value)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                self._log.exception("%s: error in listener %r", event.name, listener)

    async def async_on(self, variable, listener, force=False):
        """
        Call `listener` with the new value whenever `variable` changes. With
        `force`, variables the device doesn't declare as evented are accepted
        too (some devices only report them through 'LastChange').

        Returns False if `listener` was already registered. The service is
        subscribed again either way, which restores a subscription dropped by
        a failed renewal.
        """
        service_id = await self.device.async_find_variable_service(variable, force)
        if service_id is None:
            raise NoEventsError(variable)

        listeners = self._variable_listeners.setdefault(variable, [])
        added = listener not in listeners
        if added:
            listeners.append(listener)
        self._variable_services[variable] = service_id
        self._log.debug("Listening to %s through %s", variable, service_id)
        try:
            await self.subscriptions.async_subscribe(
                service_id, self._async_handle_state_update
            )
        except Exception:
            if added:
                self._remove_variable_listener(variable, listener)
            raise
        return added

    def _remove_variable_listener(self, variable, listener):
        listeners = self._variable_listeners.get(variable, [])
        if listener not in listeners:
            return None
        listeners.remove(listener)
        if listeners:
            return None
        del self._variable_listeners[variable]
        return self._variable_services.pop(variable)

    async def async_off(self, variable, listener):
        """
        Stop calling `listener` for `variable`. The service subscription is
        dropped once nothing listens to any of its variables.
        """
        if listener not in self._variable_listeners.get(variable, ()):
            return False
        service_id = self._remove_variable_listener(variable, listener)
        if service_id is not None and service_id not in self._variable_services.values():
            await self.subscriptions.async_unsubscribe(
                service_id, self._async_handle_state_update
            )
        return True

    async def async_remove_all_listeners(self, notify_device=False):
        self._variable_listeners.clear()
        self._variable_services.clear()
        await self.subscriptions.async_clear(notify_device=notify_device)

    async def async_close(self):
        await self.async_remove_all_listeners()
        await self.subscriptions.async_close()
        await self.device.async_close()
