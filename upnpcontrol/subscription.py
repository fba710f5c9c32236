import asyncio
from collections import defaultdict
from urllib.parse import urlparse

import aiohttp

from .const import SUBSCRIPTION_TIMEOUT, SUBSCRIPTION_TIMEOUT_MIN
from .errors import (
    SubscribeError,
    SubscriptionRenewalError,
    UnexpectedResponse,
    UnsubscribeError,
)
from .events import parse_events
from .notify import NotifyServer
from .util import _getLogger, get_callback_address, resolve_service_id


def renewal_delay(timeout, margin=SUBSCRIPTION_TIMEOUT_MIN, floor=SUBSCRIPTION_TIMEOUT_MIN):
    """
    Seconds to wait before renewing a subscription granted for `timeout`
    seconds.
    """
    return max(timeout - margin, floor)


def _parse_timeout(lc_headers):
    try:
        timeout_str = lc_headers["timeout"].lower()
    except KeyError:
        raise UnexpectedResponse(
            'Event subscription call returned without a "Timeout" header'
        )
    if not timeout_str.startswith("second-"):
        raise UnexpectedResponse(
            "Event subscription call returned an invalid timeout value: %r"
            % timeout_str
        )
    timeout_str = timeout_str[len("Second-"):].strip()
    try:
        return None if timeout_str == "infinite" else int(timeout_str)
    except ValueError:
        raise UnexpectedResponse(
            'Event subscription call returned a timeout value which wasn\'t "infinite" or an integer'
        )


def parse_subscription_response(headers):
    """
    Return (sid, timeout) from the headers of a SUBSCRIBE response. The timeout
    is None when the device granted an infinite subscription.
    """
    lc_headers = {k.lower(): v for k, v in headers.items()}
    try:
        sid = lc_headers["sid"]
    except KeyError:
        raise UnexpectedResponse(
            'Event subscription call returned without a "SID" header'
        )
    return sid, _parse_timeout(lc_headers)


def parse_renewal_response(headers):
    """
    Return the timeout from the headers of a renewal response.
    """
    lc_headers = {k.lower(): v for k, v in headers.items()}
    return _parse_timeout(lc_headers)


def _is_success(status):
    return 200 <= status < 300


class Subscription(object):
    """
    A live subscription to the events of one service. Listeners are kept in
    the order they were added and each is held at most once.
    """

    def __init__(self, service_id, sid, url, listeners=None):
        self.service_id = service_id
        self.sid = sid
        self.url = url
        self.listeners = list(listeners or [])
        self.timer = None
        self.delay = None

    def __repr__(self):
        return "<Subscription service_id='%s' sid='%s'>" % (self.service_id, self.sid)

    def add_listener(self, listener):
        if listener in self.listeners:
            return False
        self.listeners.append(listener)
        return True

    def remove_listener(self, listener):
        try:
            self.listeners.remove(listener)
        except ValueError:
            return False
        return True


class SubscriptionManager(object):
    """
    Keeps at most one subscription per service of a `Device`, shared between
    any number of listeners, renews each one before it expires and runs the
    `NotifyServer` the device sends events to for as long as any subscription
    exists.

    Subscribe, renew, unsubscribe and clear are serialised per service. A
    renewal happens in the background, so its failure is reported to the
    callbacks added with `add_error_listener` (or logged when there are none).

    Notifications are answered as soon as they are decoded; their events are
    handed to listeners afterwards by a single task, in arrival order. This
    lets a listener unsubscribe (or clear) from inside its own callback.
    """

    def __init__(
        self,
        device,
        callback_host=None,
        callback_port=0,
        subscription_timeout=SUBSCRIPTION_TIMEOUT,
    ):
        self.device = device
        self.callback_host = callback_host
        self.callback_port = callback_port
        self.subscription_timeout = subscription_timeout

        self._subscriptions = {}
        self._locks = defaultdict(asyncio.Lock)
        self._notify_server = None
        self._notify_lock = asyncio.Lock()
        self._pending = 0
        self._error_listeners = []
        self._tasks = set()
        # (subscription, events) waiting to be handed to listeners
        self._events = None
        self._dispatcher = None
        self._log = _getLogger("SubscriptionManager")

    @property
    def notify_server(self):
        return self._notify_server

    def has_subscriptions(self):
        return bool(self._subscriptions)

    def get_subscription(self, service_id):
        return self._subscriptions.get(resolve_service_id(service_id))

    def add_error_listener(self, listener):
        if listener in self._error_listeners:
            return False
        self._error_listeners.append(listener)
        return True

    def remove_error_listener(self, listener):
        try:
            self._error_listeners.remove(listener)
        except ValueError:
            return False
        return True

    async def _async_acquire_notify_server(self, event_sub_url):
        async with self._notify_lock:
            if self._notify_server is None:
                host = self.callback_host or get_callback_address(
                    urlparse(event_sub_url).hostname
                )
                self._notify_server = NotifyServer(
                    self._async_handle_notification, host=host, port=self.callback_port
                )
            try:
                await self._notify_server.async_start()
            except Exception:
                self._notify_server = None
                raise
            self._pending += 1
            return self._notify_server

    async def _async_stop_notify_server(self):
        async with self._notify_lock:
            if self._notify_server is None:
                return
            if self._subscriptions or self._pending:
                return
            notify_server, self._notify_server = self._notify_server, None
            await notify_server.async_stop()

    def _schedule_renewal(self, subscription, timeout):
        if timeout is None:
            # Infinite subscriptions are still renewed, at our requested rate
            timeout = self.subscription_timeout
        subscription.delay = renewal_delay(timeout)
        self._log.debug(
            "%s: renewing %s in %ss",
            subscription.service_id,
            subscription.sid,
            subscription.delay,
        )
        loop = asyncio.get_running_loop()
        return loop.call_later(
            subscription.delay, self._renewal_due, subscription.service_id
        )

    def _renewal_due(self, service_id):
        task = asyncio.ensure_future(self._async_renew_in_background(service_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _async_renew_in_background(self, service_id):
        try:
            await self.async_renew_subscription(service_id)
        except Exception as exc:
            self._report_error(service_id, exc)

    def _report_error(self, service_id, exc):
        if not self._error_listeners:
            self._log.error("Renewal of subscription to %s failed: %s", service_id, exc)
            return
        for listener in list(self._error_listeners):
            listener(service_id, exc)

    async def async_subscribe(self, service_id, listener):
        """
        Add `listener` to the subscription of a service, subscribing to the
        service first if nothing is listening to it yet. The listener is called
        with each `Event` the service notifies.
        """
        service_id = resolve_service_id(service_id)
        async with self._locks[service_id]:
            subscription = self._subscriptions.get(service_id)
            if subscription is not None:
                subscription.add_listener(listener)
                return subscription

            service = await self.device.async_get_service(service_id)
            notify_server = await self._async_acquire_notify_server(
                service.event_sub_url
            )
            try:
                status, headers, _ = await self.device.async_request(
                    "SUBSCRIBE",
                    service.event_sub_url,
                    headers={
                        "HOST": urlparse(service.event_sub_url).netloc,
                        "CALLBACK": "<%s>" % notify_server.callback_url,
                        "NT": "upnp:event",
                        "TIMEOUT": "Second-%d" % self.subscription_timeout,
                    },
                )
                if not _is_success(status):
                    raise SubscribeError(status)
                sid, timeout = parse_subscription_response(headers)

                subscription = Subscription(
                    service_id, sid, service.event_sub_url, [listener]
                )
                self._log.debug("%s: subscribed with SID %s", service_id, sid)
                subscription.timer = self._schedule_renewal(subscription, timeout)
                self._subscriptions[service_id] = subscription
            finally:
                self._pending -= 1
                if service_id not in self._subscriptions:
                    await self._async_stop_notify_server()
            return subscription

    async def async_renew_subscription(self, service_id):
        """
        Renew the subscription to a service and schedule the next renewal.
        Normally called by the renewal timer. A failed renewal drops the
        subscription.
        """
        service_id = resolve_service_id(service_id)
        async with self._locks[service_id]:
            subscription = self._subscriptions.get(service_id)
            if subscription is None:
                return None
            if subscription.timer is not None:
                subscription.timer.cancel()
                subscription.timer = None

            try:
                status, headers, _ = await self.device.async_request(
                    "SUBSCRIBE",
                    subscription.url,
                    headers={
                        "HOST": urlparse(subscription.url).netloc,
                        "SID": subscription.sid,
                        "TIMEOUT": "Second-%d" % self.subscription_timeout,
                    },
                )
                if not _is_success(status):
                    raise SubscriptionRenewalError(status, service_id)
                timeout = parse_renewal_response(headers)
            except Exception:
                if self._subscriptions.get(service_id) is subscription:
                    del self._subscriptions[service_id]
                await self._async_stop_notify_server()
                raise

            if self._subscriptions.get(service_id) is subscription:
                subscription.timer = self._schedule_renewal(subscription, timeout)
            return timeout

    async def async_unsubscribe(self, service_id, listener):
        """
        Remove `listener` from the subscription of a service. When it was the
        last one, the subscription is cancelled on the device. Returns False
        if the listener wasn't subscribed.
        """
        service_id = resolve_service_id(service_id)
        async with self._locks[service_id]:
            subscription = self._subscriptions.get(service_id)
            if subscription is None or not subscription.remove_listener(listener):
                return False
            if subscription.listeners:
                return True

            if subscription.timer is not None:
                subscription.timer.cancel()
                subscription.timer = None
            try:
                status, _, _ = await self.device.async_request(
                    "UNSUBSCRIBE",
                    subscription.url,
                    headers={
                        "HOST": urlparse(subscription.url).netloc,
                        "SID": subscription.sid,
                    },
                )
                if not _is_success(status):
                    raise UnsubscribeError(status)
                self._log.debug("%s: unsubscribed %s", service_id, subscription.sid)
            finally:
                if self._subscriptions.get(service_id) is subscription:
                    del self._subscriptions[service_id]
                await self._async_stop_notify_server()
            return True

    async def _async_unsubscribe_quietly(self, subscription):
        try:
            status, _, _ = await self.device.async_request(
                "UNSUBSCRIBE",
                subscription.url,
                headers={
                    "HOST": urlparse(subscription.url).netloc,
                    "SID": subscription.sid,
                },
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            self._log.warning(
                "%s: unable to unsubscribe: %s", subscription.service_id, exc
            )
            return
        if not _is_success(status):
            self._log.warning(
                "%s: unsubscribe returned HTTP %s", subscription.service_id, status
            )

    async def async_clear(self, notify_device=False):
        """
        Drop every subscription and stop the notification listener. The
        device isn't told unless `notify_device` is set, in which case
        failures to unsubscribe are only logged.

        Each service is cleared under its lock, so a subscribe or renewal
        still waiting on the device finishes first and is then dropped too.
        """
        for service_id in list(self._locks):
            async with self._locks[service_id]:
                subscription = self._subscriptions.pop(service_id, None)
                if subscription is None:
                    continue
                if subscription.timer is not None:
                    subscription.timer.cancel()
                    subscription.timer = None
                if notify_device:
                    await self._async_unsubscribe_quietly(subscription)
                else:
                    self._log.debug(
                        "%s: dropping SID %s", service_id, subscription.sid
                    )

        await self._async_stop_notify_server()

    async def _async_handle_notification(self, sid, body):
        for subscription in list(self._subscriptions.values()):
            if subscription.sid == sid:
                break
        else:
            self._log.debug("Ignoring notification for unknown SID %s", sid)
            return

        events = parse_events(body)
        self._log.debug("<< %s: %s", subscription.service_id, events)
        if self._events is None:
            self._events = asyncio.Queue()
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.ensure_future(self._async_dispatch_events())
        self._events.put_nowait((subscription, events))

    async def _async_dispatch_events(self):
        while True:
            subscription, events = await self._events.get()
            try:
                await self._async_deliver(subscription, events)
            finally:
                self._events.task_done()

    async def _async_deliver(self, subscription, events):
        for listener in list(subscription.listeners):
            for event in events:
                # Earlier callbacks may have unsubscribed or cleared
                if self._subscriptions.get(subscription.service_id) is not subscription:
                    return
                if listener not in subscription.listeners:
                    break
                try:
                    result = listener(event)
                    if asyncio.iscoroutine(result):
                        await result
                except Exception:
                    self._log.exception(
                        "%s: error in event listener %r",
                        subscription.service_id,
                        listener,
                    )

    async def async_close(self):
        await self.async_clear()
        for task in list(self._tasks):
            task.cancel()
        dispatcher, self._dispatcher = self._dispatcher, None
        if dispatcher is not None and dispatcher is not asyncio.current_task():
            dispatcher.cancel()
            await asyncio.gather(dispatcher, return_exceptions=True)
