import asyncio
import socket

from aiohttp import web
from lxml import etree

from .util import _getLogger


class NotifyServer(object):
    """
    HTTP endpoint devices send event notifications (NOTIFY requests) to.

    Every request is read in full and passed to `handler(sid, body)`, one
    request at a time in the order they arrived. The response is only sent
    once the handler returns, so it should not wait on anything that stops
    this server. The server binds an
    ephemeral port on `host`; `callback_url` is the address to hand out in
    SUBSCRIBE requests.
    """

    def __init__(self, handler, host="127.0.0.1", port=0):
        self.handler = handler
        self.host = host
        self.port = port
        self._requested_port = port
        self._runner = None
        self._site = None
        self._sock = None
        self._lock = asyncio.Lock()
        self._log = _getLogger("NotifyServer")

    def __repr__(self):
        return "<NotifyServer '%s'>" % (self.callback_url)

    @property
    def is_running(self):
        return self._site is not None

    @property
    def callback_url(self):
        if not self.is_running:
            return None
        return "http://%s:%d/" % (self.host, self.port)

    async def _handle_request(self, request):
        if request.method != "NOTIFY":
            return web.Response(status=405)
        sid = request.headers.get("SID")
        body = await request.read()
        async with self._lock:
            try:
                await self.handler(sid, body)
            except etree.XMLSyntaxError as exc:
                self._log.debug("Bad notification for SID %s: %s", sid, exc)
                return web.Response(status=400)
        return web.Response(status=200)

    async def async_start(self):
        if self.is_running:
            return
        app = web.Application()
        app.router.add_route("*", "/{_:.*}", self._handle_request)

        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self._sock.bind((self.host, self._requested_port))
            self.port = self._sock.getsockname()[1]

            runner = web.AppRunner(app, access_log=None)
            await runner.setup()
            try:
                site = web.SockSite(runner, self._sock)
                await site.start()
            except Exception:
                await runner.cleanup()
                raise
        except Exception:
            self._log.debug("Unable to listen on %s:%s", self.host, self._requested_port)
            self._sock.close()
            self._sock = None
            raise
        self._runner = runner
        self._site = site
        self._log.debug("Listening for notifications at %s", self.callback_url)

    async def async_stop(self):
        if not self.is_running:
            return
        self._log.debug("Stopping notification listener at %s", self.callback_url)
        self._site = None
        await self._runner.cleanup()
        self._runner = None
        self._sock.close()
        self._sock = None
