import aiohttp
from lxml import etree

import upnpcontrol as upnp

from tests import async_server
from tests.async_server import AsyncServerTestCase
from tests.const import (
    ASYNC_SERVER_ADDR,
    AV_TRANSPORT,
    CONNECTION_MANAGER,
    DEVICE_LOCATION,
    RENDERING_CONTROL,
    TEST_CALLACTION_GETVOLUME,
    TEST_CALLACTION_PARTIAL,
    TEST_CALLACTION_UPNPERROR,
)
from tests.helpers import async_test


class TestDevice(AsyncServerTestCase):
    async def make_device(self, **kwargs):
        self.session = aiohttp.ClientSession()
        return upnp.Device(DEVICE_LOCATION, session=self.session, **kwargs)

    def tearDown(self):
        if getattr(self, "session", None) is not None:
            self.loop.run_until_complete(self.session.close())
            self.session = None
        super(TestDevice, self).tearDown()

    @async_test
    async def test_device_description_fetched_once(self):
        """
        The device description should be fetched on first use only.
        """
        device = await self.make_device()
        desc = await device.async_get_device_description()
        again = await device.async_get_device_description()
        self.assertIs(desc, again)
        self.assertEqual(desc.friendly_name, "Living Room Speaker")
        self.assertEqual(
            desc.services[RENDERING_CONTROL].control_url,
            "%s/RenderingControl/ctrl" % ASYNC_SERVER_ADDR,
        )
        self.assertEqual(len(async_server.requests_for("GET", "/xml/description.xml")), 1)

    @async_test
    async def test_user_agent(self):
        device = await self.make_device(user_agent="test-agent/1.0")
        await device.async_get_device_description()
        self.assertEqual(async_server.received[0].headers["User-Agent"], "test-agent/1.0")

    @async_test
    async def test_has_service(self):
        device = await self.make_device()
        self.assertTrue(await device.async_has_service("RenderingControl"))
        self.assertTrue(await device.async_has_service(AV_TRANSPORT))
        self.assertFalse(await device.async_has_service("SwitchPower"))

    @async_test
    async def test_service_description_cached(self):
        device = await self.make_device()
        desc = await device.async_get_service_description("RenderingControl")
        again = await device.async_get_service_description(RENDERING_CONTROL)
        self.assertIs(desc, again)
        self.assertIn("GetVolume", desc.actions)
        self.assertEqual(
            len(async_server.requests_for("GET", "/xml/RenderingControl.xml")), 1
        )

    @async_test
    async def test_no_service(self):
        device = await self.make_device()
        with self.assertRaises(upnp.NoServiceError) as ctx:
            await device.async_get_service_description("SwitchPower")
        self.assertEqual(ctx.exception.service_id, "urn:upnp-org:serviceId:SwitchPower")
        self.assertEqual(ctx.exception.code, "NO_SERVICE")

    @async_test
    async def test_find_variable_service(self):
        device = await self.make_device()
        self.assertIsNone(await device.async_find_variable_service("NOT_EXIST"))
        self.assertEqual(
            await device.async_find_variable_service("SourceProtocolInfo"),
            CONNECTION_MANAGER,
        )
        self.assertIsNone(await device.async_find_variable_service("Volume"))
        self.assertEqual(
            await device.async_find_variable_service("Volume", True), RENDERING_CONTROL
        )

    @async_test
    async def test_find_variable_service_first_match(self):
        """
        A variable offered by several services belongs to the first one listed.
        """
        device = await self.make_device()
        self.assertEqual(
            await device.async_find_variable_service("LastChange"), RENDERING_CONTROL
        )
        self.assertEqual(
            await device.async_find_variable_service("TransportState", True),
            AV_TRANSPORT,
        )

    @async_test
    async def test_call(self):
        async_server.responses[("POST", "/RenderingControl/ctrl")] = dict(
            text=TEST_CALLACTION_GETVOLUME, content_type="text/xml"
        )
        device = await self.make_device()
        ret = await device.async_call(
            "RenderingControl", "GetVolume", Channel="Master", InstanceID=0
        )
        self.assertEqual(ret, dict(CurrentVolume="12"))

        req = async_server.requests_for("POST", "/RenderingControl/ctrl")[0]
        self.assertEqual(
            req.headers["SOAPAction"],
            '"urn:schemas-upnp-org:service:RenderingControl:1#GetVolume"',
        )
        self.assertEqual(int(req.headers["Content-Length"]), len(req.body))
        action = etree.fromstring(req.body).find(
            ".//{urn:schemas-upnp-org:service:RenderingControl:1}GetVolume"
        )
        # Sent in the order the service declares its arguments
        self.assertEqual(
            [(child.tag, child.text) for child in action],
            [("InstanceID", "0"), ("Channel", "Master")],
        )

    @async_test
    async def test_call_params_mapping(self):
        async_server.responses[("POST", "/RenderingControl/ctrl")] = dict(
            text=TEST_CALLACTION_GETVOLUME, content_type="text/xml"
        )
        device = await self.make_device()
        ret = await device.async_call(
            RENDERING_CONTROL, "GetVolume", dict(InstanceID=0, Channel="Master")
        )
        self.assertEqual(ret, dict(CurrentVolume="12"))

    @async_test
    async def test_call_partial_outputs(self):
        async_server.responses[("POST", "/AVTransport/ctrl")] = dict(
            text=TEST_CALLACTION_PARTIAL, content_type="text/xml"
        )
        device = await self.make_device()
        ret = await device.async_call("AVTransport", "GetTransportInfo", InstanceID=0)
        self.assertEqual(ret, dict(CurrentTransportState="PLAYING"))

    @async_test
    async def test_call_no_action(self):
        device = await self.make_device()
        with self.assertRaises(upnp.InvalidActionException) as ctx:
            await device.async_call("RenderingControl", "Explode")
        self.assertEqual(ctx.exception.action_name, "Explode")
        self.assertEqual(async_server.requests_for("POST"), [])

    @async_test
    async def test_call_no_service(self):
        device = await self.make_device()
        with self.assertRaises(upnp.NoServiceError):
            await device.async_call("SwitchPower", "SetTarget", NewTargetValue=1)

    @async_test
    async def test_call_fault(self):
        """
        A fault answer should raise a SOAPError with the status and error code.
        """
        async_server.responses[("POST", "/RenderingControl/ctrl")] = dict(
            status=500, text=TEST_CALLACTION_UPNPERROR, content_type="text/xml"
        )
        device = await self.make_device()
        with self.assertRaises(upnp.SOAPError) as ctx:
            await device.async_call("RenderingControl", "GetVolume", InstanceID=0)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.error_code, 401)
        self.assertEqual(ctx.exception.error_description, "Invalid Action")

    @async_test
    async def test_auth(self):
        auth = ("myuser", "mypassword")
        device = await self.make_device(http_auth=auth)
        await device.async_get_device_description()
        self.assertEqual(
            async_server.received[0].headers["Authorization"],
            aiohttp.BasicAuth(*auth).encode(),
        )

    @async_test
    async def test_owned_session(self):
        device = upnp.Device(DEVICE_LOCATION)
        desc = await device.async_get_device_description()
        self.assertEqual(desc.model_name, "Speaker One")
        session = device.session
        await device.async_close()
        self.assertTrue(session.closed)
