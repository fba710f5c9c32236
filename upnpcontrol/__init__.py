# Copyright (c) 2012-2016, Ferry Boender <ferry.boender@gmail.com>
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in
# all copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

"""
This module provides an UPnP Control Point (client) for a single device whose
description URL is already known. It reads the device and service
descriptions (SCPD), calls actions using a minimal SOAP implementation and
subscribes to state variable events (GENA), running the small HTTP server the
device delivers its notifications to.

The usual flow for working with an UPnP device is:

- Inspect the Device capabilities.

  The device description lists the services of the device. Each service has
  its own description listing the actions it supports and the state variables
  it keeps. Both are fetched on first use and cached for the lifetime of the
  client.

- Call an Action using SOAP.

  `UPnPClient.async_call(service_id, action_name, **arguments)` sends the
  arguments in the order the service declares them and returns the declared
  outputs as text. A fault answer raises `SOAPError`.

- Subscribe to events.

  `UPnPClient.async_subscribe(service_id, listener)` calls `listener` with an
  `Event` for each change the service notifies. Any number of listeners share
  one subscription per service, which is renewed in the background until the
  last listener is removed. `UPnPClient.async_on(variable, listener)` does the
  same for a single state variable.

Service ids may be given in full ('urn:upnp-org:serviceId:RenderingControl')
or as a bare name ('RenderingControl').

Example:

------------------------------------------------------------------------------
import asyncio
import upnpcontrol

async def main():
    client = upnpcontrol.UPnPClient('http://192.168.1.20:49152/description.xml')
    description = await client.async_get_device_description()
    print("%s: %s" % (description.friendly_name, description.model_description))
    for service_id in description.services:
        service = await client.async_get_service_description(service_id)
        print("   %s" % service_id)
        for action in service.actions.values():
            print("      %s" % action.name)
            for arg in action.inputs:
                print("          in: %s (%s)" % (arg.name, arg.related_state_variable))
            for arg in action.outputs:
                print("         out: %s (%s)" % (arg.name, arg.related_state_variable))
    await client.async_close()

asyncio.run(main())
------------------------------------------------------------------------------

Useful Links:

* https://embeddedinn.wordpress.com/tutorials/upnp-device-architecture/
* http://upnp.org/specs/arch/UPnP-arch-DeviceArchitecture-v1.1.pdf
"""
from upnpcontrol import (  # noqa: F401
    client, const, description, errors, events, marshal, notify, soap, subscription,
    upnp, util
)
from .client import UPnPClient
from .description import (
    DeviceDescription, ServiceDescription, parse_device_description, parse_service_description
)
from .errors import (
    UPNPError, NoServiceError, InvalidActionException, NoEventsError, SOAPError,
    SubscribeError, SubscriptionRenewalError, UnsubscribeError, UnexpectedResponse
)
from .events import Event
from .subscription import SubscriptionManager
from .upnp import Device

__all__ = [
    "UPnPClient", "Device", "SubscriptionManager", "Event", "DeviceDescription",
    "ServiceDescription", "parse_device_description", "parse_service_description",
    "UPNPError", "NoServiceError", "InvalidActionException", "NoEventsError", "SOAPError",
    "SubscribeError", "SubscriptionRenewalError", "UnsubscribeError", "UnexpectedResponse"
]
