"""
Parsing of the device description (the document found at a device's location)
and of service descriptions (SCPD documents) into plain immutable models.

Lists in these documents are always read with `findall`, so a list holding a
single element comes out the same shape as one holding many, and a missing
list comes out empty.
"""
from collections import namedtuple
from functools import partial

from lxml import etree

from .util import _getLogger, absolute_url

DeviceDescription = namedtuple(
    "DeviceDescription",
    [
        "device_type",
        "friendly_name",
        "manufacturer",
        "manufacturer_url",
        "model_name",
        "model_number",
        "model_description",
        "serial_number",
        "udn",
        "presentation_url",
        "url_base",
        "icons",
        "services",
    ],
)

Icon = namedtuple("Icon", ["mimetype", "width", "height", "depth", "url"])

ServiceRef = namedtuple(
    "ServiceRef",
    ["service_id", "service_type", "scpd_url", "control_url", "event_sub_url"],
)

ServiceDescription = namedtuple("ServiceDescription", ["actions", "state_variables"])

ActionSpec = namedtuple("ActionSpec", ["name", "inputs", "outputs"])

ArgumentSpec = namedtuple("ArgumentSpec", ["name", "related_state_variable"])

StateVariableSpec = namedtuple(
    "StateVariableSpec",
    [
        "name",
        "datatype",
        "send_events",
        "allowed_values",
        "allowed_value_range",
        "default_value",
    ],
)

_log = _getLogger("description")


def _int_or_none(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _read_icons(root, url_base):
    icons = []
    for node in root.findall("device/iconList/icon", namespaces=root.nsmap):
        findtext = partial(node.findtext, namespaces=root.nsmap, default="")
        icons.append(
            Icon(
                mimetype=findtext("mimetype").strip(),
                width=_int_or_none(findtext("width").strip()),
                height=_int_or_none(findtext("height").strip()),
                depth=_int_or_none(findtext("depth").strip()),
                url=absolute_url(url_base, findtext("url")),
            )
        )
    return icons


def _read_services(root, url_base):
    services = {}
    # The double slash in the XPath is deliberate, as services can be
    # listed in two places (Section 2.3 of uPNP device architecture v1.1)
    for node in root.findall("device//serviceList/service", namespaces=root.nsmap):
        findtext = partial(node.findtext, namespaces=root.nsmap, default="")
        service_id = findtext("serviceId").strip()
        if service_id in services:
            _log.debug("Ignoring duplicate service %r", service_id)
            continue
        services[service_id] = ServiceRef(
            service_id=service_id,
            service_type=findtext("serviceType").strip(),
            scpd_url=absolute_url(url_base, findtext("SCPDURL")),
            control_url=absolute_url(url_base, findtext("controlURL")),
            event_sub_url=absolute_url(url_base, findtext("eventSubURL")),
        )
    return services


def parse_device_description(data, location, ignore_urlbase=False):
    """
    Parse a device description document retrieved from `location`. All the
    URLs it contains are made absolute, relative to `<URLBase>` when the
    document has one (and `ignore_urlbase` isn't set), or to `location`.
    """
    root = etree.fromstring(data)
    findtext = partial(root.findtext, namespaces=root.nsmap, default="")

    url_base = findtext("URLBase").strip()
    if url_base == "" or ignore_urlbase:
        # If no URL Base is given, the UPnP specification says: "the base
        # URL is the URL from which the device description was retrieved"
        url_base = location

    presentation_url = findtext("device/presentationURL").strip()
    if presentation_url:
        presentation_url = absolute_url(url_base, presentation_url)

    return DeviceDescription(
        device_type=findtext("device/deviceType").strip(),
        friendly_name=findtext("device/friendlyName").strip(),
        manufacturer=findtext("device/manufacturer").strip(),
        manufacturer_url=findtext("device/manufacturerURL").strip(),
        model_name=findtext("device/modelName").strip(),
        model_number=findtext("device/modelNumber").strip(),
        model_description=findtext("device/modelDescription").strip(),
        serial_number=findtext("device/serialNumber").strip(),
        udn=findtext("device/UDN").strip(),
        presentation_url=presentation_url,
        url_base=url_base,
        icons=_read_icons(root, url_base),
        services=_read_services(root, url_base),
    )


def _read_state_vars(root):
    state_variables = {}
    for statevar_node in root.findall(
        "serviceStateTable/stateVariable", namespaces=root.nsmap
    ):
        findtext = partial(statevar_node.findtext, namespaces=root.nsmap)
        findall = partial(statevar_node.findall, namespaces=root.nsmap)
        name = findtext("name", default="").strip()

        allowed_value_range = None
        range_node = statevar_node.find("allowedValueRange", namespaces=root.nsmap)
        if range_node is not None:
            allowed_value_range = dict(
                minimum=range_node.findtext("minimum", namespaces=root.nsmap),
                maximum=range_node.findtext("maximum", namespaces=root.nsmap),
                step=range_node.findtext("step", namespaces=root.nsmap),
            )

        state_variables[name] = StateVariableSpec(
            name=name,
            datatype=findtext("dataType", default="").strip(),
            send_events=statevar_node.attrib.get("sendEvents", "yes").strip().lower()
            != "no",
            allowed_values=[
                (e.text or "").strip() for e in findall("allowedValueList/allowedValue")
            ],
            allowed_value_range=allowed_value_range,
            default_value=findtext("defaultValue"),
        )
    return state_variables


def _read_actions(root):
    actions = {}
    for action_node in root.findall("actionList/action", namespaces=root.nsmap):
        name = action_node.findtext("name", default="", namespaces=root.nsmap).strip()
        inputs = []
        outputs = []
        for arg_node in action_node.findall(
            "argumentList/argument", namespaces=root.nsmap
        ):
            findtext = partial(arg_node.findtext, namespaces=root.nsmap, default="")
            arg = ArgumentSpec(
                name=findtext("name").strip(),
                related_state_variable=findtext("relatedStateVariable").strip(),
            )
            if findtext("direction").strip().lower() == "in":
                inputs.append(arg)
            else:
                outputs.append(arg)
        actions[name] = ActionSpec(name=name, inputs=inputs, outputs=outputs)
    return actions


def parse_service_description(data):
    """
    Parse an SCPD document into its actions and state variables.
    """
    root = etree.fromstring(data)
    return ServiceDescription(
        actions=_read_actions(root),
        state_variables=_read_state_vars(root),
    )
