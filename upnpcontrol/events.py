"""
Decoding of event notification bodies (GENA 'propertyset' documents).

A property is either a plain state variable, or a 'LastChange' variable whose
text is an escaped XML document listing changes per instance:

    <Event xmlns="urn:schemas-upnp-org:metadata-1-0/AVT/">
      <InstanceID val="0">
        <TransportState val="PLAYING"/>
        <CurrentTrackDuration val="0:03:10"/>
      </InstanceID>
    </Event>
"""
import html
from collections import namedtuple

from lxml import etree

from .marshal import marshal_event_value

LAST_CHANGE = "LastChange"

Event = namedtuple("Event", ["instance_id", "name", "value"])


def _localname(node):
    return etree.QName(node).localname


def _instance_id(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return value


def parse_last_change(text):
    """
    Decode the document carried by a 'LastChange' variable into events.
    """
    text = text.strip()
    if not text:
        return []
    # Some devices escape the document twice
    if not text.startswith("<"):
        text = html.unescape(text)
    root = etree.fromstring(text.encode("utf-8"))

    events = []
    for instance in root.iterchildren(tag=etree.Element):
        if _localname(instance) != "InstanceID":
            continue
        instance_id = _instance_id(instance.get("val"))
        for change in instance.iterchildren(tag=etree.Element):
            name = _localname(change)
            _, value = marshal_event_value(name, change.get("val"))
            events.append(Event(instance_id, name, value))
    return events


def parse_events(body):
    """
    Decode a notification body into a list of `Event`s, in document order.
    """
    root = etree.fromstring(body)
    events = []
    for prop in root.iterchildren(tag=etree.Element):
        if _localname(prop) != "property":
            continue
        for var in prop.iterchildren(tag=etree.Element):
            name = _localname(var)
            text = var.text or ""
            if name == LAST_CHANGE:
                events.extend(parse_last_change(text))
                continue
            _, value = marshal_event_value(name, text)
            events.append(Event(None, name, value))
    return events
