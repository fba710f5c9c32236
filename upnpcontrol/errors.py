class UPNPError(Exception):
    """
    Exception class for UPnP errors. Subclasses carry a stable `code` which can
    be checked instead of the class.
    """

    code = "UPNP_ERROR"


class NoServiceError(UPNPError):
    """
    Service isn't provided by the device.
    """

    code = "NO_SERVICE"

    def __init__(self, service_id):
        super().__init__("Service %s not provided by device" % service_id)
        self.service_id = service_id


class InvalidActionException(UPNPError):
    """
    Action doesn't exist.
    """

    code = "NO_ACTION"

    def __init__(self, action_name):
        super().__init__("Action %s not implemented by service" % action_name)
        self.action_name = action_name


class NoEventsError(UPNPError):
    """
    No event-capable service owns the requested state variable.
    """

    code = "NO_EVENTS"

    def __init__(self, variable):
        super().__init__("Variable %s does not generate event messages" % variable)
        self.variable = variable


class SOAPError(UPNPError):
    """
    The device answered an action call with a fault.
    """

    code = "UPNP"

    def __init__(self, status_code, error_code=None, error_description=None):
        super().__init__("(%s) %s" % (error_code, error_description))
        self.status_code = status_code
        self.error_code = error_code
        self.error_description = error_description


class SubscribeError(UPNPError):
    code = "SUBSCRIBE"

    def __init__(self, status_code):
        super().__init__("Subscription error (HTTP %s)" % status_code)
        self.status_code = status_code


class SubscriptionRenewalError(UPNPError):
    code = "SUBSCRIBE_RENEW"

    def __init__(self, status_code, service_id=None):
        super().__init__("Subscription renewal error (HTTP %s)" % status_code)
        self.status_code = status_code
        self.service_id = service_id


class UnsubscribeError(UPNPError):
    code = "UNSUBSCRIBE"

    def __init__(self, status_code):
        super().__init__("Unsubscription error (HTTP %s)" % status_code)
        self.status_code = status_code


class UnexpectedResponse(UPNPError):
    """
    Got a response we didn't expect.
    """

    code = "UNEXPECTED_RESPONSE"


class ErrorCodeDescriptions(object):
    """
    Descriptions of the error codes defined by the UPnP Device Architecture
    for action invocation, including the ranges reserved for working
    committees and vendors.
    """

    _descriptions = {
        401: "Invalid Action",
        402: "Invalid Args",
        403: "(Do Not Use)",
        501: "Action Failed",
        600: "Argument Value Invalid",
        601: "Argument Value Out of Range",
        602: "Optional Action Not Implemented",
        603: "Out of Memory",
        604: "Human Intervention Required",
        605: "String Argument Too Long",
    }

    _ranges = (
        (606, 612, "These ErrorCodes are reserved for UPnP DeviceSecurity."),
        (613, 699, "Common action errors. Defined by UPnP Forum Technical Committee."),
        (700, 799, "Action-specific errors defined by UPnP Forum working committee."),
        (
            800,
            899,
            "Action-specific errors for non-standard actions. Defined by UPnP vendor.",
        ),
    )

    def __getitem__(self, key):
        if isinstance(key, bool) or not isinstance(key, int):
            raise KeyError("'key' must be an integer")
        try:
            return self._descriptions[key]
        except KeyError:
            pass
        for low, high, description in self._ranges:
            if low <= key <= high:
                return description
        raise KeyError("Unknown error code %r" % key)

    def get(self, key, default=None):
        try:
            return self[key]
        except KeyError:
            return default


ERR_CODE_DESCRIPTIONS = ErrorCodeDescriptions()
