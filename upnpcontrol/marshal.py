def format_duration(seconds):
    """
    Format a number of seconds as the 'H+:MM:SS' text used by AVTransport.

    >>> format_duration(3725)
    '01:02:05'
    """
    seconds = int(seconds)
    hours, remainder = divmod(seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return "%02d:%02d:%02d" % (hours, minutes, seconds)


def parse_duration(value):
    """
    Parse 'H+:MM:SS[.F+]' duration text to whole seconds. Empty text is zero.
    """
    if not value:
        return 0
    parts = value.strip().split(":")
    if len(parts) != 3:
        raise ValueError("Invalid duration %r" % value)
    hours, minutes = int(parts[0]), int(parts[1])
    seconds = int(float(parts[2]))
    return hours * 3600 + minutes * 60 + seconds


def split_list(value):
    """
    Split comma separated text into its tokens, keeping their order.
    """
    if not value:
        return []
    return value.split(",")


EVENT_VALUE_MARSHALLERS = {
    "CurrentMediaDuration": parse_duration,
    "CurrentTrackDuration": parse_duration,
    "CurrentTransportActions": split_list,
    "PossiblePlaybackStorageMedia": split_list,
}


def marshal_event_value(name, value):
    """
    Convert the raw text of an evented state variable to a python value.
    Returns (marshalled, value); variables we have no conversion for, or whose
    text doesn't convert, are returned untouched with marshalled False.
    """
    try:
        marshaller = EVENT_VALUE_MARSHALLERS[name]
    except KeyError:
        return False, value
    try:
        return True, marshaller(value)
    except ValueError:
        return False, value
