# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

"""
Testtools-style matchers useful to the stfuse-config test suite.
"""

from testtools.matchers import (
    AfterPreprocessing,
    Equals,
    MatchesException,
)


def matches_flushed_traceback(exception, value_re=None):
    """
    Matches an eliot traceback message with the given exception.

    This is expected to be used with :py:`testtools.matchers.MatchesListwise`,
    on the result of :py:`eliot.MemoryLogger.flush_tracebacks`.

    See :py:`testtools.matchers.MatchesExeption`.
    """
    def as_exc_info_tuple(message):
        return message["exception"], message["reason"], message["traceback"]

    return AfterPreprocessing(
        as_exc_info_tuple, MatchesException(exception, value_re=value_re)
    )


def matches_failure(exception, value_re=None):
    """
    Matches an twisted :py:`Failure` with the given exception.

    See :py:`testtools.matches.MatchesException`.
    """
    def as_exc_info_tuple(failure):
        return failure.type, failure.value, failure.tb

    return AfterPreprocessing(
        as_exc_info_tuple, MatchesException(exception, value_re=value_re)
    )


def device_ids_of(matcher):
    """
    Match a list of ``Device`` or ``FolderDeviceRef`` whose device-IDs
    match ``matcher``.
    """
    return AfterPreprocessing(
        lambda entities: [e.device_id for e in entities],
        matcher,
    )


def member_ids_equal(*device_ids):
    """
    Match a ``Folder`` whose members are exactly ``device_ids``, in order.
    """
    return AfterPreprocessing(
        lambda folder: folder.devices,
        device_ids_of(Equals(list(device_ids))),
    )


__all__ = [
    "matches_flushed_traceback",
    "matches_failure",
    "device_ids_of",
    "member_ids_equal",
]
