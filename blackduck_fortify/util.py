import logging
from functools import wraps

from blackduck_fortify.stats import get_stats_client

logger = logging.getLogger(__name__)

STATUS_SUCCESS = 0
STATUS_FAILURE = 1
STATUS_KEYBOARD_INTERRUPT = 130


def timeit(method):
    """
    Time the decorated function with statsd, under the decorated function's
    module scope. A no-op wrapper when statsd is not enabled.
    """
    stats_client = get_stats_client(method.__module__)

    @wraps(method)
    def timed(*args, **kwargs):
        if stats_client.is_enabled():
            timer = stats_client.timer(method.__name__)
            timer.start()
            try:
                return method(*args, **kwargs)
            finally:
                timer.stop()
        return method(*args, **kwargs)

    return timed
