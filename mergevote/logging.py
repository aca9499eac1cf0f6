import logging
import sys
from typing import Any, Dict, Optional

import httpx
import sentry_sdk
import structlog
from sentry_sdk import capture_event
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.utils import event_from_exception

################################################################################
# based on https://github.com/kiwicom/structlog-sentry/blob/18adbfdac85930ca5578e7ef95c1f2dc169c2f2f/structlog_sentry/__init__.py#L10-L86
# MIT License

# Copyright (c) 2019 Kiwi.com

# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:

# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.

# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

EventDict = Dict[str, Any]


def get_logging_level(name: str) -> int:
    return logging._nameToLevel[name.upper()]


class SentryProcessor:
    """
    Structlog processor forwarding log events at or above `level` to Sentry.

    The id of the created Sentry event is added to the log line as
    `sentry_id`.
    """

    def __init__(self, level: int = logging.WARNING) -> None:
        self.level = level

    def __call__(self, logger: Any, level: str, event_dict: EventDict) -> EventDict:
        if get_logging_level(level) < self.level:
            return event_dict

        extra = event_dict.copy()
        exc_info = event_dict.get("exc_info")
        if not isinstance(exc_info, tuple):
            exc_info = sys.exc_info()
        if exc_info[0] is not None:
            event, hint = event_from_exception(exc_info)
        else:
            event, hint = {}, {}
        event["message"] = event_dict.get("event")
        event["level"] = level
        event["extra"] = extra

        event_dict["sentry_id"] = capture_event(event, hint=hint)
        return event_dict


# end of copied code
#####################################################


def add_request_info_processor(
    _: Any, __: Any, event_dict: EventDict
) -> EventDict:
    """
    Structlog processor for adding more information to log events that provide
    `res` with an httpx Response object.
    """
    response: Optional[httpx.Response] = event_dict.get("res", None)
    if isinstance(response, httpx.Response):
        event_dict["response_content"] = response.content
        event_dict["response_status_code"] = response.status_code
        request = response.request
        event_dict["request_body"] = request.content
        event_dict["request_url"] = str(request.url)
        event_dict["request_method"] = request.method
    return event_dict


def configure_logging(level: int = logging.INFO) -> None:
    # for info on logging formats see: https://docs.python.org/3/library/logging.html#logrecord-attributes
    logging.basicConfig(
        stream=sys.stdout,
        level=level,
        format="%(levelname)s %(name)s:%(filename)s:%(lineno)d %(message)s",
    )

    # disable sentry logging middleware as the structlog processor provides more
    # info via the extra data field
    sentry_sdk.init(integrations=[LoggingIntegration(level=None, event_level=None)])

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            add_request_info_processor,
            SentryProcessor(level=logging.WARNING),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.KeyValueRenderer(key_order=["event"], sort_keys=True),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
