"""Core infrastructure: settings, logging, exceptions."""

from .config import Settings, get_settings, settings
from .exceptions import (
    BusinessError,
    CheckFailure,
    HarnessError,
    LaunchError,
    ProtocolViolation,
    TransportError,
)
from .logging import RunLog, get_logger, setup_logging
