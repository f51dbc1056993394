"""Exceptions raised by the mailer itself.

Transport failures are not wrapped: whatever the provider SDK raises
reaches the caller unchanged.
"""


class VoilabSendError(Exception):
    """Base class for errors raised by voilab_send."""


class ConfigurationError(VoilabSendError, ValueError):
    """The dispatcher or an adapter was configured in an unusable way."""


class UnknownAdapterError(ConfigurationError):
    """No adapter is registered under the requested key."""


class MessageAlreadySentError(VoilabSendError):
    """An adapter holds exactly one message and it has already been sent."""
