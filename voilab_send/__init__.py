"""
voilab_send - one builder interface over several transactional email providers.

    >>> from voilab_send import create_dispatcher
    >>> dispatcher = create_dispatcher({'adapter': 'smtp', 'adapterConfig': {'host': 'localhost'}})
"""

from voilab_send import logger
from voilab_send.exceptions import (
    ConfigurationError,
    MessageAlreadySentError,
    UnknownAdapterError,
    VoilabSendError,
)
from voilab_send.providers import Address, Attachment, EmailAdapter, Message, SendResult
from voilab_send.dispatcher import Dispatcher, create_adapter, create_dispatcher, send_email

__all__ = [
    'Address',
    'Attachment',
    'ConfigurationError',
    'Dispatcher',
    'EmailAdapter',
    'Message',
    'MessageAlreadySentError',
    'SendResult',
    'UnknownAdapterError',
    'VoilabSendError',
    'create_adapter',
    'create_dispatcher',
    'logger',
    'send_email',
]
