"""
Email Adapter Pattern - Interface and shared message building

This module defines the contract (interface) that all email providers must implement.
Callers build a message through the chainable builder methods; each concrete adapter
only decides how that message is serialized and handed to its transport.
"""

import base64
from email.utils import quote
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field

from voilab_send import logger
from voilab_send.config import get_option
from voilab_send.exceptions import MessageAlreadySentError


@dataclass
class Address:
    """A single mailbox, optionally with a display name."""
    email: str
    name: str = ''

    @property
    def rendered(self) -> str:
        return f'"{quote(self.name)}" <{self.email}>' if self.name else self.email


@dataclass
class Attachment:
    """Attachment record. `content` is always base64 text."""
    content: str
    filename: str
    content_type: str
    disposition: str = 'attachment'


@dataclass
class Message:
    """Provider-agnostic state accumulated by the builder methods."""
    from_address: Optional[Address] = None
    subject: str = ''
    html: str = ''
    text: str = ''
    to: List[Address] = field(default_factory=list)
    cc: List[Address] = field(default_factory=list)
    bcc: List[Address] = field(default_factory=list)
    attachments: List[Attachment] = field(default_factory=list)
    template_id: Optional[str] = None
    global_data: Dict[str, Any] = field(default_factory=dict)
    custom: Dict[str, Any] = field(default_factory=dict)

    def recipients(self) -> List[Address]:
        return self.to + self.cc + self.bcc

    def has_recipient(self, email: str) -> bool:
        email = email.lower()
        return any(r.email.lower() == email for r in self.recipients())


@dataclass
class SendResult:
    """Standard response format from email providers."""
    provider: str
    status_code: Optional[int] = None
    message_id: Optional[str] = None
    raw_response: Optional[Any] = None
    parts: List['SendResult'] = field(default_factory=list)


class EmailAdapter(ABC):
    """
    Abstract base class (interface) for email providers.

    An adapter owns exactly one Message and one transport. Builder methods
    mutate the message and return the adapter so calls can be chained;
    `send()` serializes the message and may only be called once.

    Subclasses turn features off with the `supports_*` flags. Calls to a
    disabled feature are accepted and ignored.
    """

    supports_cc_bcc = True
    supports_attachments = True
    supports_templates = True

    def __init__(self, config: Optional[Dict[str, Any]] = None, transport: Any = None):
        """
        Args:
            config: Adapter configuration (credentials, globalDataSurround, ...)
            transport: Object with an async `send(payload)`; built from config when omitted
        """
        self.config = dict(config or {})
        self.global_data_surround = get_option(self.config, 'globalDataSurround', 'global_data_surround', default='%')
        self.message = Message()
        self.transport = transport if transport is not None else self.create_transport(self.config)
        self._sent = False

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the name of this email provider."""
        pass

    @abstractmethod
    def create_transport(self, config: Dict[str, Any]) -> Any:
        """Build the provider client used by `send()`."""
        pass

    @abstractmethod
    def build_payload(self) -> Any:
        """Serialize the current message into the provider wire payload."""
        pass

    def parse_response(self, response: Any) -> SendResult:
        """Turn the transport's raw response into a SendResult."""
        return SendResult(provider=self.get_provider_name(), raw_response=response)

    # Recipients

    def _add_recipients(self, role: str, email: str, name: Optional[str] = None) -> 'EmailAdapter':
        name = (name or '').strip()
        for candidate in (email or '').split(','):
            candidate = candidate.strip()
            if not candidate or self.message.has_recipient(candidate):
                continue
            getattr(self.message, role).append(Address(candidate, name))
        return self

    def add_to(self, email: str, name: Optional[str] = None) -> 'EmailAdapter':
        """Add one or more comma-separated To recipients."""
        return self._add_recipients('to', email, name)

    def add_cc(self, email: str, name: Optional[str] = None) -> 'EmailAdapter':
        """Add one or more comma-separated Cc recipients."""
        if not self.supports_cc_bcc:
            logger.debug(f'{self.get_provider_name()} ignores Cc recipients', email=email)
            return self
        return self._add_recipients('cc', email, name)

    def add_bcc(self, email: str, name: Optional[str] = None) -> 'EmailAdapter':
        """Add one or more comma-separated Bcc recipients."""
        if not self.supports_cc_bcc:
            logger.debug(f'{self.get_provider_name()} ignores Bcc recipients', email=email)
            return self
        return self._add_recipients('bcc', email, name)

    def reset_recipients(self) -> 'EmailAdapter':
        """Remove all To, Cc and Bcc. Everything else is kept."""
        self.message.to = []
        self.message.cc = []
        self.message.bcc = []
        return self

    # Content

    def set_from(self, email: str, name: Optional[str] = None) -> 'EmailAdapter':
        self.message.from_address = Address(email, (name or '').strip())
        return self

    def set_subject(self, subject: Optional[str] = None) -> 'EmailAdapter':
        self.message.subject = subject or ''
        return self

    def set_html(self, html: Optional[str] = None) -> 'EmailAdapter':
        self.message.html = html or ''
        return self

    def set_text(self, text: Optional[str] = None) -> 'EmailAdapter':
        self.message.text = text or ''
        return self

    def add_attachment(
        self,
        content: str,
        name: str,
        content_type: str,
        disposition: Optional[str] = None
    ) -> 'EmailAdapter':
        """
        Add an attachment to the mail.

        Args:
            content: Base64 string representation of the file content
            name: File name
            content_type: MIME type of the file
            disposition: 'attachment' (default) or 'inline'
        """
        if not self.supports_attachments:
            logger.debug(f'{self.get_provider_name()} ignores attachments', filename=name)
            return self
        self.message.attachments.append(
            Attachment(content, name, content_type, disposition or 'attachment')
        )
        return self

    def add_buffer_attachment(
        self,
        buffer: bytes,
        name: str,
        content_type: str,
        disposition: Optional[str] = None
    ) -> 'EmailAdapter':
        """Add raw bytes as attachment. They are stored base64-encoded."""
        content = base64.b64encode(buffer).decode('ascii')
        return self.add_attachment(content, name, content_type, disposition)

    # Template data

    def set_global_data(self, data: Optional[Dict[str, Any]] = None) -> 'EmailAdapter':
        """Replace all substitution variables in one shot."""
        self.message.global_data = dict(data or {})
        return self

    def add_global_data(self, key: str, value: Any) -> 'EmailAdapter':
        """Add or overwrite one substitution variable."""
        self.message.global_data[key] = value
        return self

    def set_template(self, template_id: Optional[str]) -> 'EmailAdapter':
        if not self.supports_templates:
            logger.debug(f'{self.get_provider_name()} has no server-side templates', template_id=template_id)
            return self
        self.message.template_id = template_id
        return self

    def set_custom(self, key: str, value: Any) -> 'EmailAdapter':
        """Set a provider-specific field merged into the payload at send time."""
        self.message.custom[key] = value
        return self

    def wrap_key(self, key: str) -> str:
        """Wrap a substitution key in the configured surround (`name` -> `%name%`)."""
        return f'{self.global_data_surround}{key}{self.global_data_surround}'

    # Sending

    async def send(self) -> SendResult:
        """
        Send the email. Do not use it directly, go through the Dispatcher.

        Raises:
            MessageAlreadySentError: if this adapter already sent its message
            Exception: whatever the transport raises, unchanged
        """
        self._ensure_unsent()
        payload = self.build_payload()
        self._sent = True
        return await self.dispatch(payload)

    def _ensure_unsent(self):
        if self._sent:
            raise MessageAlreadySentError(
                f'{self.get_provider_name()} adapter already sent its message; create a new adapter'
            )

    async def dispatch(self, payload: Any) -> SendResult:
        """Hand one payload to the transport, logging it if the provider rejects it."""
        try:
            response = await self.transport.send(payload)
        except Exception as e:
            logger.error(
                f'{self.get_provider_name()} email send failed',
                err=e,
                payload=payload
            )
            raise
        return self.parse_response(response)
