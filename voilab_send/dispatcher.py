"""
Dispatcher - Factory and Facade

This module provides the single entry point callers use to send emails without
knowing which adapter is behind it. It handles adapter selection, debug-mode
recipient redirection and template sends.
"""

from functools import partial
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Iterable

from voilab_send import logger
from voilab_send.config import get_option
from voilab_send.exceptions import ConfigurationError, UnknownAdapterError
from voilab_send.providers.email_adapter import EmailAdapter, SendResult
from voilab_send.providers.sendgrid_adapter import SendGridAdapter, SendGridV4Adapter
from voilab_send.providers.sendgrid_legacy_adapter import SendGridLegacyAdapter
from voilab_send.providers.smtp_adapter import SmtpAdapter
from voilab_send.providers.sparkpost_adapter import SparkPostAdapter, SparkPostV1Adapter


AdapterFactory = Callable[[], EmailAdapter]


class Dispatcher:
    """
    Owns one adapter and sends its message.

    In debug mode every recipient is dropped and the message goes to
    `debugEmail` only; subject, bodies, attachments and template data are kept.

    Example:
        >>> dispatcher = create_dispatcher({
        ...     'adapter': 'sendgrid-v6',
        ...     'adapterConfig': {'apikey': 'SG.xxx'},
        ... })
        >>> dispatcher.get_adapter().set_from('me@example.com').add_to('you@example.com')
        >>> await dispatcher.send_template('d-123')
    """

    # Registry of available adapters
    ADAPTERS = {
        'smtp': SmtpAdapter,
        'nodemailer-v1': SmtpAdapter,
        'sendgrid': SendGridLegacyAdapter,
        'sendgrid-legacy': SendGridLegacyAdapter,
        'sendgrid-v4': SendGridV4Adapter,
        'sendgrid-v6': SendGridAdapter,
        'sparkpost-v1': SparkPostV1Adapter,
        'sparkpost-v2': SparkPostAdapter,
    }

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Args:
            config: Dispatcher options: `adapter` (registry key), `adapterConfig`,
                `debug` and `debugEmail`
        """
        self.config: Mapping[str, Any] = MappingProxyType(dict(config or {}))
        self.adapter: Optional[EmailAdapter] = None
        self.adapter_factory: Optional[AdapterFactory] = None

        adapter_name = self.config.get('adapter')
        if adapter_name:
            adapter_config = get_option(self.config, 'adapterConfig', 'adapter_config', default={})
            self.adapter_factory = create_adapter(adapter_name, adapter_config)
            self.set_adapter(self.adapter_factory())

    def set_adapter(self, adapter: EmailAdapter) -> 'Dispatcher':
        """Set the adapter used to build and send the email."""
        self.adapter = adapter
        return self

    def get_adapter(self) -> Optional[EmailAdapter]:
        return self.adapter

    def get_config(self) -> Mapping[str, Any]:
        """Return the read-only configuration snapshot."""
        return self.config

    def is_debug(self) -> bool:
        """
        Check if in debug mode. Debug mode removes all recipients (to, cc and
        bcc) and replaces them with one address used for tests.
        """
        return bool(self.config.get('debug'))

    def new_message(self) -> EmailAdapter:
        """Replace the adapter with a fresh one for the next email."""
        if self.adapter_factory is None:
            raise ConfigurationError('No adapter configured; cannot start a new message')
        self.set_adapter(self.adapter_factory())
        return self.adapter

    def _require_adapter(self) -> EmailAdapter:
        if self.adapter is None:
            raise ConfigurationError('No adapter configured; call set_adapter() first')
        return self.adapter

    async def send(self) -> SendResult:
        """
        Send the mail.

        Raises:
            ConfigurationError: debug mode is on and no debugEmail is configured
            Exception: transport errors, unchanged
        """
        adapter = self._require_adapter()

        if self.is_debug():
            adapter.reset_recipients()
            debug_email = get_option(self.config, 'debugEmail', 'debug_email')
            if not debug_email or not isinstance(debug_email, str):
                msg = 'Debug mode! You need to provide a custom email'
                logger.debug(msg)
                raise ConfigurationError(msg)
            adapter.add_to(debug_email)
            logger.debug('Debug mode, recipients replaced', debug_email=debug_email)

        provider = adapter.get_provider_name()
        recipients = [r.email for r in adapter.message.to]
        logger.info(
            f'Sending email via {provider}',
            to=recipients,
            subject=adapter.message.subject
        )

        try:
            result = await adapter.send()
        except Exception as e:
            logger.error(f'Email send failed via {provider}', err=e, to=recipients)
            raise

        logger.info(
            f'Email sent successfully via {provider}',
            message_id=result.message_id,
            to=recipients
        )
        return result

    async def send_template(self, template_id: str) -> SendResult:
        """Send a mail based on a provider template."""
        self._require_adapter().set_template(template_id)
        return await self.send()

    @classmethod
    def register_adapter(cls, name: str, adapter_class: type):
        """
        Register a new email adapter.

        This allows adding custom adapters at runtime.

        Args:
            name: Registry key (e.g., 'custom_provider')
            adapter_class: Class that implements EmailAdapter
        """
        if not isinstance(adapter_class, type) or not issubclass(adapter_class, EmailAdapter):
            raise TypeError(f'{adapter_class} must implement EmailAdapter')

        cls.ADAPTERS[name.lower()] = adapter_class
        logger.info(f'Registered email adapter: {name}')


def create_adapter(name: str, config: Optional[Dict[str, Any]] = None) -> AdapterFactory:
    """
    Get a factory producing fresh adapters of the given kind.

    Args:
        name: Registry key, e.g. 'sendgrid-v6'
        config: Adapter configuration passed verbatim to every instance

    Raises:
        UnknownAdapterError: If no adapter is registered under `name`
    """
    adapter_class = Dispatcher.ADAPTERS.get(name.lower())
    if not adapter_class:
        available = ', '.join(sorted(Dispatcher.ADAPTERS.keys()))
        raise UnknownAdapterError(
            f'Unsupported email adapter: {name}. '
            f'Available adapters: {available}'
        )

    return partial(adapter_class, dict(config or {}))


def create_dispatcher(config: Optional[Dict[str, Any]] = None) -> Dispatcher:
    """Factory function to create a Dispatcher from configuration."""
    return Dispatcher(config)


async def send_email(
    config: Dict[str, Any],
    to: str,
    subject: str = '',
    text: Optional[str] = None,
    html: Optional[str] = None,
    from_email: Optional[str] = None,
    from_name: Optional[str] = None,
    cc: Optional[Iterable[str]] = None,
    bcc: Optional[Iterable[str]] = None,
    global_data: Optional[Dict[str, Any]] = None,
    template_id: Optional[str] = None
) -> SendResult:
    """
    Build and send one email in a single call.

    Args:
        config: Dispatcher configuration (see `Dispatcher`)
        to: Recipient email address(es), comma-separated
        subject: Email subject
        text: Optional plain text body
        html: Optional HTML body
        from_email: Sender email
        from_name: Optional sender display name
        cc: Optional CC recipients
        bcc: Optional BCC recipients
        global_data: Optional substitution variables
        template_id: Optional provider template id

    Returns:
        SendResult from the provider
    """
    dispatcher = create_dispatcher(config)
    adapter = dispatcher._require_adapter()

    if from_email:
        adapter.set_from(from_email, from_name)
    adapter.add_to(to).set_subject(subject).set_text(text).set_html(html)
    for email in cc or []:
        adapter.add_cc(email)
    for email in bcc or []:
        adapter.add_bcc(email)
    if global_data:
        adapter.set_global_data(global_data)

    if template_id:
        return await dispatcher.send_template(template_id)
    return await dispatcher.send()
