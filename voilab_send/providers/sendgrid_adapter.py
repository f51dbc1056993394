"""
SendGrid Email Adapter Implementation

Concrete implementations of the EmailAdapter for the SendGrid v3 mail API.
`SendGridAdapter` builds the payload with the SDK helper classes,
`SendGridV4Adapter` writes the v3 JSON body by hand like the early clients did.
"""

from typing import Dict, Any, List

from sendgrid.helpers.mail import (
    Attachment,
    Bcc,
    Cc,
    Content,
    Disposition,
    FileContent,
    FileName,
    FileType,
    From,
    Mail,
    Personalization,
    Substitution,
    To,
)

from voilab_send.config import get_option
from voilab_send.exceptions import ConfigurationError
from voilab_send.providers.email_adapter import Address, EmailAdapter, SendResult
from voilab_send.providers.template_renderer import format_value
from voilab_send.providers.transports import SendGridTransport


def _sendgrid_api_key(config: Dict[str, Any]) -> str:
    api_key = get_option(config, 'apikey', 'apiKey', 'api_key')
    if not api_key:
        raise ConfigurationError('Missing SendGrid API key in adapter config')
    return api_key


class SendGridAdapter(EmailAdapter):
    """
    SendGrid implementation of the EmailAdapter interface (SDK v6 helpers).

    Global data goes to the personalization as substitutions whose keys are
    wrapped in `globalDataSurround`. With the `dynamicTemplateData` custom
    flag set, it is sent as `dynamic_template_data` instead, unwrapped.
    """

    def get_provider_name(self) -> str:
        return "SendGrid"

    def create_transport(self, config: Dict[str, Any]) -> SendGridTransport:
        return SendGridTransport(_sendgrid_api_key(config))

    def _personalization(self, custom: Dict[str, Any]) -> Personalization:
        message = self.message
        personalization = Personalization()
        for recipient in message.to:
            personalization.add_to(To(recipient.email, recipient.name or None))
        for recipient in message.cc:
            personalization.add_cc(Cc(recipient.email, recipient.name or None))
        for recipient in message.bcc:
            personalization.add_bcc(Bcc(recipient.email, recipient.name or None))

        if custom.pop('dynamicTemplateData', False):
            personalization.dynamic_template_data = dict(message.global_data)
        else:
            for key, value in message.global_data.items():
                personalization.add_substitution(Substitution(self.wrap_key(key), format_value(value)))
        return personalization

    def build_payload(self) -> Dict[str, Any]:
        message = self.message
        custom = dict(message.custom)

        mail = Mail()
        if message.from_address is not None:
            mail.from_email = From(message.from_address.email, message.from_address.name or None)
        if message.subject:
            mail.subject = message.subject
        if message.text:
            mail.add_content(Content('text/plain', message.text))
        if message.html:
            mail.add_content(Content('text/html', message.html))
        if message.template_id:
            mail.template_id = message.template_id

        for item in message.attachments:
            mail.add_attachment(Attachment(
                FileContent(item.content),
                FileName(item.filename),
                FileType(item.content_type),
                Disposition(item.disposition)
            ))

        mail.add_personalization(self._personalization(custom))

        payload = mail.get()
        payload.update(custom)
        return payload

    def parse_response(self, response) -> SendResult:
        headers = getattr(response, 'headers', None) or {}
        return SendResult(
            provider=self.get_provider_name(),
            status_code=getattr(response, 'status_code', None),
            message_id=headers.get('X-Message-Id'),
            raw_response=getattr(response, 'body', response)
        )


def _address_json(address: Address) -> Dict[str, str]:
    data = {'email': address.email}
    if address.name:
        data['name'] = address.name
    return data


class SendGridV4Adapter(SendGridAdapter):
    """SendGrid v3 JSON body written by hand. Attachments are not supported."""

    supports_attachments = False

    def get_provider_name(self) -> str:
        return "SendGrid v4"

    def build_payload(self) -> Dict[str, Any]:
        message = self.message

        personalization: Dict[str, Any] = {}
        for role in ('to', 'cc', 'bcc'):
            recipients: List[Address] = getattr(message, role)
            if recipients:
                personalization[role] = [_address_json(r) for r in recipients]
        if message.global_data:
            personalization['substitutions'] = {
                self.wrap_key(key): format_value(value) for key, value in message.global_data.items()
            }

        payload: Dict[str, Any] = {'personalizations': [personalization]}
        if message.from_address is not None:
            payload['from'] = _address_json(message.from_address)
        if message.subject:
            payload['subject'] = message.subject

        content = []
        if message.text:
            content.append({'type': 'text/plain', 'value': message.text})
        if message.html:
            content.append({'type': 'text/html', 'value': message.html})
        if content:
            payload['content'] = content
        if message.template_id:
            payload['template_id'] = message.template_id

        custom = dict(message.custom)
        custom.pop('dynamicTemplateData', None)
        payload.update(custom)
        return payload
