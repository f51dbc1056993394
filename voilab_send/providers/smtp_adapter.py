"""
SMTP Email Adapter Implementation

Builds a MIME message locally and delivers it over SMTP. Global data is
rendered into subject and bodies before sending since SMTP has no
server-side templates.
"""

import base64
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Dict, Any

from voilab_send.config import get_option
from voilab_send.exceptions import ConfigurationError
from voilab_send.providers.email_adapter import EmailAdapter, SendResult
from voilab_send.providers.template_renderer import render_message, token_template
from voilab_send.providers.transports import SmtpTransport


class SmtpAdapter(EmailAdapter):
    """SMTP implementation of the EmailAdapter interface."""

    supports_templates = False

    def __init__(self, config=None, transport=None):
        super().__init__(config, transport)
        self._message_id = None
        self.template_function = get_option(
            self.config, 'templateFunction', 'template_function',
            default=token_template(self.global_data_surround)
        )

    def get_provider_name(self) -> str:
        return "SMTP"

    def create_transport(self, config: Dict[str, Any]) -> SmtpTransport:
        return SmtpTransport(
            host=get_option(config, 'host'),
            port=get_option(config, 'port'),
            secure=get_option(config, 'secure', default=False),
            user=get_option(config, 'user', 'username'),
            password=get_option(config, 'pass', 'password')
        )

    def build_payload(self) -> EmailMessage:
        message = self.message
        if message.from_address is None:
            raise ConfigurationError('SMTP messages need a sender, call set_from() first')

        rendered = render_message(message, self.template_function)

        mail = EmailMessage()
        mail['From'] = message.from_address.rendered
        if message.to:
            mail['To'] = ', '.join(r.rendered for r in message.to)
        if message.cc:
            mail['Cc'] = ', '.join(r.rendered for r in message.cc)
        # aiosmtplib reads Bcc for the envelope and strips the header
        if message.bcc:
            mail['Bcc'] = ', '.join(r.rendered for r in message.bcc)
        mail['Subject'] = rendered.subject
        self._message_id = make_msgid()
        mail['Message-ID'] = self._message_id

        for header, value in message.custom.items():
            if header in mail:
                mail.replace_header(header, str(value))
            else:
                mail[header] = str(value)

        if rendered.body_text:
            mail.set_content(rendered.body_text)
            if rendered.body_html:
                mail.add_alternative(rendered.body_html, subtype='html')
        elif rendered.body_html:
            mail.set_content(rendered.body_html, subtype='html')

        for attachment in message.attachments:
            maintype, _, subtype = attachment.content_type.partition('/')
            mail.add_attachment(
                base64.b64decode(attachment.content),
                maintype=maintype or 'application',
                subtype=subtype or 'octet-stream',
                filename=attachment.filename,
                disposition=attachment.disposition
            )

        return mail

    def parse_response(self, response) -> SendResult:
        # aiosmtplib returns ({recipient: (code, message)}, server_message)
        errors, server_message = response if response else ({}, None)
        return SendResult(
            provider=self.get_provider_name(),
            message_id=self._message_id,
            raw_response={'rejected': errors, 'message': server_message}
        )
