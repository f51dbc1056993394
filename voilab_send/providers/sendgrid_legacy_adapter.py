"""
SendGrid legacy Web API adapter

Posts to the v2 `mail.send.json` endpoint. Substitutions and templates travel
in the `x-smtpapi` JSON header; attachments are not supported.
"""

import json
from typing import Dict, Any

from voilab_send.config import get_option
from voilab_send.exceptions import ConfigurationError
from voilab_send.providers.email_adapter import EmailAdapter, SendResult
from voilab_send.providers.template_renderer import format_value
from voilab_send.providers.transports import SendGridWebTransport


class SendGridLegacyAdapter(EmailAdapter):
    """SendGrid Web API v2 implementation of the EmailAdapter interface."""

    supports_attachments = False

    def get_provider_name(self) -> str:
        return "SendGrid Web API"

    def create_transport(self, config: Dict[str, Any]) -> SendGridWebTransport:
        api_key = get_option(config, 'apiKey', 'apikey', 'api_key')
        if not api_key:
            raise ConfigurationError('Missing SendGrid API key in adapter config')
        return SendGridWebTransport(api_key, endpoint=get_option(config, 'endpoint'))

    def build_payload(self) -> Dict[str, Any]:
        message = self.message
        payload: Dict[str, Any] = {}

        for role in ('to', 'cc', 'bcc'):
            recipients = getattr(message, role)
            if recipients:
                payload[f'{role}[]'] = [r.email for r in recipients]
                payload[f'{role}name[]'] = [r.name for r in recipients]

        if message.from_address is not None:
            payload['from'] = message.from_address.email
            if message.from_address.name:
                payload['fromname'] = message.from_address.name
        payload['subject'] = message.subject
        if message.text:
            payload['text'] = message.text
        if message.html:
            payload['html'] = message.html

        smtpapi: Dict[str, Any] = {}
        if message.global_data:
            # One value per To recipient, in the same order
            count = max(len(message.to), 1)
            smtpapi['sub'] = {
                self.wrap_key(key): [format_value(value)] * count
                for key, value in message.global_data.items()
            }
        if message.template_id:
            smtpapi['filters'] = {
                'templates': {
                    'settings': {'enable': 1, 'template_id': message.template_id}
                }
            }
        if smtpapi:
            payload['x-smtpapi'] = json.dumps(smtpapi)

        payload.update(message.custom)
        return payload

    def parse_response(self, response) -> SendResult:
        body = response.json() if getattr(response, 'text', None) else {}
        return SendResult(
            provider=self.get_provider_name(),
            status_code=getattr(response, 'status_code', None),
            raw_response=body
        )
