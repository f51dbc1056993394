"""
SparkPost Email Adapter Implementation

Concrete implementations of the EmailAdapter for the SparkPost Transmissions API.
Global data is passed as native `substitution_data`, keys untouched.
"""

import asyncio
import copy
from typing import Dict, Any, List, Optional

from voilab_send import logger
from voilab_send.config import get_option
from voilab_send.exceptions import ConfigurationError
from voilab_send.providers.email_adapter import Address, EmailAdapter, SendResult
from voilab_send.providers.transports import SparkPostTransport


CCI_NAME_KEY = 'cciName'
CCI_EMAIL_KEY = 'cciEmail'


def _address(recipient: Address, header_to: Optional[str] = None):
    if not recipient.name and not header_to:
        return recipient.email
    address = {'email': recipient.email}
    if recipient.name:
        address['name'] = recipient.name
    if header_to:
        address['header_to'] = header_to
    return address


class SparkPostV1Adapter(EmailAdapter):
    """
    SparkPost implementation of the EmailAdapter interface (first generation).

    Only To recipients are supported. Cc, Bcc and attachments are ignored.
    """

    supports_cc_bcc = False
    supports_attachments = False

    def get_provider_name(self) -> str:
        return "SparkPost v1"

    def create_transport(self, config: Dict[str, Any]) -> SparkPostTransport:
        api_key = get_option(config, 'apikey', 'apiKey', 'api_key')
        if not api_key:
            raise ConfigurationError('Missing SparkPost API key in adapter config')
        return SparkPostTransport(api_key, endpoint=get_option(config, 'endpoint'))

    def _content(self) -> Dict[str, Any]:
        message = self.message
        content: Dict[str, Any] = {}
        if message.from_address is not None:
            content['from'] = _address(message.from_address)
        if message.template_id:
            # Stored templates own subject and bodies
            content['template_id'] = message.template_id
            return content
        content['subject'] = message.subject
        if message.html:
            content['html'] = message.html
        if message.text:
            content['text'] = message.text
        return content

    def build_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            'recipients': [{'address': _address(r)} for r in self.message.to],
            'content': self._content()
        }
        if self.message.global_data:
            payload['substitution_data'] = dict(self.message.global_data)
        payload.update(self.message.custom)
        return payload

    def parse_response(self, response) -> SendResult:
        body = response.json() if getattr(response, 'text', None) else {}
        results = body.get('results', {}) if isinstance(body, dict) else {}
        return SendResult(
            provider=self.get_provider_name(),
            status_code=getattr(response, 'status_code', None),
            message_id=results.get('id'),
            raw_response=body
        )


class SparkPostAdapter(SparkPostV1Adapter):
    """
    SparkPost implementation of the EmailAdapter interface with Cc and Bcc.

    Cc and Bcc recipients are sent in the same transmission with `header_to`
    pointing at the primary recipient. With `cciAsEmail` enabled, every Bcc
    recipient gets its own transmission instead, and the primary recipient is
    exposed to the template as `cciName` / `cciEmail`.
    """

    supports_cc_bcc = True

    def __init__(self, config=None, transport=None):
        super().__init__(config, transport)
        self.cci_as_email = bool(get_option(self.config, 'cciAsEmail', 'cci_as_email', default=False))

    def get_provider_name(self) -> str:
        return "SparkPost"

    def _primary(self) -> Optional[Address]:
        return self.message.to[0] if self.message.to else None

    def _build(self, include_bcc: bool) -> Dict[str, Any]:
        message = self.message
        primary = self._primary()
        header_to = primary.email if primary else None

        recipients: List[Dict[str, Any]] = [{'address': _address(r)} for r in message.to]
        for recipient in message.cc:
            recipients.append({
                'address': _address(recipient, header_to),
                'substitution_data': {'recipient_type': 'CC'}
            })
        if include_bcc:
            for recipient in message.bcc:
                recipients.append({
                    'address': _address(recipient, header_to),
                    'substitution_data': {'recipient_type': 'BCC'}
                })

        content = self._content()
        if message.cc and 'template_id' not in content:
            content['headers'] = {'CC': ', '.join(r.email for r in message.cc)}

        payload: Dict[str, Any] = {'recipients': recipients, 'content': content}
        if message.global_data:
            payload['substitution_data'] = dict(message.global_data)
        payload.update(message.custom)
        return payload

    def build_payload(self) -> Dict[str, Any]:
        return self._build(include_bcc=not self.cci_as_email)

    def build_fanout_payloads(self) -> List[Dict[str, Any]]:
        """
        One payload for To + Cc when there are any, then one per Bcc recipient.

        Bcc copies go to that recipient alone and carry the primary
        recipient's name and email in their substitution data.
        """
        primary_payload = self._build(include_bcc=False)
        primary = self._primary()
        payloads = [primary_payload] if primary_payload['recipients'] else []

        for recipient in self.message.bcc:
            payload = copy.deepcopy(primary_payload)
            payload['recipients'] = [{'address': _address(recipient)}]
            payload['content'].pop('headers', None)
            substitution_data = dict(payload.get('substitution_data', {}))
            substitution_data[CCI_NAME_KEY] = primary.name if primary else ''
            substitution_data[CCI_EMAIL_KEY] = primary.email if primary else ''
            payload['substitution_data'] = substitution_data
            payloads.append(payload)

        return payloads

    async def send(self) -> SendResult:
        if not self.cci_as_email or not self.message.bcc:
            return await super().send()

        self._ensure_unsent()
        payloads = self.build_fanout_payloads()
        self._sent = True
        logger.debug('Sending Bcc recipients as separate transmissions', copies=len(payloads))

        # Every copy settles before the first failure is reported
        outcomes = await asyncio.gather(
            *(self.dispatch(payload) for payload in payloads),
            return_exceptions=True
        )
        failures = [o for o in outcomes if isinstance(o, BaseException)]
        if failures:
            if len(failures) > 1:
                logger.warn(
                    f'{len(failures)} of {len(payloads)} SparkPost copies failed',
                    errors=[str(f) for f in failures]
                )
            raise failures[0]

        primary_result = outcomes[0]
        return SendResult(
            provider=self.get_provider_name(),
            status_code=primary_result.status_code,
            message_id=primary_result.message_id,
            raw_response=primary_result.raw_response,
            parts=list(outcomes)
        )
