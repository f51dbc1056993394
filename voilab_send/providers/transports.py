"""
Provider transports

Each transport wraps one explicitly constructed provider client and exposes
`async send(payload)`. Blocking SDKs run in a worker thread. Errors from the
underlying client are never caught here.
"""

import asyncio
from email.message import EmailMessage
from typing import Any, Dict, Optional

import aiosmtplib
import requests
from sendgrid import SendGridAPIClient

from voilab_send import logger


class SendGridTransport:
    """SendGrid v3 `/mail/send` through the official SDK."""

    def __init__(self, api_key: str):
        self.client = SendGridAPIClient(api_key)

    async def send(self, payload: Dict[str, Any]):
        logger.debug('Posting message to SendGrid v3 API')
        return await asyncio.to_thread(self.client.send, payload)


class SendGridWebTransport:
    """SendGrid legacy v2 Web API (`mail.send.json` form post)."""

    SENDGRID_WEB_API_URL = "https://api.sendgrid.com/api/mail.send.json"

    def __init__(self, api_key: str, endpoint: Optional[str] = None, timeout: int = 30):
        self.api_key = api_key
        self.endpoint = endpoint or self.SENDGRID_WEB_API_URL
        self.timeout = timeout

    def _post(self, payload: Dict[str, Any]) -> requests.Response:
        headers = {'Authorization': f'Bearer {self.api_key}'}
        response = requests.post(self.endpoint, data=payload, headers=headers, timeout=self.timeout)
        response.raise_for_status()
        return response

    async def send(self, payload: Dict[str, Any]) -> requests.Response:
        logger.debug('Posting message to SendGrid Web API')
        return await asyncio.to_thread(self._post, payload)


class SparkPostTransport:
    """SparkPost Transmissions API."""

    SPARKPOST_API_URL = "https://api.sparkpost.com/api/v1"

    def __init__(self, api_key: str, endpoint: Optional[str] = None, timeout: int = 30):
        self.api_key = api_key
        self.endpoint = (endpoint or self.SPARKPOST_API_URL).rstrip('/')
        self.timeout = timeout

    def _post(self, payload: Dict[str, Any]) -> requests.Response:
        headers = {
            'Authorization': self.api_key,
            'Content-Type': 'application/json'
        }
        response = requests.post(
            f'{self.endpoint}/transmissions',
            json=payload,
            headers=headers,
            timeout=self.timeout
        )
        response.raise_for_status()
        return response

    async def send(self, payload: Dict[str, Any]) -> requests.Response:
        logger.debug('Posting transmission to SparkPost', recipients=len(payload.get('recipients', [])))
        return await asyncio.to_thread(self._post, payload)


class SmtpTransport:
    """Plain SMTP delivery through aiosmtplib."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        secure: bool = False,
        user: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 30.0
    ):
        self.host = host or 'localhost'
        # true for 465, false for other ports
        self.secure = bool(secure)
        self.port = port or (465 if self.secure else 587)
        self.user = user
        self.password = password
        self.timeout = timeout

    async def send(self, payload: EmailMessage):
        logger.debug('Sending message over SMTP', host=self.host, port=self.port)
        return await aiosmtplib.send(
            payload,
            hostname=self.host,
            port=self.port,
            username=self.user,
            password=self.password,
            use_tls=self.secure,
            timeout=self.timeout
        )
