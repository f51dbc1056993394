"""
Template Renderer

Local variable substitution for providers that have no server-side templating.
Only `<surround>name<surround>` tokens are replaced; there is no control flow.
"""

import re
from typing import Any, Callable, Dict, Optional

from voilab_send.providers.email_adapter import Message


TemplateFunction = Callable[[str, Dict[str, Any]], str]


class RenderedMessage:
    """Container for rendered message content."""

    def __init__(self, subject: str, body_text: str, body_html: str):
        self.subject = subject
        self.body_text = body_text
        self.body_html = body_html

    def to_dict(self) -> dict:
        return {
            'subject': self.subject,
            'text': self.body_text,
            'html': self.body_html
        }


def format_value(value: Any) -> str:
    """Text form of a substitution value; `None` renders empty."""
    return '' if value is None else str(value)


def substitute_variables(template_text: str, variables: Dict[str, Any], surround: str = '%') -> str:
    """
    Substitute `%variable%` placeholders in template text.

    Args:
        template_text: Template string with wrapped placeholders
        variables: Dictionary of variable values
        surround: Token wrapped around each variable name on both sides

    Returns:
        String with known variables substituted. Unknown tokens are left in place.
    """
    if not template_text:
        return ''

    token = re.escape(surround)
    pattern = re.compile(f'{token}([A-Za-z0-9_.-]+){token}')

    def replace_var(match):
        var_name = match.group(1)
        if var_name not in variables:
            return match.group(0)
        return format_value(variables[var_name])

    return pattern.sub(replace_var, template_text)


def token_template(surround: str = '%') -> TemplateFunction:
    """Return a template function bound to one surround token."""
    def render_text(text: str, variables: Dict[str, Any]) -> str:
        return substitute_variables(text, variables, surround)
    return render_text


def render_message(message: Message, template_function: Optional[TemplateFunction] = None) -> RenderedMessage:
    """
    Render subject, text and html of a message with its global data.

    Args:
        message: Message whose `global_data` supplies the values
        template_function: Callable(text, variables) -> str; defaults to `%name%` tokens
    """
    render_text = template_function or token_template()
    return RenderedMessage(
        subject=render_text(message.subject, message.global_data),
        body_text=render_text(message.text, message.global_data),
        body_html=render_text(message.html, message.global_data)
    )
