from voilab_send.providers.email_adapter import Address, Attachment, EmailAdapter, Message, SendResult

__all__ = ['Address', 'Attachment', 'EmailAdapter', 'Message', 'SendResult']
