"""Fire-and-forget email delivery over Flask-Mail."""
from threading import Thread

from flask_mail import Message

from cms_auth import mail
from cms_auth.logs import mask_email


class MailNotifier:
    """Sends each message on its own daemon thread; failures are logged, never raised."""

    def __init__(self, app):
        self.app = app

    def send(self, to_email, subject, body_text, body_html):
        sender_email = self.app.config.get('MAIL_USERNAME') or 'no-reply@localhost'
        sender = f"{self.app.config.get('MAIL_SENDER_NAME')} <{sender_email}>"
        msg = Message(subject, sender=sender, recipients=[to_email], body=body_text, html=body_html)
        thread = Thread(target=self._deliver, args=(msg,), daemon=True)
        thread.start()
        return thread

    def _deliver(self, msg):
        with self.app.app_context():
            try:
                mail.send(msg)
            except Exception:
                self.app.logger.exception("Failed to send %r to %s", msg.subject, mask_email(msg.recipients[0]))
            else:
                self.app.logger.info("Sent %r to %s", msg.subject, mask_email(msg.recipients[0]))
