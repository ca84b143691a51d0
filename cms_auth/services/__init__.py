from datetime import timedelta

from cms_auth import db
from .auth_flow import AuthFlowController
from .hasher import SecretHasher
from .notifier import MailNotifier
from .store import CredentialStore
from .tokens import TokenIssuer


def build_auth_flow(app):
    """Wire the controller from the app's configuration; called once by create_app."""
    store = CredentialStore(db)
    with app.app_context():
        store.check_dialect()

    return AuthFlowController(
        store=store,
        hasher=SecretHasher(
            method=app.config['PASSWORD_HASH_METHOD'],
            salt_length=app.config['PASSWORD_SALT_LENGTH'],
        ),
        tokens=TokenIssuer(expires=timedelta(days=app.config['SESSION_TOKEN_TTL_DAYS'])),
        notifier=MailNotifier(app),
        otp_length=app.config['OTP_LENGTH'],
        otp_ttl=timedelta(seconds=app.config['OTP_TTL_SECONDS']),
        brand=app.config['MAIL_SENDER_NAME'],
    )
