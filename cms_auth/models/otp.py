from cms_auth import db
from datetime import datetime


class OtpChallenge(db.Model):
    """The single live OTP for an email; overwritten on every new request."""

    __tablename__ = 'otp_challenges'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), unique=True, nullable=False)
    otp_hash = db.Column(db.String(255), nullable=False)
    used_up = db.Column(db.Boolean, nullable=False, default=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    user = db.relationship("User", back_populates="otp_challenges")
