from .user import User
from .otp import OtpChallenge

__all__ = ["User", "OtpChallenge"]
