import secrets


def generate_otp(length=6):
    """Uppercase hex code of ``length`` characters from the OS CSPRNG."""
    if not isinstance(length, int) or isinstance(length, bool) or length <= 0:
        raise ValueError("OTP length must be a positive integer")
    return secrets.token_bytes(length).hex().lower()[:length].upper()
