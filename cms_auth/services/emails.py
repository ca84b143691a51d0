from flask import render_template_string

email_template = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{ title }}</title>
    <style>
        body { font-family: 'Arial', sans-serif; }
        .email-container {
            max-width: 600px;
            margin: 0 auto;
            padding: 20px;
            border-radius: 10px;
            box-shadow: 0 2px 10px rgba(0, 0, 0, 0.1);
        }
        .email-header {
            text-align: center;
            padding: 20px 0;
            background-color: #405D72;
            color: #ffffff;
        }
        .email-body { text-align: center; padding: 20px; }
        .email-body p { font-size: 16px; line-height: 1.5; color: #758694; }
        .otp-block {
            display: inline-block;
            padding: 15px 30px;
            font-size: 28px;
            font-weight: bold;
            letter-spacing: 4px;
            color: #FFF8F3;
            background-color: #405D72;
            border-radius: 5px;
            margin: 20px 0;
        }
        .email-footer { text-align: center; padding: 20px 0; font-size: 12px; color: #777777; }
    </style>
</head>
<body>
    <div class="email-container">
        <div class="email-header"><h1>{{ brand }}</h1></div>
        <div class="email-body">
            {% for line in lines %}<p>{{ line }}</p>{% endfor %}
            {% if otp %}<div class="otp-block">{{ otp }}</div>{% endif %}
            {% if footer %}<p>{{ footer }}</p>{% endif %}
        </div>
        <div class="email-footer"><p>If you didn't request this email, just ignore it.</p></div>
    </div>
</body>
</html>
"""


def _render(brand, title, lines, otp=None, footer=None):
    return render_template_string(email_template, brand=brand, title=title, lines=lines, otp=otp, footer=footer)


def otp_email(brand, email, otp, ttl_minutes):
    """Returns (subject, text, html) for a one-time code."""
    subject = "Your OTP Code"
    text = f"Your OTP code is: {otp}\nThis code is valid for {ttl_minutes} minutes."
    html = _render(
        brand,
        subject,
        [f"Your Email: {email}", "Your OTP code is:"],
        otp=otp,
        footer=f"This code is valid for {ttl_minutes} minutes.",
    )
    return subject, text, html


def account_created_email(brand, username, email):
    subject = "Your Account Info"
    lines = [f"Your Username: {username}", f"Your Email: {email}", "An administrator created this account for you."]
    return subject, "\n".join(lines), _render(brand, subject, lines)


def role_changed_email(brand, is_admin):
    subject = "Admin"
    line = "You've become an Admin" if is_admin else "You have been removed from the position of admin"
    return subject, line, _render(brand, subject, [line])
