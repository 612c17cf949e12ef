from datetime import datetime
from html import escape

from accounts.schemas import EmailMessage

OTP_VALIDITY_MINUTES = 10


def _otp_email_html(code):
    safe_code = escape(str(code))
    year = datetime.now().year
    return f"""
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>PharmC Verification</title>
</head>
<body style="margin:0;padding:0;background:#ffffff;color:#111827;font-family:Arial,sans-serif;">
  <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="padding:24px 12px;">
    <tr>
      <td align="center">
        <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="max-width:560px;">
          <tr>
            <td style="padding:16px 24px 8px;">
              <h2 style="margin:0;">PharmC Verification</h2>
            </td>
          </tr>
          <tr>
            <td style="padding:0 24px;">
              <p>Your verification code is:</p>
            </td>
          </tr>
          <tr>
            <td style="padding:8px 24px;">
              <div style="font-size:32px;letter-spacing:6px;font-weight:700">{safe_code}</div>
            </td>
          </tr>
          <tr>
            <td style="padding:8px 24px 20px;">
              <p style="color:#666">This code expires in {OTP_VALIDITY_MINUTES} minutes.</p>
            </td>
          </tr>
          <tr>
            <td style="padding:12px 24px;border-top:1px solid #E5E7EB;color:#9CA3AF;font-size:12px;">
              &copy; {year} PharmC
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


def build_otp_email(code, recipient, sender, subject):
    """
    Compose the verification-code email for a single recipient.
    """
    plain_message = (
        f"Your PharmC verification code is {code}.\n\n"
        f"This code expires in {OTP_VALIDITY_MINUTES} minutes.\n"
        "If you didn't request this, ignore this email."
    )
    return EmailMessage(
        sender=sender,
        to=[recipient],
        subject=subject,
        html=_otp_email_html(code),
        text=plain_message,
    )
