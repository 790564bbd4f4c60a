# app/services/email_service.py
# This service is responsible for all email notifications.

import smtplib
from email.message import EmailMessage
from flask import current_app

# LAZY VALIDATION: Track whether email config has been validated
_email_config_validated = False

def _send_email(app, msg):
    """
    Internal function to send an email synchronously (blocking).
    """
    with app.app_context():
        try:
            # Create the SMTP connection
            smtp = smtplib.SMTP(
                current_app.config['MAIL_SERVER'],
                current_app.config['MAIL_PORT']
            )
            smtp.starttls() # Secure the connection
            smtp.login(
                current_app.config['MAIL_USERNAME'],
                current_app.config['MAIL_PASSWORD']
            )

            # Send the email
            smtp.send_message(msg)
            smtp.quit()

            current_app.logger.info(f"Email sent successfully to {msg['To']}")

        except Exception as e:
            current_app.logger.error(f"Error sending email to {msg['To']}: {str(e)}")
            raise  # Re-raise so caller knows it failed

def send_email(to_addresses, subject, body_text):
    """
    Public-facing function to send an email.

    LAZY VALIDATION: Validates email configuration on first use
    to reduce cold start time.
    """
    global _email_config_validated

    app = current_app._get_current_object()

    # Lazy validation: Check email config when first email is sent (one-time check)
    if not _email_config_validated:
        missing = [
            name for name in ('MAIL_SERVER', 'MAIL_USERNAME', 'MAIL_PASSWORD')
            if not app.config.get(name)
        ]
        if missing:
            app.logger.error(f"Email configuration error: missing {', '.join(missing)}")
            # Don't crash the app - just skip sending email
            return False
        _email_config_validated = True

    # Create the EmailMessage object
    msg = EmailMessage()
    msg['Subject'] = subject
    msg['From'] = app.config['MAIL_USERNAME']

    # Handle list of recipients or a single recipient string
    if isinstance(to_addresses, list):
        msg['To'] = ', '.join(to_addresses)
    else:
        msg['To'] = to_addresses

    msg.set_content(body_text)

    _send_email(app, msg)
    return True

# --- Specific Email Functions ---

def build_review_body(corte, zona, periodo, mismatches):
    lines = [
        f"El corte {corte} de {zona} (periodo {periodo}) se guardó con {len(mismatches)} agencia(s) por revisar.",
        f"Las cifras actuales no coinciden con las guardadas en el corte {corte - 1}:",
        "",
    ]
    previous = f'corte_{corte - 1}'
    for item in mismatches:
        expected, actual = item['expected'], item['actual']
        lines.append(
            f"- {item['ruc']} {item.get('agencia') or ''}: "
            f"altas {expected['altas']} -> {actual['altas']}, "
            f"{previous} {expected[previous]} -> {actual[previous]}"
        )
    return "\n".join(lines)


def send_settlement_review_email(corte, zona, periodo, mismatches):
    """
    Triggered when a saved cut has rows whose validation against the
    previous cut failed. Sends to the default (finance) inbox.
    """
    app = current_app._get_current_object()
    default_recipient = app.config.get('MAIL_DEFAULT_RECIPIENT')

    if not default_recipient or not app.config.get('MAIL_USERNAME'):
        app.logger.info("MAIL_DEFAULT_RECIPIENT or MAIL_USERNAME not set. Skipping review email.")
        return False

    subject = f"Revisión de Comisiones: Corte {corte} {zona} {periodo}"
    body = build_review_body(corte, zona, periodo, mismatches)

    return send_email([default_recipient], subject, body)
