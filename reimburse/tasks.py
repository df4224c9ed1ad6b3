import logging
from flask_mail import Message
from reimburse.extensions import celery, mail

logger = logging.getLogger(__name__)


@celery.task(ignore_result=True)
def send_async_email(subject, recipient, body, is_html=True):
    """
    Background task to send an email via Flask-Mail.
    Single attempt: delivery failures are logged, never retried.
    """
    msg = Message(subject, recipients=[recipient])
    if is_html:
        msg.html = body
    else:
        msg.body = body

    try:
        mail.send(msg)
    except Exception as e:
        logger.error("Email to %s failed: %s", recipient, e)
        return f"Email to {recipient} failed"
    return f"Email sent to {recipient}"
