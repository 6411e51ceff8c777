"""
Customer Email Templates
========================

Reply and confirmation emails, with the threading headers that let a
customer's reply find its way back to the ticket.
"""

from html import escape
from typing import Optional, Protocol
from uuid import UUID

from autoresponder.config.runtime import EmailIntegration
from autoresponder.infrastructure.mail import OutgoingEmail

REPLY_SUBJECT = "Re: {ticket_number} - Your support request"
CONFIRMATION_SUBJECT = "[{ticket_number}] We received your request: {subject}"

_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background-color: #f8f9fa; padding: 20px; border-radius: 5px; margin-bottom: 20px;">
    <h2 style="margin-top: 0; color: #2563eb;">{title}</h2>
  </div>
  <div style="background-color: #ffffff; padding: 20px; border: 1px solid #e5e7eb; border-radius: 5px;">
    <p>Hello {customer_name},</p>
{body}
    <p style="margin-top: 30px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px;">
      Ticket Number: <strong>{ticket_number}</strong><br>
      {footnote}
    </p>
  </div>
</body>
</html>"""

_QUOTE = (
    '    <div style="margin: 20px 0; padding: 15px; background-color: #f9fafb; '
    'border-left: 4px solid #2563eb;">{content}</div>'
)


class TicketLike(Protocol):
    id: UUID
    ticket_number: str
    subject: str
    customer_email: str
    customer_name: Optional[str]


def thread_id(ticket_id: UUID, domain: str) -> str:
    """Message-ID style token carrying the ticket id."""
    return f"<ticket-{ticket_id}@{domain}>"


def _ticket_headers(ticket: TicketLike) -> dict:
    return {
        "X-Ticket-ID": str(ticket.id),
        "X-Ticket-Number": ticket.ticket_number,
    }


def render_reply_html(ticket: TicketLike, response_text: str) -> str:
    body = "\n".join([
        _QUOTE.format(content=escape(response_text).replace("\n", "<br>")),
        "    <p>If you have any further questions, please reply to this email.</p>",
    ])
    return _PAGE.format(
        title=escape(f"Response to Ticket {ticket.ticket_number}"),
        customer_name=escape(ticket.customer_name or "Customer"),
        body=body,
        ticket_number=escape(ticket.ticket_number),
        footnote="This is an automated response. Please reply to this email if you need additional assistance.",
    )


def render_confirmation_html(ticket: TicketLike) -> str:
    body = "\n".join([
        "    <p>Thank you for contacting us. We've received your request and created ticket "
        f"<strong>{escape(ticket.ticket_number)}</strong>.</p>",
        _QUOTE.format(content=f"<strong>Subject:</strong> {escape(ticket.subject)}"),
        "    <p>Our team will review your ticket and respond as soon as possible.</p>",
    ])
    return _PAGE.format(
        title=escape(f"Ticket {ticket.ticket_number} Created"),
        customer_name=escape(ticket.customer_name or "Customer"),
        body=body,
        ticket_number=escape(ticket.ticket_number),
        footnote="Please keep this number for your records.",
    )


def reply_email(
    ticket: TicketLike,
    response_text: str,
    integration: EmailIntegration,
    domain: str
) -> OutgoingEmail:
    """The drafted reply, threaded onto the ticket."""
    thread = thread_id(ticket.id, domain)
    return OutgoingEmail(
        to=ticket.customer_email,
        to_name=ticket.customer_name,
        subject=REPLY_SUBJECT.format(ticket_number=ticket.ticket_number),
        text=response_text,
        html=render_reply_html(ticket, response_text),
        from_email=integration.from_email,
        from_name=integration.from_name,
        headers={
            "In-Reply-To": thread,
            "References": thread,
            "Reply-To": thread,
            **_ticket_headers(ticket),
        },
    )


def confirmation_email(
    ticket: TicketLike,
    integration: EmailIntegration,
    domain: str
) -> OutgoingEmail:
    """Acknowledgement for a ticket opened by email; starts the thread."""
    thread = thread_id(ticket.id, domain)
    return OutgoingEmail(
        to=ticket.customer_email,
        to_name=ticket.customer_name,
        subject=CONFIRMATION_SUBJECT.format(ticket_number=ticket.ticket_number, subject=ticket.subject),
        text=(
            f"Thank you for contacting us. Your ticket {ticket.ticket_number} has been created. "
            "We'll get back to you soon."
        ),
        html=render_confirmation_html(ticket),
        from_email=integration.from_email,
        from_name=integration.from_name,
        headers={
            "Message-ID": thread,
            "References": thread,
            **_ticket_headers(ticket),
        },
    )
