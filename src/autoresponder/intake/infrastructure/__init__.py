"""
Intake Infrastructure Layer
===========================

MIME parsing for inbound email.
"""

from autoresponder.intake.infrastructure.email_parser import parse_email, html_to_text

__all__ = ["parse_email", "html_to_text"]
