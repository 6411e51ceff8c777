import json
from uuid import uuid4

import pytest

from autoresponder.config import TicketSource
from autoresponder.core import AuthorizationException, UnsupportedEventException, ValidationException
from autoresponder.intake.application import IntakeNormalizer
from autoresponder.intake.domain import (
    NewReply,
    NewTicket,
    clean_email_body,
    extract_ticket_reference,
    is_reply,
    normalize_ticket_number,
    sign_payload,
    tokens_match,
    verify_signature,
)
from autoresponder.intake.infrastructure import html_to_text, parse_email

SECRET = "whsec_test"


def _body(event="ticket.created", **data):
    payload = {
        "event": event,
        "data": {
            "title": "Printer on fire",
            "description": "It is literally on fire.",
            "user": {"email": "Ops@Example.com", "name": "Ops"},
            **data,
        },
    }
    return json.dumps(payload).encode()


def _mime(subject="Cannot log in", body="Hello,\nI cannot log in.\n", **headers):
    lines = [
        "From: Jane Doe <jane@example.com>",
        "To: support@support.test",
        f"Subject: {subject}",
        "Message-ID: <abc123@mail.example.com>",
    ]
    lines += [f"{name.replace('_', '-')}: {value}" for name, value in headers.items()]
    lines += ["Content-Type: text/plain; charset=utf-8", "", body]
    return "\r\n".join(lines).encode()


class TestSignatures:
    def test_known_vector(self):
        # HMAC-SHA256("key", "The quick brown fox jumps over the lazy dog")
        assert sign_payload("The quick brown fox jumps over the lazy dog", "key") == (
            "f7bc83f430538424b13298e6aa6fb143ef4d59a14946175997479dbc2d1a3cd8"
        )

    def test_roundtrip_is_exact(self):
        body = b'{"event":"ticket.created"}'
        signature = sign_payload(body, SECRET)
        assert verify_signature(body, signature, SECRET)
        assert not verify_signature(body, signature.upper(), SECRET)
        assert not verify_signature(body, f" {signature} ", SECRET)

    def test_any_bit_flip_in_signature_invalidates(self):
        body = b'{"event":"ticket.created","data":{"subject":"Payment Failed"}}'
        signature = sign_payload(body, SECRET).encode("ascii")

        for index in range(len(signature)):
            for bit in range(8):
                mutated = bytearray(signature)
                mutated[index] ^= 1 << bit
                assert not verify_signature(body, bytes(mutated), SECRET), (index, bit)

    def test_shared_token_comparison(self):
        assert tokens_match("provider-token", "provider-token")
        assert not tokens_match("Provider-token", "provider-token")
        assert not tokens_match("provider-token", None)
        assert not tokens_match(None, None)
        assert not tokens_match("", "")

    @pytest.mark.parametrize("signature", [None, "", "not-hex", "00" * 32])
    def test_rejects_missing_malformed_or_wrong(self, signature):
        assert not verify_signature(b"{}", signature, SECRET)

    def test_any_body_change_invalidates(self):
        signature = sign_payload(b'{"a":1}', SECRET)
        assert not verify_signature(b'{"a": 1}', signature, SECRET)


class TestWebhookNormalization:
    def test_valid_signature_builds_ticket_with_fallback_fields(self):
        body = _body(priority="HIGH", type="billing")
        ticket = IntakeNormalizer().from_webhook(body, sign_payload(body, SECRET), SECRET)

        assert isinstance(ticket, NewTicket)
        assert ticket.subject == "Printer on fire"
        assert ticket.message == "It is literally on fire."
        assert ticket.customer_email == "Ops@Example.com"
        assert ticket.customer_name == "Ops"
        assert ticket.priority == "high"
        assert ticket.category == "billing"
        assert ticket.source == TicketSource.WEBHOOK

    def test_invalid_signature_rejected(self):
        with pytest.raises(AuthorizationException):
            IntakeNormalizer().from_webhook(_body(), "deadbeef", SECRET)

    def test_missing_signature_rejected_when_secret_set(self):
        with pytest.raises(AuthorizationException):
            IntakeNormalizer().from_webhook(_body(), None, SECRET)

    def test_no_secret_skips_verification(self):
        ticket = IntakeNormalizer().from_webhook(_body(), None, None)
        assert ticket.subject == "Printer on fire"

    def test_unsupported_event(self):
        with pytest.raises(UnsupportedEventException) as exc:
            IntakeNormalizer().from_webhook(_body(event="ticket.deleted"), None, None)
        assert exc.value.message == "Unsupported event type: ticket.deleted"

    def test_missing_subject_gets_default(self):
        body = json.dumps({"event": "ticket.create", "data": {"body": "help", "email": "a@example.com"}})
        ticket = IntakeNormalizer().from_webhook(body.encode(), None, None)
        assert ticket.subject == "Support Request"
        assert ticket.message == "help"

    @pytest.mark.parametrize("body", [b"not json", b"[]", b'{"event": "ticket.create", "data": []}'])
    def test_malformed_bodies(self, body):
        with pytest.raises(ValidationException):
            IntakeNormalizer().from_webhook(body, None, None)

    def test_invalid_email_rejected(self):
        body = json.dumps({"event": "ticket.create", "data": {"message": "x", "email": "nope"}}).encode()
        with pytest.raises(ValidationException):
            IntakeNormalizer().from_webhook(body, None, None)


class TestBuildTicket:
    def test_defaults_to_medium_priority_and_api_source(self):
        ticket = IntakeNormalizer().build_ticket("Subject", "Message", "user@example.com")
        assert ticket.priority == "medium"
        assert ticket.source == TicketSource.API

    def test_unknown_priority(self):
        with pytest.raises(ValidationException):
            IntakeNormalizer().build_ticket("Subject", "Message", "user@example.com", priority="whenever")

    def test_fields_pass_through_unchanged(self):
        ticket = IntakeNormalizer().build_ticket(
            "  Cannot log in ", "Hello,\n  I cannot log in.\n", "Ops@Example.com",
            customer_name="Ops Team ", category="Account",
        )
        assert ticket.subject == "  Cannot log in "
        assert ticket.message == "Hello,\n  I cannot log in.\n"
        assert ticket.customer_email == "Ops@Example.com"
        assert ticket.customer_name == "Ops Team "
        assert ticket.category == "Account"

    def test_invalid_email_syntax(self):
        with pytest.raises(ValidationException) as exc:
            IntakeNormalizer().build_ticket("Subject", "Message", "ops@@example")
        assert "customer_email" in exc.value.message

    @pytest.mark.parametrize("subject,message", [("", "m"), ("s", "   "), (None, "m")])
    def test_required_text(self, subject, message):
        with pytest.raises(ValidationException):
            IntakeNormalizer().build_ticket(subject, message, "user@example.com")


class TestEmailParsing:
    def test_plain_message(self):
        email = parse_email(_mime())
        assert email.sender.email == "jane@example.com"
        assert email.sender.name == "Jane Doe"
        assert email.subject == "Cannot log in"
        assert "I cannot log in." in email.text
        assert email.message_id == "<abc123@mail.example.com>"
        assert not is_reply(email)

    def test_missing_subject_gets_placeholder(self):
        raw = b"From: a@example.com\r\nContent-Type: text/plain\r\n\r\nhello\r\n"
        assert parse_email(raw).subject == "(No Subject)"

    def test_no_sender_rejected(self):
        with pytest.raises(ValidationException):
            parse_email(b"Subject: hi\r\n\r\nbody\r\n")

    def test_empty_rejected(self):
        with pytest.raises(ValidationException):
            parse_email(b"  ")

    def test_html_only_message_is_converted(self):
        raw = (
            "From: a@example.com\r\nSubject: hi\r\nContent-Type: text/html; charset=utf-8\r\n\r\n"
            "<p>Line&nbsp;one</p><p>Line two</p><script>x()</script>"
        ).encode()
        email = parse_email(raw)
        assert "Line\xa0one" in email.text
        assert "Line two" in email.text
        assert "x()" not in email.text

    def test_html_to_text(self):
        assert html_to_text("<div>a<br>b</div>") == "a\nb"


class TestThreading:
    def test_in_reply_to_thread_token(self):
        ticket_id = uuid4()
        email = parse_email(_mime(subject="Re: Cannot log in", In_Reply_To=f"<ticket-{ticket_id}@support.test>"))
        assert is_reply(email)
        assert extract_ticket_reference(email) == str(ticket_id)

    def test_references_thread_token(self):
        ticket_id = uuid4()
        email = parse_email(_mime(References=f"<other@x> <ticket-{ticket_id}@support.test>"))
        assert is_reply(email)
        assert extract_ticket_reference(email) == str(ticket_id)

    @pytest.mark.parametrize("subject", [
        "Re: [TKT-1042] Cannot log in",
        "RE: ticket #1042",
        "Re: [#1042] still broken",
    ])
    def test_subject_ticket_number(self, subject):
        email = parse_email(_mime(subject=subject))
        assert extract_ticket_reference(email) == "1042"

    def test_normalize_ticket_number(self):
        assert normalize_ticket_number("1042") == "TKT-1042"
        assert normalize_ticket_number(" tkt-1042 ") == "TKT-1042"

    @pytest.mark.asyncio
    async def test_resolved_reply_becomes_new_reply(self):
        ticket_id = uuid4()
        email = parse_email(_mime(
            subject="Re: Cannot log in",
            body="Still broken.\n\nOn Mon, Jan 1, 2024 Support wrote:\n> old text\n",
            In_Reply_To=f"<ticket-{ticket_id}@support.test>",
        ))
        seen = []

        async def resolve(reference):
            seen.append(reference)
            return ticket_id

        event = await IntakeNormalizer().from_email(email, resolve)
        assert isinstance(event, NewReply)
        assert event.ticket_id == ticket_id
        assert event.message == "Still broken."
        assert seen == [str(ticket_id)]

    @pytest.mark.asyncio
    async def test_unresolved_reply_becomes_new_ticket(self):
        email = parse_email(_mime(subject="Re: [TKT-9999] Something"))

        async def resolve(reference):
            return None

        event = await IntakeNormalizer().from_email(email, resolve)
        assert isinstance(event, NewTicket)
        assert event.source == TicketSource.EMAIL
        assert event.customer_email == "jane@example.com"


class TestCleanEmailBody:
    def test_strips_signature_quotes_and_preamble(self):
        text = "Thanks, that worked.\n\nOn Tue, Bob wrote:\n> earlier\n> message\n-- \nBob\nCEO"
        assert clean_email_body(text) == "Thanks, that worked."

    def test_strips_mobile_footer(self):
        assert clean_email_body("Yes please\n\nSent from my iPhone") == "Yes please"

    def test_collapses_blank_runs(self):
        assert clean_email_body("a\n\n\n\nb") == "a\n\nb"

    def test_falls_back_to_raw_text_when_everything_is_stripped(self):
        assert clean_email_body("> only quoted\n") == "> only quoted"
