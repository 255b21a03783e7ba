"""
Prompt construction for AI-assisted host routing.

The prompt is plain text with labeled sections; building it is a pure
function of the booking form data, the candidate hosts and the operator's
routing instructions.
"""

import json
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from .models import User

PUBLIC_EMAIL_DOMAINS = frozenset({
    "aol.com",
    "gmail.com",
    "gmx.de",
    "gmx.net",
    "googlemail.com",
    "hotmail.com",
    "icloud.com",
    "live.com",
    "mail.com",
    "me.com",
    "msn.com",
    "outlook.com",
    "proton.me",
    "protonmail.com",
    "web.de",
    "yahoo.com",
    "yandex.com",
    "zoho.com",
})

CONTACT_KEY = "primary_contact"


def classify_email_domain(email: Optional[str]) -> Tuple[Optional[str], str]:
    """
    Split off the email domain and label it ``public``, ``business`` or ``unknown``.
    """
    if not email or "@" not in email:
        return None, "unknown"

    domain = email.rsplit("@", 1)[1].strip().lower()
    if not domain:
        return None, "unknown"

    if domain in PUBLIC_EMAIL_DOMAINS:
        return domain, "public"
    return domain, "business"


def extract_contact(form_data: Mapping[str, Any]) -> Dict[str, Optional[str]]:
    """Name and email of the person booking, from ``primary_contact`` or top-level keys."""
    contact = form_data.get(CONTACT_KEY)
    if not isinstance(contact, Mapping):
        contact = form_data

    return {
        "name": contact.get("name") or None,
        "email": contact.get("email") or None,
    }


def _custom_fields(form_data: Mapping[str, Any]) -> Dict[str, Any]:
    contact_keys = {CONTACT_KEY}
    if not isinstance(form_data.get(CONTACT_KEY), Mapping):
        contact_keys |= {"name", "email"}
    return {k: v for k, v in form_data.items() if k not in contact_keys}


def _format_value(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def build_routing_prompt(
    form_data: Optional[Mapping[str, Any]],
    candidates: Sequence[User],
    instructions: str,
    *,
    event_name: Optional[str] = None,
    requested_time: Optional[datetime] = None,
) -> str:
    """
    Build the routing prompt sent to the AI decision service.

    Instructions are passed through verbatim.
    """
    form_data = form_data or {}
    contact = extract_contact(form_data)
    domain, domain_kind = classify_email_domain(contact["email"])

    lines = [
        "You are a meeting routing assistant for a scheduling platform. "
        "Assign the incoming meeting request to the most appropriate team member "
        "based on the instructions and context below.",
        "",
    ]

    if event_name or requested_time:
        lines.append("=== EVENT INFORMATION ===")
        if event_name:
            lines.append(f"Event: {event_name}")
        if requested_time:
            lines.append(
                f"Requested Time: {requested_time.strftime('%Y-%m-%d %H:%M')} "
                f"({requested_time.strftime('%A')})"
            )
        lines.append("")

    lines.append("=== CUSTOMER INFORMATION ===")
    lines.append(f"Name: {contact['name'] or 'Not provided'}")
    lines.append(f"Email: {contact['email'] or 'Not provided'}")
    lines.append("")

    lines.append("=== EMAIL DOMAIN ===")
    if domain:
        label = "public email provider" if domain_kind == "public" else "business domain"
        lines.append(f"Domain: {domain} ({label})")
    else:
        lines.append("Domain: unknown")
    lines.append("")

    lines.append("=== CUSTOM FIELDS ===")
    fields = _custom_fields(form_data)
    if fields:
        for key, value in fields.items():
            lines.append(f"- {key}: {_format_value(value)}")
    else:
        lines.append("None")
    lines.append("")

    lines.append("=== AVAILABLE TEAM MEMBERS ===")
    for user in candidates:
        lines.append(f"- ID {user.id}: {user.name}")
    lines.append("")

    lines.append("=== ROUTING INSTRUCTIONS ===")
    lines.append(instructions)
    lines.append("")

    lines.append("=== RESPONSE FORMAT ===")
    lines.append(
        'Return ONLY valid JSON with this exact format: '
        '{"assignee_id": <team member ID>, "reason": "brief explanation of your choice"}'
    )
    lines.append("Do not include any other text, just the JSON object.")

    return "\n".join(lines)
