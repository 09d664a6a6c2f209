"""Recipe parsers for pasted email bodies and WhatsApp chat exports."""
from __future__ import annotations

import email
import email.policy
import hashlib
import re
from datetime import datetime, timezone
from email.utils import parseaddr
from typing import Any, Mapping, Optional

from src.app.infra.scrapers.base import TextScraper
from src.services.errors import NoRecipeFoundError, ScraperError
from src.services.recipe_text import ParsedRecipeText, clean_string, parse_recipe_text

_QUOTED_LINE_RE = re.compile(r"^\s*>")
_SIGNATURE_RE = re.compile(r"^--\s*$", re.MULTILINE)
_FORWARD_MARKER_RE = re.compile(
    r"^.*(?:forwarded message|mensaje reenviado|mensagem encaminhada).*$",
    re.IGNORECASE | re.MULTILINE,
)
_CHAT_PREFIX_RE = re.compile(
    r"^\[?(?P<date>\d{1,2}[/.]\d{1,2}[/.]\d{2,4}),?\s+(?P<time>\d{1,2}:\d{2}(?::\d{2})?(?:\s?[AaPp][Mm])?)\]?"
    r"\s*(?:-\s*)?(?P<sender>[^:\n]{1,60}):\s?"
)
_SYSTEM_MESSAGE_RE = re.compile(r"<(?:media omitted|mídia oculta|multimedia omitido)>", re.IGNORECASE)


def _require_text(text: Optional[str], kind: str) -> str:
    if not text or not text.strip():
        raise ScraperError(f"Empty {kind} content")
    return text


def _message_id(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:16]


def _payload(parsed: ParsedRecipeText, source: str) -> dict[str, Any]:
    return {
        "title": parsed.title,
        "ingredients": parsed.ingredients,
        "instructions": parsed.instructions,
        "cookingTime": parsed.cooking_time,
        "servings": parsed.servings,
        "tags": parsed.tags,
        "source": source,
    }


class EmailScraper(TextScraper):
    """Parses a pasted email (headers optional) into a recipe payload."""

    async def scrape_recipe(self, text: str, metadata: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        raw = _require_text(text, "email")
        meta = dict(metadata or {})

        message = email.message_from_string(raw.lstrip(), policy=email.policy.default)
        has_headers = bool(message.get("From") or message.get("Subject"))
        if has_headers:
            part = message.get_body(preferencelist=("plain",)) if message.is_multipart() else message
            body = part.get_content() if part is not None else ""
        else:
            body = raw

        subject = clean_string(meta.get("subject")) or clean_string(str(message.get("Subject") or ""))
        sender_name, sender_address = parseaddr(str(message.get("From") or meta.get("sender") or ""))

        body = _SIGNATURE_RE.split(body, maxsplit=1)[0]
        body = _FORWARD_MARKER_RE.sub("", body)
        body = "\n".join(line for line in body.splitlines() if not _QUOTED_LINE_RE.match(line))

        parsed = parse_recipe_text(body, fallback_title=subject)
        if parsed.is_empty:
            raise NoRecipeFoundError("Insufficient recipe data found in email")

        payload = _payload(parsed, "email")
        payload["author"] = {
            "username": sender_address or "unknown",
            "displayName": clean_string(sender_name),
        }
        payload["publishedAt"] = clean_string(meta.get("date")) or clean_string(str(message.get("Date") or ""))
        payload["metadata"] = {
            "messageId": clean_string(str(message.get("Message-ID") or "")) or _message_id(raw),
            "subject": subject,
            "sender": sender_address or None,
        }
        return payload


class WhatsAppScraper(TextScraper):
    """Parses a forwarded WhatsApp message or a chat export into a recipe payload."""

    async def scrape_recipe(self, text: str, metadata: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        raw = _require_text(text, "WhatsApp message")
        meta = dict(metadata or {})

        senders: list[str] = []
        lines: list[str] = []
        for line in _FORWARD_MARKER_RE.sub("", raw).splitlines():
            match = _CHAT_PREFIX_RE.match(line)
            if match:
                senders.append(match.group("sender").strip())
                line = line[match.end():]
            if _SYSTEM_MESSAGE_RE.search(line):
                continue
            lines.append(line)

        parsed = parse_recipe_text("\n".join(lines))
        if parsed.is_empty:
            raise NoRecipeFoundError("Insufficient recipe data found in WhatsApp message")

        sender = clean_string(meta.get("sender")) or (senders[0] if senders else None)
        payload = _payload(parsed, "whatsapp-message")
        payload["author"] = {"username": sender or "unknown", "displayName": sender}
        payload["publishedAt"] = clean_string(meta.get("timestamp")) or datetime.now(timezone.utc).isoformat()
        payload["metadata"] = {
            "messageId": clean_string(meta.get("messageId")) or _message_id(raw),
            "sender": sender,
            "isForwarded": bool(meta.get("isForwarded")),
            "originalSender": clean_string(meta.get("originalSender")),
        }
        return payload
