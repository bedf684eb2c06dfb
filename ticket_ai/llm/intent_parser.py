# llm/intent_parser.py
"""
Intent Parser for the Ticket Assistant
Maps free-text chat input onto a closed set of intents with keyword rules.

Rules are not mutually exclusive. They are evaluated in this fixed order
and the first match wins:

 1. confirm_booking        ("ยืนยันการจอง", or a booking verb + a ticket type)
 2. confirm_navigation /   (bare "ไปเลย", "ok", ... / "พาไป", "navigate", ...)
    auto_navigate[_booking|_detail]
 3. force_realtime_update  ("ข้อมูลล่าสุด", "refresh", ...)
 4. ai_booking             (booking request naming no catalog event)
 5. specific_event_booking (booking verb + a catalog event title)
 6. get_events
 7. recommend_events
 8. search_events          ("ค้นหาอีเว้นท์ ...", "หาอีเว้นท์ ...")
 9. get_tickets
10. get_stats
11. global_search          ("ค้นหา", "search", input starting with "หา")
12. help
13. browse_categories
14. general_query          (fallback, answered by the generation backend)

So "จองตั๋ว VIP งาน Jazz Night" is confirm_booking, not
specific_event_booking: the ticket-type rule is declared first.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from ..schemas.ai_schemas import Intent, IntentType
from .prompts import TICKET_TYPE_LABELS


@dataclass
class ParsedInput:
    """Normalized user input plus the catalog/ticket-type mentions found in it"""
    raw: str
    text: str
    event_title: Optional[str] = None
    ticket_type: Optional[str] = None
    words: List[str] = field(default_factory=list)

    def has(self, *phrases: str) -> bool:
        return any(p in self.text for p in phrases)


Rule = Callable[[ParsedInput], Optional[Tuple[IntentType, Dict[str, Any]]]]


class IntentParser:
    """
    Rule-based intent classifier.
    Each rule returns (intent, payload) or None; rules run in priority order.
    """

    def __init__(self):
        self.booking_verbs = ["จอง", "book"]

        self.confirm_booking_phrases = ["ยืนยันการจอง", "confirm booking", "ยืนยันจอง"]

        self.confirm_navigation_words = {
            "ไปเลย", "ไป", "ไปกันเลย", "go", "go ahead", "ok", "okay",
            "โอเค", "ตกลง", "ใช่", "yes",
        }

        self.navigation_phrases = ["พาไป", "navigate", "ไปที่หน้า", "ไปหน้า", "take me to"]

        self.realtime_phrases = [
            "ข้อมูลล่าสุด", "อัปเดตข้อมูล", "อัพเดทข้อมูล", "ข้อมูลแบบเรียลไทม์",
            "real-time", "realtime", "refresh", "latest data",
        ]

        self.ai_booking_phrases = [
            "ช่วยจอง", "อยากจอง", "ต้องการจอง", "จองตั๋ว", "จองให้หน่อย",
            "book a ticket", "book tickets", "help me book",
        ]

        self.list_events_phrases = [
            "ดูอีเว้นท์", "อีเว้นท์ทั้งหมด", "รายการอีเว้นท์", "มีอีเว้นท์อะไรบ้าง",
            "อีเว้นท์อะไรบ้าง", "มีงานอะไรบ้าง", "งานอะไรบ้าง", "อีเว้นท์ที่กำลังจะมาถึง",
        ]

        self.recommend_phrases = [
            "อีเว้นท์ไหนน่าสนใจ", "แนะนำอีเว้นท์", "อีเว้นท์น่าสนใจ",
            "งานไหนน่าสนใจ", "แนะนำงาน", "อีเว้นท์ดีๆ", "อีเว้นท์แนะนำ", "recommend",
        ]

        self.ticket_phrases = ["ตั๋วของฉัน", "ดูตั๋ว", "ตั๋วที่จอง", "my ticket"]

        self.stats_phrases = [
            "สถิติ", "ข้อมูลระบบ", "รายงานระบบ", "ยอดขาย", "stats", "statistics", "report",
        ]

        self.help_phrases = ["ช่วยเหลือ", "help", "ทำอะไรได้", "วิธีใช้"]

        self.category_phrases = ["หมวดหมู่", "category", "categories", "ประเภทอีเว้นท์"]

        # Ticket-type aliases: pricing key and its display label, lowercased
        self.ticket_type_aliases: List[Tuple[str, str]] = sorted(
            [(key.lower(), key) for key in TICKET_TYPE_LABELS]
            + [(label.lower(), key) for key, label in TICKET_TYPE_LABELS.items()],
            key=lambda alias: len(alias[0]),
            reverse=True
        )

        self.rules: List[Rule] = [
            self._confirm_booking,
            self._navigation,
            self._realtime,
            self._ai_booking,
            self._specific_event_booking,
            self._get_events,
            self._recommend_events,
            self._search_events,
            self._get_tickets,
            self._get_stats,
            self._global_search,
            self._help,
            self._browse_categories,
        ]

    # ------------------------------------------------------------------
    # Input normalization
    # ------------------------------------------------------------------

    def _find_ticket_type(self, text: str) -> Optional[str]:
        for alias, key in self.ticket_type_aliases:
            if alias.isascii():
                if re.search(rf"\b{re.escape(alias)}\b", text):
                    return key
            elif alias in text:
                return key
        return None

    @staticmethod
    def _find_event_title(text: str, catalog_titles: Sequence[str]) -> Optional[str]:
        """Longest catalog title mentioned in the input"""
        matches = [t for t in catalog_titles if t and t.lower() in text]
        if not matches:
            return None
        return max(matches, key=len)

    def prepare(self, user_input: str, catalog_titles: Sequence[str] = ()) -> ParsedInput:
        text = " ".join(user_input.lower().split())
        return ParsedInput(
            raw=user_input.strip(),
            text=text,
            event_title=self._find_event_title(text, catalog_titles),
            ticket_type=self._find_ticket_type(text),
            words=text.split(),
        )

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _confirm_booking(self, parsed: ParsedInput):
        explicit = parsed.has(*self.confirm_booking_phrases)
        typed = parsed.ticket_type is not None and parsed.has(*self.booking_verbs)
        if explicit or typed:
            return IntentType.CONFIRM_BOOKING, {
                "ticketType": parsed.ticket_type,
                "eventTitle": parsed.event_title,
            }
        return None

    def _navigation(self, parsed: ParsedInput):
        if parsed.text in self.confirm_navigation_words:
            return IntentType.CONFIRM_NAVIGATION, {}

        if not parsed.has(*self.navigation_phrases):
            return None

        payload = {"eventName": parsed.event_title}
        if parsed.has(*self.booking_verbs, "booking"):
            return IntentType.AUTO_NAVIGATE_BOOKING, payload
        if parsed.has("รายละเอียด", "detail"):
            return IntentType.AUTO_NAVIGATE_DETAIL, payload
        return IntentType.AUTO_NAVIGATE, payload

    def _realtime(self, parsed: ParsedInput):
        if parsed.has(*self.realtime_phrases):
            return IntentType.FORCE_REALTIME_UPDATE, {}
        return None

    def _ai_booking(self, parsed: ParsedInput):
        if parsed.event_title is None and parsed.has(*self.ai_booking_phrases):
            return IntentType.AI_BOOKING, {}
        return None

    def _specific_event_booking(self, parsed: ParsedInput):
        if parsed.event_title is not None and parsed.has(*self.booking_verbs):
            return IntentType.SPECIFIC_EVENT_BOOKING, {"eventTitle": parsed.event_title}
        return None

    def _get_events(self, parsed: ParsedInput):
        listing = parsed.has("event") and parsed.has("list", "all")
        if listing or parsed.has(*self.list_events_phrases):
            return IntentType.GET_EVENTS, {}
        return None

    def _recommend_events(self, parsed: ParsedInput):
        if parsed.has(*self.recommend_phrases):
            return IntentType.RECOMMEND_EVENTS, {}
        return None

    def _search_events(self, parsed: ParsedInput):
        if parsed.has("ค้นหาอีเว้นท์") or parsed.text.startswith("หาอีเว้นท์"):
            query = re.sub(r"ค้นหาอีเว้นท์|หาอีเว้นท์", "", parsed.raw, flags=re.IGNORECASE).strip()
            return IntentType.SEARCH_EVENTS, {"query": query}
        return None

    def _get_tickets(self, parsed: ParsedInput):
        if parsed.has(*self.ticket_phrases):
            return IntentType.GET_TICKETS, {}
        return None

    def _get_stats(self, parsed: ParsedInput):
        if parsed.has(*self.stats_phrases):
            return IntentType.GET_STATS, {}
        return None

    def _global_search(self, parsed: ParsedInput):
        if parsed.has("ค้นหา", "search") or parsed.text.startswith("หา"):
            query = re.sub(r"^หา|ค้นหา|search", "", parsed.raw, flags=re.IGNORECASE).strip(" :\"'")
            return IntentType.GLOBAL_SEARCH, {"query": query}
        return None

    def _help(self, parsed: ParsedInput):
        if parsed.has(*self.help_phrases):
            return IntentType.HELP, {}
        return None

    def _browse_categories(self, parsed: ParsedInput):
        if parsed.has(*self.category_phrases):
            return IntentType.BROWSE_CATEGORIES, {}
        return None

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def classify(self, user_input: str, catalog_titles: Sequence[str] = ()) -> Intent:
        """
        Classify one chat turn

        Args:
            user_input: Raw message text
            catalog_titles: Titles of known events, for event-name matching

        Returns:
            Intent (general_query when no rule matches)
        """
        parsed = self.prepare(user_input, catalog_titles)

        for rule in self.rules:
            matched = rule(parsed)
            if matched is not None:
                intent_type, payload = matched
                logger.debug(f"Intent: {intent_type.value} <- {rule.__name__}")
                return Intent(type=intent_type, payload=payload)

        return Intent(type=IntentType.GENERAL_QUERY, payload={"query": parsed.raw})


# Global instance
intent_parser = IntentParser()


def classify(user_input: str, catalog_titles: Sequence[str] = ()) -> Intent:
    """Convenience function for classification"""
    return intent_parser.classify(user_input, catalog_titles)
