# agents/action_executor.py
"""
Action Executor
Runs the handler for a classified intent and returns an AIResponse.

Every handler failure ends here: authorization and resolution failures
become their specific replies, anything else becomes a generic apology.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger

from ..algorithms.knowledge_stats import is_upcoming
from ..errors import AuthorizationError, ResolutionError, UnclassifiedInputError
from ..interfaces.knowledge_sync import KnowledgeSynchronizer
from ..interfaces.pending_store import PendingActionStore
from ..interfaces.session_memory import SessionMemory
from ..llm.dispatcher import UpstreamDispatcher
from ..llm.prompts import build_assistant_prompt, get_capabilities
from ..schemas.ai_schemas import (
    ActionType,
    AIAction,
    AIResponse,
    CurrentUser,
    Intent,
    IntentType,
    Resource,
)
from ..utils.ai_helpers import (
    bookable_events,
    contextual_suggestions,
    event_matches,
    find_event_by_id,
    find_event_by_title,
    format_price,
    is_bookable,
    search_cache_key,
    ticket_options,
)

ERROR_MESSAGE = "ขออภัยค่ะ เกิดข้อผิดพลาดในการดำเนินการ กรุณาลองใหม่อีกครั้งค่ะ"
ERROR_SUGGESTIONS = ["ลองใหม่", "ช่วยเหลือ", "รายงานปัญหา"]

LOGIN_URL = "/login"

BOOKING_CHOICE_LIMIT = 5
RECOMMEND_LIMIT = 3


@dataclass
class TurnContext:
    """Everything a handler may read for one chat turn"""
    session_id: str
    user_input: str
    memory: SessionMemory
    user: Optional[CurrentUser] = None
    current_page: Optional[str] = None
    conversation: str = ""
    carry_over: Dict[str, Any] = field(default_factory=dict)


def login_required(message: str = "กรุณาเข้าสู่ระบบก่อนค่ะ") -> AuthorizationError:
    return AuthorizationError(
        message,
        corrective_action=AIAction(type=ActionType.NAVIGATE, payload={"url": LOGIN_URL}),
        suggestions=["เข้าสู่ระบบ", "ดูอีเว้นท์ทั้งหมด"]
    )


Handler = Callable[[Intent, TurnContext], Awaitable[AIResponse]]


class ActionExecutor:
    """
    Dispatches intents to handlers.

    get_events / search_events / recommend_events read the session's TTL
    search cache before touching the synchronizer. force_realtime_update is
    the only handler that bypasses every age threshold.
    """

    def __init__(self, synchronizer: KnowledgeSynchronizer,
                 pending_store: PendingActionStore,
                 dispatcher: UpstreamDispatcher):
        self.sync = synchronizer
        self.pending_store = pending_store
        self.dispatcher = dispatcher

        self.handlers: Dict[IntentType, Handler] = {
            IntentType.CONFIRM_BOOKING: self._confirm_booking,
            IntentType.CONFIRM_NAVIGATION: self._confirm_navigation,
            IntentType.AUTO_NAVIGATE: self._auto_navigate,
            IntentType.AUTO_NAVIGATE_BOOKING: self._auto_navigate,
            IntentType.AUTO_NAVIGATE_DETAIL: self._auto_navigate,
            IntentType.FORCE_REALTIME_UPDATE: self._force_realtime_update,
            IntentType.AI_BOOKING: self._ai_booking,
            IntentType.SPECIFIC_EVENT_BOOKING: self._specific_event_booking,
            IntentType.GET_EVENTS: self._get_events,
            IntentType.RECOMMEND_EVENTS: self._recommend_events,
            IntentType.SEARCH_EVENTS: self._search_events,
            IntentType.GET_TICKETS: self._get_tickets,
            IntentType.GET_STATS: self._get_stats,
            IntentType.GLOBAL_SEARCH: self._global_search,
            IntentType.HELP: self._help,
            IntentType.BROWSE_CATEGORIES: self._browse_categories,
        }

    async def execute(self, intent: Intent, turn: TurnContext) -> AIResponse:
        """
        Execute one intent

        Never raises: every failure is turned into a chat reply.
        """
        try:
            handler = self.handlers.get(intent.type)
            if handler is None:
                raise UnclassifiedInputError(f"No handler for {intent.type.value}")
            return await handler(intent, turn)

        except UnclassifiedInputError:
            return await self._general_query(turn)

        except AuthorizationError as e:
            logger.info(f"[{turn.session_id}] {intent.type.value} refused: {e.message}")
            return AIResponse(
                message=e.message,
                action=e.corrective_action,
                suggestions=e.suggestions or ["ดูอีเว้นท์ทั้งหมด", "ช่วยเหลือ"]
            )

        except ResolutionError as e:
            logger.info(f"[{turn.session_id}] {intent.type.value} unresolved: {e.message}")
            return AIResponse(
                message=e.message,
                data=e.alternatives or None,
                suggestions=e.suggestions or ["ดูอีเว้นท์ทั้งหมด", "ค้นหาอีเว้นท์", "ช่วยเหลือ"]
            )

        except Exception as e:
            logger.exception(f"[{turn.session_id}] Handler {intent.type.value} crashed: {e}")
            return AIResponse(message=ERROR_MESSAGE, suggestions=list(ERROR_SUGGESTIONS))

    # ============================================
    # Listing / searching
    # ============================================

    async def _cached_events(self, turn: TurnContext, key: str,
                             select: Callable[[List[Dict[str, Any]]], List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        """Cache hit, or refresh events and cache `select(events)` if the refresh succeeded"""
        cached, hit = turn.memory.get_cached_search_result(key)
        if hit:
            logger.debug(f"[{turn.session_id}] search cache hit: {key}")
            return cached

        result = await self.sync.refresh(turn.memory, Resource.EVENTS, user=turn.user)
        selected = select(list(turn.memory.events))
        if result.warning is None:
            turn.memory.cache_search_result(key, selected)
        return selected

    async def _get_events(self, intent: Intent, turn: TurnContext) -> AIResponse:
        events = await self._cached_events(turn, search_cache_key("events"), lambda events: events)

        if not events:
            return AIResponse(
                message="ขณะนี้ยังไม่มีอีเว้นท์ในระบบค่ะ แต่เร็วๆ นี้อาจจะมีอีเว้นท์ใหม่ๆ เข้ามา ติดตามได้เลยค่ะ",
                data=events,
                suggestions=["รออีเว้นท์ใหม่", "ติดตามข่าวสาร", "ติดต่อสอบถาม"]
            )

        now = self.sync.clock()
        upcoming = sum(1 for e in events if is_upcoming(e, now))
        message = f"ตอนนี้มีอีเว้นท์ทั้งหมด {len(events)} รายการค่ะ"
        if upcoming:
            message += f" มีอีเว้นท์ที่กำลังจะมาถึง {upcoming} รายการ"
        message += " สามารถดูรายละเอียดได้ด้านล่างเลยค่ะ ✨"

        return AIResponse(message=message, data=events,
                          suggestions=["ดูรายละเอียด", "ค้นหาอีเว้นท์", "อีเว้นท์แนะนำ"])

    async def _search_events(self, intent: Intent, turn: TurnContext) -> AIResponse:
        query = (intent.payload.get("query") or "").strip()
        if not query:
            return AIResponse(
                message="ต้องการค้นหาอีเว้นท์แบบไหนคะ? พิมพ์ชื่อ หมวดหมู่ หรือคำที่เกี่ยวข้องได้เลยค่ะ",
                suggestions=["ค้นหาอีเว้นท์ดนตรี", "ค้นหาอีเว้นท์สัมมนา", "ดูอีเว้นท์ทั้งหมด"]
            )

        results = await self._cached_events(
            turn, search_cache_key("search", query),
            lambda events: [e for e in events if event_matches(e, query)]
        )
        turn.memory.record_search(query)

        return AIResponse(
            message=f'พบอีเว้นท์ที่ตรงกับ "{query}" จำนวน {len(results)} รายการค่ะ 🔍 ดูรายละเอียดด้านล่างได้เลยค่ะ',
            data=results,
            suggestions=["ดูรายละเอียด", "จองตั๋ว", "ค้นหาอื่น"]
        )

    async def _recommend_events(self, intent: Intent, turn: TurnContext) -> AIResponse:
        now = self.sync.clock()

        def pick(events: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
            candidates = bookable_events(events, now)
            # sorted() is stable: featured first, then soonest
            candidates = sorted(candidates, key=lambda e: not e.get("featured"))
            return candidates[:RECOMMEND_LIMIT]

        picks = await self._cached_events(turn, search_cache_key("recommend"), pick)
        if not picks:
            return AIResponse(
                message="ขณะนี้ยังไม่มีอีเว้นท์ที่เปิดจองให้แนะนำค่ะ",
                data=picks,
                suggestions=["ดูอีเว้นท์ทั้งหมด", "ค้นหาอีเว้นท์", "ช่วยเหลือ"]
            )

        return AIResponse(
            message=f"นี่คืออีเว้นท์น่าสนใจที่แนะนำให้คุณ {len(picks)} รายการค่ะ ✨ เลือกดูรายละเอียดที่สนใจได้เลยค่ะ",
            data=picks,
            suggestions=["ดูรายละเอียด", "จองตั๋ว", "ดูอีเว้นท์ทั้งหมด"]
        )

    async def _global_search(self, intent: Intent, turn: TurnContext) -> AIResponse:
        query = (intent.payload.get("query") or "").strip()
        if not query:
            return AIResponse(
                message="คุณต้องการค้นหาอะไรคะ? กรุณาระบุคำค้นหาค่ะ",
                suggestions=["ค้นหาอีเว้นท์", "ดูหมวดหมู่อีเว้นท์", "ดูตั๋วของฉัน"]
            )

        await self.sync.refresh(turn.memory, Resource.EVENTS, user=turn.user)
        await self.sync.refresh(turn.memory, Resource.CATEGORIES, user=turn.user)

        needle = query.lower()
        events = [e for e in turn.memory.events if event_matches(e, query)]
        categories = [
            c for c in turn.memory.categories
            if needle in (c.get("name") or "").lower() or needle in (c.get("description") or "").lower()
        ]
        turn.memory.record_search(query)

        return AIResponse(
            message=(f'ผลการค้นหา "{query}": พบอีเว้นท์ {len(events)} รายการ '
                     f"และหมวดหมู่ {len(categories)} หมวดหมู่ค่ะ"),
            data={"events": events, "categories": categories},
            suggestions=["ดูเพิ่มเติม", "กรองผลลัพธ์", "ค้นหาใหม่"]
        )

    async def _browse_categories(self, intent: Intent, turn: TurnContext) -> AIResponse:
        await self.sync.refresh(turn.memory, Resource.CATEGORIES, user=turn.user)
        categories = list(turn.memory.categories)

        if not categories:
            return AIResponse(message="ยังไม่มีข้อมูลหมวดหมู่อีเว้นท์ค่ะ", data=categories,
                              suggestions=["ดูอีเว้นท์ทั้งหมด", "ช่วยเหลือ"])

        return AIResponse(
            message=f"มีหมวดหมู่อีเว้นท์ทั้งหมด {len(categories)} หมวดหมู่ค่ะ",
            data=categories,
            suggestions=[f"ค้นหาอีเว้นท์ {c.get('name')}" for c in categories[:3] if c.get("name")]
        )

    # ============================================
    # Account / admin
    # ============================================

    async def _get_tickets(self, intent: Intent, turn: TurnContext) -> AIResponse:
        if turn.user is None:
            raise login_required("กรุณาเข้าสู่ระบบเพื่อดูตั๋วของคุณค่ะ")

        result = await self.sync.refresh(turn.memory, Resource.TICKETS, user=turn.user)
        tickets = list(turn.memory.tickets)

        if tickets:
            message = f"คุณมีตั๋วทั้งหมด {len(tickets)} ใบค่ะ 🎫 ดูรายละเอียดด้านล่างได้เลยค่ะ"
        else:
            message = "คุณยังไม่มีตั๋วในระบบค่ะ ลองดูอีเว้นท์ที่น่าสนใจแล้วจองได้เลยค่ะ"
        if result.warning:
            message += f"\n⚠️ {result.warning}"

        return AIResponse(message=message, data=tickets,
                          suggestions=["ดูรายละเอียดตั๋ว", "ตรวจสอบตั๋ว", "จองตั๋วใหม่"])

    async def _get_stats(self, intent: Intent, turn: TurnContext) -> AIResponse:
        if turn.user is None:
            raise login_required("กรุณาเข้าสู่ระบบด้วยบัญชีผู้ดูแลระบบเพื่อดูสถิติค่ะ")
        if not turn.user.is_admin:
            raise AuthorizationError(
                "ขออภัยค่ะ การดูสถิติระบบต้องมีสิทธิ์ผู้ดูแลระบบ",
                suggestions=["ดูตั๋วของฉัน", "ดูอีเว้นท์ทั้งหมด", "ติดต่อผู้ดูแล"]
            )

        results = await self.sync.refresh_all(turn.memory, user=turn.user)
        snapshot = self.sync.snapshot(turn.memory, turn.user)
        stats = snapshot.stats
        system = snapshot.admin_stats or {}

        lines = [
            "📊 สถิติระบบ:",
            f"- อีเว้นท์ทั้งหมด: {stats.totalEvents} รายการ (กำลังจะมาถึง {stats.upcomingEvents}, "
            f"กำลังดำเนินการ {stats.activeEvents}, ผ่านไปแล้ว {stats.pastEvents})",
            f"- ตั๋วที่ออกแล้ว: {stats.totalTickets} ใบ",
            f"- รายได้รวม: {format_price(stats.totalRevenue)}",
        ]
        if system:
            lines.append(f"- ผู้ใช้ทั้งหมด: {system.get('totalUsers', 0)} คน")
            lines.append(f"- การเติบโตของรายได้: {system.get('revenueGrowth', 0)}%")
        if stats.popularCategories:
            lines.append(f"- หมวดหมู่ยอดนิยม: {', '.join(stats.popularCategories)}")
        lines.extend(f"⚠️ {r.warning}" for r in results if r.warning)

        return AIResponse(
            message="\n".join(lines),
            data={**stats.model_dump(), "system": system},
            suggestions=["ดูรายละเอียด", "ส่งออกรายงาน", "ตั้งค่าการแจ้งเตือน"]
        )

    async def _help(self, intent: Intent, turn: TurnContext) -> AIResponse:
        capabilities = get_capabilities(turn.user)
        bullet_list = "\n".join(f"• {capability}" for capability in capabilities)
        return AIResponse(
            message=f"ฉันสามารถช่วยคุณได้ในเรื่องต่างๆ เหล่านี้:\n\n{bullet_list}\n\nพิมพ์คำถามหรือคำสั่งได้เลยค่ะ",
            suggestions=["ดูอีเว้นท์ทั้งหมด", "แนะนำอีเว้นท์", "ดูตั๋วของฉัน"]
        )

    async def _force_realtime_update(self, intent: Intent, turn: TurnContext) -> AIResponse:
        results = await self.sync.refresh_all(turn.memory, user=turn.user, force_refresh=True)
        turn.memory.search_results.clear()
        events = list(turn.memory.events)

        lines = [f"อัปเดตข้อมูลล่าสุดเรียบร้อยแล้วค่ะ 🔄 ตอนนี้มีอีเว้นท์ {len(events)} รายการ"]
        lines.extend(f"⚠️ {r.warning}" for r in results if r.warning)

        return AIResponse(message="\n".join(lines), data=events,
                          suggestions=["ดูอีเว้นท์ทั้งหมด", "แนะนำอีเว้นท์", "ดูหมวดหมู่อีเว้นท์"])

    # ============================================
    # Booking
    # ============================================

    async def _ai_booking(self, intent: Intent, turn: TurnContext) -> AIResponse:
        await self.sync.refresh(turn.memory, Resource.EVENTS, user=turn.user)
        choices = bookable_events(turn.memory.events, self.sync.clock(), limit=BOOKING_CHOICE_LIMIT)

        if not choices:
            raise ResolutionError("ขออภัยค่ะ ขณะนี้ยังไม่มีอีเว้นท์ที่เปิดให้จอง")

        return AIResponse(
            message=f"มีอีเว้นท์ที่เปิดให้จอง {len(choices)} รายการค่ะ 🎟️ เลือกอีเว้นท์ที่ต้องการจองได้เลยค่ะ",
            action=AIAction(type=ActionType.SHOW_BOOKING_CHOICES, payload={"events": choices}),
            data=choices,
            suggestions=[f"จอง {e.get('title')}" for e in choices[:3]]
        )

    async def _specific_event_booking(self, intent: Intent, turn: TurnContext) -> AIResponse:
        await self.sync.refresh(turn.memory, Resource.EVENTS, user=turn.user)
        now = self.sync.clock()
        title = intent.payload.get("eventTitle")

        event = find_event_by_title(turn.memory.events, title)
        if event is None or not is_bookable(event, now):
            reason = "ไม่พบอีเว้นท์" if event is None else "อีเว้นท์นี้ปิดการจองแล้วหรือที่นั่งเต็ม"
            raise ResolutionError(
                f'ขออภัยค่ะ {reason} "{title}" 😔 ลองดูอีเว้นท์อื่นที่เปิดจองด้านล่างค่ะ',
                alternatives=bookable_events(turn.memory.events, now, limit=3)
            )

        options = ticket_options(event)
        if not options:
            raise ResolutionError(f'ขออภัยค่ะ อีเว้นท์ "{event["title"]}" ยังไม่มีประเภทตั๋วที่เปิดขาย')

        return AIResponse(
            message=f'อีเว้นท์ "{event["title"]}" มีตั๋ว {len(options)} ประเภทค่ะ เลือกประเภทที่ต้องการได้เลยค่ะ 🎫',
            action=AIAction(
                type=ActionType.SHOW_TICKET_OPTIONS,
                payload={
                    "event": event,
                    "eventId": event["id"],
                    "ticketOptions": [o.model_dump() for o in options],
                }
            ),
            data=[event],
            suggestions=[f"จอง {o.label}" for o in options[:3]]
        )

    def _resolve_booking_target(self, intent: Intent, turn: TurnContext) -> Dict[str, Any]:
        """
        Work out (event, ticketType) from, in order: ticket options offered
        last turn, booking choices offered last turn, then the catalog.
        """
        title = intent.payload.get("eventTitle")
        wanted_type = intent.payload.get("ticketType")
        now = self.sync.clock()
        catalog = turn.memory.events

        event = None
        offered = turn.carry_over.get("ticket_options") or {}
        if offered.get("eventId") is not None:
            candidate = find_event_by_id(catalog, offered["eventId"]) or offered.get("event")
            if candidate and (title is None or find_event_by_title([candidate], title)):
                event = candidate

        if event is None:
            choices = turn.carry_over.get("booking_choices") or []
            if title:
                event = find_event_by_title(choices, title)
            elif len(choices) == 1:
                event = choices[0]

        if event is None:
            event = find_event_by_title(catalog, title)

        if event is None or not is_bookable(event, now):
            raise ResolutionError(
                "ขออภัยค่ะ ไม่ทราบว่าต้องการจองอีเว้นท์ไหน กรุณาเลือกอีเว้นท์ก่อนค่ะ",
                alternatives=bookable_events(catalog, now, limit=3),
                suggestions=["ช่วยจองตั๋ว", "ดูอีเว้นท์ทั้งหมด"]
            )

        options = ticket_options(event)
        option_types = [o.type for o in options]
        if wanted_type in option_types:
            ticket_type = wanted_type
        elif wanted_type is None and len(options) == 1:
            ticket_type = options[0].type
        else:
            raise ResolutionError(
                f'กรุณาเลือกประเภทตั๋วสำหรับ "{event.get("title")}" ค่ะ',
                suggestions=[f"จอง {o.label}" for o in options[:4]]
            )

        return {"event": event, "ticketType": ticket_type}

    async def _confirm_booking(self, intent: Intent, turn: TurnContext) -> AIResponse:
        if turn.user is None:
            raise login_required("กรุณาเข้าสู่ระบบก่อนจองตั๋วค่ะ 🔐")

        await self.sync.refresh(turn.memory, Resource.EVENTS, user=turn.user)
        target = self._resolve_booking_target(intent, turn)
        event, ticket_type = target["event"], target["ticketType"]

        turn.memory.record_booking(event["id"], ticket_type, self.sync.clock())
        logger.info(f"[{turn.session_id}] Handing off {event['id']}/{ticket_type} to checkout")

        return AIResponse(
            message=f'กำลังพาคุณไปยังหน้าชำระเงินสำหรับ "{event.get("title")}" ค่ะ 🎉',
            action=AIAction(
                type=ActionType.NAVIGATE,
                payload={
                    "url": f"/events/{event['id']}/booking",
                    "eventId": event["id"],
                    "ticketType": ticket_type,
                    "eventTitle": event.get("title"),
                }
            ),
            suggestions=["ดูตั๋วของฉัน", "ดูอีเว้นท์อื่น"]
        )

    # ============================================
    # Navigation
    # ============================================

    async def _auto_navigate(self, intent: Intent, turn: TurnContext) -> AIResponse:
        await self.sync.refresh(turn.memory, Resource.EVENTS, user=turn.user)
        name = intent.payload.get("eventName")

        event = find_event_by_title(turn.memory.events, name)
        if event is None:
            message = (f'ขออภัยค่ะ ไม่พบอีเว้นท์ "{name}" ที่คุณต้องการ 😔' if name
                       else "เรามีอีเว้นท์น่าสนใจหลายรายการค่ะ กรุณาระบุชื่ออีเว้นท์ที่ต้องการไปค่ะ")
            valid = [e for e in turn.memory.events if e.get("id") and e.get("title")]
            raise ResolutionError(message, alternatives=valid[:3])

        if intent.type == IntentType.AUTO_NAVIGATE_BOOKING:
            url = f"/events/{event['id']}/booking"
            prompt = "คุณต้องการให้ดิฉันพาไปยังหน้าจองตั๋วเลยไหมคะ? ✨"
        elif intent.type == IntentType.AUTO_NAVIGATE_DETAIL:
            url = f"/events/{event['id']}"
            prompt = "คุณต้องการให้ดิฉันพาไปดูรายละเอียดเลยไหมคะ? 📋"
        else:
            url = f"/events/{event['id']}"
            prompt = "คุณต้องการให้ดิฉันพาไปยังหน้านี้เลยไหมคะ? 🎯"

        self.pending_store.set(turn.session_id, {
            "url": url,
            "eventId": event["id"],
            "eventTitle": event["title"],
        })

        return AIResponse(
            message=f'พบอีเว้นท์ "{event["title"]}" แล้วค่ะ! 🎉\n\n{prompt}\n\n📍 พิมพ์ "ไปเลย" เพื่อไปยัง {url}',
            data=[event],
            suggestions=["ไปเลย", "ดูรายละเอียดก่อน", "ยกเลิก"]
        )

    async def _confirm_navigation(self, intent: Intent, turn: TurnContext) -> AIResponse:
        pending = self.pending_store.pop(turn.session_id)
        if pending is None:
            return AIResponse(
                message="ขออภัยค่ะ ไม่มีการนำทางที่รออยู่ค่ะ คุณต้องการให้บอกว่าจะไปที่ไหนก่อนไหมคะ? 😅",
                suggestions=["ดูอีเว้นท์ทั้งหมด", "ค้นหาอีเว้นท์", "ช่วยเหลือ"]
            )

        return AIResponse(
            message=f'เยี่ยมค่ะ! กำลังพาคุณไปยัง "{pending.get("eventTitle")}" เดี๋ยวนี้เลยค่ะ... 🚀',
            action=AIAction(type=ActionType.NAVIGATE, payload=pending),
            suggestions=["ดูรายละเอียด", "จองตั๋ว", "กลับหน้าหลัก"]
        )

    # ============================================
    # Free-form
    # ============================================

    async def _general_query(self, turn: TurnContext) -> AIResponse:
        prompt = build_assistant_prompt(
            knowledge=self.sync.summary(turn.memory, turn.user, turn.current_page),
            conversation=turn.conversation,
            freshness=self.sync.freshness(turn.memory),
            user_input=turn.user_input,
        )
        result = await self.dispatcher.generate(prompt)

        if not result.ok:
            return AIResponse(message=result.text, suggestions=result.suggestions)

        snapshot = self.sync.snapshot(turn.memory, turn.user)
        return AIResponse(
            message=result.text,
            suggestions=contextual_suggestions(snapshot, turn.user, self.sync.clock())
        )
