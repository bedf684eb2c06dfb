"""
Langchain Prompt Templates
Defines the assistant prompt and the Thai knowledge summary it embeds
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.prompts import PromptTemplate

from ..algorithms.knowledge_stats import event_start, is_upcoming
from ..schemas.ai_schemas import CurrentUser, KnowledgeSnapshot

# ============================================
# Ticket types
# ============================================

TICKET_TYPE_LABELS: Dict[str, str] = {
    "earlyBird": "Early Bird",
    "regular": "ราคาปกติ",
    "student": "นักเรียน/นักศึกษา",
    "group": "กลุ่ม",
    "vip": "VIP",
    "premium": "Premium",
    "general": "ทั่วไป",
    "fullMarathon": "Full Marathon",
    "halfMarathon": "Half Marathon",
    "miniMarathon": "Mini Marathon",
    "funRun": "Fun Run",
    "adult": "ผู้ใหญ่",
    "child": "เด็ก",
    "senior": "ผู้สูงอายุ",
    "free": "ฟรี",
    "member": "สมาชิก",
}

LOCATION_LABELS = {"onsite": "ออนไซต์", "online": "ออนไลน์", "hybrid": "ไฮบริด"}

# ============================================
# Capabilities
# ============================================

USER_CAPABILITIES = [
    "ดูรายการอีเว้นท์พร้อมรายละเอียดครบถ้วน",
    "ค้นหาอีเว้นท์ตามหมวดหมู่ ราคา สถานที่ และวันที่",
    "ดูข้อมูลอีเว้นท์แบบละเอียด (วิทยากร ศิลปิน ราคา ที่นั่ง)",
    "ดูหมวดหมู่อีเว้นท์ทั้งหมดพร้อมคำอธิบาย",
    "ดูตั๋วของตนเองพร้อมสถานะและรายละเอียด",
    "ค้นหาและแนะนำอีเว้นท์ตามความสนใจ",
    "จองตั๋วและพาไปยังหน้าชำระเงิน",
    "ตรวจสอบที่นั่งว่างและราคาปัจจุบัน",
]

ADMIN_CAPABILITIES = [
    "ดูสถิติรายได้และการขายตั๋วแบบละเอียด",
    "ดูรายงานระบบและการเติบโตของรายได้",
    "ดูจำนวนผู้ใช้และสถานะการจองทั้งหมด",
]


def get_capabilities(user: Optional[CurrentUser]) -> List[str]:
    if user is not None and user.is_admin:
        return USER_CAPABILITIES + ADMIN_CAPABILITIES
    return list(USER_CAPABILITIES)


# ============================================
# Knowledge summary
# ============================================

def upcoming_events(events: Sequence[Dict[str, Any]], now: datetime, limit: int = 5) -> List[Dict[str, Any]]:
    """Upcoming events, soonest first"""
    upcoming = [e for e in events if is_upcoming(e, now)]
    upcoming.sort(key=event_start)
    return upcoming[:limit]


def _price_line(pricing: Dict[str, Any]) -> Optional[str]:
    currency = pricing.get("currency") or "บาท"
    prices = [
        f"{TICKET_TYPE_LABELS.get(key, key)}: {price:g} {currency}"
        for key, price in pricing.items()
        if key != "currency" and isinstance(price, (int, float)) and price > 0
    ]
    return ", ".join(prices[:3]) if prices else None


def render_event_details(event: Dict[str, Any]) -> List[str]:
    lines = []

    location = event.get("location") or {}
    if location.get("type"):
        text = f"   รูปแบบ: {LOCATION_LABELS.get(location['type'], location['type'])}"
        if location.get("venue"):
            text += f" ที่ {location['venue']}"
        lines.append(text)

    price_line = _price_line(event.get("pricing") or {})
    if price_line:
        lines.append(f"   ราคา: {price_line}")

    capacity = event.get("capacity")
    if capacity:
        text = f"   ที่นั่ง: {capacity.get('registered', 0)}/{capacity.get('max', 0)} คน"
        if (capacity.get("available") or 0) > 0:
            text += f" (เหลือ {capacity['available']} ที่)"
        lines.append(text)

    if event.get("featured"):
        lines.append("   🌟 อีเว้นท์แนะนำ")
    if event.get("speakers"):
        lines.append("   🎤 วิทยากร: " + ", ".join(s.get("name", "") for s in event["speakers"][:2]))
    if event.get("artists"):
        lines.append("   🎵 ศิลปิน: " + ", ".join(a.get("name", "") for a in event["artists"][:2]))

    return lines


def render_event_summary(events: Sequence[Dict[str, Any]], now: datetime,
                         include_details: bool = False) -> str:
    relevant = upcoming_events(events, now)
    if not relevant:
        return "ไม่มีอีเว้นท์ที่จะมาถึงในขณะนี้"

    lines = [f"อีเว้นท์ที่จะมาถึง ({len(relevant)} รายการ):"]
    for event in relevant:
        lines.append("")
        lines.append(f"📅 {event.get('title', '')}")
        lines.append(f"   หมวดหมู่: {event.get('category', '')}")
        lines.append(f"   วันที่: {event_start(event).strftime('%d/%m/%Y')}")
        if include_details:
            lines.extend(render_event_details(event))
    return "\n".join(lines)


def render_category_knowledge(snapshot: KnowledgeSnapshot) -> str:
    if not snapshot.categories:
        return "ไม่มีข้อมูลหมวดหมู่อีเว้นท์"

    lines = [f"หมวดหมู่อีเว้นท์ทั้งหมด ({len(snapshot.categories)} หมวดหมู่):"]
    for category in snapshot.categories:
        name = category.get("name", "")
        count = sum(1 for e in snapshot.events if e.get("category") == name)
        lines.append(f"🏷️ {name}: {count} รายการ")
        if category.get("description"):
            lines.append(f"   คำอธิบาย: {category['description']}")
    return "\n".join(lines)


def render_knowledge_summary(snapshot: KnowledgeSnapshot, user: Optional[CurrentUser],
                             current_page: Optional[str], now: datetime,
                             include_details: bool = True) -> str:
    """
    Thai rendering of what the assistant currently knows

    Args:
        snapshot: Knowledge snapshot for this session
        user: Current user, if logged in
        current_page: Storefront route the user is on
        now: Reference time for upcoming-event selection
        include_details: Append up to 5 upcoming events with full details

    Returns:
        Multi-line summary
    """
    stats = snapshot.stats
    lines = [
        "ข้อมูลระบบจัดการตั๋วอีเว้นท์ปัจจุบัน:",
        "",
        "📊 สถิติอีเว้นท์:",
        f"- อีเว้นท์ทั้งหมด: {stats.totalEvents} รายการ",
        f"- อีเว้นท์ที่กำลังดำเนินการ: {stats.activeEvents} รายการ",
        f"- อีเว้นท์ที่จะมาถึง: {stats.upcomingEvents} รายการ",
        f"- อีเว้นท์ที่ผ่านไปแล้ว: {stats.pastEvents} รายการ",
        "",
    ]

    if stats.popularCategories:
        lines.append(f"หมวดหมู่ที่ได้รับความนิยม: {', '.join(stats.popularCategories)}")
        lines.append("")

    lines.append("🎫 ข้อมูลตั๋ว:")
    lines.append(f"- ตั๋วที่ออกแล้ว: {stats.totalTickets} ใบ")
    lines.append(f"- รายได้รวม: {stats.totalRevenue:,.0f} บาท")
    if stats.averageTicketPrice > 0:
        lines.append(f"- ราคาเฉลี่ยต่อใบ: {stats.averageTicketPrice:.0f} บาท")
    lines.append("")

    if snapshot.admin_stats:
        admin = snapshot.admin_stats
        lines.append("🔐 สถิติผู้ดูแลระบบ:")
        lines.append(f"- ผู้ใช้ทั้งหมด: {admin.get('totalUsers', 0)} คน")
        lines.append(f"- การเติบโตของรายได้: {admin.get('revenueGrowth', 0)}%")
        lines.append("")

    role = user.role.value if user else "ผู้ใช้ทั่วไป"
    lines.append("👤 ข้อมูลผู้ใช้ปัจจุบัน:")
    lines.append(f"- ชื่อ: {(user.name if user else '') or 'ไม่ระบุ'}")
    lines.append(f"- สิทธิ์: {role}" + (" (มีสิทธิ์ผู้ดูแลระบบ)" if user and user.is_admin else ""))
    lines.append(f"- หน้าปัจจุบัน: {current_page or 'หน้าหลัก'}")
    lines.append("")

    lines.append("⚡ ความสามารถที่มี:")
    lines.extend(f"- {capability}" for capability in get_capabilities(user)[:8])
    lines.append("")

    lines.append(render_category_knowledge(snapshot))

    if include_details:
        lines.append("")
        lines.append(render_event_summary(snapshot.events, now, include_details=True))

    return "\n".join(lines)


# ============================================
# Assistant Prompt
# ============================================

ASSISTANT_PROMPT = PromptTemplate(
    input_variables=["knowledge", "conversation", "freshness", "user_input"],
    template="""คุณคือ AI Assistant ที่เข้าใจระบบจองตั๋วอีเว้นท์นี้อย่างลึกซึ้ง ใช้ความรู้จริงเกี่ยวกับระบบในการตอบ

{knowledge}

ความสดของข้อมูล: {freshness}

บริบทการสนทนา: {conversation}

ผู้ใช้ถาม: "{user_input}"

กรุณาตอบคำถามโดยใช้:
1. ความรู้เกี่ยวกับระบบที่คุณมี
2. ข้อมูลจริงที่เกี่ยวข้อง
3. ประสบการณ์จากการสนทนาก่อนหน้า
4. ความเข้าใจในบริบทปัจจุบัน

อย่าแต่งตัวเลขหรืออีเว้นท์ที่ไม่มีในข้อมูลข้างต้น
ตอบอย่างเป็นธรรมชาติ เป็นมิตร และมีประโยชน์
ตอบเป็นภาษาไทยเท่านั้น"""
)


def build_assistant_prompt(knowledge: str, conversation: str, freshness: str, user_input: str) -> str:
    return ASSISTANT_PROMPT.format(
        knowledge=knowledge,
        conversation=conversation,
        freshness=freshness,
        user_input=user_input
    )
