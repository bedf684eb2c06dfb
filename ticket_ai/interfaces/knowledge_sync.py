"""
Knowledge Synchronizer
Pulls fresh snapshots from the Data API into a session's memory on a
per-resource age threshold, or unconditionally when forced.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, List, Optional

from loguru import logger

from ..config import settings
from ..errors import AuthorizationError, DataFetchError
from ..llm.prompts import render_knowledge_summary
from ..schemas.ai_schemas import CurrentUser, KnowledgeSnapshot, RefreshResult, Resource
from .data_interface import DataAPI
from .session_memory import SessionMemory


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class KnowledgeSynchronizer:
    """
    Keeps a SessionMemory in step with the Data API.

    A failed fetch never clears what the memory already holds: the previous
    collection stays in place and the RefreshResult carries a warning.
    """

    def __init__(self, data_api: DataAPI, max_age: Optional[float] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.data_api = data_api
        self.max_age = settings.KNOWLEDGE_MAX_AGE if max_age is None else max_age
        self.clock = clock

    def is_stale(self, memory: SessionMemory, resource: Resource, force_refresh: bool = False,
                 user: Optional[CurrentUser] = None) -> bool:
        if resource == Resource.TICKETS and not memory.tickets_belong_to(user.id if user else None):
            return True
        threshold = 0 if force_refresh else self.max_age
        age = memory.age(resource, self.clock())
        if age is None:
            return True
        return force_refresh or age > threshold

    async def _fetch(self, resource: Resource, user: Optional[CurrentUser]):
        if resource == Resource.EVENTS:
            events, _ = await self.data_api.list_events()
            return events
        if resource == Resource.CATEGORIES:
            return await self.data_api.list_categories()
        if resource == Resource.TICKETS:
            return await self.data_api.list_user_tickets(user.id)
        return await self.data_api.get_system_stats()

    async def refresh(self, memory: SessionMemory, resource: Resource,
                      force_refresh: bool = False,
                      user: Optional[CurrentUser] = None) -> RefreshResult:
        """
        Refresh one resource if it is older than the threshold (or forced)

        Args:
            memory: Session memory to update
            resource: Which collection to refresh
            force_refresh: Ignore the age threshold
            user: Caller; tickets need a user, systemStats need an admin

        Returns:
            RefreshResult

        Raises:
            AuthorizationError: systemStats requested by a non-admin caller
        """
        if resource == Resource.SYSTEM_STATS and not (user and user.is_admin):
            raise AuthorizationError("ต้องมีสิทธิ์ผู้ดูแลระบบเพื่อดูสถิติระบบ")

        if resource == Resource.TICKETS and user is None:
            memory.forget_tickets(self.clock())
            return RefreshResult(resource=resource, count=0)

        if not self.is_stale(memory, resource, force_refresh, user):
            return RefreshResult(resource=resource, count=self._count(memory, resource))

        try:
            data = await self._fetch(resource, user)
        except DataFetchError as e:
            logger.warning(f"Refresh of {resource.value} failed, keeping previous data: {e.message}")
            return self._stale_result(memory, resource, user)
        except Exception as e:
            logger.exception(f"Refresh of {resource.value} crashed, keeping previous data: {e}")
            return self._stale_result(memory, resource, user)

        owner = user.id if resource == Resource.TICKETS else None
        memory.update_resource(resource, data or ([] if resource != Resource.SYSTEM_STATS else {}),
                               self.clock(), owner=owner)
        count = self._count(memory, resource)
        logger.debug(f"Refreshed {resource.value}: {count} items")
        return RefreshResult(resource=resource, refreshed=True, count=count)

    async def refresh_all(self, memory: SessionMemory, user: Optional[CurrentUser] = None,
                          force_refresh: bool = False) -> List[RefreshResult]:
        """Refresh every resource the caller is entitled to"""
        resources = [Resource.EVENTS, Resource.CATEGORIES]
        if user is not None:
            resources.append(Resource.TICKETS)
        else:
            memory.forget_tickets(self.clock())
        if user is not None and user.is_admin:
            resources.append(Resource.SYSTEM_STATS)

        if force_refresh:
            logger.info(f"Forced refresh of {', '.join(r.value for r in resources)}")

        return list(await asyncio.gather(*[
            self.refresh(memory, resource, force_refresh=force_refresh, user=user)
            for resource in resources
        ]))

    def snapshot(self, memory: SessionMemory, user: Optional[CurrentUser] = None) -> KnowledgeSnapshot:
        return memory.snapshot(user)

    def summary(self, memory: SessionMemory, user: Optional[CurrentUser] = None,
                current_page: Optional[str] = None, include_details: bool = True) -> str:
        return render_knowledge_summary(
            self.snapshot(memory, user), user, current_page, self.clock(), include_details
        )

    def freshness(self, memory: SessionMemory) -> str:
        """Per-resource age annotation for generation prompts"""
        now = self.clock()
        parts = []
        for resource in Resource:
            age = memory.age(resource, now)
            if age is not None:
                parts.append(f"{resource.value}: อัปเดตเมื่อ {int(age)} วินาทีที่แล้ว")
        if not parts:
            return "ยังไม่มีข้อมูลที่ดึงจากระบบ"
        return ", ".join(parts)

    def _stale_result(self, memory: SessionMemory, resource: Resource,
                      user: Optional[CurrentUser]) -> RefreshResult:
        # Someone else's tickets are never a usable fallback
        if resource == Resource.TICKETS and not memory.tickets_belong_to(user.id):
            memory.forget_tickets(self.clock())
        return RefreshResult(
            resource=resource,
            count=self._count(memory, resource),
            warning=f"ไม่สามารถอัปเดตข้อมูล {resource.value} ได้ กำลังใช้ข้อมูลเดิม"
        )

    @staticmethod
    def _count(memory: SessionMemory, resource: Resource) -> int:
        if resource == Resource.SYSTEM_STATS:
            return 1 if memory.admin_stats else 0
        return len(getattr(memory, resource.value))
