"""
Intent Router

Maps a classified query to the structured lookups that answer it and
collects their results into a ContextBundle.

Each intent has its own small handler in a dispatch table. Inside a handler:
- independent lookups run concurrently (asyncio.gather)
- a lookup that depends on another's output runs after it (the faculty
  student-allocation two-hop)
- a failed lookup is logged and dropped, its siblings are kept

Anything else that goes wrong in a handler is caught at route(), and the
partially assembled bundle is returned so generation can still proceed.
"""

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from exam_assistant.services.chatbot.errors import RetrievalError
from exam_assistant.services.chatbot.schemas import (
    ChatQuery,
    ContextBundle,
    Dataset,
    ExamFilter,
    FacultyAllocationFilter,
    FacultyFilter,
    FacultyStats,
    Intent,
    IntentClassification,
    Role,
    RoomFilter,
    StudentAllocationFilter,
    SubjectFilter,
    TimeFilter,
)
from exam_assistant.services.exam_data import ExamDataService

logger = logging.getLogger(__name__)

Handler = Callable[[ContextBundle, IntentClassification, ChatQuery], Awaitable[None]]


class IntentRouter:
    def __init__(self, data: ExamDataService):
        self.data = data
        self._handlers: dict[Intent, Handler] = {
            Intent.EXAM_INFO: self._exam_info,
            Intent.FACULTY_ALLOCATION: self._faculty_allocation,
            Intent.ROOM_INFO: self._room_info,
            Intent.STUDENT_ALLOCATION: self._student_allocation,
            Intent.FACULTY_INFO: self._faculty_info,
            Intent.SYSTEM_STATS: self._system_stats,
            Intent.GENERAL: self._general,
        }

    async def route(self, classification: IntentClassification, query: ChatQuery) -> ContextBundle:
        bundle = ContextBundle(
            intent=classification.intent,
            role=query.role,
            acting_user_name=query.acting_user_name,
        )
        handler = self._handlers.get(classification.intent, self._general)
        try:
            await handler(bundle, classification, query)
        except Exception:
            logger.exception(
                "Context gathering for intent=%s stopped early", classification.intent.value
            )
        logger.info(
            "Routed intent=%s role=%s datasets=%s",
            classification.intent.value,
            query.role.value,
            [d.value for d in bundle.data],
        )
        return bundle

    async def _gather(self, bundle: ContextBundle, lookups: dict[Dataset, Awaitable[Any]]) -> None:
        """Run independent lookups concurrently and keep every one that succeeded."""
        datasets = list(lookups)
        results = await asyncio.gather(*lookups.values(), return_exceptions=True)

        unexpected: BaseException | None = None
        for dataset, result in zip(datasets, results):
            if isinstance(result, RetrievalError):
                logger.warning("Lookup for %s failed: %s", dataset.value, result)
            elif isinstance(result, BaseException):
                unexpected = unexpected or result
            else:
                bundle.put(dataset, result)
        if unexpected is not None:
            raise unexpected

    @staticmethod
    def _own_id(query: ChatQuery) -> uuid.UUID | None:
        return query.acting_user_id if query.is_faculty else None

    @staticmethod
    def _time(c: IntentClassification) -> TimeFilter:
        return TimeFilter.from_period(c.time_period)

    def _own_allocations(self, faculty_id: uuid.UUID, c: IntentClassification, with_date: bool = False):
        return self.data.find_faculty_allocations(FacultyAllocationFilter(
            faculty_id=faculty_id,
            date=c.entity_date() if with_date else None,
            time=self._time(c),
        ))

    # ── Handlers ─────────────────────────────────────────────────────────────

    async def _exam_info(self, bundle: ContextBundle, c: IntentClassification, query: ChatQuery) -> None:
        lookups: dict[Dataset, Awaitable[Any]] = {
            Dataset.EXAMS: self.data.find_exams(ExamFilter(
                name=c.entity("exam_name"),
                year=c.entity_int("exam_year"),
                semester=c.entity_int("semester"),
            )),
        }
        if c.entity("subject_name") or c.entity("subject_code"):
            lookups[Dataset.SUBJECTS] = self.data.find_subjects(SubjectFilter(
                name=c.entity("subject_name"),
                subject_code=c.entity("subject_code"),
                semester=c.entity_int("semester"),
                date=c.entity_date(),
            ))
        own_id = self._own_id(query)
        if own_id:
            # Own duties are surfaced whatever exam was asked about
            lookups[Dataset.FACULTY_EXAMS] = self._own_allocations(own_id, c)
        await self._gather(bundle, lookups)

    async def _faculty_allocation(
        self, bundle: ContextBundle, c: IntentClassification, query: ChatQuery
    ) -> None:
        own_id = self._own_id(query)
        faculty_name = query.acting_user_name if query.is_faculty else c.entity("faculty_name")

        lookups: dict[Dataset, Awaitable[Any]] = {
            Dataset.ALLOCATIONS: self.data.find_faculty_allocations(FacultyAllocationFilter(
                faculty_id=own_id or c.entity_uuid("faculty_id"),
                faculty_name=faculty_name,
                room_id=c.entity_uuid("room_id"),
                date=c.entity_date(),
                time=self._time(c),
            )),
        }
        if faculty_name:
            lookups[Dataset.FACULTY] = self.data.find_faculty(FacultyFilter(name=faculty_name))
        await self._gather(bundle, lookups)

    async def _room_info(self, bundle: ContextBundle, c: IntentClassification, query: ChatQuery) -> None:
        room_number = c.entity("room_number")
        lookups: dict[Dataset, Awaitable[Any]] = {
            Dataset.ROOMS: self.data.find_rooms(RoomFilter(
                building=c.entity("building"),
                room_number=room_number,
                floor=c.entity_int("floor"),
            )),
        }
        if room_number:
            lookups[Dataset.ROOM_ALLOCATIONS] = self.data.find_student_allocations(
                StudentAllocationFilter(
                    room_number=room_number, date=c.entity_date(), time=self._time(c)
                )
            )
            lookups[Dataset.FACULTY_ROOM_ALLOCATIONS] = self.data.find_faculty_allocations(
                FacultyAllocationFilter(
                    room_number=room_number, date=c.entity_date(), time=self._time(c)
                )
            )
        own_id = self._own_id(query)
        if own_id:
            lookups[Dataset.FACULTY_ROOMS] = self._own_allocations(own_id, c)
        await self._gather(bundle, lookups)

    async def _student_allocation(
        self, bundle: ContextBundle, c: IntentClassification, query: ChatQuery
    ) -> None:
        room_number = c.entity("room_number")
        await self._gather(bundle, {
            Dataset.STUDENT_ALLOCATIONS: self.data.find_student_allocations(
                StudentAllocationFilter(
                    room_number=room_number,
                    semester=c.entity_int("semester"),
                    student=c.entity("student"),
                    date=c.entity_date(),
                    time=self._time(c),
                )
            ),
        })

        own_id = self._own_id(query)
        if not own_id or room_number:
            return

        # Two-hop: the faculty's own rooms first, then the students seated there
        try:
            own = await self._own_allocations(own_id, c, with_date=True)
        except RetrievalError as e:
            logger.warning("Lookup for own allocations failed: %s", e)
            return
        if not own:
            return

        room_ids = tuple(dict.fromkeys(a.room.id for a in own))
        room_numbers = tuple(dict.fromkeys(
            a.room.value.room_number for a in own
            if a.room.resolved and a.room.value.room_number
        ))
        await self._gather(bundle, {
            Dataset.FACULTY_ROOM_STUDENTS: self.data.find_student_allocations(
                StudentAllocationFilter(
                    room_ids=room_ids,
                    room_numbers=room_numbers,
                    date=c.entity_date(),
                    time=self._time(c),
                )
            ),
        })

    async def _faculty_info(self, bundle: ContextBundle, c: IntentClassification, query: ChatQuery) -> None:
        named = c.entity("faculty_name")
        if query.is_faculty and (
            not named or named.lower() in (query.acting_user_name or "").lower()
        ):
            bundle.put(Dataset.FACULTY, [query.user])
            return

        await self._gather(bundle, {
            Dataset.FACULTY: self.data.find_faculty(FacultyFilter(
                name=named,
                email=c.entity("email"),
                designation=c.entity("designation"),
            )),
        })

    async def _system_stats(self, bundle: ContextBundle, c: IntentClassification, query: ChatQuery) -> None:
        if query.role == Role.ADMIN:
            await self._gather(bundle, {Dataset.STATS: self.data.get_system_stats()})
            return

        user_id = query.acting_user_id
        if user_id is None:
            logger.info("system_stats requested without an identity; no stats gathered")
            return

        try:
            total, upcoming, past = await asyncio.gather(
                self.data.find_faculty_allocations(FacultyAllocationFilter(faculty_id=user_id)),
                self.data.find_faculty_allocations(
                    FacultyAllocationFilter(faculty_id=user_id, time=TimeFilter(future=True))
                ),
                self.data.find_faculty_allocations(
                    FacultyAllocationFilter(faculty_id=user_id, time=TimeFilter(past=True))
                ),
            )
        except RetrievalError as e:
            logger.warning("Lookup for facultyStats failed: %s", e)
            return

        bundle.put(Dataset.FACULTY_STATS, FacultyStats(
            total_allocations=len(total),
            upcoming_allocations=len(upcoming),
            past_allocations=len(past),
        ))

    async def _general(self, bundle: ContextBundle, c: IntentClassification, query: ChatQuery) -> None:
        lookups: dict[Dataset, Awaitable[Any]] = {
            Dataset.SEARCH_RESULTS: self.data.search_all(query.text),
        }
        own_id = self._own_id(query)
        if own_id:
            lookups[Dataset.FACULTY_DATA] = self._own_allocations(own_id, c)
        await self._gather(bundle, lookups)
