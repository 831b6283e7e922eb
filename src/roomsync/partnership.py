"""
Partnership Room

A persistent room shared by two partners: todos, discussion prompts,
partner-scoped notes and content, and a readiness questionnaire. All of
it is served through a small request router keyed by resource and
method.
"""

import dataclasses
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

from .errors import NotFoundError, RoomSyncError
from .records import (
    COLLECTIONS,
    CONTENTS,
    DEFAULT_PARTNER,
    NOTES,
    PRI_ANSWERS,
    PRI_QUESTIONS,
    PROMPTS,
    TODOS,
    PartnerContent,
    PartnerNote,
    PRIAnswer,
    TodoItem,
    default_contents,
    default_prompts,
    generate_id,
)
from .schemas import (
    RoomResponse,
    create_response_for_error,
    create_success_response,
)
from .storage import TableStore
from .store import RoomStateStore
from .utils import (
    parse_json_object,
    parse_pri_answer,
    parse_todo_update,
    require_text,
)

logger = logging.getLogger(__name__)

PARTNERSHIP_KINDS = (TODOS, PROMPTS, NOTES, CONTENTS, PRI_ANSWERS)

Body = Union[str, bytes, None]
Handler = Callable[["Request"], Awaitable[Dict[str, Any]]]


@dataclasses.dataclass
class Request:
    """
    A request routed to a partnership room.

    Attributes:
        method: HTTP method, upper case
        resource: First path segment after the room id, e.g. "todos"
        item_id: Second path segment, if any
        query: Query parameters
        body: Raw request body
    """

    method: str
    resource: str
    item_id: Optional[str]
    query: Mapping[str, str]
    body: Body

    @property
    def partner(self) -> str:
        return self.query.get("partner") or DEFAULT_PARTNER

    def json(self) -> Dict[str, Any]:
        return parse_json_object(self.body)


def readiness_score(answers: List[PRIAnswer]) -> float:
    """
    Compute the readiness score for one partner's answers.

    The score is the mean of the answers, rounded half-up to one decimal.
    Answers are assumed to hold at most one entry per question.

    Args:
        answers: The partner's answers

    Returns:
        float: The score, 0 when there are no answers
    """
    if not answers:
        return 0
    mean = Decimal(sum(a.score for a in answers)) / Decimal(len(answers))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class PartnershipRoom:
    """
    Partnership room state and request handling.

    Routes are registered per (resource, method). Resources that address a
    single record ("todos" with PUT/DELETE) take the record id from the
    second path segment.
    """

    def __init__(self, room_id: str, tables: TableStore):
        """
        Initialize the partnership room.

        Args:
            room_id: Room identifier
            tables: Durable tables for this room
        """
        self.room_id = room_id
        self.store = RoomStateStore(
            tables, [COLLECTIONS[k] for k in PARTNERSHIP_KINDS], room_id=room_id
        )
        # (resource, method, takes_item_id) -> handler
        self._routes: Dict[Tuple[str, str, bool], Handler] = {
            ("todos", "GET", False): self.list_todos,
            ("todos", "POST", False): self.create_todo,
            ("todos", "PUT", True): self.update_todo,
            ("todos", "DELETE", True): self.delete_todo,
            ("prompts", "GET", False): self.list_prompts,
            ("notes", "GET", False): self.list_notes,
            ("notes", "POST", False): self.create_note,
            ("content", "GET", False): self.list_content,
            ("content", "POST", False): self.create_content,
            ("pri", "GET", False): self.get_score,
            ("pri", "POST", False): self.record_answer,
        }

    async def on_start(self):
        """Load every collection and seed prompts and content."""
        for kind in PARTNERSHIP_KINDS:
            await self.store.load(kind)
        await self.store.seed(PROMPTS, default_prompts())
        await self.store.seed(CONTENTS, default_contents())
        logger.info(
            f"Partnership room {self.room_id} started with "
            f"{len(self.store.list(TODOS))} todos"
        )

    async def on_request(
        self,
        method: str,
        path: Union[str, List[str]],
        query: Optional[Mapping[str, str]] = None,
        body: Body = None,
    ) -> RoomResponse:
        """
        Handle a request for one of the room's sub-resources.

        Args:
            method: HTTP method
            path: Path below the room id, as a string or list of segments
            query: Query parameters
            body: Raw request body

        Returns:
            RoomResponse: 200 with a JSON body, or an error response
        """
        if isinstance(path, str):
            path = [segment for segment in path.split("/") if segment]

        try:
            request, handler = self._route(
                method.upper(), path, query or {}, body
            )
            body_data = await handler(request)
        except RoomSyncError as e:
            if e.status >= 500:
                logger.error(
                    f"{method} /{'/'.join(path)} failed in room "
                    f"{self.room_id}: {e}"
                )
            else:
                logger.warning(
                    f"{method} /{'/'.join(path)} rejected in room "
                    f"{self.room_id}: {e}"
                )
            return create_response_for_error(e)

        return create_success_response(body_data)

    def _route(
        self,
        method: str,
        path: List[str],
        query: Mapping[str, str],
        body: Body,
    ) -> Tuple[Request, Handler]:
        if not path:
            raise NotFoundError("Not Found")

        # pri/questions is a fixed read-only resource
        if path == ["pri", "questions"]:
            if method != "GET":
                raise NotFoundError("Not Found")
            return (
                Request(method, "pri/questions", None, query, body),
                self.list_questions,
            )

        resource = path[0]
        item_id = path[1] if len(path) > 1 else None
        if len(path) > 2:
            raise NotFoundError("Not Found")

        handler = self._routes.get((resource, method, item_id is not None))
        if handler is None:
            raise NotFoundError("Not Found")
        return Request(method, resource, item_id, query, body), handler

    # Todos

    async def list_todos(self, request: Request) -> Dict[str, Any]:
        return {"todos": [t.to_dict() for t in self.store.list(TODOS)]}

    async def create_todo(self, request: Request) -> Dict[str, Any]:
        content = require_text(request.json(), "content")
        todo = TodoItem(id=generate_id(), content=content, completed=False)
        await self.store.upsert(TODOS, todo)
        logger.info(f"Created todo {todo.id} in room {self.room_id}")
        return todo.to_dict()

    async def update_todo(self, request: Request) -> Dict[str, Any]:
        existing = self.store.get(TODOS, request.item_id)
        if existing is None:
            raise NotFoundError(f"Todo {request.item_id} not found")
        changes = parse_todo_update(request.json())

        todo = dataclasses.replace(existing, **changes)
        await self.store.upsert(TODOS, todo)
        return todo.to_dict()

    async def delete_todo(self, request: Request) -> Dict[str, Any]:
        if not await self.store.remove(TODOS, request.item_id):
            raise NotFoundError(f"Todo {request.item_id} not found")
        logger.info(f"Deleted todo {request.item_id} in room {self.room_id}")
        return {"ok": True}

    # Prompts

    async def list_prompts(self, request: Request) -> Dict[str, Any]:
        return {"prompts": [p.to_dict() for p in self.store.list(PROMPTS)]}

    # Partner notes and content

    async def list_notes(self, request: Request) -> Dict[str, Any]:
        partner = request.partner
        notes = self.store.list(NOTES, lambda n: n.partner == partner)
        return {"notes": [n.to_dict() for n in notes]}

    async def create_note(self, request: Request) -> Dict[str, Any]:
        data = request.json()
        note = PartnerNote(
            id=generate_id(),
            partner=_body_partner(request, data),
            text=require_text(data, "text"),
        )
        await self.store.upsert(NOTES, note)
        return note.to_dict()

    async def list_content(self, request: Request) -> Dict[str, Any]:
        partner = request.partner
        content = self.store.list(
            CONTENTS,
            lambda c: c.partner == partner or c.partner == DEFAULT_PARTNER,
        )
        return {"content": [c.to_dict() for c in content]}

    async def create_content(self, request: Request) -> Dict[str, Any]:
        data = request.json()
        item = PartnerContent(
            id=generate_id(),
            partner=_body_partner(request, data),
            text=require_text(data, "text"),
        )
        await self.store.upsert(CONTENTS, item)
        return item.to_dict()

    # Readiness questionnaire

    async def list_questions(self, request: Request) -> Dict[str, Any]:
        return {"questions": [dict(q) for q in PRI_QUESTIONS]}

    async def get_score(self, request: Request) -> Dict[str, Any]:
        return self._score_body(request.partner)

    async def record_answer(self, request: Request) -> Dict[str, Any]:
        question_id, score = parse_pri_answer(request.json())
        partner = request.partner
        await self.store.upsert(
            PRI_ANSWERS, PRIAnswer.create(partner, question_id, score)
        )
        return self._score_body(partner)

    def _score_body(self, partner: str) -> Dict[str, Any]:
        answers = self.store.list(PRI_ANSWERS, lambda a: a.partner == partner)
        return {
            "partner": partner,
            "score": readiness_score(answers),
            "answered": len(answers),
        }

    def close(self):
        self.store.close()


def _body_partner(request: Request, data: Dict[str, Any]) -> str:
    """Partner tag for a write: query parameter first, then the body."""
    if request.query.get("partner"):
        return request.query["partner"]
    partner = data.get("partner")
    if isinstance(partner, str) and partner:
        return partner
    return DEFAULT_PARTNER
