"""
Record Definitions

Dataclasses for every record kind a room stores, the table schema that
backs each kind, and the fixed data rooms are seeded with.
"""

import uuid
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Tuple, Type

# Record kinds
MESSAGES = "messages"
TODOS = "todos"
PROMPTS = "prompts"
NOTES = "notes"
CONTENTS = "contents"
PRI_ANSWERS = "pri_answers"

DEFAULT_PARTNER = "default"
CHAT_ROLES = ("user", "assistant")
ID_LENGTH = 8


def generate_id() -> str:
    """Generate a short random record identifier."""
    return uuid.uuid4().hex[:ID_LENGTH]


class Record:
    """
    Base class for stored records.

    Every record has an ``id`` field that is unique within its collection.
    Dataclass field names double as table column names.
    """

    id: str

    def to_row(self) -> Dict[str, Any]:
        """Convert to a table row."""
        return asdict(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_row(cls, row: Dict[str, Any]):
        """Create a record from a table row, ignoring unknown columns."""
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in row.items() if k in names})


@dataclass
class ChatMessage(Record):
    """
    A chat message.

    Attributes:
        id: Message identifier, chosen by the sending client
        user: Display name of the author
        role: One of CHAT_ROLES
        content: Message text
    """

    id: str
    user: str
    role: str
    content: str


@dataclass
class TodoItem(Record):
    """A shared todo in a partnership room."""

    id: str
    content: str
    completed: bool = False

    def __post_init__(self):
        # SQLite hands booleans back as integers on some drivers
        self.completed = bool(self.completed)


@dataclass
class Prompt(Record):
    """A discussion prompt."""

    id: str
    text: str


@dataclass
class PartnerNote(Record):
    """A note visible only to the partner that wrote it."""

    id: str
    partner: str
    text: str


@dataclass
class PartnerContent(Record):
    """
    Content addressed to a partner.

    Content tagged with DEFAULT_PARTNER is shown to every partner.
    """

    id: str
    partner: str
    text: str


@dataclass
class PRIAnswer(Record):
    """
    A partner's answer to one readiness question.

    Attributes:
        id: "{partner}:{question_id}", so the latest answer replaces older ones
        partner: Partner tag that answered
        question_id: Question answered
        score: Score from 1 to 5
    """

    id: str
    partner: str
    question_id: str
    score: int

    @classmethod
    def create(cls, partner: str, question_id: str, score: int) -> "PRIAnswer":
        return cls(
            id=f"{partner}:{question_id}",
            partner=partner,
            question_id=question_id,
            score=score,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "partner": self.partner,
            "questionId": self.question_id,
            "score": self.score,
        }


@dataclass(frozen=True)
class TableSchema:
    """
    Shape of a durable table.

    Attributes:
        name: Table name
        key: Primary key column
        columns: Ordered (column, type) pairs, type one of "text",
            "integer" or "boolean"; the key column comes first
    """

    name: str
    key: str
    columns: Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class Collection:
    """A record kind together with the table that persists it."""

    kind: str
    record_type: Type[Record]
    schema: TableSchema


def _text_schema(kind: str, *names: str) -> TableSchema:
    return TableSchema(
        name=kind,
        key="id",
        columns=(("id", "text"),) + tuple((n, "text") for n in names),
    )


COLLECTIONS: Dict[str, Collection] = {
    MESSAGES: Collection(
        MESSAGES, ChatMessage, _text_schema(MESSAGES, "user", "role", "content")
    ),
    TODOS: Collection(
        TODOS,
        TodoItem,
        TableSchema(
            name=TODOS,
            key="id",
            columns=(("id", "text"), ("content", "text"), ("completed", "boolean")),
        ),
    ),
    PROMPTS: Collection(PROMPTS, Prompt, _text_schema(PROMPTS, "text")),
    NOTES: Collection(NOTES, PartnerNote, _text_schema(NOTES, "partner", "text")),
    CONTENTS: Collection(
        CONTENTS, PartnerContent, _text_schema(CONTENTS, "partner", "text")
    ),
    PRI_ANSWERS: Collection(
        PRI_ANSWERS,
        PRIAnswer,
        TableSchema(
            name=PRI_ANSWERS,
            key="id",
            columns=(
                ("id", "text"),
                ("partner", "text"),
                ("question_id", "text"),
                ("score", "integer"),
            ),
        ),
    ),
}


def default_prompts() -> List[Prompt]:
    """Prompts written to a partnership room the first time it starts."""
    return [
        Prompt(id="finances", text="Discuss your finances."),
        Prompt(id="childcare", text="Plan division of childcare."),
        Prompt(id="career", text="Share your career plans."),
    ]


def default_contents() -> List[PartnerContent]:
    """Content written to a partnership room the first time it starts."""
    return [
        PartnerContent(
            id="welcome",
            partner=DEFAULT_PARTNER,
            text="Remember to support each other on this journey.",
        ),
    ]


# Readiness questionnaire, fixed and never persisted
PRI_QUESTIONS: Tuple[Dict[str, str], ...] = (
    {"id": "communication", "text": "We talk openly about what we need."},
    {"id": "finances", "text": "We agree on how we manage money."},
    {"id": "household", "text": "We share household work fairly."},
    {"id": "parenting", "text": "We have discussed our parenting values."},
    {"id": "support", "text": "I feel supported by my partner."},
)
PRI_QUESTION_IDS = frozenset(q["id"] for q in PRI_QUESTIONS)
PRI_MIN_SCORE = 1
PRI_MAX_SCORE = 5
