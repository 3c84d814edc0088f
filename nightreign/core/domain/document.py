"""Document, candidate and rerank models for the search pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from functools import total_ordering


class ContentType(str, Enum):
    """Closed set of game-content categories.

    Used for filtering and never for free-text matching priority.
    """

    BOSS = "boss"
    WEAPON = "weapon"
    RELIC = "relic"
    NIGHTFARER = "nightfarer"
    SKILL = "skill"
    TALISMAN = "talisman"
    SPELL = "spell"
    ARMOR = "armor"
    SHIELD = "shield"
    ENEMY = "enemy"
    NPC = "npc"
    MERCHANT = "merchant"
    LOCATION = "location"
    EXPEDITION = "expedition"
    ITEM = "item"
    GUIDE = "guide"


class SearchMode(str, Enum):
    """Retrieval mechanism that produced a score."""

    VECTOR = "vector"
    KEYWORD = "keyword"
    HYBRID = "hybrid"


@dataclass
class Document:
    """A single indexed passage.

    Attributes:
        type: Content category of the entity.
        name: Display name of the entity (highest-weighted keyword field).
        section: Sub-topic label within the entity, e.g. "strategy".
        content: The passage text.
        embedding: Vector of exactly the index's configured dimensionality.
        tags: Free-form tags. Order and duplicates are preserved.
        source_url: Passthrough metadata, never scored.
        id: Unique identifier. Generated on insert when missing.
    """

    type: ContentType
    name: str
    section: str
    content: str
    embedding: list[float]
    tags: list[str] = field(default_factory=list)
    source_url: str = ""
    id: str | None = None

    def comparison_text(self) -> str:
        """Text shown to the relevance model, with identifying context."""
        return f"{self.name} ({self.section}): {self.content}"


@total_ordering
@dataclass(frozen=True)
class RetrievalScore:
    """A retrieval-stage score tagged with the mode that produced it.

    Scores from different modes live on different scales, so ordering
    comparisons across modes raise ``TypeError``.
    """

    value: float
    mode: SearchMode

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RetrievalScore):
            return NotImplemented
        if other.mode is not self.mode:
            raise TypeError(
                f"Cannot compare {self.mode.value} score with {other.mode.value} score"
            )
        return self.value < other.value


@dataclass
class SearchCandidate:
    """A document returned by the index together with its retrieval score."""

    document: Document
    score: RetrievalScore

    @property
    def id(self) -> str:
        return self.document.id or ""

    @property
    def mode(self) -> SearchMode:
        return self.score.mode


@dataclass
class RerankItem:
    """Input to the reranker.

    Attributes:
        id: Document id, used to join results back onto candidates.
        text: Comparison text given to the relevance model.
        original_score: Retrieval-stage score, kept for diagnostics.
    """

    id: str
    text: str
    original_score: float | None = None

    @classmethod
    def from_candidate(cls, candidate: SearchCandidate) -> "RerankItem":
        return cls(
            id=candidate.id,
            text=candidate.document.comparison_text(),
            original_score=candidate.score.value,
        )


@dataclass
class RerankedResult:
    """Output of the reranker.

    Attributes:
        id: Document id.
        score: Logistic-normalized relevance in (0, 1).
        original_score: Retrieval-stage score of the same document.
        raw_score: Unbounded logit returned by the relevance scorer.
    """

    id: str
    score: float
    original_score: float | None
    raw_score: float
