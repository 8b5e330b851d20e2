"""Annotation suggestions and groups of competing suggestions.

A suggestion is a single record: the fields every suggestion shares live on
``AnnotationSuggestion`` and the kind-specific location lives in the tagged
``position`` payload (``SpanPosition`` or ``RelationPosition``).
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from .models import Preferences

NEW_ID = -1


class HideFlag(str, Enum):
    """Reasons for a suggestion not being shown."""

    REJECTED = "rejected"
    SKIPPED = "skipped"
    TRANSIENT_ACCEPTED = "transient_accepted"
    TRANSIENT_CORRECTED = "transient_corrected"


class AutoAcceptMode(str, Enum):
    """Whether a suggestion is accepted without user interaction."""

    NEVER = "never"
    ON_FIRST_ACCESS = "on_first_access"


class SpanPosition(BaseModel):
    """Character offset range of a span suggestion."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["span"] = "span"
    begin: int = Field(ge=0)
    end: int = Field(ge=0)


class RelationPosition(BaseModel):
    """Source and target span offsets of a relation suggestion."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["relation"] = "relation"
    source_begin: int = Field(ge=0)
    source_end: int = Field(ge=0)
    target_begin: int = Field(ge=0)
    target_end: int = Field(ge=0)


Position = Annotated[SpanPosition | RelationPosition, Field(discriminator="kind")]

SuggestionIdentity = tuple[int, int, SpanPosition | RelationPosition, str | None]


class AnnotationSuggestion(BaseModel):
    """A candidate annotation proposed by a recommender."""

    id: int = NEW_ID
    generation: int = 0
    age: int = 0
    recommender_id: int
    recommender_name: str
    layer_id: int
    feature: str
    document_id: int
    position: Position
    label: str | None
    ui_label: str | None = None
    score: float = 0.0
    score_explanation: str | None = None
    hiding_flags: set[HideFlag] = Field(default_factory=set)
    auto_accept: AutoAcceptMode = AutoAcceptMode.NEVER

    @property
    def kind(self) -> str:
        return self.position.kind

    @property
    def identity(self) -> SuggestionIdentity:
        """Key under which the same suggestion is recognized across runs."""
        return (self.document_id, self.recommender_id, self.position, self.label)

    @property
    def visible(self) -> bool:
        return not self.hiding_flags

    @property
    def window(self) -> tuple[int, int]:
        """Smallest offset range enclosing the suggestion."""
        match self.position:
            case SpanPosition(begin=begin, end=end):
                return begin, end
            case RelationPosition(
                source_begin=sb, source_end=se, target_begin=tb, target_end=te
            ):
                return min(sb, tb), max(se, te)
        raise ValueError(f"Unknown position kind: {self.position!r}")

    def hide(self, flag: HideFlag) -> None:
        self.hiding_flags.add(flag)

    def show(self, flag: HideFlag) -> None:
        self.hiding_flags.discard(flag)

    def label_equals(self, label: str | None) -> bool:
        return self.label == label

    def covered_by(self, begin: int, end: int) -> bool:
        window_begin, window_end = self.window
        return begin <= window_begin and window_end <= end

    def with_changes(self, **changes: Any) -> "AnnotationSuggestion":
        """Return a copy with the given fields replaced.

        The copy never shares its hiding flags with the original.
        """
        if "hiding_flags" not in changes:
            changes["hiding_flags"] = set(self.hiding_flags)
        return self.model_copy(update=changes)

    def with_id(self, suggestion_id: int) -> "AnnotationSuggestion":
        return self.with_changes(id=suggestion_id)

    def with_label(self, label: str | None) -> "AnnotationSuggestion":
        return self.with_changes(label=label, ui_label=label)


def span_suggestion(
    *,
    begin: int,
    end: int,
    **fields: Any,
) -> AnnotationSuggestion:
    """Create a suggestion located at a character offset range."""
    return AnnotationSuggestion(position=SpanPosition(begin=begin, end=end), **fields)


def relation_suggestion(
    *,
    source: tuple[int, int],
    target: tuple[int, int],
    **fields: Any,
) -> AnnotationSuggestion:
    """Create a suggestion connecting a source span to a target span."""
    position = RelationPosition(
        source_begin=source[0],
        source_end=source[1],
        target_begin=target[0],
        target_end=target[1],
    )
    return AnnotationSuggestion(position=position, **fields)


@dataclass(frozen=True)
class Delta:
    """Top suggestion of a recommender and the gap to its best alternative."""

    first: AnnotationSuggestion
    second: AnnotationSuggestion | None = None

    @property
    def delta(self) -> float:
        if self.second is None:
            return self.first.score
        return self.first.score - self.second.score


class SuggestionGroup:
    """Suggestions competing for the same position.

    Iteration yields suggestions by descending score; equal scores keep their
    insertion order.
    """

    def __init__(self, suggestions: Iterable[AnnotationSuggestion] = ()):
        self._suggestions: list[AnnotationSuggestion] = []
        for suggestion in suggestions:
            self.add(suggestion)

    def add(self, suggestion: AnnotationSuggestion) -> None:
        if self._suggestions:
            anchor = self._suggestions[0]
            if _group_key(suggestion) != _group_key(anchor):
                raise ValueError(
                    f"Suggestion at {suggestion.position!r} on document "
                    f"[{suggestion.document_id}] does not belong to group at "
                    f"{anchor.position!r} on document [{anchor.document_id}]"
                )
        self._suggestions.append(suggestion)

    def __iter__(self) -> Iterator[AnnotationSuggestion]:
        return iter(sorted(self._suggestions, key=lambda s: -s.score))

    def __len__(self) -> int:
        return len(self._suggestions)

    def __repr__(self) -> str:
        position = self.position if self._suggestions else None
        return f"SuggestionGroup(position={position!r}, size={len(self)})"

    def _require_anchor(self) -> AnnotationSuggestion:
        if not self._suggestions:
            raise ValueError("Suggestion group is empty")
        return self._suggestions[0]

    @property
    def position(self) -> SpanPosition | RelationPosition:
        return self._require_anchor().position

    @property
    def kind(self) -> str:
        return self._require_anchor().kind

    @property
    def document_id(self) -> int:
        return self._require_anchor().document_id

    @property
    def layer_id(self) -> int:
        return self._require_anchor().layer_id

    @property
    def feature(self) -> str:
        return self._require_anchor().feature

    @property
    def visible(self) -> bool:
        return any(s.visible for s in self._suggestions)

    def top_deltas(self, preferences: "Preferences | None" = None) -> list[Delta]:
        """For each recommender, pair its best suggestion with the runner-up.

        Hidden suggestions are ignored unless the preferences ask for all
        predictions to be shown.
        """
        show_all = preferences is not None and preferences.show_all_predictions

        by_recommender: dict[int, list[AnnotationSuggestion]] = {}
        for suggestion in self:
            if not show_all and not suggestion.visible:
                continue
            by_recommender.setdefault(suggestion.recommender_id, []).append(suggestion)

        deltas = []
        for ranked in by_recommender.values():
            first = ranked[0]
            second = next(
                (s for s in ranked[1:] if not s.label_equals(first.label)), None
            )
            deltas.append(Delta(first, second))
        return deltas

    @classmethod
    def group(
        cls, suggestions: Iterable[AnnotationSuggestion]
    ) -> list["SuggestionGroup"]:
        """Group suggestions by location, ordered by document and position."""
        groups: dict[tuple, SuggestionGroup] = {}
        for suggestion in suggestions:
            key = _group_key(suggestion)
            if key not in groups:
                groups[key] = cls()
            groups[key].add(suggestion)

        return sorted(
            groups.values(),
            key=lambda g: (g.document_id, g._require_anchor().window, g.kind),
        )


def _group_key(suggestion: AnnotationSuggestion) -> tuple:
    return (
        suggestion.document_id,
        suggestion.layer_id,
        suggestion.feature,
        suggestion.position,
    )
