from dataclasses import dataclass, field


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    type: str
    icon: str | None = None
    color: str | None = None
    keywords: list[str] = field(default_factory=list)
    user_id: int | None = None


@dataclass(frozen=True)
class CategorySuggestion:
    category_id: int
    category_name: str
    confidence_score: float
    match_reason: str
    category_icon: str | None = None
    category_color: str | None = None


@dataclass(frozen=True)
class KeywordUpdate:
    """Result of learning from a confirmed category choice."""

    category_id: int
    keywords: list[str]
    added: list[str] = field(default_factory=list)
    evicted: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added)
