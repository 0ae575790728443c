"""News categories offered by the reader and the queries behind them."""

from __future__ import annotations

import enum


class NewsCategory(enum.Enum):
    ALL = "전체"
    POLITICS = "정치"
    ECONOMY = "경제"
    SOCIETY = "사회"
    LIFE_CULTURE = "생활/문화"
    IT_SCIENCE = "IT/과학"
    WORLD = "세계"

    @property
    def label(self) -> str:
        return self.value

    @property
    def query(self) -> str:
        return _QUERIES[self]

    @classmethod
    def from_label(cls, label: str) -> "NewsCategory":
        """Look up a category by display label or member name."""
        wanted = label.strip()
        for category in cls:
            if wanted == category.value or wanted.upper() == category.name:
                return category
        raise ValueError(f"Unknown category: {label}")


_QUERIES = {
    NewsCategory.ALL: "세계 뉴스",
    NewsCategory.POLITICS: "정치",
    NewsCategory.ECONOMY: "경제",
    NewsCategory.SOCIETY: "사회",
    NewsCategory.LIFE_CULTURE: "생활 문화",
    NewsCategory.IT_SCIENCE: "IT 과학",
    NewsCategory.WORLD: "세계",
}

DEFAULT_CATEGORY = NewsCategory.ALL
