"""Relevance + similarity filtering of scraped articles into new stories.

Articles are processed one at a time in batch order:

1. skip links the store already knows (cheap, no LLM call)
2. reject when ``not is_relevant or confidence < relevance_threshold``
3. reject when ``is_similar and confidence > similarity_threshold`` against the
   published corpus, fetched once per batch
4. add an unedited, unpublished story and re-read it for its id

A classifier failure only drops the article it happened on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Protocol, Sequence

from analysis.models.domain import RelevanceCheck, SimilarityCheck
from analysis.services.classifiers import ClassifierFailure
from ingestion.models.domain import Article, Story, StoryInput, utcnow
from ingestion.utils.logging import get_logger
from storage.errors import DuplicateLinkError, NotFoundError
from storage.stories import StoryStore

logger = get_logger(__name__)

DEFAULT_RELEVANCE_THRESHOLD = 0.6
DEFAULT_SIMILARITY_THRESHOLD = 0.6


class RelevanceClassifier(Protocol):
    def classify(self, article: Article) -> RelevanceCheck: ...  # noqa: D401


class SimilarityClassifier(Protocol):
    def classify(
        self,
        article: Article,
        candidates: Sequence[Story],
        *,
        date: Optional[datetime] = None,
    ) -> SimilarityCheck: ...  # noqa: D401


@dataclass
class FilterResult:
    stories: List[Story] = field(default_factory=list)
    skipped_existing: int = 0
    rejected_irrelevant: int = 0
    rejected_similar: int = 0
    failed: int = 0

    @property
    def processed(self) -> int:
        return (
            len(self.stories)
            + self.skipped_existing
            + self.rejected_irrelevant
            + self.rejected_similar
            + self.failed
        )

    def as_dict(self) -> dict:
        return {
            "accepted": len(self.stories),
            "skipped_existing": self.skipped_existing,
            "rejected_irrelevant": self.rejected_irrelevant,
            "rejected_similar": self.rejected_similar,
            "failed": self.failed,
        }


def is_irrelevant(check: RelevanceCheck, threshold: float) -> bool:
    return not check.is_relevant or check.confidence < threshold


def is_duplicate(check: SimilarityCheck, threshold: float) -> bool:
    return check.is_similar and check.confidence > threshold


class FilterEngine:
    def __init__(
        self,
        store: StoryStore,
        relevance: RelevanceClassifier,
        similarity: SimilarityClassifier,
        *,
        relevance_threshold: float = DEFAULT_RELEVANCE_THRESHOLD,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        corpus_days: Optional[int] = None,
        corpus_limit: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._relevance = relevance
        self._similarity = similarity
        self._relevance_threshold = relevance_threshold
        self._similarity_threshold = similarity_threshold
        self._corpus_days = corpus_days
        self._corpus_limit = corpus_limit
        self._clock = clock

    def load_corpus(self) -> List[Story]:
        """Published stories to compare against, newest first, bounded by days/limit."""
        if self._corpus_days is not None:
            corpus = self._store.get_last_n_days(self._corpus_days, published_only=True)
        else:
            corpus = self._store.get_published()
            corpus.sort(key=lambda s: s.date_published or s.date_added, reverse=True)
        if self._corpus_limit is not None:
            corpus = corpus[: self._corpus_limit]
        return corpus

    def run(self, articles: Sequence[Article]) -> FilterResult:
        result = FilterResult()
        if not articles:
            logger.info("filter.empty_batch")
            return result

        corpus: Optional[List[Story]] = None
        for article in articles:
            if self._store.exists(article.link):
                result.skipped_existing += 1
                logger.info("filter.skipped_existing", extra={"link": article.link})
                continue

            try:
                relevance = self._relevance.classify(article)
            except ClassifierFailure as exc:
                result.failed += 1
                logger.warning("filter.classifier_failed", extra={"link": article.link, "stage": "relevance", "error": str(exc)})
                continue
            if is_irrelevant(relevance, self._relevance_threshold):
                result.rejected_irrelevant += 1
                logger.info(
                    "filter.rejected_irrelevant",
                    extra={"link": article.link, "confidence": relevance.confidence, "reason": relevance.reason},
                )
                continue

            if corpus is None:
                corpus = self.load_corpus()
                logger.info("filter.corpus_loaded", extra={"size": len(corpus)})
            if corpus:
                try:
                    similarity = self._similarity.classify(article, corpus, date=article.date_found)
                except ClassifierFailure as exc:
                    result.failed += 1
                    logger.warning(
                        "filter.classifier_failed",
                        extra={"link": article.link, "stage": "similarity", "error": str(exc)},
                    )
                    continue
                if is_duplicate(similarity, self._similarity_threshold):
                    result.rejected_similar += 1
                    similar_to = (
                        corpus[similarity.similar_to_index - 1].link if similarity.similar_to_index else None
                    )
                    logger.info(
                        "filter.rejected_similar",
                        extra={
                            "link": article.link,
                            "confidence": similarity.confidence,
                            "similar_to": similar_to,
                            "reason": similarity.reason,
                        },
                    )
                    continue

            try:
                story = self._add(article)
            except DuplicateLinkError:
                # in-batch duplicate or a concurrent run got there first
                result.skipped_existing += 1
                logger.info("filter.skipped_existing", extra={"link": article.link, "reason": "duplicate_on_add"})
                continue
            except NotFoundError as exc:
                result.failed += 1
                logger.warning("stories.dangling_index", extra={"link": article.link, "error": str(exc)})
                continue
            result.stories.append(story)

        logger.info("filter.completed", extra=result.as_dict())
        return result

    def _add(self, article: Article) -> Story:
        """Persist ``article`` and read it back with its assigned id.

        Raises DuplicateLinkError, or NotFoundError when the fresh record cannot be read.
        """
        self._store.add(
            StoryInput(
                headline=article.headline,
                summary=article.summary,
                link=article.link,
                source=article.source,
                date_added=self._clock(),
                body=article.body,
                images=list(article.images) or None,
            )
        )
        return self._store.get_by_link(article.link)
