"""프롬프트 템플릿/빌더.

LLM에게 구조화(JSON) 출력을 요청하는 시스템/유저 메시지를 생성한다.
긴 원문은 앞/뒤 1/3만 남기고 잘라낸다.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional, Sequence

from ingestion.models.domain import Article, Story

TOPICS = (
    "Large Language Models (LLMs)",
    "AI agents and autonomous systems",
    "significant AI industry news",
    "AI research breakthroughs",
    "AI ethics and policy",
)

RELEVANCE_SCHEMA = '{"is_relevant": boolean, "confidence": number (0.0..1.0), "reason": string}'
SIMILARITY_SCHEMA = (
    '{"is_similar": boolean, "confidence": number (0.0..1.0), '
    '"similar_to_index": integer or null (1-based), "reason": string}'
)
ENHANCE_SCHEMA = (
    '{"headline": string (<=100 chars), "summary": string (2-3 sentences), '
    '"body": string (markdown), "tags": array<string> (lowercase, no spaces), "reason": string}'
)
TRANSCRIPT_SCHEMA = (
    '{"intro": string, "segments": array<object> where object = '
    '{"headline": string, "content": string, "transition": string or null}, "outro": string}'
)

STYLE_RULES = (
    'Avoid "New" unless it is. Avoid "Unleash", "Revolutionize" and other hyperbolic '
    "language. Be matter of fact, not clickbaity."
)

TEMPLATES: Dict[str, str] = {
    "github": "# {headline}\n\n{summary}\n\n{body}\n\n[View on GitHub]({link})",
    "blog": "# {headline}\n\n{summary}\n\n{body}\n\n[Read the full article]({link})",
    "default": "# {headline}\n\n{summary}\n\n{body}\n\n[Read more]({link})",
}

TRUNCATION_MARKER = "\n\n[Content truncated for length...]\n\n"


def select_template(source: str) -> str:
    if "github.com" in source:
        return TEMPLATES["github"]
    if "blog" in source or "news" in source:
        return TEMPLATES["blog"]
    return TEMPLATES["default"]


def truncate_content(content: str, max_chars: int) -> str:
    """Keep the first and last third of ``content`` when it exceeds ``max_chars``."""
    if not content or len(content) <= max_chars:
        return content
    third = max_chars // 3
    return f"{content[:third]}{TRUNCATION_MARKER}{content[-third:]}"


def _json_only(schema: str) -> str:
    return f"출력 형식: JSON ONLY (추가 설명/코드블록/머리말 금지). 스키마: {schema}."


def build_relevance_messages(article: Article) -> List[dict]:
    topics = "\n".join(f"- {t}" for t in TOPICS)
    system = (
        "You are an AI news filter. Decide whether a story is relevant to AI technology, "
        f"specifically:\n{topics}\n\n{_json_only(RELEVANCE_SCHEMA)}"
    )
    user = f"Story Headline: {article.headline}\nStory Summary: {article.summary}"
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def build_similarity_messages(article: Article, candidates: Sequence[Story], *, date: datetime) -> List[dict]:
    system = (
        "You are an AI news filter. Decide whether a new story is substantially similar to one "
        "of the previously published stories. Similar means: the same core news from another "
        "source, the same event or development, a different angle on the same story, or a "
        "follow-up without significant new information.\n"
        "Time matters: if the new story comes more than two weeks after a similar one, treat it "
        "as new only when it carries substantial new developments. Breaking news can have several "
        "valid updates on the same day.\n\n"
        f"{_json_only(SIMILARITY_SCHEMA)}"
    )
    lines: List[str] = [
        "[New Story]",
        f"Headline: {article.headline}",
        f"Date: {date.isoformat()}",
        f"Summary: {article.summary}",
        "",
        "[Previously Published Stories]",
    ]
    for idx, story in enumerate(candidates, start=1):
        published = story.date_published.isoformat() if story.date_published else "N/A"
        lines.append(f"{idx}. Headline: {story.headline}")
        lines.append(f"Date Published: {published}")
        lines.append(f"Summary: {story.summary}")
        lines.append("")
    lines.append(f"If similar, similar_to_index must be between 1 and {len(candidates)}.")
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": "\n".join(lines)},
    ]


def build_enhance_messages(
    story: Story,
    *,
    content: str,
    metadata: Optional[str],
    template: str,
    truncated: bool,
) -> List[dict]:
    system = (
        "You are an AI technology news editor. Make the article engaging and informative while "
        "staying accurate; focus on why readers should care.\n"
        "Rules:\n"
        f"1) headline: catchy but accurate, max 100 characters. {STYLE_RULES}\n"
        "2) summary: 2-3 sentences that make readers want to learn more.\n"
        '3) body: concise markdown. Sections such as "What\'s New", "Key Takeaways", '
        '"Technical Details" or "Impact" only when they add value.\n'
        "4) tags: hashtag-style, lowercase, no spaces.\n"
        "5) reason: briefly explain the changes.\n"
        "For technical content (e.g. GitHub) focus on implementation and impact; for news and "
        "blogs focus on implications and real-world applications.\n\n"
        f"{_json_only(ENHANCE_SCHEMA)}"
    )
    lines = [
        f"Original Headline: {story.headline}",
        f"Original Summary: {story.summary}",
        f"Source Type: {story.source}",
        f"Original Content: {content}",
    ]
    if metadata:
        lines.append(f"Metadata: {metadata}")
    lines.append("")
    lines.append(f"Template:\n{template}")
    if truncated:
        lines.append("\nNote: The original content was truncated for length.")
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": "\n".join(lines)},
    ]


def build_transcript_messages(stories: Sequence[Story], *, show_name: str, max_chars: int) -> List[dict]:
    system = (
        f'You are the AI host of "{show_name}", a two-minute daily AI technology news podcast. '
        'You and the audience know you are an AI; introduce yourself with a made-up ID such as '
        '"Host AF34D". The audience is tech-savvy and values their time.\n'
        "Rules:\n"
        "1) intro: one or two sentences summarizing the top stories; no greeting, no show intro.\n"
        "2) Group related stories and combine them when it makes sense.\n"
        "3) transition: only when natural, otherwise go straight to the next story.\n"
        f"4) Upbeat and engaging. {STYLE_RULES}\n"
        "5) Clear takeaways; outro is a short memorable recap with a forward-looking note.\n"
        "6) Too many stories: cover only the 3-5 most important ones.\n"
        "7) The text is read aloud as is; phrase headlines as a lead-in question or statement.\n"
        f"8) The whole transcript MUST stay under {max_chars} characters.\n\n"
        f"{_json_only(TRANSCRIPT_SCHEMA)}"
    )
    lines: List[str] = ["[Stories]"]
    for story in stories:
        lines.append(f"Title: {story.headline}")
        lines.append(f"Summary: {story.summary}")
        if story.body:
            lines.append(f"Details: {story.body}")
        lines.append("")
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": "\n".join(lines)},
    ]
