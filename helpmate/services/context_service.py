"""
helpmate/services/context_service.py

Purpose: Knowledge base context assembly

- Collects candidate sections: scraped knowledge URLs, uploaded documents,
  live page metadata sent by the widget
- Scores each section against the visitor's question
- Packs the best sections into a bounded character budget
- Optionally summarizes what did not fit with a second LLM call
- Renders the system prompt sent to the language model
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from helpmate.core.config import settings
from helpmate.core.exceptions import ExternalServiceError
from helpmate.core.logging import get_logger
from helpmate.services.llm_service import LLMService, get_llm_service
from helpmate.services.scraper_service import ScraperService, get_scraper_service
from utils.constants import (
    DEFAULT_SYSTEM_PROMPT,
    KNOWLEDGE_SYSTEM_PROMPT,
    WEBSITE_PROMPT_HEAD,
    WEBSITE_PROMPT_CONTEXT,
    WEBSITE_PROMPT_TAIL,
    HEADING_WEBSITE,
    HEADING_DOCUMENTS,
    HEADING_PAGE,
    HEADING_SUMMARY,
)
from utils.text_utils import (
    CHARS_PER_TOKEN,
    clean_whitespace,
    estimate_tokens,
    extract_keywords,
    keyword_overlap,
    truncate,
)

logger = get_logger(__name__)

SOURCE_URL = "url"
SOURCE_DOCUMENT = "document"
SOURCE_PAGE = "page"

# Lower value wins a tie in relevance
SOURCE_PRIORITY = {SOURCE_URL: 0, SOURCE_DOCUMENT: 1, SOURCE_PAGE: 2}

SOURCE_HEADINGS = {
    SOURCE_URL: HEADING_WEBSITE,
    SOURCE_DOCUMENT: HEADING_DOCUMENTS,
    SOURCE_PAGE: HEADING_PAGE,
}

# Weight of a keyword hit in a section's label relative to its body
TITLE_BONUS = 0.5

# Below this many free characters a summary is not worth requesting
MIN_SUMMARY_CHARS = 200

# Upper bound on text handed to the summarizer
MAX_SUMMARY_INPUT_CHARS = 12000

SECTION_SEPARATOR = "\n\n"

PAGE_METADATA_FIELDS = (
    ("title", "Title"),
    ("url", "URL"),
    ("referrer", "Referrer"),
)


@dataclass
class ContextSection:
    """One candidate piece of knowledge for the prompt."""
    source: str
    label: str
    text: str
    order: int = 0
    score: float = 0.0

    @property
    def priority(self) -> int:
        return SOURCE_PRIORITY[self.source]

    def render(self, max_chars: int) -> str:
        return f"{self.label}\nContent: {truncate(self.text, max_chars)}"


@dataclass
class AssembledContext:
    """Result of packing knowledge into a prompt."""
    system_prompt: str
    context: str = ""
    included: List[ContextSection] = field(default_factory=list)
    dropped: List[ContextSection] = field(default_factory=list)
    summary: Optional[str] = None

    @property
    def used_knowledge(self) -> bool:
        return bool(self.context)


def score_section(section: ContextSection, keywords: List[str]) -> float:
    """
    Relevance of a section to the question keywords.

    Body overlap is the fraction of keywords found in the text; hits in the
    label (page URL, document name, page title) add a smaller bonus.
    """
    if not keywords:
        return 0.0
    return keyword_overlap(keywords, section.text) + TITLE_BONUS * keyword_overlap(keywords, section.label)


def rank_sections(sections: List[ContextSection], question: str) -> List[ContextSection]:
    """
    Orders sections by relevance, then source priority, then original order.
    Scores are stored on the sections.
    """
    keywords = extract_keywords(question)
    for section in sections:
        section.score = score_section(section, keywords)
    return sorted(sections, key=lambda s: (-s.score, s.priority, s.order))


def pack_sections(
    ranked: List[ContextSection],
    budget: int,
    max_section_chars: int,
) -> tuple:
    """
    Greedily fills the character budget in ranked order.

    A section that does not fit is skipped and later (possibly shorter)
    sections are still tried.

    Returns:
        (included, dropped, used_chars)
    """
    included: List[ContextSection] = []
    dropped: List[ContextSection] = []
    headings_used = set()
    used = 0

    for section in ranked:
        cost = len(section.render(max_section_chars)) + len(SECTION_SEPARATOR)
        heading = SOURCE_HEADINGS[section.source]
        if heading not in headings_used:
            # "<HEADING>:\n" opens the first section of each source
            cost += len(heading) + 2
        if used + cost <= budget:
            included.append(section)
            headings_used.add(heading)
            used += cost
        else:
            dropped.append(section)

    return included, dropped, used


def render_sections(sections: List[ContextSection], max_section_chars: int) -> str:
    """
    Renders included sections grouped under their source heading.
    Groups appear in the order their best section was ranked.
    """
    groups: "OrderedDict[str, List[str]]" = OrderedDict()
    for section in sections:
        heading = SOURCE_HEADINGS[section.source]
        groups.setdefault(heading, []).append(section.render(max_section_chars))

    blocks = []
    for heading, entries in groups.items():
        blocks.append(f"{heading}:\n" + SECTION_SEPARATOR.join(entries))
    return SECTION_SEPARATOR.join(blocks)


def page_metadata_section(metadata: Optional[Dict[str, Any]], order: int = 0) -> Optional[ContextSection]:
    """
    Builds the live-page section from widget metadata.

    Extra keys sent by the embedding page are included as ``key: value``
    lines when their values are plain scalars.
    """
    if not metadata:
        return None

    lines = []
    for key, label in PAGE_METADATA_FIELDS:
        value = metadata.get(key)
        if value:
            lines.append(f"{label}: {clean_whitespace(str(value))}")

    known = {key for key, _ in PAGE_METADATA_FIELDS} | {"page_content"}
    for key, value in metadata.items():
        if key in known or value in (None, "", [], {}):
            continue
        if isinstance(value, (str, int, float, bool)):
            lines.append(f"{key}: {clean_whitespace(str(value))}")

    page_content = clean_whitespace(metadata.get("page_content") or "")
    if page_content:
        lines.append(f"Visible content: {page_content}")

    if not lines:
        return None

    title = metadata.get("title") or metadata.get("url") or "current page"
    return ContextSection(
        source=SOURCE_PAGE,
        label=f"Page the customer is viewing: {clean_whitespace(str(title))}",
        text="\n".join(lines),
        order=order,
    )


class ContextBuilder:
    """
    Assembles the system prompt for knowledge-grounded chats.
    """

    def __init__(
        self,
        llm: Optional[LLMService] = None,
        scraper: Optional[ScraperService] = None,
        budget: Optional[int] = None,
        max_section_chars: Optional[int] = None,
        max_urls: Optional[int] = None,
        summarize_overflow: Optional[bool] = None,
        summary_max_tokens: Optional[int] = None,
    ):
        self._llm = llm
        self._scraper = scraper
        self.budget = budget if budget is not None else settings.CONTEXT_CHAR_BUDGET
        self.max_section_chars = max_section_chars if max_section_chars is not None else settings.MAX_SECTION_CHARS
        self.max_urls = max_urls if max_urls is not None else settings.MAX_SCRAPE_URLS
        self.summarize_overflow = (
            summarize_overflow if summarize_overflow is not None else settings.CONTEXT_SUMMARIZE_OVERFLOW
        )
        self.summary_max_tokens = summary_max_tokens if summary_max_tokens is not None else settings.SUMMARY_MAX_TOKENS

    @property
    def llm(self) -> LLMService:
        return self._llm or get_llm_service()

    @property
    def scraper(self) -> ScraperService:
        return self._scraper or get_scraper_service()

    async def collect_sections(
        self,
        integration: Dict[str, Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[ContextSection]:
        """
        Gathers candidate sections for an integration.

        Knowledge URLs and documents are used only when the knowledge base
        is enabled; page metadata is used whenever present.
        """
        sections: List[ContextSection] = []
        knowledge = integration.get("knowledge_base") or {}

        if knowledge.get("enabled"):
            urls = [u for u in knowledge.get("urls") or [] if u][: self.max_urls]
            pages = await self.scraper.fetch_pages(urls)
            for url in urls:
                page = pages.get(url)
                if page is None:
                    continue
                label = f"Page: {url}" + (f" ({page.title})" if page.title else "")
                sections.append(ContextSection(SOURCE_URL, label, page.text, order=len(sections)))

            for doc in knowledge.get("documents") or []:
                content = clean_whitespace(doc.get("content") or "")
                if not content:
                    continue
                sections.append(
                    ContextSection(SOURCE_DOCUMENT, f"Document: {doc.get('name', 'Untitled')}", content, order=len(sections))
                )

        page_section = page_metadata_section(metadata, order=len(sections))
        if page_section is not None:
            sections.append(page_section)

        return sections

    async def assemble(
        self,
        sections: List[ContextSection],
        question: str,
    ) -> AssembledContext:
        """
        Ranks, packs and (if needed) summarizes sections into context text.
        The returned ``system_prompt`` is left empty for the caller to wrap.
        """
        if not sections:
            return AssembledContext(system_prompt="")

        ranked = rank_sections(sections, question)
        included, dropped, used = pack_sections(ranked, self.budget, self.max_section_chars)
        context = render_sections(included, self.max_section_chars)

        summary = None
        if dropped and self.summarize_overflow:
            summary = await self._summarize(dropped, question, self.budget - used)
            if summary:
                block = f"{HEADING_SUMMARY}:\n{summary}"
                context = f"{context}{SECTION_SEPARATOR}{block}" if context else block

        if dropped:
            logger.info(
                f"Context budget reached: {len(included)} sections kept, {len(dropped)} dropped",
                extra={"summarized": bool(summary)}
            )
        logger.debug(f"Assembled context of ~{estimate_tokens(context)} tokens")

        return AssembledContext(
            system_prompt="",
            context=context,
            included=included,
            dropped=dropped,
            summary=summary,
        )

    async def _summarize(
        self,
        dropped: List[ContextSection],
        question: str,
        remaining_chars: int,
    ) -> Optional[str]:
        # Room for the heading as well as the summary itself
        room = remaining_chars - len(HEADING_SUMMARY) - len(SECTION_SEPARATOR) - 2
        if room < MIN_SUMMARY_CHARS:
            return None

        source_text = SECTION_SEPARATOR.join(f"{s.label}\n{s.text}" for s in dropped)
        source_text = truncate(source_text, MAX_SUMMARY_INPUT_CHARS)
        max_tokens = max(1, min(self.summary_max_tokens, room // CHARS_PER_TOKEN))

        try:
            summary = await self.llm.summarize(source_text, question, max_tokens)
        except ExternalServiceError as e:
            logger.warning(f"Overflow summarization failed, continuing without it: {e.message}")
            return None

        summary = clean_whitespace(summary)
        return truncate(summary, room - len(" [...]")) or None

    async def build_website_prompt(
        self,
        integration: Dict[str, Any],
        question: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AssembledContext:
        """
        System prompt for the public widget chat.
        """
        sections = await self.collect_sections(integration, metadata)
        assembled = await self.assemble(sections, question)

        prompt = WEBSITE_PROMPT_HEAD.format(domain=integration.get("domain", "this website"))
        if assembled.context:
            prompt += WEBSITE_PROMPT_CONTEXT.format(context=assembled.context)
        prompt += WEBSITE_PROMPT_TAIL

        assembled.system_prompt = prompt
        return assembled

    async def build_knowledge_prompt(
        self,
        integration: Dict[str, Any],
        question: str,
    ) -> AssembledContext:
        """
        System prompt for dashboard chats started against an integration.
        Falls back to the default assistant prompt when there is no knowledge.
        """
        sections = await self.collect_sections(integration)
        assembled = await self.assemble(sections, question)

        if not assembled.context:
            assembled.system_prompt = DEFAULT_SYSTEM_PROMPT
            return assembled

        company = integration.get("name") or integration.get("domain") or "this company"
        assembled.system_prompt = KNOWLEDGE_SYSTEM_PROMPT.format(company=company, context=assembled.context)
        return assembled


# Global builder instance
_context_builder: Optional[ContextBuilder] = None


def get_context_builder() -> ContextBuilder:
    global _context_builder
    if _context_builder is None:
        _context_builder = ContextBuilder()
    return _context_builder


def set_context_builder(builder: Optional[ContextBuilder]):
    global _context_builder
    _context_builder = builder
