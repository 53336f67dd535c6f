"""
Backlink Extractor - turns page content into stored backlink edges

Pipeline (per source page):
1. Scan content for reference markers:
   - [[Target]] or [[Target|alias]]  (wiki-style, by title or id)
   - [label](target)                 (markdown link, by id or url)
2. Resolve each target against the pages of the same database:
   exact id → exact url → case-insensitive, whitespace-normalized title.
   On ambiguous titles the first page in repository order wins.
   Unresolvable targets and self-references are dropped (logged, not raised).
3. Build one Backlink per distinct target (first occurrence supplies context).
4. Replace the stored edges of the source page with the new set.

The scan/resolve/build steps are pure functions; BacklinkExtractor adds the
repository round-trip and publishes BacklinksExtractedEvent (plus one
DatabaseExtractedEvent for a database-wide run).
"""
import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Pattern

from models.domain.backlink import Backlink
from models.domain.events import BacklinksExtractedEvent, DatabaseExtractedEvent
from models.domain.page import Page
from services.errors import PageNotFoundError
from services.event_bus import EventBus

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_CHARS = 50

# Group 1: [[target]]; groups 2/3: [label](target)
REFERENCE_PATTERN = re.compile(r'\[\[([^\[\]\n]+?)\]\]|\[([^\[\]\n]+)\]\(([^()\s]+)\)')


@dataclass(frozen=True)
class Reference:
    """A reference marker found in page content"""
    target: str
    start: int
    end: int
    label: Optional[str] = None


def extract_references(content: Optional[str], pattern: Pattern = REFERENCE_PATTERN) -> List[Reference]:
    """
    Find every reference marker in content, in document order.

    The pattern's first group is a wiki-style target; the second and third
    are a markdown link's label and target.
    """
    if not content:
        return []

    references = []
    for match in pattern.finditer(content):
        groups = match.groups()
        if groups[0] is not None:
            target, _, alias = groups[0].partition('|')
            label = alias.strip() or None
        elif len(groups) >= 3 and groups[2] is not None:
            target, label = groups[2], groups[1].strip()
        else:
            continue

        target = target.strip()
        if target:
            references.append(Reference(target=target, start=match.start(), end=match.end(), label=label))
    return references


def normalize_title(title: Optional[str]) -> str:
    """Case-insensitive, whitespace-collapsed form used for title matching"""
    return ' '.join((title or '').split()).casefold()


def extract_context(content: str, start: int, end: int, chars: int = DEFAULT_CONTEXT_CHARS) -> str:
    """Bounded excerpt around a marker: up to `chars` on each side, whitespace collapsed"""
    lo = max(0, start - chars)
    hi = min(len(content), end + chars)
    excerpt = ' '.join(content[lo:hi].split())
    prefix = '...' if lo > 0 else ''
    suffix = '...' if hi < len(content) else ''
    return f"{prefix}{excerpt}{suffix}"


class PageLookup:
    """
    Resolution index over the pages of one database.

    Built once per extraction run. Pages are indexed in the order given,
    and the first page to claim a url or title keeps it.
    """

    def __init__(self, pages: Iterable[Page]):
        self.by_id: Dict[str, Page] = {}
        self.by_url: Dict[str, Page] = {}
        self.by_title: Dict[str, Page] = {}
        self.ambiguous_titles = set()

        for page in pages:
            self.by_id.setdefault(page.id, page)
            if page.url:
                self.by_url.setdefault(page.url, page)
            key = normalize_title(page.title)
            if not key:
                continue
            if key in self.by_title:
                self.ambiguous_titles.add(key)
            else:
                self.by_title[key] = page

    def __len__(self):
        return len(self.by_id)

    def resolve(self, target: str) -> Optional[Page]:
        page = self.by_id.get(target) or self.by_url.get(target)
        if page:
            return page

        key = normalize_title(target)
        page = self.by_title.get(key)
        if page and key in self.ambiguous_titles:
            logger.debug(f"Ambiguous title '{target}', resolved to first match {page.id}")
        return page


def build_backlinks(
    page: Page,
    lookup: PageLookup,
    context_chars: int = DEFAULT_CONTEXT_CHARS,
    pattern: Pattern = REFERENCE_PATTERN
) -> List[Backlink]:
    """
    Compute the outgoing backlinks of a page from its current content.

    Returns at most one Backlink per target page, in order of first mention.
    """
    content = page.content or ''
    backlinks: Dict[str, Backlink] = {}
    unresolved = []

    for ref in extract_references(content, pattern):
        target = lookup.resolve(ref.target)
        if target is None:
            unresolved.append(ref.target)
            continue
        if target.id == page.id or target.id in backlinks:
            continue

        backlinks[target.id] = Backlink(
            source_page_id=page.id,
            source_page_title=page.title,
            target_page_id=target.id,
            context=extract_context(content, ref.start, ref.end, context_chars),
        )

    if unresolved:
        logger.debug(f"Page {page.id}: {len(unresolved)} unresolved reference(s): {unresolved[:5]}")

    return list(backlinks.values())


class BacklinkExtractor:
    """
    Keeps stored backlinks consistent with page content.

    Extraction is idempotent: running it twice over unchanged content
    leaves exactly the same edge set.
    """

    def __init__(
        self,
        page_repo,
        event_bus: EventBus,
        context_chars: int = DEFAULT_CONTEXT_CHARS,
        pattern: Pattern = REFERENCE_PATTERN
    ):
        self.page_repo = page_repo
        self.event_bus = event_bus
        self.context_chars = context_chars
        self.pattern = pattern

    async def extract_for_page(self, page_id: str) -> List[Backlink]:
        """
        Re-extract the outgoing backlinks of one page.

        Raises:
            PageNotFoundError: If the page doesn't exist
        """
        page = await self.page_repo.get_by_id(page_id)
        if page is None:
            raise PageNotFoundError(page_id)

        lookup = PageLookup(await self.page_repo.find_pages_by_database(page.database_id))
        backlinks = await self._replace(page, lookup)

        await self.event_bus.publish(self._extracted_event(page, backlinks))
        return backlinks

    async def extract_for_database(self, database_id: str) -> int:
        """
        Re-extract every page of a database.

        Events are published after all pages are written, so handlers see
        the complete edge set. Per-page events are marked batched and one
        DatabaseExtractedEvent closes the run.

        Returns:
            Total number of backlinks stored
        """
        pages = await self.page_repo.find_pages_by_database(database_id)
        lookup = PageLookup(pages)
        logger.info(f"Extracting backlinks for {len(pages)} pages in database {database_id}")

        events = []
        total = 0
        for page in pages:
            backlinks = await self._replace(page, lookup)
            total += len(backlinks)
            events.append(self._extracted_event(page, backlinks, batched=True))

        events.append(DatabaseExtractedEvent(
            database_id=database_id,
            source_page_ids=tuple(page.id for page in pages),
            backlink_count=total,
        ))
        await self.event_bus.publish_all(events)
        logger.info(f"Backlink extraction completed for database {database_id}: {total} backlinks")
        return total

    async def _replace(self, page: Page, lookup: PageLookup) -> List[Backlink]:
        backlinks = build_backlinks(page, lookup, self.context_chars, self.pattern)
        await self.page_repo.replace_backlinks_for_source(page.id, backlinks)
        logger.debug(f"Page {page.id}: {len(backlinks)} backlink(s)")
        return backlinks

    @staticmethod
    def _extracted_event(page: Page, backlinks: List[Backlink], batched: bool = False) -> BacklinksExtractedEvent:
        return BacklinksExtractedEvent(
            source_page_id=page.id,
            database_id=page.database_id,
            target_page_ids=tuple(b.target_page_id for b in backlinks),
            batched=batched,
        )
