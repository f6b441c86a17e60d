"""Load article drafts from Markdown, HTML and plain text files."""

import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml
from bs4 import BeautifulSoup

from ..models.content import ArticleDraft
from .errors import DraftLoadError

logger = logging.getLogger(__name__)

DRAFT_SUFFIXES = (".md", ".markdown", ".txt", ".html", ".htm")

FRONTMATTER = re.compile(r"\A---[ \t]*\n(.*?)\n---[ \t]*(?:\n|\Z)(.*)\Z", re.DOTALL)
HEADING = re.compile(r"\A#\s+(.+?)\s*(?:\n|\Z)")
BLOCK_TAGS = ["p", "h2", "h3", "h4", "blockquote", "li"]


def parse_frontmatter(content: str) -> Tuple[Dict[str, Any], str]:
    """Split YAML frontmatter from a Markdown document.

    Returns:
        (frontmatter_dict, body); the dict is empty when there is no frontmatter
    """
    match = FRONTMATTER.match(content)
    if not match:
        return {}, content

    try:
        data = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        raise DraftLoadError(f"Invalid frontmatter: {e}") from e

    if not isinstance(data, dict):
        raise DraftLoadError("Frontmatter must be a mapping")
    return data, match.group(2)


def _coerce_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        logger.warning(f"Ignoring unparseable draft date: {value!r}")
        return None


def _markdown_draft(path: Path, content: str) -> ArticleDraft:
    meta, body = parse_frontmatter(content)
    body = body.strip()

    title = meta.get("title")
    if not title:
        heading = HEADING.match(body)
        if heading:
            title = heading.group(1)
            body = body[heading.end():].strip()
        else:
            title = path.stem.replace("-", " ").replace("_", " ")

    return ArticleDraft(
        id=str(meta.get("id") or path.stem),
        title=str(title).strip(),
        body=body,
        image_ref=meta.get("image") or meta.get("image_ref"),
        source_path=str(path),
        published_on=_coerce_date(meta.get("date")),
    )


def _html_draft(path: Path, content: str) -> ArticleDraft:
    soup = BeautifulSoup(content, "html.parser")

    title = None
    heading = soup.find("h1")
    if heading and heading.get_text(strip=True):
        title = heading.get_text(" ", strip=True)
        heading.decompose()
    elif soup.title and soup.title.string:
        title = soup.title.string.strip()

    blocks = [
        " ".join(tag.get_text(" ", strip=True).split())
        for tag in soup.find_all(BLOCK_TAGS)
        if tag.get_text(strip=True)
    ]
    body = "\n\n".join(blocks) if blocks else soup.get_text("\n\n", strip=True)

    image = soup.find("img")
    return ArticleDraft(
        id=path.stem,
        title=title or path.stem.replace("-", " ").replace("_", " "),
        body=body,
        image_ref=image.get("src") if image else None,
        source_path=str(path),
    )


def _text_draft(path: Path, content: str) -> ArticleDraft:
    lines = content.strip().split("\n", 1)
    title = lines[0].strip() or path.stem
    body = lines[1].strip() if len(lines) > 1 else ""
    return ArticleDraft(id=path.stem, title=title, body=body, source_path=str(path))


def load_draft(path: str) -> ArticleDraft:
    """Read one draft file.

    Raises:
        DraftLoadError: If the file cannot be read or parsed
    """
    file_path = Path(path)
    try:
        content = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DraftLoadError(f"Cannot read draft {path}: {e}") from e

    suffix = file_path.suffix.lower()
    if suffix in (".html", ".htm"):
        return _html_draft(file_path, content)
    if suffix == ".txt":
        return _text_draft(file_path, content)
    return _markdown_draft(file_path, content)


def discover_draft_files(paths: Iterable[str]) -> List[Path]:
    """Expand directories into the draft files they contain."""
    found: List[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            found.extend(
                sorted(p for p in path.rglob("*") if p.suffix.lower() in DRAFT_SUFFIXES)
            )
        else:
            found.append(path)
    return found


def load_drafts(paths: Iterable[str]) -> List[ArticleDraft]:
    """Load every draft under ``paths``, skipping unreadable files."""
    drafts = []
    for path in discover_draft_files(paths):
        try:
            drafts.append(load_draft(str(path)))
        except DraftLoadError as e:
            logger.error(f"Skipping draft: {e}")
            continue
    logger.info(f"📄 Loaded {len(drafts)} draft(s)")
    return drafts
