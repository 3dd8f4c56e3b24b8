"""Rendering and publishing of the grouped entry page."""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .models import DateGroup
from .templating import get_environment

logger = logging.getLogger(__name__)


def build_index_html(
    groups: List[DateGroup],
    feed_count: int,
    entry_count: int,
    built_at: datetime,
    max_days: int = 7,
    opml_name: Optional[str] = None,
) -> str:
    """Render the index page using the Jinja2 template."""
    env = get_environment()
    template = env.get_template("index.html.j2")
    return template.render(
        groups=groups,
        feed_count=feed_count,
        entry_count=entry_count,
        max_days=max_days,
        opml_name=opml_name,
        built_at=built_at.strftime("%Y-%m-%d %H:%M UTC"),
    )


def write_site(
    output_dir: str,
    html: str,
    opml_path: Optional[str] = None,
    cname: Optional[str] = None,
) -> Path:
    """Write ``index.html`` plus the published OPML and CNAME files."""
    target = Path(output_dir)
    target.mkdir(parents=True, exist_ok=True)

    index_path = target / "index.html"
    index_path.write_text(html, encoding="utf-8")
    logger.info("Wrote %s", index_path)

    if opml_path:
        opml_target = target / Path(opml_path).name
        if Path(opml_path).resolve() != opml_target.resolve():
            shutil.copyfile(opml_path, opml_target)
            logger.debug("Copied subscriptions to %s", opml_target)

    if cname:
        (target / "CNAME").write_text(cname + "\n", encoding="utf-8")

    return index_path
