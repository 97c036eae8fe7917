"""Read access to a forum working tree."""

import logging
from pathlib import Path
from typing import List, Union

from ..models import Category, Thread, ThreadScan
from .category import list_categories, load_category
from .keystore import PublicKeyDirectory
from .post import PostParseError
from .thread import load_thread, scan_thread


logger = logging.getLogger(__name__)

KEYS_DIR = "keys"


class ForumTree:
    """
    Reads categories and threads directly from a working tree.

    Every call walks the filesystem; there is no index. Callers only depend
    on this interface, so a cached implementation can replace it.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)
        self.key_store = PublicKeyDirectory(self.root / KEYS_DIR)

    def categories(self) -> List[Category]:
        """All loadable categories; broken ones are logged and skipped."""
        categories = []
        for slug in list_categories(self.root):
            try:
                categories.append(self.category(slug))
            except (ValueError, OSError) as e:
                logger.warning(f"Skipping category {slug}: {e}")
        return categories

    def category(self, slug: str) -> Category:
        return load_category(slug, self.root / slug)

    def thread_scans(self, category_slug: str) -> List[ThreadScan]:
        """Summaries of a category's threads; threads without a usable root are skipped."""
        category = self.category(category_slug)
        scans = []
        for slug in category.thread_slugs:
            try:
                scans.append(scan_thread(slug, self.root / category_slug / slug, self.key_store))
            except (PostParseError, OSError) as e:
                logger.warning(f"Skipping thread {category_slug}/{slug}: {e}")
        return scans

    def thread(self, category_slug: str, slug: str, verify_parents: bool = False) -> Thread:
        return load_thread(
            category_slug,
            slug,
            self.root / category_slug / slug,
            self.key_store,
            verify_parents=verify_parents,
        )
