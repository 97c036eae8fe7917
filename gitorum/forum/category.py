"""Category loading."""

import tomllib
from pathlib import Path
from typing import List, Union

from pydantic import ValidationError

from ..models import Category, CategoryMeta
from .post import ROOT_FILENAME


CATEGORY_META_FILENAME = "META.toml"


class CategoryError(ValueError):
    """A directory is not a valid category."""


def read_category_meta(category_dir: Union[str, Path]) -> CategoryMeta:
    path = Path(category_dir) / CATEGORY_META_FILENAME
    try:
        data = tomllib.loads(path.read_text(encoding='utf-8'))
        return CategoryMeta.model_validate(data)
    except FileNotFoundError as e:
        raise CategoryError(f"{CATEGORY_META_FILENAME} not found in {category_dir}") from e
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError, ValidationError) as e:
        raise CategoryError(f"read {CATEGORY_META_FILENAME} in {category_dir}: {e}") from e


def load_category(slug: str, category_dir: Union[str, Path]) -> Category:
    """
    Load a category and enumerate its valid threads.

    Unlike threads, a category without metadata is not a degraded view: it
    is not a category at all.

    Args:
        slug: Category slug
        category_dir: Category directory

    Returns:
        Category whose thread_slugs are the sorted subdirectories that hold
        a root post

    Raises:
        CategoryError: If META.toml is missing or malformed
    """
    category_dir = Path(category_dir)
    meta = read_category_meta(category_dir)

    thread_slugs = sorted(
        entry.name
        for entry in category_dir.iterdir()
        if entry.is_dir() and (entry / ROOT_FILENAME).is_file()
    )
    return Category(
        slug=slug,
        name=meta.name,
        description=meta.description,
        thread_slugs=thread_slugs,
    )


def list_categories(root: Union[str, Path]) -> List[str]:
    """Sorted slugs of directories under root that hold a META.toml file."""
    root = Path(root)
    return sorted(
        entry.name
        for entry in root.iterdir()
        if entry.is_dir() and (entry / CATEGORY_META_FILENAME).is_file()
    )
