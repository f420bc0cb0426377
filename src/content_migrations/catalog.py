"""
Expected Category Catalog

Loads the canonical category definitions (slug, display name and metadata
schema) the running code expects, from a JSON array file.
"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from .exceptions import MigrationLoadError
from .models import ExpectedCategory

logger = logging.getLogger(__name__)


def parse_expected_categories(data: object) -> list[ExpectedCategory]:
    """
    Validate decoded catalog data.

    Raises:
        MigrationLoadError: If the data is not a list of category definitions
            or a slug appears twice
    """
    if not isinstance(data, list):
        raise MigrationLoadError("Categories file must contain a JSON array")

    categories: list[ExpectedCategory] = []
    seen: set[str] = set()
    for index, item in enumerate(data):
        try:
            category = ExpectedCategory.model_validate(item)
        except (ValidationError, ValueError) as e:
            raise MigrationLoadError(
                f"Invalid category definition at index {index}: {e}",
                details={"index": index},
            ) from e
        if category.category_id in seen:
            raise MigrationLoadError(
                f"Duplicate category '{category.category_id}' in categories file",
                details={"category_id": category.category_id},
            )
        seen.add(category.category_id)
        categories.append(category)
    return categories


def load_expected_categories(path: str | Path) -> list[ExpectedCategory]:
    """
    Load expected categories from a JSON file.

    Args:
        path: Path to a JSON array of category definitions

    Returns:
        Expected categories in file order
    """
    file_path = Path(path)
    if not file_path.exists():
        raise MigrationLoadError(f"Categories file not found at {file_path}")

    try:
        with open(file_path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise MigrationLoadError(f"Failed to read categories file {file_path}: {e}") from e

    categories = parse_expected_categories(data)
    logger.info(f"Loaded {len(categories)} expected categories from {file_path}")
    return categories
