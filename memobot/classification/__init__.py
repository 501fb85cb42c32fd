"""Classification of memories into categories and tags."""

from memobot.classification.categorizer import (
    CATEGORY_COLORS,
    CategoryService,
    clean_category_name,
    pick_color,
)
from memobot.classification.resolver import LabeledBucketResolver, Resolution
from memobot.classification.tagger import (
    TagMerge,
    TagService,
    comparison_key,
    normalize_tag_name,
    parse_tag_list,
)

__all__ = [
    "CATEGORY_COLORS",
    "CategoryService",
    "LabeledBucketResolver",
    "Resolution",
    "TagMerge",
    "TagService",
    "clean_category_name",
    "comparison_key",
    "normalize_tag_name",
    "parse_tag_list",
    "pick_color",
]
