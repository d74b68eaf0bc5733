"""
Per-type content rules for section versions.

A version's content is a JSON object whose required keys depend on the
section type. Anything beyond the required keys is passed through untouched.
"""

from typing import Any

from homepage_cms.exceptions import ContentValidationError
from homepage_cms.models.section import SectionType

# Each entry is a list of alternatives; at least one key of each must be present
REQUIRED_FIELDS: dict[SectionType, list[tuple[str, ...]]] = {
    SectionType.HERO_BANNER: [("title",), ("image_url", "video_url")],
    SectionType.PRODUCT_CAROUSEL: [("title",)],
    SectionType.TEXT_BLOCK: [("content",)],
    SectionType.CATEGORY_GRID: [],
    SectionType.PROMO_BANNER: [("title",), ("cta",)],
    SectionType.NEWSLETTER: [("title",)],
    SectionType.CUSTOM_HTML: [("html",)],
}


def _present(content: dict[str, Any], key: str) -> bool:
    value = content.get(key)
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def validate_section_content(section_type: SectionType | str, content: Any) -> dict[str, Any]:
    """Return ``content`` unchanged, or raise ``ContentValidationError``."""
    section_type = SectionType(section_type)
    if not isinstance(content, dict):
        raise ContentValidationError(section_type.value, "Section content must be a JSON object")

    missing = [
        " or ".join(alternatives)
        for alternatives in REQUIRED_FIELDS[section_type]
        if not any(_present(content, key) for key in alternatives)
    ]
    if missing:
        raise ContentValidationError(
            section_type.value,
            f"Content for {section_type.value} is missing: {', '.join(missing)}",
            missing=missing,
        )
    return content
