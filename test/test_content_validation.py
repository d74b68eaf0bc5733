"""
Tests for per-type section content rules.
"""

import pytest

from homepage_cms.exceptions import ContentValidationError
from homepage_cms.models.section import SectionType
from homepage_cms.utils.content_validation import validate_section_content


class TestValidateSectionContent:
    """Tests for validate_section_content"""

    @pytest.mark.parametrize(
        "section_type,content",
        [
            (SectionType.HERO_BANNER, {"title": "Sale", "image_url": "https://cdn.example.com/a.jpg"}),
            (SectionType.HERO_BANNER, {"title": "Sale", "video_url": "https://cdn.example.com/a.mp4"}),
            (SectionType.PRODUCT_CAROUSEL, {"title": "Bestsellers"}),
            (SectionType.TEXT_BLOCK, {"content": "Free shipping"}),
            (SectionType.CATEGORY_GRID, {}),
            (SectionType.PROMO_BANNER, {"title": "Sale", "cta": {"text": "Shop", "url": "/sale"}}),
            (SectionType.NEWSLETTER, {"title": "Join"}),
            (SectionType.CUSTOM_HTML, {"html": "<div></div>"}),
        ],
    )
    def test_valid_content(self, section_type, content):
        assert validate_section_content(section_type, content) is content

    def test_accepts_type_value(self):
        validate_section_content("text_block", {"content": "Hello"})

    def test_extra_keys_pass_through(self):
        content = {"content": "Hello", "theme": "dark"}
        assert validate_section_content(SectionType.TEXT_BLOCK, content) == content

    def test_missing_alternatives(self):
        with pytest.raises(ContentValidationError) as exc_info:
            validate_section_content(SectionType.HERO_BANNER, {"title": "Sale"})

        assert exc_info.value.details["missing_fields"] == ["image_url or video_url"]

    def test_blank_string_counts_as_missing(self):
        with pytest.raises(ContentValidationError) as exc_info:
            validate_section_content(SectionType.PROMO_BANNER, {"title": "  ", "cta": "Shop"})

        assert exc_info.value.details["missing_fields"] == ["title"]

    def test_not_an_object(self):
        with pytest.raises(ContentValidationError, match="JSON object"):
            validate_section_content(SectionType.TEXT_BLOCK, ["not", "a", "dict"])

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            validate_section_content("carousel_3d", {})
