"""
Shared test data builders
"""

from datetime import datetime, timezone

START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def hero_content(title: str = "Spring sale") -> dict:
    return {"title": title, "image_url": "https://cdn.example.com/hero.jpg", "cta_text": "Shop now"}


def text_content(body: str = "Free shipping on orders over $50") -> dict:
    return {"content": body}
