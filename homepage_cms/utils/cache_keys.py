"""
Cache key, tag and header builders for homepage data.

Keys are versioned (``:v2``) so a payload shape change can roll out without
a flush.
"""

# Seconds
TTL_HOMEPAGE = 3600

STALE_WHILE_REVALIDATE = 86400

SCHEDULED_SECTIONS_KEY = "sections:scheduled:active"


def homepage_content_key(locale: str) -> str:
    return f"homepage:content:{locale}:v2"


def homepage_generation_key(locale: str) -> str:
    return f"homepage:generation:{locale}"


def section_detail_key(section_id: int) -> str:
    return f"section:{section_id}:detail"


def admin_sections_key(locale: str, status: str | None = None) -> str:
    return f"admin:sections:{locale}:{status or 'all'}"


def homepage_tags(locale: str) -> list[str]:
    return ["homepage", f"homepage:{locale}"]


def section_tag(section_id: int) -> str:
    return f"section:{section_id}"


def admin_tag(locale: str) -> str:
    return f"admin:{locale}"


def versions_tag(section_id: int) -> str:
    return f"versions:{section_id}"


def locale_path(locale: str) -> str:
    return f"/{locale}"


def cache_control_header(ttl: int = TTL_HOMEPAGE, stale_while_revalidate: int = STALE_WHILE_REVALIDATE) -> str:
    """Value for the public ``Cache-Control`` header of homepage responses."""
    return f"public, s-maxage={ttl}, stale-while-revalidate={stale_while_revalidate}"
