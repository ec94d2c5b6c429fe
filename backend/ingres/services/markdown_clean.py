import re

# Footer/company blocks the portal renders on every page
_BLOCKS_TO_REMOVE = [
    re.compile(r"\n?Visitors:\n[\s\S]*?(?=\n\n|$)", re.IGNORECASE),
    re.compile(r"\n?Powered by:[\s\S]*?(?=\n\n|$)", re.IGNORECASE),
    re.compile(r"\n?Developed by:[\s\S]*?(?=\n\n|$)", re.IGNORECASE),
    re.compile(r"\n?\[Leaflet\][\s\S]*?\(http[^)]*vassarlabs\.com[^)]*\)[\s\S]*?(?=\n\n|$)", re.IGNORECASE),
]

_LOGOS = [
    re.compile(r"!\[[^\]]*\]\(https?://ingres\.iith\.ac\.in/assets/images/logoIIT\.png\)", re.IGNORECASE),
    re.compile(r"!\[[^\]]*\]\(https?://ingres\.iith\.ac\.in/assets/images/footer-logo\.png\)", re.IGNORECASE),
]


def clean_scraped_markdown(md: str) -> str:
    """Strip portal chrome (footers, logos) from scraped Markdown."""
    out = md or ""
    for rx in _BLOCKS_TO_REMOVE:
        out = rx.sub("\n", out)
    for rx in _LOGOS:
        out = rx.sub("", out)
    return re.sub(r"\n{3,}", "\n\n", out).strip()
