"""
Built-in meme templates.

Templates are plain remote image URLs fetched on demand; nothing is cached
locally.
"""

from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class Template:
    """A remote template image."""
    id: str
    name: str
    url: str


TEMPLATES = [
    Template(id="meme1", name="Trending #1", url="https://picsum.photos/seed/meme1/600/400"),
    Template(id="meme2", name="Trending #2", url="https://picsum.photos/seed/meme2/600/400"),
    Template(id="meme3", name="Trending #3", url="https://picsum.photos/seed/meme3/600/400"),
]


def get_template(template_id: str) -> Optional[Template]:
    """Look up a template by id (case-insensitive)."""
    template_id = template_id.lower().strip()
    for template in TEMPLATES:
        if template.id == template_id:
            return template
    return None


def get_template_options() -> List[dict]:
    """Get list of available templates for user selection."""
    return [
        {"id": t.id, "name": t.name, "url": t.url}
        for t in TEMPLATES
    ]
