"""Document parsing: wiki-links, descriptors and name resolution."""

from .descriptor import describe_document, guess_title, sibling_group_key
from .links import extract_links
from .title_index import normalize_name_for_match, resolve_link_target

__all__ = [
    "describe_document",
    "extract_links",
    "guess_title",
    "normalize_name_for_match",
    "resolve_link_target",
    "sibling_group_key",
]
