"""Interactive explorer: accept negotiation and the Playground page."""

from graphql_sentinel.explorer.negotiation import accepted_media_types, prefers_html
from graphql_sentinel.explorer.playground import (
    DEFAULT_PLAYGROUND_SETTINGS,
    render_playground_page,
)

__all__ = [
    "DEFAULT_PLAYGROUND_SETTINGS",
    "accepted_media_types",
    "prefers_html",
    "render_playground_page",
]
