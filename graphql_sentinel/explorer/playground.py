"""GraphQL Playground page renderer."""

from __future__ import annotations

import html
import json
from typing import Any, Dict, Mapping

from graphql_sentinel.constants import PLAYGROUND_CDN_URL, PLAYGROUND_VERSION

DEFAULT_PLAYGROUND_SETTINGS: Dict[str, Any] = {
    "general.betaUpdates": False,
    "editor.theme": "dark",
    "editor.cursorShape": "line",
    "editor.reuseHeaders": True,
    "tracing.hideTracingResponse": True,
    "queryPlan.hideQueryPlanResponse": True,
    "editor.fontSize": 14,
    "editor.fontFamily": "'Source Code Pro', 'Consolas', 'Inconsolata', 'Droid Sans Mono', 'Monaco', monospace",
    "request.credentials": "omit",
}

_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset=utf-8/>
  <meta name="viewport" content="user-scalable=no, initial-scale=1.0, minimum-scale=1.0, maximum-scale=1.0, minimal-ui">
  <title>{title}</title>
  <link rel="stylesheet" href="{cdn}/@apollographql/graphql-playground-react@{version}/build/static/css/index.css">
  <link rel="shortcut icon" href="{favicon}">
  <script src="{cdn}/@apollographql/graphql-playground-react@{version}/build/static/js/middleware.js"></script>
</head>
<body>
  <div id="root">
    <div class="loading">Loading <span class="title">GraphQL Playground</span></div>
  </div>
  <script>window.addEventListener('load', function (event) {{
    var root = document.getElementById('root');
    root.classList.add('playgroundIn');
    GraphQLPlayground.init(root, {config});
  }})</script>
</body>
</html>
"""


def _script_json(value: Any) -> str:
    return json.dumps(value).replace("</", "<\\/")


def render_playground_page(options: Mapping[str, Any]) -> str:
    """Render the Playground HTML page.

    *options* carries ``endpoint`` and ``subscriptionEndpoint`` plus any
    :class:`~graphql_sentinel.config.schema.PlaygroundSettings` fields.
    """
    version = options.get("version") or PLAYGROUND_VERSION
    cdn = options.get("cdn_url") or PLAYGROUND_CDN_URL
    favicon = options.get("favicon_url") or (
        f"{cdn}/@apollographql/graphql-playground-react@{version}/build/favicon.png"
    )
    settings = dict(DEFAULT_PLAYGROUND_SETTINGS)
    settings.update(options.get("settings") or {})

    config: Dict[str, Any] = {
        "endpoint": options.get("endpoint"),
        "subscriptionEndpoint": options.get("subscriptionEndpoint"),
        "settings": settings,
    }
    if options.get("tabs"):
        config["tabs"] = list(options["tabs"])

    return _PAGE.format(
        title=html.escape(options.get("title") or "GraphQL Playground"),
        cdn=html.escape(cdn),
        version=html.escape(version),
        favicon=html.escape(favicon),
        config=_script_json(config),
    )
