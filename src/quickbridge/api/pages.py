"""HTML pages served to the browser at the end of the OAuth redirect."""

from __future__ import annotations

import html
import json
from urllib.parse import urlencode

_PAGE = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8">
    <meta http-equiv="refresh" content="{delay};url={target_attr}">
    <title>{title}</title>
    <style>
      body {{
        font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
        display: flex;
        justify-content: center;
        align-items: center;
        height: 100vh;
        margin: 0;
        background: {background};
        color: white;
      }}
      .container {{
        text-align: center;
        padding: 40px;
        background: rgba(255, 255, 255, 0.1);
        border-radius: 20px;
      }}
      h1 {{ margin: 0 0 20px 0; font-size: 24px; }}
      p {{ margin: 10px 0; opacity: 0.9; }}
    </style>
  </head>
  <body>
    <div class="container">
      <h1>{heading}</h1>
      <p>{message}</p>
    </div>
    <script>
      setTimeout(function () {{
        window.location.href = {target_js};
      }}, {delay_ms});
    </script>
  </body>
</html>
"""


def frontend_redirect(frontend_url: str | None, **params: str) -> str:
    """Frontend URL with ``params`` appended as a query string."""
    base = frontend_url or "/"
    separator = "&" if "?" in base else "?"
    return f"{base}{separator}{urlencode(params)}"


def _render(*, title: str, heading: str, message: str, background: str, target: str, delay: float) -> str:
    return _PAGE.format(
        title=html.escape(title),
        heading=html.escape(heading),
        message=html.escape(message),
        background=background,
        target_attr=html.escape(target, quote=True),
        # json.dumps gives a quoted JS string literal; "</" is split so it
        # cannot close the script element
        target_js=json.dumps(target).replace("</", "<\\/"),
        delay=int(delay),
        delay_ms=int(delay * 1000),
    )


def success_page(frontend_url: str | None) -> str:
    return _render(
        title="Connecting to QuickBooks...",
        heading="Connected Successfully!",
        message="Redirecting you back to the application...",
        background="linear-gradient(135deg, #667eea 0%, #764ba2 100%)",
        target=frontend_redirect(frontend_url, connected="true"),
        delay=1.5,
    )


def failure_page(frontend_url: str | None) -> str:
    return _render(
        title="Connection Failed",
        heading="Connection Failed",
        message="Redirecting back...",
        background="linear-gradient(135deg, #f093fb 0%, #f5576c 100%)",
        target=frontend_redirect(frontend_url, error="auth_failed"),
        delay=2,
    )
