from html import escape

from fastapi.responses import HTMLResponse

TITLES = {
    400: "Invalid Link Format",
    404: "Link Not Found",
    500: "Server Error",
}

PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <style>
    body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; margin: 0;
           min-height: 100vh; display: flex; align-items: center; justify-content: center;
           background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); }}
    .container {{ background: white; border-radius: 12px; padding: 2rem; margin: 1rem; max-width: 500px;
                 text-align: center; box-shadow: 0 10px 25px rgba(0, 0, 0, 0.1); }}
    .error-code {{ font-size: 4rem; font-weight: bold; color: #e53e3e; margin: 0; line-height: 1; }}
    .error-title {{ font-size: 1.5rem; font-weight: 600; color: #2d3748; margin: 1rem 0 0.5rem 0; }}
    .error-message {{ color: #4a5568; margin: 0 0 2rem 0; line-height: 1.6; }}
    .home-link {{ display: inline-block; background: #667eea; color: white; text-decoration: none;
                 padding: 0.75rem 1.5rem; border-radius: 6px; font-weight: 500; }}
  </style>
</head>
<body>
  <div class="container">
    <div class="error-code">{status_code}</div>
    <h1 class="error-title">{title}</h1>
    <p class="error-message">{message}</p>
    <a href="/" class="home-link">&larr; Go Home</a>
  </div>
</body>
</html>
"""


def render_error_page(status_code: int, message: str, title: str = None) -> HTMLResponse:
    title = title or TITLES.get(status_code, "Error")
    content = PAGE.format(title=escape(title), message=escape(message), status_code=status_code)
    return HTMLResponse(content=content, status_code=status_code)
