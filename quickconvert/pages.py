"""
HTML page rendering for the quickconvert web interface.

Pages are plain server-rendered documents; every piece of user or tool
supplied text goes through ``html.escape`` before it is interpolated.
"""

from html import escape
from typing import Optional

from .config import ConversionKind, get_accept_attribute, get_kind_label

BASE_STYLE = """
    body {font-family: Arial, sans-serif; background: #f5f7fb; color: #242424; margin: 0;}
    .container {max-width: 520px; margin: 3rem auto; background: #fff; border-radius: 10px;
                box-shadow: 0 4px 24px rgba(0,0,0,0.08); padding: 2rem;}
    h1, h2 {margin-top: 0;}
    a {color: #4f8cff; text-decoration: none; font-weight: 600;}
    .error-message {color: #b00020; background: #fdecee; border: 1px solid #f5c2c7;
                    padding: .7rem 1rem; border-radius: 6px; margin-bottom: 1rem; text-align: center;}
    .success-message {color: #1e6b35; background: #e8f6ec; border: 1px solid #b7e1c2;
                      padding: 1rem; border-radius: 8px; margin-bottom: 1.5rem;}
    .download-button {background: #4f8cff; color: #fff; padding: .8rem 1.6rem; border-radius: 8px;
                      display: inline-block; margin: 1rem 0;}
    pre {background: #f0f2f6; padding: 1rem; border-radius: 6px; white-space: pre-wrap;
         max-height: 400px; overflow-y: auto;}
    label {display: block; margin: 1rem 0 .4rem; font-weight: 600;}
    select, input[type=file] {width: 100%;}
    button {margin-top: 1.2rem; background: #4f8cff; color: #fff; border: none;
            padding: .7rem 1.4rem; border-radius: 6px; font-weight: 600; cursor: pointer;}
    .footer {margin-top: 2rem; font-size: .85rem; color: #6b7280; text-align: center;}
"""

BACK_LINK = '<div style="margin-top:1rem;"><a href="/">&#8592; Back to Home</a></div>'


def wrap_html_content(content: str, title: Optional[str] = None, script: str = "") -> str:
    """
    Wrap page content in a full HTML document.

    Args:
        content: Inner HTML for the page container
        title: Document title (already trusted text)
        script: Optional inline script placed at the end of the body

    Returns:
        Complete HTML document
    """
    title_tag = f"<title>{title}</title>" if title else "<title>File Converter</title>"
    script_tag = f"<script>{script}</script>" if script else ""

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    {title_tag}
    <style>{BASE_STYLE}</style>
</head>
<body>
<div class="container">
{content}
</div>
{script_tag}
</body>
</html>"""


def render_home_page(max_file_size_mb: int = 10, max_files: int = 10) -> str:
    """Upload form listing every conversion kind."""
    options = "\n".join(
        f'        <option value="{kind.value}" data-accept="{get_accept_attribute(kind)}">'
        f'{escape(get_kind_label(kind))}</option>'
        for kind in ConversionKind
    )
    first_accept = get_accept_attribute(next(iter(ConversionKind)))

    content = f"""
    <h1>File Converter</h1>
    <form id="convertForm" action="/convert" method="POST" enctype="multipart/form-data">
      <label for="conversionType">Conversion type</label>
      <select id="conversionType" name="type">
{options}
      </select>
      <label for="files">Files (up to {max_files})</label>
      <input id="files" type="file" name="files" accept="{first_accept}" multiple required>
      <div class="footer">Maximum file size: {max_file_size_mb}MB per file</div>
      <button type="submit">Convert</button>
    </form>
    <div class="footer">
      No signup, no tracking, no files stored. All processing done locally.<br>
      <a href="/privacy">Privacy</a>
    </div>"""

    script = """
      const select = document.getElementById('conversionType');
      const input = document.getElementById('files');
      select.addEventListener('change', function () {
        input.setAttribute('accept', this.options[this.selectedIndex].dataset.accept || '*');
      });"""

    return wrap_html_content(content, title="File Converter", script=script)


def render_privacy_page() -> str:
    content = """
    <h1>Privacy Policy</h1>
    <ul>
      <li>Uploaded files are processed on this server only and are never shared.</li>
      <li>Uploads are deleted as soon as the conversion finishes.</li>
      <li>Converted files are deleted shortly after you download them, or after one hour.</li>
      <li>We keep no accounts and set no tracking cookies.</li>
    </ul>
    """ + BACK_LINK
    return wrap_html_content(content, title="Privacy Policy")


def render_success_page(file_name: str, download_url: str, conversion_label: str) -> str:
    """Success page with a link to the converted artifact."""
    content = f"""
    <h1>Conversion Complete</h1>
    <div class="success-message">
      Your {escape(conversion_label)} conversion was successful!<br>
      <span>{escape(file_name)}</span>
    </div>
    <a class="download-button" href="{escape(download_url, quote=True)}">Download File</a>
    {BACK_LINK}"""
    return wrap_html_content(content, title="Conversion Complete")


def render_ocr_page(text: str) -> str:
    """Inline page for OCR output."""
    content = f"""
    <h2>Extracted Text</h2>
    <pre id="extractedText">{escape(text)}</pre>
    {BACK_LINK}"""
    return wrap_html_content(content, title="OCR Result")


def render_error_page(message: str) -> str:
    content = f"""
    <div class="error-message">{escape(message)}</div>
    {BACK_LINK}"""
    return wrap_html_content(content, title="Error")
