"""Shared email layout - header, footer, unsubscribe link and RTL support

Every campaign template renders its body and hands it to wrap_in_layout().
Arabic and Kurdish (Sorani) are rendered right-to-left with Noto Sans Arabic.
"""
from html import escape
from typing import List, Optional

from drip.core.config import settings
from drip.services.templates.i18n import get_translator, is_rtl_locale
from drip.utils.dates import utcnow

BRAND_COLOR = "#2563eb"
BRAND_COLOR_DARK = "#1d4ed8"
TEXT_COLOR = "#333333"
MUTED_COLOR = "#6b7280"
BG_COLOR = "#f4f4f5"
CARD_BG = "#ffffff"

RTL_FONT_STACK = "'Noto Sans Arabic', 'Segoe UI', Tahoma, Arial, sans-serif"
LTR_FONT_STACK = "'Inter', 'Segoe UI', -apple-system, BlinkMacSystemFont, sans-serif"
RTL_FONT_IMPORT = "https://fonts.googleapis.com/css2?family=Noto+Sans+Arabic:wght@400;600;700&display=swap"
LTR_FONT_IMPORT = "https://fonts.googleapis.com/css2?family=Inter:wght@400;600;700&display=swap"


def base_url() -> str:
    return settings.FRONTEND_URL.rstrip("/")


def wrap_in_layout(
    locale: str,
    body: str,
    unsubscribe_url: str,
    preheader: Optional[str] = None,
    year: Optional[int] = None
) -> str:
    """Wrap campaign body HTML in the branded layout. body must already be escaped."""
    t = get_translator(locale)
    rtl = is_rtl_locale(locale)
    direction = "rtl" if rtl else "ltr"
    align = "right" if rtl else "left"
    font_stack = RTL_FONT_STACK if rtl else LTR_FONT_STACK
    font_import = RTL_FONT_IMPORT if rtl else LTR_FONT_IMPORT
    year = year or utcnow().year
    url = base_url()
    tagline = escape(t('common.header.tagline'))

    preheader_html = ""
    if preheader:
        preheader_html = (
            '<div style="display: none; max-height: 0; overflow: hidden; mso-hide: all;">'
            f'{escape(preheader)}{"&nbsp;" * 50}</div>'
        )

    return f"""<!DOCTYPE html>
<html lang="{locale}" dir="{direction}">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <meta name="color-scheme" content="light">
  <link href="{font_import}" rel="stylesheet">
  <title>{tagline}</title>
  <style>
    body {{ margin: 0; padding: 0; width: 100%; -webkit-text-size-adjust: 100%; }}
    table {{ border-collapse: collapse; }}
    a {{ color: {BRAND_COLOR}; text-decoration: none; }}
    .btn:hover {{ background: {BRAND_COLOR_DARK}; }}
    @media only screen and (max-width: 600px) {{
      .container {{ width: 100% !important; padding: 16px !important; }}
      .content {{ padding: 24px 16px !important; }}
    }}
  </style>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_COLOR}; font-family: {font_stack}; direction: {direction};">
  {preheader_html}
  <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="background-color: {BG_COLOR};">
    <tr>
      <td align="center" style="padding: 24px 0;">
        <table role="presentation" class="container" width="600" cellpadding="0" cellspacing="0" style="background-color: {CARD_BG}; border-radius: 12px; overflow: hidden;">
          <tr>
            <td style="background: linear-gradient(135deg, {BRAND_COLOR}, {BRAND_COLOR_DARK}); padding: 24px 40px; text-align: center;">
              <a href="{url}" style="text-decoration: none;">
                <span style="font-size: 24px; font-weight: 700; color: #ffffff;">Work.krd</span>
              </a>
              <p style="margin: 4px 0 0; font-size: 13px; color: rgba(255,255,255,0.8);">{tagline}</p>
            </td>
          </tr>
          <tr>
            <td class="content" style="padding: 40px; text-align: {align}; font-size: 16px; line-height: 1.6; color: {TEXT_COLOR}; font-family: {font_stack};">
              {body}
            </td>
          </tr>
          <tr>
            <td style="padding: 24px 40px; background-color: #f9fafb; border-top: 1px solid #e5e7eb; text-align: center;">
              <p style="margin: 0 0 16px;">
                <a href="{url}/dashboard" style="color: {MUTED_COLOR}; font-size: 13px; margin: 0 8px;">{escape(t('common.footer.links.dashboard'))}</a>
                <span style="color: #d1d5db;">|</span>
                <a href="{url}/resume-builder" style="color: {MUTED_COLOR}; font-size: 13px; margin: 0 8px;">{escape(t('common.footer.links.templates'))}</a>
                <span style="color: #d1d5db;">|</span>
                <a href="{url}/billing" style="color: {MUTED_COLOR}; font-size: 13px; margin: 0 8px;">{escape(t('common.footer.links.pricing'))}</a>
              </p>
              <p style="margin: 0; font-size: 13px; color: {MUTED_COLOR};">{escape(t('common.footer.company'))} &middot; {escape(t('common.footer.tagline'))}</p>
              <p style="margin: 4px 0 12px; font-size: 12px; color: {MUTED_COLOR};">{escape(t('common.footer.address'))}</p>
              <p style="margin: 0 0 8px; font-size: 12px; color: {MUTED_COLOR};">
                {escape(t('common.unsubscribe.text'))}<br>
                <a href="{escape(unsubscribe_url)}" style="color: {MUTED_COLOR}; text-decoration: underline;">{escape(t('common.unsubscribe.link'))}</a>
              </p>
              <p style="margin: 0; font-size: 11px; color: #9ca3af;">{escape(t('common.legal.copyright', year=year))}</p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>"""


def cta_button(text: str, url: str, secondary: bool = False) -> str:
    if secondary:
        colors = f"background: transparent; color: {BRAND_COLOR}; border: 2px solid {BRAND_COLOR};"
    else:
        colors = f"background: {BRAND_COLOR}; color: #ffffff;"
    return (
        f'<a href="{escape(url)}" class="btn" style="display: inline-block; padding: 14px 32px; {colors} '
        f'text-decoration: none; border-radius: 8px; font-weight: 600; font-size: 16px;">{escape(text)}</a>'
    )


def feature_list(items: List[str], rtl: bool) -> str:
    """Bullet rows for a presentation table; the bullet points toward the reading direction"""
    bullet = "◂" if rtl else "▸"
    side = "left" if rtl else "right"
    return "".join(
        f'<tr><td style="padding: 4px 0; font-size: 15px; color: {TEXT_COLOR}; vertical-align: top;">'
        f'<span style="color: {BRAND_COLOR}; margin-{side}: 8px;">{bullet}</span>{escape(item)}</td></tr>'
        for item in items
    )


def numbered_list(items: List[str], rtl: bool) -> str:
    side = "left" if rtl else "right"
    return "".join(
        f'<tr><td style="padding: 6px 0; font-size: 15px; color: #374151; vertical-align: top;">'
        f'<span style="display: inline-block; width: 24px; height: 24px; line-height: 24px; text-align: center; '
        f'background: {BRAND_COLOR}; color: #fff; border-radius: 50%; font-size: 13px; font-weight: 600; '
        f'margin-{side}: 10px;">{i}</span>{escape(item)}</td></tr>'
        for i, item in enumerate(items, start=1)
    )


def heading(text: str) -> str:
    return f'<h1 style="margin: 0 0 8px; font-size: 24px; font-weight: 700; color: #111827;">{escape(text)}</h1>'


def paragraph(text: str, style: str = "margin: 0 0 16px;") -> str:
    return f'<p style="{style}">{escape(text)}</p>'


def greeting(text: str) -> str:
    return paragraph(text, "margin: 0 0 24px; font-size: 16px; color: #374151;")


def closing(text: str) -> str:
    return paragraph(text, "margin: 24px 0 0; color: #6b7280; font-size: 14px;")
