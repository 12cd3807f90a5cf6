"""Abandoned resume reminder - resume card with progress bar and a link back to the builder"""
from html import escape
from urllib.parse import quote

from drip.schemas.email import RenderedEmail
from drip.services.templates.i18n import get_translator, is_rtl_locale
from drip.services.templates.layout import (
    base_url, cta_button, feature_list, greeting, heading, paragraph, wrap_in_layout
)


def progress_color(completion_percent: int) -> str:
    if completion_percent >= 70:
        return "#10b981"
    if completion_percent >= 40:
        return "#f59e0b"
    return "#ef4444"


def render_abandoned_email(
    locale: str,
    name: str,
    unsubscribe_url: str,
    resume_id: str,
    resume_title: str = "Untitled",
    completion_percent: int = 0,
    last_edited: str = ""
) -> RenderedEmail:
    t = get_translator(locale)
    rtl = is_rtl_locale(locale)
    url = base_url()
    prefix = "abandoned"
    width = max(0, min(completion_percent, 100))
    tips = [t(f"{prefix}.tips.t{i}") for i in range(1, 4)]
    builder_url = f"{url}/resume-builder?id={quote(resume_id, safe='')}"

    body = "".join([
        heading(t(f"{prefix}.title")),
        greeting(t(f"{prefix}.greeting", name=name or "")),
        paragraph(t(f"{prefix}.body")),
        paragraph(t(f"{prefix}.body2"), "margin: 0 0 20px;"),
        '<div style="background: #f9fafb; border: 1px solid #e5e7eb; border-radius: 10px; padding: 20px; margin: 0 0 24px;">',
        paragraph(
            t(f"{prefix}.resumeInfo.title", resumeTitle=resume_title),
            "margin: 0 0 8px; font-size: 16px; font-weight: 600; color: #111827;"
        ),
        '<div style="background: #e5e7eb; border-radius: 999px; height: 8px; margin: 12px 0;">'
        f'<div style="background: {progress_color(completion_percent)}; border-radius: 999px; height: 8px; width: {width}%;"></div>'
        '</div>',
        paragraph(t(f"{prefix}.resumeInfo.completion", percent=completion_percent), "margin: 4px 0 0; font-size: 14px; color: #6b7280;"),
        paragraph(t(f"{prefix}.resumeInfo.lastEdited", date=last_edited), "margin: 4px 0 0; font-size: 13px; color: #9ca3af;"),
        "</div>",
        paragraph(t(f"{prefix}.body3"), "margin: 0 0 24px;"),
        f'<div style="text-align: center; margin: 32px 0;">{cta_button(t(f"{prefix}.cta"), builder_url)}</div>',
        '<div style="background: #eff6ff; border-radius: 8px; padding: 16px 20px; margin: 24px 0;">',
        f'<p style="margin: 0 0 10px; font-size: 14px; font-weight: 600; color: #1e40af;">{escape(t(f"{prefix}.tips.title"))}</p>',
        f'<table role="presentation" cellpadding="0" cellspacing="0">{feature_list(tips, rtl)}</table>',
        "</div>",
        paragraph(t(f"{prefix}.closing"), "margin: 24px 0 0; color: #6b7280; font-size: 14px; font-style: italic;"),
    ])

    html = wrap_in_layout(locale, body, unsubscribe_url, preheader=t(f"{prefix}.preheader"))
    return RenderedEmail(subject=t(f"{prefix}.subject"), html=html)
