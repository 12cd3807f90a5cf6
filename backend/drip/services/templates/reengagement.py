"""Re-engagement emails, tiered by inactivity (30d nudge, 60d what's new, 90d fresh start)"""
from drip.schemas.email import RenderedEmail
from drip.services.templates.i18n import get_translator, is_rtl_locale
from drip.services.templates.layout import (
    base_url, closing, cta_button, feature_list, greeting, heading, paragraph, wrap_in_layout
)

REENGAGEMENT_VARIANTS = ("30d", "60d", "90d")


def variant_for_threshold(threshold: int) -> str:
    if threshold >= 90:
        return "90d"
    if threshold >= 60:
        return "60d"
    return "30d"


def _intro(t, prefix, name, rtl, items_key, item_letter):
    items = [t(f"{prefix}.{items_key}.{item_letter}{i}") for i in range(1, 5)]
    return [
        heading(t(f"{prefix}.title")),
        greeting(t(f"{prefix}.greeting", name=name)),
        paragraph(t(f"{prefix}.body")),
        paragraph(t(f"{prefix}.body2")),
        f'<table role="presentation" cellpadding="0" cellspacing="0" style="margin: 0 0 24px;">{feature_list(items, rtl)}</table>',
    ]


def _30d(t, prefix, name, rtl, url):
    return "".join(_intro(t, prefix, name, rtl, "reasons", "r") + [
        f'<div style="text-align: center; margin: 32px 0;">{cta_button(t(f"{prefix}.cta"), f"{url}/dashboard")}</div>',
        closing(t(f"{prefix}.closing")),
    ])


def _60d(t, prefix, name, rtl, url):
    return "".join(_intro(t, prefix, name, rtl, "updates", "u") + [
        f'<div style="text-align: center; margin: 32px 0;">{cta_button(t(f"{prefix}.cta"), f"{url}/dashboard")}</div>',
        '<div style="background: #f0fdf4; border-radius: 8px; padding: 16px; margin: 24px 0; text-align: center;">',
        paragraph(t(f"{prefix}.offer"), "margin: 0 0 12px; font-size: 14px; color: #166534;"),
        cta_button(t(f"{prefix}.ctaSecondary"), f"{url}/dashboard", secondary=True),
        "</div>",
    ])


def _90d(t, prefix, name, rtl, url):
    return "".join(_intro(t, prefix, name, rtl, "actions", "a") + [
        f'<div style="text-align: center; margin: 32px 0;">{cta_button(t(f"{prefix}.cta"), f"{url}/resume-builder")}</div>',
        paragraph(t(f"{prefix}.body3"), "margin: 16px 0;"),
        f'<div style="text-align: center; margin: 16px 0;">{cta_button(t(f"{prefix}.ctaSecondary"), f"{url}/dashboard", secondary=True)}</div>',
    ])


_BODIES = {
    "30d": _30d,
    "60d": _60d,
    "90d": _90d,
}


def render_reengagement_email(locale: str, variant: str, name: str, unsubscribe_url: str) -> RenderedEmail:
    """Raises KeyError for an unknown variant"""
    body_renderer = _BODIES[variant]
    t = get_translator(locale)
    prefix = f"reengagement.{variant}"
    body = body_renderer(t, prefix, name or "", is_rtl_locale(locale), base_url())
    html = wrap_in_layout(locale, body, unsubscribe_url, preheader=t(f"{prefix}.preheader"))
    return RenderedEmail(subject=t(f"{prefix}.subject"), html=html)
