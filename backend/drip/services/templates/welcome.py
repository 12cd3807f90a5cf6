"""Welcome drip sequence

day0: account ready, day2: picking a template, day7: AI writing tools,
day14: ATS optimization and Pro upsell.
"""
from drip.schemas.email import RenderedEmail
from drip.services.templates.i18n import get_translator, is_rtl_locale
from drip.services.templates.layout import (
    base_url, closing, cta_button, feature_list, greeting, heading, numbered_list, paragraph, wrap_in_layout
)

WELCOME_VARIANTS = ("day0", "day2", "day7", "day14")

DEFAULT_AI_CREDITS = 100


def _features(t, prefix):
    return [t(f"{prefix}.features.f{i}") for i in range(1, 5)]


def _day0(t, prefix, name, rtl, url):
    return "".join([
        heading(t(f"{prefix}.title")),
        greeting(t(f"{prefix}.greeting", name=name)),
        paragraph(t(f"{prefix}.body")),
        paragraph(t(f"{prefix}.body2")),
        f'<table role="presentation" cellpadding="0" cellspacing="0" style="margin: 0 0 24px;">{feature_list(_features(t, prefix), rtl)}</table>',
        f'<div style="text-align: center; margin: 32px 0;">{cta_button(t(f"{prefix}.cta"), f"{url}/resume-builder")}</div>',
        f'<div style="text-align: center; margin: 16px 0;">{cta_button(t(f"{prefix}.ctaSecondary"), f"{url}/resume-builder#templates", secondary=True)}</div>',
        closing(t(f"{prefix}.closing")),
    ])


def _day2(t, prefix, name, rtl, url):
    steps = [t(f"{prefix}.steps.s{i}") for i in range(1, 4)]
    return "".join([
        heading(t(f"{prefix}.title")),
        greeting(t(f"{prefix}.greeting", name=name)),
        paragraph(t(f"{prefix}.body")),
        f'<table role="presentation" cellpadding="0" cellspacing="0" style="margin: 0 0 16px;">{numbered_list(steps, rtl)}</table>',
        paragraph(t(f"{prefix}.body2"), "margin: 0 0 24px;"),
        f'<div style="text-align: center; margin: 32px 0;">{cta_button(t(f"{prefix}.cta"), f"{url}/resume-builder#templates")}</div>',
        closing(t(f"{prefix}.closing")),
    ])


def _day7(t, prefix, name, rtl, url):
    return "".join([
        heading(t(f"{prefix}.title")),
        greeting(t(f"{prefix}.greeting", name=name)),
        paragraph(t(f"{prefix}.body")),
        paragraph(t(f"{prefix}.body2")),
        f'<table role="presentation" cellpadding="0" cellspacing="0" style="margin: 0 0 24px;">{feature_list(_features(t, prefix), rtl)}</table>',
        f'<div style="text-align: center; margin: 32px 0;">{cta_button(t(f"{prefix}.cta"), f"{url}/resume-builder")}</div>',
        closing(t(f"{prefix}.closing", aiCredits=DEFAULT_AI_CREDITS)),
    ])


def _day14(t, prefix, name, rtl, url):
    return "".join([
        heading(t(f"{prefix}.title")),
        greeting(t(f"{prefix}.greeting", name=name)),
        paragraph(t(f"{prefix}.body")),
        paragraph(t(f"{prefix}.body2")),
        f'<table role="presentation" cellpadding="0" cellspacing="0" style="margin: 0 0 24px;">{feature_list(_features(t, prefix), rtl)}</table>',
        f'<div style="text-align: center; margin: 32px 0;">{cta_button(t(f"{prefix}.cta"), f"{url}/resume-builder")}</div>',
        '<div style="background: #eff6ff; border-radius: 8px; padding: 16px; margin: 24px 0; text-align: center;">',
        paragraph(t(f"{prefix}.proTip"), "margin: 0 0 12px; font-size: 14px; color: #1e40af;"),
        cta_button(t(f"{prefix}.ctaSecondary"), f"{url}/billing", secondary=True),
        "</div>",
    ])


_BODIES = {
    "day0": _day0,
    "day2": _day2,
    "day7": _day7,
    "day14": _day14,
}


def render_welcome_email(locale: str, variant: str, name: str, unsubscribe_url: str) -> RenderedEmail:
    """Render one step of the welcome series. Raises KeyError for an unknown variant."""
    body_renderer = _BODIES[variant]
    t = get_translator(locale)
    prefix = f"welcome.{variant}"
    body = body_renderer(t, prefix, name or "", is_rtl_locale(locale), base_url())
    html = wrap_in_layout(locale, body, unsubscribe_url, preheader=t(f"{prefix}.preheader"))
    return RenderedEmail(subject=t(f"{prefix}.subject"), html=html)
