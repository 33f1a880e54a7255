"""
Reminder message templates.

One builder per reminder type, all with the same signature
``(user, context) -> RenderedMessage``, registered in TEMPLATES.
HTML uses inline CSS for email client compatibility.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from html import escape

from daybook.reminders.types import Goal, ReminderType, ReminderUser
from daybook.streaks.calculator import StreakSnapshot

# Color constants
BG_PAGE = "#F4F5FB"
BG_CARD = "#FFFFFF"
BG_SURFACE = "#F8F9FA"
ACCENT = "#667EEA"
TEXT_PRIMARY = "#1F2330"
TEXT_SECONDARY = "#5F6577"
BORDER = "#E4E6EF"

APP_NAME = "Daybook"


@dataclass(frozen=True)
class RenderedMessage:
    subject: str
    html_body: str
    text_body: str


@dataclass(frozen=True)
class ReminderContext:
    local_day: date
    streak: StreakSnapshot
    app_url: str
    goals: list[Goal] = field(default_factory=list)


TemplateFunc = Callable[[ReminderUser, ReminderContext], RenderedMessage]


def _base_layout(content: str, footer_url: str) -> str:
    """Wrap content in the base email layout."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{APP_NAME}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_PAGE}; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: {BG_PAGE};">
        <tr>
            <td align="center" style="padding: 32px 16px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" style="max-width: 600px; width: 100%;">
                    <tr>
                        <td align="center" style="padding-bottom: 24px;">
                            <span style="font-size: 22px; font-weight: 700; color: {ACCENT};">{APP_NAME}</span>
                        </td>
                    </tr>
                    <tr>
                        <td style="background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 12px; padding: 32px;">
                            {content}
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding-top: 24px;">
                            <p style="color: {TEXT_SECONDARY}; font-size: 12px; line-height: 1.5; margin: 0;">
                                You can change which reminders you receive in
                                <a href="{footer_url}?view=settings" style="color: {ACCENT};">notification settings</a>.
                            </p>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def _button(url: str, label: str) -> str:
    """Render a CTA button."""
    return f"""\
<table role="presentation" cellspacing="0" cellpadding="0" border="0" style="margin: 24px auto;">
    <tr>
        <td align="center" style="background-color: {ACCENT}; border-radius: 8px;">
            <a href="{url}" target="_blank" style="display: inline-block; padding: 14px 30px; color: #FFFFFF; font-size: 16px; font-weight: 600; text-decoration: none; border-radius: 8px;">
                {label}
            </a>
        </td>
    </tr>
</table>"""


def _heading(text: str) -> str:
    return f'<h1 style="color: {TEXT_PRIMARY}; font-size: 22px; font-weight: 700; margin: 0 0 16px 0;">{text}</h1>'


def _paragraph(text: str) -> str:
    return f'<p style="color: {TEXT_SECONDARY}; font-size: 16px; line-height: 1.6; margin: 0 0 12px 0;">{text}</p>'


def _greeting(user: ReminderUser) -> str:
    return f"Hi {user.name or 'there'},"


def _compose(
    user: ReminderUser,
    context: ReminderContext,
    subject: str,
    heading: str,
    lines: list[str],
    cta: str,
) -> RenderedMessage:
    """Build both bodies from plain-text lines; HTML escapes every line."""
    greeting = _greeting(user)
    content = "\n".join(
        [_heading(escape(heading)), _paragraph(escape(greeting))]
        + [_paragraph(escape(line)) for line in lines]
        + [_button(context.app_url, escape(cta))]
    )
    text_body = "\n\n".join(
        [heading, greeting, *lines, f"{cta}: {context.app_url}", f"-- {APP_NAME} • {context.local_day.isoformat()}"]
    )
    return RenderedMessage(subject, _base_layout(content, context.app_url), text_body)


def plan_reminder(user: ReminderUser, context: ReminderContext) -> RenderedMessage:
    """Evening prompt to plan tomorrow."""
    return _compose(
        user,
        context,
        subject=f"{APP_NAME} - Time to plan tomorrow",
        heading="Plan your tomorrow",
        lines=[
            "Take a minute to say what you want tomorrow to look like.",
            "What matters most? What would make the day a good one?",
        ],
        cta="Record your plan",
    )


def reflection_reminder(user: ReminderUser, context: ReminderContext) -> RenderedMessage:
    """Morning prompt to reflect."""
    return _compose(
        user,
        context,
        subject=f"{APP_NAME} - A moment to reflect",
        heading="How did it go?",
        lines=[
            "What are you proud of? What got in the way, and how did you handle it?",
            "A short voice note is enough.",
        ],
        cta="Record a reflection",
    )


def streak_risk(user: ReminderUser, context: ReminderContext) -> RenderedMessage:
    """Late-day nudge when nothing has been recorded today."""
    current = context.streak.current_streak
    if current > 0:
        lines = [
            f"You're on a {current}-day streak.",
            "Record something before midnight to keep it going.",
        ]
    elif context.streak.longest_streak > 0:
        lines = [
            f"Your best streak so far is {context.streak.longest_streak} days.",
            "Record something today to start a new one.",
        ]
    else:
        lines = ["Record your first entry today and start a streak."]
    return _compose(
        user,
        context,
        subject=f"{APP_NAME} - Keep your streak alive",
        heading="Don't break the chain",
        lines=lines,
        cta="Record now",
    )


def streak_celebration(user: ReminderUser, context: ReminderContext) -> RenderedMessage:
    """Milestone reached."""
    current = context.streak.current_streak
    return _compose(
        user,
        context,
        subject=f"{APP_NAME} - {current} days in a row!",
        heading=f"{current}-day streak",
        lines=[
            f"You've recorded {current} days in a row. That's a habit forming.",
            "See how far you've come.",
        ],
        cta="Open Daybook",
    )


def goal_deadline(user: ReminderUser, context: ReminderContext) -> RenderedMessage:
    """Incomplete goals due within the next day."""
    titles = [g.title for g in context.goals]
    count = len(titles)
    noun = "goal is" if count == 1 else "goals are"
    return _compose(
        user,
        context,
        subject=f"{APP_NAME} - {count} {noun.split()[0]} due soon",
        heading="Deadlines coming up",
        lines=[f"{count} {noun} due within the next 24 hours:", *(f"• {t}" for t in titles)],
        cta="Review your goals",
    )


TEMPLATES: dict[ReminderType, TemplateFunc] = {
    ReminderType.PLAN: plan_reminder,
    ReminderType.REFLECTION: reflection_reminder,
    ReminderType.STREAK_RISK: streak_risk,
    ReminderType.STREAK_CELEBRATION: streak_celebration,
    ReminderType.GOAL_DEADLINE: goal_deadline,
}


def render(reminder_type: ReminderType, user: ReminderUser, context: ReminderContext) -> RenderedMessage:
    """Render a reminder through the registry.

    Raises:
        ValueError: no template is registered for the type.
    """
    template = TEMPLATES.get(reminder_type)
    if template is None:
        msg = f"Unknown reminder type: {reminder_type}"
        raise ValueError(msg)
    return template(user, context)
