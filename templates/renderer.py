"""
Email Template Renderer — Jinja2 HTML templates for every notification kind.

Templates live in templates/email/ and extend base.html. The renderer is a
pure function of its payload: validated pydantic data in, HTML string out.
StrictUndefined makes a template that references a missing value fail
loudly instead of rendering a blank.
"""
from __future__ import annotations

import structlog
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError, select_autoescape

from channels.base import TemplateRenderError
from models.schemas import (
    IdeaNotificationData, NotificationType, WeeklyDigestData,
    WelcomeData, WorkspaceInviteData,
)

logger = structlog.get_logger()

TEMPLATE_DIR = Path(__file__).parent / "email"

_PHASE_COLORS = {
    "inception": "#3b82f6",
    "refinement": "#f59e0b",
    "planning": "#f97316",
    "execution_ready": "#10b981",
}
_DEFAULT_PHASE_COLOR = "#6b7280"

_ROLE_LABELS = {
    "admin": "Administrator",
    "member": "Member",
    "viewer": "Viewer",
}

_WELCOME_FEATURES = [
    ("💡", "Idea Lifecycle Management",
     "Guide your ideas through structured phases from inception to execution"),
    ("👥", "Collaborative Workspaces",
     "Create team spaces with role-based access and real-time collaboration"),
    ("📊", "AI-Powered Analysis",
     "Get viability scores, market insights, and strategic recommendations"),
    ("🔧", "Integrated Tools",
     "Connect with Figma, GitHub, Slack, and other productivity tools"),
]


def phase_color(phase: Optional[str]) -> str:
    return _PHASE_COLORS.get(phase or "", _DEFAULT_PHASE_COLOR)


def phase_label(phase: Optional[str]) -> str:
    return (phase or "").replace("_", " ")


def role_label(role: str) -> str:
    role = role or "member"
    return _ROLE_LABELS.get(role.lower(), role[:1].upper() + role[1:])


def action_text(action_type: NotificationType | str, phase: Optional[str] = None) -> str:
    action = getattr(action_type, "value", action_type)
    if action == "created":
        return "created a new idea"
    if action == "commented":
        return "commented on an idea"
    if action == "phase_changed":
        return f"moved an idea to {phase} phase"
    return "updated an idea"


class TemplateRenderer:
    """Renders notification emails from typed payloads."""

    def __init__(self, app_url: str = "https://forgespace.com", template_dir: Path = TEMPLATE_DIR):
        self.app_url = app_url.rstrip("/")
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html"]),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["phase_color"] = phase_color
        self.env.filters["phase_label"] = phase_label

    def render(self, template_name: str, context: dict[str, Any]) -> str:
        try:
            template = self.env.get_template(f"{template_name}.html")
            return template.render(app_url=self.app_url, **context)
        except TemplateError as e:
            logger.error("template_render_failed", template=template_name, error=str(e))
            raise TemplateRenderError(template_name, str(e)) from e

    # ── Per-kind renderers ────────────────────────────────

    def render_workspace_invitation(self, data: WorkspaceInviteData) -> str:
        inviter = data.inviter_name or "A team member"
        workspace = data.workspace_name or "a workspace"
        role = data.role or "member"
        return self.render("workspace_invitation", {
            "preview": f"{inviter} invited you to join {workspace} on ForgeSpace",
            "recipient_name": data.recipient_name or "there",
            "inviter_name": inviter,
            "workspace_name": workspace,
            "workspace_description": data.workspace_description,
            "role": role,
            "role_label": role_label(role),
            "invite_url": data.invite_url or self.app_url,
        })

    def render_idea_notification(self, data: IdeaNotificationData) -> str:
        text = action_text(data.action_type, data.phase)
        return self.render("idea_notification", {
            "preview": f"{data.actor_name} {text} in {data.workspace_name}",
            "recipient_name": data.recipient_name or "there",
            "actor_name": data.actor_name,
            "actor_email": data.actor_email,
            "action_text": text,
            "idea_title": data.idea_title,
            "idea_description": data.idea_description,
            "workspace_name": data.workspace_name,
            "idea_url": data.idea_url,
            "phase": data.phase,
            "phase_label": phase_label(data.phase),
            "phase_color": phase_color(data.phase),
            "comment": data.comment,
            "action_details": data.action_details,
        })

    def render_welcome(self, data: WelcomeData) -> str:
        return self.render("welcome", {
            "preview": "Welcome to ForgeSpace - Transform your ideas into reality",
            "user_name": data.user_name or "there",
            "features": _WELCOME_FEATURES,
        })

    def render_weekly_digest(self, data: WeeklyDigestData) -> str:
        return self.render("weekly_digest", {
            "preview": (
                f"Your ForgeSpace weekly digest: {data.stats.ideas_created} new ideas, "
                f"{data.stats.comments_added} comments"
            ),
            "user_name": data.user_name or "there",
            "week_start": data.week_start,
            "week_end": data.week_end,
            "stats": data.stats,
            "recent_ideas": data.recent_ideas,
            "top_workspaces": data.top_workspaces,
        })
