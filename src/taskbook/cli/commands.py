# src/taskbook/cli/commands.py

from __future__ import annotations

import contextlib
import logging
from collections.abc import Awaitable, Callable

from ..core.errors import TaskbookError, friendly_error_message
from ..core.models import Project, Task, TaskStatus
from ..core.state import SessionContext

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[SessionContext, list[str], CommandEmitter | None], Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Slash-command registry used by the console connector (/help, /new, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        ctx: SessionContext,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        Domain errors are turned into a readable reply.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return await handler(ctx, args, emit)
        except TaskbookError as e:
            logger.info("/%s failed: %s", name, e.__class__.__name__)
            return friendly_error_message(e)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----

def _split_text(args: list[str]) -> tuple[str, str]:
    """'Title words | description words' -> (title, description)."""
    text = " ".join(args)
    title, _, description = text.partition("|")
    return title.strip(), description.strip()


def _resolve_project(ctx: SessionContext, ref: str) -> Project | None:
    """Accept '#N' (position in /projects) or a project id."""
    projects = ctx.coordinator.projects
    if ref.startswith("#") and ref[1:].isdigit():
        idx = int(ref[1:]) - 1
        return projects[idx] if 0 <= idx < len(projects) else None
    return ctx.coordinator.get_project(ref)


def _resolve_task(project: Project, ref: str) -> Task | None:
    if ref.startswith("#") and ref[1:].isdigit():
        idx = int(ref[1:]) - 1
        return project.tasks[idx] if 0 <= idx < len(project.tasks) else None
    return project.find_task(ref)


def _format_tasks(project: Project) -> str:
    if not project.tasks:
        return f"{project.title}: no tasks yet."
    lines = [f"Tasks of {project.title}:"]
    for i, t in enumerate(project.tasks, start=1):
        desc = f" - {t.description}" if t.description else ""
        lines.append(f"  #{i} [{t.status.value}] {t.title}{desc}")
    return "\n".join(lines)


# ---- commands ----

async def cmd_help(ctx: SessionContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


async def cmd_status(ctx: SessionContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    coord = ctx.coordinator
    return (
        "Status:\n"
        f"  User: {coord.active_user or '(signed out)'}\n"
        f"  Project store: {type(ctx.store).__name__}\n"
        f"  Notifications: {type(ctx.notifier).__name__}\n"
        f"  AI suggestions: {'ON' if coord.suggestions_enabled else 'OFF'}\n"
        f"  Projects in session: {len(coord.projects)}"
    )


async def cmd_login(ctx: SessionContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /login <user_id>"
    ctx.coordinator.sign_in(args[0])
    projects = await ctx.coordinator.load_projects()
    return f"Signed in as {ctx.coordinator.active_user}. {len(projects)} project(s) loaded."


async def cmd_logout(ctx: SessionContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    ctx.coordinator.sign_out()
    return "Signed out."


async def cmd_projects(ctx: SessionContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    projects = ctx.coordinator.projects
    if not projects:
        return "No projects yet. Create one with /new <title> | <description>."
    lines = ["Projects:"]
    for i, p in enumerate(projects, start=1):
        done = sum(1 for t in p.tasks if t.status == TaskStatus.COMPLETED)
        lines.append(f"  #{i} {p.title} (id={p.id}, {len(p.tasks)} tasks, {done} completed)")
    return "\n".join(lines)


async def cmd_load(ctx: SessionContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not ctx.coordinator.active_user:
        return "Sign in first: /login <user_id>"
    projects = await ctx.coordinator.load_projects()
    return f"{len(projects)} project(s) in session."


async def cmd_new(ctx: SessionContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    title, description = _split_text(args)
    project = await ctx.coordinator.create_project(title, description)
    return f"Project created: {project.title} (id={project.id})"


async def cmd_tasks(ctx: SessionContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /tasks <#N|project_id>"
    project = _resolve_project(ctx, args[0])
    if project is None:
        return f"Unknown project: {args[0]}"
    return _format_tasks(project)


async def cmd_task(ctx: SessionContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) < 2:
        return "Usage: /task <#N|project_id> <title> | <description>"
    project = _resolve_project(ctx, args[0])
    if project is None:
        return f"Unknown project: {args[0]}"
    title, description = _split_text(args[1:])
    task = await ctx.coordinator.add_task(project.id, title, description)
    if task is None:
        return f"Unknown project: {args[0]}"
    return f"Task added to {project.title}: {task.title}"


async def cmd_set(ctx: SessionContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /set <project> <task> <status>
    status: pending | in-progress | completed
    """
    if len(args) < 3:
        return "Usage: /set <#N|project_id> <#N|task_id> <pending|in-progress|completed>"
    project = _resolve_project(ctx, args[0])
    task = _resolve_task(project, args[1]) if project is not None else None
    if project is None or task is None:
        return "Unknown project or task."
    updated = await ctx.coordinator.update_task_status(project.id, task.id, " ".join(args[2:]))
    if updated is None:
        return "Unknown project or task."
    return f"{updated.title}: {task.status.value} -> {updated.status.value}"


async def cmd_generate(ctx: SessionContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /generate <#N|project_id>"
    project = _resolve_project(ctx, args[0])
    if project is None:
        return f"Unknown project: {args[0]}"
    if emit:
        with contextlib.suppress(Exception):
            emit(f"[AI] Generating tasks for {project.title}...")
    tasks = await ctx.coordinator.generate_tasks(project.id)
    if not tasks:
        return "The AI provider returned no tasks."
    lines = [f"Added {len(tasks)} AI-generated task(s):"]
    lines.extend(f"  - {t.title}" for t in tasks)
    return "\n".join(lines)


async def cmd_improve(ctx: SessionContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    if len(args) < 2:
        return "Usage: /improve <#N|project_id> <#N|task_id>"
    project = _resolve_project(ctx, args[0])
    task = _resolve_task(project, args[1]) if project is not None else None
    if project is None or task is None:
        return "Unknown project or task."
    updated = await ctx.coordinator.refine_task_description(project.id, task.id)
    if updated is None:
        return "Unknown project or task."
    return f"{updated.title}: {updated.description}"


async def cmd_ideas(ctx: SessionContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    industry, goals = _split_text(args)
    if not industry:
        return "Usage: /ideas <industry> | <goals>"
    if not ctx.suggestions.is_configured():
        return "AI suggestions are not configured. Set an API key with /key <secret>."
    ideas = await ctx.suggestions.generate_project_ideas(industry, goals)
    if not ideas:
        return "The AI provider returned no ideas."
    return "Project ideas:\n" + "\n".join(f"  - {idea}" for idea in ideas)


async def cmd_key(ctx: SessionContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /key           -> show whether a key is configured
    /key <secret>  -> save key and enable AI suggestions
    /key clear     -> remove saved key
    """
    if not args:
        state = "configured" if ctx.suggestions.is_configured() else "not configured"
        return f"AI provider key is {state}."
    if args[0].lower() == "clear":
        ctx.clear_api_key()
        return "API key cleared. AI suggestions disabled."
    ctx.save_api_key(args[0])
    return "API key saved. AI suggestions enabled."


async def cmd_workflow(ctx: SessionContext, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/workflow <execution_id> -> execution record from the automation platform."""
    if len(args) != 1:
        return "Usage: /workflow <execution_id>"
    status = await ctx.notifier.get_workflow_status(args[0])
    if status is None:
        return f"Workflow {args[0]}: no details returned."
    if isinstance(status, dict):
        body = "\n".join(f"  {k}: {v}" for k, v in status.items())
        return f"Workflow {args[0]}:\n{body}"
    return f"Workflow {args[0]}: {status}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show session status (user/store/AI).")
registry.register("login", cmd_login, help_text="Sign in and load projects: /login <user_id>.")
registry.register("logout", cmd_logout, help_text="Sign out and drop session projects.")
registry.register("projects", cmd_projects, help_text="List projects in this session.", aliases=["ls"])
registry.register("load", cmd_load, help_text="Reload projects from the store.", aliases=["refresh"])
registry.register("new", cmd_new, help_text="Create a project: /new <title> | <description>.")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks <#N|project_id>.")
registry.register("task", cmd_task, help_text="Add a task: /task <project> <title> | <description>.")
registry.register("set", cmd_set, help_text="Change status: /set <project> <task> <status>.")
registry.register("generate", cmd_generate, help_text="AI-generate tasks: /generate <project>.", aliases=["ai"])
registry.register("improve", cmd_improve, help_text="AI-improve a task description: /improve <project> <task>.")
registry.register("ideas", cmd_ideas, help_text="AI project ideas: /ideas <industry> | <goals>.")
registry.register("key", cmd_key, help_text="AI provider key: /key <secret> | /key clear.")
registry.register("workflow", cmd_workflow, help_text="Show a workflow execution: /workflow <execution_id>.")
