"""
Interactive setup: question generation for the configuration-authoring tool.

``get_setup`` returns one of two things:
  - a static list of ``SetupQuestion`` when there is nothing to discover
    (no API key or base id yet), or
  - an async procedure that discovers the base's tables behind a spinner,
    prompts with the discovered names, and resolves to the answers dict.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import questionary
from questionary import Style
from rich.console import Console

from airtable_source.config import API_KEY_ENV, _env_or_dotenv, settings
from airtable_source.schemas.pipeline import SetupQuestion
from airtable_source.services.airtable.client import AirtableAPIError, AirtableClient

logger = logging.getLogger(__name__)

PromptFn = Callable[[List[Dict[str, Any]]], Awaitable[Dict[str, Any]]]
ClientFactory = Callable[[str, str], AirtableClient]
SetupProcedure = Callable[[], Awaitable[Dict[str, Any]]]

custom_style = Style(
    [
        ("qmark", "fg:#18bfff bold"),
        ("question", "bold"),
        ("answer", "fg:#18bfff bold"),
        ("pointer", "fg:#18bfff bold"),
        ("highlighted", "fg:#18bfff bold"),
        ("selected", "fg:#18bfff"),
    ]
)

POINTS_QUESTIONS = [
    SetupQuestion(type="number", name="pointsForJane", message="How many points should Jane start with?"),
    SetupQuestion(type="number", name="pointsForJohn", message="How many points should John start with?"),
]


def _to_int(value: str) -> int:
    return int(value.strip())


def _is_int(value: str) -> Union[bool, str]:
    try:
        _to_int(value)
    except ValueError:
        return "Enter a whole number"
    return True


def to_questionary(questions: List[SetupQuestion]) -> List[Dict[str, Any]]:
    """Convert question specs to questionary's dict format.

    questionary has no numeric prompt, so ``number`` becomes a validated text
    prompt whose answer is converted to ``int``.
    """
    result = []
    for q in questions:
        item: Dict[str, Any] = {"type": q.type, "name": q.name, "message": q.message}
        if q.type == "number":
            item["type"] = "text"
            item["validate"] = _is_int
            item["filter"] = _to_int
            if q.default is not None:
                item["default"] = str(q.default)
        elif q.default is not None:
            item["default"] = q.default
        if q.choices is not None:
            item["choices"] = list(q.choices)
        result.append(item)
    return result


async def ask(questions: List[SetupQuestion], prompt: Optional[PromptFn] = None) -> Dict[str, Any]:
    """Prompt for ``questions`` and return the answers (empty dict if the user aborts)."""
    if prompt is None:
        async def prompt(items):
            return await questionary.prompt_async(items, style=custom_style)
    answers = await prompt(to_questionary(questions))
    return dict(answers or {})


def static_questions(options: Dict[str, Any], has_api_key: bool) -> List[SetupQuestion]:
    questions: List[SetupQuestion] = []
    if not has_api_key:
        questions.append(SetupQuestion(
            type="password", name="apiKey",
            message=f"Airtable API key (stored in {API_KEY_ENV}, not in the config file):",
        ))
    questions.append(SetupQuestion(
        type="text", name="baseId", message="Airtable base id (app...):",
        default=options.get("baseId"),
    ))
    questions.append(SetupQuestion(
        type="text", name="tables", message="Tables to fetch (comma-separated):",
    ))
    return questions + POINTS_QUESTIONS


def get_setup(
    *,
    context: Optional[Dict[str, Any]] = None,
    data: Optional[Dict[str, Any]] = None,
    options: Optional[Dict[str, Any]] = None,
    console: Optional[Console] = None,
    prompt: Optional[PromptFn] = None,
    client_factory: Optional[ClientFactory] = None,
) -> Union[List[SetupQuestion], SetupProcedure]:
    """Produce the setup questions, or a procedure that asks them interactively.

    Args:
        context: Setup context shared between plugins during authoring.
        data: Pipeline data produced so far (unused by this plugin).
        options: Options already known (e.g. from an existing config file).
        console: rich console for progress output.
        prompt: Prompt function (defaults to ``questionary.prompt_async``).
        client_factory: Builds an ``AirtableClient`` from ``(api_key, base_id)``.
    """
    options = options or {}
    api_key = options.get("apiKey") or _env_or_dotenv(API_KEY_ENV) or settings.airtable_api_key
    base_id = options.get("baseId")

    if not api_key or not base_id:
        return static_questions(options, has_api_key=bool(api_key))

    console = console or Console()
    client_factory = client_factory or AirtableClient

    async def run_setup() -> Dict[str, Any]:
        table_names: List[str] = []
        with console.status(f"Discovering tables in {base_id}..."):
            try:
                async with client_factory(api_key, base_id) as client:
                    table_names = [t.name for t in await client.list_tables()]
            except AirtableAPIError as e:
                logger.warning(f"Table discovery failed for base {base_id}: {e.message}")

        if table_names:
            console.print(f"[green]✓[/green] Found {len(table_names)} tables")
            tables_question = SetupQuestion(
                type="checkbox", name="tables", message="Tables to fetch:", choices=table_names,
            )
        else:
            console.print("[yellow]Could not list tables; enter them manually[/yellow]")
            tables_question = SetupQuestion(
                type="text", name="tables", message="Tables to fetch (comma-separated):",
            )

        answers = await ask([tables_question] + POINTS_QUESTIONS, prompt)
        answers.setdefault("baseId", base_id)
        return answers

    return run_setup
