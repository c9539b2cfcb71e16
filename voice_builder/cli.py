import asyncio
import base64
import logging
import sys
import time
from pathlib import Path
from typing import Optional, get_args

import httpx
import typer
from dotenv import load_dotenv
from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from voice_builder.client import VoiceBuilderClient
from voice_builder.config import db_path
from voice_builder.models import (
    PLATFORMS,
    Audience,
    ChatMessage,
    ContentAngle,
    Conversation,
    OutputLanguage,
    OutputLength,
    Platform,
    Profile,
    Tone,
)
from voice_builder.orchestrator import TransformOrchestrator
from voice_builder.prompts import PERSONA_QUESTIONS, PLATFORM_NAMES
from voice_builder.store import Store, generate_id, load_store, save_store

load_dotenv()
app = typer.Typer(help="Turn raw thoughts into platform-ready posts.")
console = Console()
_log = logging.getLogger(__name__)

CHAT_FAILED_TEXT = "抱歉，出现了错误，请重试。"


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs")):
    logging.basicConfig(
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        level=logging.DEBUG if verbose else logging.WARNING,
        stream=sys.stderr,
    )


def _check_choice(name: str, value: Optional[str], literal) -> None:
    choices = get_args(literal)
    if value is not None and value not in choices:
        console.print(f"[bold red]Error:[/] {name} must be one of {', '.join(choices)}, got '{value}'")
        raise typer.Exit(1)


def _rate_limited(store: Store, category: str) -> bool:
    check = store.check_rate_limit(category)
    if not check.allowed:
        console.print(f"[bold yellow]Daily {category} limit reached.[/] Try again tomorrow.")
        return True
    store.increment_usage(category)
    return False


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes"),
):
    """Run the HTTP API."""
    import uvicorn

    logging.getLogger().setLevel(logging.INFO)
    uvicorn.run("voice_builder.api.server:app", host=host, port=port, reload=reload)


@app.command()
def transform(
    content: str = typer.Argument(help="The raw thought to transform"),
    platform: str = typer.Option("twitter", "--platform", "-p", help="Platform to stream first"),
    length: Optional[str] = typer.Option(None, "--length", "-l", help="concise | normal | detailed"),
    language: Optional[str] = typer.Option(None, "--language", help="zh | en | auto (default: platform's)"),
    audience: str = typer.Option("peers", "--audience", "-a"),
    angle: str = typer.Option("sharing", "--angle"),
    show_all: bool = typer.Option(True, "--all/--active-only", help="Also prefetch the other platforms"),
    api_url: Optional[str] = typer.Option(None, "--api-url", envvar="VOICE_BUILDER_API_URL"),
):
    """Stream one platform's post, then show the others once prefetched."""
    _check_choice("--platform", platform, Platform)
    _check_choice("--length", length, OutputLength)
    _check_choice("--language", language, OutputLanguage)
    _check_choice("--audience", audience, Audience)
    _check_choice("--angle", angle, ContentAngle)
    asyncio.run(_transform(content, platform, length, language, audience, angle, show_all, api_url))


async def _transform(content, platform, length, language, audience, angle, show_all, api_url) -> None:
    path = db_path()
    store = await load_store(path)

    def on_delta(p: str, text: str) -> None:
        if p == platform:
            console.print(text, end="", markup=False, highlight=False)

    def on_warning(message: str) -> None:
        console.print(f"[bold yellow]{message}[/]")

    async with VoiceBuilderClient(api_url) as client:
        orchestrator = TransformOrchestrator(
            client,
            content,
            profile=store.profile,
            audience=audience,
            angle=angle,
            rate_limiter=store,
            on_delta=on_delta,
            on_warning=on_warning,
        )
        console.rule(f"[bold cyan]{PLATFORM_NAMES[platform]}")
        task = orchestrator.start(platform, length=length, language=language)
        if task is not None:
            await task
            result = orchestrator.results[platform]
            if result.error:
                console.print(f"[bold red]{result.text}[/]")
            console.print()

            if show_all:
                with console.status("[bold green]Preparing the other platforms..."):
                    await orchestrator.wait_idle()
                for p in PLATFORMS:
                    if p == platform:
                        continue
                    text = orchestrator.results[p].text or "[dim](not generated)[/]"
                    console.print(Panel(text, title=PLATFORM_NAMES[p], title_align="left"))
            else:
                await orchestrator.aclose()

    await save_store(store, path)


@app.command()
def chat(
    new: bool = typer.Option(False, "--new", help="Start a new conversation"),
    api_url: Optional[str] = typer.Option(None, "--api-url", envvar="VOICE_BUILDER_API_URL"),
):
    """Co-think: an interviewer helps you dig out what you actually think."""
    asyncio.run(_chat_loop(new, api_url))


async def _chat_loop(new: bool, api_url: Optional[str]) -> None:
    path = db_path()
    store = await load_store(path)
    if new or store.get_current_conversation() is None:
        store.add_conversation(Conversation(id=generate_id(), timestamp=int(time.time() * 1000)))
    conversation = store.get_current_conversation()
    prompt_session = PromptSession()

    console.print("[bold green]Co-think[/] [dim](type 'exit' to quit)[/]\n")
    for message in conversation.messages:
        who = "You" if message.role == "user" else "Interviewer"
        console.print(f"[dim]{who}: {message.content}[/]")

    async with VoiceBuilderClient(api_url) as client:
        while True:
            try:
                user_input = await prompt_session.prompt_async(HTML("<ansigreen><b>You</b></ansigreen>: "))
            except (EOFError, KeyboardInterrupt):
                break

            user_input = user_input.strip()
            if not user_input:
                continue
            if user_input.lower() in ("exit", "quit", "q"):
                break
            if _rate_limited(store, "chat"):
                continue

            store.add_message_to_current_conversation(ChatMessage(role="user", content=user_input))
            history = list(conversation.messages)
            store.add_message_to_current_conversation(ChatMessage(role="assistant", content=""))

            console.print("\n[bold cyan]Interviewer:[/]", end=" ")
            reply = ""
            try:
                async for delta in client.stream_chat(history, store.profile):
                    reply += delta
                    print(delta, end="", flush=True)
            except httpx.HTTPError as exc:
                _log.error("Chat stream failed: %s", exc)
                reply = CHAT_FAILED_TEXT
                console.print(f"[bold red]{reply}[/]", end="")
            store.update_last_assistant_message(reply)
            print("\n")

    console.print("[dim]Goodbye![/]")
    await save_store(store, path)


@app.command()
def points(
    content: Optional[str] = typer.Argument(None, help="Text to condense (default: active conversation)"),
    api_url: Optional[str] = typer.Option(None, "--api-url", envvar="VOICE_BUILDER_API_URL"),
):
    """Condense text or the active conversation into a note card."""
    asyncio.run(_points(content, api_url))


async def _points(content: Optional[str], api_url: Optional[str]) -> None:
    path = db_path()
    store = await load_store(path)
    conversation = store.get_current_conversation()
    if content is None:
        if conversation is None or not conversation.messages:
            console.print("[bold red]Error:[/] no content given and no active conversation")
            raise typer.Exit(1)
        content = "\n".join(f"{m.role}: {m.content}" for m in conversation.messages)

    async with VoiceBuilderClient(api_url) as client:
        with console.status("[bold green]Extracting key points..."):
            note = await client.extract_points(content)

    console.print(f"[bold]{note.title}[/]")
    for point in note.points:
        console.print(f"  • {point}")


@app.command()
def persona(
    platform: str = typer.Argument(help="twitter | xiaohongshu | wechat | linkedin"),
    api_url: Optional[str] = typer.Option(None, "--api-url", envvar="VOICE_BUILDER_API_URL"),
):
    """Answer three questions and save a generated persona for one platform."""
    _check_choice("platform", platform, Platform)
    asyncio.run(_persona(platform, api_url))


async def _persona(platform: Platform, api_url: Optional[str]) -> None:
    path = db_path()
    store = await load_store(path)
    prompt_session = PromptSession()

    answers = []
    for question in PERSONA_QUESTIONS[platform]:
        console.print(f"[bold]{question}[/]")
        answers.append((await prompt_session.prompt_async("> ")).strip())

    async with VoiceBuilderClient(api_url) as client:
        with console.status("[bold green]Generating persona..."):
            generated = await client.generate_persona(platform, answers)

    store.set_platform_persona(platform, generated)
    await save_store(store, path)

    table = Table(title=f"{PLATFORM_NAMES[platform]} persona", show_header=False)
    table.add_row("定位", generated.platform_bio)
    table.add_row("语气", generated.tone)
    table.add_row("风格", generated.style_notes)
    console.print(table)


@app.command()
def profile(
    bio: Optional[str] = typer.Option(None, "--bio"),
    tone: Optional[str] = typer.Option(None, "--tone", help="casual | professional | humorous"),
    avoid: Optional[str] = typer.Option(None, "--avoid", help="Comma-separated words to avoid"),
    interests: Optional[str] = typer.Option(None, "--interests", help="Comma-separated interests"),
):
    """Set your voice profile; unspecified fields keep their current value."""
    _check_choice("--tone", tone, Tone)
    asyncio.run(_profile(bio, tone, avoid, interests))


def _split(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


async def _profile(bio, tone, avoid, interests) -> None:
    path = db_path()
    store = await load_store(path)
    current = store.profile or Profile()
    updates = {}
    if bio is not None:
        updates["bio"] = bio
    if tone is not None:
        updates["tone"] = tone
    if avoid is not None:
        updates["avoid_words"] = _split(avoid)
    if interests is not None:
        updates["interests"] = _split(interests)

    updated = current.model_copy(update=updates)
    store.set_profile(updated)
    store.complete_onboarding()
    await save_store(store, path)

    table = Table(title="Voice profile", show_header=False)
    table.add_row("bio", updated.bio or "-")
    table.add_row("tone", updated.tone)
    table.add_row("avoid", ", ".join(updated.avoid_words) or "-")
    table.add_row("interests", ", ".join(updated.interests) or "-")
    console.print(table)


@app.command()
def image(
    content: str = typer.Argument(help="Text to illustrate"),
    custom_prompt: Optional[str] = typer.Option(None, "--prompt", help="Use this scene instead of extracting one"),
    output: Path = typer.Option(Path("note-card.png"), "--output", "-o"),
    api_url: Optional[str] = typer.Option(None, "--api-url", envvar="VOICE_BUILDER_API_URL"),
):
    """Generate a minimal line-art illustration for a post."""
    asyncio.run(_image(content, custom_prompt, output, api_url))


async def _image(content: str, custom_prompt: Optional[str], output: Path, api_url: Optional[str]) -> None:
    path = db_path()
    store = await load_store(path)
    if _rate_limited(store, "image"):
        raise typer.Exit(1)
    await save_store(store, path)

    async with VoiceBuilderClient(api_url) as client:
        with console.status("[bold green]Drawing..."):
            illustration = await client.generate_image(content, custom_prompt)

    _, _, data = illustration.image.partition("base64,")
    output.write_bytes(base64.b64decode(data))
    console.print(f"[dim]Scene: {illustration.highlight}[/]")
    console.print(f"[bold green]✓[/] Image saved to [cyan]{output}[/]")
