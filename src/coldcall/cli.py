#!/usr/bin/env python3
"""Command-line interface for the cold-call training personas.

Usage:
    coldcall list                               # assistants on the platform
    coldcall phones                             # phone numbers
    coldcall call 5551234567 joey-elite siptip  # launch a call
    coldcall calls --limit 5                    # recent calls
    coldcall details <call-id>                  # one call
    coldcall analysis <call-id> --wait          # poll until scored
    coldcall config joey-optimized              # local persona config
    coldcall sync joey-optimized                # push local config
    coldcall configure https://x.ngrok.app/webhook
    coldcall webhook --port 3001                # local webhook server
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from datetime import datetime

import httpx
from dotenv import load_dotenv

from coldcall import console
from coldcall.config import Settings, configure_logging, require_api_key, validate_config
from coldcall.console import BRIGHT, CYAN, DIM, GREEN, YELLOW, color
from coldcall.errors import ColdCallError, ConfigurationError
from coldcall.handlers import HandlerRegistry, setup_default_handlers
from coldcall.launcher import launch, normalize_number, resolve_line, resolve_persona
from coldcall.personas import (
    ASSISTANTS,
    DEFAULT_LINE,
    DEFAULT_PERSONA,
    DIFFICULTY_LEVELS,
    PHONE_NUMBERS,
    build_sync_payload,
    line_key_for,
    persona_key_for,
)
from coldcall.platform import VapiClient
from coldcall.reconcile import (
    DEFAULT_MAX_WAIT,
    DEFAULT_POLL_INTERVAL,
    fetch_call,
    get_call_analysis,
    wait_for_analysis,
)
from coldcall.stats import format_duration
from coldcall.transcript import format_evaluation, to_plain_text

logger = logging.getLogger(__name__)


def _client(settings: Settings) -> VapiClient:
    return VapiClient(api_key=require_api_key(settings), base_url=settings.base_url)


def _date(value) -> str:
    if not value:
        return "N/A"
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).strftime("%Y-%m-%d %H:%M")
    except ValueError:
        return str(value)


def _out(line: str = "") -> None:
    print(line)


# --- assistants ---

async def cmd_list(client: VapiClient, args) -> None:
    console.print_header("📋 Assistants")
    assistants = await client.list_assistants()
    _out(f"Found {len(assistants)} assistant(s):\n")

    ours = [a for a in assistants if persona_key_for(a.get("id"))]
    others = [a for a in assistants if not persona_key_for(a.get("id"))]

    if ours:
        _out(color("🎯 Joey Personas (Cold Call Training):", BRIGHT))
        for a in ours:
            key = persona_key_for(a["id"])
            _out(f"\n  • {color(a.get('name', 'unnamed'), CYAN)}")
            console.print_info("    ID", a["id"])
            console.print_info("    Key", key)
            console.print_info("    Difficulty", DIFFICULTY_LEVELS.get(key, "unknown"))
            console.print_info("    Created", _date(a.get("createdAt")))
    if others:
        _out(color("\n📁 Other Assistants:", DIM))
        for a in others:
            _out(f"\n  • {a.get('name', 'unnamed')}")
            console.print_info("    ID", a.get("id"))
            console.print_info("    Created", _date(a.get("createdAt")))


async def cmd_get(client: VapiClient, args) -> None:
    console.print_header(f"🔍 Assistant Details: {args.assistant_id}")
    _out(json.dumps(await client.get_assistant(args.assistant_id), indent=2))


async def cmd_sync(client: VapiClient, args) -> None:
    console.print_header(f"🔄 Syncing Assistant: {args.key}")
    config = ASSISTANTS[args.key]
    payload = build_sync_payload(config)
    logger.debug("Sync payload: %s", json.dumps(payload))
    _out(f"Updating {config['name']} ({config['id']})...")
    await client.update_assistant(config["id"], payload)
    console.print_success(f"Assistant {args.key} synced successfully!")


# --- phone numbers ---

async def cmd_phones(client: VapiClient, args) -> None:
    console.print_header("📞 Phone Numbers")
    phones = await client.list_phone_numbers()
    _out(f"Found {len(phones)} phone number(s):\n")
    for p in phones:
        status = p.get("status", "unknown")
        status_text = color(status, GREEN) if status == "active" else color(status, YELLOW)
        _out(f"  • {color(p.get('number', '?'), CYAN)} ({p.get('name') or 'unnamed'})")
        console.print_info("    ID", p.get("id"))
        console.print_info("    Status", status_text)
        key = line_key_for(p.get("id"))
        if key:
            console.print_info("    Key", key)
            console.print_info("    Default Assistant", PHONE_NUMBERS[key]["default_assistant"])
        if p.get("assistantId"):
            console.print_info("    Assigned Assistant", p["assistantId"])
        _out()


# --- calls ---

async def cmd_call(client: VapiClient, args) -> None:
    console.print_header("📞 Making Test Call")
    persona = args.persona or DEFAULT_PERSONA
    line = args.line or DEFAULT_LINE
    _out(f"  Customer: {color(normalize_number(args.number), CYAN)}")
    _out(f"  Assistant: {color(persona, GREEN)} ({resolve_persona(persona)})")
    _out(f"  From: {color(resolve_line(line)['number'], YELLOW)}\n")

    result = await launch(client, args.number, persona_key=persona, line_key=line)
    console.print_success("Call initiated!")
    console.print_info("Call ID", result.call_id)
    console.print_info("Status", result.status)


async def cmd_calls(client: VapiClient, args) -> None:
    console.print_header("📋 Recent Calls")
    calls = await client.list_calls(limit=args.limit)
    _out(f"Found {len(calls)} recent call(s):\n")
    for c in calls:
        status = c.get("status", "unknown")
        _out(f"  • {color(c.get('id', '?'), CYAN)}")
        console.print_info("    Status", color(status, DIM if status == "ended" else GREEN))
        console.print_info("    Duration", format_duration(c.get("duration")))
        console.print_info("    Ended", c.get("endedReason") or "N/A")
        console.print_info("    Created", _date(c.get("createdAt")))
        _out()


async def cmd_details(client: VapiClient, args) -> None:
    console.print_header(f"🔍 Call Details: {args.call_id}")
    call = await fetch_call(client, args.call_id)
    _out(f"\n{color('Call Info:', BRIGHT)}")
    console.print_info("Status", call.phase.value)
    console.print_info("Customer", call.customer_number)
    console.print_info("Assistant", call.assistant_name)
    console.print_info("Duration", format_duration(call.duration_seconds))
    console.print_info("Ended Reason", call.ended_reason or "N/A")

    if call.analysis is not None:
        _out(f"\n{color('Analysis:', BRIGHT)}")
        if call.analysis.summary:
            _out(f"\n  {color('Summary:', CYAN)}")
            _out(f"  {call.analysis.summary}")
        if call.analysis.success_evaluation is not None:
            console.print_info("Success Score", f"{call.analysis.success_evaluation:g}/10")

    if call.messages:
        _out(f"\n{color('Conversation:', BRIGHT)}")
        _out(to_plain_text(call.messages, assistant_label=call.assistant_name))
    elif call.transcript:
        _out(f"\n{color('Transcript:', BRIGHT)}")
        _out(call.transcript)


async def cmd_analysis(client: VapiClient, args) -> None:
    console.print_header(f"📊 Call Analysis: {args.call_id}")
    if args.wait:
        _out("Waiting for analysis to be ready...")
        analysis = await wait_for_analysis(
            client, args.call_id, max_wait=args.max_wait, poll_interval=args.interval
        )
    else:
        analysis = await get_call_analysis(client, args.call_id)

    if not analysis.ready:
        _out(color("No analysis yet. Try --wait.", DIM))
    if analysis.summary:
        _out(f"\n{color('Summary:', BRIGHT)}")
        _out(analysis.summary)
    if analysis.success_score is not None:
        _out(f"\n{color('Success Score:', BRIGHT)} {analysis.success_score:g}/10")
    if analysis.evaluation:
        _out(f"\n{color('🎯 SDR Evaluation:', BRIGHT)}")
        for line in format_evaluation(analysis.evaluation):
            _out(f"  {line}")


async def cmd_configure(client: VapiClient, args) -> None:
    console.print_header("🔗 Configuring Webhooks")
    result = await client.configure_webhooks(args.webhook_url)
    for entry in result["results"]:
        label = entry.get("name") or entry.get("number") or entry.get("id")
        if entry["success"]:
            _out(f"  {color('✓', GREEN)} {entry['type']} {label}")
        else:
            _out(f"  {color('✗', YELLOW)} {entry['type']} {label}: {entry.get('error')}")
    if not result["success"]:
        raise ColdCallError(result["message"])
    console.print_success(result["message"])


# --- local ---

def cmd_config(args) -> None:
    config = ASSISTANTS.get(args.key)
    if config is None:
        raise ConfigurationError(f"Unknown assistant key: {args.key} (available: {', '.join(ASSISTANTS)})")
    console.print_header(f"⚙️ Assistant Config: {args.key}")
    _out(json.dumps(config, indent=2))


def cmd_webhook(args, settings: Settings) -> None:
    port = args.port or settings.port
    console.print_header("🌐 Starting Webhook Server")
    _out(f"""
{color('To receive real-time transcripts:', BRIGHT)}
1. Expose this server: {color(f'ngrok http {port}', CYAN)}
2. Point the platform at it: {color('coldcall configure <ngrok-url>/webhook', CYAN)}
3. Call any persona line:""")
    for key, line in PHONE_NUMBERS.items():
        _out(f"   {color(line['number'], GREEN)} - {line['name']} ({key})")
    _out(f"\n{color('Waiting for calls... Press Ctrl+C to stop', DIM)}\n")

    # Imported here so plain CLI commands don't pay for the server stack.
    from coldcall.ingress import run

    validate_config()
    handlers = setup_default_handlers(HandlerRegistry())
    run(port, settings=settings, handlers=handlers)


PLATFORM_COMMANDS = {
    "list": cmd_list,
    "get": cmd_get,
    "sync": cmd_sync,
    "phones": cmd_phones,
    "call": cmd_call,
    "calls": cmd_calls,
    "details": cmd_details,
    "analysis": cmd_analysis,
    "configure": cmd_configure,
}


async def _run_platform_command(args, settings: Settings) -> None:
    if args.command == "sync" and args.key not in ASSISTANTS:
        raise ConfigurationError(f"Unknown assistant key: {args.key} (available: {', '.join(ASSISTANTS)})")
    async with _client(settings) as client:
        await PLATFORM_COMMANDS[args.command](client, args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="coldcall", description="Cold call training bot CLI")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("list", help="List all assistants")
    p = sub.add_parser("get", help="Get assistant details")
    p.add_argument("assistant_id")
    p = sub.add_parser("config", help="Show local config for an assistant")
    p.add_argument("key")
    p = sub.add_parser("sync", help="Push local assistant config to the platform")
    p.add_argument("key")

    sub.add_parser("phones", help="List phone numbers")

    p = sub.add_parser("call", help="Make a test call")
    p.add_argument("number")
    p.add_argument("persona", nargs="?", default=None, help=f"Assistant key (default: {DEFAULT_PERSONA})")
    p.add_argument("line", nargs="?", default=None, help=f"Phone key (default: {DEFAULT_LINE})")

    p = sub.add_parser("calls", help="List recent calls")
    p.add_argument("--limit", type=int, default=10)

    p = sub.add_parser("details", help="Get call details")
    p.add_argument("call_id")

    p = sub.add_parser("analysis", help="Get call analysis")
    p.add_argument("call_id")
    p.add_argument("--wait", action="store_true", help="Poll until analysis is ready")
    p.add_argument("--max-wait", type=float, default=DEFAULT_MAX_WAIT, help="Polling budget in seconds")
    p.add_argument("--interval", type=float, default=DEFAULT_POLL_INTERVAL, help="Seconds between polls")

    p = sub.add_parser("configure", help="Point all assistants and phone numbers at a webhook URL")
    p.add_argument("webhook_url")

    p = sub.add_parser("webhook", help="Start the local webhook server")
    p.add_argument("--port", type=int, default=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        settings = Settings.from_env()
        level = settings.log_level if (args.command == "webhook" or os.getenv("LOG_LEVEL")) else "WARNING"
        configure_logging(level)

        if args.command == "config":
            cmd_config(args)
        elif args.command == "webhook":
            cmd_webhook(args, settings)
        else:
            asyncio.run(_run_platform_command(args, settings))
    except (ColdCallError, httpx.HTTPError) as e:
        console.print_error(str(e))
        return 1
    except KeyboardInterrupt:
        return 130
    return 0


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
