#!/usr/bin/env python3
"""Command-line entry point for the job search agent.

    python run_agent.py init --resume resume/cv.pdf
    python run_agent.py search --track
    python run_agent.py list --status tracking
    python run_agent.py move <job-id> interview
    python run_agent.py scan
    python run_agent.py sweep
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from jobpilot.agent import Agent
from jobpilot.errors import JobPilotError
from jobpilot.keys import CredentialProvider
from jobpilot.llm import check_api_key
from jobpilot.log import get_logger
from jobpilot.models import KANBAN_STATUSES, STATUS_LABELS, Job
from jobpilot.onboarding import (
    analyze_resume,
    default_profile,
    extract_text,
    generate_profile_from_chat,
    profile_from_file,
    save_profile_file,
)
from jobpilot.outreach import CHANNELS, StreamView

log = get_logger(__name__)

# Follow-up questions asked before the profile is generated
MAX_QUESTIONS = 3


def _print_job(job: Job) -> None:
    print(f"  [{job.kanban_status:<9}] {job.id}  {job.title} @ {job.company}")
    print(f"              {job.salary or '-'} · {job.location or '-'} · {job.source_platform}")
    if job.match_analysis:
        print(f"              {job.match_analysis}")
    print(f"              {job.url}")


def cmd_init(agent: Agent, args: argparse.Namespace) -> None:
    owner = agent.settings.owner_id
    if args.yaml:
        profile = profile_from_file(Path(args.yaml), owner)
    elif args.resume:
        chat = extract_text(Path(args.resume))
        if not chat.strip():
            raise JobPilotError(f"Could not extract any text from {args.resume}")
        seed = default_profile(owner, args.name or "Profile")
        credentials = CredentialProvider(seed, fallback_keys=agent.settings.fallback_api_keys)
        for _ in range(0 if args.no_questions else MAX_QUESTIONS):
            question = analyze_resume(chat, credentials, agent.llm)
            if question is None:
                break
            answer = input(f"\n{question}\n> ").strip()
            chat += f"\n\nQuestion: {question}\nAnswer: {answer}"
        profile = generate_profile_from_chat(chat, owner, credentials, agent.llm)
    else:
        profile = default_profile(owner, args.name or "Default profile")

    agent.store.add_profile(profile)
    path = save_profile_file(profile)
    print(f"Profile created: {profile.name} ({profile.id}) → {path}")


def cmd_profiles(agent: Agent, args: argparse.Namespace) -> None:
    for p in agent.store.list_profiles(agent.settings.owner_id):
        platforms = ", ".join(x.name for x in p.settings.enabled_platforms())
        print(f"  {p.id}  {p.name}  [{platforms}]  keys={len(p.api_keys)}")


def cmd_check_keys(agent: Agent, args: argparse.Namespace) -> None:
    profile = agent.profile(args.profile)
    keys = agent.credentials(profile).keys()
    for i, key in enumerate(keys):
        state = "ok" if check_api_key(agent.llm, key) else "FAILED"
        active = " (active)" if i == profile.active_key_index % len(keys) else ""
        print(f"  key #{i + 1}{active}: {state}")


def cmd_search(agent: Agent, args: argparse.Namespace) -> None:
    profile = agent.profile(args.profile)
    postings = agent.search(profile, on_progress=lambda p: print(f"  {p.message}"))
    print(f"\n{len(postings)} posting(s) found:\n")
    for job in postings:
        _print_job(job)
    if args.track and postings:
        tracked = agent.track(postings, profile)
        print(f"\nTracked {len(tracked)} posting(s).")


def cmd_list(agent: Agent, args: argparse.Namespace) -> None:
    profile = agent.profile(args.profile)
    jobs = agent.store.list_jobs(profile.owner_id, profile.id)
    for status in KANBAN_STATUSES:
        if args.status and status != args.status:
            continue
        column = [j for j in jobs if j.kanban_status == status]
        print(f"\n{STATUS_LABELS[status]} ({len(column)})")
        for job in column:
            _print_job(job)


def cmd_move(agent: Agent, args: argparse.Namespace) -> None:
    job = agent.pipeline.set_status(args.job_id, args.status, note=args.note)
    print(f"{job.title} @ {job.company} → {STATUS_LABELS[job.kanban_status]}")


def cmd_note(agent: Agent, args: argparse.Namespace) -> None:
    if agent.pipeline.add_note(args.job_id, args.text) is None:
        raise JobPilotError("The note could not be saved.")
    print("Note added.")


def cmd_apply(agent: Agent, args: argparse.Namespace) -> None:
    result = agent.quick_apply(args.job_id, args.channel, agent.profile(args.profile))
    print(result.message)
    if result.url:
        print(result.url)


def cmd_scan(agent: Agent, args: argparse.Namespace) -> None:
    for outcome in agent.scan_replies(agent.profile(args.profile), limit=args.limit):
        print(f"  {outcome.subject[:60]:<60}  {outcome.message}")


def cmd_sweep(agent: Agent, args: argparse.Namespace) -> None:
    result = agent.refresh_statuses(agent.profile(args.profile), on_progress=lambda m: print(f"  {m}"))
    print(result.message)


def cmd_stream(agent: Agent, args: argparse.Namespace) -> None:
    profile = agent.profile(args.profile)
    deltas = (
        agent.adapt_resume(args.job_id, profile)
        if args.command == "adapt"
        else agent.interview_questions(args.job_id, profile)
    )
    view = StreamView()

    def echo():
        for delta in deltas:
            print(delta, end="", flush=True)
            yield delta

    view.fold(echo())
    print()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Job search assistant")
    parser.add_argument("--profile", help="profile id or name (default: first profile)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init", help="create a profile")
    p.add_argument("--resume", help="PDF, DOCX or TXT resume to build the profile from")
    p.add_argument("--yaml", help="import an existing profile YAML file")
    p.add_argument("--name", help="profile name")
    p.add_argument("--no-questions", action="store_true", help="skip follow-up questions")
    p.set_defaults(func=cmd_init)

    sub.add_parser("profiles", help="list profiles").set_defaults(func=cmd_profiles)

    sub.add_parser("check-keys", help="test every API key of the profile").set_defaults(func=cmd_check_keys)

    p = sub.add_parser("search", help="search and rank postings")
    p.add_argument("--track", action="store_true", help="track every posting found")
    p.set_defaults(func=cmd_search)

    p = sub.add_parser("list", help="show the kanban board")
    p.add_argument("--status", choices=KANBAN_STATUSES)
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("move", help="move a job to another status")
    p.add_argument("job_id")
    p.add_argument("status", choices=KANBAN_STATUSES)
    p.add_argument("--note")
    p.set_defaults(func=cmd_move)

    p = sub.add_parser("note", help="add a note to a job")
    p.add_argument("job_id")
    p.add_argument("text")
    p.set_defaults(func=cmd_note)

    p = sub.add_parser("apply", help="quick apply by email or messenger")
    p.add_argument("job_id")
    p.add_argument("--channel", choices=CHANNELS, default="email")
    p.set_defaults(func=cmd_apply)

    p = sub.add_parser("scan", help="classify recent HR replies in Gmail")
    p.add_argument("--limit", type=int, default=10)
    p.set_defaults(func=cmd_scan)

    sub.add_parser("sweep", help="archive postings that have closed").set_defaults(func=cmd_sweep)

    for name, text in (("adapt", "adapt the resume to a job"), ("interview", "interview preparation")):
        p = sub.add_parser(name, help=text)
        p.add_argument("job_id")
        p.set_defaults(func=cmd_stream)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        args.func(Agent(), args)
    except JobPilotError as exc:
        log.error("%s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
