"""CLI entry point for the Disput.ai dispute intake assistant."""

import argparse
import sys
import time
from pathlib import Path

from disputai.config import settings
from disputai.errors import DisputaiError, StorageError
from disputai.utils.session import set_current_user_id

HELP_TEXT = """
Available commands:
  /help                 - Show this help message
  /upload <file> [...]  - Upload proof files (after the assistant asks for them)
  /evidence-type <type> - Classify the uploaded proof ({types})
  /describe <text>      - Add a note about the uploaded proof
  /done                 - Finish uploading and continue the conversation
  /new                  - Start a new dispute
  /history              - Show conversation history
  /disputes [all]       - List your disputes (add 'all' to include archived)
  /show <id>            - Show one dispute with its proofs and progress
  /archive <id>         - Archive a dispute
  /restore <id>         - Restore an archived dispute
  /proof <id> <files>   - Add proof files to an existing dispute
  /delete <id>          - Delete a dispute
  /letter <id>          - Generate the dispute letter
  /pdf <id>             - Export the dispute letter as PDF
  /quit                 - Exit
"""


def resolve_user(user: str | None, token: str | None) -> str | None:
    """Work out who is logged in from --user or a Supabase access token."""
    if token:
        from disputai.data.supabase import SupabaseStorage
        try:
            user_id = SupabaseStorage(access_token=token).get_user_id(token)
        except (StorageError, ValueError) as e:
            print(f"Login failed: {e}")
            return None
        if user_id:
            settings.supabase_access_token = token
        return user_id
    return user


def read_files(paths: list[str]):
    """Load selected files; unreadable paths are reported and skipped."""
    from disputai.agent.evidence import read_evidence_files

    files, unreadable = read_evidence_files(paths)
    for outcome in unreadable:
        print(f"  ✘ {outcome.name}: {outcome.error}")
    return files


def print_update(update):
    for message in update.messages:
        print(f"\nAssistant: {message}")
    for outcome in update.uploads:
        if outcome.ok:
            print(f"  ✔ {outcome.name}")
        else:
            print(f"  ✘ {outcome.name}: {outcome.error}")
    if update.proof_bundle_error:
        print(f"\nWarning: your proof files could not be attached ({update.proof_bundle_error}).")


def print_detail(dispute_id: str):
    from disputai.tools.disputes import get_dispute_detail

    result = get_dispute_detail.invoke({"dispute_id": dispute_id})
    if not result["success"]:
        print(f"\n{result['message']}")
        return

    d = result["dispute"]
    progress = result["progress"]
    print(f"\nDispute {d['id']}")
    print("-" * 40)
    print(f"  Platform:     {d['platform']}")
    print(f"  Amount:       {d['amount']}")
    print(f"  Purchased:    {d['purchase_date']}")
    print(f"  Problem:      {d['problem_type']}")
    print(f"  Status:       {d['status']}{' (archived)' if d['archived'] else ''}")
    print(f"  Progress:     {' > '.join(progress['steps'])} (at {progress['name']})")
    print(f"  Proof files:  {result['proof_count']}")
    for url in result["proofs"]:
        print(f"    - {url}")
    if result["pdf_url"]:
        print(f"  PDF:          {result['pdf_url']}")
    if "warning" in result:
        print(f"\n  ⚠ {result['warning']}")
    print(f"\n  {result['next_step']}")


def run_command(command: str, arg: str, state: dict) -> bool:
    """Handle one slash command; return False to leave the REPL."""
    from disputai.agent.controller import WizardController
    from disputai.agent.prompts import DISCLAIMER
    from disputai.models.evidence import EVIDENCE_TYPES
    from disputai.tools import disputes
    from disputai.tools.letters import export_dispute_pdf, generate_dispute_letter

    controller = state["controller"]

    if command in ("/quit", "/exit"):
        print("\nGoodbye!")
        return False

    elif command == "/help":
        print(HELP_TEXT.format(types=", ".join(EVIDENCE_TYPES)))

    elif command == "/upload":
        if not arg:
            print("\nUsage: /upload <file> [<file> ...]")
            return True
        files = read_files(arg.split())
        if files:
            print_update(controller.add_evidence(files))
            print(f"\n{len(controller.evidence)} file(s) uploaded so far.")
            print("Optionally set /evidence-type and /describe, then /done.")

    elif command == "/evidence-type":
        controller.set_evidence_details(evidence_type=arg)
        print(f"\nEvidence type set to {EVIDENCE_TYPES[arg]}.")

    elif command == "/describe":
        controller.set_evidence_details(description=arg)
        print("\nEvidence note saved.")

    elif command == "/done":
        print_update(controller.confirm_evidence())
        after_update(controller, state)

    elif command == "/new":
        state["controller"] = WizardController.from_settings(state["provider"])
        print(f"\nAssistant: {state['controller'].transcript.last.content}")

    elif command == "/history":
        history = controller.get_history()
        print("\nConversation history:")
        print("-" * 40)
        for msg in history:
            role = "You" if msg["role"] == "user" else "Assistant"
            content = msg["content"]
            if len(content) > 200:
                content = content[:200] + "..."
            print(f"\n{role}: {content}")

    elif command == "/disputes":
        result = disputes.list_user_disputes.invoke({"include_archived": arg == "all"})
        if not result["success"] or result["count"] == 0:
            print(f"\n{result['message']}")
        else:
            print(f"\nYou have {result['count']} dispute(s):")
            for d in result["disputes"]:
                flag = " [archived]" if d["archived"] else ""
                print(f"  - {d['id']} | {d['status']} | {d['amount']} at {d['platform']}{flag}")

    elif command == "/show":
        print_detail(arg)

    elif command == "/proof":
        dispute_id, _, rest = arg.partition(" ")
        if not dispute_id or not rest.strip():
            print("\nUsage: /proof <id> <file> [<file> ...]")
            return True
        result = disputes.add_dispute_evidence.invoke(
            {"dispute_id": dispute_id, "file_paths": rest.split()}
        )
        for upload in result.get("uploads", []):
            if upload["stored"]:
                print(f"  ✔ {upload['name']}")
            else:
                print(f"  ✘ {upload['name']}: {upload['error']}")
        print(f"\n{result['message']}")

    elif command in ("/archive", "/restore", "/delete"):
        action = {
            "/archive": disputes.archive_dispute,
            "/restore": disputes.restore_dispute,
            "/delete": disputes.delete_dispute,
        }[command]
        result = action.invoke({"dispute_id": arg})
        print(f"\n{result['message']}")
        if "warning" in result:
            print(f"  ⚠ {result['warning']}")

    elif command == "/letter":
        print(f"\n{DISCLAIMER}")
        result = generate_dispute_letter.invoke({"dispute_id": arg})
        if result["success"]:
            print(f"\n{result['template']}\n")
            print(f"Confidence: {result['confidence']:.0%} (risk score {result['risk']})")
        else:
            print(f"\n{result['message']}")

    elif command == "/pdf":
        result = export_dispute_pdf.invoke({"dispute_id": arg})
        print(f"\nPDF saved to {result['path']}" if result["success"] else f"\n{result['message']}")

    else:
        print(f"\nUnknown command: {command}")
        print("Type /help for available commands.")
    return True


def after_update(controller, state: dict):
    """Follow the redirect once a dispute is created."""
    from disputai.agent.controller import WizardController, WizardState

    if controller.state != WizardState.COMPLETED:
        return
    time.sleep(settings.wizard_config.redirect_delay_seconds)
    print_detail(controller.dispute_id)
    state["controller"] = WizardController.from_settings(state["provider"])
    print("\nType /new or describe another issue to start a new dispute.")


def run_repl(user_id: str | None, provider: str | None = None):
    """Run the interactive REPL."""
    # Import here to avoid loading the LLM stack until needed
    from disputai.agent.controller import WizardController, WizardState

    if user_id:
        set_current_user_id(user_id)

    print("=" * 60)
    print("Disput.ai - Dispute Assistant")
    print("=" * 60)
    print(f"User: {user_id or 'not logged in'}")
    print(f"Provider: {provider or settings.llm_provider}")
    print(f"Storage: {settings.storage_backend}")
    print()
    print("Type /help for commands. Describe your problem to get started.")
    print("-" * 60)

    try:
        controller = WizardController.from_settings(provider)
    except ValueError as e:
        print(f"\nError: {e}")
        print("\nTo fix this, create a .env file with your API key:")
        print("  For OpenAI: OPENAI_API_KEY=your_api_key_here")
        print("  For Gemini: GEMINI_API_KEY=your_api_key_here")
        print("  For Groq:   GROQ_API_KEY=your_api_key_here")
        sys.exit(1)

    state = {"controller": controller, "provider": provider}
    print(f"\nAssistant: {controller.transcript.last.content}")

    while True:
        try:
            user_input = input("\nYou: ").strip()
            if not user_input:
                continue

            if user_input.startswith("/"):
                command, _, arg = user_input.partition(" ")
                if not run_command(command.lower(), arg.strip(), state):
                    break
                continue

            controller = state["controller"]
            if controller.state == WizardState.AWAITING_EVIDENCE:
                print("\nPlease /upload your proof files, then type /done.")
                continue

            update = controller.send_message(user_input)
            print_update(update)
            after_update(controller, state)

        except (DisputaiError, ValueError, KeyError) as e:
            print(f"\nError: {e}")
        except KeyboardInterrupt:
            print("\n\nGoodbye!")
            break
        except EOFError:
            print("\n\nGoodbye!")
            break


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Disput.ai dispute intake assistant",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --user user_001                 # Local storage, given user
  python main.py --provider groq --user user_001 # Use Groq instead of OpenAI
  python main.py --backend supabase --token JWT  # Supabase storage and login
        """,
    )

    parser.add_argument(
        "--user",
        type=str,
        default=settings.default_user_id,
        help="User ID for the session (without one, disputes cannot be submitted)",
    )

    parser.add_argument(
        "--token",
        type=str,
        default=None,
        help="Supabase access token; the user ID is looked up from it",
    )

    parser.add_argument(
        "--provider",
        type=str,
        choices=["openai", "gemini", "groq"],
        default=None,
        help=f"LLM provider to use (default: {settings.llm_provider})",
    )

    parser.add_argument(
        "--backend",
        type=str,
        choices=["local", "supabase"],
        default=None,
        help=f"Storage backend (default: {settings.storage_backend})",
    )

    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Custom data directory path",
    )

    args = parser.parse_args()

    if args.data_dir:
        settings.data_dir = args.data_dir
    if args.backend:
        settings.storage_backend = args.backend

    run_repl(resolve_user(args.user, args.token), args.provider)


if __name__ == "__main__":
    main()
