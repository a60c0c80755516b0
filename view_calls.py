#!/usr/bin/env python3
"""
View stored calls and claims from the intake database.

Usage:
    python view_calls.py                   # List recent calls
    python view_calls.py CALL_ID           # View one call with its claim
    python view_calls.py --unverified      # Calls waiting for manual review
    python view_calls.py --claims HO_ID    # Claims for one homeowner
    python view_calls.py --stats           # Show statistics
    python view_calls.py CALL_ID --export  # Dump a call as JSON
"""

import argparse
import json
import sys
from datetime import datetime
from typing import Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from warranty_intake.intake.schema import CallRecord, Claim
from warranty_intake.matching import describe_match_quality
from warranty_intake.storage import CallStore, get_call_store
from warranty_intake.utils.phone import format_phone_for_display

console = Console()


def format_datetime(value: Optional[datetime]) -> str:
    """Format a timestamp for display."""
    if not value:
        return ""
    return value.strftime("%Y-%m-%d %H:%M")


def truncate(text: Optional[str], max_len: int = 50) -> str:
    """Truncate text with ellipsis."""
    if not text:
        return ""
    text = str(text)
    if len(text) > max_len:
        return text[:max_len-3] + "..."
    return text


def make_call_table(calls: list[CallRecord]) -> Table:
    """Summary table with one row per call."""
    table = Table(
        title="📞 Calls",
        box=box.ROUNDED,
        header_style="bold cyan",
    )
    table.add_column("Call ID", style="bold")
    table.add_column("Created", style="dim")
    table.add_column("Intent")
    table.add_column("Verified")
    table.add_column("Similarity")
    table.add_column("Caller")
    table.add_column("Address")
    table.add_column("Claim")

    for call in calls:
        verified = "[green]yes[/green]" if call.is_verified else "[yellow]review[/yellow]"
        intent = call.call_intent.value if call.call_intent else "-"
        if call.is_urgent:
            intent = f"[red]{intent} (urgent)[/red]"
        table.add_row(
            truncate(call.external_call_id, 20),
            format_datetime(call.created_at),
            intent,
            verified,
            f"{call.similarity:.2f}" if call.similarity is not None else "-",
            format_phone_for_display(call.caller_phone) or "-",
            truncate(call.property_address, 35),
            truncate(call.claim_id, 10) or "-",
        )
    return table


def show_call_detail(call: CallRecord, claim: Optional[Claim]) -> None:
    """Detailed view of a single call."""
    console.print()
    console.print(Panel(f"[bold cyan]Call: {call.external_call_id}[/bold cyan]", expand=False))

    console.print("\n[bold]📌 Basic Info[/bold]")
    console.print(f"  Created: {format_datetime(call.created_at)}")
    console.print(f"  Updated: {format_datetime(call.updated_at)}")
    console.print(f"  Intent: {call.call_intent.value if call.call_intent else '[dim]Unknown[/dim]'}")
    console.print(f"  Urgent: {'[red]Yes[/red]' if call.is_urgent else 'No'}")

    console.print("\n[bold]👤 Caller[/bold]")
    console.print(f"  Name: {call.homeowner_name or '[dim]Not provided[/dim]'}")
    console.print(f"  Phone: {format_phone_for_display(call.caller_phone) or '[dim]Not provided[/dim]'}")
    console.print(f"  Address: {call.property_address or '[dim]Not provided[/dim]'}")
    console.print(f"  Issue: {call.issue_description or '[dim]Not provided[/dim]'}")

    console.print("\n[bold]🏠 Homeowner Match[/bold]")
    if call.homeowner_id:
        quality = describe_match_quality(call.similarity or 0.0)
        console.print(f"  Homeowner: {call.homeowner_id}")
        console.print(f"  Similarity: {call.similarity:.3f} ({quality})")
    else:
        console.print("  [yellow]Unverified - needs manual review[/yellow]")

    if claim:
        console.print("\n[bold]📋 Claim[/bold]")
        console.print(f"  Number: #{claim.claim_number}")
        console.print(f"  Status: {claim.status.value}")
        console.print(f"  Title: {claim.title}")
        console.print(f"  Created: {format_datetime(claim.created_at)}")

    if call.recording_url:
        console.print(f"\n[bold]🎧 Recording[/bold]\n  {call.recording_url}")
    if call.transcript:
        console.print("\n[bold]📝 Transcript[/bold]")
        console.print(f"  {truncate(call.transcript, 500)}")
    console.print()


def make_claims_table(homeowner_id: str, claims: list[Claim]) -> Table:
    """Claims for one homeowner, by number."""
    table = Table(
        title=f"📋 Claims for {homeowner_id}",
        box=box.ROUNDED,
        header_style="bold cyan",
    )
    table.add_column("#", style="bold", justify="right")
    table.add_column("Created", style="dim")
    table.add_column("Status")
    table.add_column("Urgent")
    table.add_column("Source Call")
    table.add_column("Description")

    for claim in claims:
        table.add_row(
            str(claim.claim_number),
            format_datetime(claim.created_at),
            claim.status.value,
            "[red]yes[/red]" if claim.is_urgent else "",
            truncate(claim.source_call_id, 20) or "-",
            truncate(claim.description, 50),
        )
    return table


def print_stats(store: CallStore) -> None:
    """Print database statistics."""
    total = store.count_calls()
    verified = store.count_calls(verified=True)

    console.print(f"\n[bold]📊 Intake Statistics[/bold]")
    console.print(f"  Total calls: {total}")
    console.print(f"  Verified: [green]{verified}[/green]")
    console.print(f"  Needs review: [yellow]{total - verified}[/yellow]")
    console.print(f"  Claims: {len(store.list_claims(limit=100000))}")
    console.print(f"\n  Database: {store.db_path}")


def main():
    parser = argparse.ArgumentParser(description="View stored calls and claims")
    parser.add_argument("call_id", nargs="?", help="Specific call ID to view")
    parser.add_argument("--verified", action="store_true", help="Only verified calls")
    parser.add_argument("--unverified", action="store_true", help="Only calls needing review")
    parser.add_argument("--claims", metavar="HOMEOWNER_ID", help="List claims for a homeowner")
    parser.add_argument("--stats", action="store_true", help="Show statistics")
    parser.add_argument("--export", action="store_true", help="Export call as JSON")
    parser.add_argument("--limit", type=int, default=50, help="Max calls to list")

    args = parser.parse_args()

    store = get_call_store()

    if args.stats:
        print_stats(store)
        return

    if args.claims:
        claims = store.list_claims(homeowner_id=args.claims)
        if not claims:
            console.print(f"\n[yellow]No claims for homeowner {args.claims}[/yellow]")
            return
        console.print(make_claims_table(args.claims, claims))
        return

    if args.call_id:
        call = store.get_call(args.call_id)
        if call is None:
            console.print(f"\n[red]Call not found: {args.call_id}[/red]")
            sys.exit(1)
        claim = store.get_claim(call.claim_id) if call.claim_id else None
        if args.export:
            print(json.dumps(
                {
                    "call": call.model_dump(mode="json"),
                    "claim": claim.model_dump(mode="json") if claim else None,
                },
                indent=2,
            ))
        else:
            show_call_detail(call, claim)
        return

    verified = True if args.verified else False if args.unverified else None
    calls = store.list_calls(verified=verified, limit=args.limit)
    if not calls:
        console.print("\n[yellow]No calls found.[/yellow]")
        return
    console.print(make_call_table(calls))
    console.print(f"Total: {store.count_calls(verified=verified)} call(s)")


if __name__ == "__main__":
    main()
