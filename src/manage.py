"""Dispatch management CLI.

Entry points for the scheduled jobs. Point cron (or any scheduler) at these;
each run issues one command and exits, so no follow-up depends on a live
process.

Usage:
    python src/manage.py auto-assign                 # Every 5 minutes
    python src/manage.py feedback-sweep              # Send due feedback requests
    python src/manage.py feedback-sweep --as-of 2026-01-01T12:00:00+00:00
"""

import argparse
import sys
from datetime import datetime


def _domain():
    from dispatch.domain import dispatch

    dispatch.init()
    return dispatch


def auto_assign(as_of=None):
    """Run one auto-assign sweep over waiting self-fleet orders."""
    from dispatch.assignment.commands import RunAutoAssignSweep
    from dispatch.utils.writes import process_with_retry

    domain = _domain()
    with domain.domain_context():
        summary = process_with_retry(RunAutoAssignSweep(as_of=as_of))

    print(f"Assigned {len(summary['assigned'])} order(s), {len(summary['pending'])} still waiting.")
    for order_id, agent_id in summary["assigned"].items():
        print(f"  {order_id} -> {agent_id}")
    return summary


def feedback_sweep(as_of=None):
    """Send feedback requests for delivered orders that are due."""
    from dispatch.order.feedback import SendDueFeedbackRequests
    from dispatch.utils.writes import process_with_retry

    domain = _domain()
    with domain.domain_context():
        requested = process_with_retry(SendDueFeedbackRequests(as_of=as_of))

    print(f"Requested feedback for {len(requested)} order(s).")
    return requested


def main():
    parser = argparse.ArgumentParser(description="Dispatch scheduled jobs")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("auto-assign", "Assign waiting self-fleet orders to free agents"),
        ("feedback-sweep", "Send due post-delivery feedback requests"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--as-of",
            type=datetime.fromisoformat,
            default=None,
            help="Reference time in ISO format (default: now)",
        )

    args = parser.parse_args()

    if args.command == "auto-assign":
        auto_assign(args.as_of)
    elif args.command == "feedback-sweep":
        feedback_sweep(args.as_of)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
