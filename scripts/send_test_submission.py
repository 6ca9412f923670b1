#!/usr/bin/env python3
"""
Dev helper: post a test form submission to a running formrelay backend.

Builds a sample contact or quote submission and POST-s it to /api/notify,
either as JSON or, when --file is given, as multipart/form-data with the
file in the "attachment" field.

Usage
-----
# Contact form as JSON, targeting localhost:8000
python scripts/send_test_submission.py

# Quote form
python scripts/send_test_submission.py --kind quote

# Quote form with an attachment (sent as multipart/form-data)
python scripts/send_test_submission.py --kind quote --file brief.pdf

# Include a reCAPTCHA token (only needed when RECAPTCHA_SECRET is set)
python scripts/send_test_submission.py --token <token>

# Print the payload without sending it
python scripts/send_test_submission.py --dry-run
"""

import argparse
import json
import mimetypes
import sys
import textwrap
from datetime import datetime, timezone
from pathlib import Path

import httpx


# ---------------------------------------------------------------------------
# Sample payloads
# ---------------------------------------------------------------------------

def _build_contact_fields(name: str, email: str) -> dict:
    return {
        "kind": "contact",
        "name": name,
        "email": email,
        "phone": "+1 555 0100",
        "message": "Hello!\nThis is a test message from send_test_submission.py.",
    }


def _build_quote_fields(name: str, email: str) -> dict:
    return {
        "kind": "quote",
        "fullName": name,
        "email": email,
        "phone": "+1 555 0100",
        "company": "Acme Co",
        "category": "Web",
        "service": "Design",
        "budget": "$5k-$10k",
        "timeline": "1-2 months",
        "goals": ["Brand awareness", "Lead generation"],
        "references": "https://example.com",
        "brief": "We need a new landing page.\nMobile first, please.",
    }


_FIELD_BUILDERS = {
    "contact": _build_contact_fields,
    "quote": _build_quote_fields,
}


# ---------------------------------------------------------------------------
# Pretty printer
# ---------------------------------------------------------------------------

def _print_response(response: httpx.Response) -> None:
    status = response.status_code
    symbol = "OK" if status == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {status}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> int:
    parser = argparse.ArgumentParser(
        prog="send_test_submission.py",
        description="Send a test contact/quote submission to the formrelay backend.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            Examples:
              python scripts/send_test_submission.py
              python scripts/send_test_submission.py --kind quote --file brief.pdf
              python scripts/send_test_submission.py --url http://localhost:8000
        """),
    )
    parser.add_argument(
        "--url",
        default="http://localhost:8000",
        help="Backend base URL (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--kind",
        default="contact",
        choices=list(_FIELD_BUILDERS),
        help="Which form to simulate (default: contact)",
    )
    parser.add_argument("--name", default="Jane Doe", help='Sender name (default: "Jane Doe")')
    parser.add_argument(
        "--email",
        default="jane@example.com",
        help="Sender email address (default: jane@example.com)",
    )
    parser.add_argument(
        "--file",
        default=None,
        metavar="PATH",
        help="Attach a file; switches the request to multipart/form-data.",
    )
    parser.add_argument("--token", default=None, help="reCAPTCHA token to include.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the payload without sending it.",
    )

    args = parser.parse_args()

    fields = _FIELD_BUILDERS[args.kind](args.name, args.email)
    fields["submittedAt"] = datetime.now(timezone.utc).isoformat()
    if args.token:
        fields["recaptchaToken"] = args.token

    file_path = None
    if args.file:
        file_path = Path(args.file)
        if not file_path.exists():
            print(f"ERROR: File not found: {file_path}", file=sys.stderr)
            return 1

    endpoint = f"{args.url.rstrip('/')}/api/notify"

    print(f"Endpoint  : {endpoint}")
    print(f"Kind      : {args.kind}")
    print(f"Encoding  : {'multipart/form-data' if file_path else 'application/json'}")
    print(f"Attachment: {file_path.name if file_path else '(none)'}")

    if args.dry_run:
        print("\n[DRY RUN] Fields:")
        print(json.dumps(fields, indent=2))
        return 0

    try:
        if file_path:
            content_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
            # httpx sends list values as repeated form fields
            response = httpx.post(
                endpoint,
                data=fields,
                files={"attachment": (file_path.name, file_path.read_bytes(), content_type)},
                timeout=30,
            )
        else:
            response = httpx.post(endpoint, json=fields, timeout=30)
    except httpx.ConnectError:
        print(
            f"\nERROR: Could not connect to {endpoint}\n"
            "Is the backend running? Start it with:\n"
            "  uvicorn formrelay.main:app --reload --app-dir backend",
            file=sys.stderr,
        )
        return 1

    _print_response(response)
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
