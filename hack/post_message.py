"""Post chat messages to a running server.

Development helper that sends one or more messages through
POST /api/v1/messages as the given user.
"""

import argparse
import http.client
import json
import sys
import time


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Post messages to the server",
    )
    parser.add_argument("-H", "--host", default="localhost", help="Server host (default: localhost)")
    parser.add_argument(
        "-p", "--port", type=int, default=8080, help="Server port (default: 8080)"
    )
    parser.add_argument("-u", "--user-id", required=True, help="Sender user ID")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--channel-id", help="Channel to post to")
    target.add_argument("--dm-id", help="Direct-message thread to post to")
    parser.add_argument("--parent-id", help="Reply to this message")
    parser.add_argument("-m", "--message", default="Hello from post_message.py", help="Content")
    parser.add_argument(
        "-n", "--count", type=int, default=1, help="Number of messages (default: 1)"
    )
    parser.add_argument(
        "-i",
        "--interval",
        type=float,
        default=0.0,
        help="Seconds between messages (default: 0.0)",
    )
    return parser


def post_message(args: argparse.Namespace, content: str) -> tuple[bool, str]:
    """Send one message.

    Returns:
        (success, message ID or error description)
    """
    payload = {
        "content": content,
        "channel_id": args.channel_id,
        "dm_id": args.dm_id,
        "parent_id": args.parent_id,
    }

    try:
        conn = http.client.HTTPConnection(args.host, args.port, timeout=30)
        try:
            conn.request(
                "POST",
                "/api/v1/messages",
                body=json.dumps(payload),
                headers={"Content-Type": "application/json", "X-User-Id": args.user_id},
            )
            response = conn.getresponse()
            body = response.read().decode("utf-8")

            if response.status == 201:
                try:
                    return True, json.loads(body)["message"]["id"]
                except (json.JSONDecodeError, KeyError):
                    return False, f"Invalid JSON response: {body}"
            return False, f"{response.status} {response.reason}: {body}"
        finally:
            conn.close()
    except ConnectionRefusedError:
        return False, "Connection refused"
    except TimeoutError:
        return False, "Connection timeout"
    except OSError as e:
        return False, str(e)


def main() -> int:
    args = create_parser().parse_args()

    print(f"Posting to http://{args.host}:{args.port}/api/v1/messages...")
    for i in range(args.count):
        if i > 0 and args.interval > 0:
            time.sleep(args.interval)

        content = args.message if args.count == 1 else f"{args.message} ({i + 1})"
        success, result = post_message(args, content)
        if not success:
            print(f"Error: {result}")
            return 1
        print(f"[{i + 1}/{args.count}] Message ID: {result}")

    print("Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
