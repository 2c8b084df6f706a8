#!/usr/bin/env python3
"""
TokenGate -- bearer-token login with sliding renewal.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py demo --url http://localhost:8000/api --username alice --password password1
  python main.py demo --url http://localhost:8000/api --username bob --password password2 --post '{"a": 1}'

Environment variables (see core/config.py for the full list):
  SECRET_KEY       Required unless DEBUG=true. At least 32 characters.
  TOKEN_STORE_URL  SQLAlchemy URL for a shared token store. Empty = in-memory,
                   which is only correct with a single worker process.
"""

import argparse
import json
import sys

from client.api_client import ApiClient, ApiClientError


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    # One worker: the default in-memory token store is per-process.
    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _demo(args: argparse.Namespace) -> int:
    client = ApiClient(args.url)
    try:
        login = client.login(args.username, args.password)
        print(f"  Logged in as {args.username} -- roles: {', '.join(login['roles'])}, expires at {login['expiresAt']}")
        if args.post is not None:
            try:
                payload = json.loads(args.post)
            except ValueError as e:
                print(f"  [!] --post is not valid JSON: {e}")
                return 2
            result = client.post_example(payload)
        else:
            result = client.get_example()
    except ApiClientError as e:
        print(f"  [!] {e}")
        return 1
    finally:
        client.close()
    print(json.dumps(result, indent=4, ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="TokenGate -- bearer-token login with sliding renewal.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the API server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve.set_defaults(func=_serve)

    demo = sub.add_parser("demo", help="Log in and call the example endpoint")
    demo.add_argument("--url", default="http://127.0.0.1:8000/api", help="API entry point URL")
    demo.add_argument("--username", required=True)
    demo.add_argument("--password", required=True)
    demo.add_argument("--post", metavar="JSON", help="POST this JSON to the example endpoint instead of GET")
    demo.set_defaults(func=_demo)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
