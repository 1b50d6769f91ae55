"""PocketAuth entry point.

Subcommands:
  serve             Start the authorization server
  register-client   Register an OAuth2 client application
  add-user          Add a resource owner for the password grant
"""

import argparse
import logging
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

from pocketauth.config import get_settings
from pocketauth.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _version() -> str:
    try:
        return get_version("pocketauth")
    except PackageNotFoundError:
        from pocketauth import __version__

        return __version__


def _storage():
    from pocketauth.config import get_config_dir
    from pocketauth.oauth2.storage import OAuthStorage

    return OAuthStorage(persist_dir=get_config_dir())


def cmd_register_client(args: argparse.Namespace) -> int:
    from pocketauth.oauth2.errors import ConfigurationError
    from pocketauth.oauth2.issuer import TokenIssuer
    from pocketauth.oauth2.models import Application, ClientType
    from pocketauth.oauth2.validator import validate_redirect_uri

    try:
        validate_redirect_uri(args.redirect_uri)
    except ConfigurationError as exc:
        print(f"error: {exc}")
        return 2

    client_type = ClientType.PUBLIC if args.public else ClientType.CONFIDENTIAL
    client_id, client_secret = TokenIssuer().generate_client_credentials(client_type)
    _storage().save_application(
        Application(
            client_id=client_id,
            client_type=client_type.value,
            redirect_uri=args.redirect_uri,
            name=args.name,
            website=args.website or "",
            logo=args.logo or "",
            owner_user_id=args.owner,
            client_secret=client_secret,
        )
    )
    print(f"client_id:     {client_id}")
    if client_secret:
        # Shown once; it is stored but never printed again.
        print(f"client_secret: {client_secret}")
    print(f"client_type:   {client_type.value}")
    return 0


def cmd_add_user(args: argparse.Namespace) -> int:
    try:
        user = _storage().add_user(args.username, args.password, display_name=args.display_name or "")
    except ValueError as exc:
        print(f"error: {exc}")
        return 2
    print(f"user_id: {user.id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pocketauth",
        description="PocketAuth - OAuth2 authorization server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pocketauth serve --port 8888
  pocketauth register-client "My App" --redirect-uri https://app.example/cb
  pocketauth register-client "SPA" --redirect-uri https://spa.example/cb --public
  pocketauth add-user alice --password s3cret
""",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {_version()}")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Start the authorization server")
    serve.add_argument("--host", default=None, help="Bind address (default from settings)")
    serve.add_argument("--port", type=int, default=None, help="Port (default from settings)")
    serve.add_argument("--dev", action="store_true", help="Auto-reload on code changes")

    reg = sub.add_parser("register-client", help="Register an OAuth2 client application")
    reg.add_argument("name")
    reg.add_argument("--redirect-uri", required=True)
    reg.add_argument("--public", action="store_true", help="Public client (no secret)")
    reg.add_argument("--website")
    reg.add_argument("--logo")
    reg.add_argument("--owner", help="Owning user id")

    user = sub.add_parser("add-user", help="Add a resource owner")
    user.add_argument("username")
    user.add_argument("--password", required=True)
    user.add_argument("--display-name")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(level=settings.log_level)

    if args.command == "register-client":
        return cmd_register_client(args)
    if args.command == "add-user":
        return cmd_add_user(args)

    from pocketauth.api.serve import run_api_server

    try:
        run_api_server(
            host=args.host or settings.web_host,
            port=args.port or settings.web_port,
            dev=args.dev,
        )
    except KeyboardInterrupt:
        logger.info("PocketAuth stopped.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
