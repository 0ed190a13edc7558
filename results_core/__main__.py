#!/usr/bin/env python3

import sys
import json
import argparse
import logging
from typing import List, Optional
from collections import OrderedDict

import uvicorn
import sqlalchemy.exc

from results_core import schemas, settings as _settings
from results_core.api import auth
from results_core.api.api import create_app
from results_core.persistence import database, models


def get_parser(program: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=program, description="Management utility of the results core service")
    commands = parser.add_subparsers(
        dest="command",
        required=True,
        metavar="<command>",
        help="one of: init, users, token, run"
    )

    init = commands.add_parser("init", description="Write the config file (unless one exists) and create the tables")
    init.add_argument("--database", type=str, metavar="url", help="SQLAlchemy database URL stored in the new config")

    users = commands.add_parser("users", description="Inspect and modify the accounts allowed to use the API")
    actions = users.add_subparsers(dest="action", required=True, metavar="<action>", help="one of: show, add, del")

    users_show = actions.add_parser("show", description="List every account")
    users_show.add_argument("--json", action="store_true", help="emit JSON instead of a table")
    users_show.add_argument("--indent", type=int, metavar="n", help="indentation of the JSON output")

    users_add = actions.add_parser("add", description="Register a new account")
    users_add.add_argument("email", type=str, help="email address identifying the account")
    users_add.add_argument("--admin", action="store_true", help="give the account the admin role as well")

    users_del = actions.add_parser("del", description="Remove an account and every result it owns")
    users_del.add_argument("identifier", metavar="ID", type=int, help="numeric ID of the account")

    token = commands.add_parser("token", description="Sign a bearer token for an account")
    token.add_argument("email", type=str, help="email address of the account")
    token.add_argument("--minutes", type=int, metavar="n", help="validity period (default from the config)")
    token.add_argument("--json", action="store_true", help="emit the token response as JSON")

    run = commands.add_parser("run", description="Serve the HTTP API with uvicorn")
    run.add_argument("--host", type=str, metavar="host", help="listen address (default from the config)")
    run.add_argument("--port", type=int, metavar="port", help="listen port (default from the config)")
    run.add_argument("--config", type=str, metavar="path", default="config.json", help="config file to load first")
    run.add_argument("--debug", action="store_true", help="log everything at DEBUG level")
    run.add_argument("--debug-sql", action="store_true", help="echo every SQL statement")
    run.add_argument("--reload", action="store_true", help="restart on source changes")
    run.add_argument("--workers", type=int, metavar="n", help="number of processes (ignored with --reload)")
    run.add_argument("--no-access-log", action="store_true", help="suppress the uvicorn access log")
    run.add_argument("--root-path", type=str, default="", metavar="p", help="ASGI root path behind a proxy")

    return parser


def _load_settings() -> _settings.Settings:
    config = _settings.Settings()
    database.init(config.database.connection, config.database.debug_sql)
    return config


def run_server(args: argparse.Namespace) -> int:
    _settings.CONFIG_PATHS.insert(0, args.config)
    try:
        config = _settings.Settings()
    except ValueError:
        print(f"Invalid configuration in {args.config!r}, see the error below.", file=sys.stderr)
        raise

    if config.auth.secret_key is None and (args.workers or 1) > 1:
        print("Tokens can't be shared between workers without 'auth.secret_key'.", file=sys.stderr)
        return 1

    if args.debug:
        print("Debug mode enabled, don't use it in production.", file=sys.stderr)
        config.logging.root["level"] = "DEBUG"
        for handler in config.logging.handlers.values():
            handler["level"] = "DEBUG"
    if args.debug_sql:
        config.database.debug_sql = True

    host = config.server.host if args.host is None else args.host
    port = config.server.port if args.port is None else args.port
    app = create_app(settings=config)

    logging.getLogger("results_core").info(f"Listening on {host}:{port}")
    uvicorn.run(
        "results_core.api:api.app" if args.reload else app,
        host=host,
        port=port,
        reload=args.reload,
        workers=args.workers,
        log_level="debug" if args.debug else "info",
        log_config=config.logging.model_dump(),
        access_log=not args.no_access_log,
        proxy_headers=True,
        root_path=args.root_path
    )
    return 0


def init_project(args: argparse.Namespace) -> int:
    path = _settings.CONFIG_PATHS[0]
    if _settings.read_settings_from_file():
        print("Using the existing config file. Delete it first to start over with the defaults.")
        config = _settings.Settings()
    else:
        database_url = _settings.get_db_from_env(args.database)
        config = _settings.store_configuration(_settings.get_default_core_config(database_url), path)
        print(f"Wrote the default configuration to {path!r}.")

    database.init(config.database.connection, config.database.debug_sql)
    with database.get_new_session() as session:
        try:
            user_count = session.query(models.User).count()
        except sqlalchemy.exc.DatabaseError as exc:
            print(f"Database {config.database.connection!r} is unusable: {exc}", file=sys.stderr)
            return 1

    if user_count == 0:
        print("No accounts exist yet. Add one with 'users add EMAIL' and sign a token with 'token EMAIL'.")
    print("Done.")
    return 0


def print_table(rows: List[dict], columns: Optional[List[str]] = None):
    widths = OrderedDict((column, len(column)) for column in (columns or []))
    for row in rows:
        for column, value in row.items():
            if columns and column not in columns:
                continue
            widths[column] = max(widths.get(column, len(column)), len(str(value)))
    print(" | ".join(f"{column:<{width}}" for column, width in widths.items()))
    print("-+-".join("-" * width for width in widths.values()))
    for row in rows:
        print(" | ".join(f"{row[column]!s:<{width}}" for column, width in widths.items()))


def show_users(args: argparse.Namespace) -> int:
    _load_settings()
    with database.get_new_session() as session:
        users = [user.schema.model_dump() for user in session.query(models.User).all()]

    if args.json:
        print(json.dumps(users, indent=args.indent))
        return 0
    for user in users:
        user["roles"] = ",".join(user["roles"])
    print_table(users, ["id", "email", "roles", "created"])
    return 0


def add_user(args: argparse.Namespace) -> int:
    if not args.email:
        print("Empty email addresses are not allowed.", file=sys.stderr)
        return 1

    _load_settings()
    with database.get_new_session() as session:
        if session.query(models.User).filter_by(email=args.email).all():
            print(f"A user with the email address {args.email!r} already exists. Exiting.", file=sys.stderr)
            return 1

        roles = schemas.Role.USER
        if args.admin:
            roles |= schemas.Role.ADMIN
        user = models.User(email=args.email, roles=int(roles))
        session.add(user)
        session.commit()
        print(f"Successfully created new user {user.email!r} (ID {user.id}) with roles {schemas.Role.names(roles)}.")
    return 0


def del_user(args: argparse.Namespace) -> int:
    _load_settings()
    with database.get_new_session() as session:
        user = session.get(models.User, args.identifier)
        if user is None:
            print(f"There's no user with the ID {args.identifier} in the database!", file=sys.stderr)
            return 1
        count = len(user.results)
        email = user.email
        session.delete(user)
        session.commit()
        print(
            f"Successfully deleted user {email!r} (ID {args.identifier}) and {count} result(s). "
            f"Further requests with tokens of this user will be rejected."
        )
    return 0


def handle_users(args: argparse.Namespace) -> int:
    return {
        "show": show_users,
        "add": add_user,
        "del": del_user
    }[args.action](args)


def issue_token(args: argparse.Namespace) -> int:
    config = _load_settings()
    if config.auth.secret_key is None:
        print(
            "No 'auth.secret_key' has been configured! Tokens created by this command "
            "won't be accepted by any server process. Please configure a secret key.",
            file=sys.stderr
        )
        return 1

    with database.get_new_session() as session:
        if session.query(models.User).filter_by(email=args.email).one_or_none() is None:
            print(f"There's no user with email address {args.email!r} in the database!", file=sys.stderr)
            return 1

    minutes = args.minutes or config.auth.token_expiration_minutes
    token = auth.create_access_token(args.email, config.auth.secret_key, minutes)
    if args.json:
        print(schemas.Token(access_token=token, token_type="bearer").model_dump_json())
    else:
        print(token)
    return 0


if __name__ == '__main__':
    program_name = sys.argv[0] if not sys.argv[0].endswith("__main__.py") else "results_core"
    namespace = get_parser(program_name).parse_args(sys.argv[1:])

    command_functions = {
        "run": run_server,
        "init": init_project,
        "users": handle_users,
        "token": issue_token
    }
    exit(command_functions[namespace.command](namespace))
