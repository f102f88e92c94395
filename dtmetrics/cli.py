"""CLI for dtmetrics utilities."""

from __future__ import annotations

import argparse
import http.client
import os
import sys

from dtmetrics.config import (
    ENV_VAR_MAPPING,
    find_config_file,
    load_config,
    validate_config,
)
from dtmetrics.errors import ConfigError
from dtmetrics.exporter.http_exporter import (
    BatchFailure,
    BatchSuccess,
    BatchTransportError,
    MetricsApiIngestion,
)

# Status codes that prove the ingest endpoint answered an (empty) request.
_REACHABLE_STATUSES = {400, 401, 403}


def _load(args):
    return load_config(
        config_file=args.config,
        overrides={"uri": getattr(args, "uri", None), "api_token": getattr(args, "api_token", None)},
    )


def _check(args) -> int:
    """Check connectivity to the configured ingest endpoint."""
    try:
        config = _load(args)
        ingestion = MetricsApiIngestion(config)
        print(f"🔍 Checking connectivity to {ingestion.url}...")
        sys.stdout.flush()

        status, body = ingestion.ping()
    except ConfigError as exc:
        print(f"❌ Configuration error: {exc}", file=sys.stderr)
        return 1
    except (OSError, http.client.HTTPException) as exc:
        print(f"❌ Connection failed: {exc}", file=sys.stderr)
        print("   Make sure the environment is running and accessible", file=sys.stderr)
        return 1

    if 200 <= status < 300 or status in _REACHABLE_STATUSES:
        print(f"✅ Endpoint is reachable (HTTP {status})")
        if status in (401, 403):
            print("⚠️  Authentication failed - check your API token and its metrics.ingest scope")
        elif status == 400:
            print("💡 Endpoint rejected the empty test payload (expected)")
        return 0

    print(f"❌ HTTP Error {status}: {body}", file=sys.stderr)
    return 1


def _send(args) -> int:
    """Send metric lines from a file or stdin."""
    try:
        config = _load(args)
        ingestion = MetricsApiIngestion(config)
    except ConfigError as exc:
        print(f"❌ Configuration error: {exc}", file=sys.stderr)
        return 1

    if args.file and args.file != "-":
        try:
            with open(args.file, "r", encoding="utf-8") as f:
                raw = f.read().splitlines()
        except OSError as exc:
            print(f"❌ Failed to read metric lines: {exc}", file=sys.stderr)
            return 1
    else:
        raw = sys.stdin.read().splitlines()
    lines = [line.strip() for line in raw if line.strip() and not line.lstrip().startswith("#")]

    if not lines:
        print("ℹ️  No metric lines to send")
        return 0

    failed = 0
    for index, outcome in enumerate(ingestion.send_in_batches(lines), start=1):
        if isinstance(outcome, BatchSuccess):
            print(f"✅ Batch {index}: {outcome.line_count} lines ingested (HTTP {outcome.status_code})")
        elif isinstance(outcome, BatchFailure):
            failed += 1
            print(f"❌ Batch {index}: HTTP {outcome.status_code}: {outcome.body}", file=sys.stderr)
        elif isinstance(outcome, BatchTransportError):
            failed += 1
            print(f"❌ Batch {index}: connection failed: {outcome.cause}", file=sys.stderr)
            print("   Remaining batches were not sent", file=sys.stderr)
    return 1 if failed else 0


def _config_init(args) -> int:
    """Initialize dtmetrics.toml config file in current directory."""
    config_path = os.path.join(os.getcwd(), "dtmetrics.toml")

    if os.path.exists(config_path) and not args.force:
        print(f"❌ Config file already exists at {config_path}", file=sys.stderr)
        print("   Use --force to overwrite", file=sys.stderr)
        return 1

    config_template = """# dtmetrics configuration file

[dynatrace]
# Base URI of your Dynatrace environment (required unless tenant is set)
uri = "https://{your-environment-id}.live.dynatrace.com"

# SaaS tenant id, used to build the uri when uri is not set
# tenant = "abc12345"

# API token with the metrics.ingest scope (required)
# Prefer the DT_METRICS_API_TOKEN environment variable for secrets.
api_token = ""

# Maximum number of metric lines per ingestion request
batch_size = 1000

# HTTP timeouts in seconds
connect_timeout = 1.0
read_timeout = 10.0

# Export interval in seconds
step = 60.0

# Turn publishing off without removing the registry
enabled = true

# Enable debug logging
debug = false
"""

    try:
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(config_template)
        print(f"✅ Created config file at {config_path}")
        print("\n📝 Next steps:")
        print("   1. Edit the config file to add your environment uri and API token")
        print("   2. Run `dtmetrics doctor` to validate your configuration")
        print("   3. Run `dtmetrics check` to test connectivity")
        return 0
    except OSError as exc:
        print(f"❌ Failed to create config file: {exc}", file=sys.stderr)
        return 1


def _doctor(args) -> int:
    """Validate configuration and diagnose common issues."""
    print("🩺 Running dtmetrics configuration diagnostics...\n")

    issues_found = 0

    config_file = args.config
    if config_file:
        if not os.path.exists(config_file):
            print(f"❌ Specified config file not found: {config_file}")
            return 1
    else:
        config_file = find_config_file()
        if config_file:
            print(f"✅ Found config file: {config_file}")
        else:
            print("⚠️  No config file found (checked ./dtmetrics.toml and ~/.dtmetrics/config.toml)")
            print("   Run `dtmetrics config init` to create one")

    print("\n📋 Environment variables:")
    found_env_vars = []
    for env_vars in ENV_VAR_MAPPING.values():
        for env_var in env_vars:
            if os.getenv(env_var):
                found_env_vars.append(env_var)
                print(f"   ✅ {env_var} is set")
    if not found_env_vars:
        print("   ℹ️  No dtmetrics environment variables set")

    print("\n🔍 Validating configuration...")
    is_valid, message, config = validate_config(config_file=config_file)

    if is_valid:
        print(f"✅ {message}")
        print("\n📊 Configuration summary:")
        print(f"   • URI: {config.uri}")
        print("   • API Token: ✅ Set")
        print(f"   • Batch size: {config.batch_size}")
        print(f"   • Step: {config.step}s")
        print(f"   • Timeouts: connect {config.connect_timeout}s, read {config.read_timeout}s")
        if not config.enabled:
            print("\n⚠️  Publishing is disabled (enabled = false)")
            issues_found += 1
    else:
        print(f"❌ {message}")
        issues_found += 1

    print("\n" + "=" * 60)
    if issues_found == 0:
        print("✅ No issues found! Your configuration looks good.")
        print("\n💡 Tip: Run `dtmetrics check` to test connectivity to your environment")
        return 0
    print(f"⚠️  Found {issues_found} issue(s). Please review the messages above.")
    return 1


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="dtmetrics",
        description="dtmetrics - export metrics to the Dynatrace metrics API v2",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dtmetrics config init              Create a new config file
  dtmetrics doctor                   Validate configuration
  dtmetrics check                    Test connectivity to the ingest endpoint
  dtmetrics send metrics.txt         Send metric lines from a file
  cat metrics.txt | dtmetrics send   Send metric lines from stdin
        """
    )

    parser.add_argument(
        "--config",
        help="Path to config file (default: ./dtmetrics.toml or ~/.dtmetrics/config.toml)"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser(
        "check",
        help="Verify connectivity to the ingest endpoint",
        description="Send an empty ingestion request and report whether the endpoint answers"
    )
    check.add_argument("--uri", help="Override environment uri")
    check.add_argument("--api-token", dest="api_token", help="API token for authentication")
    check.set_defaults(func=_check)

    send = sub.add_parser(
        "send",
        help="Send metric lines in batches",
        description="Read line protocol from FILE (or stdin) and ingest it in batches"
    )
    send.add_argument("file", nargs="?", help="File with one metric line per line (default: stdin)")
    send.add_argument("--uri", help="Override environment uri")
    send.add_argument("--api-token", dest="api_token", help="API token for authentication")
    send.set_defaults(func=_send)

    config = sub.add_parser(
        "config",
        help="Configuration management",
        description="Manage dtmetrics configuration files"
    )
    config_sub = config.add_subparsers(dest="config_command", required=True)

    config_init = config_sub.add_parser(
        "init",
        help="Create dtmetrics.toml config file",
        description="Initialize a new dtmetrics.toml configuration file in the current directory"
    )
    config_init.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing config file"
    )
    config_init.set_defaults(func=_config_init)

    doctor = sub.add_parser(
        "doctor",
        help="Validate configuration and diagnose issues",
        description="Run diagnostics on your dtmetrics configuration"
    )
    doctor.set_defaults(func=_doctor)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
