"""Command line for the document grounding client.

Commands:
- configure: Save service URL, client id, endpoints and destination
- store-credentials: Normalize and store the certificate/key pair
- token: Acquire an access token
- list / refresh: Show remote pipelines, or replace the local registry with them
- create / trigger / delete: Manage pipelines (delete asks twice)
- status / executions / execution / documents / document: Read-only checks
- check: Status, executions and documents in one go
- summary: Show the configuration summary and registered pipelines
- registry: Show the local registry
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, List, Optional

from loguru import logger

from .api import CreateStatus, DeleteStatus, TRIGGER_RATE_LIMIT_PER_MINUTE, TriggerStatus
from .config import ConfigStore, GroundingConfig, setup_logging
from .credential import CredentialStore
from .errors import GroundingError, ValidationError
from .orchestrator import PipelineManager
from .registry import create_registry

InputFn = Callable[[str], str]


def confirm_delete(pipeline_id: str, input_fn: InputFn = input) -> bool:
    """Two-stage confirmation: ``yes`` first, then the literal ``DELETE``."""
    print(f"WARNING: This action cannot be undone! Pipeline ID: {pipeline_id}")
    if input_fn("Are you sure you want to delete this pipeline? (yes/no): ").strip() != "yes":
        return False

    print("Final confirmation required!")
    return input_fn("Type 'DELETE' to confirm pipeline deletion: ").strip() == "DELETE"


def confirm_trigger(pipeline_id: str, input_fn: InputFn = input) -> bool:
    print(f"WARNING: This will start the content update process for pipeline {pipeline_id}!")
    print(f"Note: This endpoint supports {TRIGGER_RATE_LIMIT_PER_MINUTE} calls in 1 minute per tenant.")
    return input_fn("Are you sure you want to trigger this pipeline? (yes/no): ").strip() == "yes"


def _print_json(data: Any) -> None:
    if hasattr(data, "model_dump"):
        data = data.model_dump(mode="json")
    print(json.dumps(data, indent=2, default=str))


def _pipeline_id(args: argparse.Namespace, config: GroundingConfig) -> str:
    pipeline_id = args.pipeline_id or config.pipeline_id
    if not pipeline_id:
        raise ValidationError("Pipeline ID is required")
    return pipeline_id


def cmd_configure(args: argparse.Namespace, config: GroundingConfig, store: ConfigStore) -> int:
    """Persist connection settings."""
    changes = {
        "service_url": args.service_url,
        "client_id": args.client_id,
        "authorization_endpoint": args.authorization_endpoint,
        "token_endpoint": args.token_endpoint,
        "destination_name": args.destination,
    }
    changes = {key: value for key, value in changes.items() if value is not None}
    if not changes:
        print("Nothing to configure", file=sys.stderr)
        return 1

    config = store.update(config, **changes)
    if config.effective_token_endpoint:
        print(f"Token endpoint: {config.effective_token_endpoint}")
    return 0


def cmd_store_credentials(args: argparse.Namespace, config: GroundingConfig, store: ConfigStore) -> int:
    """Store certificate and key read from the given files."""
    cert_text = Path(args.cert_input).read_text(encoding="utf-8")
    key_text = Path(args.key_input).read_text(encoding="utf-8")

    credential = CredentialStore(config.credentials_dir).store(cert_text, key_text, args.cert_name, args.key_name)
    store.update(config, cert_file=str(credential.cert_path), key_file=str(credential.key_path))
    print(f"Certificate: {credential.cert_path}")
    print(f"Key: {credential.key_path}")
    return 0


def cmd_token(args: argparse.Namespace, manager: PipelineManager) -> int:
    token = manager.acquire_token()
    print(f"Token: {token.preview()}")
    return 0


def cmd_list(args: argparse.Namespace, manager: PipelineManager) -> int:
    _print_json(manager.list_pipelines())
    return 0


def cmd_refresh(args: argparse.Namespace, manager: PipelineManager) -> int:
    records = manager.refresh_registry()
    _print_json({pipeline_id: record.to_storage_dict() for pipeline_id, record in records.items()})
    return 0


def cmd_create(args: argparse.Namespace, manager: PipelineManager) -> int:
    response = manager.create_pipeline(args.destination)
    _print_json(response)
    return 0 if response.status == CreateStatus.CREATED else 1


def cmd_status(args: argparse.Namespace, manager: PipelineManager) -> int:
    _print_json(manager.get_pipeline_status(_pipeline_id(args, manager.config)))
    return 0


def cmd_executions(args: argparse.Namespace, manager: PipelineManager) -> int:
    _print_json(manager.list_executions(_pipeline_id(args, manager.config), top=args.top, skip=args.skip))
    return 0


def cmd_execution(args: argparse.Namespace, manager: PipelineManager) -> int:
    _print_json(manager.get_execution(_pipeline_id(args, manager.config), args.execution_id))
    return 0


def cmd_documents(args: argparse.Namespace, manager: PipelineManager) -> int:
    pipeline_id = _pipeline_id(args, manager.config)
    _print_json(manager.list_documents(pipeline_id, top=args.top, skip=args.skip, execution_id=args.execution_id))
    return 0


def cmd_document(args: argparse.Namespace, manager: PipelineManager) -> int:
    _print_json(manager.get_document(_pipeline_id(args, manager.config), args.document_id, execution_id=args.execution_id))
    return 0


def cmd_check(args: argparse.Namespace, manager: PipelineManager) -> int:
    _print_json(manager.check_all(_pipeline_id(args, manager.config), top=args.top, skip=args.skip))
    return 0


def cmd_summary(args: argparse.Namespace, manager: PipelineManager) -> int:
    """Configuration overview and registered pipelines."""
    _print_json(manager.summary())
    return 0


def cmd_trigger(args: argparse.Namespace, manager: PipelineManager, input_fn: InputFn = input) -> int:
    pipeline_id = _pipeline_id(args, manager.config)
    if not args.yes and not confirm_trigger(pipeline_id, input_fn):
        print("Pipeline trigger cancelled.")
        return 0

    response = manager.trigger_pipeline(pipeline_id)
    _print_json(response)
    return 0 if response.status == TriggerStatus.ACCEPTED else 1


def cmd_delete(args: argparse.Namespace, manager: PipelineManager, input_fn: InputFn = input) -> int:
    pipeline_id = _pipeline_id(args, manager.config)
    if not args.yes and not confirm_delete(pipeline_id, input_fn):
        print("Pipeline deletion cancelled.")
        return 0

    response = manager.delete_pipeline(pipeline_id)
    _print_json(response)
    return 1 if response.status == DeleteStatus.FAILED else 0


def cmd_registry(args: argparse.Namespace, config: GroundingConfig, store: ConfigStore) -> int:
    registry = create_registry(config.pipelines_file, config.registry_engine)
    _print_json({pipeline_id: record.to_storage_dict() for pipeline_id, record in registry.records().items()})
    return 0


# Commands that only touch local files
LOCAL_COMMANDS = {
    "configure": cmd_configure,
    "store-credentials": cmd_store_credentials,
    "registry": cmd_registry,
}

# Commands run through the pipeline manager
MANAGER_COMMANDS = {
    "token": cmd_token,
    "list": cmd_list,
    "refresh": cmd_refresh,
    "create": cmd_create,
    "status": cmd_status,
    "executions": cmd_executions,
    "execution": cmd_execution,
    "documents": cmd_documents,
    "document": cmd_document,
    "check": cmd_check,
    "summary": cmd_summary,
    "trigger": cmd_trigger,
    "delete": cmd_delete,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="docgrounding", description="Document grounding pipeline management")
    parser.add_argument("--config", default="joule_config.properties", help="Properties file with connection settings")
    parser.add_argument("--pipelines-file", help="Local pipeline registry file")
    parser.add_argument("--engine", choices=["auto", "json", "text"], help="Registry persistence engine")
    parser.add_argument("--log-level", help="Log level (default INFO)")
    parser.add_argument("--log-file", help="Optional log file")

    sub = parser.add_subparsers(dest="command", required=True)

    configure = sub.add_parser("configure", help="Save connection settings")
    configure.add_argument("--service-url")
    configure.add_argument("--client-id")
    configure.add_argument("--authorization-endpoint")
    configure.add_argument("--token-endpoint")
    configure.add_argument("--destination")

    store_credentials = sub.add_parser("store-credentials", help="Store certificate and key")
    store_credentials.add_argument("cert_input", help="File holding the certificate value")
    store_credentials.add_argument("key_input", help="File holding the key value")
    store_credentials.add_argument("--cert-name", default="doc-grounding.crt")
    store_credentials.add_argument("--key-name", default="doc-grounding.key")

    sub.add_parser("token", help="Acquire an access token")
    sub.add_parser("list", help="List remote pipelines")
    sub.add_parser("refresh", help="Replace the local registry with the remote listing")
    sub.add_parser("registry", help="Show the local registry")
    sub.add_parser("summary", help="Show the configuration summary and registered pipelines")

    create = sub.add_parser("create", help="Create a WorkZone pipeline")
    create.add_argument("--destination", help="Destination name (defaults to the configured one)")

    for name in ("status", "trigger", "delete"):
        command = sub.add_parser(name, help=f"{name.capitalize()} a pipeline")
        command.add_argument("pipeline_id", nargs="?")
        if name != "status":
            command.add_argument("--yes", action="store_true", help="Skip confirmation")

    paged_commands = (
        ("executions", "List executions of a pipeline"),
        ("documents", "List documents of a pipeline"),
        ("check", "Show status, executions and documents of a pipeline"),
    )
    for name, help_text in paged_commands:
        command = sub.add_parser(name, help=help_text)
        command.add_argument("pipeline_id", nargs="?")
        command.add_argument("--top", type=int, default=100)
        command.add_argument("--skip", type=int, default=0)
        if name == "documents":
            command.add_argument("--execution-id")

    execution = sub.add_parser("execution", help="Show one execution")
    execution.add_argument("pipeline_id")
    execution.add_argument("execution_id")

    document = sub.add_parser("document", help="Show one document")
    document.add_argument("pipeline_id")
    document.add_argument("document_id")
    document.add_argument("--execution-id")

    return parser


def load_config(args: argparse.Namespace, store: ConfigStore) -> GroundingConfig:
    """Defaults, then the properties file, then environment, then flags."""
    config = store.load().with_env_overrides()

    changes = {}
    if args.pipelines_file:
        changes["pipelines_file"] = Path(args.pipelines_file)
    if args.engine:
        changes["registry_engine"] = args.engine
    if args.log_level:
        changes["log_level"] = args.log_level
    if args.log_file:
        changes["log_file"] = Path(args.log_file)

    return replace(config, **changes)


def main(argv: Optional[List[str]] = None, manager_factory: Callable[..., PipelineManager] = PipelineManager) -> int:
    args = build_parser().parse_args(argv)

    store = ConfigStore(Path(args.config))
    try:
        config = load_config(args, store)
    except GroundingError as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1

    setup_logging(config.log_level, config.log_file)

    try:
        if args.command in LOCAL_COMMANDS:
            return LOCAL_COMMANDS[args.command](args, config, store)

        manager = manager_factory(config, config_store=store)
        return MANAGER_COMMANDS[args.command](args, manager)

    except GroundingError as e:
        logger.error(str(e))
        return 1

    except OSError as e:
        logger.error(f"File error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
