"""
SpecTap CLI

Command-line interface for serving, checking and mocking API contracts.

Commands:
    serve       - Start contract-enforcing HTTP server
    validate    - Load a contract and report structural problems
    mock        - Print generated success bodies for operations

Examples:
    # Serve mock responses
    spectap serve weather.yaml --mode mock --port 8080

    # Serve real handlers wired in myapp.handlers.HANDLERS
    spectap serve weather.yaml --mode live --handlers myapp.handlers:HANDLERS

    # Check a contract
    spectap validate weather.yaml

    # Print the mock body of one operation
    spectap mock weather.yaml --operation "GET /weather"
"""

import argparse
import importlib
import json
import logging
import sys
from typing import List, Optional

from .common import MODES, get_mode_from_env
from .contract import ContractDocument, SpecInvalid, SpecRegistry
from .runtime import (
    DEFAULT_MAX_DEPTH,
    ContractServer,
    HandlerRegistry,
    MockGenerator,
    ServerConfig,
)


def load_handlers(reference: str) -> HandlerRegistry:
    """
    Import a handler mapping given as 'module:attribute'.

    The attribute may be a HandlerRegistry or a dict of identifier to callable.

    Raises:
        ValueError: If the reference is malformed or the attribute has the wrong type
        ImportError: If the module cannot be imported
    """
    module_name, _, attribute = reference.partition(':')
    if not module_name or not attribute:
        raise ValueError(f"Handler reference must look like 'module:attribute', got '{reference}'")

    module = importlib.import_module(module_name)
    target = getattr(module, attribute)

    if isinstance(target, HandlerRegistry):
        return target
    if isinstance(target, dict):
        return HandlerRegistry(target)
    raise ValueError(f"{reference} must be a HandlerRegistry or a dict, got {type(target).__name__}")


def _load_document(path: str) -> ContractDocument:
    try:
        return SpecRegistry().load_file(path)
    except SpecInvalid as e:
        print(f"❌ Invalid contract: {e}")
        sys.exit(1)
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Failed to load contract: {e}")
        sys.exit(1)


def cmd_serve(args):
    """
    Start the contract server.

    Args:
        args: Parsed command-line arguments
    """
    print(f"🛰  SpecTap Contract Server")
    print(f"   Contract: {args.contract}")

    try:
        mode = args.mode or get_mode_from_env()
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)

    handlers = None
    if args.handlers:
        try:
            handlers = load_handlers(args.handlers)
        except (ImportError, AttributeError, ValueError) as e:
            print(f"❌ Failed to load handlers: {e}")
            sys.exit(1)
        print(f"   Handlers: {len(handlers)} from {args.handlers}")
    elif mode == 'live':
        print("⚠️  Warning: live mode without --handlers; every operation will report a missing handler")

    config = ServerConfig(
        mode=mode,
        max_depth=args.max_depth,
        host=args.host,
        port=args.port,
        log_level=args.log_level,
        admin_enabled=not args.no_admin
    )

    document = _load_document(args.contract)
    server = ContractServer(document, config=config, handlers=handlers)

    try:
        server.start()
    except KeyboardInterrupt:
        print("\n\n👋 Contract server stopped")


def cmd_validate(args):
    """
    Load a contract and report its operations.

    Args:
        args: Parsed command-line arguments
    """
    print(f"✓ SpecTap Contract Validation")
    print(f"   Contract: {args.contract}")

    document = _load_document(args.contract)

    print(f"   Title: {document.title} {document.version}")
    print(f"   Dialect: {document.dialect}")
    print(f"   Schemas: {len(document.definitions)}")
    print(f"   Operations: {len(document.operations)}")
    print()

    for operation in document.operations:
        names = ', '.join(f"{p.name} ({p.location})" for p in operation.parameters) or '-'
        print(f"  • {operation.key} -> {operation.handler_id}")
        print(f"    Parameters: {names}")

    print()
    print("✅ Contract is valid")


def cmd_mock(args):
    """
    Print generated success bodies.

    Args:
        args: Parsed command-line arguments
    """
    document = _load_document(args.contract)
    generator = MockGenerator(document.resolver, max_depth=args.max_depth)

    operations = document.operations
    if args.operation:
        method, _, path = args.operation.partition(' ')
        operation = document.get_operation(method, path.strip())
        if operation is None:
            print(f"❌ No operation '{args.operation}' in contract")
            sys.exit(1)
        operations = (operation,)

    output = {
        operation.key: {
            'status': operation.success_status,
            'body': generator.generate(operation.success_schema)
        }
        for operation in operations
    }
    print(json.dumps(output, indent=2))


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog='spectap',
        description="SpecTap - Contract-driven request validation and mocking",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve mock responses
  %(prog)s serve weather.yaml --mode mock --port 8080

  # Serve real handlers
  %(prog)s serve weather.yaml --mode live --handlers myapp.handlers:HANDLERS

  # Validate a contract
  %(prog)s validate weather.yaml

  # Print mock bodies
  %(prog)s mock weather.yaml --operation "GET /weather"
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # --- SERVE command ---
    serve_parser = subparsers.add_parser('serve', help='Start contract server')
    serve_parser.add_argument('contract', help='Contract file (YAML or JSON)')
    serve_parser.add_argument('-m', '--mode', choices=list(MODES),
                              help='Dispatch mode (default: $SPECTAP_MODE or mock)')
    serve_parser.add_argument('--handlers', help="Handler mapping as 'module:attribute'")
    serve_parser.add_argument('--host', default='127.0.0.1', help='Host to bind (default: 127.0.0.1)')
    serve_parser.add_argument('-p', '--port', type=int, default=8080, help='Port to bind (default: 8080)')
    serve_parser.add_argument('--max-depth', type=int, default=DEFAULT_MAX_DEPTH,
                              help=f'Recursion bound for validation and mocks (default: {DEFAULT_MAX_DEPTH})')
    serve_parser.add_argument('--log-level', default='info', choices=['debug', 'info', 'warning', 'error'],
                              help='Log level (default: info)')
    serve_parser.add_argument('--no-admin', action='store_true', help='Disable admin API')

    # --- VALIDATE command ---
    validate_parser = subparsers.add_parser('validate', help='Validate a contract')
    validate_parser.add_argument('contract', help='Contract file (YAML or JSON)')

    # --- MOCK command ---
    mock_parser = subparsers.add_parser('mock', help='Print generated success bodies')
    mock_parser.add_argument('contract', help='Contract file (YAML or JSON)')
    mock_parser.add_argument('-o', '--operation', help='Single operation, e.g. "GET /weather/{id}"')
    mock_parser.add_argument('--max-depth', type=int, default=DEFAULT_MAX_DEPTH,
                             help=f'Recursion bound for mocks (default: {DEFAULT_MAX_DEPTH})')

    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, getattr(args, 'log_level', 'info').upper()),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    if args.command == 'serve':
        cmd_serve(args)
    elif args.command == 'validate':
        cmd_validate(args)
    elif args.command == 'mock':
        cmd_mock(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == '__main__':
    main()
