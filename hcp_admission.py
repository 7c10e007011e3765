#!/usr/bin/env python3
"""
HostedCluster Admission Validation

Validates HostedCluster and NodePool resources before they are persisted:
KubeVirt infrastructure version gate and JSON-patch annotation shape.

Features:
- check: validate resources from a YAML manifest against live infra clusters
- serve: run the validating admission webhook (AdmissionReview over HTTPS)
- Supported-version minimums configurable by flag or environment
- Text or JSON logging
"""

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

import yaml

from admission import AdmissionWebhook, InfraClientRegistry, WebhookServer
from admission.webhook import decide_all
from lib import (
    AdmissionConfig,
    KubeClient,
    ManagementInfraClientFactory,
    __version__,
    __version_date__,
    setup_logging,
)
from lib.constants import (
    EXIT_FAILURE,
    EXIT_INTERRUPT,
    EXIT_SUCCESS,
    OPERATION_CREATE,
    VALIDATED_OPERATIONS,
    WEBHOOK_DEFAULT_HOST,
    WEBHOOK_DEFAULT_PORT,
)
from lib.exceptions import AdmissionError, ValidationError
from lib.validation import InputValidator


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="HostedCluster admission validation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate a HostedCluster manifest against its infrastructure cluster
  %(prog)s check --manifest hostedcluster.yaml --context mgmt

  # Validate an update with a stricter KubeVirt minimum
  %(prog)s check --manifest nodepool.yaml --operation UPDATE --min-kubevirt-version 1.1.0

  # Run the admission webhook in-cluster
  %(prog)s serve --in-cluster --tls-cert /certs/tls.crt --tls-key /certs/tls.key
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__} ({__version_date__})")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--context", help="Kubernetes context of the management cluster")
    common.add_argument(
        "--in-cluster",
        action="store_true",
        help="Use the pod service account instead of a kubeconfig",
    )
    common.add_argument("--min-kubevirt-version", help="Minimum supported KubeVirt version")
    common.add_argument("--min-kubernetes-version", help="Minimum supported infra cluster Kubernetes version")
    common.add_argument("--timeout", type=float, help="Per-request deadline in seconds")
    common.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    common.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log output format",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser("check", parents=[common], help="Validate resources from a manifest")
    check_parser.add_argument("--manifest", required=True, help="YAML file with HostedCluster/NodePool documents")
    check_parser.add_argument(
        "--operation",
        choices=list(VALIDATED_OPERATIONS),
        default=OPERATION_CREATE,
        help="Admission operation to validate as",
    )

    serve_parser = subparsers.add_parser("serve", parents=[common], help="Run the admission webhook server")
    serve_parser.add_argument("--host", default=WEBHOOK_DEFAULT_HOST, help="Listen address")
    serve_parser.add_argument("--port", type=int, default=WEBHOOK_DEFAULT_PORT, help="Listen port")
    serve_parser.add_argument("--tls-cert", help="TLS certificate file")
    serve_parser.add_argument("--tls-key", help="TLS private key file")

    return parser.parse_args(argv)


def load_manifest(path: str) -> List[Dict[str, Any]]:
    """Load every non-empty YAML document from a manifest file."""
    with open(path, "r", encoding="utf-8") as f:
        documents = list(yaml.safe_load_all(f))
    return [doc for doc in documents if doc]


def build_webhook(args: argparse.Namespace, logger: logging.Logger) -> AdmissionWebhook:
    """Wire configuration, management client and registry into a webhook."""
    config = AdmissionConfig.from_env(
        min_kubevirt_version=args.min_kubevirt_version,
        min_kubernetes_version=args.min_kubernetes_version,
        request_timeout=args.timeout,
    )
    logger.info(
        "Minimum supported versions: KubeVirt %s, Kubernetes %s",
        config.min_kubevirt_version,
        config.min_kubernetes_version,
    )

    management = KubeClient(context=args.context, in_cluster=args.in_cluster)
    registry = InfraClientRegistry(ManagementInfraClientFactory(management))
    return AdmissionWebhook(registry, config, hosted_cluster_lookup=management.get_hosted_cluster)


def _describe(obj: Any) -> str:
    """Kind namespace/name label for log lines."""
    if not isinstance(obj, dict):
        return "<not an object>"
    metadata = obj.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    return f"{obj.get('kind', '?')} {metadata.get('namespace', '?')}/{metadata.get('name', '?')}"


def run_check(args: argparse.Namespace, webhook: AdmissionWebhook, logger: logging.Logger) -> bool:
    """Validate every resource in the manifest. True if all were allowed."""
    objects = load_manifest(args.manifest)
    if not objects:
        logger.error("No resources found in %s", args.manifest)
        return False

    results = decide_all(webhook, objects, args.operation)

    all_allowed = True
    for obj, result in zip(objects, results):
        label = _describe(obj)
        for warning in result.warnings:
            logger.warning("⚠ %s: %s", label, warning)
        if result.allowed:
            logger.info("✓ %s: allowed", label)
        else:
            all_allowed = False
            logger.error("✗ %s: denied: %s", label, result.reason)

    return all_allowed


def run_serve(args: argparse.Namespace, webhook: AdmissionWebhook, logger: logging.Logger) -> bool:
    server = WebhookServer(
        webhook,
        host=args.host,
        port=args.port,
        cert_file=args.tls_cert,
        key_file=args.tls_key,
    )
    try:
        server.serve_forever()
    finally:
        webhook.registry.close()
        logger.info("Infra client registry closed")
    return True


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logger = setup_logging(args.verbose, args.log_format)

    try:
        InputValidator.validate_all_cli_args(args)
    except ValidationError as exc:
        logger.error("Invalid arguments: %s", exc)
        return EXIT_FAILURE

    logger.info("HostedCluster admission v%s (%s)", __version__, __version_date__)

    try:
        webhook = build_webhook(args, logger)
    except AdmissionError as exc:
        logger.error("Failed to initialize: %s", exc)
        return EXIT_FAILURE

    handlers = {"check": run_check, "serve": run_serve}
    try:
        success = handlers[args.command](args, webhook, logger)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return EXIT_INTERRUPT
    except (OSError, yaml.YAMLError) as exc:
        logger.error("✗ %s", exc, exc_info=args.verbose)
        return EXIT_FAILURE

    return EXIT_SUCCESS if success else EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
