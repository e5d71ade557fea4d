from __future__ import annotations

import argparse
import sys
from contextlib import ExitStack
from pathlib import Path

from dotenv import load_dotenv

from ..api.client import KIND_CLIENT, KIND_PATIENT, KIND_PATIENT_IMMUNIZATIONS, VetspireClient
from ..api.rate_limiter import RateLimiter
from ..api.transport import GraphQLTransport
from ..config.loader import (
    DEFAULT_CONFIG_PATH,
    ConfigError,
    ImportConfig,
    PreconditionError,
    apply_env_overrides,
    load_config,
    require_api_credentials,
    require_immunization_ids,
    require_location_id,
)
from ..logging.error_log import ResultArtifactWriter
from ..logging.init import enable_debug, log_summary, setup_logging
from ..models.config_models import ImportOptions, TransformSettings
from ..models.snapshot import RemoteSnapshot
from ..models.vaccine import VaccineDeliveryRow
from ..pdf.extractors import (
    PdfExtractionError,
    PositionedExtractor,
    PyMuPdfPositionedExtractor,
    PypdfTextExtractor,
    TextExtractor,
)
from ..pdf.kv_parser import parse_client_patient_records
from ..pdf.vaccine_structured import parse_vaccine_records_structured
from ..pdf.vaccine_text import parse_vaccine_records
from ..services.csv_io import CsvFormatError, read_records_csv, write_records_csv
from ..services.immunizations import (
    ProposalsFormatError,
    build_proposals,
    existing_immunizations_by_patient,
    read_proposals,
    reconcile_immunizations,
    write_proposals,
    write_vaccine_rows,
)
from ..services.location_update import update_imported_locations
from ..services.orchestrator import reconcile
from ..services.summary import render_immunization_summary_line, render_summary_line
from ..services.transformer import build_patient_lookup

"""CLI entrypoint.

Subcommands:
- convert-pdf             key/value client-patient report -> CSV
- import-csv              reconcile clients and patients from the CSV
- propose-immunizations   vaccine report -> immunization proposals JSON
- import-immunizations    reconcile proposals against existing immunizations
- update-import           re-point imported clients to the configured location

Every run is a dry run unless --full-send is given. Exit codes: 0 all records
succeeded, 2 some records failed, 1 fatal (config, missing input, missing
precondition, any uncaught error).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

_DOMAIN_ERRORS = (ConfigError, PreconditionError, CsvFormatError, ProposalsFormatError, PdfExtractionError)


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env; override=True so the file wins over the inherited environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _common_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--full-send", action="store_true", help="Actually send API requests (default: dry run)")
    common.add_argument("--limit", type=int, default=None, help="Process only the first N records")
    common.add_argument("--verbose", action="store_true", help="Debug logging (GraphQL bodies included)")
    common.add_argument("--track-results", action="store_true", help="Write results / failures JSON artifacts")
    common.add_argument("--config", type=Path, default=None, help=f"Config YAML (default: {DEFAULT_CONFIG_PATH})")
    common.add_argument("--output", type=Path, default=None, help="Output directory (overrides output_directory)")
    return common


def _parse_args(argv: list[str]) -> argparse.Namespace:
    common = _common_parser()
    p = argparse.ArgumentParser(prog="vet-import", description="Legacy veterinary records importer")
    sub = p.add_subparsers(dest="command", required=True)

    convert = sub.add_parser("convert-pdf", parents=[common], help="Convert a client-patient PDF report to CSV")
    convert.add_argument("pdf_file", type=Path)

    import_csv = sub.add_parser("import-csv", parents=[common], help="Import clients and patients from CSV")
    import_csv.add_argument("csv_file", type=Path)

    propose = sub.add_parser(
        "propose-immunizations", parents=[common], help="Propose immunizations from a vaccine report PDF"
    )
    propose.add_argument("pdf_file", type=Path)
    propose.add_argument("--structured", action="store_true", help="Use the positioned-text (coordinate) parser")
    propose.add_argument("--no-fetch", action="store_true", help="Do not fetch patients; every row is unmatched")
    propose.add_argument("--dump-rows", action="store_true", help="Also write the parsed rows JSON")

    import_imm = sub.add_parser(
        "import-immunizations", parents=[common], help="Import immunizations from a proposals JSON"
    )
    import_imm.add_argument("proposals_file", type=Path)

    sub.add_parser(
        "update-import", parents=[common], help="Set the primary location on previously imported clients"
    )

    return p.parse_args(argv)


def _options(args: argparse.Namespace) -> ImportOptions:
    return ImportOptions(
        send_api_requests=args.full_send,
        verbose=args.verbose,
        track_results=args.track_results,
        limit=args.limit,
    )


def _output_dir(args: argparse.Namespace, cfg: ImportConfig) -> Path:
    return args.output if args.output is not None else Path(cfg.output_directory)


def _open_transport(stack: ExitStack, cfg: ImportConfig, verbose: bool) -> GraphQLTransport | None:
    """Transport when credentials are configured, else None (offline)."""
    if not (cfg.api.url and cfg.api.api_key):
        return None
    transport = GraphQLTransport(
        cfg.api.url,
        cfg.api.api_key,
        rate_limiter=RateLimiter(cfg.api.min_interval_ms / 1000.0),
        timeout_sec=cfg.api.timeout_sec,
        verbose=verbose,
    )
    return stack.enter_context(transport)


def _log_mode(options: ImportOptions) -> None:
    logger = setup_logging()
    if options.send_api_requests:
        logger.info("FULL SEND MODE - real API calls enabled")
    else:
        logger.info("DRY RUN MODE - no remote records will be created or updated")


def _require_file(path: Path) -> bool:
    if not path.exists():
        setup_logging().error(f"File does not exist: {path}")
        return False
    return True


def _cmd_convert_pdf(args: argparse.Namespace, cfg: ImportConfig) -> int:
    logger = setup_logging()
    if not _require_file(args.pdf_file):
        return EXIT_FATAL
    logger.info(f"Reading PDF: {args.pdf_file}")
    text = PypdfTextExtractor().extract_text(args.pdf_file)
    records = parse_client_patient_records(text)
    if args.limit is not None:
        records = records[: args.limit]
    logger.info(f"Parsed {len(records)} client-patient records")
    path = write_records_csv(records, _output_dir(args, cfg))
    logger.info(f"CSV written to: {path}")
    return EXIT_SUCCESS_ALL


def _cmd_import_csv(args: argparse.Namespace, cfg: ImportConfig) -> int:
    logger = setup_logging()
    options = _options(args)
    if options.send_api_requests:
        require_api_credentials(cfg, "--full-send")
    if not _require_file(args.csv_file):
        return EXIT_FATAL

    logger.info(f"Reading CSV file: {args.csv_file}")
    records = read_records_csv(args.csv_file)
    logger.info(f"Found {len(records)} client-patient records")
    if options.limit is not None:
        logger.info(f"Processing first {min(options.limit, len(records))} records (limit applied)")
    _log_mode(options)

    settings = TransformSettings(
        deceased_codes=frozenset(cfg.deceased_codes),
        import_notes=cfg.import_notes,
        location_id=cfg.location_id,
    )
    with ExitStack() as stack:
        transport = _open_transport(stack, cfg, options.verbose)
        client = VetspireClient(transport, options, page_size=cfg.api.page_size)
        snapshot = RemoteSnapshot(
            clients=client.fetch_all_existing(KIND_CLIENT),
            patients=client.fetch_all_existing(KIND_PATIENT),
        )
        result = reconcile(
            records,
            snapshot,
            client,
            options,
            settings=settings,
            progress_every=cfg.progress_every,
            writer=ResultArtifactWriter(_output_dir(args, cfg), options.run_tag),
        )

    log_summary(render_summary_line(result)[len("SUMMARY "):])
    if not options.send_api_requests:
        logger.info("(This was a dry run - use --full-send to actually import)")
    return EXIT_PARTIAL_FAILURE if result.failed_count > 0 else EXIT_SUCCESS_ALL


def _read_vaccine_rows(path: Path, positioned: bool, cfg: ImportConfig) -> list[VaccineDeliveryRow]:
    if positioned:
        positioned_extractor: PositionedExtractor = PyMuPdfPositionedExtractor()
        pages = positioned_extractor.extract_positioned(path)
        setup_logging().info("Parsing with the positioned-text parser")
        return parse_vaccine_records_structured(pages, tolerance=cfg.pdf.row_tolerance)
    text_extractor: TextExtractor = PypdfTextExtractor()
    return parse_vaccine_records(text_extractor.extract_text(path))


def _cmd_propose_immunizations(args: argparse.Namespace, cfg: ImportConfig) -> int:
    logger = setup_logging()
    if not args.no_fetch:
        require_api_credentials(cfg, "patient lookup (use --no-fetch to skip)")
    if not _require_file(args.pdf_file):
        return EXIT_FATAL

    output_dir = _output_dir(args, cfg)
    logger.info(f"Reading vaccine PDF: {args.pdf_file}")
    rows = _read_vaccine_rows(args.pdf_file, args.structured or cfg.pdf.backend == "positioned", cfg)
    if args.limit is not None:
        rows = rows[: args.limit]
    logger.info(f"Parsed {len(rows)} vaccine delivery rows")

    if args.dump_rows:
        logger.info(f"Parsed rows written to: {write_vaccine_rows(rows, output_dir)}")

    lookup: dict[str, str] = {}
    if args.no_fetch:
        logger.info("Skipping patient fetch (no-fetch mode). Proposals will be unmatched.")
    else:
        with ExitStack() as stack:
            transport = _open_transport(stack, cfg, args.verbose)
            client = VetspireClient(transport, ImportOptions(verbose=args.verbose), page_size=cfg.api.page_size)
            lookup = build_patient_lookup(client.fetch_all_existing(KIND_PATIENT))
        logger.info(f"Built lookup with {len(lookup)} keys")

    proposal_set = build_proposals(rows, lookup)
    path = write_proposals(
        proposal_set,
        output_dir,
        source_pdf=args.pdf_file,
        total_rows=len(rows),
        used_lookup=not args.no_fetch,
        location_id_present=bool(cfg.location_id),
        provider_id_present=bool(cfg.provider_id),
    )
    logger.info(f"Proposals written to: {path}")
    return EXIT_SUCCESS_ALL


def _cmd_import_immunizations(args: argparse.Namespace, cfg: ImportConfig) -> int:
    logger = setup_logging()
    options = _options(args)
    location_id, provider_id = require_immunization_ids(cfg)
    if options.send_api_requests:
        require_api_credentials(cfg, "--full-send")
    if not _require_file(args.proposals_file):
        return EXIT_FATAL

    drafts = read_proposals(args.proposals_file)
    logger.info(f"Loaded {len(drafts)} proposals from {args.proposals_file.resolve()}")
    if options.limit is not None:
        logger.info(f"Processing first {min(options.limit, len(drafts))} (limit applied)")
    _log_mode(options)

    with ExitStack() as stack:
        transport = _open_transport(stack, cfg, options.verbose)
        client = VetspireClient(transport, options, page_size=cfg.api.page_size)
        existing = existing_immunizations_by_patient(client.fetch_all_existing(KIND_PATIENT_IMMUNIZATIONS))
        result = reconcile_immunizations(
            drafts,
            existing,
            client,
            options,
            location_id,
            provider_id,
            progress_every=cfg.progress_every,
            writer=ResultArtifactWriter(_output_dir(args, cfg), options.run_tag),
        )

    log_summary(render_immunization_summary_line(result)[len("SUMMARY "):])
    return EXIT_PARTIAL_FAILURE if result.failed_count > 0 else EXIT_SUCCESS_ALL


def _cmd_update_import(args: argparse.Namespace, cfg: ImportConfig) -> int:
    logger = setup_logging()
    options = _options(args)
    location_id = require_location_id(cfg)
    if options.send_api_requests:
        require_api_credentials(cfg, "--full-send")
    logger.info(f"Target primary location: {location_id}")
    _log_mode(options)

    with ExitStack() as stack:
        transport = _open_transport(stack, cfg, options.verbose)
        client = VetspireClient(transport, options, page_size=cfg.api.page_size)
        result = update_imported_locations(
            client.fetch_all_existing(KIND_CLIENT),
            client.fetch_all_existing(KIND_PATIENT),
            client,
            options,
            location_id,
            import_notes=cfg.import_notes,
            progress_every=cfg.progress_every,
            writer=ResultArtifactWriter(_output_dir(args, cfg), options.run_tag),
        )

    log_summary(render_summary_line(result)[len("SUMMARY "):])
    if not options.send_api_requests:
        logger.info("(This was a dry run - use --full-send to actually update)")
    return EXIT_PARTIAL_FAILURE if result.failed_count > 0 else EXIT_SUCCESS_ALL


_COMMANDS = {
    "convert-pdf": _cmd_convert_pdf,
    "import-csv": _cmd_import_csv,
    "propose-immunizations": _cmd_propose_immunizations,
    "import-immunizations": _cmd_import_immunizations,
    "update-import": _cmd_update_import,
}


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None のときのみ sys.argv を読む (テストで main([...]) を直接呼ぶため)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)

    _load_env_file(Path(".env"), override=True)

    if args.verbose:
        enable_debug()

    try:
        config_path = args.config if args.config is not None else DEFAULT_CONFIG_PATH
        cfg = apply_env_overrides(load_config(config_path, required=args.config is not None))
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        return _COMMANDS[args.command](args, cfg)
    except _DOMAIN_ERRORS as e:
        logger.error(f"{args.command}: {e}")
        return EXIT_FATAL
    except Exception as e:
        logger.error(f"{args.command} failed: {e!r}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
