"""Command-line entry point for the taste-to-lead pipeline."""

import argparse
import asyncio
import json
import logging
import mimetypes
import sys
from pathlib import Path

import httpx
from pydantic import ValidationError

from taste_to_lead.config import Settings
from taste_to_lead.db.staging_store import StagingStorage
from taste_to_lead.logging import configure_logging, get_logger
from taste_to_lead.matching.listing_vibe import compute_listing_vibe_vector
from taste_to_lead.matching.tagger import VibeTagger
from taste_to_lead.models import BatchStatus, RoomType
from taste_to_lead.staging.planner import (
    RoomInput,
    audit_plan,
    generate_heuristic_plan,
    load_catalog,
    validate_plan_against_catalog,
)
from taste_to_lead.staging.prompts import build_staging_prompt
from taste_to_lead.staging.provider import (
    GeminiImageGenerator,
    GeminiStagingProvider,
    split_data_url,
)
from taste_to_lead.staging.quality_gate import assess_prompt_for_banned_terms
from taste_to_lead.staging.queue import StagingQueue
from taste_to_lead.staging.service import (
    BatchValidationError,
    StagingBatchRequest,
    StagingService,
)
from taste_to_lead.utils.api_gateway import ApiGateway

logger = get_logger(__name__)


def image_gateway(settings: Settings) -> ApiGateway:
    return ApiGateway(
        "image",
        delay_seconds=settings.image_gateway_delay_seconds,
        max_retries=settings.gateway_max_retries,
        base_delay=settings.gateway_base_delay_seconds,
    )


def tagger_gateway(settings: Settings) -> ApiGateway:
    return ApiGateway(
        "tagger",
        delay_seconds=settings.tagger_gateway_delay_seconds,
        max_retries=settings.gateway_max_retries,
        base_delay=settings.gateway_base_delay_seconds,
    )


def _save_outputs(status: BatchStatus, output_dir: Path) -> None:
    output_dir.mkdir(parents=True, exist_ok=True)
    for job in status.jobs:
        if not job.output_image_url:
            continue
        decoded = split_data_url(job.output_image_url)
        if decoded is None:
            continue
        mime_type, data = decoded
        ext = mimetypes.guess_extension(mime_type) or ".png"
        path = output_dir / f"{status.batch_id}-{job.vibe_id.value.lower()}{ext}"
        path.write_bytes(data)
        logger.info("staged_image_saved", job_id=job.job_id, path=str(path))


def _print_status(status: BatchStatus) -> None:
    """Print batch status without the (large) inline image payloads."""
    summary = status.model_dump(mode="json")
    for job in summary["jobs"]:
        url = job["output_image_url"]
        if url and url.startswith("data:"):
            job["output_image_url"] = f"{url[:32]}... ({len(url)} chars)"
    print(json.dumps(summary, indent=2))


async def run_stage(
    settings: Settings,
    image_path: Path,
    fields: dict[str, str],
    *,
    output_dir: Path | None = None,
) -> BatchStatus:
    """Stage a local room photo in the requested vibes and wait for every job to finish.

    Raises:
        BatchValidationError: If the submission is malformed.
    """
    mime_type = mimetypes.guess_type(image_path.name)[0] or "image/jpeg"
    request = StagingBatchRequest.from_form(fields, image_path.read_bytes(), mime_type)

    storage = StagingStorage(settings.database_path)
    await storage.initialize()
    try:
        async with httpx.AsyncClient(timeout=settings.image_fetch_timeout_seconds) as http:
            provider = GeminiStagingProvider(
                GeminiImageGenerator(
                    settings.gemini_api_key.get_secret_value(), settings.image_model
                ),
                image_gateway(settings),
                http,
            )
            async with StagingQueue(
                storage,
                provider,
                concurrency=settings.staging_concurrency,
                min_interval_seconds=settings.staging_min_interval_seconds,
            ) as queue:
                service = StagingService(storage, queue)
                response = await service.submit_batch(request)
                await queue.join()
            status = await service.get_batch_status(response.batch_id)
    finally:
        await storage.close()

    if output_dir is not None:
        _save_outputs(status, output_dir)
    return status


async def run_tag(settings: Settings, listing: str) -> str:
    tagger = VibeTagger(
        settings.anthropic_api_key.get_secret_value(),
        tagger_gateway(settings),
        model=settings.tagger_model,
    )
    return await tagger.tag_listing(listing)


def run_plan(catalog_path: Path, room_path: Path) -> int:
    """Print a heuristic staging plan. Returns the process exit code."""
    try:
        catalog = load_catalog(catalog_path)
        room = RoomInput.model_validate_json(room_path.read_text(encoding="utf-8-sig"))
    except (OSError, ValidationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    plan = generate_heuristic_plan(room, catalog)
    validation = validate_plan_against_catalog(plan, catalog)
    if not validation.ok:
        print(validation.model_dump_json(indent=2), file=sys.stderr)
        return 1
    print(plan.model_dump_json(indent=2))
    return 0


def run_audit(catalog_path: Path, plan_path: Path) -> int:
    """Print audit problems for a plan file, or OK. Returns the process exit code."""
    try:
        catalog = load_catalog(catalog_path)
        plan = json.loads(plan_path.read_text(encoding="utf-8-sig"))
    except (OSError, ValidationError, json.JSONDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    if not isinstance(plan, dict):
        print("Error: plan must be a JSON object.", file=sys.stderr)
        return 2

    errors = audit_plan(plan, catalog)
    for error in errors:
        print(error, file=sys.stderr)
    if errors:
        return 1
    print("OK")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Taste-to-lead - vibe matching and virtual staging pipeline"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug-level logging for troubleshooting",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    prompt = commands.add_parser("prompt", help="Print the staging prompt pair for a vibe")
    prompt.add_argument("vibe", help="Vibe name, e.g. Purist")
    prompt.add_argument("room_type", choices=[rt.value for rt in RoomType])
    prompt.add_argument("--notes", default=None, help="Free-text room notes")
    prompt.add_argument("--strict", action="store_true", help="Use the strict negative prompt")

    gate = commands.add_parser("gate", help="Run the prompt quality gate")
    gate.add_argument("prompt")
    gate.add_argument("negative_prompt")

    listing = commands.add_parser("listing-vibe", help="Infer a listing's vibe vector from text")
    listing.add_argument("--description", default=None)
    listing.add_argument("--photos-text", default=None)
    listing.add_argument(
        "--structured", default=None, help="Structured listing fields as a JSON object"
    )

    tag = commands.add_parser("tag", help="Classify a listing photo URL or description")
    tag.add_argument("listing", help="http(s) image URL or description text")

    plan = commands.add_parser("plan", help="Plan catalog furniture for a room")
    plan.add_argument("catalog", type=Path, help="Catalog JSON file")
    plan.add_argument("room", type=Path, help="Room JSON file: room_type, vibe, dimensions_ft")

    audit = commands.add_parser("audit", help="Audit a staging plan file against a catalog")
    audit.add_argument("catalog", type=Path, help="Catalog JSON file")
    audit.add_argument("plan", type=Path, help="Plan JSON file")

    stage = commands.add_parser("stage", help="Stage a local room photo in one or more vibes")
    stage.add_argument("image", type=Path)
    stage.add_argument("room_type", choices=[rt.value for rt in RoomType])
    stage.add_argument(
        "--vibes", default=None, help='JSON array of vibe names, e.g. \'["Purist","Nomad"]\''
    )
    stage.add_argument("--notes", default=None, help="Free-text room notes")
    stage.add_argument("--strict", action="store_true", help="Use the strict negative prompt")
    stage.add_argument(
        "--output-dir", type=Path, default=None, help="Write staged images to this directory"
    )
    return parser


def main() -> None:
    """Main entry point."""
    args = _build_parser().parse_args()

    try:
        settings = Settings()
    except Exception as e:
        print(f"Error: Failed to load settings. {e}", file=sys.stderr)
        sys.exit(1)

    configure_logging(
        json_output=settings.log_json,
        level=logging.DEBUG if args.debug else logging.INFO,
    )

    if args.command == "prompt":
        built = build_staging_prompt(
            args.vibe, args.room_type, args.notes, "strict" if args.strict else "normal"
        )
        print(built.model_dump_json(indent=2))
    elif args.command == "gate":
        flags = assess_prompt_for_banned_terms(args.prompt, args.negative_prompt)
        print(json.dumps({"passed": not flags, "flags": flags}, indent=2))
        if flags:
            sys.exit(1)
    elif args.command == "listing-vibe":
        try:
            structured = json.loads(args.structured) if args.structured else None
        except json.JSONDecodeError as e:
            print(f"Error: --structured must be a JSON object. {e}", file=sys.stderr)
            sys.exit(2)
        if structured is not None and not isinstance(structured, dict):
            print("Error: --structured must be a JSON object.", file=sys.stderr)
            sys.exit(2)
        result = compute_listing_vibe_vector(args.description, args.photos_text, structured)
        print(result.model_dump_json(indent=2))
    elif args.command == "tag":
        print(asyncio.run(run_tag(settings, args.listing)))
    elif args.command == "plan":
        if code := run_plan(args.catalog, args.room):
            sys.exit(code)
    elif args.command == "audit":
        if code := run_audit(args.catalog, args.plan):
            sys.exit(code)
    elif args.command == "stage":
        if not settings.has_image_provider():
            logger.warning("image_provider_not_configured")
        fields = {"roomType": args.room_type}
        if args.vibes:
            fields["vibes"] = args.vibes
        if args.notes:
            fields["roomNotes"] = args.notes
        if args.strict:
            fields["strictness"] = "strict"
        try:
            status = asyncio.run(
                run_stage(settings, args.image, fields, output_dir=args.output_dir)
            )
        except BatchValidationError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(2)
        _print_status(status)


if __name__ == "__main__":
    main()
