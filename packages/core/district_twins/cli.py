"""
Command-line interface for district constituent twins.

Usage:
    python -m district_twins profile CA-12
    python -m district_twins generate CA-12 -n 10 --format json,csv -o ./output
    python -m district_twins summarize bill.txt --district CA-12 --representative "Jane Doe"
    python -m district_twins chat CA-12 --persona 3 --message "How would this bill affect you?"
    python -m district_twins zips CA-12
    python -m district_twins check 94110 -n 2000 --seed 7
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .cache import create_cache_from_settings
from .census_fetcher import CensusNormalizer
from .config import SUPPORTED_PROVIDERS, Settings
from .exceptions import ConfigurationError, ExportError
from .exporters import SUPPORTED_FORMATS, export_formats
from .geo_tables import DistrictMapper
from .llm_client import create_client_from_settings
from .orchestrator import PersonaOrchestrator
from .policy import PolicySummarizer
from .sampler import PersonaSampler
from .service import ConstituentService, age_group_breakdown, top_occupations
from .statistical_tests import evaluate_sample


# Configure logging
def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )


logger = logging.getLogger(__name__)


def _parse_comma_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _resolve_formats(value: str) -> List[str]:
    raw = (value or "json").strip().lower()
    if raw == "all":
        return list(SUPPORTED_FORMATS)
    formats = _parse_comma_list(raw)
    unknown = [f for f in formats if f not in SUPPORTED_FORMATS]
    if unknown:
        raise ValueError(f"Unsupported format(s): {', '.join(unknown)}")
    return formats


def _load_settings(args) -> Settings:
    settings = Settings.from_env()
    return settings.with_overrides(
        llm_provider=getattr(args, "provider", None),
        cache_dir=Path(args.cache_dir) if getattr(args, "cache_dir", None) else None,
    )


def _build_service(settings: Settings, seed: Optional[int], use_cache: bool = True) -> ConstituentService:
    normalizer = CensusNormalizer.from_settings(settings, seed=seed)
    orchestrator = PersonaOrchestrator(
        create_client_from_settings(settings),
        PersonaSampler(seed=seed),
        max_tokens=settings.max_tokens,
        seed=seed,
    )
    return ConstituentService(
        normalizer,
        orchestrator,
        cache=create_cache_from_settings(settings) if use_cache else None,
        mapper=DistrictMapper(settings.zccd_path),
    )


def cmd_profile(args):
    """Show the normalized Census profile for a region."""
    settings = _load_settings(args)
    service = _build_service(settings, args.seed, use_cache=False)
    profile = asyncio.run(service.get_district_profile(args.region))

    if args.json:
        print(json.dumps(profile.to_dict(), indent=2))
        return 0

    print(f"Region: {profile.region_id} ({profile.provenance.value})")
    print(f"Population: {profile.population:,}")
    print(f"Median income: ${profile.median_income:,}")
    print(f"Median age: {profile.median_age:g}")
    print("\nRace / ethnicity:")
    for key, pct in profile.race_ethnicity.items():
        print(f"  {key:<10} {pct:>3}%")
    print("\nTop occupations:")
    for row in top_occupations(profile):
        print(f"  {row['label']:<30} {row['percentage']:>3}%")
    print("\nAge groups:")
    for row in age_group_breakdown(profile):
        print(f"  {row['bracket']:<6} {row['count']:>9,} ({row['percentage']}%)")
    return 0


def cmd_generate(args):
    """Generate constituents for a region and export them."""
    try:
        formats = _resolve_formats(args.format)
    except ValueError as exc:
        logger.error(str(exc))
        return 1

    settings = _load_settings(args)
    service = _build_service(settings, args.seed, use_cache=not args.no_cache)

    logger.info(f"Generating {args.count} constituents for {args.region}")
    logger.info(f"LLM provider: {settings.llm_provider}")

    async def run():
        if args.refresh:
            return await service.refresh_constituents(args.region, args.count)
        return await service.get_constituents(args.region, args.count)

    batch = asyncio.run(run())
    logger.info(
        f"Batch source: {batch.source}"
        + (" (cached)" if batch.from_cache else "")
        + (f"; fallback reason: {batch.error}" if batch.error else "")
    )

    try:
        paths = export_formats(
            batch.personas,
            args.output,
            basename=args.basename or f"{args.region.replace('-', '_')}_constituents",
            formats=formats,
        )
    except ExportError as exc:
        logger.error(str(exc))
        return 1

    for fmt, path in paths.items():
        print(f"{fmt}: {path}")
    return 0


def cmd_summarize(args):
    """Summarize a policy document."""
    path = Path(args.file)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.error(f"Cannot read {path}: {exc}")
        return 1

    settings = _load_settings(args)
    profile = None
    if args.district:
        service = _build_service(settings, seed=None, use_cache=False)
        profile = asyncio.run(service.get_district_profile(args.district))

    summarizer = PolicySummarizer(
        create_client_from_settings(settings),
        cache=create_cache_from_settings(settings),
        max_tokens=settings.max_tokens,
    )
    print(summarizer.summarize(content, args.district, args.representative, profile))
    return 0


def cmd_chat(args):
    """Ask one persona of a region's batch a question."""
    settings = _load_settings(args)
    service = _build_service(settings, args.seed)
    batch = asyncio.run(service.get_constituents(args.region, max(args.count, args.persona)))

    persona = service.get_constituent_by_id(args.region, f"constituent-{args.persona}")
    if persona is None:
        logger.error(f"No constituent #{args.persona} in {args.region} (batch has {len(batch.personas)})")
        return 1

    policy_summary = None
    if args.policy:
        try:
            policy_summary = Path(args.policy).read_text(encoding="utf-8")
        except OSError as exc:
            logger.error(f"Cannot read {args.policy}: {exc}")
            return 1

    reply = service.orchestrator.respond_as_persona(persona, args.message, policy_summary)
    print(f"{persona.display_name}: {reply}")
    return 0


def cmd_zips(args):
    """List ZIP codes (ZCTAs) in a district."""
    settings = _load_settings(args)
    mapper = DistrictMapper(settings.zccd_path)
    zips = mapper.get_zip_codes_for_district(args.district)
    if not zips:
        logger.warning(f"No ZIP codes found for {args.district}")
        return 1
    for zip_code in zips:
        print(zip_code)
    return 0


def cmd_check(args):
    """Sample locally and compare the batch with its profile."""
    settings = _load_settings(args)
    service = _build_service(settings, args.seed, use_cache=False)
    profile = asyncio.run(service.get_district_profile(args.region))
    personas = PersonaSampler(seed=args.seed).sample_personas(profile, args.count, show_progress=True)

    report = evaluate_sample(profile, personas)
    print(report.summary())
    return 0 if report.passed else 2


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Generate synthetic constituent personas from Census ACS data"
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose logging')
    parser.add_argument('--cache-dir', type=str, default=None,
                        help='Override result cache directory')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    profile_parser = subparsers.add_parser('profile', help='Show a region profile')
    profile_parser.add_argument('region', help='ZIP code or district (e.g. CA-12)')
    profile_parser.add_argument('--json', action='store_true', help='Print raw JSON')
    profile_parser.add_argument('--seed', type=int, default=None,
                                help='Seed for fallback profiles')

    gen_parser = subparsers.add_parser('generate', help='Generate constituents')
    gen_parser.add_argument('region', help='ZIP code or district (e.g. CA-12)')
    gen_parser.add_argument('-n', '--count', type=int, default=10,
                            help='Number of constituents (default: 10)')
    gen_parser.add_argument('-o', '--output', type=str, default='./output',
                            help='Output directory (default: ./output)')
    gen_parser.add_argument('--basename', type=str, default=None,
                            help='Base filename (default: <region>_constituents)')
    gen_parser.add_argument('--format', type=str, default='json',
                            help='Output format: json, jsonl, csv, parquet, all (comma-separated allowed)')
    gen_parser.add_argument('--provider', type=str, default=None, choices=SUPPORTED_PROVIDERS,
                            help='LLM provider (default: DISTRICT_TWINS_LLM_PROVIDER or mock)')
    gen_parser.add_argument('--seed', type=int, default=None,
                            help='Random seed for reproducibility')
    gen_parser.add_argument('--refresh', action='store_true',
                            help='Ignore cached batches and regenerate')
    gen_parser.add_argument('--no-cache', action='store_true',
                            help='Do not read or write the result cache')

    sum_parser = subparsers.add_parser('summarize', help='Summarize a policy document')
    sum_parser.add_argument('file', help='Text file with the policy document')
    sum_parser.add_argument('--district', type=str, default=None,
                            help='District used for demographics and caching')
    sum_parser.add_argument('--representative', type=str, default=None,
                            help='Representative name')
    sum_parser.add_argument('--provider', type=str, default=None, choices=SUPPORTED_PROVIDERS,
                            help='LLM provider')

    chat_parser = subparsers.add_parser('chat', help='Ask a constituent a question')
    chat_parser.add_argument('region', help='ZIP code or district')
    chat_parser.add_argument('--persona', type=int, required=True,
                             help='Constituent number (1-based)')
    chat_parser.add_argument('--message', type=str, required=True,
                             help='Question to ask')
    chat_parser.add_argument('--policy', type=str, default=None,
                             help='File with a policy summary to discuss')
    chat_parser.add_argument('-n', '--count', type=int, default=10,
                             help='Batch size (default: 10)')
    chat_parser.add_argument('--provider', type=str, default=None, choices=SUPPORTED_PROVIDERS,
                             help='LLM provider')
    chat_parser.add_argument('--seed', type=int, default=None,
                             help='Random seed for reproducibility')

    zips_parser = subparsers.add_parser('zips', help='List ZIP codes in a district')
    zips_parser.add_argument('district', help='District (e.g. CA-12)')

    check_parser = subparsers.add_parser('check', help='Check sampler fidelity for a region')
    check_parser.add_argument('region', help='ZIP code or district')
    check_parser.add_argument('-n', '--count', type=int, default=1000,
                              help='Sample size (default: 1000)')
    check_parser.add_argument('--seed', type=int, default=None,
                              help='Random seed for reproducibility')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(verbose=args.verbose)

    commands = {
        'profile': cmd_profile,
        'generate': cmd_generate,
        'summarize': cmd_summarize,
        'chat': cmd_chat,
        'zips': cmd_zips,
        'check': cmd_check,
    }

    try:
        return commands[args.command](args)
    except ConfigurationError as exc:
        logger.error(f"Configuration error: {exc}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
