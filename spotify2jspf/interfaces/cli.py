import argparse
import logging
import signal
import sys
import time
from datetime import datetime, timezone
from typing import List, Optional

from dotenv import load_dotenv

from spotify2jspf.application.pipeline import ConversionPipeline, PlaylistAssembler, count_status
from spotify2jspf.application.strategies import ResolutionSequencer, default_strategies
from spotify2jspf.crosscutting.config import ConfigError, ConverterConfig, load_config, __version__
from spotify2jspf.crosscutting.logging import CorrelationContext, log_error, setup_logging
from spotify2jspf.crosscutting.reporting import (
    MetricsCollector,
    PlaylistSummary,
    Report,
    TrackStatus,
    create_report_header,
)
from spotify2jspf.domain.errors import ConversionError
from spotify2jspf.infrastructure.export_reader import ExportReader
from spotify2jspf.infrastructure.jspf_writer import ensure_output_dir
from spotify2jspf.infrastructure.musicbrainz import MusicBrainzClient, RequestPacer


logger = logging.getLogger(__name__)

DEFAULT_INPUT = './Playlist1.json'
DEFAULT_OUTPUT = './out'


class CLI:
    """Command line interface for spotify2jspf."""

    def __init__(self):
        """Initialize CLI."""
        # .env is loaded in run() to keep tests deterministic
        self.parser = self._create_parser()
        self._start_time = None

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog='spotify2jspf',
            description='Convert a Spotify playlist export to JSPF playlists '
                        'with MusicBrainz recording identifiers'
        )
        parser.add_argument(
            'input',
            nargs='?',
            default=DEFAULT_INPUT,
            metavar='IN',
            help=f'Path to the Playlist1.json file to parse (default: {DEFAULT_INPUT})'
        )
        parser.add_argument(
            'output',
            nargs='?',
            default=DEFAULT_OUTPUT,
            metavar='OUT',
            help=f'Directory into which resulting .jspf files are written (default: {DEFAULT_OUTPUT})'
        )
        parser.add_argument(
            '-v', '--verbose',
            action='store_true',
            help='Log every lookup (DEBUG level)'
        )
        parser.add_argument(
            '--json-logs',
            action='store_true',
            help='Emit structured JSON log lines'
        )
        parser.add_argument(
            '--log-file',
            default=None,
            help='Also write logs to this file'
        )
        parser.add_argument(
            '--report',
            default=None,
            metavar='PATH',
            help='Write a JSON conversion report to PATH'
        )
        parser.add_argument(
            '--version',
            action='version',
            version=f'%(prog)s {__version__}'
        )
        return parser

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        def signal_handler(signum, frame):
            logger.warning(f"Received signal {signum}, shutting down...")
            self._cleanup_resources()
            sys.exit(130)

        signal.signal(signal.SIGTERM, signal_handler)

    def _cleanup_resources(self) -> None:
        """Log execution time on exit."""
        if self._start_time:
            duration = time.time() - self._start_time
            logger.debug(f"CLI execution time: {duration:.2f}s")
            self._start_time = None

    def _create_run_id(self) -> str:
        """Create unique run identifier."""
        return f"spotify2jspf_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

    def _create_client(self, config: ConverterConfig) -> MusicBrainzClient:
        """Create the MusicBrainz client from configuration."""
        return MusicBrainzClient(
            user_agent=config.user_agent,
            base_url=config.mb_base_url,
            timeout=config.timeout,
            max_attempts=config.max_attempts,
            retry_delay=config.retry_delay,
            search_limit=config.search_limit,
            pacer=RequestPacer(config.request_interval),
        )

    def _create_pipeline(self, client: MusicBrainzClient) -> ConversionPipeline:
        """Wire the resolution engine around a database client."""
        sequencer = ResolutionSequencer(default_strategies(client))
        return ConversionPipeline(PlaylistAssembler(sequencer))

    def _log_final_summary(self, summaries: List[PlaylistSummary]) -> None:
        """Log resolved-vs-total per playlist and overall."""
        for summary in summaries:
            totals = summary.totals
            logger.info(f"{summary.name}: {totals.get('resolved', 0)}/{totals.get('total', 0)} tracks "
                        f"({totals.get('exact', 0)} exact, {totals.get('inexact', 0)} inexact) "
                        f"-> {summary.output_path}")

        transient = count_status(summaries, TrackStatus.TRANSIENT_FAILURE)
        if transient:
            logger.warning(f"{transient} tracks were dropped because MusicBrainz could not be reached; "
                           f"re-running may map them")

        for summary in summaries:
            if summary.error:
                logger.error(f"Playlist '{summary.name}' was not written: {summary.error}")

    def _write_report(self, path: str, run_id: str, args: argparse.Namespace,
                      summaries: List[PlaylistSummary], client: MusicBrainzClient,
                      duration_ms: int) -> None:
        """Write the JSON conversion report."""
        header = create_report_header(run_id, input_file=args.input, output_dir=args.output)
        header.finished_at = datetime.now(timezone.utc)

        metrics = MetricsCollector()
        total = sum(s.totals.get('total', 0) for s in summaries)
        resolved = sum(s.totals.get('resolved', 0) for s in summaries)
        metrics.record_match_rate(resolved / total if total else 0.0)
        metrics.record_request_count(client.request_count)
        metrics.record_retry_count(client.retry_count)
        metrics.record_duration_ms(duration_ms)

        report = Report(header=header, playlists=summaries, metrics=metrics.to_json())
        saved = report.save(path)
        logger.info(f"Report saved to: {saved}")

    def convert(self, args: argparse.Namespace) -> int:
        """Run a conversion. Returns the process exit status."""
        run_id = self._create_run_id()
        with CorrelationContext(run_id=run_id):
            return self._convert(args, run_id)

    def _convert(self, args: argparse.Namespace, run_id: str) -> int:
        started = time.time()

        try:
            config = load_config()
            playlists = ExportReader().read(args.input)
            ensure_output_dir(args.output)
        except ConfigError as e:
            logger.error(f"Invalid configuration: {e}")
            return 1
        except ConversionError as e:
            logger.error(f"ERROR: {e}")
            return 1

        logger.debug(f"Configuration: {config.summary()}")
        logger.info(f"Converting {len(playlists)} playlists from {args.input} into {args.output} "
                    f"(run: {run_id})")

        client = self._create_client(config)
        pipeline = self._create_pipeline(client)

        try:
            summaries = pipeline.run(playlists, args.output)
        except ConversionError as e:
            log_error(logger, f"ERROR: {e}", e)
            return 1

        self._log_final_summary(summaries)

        if args.report:
            duration_ms = int((time.time() - started) * 1000)
            try:
                self._write_report(args.report, run_id, args, summaries, client, duration_ms)
            except OSError as e:
                logger.error(f"Failed to write report: {e}")

        # Unwritten playlists fail the run once all have been attempted
        if any(s.error for s in summaries):
            return 1
        return 0

    def run(self, argv: Optional[List[str]] = None) -> int:
        """Run the CLI."""
        self._start_time = time.time()
        args = self.parser.parse_args(argv)

        load_dotenv()
        setup_logging('DEBUG' if args.verbose else 'INFO',
                      log_file=args.log_file,
                      json_format=args.json_logs)
        self._setup_signal_handlers()

        try:
            return self.convert(args)
        except KeyboardInterrupt:
            logger.warning("Operation cancelled by user")
            return 130
        finally:
            self._cleanup_resources()


def main():
    """Main entry point."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
