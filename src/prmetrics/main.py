"""Application entry point for the GitHub PR metrics generator."""

from __future__ import annotations

import logging
import signal
import sys
import threading
from typing import Optional, Sequence

from .cli import parse_args
from .config import load_config
from .errors import ApiError, AuthenticationError, ConfigurationError, RunCancelledError
from .github_client import GitHubClient
from .pipeline import collect_pr_metrics
from .report import generate_summary, write_csv, write_summary

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_CONFIGURATION = 2
EXIT_AUTHENTICATION = 3
EXIT_API = 4
EXIT_CANCELLED = 130


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _install_cancel_handler(cancel_event: threading.Event) -> None:
    """Set ``cancel_event`` on SIGINT so the run stops at the next boundary."""
    if threading.current_thread() is not threading.main_thread():
        return

    def _handler(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        logger.warning("Cancellation requested; finishing in-flight work")
        cancel_event.set()

    signal.signal(signal.SIGINT, _handler)


def orchestrate_metrics_generation(
    argv: Optional[Sequence[str]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> int:
    """Run the full metrics generation flow and return a process exit code.

    Exit codes:
        0: success, including runs that produced no rows
        1: unexpected error
        2: invalid configuration (for example a missing owner)
        3: missing or rejected GitHub token
        4: GitHub API failure before any repository was processed
        130: cancelled; partial output is still written
    """
    try:
        args = parse_args(argv)
        configure_logging(getattr(args, "verbose", False))

        config = load_config(
            owner=args.owner,
            repository=args.repository,
            days=args.days,
            state=args.state,
            max_results=args.max_results,
            include_details=not args.basic,
            include_drafts=args.include_drafts,
            output_path=args.output,
            summary_path=args.summary,
            detail_workers=args.workers,
            api_url=args.api_url,
        )

        if cancel_event is None:
            cancel_event = threading.Event()
            _install_cancel_handler(cancel_event)

        client = GitHubClient(config=config, cancel_event=cancel_event)
        rows = collect_pr_metrics(client, config, cancel_event=cancel_event)

        written = write_csv(rows, config.output_path)
        logger.info("Wrote %s rows to %s", written, config.output_path)

        summary = generate_summary(
            rows,
            owner=config.owner,
            repository=config.repository,
            days=config.days,
            state=config.state,
        )
        if config.summary_path:
            write_summary(summary, config.summary_path)
            logger.info("Wrote summary report to %s", config.summary_path)
        print(summary)

        if cancel_event.is_set():
            return EXIT_CANCELLED
        return EXIT_OK
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIGURATION
    except AuthenticationError as exc:
        logger.error("Authentication error: %s", exc)
        return EXIT_AUTHENTICATION
    except RunCancelledError as exc:
        logger.warning("%s", exc)
        return EXIT_CANCELLED
    except ApiError as exc:
        logger.error("GitHub API error: %s", exc)
        return EXIT_API
    except KeyboardInterrupt:
        logger.warning("Run interrupted; output files may be incomplete")
        return EXIT_CANCELLED
    except Exception:
        logger.exception("Unexpected error while generating PR metrics")
        return EXIT_UNEXPECTED


def main() -> None:
    sys.exit(orchestrate_metrics_generation())


if __name__ == "__main__":
    main()
