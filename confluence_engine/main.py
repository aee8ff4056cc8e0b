"""Main entry point: run one signal cycle from a snapshot file."""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any

from confluence_engine.config.loader import load_config
from confluence_engine.config.models import PipelineConfig
from confluence_engine.core.signal_cycle import CycleRequest, SignalCycle
from confluence_engine.errors import CycleFailedError
from confluence_engine.models.evidence import EvidenceBundle
from confluence_engine.models.proposal import AccountSnapshot, Proposal
from confluence_engine.models.results import CycleResult
from confluence_engine.monitoring.metrics import init_metrics
from confluence_engine.monitoring.sentry_service import SentryConfig, get_sentry, init_sentry
from confluence_engine.signals.http_provider import HttpOpinionProvider
from confluence_engine.signals.stub_provider import StubOpinionProvider

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def load_snapshot(path: str | Path) -> tuple[CycleRequest, dict[str, Proposal]]:
    """
    Read a cycle snapshot JSON file.

    Format::

        {
          "assets": ["BTC", "ETH"],
          "account": {"account_value": 100.0, "positions": []},
          "evidence": {"BTC": {"price": 50000.0, "indicators": {...}}},
          "proposals": {"BTC": {"kind": "ENTER_LONG", "rationale": "..."}},
          "ranking": {"BTC": [1, 97.5]}
        }

    Returns:
        Tuple of (cycle request, pre-recorded proposals per symbol)

    Raises:
        FileNotFoundError: If the file doesn't exist
        pydantic.ValidationError: If a record is malformed
    """
    with open(path) as f:
        data: dict[str, Any] = json.load(f)

    evidence = {
        symbol: EvidenceBundle.model_validate({"symbol": symbol, **bundle})
        for symbol, bundle in data.get("evidence", {}).items()
    }
    proposals = {
        symbol: Proposal.model_validate({"symbol": symbol, **proposal})
        for symbol, proposal in data.get("proposals", {}).items()
    }
    ranking = {
        symbol: (hint[0], hint[1] if len(hint) > 1 else None)
        for symbol, hint in data.get("ranking", {}).items()
    }

    request = CycleRequest(
        assets=list(data.get("assets") or evidence),
        account=AccountSnapshot.model_validate(data.get("account", {})),
        evidence=evidence,
        ranking=ranking,
    )
    return request, proposals


def log_result(result: CycleResult) -> None:
    """Log the final signal set and the audit list."""
    if result.is_empty:
        logger.info("📭 No signals generated")
    for signal in result.signals:
        confidence = f"{signal.confidence * 100:.1f}%" if signal.confidence is not None else "N/A"
        ev = f"${signal.expected_value:.2f}" if signal.expected_value is not None else "N/A"
        level = signal.execution_level.value if signal.execution_level else "-"
        status = "AUTO" if signal.auto_tradeable else "REVIEW"
        logger.info(
            f"📈 {signal.symbol}: {signal.kind.value} @ {signal.entry_price_string or signal.entry_price} "
            f"| qty {signal.quantity} | SL {signal.stop_loss} | TP {signal.take_profit} "
            f"| conf {confidence} | EV {ev} | {level} | {status}"
        )
        if signal.rejection_reason:
            logger.info(f"   ↳ {signal.rejection_reason}")
    for item in result.rejected:
        logger.info(f"❌ {item.signal.symbol}: {item.signal.kind.value} rejected: {item.reason}")
    for symbol, reason in result.failures.items():
        logger.info(f"⚠️ {symbol}: failed: {reason}")


async def run_cycle(config: PipelineConfig, request: CycleRequest, proposals: dict[str, Proposal]) -> CycleResult:
    """Run one cycle with the HTTP opinion service if configured, else recorded proposals."""
    opinion_url = os.environ.get("CONFLUENCE_OPINION_URL")
    if opinion_url:
        logger.info(f"✅ Opinion service: {opinion_url}")
        async with HttpOpinionProvider(opinion_url, api_key=os.environ.get("CONFLUENCE_OPINION_API_KEY")) as http:
            return await SignalCycle(config, http).run(request)

    stub = StubOpinionProvider()
    for symbol, proposal in proposals.items():
        stub.set_proposal(symbol, proposal)
    logger.info(f"✅ Opinion service: recorded proposals ({len(proposals)} assets)")
    return await SignalCycle(config, stub).run(request)


def main() -> int:
    """Main entry point for the signal pipeline."""
    logger.info("🚀 Confluence Engine starting...")

    # Initialize Sentry (if SENTRY_DSN is configured)
    sentry_dsn = os.environ.get("SENTRY_DSN", "")
    if sentry_dsn:
        sentry_env = os.environ.get("SENTRY_ENVIRONMENT", "development")
        init_sentry(SentryConfig(dsn=sentry_dsn, environment=sentry_env, traces_sample_rate=0.1))
        logger.info(f"✅ Sentry initialized (env={sentry_env})")
    else:
        logger.info("⚠️ Sentry not configured (set SENTRY_DSN to enable)")

    # Load configuration
    try:
        config = load_config()
        logger.info(f"✅ Configuration loaded: mode={config.mode}")
    except Exception as e:
        logger.error(f"❌ Failed to load configuration: {e}")
        sentry = get_sentry()
        if sentry:
            sentry.capture_error(e, context={"phase": "config_load"})
            sentry.flush()
        return 1

    if config.metrics.enabled:
        init_metrics(config.metrics).start_server()

    snapshot_path = os.environ.get("CONFLUENCE_SNAPSHOT_PATH", "snapshot.json")
    try:
        request, proposals = load_snapshot(snapshot_path)
        logger.info(f"📊 Snapshot loaded: {len(request.assets)} assets from {snapshot_path}")
    except Exception as e:
        logger.error(f"❌ Failed to load snapshot {snapshot_path}: {e}")
        return 1

    try:
        result = asyncio.run(run_cycle(config, request, proposals))
        log_result(result)
    except CycleFailedError as e:
        logger.error(f"❌ Signal cycle failed: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("⏸️  Shutdown requested by user")
    except Exception as e:
        logger.error(f"❌ Signal cycle error: {e}", exc_info=True)
        sentry = get_sentry()
        if sentry:
            sentry.capture_error(e, context={"phase": "signal_cycle"})
        return 1
    finally:
        sentry = get_sentry()
        if sentry:
            sentry.flush()
        logger.info("🛑 Engine stopped")

    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
