"""Per-event pipeline: translate one line and forward the result."""

import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Union

from .errors import DeliveryError, MalformedRecordError
from .models.metrics import MetricFamilies
from .remote_write.client import MetricSink
from .translator import EventTranslator


logger = logging.getLogger(__name__)


@dataclass
class ProcessorStats:
    """Processor-level statistics."""
    records_processed: int = 0
    malformed_records: int = 0
    samples_translated: int = 0
    writes_sent: int = 0
    write_failures: int = 0
    empty_writes: int = 0
    errors: int = 0
    last_record_time: Optional[float] = None


class EventProcessor:
    """
    Translates each event line and delivers the result synchronously.

    Parse and delivery failures are logged and swallowed so a bad line or an
    unavailable endpoint never ends the socket session. Any other error
    raised while handling a line is logged and the line is dropped. A write
    is sent for every line, including lines that produce no samples, unless
    ``skip_empty_writes`` is set.
    """

    def __init__(self, translator: EventTranslator, sink: MetricSink, skip_empty_writes: bool = False):
        self.translator = translator
        self.sink = sink
        self.skip_empty_writes = skip_empty_writes
        self.stats = ProcessorStats()

    async def process(self, line: Union[bytes, str]):
        self.stats.records_processed += 1
        self.stats.last_record_time = time.time()

        try:
            await self._process(line)
        except Exception as e:
            self.stats.errors += 1
            logger.error(f"Error processing event: {e} message={_preview(line)}", exc_info=True)

    async def _process(self, line: Union[bytes, str]):
        families: MetricFamilies
        try:
            families = self.translator.translate(line)
        except MalformedRecordError as e:
            self.stats.malformed_records += 1
            logger.error(f"Failed to parse JSON message: {e} message={_preview(line)}")
            families = {}

        sample_count = sum(len(family.samples) for family in families.values())
        self.stats.samples_translated += sample_count

        if sample_count == 0:
            if self.skip_empty_writes:
                return
            self.stats.empty_writes += 1

        try:
            await self.sink.send(families)
            self.stats.writes_sent += 1
        except DeliveryError as e:
            self.stats.write_failures += 1
            logger.error(f"Unable to send write request to prometheus: {e}")

    def get_stats(self) -> Dict[str, Any]:
        return asdict(self.stats)


def _preview(line: Union[bytes, str], limit: int = 200) -> str:
    if isinstance(line, bytes):
        line = line.decode('utf-8', errors='replace')
    return line if len(line) <= limit else f"{line[:limit]}..."
