"""Translate faucet events into Prometheus metric families."""

import logging
from typing import Callable, Dict, Iterable, Type, Union

from .models.events import EventPayload, EventRecord, L3Learn, parse_event
from .models.metrics import MetricFamilies, MetricFamily, MetricSample, MetricType


logger = logging.getLogger(__name__)

MAC_IP_INFO = "faucet_mac_ip_info"

PayloadHandler = Callable[[EventRecord, EventPayload], Iterable[MetricFamily]]


def l3_learn_to_mac_ip_info(record: EventRecord, payload: L3Learn) -> Iterable[MetricFamily]:
    """One info sample per learned host: which MAC holds which IP on which port/VLAN."""
    logger.debug(
        f"Received L3 learn event: dp={record.dp_name} time={record.timestamp_ms} "
        f"eth_src={payload.eth_src} ip={payload.l3_src_ip} port={payload.port_no} vid={payload.vid}"
    )

    sample = MetricSample.create(
        labels=(
            ("mac", payload.eth_src),
            ("ip", payload.l3_src_ip),
            ("port", str(payload.port_no)),
            ("vid", str(payload.vid)),
        ),
        value=1,
        timestamp_ms=record.timestamp_ms,
    )

    return [
        MetricFamily(
            name=MAC_IP_INFO,
            type=MetricType.UNKNOWN,
            samples=[sample],
        )
    ]


class EventTranslator:
    """
    Maps event payloads to metric families.

    Handlers are registered per payload class. Every payload present on a
    record is dispatched; payloads without a handler produce nothing.
    """

    def __init__(self, register_defaults: bool = True):
        self._handlers: Dict[Type, PayloadHandler] = {}

        if register_defaults:
            self.register(L3Learn, l3_learn_to_mac_ip_info)

    def register(self, payload_type: Type, handler: PayloadHandler):
        """Register (or replace) the handler for a payload class."""
        self._handlers[payload_type] = handler
        logger.debug(f"Registered handler for {getattr(payload_type, 'KIND', payload_type.__name__)}")

    def translate(self, line: Union[bytes, str]) -> MetricFamilies:
        """
        Parse one event line and translate it.

        Raises:
            MalformedRecordError: If the line cannot be parsed
        """
        return self.translate_record(parse_event(line))

    def translate_record(self, record: EventRecord) -> MetricFamilies:
        families: MetricFamilies = {}

        for payload in record.payloads:
            handler = self._handlers.get(type(payload))
            if handler is None:
                continue

            for family in handler(record, payload):
                existing = families.get(family.name)
                if existing is None:
                    families[family.name] = family
                else:
                    existing.samples.extend(family.samples)

        return families
