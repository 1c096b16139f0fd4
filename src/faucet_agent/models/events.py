"""
Faucet controller event model.

Each line on the faucet event socket is one JSON object carrying a small
header (version, time, datapath) and one event payload stored under an
upper-case key such as ``L3_LEARN``. The payload is modelled as a closed
union of payload classes; ``EventRecord.payloads`` keeps every payload that
was present on the line.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from ..errors import MalformedRecordError


class _Lenient(BaseModel):
    """Reads JSON null as the field's zero value."""

    @field_validator('*', mode='before')
    @classmethod
    def null_as_default(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return v


class _Payload(_Lenient):
    model_config = ConfigDict(frozen=True, extra="ignore")

    KIND: ClassVar[str] = ""


class ConfigHashInfo(_Lenient):
    model_config = ConfigDict(frozen=True, extra="ignore")

    config_files: str = ""
    hashes: str = ""
    error: str = ""


class ConfigChange(_Payload):
    KIND: ClassVar[str] = "CONFIG_CHANGE"

    success: Optional[bool] = None
    restart_type: Optional[str] = None
    config_hash_info: Optional[ConfigHashInfo] = None


class DpChange(_Payload):
    KIND: ClassVar[str] = "DP_CHANGE"

    reason: str = ""


class PortChange(_Payload):
    KIND: ClassVar[str] = "PORT_CHANGE"

    port_no: int = 0
    reason: str = ""
    state: int = 0
    status: bool = False


class L2Learn(_Payload):
    KIND: ClassVar[str] = "L2_LEARN"

    port_no: int = 0
    previous_port_no: Optional[int] = None
    vid: int = 0
    eth_src: str = ""
    eth_dst: str = ""
    eth_type: int = 0
    l3_src_ip: str = ""
    l3_dst_ip: str = ""

    @field_validator('previous_port_no', mode='before')
    @classmethod
    def permissive_port(cls, v: Any) -> Optional[int]:
        # faucet sends null, an int, or nothing at all; anything else is dropped
        if isinstance(v, bool):
            return None
        if isinstance(v, int):
            return v
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return None


class L3Learn(_Payload):
    KIND: ClassVar[str] = "L3_LEARN"

    eth_src: str = ""
    l3_src_ip: str = ""
    port_no: int = 0
    vid: int = 0


EventPayload = Union[ConfigChange, DpChange, PortChange, L2Learn, L3Learn]

PAYLOAD_TYPES: Tuple[Type[_Payload], ...] = (ConfigChange, DpChange, PortChange, L2Learn, L3Learn)

P = TypeVar("P", bound=_Payload)


class _WireEvent(_Lenient):
    """JSON shape of one event line."""

    model_config = ConfigDict(extra="ignore")

    version: int = 0
    time: float = Field(default=0.0, allow_inf_nan=False)
    dp_id: int = 0
    dp_name: str = ""
    event_id: int = 0
    config_change: Optional[ConfigChange] = Field(default=None, alias="CONFIG_CHANGE")
    dp_change: Optional[DpChange] = Field(default=None, alias="DP_CHANGE")
    port_change: Optional[PortChange] = Field(default=None, alias="PORT_CHANGE")
    l2_learn: Optional[L2Learn] = Field(default=None, alias="L2_LEARN")
    l3_learn: Optional[L3Learn] = Field(default=None, alias="L3_LEARN")


@dataclass(frozen=True)
class EventRecord:
    """One parsed faucet event."""
    version: int
    time: float
    dp_id: int
    dp_name: str
    event_id: int
    payloads: Tuple[EventPayload, ...] = field(default_factory=tuple)

    @property
    def timestamp_ms(self) -> int:
        """Event time in milliseconds, truncated."""
        return int(self.time * 1000)

    def payload(self, kind: Type[P]) -> Optional[P]:
        """Return the first payload of the given class, if present."""
        for payload in self.payloads:
            if isinstance(payload, kind):
                return payload
        return None


def parse_event(line: Union[bytes, str]) -> EventRecord:
    """
    Parse one event line.

    Raises:
        MalformedRecordError: If the line is not a JSON object of the expected shape
    """
    try:
        wire = _WireEvent.model_validate_json(line)
    except ValidationError as e:
        raise MalformedRecordError(f"Failed to parse event: {_summarize(e)}", line=line) from e

    payloads = tuple(
        payload
        for payload in (wire.config_change, wire.dp_change, wire.port_change, wire.l2_learn, wire.l3_learn)
        if payload is not None
    )

    return EventRecord(
        version=wire.version,
        time=wire.time,
        dp_id=wire.dp_id,
        dp_name=wire.dp_name,
        event_id=wire.event_id,
        payloads=payloads,
    )


def _summarize(error: ValidationError) -> str:
    errors = error.errors()
    if not errors:
        return str(error)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "<root>"
    return f"{location}: {first.get('msg', '')}"
