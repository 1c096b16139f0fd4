"""
Prometheus remote write (v1) wire format.

The message types are declared here as a FileDescriptorProto and loaded into
a private descriptor pool, so no generated ``_pb2`` module is needed. Only
the fields this agent writes are declared; field numbers match
``prompb/remote.proto`` and ``prompb/types.proto``.
"""

import time
from typing import Mapping, Optional

import snappy
from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

from ..models.metrics import MetricFamilies


_F = descriptor_pb2.FieldDescriptorProto

PACKAGE = "prometheus"


def _add_field(message, name, number, field_type, label=_F.LABEL_OPTIONAL, type_name=None):
    field = message.field.add()
    field.name = name
    field.number = number
    field.type = field_type
    field.label = label
    if type_name:
        field.type_name = f".{PACKAGE}.{type_name}"
    return field


def _build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto()
    proto.name = "faucet_agent/remote_write.proto"
    proto.package = PACKAGE
    proto.syntax = "proto3"

    label = proto.message_type.add(name="Label")
    _add_field(label, "name", 1, _F.TYPE_STRING)
    _add_field(label, "value", 2, _F.TYPE_STRING)

    sample = proto.message_type.add(name="Sample")
    _add_field(sample, "value", 1, _F.TYPE_DOUBLE)
    _add_field(sample, "timestamp", 2, _F.TYPE_INT64)

    series = proto.message_type.add(name="TimeSeries")
    _add_field(series, "labels", 1, _F.TYPE_MESSAGE, _F.LABEL_REPEATED, "Label")
    _add_field(series, "samples", 2, _F.TYPE_MESSAGE, _F.LABEL_REPEATED, "Sample")

    metadata = proto.message_type.add(name="MetricMetadata")
    metric_type = metadata.enum_type.add(name="MetricType")
    for number, name in enumerate(
        ["UNKNOWN", "COUNTER", "GAUGE", "HISTOGRAM", "GAUGEHISTOGRAM", "SUMMARY", "INFO", "STATESET"]
    ):
        metric_type.value.add(name=name, number=number)
    _add_field(metadata, "type", 1, _F.TYPE_ENUM, type_name="MetricMetadata.MetricType")
    _add_field(metadata, "metric_family_name", 2, _F.TYPE_STRING)
    _add_field(metadata, "help", 4, _F.TYPE_STRING)
    _add_field(metadata, "unit", 5, _F.TYPE_STRING)

    request = proto.message_type.add(name="WriteRequest")
    _add_field(request, "timeseries", 1, _F.TYPE_MESSAGE, _F.LABEL_REPEATED, "TimeSeries")
    _add_field(request, "metadata", 3, _F.TYPE_MESSAGE, _F.LABEL_REPEATED, "MetricMetadata")

    return proto


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_build_file_descriptor().SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{PACKAGE}.{name}"))


Label = _message_class("Label")
Sample = _message_class("Sample")
TimeSeries = _message_class("TimeSeries")
MetricMetadata = _message_class("MetricMetadata")
WriteRequest = _message_class("WriteRequest")


def families_to_write_request(
    families: MetricFamilies,
    extra_labels: Optional[Mapping[str, str]] = None,
    now_ms: Optional[int] = None,
):
    """
    Build a WriteRequest from metric families.

    Each sample becomes one time series labelled with ``__name__``, the
    sample's labels and ``extra_labels`` (sample labels win on conflict),
    sorted by label name. Samples without a timestamp are stamped with the
    current time. One metadata entry is written per family.
    """
    request = WriteRequest()
    extra_labels = extra_labels or {}

    for name in sorted(families):
        family = families[name]

        for sample in family.samples:
            labels = dict(extra_labels)
            labels.update(sample.labels)
            labels["__name__"] = name

            series = request.timeseries.add()
            for label_name in sorted(labels):
                series.labels.add(name=label_name, value=labels[label_name])

            timestamp = sample.timestamp_ms
            if timestamp is None:
                timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
            series.samples.add(value=sample.value, timestamp=timestamp)

        request.metadata.add(
            type=family.type.value,
            metric_family_name=name,
            help=family.help,
        )

    return request


def encode_write_request(request) -> bytes:
    """Serialize and snappy (block format) compress a WriteRequest."""
    return snappy.compress(request.SerializeToString())


def decode_write_request(payload: bytes):
    """Inverse of encode_write_request."""
    request = WriteRequest()
    request.ParseFromString(snappy.decompress(payload))
    return request
