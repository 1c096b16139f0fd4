"""
Prometheus remote write support.

Contains:
- protocol: WriteRequest schema, builder and snappy encoding
- client: HTTP client and the MetricSink used by the processor
"""
