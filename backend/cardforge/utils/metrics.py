"""
Prometheus metrics definitions.
All metrics are registered here and can be imported by other modules.
"""
from prometheus_client import Counter, Histogram

# HTTP request metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'path', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'path'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0]
)

# Error metrics
errors_total = Counter(
    'errors_total',
    'Total errors',
    ['error_type']
)

# Credit ledger metrics
credits_consumed_total = Counter(
    'credits_consumed_total',
    'Total credits consumed',
    ['reason']
)

credits_granted_total = Counter(
    'credits_granted_total',
    'Total credits granted or refunded',
    ['reason']
)

# Image generation metrics
images_generated_total = Counter(
    'images_generated_total',
    'Total images generated'
)

image_generation_failures_total = Counter(
    'image_generation_failures_total',
    'Total failed image generations',
    ['reason']
)

# Order metrics
orders_created_total = Counter(
    'orders_created_total',
    'Total print orders created'
)

# Provider metrics
provider_requests_total = Counter(
    'provider_requests_total',
    'Total external provider requests',
    ['provider', 'operation']
)

provider_failures_total = Counter(
    'provider_failures_total',
    'Total external provider failures',
    ['provider', 'operation']
)

image_provider_latency_seconds = Histogram(
    'image_provider_latency_seconds',
    'Image provider request latency in seconds',
    ['provider'],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0]
)
