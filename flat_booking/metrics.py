"""
Prometheus metrics for reservation intake, payment reconciliation and side effects.

Metrics are exposed via the /metrics endpoint for scraping by Prometheus.

Example:
    >>> from flat_booking.metrics import reservations_total
    >>> reservations_total.labels(outcome="created").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Reservation Metrics
# =============================================================================

reservations_total = Counter(
    "booking_reservations_total",
    "Reservation intake requests by outcome",
    ["outcome"],
)
"""
Counter for reservation intake outcomes.

Labels:
    outcome: created, reused, conflict or invalid
"""

payment_sessions_total = Counter(
    "booking_payment_sessions_total",
    "Checkout preferences requested from the payment provider",
    ["status"],
)
"""Counter for checkout session creation (status: success or failure)."""

# =============================================================================
# Webhook Metrics
# =============================================================================

webhook_notifications_total = Counter(
    "booking_webhook_notifications_total",
    "Payment notifications received, by event type and outcome",
    ["event_type", "outcome"],
)
"""
Counter for payment webhook deliveries.

Labels:
    event_type: payment, merchant_order or unknown
    outcome: confirmed or the skip reason (not_approved, lookup_not_found, ...)
"""

side_effects_total = Counter(
    "booking_side_effects_total",
    "Post-confirmation side effects by effect and status",
    ["effect", "status"],
)
"""
Counter for confirmation side effects.

Labels:
    effect: confirmation_email, pending_email, calendar_hold, resend_email
    status: sent, created, reused, skipped or failed
"""

# =============================================================================
# External API Metrics
# =============================================================================

api_requests = Counter(
    "booking_api_requests_total",
    "Requests made to external providers",
    ["provider", "endpoint", "status_code"],
)
"""
Counter for external API requests.

Labels:
    provider: mercadopago, google, resend, postgrest
    endpoint: logical endpoint name (e.g. "payments", "checkout/preferences")
    status_code: HTTP status code or "error" when no response was received
"""

api_latency = Histogram(
    "booking_api_latency_seconds",
    "External provider request latency in seconds",
    ["provider", "endpoint"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)
"""Histogram for external API request latency."""

# =============================================================================
# Store Metrics
# =============================================================================

store_operations = Counter(
    "booking_store_operations_total",
    "Store operations performed",
    ["operation", "table"],
)
"""
Counter for store operations.

Labels:
    operation: list, get, insert or patch
    table: reservas or flats
"""
