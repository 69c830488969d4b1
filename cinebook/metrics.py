from prometheus_client import Counter, Histogram

# Remote cinema API
CINEMA_API_LATENCY = Histogram("cinebook_cinema_api_latency_seconds", "Latency of remote cinema API calls", ["operation"])
CINEMA_API_ERRORS = Counter("cinebook_cinema_api_errors_total", "Failed remote cinema API calls", ["operation", "kind"])

# Promotion checks
COUPON_CHECKS = Counter("cinebook_coupon_checks_total", "Coupon validation attempts", ["result"])

# Booking draft hand-off
DRAFT_OPERATIONS = Counter("cinebook_draft_operations_total", "Booking draft store operations", ["operation", "result"])

# Checkout submissions
CHECKOUT_SUBMISSIONS = Counter("cinebook_checkout_submissions_total", "Booking submissions", ["result"])
