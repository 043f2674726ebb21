from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

# Keep metrics module-level singletons
request_latency_seconds = Histogram("workui_request_latency_seconds", "HTTP request latency seconds")
error_count = Counter("workui_error_count", "Requests answered with the 500 error envelope")
dead_job_actions_total = Counter(
    "workui_dead_job_actions_total", "Dead job mutations performed through the API", ["action"]
)
store_latency_seconds = Histogram("workui_store_latency_seconds", "Job store call latency seconds", ["call"])


def metrics_response():
    # Return prometheus metrics as a Response
    payload = generate_latest()
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
