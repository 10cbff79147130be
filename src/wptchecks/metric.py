from prometheus_client import Counter, Gauge

request_counter = Counter(
    "wptchecks_num_req", "Total number of requests", labelnames=["path"]
)
webhook_counter = Counter(
    "wptchecks_num_webhook", "Total number of webhooks", labelnames=["event", "app"]
)
webhook_skipped_counter = Counter(
    "wptchecks_num_webhook_skipped",
    "Total number of webhooks deliberately ignored",
    labelnames=["event", "reason"],
)

check_suite_request_counter = Counter(
    "wptchecks_num_check_suite_requests",
    "Number of check suite creation requests on the home repository",
    labelnames=["result"],
)

results_processing_counter = Counter(
    "wptchecks_num_results_processing_scheduled",
    "Number of results processing jobs scheduled",
    labelnames=["trigger"],
)

queue_size = Gauge("wptchecks_queue_size", "Size of the results processing queue")

error_counter = Counter(
    "wptchecks_error_counter", "Total number of errors", labelnames=["context"]
)

# Counted in the shared diskcache by every process, copied in on scrape.
api_call_count = Gauge("wptchecks_num_api_calls", "Total number of GitHub API calls")

worker_error_count = Gauge(
    "wptchecks_num_worker_error",
    "Number of errors encountered by the processing worker",
)
